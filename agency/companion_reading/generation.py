"""
Marginalia - Companion Generation
The persona's generation tasks: annotations, scans, replies, reviews,
reading reports and memory consolidation.

Each task builds its prompt, dispatches through the router and shapes the
raw text into a typed result. Two failure contracts apply:
    - Free-text tasks (annotation, replies, reviews, topic, memory) let
      LLMError propagate; an empty answer becomes a placeholder.
    - Structured tasks (scan, reading report) never raise; any failure is
      logged and the documented default is returned.

All functions block on network I/O. Async callers run them in a thread.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import config
from core.annotations import Annotation, ChatTurn, AUTHOR_USER, ROLE_USER
from core.engine_config import EngineConfig
from core.logger import log_info, log_warning, log_error
from core.personas import Persona
from llm.base_client import Turn
from llm.response_parser import parse_structured, as_list, as_object
from llm.router import LLMRouter
from prompt_builder import tasks
from prompt_builder.builder import PromptBuilder, get_prompt_builder

JSON_OVERRIDES = {"responseMimeType": "application/json"}


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class ScanFinding:
    """One passage picked by an autonomous scan."""
    text_selection: str
    comment: str
    topic: str = config.TOPIC_PLACEHOLDER


@dataclass(frozen=True)
class ReadingReport:
    """End-of-book summary of a reading session."""
    summary: str = config.REPORT_DEFAULT_SUMMARY
    keywords: List[str] = field(default_factory=lambda: list(config.REPORT_DEFAULT_KEYWORDS))
    highlight_topics: List[str] = field(default_factory=lambda: list(config.REPORT_DEFAULT_TOPICS))

    def to_dict(self):
        return {
            "summary": self.summary,
            "keywords": list(self.keywords),
            "highlightTopics": list(self.highlight_topics),
        }


# =============================================================================
# HELPERS
# =============================================================================

def clamp_annotation_count(count: Optional[int]) -> int:
    """
    Annotations to ask for per scan.

    Unset means the default; anything else is clamped to the scan bounds,
    so 0 asks for one passage and 10 for five.
    """
    if count is None:
        count = config.DEFAULT_AUTO_ANNOTATION_COUNT
    return max(config.SCAN_MIN_ANNOTATIONS, min(config.SCAN_MAX_ANNOTATIONS, int(count)))


def cap_thought(text: str, placeholder: str = config.ANNOTATION_PLACEHOLDER) -> str:
    """Cut a margin thought to the character cap; empty becomes the placeholder."""
    text = (text or "").strip()
    return text[:config.ANNOTATION_MAX_CHARS] or placeholder


def strong_model_config(engine_config: EngineConfig) -> EngineConfig:
    """Use the family's stronger model unless the user pinned one."""
    if engine_config.model and engine_config.model.strip():
        return engine_config
    strong = config.OPENAI_STRONG_MODEL if engine_config.is_openai_family else config.GEMINI_STRONG_MODEL
    return engine_config.with_overrides(model=strong)


def memory_digest(annotation: Annotation, persona_name: str) -> str:
    """One experience line for memory consolidation."""
    speaker = "User" if annotation.author == AUTHOR_USER else persona_name
    line = f"[Topic: {annotation.topic or config.TOPIC_PLACEHOLDER}] {speaker}: {annotation.comment}"
    if annotation.chat_history:
        line += " (+ discussion)"
    return line


def report_digest(annotation: Annotation) -> str:
    """One discussion line for the reading report."""
    return f"[Thought: {annotation.topic or config.TOPIC_PLACEHOLDER}] {annotation.comment}"


def _builder(builder: Optional[PromptBuilder]) -> PromptBuilder:
    return builder if builder is not None else get_prompt_builder()


def _parse_findings(raw_text: str) -> List[ScanFinding]:
    findings = []
    for item in as_list(parse_structured(raw_text)):
        if not isinstance(item, dict):
            continue
        selection = item.get("textSelection")
        comment = item.get("comment")
        if not isinstance(selection, str) or not selection.strip():
            continue
        if not isinstance(comment, str) or not comment.strip():
            continue
        topic = item.get("topic")
        if not isinstance(topic, str) or not topic.strip():
            topic = config.TOPIC_PLACEHOLDER
        findings.append(ScanFinding(
            text_selection=selection.strip(),
            comment=cap_thought(comment),
            topic=topic.strip()[:config.TOPIC_MAX_CHARS],
        ))
    return findings


def _string_list(value, default: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(default)
    items = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    return items or list(default)


# =============================================================================
# FREE-TEXT TASKS
# =============================================================================

def generate_annotation(
    router: LLMRouter,
    passage: str,
    persona: Persona,
    engine_config: EngineConfig,
    builder: Optional[PromptBuilder] = None
) -> str:
    """A single margin thought on a selected passage."""
    prompt = _builder(builder).build(persona, tasks.annotate_passage(persona.name, passage))
    text = router.dispatch(
        [Turn("user", prompt.user_message)],
        engine_config,
        system_instruction=prompt.system_instruction
    )
    return cap_thought(text)


def summarize_topic(router: LLMRouter, comment: str, engine_config: EngineConfig) -> str:
    """
    Short topic label for a comment.

    Runs without a persona and at a fixed low temperature so labels stay
    terse whatever the session temperature is.
    """
    text = router.dispatch(
        [Turn("user", tasks.topic_label(comment))],
        engine_config,
        overrides={"temperature": config.TOPIC_TEMPERATURE}
    )
    label = (text or "").strip().strip('"').strip()
    return label[:config.TOPIC_MAX_CHARS] or config.TOPIC_PLACEHOLDER


def respond_to_note(
    router: LLMRouter,
    passage: str,
    note: str,
    persona: Persona,
    engine_config: EngineConfig,
    builder: Optional[PromptBuilder] = None
) -> str:
    """The persona's first reply to a user's note."""
    prompt = _builder(builder).build(persona, tasks.respond_to_note(persona.name, passage, note))
    text = router.dispatch(
        [Turn("user", prompt.user_message)],
        engine_config,
        system_instruction=prompt.system_instruction
    )
    return cap_thought(text)


def chat_with_persona(
    router: LLMRouter,
    message: str,
    history: Sequence[ChatTurn],
    persona: Persona,
    engine_config: EngineConfig,
    builder: Optional[PromptBuilder] = None
) -> str:
    """
    Continue an annotation thread.

    The prior thread goes out in order with the new message as the final
    user turn.
    """
    prompt = _builder(builder).build(persona, tasks.chat_turn(persona.name, message))
    turns = [Turn("user" if t.role == ROLE_USER else "model", t.text) for t in history]
    turns.append(Turn("user", prompt.user_message))

    text = router.dispatch(turns, engine_config, system_instruction=prompt.system_instruction)
    return cap_thought(text)


def generate_long_review(
    router: LLMRouter,
    book_title: str,
    persona: Persona,
    engine_config: EngineConfig,
    builder: Optional[PromptBuilder] = None
) -> str:
    """A characterful long-form review of a finished book."""
    prompt = _builder(builder).build(
        persona,
        tasks.long_review(book_title),
        length_directive=tasks.LONG_FORM_LENGTH_DIRECTIVE
    )
    text = router.dispatch(
        [Turn("user", prompt.user_message)],
        strong_model_config(engine_config),
        system_instruction=prompt.system_instruction
    )
    return (text or "").strip() or config.LONG_REVIEW_PLACEHOLDER


def respond_to_review(
    router: LLMRouter,
    review: str,
    rating: int,
    persona: Persona,
    engine_config: EngineConfig,
    builder: Optional[PromptBuilder] = None
) -> str:
    """The persona's reply to the user's rating and review."""
    prompt = _builder(builder).build(
        persona,
        tasks.respond_to_review(persona.name, review, rating),
        length_directive=tasks.LONG_FORM_LENGTH_DIRECTIVE
    )
    text = router.dispatch(
        [Turn("user", prompt.user_message)],
        strong_model_config(engine_config),
        system_instruction=prompt.system_instruction
    )
    return (text or "").strip() or config.REVIEW_REPLY_PLACEHOLDER


def consolidate_memory(
    router: LLMRouter,
    persona: Persona,
    book_title: str,
    annotations: Sequence[Annotation],
    engine_config: EngineConfig
) -> str:
    """
    Merge recent annotation activity into the persona's long-term memory.

    Uses the archivist instruction instead of the persona voice, a fixed
    temperature and the stronger default model.

    Returns:
        The new memory text, trimmed. May be empty; the caller decides
        what an empty memory means.
    """
    experiences = [memory_digest(a, persona.name) for a in annotations if a.comment]
    prompt = tasks.consolidate_memory(persona.name, persona.long_term_memory, book_title, experiences)

    memory_config = strong_model_config(engine_config).with_overrides(
        temperature=config.MEMORY_TEMPERATURE
    )
    text = router.dispatch(
        [Turn("user", prompt)],
        memory_config,
        system_instruction=config.MEMORY_ARCHIVIST_INSTRUCTION
    )
    return (text or "").strip()


# =============================================================================
# STRUCTURED TASKS
# =============================================================================

def autonomous_scan(
    router: LLMRouter,
    page_content: str,
    persona: Persona,
    engine_config: EngineConfig,
    builder: Optional[PromptBuilder] = None
) -> List[ScanFinding]:
    """
    Pick passages on a page worth a margin thought.

    Returns:
        Findings in model order; [] on any failure
    """
    count = clamp_annotation_count(engine_config.auto_annotation_count)

    try:
        prompt = _builder(builder).build(persona, tasks.scan_page(persona.name, page_content, count))
        text = router.dispatch(
            [Turn("user", prompt.user_message)],
            engine_config,
            system_instruction=prompt.system_instruction,
            overrides=JSON_OVERRIDES
        )
        findings = _parse_findings(text)
    except Exception as e:
        log_error(f"Autonomous scan failed: {e}")
        return []

    if len(findings) > count:
        log_warning(f"Scan returned {len(findings)} passages, keeping {count}")
        findings = findings[:count]

    log_info(f"{persona.name} picked {len(findings)} passage(s)", prefix="📖")
    return findings


def generate_reading_report(
    router: LLMRouter,
    book_title: str,
    annotations: Sequence[Annotation],
    engine_config: EngineConfig
) -> ReadingReport:
    """
    Poetic summary, keywords and themes of a reading session.

    Returns:
        The parsed report; the default report on any failure
    """
    prompt = tasks.reading_report(book_title, [report_digest(a) for a in annotations])

    try:
        text = router.dispatch(
            [Turn("user", prompt)],
            engine_config,
            overrides=JSON_OVERRIDES
        )
        data = as_object(parse_structured(text))
    except Exception as e:
        log_error(f"Reading report failed: {e}")
        return ReadingReport()

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = config.REPORT_DEFAULT_SUMMARY

    return ReadingReport(
        summary=summary.strip(),
        keywords=_string_list(data.get("keywords"), config.REPORT_DEFAULT_KEYWORDS),
        highlight_topics=_string_list(data.get("highlightTopics"), config.REPORT_DEFAULT_TOPICS),
    )
