"""
Marginalia - Task Prompts
User-turn text for each generation task, layered on the persona system instruction
"""

from typing import List

import config


# =============================================================================
# LENGTH DIRECTIVES
# =============================================================================

LONG_FORM_LENGTH_DIRECTIVE = (
    f"Up to about {config.LONG_REVIEW_MAX_WORDS} words. "
    f"Stay conversational; the margin-note character cap does not apply here."
)

SHORT_REPLY_DIRECTIVE = f"Max {config.ANNOTATION_MAX_CHARS} chars, colloquial, no actions."


# =============================================================================
# TASK TEMPLATES
# =============================================================================

ANNOTATE_PASSAGE_PROMPT = """Role: {persona_name}
Passage: "{passage}"
Task: Provide a brief, colloquial thought. {short_reply}"""

SCAN_PAGE_PROMPT = """Text: "{page_content}"
Persona: {persona_name}
Instruction: Find between 1 and {count} distinct passages that spark a deep thought.
JSON Output: A list of objects. Each object: {{ "textSelection": "exact text from passage", "comment": "Colloquial thought under {max_chars} chars, no actions", "topic": "2-word theme" }}"""

RESPOND_TO_NOTE_PROMPT = """User's note on "{passage}": "{note}"
Response as {persona_name}: {short_reply}"""

CHAT_TURN_PROMPT = "User: {message}. Respond as {persona_name}. {short_reply}"

LONG_REVIEW_PROMPT = (
    'Write a characterful review of "{book_title}". '
    "Max {max_words} words. Colloquial tone."
)

RESPOND_TO_REVIEW_PROMPT = 'User rated {rating} stars: "{review}". Reply briefly as {persona_name}.'

TOPIC_PROMPT = 'Topic for: "{comment}"'

READING_REPORT_PROMPT = """Analyze our reading session of "{book_title}".
Data:
{discussion}

Output a poetic JSON report:
- "summary": 2 sentences of our shared soul journey (Colloquial, No actions).
- "keywords": 8 evocative keywords.
- "highlightTopics": 3 main themes."""

CONSOLIDATE_MEMORY_PROMPT = """TASK: Consolidate Memory for {persona_name}.

OLD MEMORY:
"{existing_memory}"

NEW EXPERIENCES (Book: {book_title}):
{experiences}

INSTRUCTIONS:
1. Merge the new experiences into the old memory.
2. Keep it concise (max {max_words} words).
3. Focus on emotional bonds, shared discoveries, and intellectual disagreements we had.
4. Maintain the persona's voice (e.g., if Socrates, focus on what definitions we explored).
5. This text will be injected into your brain next time we meet."""


# =============================================================================
# BUILDERS
# =============================================================================

def annotate_passage(persona_name: str, passage: str) -> str:
    return ANNOTATE_PASSAGE_PROMPT.format(
        persona_name=persona_name,
        passage=passage,
        short_reply=f"Max {config.ANNOTATION_MAX_CHARS} chars. No actions."
    )


def scan_page(persona_name: str, page_content: str, count: int) -> str:
    return SCAN_PAGE_PROMPT.format(
        page_content=page_content,
        persona_name=persona_name,
        count=count,
        max_chars=config.ANNOTATION_MAX_CHARS
    )


def respond_to_note(persona_name: str, passage: str, note: str) -> str:
    return RESPOND_TO_NOTE_PROMPT.format(
        passage=passage,
        note=note,
        persona_name=persona_name,
        short_reply=SHORT_REPLY_DIRECTIVE
    )


def chat_turn(persona_name: str, message: str) -> str:
    return CHAT_TURN_PROMPT.format(
        message=message,
        persona_name=persona_name,
        short_reply=SHORT_REPLY_DIRECTIVE
    )


def long_review(book_title: str) -> str:
    return LONG_REVIEW_PROMPT.format(book_title=book_title, max_words=config.LONG_REVIEW_MAX_WORDS)


def respond_to_review(persona_name: str, review: str, rating: int) -> str:
    return RESPOND_TO_REVIEW_PROMPT.format(rating=rating, review=review, persona_name=persona_name)


def topic_label(comment: str) -> str:
    return TOPIC_PROMPT.format(comment=comment)


def reading_report(book_title: str, digests: List[str]) -> str:
    """Report prompt over annotation digests, cut to the report budget."""
    discussion = "\n".join(digests)[:config.REPORT_INPUT_CHAR_BUDGET]
    return READING_REPORT_PROMPT.format(book_title=book_title, discussion=discussion)


def consolidate_memory(
    persona_name: str,
    existing_memory: str,
    book_title: str,
    experiences: List[str]
) -> str:
    """
    Memory merge prompt.

    Experience lines are joined and hard-truncated to the memory budget
    before formatting; an empty memory is replaced by a first-meeting line.
    """
    joined = "\n".join(experiences)[:config.MEMORY_INPUT_CHAR_BUDGET]
    return CONSOLIDATE_MEMORY_PROMPT.format(
        persona_name=persona_name,
        existing_memory=existing_memory.strip() or config.MEMORY_EMPTY_PLACEHOLDER,
        book_title=book_title,
        experiences=joined,
        max_words=config.MEMORY_MAX_WORDS
    )
