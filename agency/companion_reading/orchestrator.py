"""
Marginalia - Annotation Lifecycle Controller
Drives the persona's generation tasks and applies their results to the
annotation store.

The controller manages:
    - Explicit annotations and user notes (serialized by a processing guard)
    - Note replies and threaded chat on an annotation
    - Background page scans (single-flight, never the same page twice)
    - Reviews and the end-of-book reading report

Generation runs in a worker thread; the store is only touched back on the
event loop once a result is in hand, so a failed call changes nothing.
"""

import asyncio
from typing import List, Optional

from concurrency.guards import SingleFlightGuard
from core.annotations import (
    Annotation, AnnotationStore, ChatTurn,
    AUTHOR_AI, AUTHOR_USER, ROLE_USER, ROLE_MODEL,
)
from core.engine_config import EngineConfig
from core.logger import log_info, log_success, log_warning, log_error
from core.personas import Persona
from llm.errors import MissingCredentialsError
from llm.router import LLMRouter
from prompt_builder.builder import PromptBuilder, get_prompt_builder
from agency.companion_reading import generation
from agency.companion_reading.generation import ReadingReport, ScanFinding


def first_paragraph(content: str) -> str:
    """The opening paragraph of a text, or the whole text if it has one line."""
    return content.split("\n", 1)[0] or content


class AnnotationLifecycleController:
    """
    Orchestrates annotation use cases on top of the router.

    Persona and engine settings are passed into every call as values;
    the controller keeps only its guards and the last scanned page.
    """

    def __init__(
        self,
        router: LLMRouter,
        store: AnnotationStore,
        builder: Optional[PromptBuilder] = None
    ):
        self.router = router
        self.store = store
        self.builder = builder if builder is not None else get_prompt_builder()

        self.processing_guard = SingleFlightGuard("processing")
        self.scan_guard = SingleFlightGuard("autonomous_scan")
        self.last_scanned_page: Optional[str] = None

    # =========================================================================
    # EXPLICIT USER ACTIONS
    # =========================================================================

    async def annotate_selection(
        self,
        book_id: str,
        selection: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> Optional[Annotation]:
        """
        Ask the persona for a thought on a selected passage.

        Returns:
            The new AI annotation, or None if another explicit request
            is already being processed

        Raises:
            MissingCredentialsError: No API key is configured
            LLMError: Generation failed; nothing was stored
        """
        _require_credentials(engine_config)

        with self.processing_guard.attempt() as acquired:
            if not acquired:
                log_warning("Ignoring annotation request while another is processing")
                return None

            comment = await asyncio.to_thread(
                generation.generate_annotation,
                self.router, selection, persona, engine_config, self.builder
            )
            topic = await asyncio.to_thread(
                generation.summarize_topic, self.router, comment, engine_config
            )

            annotation = self.store.add(Annotation(
                book_id=book_id,
                text_selection=selection,
                comment=comment,
                author=AUTHOR_AI,
                persona_id=persona.id,
                topic=topic,
                chat_history=(ChatTurn(ROLE_MODEL, comment),),
            ))

        log_success(f"AI annotation created ({topic})")
        return annotation

    async def add_user_note(
        self,
        book_id: str,
        selection: str,
        note: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> Optional[Annotation]:
        """
        Save the user's own note on a passage, with a generated topic.

        The thread starts as the note itself; the persona's reply is a
        separate step (reply_to_note).

        Returns:
            The new user annotation, or None if another explicit request
            is already being processed
        """
        if not note or not note.strip():
            raise ValueError("Note text is empty")
        _require_credentials(engine_config)

        with self.processing_guard.attempt() as acquired:
            if not acquired:
                log_warning("Ignoring note while another request is processing")
                return None

            topic = await asyncio.to_thread(
                generation.summarize_topic, self.router, note, engine_config
            )

            annotation = self.store.add(Annotation(
                book_id=book_id,
                text_selection=selection,
                comment=note,
                author=AUTHOR_USER,
                persona_id=persona.id,
                topic=topic,
                chat_history=(ChatTurn(ROLE_USER, note),),
            ))

        log_success("Note saved")
        return annotation

    async def reply_to_note(
        self,
        annotation_id: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> Optional[Annotation]:
        """
        Add the persona's reply to a user note's thread.

        At most one reply is ever added this way: a thread that already
        holds a model turn is returned as it is.

        Returns:
            The updated annotation, or None if it was removed meanwhile

        Raises:
            AnnotationNotFoundError: Unknown annotation id
            LLMError: Generation failed; the thread is unchanged
        """
        annotation = self.store.require(annotation_id)
        if annotation.author != AUTHOR_USER:
            raise ValueError(f"Annotation {annotation_id} is not a user note")
        if _has_model_turn(annotation):
            return annotation

        reply = await asyncio.to_thread(
            generation.respond_to_note,
            self.router, annotation.text_selection, annotation.comment,
            persona, engine_config, self.builder
        )

        current = self.store.get(annotation_id)
        if current is None:
            log_info(f"Discarding note reply, annotation {annotation_id} was removed")
            return None
        if _has_model_turn(current):
            return current

        thread = current.chat_history or (ChatTurn(ROLE_USER, current.comment),)
        return self.store.update(annotation_id, chat_history=thread + (ChatTurn(ROLE_MODEL, reply),))

    async def send_chat_message(
        self,
        annotation_id: str,
        message: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> Optional[Annotation]:
        """
        Continue the conversation on an annotation.

        The user's message and the persona's reply are appended together
        once the reply arrives.

        Returns:
            The updated annotation, or None if it was removed meanwhile

        Raises:
            AnnotationNotFoundError: Unknown annotation id
            LLMError: Generation failed; the thread is unchanged
        """
        if not message or not message.strip():
            raise ValueError("Chat message is empty")

        annotation = self.store.require(annotation_id)
        history = annotation.chat_history or _seed_thread(annotation)

        reply = await asyncio.to_thread(
            generation.chat_with_persona,
            self.router, message, history, persona, engine_config, self.builder
        )

        current = self.store.get(annotation_id)
        if current is None:
            log_info(f"Discarding chat reply, annotation {annotation_id} was removed")
            return None

        thread = current.chat_history or _seed_thread(current)
        return self.store.update(
            annotation_id,
            chat_history=thread + (ChatTurn(ROLE_USER, message), ChatTurn(ROLE_MODEL, reply))
        )

    # =========================================================================
    # BACKGROUND SCANS
    # =========================================================================

    async def scan_page(
        self,
        book_id: str,
        page_content: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> List[Annotation]:
        """
        Let the persona annotate the page the user just turned to.

        Does nothing when autonomous reading is off, no key is set, the
        page is the one scanned last, or a scan is already running.
        Never raises.

        Returns:
            The annotations added
        """
        if not engine_config.autonomous_reading or not engine_config.has_credentials():
            return []
        if not page_content or not page_content.strip():
            return []
        if page_content == self.last_scanned_page:
            return []

        with self.scan_guard.attempt() as acquired:
            if not acquired:
                return []

            self.last_scanned_page = page_content
            added = await self._scan(book_id, page_content, persona, engine_config)

        if added:
            log_info(f"{persona.name} added {len(added)} thoughts", prefix="📖")
        return added

    async def scan_new_work(
        self,
        book_id: str,
        content: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> List[Annotation]:
        """
        First look at a work the user has just written: scan its opening
        paragraph. Runs whether or not autonomous reading is on.
        """
        if not engine_config.has_credentials() or not content or not content.strip():
            return []

        with self.scan_guard.attempt() as acquired:
            if not acquired:
                return []
            added = await self._scan(book_id, first_paragraph(content), persona, engine_config)

        if added:
            log_info(f"{persona.name} found {len(added)} initial thoughts", prefix="📖")
        return added

    async def _scan(
        self,
        book_id: str,
        text: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> List[Annotation]:
        try:
            findings = await asyncio.to_thread(
                generation.autonomous_scan,
                self.router, text, persona, engine_config, self.builder
            )
            fresh = self.dedupe_findings(book_id, text, findings)
            return self.store.add_many(
                Annotation(
                    book_id=book_id,
                    text_selection=f.text_selection,
                    comment=f.comment,
                    author=AUTHOR_AI,
                    persona_id=persona.id,
                    topic=f.topic,
                    is_autonomous=True,
                )
                for f in fresh
            )
        except Exception as e:
            log_error(f"Autonomous scan failed: {e}")
            return []

    def dedupe_findings(self, book_id: str, text: str, findings: List[ScanFinding]) -> List[ScanFinding]:
        """
        Keep findings anchored on an exact passage of the scanned text
        that the book does not already have an annotation on.
        """
        seen = self.store.anchors_for_book(book_id)
        fresh = []
        for finding in findings:
            if finding.text_selection in seen:
                continue
            if finding.text_selection not in text:
                log_warning(f"Dropping scan finding not found in the page: {finding.text_selection[:40]!r}")
                continue
            seen.add(finding.text_selection)
            fresh.append(finding)
        return fresh

    # =========================================================================
    # END OF BOOK
    # =========================================================================

    async def write_long_review(
        self,
        book_title: str,
        persona: Persona,
        engine_config: EngineConfig
    ) -> str:
        """The persona's long-form review. Raises LLMError on failure."""
        return await asyncio.to_thread(
            generation.generate_long_review,
            self.router, book_title, persona, engine_config, self.builder
        )

    async def reply_to_review(
        self,
        review: str,
        rating: int,
        persona: Persona,
        engine_config: EngineConfig
    ) -> str:
        """The persona's answer to the user's star rating and review."""
        if not 1 <= rating <= 5:
            raise ValueError(f"Rating must be between 1 and 5, got {rating}")
        return await asyncio.to_thread(
            generation.respond_to_review,
            self.router, review, rating, persona, engine_config, self.builder
        )

    async def reading_report(
        self,
        book_id: str,
        book_title: str,
        engine_config: EngineConfig
    ) -> ReadingReport:
        """Summary of the session on a book. Never raises."""
        annotations = self.store.for_book(book_id)
        return await asyncio.to_thread(
            generation.generate_reading_report,
            self.router, book_title, annotations, engine_config
        )


def _require_credentials(engine_config: EngineConfig) -> None:
    if not engine_config.has_credentials():
        raise MissingCredentialsError()


def _has_model_turn(annotation: Annotation) -> bool:
    return any(t.role == ROLE_MODEL for t in annotation.chat_history)


def _seed_thread(annotation: Annotation):
    """Starting thread for an annotation that has none yet."""
    role = ROLE_USER if annotation.author == AUTHOR_USER else ROLE_MODEL
    return (ChatTurn(role, annotation.comment),)
