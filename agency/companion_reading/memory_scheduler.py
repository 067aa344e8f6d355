"""
Marginalia - Memory Consolidation Scheduler
Fires long-term memory consolidation when a book's annotation count
crosses a multiple of the configured threshold, or when asked to directly.
"""

import asyncio
from enum import Enum
from typing import Optional

from concurrency.guards import SingleFlightGuard
from core.annotations import AnnotationStore
from core.engine_config import EngineConfig
from core.logger import log_info, log_success, log_warning, log_error
from core.personas import Persona, PersonaRegistry
from llm.errors import MissingCredentialsError
from llm.router import LLMRouter
from agency.companion_reading import generation

# Shared by every scheduler: one consolidation in flight per process
_firing_guard = SingleFlightGuard("memory_consolidation")


class SchedulerState(Enum):
    IDLE = "idle"
    FIRING = "firing"


class MemoryConsolidationScheduler:
    """
    Watches annotation-count growth and consolidates persona memory.

    State:
        last_consolidated_count: Count at the last successful consolidation.
            Only a success moves it, so a failed crossing fires again the
            next time the same count is observed.

    Observations that arrive while any consolidation is in flight are
    dropped, not queued.
    """

    def __init__(self, router: LLMRouter, store: AnnotationStore, registry: PersonaRegistry):
        self.router = router
        self.store = store
        self.registry = registry
        self.last_consolidated_count = 0

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.FIRING if _firing_guard.held else SchedulerState.IDLE

    def should_fire(self, count: int, engine_config: EngineConfig) -> bool:
        """Whether an observed count crosses a not-yet-consolidated threshold."""
        threshold = engine_config.auto_memory_threshold
        return (
            threshold > 0
            and count > 0
            and count % threshold == 0
            and count != self.last_consolidated_count
            and engine_config.has_credentials()
        )

    async def observe(
        self,
        book_id: str,
        book_title: str,
        persona_id: str,
        engine_config: EngineConfig
    ) -> bool:
        """
        Look at the book's current annotation count and consolidate if due.

        Never raises.

        Returns:
            True if a consolidation ran and the persona's memory was updated
        """
        count = self.store.count_for_book(book_id)
        if not self.should_fire(count, engine_config):
            return False

        if not _firing_guard.try_acquire():
            log_info(f"Consolidation in flight, ignoring count {count}", prefix="🧠")
            return False

        try:
            log_info(f"Auto-consolidating memories at {count} annotations...", prefix="🧠")
            return await self._consolidate(book_id, book_title, persona_id, engine_config, count) is not None

        except Exception as e:
            log_error(f"Auto memory failed: {e}")
            return False

        finally:
            _firing_guard.release()

    async def consolidate_now(
        self,
        book_id: str,
        book_title: str,
        persona_id: str,
        engine_config: EngineConfig
    ) -> Optional[Persona]:
        """
        Consolidate on the user's request, whatever the threshold says.

        Returns:
            The persona with its new memory, or None if another
            consolidation is in flight or the model returned nothing

        Raises:
            MissingCredentialsError: No API key is configured
            PersonaError: Unknown persona
            LLMError: Generation failed; the memory is unchanged
        """
        if not engine_config.has_credentials():
            raise MissingCredentialsError()

        with _firing_guard.attempt() as acquired:
            if not acquired:
                log_warning("A memory consolidation is already running")
                return None

            log_info("Consolidating memories on request...", prefix="🧠")
            count = self.store.count_for_book(book_id)
            return await self._consolidate(book_id, book_title, persona_id, engine_config, count)

    async def _consolidate(
        self,
        book_id: str,
        book_title: str,
        persona_id: str,
        engine_config: EngineConfig,
        count: int
    ) -> Optional[Persona]:
        persona = self.registry.require(persona_id)
        annotations = self.store.for_book(book_id)

        memory = await asyncio.to_thread(
            generation.consolidate_memory,
            self.router, persona, book_title, annotations, engine_config
        )

        if not memory:
            log_warning("Memory consolidation returned nothing; keeping the old memory")
            return None

        updated = self.registry.update_memory(persona_id, memory)
        self.last_consolidated_count = count
        log_success(f"Long-term memory updated for {persona.name}")
        return updated
