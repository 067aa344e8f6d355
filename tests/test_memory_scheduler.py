"""
Tests for the memory consolidation scheduler.
"""

import asyncio
import threading
import unittest
from unittest.mock import patch

from core.annotations import Annotation, AnnotationStore
from core.engine_config import EngineConfig
from core.personas import PersonaRegistry
from llm.errors import TransportError, MissingCredentialsError
from agency.companion_reading.memory_scheduler import MemoryConsolidationScheduler, SchedulerState

BOOK = "moby-dick"
ENGINE = EngineConfig(provider="gemini", api_key="K", auto_memory_threshold=50)


class CountingRouter:
    """Returns a fresh memory per call, or raises what it is told to."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = 0

    def dispatch(self, turns, engine_config, system_instruction=None, overrides=None):
        self.calls += 1
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return f"memory #{self.calls}"


def fill(store, count):
    """Add annotations until the book holds `count` of them."""
    while store.count_for_book(BOOK) < count:
        store.add(Annotation(book_id=BOOK, text_selection=f"s{len(store)}", comment="c", author="ai"))


class TestMemoryScheduler(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.store = AnnotationStore()
        self.registry = PersonaRegistry()

    def make(self, router):
        return MemoryConsolidationScheduler(router, self.store, self.registry)

    async def observe(self, scheduler, engine_config=ENGINE):
        return await scheduler.observe(BOOK, "Moby Dick", "socrates", engine_config)

    async def test_fires_once_per_crossing(self):
        router = CountingRouter()
        scheduler = self.make(router)

        fill(self.store, 49)
        self.assertFalse(await self.observe(scheduler))

        fill(self.store, 50)
        self.assertTrue(await self.observe(scheduler))
        self.assertFalse(await self.observe(scheduler))
        self.assertEqual(router.calls, 1)
        self.assertEqual(scheduler.last_consolidated_count, 50)
        self.assertEqual(self.registry.get("socrates").long_term_memory, "memory #1")

        fill(self.store, 100)
        self.assertTrue(await self.observe(scheduler))
        self.assertEqual(router.calls, 2)
        self.assertEqual(self.registry.get("socrates").long_term_memory, "memory #2")

    async def test_failure_retries_at_same_count(self):
        router = CountingRouter([TransportError("timed out")])
        scheduler = self.make(router)
        fill(self.store, 50)

        self.assertFalse(await self.observe(scheduler))
        self.assertEqual(scheduler.last_consolidated_count, 0)
        self.assertEqual(self.registry.get("socrates").long_term_memory, "")

        self.assertTrue(await self.observe(scheduler))
        self.assertEqual(scheduler.last_consolidated_count, 50)
        self.assertEqual(router.calls, 2)

    async def test_empty_result_keeps_memory(self):
        self.registry.update_memory("socrates", "We argued about justice.")
        router = CountingRouter(["   "])
        scheduler = self.make(router)
        fill(self.store, 50)

        self.assertFalse(await self.observe(scheduler))
        self.assertEqual(self.registry.get("socrates").long_term_memory, "We argued about justice.")
        self.assertEqual(scheduler.last_consolidated_count, 0)
        self.assertEqual(scheduler.state, SchedulerState.IDLE)

    async def test_zero_threshold_disables(self):
        router = CountingRouter()
        scheduler = self.make(router)
        fill(self.store, 50)
        self.assertFalse(await self.observe(scheduler, ENGINE.with_overrides(auto_memory_threshold=0)))
        self.assertEqual(router.calls, 0)

    async def test_needs_credentials(self):
        router = CountingRouter()
        scheduler = self.make(router)
        fill(self.store, 50)
        with patch("config.DEFAULT_API_KEY", ""):
            self.assertFalse(await self.observe(scheduler, ENGINE.with_overrides(api_key="")))
        self.assertEqual(router.calls, 0)

    async def test_unknown_persona_never_raises(self):
        scheduler = self.make(CountingRouter())
        fill(self.store, 50)
        self.assertFalse(await scheduler.observe(BOOK, "Moby Dick", "nobody", ENGINE))
        self.assertEqual(scheduler.state, SchedulerState.IDLE)

    async def test_observations_while_firing_are_ignored(self):
        release = threading.Event()

        class SlowRouter(CountingRouter):
            def dispatch(self, *args, **kwargs):
                release.wait(5)
                return super().dispatch(*args, **kwargs)

        router = SlowRouter()
        scheduler = self.make(router)
        fill(self.store, 50)

        first = asyncio.create_task(self.observe(scheduler))
        while scheduler.state is not SchedulerState.FIRING:
            await asyncio.sleep(0.01)

        fill(self.store, 100)
        self.assertFalse(await self.observe(scheduler))
        release.set()

        self.assertTrue(await first)
        self.assertEqual(router.calls, 1)
        self.assertEqual(scheduler.last_consolidated_count, 50)
        self.assertEqual(scheduler.state, SchedulerState.IDLE)

    def test_should_fire(self):
        scheduler = self.make(CountingRouter())
        self.assertFalse(scheduler.should_fire(0, ENGINE))
        self.assertFalse(scheduler.should_fire(49, ENGINE))
        self.assertTrue(scheduler.should_fire(50, ENGINE))
        scheduler.last_consolidated_count = 50
        self.assertFalse(scheduler.should_fire(50, ENGINE))
        self.assertTrue(scheduler.should_fire(100, ENGINE))

    async def test_second_scheduler_waits_for_first(self):
        release = threading.Event()

        class SlowRouter(CountingRouter):
            def dispatch(self, *args, **kwargs):
                release.wait(5)
                return super().dispatch(*args, **kwargs)

        first_router, second_router = SlowRouter(), CountingRouter()
        first, second = self.make(first_router), self.make(second_router)
        fill(self.store, 50)

        running = asyncio.create_task(self.observe(first))
        while first.state is not SchedulerState.FIRING:
            await asyncio.sleep(0.01)

        self.assertIs(second.state, SchedulerState.FIRING)
        self.assertFalse(await self.observe(second))
        release.set()

        self.assertTrue(await running)
        self.assertEqual(second_router.calls, 0)


class TestManualConsolidation(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.store = AnnotationStore()
        self.registry = PersonaRegistry()

    async def test_runs_below_threshold(self):
        router = CountingRouter()
        scheduler = MemoryConsolidationScheduler(router, self.store, self.registry)
        fill(self.store, 3)

        persona = await scheduler.consolidate_now(BOOK, "Moby Dick", "socrates", ENGINE)

        self.assertEqual(persona.long_term_memory, "memory #1")
        self.assertEqual(self.registry.get("socrates").long_term_memory, "memory #1")
        self.assertEqual(scheduler.last_consolidated_count, 3)

    async def test_failure_propagates_and_keeps_memory(self):
        self.registry.update_memory("socrates", "Old.")
        scheduler = MemoryConsolidationScheduler(
            CountingRouter([TransportError("timed out")]), self.store, self.registry
        )

        with self.assertRaises(TransportError):
            await scheduler.consolidate_now(BOOK, "Moby Dick", "socrates", ENGINE)

        self.assertEqual(self.registry.get("socrates").long_term_memory, "Old.")
        self.assertEqual(scheduler.state, SchedulerState.IDLE)

    async def test_empty_result_keeps_memory(self):
        self.registry.update_memory("socrates", "Old.")
        scheduler = MemoryConsolidationScheduler(CountingRouter([""]), self.store, self.registry)

        self.assertIsNone(await scheduler.consolidate_now(BOOK, "Moby Dick", "socrates", ENGINE))
        self.assertEqual(self.registry.get("socrates").long_term_memory, "Old.")

    async def test_needs_credentials(self):
        scheduler = MemoryConsolidationScheduler(CountingRouter(), self.store, self.registry)
        with patch("config.DEFAULT_API_KEY", ""):
            with self.assertRaises(MissingCredentialsError):
                await scheduler.consolidate_now(BOOK, "Moby Dick", "socrates", ENGINE.with_overrides(api_key=""))


if __name__ == '__main__':
    unittest.main()
