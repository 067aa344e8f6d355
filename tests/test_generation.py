"""
Tests for the companion generation tasks.

The router is a MagicMock; each test inspects what was dispatched and how
the raw text was shaped.
"""

import unittest
from unittest.mock import MagicMock

import config
from core.annotations import Annotation, ChatTurn
from core.engine_config import EngineConfig
from core.personas import Persona
from llm.errors import ProviderHTTPError, TransportError
from agency.companion_reading import generation


def make_persona(memory=""):
    return Persona(
        id="p1",
        name="Tester",
        role="Critic",
        relationship="Friend",
        description="Reads things.",
        avatar="T",
        system_instruction="You are Tester.",
        long_term_memory=memory,
    )


def make_router(response="ok"):
    router = MagicMock()
    router.dispatch.return_value = response
    return router


def dispatched(router):
    """(turns, engine_config, system_instruction, overrides) of the last dispatch."""
    args, kwargs = router.dispatch.call_args
    return (
        args[0],
        args[1],
        kwargs.get("system_instruction"),
        kwargs.get("overrides"),
    )


class TestHelpers(unittest.TestCase):

    def test_clamp_annotation_count(self):
        self.assertEqual(generation.clamp_annotation_count(0), 1)
        self.assertEqual(generation.clamp_annotation_count(10), 5)
        self.assertEqual(generation.clamp_annotation_count(-3), 1)
        self.assertEqual(generation.clamp_annotation_count(3), 3)
        self.assertEqual(generation.clamp_annotation_count(None), 2)

    def test_cap_thought(self):
        self.assertEqual(generation.cap_thought("x" * 150), "x" * 100)
        self.assertEqual(generation.cap_thought("  "), "...")
        self.assertEqual(generation.cap_thought(""), "...")

    def test_strong_model_config(self):
        gemini = EngineConfig(provider="gemini")
        self.assertEqual(generation.strong_model_config(gemini).model, config.GEMINI_STRONG_MODEL)
        openai = EngineConfig(provider="openai")
        self.assertEqual(generation.strong_model_config(openai).model, config.OPENAI_STRONG_MODEL)
        pinned = EngineConfig(provider="gemini", model="my-model")
        self.assertEqual(generation.strong_model_config(pinned).model, "my-model")


class TestFreeTextTasks(unittest.TestCase):

    def setUp(self):
        self.persona = make_persona()
        self.engine_config = EngineConfig(provider="gemini", api_key="K", temperature=0.9)

    def test_annotation_is_capped(self):
        router = make_router("a" * 180)
        text = generation.generate_annotation(router, "Call me Ishmael.", self.persona, self.engine_config)
        self.assertEqual(len(text), 100)

        turns, _, system, overrides = dispatched(router)
        self.assertEqual(len(turns), 1)
        self.assertEqual(turns[0].speaker, "user")
        self.assertIn('Passage: "Call me Ishmael."', turns[0].text)
        self.assertTrue(system.startswith("You are Tester."))
        self.assertIsNone(overrides)

    def test_annotation_placeholder(self):
        router = make_router("")
        self.assertEqual(generation.generate_annotation(router, "p", self.persona, self.engine_config), "...")

    def test_annotation_error_propagates(self):
        router = make_router()
        router.dispatch.side_effect = ProviderHTTPError(500, "down")
        with self.assertRaises(ProviderHTTPError):
            generation.generate_annotation(router, "p", self.persona, self.engine_config)

    def test_topic_uses_fixed_temperature_and_no_persona(self):
        router = make_router(' "Free Will" \n')
        topic = generation.summarize_topic(router, "Is he choosing this?", self.engine_config)

        self.assertEqual(topic, "Free Will")
        turns, engine_config, system, overrides = dispatched(router)
        self.assertEqual(overrides, {"temperature": config.TOPIC_TEMPERATURE})
        self.assertIsNone(system)
        self.assertEqual(turns[0].text, 'Topic for: "Is he choosing this?"')

    def test_topic_placeholder(self):
        self.assertEqual(generation.summarize_topic(make_router("   "), "c", self.engine_config), "Thought")

    def test_chat_carries_full_thread(self):
        router = make_router("Sure.")
        history = [ChatTurn("model", "first"), ChatTurn("user", "why?"), ChatTurn("model", "because")]

        generation.chat_with_persona(router, "really?", history, self.persona, self.engine_config)

        turns, _, _, _ = dispatched(router)
        self.assertEqual([t.speaker for t in turns], ["model", "user", "model", "user"])
        self.assertEqual([t.text for t in turns[:3]], ["first", "why?", "because"])
        self.assertIn("really?", turns[-1].text)

    def test_long_review_uses_strong_model_and_relaxed_cap(self):
        router = make_router("w " * 200)
        review = generation.generate_long_review(router, "Moby Dick", self.persona, self.engine_config)

        self.assertGreater(len(review), 100)
        _, engine_config, system, _ = dispatched(router)
        self.assertEqual(engine_config.model, config.GEMINI_STRONG_MODEL)
        self.assertIn(f"{config.LONG_REVIEW_MAX_WORDS} words", system)

    def test_long_review_placeholder(self):
        router = make_router("")
        self.assertEqual(
            generation.generate_long_review(router, "B", self.persona, self.engine_config),
            config.LONG_REVIEW_PLACEHOLDER
        )

    def test_review_reply(self):
        router = make_router("")
        reply = generation.respond_to_review(router, "Loved it", 5, self.persona, self.engine_config)
        self.assertEqual(reply, config.REVIEW_REPLY_PLACEHOLDER)
        turns, _, _, _ = dispatched(router)
        self.assertEqual(turns[0].text, 'User rated 5 stars: "Loved it". Reply briefly as Tester.')


class TestConsolidateMemory(unittest.TestCase):

    def setUp(self):
        self.annotations = [
            Annotation(book_id="b", text_selection="X", comment="A whale!", author="ai", topic="Obsession"),
            Annotation(book_id="b", text_selection="Y", comment="Too long-winded", author="user",
                       topic="Style", chat_history=(ChatTurn("user", "Too long-winded"),)),
            Annotation(book_id="b", text_selection="Z", comment="", author="ai"),
        ]

    def test_settings_are_fixed(self):
        router = make_router("  We met over Moby Dick.  ")
        engine_config = EngineConfig(provider="gemini", api_key="K", temperature=1.2)

        memory = generation.consolidate_memory(router, make_persona(), "Moby Dick", self.annotations, engine_config)

        self.assertEqual(memory, "We met over Moby Dick.")
        turns, sent_config, system, _ = dispatched(router)
        self.assertEqual(sent_config.temperature, config.MEMORY_TEMPERATURE)
        self.assertEqual(sent_config.model, config.GEMINI_STRONG_MODEL)
        self.assertEqual(system, config.MEMORY_ARCHIVIST_INSTRUCTION)
        self.assertIn(config.MEMORY_EMPTY_PLACEHOLDER, turns[0].text)

    def test_experience_lines(self):
        router = make_router("m")
        generation.consolidate_memory(router, make_persona(), "Moby Dick", self.annotations, EngineConfig(api_key="K"))

        prompt = dispatched(router)[0][0].text
        self.assertIn("[Topic: Obsession] Tester: A whale!", prompt)
        self.assertIn("[Topic: Style] User: Too long-winded (+ discussion)", prompt)
        self.assertEqual(prompt.count("[Topic:"), 2)

    def test_existing_memory_is_merged(self):
        router = make_router("m")
        generation.consolidate_memory(router, make_persona("Old bond."), "B", [], EngineConfig(api_key="K"))
        self.assertIn('"Old bond."', dispatched(router)[0][0].text)

    def test_empty_result_is_returned_verbatim(self):
        router = make_router("   ")
        self.assertEqual(
            generation.consolidate_memory(router, make_persona(), "B", self.annotations, EngineConfig(api_key="K")),
            ""
        )


class TestAutonomousScan(unittest.TestCase):

    def setUp(self):
        self.persona = make_persona()

    def test_count_clamped_in_prompt(self):
        for configured, expected in ((0, 1), (10, 5)):
            with self.subTest(configured=configured):
                router = make_router("[]")
                engine_config = EngineConfig(api_key="K", auto_annotation_count=configured)
                generation.autonomous_scan(router, "page", self.persona, engine_config)
                self.assertIn(f"between 1 and {expected} distinct", dispatched(router)[0][0].text)

    def test_json_mode_requested(self):
        router = make_router("[]")
        generation.autonomous_scan(router, "page", self.persona, EngineConfig(api_key="K"))
        self.assertEqual(dispatched(router)[3], {"responseMimeType": "application/json"})

    def test_fenced_findings(self):
        router = make_router(
            '```json\n[{"textSelection": "X", "comment": "Hm.", "topic": "Fate"},'
            ' {"textSelection": "Z", "comment": "Oh!"}]\n```'
        )
        findings = generation.autonomous_scan(router, "page", self.persona, EngineConfig(api_key="K"))
        self.assertEqual(findings, [
            generation.ScanFinding("X", "Hm.", "Fate"),
            generation.ScanFinding("Z", "Oh!", "Thought"),
        ])

    def test_single_object_is_wrapped(self):
        router = make_router('{"textSelection": "X", "comment": "Hm.", "topic": "Fate"}')
        findings = generation.autonomous_scan(router, "page", self.persona, EngineConfig(api_key="K"))
        self.assertEqual(len(findings), 1)

    def test_malformed_items_skipped(self):
        router = make_router('[{"textSelection": "", "comment": "x"}, {"comment": "y"}, "z",'
                             ' {"textSelection": "ok", "comment": "fine"}]')
        findings = generation.autonomous_scan(router, "page", self.persona, EngineConfig(api_key="K"))
        self.assertEqual([f.text_selection for f in findings], ["ok"])

    def test_extra_findings_trimmed_to_count(self):
        items = ",".join(f'{{"textSelection": "s{i}", "comment": "c"}}' for i in range(4))
        router = make_router(f"[{items}]")
        engine_config = EngineConfig(api_key="K", auto_annotation_count=2)
        self.assertEqual(len(generation.autonomous_scan(router, "page", self.persona, engine_config)), 2)

    def test_parse_failure_degrades_to_empty(self):
        router = make_router("I found nothing worth noting.")
        self.assertEqual(generation.autonomous_scan(router, "page", self.persona, EngineConfig(api_key="K")), [])

    def test_transport_failure_degrades_to_empty(self):
        router = make_router()
        router.dispatch.side_effect = TransportError("timed out")
        self.assertEqual(generation.autonomous_scan(router, "page", self.persona, EngineConfig(api_key="K")), [])


class TestReadingReport(unittest.TestCase):

    def test_parsed_report(self):
        router = make_router('[{"summary": "We wandered.", "keywords": ["sea", "whale"], "highlightTopics": ["Fate"]}]')
        report = generation.generate_reading_report(router, "Moby Dick", [], EngineConfig(api_key="K"))
        self.assertEqual(report.summary, "We wandered.")
        self.assertEqual(report.keywords, ["sea", "whale"])
        self.assertEqual(report.highlight_topics, ["Fate"])

    def test_missing_fields_take_defaults(self):
        router = make_router('{"summary": "We wandered."}')
        report = generation.generate_reading_report(router, "B", [], EngineConfig(api_key="K"))
        self.assertEqual(report.keywords, config.REPORT_DEFAULT_KEYWORDS)
        self.assertEqual(report.highlight_topics, config.REPORT_DEFAULT_TOPICS)

    def test_failure_gives_default_report(self):
        router = make_router()
        router.dispatch.side_effect = ProviderHTTPError(503, "busy")
        report = generation.generate_reading_report(router, "B", [], EngineConfig(api_key="K"))
        self.assertEqual(report, generation.ReadingReport())
        self.assertEqual(report.to_dict()["summary"], config.REPORT_DEFAULT_SUMMARY)

    def test_digest_lines(self):
        router = make_router("{}")
        annotations = [Annotation(book_id="b", text_selection="X", comment="Hm.", author="ai", topic="Fate")]
        generation.generate_reading_report(router, "B", annotations, EngineConfig(api_key="K"))
        self.assertIn("[Thought: Fate] Hm.", dispatched(router)[0][0].text)


if __name__ == '__main__':
    unittest.main()
