"""
Tests for the per-family request payloads and response envelopes.
"""

import unittest

from core.engine_config import EngineConfig
from llm.base_client import Turn
from llm.gemini_client import GeminiClient
from llm.openai_client import OpenAICompatibleClient, JSON_REMINDER

TURNS = [Turn("user", "a"), Turn("model", "b")]
JSON_MODE = {"responseMimeType": "application/json"}


class TestOpenAIPayload(unittest.TestCase):

    def setUp(self):
        self.client = OpenAICompatibleClient()
        self.engine_config = EngineConfig(provider="openai", temperature=0.7)

    def test_message_mapping(self):
        payload = self.client.build_payload(TURNS, self.engine_config, "S")
        self.assertEqual(payload["messages"], [
            {"role": "system", "content": "S"},
            {"role": "user", "content": "a"},
            {"role": "assistant", "content": "b"},
        ])
        self.assertEqual(payload["model"], "deepseek-ai/DeepSeek-V3")
        self.assertEqual(payload["temperature"], 0.7)

    def test_no_system_message_without_instruction(self):
        payload = self.client.build_payload(TURNS, self.engine_config)
        self.assertEqual(payload["messages"][0], {"role": "user", "content": "a"})

    def test_json_mode_amends_system_message(self):
        payload = self.client.build_payload(TURNS, self.engine_config, "S", JSON_MODE)
        self.assertEqual(payload["messages"][0]["content"], "S\n" + JSON_REMINDER)
        self.assertNotIn("responseMimeType", payload)

    def test_json_mode_leaves_json_instruction_alone(self):
        payload = self.client.build_payload(TURNS, self.engine_config, "Reply in JSON.", JSON_MODE)
        self.assertEqual(payload["messages"][0]["content"], "Reply in JSON.")

    def test_json_mode_without_system_message(self):
        payload = self.client.build_payload(TURNS, self.engine_config, None, JSON_MODE)
        self.assertEqual(payload["messages"][0], {"role": "system", "content": JSON_REMINDER})
        self.assertEqual(len(payload["messages"]), 3)

    def test_overrides(self):
        payload = self.client.build_payload(
            TURNS, self.engine_config, "S", {"temperature": 0.3, "maxOutputTokens": 64}
        )
        self.assertEqual(payload["temperature"], 0.3)
        self.assertEqual(payload["max_tokens"], 64)

    def test_pinned_model(self):
        payload = self.client.build_payload(TURNS, self.engine_config.with_overrides(model="qwen"))
        self.assertEqual(payload["model"], "qwen")

    def test_extract_text(self):
        data = {"choices": [{"message": {"role": "assistant", "content": "hello"}}]}
        self.assertEqual(self.client.extract_text(data), "hello")
        self.assertEqual(self.client.extract_text({}), "")
        self.assertEqual(self.client.extract_text({"choices": [{"message": {}}]}), "")

    def test_parse_model_list(self):
        data = {"data": [{"id": "a"}, {"id": "b"}, {"object": "model"}]}
        self.assertEqual(self.client.parse_model_list(data), ["a", "b"])


class TestGeminiPayload(unittest.TestCase):

    def setUp(self):
        self.client = GeminiClient()
        self.engine_config = EngineConfig(provider="gemini", temperature=0.7)

    def test_contents_and_system_field(self):
        payload = self.client.build_payload(TURNS, self.engine_config, "S")
        self.assertEqual(payload["contents"], [
            {"role": "user", "parts": [{"text": "a"}]},
            {"role": "model", "parts": [{"text": "b"}]},
        ])
        self.assertEqual(payload["systemInstruction"], {"parts": [{"text": "S"}]})
        self.assertEqual(payload["generationConfig"], {"temperature": 0.7})

    def test_system_field_omitted(self):
        payload = self.client.build_payload(TURNS, self.engine_config)
        self.assertNotIn("systemInstruction", payload)

    def test_overrides_merge_into_generation_config(self):
        payload = self.client.build_payload(
            TURNS, self.engine_config, None, {"temperature": 0.3, "responseMimeType": "application/json"}
        )
        self.assertEqual(payload["generationConfig"], {
            "temperature": 0.3,
            "responseMimeType": "application/json",
        })

    def test_extract_text(self):
        data = {"candidates": [{"content": {"parts": [{"text": "hi"}], "role": "model"}}]}
        self.assertEqual(self.client.extract_text(data), "hi")
        self.assertEqual(self.client.extract_text({"candidates": []}), "")
        self.assertEqual(self.client.extract_text({"candidates": [{"finishReason": "SAFETY"}]}), "")

    def test_parse_model_list(self):
        data = {"models": [{"name": "models/gemini-a"}, {"name": "gemini-b"}, {}]}
        self.assertEqual(self.client.parse_model_list(data), ["gemini-a", "gemini-b"])


if __name__ == '__main__':
    unittest.main()
