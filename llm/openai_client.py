"""
Marginalia - OpenAI-Compatible Client
OpenAI-compatible chat/completions with a flat role/content message array
"""

from typing import Optional, List, Dict, Any, Sequence

import config
from core.engine_config import EngineConfig
from llm.base_client import ProviderClient, Turn
from llm.endpoints import resolve_model

JSON_MIME_TYPE = "application/json"
JSON_REMINDER = "IMPORTANT: Output strictly in JSON format."


def to_openai_messages(
    turns: Sequence[Turn],
    system_instruction: Optional[str] = None
) -> List[Dict[str, str]]:
    """
    Flatten turns into OpenAI messages.

    The system instruction becomes the first message and "model" turns
    become "assistant".
    """
    messages: List[Dict[str, str]] = []

    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})

    for turn in turns:
        role = "assistant" if turn.speaker == "model" else "user"
        messages.append({"role": role, "content": turn.text})

    return messages


def require_json(messages: List[Dict[str, str]]) -> List[Dict[str, str]]:
    """
    Make sure the system message asks for JSON in plain words.

    Many compatible servers ignore a response-format hint unless the
    instruction text says it too.
    """
    if messages and messages[0]["role"] == "system":
        if "JSON" not in messages[0]["content"]:
            messages[0] = {
                "role": "system",
                "content": messages[0]["content"] + "\n" + JSON_REMINDER
            }
    else:
        messages.insert(0, {"role": "system", "content": JSON_REMINDER})
    return messages


class OpenAICompatibleClient(ProviderClient):
    """Client for OpenAI-compatible chat/completions servers."""

    @property
    def family(self) -> str:
        return config.PROVIDER_OPENAI

    @property
    def error_label(self) -> str:
        return "OpenAI API Error"

    def build_payload(
        self,
        turns: Sequence[Turn],
        engine_config: EngineConfig,
        system_instruction: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        overrides = overrides or {}
        messages = to_openai_messages(turns, system_instruction)

        if overrides.get("responseMimeType") == JSON_MIME_TYPE:
            messages = require_json(messages)

        payload: Dict[str, Any] = {
            "model": resolve_model(engine_config),
            "messages": messages,
            "temperature": overrides.get("temperature", engine_config.temperature),
        }
        if "maxOutputTokens" in overrides:
            payload["max_tokens"] = overrides["maxOutputTokens"]

        return payload

    def extract_text(self, data: Dict[str, Any]) -> str:
        # choices[0].message.content
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        return message.get("content") or ""

    def parse_model_list(self, data: Dict[str, Any]) -> List[str]:
        models = data.get("data")
        if not isinstance(models, list):
            return []
        return [m["id"] for m in models if isinstance(m, dict) and m.get("id")]
