"""
Marginalia - Gemini Client
Gemini generateContent with content parts and a separate system field
"""

from typing import Optional, List, Dict, Any, Sequence

import config
from core.engine_config import EngineConfig
from llm.base_client import ProviderClient, Turn


class GeminiClient(ProviderClient):
    """
    Client for the Google Generative Language API.

    Turns keep their user/model roles; the system instruction travels in
    its own field and generation overrides are merged into generationConfig.
    """

    @property
    def family(self) -> str:
        return config.PROVIDER_GEMINI

    @property
    def error_label(self) -> str:
        return "Gemini API Error"

    def build_payload(
        self,
        turns: Sequence[Turn],
        engine_config: EngineConfig,
        system_instruction: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        contents = [
            {
                "role": "model" if turn.speaker == "model" else "user",
                "parts": [{"text": turn.text}]
            }
            for turn in turns
        ]

        generation_config: Dict[str, Any] = {"temperature": engine_config.temperature}
        if overrides:
            generation_config.update(overrides)

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": generation_config,
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        return payload

    def extract_text(self, data: Dict[str, Any]) -> str:
        # candidates[0].content.parts[0].text
        candidates = data.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts or not isinstance(parts[0], dict):
            return ""
        return parts[0].get("text") or ""

    def parse_model_list(self, data: Dict[str, Any]) -> List[str]:
        models = data.get("models")
        if not isinstance(models, list):
            return []
        names = []
        for model in models:
            name = model.get("name", "") if isinstance(model, dict) else ""
            if name:
                names.append(name[len("models/"):] if name.startswith("models/") else name)
        return names
