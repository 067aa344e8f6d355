"""
Marginalia - LLM Router
Selects the provider client for a request based on the engine configuration
"""

from enum import Enum
from typing import Optional, List, Dict, Any, Sequence

import config
from core.engine_config import EngineConfig
from core.logger import log_warning
from core.prompt_logger import log_api_request
from llm.base_client import ProviderClient, Turn
from llm.endpoints import resolve_model
from llm.errors import LLMError
from llm.gemini_client import GeminiClient
from llm.openai_client import OpenAICompatibleClient


class LLMProvider(Enum):
    """Available provider families."""
    GEMINI = "gemini"        # Gemini generateContent
    OPENAI = "openai"        # OpenAI-compatible chat/completions

    @classmethod
    def from_config(cls, engine_config: EngineConfig) -> "LLMProvider":
        """Anything other than "openai" is treated as the Gemini family."""
        if engine_config.provider == cls.OPENAI.value:
            return cls.OPENAI
        return cls.GEMINI


class LLMRouter:
    """
    Routes generation requests to the configured provider family.

    Selection is pure: no retry or fallback lives here. Callers decide
    whether a failure degrades to a default or reaches the user.
    """

    def __init__(
        self,
        gemini_client: Optional[ProviderClient] = None,
        openai_client: Optional[ProviderClient] = None
    ):
        self._clients: Dict[LLMProvider, ProviderClient] = {
            LLMProvider.GEMINI: gemini_client or GeminiClient(),
            LLMProvider.OPENAI: openai_client or OpenAICompatibleClient(),
        }

    def client_for(self, engine_config: EngineConfig) -> ProviderClient:
        """Get the client for the configured provider."""
        return self._clients[LLMProvider.from_config(engine_config)]

    def dispatch(
        self,
        turns: Sequence[Turn],
        engine_config: EngineConfig,
        system_instruction: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Send one generation request and return the raw response text.

        Args:
            turns: Conversation turns, newest user input last
            engine_config: Connection and sampling settings
            system_instruction: Optional system instruction
            overrides: Generation config overrides (temperature,
                responseMimeType, maxOutputTokens)

        Returns:
            The provider's text, possibly empty

        Raises:
            LLMError: The call did not succeed
        """
        if not turns:
            raise ValueError("dispatch requires at least one turn")
        if turns[-1].speaker != "user":
            log_warning("Dispatching a conversation that does not end with user input")

        provider = LLMProvider.from_config(engine_config)
        client = self._clients[provider]

        payload = client.build_payload(turns, engine_config, system_instruction, overrides)
        endpoint = client.resolve_endpoint(engine_config)

        settings = {"temperature": engine_config.temperature}
        if overrides:
            settings["overrides"] = dict(overrides)
        logged_turns = [{"role": t.speaker, "text": t.text} for t in turns]

        try:
            text = client.send(payload, endpoint)
        except LLMError as e:
            log_api_request(
                provider=provider.value,
                model=resolve_model(engine_config),
                system_instruction=system_instruction,
                turns=logged_turns,
                settings=settings,
                response_text="",
                success=False,
                error=str(e)
            )
            raise

        log_api_request(
            provider=provider.value,
            model=resolve_model(engine_config),
            system_instruction=system_instruction,
            turns=logged_turns,
            settings=settings,
            response_text=text,
            success=True
        )
        return text

    def list_models(self, engine_config: EngineConfig) -> List[str]:
        """
        List the models the configured endpoint offers.

        Raises:
            LLMError: The call did not succeed
        """
        return self.client_for(engine_config).list_models(engine_config)

    def list_models_or_fallback(self, engine_config: EngineConfig) -> List[str]:
        """Model list for pickers: the endpoint's list, else a built-in one."""
        provider = LLMProvider.from_config(engine_config)
        try:
            models = self.list_models(engine_config)
        except LLMError as e:
            log_warning(f"Model listing failed for {provider.value}: {e}")
            models = []
        return models or list(config.FALLBACK_MODELS.get(provider.value, []))


# Global router instance
_router: Optional[LLMRouter] = None


def get_llm_router() -> LLMRouter:
    """Get the global LLM router instance."""
    global _router
    if _router is None:
        _router = LLMRouter()
    return _router


def init_llm_router(
    gemini_client: Optional[ProviderClient] = None,
    openai_client: Optional[ProviderClient] = None
) -> LLMRouter:
    """Initialize the global LLM router."""
    global _router
    _router = LLMRouter(gemini_client=gemini_client, openai_client=openai_client)
    return _router
