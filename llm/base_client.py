"""
Marginalia - Provider Client Base
Shared HTTP handling for the chat-completion provider families
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Sequence

import requests

import config
from core.engine_config import EngineConfig
from core.logger import log_warning
from llm.endpoints import CallKind, Endpoint, resolve
from llm.errors import ProviderHTTPError, TransportError


@dataclass(frozen=True)
class Turn:
    """
    One abstract conversation turn.

    speaker is "user" or "model"; the last turn sent to a provider is
    always the newest user input.
    """
    speaker: str
    text: str


class ProviderClient(ABC):
    """
    One provider wire family.

    Subclasses supply the capability set the router relies on:
    build_payload, resolve_endpoint, extract_text, and parse_model_list.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT_SECONDS

    @property
    @abstractmethod
    def family(self) -> str:
        """Provider family name used in logs and error messages."""
        pass

    @property
    @abstractmethod
    def error_label(self) -> str:
        """Prefix for generic status-coded error messages."""
        pass

    @abstractmethod
    def build_payload(
        self,
        turns: Sequence[Turn],
        engine_config: EngineConfig,
        system_instruction: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Convert abstract turns into this family's request body."""
        pass

    @abstractmethod
    def extract_text(self, data: Dict[str, Any]) -> str:
        """Pull the first candidate's text out of the response envelope."""
        pass

    @abstractmethod
    def parse_model_list(self, data: Dict[str, Any]) -> List[str]:
        """Pull model identifiers out of a model-listing response."""
        pass

    def resolve_endpoint(self, engine_config: EngineConfig, call_kind: CallKind = CallKind.GENERATE) -> Endpoint:
        return resolve(engine_config, call_kind)

    def send(self, payload: Dict[str, Any], endpoint: Endpoint) -> str:
        """
        POST a payload and return the generated text.

        Raises:
            ProviderHTTPError: Non-2xx response
            TransportError: No usable response (timeout, connection failure, bad URL)
        """
        data = self._request("POST", endpoint, payload, self.timeout)
        return self.extract_text(data)

    def generate(
        self,
        turns: Sequence[Turn],
        engine_config: EngineConfig,
        system_instruction: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> str:
        """Build, resolve and send in one step."""
        payload = self.build_payload(turns, engine_config, system_instruction, overrides)
        return self.send(payload, self.resolve_endpoint(engine_config))

    def list_models(self, engine_config: EngineConfig) -> List[str]:
        """
        List the model identifiers the endpoint offers.

        Raises:
            ProviderHTTPError / TransportError as for send()
        """
        endpoint = self.resolve_endpoint(engine_config, CallKind.LIST_MODELS)
        data = self._request("GET", endpoint, None, config.LIST_MODELS_TIMEOUT_SECONDS)
        return self.parse_model_list(data)

    def _request(
        self,
        method: str,
        endpoint: Endpoint,
        payload: Optional[Dict[str, Any]],
        timeout: float
    ) -> Dict[str, Any]:
        try:
            response = requests.request(
                method,
                endpoint.url,
                json=payload,
                headers=endpoint.headers,
                timeout=timeout
            )
        except requests.Timeout:
            raise TransportError(f"{self.error_label}: request timed out")
        except requests.ConnectionError as e:
            raise TransportError(f"{self.error_label}: connection failed ({e})")
        except requests.RequestException as e:
            raise TransportError(f"{self.error_label}: {e}")

        if not response.ok:
            raise ProviderHTTPError(response.status_code, self._error_message(response))

        try:
            data = response.json()
        except ValueError:
            log_warning(f"{self.family} returned a non-JSON body (HTTP {response.status_code})")
            return {}

        return data if isinstance(data, dict) else {}

    def _error_message(self, response: requests.Response) -> str:
        """The provider's own error.message, else a generic status-coded one."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error

        return f"{self.error_label}: {response.status_code}"
