"""
Marginalia - LLM Error Types
Failures raised by provider clients and the response extractor
"""

from typing import Optional


class LLMError(Exception):
    """Base class for generation failures."""


class TransportError(LLMError):
    """
    The provider call did not succeed.

    Attributes:
        status: HTTP status code, or None when no response arrived
        message: Provider's own error message when available
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is not None:
            return f"HTTP {self.status}: {self.message}"
        return self.message


class ProviderHTTPError(TransportError):
    """Non-2xx HTTP response from a provider."""

    def __init__(self, status: int, message: str):
        super().__init__(message, status=status)


class MalformedResponseError(LLMError):
    """A response expected to be structured was not valid JSON."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text


class MissingCredentialsError(LLMError):
    """No API key in the engine configuration or the environment."""

    def __init__(self, message: str = "Please set your API Key in Settings first."):
        super().__init__(message)
