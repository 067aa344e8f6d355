"""
Marginalia - Endpoint Resolver
Derives request URLs and auth headers for each provider family
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict

import config
from core.engine_config import EngineConfig


class CallKind(Enum):
    """Kinds of provider request."""
    GENERATE = "generate"
    LIST_MODELS = "list_models"


@dataclass(frozen=True)
class Endpoint:
    """A fully resolved request target."""
    url: str
    headers: Dict[str, str] = field(default_factory=dict)


# "/v1beta", "/v1", "/v1alpha", "/v2beta3" ... as the final path segment
_VERSION_SUFFIX = re.compile(r"/v\d+(?:alpha|beta)?\d*$")

# "/models" or "/models/<model>[:method]" at the end of a previously resolved URL
_MODELS_SUFFIX = re.compile(r"/models(?:/[^/]*)?$")

_CHAT_COMPLETIONS = "/chat/completions"


def _clean_base(base_url: str, default: str) -> str:
    """Trim whitespace, query string and trailing slashes."""
    base = (base_url or "").strip() or default
    base = base.split("?", 1)[0].split("#", 1)[0]
    return base.rstrip("/")


def resolve_model(engine_config: EngineConfig) -> str:
    """The model id to request, falling back to the family default."""
    if engine_config.model and engine_config.model.strip():
        return engine_config.model.strip()
    if engine_config.is_openai_family:
        return config.OPENAI_DEFAULT_MODEL
    return config.GEMINI_DEFAULT_MODEL


def gemini_root(base_url: str) -> str:
    """
    Normalize a Gemini base URL to "<base>/<version>".

    A trailing models path (with or without model and method) is dropped.
    The whole remaining path is kept, so gateway prefixes survive; the
    default version is appended unless the path already ends in one.
    """
    base = _clean_base(base_url, config.GEMINI_DEFAULT_BASE_URL)
    base = _MODELS_SUFFIX.sub("", base)
    if _VERSION_SUFFIX.search(base):
        return base
    return f"{base}/{config.GEMINI_API_VERSION}"


def openai_root(base_url: str) -> str:
    """Normalize an OpenAI-compatible base URL down to "<host>/.../v1"."""
    base = _clean_base(base_url, config.OPENAI_DEFAULT_BASE_URL)
    if _CHAT_COMPLETIONS in base:
        base = base[:base.index(_CHAT_COMPLETIONS)].rstrip("/")
    if not base.endswith("/v1"):
        base += "/v1"
    return base


def resolve_gemini(engine_config: EngineConfig, call_kind: CallKind) -> Endpoint:
    """Gemini: key travels as both query parameter and header."""
    api_key = engine_config.resolved_api_key()
    root = gemini_root(engine_config.base_url)

    if call_kind == CallKind.LIST_MODELS:
        path = f"{root}/models"
    else:
        path = f"{root}/models/{resolve_model(engine_config)}:generateContent"

    return Endpoint(
        url=f"{path}?key={api_key}",
        headers={
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        },
    )


def resolve_openai(engine_config: EngineConfig, call_kind: CallKind) -> Endpoint:
    """OpenAI-compatible: bearer auth only."""
    if call_kind == CallKind.LIST_MODELS:
        url = f"{openai_root(engine_config.base_url)}/models"
    else:
        url = _clean_base(engine_config.base_url, config.OPENAI_DEFAULT_BASE_URL)
        if _CHAT_COMPLETIONS not in url:
            if not url.endswith("/v1"):
                url += "/v1"
            url += _CHAT_COMPLETIONS

    return Endpoint(
        url=url,
        headers={
            "Content-Type": "application/json",
            "Authorization": f"Bearer {engine_config.resolved_api_key()}",
        },
    )


def resolve(engine_config: EngineConfig, call_kind: CallKind = CallKind.GENERATE) -> Endpoint:
    """Resolve the endpoint for the configured provider family."""
    if engine_config.is_openai_family:
        return resolve_openai(engine_config, call_kind)
    return resolve_gemini(engine_config, call_kind)
