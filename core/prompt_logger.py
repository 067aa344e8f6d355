"""
Marginalia - Provider Request Logger
JSON Lines record of every dispatch sent to a provider
"""

import json
from datetime import datetime
from typing import Optional, List, Dict, Any
from threading import Lock

import config

# Dispatches run in worker threads
_write_lock = Lock()


def log_api_request(
    provider: str,
    model: str,
    system_instruction: Optional[str],
    turns: List[Dict[str, str]],
    settings: Dict[str, Any],
    response_text: str,
    success: bool,
    error: Optional[str] = None
) -> None:
    """
    Log a provider request and its outcome to the JSON Lines file.

    Does nothing unless PROMPT_LOG_ENABLED is set. The API key is never
    part of the entry.

    Args:
        provider: Wire family name (gemini, openai)
        model: Model identifier actually requested
        system_instruction: Full system instruction sent
        turns: Conversation turns as {"role", "text"} dicts
        settings: Request settings (temperature, overrides)
        response_text: The extracted response text
        success: Whether the request succeeded
        error: Error message if failed
    """
    if not config.PROMPT_LOG_ENABLED:
        return

    entry = {
        "timestamp": datetime.now().isoformat(),
        "provider": provider,
        "model": model,
        "system_instruction": system_instruction,
        "turns": turns,
        "settings": settings,
        "response": {
            "text": response_text,
            "success": success,
            "error": error
        }
    }

    _write_entry(entry)


def _write_entry(entry: Dict[str, Any]) -> None:
    """Write a single entry to the log file (thread-safe)."""
    path = config.PROMPT_LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    with _write_lock:
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            # Don't let logging failures break generation
            print(f"Warning: Failed to write prompt log: {e}")
