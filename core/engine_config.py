"""
Marginalia - Engine Configuration

Connection and behaviour settings for the generation engine.
Settings are stored in a JSON file in the data directory and overlaid on
the defaults from config.py.
"""

import json
from dataclasses import dataclass, asdict, replace, fields
from pathlib import Path
from typing import Any, Dict, Optional

import config
from core.logger import log_info, log_warning, log_error


@dataclass(frozen=True)
class EngineConfig:
    """
    Process-wide engine settings.

    Empty connection fields mean "use the provider default". The core
    never mutates an EngineConfig; use with_overrides() for per-call tweaks.
    """
    provider: str = config.DEFAULT_PROVIDER
    base_url: str = ""
    api_key: str = ""
    model: str = ""
    temperature: float = config.DEFAULT_TEMPERATURE
    autonomous_reading: bool = config.DEFAULT_AUTONOMOUS_READING
    auto_annotation_count: int = config.DEFAULT_AUTO_ANNOTATION_COUNT
    auto_memory_threshold: int = config.DEFAULT_AUTO_MEMORY_THRESHOLD

    def with_overrides(self, **changes: Any) -> "EngineConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def resolved_api_key(self) -> str:
        """The configured key, falling back to the API_KEY environment value."""
        return (self.api_key or config.DEFAULT_API_KEY or "").strip()

    def has_credentials(self) -> bool:
        return bool(self.resolved_api_key())

    @property
    def is_openai_family(self) -> bool:
        return self.provider == config.PROVIDER_OPENAI

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Build from a settings dict, ignoring unknown keys and bad values."""
        known = {f.name: f for f in fields(cls)}
        defaults = cls()
        values: Dict[str, Any] = {}

        for name, value in data.items():
            if name not in known or value is None:
                continue
            default = getattr(defaults, name)
            try:
                if isinstance(default, bool):
                    values[name] = value if isinstance(value, bool) else str(value).lower() in ("1", "true", "yes", "on")
                elif isinstance(default, int):
                    values[name] = int(value)
                elif isinstance(default, float):
                    values[name] = float(value)
                else:
                    values[name] = str(value)
            except (TypeError, ValueError):
                log_warning(f"Ignoring invalid engine setting {name}={value!r}")

        if values.get("auto_memory_threshold", 0) < 0:
            values["auto_memory_threshold"] = 0

        return cls(**values)


def load_engine_config(settings_path: Optional[Path] = None) -> EngineConfig:
    """
    Load engine settings from disk.

    A missing file yields the defaults; an unreadable one is logged and
    also yields the defaults.
    """
    path = settings_path or config.ENGINE_SETTINGS_PATH

    if not path.exists():
        return EngineConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        log_warning(f"Invalid engine settings file, using defaults: {e}")
        return EngineConfig()
    except OSError as e:
        log_error(f"Failed to load engine settings: {e}")
        return EngineConfig()

    if not isinstance(data, dict):
        log_warning("Engine settings file is not an object, using defaults")
        return EngineConfig()

    engine_config = EngineConfig.from_dict(data)
    log_info("Engine settings loaded", prefix="⚙️")
    return engine_config


def save_engine_config(engine_config: EngineConfig, settings_path: Optional[Path] = None) -> bool:
    """Save engine settings to disk. Returns True on success."""
    path = settings_path or config.ENGINE_SETTINGS_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(engine_config.to_dict(), f, indent=2)
        return True
    except OSError as e:
        log_error(f"Failed to save engine settings: {e}")
        return False
