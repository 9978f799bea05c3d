"""Emulator settings shared by the pygame frontend and the headless runner."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

ENV_CONFIG_PATH = "CHIP8EMU_CONFIG"


class ConfigError(ValueError):
    """Raised when a configuration file is malformed."""


@dataclass
class EmulatorConfig:
    cpu_frequency: float = 600.0
    timer_frequency: float = 60.0
    halt_on_error: bool = False
    seed: Optional[int] = None
    scale: int = 10
    fps: int = 60
    keymap: Optional[str] = None

    def validate(self) -> "EmulatorConfig":
        if self.cpu_frequency <= 0:
            raise ConfigError("cpu_frequency must be positive")
        if self.timer_frequency <= 0:
            raise ConfigError("timer_frequency must be positive")
        if self.scale <= 0:
            raise ConfigError("scale must be positive")
        if self.fps <= 0:
            raise ConfigError("fps must be positive")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EmulatorConfig":
        known = {item.name: item for item in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")
        values: dict[str, Any] = {}
        for key, raw in data.items():
            if raw is None:
                values[key] = None
            elif key == "halt_on_error":
                if not isinstance(raw, bool):
                    raise ConfigError("halt_on_error must be a boolean")
                values[key] = raw
            else:
                values[key] = _coerce(key, raw)
        return cls(**values).validate()

    def merged(self, **overrides: Any) -> "EmulatorConfig":
        """Copy with every non-``None`` override applied."""

        data = asdict(self)
        data.update({key: value for key, value in overrides.items() if value is not None})
        return EmulatorConfig(**data).validate()


_FLOAT_KEYS = ("cpu_frequency", "timer_frequency")
_INT_KEYS = ("scale", "fps", "seed")


def _coerce(key: str, raw: Any) -> Any:
    if key in _FLOAT_KEYS + _INT_KEYS:
        # bool is an int subclass, JSON true must not read as 1.
        if isinstance(raw, bool):
            raise ConfigError(f"invalid value for {key!r}: {raw!r}")
        if key in _INT_KEYS and isinstance(raw, float) and not raw.is_integer():
            raise ConfigError(f"{key!r} must be a whole number, got {raw!r}")
    try:
        if key in _FLOAT_KEYS:
            return float(raw)
        if key in _INT_KEYS:
            return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {key!r}: {raw!r}") from exc
    return str(raw)


def load_config(path: str | os.PathLike[str] | None = None) -> EmulatorConfig:
    """Load settings from ``path``, ``$CHIP8EMU_CONFIG`` or the defaults."""

    if path is None:
        env_value = os.getenv(ENV_CONFIG_PATH)
        if not env_value:
            return EmulatorConfig()
        path = env_value
    file_path = Path(path)
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {file_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON in {file_path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError("configuration root must be an object")
    return EmulatorConfig.from_mapping(data)
