"""Host keyboard to CHIP-8 keypad mapping."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Mapping

logger = logging.getLogger(__name__)

# COSMAC VIP layout    host keys
#   1 2 3 C            1 2 3 4
#   4 5 6 D            q w e r
#   7 8 9 E            a s d f
#   A 0 B F            z x c v
DEFAULT_KEYMAP: Dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


def normalize_keymap(data: Mapping[str, object]) -> Dict[str, int]:
    """Validate a ``{host key name: keypad value}`` mapping.

    Values may be ints or hex strings such as ``"0xA"`` or ``"A"``.
    """

    result: Dict[str, int] = {}
    for name, raw in data.items():
        key_name = str(name).strip().lower()
        if not key_name:
            raise ValueError("key name must not be empty")
        if isinstance(raw, bool):
            raise ValueError(f"invalid keypad value for {name!r}")
        if isinstance(raw, int):
            value = raw
        elif isinstance(raw, str):
            text = raw.strip().lower()
            if text.startswith("0x"):
                text = text[2:]
            try:
                value = int(text, 16)
            except ValueError as exc:
                raise ValueError(f"invalid keypad value for {name!r}: {raw!r}") from exc
        else:
            raise ValueError(f"invalid keypad value for {name!r}")
        if not (0 <= value <= 0xF):
            raise ValueError(f"keypad value for {name!r} out of range")
        result[key_name] = value
    return result


def load_keymap_file(path: str | Path) -> Dict[str, int]:
    """Load a JSON keymap and merge it over :data:`DEFAULT_KEYMAP`."""

    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError("keymap file must contain a JSON object")
    merged = dict(DEFAULT_KEYMAP)
    merged.update(normalize_keymap(data))
    return merged


def write_keymap_template(path: Path) -> None:
    template = {name: f"0x{value:X}" for name, value in DEFAULT_KEYMAP.items()}
    path.write_text(json.dumps(template, indent=2), encoding="utf-8")


def resolve_pygame_keys(keymap: Mapping[str, int], pygame_module) -> Dict[int, int]:
    """Translate key names to pygame key codes, skipping unknown names."""

    resolved: Dict[int, int] = {}
    for name, value in keymap.items():
        try:
            code = pygame_module.key.key_code(name)
        except ValueError:
            logger.warning("unknown key name in keymap: %s", name)
            continue
        resolved[int(code)] = value
    return resolved
