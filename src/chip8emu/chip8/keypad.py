"""CHIP-8 hexadecimal keypad state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

KEY_COUNT = 16


@dataclass
class Chip8Keypad:
    """Sixteen independent key states, indexed 0x0-0xF."""

    _keys: List[bool] = field(default_factory=lambda: [False] * KEY_COUNT)

    @staticmethod
    def _check(key: int) -> int:
        if not (0 <= key < KEY_COUNT):
            raise ValueError("key out of range")
        return key

    def press(self, key: int) -> None:
        self._keys[self._check(key)] = True

    def release(self, key: int) -> None:
        self._keys[self._check(key)] = False

    def is_pressed(self, key: int) -> bool:
        # Opcodes pass a full register value, only the low nibble selects a key.
        return self._keys[key & 0x0F]

    def set_state(self, states: Iterable[bool]) -> None:
        values = [bool(value) for value in states]
        if len(values) != KEY_COUNT:
            raise ValueError("keypad state must have 16 entries")
        self._keys = values

    def get_state(self) -> List[bool]:
        return list(self._keys)

    def pressed_keys(self) -> List[int]:
        return [key for key, down in enumerate(self._keys) if down]

    def first_pressed(self) -> Optional[int]:
        for key, down in enumerate(self._keys):
            if down:
                return key
        return None

    def clear(self) -> None:
        self._keys = [False] * KEY_COUNT
