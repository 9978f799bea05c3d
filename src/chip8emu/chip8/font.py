"""Built-in hexadecimal font for CHIP-8."""

from __future__ import annotations

from chip8emu.memory import Memory

FONT_START_ADDRESS = 0x050
GLYPH_HEIGHT = 5
GLYPH_COUNT = 16

# One 4x5 glyph per hex digit, each byte holds one row in its high nibble.
FONTSET = bytes(
    [
        0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
        0x20, 0x60, 0x20, 0x20, 0x70,  # 1
        0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
        0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
        0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
        0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
        0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
        0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
        0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
        0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
        0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
        0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
        0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
        0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
        0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
        0xF0, 0x80, 0xF0, 0x80, 0x80,  # F
    ]
)
FONTSET_SIZE = len(FONTSET)


def glyph_address(digit: int) -> int:
    """Address of the glyph for the low nibble of ``digit``."""

    return FONT_START_ADDRESS + (digit & 0x0F) * GLYPH_HEIGHT


def load_font(memory: Memory) -> None:
    memory.load_block(FONT_START_ADDRESS, FONTSET)
