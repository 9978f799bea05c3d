"""Tests for Chip8Display framebuffer rendering."""

import pytest

from chip8emu.chip8.display import PIXEL_ON, Chip8Display


def test_new_display_is_blank_and_dirty() -> None:
    display = Chip8Display()
    assert len(display.pixels) == 64 * 32
    assert display.lit_count() == 0
    assert display.dirty


def test_render_pixels_uses_colours() -> None:
    display = Chip8Display(foreground=0x00FF00, background=0x101010)
    display.set_pixel(0, 0, True)
    display.set_pixel(63, 31, True)

    pixels = display.render_pixels()
    assert len(pixels) == 32
    assert len(pixels[0]) == 64
    assert pixels[0][0] == 0x00FF00
    assert pixels[0][1] == 0x101010
    assert pixels[31][63] == 0x00FF00


def test_render_ascii_marks_lit_pixels() -> None:
    display = Chip8Display()
    display.draw_sprite(0, 0, [0b1010_0000])

    lines = display.render_ascii().splitlines()
    assert len(lines) == 32
    assert lines[0].startswith("#.#.")
    assert set(lines[1]) == {"."}


def test_set_pixel_wraps_coordinates() -> None:
    display = Chip8Display()
    display.set_pixel(64, 32, True)
    assert display.pixels[0] == PIXEL_ON
    assert display.is_on(0, 0)


def test_load_pixels_validates_size() -> None:
    display = Chip8Display()
    with pytest.raises(ValueError):
        display.load_pixels([1, 0, 1])

    display.load_pixels([1] * (64 * 32))
    assert display.lit_count() == 64 * 32

    display.clear()
    assert display.lit_count() == 0
