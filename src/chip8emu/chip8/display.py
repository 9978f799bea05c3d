"""CHIP-8 monochrome framebuffer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

PIXEL_ON = 0xFFFFFFFF
PIXEL_OFF = 0x00000000


def _rgb(color: int) -> Tuple[int, int, int]:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


@dataclass
class Chip8Display:
    WIDTH: int = 64
    HEIGHT: int = 32
    SPRITE_WIDTH: int = 8

    foreground: int = 0xFFFFFF
    background: int = 0x000000
    pixels: List[int] = field(default_factory=lambda: [PIXEL_OFF] * (64 * 32))
    dirty: bool = True

    def __post_init__(self) -> None:
        if len(self.pixels) != self.WIDTH * self.HEIGHT:
            raise ValueError("framebuffer size does not match display geometry")

    # ------------------------------------------------------------------
    # Framebuffer access
    # ------------------------------------------------------------------
    def clear(self) -> None:
        self.pixels[:] = [PIXEL_OFF] * (self.WIDTH * self.HEIGHT)
        self.dirty = True

    def is_on(self, x: int, y: int) -> bool:
        return self.pixels[(y % self.HEIGHT) * self.WIDTH + (x % self.WIDTH)] == PIXEL_ON

    def set_pixel(self, x: int, y: int, on: bool) -> None:
        self.pixels[(y % self.HEIGHT) * self.WIDTH + (x % self.WIDTH)] = PIXEL_ON if on else PIXEL_OFF
        self.dirty = True

    def draw_sprite(self, x: int, y: int, rows: Sequence[int]) -> bool:
        """XOR ``rows`` onto the framebuffer at (x, y) and report a collision.

        The origin is reduced modulo the screen size and pixels past the
        right or bottom edge wrap around to the opposite side.
        """

        origin_x = x % self.WIDTH
        origin_y = y % self.HEIGHT
        collision = False
        for row, sprite_byte in enumerate(rows):
            py = (origin_y + row) % self.HEIGHT
            for col in range(self.SPRITE_WIDTH):
                if not (sprite_byte & (0x80 >> col)):
                    continue
                px = (origin_x + col) % self.WIDTH
                index = py * self.WIDTH + px
                if self.pixels[index] == PIXEL_ON:
                    collision = True
                self.pixels[index] ^= PIXEL_ON
        self.dirty = True
        return collision

    def load_pixels(self, values: Iterable[int]) -> None:
        data = list(values)
        if len(data) != self.WIDTH * self.HEIGHT:
            raise ValueError("framebuffer must hold 2048 pixels")
        self.pixels[:] = [PIXEL_ON if value else PIXEL_OFF for value in data]
        self.dirty = True

    def lit_count(self) -> int:
        return sum(1 for value in self.pixels if value == PIXEL_ON)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render_pixels(self) -> List[List[int]]:
        rows: List[List[int]] = []
        for y in range(self.HEIGHT):
            start = y * self.WIDTH
            rows.append(
                [
                    self.foreground if value == PIXEL_ON else self.background
                    for value in self.pixels[start:start + self.WIDTH]
                ]
            )
        return rows

    def render_ascii(self, on: str = "#", off: str = ".") -> str:
        lines = []
        for y in range(self.HEIGHT):
            start = y * self.WIDTH
            lines.append("".join(on if value == PIXEL_ON else off for value in self.pixels[start:start + self.WIDTH]))
        return "\n".join(lines)

    def render_pygame_surface(self, scaling: int = 1):
        """Render the framebuffer into a pygame Surface.

        Parameters
        ----------
        scaling:
            Integer scale factor applied to both axes.

        Returns
        -------
        pygame.Surface
            RGB surface representing the current screen.

        Raises
        ------
        RuntimeError
            If pygame is not available.
        """

        if scaling <= 0:
            raise ValueError("scaling factor must be positive")

        try:
            import pygame  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required for render_pygame_surface") from exc

        foreground = _rgb(self.foreground)
        surface = pygame.Surface((self.WIDTH * scaling, self.HEIGHT * scaling))
        surface.fill(_rgb(self.background))
        surface.lock()
        try:
            for y in range(self.HEIGHT):
                start = y * self.WIDTH
                for x, value in enumerate(self.pixels[start:start + self.WIDTH]):
                    if value == PIXEL_ON:
                        surface.fill(foreground, (x * scaling, y * scaling, scaling, scaling))
        finally:
            surface.unlock()
        self.dirty = False
        return surface
