"""CHIP-8 emulator pygame application."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.chip8.keypad import Chip8Keypad
from chip8emu.config import ConfigError, EmulatorConfig, load_config
from chip8emu.cpu.cpu import CPUError
from chip8emu.emulator.file import ProgramInfo, ProgramLoadError
from chip8emu.io.keymap import DEFAULT_KEYMAP, load_keymap_file, resolve_pygame_keys, write_keymap_template

logger = logging.getLogger(__name__)

BASE_CAPTION = "CHIP-8 Emulator"


def _handle_key_event(keypad: Chip8Keypad, key_codes: Mapping[int, int], key: int, pressed: bool) -> bool:
    mapping = key_codes.get(key)
    if mapping is None:
        return False
    if pressed:
        keypad.press(mapping)
    else:
        keypad.release(mapping)
    return True


def _build_caption(info: Optional[ProgramInfo], computer: Chip8Computer) -> str:
    caption = BASE_CAPTION
    if info is not None and info.name:
        caption = f"{caption} | {info.name}"
    if computer.cpu_core.status.halted:
        caption += " | HALTED"
    elif not computer.is_running():
        caption += " | Paused"
    if computer.buzzer_active:
        caption += " | BEEP"
    return caption


def _pygame_loop(config: EmulatorConfig, rom_path: str, keymap: Dict[str, int]) -> None:
    import pygame  # type: ignore

    computer = Chip8Computer.from_config(config)
    computer.power_on()
    program_info = computer.load_user_program(rom_path)

    display = computer.display
    keypad = computer.keypad

    pygame.init()
    key_codes = resolve_pygame_keys(keymap, pygame)
    screen = pygame.display.set_mode((display.WIDTH * config.scale, display.HEIGHT * config.scale))
    clock = pygame.time.Clock()
    cycles_per_frame = computer.cycles_for(1.0 / config.fps)
    caption = ""

    running = True
    while running:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_F5:
                    computer.reset()
                    logger.info("reset %s", program_info.name)
                elif event.key == pygame.K_p:
                    computer.toggle_pause()
                else:
                    _handle_key_event(keypad, key_codes, event.key, True)
            elif event.type == pygame.KEYUP:
                _handle_key_event(keypad, key_codes, event.key, False)

        try:
            computer.tick(cycles_per_frame)
        except CPUError as exc:
            print(f"Emulation halted: {exc}", file=sys.stderr)

        if display.dirty:
            screen.blit(display.render_pygame_surface(config.scale), (0, 0))
        new_caption = _build_caption(program_info, computer)
        if new_caption != caption:
            caption = new_caption
            pygame.display.set_caption(caption)

        pygame.display.flip()
        clock.tick(config.fps)

    pygame.quit()


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="CHIP-8 emulator")
    parser.add_argument("rom", nargs="?", help="Path to the CHIP-8 ROM image")
    parser.add_argument("--config", help="JSON configuration file (defaults to $CHIP8EMU_CONFIG)")
    parser.add_argument("--scale", type=int, default=None, help="Integer scaling factor for display (default: 10)")
    parser.add_argument("--fps", type=int, default=None, help="Target frames per second (default: 60)")
    parser.add_argument("--cpu-frequency", type=float, default=None, help="Instructions per second (default: 600)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the RND instruction")
    parser.add_argument(
        "--halt-on-error",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stop at the first CPU error (overrides the config file)",
    )
    parser.add_argument("--keymap", help="JSON file mapping host key names to keypad values")
    parser.add_argument(
        "--write-keymap-template",
        metavar="PATH",
        help="Write a JSON keymap template to the given path and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="INFO",
        help="Logging verbosity",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.write_keymap_template:
        write_keymap_template(Path(args.write_keymap_template))
        return

    if not args.rom:
        parser.error("a ROM path is required")

    try:
        config = load_config(args.config).merged(
            scale=args.scale,
            fps=args.fps,
            cpu_frequency=args.cpu_frequency,
            seed=args.seed,
            halt_on_error=args.halt_on_error,
            keymap=args.keymap,
        )
    except ConfigError as exc:
        raise SystemExit(str(exc))

    keymap = dict(DEFAULT_KEYMAP)
    if config.keymap:
        try:
            keymap = load_keymap_file(config.keymap)
        except (OSError, ValueError) as exc:
            print(f"Failed to load keymap: {exc}", file=sys.stderr)

    try:
        _pygame_loop(config, args.rom, keymap)
    except ProgramLoadError as exc:
        raise SystemExit(f"Failed to load program: {exc}")
    except RuntimeError as exc:
        raise SystemExit(str(exc))


if __name__ == "__main__":
    main()
