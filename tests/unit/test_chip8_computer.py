"""Tests for the assembled CHIP-8 machine."""

from __future__ import annotations

import pytest

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.chip8.font import FONT_START_ADDRESS, FONTSET
from chip8emu.config import EmulatorConfig
from chip8emu.cpu.cpu import CPUError
from chip8emu.emulator.file import MAX_PROGRAM_SIZE, ProgramLoadError

# LD VA, 30 ; LD DT, VA ; JP 0x204
DELAY_LOOP = bytes([0x6A, 0x1E, 0xFA, 0x15, 0x12, 0x04])


def make_computer(program: bytes = DELAY_LOOP, **kwargs) -> Chip8Computer:
    computer = Chip8Computer(**kwargs)
    computer.power_on()
    computer.load_program_bytes(program, name="TEST")
    return computer


def test_font_and_program_are_installed() -> None:
    computer = make_computer()
    assert computer.memory.read_block(FONT_START_ADDRESS, len(FONTSET)) == FONTSET
    assert computer.memory.read_block(0x200, len(DELAY_LOOP)) == DELAY_LOOP
    assert computer.program_info is not None
    assert computer.program_info.name == "TEST"


def test_delay_timer_counts_down_at_sixty_hertz() -> None:
    computer = make_computer()
    computer.tick(2)
    assert computer.cpu_core.registers.delay_timer == 30

    computer.tick(98)
    assert computer.cpu_core.registers.delay_timer == 20

    computer.tick(600)
    assert computer.cpu_core.registers.delay_timer == 0


def test_buzzer_follows_sound_timer() -> None:
    # LD V0, 2 ; LD ST, V0 ; JP 0x204
    computer = make_computer(bytes([0x60, 0x02, 0xF0, 0x18, 0x12, 0x04]))
    assert not computer.buzzer_active
    computer.tick(2)
    assert computer.buzzer_active
    computer.tick(20)
    assert not computer.buzzer_active


def test_reset_reloads_program_and_clears_state() -> None:
    # LD I, 0x050 ; DRW V0, V0, 5 ; JP 0x204
    program = bytes([0xA0, 0x50, 0xD0, 0x05, 0x12, 0x04])
    computer = make_computer(program)
    computer.tick(3)
    assert computer.display.lit_count() > 0
    computer.memory.store8(0x200, 0x00)
    computer.keypad.press(0x3)

    computer.reset()

    assert computer.memory.read_block(0x200, len(program)) == program
    assert computer.display.lit_count() == 0
    assert computer.keypad.pressed_keys() == []
    assert computer.cpu_core.registers.program_counter == 0x200
    assert computer.clock_count == 0


def test_oversized_program_keeps_current_one() -> None:
    computer = make_computer()
    with pytest.raises(ProgramLoadError):
        computer.load_program_bytes(b"\x00" * (MAX_PROGRAM_SIZE + 1))
    assert computer.memory.read_block(0x200, len(DELAY_LOOP)) == DELAY_LOOP


def test_missing_rom_keeps_current_program(tmp_path) -> None:
    computer = make_computer()
    with pytest.raises(ProgramLoadError):
        computer.load_user_program(tmp_path / "nope.ch8")
    assert computer.program_info.name == "TEST"


def test_load_user_program_names_after_file(tmp_path) -> None:
    rom = tmp_path / "maze.ch8"
    rom.write_bytes(DELAY_LOOP)
    computer = make_computer(b"")
    info = computer.load_user_program(rom)
    assert info.name == "MAZE"
    assert info.path == rom
    assert computer.memory.read_block(0x200, len(DELAY_LOOP)) == DELAY_LOOP


def test_halt_on_error_propagates_from_tick() -> None:
    computer = make_computer(bytes([0x60, 0x01, 0xFF, 0xFF]), halt_on_error=True)
    with pytest.raises(CPUError):
        computer.tick(10)
    assert computer.cpu_core.status.halted
    assert computer.clock_count == 2
    assert computer.tick(10) == 0


def test_errors_are_skipped_without_halt() -> None:
    computer = make_computer(bytes([0xFF, 0xFF, 0x61, 0x07, 0x12, 0x04]))
    computer.tick(3)
    assert computer.cpu_core.status.error_count == 1
    assert computer.cpu_core.registers.v[1] == 0x07


def test_from_config_applies_settings() -> None:
    config = EmulatorConfig(cpu_frequency=1200.0, timer_frequency=60.0, halt_on_error=True, seed=5)
    computer = Chip8Computer.from_config(config)
    assert computer.cpu_clock_frequency == 1200.0
    assert computer.timer_interval == 20
    assert computer.cpu_core.halt_on_error


def test_same_seed_gives_same_random_sequence() -> None:
    # RND V0, 0xFF ; RND V1, 0xFF ; JP 0x204
    program = bytes([0xC0, 0xFF, 0xC1, 0xFF, 0x12, 0x04])
    first = make_computer(program, seed=42)
    second = make_computer(program, seed=42)
    first.tick(2)
    second.tick(2)
    assert first.cpu_core.registers.v[:2] == second.cpu_core.registers.v[:2]
