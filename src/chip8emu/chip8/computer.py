"""CHIP-8 system wiring: memory, font, framebuffer, keypad and CPU."""

from __future__ import annotations

import logging
import os
from pathlib import Path
import random
from typing import Optional

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.font import load_font
from chip8emu.chip8.hardware import Chip8Hardware
from chip8emu.chip8.keypad import Chip8Keypad
from chip8emu.config import EmulatorConfig
from chip8emu.cpu.cpu import Chip8CPU
from chip8emu.emulator.file import ProgramInfo, check_program_size, load_program, read_rom
from chip8emu.memory import Memory
from chip8emu.system.computer import Computer

logger = logging.getLogger(__name__)


class Chip8Computer(Computer):
    """Concrete CHIP-8 machine."""

    hardware: Chip8Hardware
    cpu_core: Chip8CPU
    program_info: Optional[ProgramInfo]

    def __init__(
        self,
        *,
        cpu_clock_frequency: float = 600.0,
        timer_frequency: float = 60.0,
        halt_on_error: bool = False,
        seed: Optional[int] = None,
    ) -> None:
        memory = Memory()
        hardware = Chip8Hardware(
            memory=memory,
            display=Chip8Display(),
            keypad=Chip8Keypad(),
        )
        super().__init__(
            hardware,
            cpu_clock_frequency=cpu_clock_frequency,
            timer_frequency=timer_frequency,
        )
        load_font(memory)
        self.program_info = None
        self._program_data = b""
        self.cpu_core = Chip8CPU.from_hardware(
            hardware,
            rng=random.Random(seed),
            halt_on_error=halt_on_error,
        )
        self.set_cpu(self.cpu_core)

    @classmethod
    def from_config(cls, config: EmulatorConfig) -> "Chip8Computer":
        return cls(
            cpu_clock_frequency=config.cpu_frequency,
            timer_frequency=config.timer_frequency,
            halt_on_error=config.halt_on_error,
            seed=config.seed,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def memory(self) -> Memory:
        return self.hardware.memory

    @property
    def display(self) -> Chip8Display:
        return self.hardware.display

    @property
    def keypad(self) -> Chip8Keypad:
        return self.hardware.keypad

    @property
    def buzzer_active(self) -> bool:
        return self.cpu_core.registers.sound_timer > 0

    # ------------------------------------------------------------------
    # Program loading
    # ------------------------------------------------------------------
    def load_program_bytes(self, data: bytes, *, name: str = "") -> ProgramInfo:
        """Install ``data`` as the current program and restart the CPU."""

        payload = bytes(data)
        check_program_size(len(payload))
        self._reinitialise_memory(b"")
        info = load_program(self.memory, payload, name=name)
        self._program_data = payload
        self.program_info = info
        self.display.clear()
        self.keypad.clear()
        self.cpu_core.reset()
        return info

    def load_user_program(self, path: str | os.PathLike[str]) -> ProgramInfo:
        file_path = Path(path)
        # Read first so a bad ROM leaves the current program in place.
        data = read_rom(file_path)
        info = self.load_program_bytes(data, name=file_path.stem.upper())
        info.path = file_path
        logger.info("loaded %s (%d bytes)", file_path, info.size)
        return info

    def _reinitialise_memory(self, program: bytes) -> None:
        self.memory.clear()
        load_font(self.memory)
        if program:
            load_program(self.memory, program)

    def _reset_hardware(self) -> None:
        self._reinitialise_memory(self._program_data)
        self.display.clear()
        self.keypad.clear()
