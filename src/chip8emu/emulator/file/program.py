"""ROM loaders for CHIP-8 programs."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Optional

from chip8emu.memory import MEMORY_SIZE, PROGRAM_START, Memory, MemoryAccessError

logger = logging.getLogger(__name__)

MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START


class ProgramLoadError(RuntimeError):
    """Raised when a ROM cannot be read or does not fit in memory."""


@dataclass
class ProgramInfo:
    name: str = ""
    size: int = 0
    start: int = PROGRAM_START
    path: Optional[Path] = None

    @property
    def end(self) -> int:
        """Last address occupied by the program (``start - 1`` when empty)."""

        return self.start + self.size - 1


def check_program_size(size: int) -> None:
    if size > MAX_PROGRAM_SIZE:
        raise ProgramLoadError(
            f"program is {size} bytes, at most {MAX_PROGRAM_SIZE} bytes fit at 0x{PROGRAM_START:03X}"
        )


def read_rom(path: str | Path) -> bytes:
    """Read and size-check a ROM image without touching any memory."""

    file_path = Path(path)
    try:
        data = file_path.read_bytes()
    except OSError as exc:
        raise ProgramLoadError(f"cannot read ROM {file_path}: {exc}") from exc
    check_program_size(len(data))
    return data


def load_program(memory: Memory, data: bytes, *, name: str = "") -> ProgramInfo:
    """Copy raw ROM bytes into program memory starting at 0x200."""

    payload = bytes(data)
    check_program_size(len(payload))
    try:
        memory.load_block(PROGRAM_START, payload)
    except MemoryAccessError as exc:
        raise ProgramLoadError(str(exc)) from exc
    if not payload:
        logger.warning("loaded an empty program")
    logger.debug("loaded %d bytes at 0x%03X", len(payload), PROGRAM_START)
    return ProgramInfo(name=name, size=len(payload))


def load_rom(memory: Memory, path: str | Path) -> ProgramInfo:
    """Read a ROM image from disk and load it into program memory."""

    file_path = Path(path)
    info = load_program(memory, read_rom(file_path), name=file_path.stem.upper())
    info.path = file_path
    logger.info("loaded ROM %s (%d bytes)", file_path, info.size)
    return info
