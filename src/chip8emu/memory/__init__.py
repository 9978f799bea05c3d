"""CHIP-8 memory primitives."""

from __future__ import annotations

from typing import Iterable, List, Protocol

MEMORY_SIZE = 0x1000
ADDRESS_MASK = 0x0FFF

RESERVED_START = 0x000
RESERVED_END = 0x1FF
PROGRAM_START = 0x200
PROGRAM_END = 0xFFF


class MemoryAccessError(ValueError):
    """Raised when a block access does not fit inside memory."""


class Addressable(Protocol):
    """Protocol describing the accesses the CPU core relies on."""

    def load8(self, address: int) -> int:
        ...

    def store8(self, address: int, value: int) -> None:
        ...

    def load16(self, address: int) -> int:
        ...

    def store16(self, address: int, value: int) -> None:
        ...


class Memory(Addressable):
    """Flat 4 KiB byte-addressable memory.

    Single-byte and word accesses truncate the address to 12 bits, so a
    word read at 0xFFF picks its low byte up from 0x000. Block accesses do
    not wrap and raise :class:`MemoryAccessError` instead.
    """

    size: int
    data: bytearray

    def __init__(self, size: int = MEMORY_SIZE) -> None:
        if size <= 0 or size > MEMORY_SIZE:
            raise ValueError("invalid memory size")
        self.size = size
        self.data = bytearray(size)

    def _index(self, address: int) -> int:
        return (address & ADDRESS_MASK) % self.size

    def load8(self, address: int) -> int:
        return self.data[self._index(address)]

    def store8(self, address: int, value: int) -> None:
        self.data[self._index(address)] = value & 0xFF

    def load16(self, address: int) -> int:
        hi = self.load8(address)
        lo = self.load8(address + 1)
        return ((hi << 8) | lo) & 0xFFFF

    def store16(self, address: int, value: int) -> None:
        self.store8(address, (value >> 8) & 0xFF)
        self.store8(address + 1, value & 0xFF)

    def load_block(self, start: int, data: Iterable[int]) -> int:
        """Copy ``data`` to ``start``; nothing is written if it would not fit."""

        values = bytes(value & 0xFF for value in data)
        if start < 0 or start + len(values) > self.size:
            raise MemoryAccessError(
                f"block of {len(values)} bytes at 0x{start:03X} exceeds memory bound 0x{self.size - 1:03X}"
            )
        self.data[start:start + len(values)] = values
        return len(values)

    def read_block(self, start: int, length: int) -> bytes:
        if start < 0 or length < 0 or start + length > self.size:
            raise MemoryAccessError("block read out of range")
        return bytes(self.data[start:start + length])

    def clear(self) -> None:
        self.data[:] = bytes(self.size)

    def snapshot(self) -> List[int]:
        return list(self.data)


__all__ = [
    "ADDRESS_MASK",
    "Addressable",
    "MEMORY_SIZE",
    "Memory",
    "MemoryAccessError",
    "PROGRAM_END",
    "PROGRAM_START",
    "RESERVED_END",
    "RESERVED_START",
]
