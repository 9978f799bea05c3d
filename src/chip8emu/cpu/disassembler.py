"""Mnemonic rendering of CHIP-8 instruction words."""

from __future__ import annotations

from typing import Iterator, Tuple

from chip8emu.memory import ADDRESS_MASK, Addressable

_ALU_MNEMONICS = {
    0x0: "LD",
    0x1: "OR",
    0x2: "AND",
    0x3: "XOR",
    0x4: "ADD",
    0x5: "SUB",
    0x7: "SUBN",
}

_MISC_FORMATS = {
    0x07: "LD V{x:X}, DT",
    0x0A: "LD V{x:X}, K",
    0x15: "LD DT, V{x:X}",
    0x18: "LD ST, V{x:X}",
    0x1E: "ADD I, V{x:X}",
    0x29: "LD F, V{x:X}",
    0x33: "LD B, V{x:X}",
    0x55: "LD [I], V{x:X}",
    0x65: "LD V{x:X}, [I]",
}


def disassemble(opcode: int) -> str:
    opcode &= 0xFFFF
    family = opcode >> 12
    x = (opcode >> 8) & 0xF
    y = (opcode >> 4) & 0xF
    n = opcode & 0xF
    kk = opcode & 0xFF
    nnn = opcode & 0xFFF

    if opcode == 0x00E0:
        return "CLS"
    if opcode == 0x00EE:
        return "RET"
    if family == 0x0:
        return f"SYS 0x{nnn:03X}"
    if family == 0x1:
        return f"JP 0x{nnn:03X}"
    if family == 0x2:
        return f"CALL 0x{nnn:03X}"
    if family == 0x3:
        return f"SE V{x:X}, 0x{kk:02X}"
    if family == 0x4:
        return f"SNE V{x:X}, 0x{kk:02X}"
    if family == 0x5 and n == 0:
        return f"SE V{x:X}, V{y:X}"
    if family == 0x6:
        return f"LD V{x:X}, 0x{kk:02X}"
    if family == 0x7:
        return f"ADD V{x:X}, 0x{kk:02X}"
    if family == 0x8:
        if n in _ALU_MNEMONICS:
            return f"{_ALU_MNEMONICS[n]} V{x:X}, V{y:X}"
        if n == 0x6:
            return f"SHR V{x:X}"
        if n == 0xE:
            return f"SHL V{x:X}"
    if family == 0x9 and n == 0:
        return f"SNE V{x:X}, V{y:X}"
    if family == 0xA:
        return f"LD I, 0x{nnn:03X}"
    if family == 0xB:
        return f"JP V0, 0x{nnn:03X}"
    if family == 0xC:
        return f"RND V{x:X}, 0x{kk:02X}"
    if family == 0xD:
        return f"DRW V{x:X}, V{y:X}, {n}"
    if family == 0xE:
        if kk == 0x9E:
            return f"SKP V{x:X}"
        if kk == 0xA1:
            return f"SKNP V{x:X}"
    if family == 0xF and kk in _MISC_FORMATS:
        return _MISC_FORMATS[kk].format(x=x)
    return f"DW 0x{opcode:04X}"


def disassemble_range(memory: Addressable, start: int, end: int) -> Iterator[Tuple[int, int, str]]:
    """Yield ``(address, opcode, text)`` for each word in ``[start, end]``."""

    address = start & ADDRESS_MASK
    while address <= end:
        opcode = memory.load16(address)
        yield address, opcode, disassemble(opcode)
        address += 2
