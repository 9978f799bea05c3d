"""CHIP-8 CPU core: register file, fetch/decode/execute and opcode handlers."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import random
from typing import Callable, Dict, List, NoReturn, Optional

from chip8emu.chip8.display import Chip8Display
from chip8emu.chip8.font import glyph_address
from chip8emu.chip8.keypad import Chip8Keypad
from chip8emu.memory import ADDRESS_MASK, PROGRAM_START, Addressable

logger = logging.getLogger(__name__)

REGISTER_COUNT = 16
STACK_DEPTH = 16
FLAG_REGISTER = 0xF

OpcodeHandler = Callable[[int], None]


class CPUError(RuntimeError):
    """Raised when an instruction cannot be executed."""

    def __init__(self, message: str, *, opcode: int, address: int) -> None:
        super().__init__(f"{message} (opcode 0x{opcode:04X} at 0x{address:03X})")
        self.opcode = opcode
        self.address = address


class UnknownOpcodeError(CPUError):
    """The instruction word does not decode to any CHIP-8 operation."""


class StackOverflowError(CPUError):
    """A call was made with all sixteen stack slots in use."""


class StackUnderflowError(CPUError):
    """A return was made with an empty call stack."""


@dataclass
class CPURegisters:
    """Register file, call stack and timers."""

    v: List[int] = field(default_factory=lambda: [0] * REGISTER_COUNT)
    index: int = 0
    program_counter: int = PROGRAM_START
    stack: List[int] = field(default_factory=lambda: [0] * STACK_DEPTH)
    stack_pointer: int = 0
    delay_timer: int = 0
    sound_timer: int = 0


@dataclass
class CPUStatus:
    halted: bool = False
    waiting_for_key: bool = False
    last_error: Optional[CPUError] = None
    error_count: int = 0
    cycle_count: int = 0


class Chip8CPU:
    """CHIP-8 interpreter core.

    ``cycle()`` fetches one instruction word, advances the program counter
    and hands the word to :meth:`dispatch`. Timers are not touched by
    ``cycle()``; the driver calls :meth:`tick_timers` at its own rate.
    """

    OP_SYS = 0x0
    OP_JP = 0x1
    OP_CALL = 0x2
    OP_SE_BYTE = 0x3
    OP_SNE_BYTE = 0x4
    OP_SE_REG = 0x5
    OP_LD_BYTE = 0x6
    OP_ADD_BYTE = 0x7
    OP_ALU = 0x8
    OP_SNE_REG = 0x9
    OP_LD_I = 0xA
    OP_JP_V0 = 0xB
    OP_RND = 0xC
    OP_DRW = 0xD
    OP_KEY = 0xE
    OP_MISC = 0xF

    def __init__(
        self,
        memory: Addressable,
        display: Chip8Display,
        keypad: Chip8Keypad,
        *,
        rng: Optional[random.Random] = None,
        halt_on_error: bool = False,
    ) -> None:
        self.memory = memory
        self.display = display
        self.keypad = keypad
        self.rng = rng if rng is not None else random.Random()
        self.halt_on_error = halt_on_error
        self.registers = CPURegisters()
        self.status = CPUStatus()
        self._family_table: Dict[int, OpcodeHandler] = {}
        self._system_table: Dict[int, OpcodeHandler] = {}
        self._alu_table: Dict[int, OpcodeHandler] = {}
        self._key_table: Dict[int, OpcodeHandler] = {}
        self._misc_table: Dict[int, OpcodeHandler] = {}
        self._init_opcode_table()

    @classmethod
    def from_hardware(cls, hardware, **kwargs) -> "Chip8CPU":
        return cls(hardware.memory, hardware.display, hardware.keypad, **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self.registers = CPURegisters()
        self.status = CPUStatus()

    def cycle(self) -> Optional[int]:
        """Run one fetch/decode/execute step and return the executed word.

        Returns ``None`` without doing anything once the CPU has halted.
        """

        if self.status.halted:
            return None
        opcode = self.fetch()
        self.status.cycle_count += 1
        try:
            self.dispatch(opcode)
        except CPUError as exc:
            self.status.last_error = exc
            self.status.error_count += 1
            logger.warning("%s", exc)
            if self.halt_on_error:
                self.status.halted = True
                raise
        return opcode

    def run(self, cycles: int) -> int:
        executed = 0
        while executed < cycles and not self.status.halted:
            self.cycle()
            executed += 1
        return executed

    def tick_timers(self) -> None:
        regs = self.registers
        if regs.delay_timer > 0:
            regs.delay_timer -= 1
        if regs.sound_timer > 0:
            regs.sound_timer -= 1

    # ------------------------------------------------------------------
    # Fetch / decode
    # ------------------------------------------------------------------
    def fetch(self) -> int:
        pc = self.registers.program_counter & ADDRESS_MASK
        opcode = self.memory.load16(pc) & 0xFFFF
        self.registers.program_counter = (pc + 2) & ADDRESS_MASK
        return opcode

    def dispatch(self, opcode: int) -> None:
        handler = self._family_table.get((opcode >> 12) & 0xF)
        if handler is None:  # pragma: no cover - every family is registered
            self._unknown(opcode)
            return
        handler(opcode)

    def _init_opcode_table(self) -> None:
        self._register_opcode(self._family_table, self.OP_SYS, self._decode_system)
        self._register_opcode(self._family_table, self.OP_JP, self._opcode_1nnn)
        self._register_opcode(self._family_table, self.OP_CALL, self._opcode_2nnn)
        self._register_opcode(self._family_table, self.OP_SE_BYTE, self._opcode_3xkk)
        self._register_opcode(self._family_table, self.OP_SNE_BYTE, self._opcode_4xkk)
        self._register_opcode(self._family_table, self.OP_SE_REG, self._opcode_5xy0)
        self._register_opcode(self._family_table, self.OP_LD_BYTE, self._opcode_6xkk)
        self._register_opcode(self._family_table, self.OP_ADD_BYTE, self._opcode_7xkk)
        self._register_opcode(self._family_table, self.OP_ALU, self._decode_alu)
        self._register_opcode(self._family_table, self.OP_SNE_REG, self._opcode_9xy0)
        self._register_opcode(self._family_table, self.OP_LD_I, self._opcode_annn)
        self._register_opcode(self._family_table, self.OP_JP_V0, self._opcode_bnnn)
        self._register_opcode(self._family_table, self.OP_RND, self._opcode_cxkk)
        self._register_opcode(self._family_table, self.OP_DRW, self._opcode_dxyn)
        self._register_opcode(self._family_table, self.OP_KEY, self._decode_key)
        self._register_opcode(self._family_table, self.OP_MISC, self._decode_misc)

        self._register_opcode(self._system_table, 0x00E0, self._opcode_00e0)
        self._register_opcode(self._system_table, 0x00EE, self._opcode_00ee)

        self._register_opcode(self._alu_table, 0x0, self._opcode_8xy0)
        self._register_opcode(self._alu_table, 0x1, self._opcode_8xy1)
        self._register_opcode(self._alu_table, 0x2, self._opcode_8xy2)
        self._register_opcode(self._alu_table, 0x3, self._opcode_8xy3)
        self._register_opcode(self._alu_table, 0x4, self._opcode_8xy4)
        self._register_opcode(self._alu_table, 0x5, self._opcode_8xy5)
        self._register_opcode(self._alu_table, 0x6, self._opcode_8xy6)
        self._register_opcode(self._alu_table, 0x7, self._opcode_8xy7)
        self._register_opcode(self._alu_table, 0xE, self._opcode_8xye)

        self._register_opcode(self._key_table, 0x9E, self._opcode_ex9e)
        self._register_opcode(self._key_table, 0xA1, self._opcode_exa1)

        self._register_opcode(self._misc_table, 0x07, self._opcode_fx07)
        self._register_opcode(self._misc_table, 0x0A, self._opcode_fx0a)
        self._register_opcode(self._misc_table, 0x15, self._opcode_fx15)
        self._register_opcode(self._misc_table, 0x18, self._opcode_fx18)
        self._register_opcode(self._misc_table, 0x1E, self._opcode_fx1e)
        self._register_opcode(self._misc_table, 0x29, self._opcode_fx29)
        self._register_opcode(self._misc_table, 0x33, self._opcode_fx33)
        self._register_opcode(self._misc_table, 0x55, self._opcode_fx55)
        self._register_opcode(self._misc_table, 0x65, self._opcode_fx65)

    @staticmethod
    def _register_opcode(table: Dict[int, OpcodeHandler], key: int, handler: OpcodeHandler) -> None:
        table[key] = handler

    def _decode_system(self, opcode: int) -> None:
        handler = self._system_table.get(opcode)
        if handler is not None:
            handler(opcode)
            return
        # 0nnn calls native RCA 1802 code on the COSMAC VIP.
        logger.debug("ignoring SYS 0x%03X at 0x%03X", opcode & 0x0FFF, self._fault_address())

    def _decode_alu(self, opcode: int) -> None:
        handler = self._alu_table.get(opcode & 0x000F)
        if handler is None:
            self._unknown(opcode)
            return
        handler(opcode)

    def _decode_key(self, opcode: int) -> None:
        handler = self._key_table.get(opcode & 0x00FF)
        if handler is None:
            self._unknown(opcode)
            return
        handler(opcode)

    def _decode_misc(self, opcode: int) -> None:
        handler = self._misc_table.get(opcode & 0x00FF)
        if handler is None:
            self._unknown(opcode)
            return
        handler(opcode)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _fault_address(self) -> int:
        return (self.registers.program_counter - 2) & ADDRESS_MASK

    def _unknown(self, opcode: int) -> NoReturn:
        raise UnknownOpcodeError("unknown opcode", opcode=opcode, address=self._fault_address())

    def _skip(self) -> None:
        self.registers.program_counter = (self.registers.program_counter + 2) & ADDRESS_MASK

    @staticmethod
    def _x(opcode: int) -> int:
        return (opcode >> 8) & 0x0F

    @staticmethod
    def _y(opcode: int) -> int:
        return (opcode >> 4) & 0x0F

    @staticmethod
    def _kk(opcode: int) -> int:
        return opcode & 0x00FF

    @staticmethod
    def _nnn(opcode: int) -> int:
        return opcode & 0x0FFF

    def _set_flag_and_result(self, x: int, flag: int, result: int) -> None:
        # VF first, Vx last: with x == F the result replaces the flag.
        self.registers.v[FLAG_REGISTER] = flag
        self.registers.v[x] = result & 0xFF

    # ------------------------------------------------------------------
    # 0x0 family
    # ------------------------------------------------------------------
    def _opcode_00e0(self, opcode: int) -> None:
        self.display.clear()

    def _opcode_00ee(self, opcode: int) -> None:
        regs = self.registers
        if regs.stack_pointer <= 0:
            raise StackUnderflowError("return with empty call stack", opcode=opcode, address=self._fault_address())
        regs.stack_pointer -= 1
        regs.program_counter = regs.stack[regs.stack_pointer] & ADDRESS_MASK

    # ------------------------------------------------------------------
    # Flow control and immediate loads
    # ------------------------------------------------------------------
    def _opcode_1nnn(self, opcode: int) -> None:
        self.registers.program_counter = self._nnn(opcode)

    def _opcode_2nnn(self, opcode: int) -> None:
        regs = self.registers
        if regs.stack_pointer >= STACK_DEPTH:
            raise StackOverflowError("call stack overflow", opcode=opcode, address=self._fault_address())
        regs.stack[regs.stack_pointer] = regs.program_counter
        regs.stack_pointer += 1
        regs.program_counter = self._nnn(opcode)

    def _opcode_3xkk(self, opcode: int) -> None:
        if self.registers.v[self._x(opcode)] == self._kk(opcode):
            self._skip()

    def _opcode_4xkk(self, opcode: int) -> None:
        if self.registers.v[self._x(opcode)] != self._kk(opcode):
            self._skip()

    def _opcode_5xy0(self, opcode: int) -> None:
        if opcode & 0x000F:
            self._unknown(opcode)
        v = self.registers.v
        if v[self._x(opcode)] == v[self._y(opcode)]:
            self._skip()

    def _opcode_6xkk(self, opcode: int) -> None:
        self.registers.v[self._x(opcode)] = self._kk(opcode)

    def _opcode_7xkk(self, opcode: int) -> None:
        x = self._x(opcode)
        self.registers.v[x] = (self.registers.v[x] + self._kk(opcode)) & 0xFF

    # ------------------------------------------------------------------
    # 0x8 family: register arithmetic
    # ------------------------------------------------------------------
    def _opcode_8xy0(self, opcode: int) -> None:
        v = self.registers.v
        v[self._x(opcode)] = v[self._y(opcode)]

    def _opcode_8xy1(self, opcode: int) -> None:
        v = self.registers.v
        v[self._x(opcode)] |= v[self._y(opcode)]

    def _opcode_8xy2(self, opcode: int) -> None:
        v = self.registers.v
        v[self._x(opcode)] &= v[self._y(opcode)]

    def _opcode_8xy3(self, opcode: int) -> None:
        v = self.registers.v
        v[self._x(opcode)] ^= v[self._y(opcode)]

    def _opcode_8xy4(self, opcode: int) -> None:
        x = self._x(opcode)
        v = self.registers.v
        total = v[x] + v[self._y(opcode)]
        self._set_flag_and_result(x, 1 if total > 0xFF else 0, total)

    def _opcode_8xy5(self, opcode: int) -> None:
        x = self._x(opcode)
        vx = self.registers.v[x]
        vy = self.registers.v[self._y(opcode)]
        self._set_flag_and_result(x, 1 if vx > vy else 0, vx - vy)

    def _opcode_8xy6(self, opcode: int) -> None:
        x = self._x(opcode)
        vx = self.registers.v[x]
        self._set_flag_and_result(x, vx & 0x01, vx >> 1)

    def _opcode_8xy7(self, opcode: int) -> None:
        x = self._x(opcode)
        vx = self.registers.v[x]
        vy = self.registers.v[self._y(opcode)]
        self._set_flag_and_result(x, 1 if vy > vx else 0, vy - vx)

    def _opcode_8xye(self, opcode: int) -> None:
        x = self._x(opcode)
        vx = self.registers.v[x]
        self._set_flag_and_result(x, (vx >> 7) & 0x01, vx << 1)

    def _opcode_9xy0(self, opcode: int) -> None:
        if opcode & 0x000F:
            self._unknown(opcode)
        v = self.registers.v
        if v[self._x(opcode)] != v[self._y(opcode)]:
            self._skip()

    # ------------------------------------------------------------------
    # Index, jumps, random and drawing
    # ------------------------------------------------------------------
    def _opcode_annn(self, opcode: int) -> None:
        self.registers.index = self._nnn(opcode)

    def _opcode_bnnn(self, opcode: int) -> None:
        self.registers.program_counter = (self._nnn(opcode) + self.registers.v[0]) & ADDRESS_MASK

    def _opcode_cxkk(self, opcode: int) -> None:
        self.registers.v[self._x(opcode)] = self.rng.randint(0, 0xFF) & self._kk(opcode)

    def _opcode_dxyn(self, opcode: int) -> None:
        v = self.registers.v
        height = opcode & 0x000F
        index = self.registers.index
        rows = [self.memory.load8((index + row) & ADDRESS_MASK) for row in range(height)]
        collision = self.display.draw_sprite(v[self._x(opcode)], v[self._y(opcode)], rows)
        v[FLAG_REGISTER] = 1 if collision else 0

    # ------------------------------------------------------------------
    # 0xE family: keypad
    # ------------------------------------------------------------------
    def _opcode_ex9e(self, opcode: int) -> None:
        if self.keypad.is_pressed(self.registers.v[self._x(opcode)]):
            self._skip()

    def _opcode_exa1(self, opcode: int) -> None:
        if not self.keypad.is_pressed(self.registers.v[self._x(opcode)]):
            self._skip()

    # ------------------------------------------------------------------
    # 0xF family: timers, index arithmetic and memory transfers
    # ------------------------------------------------------------------
    def _opcode_fx07(self, opcode: int) -> None:
        self.registers.v[self._x(opcode)] = self.registers.delay_timer

    def _opcode_fx0a(self, opcode: int) -> None:
        key = self.keypad.first_pressed()
        if key is None:
            # Re-run this instruction next cycle; timers keep running meanwhile.
            self.registers.program_counter = self._fault_address()
            self.status.waiting_for_key = True
            return
        self.status.waiting_for_key = False
        self.registers.v[self._x(opcode)] = key

    def _opcode_fx15(self, opcode: int) -> None:
        self.registers.delay_timer = self.registers.v[self._x(opcode)]

    def _opcode_fx18(self, opcode: int) -> None:
        self.registers.sound_timer = self.registers.v[self._x(opcode)]

    def _opcode_fx1e(self, opcode: int) -> None:
        regs = self.registers
        regs.index = (regs.index + regs.v[self._x(opcode)]) & ADDRESS_MASK

    def _opcode_fx29(self, opcode: int) -> None:
        self.registers.index = glyph_address(self.registers.v[self._x(opcode)])

    def _opcode_fx33(self, opcode: int) -> None:
        value = self.registers.v[self._x(opcode)]
        index = self.registers.index
        self.memory.store8(index & ADDRESS_MASK, value // 100)
        self.memory.store8((index + 1) & ADDRESS_MASK, (value // 10) % 10)
        self.memory.store8((index + 2) & ADDRESS_MASK, value % 10)

    def _opcode_fx55(self, opcode: int) -> None:
        index = self.registers.index
        for reg in range(self._x(opcode) + 1):
            self.memory.store8((index + reg) & ADDRESS_MASK, self.registers.v[reg])

    def _opcode_fx65(self, opcode: int) -> None:
        index = self.registers.index
        for reg in range(self._x(opcode) + 1):
            self.registers.v[reg] = self.memory.load8((index + reg) & ADDRESS_MASK) & 0xFF
