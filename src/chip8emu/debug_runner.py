"""Headless runner for CHIP-8 ROM debugging workflows."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, TextIO

from chip8emu.chip8.computer import Chip8Computer
from chip8emu.config import ConfigError, EmulatorConfig, load_config
from chip8emu.cpu.cpu import CPUError
from chip8emu.cpu.disassembler import disassemble
from chip8emu.emulator.file import ProgramLoadError
from chip8emu.memory import ADDRESS_MASK, PROGRAM_START

DEFAULT_MAX_CYCLES = 100_000
EXECUTION_CHUNK = 64

EXIT_OK = 0
EXIT_LOAD_FAILED = 1
EXIT_CYCLE_LIMIT = 2
EXIT_TIME_LIMIT = 3
EXIT_HALTED = 4


@dataclass(frozen=True)
class DumpRange:
    """Inclusive memory range used for dumping."""

    start: int
    end: int

    def iter_addresses(self) -> Iterable[int]:
        for address in range(self.start, self.end + 1):
            yield address & ADDRESS_MASK


@dataclass
class RunResult:
    executed: int = 0
    break_hit: bool = False
    timeout_hit: bool = False
    cycle_hit: bool = False
    halted: bool = False


def _parse_hex(value: str) -> int:
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if not text:
        raise ValueError("empty hexadecimal value")
    result = int(text, 16)
    if not (0 <= result <= ADDRESS_MASK):
        raise ValueError("hex value out of range")
    return result


def _parse_range(spec: str) -> DumpRange:
    start_str, sep, end_str = spec.partition(":")
    if not sep:
        raise ValueError("range specification must contain ':'")
    start = _parse_hex(start_str)
    end = _parse_hex(end_str)
    if end < start:
        raise ValueError("range end must be >= start")
    return DumpRange(start, end)


def _merge_ranges(ranges: Sequence[DumpRange]) -> List[DumpRange]:
    if not ranges:
        return [DumpRange(0x000, ADDRESS_MASK)]
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    merged: List[DumpRange] = []
    for current in ordered:
        if not merged:
            merged.append(current)
            continue
        last = merged[-1]
        if current.start <= last.end + 1:
            merged[-1] = DumpRange(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def _format_hex_dump(memory, dump_ranges: Sequence[DumpRange]) -> str:
    lines: List[str] = []
    header = "ADDR " + " ".join(f"+{offset:X}" for offset in range(16))
    for index, dump_range in enumerate(dump_ranges):
        if index:
            lines.append("")
        lines.append(header)
        start_line = dump_range.start & ~0x0F
        end_line = dump_range.end | 0x0F
        for base in range(start_line, end_line + 1, 16):
            row = [f"{base & ADDRESS_MASK:04X}"]
            for offset in range(16):
                address = (base + offset) & ADDRESS_MASK
                value = memory.load8(address) & 0xFF
                row.append(f"{value:02X}")
            lines.append(" ".join(row))
    return "\n".join(lines)


def _write_dump(memory, dump_ranges: Sequence[DumpRange], *, target: Path | None, fmt: str) -> None:
    ranges = _merge_ranges(dump_ranges)
    if fmt == "bin":
        data = bytearray()
        for dump_range in ranges:
            for address in dump_range.iter_addresses():
                data.append(memory.load8(address) & 0xFF)
        if target is None:
            sys.stdout.buffer.write(bytes(data))
            return
        target.write_bytes(bytes(data))
        return

    text = _format_hex_dump(memory, ranges)
    if target is None:
        print(text)
    else:
        target.write_text(text + "\n")


def _format_trace_line(computer: Chip8Computer, address: int, opcode: int) -> str:
    regs = computer.cpu_core.registers
    registers = " ".join(f"{value:02X}" for value in regs.v)
    return (
        f"{address:03X}  {opcode:04X}  {disassemble(opcode):<18} "
        f"I={regs.index:03X} SP={regs.stack_pointer:X} DT={regs.delay_timer:02X} "
        f"ST={regs.sound_timer:02X} V=[{registers}]"
    )


def _setup_computer(config: EmulatorConfig) -> Chip8Computer:
    computer = Chip8Computer.from_config(config)
    computer.power_on()
    return computer


def _initialise_cpu_state(computer: Chip8Computer, *, start_address: int) -> None:
    cpu = computer.cpu_core
    if cpu is None:
        raise RuntimeError("CPU core is not available")
    cpu.registers.program_counter = start_address & ADDRESS_MASK


def _execute_program(
    computer: Chip8Computer,
    *,
    max_cycles: int | None,
    breakpoints: Sequence[int],
    max_seconds: float | None,
    trace: Optional[TextIO] = None,
) -> RunResult:
    cpu = computer.cpu_core
    if cpu is None:
        raise RuntimeError("CPU core is not available")
    result = RunResult()
    remaining = max_cycles
    break_set = {value & ADDRESS_MASK for value in breakpoints}
    deadline: float | None = None
    if max_seconds is not None and max_seconds >= 0:
        deadline = time.monotonic() + max_seconds
    # Tracing and breakpoints need per-instruction granularity.
    chunk = 1 if (trace is not None or break_set) else EXECUTION_CHUNK

    while remaining is None or remaining > 0:
        step = chunk if remaining is None else min(chunk, remaining)
        address = cpu.registers.program_counter
        opcode = computer.memory.load16(address)
        clock_before = computer.clock_count
        try:
            executed = computer.tick(step)
        except CPUError:
            result.halted = True
            result.executed += computer.clock_count - clock_before
            break
        if trace is not None and executed:
            trace.write(_format_trace_line(computer, address, opcode) + "\n")
        result.executed += executed
        if remaining is not None:
            remaining -= executed
        if cpu.status.halted or executed == 0:
            result.halted = cpu.status.halted
            break
        pc_value = cpu.registers.program_counter & ADDRESS_MASK
        if break_set and pc_value in break_set:
            result.break_hit = True
            break
        if deadline is not None and time.monotonic() >= deadline:
            result.timeout_hit = True
            break
        if remaining is not None and remaining <= 0:
            result.cycle_hit = True
            break

    return result


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chip8emu-debug-runner",
        description="Headless CHIP-8 runner for ROM diagnostics.",
    )
    parser.add_argument("--program", type=str, required=True, help="CHIP-8 ROM image")
    parser.add_argument("--config", type=str, default=None, help="JSON configuration file")
    parser.add_argument(
        "--start",
        type=str,
        default=f"0x{PROGRAM_START:03X}",
        help="Hex start address for PC (default: 0x200)",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=DEFAULT_MAX_CYCLES,
        help="Maximum instructions to execute (0 or negative disables the limit)",
    )
    parser.add_argument(
        "--break-pc",
        action="append",
        default=[],
        help="Break when PC reaches the given hex address (repeatable)",
    )
    parser.add_argument(
        "--dump",
        type=str,
        default=None,
        help="File path for memory dump (defaults to stdout)",
    )
    parser.add_argument(
        "--dump-range",
        action="append",
        default=[],
        help="Memory range to dump in START:END hex form (inclusive). Repeat to add multiple ranges.",
    )
    parser.add_argument(
        "--dump-format",
        choices=("hex", "bin", "none"),
        default="hex",
        help="Dump format (hex table, raw binary or no dump)",
    )
    parser.add_argument(
        "--seconds",
        type=float,
        default=None,
        help="Maximum wall-clock seconds to run before dumping memory",
    )
    parser.add_argument("--trace", action="store_true", help="Print every executed instruction to stderr")
    parser.add_argument("--screen", action="store_true", help="Print the framebuffer as ASCII after the run")
    parser.add_argument(
        "--halt-on-error",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stop at the first CPU error (overrides the config file)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for the RND instruction")
    parser.add_argument("--cpu-frequency", type=float, default=None, help="Instructions per second")
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="WARNING",
        help="Logging verbosity",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        start_address = _parse_hex(args.start)
    except ValueError as exc:
        parser.error(f"invalid start address: {exc}")

    breakpoints: List[int] = []
    for spec in args.break_pc:
        try:
            breakpoints.append(_parse_hex(spec))
        except ValueError as exc:
            parser.error(f"invalid breakpoint address '{spec}': {exc}")

    dump_ranges: List[DumpRange] = []
    for spec in args.dump_range:
        try:
            dump_ranges.append(_parse_range(spec))
        except ValueError as exc:
            parser.error(f"invalid dump range '{spec}': {exc}")

    try:
        config = load_config(args.config).merged(
            halt_on_error=args.halt_on_error,
            seed=args.seed,
            cpu_frequency=args.cpu_frequency,
        )
    except ConfigError as exc:
        parser.error(str(exc))

    computer = _setup_computer(config)

    try:
        computer.load_user_program(args.program)
    except ProgramLoadError as exc:
        print(f"Failed to load program: {exc}", file=sys.stderr)
        return EXIT_LOAD_FAILED

    _initialise_cpu_state(computer, start_address=start_address)

    cycle_limit = args.cycles if args.cycles > 0 else None

    result = _execute_program(
        computer,
        max_cycles=cycle_limit,
        breakpoints=breakpoints,
        max_seconds=args.seconds,
        trace=sys.stderr if args.trace else None,
    )

    if args.dump_format != "none":
        dump_target = Path(args.dump) if args.dump is not None else None
        _write_dump(computer.memory, dump_ranges, target=dump_target, fmt=args.dump_format)

    if args.screen:
        print(computer.display.render_ascii())

    if result.halted:
        error = computer.cpu_core.status.last_error
        print(f"Execution halted: {error}", file=sys.stderr)
        return EXIT_HALTED
    if result.break_hit:
        return EXIT_OK
    if result.timeout_hit:
        print("Execution stopped: time limit reached", file=sys.stderr)
        return EXIT_TIME_LIMIT
    if result.cycle_hit:
        print("Execution stopped: cycle limit reached", file=sys.stderr)
        return EXIT_CYCLE_LIMIT
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
