from __future__ import annotations

import io

import pytest

from chip8emu import debug_runner
from chip8emu.chip8.computer import Chip8Computer


class DummyMemory:
    def __init__(self) -> None:
        self.values = {0x000: 0x12, 0x001: 0x34, 0x00F: 0xAB, 0x010: 0xCD}

    def load8(self, address: int) -> int:
        return self.values.get(address & 0xFFF, 0x00)


def make_computer(program: bytes) -> Chip8Computer:
    computer = Chip8Computer()
    computer.power_on()
    computer.load_program_bytes(program)
    return computer


def test_parse_hex_accepts_prefixed_and_plain() -> None:
    assert debug_runner._parse_hex("0x0300") == 0x0300
    assert debug_runner._parse_hex("300") == 0x0300


@pytest.mark.parametrize("value", ["", "0x1000", "xyz", "-1"])
def test_parse_hex_rejects_invalid(value: str) -> None:
    with pytest.raises(ValueError):
        debug_runner._parse_hex(value)


def test_parse_range_and_merge() -> None:
    rng = debug_runner._parse_range("010:01F")
    assert rng.start == 0x010
    assert rng.end == 0x01F
    merged = debug_runner._merge_ranges(
        [debug_runner.DumpRange(0x000, 0x00F), debug_runner.DumpRange(0x010, 0x015)]
    )
    assert merged == [debug_runner.DumpRange(0x000, 0x015)]
    with pytest.raises(ValueError):
        debug_runner._parse_range("020:010")
    with pytest.raises(ValueError):
        debug_runner._parse_range("020")


def test_merge_ranges_defaults_to_full_memory() -> None:
    merged = debug_runner._merge_ranges([])
    assert merged == [debug_runner.DumpRange(0x000, 0xFFF)]


def test_format_hex_dump_renders_expected_table() -> None:
    memory = DummyMemory()
    dump = debug_runner._format_hex_dump(memory, [debug_runner.DumpRange(0x000, 0x010)])
    lines = dump.splitlines()
    assert lines[0].startswith("ADDR")
    assert lines[1].startswith("0000 12 34")
    assert lines[1].endswith("AB")
    assert lines[2].startswith("0010 CD 00")


def test_initialise_cpu_state_sets_pc() -> None:
    class DummyCPU:
        def __init__(self) -> None:
            self.registers = type("Regs", (), {"program_counter": 0})()

    class DummyComputer:
        def __init__(self) -> None:
            self.cpu_core = DummyCPU()

    comp = DummyComputer()
    debug_runner._initialise_cpu_state(comp, start_address=0x1234)
    assert comp.cpu_core.registers.program_counter == 0x234


def test_execute_program_stops_at_breakpoint() -> None:
    # LD V0, 1 ; LD V1, 2 ; JP 0x204
    computer = make_computer(bytes([0x60, 0x01, 0x61, 0x02, 0x12, 0x04]))
    result = debug_runner._execute_program(
        computer, max_cycles=100, breakpoints=[0x204], max_seconds=None
    )
    assert result.break_hit
    assert result.executed == 2


def test_execute_program_reports_cycle_limit() -> None:
    computer = make_computer(bytes([0x12, 0x00]))
    result = debug_runner._execute_program(computer, max_cycles=200, breakpoints=[], max_seconds=None)
    assert result.cycle_hit
    assert result.executed == 200


def test_execute_program_reports_halt() -> None:
    computer = Chip8Computer(halt_on_error=True)
    computer.power_on()
    computer.load_program_bytes(bytes([0x60, 0x01, 0xF0, 0xFF]))
    result = debug_runner._execute_program(computer, max_cycles=50, breakpoints=[], max_seconds=None)
    assert result.halted
    assert result.executed == 2


def test_trace_lines_show_disassembly() -> None:
    computer = make_computer(bytes([0x6A, 0x2B, 0x12, 0x02]))
    trace = io.StringIO()
    debug_runner._execute_program(computer, max_cycles=2, breakpoints=[], max_seconds=None, trace=trace)
    lines = trace.getvalue().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("200  6A2B  LD VA, 0x2B")
    assert "V=[00 00 00 00 00 00 00 00 00 00 2B" in lines[0]
    assert lines[1].startswith("202  1202  JP 0x202")


def test_halt_on_error_flag_is_tristate() -> None:
    parser = debug_runner._build_argument_parser()
    assert parser.parse_args(["--program", "x"]).halt_on_error is None
    assert parser.parse_args(["--program", "x", "--halt-on-error"]).halt_on_error is True
    assert parser.parse_args(["--program", "x", "--no-halt-on-error"]).halt_on_error is False
