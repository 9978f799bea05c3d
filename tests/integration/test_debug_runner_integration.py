from __future__ import annotations

from pathlib import Path

from chip8emu import debug_runner


class FakeTime:
    def __init__(self) -> None:
        self.current = 0.0

    def monotonic(self) -> float:
        value = self.current
        self.current += 0.6
        return value


def _write_rom(path: Path, payload: bytes) -> Path:
    path.write_bytes(payload)
    return path


def test_debug_runner_breaks_and_dumps(tmp_path, capsys) -> None:
    rom_path = _write_rom(tmp_path / "loop.ch8", bytes([0x6A, 0x2B, 0x12, 0x02]))

    exit_code = debug_runner.main(
        [
            "--program",
            str(rom_path),
            "--cycles",
            "512",
            "--break-pc",
            "0x202",
            "--dump-range",
            "200:20F",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == debug_runner.EXIT_OK
    output_lines = [line for line in captured.out.strip().splitlines() if line]
    assert output_lines[0].startswith("ADDR")
    assert "0200 6A 2B 12 02" in output_lines[1]


def test_debug_runner_time_limit(tmp_path, capsys, monkeypatch) -> None:
    rom_path = _write_rom(tmp_path / "spin.ch8", bytes([0x12, 0x00]))

    fake_time = FakeTime()
    monkeypatch.setattr(debug_runner, "time", fake_time)

    exit_code = debug_runner.main(
        [
            "--program",
            str(rom_path),
            "--cycles",
            "0",
            "--seconds",
            "1",
            "--dump-range",
            "200:200",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == debug_runner.EXIT_TIME_LIMIT
    assert "time limit" in captured.err


def test_debug_runner_cycle_limit(tmp_path, capsys) -> None:
    rom_path = _write_rom(tmp_path / "spin.ch8", bytes([0x12, 0x00]))

    exit_code = debug_runner.main(["--program", str(rom_path), "--cycles", "100", "--dump-format", "none"])

    captured = capsys.readouterr()
    assert exit_code == debug_runner.EXIT_CYCLE_LIMIT
    assert captured.out == ""
    assert "cycle limit" in captured.err


def test_debug_runner_reports_halt(tmp_path, capsys) -> None:
    rom_path = _write_rom(tmp_path / "bad.ch8", bytes([0x60, 0x01, 0xFF, 0xFF]))

    exit_code = debug_runner.main(
        ["--program", str(rom_path), "--halt-on-error", "--dump-format", "none", "--log-level", "ERROR"]
    )

    captured = capsys.readouterr()
    assert exit_code == debug_runner.EXIT_HALTED
    assert "Execution halted" in captured.err
    assert "0xFFFF" in captured.err


def test_debug_runner_missing_program(tmp_path, capsys) -> None:
    exit_code = debug_runner.main(["--program", str(tmp_path / "absent.ch8")])

    captured = capsys.readouterr()
    assert exit_code == debug_runner.EXIT_LOAD_FAILED
    assert "Failed to load program" in captured.err


def test_debug_runner_binary_dump_and_screen(tmp_path, capsys) -> None:
    # LD I, 0x050 ; DRW V0, V0, 5 ; JP 0x204
    rom = bytes([0xA0, 0x50, 0xD0, 0x05, 0x12, 0x04])
    rom_path = _write_rom(tmp_path / "glyph.ch8", rom)
    dump_path = tmp_path / "dump.bin"

    exit_code = debug_runner.main(
        [
            "--program",
            str(rom_path),
            "--break-pc",
            "0x204",
            "--dump",
            str(dump_path),
            "--dump-format",
            "bin",
            "--dump-range",
            "200:205",
            "--screen",
        ]
    )

    captured = capsys.readouterr()
    assert exit_code == debug_runner.EXIT_OK
    assert dump_path.read_bytes() == rom
    screen = captured.out.splitlines()
    assert screen[0].startswith("####.")
    assert screen[1].startswith("#..#.")


def test_command_line_turns_off_config_halt_on_error(tmp_path, capsys) -> None:
    # invalid word, then JP 0x202
    rom_path = _write_rom(tmp_path / "bad.ch8", bytes([0xFF, 0xFF, 0x12, 0x02]))
    config_path = tmp_path / "chip8.json"
    config_path.write_text('{"halt_on_error": true}', encoding="utf-8")
    base = ["--program", str(rom_path), "--config", str(config_path), "--cycles", "50", "--dump-format", "none"]

    assert debug_runner.main(base) == debug_runner.EXIT_HALTED
    assert debug_runner.main(base + ["--no-halt-on-error"]) == debug_runner.EXIT_CYCLE_LIMIT
    capsys.readouterr()
