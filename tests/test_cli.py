"""CLI tests for the `inspect` and `decode` subcommands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import PKG
from rich.console import Console

from sui_replay import cli


@pytest.fixture
def console(monkeypatch) -> Console:
    """Wide recording console so tables do not wrap type names."""
    c = Console(record=True, width=400)
    monkeypatch.setattr(cli, "console", c)
    return c


def test_inspect_prints_commands_objects_and_gas(replay_dir: Path, console: Console) -> None:
    cli.main(["inspect", str(replay_dir)])
    out = console.export_text()
    assert "pool::swap<sui::SUI>" in out
    assert "SplitCoins<coin::Coin<sui::SUI>>" in out
    assert "Input_0: u64 = 1_000_000" in out
    assert "Cmd_0.0: coin::Coin<sui::SUI>" in out
    assert "Created" in out
    assert "Net gas charges" in out
    assert "1,905,574" in out
    assert "Diagnostics" not in out


def test_inspect_qualified(replay_dir: Path, console: Console) -> None:
    cli.main(["inspect", "--qualified", str(replay_dir)])
    out = console.export_text()
    framework = "0x" + "0" * 63 + "2"
    assert f"{framework}::coin::Coin<{framework}::sui::SUI>" in out
    assert f"{PKG}::pool::Pool" in out


def test_inspect_shows_diagnostics(copied_replay_dir: Path, console: Console) -> None:
    (copied_replay_dir / "move_call_info.json").unlink()
    cli.main(["inspect", str(copied_replay_dir)])
    out = console.export_text()
    assert "Diagnostics" in out
    assert "Cmd_2 Cmd_1: Cmd_1 has no result 0" in out


def test_inspect_malformed_artifact_exits_2(copied_replay_dir: Path, console: Console) -> None:
    path = copied_replay_dir / "transaction_data.json"
    doc = json.loads(path.read_text())
    del doc["V1"]["sender"]
    path.write_text(json.dumps(doc))

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["inspect", str(copied_replay_dir)])
    assert exc_info.value.code == 2
    assert "transaction_data: V1.sender: missing required field" in console.export_text()


def test_inspect_missing_dir_exits_2(tmp_path: Path, console: Console) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["inspect", str(tmp_path / "nope")])
    assert exc_info.value.code == 2
    assert "not a directory" in console.export_text()


def test_inspect_writes_jsonl_log(replay_dir: Path, tmp_path: Path, console: Console) -> None:
    cli.main(["inspect", str(replay_dir), "--log-dir", str(tmp_path), "--run-id", "t1"])
    root = tmp_path / "t1"

    meta = json.loads((root / "run_metadata.json").read_text())
    assert meta["commands"] == 4
    assert meta["replay_dir"] == str(replay_dir)

    events = [json.loads(line) for line in (root / "events.jsonl").read_text().strip().splitlines()]
    assert [e["event"] for e in events] == ["inspection_started", "inspection_finished"]
    assert events[1]["diagnostics"] == 0

    rows = (root / "objects.jsonl").read_text().strip().splitlines()
    assert len(rows) == 6


def test_decode_with_context(console: Console) -> None:
    cli.main(["decode", "0x40420f0000000000", "--context", "amount"])
    out = console.export_text()
    assert "type: u64 (decoded)" in out
    assert "value: 1_000_000" in out


def test_decode_with_type(console: Console) -> None:
    cli.main(["decode", "03010203", "--type", "vector<u8>"])
    assert "value: [1, 2, 3]" in console.export_text()


def test_decode_unsupported_type_stays_raw(console: Console) -> None:
    cli.main(["decode", "0x026869", "--type", "0x1::string::String"])
    out = console.export_text()
    assert "type: string::String (raw)" in out
    assert "value: 0x026869" in out


def test_decode_invalid_hex_exits_2(console: Console) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["decode", "zz"])
    assert exc_info.value.code == 2


def test_missing_subcommand_is_usage_error() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 2
