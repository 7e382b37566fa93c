from __future__ import annotations

from pathlib import Path

import pytest

from sui_replay.artifacts import load_artifact, load_replay_dir
from sui_replay.errors import ArtifactLoadError
from sui_replay.transaction import Transaction
from sui_replay.utils import parse_int, safe_json_loads, safe_read_text


def test_load_replay_dir(replay_dir: Path) -> None:
    artifacts = load_replay_dir(replay_dir)
    assert artifacts.move_call_info is not None
    tx = Transaction.from_artifacts(artifacts)
    assert len(tx.commands) == 4


def test_optional_artifacts_may_be_absent(copied_replay_dir: Path) -> None:
    (copied_replay_dir / "transaction_gas_report.json").unlink()
    (copied_replay_dir / "move_call_info.json").unlink()
    artifacts = load_replay_dir(copied_replay_dir)
    assert artifacts.transaction_gas_report is None
    assert artifacts.move_call_info is None
    assert artifacts.transaction_effects is not None


def test_required_artifact_missing(copied_replay_dir: Path) -> None:
    (copied_replay_dir / "transaction_data.json").unlink()
    with pytest.raises(ArtifactLoadError) as exc_info:
        load_replay_dir(copied_replay_dir)
    assert exc_info.value.artifact == "transaction_data"
    assert exc_info.value.code == "artifact_load_failed"


def test_not_a_directory(tmp_path: Path) -> None:
    with pytest.raises(ArtifactLoadError, match="not a directory"):
        load_replay_dir(tmp_path / "missing")


def test_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "transaction_data.json"
    path.write_text("{not json")
    with pytest.raises(ArtifactLoadError, match="JSON parse error in transaction_data"):
        load_artifact(path, "transaction_data")


def test_json_must_be_object(tmp_path: Path) -> None:
    path = tmp_path / "move_call_info.json"
    path.write_text("[1, 2]")
    with pytest.raises(ArtifactLoadError, match="expected a JSON object, got list"):
        load_artifact(path, "move_call_info")


def test_json_surrounded_by_log_lines(tmp_path: Path) -> None:
    path = tmp_path / "replay_cache_summary.json"
    path.write_text('WARN fetching checkpoint\n{"cache_entries": []}\ndone\n')
    assert load_artifact(path, "replay_cache_summary") == {"cache_entries": []}


# ---------------------------------------------------------------------------
# utils
# ---------------------------------------------------------------------------


def test_safe_read_text_missing(tmp_path: Path) -> None:
    assert safe_read_text(tmp_path / "nope.json", context="x") is None


def test_safe_json_loads_snippet() -> None:
    with pytest.raises(ValueError, match="snippet"):
        safe_json_loads("no braces here", context="ctx")


@pytest.mark.parametrize(
    "val,expected",
    [(5, 5), ("18446744073709551615", 2**64 - 1), (" 7 ", 7), ("-1", None), (1.5, None), (True, None), (None, None)],
)
def test_parse_int(val, expected) -> None:
    assert parse_int(val) == expected
