"""
Shared pytest fixtures for replay model tests.

This module provides:
- The path to the bundled replay directory (tests/fixtures/replay_basic)
- Fresh copies of each artifact document, safe to mutate per test
- Object ids used by the fixture
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from sui_replay.constants import ARTIFACT_FILENAMES, ARTIFACT_ORDER

FIXTURES_DIR = Path(__file__).parent / "fixtures"
REPLAY_BASIC = FIXTURES_DIR / "replay_basic"

# Object ids appearing in replay_basic
PKG = "0x" + "3f6c" * 16
GAS_COIN = "0x" + "9b1e" * 16
POOL = "0x" + "6a2b" * 16
USDC_COIN = "0x" + "4c8e" * 16
RECEIPT = "0x" + "1f2e" * 16
SENDER = "0x7d20dcdb2bca4f508ea9613994683eb4e76e9c4ed371169677c1be02aaf0b58e"
FRAMEWORK = "0x0000000000000000000000000000000000000000000000000000000000000002"


def _load_docs() -> dict[str, dict[str, Any]]:
    return {name: json.loads((REPLAY_BASIC / ARTIFACT_FILENAMES[name]).read_text()) for name in ARTIFACT_ORDER}


_DOCS = _load_docs()


@pytest.fixture
def replay_dir() -> Path:
    return REPLAY_BASIC


@pytest.fixture
def replay_docs() -> dict[str, dict[str, Any]]:
    """All five artifacts keyed by artifact name. Each test gets its own deep copy."""
    return copy.deepcopy(_DOCS)


@pytest.fixture
def copied_replay_dir(tmp_path: Path) -> Path:
    """A writable copy of replay_basic for tests that remove or corrupt files."""
    out = tmp_path / "replay"
    out.mkdir()
    for name in ARTIFACT_ORDER:
        filename = ARTIFACT_FILENAMES[name]
        (out / filename).write_text((REPLAY_BASIC / filename).read_text())
    return out
