"""
On-disk record of one `sui-replay inspect` run.

Layout under `<log-dir>/<run-id>/`:
- run_metadata.json: summary of the inspected transaction
- events.jsonl: timestamped events, one per diagnostic plus start/finish markers
- objects.jsonl: one row per object touched by the transaction
"""

from __future__ import annotations

import json
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sui_replay.move_type import qualified_string

if TYPE_CHECKING:
    from sui_replay.transaction import Transaction

_UNSAFE_RUN_ID_CHARS = re.compile(r"[^\w.-]")
_MAX_RUN_ID_LENGTH = 120


def default_run_id(*, prefix: str) -> str:
    """`<prefix>_<UTC timestamp>_<random hex>`; the suffix separates runs started in the same second."""
    return f"{prefix}_{time.strftime('%Y%m%dT%H%M%SZ', time.gmtime())}_{secrets.token_hex(4)}"


def _append_jsonl(path: Path, row: dict[str, Any]) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(json.dumps(row, sort_keys=True) + "\n")


@dataclass(frozen=True)
class InspectionPaths:
    root: Path

    @property
    def run_metadata(self) -> Path:
        return self.root / "run_metadata.json"

    @property
    def events(self) -> Path:
        return self.root / "events.jsonl"

    @property
    def objects(self) -> Path:
        return self.root / "objects.jsonl"


class InspectionLog:
    def __init__(self, *, base_dir: Path, run_id: str) -> None:
        safe_id = _UNSAFE_RUN_ID_CHARS.sub("_", run_id)[:_MAX_RUN_ID_LENGTH]
        self.paths = InspectionPaths(base_dir / safe_id)
        self.paths.root.mkdir(parents=True, exist_ok=True)

    def write_run_metadata(self, obj: dict[str, Any]) -> None:
        self.paths.run_metadata.write_text(json.dumps(obj, indent=2, sort_keys=True) + "\n")

    def event(self, name: str, **fields: object) -> None:
        """Append `{"t": <unix seconds>, "event": name, **fields}` to events.jsonl."""
        _append_jsonl(self.paths.events, {"t": int(time.time()), "event": name, **fields})

    def object_row(self, row: dict[str, Any]) -> None:
        _append_jsonl(self.paths.objects, row)

    def record_transaction(self, tx: Transaction, *, replay_dir: str) -> None:
        """Write metadata, one event per diagnostic and one row per object for an aggregated transaction."""
        self.write_run_metadata(
            {
                "started_at_unix_seconds": int(time.time()),
                "replay_dir": replay_dir,
                "digest": tx.digest,
                "sender": tx.sender,
                "epoch": tx.epoch,
                "checkpoint": tx.checkpoint,
                "network": tx.network,
                "kind": tx.kind_name,
                "commands": len(tx.commands),
                "objects": len(tx.objects),
            }
        )
        for d in tx.diagnostics:
            self.event("diagnostic", command=d.command, argument=d.argument, message=d.message)
        for o in tx.objects:
            t = o.move_type
            self.object_row(
                {
                    "object_id": o.object_id,
                    "version": o.version,
                    "status": o.status.value,
                    "source": o.source.value,
                    "type": qualified_string(t) if t is not None else None,
                }
            )
