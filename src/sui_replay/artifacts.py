"""Loading replay artifacts from a directory of JSON files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sui_replay.constants import ARTIFACT_FILENAMES, ARTIFACT_ORDER, REQUIRED_ARTIFACTS
from sui_replay.errors import ArtifactLoadError
from sui_replay.transaction import ReplayArtifacts
from sui_replay.utils import safe_json_loads, safe_read_text

logger = logging.getLogger(__name__)


def load_artifact(path: Path, name: str) -> dict[str, Any]:
    """
    Read and parse one artifact file.

    Raises:
        ArtifactLoadError: the file is missing, unreadable, not JSON, or not a JSON object.
    """
    text = safe_read_text(path, context=name)
    if text is None:
        raise ArtifactLoadError(name, str(path), "file not found or unreadable")
    try:
        doc = safe_json_loads(text, context=name)
    except ValueError as e:
        raise ArtifactLoadError(name, str(path), str(e)) from e
    if not isinstance(doc, dict):
        raise ArtifactLoadError(name, str(path), f"expected a JSON object, got {type(doc).__name__}")
    return doc


def load_replay_dir(replay_dir: Path) -> ReplayArtifacts:
    """
    Load the replay artifacts stored in `replay_dir` under their standard file names.

    Optional artifacts that are absent are skipped; a missing required artifact
    raises ArtifactLoadError.
    """
    if not replay_dir.is_dir():
        raise ArtifactLoadError("replay", str(replay_dir), "not a directory")

    docs: dict[str, dict[str, Any]] = {}
    for name in ARTIFACT_ORDER:
        path = replay_dir / ARTIFACT_FILENAMES[name]
        if not path.exists():
            if name in REQUIRED_ARTIFACTS:
                raise ArtifactLoadError(name, str(path), "required artifact missing")
            logger.info(f"Optional artifact {path.name} not found; skipping")
            continue
        docs[name] = load_artifact(path, name)
        logger.debug(f"Loaded {path}")
    return ReplayArtifacts.from_mapping(docs)
