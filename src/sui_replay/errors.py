"""Error types for replay aggregation.

Only malformed artifacts are fatal. Undecodable values and unresolvable types
are recovered locally and surface as sentinel values instead of exceptions.
"""

from __future__ import annotations

from typing import Any


class ReplayModelError(Exception):
    """Base class for replay model errors."""

    def __init__(self, code: str, message: str, data: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.data = data or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a JSON-serializable dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }


class AggregationError(ReplayModelError):
    """A required artifact field is missing or has the wrong shape."""

    def __init__(self, artifact: str, field: str, reason: str):
        self.artifact = artifact
        self.field = field
        self.reason = reason
        super().__init__(
            code="malformed_artifact",
            message=f"{artifact}: {field}: {reason}",
            data={"artifact": artifact, "field": field, "reason": reason},
        )


class ArtifactLoadError(ReplayModelError):
    """An artifact file could not be read or parsed."""

    def __init__(self, artifact: str, path: str, reason: str):
        self.artifact = artifact
        self.path = path
        self.reason = reason
        super().__init__(
            code="artifact_load_failed",
            message=f"Failed to load {artifact} from {path}: {reason}",
            data={"artifact": artifact, "path": path, "reason": reason},
        )


class BcsDecodeError(ValueError):
    """Raised when a byte buffer does not match the expected encoding."""

    pass
