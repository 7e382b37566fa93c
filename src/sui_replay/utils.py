"""Shared helpers for reading artifacts and coercing JSON scalars."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def safe_read_text(path: Path, context: str = "") -> str | None:
    """
    Read text from a file with comprehensive error handling.

    Args:
        path: Path to the file.
        context: Context for error messages.

    Returns:
        File content as string, or None if reading failed.
    """
    if not path.exists():
        logger.debug(f"File not found: {path} ({context})")
        return None

    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Failed to read {path} ({context}): {e}")
        return None


def safe_json_loads(text: str, *, context: str = "", max_snippet_len: int = 100) -> Any:
    """
    Parse JSON with better error messages and robust recovery from noisy strings.

    Heuristic: If direct parsing fails, it looks for the first/last brace span
    to extract a JSON object from surrounding log lines (replay tools sometimes
    print warnings to the same stream they dump artifacts to).
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        s = text.strip()
        start = s.find("{")
        end = s.rfind("}")
        if start != -1 and end > start:
            try:
                return json.loads(s[start : end + 1])
            except json.JSONDecodeError:
                pass

        lo = max(0, e.pos - max_snippet_len // 2)
        hi = min(len(text), e.pos + max_snippet_len // 2)
        snippet = text[lo:hi]
        if lo > 0:
            snippet = "..." + snippet
        if hi < len(text):
            snippet = snippet + "..."
        raise ValueError(
            f"JSON parse error{f' in {context}' if context else ''}: {e.msg}\nPosition {e.pos}, snippet: {snippet!r}"
        ) from e


def parse_int(val: Any) -> int | None:
    """
    Coerce a JSON number or decimal string to int.

    u64 values above 2**53 are often serialized as strings, so both forms are
    accepted. Floats, bools and anything else return None.
    """
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    if isinstance(val, str):
        s = val.strip()
        if s.isdigit():
            return int(s)
    return None
