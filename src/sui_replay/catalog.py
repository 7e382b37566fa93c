"""Lookup table of cached objects and packages, keyed by normalized object id."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Union

from sui_replay.constants import MOVE_PACKAGE_LABEL
from sui_replay.move_type import MoveType, StructType, UnknownType, normalize_address, normalize_type
from sui_replay.utils import parse_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageKind:
    module_names: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MoveObjectKind:
    move_type: StructType


@dataclass(frozen=True)
class UnknownKind:
    pass


ObjectKind = Union[PackageKind, MoveObjectKind, UnknownKind]


@dataclass(frozen=True)
class CacheEntry:
    object_id: str
    version: int | None
    kind: ObjectKind


def parse_object_kind(object_type: Any) -> ObjectKind:
    """Classify a cache entry's `object_type` ({"Package": ...} or {"MoveObject": ...})."""
    if not isinstance(object_type, dict):
        return UnknownKind()
    if "Package" in object_type:
        pkg = object_type["Package"] or {}
        names = pkg.get("module_names") if isinstance(pkg, dict) else None
        if not isinstance(names, list):
            names = []
        return PackageKind(tuple(str(n) for n in names))
    if "MoveObject" in object_type:
        t = normalize_type(object_type["MoveObject"])
        if isinstance(t, StructType):
            return MoveObjectKind(t)
        logger.debug(f"Cached MoveObject with unrecognized type: {object_type['MoveObject']!r}")
    return UnknownKind()


class ObjectCatalog:
    """
    Read-only view over `replay_cache_summary.cache_entries`.

    Ids are normalized on the way in and on lookup, so "0x0002" and "0x2"
    refer to the same entry. Iteration follows cache order.
    """

    def __init__(self, entries: list[CacheEntry] | None = None) -> None:
        self._entries: dict[str, CacheEntry] = {}
        for entry in entries or []:
            key = normalize_address(entry.object_id)
            if key in self._entries:
                logger.debug(f"Duplicate cache entry for {entry.object_id}; keeping the first")
                continue
            self._entries[key] = entry

    @classmethod
    def from_cache_entries(cls, raw_entries: list[dict[str, Any]]) -> ObjectCatalog:
        entries: list[CacheEntry] = []
        for raw in raw_entries:
            object_id = raw.get("object_id") if isinstance(raw, dict) else None
            if not isinstance(object_id, str):
                logger.warning(f"Skipping cache entry without object_id: {raw!r}")
                continue
            entries.append(
                CacheEntry(
                    object_id=object_id,
                    version=parse_int(raw.get("version")),
                    kind=parse_object_kind(raw.get("object_type")),
                )
            )
        return cls(entries)

    def get(self, object_id: str) -> CacheEntry | None:
        return self._entries.get(normalize_address(object_id))

    def __contains__(self, object_id: object) -> bool:
        return isinstance(object_id, str) and normalize_address(object_id) in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def move_type_of(self, object_id: str) -> MoveType | None:
        """Type of a cached object; packages resolve to the MovePackage sentinel, absent ids to None."""
        entry = self.get(object_id)
        if entry is None:
            return None
        if isinstance(entry.kind, MoveObjectKind):
            return entry.kind.move_type
        if isinstance(entry.kind, PackageKind):
            return UnknownType(MOVE_PACKAGE_LABEL)
        return UnknownType()

    def find_package_for_type(self, module: str, name: str) -> str | None:
        """Package of the first cached object whose struct (or a type argument of it) is module::name."""
        for entry in self._entries.values():
            if not isinstance(entry.kind, MoveObjectKind):
                continue
            found = _search_struct(entry.kind.move_type, module, name)
            if found is not None:
                return found
        return None


def _search_struct(t: MoveType, module: str, name: str) -> str | None:
    if not isinstance(t, StructType):
        return None
    if t.module == module and t.name == name and t.package is not None:
        return t.package
    for arg in t.type_args:
        found = _search_struct(arg, module, name)
        if found is not None:
            return found
    return None
