"""
Canonical Move type trees.

Replay artifacts describe the same type in many JSON shapes depending on which
producer wrote them: PTB type tags (`{"struct": {...}}`), signature types
(`{"Datatype": [...]}`, `{"DatatypeInstantiation": [...]}`), cache object
descriptions (`{address, module, name, type_args}`), extractor types
(`{"kind": "datatype", ...}`) and already-rendered display strings.
`normalize_type()` folds all of them into one small set of frozen dataclasses.

Normalization is total: unrecognized shapes become `UnknownType`, never an
exception.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Union

from sui_replay.constants import (
    COIN_MODULE,
    COIN_STRUCT,
    PACKAGE_MODULE,
    STD_OPTION_MODULE,
    STD_OPTION_STRUCT,
    STDLIB_ADDRESS,
    SUI_FRAMEWORK_ADDRESS,
    SUI_MODULE,
    SUI_STRUCT,
    UPGRADE_CAP_STRUCT,
)

logger = logging.getLogger(__name__)

PRIMITIVE_NAMES = frozenset({"bool", "u8", "u16", "u32", "u64", "u128", "u256", "address", "signer"})


@dataclass(frozen=True)
class PrimitiveType:
    name: str


@dataclass(frozen=True)
class VectorType:
    element: MoveType


@dataclass(frozen=True)
class ReferenceType:
    inner: MoveType
    mutable: bool = False


@dataclass(frozen=True)
class TypeParameterType:
    index: int


@dataclass(frozen=True)
class StructType:
    """A struct/datatype. `package` is a normalized address, or None when parsed from a short display string."""

    package: str | None
    module: str
    name: str
    type_args: tuple[MoveType, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class UnknownType:
    """Sentinel for types that could not be resolved. Still renderable."""

    label: str = "unknown"


MoveType = Union[PrimitiveType, VectorType, ReferenceType, TypeParameterType, StructType, UnknownType]

UNKNOWN = UnknownType()


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


def normalize_address(addr: str) -> str:
    """
    Canonicalize an address to its short form: 0x prefix, lowercase, no leading zeros.

    Examples:
      - "0x0002" -> "0x2"
      - "2" -> "0x2"
      - "0x0" / "0x" -> "0x0"
    """
    s = addr.strip().lower()
    if s.startswith("0x"):
        s = s[2:]
    s = s.lstrip("0")
    return "0x" + (s or "0")


def pad_address(addr: str) -> str:
    """Expand an address to 32 bytes (64 hex chars) with 0x prefix."""
    h = normalize_address(addr)[2:]
    if len(h) > 64:
        return "0x" + h
    return "0x" + h.rjust(64, "0")


def addresses_equal(a: str, b: str) -> bool:
    return normalize_address(a) == normalize_address(b)


# ---------------------------------------------------------------------------
# Well-known types
# ---------------------------------------------------------------------------

SUI_TYPE = StructType(SUI_FRAMEWORK_ADDRESS, SUI_MODULE, SUI_STRUCT)
SUI_COIN_TYPE = StructType(SUI_FRAMEWORK_ADDRESS, COIN_MODULE, COIN_STRUCT, (SUI_TYPE,))
UPGRADE_CAP_TYPE = StructType(SUI_FRAMEWORK_ADDRESS, PACKAGE_MODULE, UPGRADE_CAP_STRUCT)
ADDRESS_TYPE = PrimitiveType("address")


def coin_type(inner: MoveType) -> StructType:
    return StructType(SUI_FRAMEWORK_ADDRESS, COIN_MODULE, COIN_STRUCT, (inner,))


def is_option_type(t: MoveType) -> bool:
    return (
        isinstance(t, StructType)
        and t.package is not None
        and normalize_address(t.package) == STDLIB_ADDRESS
        and t.module == STD_OPTION_MODULE
        and t.name == STD_OPTION_STRUCT
    )


def option_inner_type(t: MoveType) -> MoveType | None:
    """Return T for `0x1::option::Option<T>`, or None if not available."""
    if not is_option_type(t):
        return None
    assert isinstance(t, StructType)
    if len(t.type_args) != 1:
        return None
    inner = t.type_args[0]
    if isinstance(inner, UnknownType):
        return None
    return inner


def strip_reference(t: MoveType) -> MoveType:
    while isinstance(t, ReferenceType):
        t = t.inner
    return t


def is_known(t: MoveType | None) -> bool:
    return t is not None and not isinstance(t, UnknownType)


# ---------------------------------------------------------------------------
# JSON normalization
# ---------------------------------------------------------------------------

# PTB/signature enum tags for primitives
_PRIMITIVE_TAGS = {
    "Bool": "bool",
    "U8": "u8",
    "U16": "u16",
    "U32": "u32",
    "U64": "u64",
    "U128": "u128",
    "U256": "u256",
    "Address": "address",
    "Signer": "signer",
}


def _primitive_name(tag: str) -> str | None:
    if tag in _PRIMITIVE_TAGS:
        return _PRIMITIVE_TAGS[tag]
    lower = tag.lower()
    if lower in PRIMITIVE_NAMES:
        return lower
    return None


def _struct(address: Any, module: Any, name: Any, type_args: Any) -> MoveType:
    if not isinstance(address, str) or not isinstance(module, str) or not isinstance(name, str):
        return UNKNOWN
    args: tuple[MoveType, ...] = ()
    if isinstance(type_args, list):
        args = tuple(normalize_type(a) for a in type_args)
    return StructType(normalize_address(address), module, name, args)


def _type_parameter(idx: Any) -> MoveType:
    # Indices are u16
    if isinstance(idx, int) and not isinstance(idx, bool) and 0 <= idx <= 0xFFFF:
        return TypeParameterType(idx)
    return UNKNOWN


def _from_kind(raw: dict[str, Any]) -> MoveType:
    """Canonical extractor shape: {"kind": "datatype" | "vector" | "ref" | "type_param" | <primitive>, ...}."""
    kind = raw.get("kind")
    if not isinstance(kind, str):
        return UNKNOWN
    if kind in PRIMITIVE_NAMES:
        return PrimitiveType(kind)
    if kind == "vector":
        return VectorType(normalize_type(raw.get("type")))
    if kind == "ref":
        return ReferenceType(normalize_type(raw.get("to")), bool(raw.get("mutable")))
    if kind == "type_param":
        idx = raw.get("index")
        return _type_parameter(idx)
    if kind == "datatype":
        return _struct(raw.get("address"), raw.get("module"), raw.get("name"), raw.get("type_args"))
    return UNKNOWN


def normalize_type(raw: Any) -> MoveType:
    """
    Normalize any known JSON encoding of a Move type into a MoveType.

    Shapes are matched in a fixed priority order; the first match wins:
      1. None -> UnknownType
      2. str: primitive tag ("U8", "u8") or a display string ("0x2::coin::Coin<0x2::sui::SUI>")
      3. {"U64": ...} / {"u64": ...}: single primitive key
      4. {"vector": T} / {"Vector": T}
      5. {"Reference": T} / {"MutableReference": T}
      6. {"TypeParameter": i}
      7. {"struct": {address, module, name, type_args}}
      8. {"Struct": [[address, module, name, _]]}
      9. {"DatatypeInstantiation": [[address, module, name, _], type_args]}
     10. {"Datatype": [address, module, name, _]}
     11. {address, module, name, type_args}: cache MoveObject description
     12. {"kind": ...}: canonical extractor type
    """
    if raw is None:
        return UNKNOWN

    if isinstance(raw, str):
        prim = _primitive_name(raw.strip())
        if prim is not None:
            return PrimitiveType(prim)
        return parse_type_string(raw)

    if not isinstance(raw, dict):
        return UNKNOWN

    if len(raw) == 1:
        (key,) = raw.keys()
        prim = _primitive_name(key) if isinstance(key, str) else None
        if prim is not None:
            return PrimitiveType(prim)

    for key in ("vector", "Vector"):
        if key in raw:
            return VectorType(normalize_type(raw[key]))

    if "Reference" in raw:
        return ReferenceType(normalize_type(raw["Reference"]), mutable=False)
    if "MutableReference" in raw:
        return ReferenceType(normalize_type(raw["MutableReference"]), mutable=True)

    if "TypeParameter" in raw:
        idx = raw["TypeParameter"]
        return _type_parameter(idx)

    if "struct" in raw:
        s = raw["struct"]
        if isinstance(s, dict):
            return _struct(s.get("address"), s.get("module"), s.get("name"), s.get("type_args"))
        return UNKNOWN

    if "Struct" in raw:
        s = raw["Struct"]
        if isinstance(s, dict):
            return _struct(s.get("address"), s.get("module"), s.get("name"), s.get("type_args"))
        # Either [[address, module, name, type_params]] or a flat [address, module, name, ...]
        if isinstance(s, list) and s and isinstance(s[0], list):
            s = s[0]
        if isinstance(s, list) and len(s) >= 3:
            return _struct(s[0], s[1], s[2], None)
        return UNKNOWN

    if "DatatypeInstantiation" in raw:
        inst = raw["DatatypeInstantiation"]
        if isinstance(inst, list) and len(inst) == 2 and isinstance(inst[0], list) and len(inst[0]) >= 3:
            head, type_args = inst
            return _struct(head[0], head[1], head[2], type_args)
        return UNKNOWN

    if "Datatype" in raw:
        dt = raw["Datatype"]
        if isinstance(dt, list) and len(dt) >= 3:
            return _struct(dt[0], dt[1], dt[2], None)
        return UNKNOWN

    if "address" in raw and "module" in raw and "name" in raw:
        return _struct(raw.get("address"), raw.get("module"), raw.get("name"), raw.get("type_args"))

    if "kind" in raw:
        return _from_kind(raw)

    logger.debug(f"Unrecognized type shape: {raw!r}")
    return UNKNOWN


# ---------------------------------------------------------------------------
# Display strings
# ---------------------------------------------------------------------------


def split_type_args(args_str: str) -> list[str]:
    """
    Split a generic argument list on top-level commas.

    Example: "a<b, c>, d" -> ["a<b, c>", "d"]
    """
    args: list[str] = []
    current: list[str] = []
    depth = 0
    for ch in args_str:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif ch == "," and depth == 0:
            part = "".join(current).strip()
            if part:
                args.append(part)
            current = []
            continue
        current.append(ch)
    part = "".join(current).strip()
    if part:
        args.append(part)
    return args


# Rendered HTML may escape the generic brackets; nothing else is decoded.
_HTML_ESCAPES = (("&lt;", "<"), ("&gt;", ">"), ("&amp;", "&"))

# Generic arguments nested deeper than this parse as unknown
MAX_TYPE_DEPTH = 128


def parse_type_string(type_str: str) -> MoveType:
    """
    Parse a rendered type ("module::Name<A, B>", "0x2::coin::Coin<0x2::sui::SUI>",
    "vector<u8>", "&mut T") back into a MoveType.
    """
    s = type_str
    for escaped, plain in _HTML_ESCAPES:
        s = s.replace(escaped, plain)
    return _parse(s, 0)


def _parse(type_str: str, depth: int) -> MoveType:
    if depth > MAX_TYPE_DEPTH:
        return UNKNOWN

    # Reference and vector wrappers, outermost first
    wrappers: list[str] = []
    s = type_str.strip()
    while True:
        if s.startswith("&mut "):
            wrappers.append("&mut")
            s = s[5:].strip()
        elif s.startswith("&"):
            wrappers.append("&")
            s = s[1:].strip()
        elif s.startswith("vector<") and s.endswith(">"):
            wrappers.append("vector")
            s = s[7:-1].strip()
        else:
            break

    t = _parse_base(s, depth)
    for w in reversed(wrappers):
        if w == "vector":
            t = VectorType(t)
        else:
            t = ReferenceType(t, mutable=w == "&mut")
    return t


def _parse_base(s: str, depth: int) -> MoveType:
    if not s:
        return UNKNOWN

    lower = s.lower()
    if lower in PRIMITIVE_NAMES:
        return PrimitiveType(lower)

    if len(s) > 1 and s[0] == "T" and s[1:].isascii() and s[1:].isdigit():
        return _type_parameter(int(s[1:]))

    generic_start = s.find("<")
    type_args: tuple[MoveType, ...] = ()
    if generic_start == -1:
        base = s
    else:
        if not s.endswith(">"):
            return UNKNOWN
        base = s[:generic_start]
        type_args = tuple(_parse(a, depth + 1) for a in split_type_args(s[generic_start + 1 : -1]))

    parts = base.split("::")
    if len(parts) == 2 and all(parts):
        return StructType(None, parts[0], parts[1], type_args)
    if len(parts) == 3 and all(parts):
        return StructType(normalize_address(parts[0]), parts[1], parts[2], type_args)
    return UNKNOWN


def _render(t: MoveType, qualified: bool, padded: bool = False) -> str:
    if isinstance(t, PrimitiveType):
        return t.name
    if isinstance(t, VectorType):
        return f"vector<{_render(t.element, qualified, padded)}>"
    if isinstance(t, ReferenceType):
        prefix = "&mut " if t.mutable else "&"
        return prefix + _render(t.inner, qualified, padded)
    if isinstance(t, TypeParameterType):
        return f"T{t.index}"
    if isinstance(t, StructType):
        if qualified and t.package is not None:
            pkg = pad_address(t.package) if padded else t.package
            base = f"{pkg}::{t.module}::{t.name}"
        else:
            base = f"{t.module}::{t.name}"
        if t.type_args:
            base += "<" + ", ".join(_render(a, qualified, padded) for a in t.type_args) + ">"
        return base
    if isinstance(t, UnknownType):
        return t.label
    raise TypeError(f"not a MoveType: {t!r}")


def display_string(t: MoveType) -> str:
    """Short form without packages: module::Name<Args>."""
    return _render(t, qualified=False)


def qualified_string(t: MoveType, padded: bool = False) -> str:
    """
    Fully qualified form: 0xPackage::module::Name<Args>.

    With `padded=True` every package is rendered as a full 32-byte address
    (0x000...0002::coin::Coin<...>), which is how on-chain type tags print.
    """
    return _render(t, qualified=True, padded=padded)


def instantiate(t: MoveType, type_args: tuple[MoveType, ...]) -> MoveType:
    """Substitute TypeParameter(i) with type_args[i]; out-of-range parameters are left as-is."""
    if isinstance(t, TypeParameterType):
        if 0 <= t.index < len(type_args):
            return type_args[t.index]
        return t
    if isinstance(t, VectorType):
        return VectorType(instantiate(t.element, type_args))
    if isinstance(t, ReferenceType):
        return ReferenceType(instantiate(t.inner, type_args), t.mutable)
    if isinstance(t, StructType) and t.type_args:
        return StructType(t.package, t.module, t.name, tuple(instantiate(a, type_args) for a in t.type_args))
    return t


def with_package(t: MoveType, resolve: Callable[[str, str], str | None]) -> MoveType:
    """
    Fill in missing struct packages using `resolve(module, name) -> str | None`.

    Used for types parsed from short display strings, where only the module and
    name survive rendering.
    """
    if isinstance(t, VectorType):
        return VectorType(with_package(t.element, resolve))
    if isinstance(t, ReferenceType):
        return ReferenceType(with_package(t.inner, resolve), t.mutable)
    if isinstance(t, StructType):
        args = tuple(with_package(a, resolve) for a in t.type_args)
        pkg = t.package
        if pkg is None:
            found = resolve(t.module, t.name)
            pkg = normalize_address(found) if found else None
        return StructType(pkg, t.module, t.name, args)
    return t
