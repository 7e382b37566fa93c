"""
Decoding of BCS-encoded pure transaction inputs.

Covers only what is needed for display: fixed-width little-endian primitives,
ULEB128-length-prefixed vectors of primitives, 32-byte addresses and
`0x1::option::Option<T>`.

The low-level decoders raise `BcsDecodeError`. `decode_pure()` is the entry
point used during inference and never raises: undecodable bytes come back as
raw hex with `decoded=False`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sui_replay.errors import BcsDecodeError
from sui_replay.move_type import (
    MoveType,
    PrimitiveType,
    StructType,
    VectorType,
    display_string,
    is_known,
    is_option_type,
    option_inner_type,
    strip_reference,
)

logger = logging.getLogger(__name__)

# Byte width of each fixed-size primitive
PRIMITIVE_WIDTHS: dict[str, int] = {
    "bool": 1,
    "u8": 1,
    "u16": 2,
    "u32": 4,
    "u64": 8,
    "u128": 16,
    "u256": 32,
    "address": 32,
}

# Contexts understood by infer_pure_type()
CONTEXT_GENERAL = "general"
CONTEXT_AMOUNT = "amount"
CONTEXT_ADDRESS = "address"

_AMOUNT_WIDTHS = {8: "u64", 16: "u128", 32: "u256"}
_LENGTH_TABLE = {2: "u16", 4: "u32", 8: "u64", 16: "u128"}


@dataclass(frozen=True)
class Some:
    """A present Option value."""

    value: Any


@dataclass(frozen=True)
class RawHex:
    """Bytes that could not be decoded further; rendered as hex."""

    data: bytes

    def __str__(self) -> str:
        return to_hex(self.data)


def to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def read_uleb128(data: bytes, offset: int = 0) -> tuple[int, int]:
    """
    Read an unsigned LEB128 integer starting at `offset`.

    Returns:
        (value, consumed) where consumed is the number of bytes read.

    Raises:
        BcsDecodeError: if the buffer ends before the terminating byte.
    """
    value = 0
    shift = 0
    pos = offset
    while True:
        if pos >= len(data):
            raise BcsDecodeError(f"ULEB128 truncated at offset {pos}")
        byte = data[pos]
        value |= (byte & 0x7F) << shift
        pos += 1
        if byte & 0x80 == 0:
            return value, pos - offset
        shift += 7


def decode_primitive(data: bytes, name: str) -> bool | int | str:
    """Decode one fixed-width primitive from the front of `data`. Trailing bytes are ignored."""
    width = PRIMITIVE_WIDTHS.get(name)
    if width is None:
        raise BcsDecodeError(f"Unsupported primitive: {name}")
    if len(data) < width:
        raise BcsDecodeError(f"{name} needs {width} bytes, got {len(data)}")
    chunk = bytes(data[:width])
    if name == "bool":
        return chunk[0] != 0
    if name == "address":
        return to_hex(chunk)
    return int.from_bytes(chunk, "little")


def decode_vector(data: bytes, element: str) -> list[bool | int | str]:
    """Decode `vector<element>`: ULEB128 length followed by that many fixed-width elements."""
    width = PRIMITIVE_WIDTHS.get(element)
    if width is None:
        raise BcsDecodeError(f"Unsupported vector element: {element}")
    count, pos = read_uleb128(data)
    if len(data) - pos < count * width:
        raise BcsDecodeError(f"vector<{element}> of length {count} exceeds buffer ({len(data)} bytes)")
    out: list[bool | int | str] = []
    for _ in range(count):
        out.append(decode_primitive(data[pos : pos + width], element))
        pos += width
    return out


def decode_option(data: bytes, inner: Callable[[bytes], Any] | None = None) -> Some | None:
    """
    Decode an Option: discriminant 0 is None, 1 is Some(inner(rest)).

    When `inner` is None, or the inner bytes do not decode, the payload is kept
    as RawHex instead of failing.
    """
    if len(data) == 0:
        raise BcsDecodeError("Empty Option buffer")
    tag = data[0]
    if tag == 0:
        return None
    if tag != 1:
        raise BcsDecodeError(f"Invalid Option discriminant: {tag}")
    rest = bytes(data[1:])
    if inner is None:
        return Some(RawHex(rest))
    try:
        return Some(inner(rest))
    except BcsDecodeError as e:
        logger.debug(f"Option payload kept as hex: {e}")
        return Some(RawHex(rest))


def infer_pure_type(data: bytes, context: str = CONTEXT_GENERAL) -> str | None:
    """
    Guess a primitive from the buffer length when no declared type is available.

    Heuristic table:
      - amount context: 8/16/32 bytes -> u64/u128/u256
      - 1 byte: bool if the byte is 0 or 1, else u8
      - 2/4/8/16 bytes: u16/u32/u64/u128
      - 32 bytes: address in the address context, else u256
    """
    n = len(data)
    if context == CONTEXT_AMOUNT and n in _AMOUNT_WIDTHS:
        return _AMOUNT_WIDTHS[n]
    if n == 1:
        return "bool" if data[0] in (0, 1) else "u8"
    if n in _LENGTH_TABLE:
        return _LENGTH_TABLE[n]
    if n == 32:
        return "address" if context == CONTEXT_ADDRESS else "u256"
    return None


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value:_}"
    if value is None:
        return "None"
    if isinstance(value, Some):
        return f"Some({format_value(value.value)})"
    if isinstance(value, list):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    return str(value)


# Integers rendered with `_` separators are never truncated
_FORMATTED_INT = re.compile(r"-?\d[\d_]*\Z")


@dataclass(frozen=True)
class PureValue:
    """A pure input after decoding. `type_name` is the type actually used, declared or inferred."""

    data: bytes
    type_name: str | None
    value: Any
    decoded: bool

    @property
    def hex(self) -> str:
        return to_hex(self.data)

    def display(self, max_length: int | None = None) -> str:
        """Formatted value, cut to `max_length` unless it is a plain integer."""
        text = format_value(self.value) if self.decoded else self.hex
        if max_length is not None and len(text) > max_length and not _FORMATTED_INT.match(text):
            return text[: max_length - 3] + "..."
        return text


def _decoder_for(t: MoveType) -> Callable[[bytes], Any] | None:
    if isinstance(t, PrimitiveType):
        if t.name not in PRIMITIVE_WIDTHS:
            return None
        name = t.name
        return lambda d: decode_primitive(d, name)
    if isinstance(t, VectorType):
        if isinstance(t.element, PrimitiveType) and t.element.name in PRIMITIVE_WIDTHS:
            element = t.element.name
            return lambda d: decode_vector(d, element)
        return None
    if isinstance(t, StructType) and is_option_type(t):
        inner = option_inner_type(t)
        inner_decoder = _decoder_for(inner) if inner is not None else None
        return lambda d: decode_option(d, inner_decoder)
    return None


def _raw(data: bytes, type_name: str | None) -> PureValue:
    return PureValue(data=data, type_name=type_name, value=to_hex(data), decoded=False)


def decode_pure(data: bytes, move_type: MoveType | None = None, context: str = CONTEXT_GENERAL) -> PureValue:
    """
    Decode a pure input for display.

    The declared type is used when it is known; otherwise a primitive is
    guessed from the buffer length. Never raises.
    """
    data = bytes(data)
    target = strip_reference(move_type) if move_type is not None else None

    decoder = _decoder_for(target) if target is not None and is_known(target) else None
    if decoder is None:
        if isinstance(target, (StructType, VectorType)):
            # Declared but outside the supported subset (String, vector<vector<u8>>, ...)
            return _raw(data, display_string(target))
        guessed = infer_pure_type(data, context)
        if guessed is None:
            return _raw(data, None)
        target = PrimitiveType(guessed)
        decoder = _decoder_for(target)
        assert decoder is not None

    try:
        value = decoder(data)
    except BcsDecodeError as e:
        logger.debug(f"Pure value kept as hex ({display_string(target)}): {e}")
        return _raw(data, display_string(target))
    return PureValue(data=data, type_name=display_string(target), value=value, decoded=True)
