"""
Programmable transaction data model: arguments, inputs and commands.

Parsing is lenient. Shapes that cannot be recognized become `UnknownArg`,
`UnknownInput` or `UnknownCommand` so that positional indices (Input_i, Cmd_i)
keep lining up with the raw transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from sui_replay.move_type import MoveType, normalize_address, normalize_type
from sui_replay.move_type import display_string as type_display
from sui_replay.move_type import qualified_string as type_qualified
from sui_replay.utils import parse_int

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Arguments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GasCoinArg:
    pass


@dataclass(frozen=True)
class InputArg:
    index: int


@dataclass(frozen=True)
class ResultArg:
    command: int


@dataclass(frozen=True)
class NestedResultArg:
    command: int
    result: int


@dataclass(frozen=True)
class UnknownArg:
    raw: Any = None


Argument = Union[GasCoinArg, InputArg, ResultArg, NestedResultArg, UnknownArg]


def _index(raw: Any) -> int | None:
    if isinstance(raw, int) and not isinstance(raw, bool) and raw >= 0:
        return raw
    return None


def parse_argument(raw: Any) -> Argument:
    """Parse "GasCoin", {"GasCoin": null}, {"Input": i}, {"Result": i} or {"NestedResult": [i, j]}."""
    if raw == "GasCoin":
        return GasCoinArg()
    if not isinstance(raw, dict):
        return UnknownArg(raw)
    if "GasCoin" in raw:
        return GasCoinArg()
    if "Input" in raw:
        idx = _index(raw["Input"])
        return InputArg(idx) if idx is not None else UnknownArg(raw)
    if "Result" in raw:
        idx = _index(raw["Result"])
        return ResultArg(idx) if idx is not None else UnknownArg(raw)
    if "NestedResult" in raw:
        pair = raw["NestedResult"]
        if isinstance(pair, list) and len(pair) == 2:
            cmd, res = _index(pair[0]), _index(pair[1])
            if cmd is not None and res is not None:
                return NestedResultArg(cmd, res)
    return UnknownArg(raw)


def parse_arguments(raw: Any) -> tuple[Argument, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(parse_argument(a) for a in raw)


def argument_label(arg: Argument) -> str:
    if isinstance(arg, GasCoinArg):
        return "gas_coin"
    if isinstance(arg, InputArg):
        return f"Input_{arg.index}"
    if isinstance(arg, ResultArg):
        return f"Cmd_{arg.command}"
    if isinstance(arg, NestedResultArg):
        return f"Cmd_{arg.command}.{arg.result}"
    return "unknown"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class ObjectMode(str, Enum):
    IMM_OR_OWNED = "ImmOrOwned"
    SHARED = "Shared"
    RECEIVING = "Receiving"


@dataclass(frozen=True)
class PureInput:
    data: bytes


@dataclass(frozen=True)
class ObjectInput:
    object_id: str
    mode: ObjectMode
    version: int | None = None
    digest: str | None = None
    mutable: bool | None = None


@dataclass(frozen=True)
class FundsWithdrawalInput:
    raw: Any = None


@dataclass(frozen=True)
class UnknownInput:
    raw: Any = None


Input = Union[PureInput, ObjectInput, FundsWithdrawalInput, UnknownInput]


def _object_ref(raw: Any) -> tuple[str, int | None, str | None] | None:
    """[object_id, version, digest] tuple used by owned and receiving objects."""
    if isinstance(raw, list) and raw and isinstance(raw[0], str):
        version = parse_int(raw[1]) if len(raw) > 1 else None
        digest = raw[2] if len(raw) > 2 and isinstance(raw[2], str) else None
        return raw[0], version, digest
    return None


def _parse_object_arg(obj: Any) -> Input:
    if not isinstance(obj, dict):
        return UnknownInput(obj)
    if "ImmOrOwnedObject" in obj:
        ref = _object_ref(obj["ImmOrOwnedObject"])
        if ref is not None:
            return ObjectInput(ref[0], ObjectMode.IMM_OR_OWNED, version=ref[1], digest=ref[2])
    elif "SharedObject" in obj:
        shared = obj["SharedObject"]
        if isinstance(shared, dict) and isinstance(shared.get("id"), str):
            mutable = shared.get("mutable")
            return ObjectInput(
                shared["id"],
                ObjectMode.SHARED,
                version=parse_int(shared.get("initial_shared_version")),
                mutable=mutable if isinstance(mutable, bool) else None,
            )
    elif "Receiving" in obj:
        ref = _object_ref(obj["Receiving"])
        if ref is not None:
            return ObjectInput(ref[0], ObjectMode.RECEIVING, version=ref[1], digest=ref[2])
    return UnknownInput(obj)


def parse_input(raw: Any) -> Input:
    """Parse {"Pure": [bytes]}, {"Object": {...}} or {"FundsWithdrawal": ...}."""
    if not isinstance(raw, dict):
        return UnknownInput(raw)
    if "Pure" in raw:
        data = raw["Pure"]
        if isinstance(data, list) and all(isinstance(b, int) and 0 <= b <= 255 for b in data):
            return PureInput(bytes(data))
        return UnknownInput(raw)
    if "Object" in raw:
        return _parse_object_arg(raw["Object"])
    if "FundsWithdrawal" in raw:
        return FundsWithdrawalInput(raw["FundsWithdrawal"])
    return UnknownInput(raw)


def parse_inputs(raw: Any) -> tuple[Input, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(parse_input(i) for i in raw)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MoveFunction:
    package: str
    module: str
    name: str
    type_arguments: tuple[MoveType, ...] = field(default_factory=tuple)

    def _render(self, base: str, qualified: bool) -> str:
        if not self.type_arguments:
            return base
        render = type_qualified if qualified else type_display
        return base + "<" + ", ".join(render(t) for t in self.type_arguments) + ">"

    def display_string(self) -> str:
        return self._render(f"{self.module}::{self.name}", qualified=False)

    def qualified_string(self) -> str:
        return self._render(f"{self.package}::{self.module}::{self.name}", qualified=True)


@dataclass(frozen=True)
class MoveCall:
    function: MoveFunction
    arguments: tuple[Argument, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SplitCoins:
    coin: Argument
    amounts: tuple[Argument, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MergeCoins:
    target: Argument
    sources: tuple[Argument, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MakeMoveVec:
    type_tag: MoveType | None
    elements: tuple[Argument, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TransferObjects:
    objects: tuple[Argument, ...]
    recipient: Argument


@dataclass(frozen=True)
class Publish:
    modules: tuple[str, ...] = field(default_factory=tuple)
    dependencies: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_module_bytes(self) -> int:
        return total_module_bytes(self.modules)


@dataclass(frozen=True)
class Upgrade:
    modules: tuple[str, ...]
    dependencies: tuple[str, ...]
    package_id: str
    ticket: Argument

    @property
    def total_module_bytes(self) -> int:
        return total_module_bytes(self.modules)


@dataclass(frozen=True)
class UnknownCommand:
    kind: str
    raw: Any = None


Command = Union[MoveCall, SplitCoins, MergeCoins, MakeMoveVec, TransferObjects, Publish, Upgrade, UnknownCommand]


def total_module_bytes(modules: tuple[Any, ...]) -> int:
    """
    Size of published bytecode. Modules arrive either as base64 strings or as
    byte arrays; base64 length is converted to decoded length.
    """
    total = 0
    for m in modules:
        if isinstance(m, str):
            padding = len(m) - len(m.rstrip("="))
            total += len(m) * 3 // 4 - padding
        elif isinstance(m, list):
            total += len(m)
    return total


def _str_tuple(raw: Any) -> tuple[Any, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(raw)


def _parse_move_call(mc: Any) -> Command:
    if not isinstance(mc, dict):
        return UnknownCommand("MoveCall", mc)
    package, module, function = mc.get("package"), mc.get("module"), mc.get("function")
    if not isinstance(package, str) or not isinstance(module, str) or not isinstance(function, str):
        return UnknownCommand("MoveCall", mc)
    type_args = mc.get("type_arguments") or []
    fn = MoveFunction(
        package=normalize_address(package),
        module=module,
        name=function,
        type_arguments=tuple(normalize_type(t) for t in type_args) if isinstance(type_args, list) else (),
    )
    return MoveCall(fn, parse_arguments(mc.get("arguments")))


def _pair(body: Any) -> tuple[Any, Any] | None:
    if isinstance(body, list) and len(body) == 2:
        return body[0], body[1]
    return None


def parse_command(raw: Any) -> Command:
    """Parse one entry of `ProgrammableTransaction.commands`, e.g. {"SplitCoins": [coin, amounts]}."""
    if not isinstance(raw, dict) or len(raw) != 1:
        return UnknownCommand("Unknown", raw)
    ((kind, body),) = raw.items()

    if kind == "MoveCall":
        return _parse_move_call(body)
    if kind in ("SplitCoins", "MergeCoins", "MakeMoveVec", "TransferObjects", "Publish"):
        pair = _pair(body)
        if pair is None:
            return UnknownCommand(kind, body)
        first, second = pair
        if kind == "SplitCoins":
            return SplitCoins(parse_argument(first), parse_arguments(second))
        if kind == "MergeCoins":
            return MergeCoins(parse_argument(first), parse_arguments(second))
        if kind == "MakeMoveVec":
            return MakeMoveVec(normalize_type(first) if first is not None else None, parse_arguments(second))
        if kind == "TransferObjects":
            return TransferObjects(parse_arguments(first), parse_argument(second))
        return Publish(_str_tuple(first), tuple(normalize_address(d) for d in _str_tuple(second) if isinstance(d, str)))
    if kind == "Upgrade":
        if isinstance(body, list) and len(body) == 4 and isinstance(body[2], str):
            modules, deps, package_id, ticket = body
            return Upgrade(
                _str_tuple(modules),
                tuple(normalize_address(d) for d in _str_tuple(deps) if isinstance(d, str)),
                normalize_address(package_id),
                parse_argument(ticket),
            )
        return UnknownCommand(kind, body)

    logger.debug(f"Unrecognized command kind: {kind}")
    return UnknownCommand(kind, body)


def parse_commands(raw: Any) -> tuple[Command, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(parse_command(c) for c in raw)


def command_kind(cmd: Command) -> str:
    if isinstance(cmd, UnknownCommand):
        return cmd.kind
    return type(cmd).__name__


# ---------------------------------------------------------------------------
# Call signatures (move_call_info.json)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallSignature:
    parameters: tuple[MoveType, ...] = field(default_factory=tuple)
    return_types: tuple[MoveType, ...] = field(default_factory=tuple)


def parse_signature(raw: Any) -> CallSignature | None:
    """A `command_signatures` entry; null (or any non-object) means no signature for that command."""
    if not isinstance(raw, dict):
        return None
    params = raw.get("parameters") or []
    returns = raw.get("return_types") or []
    return CallSignature(
        parameters=tuple(normalize_type(p) for p in params) if isinstance(params, list) else (),
        return_types=tuple(normalize_type(r) for r in returns) if isinstance(returns, list) else (),
    )


def parse_signatures(raw: Any) -> tuple[CallSignature | None, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(parse_signature(s) for s in raw)
