"""
Type inference over a programmable transaction's command list.

`infer_commands()` is a single left-to-right fold. Each command's return
types are appended to a `ReturnTypeTable` as soon as the command is resolved,
and later commands read that table when an argument is `Result(i)` or
`NestedResult(i, j)`. Reading an index that is not yet in the table (a
forward or out-of-range reference) degrades to `UnknownType`.

Nothing in this module raises on bad data. Every degraded resolution is
logged at DEBUG and recorded as a `Diagnostic` so callers can show why a type
ended up unknown.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import assert_never

from sui_replay.bcs import CONTEXT_ADDRESS, CONTEXT_AMOUNT, CONTEXT_GENERAL, PureValue, decode_pure
from sui_replay.catalog import ObjectCatalog
from sui_replay.commands import (
    Argument,
    CallSignature,
    Command,
    GasCoinArg,
    Input,
    InputArg,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    NestedResultArg,
    ObjectInput,
    Publish,
    PureInput,
    ResultArg,
    SplitCoins,
    TransferObjects,
    UnknownArg,
    UnknownCommand,
    Upgrade,
    argument_label,
    command_kind,
)
from sui_replay.move_type import (
    ADDRESS_TYPE,
    SUI_COIN_TYPE,
    UNKNOWN,
    UPGRADE_CAP_TYPE,
    MoveType,
    StructType,
    VectorType,
    display_string,
    instantiate,
    is_known,
    parse_type_string,
    strip_reference,
    with_package,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    command: int
    argument: str | None
    message: str


@dataclass(frozen=True)
class ResolvedArgument:
    label: str
    role: str
    move_type: MoveType
    object_id: str | None = None
    value: PureValue | None = None


@dataclass(frozen=True)
class ResolvedCommand:
    index: int
    command: Command
    kind: str
    display_name: str
    type_arguments: tuple[MoveType, ...] = field(default_factory=tuple)
    arguments: tuple[ResolvedArgument, ...] = field(default_factory=tuple)
    returns: tuple[MoveType, ...] = field(default_factory=tuple)
    signature: CallSignature | None = None

    @property
    def is_void(self) -> bool:
        return not self.returns


class ReturnTypeTable:
    """
    Append-only map of command index to resolved return types.

    Entries are written strictly in program order, so a lookup made while
    resolving command i can only ever see commands 0..i-1.
    """

    def __init__(self) -> None:
        self._returns: list[tuple[MoveType, ...]] = []

    def __len__(self) -> int:
        return len(self._returns)

    def record(self, index: int, returns: tuple[MoveType, ...]) -> None:
        if index != len(self._returns):
            raise ValueError(f"return types must be recorded in order: expected {len(self._returns)}, got {index}")
        self._returns.append(returns)

    def returns_of(self, command: int) -> tuple[MoveType, ...] | None:
        if 0 <= command < len(self._returns):
            return self._returns[command]
        return None

    def lookup(self, command: int, result: int = 0) -> MoveType | None:
        returns = self.returns_of(command)
        if returns is None or not 0 <= result < len(returns):
            return None
        return returns[result]


class _CommandInference:
    """State for one `infer_commands()` call."""

    def __init__(
        self,
        inputs: Sequence[Input],
        catalog: ObjectCatalog,
        signatures: Sequence[CallSignature | None],
    ) -> None:
        self.inputs = inputs
        self.catalog = catalog
        self.signatures = signatures
        self.table = ReturnTypeTable()
        self.diagnostics: list[Diagnostic] = []

    def note(self, index: int, label: str | None, message: str) -> None:
        logger.debug(f"Cmd_{index} {label or '-'}: {message}")
        self.diagnostics.append(Diagnostic(index, label, message))

    def qualify(self, t: MoveType) -> MoveType:
        """Fill packages of structs parsed from short display strings using the cache."""
        return with_package(t, self.catalog.find_package_for_type)

    # -- arguments ---------------------------------------------------------

    def argument_type(self, index: int, arg: Argument) -> tuple[MoveType, str | None]:
        """Resolve the type of a non-pure argument; returns (type, object_id)."""
        label = argument_label(arg)
        if isinstance(arg, GasCoinArg):
            return SUI_COIN_TYPE, None
        if isinstance(arg, InputArg):
            if arg.index >= len(self.inputs):
                self.note(index, label, f"input index out of range ({len(self.inputs)} inputs)")
                return UNKNOWN, None
            inp = self.inputs[arg.index]
            if isinstance(inp, ObjectInput):
                t = self.catalog.move_type_of(inp.object_id)
                if t is None:
                    self.note(index, label, f"object {inp.object_id} not in cache")
                    return UNKNOWN, inp.object_id
                return t, inp.object_id
            if isinstance(inp, PureInput):
                return UNKNOWN, None
            self.note(index, label, f"unsupported input kind {type(inp).__name__}")
            return UNKNOWN, None
        if isinstance(arg, (ResultArg, NestedResultArg)):
            result = arg.result if isinstance(arg, NestedResultArg) else 0
            if arg.command >= index:
                self.note(index, label, "reference to a command that has not run yet")
                return UNKNOWN, None
            t = self.table.lookup(arg.command, result)
            if t is None:
                self.note(index, label, f"Cmd_{arg.command} has no result {result}")
                return UNKNOWN, None
            return t, None
        if isinstance(arg, UnknownArg):
            self.note(index, label, f"unrecognized argument {arg.raw!r}")
            return UNKNOWN, None
        assert_never(arg)

    def resolve_argument(
        self,
        index: int,
        arg: Argument,
        role: str,
        declared: MoveType | None = None,
        context: str = CONTEXT_GENERAL,
    ) -> ResolvedArgument:
        """
        Resolve one argument. Pure inputs are decoded with `declared` when it is
        known, else by length; other arguments take `declared` over the inferred
        type when it is known.
        """
        label = argument_label(arg)
        if isinstance(arg, InputArg) and arg.index < len(self.inputs):
            inp = self.inputs[arg.index]
            if isinstance(inp, PureInput):
                value = decode_pure(inp.data, declared, context)
                if is_known(declared):
                    assert declared is not None
                    t = declared
                elif value.type_name is not None:
                    t = parse_type_string(value.type_name)
                else:
                    t = UNKNOWN
                if not value.decoded:
                    self.note(index, label, f"pure value of {len(inp.data)} bytes left undecoded")
                return ResolvedArgument(label=label, role=role, move_type=t, value=value)

        t, object_id = self.argument_type(index, arg)
        if is_known(declared):
            assert declared is not None
            t = declared
        return ResolvedArgument(label=label, role=role, move_type=t, object_id=object_id)

    # -- commands ----------------------------------------------------------

    def resolve(self, index: int, cmd: Command) -> ResolvedCommand:
        kind = command_kind(cmd)

        if isinstance(cmd, MoveCall):
            sig = self.signatures[index] if index < len(self.signatures) else None
            fn = cmd.function
            type_args = tuple(self.qualify(t) for t in fn.type_arguments)
            params: tuple[MoveType, ...] = ()
            returns: tuple[MoveType, ...] = ()
            if sig is None:
                logger.debug(f"Cmd_{index}: no signature for {fn.display_string()}")
            else:
                params = tuple(self.qualify(instantiate(p, type_args)) for p in sig.parameters)
                returns = tuple(self.qualify(instantiate(r, type_args)) for r in sig.return_types)
            args = []
            for j, arg in enumerate(cmd.arguments):
                declared = params[j] if j < len(params) else None
                args.append(self.resolve_argument(index, arg, "arg", declared, CONTEXT_GENERAL))
            return ResolvedCommand(
                index=index,
                command=cmd,
                kind=kind,
                display_name=fn.display_string(),
                type_arguments=type_args,
                arguments=tuple(args),
                returns=returns,
                signature=sig,
            )

        if isinstance(cmd, SplitCoins):
            coin = self.resolve_argument(index, cmd.coin, "coin")
            coin_t = self._coin_type(index, coin)
            amounts = tuple(
                self.resolve_argument(index, a, "amount", context=CONTEXT_AMOUNT) for a in cmd.amounts
            )
            return self._coin_command(index, cmd, kind, coin_t, (coin, *amounts), (coin_t,) * len(cmd.amounts))

        if isinstance(cmd, MergeCoins):
            target = self.resolve_argument(index, cmd.target, "coin")
            coin_t = self._coin_type(index, target)
            declared = coin_t if is_known(coin_t) else None
            sources = tuple(self.resolve_argument(index, s, "source", declared) for s in cmd.sources)
            return self._coin_command(index, cmd, kind, coin_t, (target, *sources), ())

        if isinstance(cmd, MakeMoveVec):
            elements: list[ResolvedArgument] = []
            elem_t: MoveType = UNKNOWN
            if cmd.type_tag is not None and is_known(cmd.type_tag):
                elem_t = self.qualify(cmd.type_tag)
            elif cmd.elements:
                # Untagged vectors take the type of their first element
                elements.append(self.resolve_argument(index, cmd.elements[0], "element"))
                elem_t = strip_reference(elements[0].move_type)
            if not is_known(elem_t):
                self.note(index, None, "could not infer vector element type")
            declared = elem_t if is_known(elem_t) else None
            for e in cmd.elements[len(elements) :]:
                elements.append(self.resolve_argument(index, e, "element", declared))
            name = f"MakeMoveVec<{display_string(elem_t)}>" if is_known(elem_t) else "MakeMoveVec<T>"
            return ResolvedCommand(
                index=index,
                command=cmd,
                kind=kind,
                display_name=name,
                type_arguments=(elem_t,),
                arguments=tuple(elements),
                returns=(VectorType(elem_t),),
            )

        if isinstance(cmd, TransferObjects):
            objects = tuple(self.resolve_argument(index, o, "object") for o in cmd.objects)
            recipient = self.resolve_argument(index, cmd.recipient, "recipient", ADDRESS_TYPE, CONTEXT_ADDRESS)
            return ResolvedCommand(
                index=index, command=cmd, kind=kind, display_name=kind, arguments=(*objects, recipient)
            )

        if isinstance(cmd, Publish):
            return ResolvedCommand(index=index, command=cmd, kind=kind, display_name=kind, returns=(UPGRADE_CAP_TYPE,))

        if isinstance(cmd, Upgrade):
            ticket = self.resolve_argument(index, cmd.ticket, "ticket")
            return ResolvedCommand(index=index, command=cmd, kind=kind, display_name=kind, arguments=(ticket,))

        if isinstance(cmd, UnknownCommand):
            self.note(index, None, f"unrecognized command {cmd.kind}")
            return ResolvedCommand(index=index, command=cmd, kind=kind, display_name=kind)

        assert_never(cmd)

    def _coin_type(self, index: int, coin: ResolvedArgument) -> MoveType:
        t = strip_reference(coin.move_type)
        if isinstance(t, StructType):
            return t
        self.note(index, coin.label, "could not resolve coin type")
        return UNKNOWN

    def _coin_command(
        self,
        index: int,
        cmd: Command,
        kind: str,
        coin_t: MoveType,
        arguments: tuple[ResolvedArgument, ...],
        returns: tuple[MoveType, ...],
    ) -> ResolvedCommand:
        name = f"{kind}<{display_string(coin_t)}>" if is_known(coin_t) else f"{kind}<T>"
        return ResolvedCommand(
            index=index,
            command=cmd,
            kind=kind,
            display_name=name,
            type_arguments=(coin_t,),
            arguments=arguments,
            returns=returns,
        )


def infer_commands(
    commands: Sequence[Command],
    inputs: Sequence[Input],
    catalog: ObjectCatalog,
    signatures: Sequence[CallSignature | None] = (),
) -> tuple[tuple[ResolvedCommand, ...], tuple[Diagnostic, ...]]:
    """
    Resolve argument and return types for every command in program order.

    Args:
        commands: Parsed PTB commands.
        inputs: Parsed PTB inputs (indexed by Input(i)).
        catalog: Cached objects used to type object inputs.
        signatures: `command_signatures` aligned 1:1 with `commands`; may be shorter or contain None.

    Returns:
        (resolved commands, diagnostics for every degraded resolution)
    """
    state = _CommandInference(inputs, catalog, signatures)
    resolved: list[ResolvedCommand] = []
    for index, cmd in enumerate(commands):
        rc = state.resolve(index, cmd)
        state.table.record(index, rc.returns)
        resolved.append(rc)
    return tuple(resolved), tuple(state.diagnostics)


def infer_command_return_type(
    resolved: Sequence[ResolvedCommand], command: int, result: int = 0
) -> MoveType:
    """Return type `result` of command `command`, or UnknownType when out of range."""
    if not 0 <= command < len(resolved):
        return UNKNOWN
    returns = resolved[command].returns
    if not 0 <= result < len(returns):
        return UNKNOWN
    return returns[result]
