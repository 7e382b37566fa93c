"""Tests for the command type inference fold.

Covers result chaining between commands, degraded resolutions and the
program-order guarantee of the return type table.
"""

from __future__ import annotations

import hypothesis.strategies as st
import pytest
from hypothesis import given

from sui_replay.catalog import CacheEntry, MoveObjectKind, ObjectCatalog, PackageKind
from sui_replay.commands import (
    CallSignature,
    GasCoinArg,
    InputArg,
    MakeMoveVec,
    MergeCoins,
    MoveCall,
    MoveFunction,
    NestedResultArg,
    ObjectInput,
    ObjectMode,
    Publish,
    PureInput,
    ResultArg,
    SplitCoins,
    TransferObjects,
    UnknownCommand,
)
from sui_replay.inference import (
    Diagnostic,
    ReturnTypeTable,
    infer_command_return_type,
    infer_commands,
)
from sui_replay.move_type import (
    ADDRESS_TYPE,
    SUI_COIN_TYPE,
    SUI_TYPE,
    UNKNOWN,
    UPGRADE_CAP_TYPE,
    PrimitiveType,
    ReferenceType,
    StructType,
    TypeParameterType,
    UnknownType,
    VectorType,
    coin_type,
    display_string,
    parse_type_string,
)

POOL_TYPE = StructType("0xabc", "pool", "Pool", (SUI_TYPE,))
USDC_TYPE = StructType("0xabc", "usdc", "USDC")
RECIPIENT = bytes(range(32))
AMOUNT_5 = bytes([5, 0, 0, 0, 0, 0, 0, 0])


@pytest.fixture
def catalog() -> ObjectCatalog:
    return ObjectCatalog(
        [
            CacheEntry("0xabc", 1, PackageKind(("pool", "usdc"))),
            CacheEntry("0x77", 10, MoveObjectKind(POOL_TYPE)),
            CacheEntry("0x88", 11, MoveObjectKind(coin_type(USDC_TYPE))),
        ]
    )


def test_make_move_vec_over_split_coin(catalog: ObjectCatalog) -> None:
    commands = (
        SplitCoins(GasCoinArg(), (InputArg(0),)),
        MakeMoveVec(None, (NestedResultArg(0, 0),)),
    )
    resolved, diagnostics = infer_commands(commands, (PureInput(AMOUNT_5),), catalog)

    split, vec = resolved
    assert split.returns == (SUI_COIN_TYPE,)
    assert split.display_name == "SplitCoins<coin::Coin<sui::SUI>>"
    assert split.arguments[1].role == "amount"
    assert split.arguments[1].value is not None
    assert split.arguments[1].value.value == 5

    assert vec.returns == (VectorType(SUI_COIN_TYPE),)
    assert display_string(vec.returns[0]) == "vector<coin::Coin<sui::SUI>>"
    assert vec.display_name == "MakeMoveVec<coin::Coin<sui::SUI>>"
    assert diagnostics == ()


def test_split_coins_returns_one_coin_per_amount(catalog: ObjectCatalog) -> None:
    inputs = (ObjectInput("0x88", ObjectMode.IMM_OR_OWNED), PureInput(AMOUNT_5), PureInput(AMOUNT_5))
    resolved, _ = infer_commands((SplitCoins(InputArg(0), (InputArg(1), InputArg(2))),), inputs, catalog)
    assert resolved[0].returns == (coin_type(USDC_TYPE), coin_type(USDC_TYPE))
    assert resolved[0].arguments[0].object_id == "0x88"
    assert resolved[0].display_name == "SplitCoins<coin::Coin<usdc::USDC>>"


def test_merge_coins_is_void_and_types_sources(catalog: ObjectCatalog) -> None:
    commands = (
        SplitCoins(GasCoinArg(), (InputArg(0),)),
        MergeCoins(GasCoinArg(), (ResultArg(0),)),
    )
    resolved, diagnostics = infer_commands(commands, (PureInput(AMOUNT_5),), catalog)
    merge = resolved[1]
    assert merge.is_void
    assert [a.role for a in merge.arguments] == ["coin", "source"]
    assert merge.arguments[1].move_type == SUI_COIN_TYPE
    assert diagnostics == ()


def test_move_call_instantiates_signature(catalog: ObjectCatalog) -> None:
    fn = MoveFunction("0xabc", "pool", "deposit", (SUI_TYPE,))
    sig = CallSignature(
        parameters=(
            ReferenceType(StructType("0xabc", "pool", "Pool", (TypeParameterType(0),)), mutable=True),
            PrimitiveType("u64"),
        ),
        return_types=(coin_type(TypeParameterType(0)),),
    )
    inputs = (ObjectInput("0x77", ObjectMode.SHARED, mutable=True), PureInput(AMOUNT_5))
    resolved, diagnostics = infer_commands((MoveCall(fn, (InputArg(0), InputArg(1))),), inputs, catalog, (sig,))

    call = resolved[0]
    assert call.display_name == "pool::deposit<sui::SUI>"
    assert call.arguments[0].move_type == ReferenceType(POOL_TYPE, mutable=True)
    assert call.arguments[0].object_id == "0x77"
    assert call.arguments[1].move_type == PrimitiveType("u64")
    assert call.arguments[1].value is not None
    assert call.arguments[1].value.display() == "5"
    assert call.returns == (SUI_COIN_TYPE,)
    assert call.signature is sig
    assert diagnostics == ()


def test_move_call_qualifies_short_type_arguments(catalog: ObjectCatalog) -> None:
    fn = MoveFunction("0xabc", "pool", "swap", (parse_type_string("usdc::USDC"),))
    sig = CallSignature(return_types=(parse_type_string("coin::Coin<T0>"),))
    resolved, _ = infer_commands((MoveCall(fn, ()),), (), catalog, (sig,))
    assert resolved[0].type_arguments == (USDC_TYPE,)
    assert resolved[0].returns == (coin_type(USDC_TYPE),)


def test_move_call_without_signature_is_void(catalog: ObjectCatalog) -> None:
    fn = MoveFunction("0xabc", "pool", "poke")
    resolved, _ = infer_commands((MoveCall(fn, (InputArg(0),)),), (PureInput(bytes([1])),), catalog)
    assert resolved[0].is_void
    assert resolved[0].arguments[0].move_type == PrimitiveType("bool")


def test_transfer_objects_recipient_is_address(catalog: ObjectCatalog) -> None:
    commands = (TransferObjects((InputArg(0),), InputArg(1)),)
    inputs = (ObjectInput("0x88", ObjectMode.IMM_OR_OWNED), PureInput(RECIPIENT))
    resolved, _ = infer_commands(commands, inputs, catalog)
    obj, recipient = resolved[0].arguments
    assert obj.role == "object"
    assert obj.move_type == coin_type(USDC_TYPE)
    assert recipient.role == "recipient"
    assert recipient.move_type == ADDRESS_TYPE
    assert recipient.value is not None
    assert recipient.value.value == "0x" + RECIPIENT.hex()
    assert resolved[0].is_void


def test_publish_returns_upgrade_cap(catalog: ObjectCatalog) -> None:
    commands = (Publish(("AAAA",), ("0x1", "0x2")), TransferObjects((ResultArg(0),), InputArg(0)))
    resolved, diagnostics = infer_commands(commands, (PureInput(RECIPIENT),), catalog)
    assert resolved[0].returns == (UPGRADE_CAP_TYPE,)
    assert resolved[1].arguments[0].move_type == UPGRADE_CAP_TYPE
    assert diagnostics == ()


def test_forward_reference_is_unknown_with_diagnostic(catalog: ObjectCatalog) -> None:
    commands = (
        TransferObjects((ResultArg(1),), InputArg(0)),
        SplitCoins(GasCoinArg(), (InputArg(1),)),
    )
    resolved, diagnostics = infer_commands(commands, (PureInput(RECIPIENT), PureInput(AMOUNT_5)), catalog)
    assert resolved[0].arguments[0].move_type == UNKNOWN
    assert Diagnostic(0, "Cmd_1", "reference to a command that has not run yet") in diagnostics


def test_self_reference_is_reported_once(catalog: ObjectCatalog) -> None:
    resolved, diagnostics = infer_commands((MakeMoveVec(None, (ResultArg(0),)),), (), catalog)
    assert resolved[0].returns == (VectorType(UNKNOWN),)
    assert resolved[0].display_name == "MakeMoveVec<T>"
    messages = [d.message for d in diagnostics]
    assert messages == ["reference to a command that has not run yet", "could not infer vector element type"]


def test_out_of_range_references(catalog: ObjectCatalog) -> None:
    commands = (
        SplitCoins(GasCoinArg(), (InputArg(0),)),
        TransferObjects((NestedResultArg(0, 3), InputArg(9)), InputArg(0)),
    )
    resolved, diagnostics = infer_commands(commands, (PureInput(AMOUNT_5),), catalog)
    assert [a.move_type for a in resolved[1].arguments[:2]] == [UNKNOWN, UNKNOWN]
    assert Diagnostic(1, "Cmd_0.3", "Cmd_0 has no result 3") in diagnostics
    assert Diagnostic(1, "Input_9", "input index out of range (1 inputs)") in diagnostics


def test_uncached_object_keeps_id(catalog: ObjectCatalog) -> None:
    resolved, diagnostics = infer_commands(
        (TransferObjects((InputArg(0),), InputArg(1)),),
        (ObjectInput("0xfeed", ObjectMode.IMM_OR_OWNED), PureInput(RECIPIENT)),
        catalog,
    )
    arg = resolved[0].arguments[0]
    assert arg.move_type == UNKNOWN
    assert arg.object_id == "0xfeed"
    assert diagnostics == (Diagnostic(0, "Input_0", "object 0xfeed not in cache"),)


def test_package_input_is_move_package(catalog: ObjectCatalog) -> None:
    resolved, _ = infer_commands(
        (TransferObjects((InputArg(0),), InputArg(1)),),
        (ObjectInput("0xabc", ObjectMode.IMM_OR_OWNED), PureInput(RECIPIENT)),
        catalog,
    )
    assert resolved[0].arguments[0].move_type == UnknownType("MovePackage")


def test_unknown_command_keeps_alignment(catalog: ObjectCatalog) -> None:
    commands = (
        UnknownCommand("Frobnicate", {}),
        SplitCoins(GasCoinArg(), (InputArg(0),)),
        MergeCoins(GasCoinArg(), (ResultArg(1), ResultArg(0))),
    )
    resolved, diagnostics = infer_commands(commands, (PureInput(AMOUNT_5),), catalog)
    assert [rc.index for rc in resolved] == [0, 1, 2]
    assert resolved[0].kind == "Frobnicate"
    assert resolved[2].arguments[1].move_type == SUI_COIN_TYPE
    assert Diagnostic(0, None, "unrecognized command Frobnicate") in diagnostics
    assert Diagnostic(2, "Cmd_0", "Cmd_0 has no result 0") in diagnostics


def test_undecodable_pure_value_is_noted(catalog: ObjectCatalog) -> None:
    resolved, diagnostics = infer_commands(
        (SplitCoins(GasCoinArg(), (InputArg(0),)),), (PureInput(bytes([1, 2, 3])),), catalog
    )
    amount = resolved[0].arguments[1]
    assert amount.value is not None
    assert not amount.value.decoded
    assert amount.move_type == UNKNOWN
    assert diagnostics == (Diagnostic(0, "Input_0", "pure value of 3 bytes left undecoded"),)


def test_return_type_table_is_append_only() -> None:
    table = ReturnTypeTable()
    table.record(0, (SUI_COIN_TYPE,))
    with pytest.raises(ValueError):
        table.record(2, ())
    table.record(1, ())
    assert len(table) == 2
    assert table.lookup(0) == SUI_COIN_TYPE
    assert table.lookup(0, 1) is None
    assert table.lookup(1) is None
    assert table.lookup(5) is None
    assert table.returns_of(1) == ()


def test_infer_command_return_type(catalog: ObjectCatalog) -> None:
    commands = (SplitCoins(GasCoinArg(), (InputArg(0), InputArg(0))),)
    resolved, _ = infer_commands(commands, (PureInput(AMOUNT_5),), catalog)
    assert infer_command_return_type(resolved, 0, 1) == SUI_COIN_TYPE
    assert infer_command_return_type(resolved, 0, 2) == UNKNOWN
    assert infer_command_return_type(resolved, 3) == UNKNOWN


@st.composite
def split_and_transfer_program(draw):
    """Even commands split the gas coin; odd commands transfer a Result(r) for an arbitrary r."""
    n = draw(st.integers(min_value=1, max_value=12))
    refs = {}
    commands = []
    for i in range(n):
        if i % 2 == 0:
            commands.append(SplitCoins(GasCoinArg(), (InputArg(0),)))
        else:
            r = draw(st.integers(min_value=0, max_value=n + 2))
            refs[i] = r
            commands.append(TransferObjects((ResultArg(r),), InputArg(1)))
    return tuple(commands), refs


@given(split_and_transfer_program())
def test_results_only_flow_forward(program) -> None:
    """Invariant: Result(r) in command i resolves only when r < i and command r produced a value."""
    commands, refs = program
    resolved, diagnostics = infer_commands(commands, (PureInput(AMOUNT_5), PureInput(RECIPIENT)), ObjectCatalog())
    for i, r in refs.items():
        t = resolved[i].arguments[0].move_type
        if r < i and r % 2 == 0:
            assert t == SUI_COIN_TYPE
        else:
            assert t == UNKNOWN
            assert any(d.command == i for d in diagnostics)
