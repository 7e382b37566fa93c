"""Artifact schema types and validators.

This module provides TypedDict definitions for the parts of each replay
artifact the model consumes, and validation functions that reject malformed
artifacts before any aggregation work starts.

Only fields the model depends on are required. Everything else is optional and
additive, so newer producers that add fields keep working.
"""

from __future__ import annotations

from typing import Any, TypedDict

from sui_replay.constants import (
    ARTIFACT_CACHE,
    ARTIFACT_CALL_INFO,
    ARTIFACT_EFFECTS,
    ARTIFACT_GAS,
    ARTIFACT_TRANSACTION,
)
from sui_replay.errors import AggregationError

# replay_cache_summary.json


class CacheEntryJson(TypedDict, total=False):
    """One cached object. `object_type` is {"Package": {...}} or {"MoveObject": {...}}."""

    object_id: str
    version: int | str
    object_type: dict[str, Any]


class ReplayCacheSummaryJson(TypedDict, total=False):
    epoch_id: int | None
    checkpoint: int | None
    protocol_version: int | None
    network: str | None
    cache_entries: list[CacheEntryJson]


# transaction_data.json


class GasDataJson(TypedDict, total=False):
    payment: list[list[Any]]  # [object_id, version, digest]
    owner: str
    price: int | str
    budget: int | str


class TransactionDataV1Json(TypedDict, total=False):
    sender: str
    expiration: Any
    kind: dict[str, Any]  # {"ProgrammableTransaction": {"inputs": [...], "commands": [...]}}
    gas_data: GasDataJson


class TransactionDataJson(TypedDict, total=False):
    V1: TransactionDataV1Json


# transaction_effects.json


class TransactionEffectsBodyJson(TypedDict, total=False):
    status: Any  # "Success" or {"Failure": {...}}
    executed_epoch: int | str
    dependencies: list[str]
    transaction_digest: str
    # V1
    created: list[list[Any]]
    mutated: list[list[Any]]
    deleted: list[list[Any]]
    # V2
    changed_objects: list[list[Any]]


class TransactionEffectsJson(TypedDict, total=False):
    V1: TransactionEffectsBodyJson
    V2: TransactionEffectsBodyJson


# transaction_gas_report.json


class CostSummaryJson(TypedDict, total=False):
    computationCost: int | str
    storageCost: int | str
    storageRebate: int | str
    nonRefundableStorageFee: int | str


class TransactionGasReportJson(TypedDict, total=False):
    cost_summary: CostSummaryJson
    gas_used: int | str
    reference_gas_price: int | str
    storage_gas_price: int | str
    rebate_rate: int | str
    per_object_storage: list[list[Any]]  # [object_id, {new_size, storage_cost, storage_rebate}]


# move_call_info.json


class CommandSignatureJson(TypedDict, total=False):
    parameters: list[Any]
    return_types: list[Any]


class MoveCallInfoJson(TypedDict, total=False):
    command_signatures: list[CommandSignatureJson | None]


# Validation Functions


def _type_name(expected: type | tuple[type, ...]) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _check_fields(artifact: str, data: Any, required_fields: dict[str, Any], prefix: str = "") -> None:
    if not isinstance(data, dict):
        raise AggregationError(artifact, prefix.rstrip(".") or "<root>", f"expected dict, got {type(data).__name__}")
    for field, expected_type in required_fields.items():
        if field not in data:
            raise AggregationError(artifact, prefix + field, "missing required field")
        if not isinstance(data[field], expected_type):
            raise AggregationError(
                artifact,
                prefix + field,
                f"expected {_type_name(expected_type)}, got {type(data[field]).__name__}",
            )


def validate_replay_cache_summary(data: Any) -> None:
    """Raises AggregationError if the cache summary has no cache_entries list."""
    _check_fields(ARTIFACT_CACHE, data, {"cache_entries": list})
    for i, entry in enumerate(data["cache_entries"]):
        if not isinstance(entry, dict):
            raise AggregationError(ARTIFACT_CACHE, f"cache_entries[{i}]", "must be a dict")


def validate_transaction_data(data: Any) -> None:
    """Raises AggregationError unless V1 carries sender, kind and gas_data."""
    _check_fields(ARTIFACT_TRANSACTION, data, {"V1": dict})

    required_fields = {
        "sender": str,
        "kind": dict,
        "gas_data": dict,
    }
    _check_fields(ARTIFACT_TRANSACTION, data["V1"], required_fields, prefix="V1.")


def validate_transaction_effects(data: Any) -> None:
    """Raises AggregationError unless exactly one of V1/V2 is present and its change lists are well typed."""
    if not isinstance(data, dict):
        raise AggregationError(ARTIFACT_EFFECTS, "<root>", f"expected dict, got {type(data).__name__}")
    versions = [v for v in ("V1", "V2") if v in data]
    if not versions:
        raise AggregationError(ARTIFACT_EFFECTS, "V1|V2", "missing required field")
    if len(versions) > 1:
        raise AggregationError(ARTIFACT_EFFECTS, "V1|V2", "both V1 and V2 present")
    version = versions[0]
    body = data[version]
    if not isinstance(body, dict):
        raise AggregationError(ARTIFACT_EFFECTS, version, f"expected dict, got {type(body).__name__}")

    if version == "V1":
        for field in ("created", "mutated", "deleted"):
            if body.get(field) is not None and not isinstance(body[field], list):
                raise AggregationError(ARTIFACT_EFFECTS, f"V1.{field}", "must be a list")
        return

    if "changed_objects" not in body:
        return
    changed = body["changed_objects"]
    if not isinstance(changed, list):
        raise AggregationError(ARTIFACT_EFFECTS, "V2.changed_objects", "must be a list")
    for i, item in enumerate(changed):
        change = item[1] if isinstance(item, list) and len(item) == 2 else None
        if isinstance(change, dict) and "id_operation" in change and not isinstance(change["id_operation"], str):
            raise AggregationError(ARTIFACT_EFFECTS, f"V2.changed_objects[{i}].id_operation", "must be a string")


def validate_transaction_gas_report(data: Any) -> None:
    """Optional sections must have the right container type when present."""
    _check_fields(ARTIFACT_GAS, data, {})
    if "cost_summary" in data and not isinstance(data["cost_summary"], dict):
        raise AggregationError(ARTIFACT_GAS, "cost_summary", "must be a dict")
    if "per_object_storage" in data and not isinstance(data["per_object_storage"], list):
        raise AggregationError(ARTIFACT_GAS, "per_object_storage", "must be a list")


def validate_move_call_info(data: Any) -> None:
    _check_fields(ARTIFACT_CALL_INFO, data, {"command_signatures": list})
    for i, sig in enumerate(data["command_signatures"]):
        if sig is not None and not isinstance(sig, dict):
            raise AggregationError(ARTIFACT_CALL_INFO, f"command_signatures[{i}]", "must be an object or null")


VALIDATORS = {
    ARTIFACT_CACHE: validate_replay_cache_summary,
    ARTIFACT_TRANSACTION: validate_transaction_data,
    ARTIFACT_EFFECTS: validate_transaction_effects,
    ARTIFACT_GAS: validate_transaction_gas_report,
    ARTIFACT_CALL_INFO: validate_move_call_info,
}
