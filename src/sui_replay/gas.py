"""
Gas accounting for a replayed transaction.

Merges `gas_data` from transaction_data.json with transaction_gas_report.json.
The per-object non-refundable fee is always recomputed from the storage rebate
and the rebate rate; any fee carried by the report for individual objects is
ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sui_replay.constants import DEFAULT_REBATE_RATE, REBATE_RATE_DENOMINATOR
from sui_replay.utils import parse_int

logger = logging.getLogger(__name__)


def non_refundable_fee(storage_rebate: int, rebate_rate: int = DEFAULT_REBATE_RATE) -> int:
    """floor(storage_rebate * (10000 - rebate_rate) / 10000), in exact integer arithmetic."""
    return storage_rebate * (REBATE_RATE_DENOMINATOR - rebate_rate) // REBATE_RATE_DENOMINATOR


class StorageCategory(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class ObjectRef:
    object_id: str
    version: int | None = None
    digest: str | None = None


@dataclass(frozen=True)
class PerObjectStorage:
    object_id: str
    size: int
    storage_cost: int
    storage_rebate: int
    non_refundable_fee: int

    @property
    def category(self) -> StorageCategory:
        if self.size == 0 and self.storage_rebate > 0:
            return StorageCategory.DELETED
        if self.storage_cost > 0 and self.storage_rebate == 0:
            return StorageCategory.CREATED
        return StorageCategory.MODIFIED

    @property
    def net_rebate(self) -> int:
        """Rebate actually returned to the sender after the non-refundable fee."""
        if self.category == StorageCategory.CREATED:
            return self.storage_rebate
        return self.storage_rebate - self.non_refundable_fee


@dataclass(frozen=True)
class StorageTotals:
    count: int = 0
    size: int = 0
    storage_cost: int = 0
    storage_rebate: int = 0
    non_refundable_fee: int = 0


@dataclass(frozen=True)
class GasLedger:
    payment: tuple[ObjectRef, ...] = field(default_factory=tuple)
    owner: str | None = None
    price: int | None = None
    budget: int | None = None
    computation_cost: int | None = None
    storage_cost: int | None = None
    storage_rebate: int | None = None
    non_refundable_fee: int | None = None
    gas_used: int | None = None
    reference_gas_price: int | None = None
    storage_gas_price: int | None = None
    rebate_rate: int | None = None
    per_object_breakup: tuple[PerObjectStorage, ...] = field(default_factory=tuple)

    @property
    def coins(self) -> tuple[str, ...]:
        return tuple(p.object_id for p in self.payment)

    @property
    def effective_rebate_rate(self) -> int:
        return self.rebate_rate if self.rebate_rate is not None else DEFAULT_REBATE_RATE

    @property
    def net_gas_charges(self) -> int | None:
        """computation + storage + non_refundable - rebate. Negative when the rebate dominates."""
        parts = (self.computation_cost, self.storage_cost, self.non_refundable_fee, self.storage_rebate)
        if any(p is None for p in parts):
            return None
        computation, storage, fee, rebate = parts
        assert computation is not None and storage is not None and fee is not None and rebate is not None
        return computation + storage + fee - rebate

    def storage_totals(self) -> dict[StorageCategory, StorageTotals]:
        totals: dict[StorageCategory, StorageTotals] = {}
        for row in self.per_object_breakup:
            t = totals.get(row.category, StorageTotals())
            totals[row.category] = StorageTotals(
                count=t.count + 1,
                size=t.size + row.size,
                storage_cost=t.storage_cost + row.storage_cost,
                storage_rebate=t.storage_rebate + row.storage_rebate,
                non_refundable_fee=t.non_refundable_fee + row.non_refundable_fee,
            )
        return totals


def parse_payment(raw: Any) -> tuple[ObjectRef, ...]:
    """`gas_data.payment`: list of [object_id, version, digest]."""
    if not isinstance(raw, list):
        return ()
    refs: list[ObjectRef] = []
    for item in raw:
        if isinstance(item, list) and item and isinstance(item[0], str):
            digest = item[2] if len(item) > 2 and isinstance(item[2], str) else None
            refs.append(ObjectRef(item[0], parse_int(item[1]) if len(item) > 1 else None, digest))
        else:
            logger.warning(f"Skipping malformed gas payment entry: {item!r}")
    return tuple(refs)


def parse_per_object_storage(raw: Any, rebate_rate: int) -> tuple[PerObjectStorage, ...]:
    """`per_object_storage`: list of [object_id, {new_size, storage_cost, storage_rebate}]."""
    if not isinstance(raw, list):
        return ()
    rows: list[PerObjectStorage] = []
    for item in raw:
        if not (isinstance(item, list) and len(item) == 2 and isinstance(item[0], str) and isinstance(item[1], dict)):
            logger.warning(f"Skipping malformed per_object_storage entry: {item!r}")
            continue
        object_id, info = item
        rebate = parse_int(info.get("storage_rebate")) or 0
        rows.append(
            PerObjectStorage(
                object_id=object_id,
                size=parse_int(info.get("new_size")) or 0,
                storage_cost=parse_int(info.get("storage_cost")) or 0,
                storage_rebate=rebate,
                non_refundable_fee=non_refundable_fee(rebate, rebate_rate),
            )
        )
    return tuple(rows)


def build_gas_ledger(gas_data: dict[str, Any], gas_report: dict[str, Any] | None = None) -> GasLedger:
    """
    Combine transaction gas_data with an optional gas report.

    Without a report only payment, owner, price and budget are populated.
    """
    owner = gas_data.get("owner")
    ledger = GasLedger(
        payment=parse_payment(gas_data.get("payment")),
        owner=owner if isinstance(owner, str) else None,
        price=parse_int(gas_data.get("price")),
        budget=parse_int(gas_data.get("budget")),
    )
    if gas_report is None:
        return ledger

    cost = gas_report.get("cost_summary") or {}
    rebate_rate = parse_int(gas_report.get("rebate_rate"))
    effective_rate = rebate_rate if rebate_rate is not None else DEFAULT_REBATE_RATE
    if rebate_rate is None:
        logger.debug(f"Gas report has no rebate_rate; using default {DEFAULT_REBATE_RATE}")

    return GasLedger(
        payment=ledger.payment,
        owner=ledger.owner,
        price=ledger.price,
        budget=ledger.budget,
        computation_cost=parse_int(cost.get("computationCost")),
        storage_cost=parse_int(cost.get("storageCost")),
        storage_rebate=parse_int(cost.get("storageRebate")),
        non_refundable_fee=parse_int(cost.get("nonRefundableStorageFee")),
        gas_used=parse_int(gas_report.get("gas_used")),
        reference_gas_price=parse_int(gas_report.get("reference_gas_price")),
        storage_gas_price=parse_int(gas_report.get("storage_gas_price")),
        rebate_rate=rebate_rate,
        per_object_breakup=parse_per_object_storage(gas_report.get("per_object_storage"), effective_rate),
    )
