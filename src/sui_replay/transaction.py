"""
Transaction aggregate built from the five replay artifacts.

`Transaction.from_artifacts()` validates every supplied artifact up front and
then ingests them in a fixed order:

  1. replay_cache_summary    -> ObjectCatalog, one record per cached object
  2. transaction_data        -> sender, inputs, commands, gas payment; object sources
  3. transaction_effects     -> object statuses (V1 or V2 layout), created objects
  4. transaction_gas_report  -> GasLedger with derived per-object fees
  5. move_call_info          -> call signatures aligned with commands

Command inference runs last, once signatures are known. A malformed artifact
raises AggregationError before any Transaction exists; everything else
degrades to sentinel values.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sui_replay.catalog import MoveObjectKind, ObjectCatalog, ObjectKind, PackageKind, UnknownKind
from sui_replay.commands import (
    CallSignature,
    Command,
    Input,
    MoveCall,
    ObjectInput,
    parse_commands,
    parse_inputs,
    parse_signatures,
)
from sui_replay.constants import (
    ARTIFACT_CACHE,
    ARTIFACT_CALL_INFO,
    ARTIFACT_EFFECTS,
    ARTIFACT_GAS,
    ARTIFACT_ORDER,
    ARTIFACT_TRANSACTION,
    MOVE_PACKAGE_LABEL,
    REQUIRED_ARTIFACTS,
)
from sui_replay.errors import AggregationError
from sui_replay.gas import GasLedger, build_gas_ledger
from sui_replay.inference import Diagnostic, ResolvedCommand, infer_commands
from sui_replay.move_type import MoveType, UnknownType, normalize_address
from sui_replay.schema import VALIDATORS
from sui_replay.utils import parse_int

logger = logging.getLogger(__name__)


class ObjectStatus(str, Enum):
    CREATED = "Created"
    MODIFIED = "Modified"
    DELETED = "Deleted"
    ACCESSED = "Accessed"


class ObjectSource(str, Enum):
    INPUT = "Input"
    GAS = "Gas"
    RUNTIME = "Runtime"


# V2 `id_operation` tags
_V2_OPERATIONS = {
    "Created": ObjectStatus.CREATED,
    "Deleted": ObjectStatus.DELETED,
    "None": ObjectStatus.MODIFIED,
}


@dataclass(frozen=True)
class ObjectRecord:
    object_id: str
    version: int | None
    kind: ObjectKind
    status: ObjectStatus
    source: ObjectSource

    @property
    def is_package(self) -> bool:
        return isinstance(self.kind, PackageKind)

    @property
    def move_type(self) -> MoveType | None:
        if isinstance(self.kind, MoveObjectKind):
            return self.kind.move_type
        if isinstance(self.kind, PackageKind):
            return UnknownType(MOVE_PACKAGE_LABEL)
        return None


@dataclass(frozen=True)
class TransactionStatus:
    success: bool
    error: Any = None

    @classmethod
    def from_json(cls, raw: Any) -> TransactionStatus | None:
        """Effects status: "Success", {"Success": ...} or {"Failure": {...}}."""
        if raw is None:
            return None
        if raw == "Success":
            return cls(success=True)
        if isinstance(raw, dict):
            if "Success" in raw:
                return cls(success=True)
            if "Failure" in raw:
                return cls(success=False, error=raw["Failure"])
        return cls(success=False, error=raw)


@dataclass(frozen=True)
class ReplayArtifacts:
    """The five raw artifact documents. Cache and transaction data are required."""

    replay_cache_summary: dict[str, Any]
    transaction_data: dict[str, Any]
    transaction_effects: dict[str, Any] | None = None
    transaction_gas_report: dict[str, Any] | None = None
    move_call_info: dict[str, Any] | None = None

    @classmethod
    def from_mapping(cls, docs: Mapping[str, Any]) -> ReplayArtifacts:
        """Build from a {artifact_name: document} mapping; unknown keys are ignored."""
        for name in ARTIFACT_ORDER:
            if name in REQUIRED_ARTIFACTS and docs.get(name) is None:
                raise AggregationError(name, "<root>", "required artifact missing")
        return cls(
            replay_cache_summary=docs[ARTIFACT_CACHE],
            transaction_data=docs[ARTIFACT_TRANSACTION],
            transaction_effects=docs.get(ARTIFACT_EFFECTS),
            transaction_gas_report=docs.get(ARTIFACT_GAS),
            move_call_info=docs.get(ARTIFACT_CALL_INFO),
        )

    def items(self) -> list[tuple[str, dict[str, Any] | None]]:
        return [
            (ARTIFACT_CACHE, self.replay_cache_summary),
            (ARTIFACT_TRANSACTION, self.transaction_data),
            (ARTIFACT_EFFECTS, self.transaction_effects),
            (ARTIFACT_GAS, self.transaction_gas_report),
            (ARTIFACT_CALL_INFO, self.move_call_info),
        ]

    def validate(self) -> None:
        for name, doc in self.items():
            if doc is not None:
                VALIDATORS[name](doc)


@dataclass
class _Draft:
    """Mutable record used only while aggregating."""

    object_id: str
    version: int | None
    kind: ObjectKind
    status: ObjectStatus | None = None
    source: ObjectSource | None = None


@dataclass(frozen=True)
class Transaction:
    digest: str | None
    sender: str
    epoch: int | None
    checkpoint: int | None
    protocol_version: int | None
    network: str | None
    status: TransactionStatus | None
    expiration: Any
    kind_name: str | None
    dependencies: tuple[str, ...]
    changed_objects: tuple[str, ...]
    objects: tuple[ObjectRecord, ...]
    inputs: tuple[Input, ...]
    commands: tuple[ResolvedCommand, ...]
    gas: GasLedger
    catalog: ObjectCatalog = field(repr=False, compare=False)
    diagnostics: tuple[Diagnostic, ...] = ()

    @classmethod
    def from_artifacts(cls, artifacts: ReplayArtifacts | Mapping[str, Any]) -> Transaction:
        """
        Aggregate the replay artifacts into a Transaction.

        Raises:
            AggregationError: a required artifact or field is missing or malformed.
        """
        if not isinstance(artifacts, ReplayArtifacts):
            artifacts = ReplayArtifacts.from_mapping(artifacts)
        artifacts.validate()
        return _Aggregator(artifacts).run()

    # -- accessors ---------------------------------------------------------

    @property
    def packages(self) -> tuple[ObjectRecord, ...]:
        return tuple(o for o in self.objects if isinstance(o.kind, PackageKind))

    @property
    def move_objects(self) -> tuple[ObjectRecord, ...]:
        return tuple(o for o in self.objects if isinstance(o.kind, MoveObjectKind))

    def get_object(self, object_id: str) -> ObjectRecord | None:
        key = normalize_address(object_id)
        for o in self.objects:
            if normalize_address(o.object_id) == key:
                return o
        return None

    def object_type(self, object_id: str) -> MoveType | None:
        record = self.get_object(object_id)
        return record.move_type if record is not None else None

    def _with_status(self, status: ObjectStatus) -> tuple[ObjectRecord, ...]:
        return tuple(o for o in self.objects if o.status == status)

    @property
    def created_objects(self) -> tuple[ObjectRecord, ...]:
        return self._with_status(ObjectStatus.CREATED)

    @property
    def deleted_objects(self) -> tuple[ObjectRecord, ...]:
        return self._with_status(ObjectStatus.DELETED)

    @property
    def modified_objects(self) -> tuple[ObjectRecord, ...]:
        return self._with_status(ObjectStatus.MODIFIED)

    def is_deleted(self, object_id: str) -> bool:
        record = self.get_object(object_id)
        return record is not None and record.status == ObjectStatus.DELETED


class _Aggregator:
    """One aggregation pass. Not reusable."""

    def __init__(self, artifacts: ReplayArtifacts) -> None:
        self.artifacts = artifacts
        self.drafts: dict[str, _Draft] = {}
        self.catalog = ObjectCatalog()
        self.meta: dict[str, Any] = {}
        self.changed_objects: list[str] = []
        self.dependencies: tuple[str, ...] = ()
        self.signatures: tuple[CallSignature | None, ...] = ()
        self.gas = GasLedger()
        self.gas_data: dict[str, Any] = {}
        self.inputs: tuple[Input, ...] = ()
        self.commands: tuple[Command, ...] = ()

    def run(self) -> Transaction:
        self.ingest_cache(self.artifacts.replay_cache_summary)
        self.ingest_transaction(self.artifacts.transaction_data)
        if self.artifacts.transaction_effects is not None:
            self.ingest_effects(self.artifacts.transaction_effects)
        else:
            logger.info("No transaction_effects; object statuses default to Accessed")
        self.ingest_gas(self.artifacts.transaction_gas_report)
        if self.artifacts.move_call_info is not None:
            self.ingest_call_info(self.artifacts.move_call_info)

        for draft in self.drafts.values():
            if draft.status is None:
                draft.status = ObjectStatus.ACCESSED

        commands, diagnostics = infer_commands(self.commands, self.inputs, self.catalog, self.signatures)
        logger.info(f"Resolved {len(commands)} commands ({len(diagnostics)} diagnostics)")

        objects = tuple(
            ObjectRecord(
                object_id=d.object_id,
                version=d.version,
                kind=d.kind,
                status=d.status or ObjectStatus.ACCESSED,
                source=d.source or ObjectSource.RUNTIME,
            )
            for d in self.drafts.values()
        )
        return Transaction(
            digest=self.meta.get("digest"),
            sender=self.meta["sender"],
            epoch=self.meta.get("epoch"),
            checkpoint=self.meta.get("checkpoint"),
            protocol_version=self.meta.get("protocol_version"),
            network=self.meta.get("network"),
            status=self.meta.get("status"),
            expiration=self.meta.get("expiration"),
            kind_name=self.meta.get("kind_name"),
            dependencies=self.dependencies,
            changed_objects=tuple(self.changed_objects),
            objects=objects,
            inputs=self.inputs,
            commands=commands,
            gas=self.gas,
            catalog=self.catalog,
            diagnostics=diagnostics,
        )

    # -- stage 1 -----------------------------------------------------------

    def ingest_cache(self, doc: dict[str, Any]) -> None:
        self.catalog = ObjectCatalog.from_cache_entries(doc["cache_entries"])
        for entry in self.catalog:
            self.drafts[normalize_address(entry.object_id)] = _Draft(entry.object_id, entry.version, entry.kind)
        self.meta["epoch"] = parse_int(doc.get("epoch_id"))
        self.meta["checkpoint"] = parse_int(doc.get("checkpoint"))
        self.meta["protocol_version"] = parse_int(doc.get("protocol_version"))
        network = doc.get("network")
        self.meta["network"] = network if isinstance(network, str) else None
        logger.info(f"Loaded {len(self.catalog)} cache entries")

    # -- stage 2 -----------------------------------------------------------

    def ingest_transaction(self, doc: dict[str, Any]) -> None:
        v1 = doc["V1"]
        self.meta["sender"] = v1["sender"]
        self.meta["expiration"] = v1.get("expiration")
        self.gas_data = v1["gas_data"]

        kind = v1["kind"]
        self.meta["kind_name"] = next(iter(kind), None)
        ptb = kind.get("ProgrammableTransaction")
        if isinstance(ptb, dict):
            self.inputs = parse_inputs(ptb.get("inputs"))
            self.commands = parse_commands(ptb.get("commands"))
        else:
            logger.info(f"Transaction kind {self.meta['kind_name']} has no programmable commands")
            self.inputs = ()
            self.commands = ()

        gas_objects = {normalize_address(ref.object_id) for ref in build_gas_ledger(self.gas_data).payment}
        input_objects = self.input_object_ids()
        for key, draft in self.drafts.items():
            if key in gas_objects:
                draft.source = ObjectSource.GAS
            elif key in input_objects:
                draft.source = ObjectSource.INPUT
            else:
                draft.source = ObjectSource.RUNTIME
        logger.info(f"Parsed {len(self.inputs)} inputs and {len(self.commands)} commands")

    def input_object_ids(self) -> set[str]:
        """Normalized ids of PTB object inputs plus packages called by MoveCall commands."""
        ids = {normalize_address(i.object_id) for i in self.inputs if isinstance(i, ObjectInput)}
        ids.update(normalize_address(c.function.package) for c in self.commands if isinstance(c, MoveCall))
        return ids

    # -- stage 3 -----------------------------------------------------------

    def ingest_effects(self, doc: dict[str, Any]) -> None:
        if "V2" in doc:
            effects = doc["V2"]
            self.apply_v2_changes(effects.get("changed_objects") or [], parse_int(effects.get("lamport_version")))
        else:
            effects = doc["V1"]
            self.apply_v1_changes(effects)

        self.meta["status"] = TransactionStatus.from_json(effects.get("status"))
        executed_epoch = parse_int(effects.get("executed_epoch"))
        if executed_epoch is not None:
            self.meta["epoch"] = executed_epoch
        digest = effects.get("transaction_digest")
        self.meta["digest"] = digest if isinstance(digest, str) else None
        deps = effects.get("dependencies")
        self.dependencies = tuple(d for d in deps if isinstance(d, str)) if isinstance(deps, list) else ()
        logger.info(f"Applied effects for {len(self.changed_objects)} changed objects")

    def mark(self, object_id: str, status: ObjectStatus, version: int | None) -> None:
        self.changed_objects.append(object_id)
        draft = self.drafts.get(normalize_address(object_id))
        if draft is not None:
            draft.status = status
        elif status == ObjectStatus.CREATED:
            self.drafts[normalize_address(object_id)] = _Draft(
                object_id, version, UnknownKind(), status=status, source=ObjectSource.RUNTIME
            )
        else:
            logger.debug(f"{status.value} object {object_id} is not in the cache")

    def apply_v1_changes(self, effects: dict[str, Any]) -> None:
        for key, status in (("created", ObjectStatus.CREATED), ("mutated", ObjectStatus.MODIFIED)):
            for item in effects.get(key) or []:
                # [[object_id, version, digest], owner]
                ref = item[0] if isinstance(item, list) and item and isinstance(item[0], list) else None
                if not ref or not isinstance(ref[0], str):
                    logger.warning(f"Skipping malformed V1 {key} entry: {item!r}")
                    continue
                self.mark(ref[0], status, parse_int(ref[1]) if len(ref) > 1 else None)
        for item in effects.get("deleted") or []:
            # [object_id, version, digest]
            if not isinstance(item, list) or not item or not isinstance(item[0], str):
                logger.warning(f"Skipping malformed V1 deleted entry: {item!r}")
                continue
            self.mark(item[0], ObjectStatus.DELETED, parse_int(item[1]) if len(item) > 1 else None)

    def apply_v2_changes(self, changed: list[Any], lamport_version: int | None) -> None:
        for item in changed:
            # [object_id, {id_operation, input_state, output_state}]
            if not (isinstance(item, list) and len(item) == 2 and isinstance(item[0], str)):
                logger.warning(f"Skipping malformed V2 changed_objects entry: {item!r}")
                continue
            object_id, change = item
            change = change if isinstance(change, dict) else {}
            op = change.get("id_operation")
            status = _V2_OPERATIONS.get(op) if isinstance(op, str) else None
            if status is None:
                logger.debug(f"Unknown id_operation for {object_id}: {op!r}")
                status = ObjectStatus.MODIFIED
            version = _v2_version(change)
            self.mark(object_id, status, version if version is not None else lamport_version)

    # -- stage 4 -----------------------------------------------------------

    def ingest_gas(self, doc: dict[str, Any] | None) -> None:
        self.gas = build_gas_ledger(self.gas_data, doc)
        if doc is not None:
            logger.info(f"Gas report covers {len(self.gas.per_object_breakup)} objects")

    # -- stage 5 -----------------------------------------------------------

    def ingest_call_info(self, doc: dict[str, Any]) -> None:
        self.signatures = parse_signatures(doc["command_signatures"])
        if len(self.signatures) != len(self.commands):
            logger.warning(
                f"move_call_info has {len(self.signatures)} signatures for {len(self.commands)} commands; "
                "aligning by position"
            )


def _v2_version(change: dict[str, Any]) -> int | None:
    """Version from input_state.Exist ([[version, digest], owner]), if present."""
    input_state = change.get("input_state")
    if isinstance(input_state, dict):
        exist = input_state.get("Exist")
        if isinstance(exist, list) and exist and isinstance(exist[0], list) and exist[0]:
            return parse_int(exist[0][0])
    return None
