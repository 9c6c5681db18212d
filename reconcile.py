"""
Idempotent schema reconciliation.

Brings a live database in line with a SchemaDeclarationSet: every declared
collection exists with its declared validator, and every declared index exists
under its resolved name. Safe to run on every deployment.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, Field

from declarations import CollectionDeclaration, DeclarationError, IndexDeclaration, SchemaDeclarationSet

logger = logging.getLogger(__name__)


class StoreRejected(Exception):
    """The store refused a single operation."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StoreUnavailable(Exception):
    """The store cannot be reached; the whole pass is aborted."""


class StoreClient(Protocol):
    def list_collection_names(self) -> Iterable[str]: ...

    def create_collection(self, name: str, validator: Dict[str, Any],
                          validation_level: str, validation_action: str) -> None: ...

    def modify_collection(self, name: str, validator: Dict[str, Any],
                          validation_level: str, validation_action: str) -> None: ...

    def list_index_names(self, collection: str) -> Iterable[str]: ...

    def create_index(self, collection: str, keys: Sequence[Tuple[str, Any]], **options: Any) -> str: ...


class Outcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


class ReconcileItem(BaseModel):
    kind: str = Field(..., description="'collection' or 'index'")
    collection: str
    name: str = Field(..., description="Collection name or resolved index name")
    outcome: Outcome
    reason: Optional[str] = Field(None, description="Failure reason, when outcome is failed")

    def __str__(self) -> str:
        target = self.collection if self.kind == "collection" else f"{self.collection}.{self.name}"
        text = f"{self.kind} {target}: {self.outcome.value}"
        return f"{text} ({self.reason})" if self.reason else text


class ReconcileReport(BaseModel):
    schema_version: int
    items: List[ReconcileItem] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def failed(self) -> List[ReconcileItem]:
        return [item for item in self.items if item.outcome == Outcome.FAILED]

    def counts(self) -> Dict[str, int]:
        out = {outcome.value: 0 for outcome in Outcome}
        for item in self.items:
            out[item.outcome.value] += 1
        return out

    def summary(self) -> Dict[str, Any]:
        return {"ok": self.ok, "schema_version": self.schema_version, "counts": self.counts(),
                "items": [item.model_dump(mode="json") for item in self.items]}


class SchemaReconciler:
    """Applies the minimal set of store operations to converge on the declarations."""

    def __init__(self, store: StoreClient):
        self.store = store

    def ensure_collection(self, declaration: CollectionDeclaration) -> ReconcileItem:
        item = dict(kind="collection", collection=str(declaration.name), name=str(declaration.name))
        try:
            declaration.validate()
            validator = declaration.validator.to_document()
        except (TypeError, ValueError) as e:
            return self._failed(item, f"invalid declaration: {e}")

        try:
            existing = set(self.store.list_collection_names())
            if declaration.name not in existing:
                self.store.create_collection(declaration.name, validator,
                                             declaration.validation_level, declaration.validation_action)
                outcome = Outcome.CREATED
            else:
                # Always rewritten so drift converges even when nothing looks changed
                self.store.modify_collection(declaration.name, validator,
                                             declaration.validation_level, declaration.validation_action)
                outcome = Outcome.UPDATED
        except StoreRejected as e:
            return self._failed(item, e.reason)

        logger.info(f"Collection {declaration.name}: {outcome.value}")
        return ReconcileItem(outcome=outcome, **item)

    def ensure_index(self, collection: str, declaration: IndexDeclaration) -> ReconcileItem:
        try:
            declaration.validate()
        except DeclarationError as e:
            name = _safe_name(declaration) or "<invalid>"
            return self._failed(dict(kind="index", collection=collection, name=name),
                                f"invalid declaration: {e}")

        name = declaration.resolved_name
        item = dict(kind="index", collection=collection, name=name)
        try:
            existing = set(self.store.list_index_names(collection))
            if name in existing:
                # Presence is decided by name only; a same-named index with other keys is left alone
                logger.info(f"Index {collection}.{name}: unchanged")
                return ReconcileItem(outcome=Outcome.UNCHANGED, **item)
            self.store.create_index(collection, list(declaration.keys), **declaration.options())
        except StoreRejected as e:
            return self._failed(item, e.reason)

        logger.info(f"Index {collection}.{name}: created")
        return ReconcileItem(outcome=Outcome.CREATED, **item)

    def reconcile(self, declarations: SchemaDeclarationSet) -> ReconcileReport:
        """Run one full pass. StoreUnavailable propagates; every other failure is recorded."""
        report = ReconcileReport(schema_version=declarations.version)
        for collection in declarations:
            report.items.append(self.ensure_collection(collection))
            seen = set()
            for index in collection.indexes:
                resolved = _safe_name(index)
                if resolved is not None and resolved in seen:
                    report.items.append(self._failed(
                        dict(kind="index", collection=collection.name, name=resolved),
                        "invalid declaration: duplicate index name",
                    ))
                    continue
                seen.add(resolved)
                report.items.append(self.ensure_index(collection.name, index))

        counts = report.counts()
        if report.ok:
            logger.info(f"Schema v{declarations.version} reconciled: {counts}")
        else:
            logger.error(f"Schema v{declarations.version} reconciled with {counts['failed']} failure(s): {counts}")
        return report

    @staticmethod
    def _failed(item: Dict[str, Any], reason: str) -> ReconcileItem:
        logger.error(f"{item['kind'].capitalize()} {item['collection']}.{item['name']} failed: {reason}")
        return ReconcileItem(outcome=Outcome.FAILED, reason=reason, **item)


def _safe_name(index: IndexDeclaration) -> Optional[str]:
    try:
        name = index.resolved_name
    except (TypeError, ValueError):
        return None
    return name if isinstance(name, str) and name else None


def reconcile(declarations: SchemaDeclarationSet, store: StoreClient) -> ReconcileReport:
    """Reconcile the store against the declarations and return the per-item report."""
    return SchemaReconciler(store).reconcile(declarations)
