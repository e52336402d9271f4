"""
Entity store over the SQLAlchemy session.

All record mutations go through :meth:`EntityStore.transact`, which applies a
batch of :class:`Operation` objects atomically:

    store.transact([
        Operation.put("matches", match_id, {...}),
        Operation.update("reports", lost_id, {"status": "matched"},
                         expect={"status": "open", "version": 3},
                         conflict=AlreadyMatched()),
    ])

Rows touched by ``update``/``delete``/``require`` are re-read with
``SELECT ... FOR UPDATE`` (in ``(collection, id)`` order) before any write, and
``expect`` is checked against that fresh copy. Versioned tables additionally
guard every UPDATE/DELETE with their version counter, so a writer that lost a
race fails with :class:`ConflictError` even on backends without row locks.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import FlushError, StaleDataError

from .errors import AppError, ConflictError, NotFoundError
from .models import Category, Claim, Match, Report, User

logger = logging.getLogger(__name__)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


COLLECTIONS = {
    "users": User,
    "categories": Category,
    "reports": Report,
    "matches": Match,
    "claims": Claim,
}


@dataclass
class Operation:
    kind: str
    collection: str
    entity_id: Any = None
    values: dict = field(default_factory=dict)
    expect: dict = field(default_factory=dict)
    conflict: Optional[AppError] = None
    missing: Optional[AppError] = None
    statement: Any = None

    @classmethod
    def put(cls, collection: str, entity_id: Any, values: dict, conflict: AppError | None = None) -> "Operation":
        return cls("put", collection, entity_id, values=dict(values), conflict=conflict)

    @classmethod
    def update(cls, collection: str, entity_id: Any, patch: dict, *, expect: dict | None = None,
               conflict: AppError | None = None, missing: AppError | None = None) -> "Operation":
        return cls("update", collection, entity_id, values=dict(patch), expect=dict(expect or {}),
                   conflict=conflict, missing=missing)

    @classmethod
    def delete(cls, collection: str, entity_id: Any, *, expect: dict | None = None,
               conflict: AppError | None = None, missing: AppError | None = None) -> "Operation":
        return cls("delete", collection, entity_id, expect=dict(expect or {}), conflict=conflict, missing=missing)

    @classmethod
    def require(cls, collection: str, entity_id: Any, *, expect: dict | None = None,
                conflict: AppError | None = None, missing: AppError | None = None) -> "Operation":
        """Lock a row and check it without writing it."""
        return cls("require", collection, entity_id, expect=dict(expect or {}), conflict=conflict, missing=missing)

    @classmethod
    def absent(cls, collection: str, statement: Any, conflict: AppError) -> "Operation":
        """Fail with ``conflict`` if ``statement`` returns any row."""
        return cls("absent", collection, statement=statement, conflict=conflict)

    @property
    def locks_row(self) -> bool:
        return self.kind in ("update", "delete", "require")


class EntityStore:
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    # ------------------------------------------------------------------ reads

    def find(self, collection: str, entity_id: Any):
        if entity_id is None:
            return None
        return self.session.get(self.model(collection), entity_id)

    def get(self, collection: str, entity_id: Any, missing: AppError | None = None):
        entity = self.find(collection, entity_id)
        if entity is None:
            raise missing or NotFoundError(f"{collection} {entity_id} not found")
        return entity

    def query(self, collection: str, *criteria, order_by=None, limit: int | None = None, **equals) -> list:
        # keyword filters set to None are skipped
        model = self.model(collection)
        stmt = select(model).where(*criteria).filter_by(**{k: v for k, v in equals.items() if v is not None})
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def exists(self, statement) -> bool:
        return self.session.execute(statement.limit(1)).first() is not None

    # ----------------------------------------------------------------- writes

    def put(self, collection: str, entity_id: Any, values: dict):
        return self.transact([Operation.put(collection, entity_id, values)])[0]

    def update(self, collection: str, entity_id: Any, patch: dict):
        return self.transact([Operation.update(collection, entity_id, patch)])[0]

    def delete(self, collection: str, entity_id: Any) -> None:
        self.transact([Operation.delete(collection, entity_id)])

    def transact(self, operations: Iterable[Operation]) -> list:
        """Apply ``operations`` all-or-nothing and return one result per operation."""
        ops = list(operations)
        try:
            rows = self._lock_rows(ops)
            results = [self._apply(op, rows) for op in ops]
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Transaction lost a concurrent write race: %s", exc)
            raise ConflictError("Record was modified concurrently, please retry") from exc
        except Exception:
            self.session.rollback()
            raise
        return results

    def _lock_rows(self, ops: list[Operation]) -> dict:
        keys = sorted({(op.collection, str(op.entity_id)): op for op in ops if op.locks_row}.items())
        rows = {}
        for (collection, _), op in keys:
            rows[(collection, str(op.entity_id))] = self.session.get(
                self.model(collection),
                op.entity_id,
                with_for_update=True,
                populate_existing=True,
            )
        return rows

    def _apply(self, op: Operation, rows: dict):
        if op.kind == "put":
            entity = self.model(op.collection)(id=op.entity_id, **op.values)
            self.session.add(entity)
            try:
                self.session.flush()
            except (IntegrityError, FlushError) as exc:
                raise (op.conflict or ConflictError(f"{op.collection} {op.entity_id} conflicts with an existing record")) from exc
            return entity

        if op.kind == "absent":
            if self.exists(op.statement):
                raise op.conflict
            return None

        entity = rows.get((op.collection, str(op.entity_id)))
        if entity is None:
            raise op.missing or NotFoundError(f"{op.collection} {op.entity_id} not found")
        for name, expected in op.expect.items():
            if getattr(entity, name) != expected:
                raise op.conflict or ConflictError(
                    f"{op.collection} {op.entity_id}: expected {name}={expected!r}, found {getattr(entity, name)!r}"
                )

        if op.kind == "update":
            for name, value in op.values.items():
                setattr(entity, name, value)
            self.session.flush()
        elif op.kind == "delete":
            self.session.delete(entity)
            self.session.flush()
        return entity
