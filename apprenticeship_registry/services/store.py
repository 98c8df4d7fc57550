"""
Record store — the single write path to the database.

Services never touch ``db.session`` directly; they receive a
``RequestContext`` whose ``store`` wraps the request's SQLAlchemy session.
Writes are flushed, not committed; the calling service owns the
transaction boundary via ``store.commit()``.

SQLAlchemy failures are translated here:
    IntegrityError    → ConflictError   (duplicate / constraint violation)
    SQLAlchemyError   → StoreFailedError
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from flask import g, has_request_context, request
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload

from apprenticeship_registry.core.exceptions import ConflictError, StoreFailedError

logger = logging.getLogger(__name__)


class RecordStore:
    """Thin persistence facade over a SQLAlchemy session.

    Filters are equality-only ``{column: value}`` dicts; ``include`` names
    relationships to eager-load.
    """

    def __init__(self, session) -> None:
        self.session = session

    # ── Internals ────────────────────────────────────────────────────────

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning("Integrity error during %s: %s", operation, exc.orig)
            raise ConflictError("Record", "duplicate or constraint violation") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Database error during %s", operation)
            raise StoreFailedError(operation, str(exc)) from exc

    @staticmethod
    def _where(model, filters: dict | None):
        return [getattr(model, key) == value for key, value in (filters or {}).items()]

    # ── Reads ────────────────────────────────────────────────────────────

    def get(self, model, pk):
        """Return the row with primary key ``pk`` or None."""
        if pk in (None, ""):
            return None
        with self._guard("get"):
            return self.session.get(model, pk)

    def find_many(self, model, filters=None, *, include=(), order_by=None,
                  limit=None, offset=None) -> list:
        stmt = select(model).where(*self._where(model, filters))
        for rel in include:
            stmt = stmt.options(selectinload(getattr(model, rel)))
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        with self._guard("find_many"):
            return list(self.session.execute(stmt).scalars().all())

    def find_first(self, model, filters, *, include=(), order_by=None):
        stmt = select(model).where(*self._where(model, filters))
        for rel in include:
            stmt = stmt.options(selectinload(getattr(model, rel)))
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        with self._guard("find_first"):
            return self.session.execute(stmt.limit(1)).scalars().first()

    def scalars(self, stmt) -> list:
        """Run a prepared select() and return its ORM rows."""
        with self._guard("scalars"):
            return list(self.session.execute(stmt).scalars().all())

    def rows(self, stmt) -> list:
        """Run a prepared select() and return plain result rows."""
        with self._guard("rows"):
            return list(self.session.execute(stmt).all())

    def count(self, model, filters=None) -> int:
        stmt = select(func.count()).select_from(model).where(*self._where(model, filters))
        with self._guard("count"):
            return self.session.execute(stmt).scalar_one()

    # ── Writes (flushed, not committed) ──────────────────────────────────

    def create(self, model, data: dict):
        instance = model(**data)
        with self._guard("create"):
            self.session.add(instance)
            self.session.flush()
        return instance

    def update(self, instance, data: dict):
        for key, value in data.items():
            setattr(instance, key, value)
        with self._guard("update"):
            self.session.flush()
        return instance

    def delete(self, instance):
        with self._guard("delete"):
            self.session.delete(instance)
            self.session.flush()
        return instance

    def compare_and_set(self, model, pk, field: str, expected, value) -> bool:
        """Set ``field`` to ``value`` only where it currently equals ``expected``.

        One conditional UPDATE statement; returns True when exactly one row
        changed. The in-session instance (if loaded) is expired so the next
        attribute access re-reads the row.
        """
        column = getattr(model, field)
        stmt = (
            update(model)
            .where(model.id == pk, column == expected)
            .values({field: value})
            .execution_options(synchronize_session=False)
        )
        with self._guard("compare_and_set"):
            result = self.session.execute(stmt)
        instance = self.session.identity_map.get(self.session.identity_key(model, pk))
        if instance is not None:
            self.session.expire(instance)
        return result.rowcount == 1

    def refresh(self, instance):
        with self._guard("refresh"):
            self.session.refresh(instance)
        return instance

    # ── Transaction ──────────────────────────────────────────────────────

    def commit(self) -> None:
        with self._guard("commit"):
            self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class RequestContext:
    """Per-call context threaded into every service operation.

    Attributes:
        store:       RecordStore bound to the active session.
        actor:       Who is acting (API key role or "system").
        request_id:  Correlation id for logs.
    """

    def __init__(self, store: RecordStore, actor: str = "system", request_id: str | None = None) -> None:
        self.store = store
        self.actor = actor
        self.request_id = request_id

    @classmethod
    def from_request(cls) -> "RequestContext":
        """Build a context for the current Flask request (or app context)."""
        from apprenticeship_registry.models import db

        actor = "system"
        request_id = None
        if has_request_context():
            actor = request.headers.get("X-User") or getattr(g, "current_user_role", None) or "anonymous"
            request_id = getattr(g, "request_id", None)
        return cls(RecordStore(db.session), actor=actor, request_id=request_id)

    def log_extra(self, **fields) -> dict:
        """Return a logging ``extra`` dict carrying the request id."""
        return {"request_id": self.request_id, "actor": self.actor, **fields}
