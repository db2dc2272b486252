"""
Permission store implementations.

``SqlPermissionStore`` persists records with SQLAlchemy's asyncio extension;
each call opens its own session so reconciliation tasks can run
concurrently. ``InMemoryPermissionStore`` keeps records in a dict and is
handy for embedding and tests.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fieldguard.db.session import translate_db_errors
from fieldguard.errors import RecordNotFound
from fieldguard.models.permissions import AttributePermission
from fieldguard.permissions.protocols import FILTER_KEYS
from fieldguard.schemas.permissions import PermissionRecord


def _check_filters(filters: Mapping[str, Any] | None) -> dict[str, Any]:
    checked = dict(filters or {})
    unknown = set(checked).difference(FILTER_KEYS)
    if unknown:
        raise ValueError(f"Unknown permission filter keys: {sorted(unknown)}")
    return checked


def parse_sort(sort: str | None) -> tuple[str, bool]:
    """
    Parse ``"field"`` / ``"field:asc"`` / ``"field:desc"``.

    Returns (field, descending). Defaults to ``("id", False)``.
    """

    if not sort:
        return "id", False
    field_name, _, direction = sort.partition(":")
    field_name = field_name.strip()
    direction = direction.strip().lower() or "asc"
    if field_name not in FILTER_KEYS:
        raise ValueError(f"Cannot sort permissions by {field_name!r}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"Invalid sort direction {direction!r}")
    return field_name, direction == "desc"


def _sort_key(value: Any) -> tuple[bool, Any]:
    # NULLs sort after every value.
    return value is None, value if value is not None else ""


class SqlPermissionStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _where(filters: Mapping[str, Any] | None) -> list[Any]:
        clauses = []
        for key, value in _check_filters(filters).items():
            column = getattr(AttributePermission, key)
            clauses.append(column.is_(None) if value is None else column == value)
        return clauses

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        start: int = 0,
        limit: int | None = None,
        sort: str | None = None,
    ) -> list[PermissionRecord]:
        field_name, descending = parse_sort(sort)
        column = getattr(AttributePermission, field_name)
        stmt = (
            select(AttributePermission)
            .where(*self._where(filters))
            .order_by(column.desc() if descending else column.asc(), AttributePermission.id)
            .offset(start)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async with translate_db_errors("find"), self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [PermissionRecord.model_validate(row) for row in rows]

    async def find_one(self, filters: Mapping[str, Any]) -> PermissionRecord | None:
        stmt = select(AttributePermission).where(*self._where(filters)).order_by(AttributePermission.id).limit(1)
        async with translate_db_errors("find_one"), self._session_factory() as session:
            row = (await session.scalars(stmt)).first()
        return PermissionRecord.model_validate(row) if row is not None else None

    async def count(self, filters: Mapping[str, Any] | None = None) -> int:
        stmt = select(func.count()).select_from(AttributePermission).where(*self._where(filters))
        async with translate_db_errors("count"), self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one()

    async def create(self, record: PermissionRecord) -> PermissionRecord:
        row = AttributePermission(**record.model_dump(exclude={"id"}))
        async with translate_db_errors("create"), self._session_factory() as session, session.begin():
            session.add(row)
        return PermissionRecord.model_validate(row)

    async def update(self, record: PermissionRecord) -> PermissionRecord:
        if record.id is None:
            raise ValueError("Cannot update a permission record without an id")

        stmt = (
            update(AttributePermission)
            .where(AttributePermission.id == record.id)
            .values(**record.model_dump(exclude={"id"}))
        )
        async with translate_db_errors("update"), self._session_factory() as session, session.begin():
            updated = (await session.execute(stmt)).rowcount
        if updated == 0:
            raise RecordNotFound(f"Permission {record.id} not found", id=record.id)
        return record

    async def delete(self, record: PermissionRecord) -> None:
        # Deleting an already-deleted record is a no-op; reconciliation re-runs rely on it.
        stmt = delete(AttributePermission).where(AttributePermission.id == record.id)
        async with translate_db_errors("delete"), self._session_factory() as session, session.begin():
            await session.execute(stmt)


class InMemoryPermissionStore:
    def __init__(self, records: Iterable[PermissionRecord] = ()) -> None:
        self._records: dict[int, PermissionRecord] = {}
        self._ids = itertools.count(1)
        for record in records:
            self._insert(record)

    def _insert(self, record: PermissionRecord) -> PermissionRecord:
        stored = record.model_copy(update={"id": next(self._ids)})
        self._records[stored.id] = stored
        return stored

    def _matching(self, filters: Mapping[str, Any] | None) -> list[PermissionRecord]:
        checked = _check_filters(filters)
        return [
            record
            for record in self._records.values()
            if all(getattr(record, key) == value for key, value in checked.items())
        ]

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        start: int = 0,
        limit: int | None = None,
        sort: str | None = None,
    ) -> list[PermissionRecord]:
        field_name, descending = parse_sort(sort)
        records = sorted(self._matching(filters), key=lambda r: r.id or 0)
        records.sort(key=lambda r: _sort_key(getattr(r, field_name)), reverse=descending)
        end = None if limit is None else start + limit
        return records[start:end]

    async def find_one(self, filters: Mapping[str, Any]) -> PermissionRecord | None:
        matches = self._matching(filters)
        return min(matches, key=lambda r: r.id or 0) if matches else None

    async def count(self, filters: Mapping[str, Any] | None = None) -> int:
        return len(self._matching(filters))

    async def create(self, record: PermissionRecord) -> PermissionRecord:
        return self._insert(record)

    async def update(self, record: PermissionRecord) -> PermissionRecord:
        if record.id is None or record.id not in self._records:
            raise RecordNotFound(f"Permission {record.id} not found", id=record.id)
        self._records[record.id] = record
        return record

    async def delete(self, record: PermissionRecord) -> None:
        if record.id is not None:
            self._records.pop(record.id, None)

    def all(self) -> list[PermissionRecord]:
        return sorted(self._records.values(), key=lambda r: r.id or 0)
