"""
Table Query Builder
===================

Chainable request builder over the backend tables:

    backend.table("clients").select("sequential_number") \
        .eq("organization_prefix", "ABC") \
        .order("sequential_number", desc=True) \
        .limit(1) \
        .maybe_single() \
        .execute()

Each mutating request commits on execute(), like a single REST call.
Rows come back as plain dicts; callers parse them into schemas.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, date
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import DateTime, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import TABLES
from .errors import (
    BackendError, RowNotFound,
    MULTIPLE_ROWS_CODE, UNKNOWN_COLUMN_CODE, UNKNOWN_TABLE_CODE,
    UNIQUE_VIOLATION_CODE, FOREIGN_KEY_VIOLATION_CODE, NOT_NULL_VIOLATION_CODE,
)

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


@dataclass
class APIResponse:
    """Result of an executed request"""
    data: Any
    count: Optional[int] = None


def row_to_dict(obj, columns: Optional[List[str]] = None) -> Row:
    names = columns or [c.name for c in obj.__table__.columns]
    return {name: getattr(obj, name) for name in names}


def parse_datetime(value: Any) -> Any:
    """Accept ISO strings (with or without Z) for DateTime columns."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = (value - value.utcoffset()).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return value


def _integrity_code(error: IntegrityError) -> Optional[str]:
    text = str(error.orig).upper() if error.orig is not None else str(error).upper()
    if "UNIQUE" in text or "DUPLICATE" in text:
        return UNIQUE_VIOLATION_CODE
    if "FOREIGN KEY" in text:
        return FOREIGN_KEY_VIOLATION_CODE
    if "NOT NULL" in text:
        return NOT_NULL_VIOLATION_CODE
    return None


class TableQuery:
    """Request builder for one table."""

    def __init__(self, db: Session, table: str):
        model = TABLES.get(table)
        if model is None:
            raise BackendError(f'relation "public.{table}" does not exist', code=UNKNOWN_TABLE_CODE)
        self.db = db
        self.table = table
        self.model = model
        self._action = "select"
        self._columns: Optional[List[str]] = None
        self._payload: List[Row] = []
        self._on_conflict: Optional[List[str]] = None
        self._filters: list = []
        self._order: list = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._single: Optional[str] = None
        self._count: Optional[str] = None

    # -------------------------------------------------------------------------
    # Columns
    # -------------------------------------------------------------------------

    def _column_names(self) -> List[str]:
        return [c.name for c in self.model.__table__.columns]

    def _column(self, name: str):
        if name not in self.model.__table__.columns:
            raise BackendError(
                f"Could not find the '{name}' column of '{self.table}'",
                code=UNKNOWN_COLUMN_CODE,
            )
        return getattr(self.model, name)

    def _coerce(self, name: str, value: Any) -> Any:
        column = self.model.__table__.columns[name]
        if isinstance(column.type, DateTime) and value is not None:
            try:
                return parse_datetime(value)
            except ValueError as e:
                raise BackendError(f"invalid input syntax for type timestamp: \"{value}\"", code="22007") from e
        return value

    def _clean_row(self, row: Row) -> Row:
        clean = {}
        for key, value in row.items():
            self._column(key)
            clean[key] = self._coerce(key, value)
        return clean

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def select(self, columns: str = "*", count: Optional[str] = None) -> "TableQuery":
        """Select columns ("*" or "a, b"). After a mutation, selects the returned columns."""
        if columns and columns.strip() != "*":
            names = [c.strip() for c in columns.split(",") if c.strip()]
            for name in names:
                self._column(name)
            self._columns = names
        self._count = count
        return self

    def insert(self, rows: Union[Row, List[Row]]) -> "TableQuery":
        self._action = "insert"
        self._payload = [rows] if isinstance(rows, dict) else list(rows)
        return self

    def upsert(self, rows: Union[Row, List[Row]], on_conflict: Optional[str] = None) -> "TableQuery":
        self._action = "upsert"
        self._payload = [rows] if isinstance(rows, dict) else list(rows)
        if on_conflict:
            self._on_conflict = [c.strip() for c in on_conflict.split(",")]
        return self

    def update(self, values: Row) -> "TableQuery":
        self._action = "update"
        self._payload = [values]
        return self

    def delete(self) -> "TableQuery":
        self._action = "delete"
        return self

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column) == self._coerce(column, value))
        return self

    def neq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column) != self._coerce(column, value))
        return self

    def gt(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column) > self._coerce(column, value))
        return self

    def gte(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column) >= self._coerce(column, value))
        return self

    def lt(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column) < self._coerce(column, value))
        return self

    def lte(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column) <= self._coerce(column, value))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "TableQuery":
        self._filters.append(self._column(column).in_([self._coerce(column, v) for v in values]))
        return self

    def is_(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(self._column(column).is_(value))
        return self

    def ilike(self, column: str, pattern: str) -> "TableQuery":
        self._filters.append(self._column(column).ilike(pattern))
        return self

    def ilike_any(self, columns: Iterable[str], pattern: str) -> "TableQuery":
        """OR of ilike across several columns."""
        self._filters.append(or_(*[self._column(c).ilike(pattern) for c in columns]))
        return self

    def eq_any(self, conditions: Dict[str, Any]) -> "TableQuery":
        """OR of equality filters: eq_any({"created_by": uid, "assigned_to": uid})."""
        self._filters.append(or_(*[
            self._column(c) == self._coerce(c, v) for c, v in conditions.items()
        ]))
        return self

    # -------------------------------------------------------------------------
    # Modifiers
    # -------------------------------------------------------------------------

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        col = self._column(column)
        self._order.append(col.desc() if desc else col.asc())
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    def range(self, start: int, end: int) -> "TableQuery":
        self._offset = start
        self._limit = end - start + 1
        return self

    def single(self) -> "TableQuery":
        """Expect exactly one row; zero rows raise RowNotFound."""
        self._single = "single"
        return self

    def maybe_single(self) -> "TableQuery":
        """Expect zero or one row; zero rows give data=None."""
        self._single = "maybe"
        return self

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def _filtered(self):
        query = self.db.query(self.model)
        if self._filters:
            query = query.filter(*self._filters)
        return query

    def _primary_keys(self) -> List[str]:
        return [c.name for c in self.model.__table__.primary_key.columns]

    def _run(self) -> List[Row]:
        if self._action == "select":
            query = self._filtered()
            if self._order:
                query = query.order_by(*self._order)
            if self._offset:
                query = query.offset(self._offset)
            if self._limit is not None:
                query = query.limit(self._limit)
            return [row_to_dict(obj, self._columns) for obj in query.all()]

        if self._action == "insert":
            objs = [self.model(**self._clean_row(row)) for row in self._payload]
            self.db.add_all(objs)
            self.db.commit()
            for obj in objs:
                self.db.refresh(obj)
            return [row_to_dict(obj, self._columns) for obj in objs]

        if self._action == "upsert":
            keys = self._on_conflict or self._primary_keys()
            objs = []
            for row in self._payload:
                clean = self._clean_row(row)
                existing = None
                if all(clean.get(k) is not None for k in keys):
                    existing = (
                        self.db.query(self.model)
                        .filter(*[self._column(k) == clean[k] for k in keys])
                        .first()
                    )
                if existing:
                    for key, value in clean.items():
                        setattr(existing, key, value)
                    objs.append(existing)
                else:
                    obj = self.model(**clean)
                    self.db.add(obj)
                    objs.append(obj)
            self.db.commit()
            for obj in objs:
                self.db.refresh(obj)
            return [row_to_dict(obj, self._columns) for obj in objs]

        if self._action == "update":
            values = self._clean_row(self._payload[0])
            objs = self._filtered().all()
            for obj in objs:
                for key, value in values.items():
                    setattr(obj, key, value)
            self.db.commit()
            for obj in objs:
                self.db.refresh(obj)
            return [row_to_dict(obj, self._columns) for obj in objs]

        if self._action == "delete":
            objs = self._filtered().all()
            rows = [row_to_dict(obj, self._columns) for obj in objs]
            for obj in objs:
                self.db.delete(obj)
            self.db.commit()
            return rows

        raise BackendError(f"Unsupported action: {self._action}")

    def _count_rows(self) -> int:
        return self._filtered().count()

    def execute(self) -> APIResponse:
        try:
            rows = self._run()
            count = self._count_rows() if self._count and self._action == "select" else None
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"{self._action} on {self.table} violated a constraint: {e.orig}")
            raise BackendError(str(e.orig), code=_integrity_code(e)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{self._action} on {self.table} failed: {e}")
            raise BackendError(str(e)) from e

        if self._single == "single":
            if not rows:
                raise RowNotFound(details=f"The result contains 0 rows ({self.table})")
            if len(rows) > 1:
                raise BackendError(
                    "JSON object requested, multiple (or no) rows returned",
                    code=MULTIPLE_ROWS_CODE,
                    details=f"The result contains {len(rows)} rows ({self.table})",
                )
            return APIResponse(data=rows[0], count=count)

        if self._single == "maybe":
            if len(rows) > 1:
                raise BackendError(
                    "JSON object requested, multiple rows returned",
                    code=MULTIPLE_ROWS_CODE,
                    details=f"The result contains {len(rows)} rows ({self.table})",
                )
            return APIResponse(data=rows[0] if rows else None, count=count)

        return APIResponse(data=rows, count=count)
