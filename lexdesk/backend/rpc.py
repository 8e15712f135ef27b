"""
Backend RPC Functions
=====================

Server-side aggregate functions called by name:

    backend.rpc("get_dashboard_stats", {"user_id": uid}).execute()

A user's scope is every case they created or are assigned to, plus the
documents and events attached to those cases or created by the user.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.models import (
    ACTIVE_CASE_STATUSES, Case, Client, Document, Event, EventType, Profile,
)
from .errors import BackendError, UNKNOWN_FUNCTION_CODE
from .query import APIResponse

logger = logging.getLogger(__name__)

STATS_WINDOW_DAYS = 30
HEARINGS_WINDOW_DAYS = 7
DEFAULT_LIMIT = 5


def percent_change(current: int, previous: int) -> float:
    """Percent change from previous to current, rounded to one decimal."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


# =============================================================================
# SCOPE HELPERS
# =============================================================================

def _case_scope(user_id: str):
    return or_(Case.created_by == user_id, Case.assigned_to == user_id)


def _scoped_case_ids(db: Session, user_id: str):
    return select(Case.id).where(_case_scope(user_id))


def _document_scope(db: Session, user_id: str):
    return or_(
        Document.uploaded_by == user_id,
        Document.case_id.in_(_scoped_case_ids(db, user_id)),
    )


def _hearing_scope(db: Session, user_id: str):
    return (
        Event.event_type == EventType.HEARING.value,
        or_(Event.created_by == user_id, Event.case_id.in_(_scoped_case_ids(db, user_id))),
    )


def _names(db: Session, model, ids, attr: str) -> Dict[str, Optional[str]]:
    ids = {i for i in ids if i}
    if not ids:
        return {}
    return {row.id: getattr(row, attr) for row in db.query(model).filter(model.id.in_(ids)).all()}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# FUNCTIONS
# =============================================================================

def get_dashboard_stats(db: Session, params: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    user_id = params["user_id"]
    month_ago = now - timedelta(days=STATS_WINDOW_DAYS)
    week_ago = now - timedelta(days=HEARINGS_WINDOW_DAYS)

    cases = db.query(Case).filter(_case_scope(user_id))
    total_cases = cases.count()
    cases_last_month = cases.filter(Case.created_at <= month_ago).count()

    active = cases.filter(Case.status.in_(ACTIVE_CASE_STATUSES))
    active_cases = active.count()
    active_cases_last_month = active.filter(Case.created_at <= month_ago).count()

    documents = db.query(Document).filter(_document_scope(db, user_id))
    total_documents = documents.count()
    documents_last_month = documents.filter(Document.uploaded_at <= month_ago).count()

    hearings = db.query(Event).filter(*_hearing_scope(db, user_id))
    upcoming_hearings = hearings.filter(Event.start_date >= now).count()
    # Hearings that were already scheduled and still upcoming a week ago
    hearings_last_week = hearings.filter(
        Event.start_date >= week_ago,
        Event.created_at <= week_ago,
    ).count()

    return {
        "total_cases": total_cases,
        "active_cases": active_cases,
        "total_documents": total_documents,
        "upcoming_hearings": upcoming_hearings,
        "cases_change": percent_change(total_cases, cases_last_month),
        "active_cases_change": percent_change(active_cases, active_cases_last_month),
        "documents_change": percent_change(total_documents, documents_last_month),
        "hearings_change": percent_change(upcoming_hearings, hearings_last_week),
        "cases_last_month": cases_last_month,
        "active_cases_last_month": active_cases_last_month,
        "documents_last_month": documents_last_month,
        "hearings_last_week": hearings_last_week,
    }


def get_recent_cases(db: Session, params: Dict[str, Any], now: datetime) -> List[Dict[str, Any]]:
    user_id = params["user_id"]
    limit = int(params.get("limit_count", DEFAULT_LIMIT))

    cases = (
        db.query(Case)
        .filter(_case_scope(user_id))
        .order_by(Case.created_at.desc())
        .limit(limit)
        .all()
    )
    clients = _names(db, Client, [c.client_id for c in cases], "name")
    attorneys = _names(db, Profile, [c.assigned_to for c in cases], "full_name")

    return [
        {
            "id": case.id,
            "title": case.title,
            "status": case.status,
            "priority": case.priority,
            "case_type": case.case_type,
            "client_name": clients.get(case.client_id),
            "client_id": case.client_id,
            "assigned_to_name": attorneys.get(case.assigned_to),
            "created_at": _iso(case.created_at),
            "due_date": _iso(case.due_date),
        }
        for case in cases
    ]


def get_upcoming_hearings(db: Session, params: Dict[str, Any], now: datetime) -> List[Dict[str, Any]]:
    user_id = params["user_id"]
    limit = int(params.get("limit_count", DEFAULT_LIMIT))

    events = (
        db.query(Event)
        .filter(*_hearing_scope(db, user_id))
        .filter(Event.start_date >= now)
        .order_by(Event.start_date.asc())
        .limit(limit)
        .all()
    )
    cases = {c.id: c for c in db.query(Case).filter(Case.id.in_({e.case_id for e in events if e.case_id})).all()}
    clients = _names(
        db, Client,
        [e.client_id or (cases[e.case_id].client_id if e.case_id in cases else None) for e in events],
        "name",
    )

    rows = []
    for event in events:
        case = cases.get(event.case_id)
        client_id = event.client_id or (case.client_id if case else None)
        rows.append({
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "start_date": _iso(event.start_date),
            "location": event.location,
            "case_title": case.title if case else None,
            "case_id": event.case_id,
            "client_name": clients.get(client_id),
        })
    return rows


def get_recent_documents(db: Session, params: Dict[str, Any], now: datetime) -> List[Dict[str, Any]]:
    user_id = params["user_id"]
    limit = int(params.get("limit_count", DEFAULT_LIMIT))

    documents = (
        db.query(Document)
        .filter(_document_scope(db, user_id))
        .order_by(Document.uploaded_at.desc())
        .limit(limit)
        .all()
    )
    cases = {c.id: c for c in db.query(Case).filter(Case.id.in_({d.case_id for d in documents if d.case_id})).all()}
    client_ids = [d.client_id or (cases[d.case_id].client_id if d.case_id in cases else None) for d in documents]
    clients = _names(db, Client, client_ids, "name")
    uploaders = _names(db, Profile, [d.uploaded_by for d in documents], "full_name")

    rows = []
    for document, client_id in zip(documents, client_ids):
        case = cases.get(document.case_id)
        rows.append({
            "id": document.id,
            "name": document.name,
            "description": document.description,
            "file_type": document.file_type,
            "size": document.size,
            "uploaded_at": _iso(document.uploaded_at),
            "case_title": case.title if case else None,
            "case_id": document.case_id,
            "client_name": clients.get(client_id),
            "uploaded_by_name": uploaders.get(document.uploaded_by),
        })
    return rows


RpcFunction = Callable[[Session, Dict[str, Any], datetime], Any]

FUNCTIONS: Dict[str, RpcFunction] = {
    "get_dashboard_stats": get_dashboard_stats,
    "get_recent_cases": get_recent_cases,
    "get_upcoming_hearings": get_upcoming_hearings,
    "get_recent_documents": get_recent_documents,
}


class RpcCall:
    """A pending RPC call; run with execute()."""

    def __init__(self, db: Session, name: str, params: Optional[Dict[str, Any]] = None,
                 clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.name = name
        self.params = dict(params or {})
        self.clock = clock

    def execute(self) -> APIResponse:
        fn = FUNCTIONS.get(self.name)
        if fn is None or "user_id" not in self.params:
            signature = ", ".join(sorted(self.params))
            raise BackendError(
                f"Could not find the function public.{self.name}({signature}) in the schema cache",
                code=UNKNOWN_FUNCTION_CODE,
            )
        try:
            data = fn(self.db, self.params, self.clock())
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"RPC {self.name} failed: {e}")
            raise BackendError(str(e)) from e
        return APIResponse(data=data)
