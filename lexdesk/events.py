"""
Calendar events: range listing and creation.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from .backend import BackendClient
from .db import EventType
from .errors import RecordNotFound, ValidationFailed
from .schemas import EventRow, EventCreate

logger = logging.getLogger(__name__)

EVENT_TYPES = tuple(t.value for t in EventType)


def validate_event(data: EventCreate) -> None:
    errors: Dict[str, str] = {}
    if not (data.title or "").strip():
        errors["title"] = "Event title is required"
    if data.start_date is None:
        errors["start_date"] = "Start date is required"
    elif data.end_date is not None and data.end_date < data.start_date:
        errors["end_date"] = "End date must be after the start date"
    if data.event_type not in EVENT_TYPES:
        errors["event_type"] = f"Event type must be one of {', '.join(EVENT_TYPES)}"
    if data.reminder and data.reminder_time is not None and data.reminder_time < 0:
        errors["reminder_time"] = "Reminder time cannot be negative"
    if errors:
        raise ValidationFailed(errors)


class EventService:
    def __init__(self, backend: BackendClient, user_id: str):
        self.backend = backend
        self.user_id = user_id

    def list(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        event_type: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> List[EventRow]:
        """Events starting in [start, end], ordered by start date."""
        query = self.backend.table("events").select("*").eq("created_by", self.user_id)
        if start is not None:
            query = query.gte("start_date", start)
        if end is not None:
            query = query.lte("start_date", end)
        if event_type:
            query = query.eq("event_type", event_type)
        if case_id:
            query = query.eq("case_id", case_id)
        rows = query.order("start_date").execute().data
        return [EventRow.model_validate(r) for r in rows]

    def _check_links(self, data: EventCreate) -> None:
        """Linked case and client must be visible to the user."""
        if data.client_id:
            row = (
                self.backend.table("clients").select("id")
                .eq("id", data.client_id).eq("created_by", self.user_id)
                .maybe_single().execute().data
            )
            if not row:
                raise RecordNotFound("Client", data.client_id)
        if data.case_id:
            row = (
                self.backend.table("cases").select("id")
                .eq("id", data.case_id)
                .eq_any({"created_by": self.user_id, "assigned_to": self.user_id})
                .maybe_single().execute().data
            )
            if not row:
                raise RecordNotFound("Case", data.case_id)

    def create(self, data: EventCreate) -> EventRow:
        validate_event(data)
        self._check_links(data)
        values = data.model_dump()
        values["title"] = values["title"].strip()
        values["created_by"] = self.user_id
        row = self.backend.table("events").insert(values).single().execute().data
        logger.info(f"Created {data.event_type} event {row['id']}")
        return EventRow.model_validate(row)
