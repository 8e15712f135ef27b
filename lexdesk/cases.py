"""
Case Service
============

Cases are numbered per client:

    {prefix}/{client sequence}/{matter type}/{case sequence}/{year}
    ABC/005/LIT/01/2024

The case sequence is max + 1 over the client's existing cases, with the
same non-atomic read-then-insert as client numbering.
"""

import logging
from typing import Dict, List, Optional

from .backend import BackendClient
from .db import CaseStatus, CasePriority
from .errors import ValidationFailed, PrefixNotConfigured, RecordNotFound
from .matter_types import get_matter_type
from .numbering import generate_case_number, next_sequence, client_sequence_part, normalize_prefix
from .org_settings import resolve_organization_prefix
from .schemas import CaseRow, ClientRow, ProfileRow, CaseDetail, CaseCreate, CaseUpdate

logger = logging.getLogger(__name__)

CASE_STATUSES = tuple(s.value for s in CaseStatus)
CASE_PRIORITIES = tuple(p.value for p in CasePriority)


def _check_choices(values: Dict[str, object], errors: Dict[str, str]):
    if values.get("status") is not None and values["status"] not in CASE_STATUSES:
        errors["status"] = f"Status must be one of {', '.join(CASE_STATUSES)}"
    if values.get("priority") is not None and values["priority"] not in CASE_PRIORITIES:
        errors["priority"] = f"Priority must be one of {', '.join(CASE_PRIORITIES)}"


def validate_case(data: CaseCreate) -> str:
    """Validate a new case; returns the normalized matter type abbreviation."""
    errors: Dict[str, str] = {}
    if not (data.title or "").strip():
        errors["title"] = "Case title is required"
    if not (data.client_id or "").strip():
        errors["client_id"] = "Client is required"

    matter_type = get_matter_type(data.matter_type or "")
    if not (data.matter_type or "").strip():
        errors["matter_type"] = "Matter type is required"
    elif matter_type is None:
        errors["matter_type"] = f"Unknown matter type: {data.matter_type}"

    _check_choices(data.model_dump(), errors)
    if errors:
        raise ValidationFailed(errors)
    return matter_type.abbreviation


class CaseService:
    """Case operations on behalf of one signed-in user."""

    def __init__(self, backend: BackendClient, user_id: str):
        self.backend = backend
        self.user_id = user_id

    def _scoped(self):
        return (
            self.backend.table("cases").select("*")
            .eq_any({"created_by": self.user_id, "assigned_to": self.user_id})
        )

    def _client(self, client_id: str) -> ClientRow:
        row = (
            self.backend.table("clients").select("*")
            .eq("id", client_id).eq("created_by", self.user_id).maybe_single().execute().data
        )
        if not row:
            raise RecordNotFound("Client", client_id)
        return ClientRow.model_validate(row)

    def _max_sequence(self, client_id: str) -> Optional[int]:
        row = (
            self.backend.table("cases").select("sequential_number")
            .eq("client_id", client_id)
            .order("sequential_number", desc=True)
            .limit(1)
            .maybe_single()
            .execute().data
        )
        return row["sequential_number"] if row else None

    def create(self, data: CaseCreate) -> CaseRow:
        matter_type = validate_case(data)
        client = self._client(data.client_id)

        prefix = normalize_prefix(client.organization_prefix) or resolve_organization_prefix(
            self.backend, self.user_id
        )
        if not prefix:
            raise PrefixNotConfigured()
        client_seq = client_sequence_part(client.client_number, client.sequential_number)
        if client_seq is None:
            raise ValidationFailed({"client_id": "Client has no client number"})

        sequence = next_sequence(self._max_sequence(client.id))
        year = self.backend.clock().year
        case_number = generate_case_number(prefix, client_seq, matter_type, sequence, year)

        row = (
            self.backend.table("cases").insert({
                "title": data.title.strip(),
                "description": data.description,
                "client_id": client.id,
                "status": data.status or CaseStatus.OPEN.value,
                "priority": data.priority or CasePriority.MEDIUM.value,
                "case_type": data.case_type,
                "matter_type": matter_type,
                "case_number": case_number,
                "sequential_number": sequence,
                "year": year,
                "assigned_to": data.assigned_to,
                "created_by": self.user_id,
                "due_date": data.due_date,
            }).single().execute().data
        )
        logger.info(f"Created case {case_number} ({row['id']})")
        return CaseRow.model_validate(row)

    def list(self, status: Optional[str] = None, client_id: Optional[str] = None) -> List[CaseRow]:
        query = self._scoped()
        if status:
            query = query.eq("status", status)
        if client_id:
            query = query.eq("client_id", client_id)
        rows = query.order("created_at", desc=True).execute().data
        return [CaseRow.model_validate(r) for r in rows]

    def _get_row(self, case_id: str) -> CaseRow:
        row = self._scoped().eq("id", case_id).maybe_single().execute().data
        if not row:
            raise RecordNotFound("Case", case_id)
        return CaseRow.model_validate(row)

    def _profile(self, profile_id: Optional[str]) -> Optional[ProfileRow]:
        if not profile_id:
            return None
        row = (
            self.backend.table("profiles").select("*")
            .eq("id", profile_id).maybe_single().execute().data
        )
        return ProfileRow.model_validate(row) if row else None

    def get(self, case_id: str) -> CaseDetail:
        """Case with its client and the assigned/created-by profiles."""
        case = self._get_row(case_id)
        client = (
            self.backend.table("clients").select("*")
            .eq("id", case.client_id).maybe_single().execute().data
        )
        return CaseDetail(
            case=case,
            client=ClientRow.model_validate(client) if client else None,
            assigned_to=self._profile(case.assigned_to),
            created_by=self._profile(case.created_by),
        )

    def update(self, case_id: str, changes: CaseUpdate) -> CaseRow:
        current = self._get_row(case_id)
        values = changes.model_dump(exclude_unset=True)

        errors: Dict[str, str] = {}
        if "title" in values and not (values["title"] or "").strip():
            errors["title"] = "Case title is required"
        _check_choices(values, errors)
        if errors:
            raise ValidationFailed(errors)
        if not values:
            return current

        row = (
            self.backend.table("cases").update(values)
            .eq("id", case_id).single().execute().data
        )
        return CaseRow.model_validate(row)

    def delete(self, case_id: str) -> None:
        self._get_row(case_id)
        self.backend.table("cases").delete().eq("id", case_id).execute()
        logger.info(f"Deleted case {case_id}")
