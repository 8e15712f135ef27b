"""
Client Service
==============

Client CRUD with organization-prefixed numbering (ABC/001, ABC/002, ...).

Creating a client reads the highest sequential_number in use for the
prefix and inserts max + 1. The read and the insert are separate calls,
so two concurrent creations under the same prefix can receive the same
number. Nothing here locks or retries.
"""

import re
import logging
from typing import Dict, List, Optional

from .backend import BackendClient
from .errors import ValidationFailed, PrefixNotConfigured, ProfileMissing, RecordNotFound, LexDeskError
from .numbering import generate_client_number, next_sequence
from .org_settings import resolve_organization_prefix
from .schemas import ClientRow, CaseRow, ClientDetail, ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SEARCH_FIELDS = ("name", "email", "company")
CLIENT_STATUSES = ("active", "inactive")


def _blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def validate_client(data: ClientCreate) -> None:
    """Raise ValidationFailed for missing name, missing contact or a malformed email."""
    errors: Dict[str, str] = {}
    if _blank(data.name):
        errors["name"] = "Client name is required"
    if _blank(data.email) and _blank(data.phone):
        errors["contact"] = "Either email or phone number is required"
    if not _blank(data.email) and not EMAIL_PATTERN.match(data.email.strip()):
        errors["email"] = "Please enter a valid email address"
    if errors:
        raise ValidationFailed(errors)


class ClientService:
    """Client operations on behalf of one signed-in user."""

    def __init__(self, backend: BackendClient, user_id: str):
        self.backend = backend
        self.user_id = user_id

    # -------------------------------------------------------------------------
    # Numbering
    # -------------------------------------------------------------------------

    def _require_prefix(self) -> str:
        prefix = resolve_organization_prefix(self.backend, self.user_id)
        if not prefix:
            raise PrefixNotConfigured()
        return prefix

    def _max_sequence(self, prefix: str) -> Optional[int]:
        row = (
            self.backend.table("clients").select("sequential_number")
            .eq("organization_prefix", prefix)
            .order("sequential_number", desc=True)
            .limit(1)
            .maybe_single()
            .execute().data
        )
        return row["sequential_number"] if row else None

    def preview_next_number(self) -> str:
        """The number the next client would get (not reserved)."""
        prefix = self._require_prefix()
        return generate_client_number(prefix, next_sequence(self._max_sequence(prefix)))

    def _require_profile(self):
        row = (
            self.backend.table("profiles").select("id")
            .eq("id", self.user_id).maybe_single().execute().data
        )
        if not row:
            raise ProfileMissing()

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create(self, data: ClientCreate) -> ClientRow:
        validate_client(data)
        prefix = self._require_prefix()
        self._require_profile()

        sequence = next_sequence(self._max_sequence(prefix))
        client_number = generate_client_number(prefix, sequence)

        row = (
            self.backend.table("clients").insert({
                "name": data.name.strip(),
                "email": (data.email or "").strip() or None,
                "phone": (data.phone or "").strip() or None,
                "address": data.address,
                "company": data.company,
                "notes": data.notes,
                "status": "active",
                "organization_prefix": prefix,
                "sequential_number": sequence,
                "client_number": client_number,
                "created_by": self.user_id,
            }).single().execute().data
        )
        logger.info(f"Created client {client_number} ({row['id']})")
        return ClientRow.model_validate(row)

    def list(self, search: Optional[str] = None) -> List[ClientRow]:
        """Clients ordered by name; search matches name, email or company (case-insensitive)."""
        query = self.backend.table("clients").select("*").eq("created_by", self.user_id)
        term = (search or "").strip()
        if term:
            query = query.ilike_any(SEARCH_FIELDS, f"%{term}%")
        rows = query.order("name").execute().data
        return [ClientRow.model_validate(r) for r in rows]

    def _get_row(self, client_id: str) -> ClientRow:
        row = (
            self.backend.table("clients").select("*")
            .eq("id", client_id).eq("created_by", self.user_id)
            .maybe_single().execute().data
        )
        if not row:
            raise RecordNotFound("Client", client_id)
        return ClientRow.model_validate(row)

    def get(self, client_id: str) -> ClientDetail:
        client = self._get_row(client_id)
        cases = (
            self.backend.table("cases").select("*")
            .eq("client_id", client_id).order("created_at", desc=True)
            .execute().data
        )
        return ClientDetail(client=client, cases=[CaseRow.model_validate(c) for c in cases])

    def update(self, client_id: str, changes: ClientUpdate) -> ClientRow:
        current = self._get_row(client_id)
        values = changes.model_dump(exclude_unset=True)
        for field in ("email", "phone"):
            if field in values:
                values[field] = (values[field] or "").strip() or None

        merged = ClientCreate(
            name=values.get("name", current.name),
            email=values.get("email", current.email),
            phone=values.get("phone", current.phone),
        )
        validate_client(merged)
        if "status" in values and values["status"] not in CLIENT_STATUSES:
            raise ValidationFailed({"status": f"Status must be one of {', '.join(CLIENT_STATUSES)}"})
        if not values:
            return current

        row = (
            self.backend.table("clients").update(values)
            .eq("id", client_id).single().execute().data
        )
        return ClientRow.model_validate(row)

    def delete(self, client_id: str) -> None:
        """Delete a client without cases. Numbers are never reused unless it was the highest."""
        self._get_row(client_id)
        cases = self.backend.table("cases").select("id").eq("client_id", client_id).limit(1).execute().data
        if cases:
            raise LexDeskError("Cannot delete a client that has cases")
        self.backend.table("clients").delete().eq("id", client_id).execute()
        logger.info(f"Deleted client {client_id}")
