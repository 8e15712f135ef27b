"""
Organization settings: the numbering prefix ("ABC" in ABC/001).
"""

import logging
from typing import Optional

from .backend import BackendClient
from .errors import ValidationFailed
from .numbering import MAX_PREFIX_LENGTH, normalize_prefix
from .schemas import OrganizationSettingsRow

logger = logging.getLogger(__name__)


def validate_prefix(prefix: Optional[str]) -> str:
    value = normalize_prefix(prefix)
    if not value:
        raise ValidationFailed({"organization_prefix": "Organization abbreviation is required"})
    if len(value) > MAX_PREFIX_LENGTH:
        raise ValidationFailed(
            {"organization_prefix": "Organization abbreviation must be 5 characters or less"}
        )
    return value


class OrganizationSettingsService:
    def __init__(self, backend: BackendClient, user_id: str):
        self.backend = backend
        self.user_id = user_id

    def get(self) -> Optional[OrganizationSettingsRow]:
        row = (
            self.backend.table("organization_settings").select("*")
            .eq("user_id", self.user_id).maybe_single().execute().data
        )
        return OrganizationSettingsRow.model_validate(row) if row else None

    def get_prefix(self) -> str:
        """The saved prefix, or "" when none is saved."""
        settings = self.get()
        return settings.organization_prefix if settings else ""

    def save(self, prefix: Optional[str]) -> OrganizationSettingsRow:
        value = validate_prefix(prefix)
        row = (
            self.backend.table("organization_settings")
            .upsert({"user_id": self.user_id, "organization_prefix": value}, on_conflict="user_id")
            .single().execute().data
        )
        logger.info(f"Organization prefix for {self.user_id} set to {value}")
        return OrganizationSettingsRow.model_validate(row)


def resolve_organization_prefix(backend: BackendClient, user_id: str) -> str:
    """Prefix used for numbering: organization settings first, then firm settings. "" when unset."""
    prefix = OrganizationSettingsService(backend, user_id).get_prefix()
    if prefix:
        return prefix

    firm = (
        backend.table("firm_settings").select("organization_prefix")
        .eq("organization_id", user_id).maybe_single().execute().data
    )
    return normalize_prefix(firm["organization_prefix"]) if firm else ""
