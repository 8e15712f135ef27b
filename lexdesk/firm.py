"""
Firm Settings
=============

FirmState loads and edits the firm profile of the signed-in user
(firm_settings row keyed by organization_id = user id) and uploads the
firm logo to the "logos" bucket.
"""

import re
import time
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .backend import BackendClient, BackendError, is_not_found
from .config import Settings
from .errors import ValidationFailed
from .notifications import Notifier
from .numbering import MAX_PREFIX_LENGTH, normalize_prefix
from .schemas import FirmSettingsRow
from .session import LoadingStore

logger = logging.getLogger(__name__)

LOGO_BUCKET = "logos"
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WEBSITE_PATTERN = re.compile(r"^https?://.*")
EDITABLE_FIELDS = ("firm_name", "city", "phone", "email", "website", "organization_prefix", "logo_url")


@dataclass
class FirmConfig:
    loading_timeout: float = 8.0
    auto_create: bool = True
    default_firm_name: str = "My Law Firm"
    logo_max_bytes: int = 5 * 1024 * 1024

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirmConfig":
        return cls(
            loading_timeout=settings.firm_loading_timeout,
            auto_create=settings.auto_create_firm_settings,
            default_firm_name=settings.default_firm_name,
            logo_max_bytes=settings.logo_max_bytes,
        )


def validate_firm_settings(changes: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
    """Check and normalize firm settings input. Raises ValidationFailed."""
    errors = {}
    cleaned = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}

    if "firm_name" in cleaned:
        name = (cleaned.get("firm_name") or "").strip()
        if not name:
            errors["firm_name"] = "Firm name is required"
        cleaned["firm_name"] = name

    if cleaned.get("organization_prefix") is not None:
        prefix = normalize_prefix(cleaned["organization_prefix"])
        if len(prefix) > MAX_PREFIX_LENGTH:
            errors["organization_prefix"] = "Organization prefix must be 5 characters or less"
        cleaned["organization_prefix"] = prefix or None

    email = (cleaned.get("email") or "").strip()
    if email and not EMAIL_PATTERN.match(email):
        errors["email"] = "Please enter a valid email address"

    website = (cleaned.get("website") or "").strip()
    if website and not WEBSITE_PATTERN.match(website):
        errors["website"] = "Website URL must start with http:// or https://"

    if errors:
        raise ValidationFailed(errors)
    return cleaned


class FirmState(LoadingStore):
    """Firm settings of one user."""

    label = "firm settings"

    def __init__(self, backend: BackendClient, user_id: str, config: Optional[FirmConfig] = None,
                 notifier: Optional[Notifier] = None):
        config = config or FirmConfig()
        super().__init__(config.loading_timeout, notifier)
        self.backend = backend
        self.user_id = user_id
        self.config = config
        self.settings: Optional[FirmSettingsRow] = None

    def _fetch(self) -> Optional[FirmSettingsRow]:
        try:
            row = (
                self.backend.table("firm_settings").select("*")
                .eq("organization_id", self.user_id).single().execute().data
            )
        except BackendError as e:
            if is_not_found(e):
                return None
            raise
        return FirmSettingsRow.model_validate(row)

    def _create_default(self) -> FirmSettingsRow:
        row = (
            self.backend.table("firm_settings").insert({
                "organization_id": self.user_id,
                "firm_name": self.config.default_firm_name,
            }).single().execute().data
        )
        logger.info(f"Created default firm settings for {self.user_id}")
        return FirmSettingsRow.model_validate(row)

    async def load(self) -> Optional[FirmSettingsRow]:
        """Load settings; a missing row is not an error."""
        self._begin_loading()
        self.error = None
        try:
            settings = await self._call(self._fetch)
            if settings is None and self.config.auto_create:
                settings = await self._call(self._create_default)
            self.settings = settings
        except BackendError as e:
            logger.error(f"Error fetching firm settings: {e.message}")
            self.error = e.message
        finally:
            self._finish_loading()
        return self.settings

    def _save(self, changes: Dict[str, Optional[str]]) -> FirmSettingsRow:
        if self.settings is None:
            row = (
                self.backend.table("firm_settings")
                .insert({**changes, "organization_id": self.user_id})
                .single().execute().data
            )
        else:
            row = (
                self.backend.table("firm_settings").update(changes)
                .eq("id", self.settings.id).single().execute().data
            )
        return FirmSettingsRow.model_validate(row)

    async def update(self, changes: Dict[str, Optional[str]]) -> FirmSettingsRow:
        """Validate and save; inserts the row when none exists yet."""
        cleaned = validate_firm_settings(changes)
        if self.settings is None and "firm_name" not in cleaned:
            raise ValidationFailed({"firm_name": "Firm name is required"})

        self._begin_loading()
        self.error = None
        created = self.settings is None
        try:
            self.settings = await self._call(self._save, cleaned)
        except BackendError as e:
            logger.error(f"Error updating firm settings: {e.message}")
            self.error = e.message
            self.notifier.error("Failed to update firm settings")
            raise
        finally:
            self._finish_loading()

        self.notifier.success(
            "Firm settings created successfully" if created else "Firm settings updated successfully"
        )
        return self.settings

    async def upload_logo(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Store the logo and return its public URL. The caller saves logo_url."""
        if len(data) > self.config.logo_max_bytes:
            raise ValidationFailed({"logo": "Logo file size must be less than 5MB"})

        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
        path = f"{self.user_id}/{int(time.time() * 1000)}.{ext}"
        bucket = self.backend.storage.from_(LOGO_BUCKET)
        try:
            await self._call(bucket.upload, path, data, content_type)
        except BackendError as e:
            logger.error(f"Error uploading logo: {e.message}")
            self.notifier.error("Failed to upload logo")
            raise

        self.notifier.success("Logo uploaded successfully")
        return bucket.get_public_url(path)
