"""
System preferences: display formats and the case/document category lists.
"""

import logging
from typing import Dict, List, Optional

from .backend import BackendClient
from .errors import ValidationFailed
from .schemas import SystemPreferencesRow

logger = logging.getLogger(__name__)

DEFAULT_CASE_CATEGORIES = ["Civil", "Criminal", "Family", "Corporate"]
DEFAULT_DOCUMENT_CATEGORIES = ["Pleadings", "Evidence", "Contracts", "Correspondence"]

TIME_FORMATS = ("12", "24")
WEEK_START_DAYS = ("Sunday", "Monday", "Saturday")
DATE_FORMATS = ("MM/DD/YYYY", "DD/MM/YYYY", "YYYY-MM-DD")

CATEGORY_FIELDS = {"case": "case_categories", "document": "document_categories"}


def default_preferences(user_id: str) -> SystemPreferencesRow:
    return SystemPreferencesRow(
        user_id=user_id,
        case_categories=list(DEFAULT_CASE_CATEGORIES),
        document_categories=list(DEFAULT_DOCUMENT_CATEGORIES),
    )


def add_category(preferences: SystemPreferencesRow, kind: str, category: str) -> SystemPreferencesRow:
    """Return a copy with the category appended. Blank names are ignored."""
    field = CATEGORY_FIELDS[kind]
    name = (category or "").strip()
    if not name:
        return preferences
    current: List[str] = getattr(preferences, field)
    if name in current:
        raise ValidationFailed({field: "Category already exists"})
    return preferences.model_copy(update={field: current + [name]})


def remove_category(preferences: SystemPreferencesRow, kind: str, category: str) -> SystemPreferencesRow:
    field = CATEGORY_FIELDS[kind]
    return preferences.model_copy(update={field: [c for c in getattr(preferences, field) if c != category]})


def validate_preferences(changes: Dict[str, object]) -> Dict[str, object]:
    errors = {}
    if changes.get("time_format") is not None and changes["time_format"] not in TIME_FORMATS:
        errors["time_format"] = "Time format must be 12 or 24"
    if changes.get("week_starts_on") is not None and changes["week_starts_on"] not in WEEK_START_DAYS:
        errors["week_starts_on"] = f"Week must start on one of {', '.join(WEEK_START_DAYS)}"
    if changes.get("date_format") is not None and changes["date_format"] not in DATE_FORMATS:
        errors["date_format"] = f"Date format must be one of {', '.join(DATE_FORMATS)}"
    for field in CATEGORY_FIELDS.values():
        values = changes.get(field)
        if values is not None:
            names = [v.strip() for v in values]
            if any(not n for n in names):
                errors[field] = "Category names cannot be empty"
            elif len(set(names)) != len(names):
                errors[field] = "Category already exists"
    if errors:
        raise ValidationFailed(errors)
    return changes


class PreferencesService:
    def __init__(self, backend: BackendClient, user_id: str):
        self.backend = backend
        self.user_id = user_id

    def get(self) -> SystemPreferencesRow:
        """Saved preferences, or the defaults when nothing is saved."""
        row = (
            self.backend.table("system_preferences").select("*")
            .eq("user_id", self.user_id).maybe_single().execute().data
        )
        return SystemPreferencesRow.model_validate(row) if row else default_preferences(self.user_id)

    def save(self, changes: Dict[str, object]) -> SystemPreferencesRow:
        changes = {k: v for k, v in changes.items() if v is not None}
        validate_preferences(changes)
        merged = self.get().model_copy(update=changes)
        row = (
            self.backend.table("system_preferences")
            .upsert(merged.model_dump(), on_conflict="user_id")
            .single().execute().data
        )
        logger.info(f"Saved system preferences for {self.user_id}")
        return SystemPreferencesRow.model_validate(row)

    def add_category(self, kind: str, category: str) -> SystemPreferencesRow:
        updated = add_category(self.get(), kind, category)
        return self.save({CATEGORY_FIELDS[kind]: getattr(updated, CATEGORY_FIELDS[kind])})

    def remove_category(self, kind: str, category: str) -> SystemPreferencesRow:
        updated = remove_category(self.get(), kind, category)
        return self.save({CATEGORY_FIELDS[kind]: getattr(updated, CATEGORY_FIELDS[kind])})
