"""
Database Package - SQLAlchemy
=============================

Tables behind the backend client: auth, profiles, clients, cases, documents,
events, billing and settings.
"""

from .models import (
    Base,
    AuthUser, TokenBlacklist,
    Profile, FirmSettings, OrganizationSettings, SystemPreferences,
    Client, Case,
    Document, Event,
    TimeEntry, Invoice, InvoiceItem,
    ClientStatus, CaseStatus, CasePriority, EventType, InvoiceStatus, TimeEntryStatus,
    ACTIVE_CASE_STATUSES, TABLES,
)
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    "Base",
    # Auth
    "AuthUser", "TokenBlacklist",
    # Organization
    "Profile", "FirmSettings", "OrganizationSettings", "SystemPreferences",
    # Case Management
    "Client", "Case",
    "Document", "Event",
    # Billing
    "TimeEntry", "Invoice", "InvoiceItem",
    # Enums
    "ClientStatus", "CaseStatus", "CasePriority", "EventType", "InvoiceStatus", "TimeEntryStatus",
    "ACTIVE_CASE_STATUSES", "TABLES",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
