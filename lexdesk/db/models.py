"""
SQLAlchemy Models for Database
==============================

Schema owned by the backend layer:
- Authentication identities and revoked tokens
- Profiles (one per auth identity)
- Clients and cases with organization-prefixed numbering
- Documents, calendar events
- Time entries, invoices and invoice items
- Firm settings, organization settings, system preferences

Supports both PostgreSQL and SQLite via SQLAlchemy.
"""

import enum
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, ForeignKey,
    BigInteger, Index, JSON
)
from sqlalchemy.orm import declarative_base
import uuid

# PostgreSQL will use native JSONB, SQLite will use TEXT with JSON serialization
JSONB = JSON

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class ClientStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CaseStatus(str, enum.Enum):
    """Case lifecycle status"""
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"
    ARCHIVED = "archived"


ACTIVE_CASE_STATUSES = (CaseStatus.OPEN.value, CaseStatus.PENDING.value)


class CasePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class EventType(str, enum.Enum):
    """Calendar event types"""
    HEARING = "hearing"
    MEETING = "meeting"
    DEADLINE = "deadline"
    REMINDER = "reminder"
    OTHER = "other"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class TimeEntryStatus(str, enum.Enum):
    UNBILLED = "unbilled"
    BILLED = "billed"
    WRITTEN_OFF = "written_off"


# =============================================================================
# AUTH
# =============================================================================

class AuthUser(Base):
    """Authentication identity (email/password)"""
    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    user_metadata = Column(JSONB, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    last_sign_in_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class TokenBlacklist(Base):
    """Revoked session tokens"""
    __tablename__ = "token_blacklist"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    jti = Column(String(64), nullable=False, unique=True)
    token_type = Column(String(20), default="access")
    user_id = Column(String(36), nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# PROFILES & ORGANIZATION
# =============================================================================

class Profile(Base):
    """Application-level user record, id matches the auth identity"""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    role = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class FirmSettings(Base):
    """Per-organization firm profile"""
    __tablename__ = "firm_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), nullable=False, unique=True)
    firm_name = Column(String(255), nullable=False)
    city = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    website = Column(String(1024), nullable=True)
    logo_url = Column(String(1024), nullable=True)
    organization_prefix = Column(String(5), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OrganizationSettings(Base):
    """Numbering prefix chosen by a user"""
    __tablename__ = "organization_settings"

    user_id = Column(String(36), primary_key=True)
    organization_prefix = Column(String(5), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SystemPreferences(Base):
    """Display and taxonomy preferences per user"""
    __tablename__ = "system_preferences"

    user_id = Column(String(36), primary_key=True)
    time_zone = Column(String(64), default="America/New_York")
    date_format = Column(String(20), default="MM/DD/YYYY")
    time_format = Column(String(4), default="12")
    week_starts_on = Column(String(10), default="Sunday")
    case_categories = Column(JSONB, default=list)
    document_categories = Column(JSONB, default=list)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# CLIENTS & CASES
# =============================================================================

class Client(Base):
    """Firm client"""
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    company = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), default=ClientStatus.ACTIVE.value, nullable=False)

    # Numbering: {organization_prefix}/{sequential_number:03d}
    organization_prefix = Column(String(5), nullable=True)
    sequential_number = Column(Integer, nullable=True)
    client_number = Column(String(50), nullable=True)

    created_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_clients_prefix_seq", "organization_prefix", "sequential_number"),
    )


class Case(Base):
    """Legal case / matter"""
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), default=CaseStatus.OPEN.value, nullable=False)
    priority = Column(String(20), default=CasePriority.MEDIUM.value, nullable=False)
    case_type = Column(String(100), nullable=True)

    # Numbering: {prefix}/{client_seq}/{matter_type}/{sequential_number:02d}/{year}
    matter_type = Column(String(10), nullable=True)
    case_number = Column(String(100), nullable=True)
    sequential_number = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)

    assigned_to = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    due_date = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_cases_client_seq", "client_id", "sequential_number"),
    )


# =============================================================================
# DOCUMENTS & EVENTS
# =============================================================================

class Document(Base):
    """Document metadata (file lives in storage)"""
    __tablename__ = "documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String(1024), nullable=False)
    file_type = Column(String(50), nullable=True)
    size = Column(BigInteger, nullable=True)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    uploaded_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow)
    tags = Column(JSONB, default=list)
    version = Column(Integer, default=1)


class Event(Base):
    """Calendar event (hearings, meetings, deadlines)"""
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    all_day = Column(Boolean, default=False)
    location = Column(String(255), nullable=True)
    event_type = Column(String(20), default=EventType.OTHER.value, nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    attendees = Column(JSONB, default=list)
    created_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    reminder = Column(Boolean, default=False)
    reminder_time = Column(Integer, nullable=True)  # minutes before start


# =============================================================================
# BILLING
# =============================================================================

class TimeEntry(Base):
    """Billable time recorded against a case"""
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    description = Column(Text, nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    date = Column(DateTime, default=datetime.utcnow)
    duration = Column(Float, nullable=False)  # hours
    billable = Column(Boolean, default=True)
    rate = Column(Float, nullable=True)  # per hour
    attorney_id = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default=TimeEntryStatus.UNBILLED.value)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    invoice_number = Column(String(50), nullable=False)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    issue_date = Column(DateTime, default=datetime.utcnow)
    due_date = Column(DateTime, nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String(20), default=InvoiceStatus.DRAFT.value)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False)
    rate = Column(Float, nullable=False)
    amount = Column(Float, nullable=False)
    time_entry_id = Column(String(36), ForeignKey("time_entries.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# Tables reachable through BackendClient.table(); auth tables stay private to the auth provider.
TABLES = {
    "profiles": Profile,
    "clients": Client,
    "cases": Case,
    "documents": Document,
    "events": Event,
    "time_entries": TimeEntry,
    "invoices": Invoice,
    "invoice_items": InvoiceItem,
    "firm_settings": FirmSettings,
    "organization_settings": OrganizationSettings,
    "system_preferences": SystemPreferences,
}
