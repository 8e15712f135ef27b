"""
Pydantic Schemas for LexDesk
============================

Row types parse every record that crosses the backend boundary
(ClientRow.model_validate(row)); request types describe API input.
Request fields are optional on purpose: services validate them and
report per-field messages.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime


# =============================================================================
# ROWS
# =============================================================================

class ProfileRow(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClientRow(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    status: str = "active"
    organization_prefix: Optional[str] = None
    sequential_number: Optional[int] = None
    client_number: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CaseRow(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    client_id: str
    status: str = "open"
    priority: str = "medium"
    case_type: Optional[str] = None
    matter_type: Optional[str] = None
    case_number: Optional[str] = None
    sequential_number: Optional[int] = None
    year: Optional[int] = None
    assigned_to: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[datetime] = None


class DocumentRow(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    file_url: str
    file_type: Optional[str] = None
    size: Optional[int] = None
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    version: int = 1


class EventRow(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    all_day: bool = False
    location: Optional[str] = None
    event_type: str = "other"
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    reminder: bool = False
    reminder_time: Optional[int] = None


class TimeEntryRow(BaseModel):
    id: str
    description: str
    case_id: str
    client_id: str
    date: Optional[datetime] = None
    duration: float
    billable: bool = True
    rate: Optional[float] = None
    attorney_id: Optional[str] = None
    status: Optional[str] = "unbilled"
    invoice_id: Optional[str] = None


class InvoiceItemRow(BaseModel):
    id: str
    invoice_id: str
    description: str
    quantity: float
    rate: float
    amount: float
    time_entry_id: Optional[str] = None


class InvoiceRow(BaseModel):
    id: str
    invoice_number: str
    client_id: str
    case_id: Optional[str] = None
    issue_date: Optional[datetime] = None
    due_date: datetime
    amount: float
    status: str = "draft"
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class FirmSettingsRow(BaseModel):
    id: str
    organization_id: str
    firm_name: str
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    organization_prefix: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OrganizationSettingsRow(BaseModel):
    user_id: str
    organization_prefix: str
    updated_at: Optional[datetime] = None


class SystemPreferencesRow(BaseModel):
    user_id: str
    time_zone: str = "America/New_York"
    date_format: str = "MM/DD/YYYY"
    time_format: str = "12"
    week_starts_on: str = "Sunday"
    case_categories: List[str] = Field(default_factory=list)
    document_categories: List[str] = Field(default_factory=list)


# =============================================================================
# DASHBOARD (RPC results)
# =============================================================================

class DashboardStats(BaseModel):
    total_cases: int = 0
    active_cases: int = 0
    total_documents: int = 0
    upcoming_hearings: int = 0
    cases_change: float = 0.0
    active_cases_change: float = 0.0
    documents_change: float = 0.0
    hearings_change: float = 0.0
    cases_last_month: int = 0
    active_cases_last_month: int = 0
    documents_last_month: int = 0
    hearings_last_week: int = 0


class RecentCase(BaseModel):
    id: str
    title: str
    status: str
    priority: Optional[str] = None
    case_type: Optional[str] = None
    client_name: Optional[str] = None
    client_id: Optional[str] = None
    assigned_to_name: Optional[str] = None
    created_at: Optional[datetime] = None
    due_date: Optional[datetime] = None


class UpcomingHearing(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    start_date: datetime
    location: Optional[str] = None
    case_title: Optional[str] = None
    case_id: Optional[str] = None
    client_name: Optional[str] = None


class RecentDocument(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    file_type: Optional[str] = None
    size: Optional[int] = None
    uploaded_at: Optional[datetime] = None
    case_title: Optional[str] = None
    case_id: Optional[str] = None
    client_name: Optional[str] = None
    uploaded_by_name: Optional[str] = None


# =============================================================================
# REQUESTS
# =============================================================================

class SignUpRequest(BaseModel):
    email: str
    password: str
    full_name: Optional[str] = None


class SignInRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ClientCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class CaseCreate(BaseModel):
    title: Optional[str] = None
    client_id: Optional[str] = None
    matter_type: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    case_type: Optional[str] = None
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None


class CaseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    case_type: Optional[str] = None
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None


class EventCreate(BaseModel):
    title: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    all_day: bool = False
    location: Optional[str] = None
    event_type: str = "other"
    case_id: Optional[str] = None
    client_id: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    reminder: bool = False
    reminder_time: Optional[int] = None


class FirmSettingsUpdate(BaseModel):
    firm_name: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    organization_prefix: Optional[str] = None
    logo_url: Optional[str] = None


class OrganizationSettingsUpdate(BaseModel):
    organization_prefix: Optional[str] = None


class PreferencesUpdate(BaseModel):
    time_zone: Optional[str] = None
    date_format: Optional[str] = None
    time_format: Optional[str] = None
    week_starts_on: Optional[str] = None
    case_categories: Optional[List[str]] = None
    document_categories: Optional[List[str]] = None


# =============================================================================
# RESPONSES
# =============================================================================

class ClientDetail(BaseModel):
    client: ClientRow
    cases: List[CaseRow] = Field(default_factory=list)


class CaseDetail(BaseModel):
    case: CaseRow
    client: Optional[ClientRow] = None
    assigned_to: Optional[ProfileRow] = None
    created_by: Optional[ProfileRow] = None


class SessionView(BaseModel):
    """Bootstrap result returned by /auth/session"""
    user: Optional[Dict[str, Any]] = None
    profile: Optional[ProfileRow] = None
    loading: bool = False
    error: Optional[str] = None
