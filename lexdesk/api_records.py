"""
Records API
===========

Clients, cases, dashboard, documents, calendar and billing under /api.
Every route requires a signed-in user (see dependencies.require_user).
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .backend import BackendError
from .billing import BillingService, BillingSummary, InvoiceView
from .cases import CaseService
from .clients import ClientService
from .config import Settings, get_settings
from .dashboard import DashboardService
from .dependencies import require_user
from .documents import DocumentService
from .errors import LexDeskError
from .events import EventService
from .matter_types import MATTER_TYPES, matter_types_by_category
from .schemas import (
    ClientRow, ClientDetail, ClientCreate, ClientUpdate,
    CaseRow, CaseDetail, CaseCreate, CaseUpdate,
    DocumentRow, EventRow, EventCreate, DashboardStats,
)
from .session import AuthState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["records"])


# =============================================================================
# CLIENTS
# =============================================================================

@router.get("/clients", response_model=List[ClientRow])
async def list_clients(search: Optional[str] = Query(None), state: AuthState = Depends(require_user)):
    return ClientService(state.backend, state.user.id).list(search)


@router.get("/clients/next-number")
async def next_client_number(state: AuthState = Depends(require_user)):
    """Preview of the number the next client will receive."""
    return {"client_number": ClientService(state.backend, state.user.id).preview_next_number()}


@router.post("/clients", response_model=ClientRow, status_code=201)
async def create_client(request: ClientCreate, state: AuthState = Depends(require_user)):
    try:
        client = ClientService(state.backend, state.user.id).create(request)
    except (HTTPException, LexDeskError, BackendError):
        raise
    except Exception as e:
        logger.error(f"Error creating client: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to add client")
    state.notifier.success("Client added successfully")
    return client


@router.get("/clients/{client_id}", response_model=ClientDetail)
async def get_client(client_id: str, state: AuthState = Depends(require_user)):
    return ClientService(state.backend, state.user.id).get(client_id)


@router.patch("/clients/{client_id}", response_model=ClientRow)
async def update_client(client_id: str, request: ClientUpdate, state: AuthState = Depends(require_user)):
    return ClientService(state.backend, state.user.id).update(client_id, request)


@router.delete("/clients/{client_id}", status_code=204)
async def delete_client(client_id: str, state: AuthState = Depends(require_user)):
    ClientService(state.backend, state.user.id).delete(client_id)


# =============================================================================
# CASES
# =============================================================================

@router.get("/cases", response_model=List[CaseRow])
async def list_cases(
    status: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    state: AuthState = Depends(require_user),
):
    return CaseService(state.backend, state.user.id).list(status=status, client_id=client_id)


@router.post("/cases", response_model=CaseRow, status_code=201)
async def create_case(request: CaseCreate, state: AuthState = Depends(require_user)):
    try:
        return CaseService(state.backend, state.user.id).create(request)
    except (HTTPException, LexDeskError, BackendError):
        raise
    except Exception as e:
        logger.error(f"Error creating case: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create case")


@router.get("/cases/{case_id}", response_model=CaseDetail)
async def get_case(case_id: str, state: AuthState = Depends(require_user)):
    return CaseService(state.backend, state.user.id).get(case_id)


@router.patch("/cases/{case_id}", response_model=CaseRow)
async def update_case(case_id: str, request: CaseUpdate, state: AuthState = Depends(require_user)):
    return CaseService(state.backend, state.user.id).update(case_id, request)


@router.delete("/cases/{case_id}", status_code=204)
async def delete_case(case_id: str, state: AuthState = Depends(require_user)):
    CaseService(state.backend, state.user.id).delete(case_id)


@router.get("/matter-types")
async def list_matter_types():
    """Matter types, flat and grouped by category."""
    return {
        "matter_types": [m.to_dict() for m in MATTER_TYPES.values()],
        "by_category": {
            category: [m.abbreviation for m in types]
            for category, types in matter_types_by_category().items()
        },
    }


# =============================================================================
# DASHBOARD
# =============================================================================

@router.get("/dashboard")
async def get_dashboard(
    state: AuthState = Depends(require_user),
    settings: Settings = Depends(get_settings),
):
    dashboard = DashboardService(state.backend, state.user.id, limit=settings.recent_items_limit)
    return dashboard.load().to_dict()


@router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(state: AuthState = Depends(require_user)):
    dashboard = DashboardService(state.backend, state.user.id)
    stats = dashboard.refresh_stats()
    if dashboard.error:
        raise HTTPException(status_code=502, detail=dashboard.error)
    return stats


# =============================================================================
# DOCUMENTS & CALENDAR
# =============================================================================

@router.get("/documents", response_model=List[DocumentRow])
async def list_documents(
    search: Optional[str] = Query(None),
    type: Optional[str] = Query(None, description="pdf, doc or image"),
    case_id: Optional[str] = Query(None),
    client_id: Optional[str] = Query(None),
    state: AuthState = Depends(require_user),
):
    return DocumentService(state.backend, state.user.id).list(
        search=search, type_filter=type, case_id=case_id, client_id=client_id,
    )


@router.get("/events", response_model=List[EventRow])
async def list_events(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    event_type: Optional[str] = Query(None),
    case_id: Optional[str] = Query(None),
    state: AuthState = Depends(require_user),
):
    return EventService(state.backend, state.user.id).list(
        start=start, end=end, event_type=event_type, case_id=case_id,
    )


@router.post("/events", response_model=EventRow, status_code=201)
async def create_event(request: EventCreate, state: AuthState = Depends(require_user)):
    return EventService(state.backend, state.user.id).create(request)


# =============================================================================
# BILLING
# =============================================================================

@router.get("/billing", response_model=BillingSummary)
async def get_billing(
    client_id: Optional[str] = Query(None),
    state: AuthState = Depends(require_user),
    settings: Settings = Depends(get_settings),
):
    return BillingService(state.backend, state.user.id, settings.storage_limit_bytes).summary(client_id)


@router.get("/billing/invoices/{invoice_id}", response_model=InvoiceView)
async def get_invoice(
    invoice_id: str,
    state: AuthState = Depends(require_user),
    settings: Settings = Depends(get_settings),
):
    return BillingService(state.backend, state.user.id, settings.storage_limit_bytes).get_invoice(invoice_id)
