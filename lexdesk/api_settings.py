"""
Settings API
============

Firm information, organization prefix and system preferences under
/api/settings.
"""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from .backend import BackendError
from .config import Settings, get_settings
from .dependencies import require_user
from .errors import LexDeskError
from .firm import FirmConfig, FirmState
from .org_settings import OrganizationSettingsService
from .preferences import PreferencesService, CATEGORY_FIELDS
from .schemas import (
    FirmSettingsUpdate, OrganizationSettingsUpdate, OrganizationSettingsRow,
    PreferencesUpdate, SystemPreferencesRow,
)
from .session import AuthState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _firm_state(state: AuthState, settings: Settings) -> FirmState:
    return FirmState(state.backend, state.user.id, FirmConfig.from_settings(settings), state.notifier)


def _firm_payload(firm: FirmState) -> dict:
    return {
        "settings": firm.settings.model_dump(mode="json") if firm.settings else None,
        "loading": firm.loading,
        "error": firm.error,
        "notifications": firm.notifier.drain(),
    }


def _check_kind(kind: str):
    if kind not in CATEGORY_FIELDS:
        raise HTTPException(status_code=404, detail=f"Unknown category list: {kind}")


# =============================================================================
# FIRM
# =============================================================================

@router.get("/firm")
async def get_firm_settings(
    state: AuthState = Depends(require_user),
    settings: Settings = Depends(get_settings),
):
    firm = _firm_state(state, settings)
    await firm.load()
    return _firm_payload(firm)


@router.put("/firm")
async def update_firm_settings(
    request: FirmSettingsUpdate,
    state: AuthState = Depends(require_user),
    settings: Settings = Depends(get_settings),
):
    firm = _firm_state(state, settings)
    await firm.load()
    try:
        await firm.update(request.model_dump(exclude_unset=True))
    except (HTTPException, LexDeskError, BackendError):
        raise
    except Exception as e:
        logger.error(f"Error updating firm settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to save firm information")
    return _firm_payload(firm)


@router.post("/firm/logo")
async def upload_firm_logo(
    file: UploadFile = File(...),
    state: AuthState = Depends(require_user),
    settings: Settings = Depends(get_settings),
):
    """Store the logo; the returned URL is saved with PUT /api/settings/firm."""
    data = await file.read()
    firm = _firm_state(state, settings)
    url = await firm.upload_logo(file.filename or "logo", data, file.content_type)
    return {"logo_url": url, "notifications": firm.notifier.drain()}


# =============================================================================
# ORGANIZATION
# =============================================================================

@router.get("/organization")
async def get_organization_settings(state: AuthState = Depends(require_user)):
    service = OrganizationSettingsService(state.backend, state.user.id)
    return {"organization_prefix": service.get_prefix()}


@router.put("/organization", response_model=OrganizationSettingsRow)
async def save_organization_settings(
    request: OrganizationSettingsUpdate,
    state: AuthState = Depends(require_user),
):
    return OrganizationSettingsService(state.backend, state.user.id).save(request.organization_prefix)


# =============================================================================
# PREFERENCES
# =============================================================================

@router.get("/preferences", response_model=SystemPreferencesRow)
async def get_preferences(state: AuthState = Depends(require_user)):
    return PreferencesService(state.backend, state.user.id).get()


@router.put("/preferences", response_model=SystemPreferencesRow)
async def save_preferences(request: PreferencesUpdate, state: AuthState = Depends(require_user)):
    return PreferencesService(state.backend, state.user.id).save(request.model_dump(exclude_unset=True))


@router.post("/preferences/categories/{kind}", response_model=SystemPreferencesRow)
async def add_preference_category(kind: str, name: str, state: AuthState = Depends(require_user)):
    _check_kind(kind)
    return PreferencesService(state.backend, state.user.id).add_category(kind, name)


@router.delete("/preferences/categories/{kind}/{name}", response_model=SystemPreferencesRow)
async def remove_preference_category(kind: str, name: str, state: AuthState = Depends(require_user)):
    _check_kind(kind)
    return PreferencesService(state.backend, state.user.id).remove_category(kind, name)
