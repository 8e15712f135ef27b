"""
FastAPI dependencies shared by the routers.

    get_backend   - BackendClient bound to the request's DB session and bearer token
    get_auth_state - bootstrapped AuthState (may be signed out)
    require_user  - AuthState of a signed-in user, NotAuthenticated otherwise
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .backend import BackendClient
from .config import Settings, get_settings
from .db.session import get_db
from .errors import NotAuthenticated
from .notifications import Notifier
from .session import AuthState, SessionConfig

logger = logging.getLogger(__name__)


def get_db_dependency():
    """Get database session for FastAPI dependency injection"""
    db = next(get_db())
    try:
        yield db
    finally:
        db.close()


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None


def get_backend(
    db: Session = Depends(get_db_dependency),
    settings: Settings = Depends(get_settings),
    token: Optional[str] = Depends(bearer_token),
) -> BackendClient:
    return BackendClient(db, settings, access_token=token)


async def get_auth_state(
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[AuthState, None]:
    state = AuthState(backend, SessionConfig.from_settings(settings), Notifier())
    await state.bootstrap()
    try:
        yield state
    finally:
        # The DB session closes after this; a timed-out bootstrap must finish first
        await state.drain()
        state.close()


async def require_user(state: AuthState = Depends(get_auth_state)) -> AuthState:
    await state.drain()
    if not state.is_authenticated:
        raise NotAuthenticated()
    return state
