"""
LexDesk API
===========

FastAPI application for the law-firm practice dashboard.

Auth Endpoints:
- POST /auth/sign-up   - Register, sign in and provision the profile
- POST /auth/sign-in   - Email/password sign in
- POST /auth/refresh   - Rotate the refresh token
- POST /auth/sign-out  - Revoke the current session
- GET  /auth/session   - Bootstrap result (user, profile, loading, error)

Application Endpoints (signed-in user):
- /api/clients, /api/cases, /api/dashboard, /api/documents, /api/events, /api/billing
- /api/settings/firm, /api/settings/organization, /api/settings/preferences
- GET /api/diagnostics/connection - Step-by-step backend connection check

Other:
- GET /health                 - Health check
- GET /login                  - Where unauthenticated browsers are sent
- GET /storage/{bucket}/{path} - Public storage objects (firm logos)

Run with:
    uvicorn lexdesk.api:app --host 0.0.0.0 --port 8000
"""

import logging
import mimetypes

from fastapi import FastAPI, HTTPException, Depends, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from .backend import (
    BackendClient, BackendError, AuthApiError, is_not_found,
    UNIQUE_VIOLATION_CODE, UNKNOWN_FUNCTION_CODE,
)
from .backend.errors import STORAGE_DUPLICATE_CODE, STORAGE_NOT_FOUND_CODE
from .config import Settings, get_settings
from .db.session import init_db
from .dependencies import get_auth_state, get_backend
from .diagnostics import check_connection
from .errors import LexDeskError, NotAuthenticated
from .schemas import SignUpRequest, SignInRequest, RefreshRequest, SessionView
from .session import AuthState
from .api_records import router as records_router
from .api_settings import router as settings_router

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="LexDesk",
    description="Case management, numbering and practice dashboard for law firms",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

CORS_ALLOW_ORIGINS = get_settings().cors_origins()
logger.info(f"CORS allow origins: {CORS_ALLOW_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(records_router)
app.include_router(settings_router)


# =============================================================================
# Startup
# =============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    settings = get_settings()
    logger.info(f"Starting LexDesk v{settings.service_version}")
    for warning in settings.validate_config():
        logger.warning(f"Config: {warning}")
    init_db()


# =============================================================================
# Health & Login
# =============================================================================

@app.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    return {"status": "ok", "version": settings.service_version}


@app.get("/login")
async def login_page():
    """Landing target for redirects of unauthenticated requests."""
    return {
        "message": "Sign in to continue",
        "sign_in": "/auth/sign-in",
        "sign_up": "/auth/sign-up",
    }


# =============================================================================
# Auth
# =============================================================================

def _session_payload(state: AuthState) -> dict:
    return {
        "session": state.session.to_dict() if state.session else None,
        "profile": state.profile.model_dump(mode="json") if state.profile else None,
        "notifications": state.notifier.drain(),
    }


@app.post("/auth/sign-up", status_code=201)
async def sign_up(request: SignUpRequest, state: AuthState = Depends(get_auth_state)):
    ok = await state.sign_up(request.email, request.password, request.full_name)
    if not ok:
        raise HTTPException(status_code=400, detail=state.error or "Sign up failed")
    return _session_payload(state)


@app.post("/auth/sign-in")
async def sign_in(request: SignInRequest, state: AuthState = Depends(get_auth_state)):
    ok = await state.sign_in(request.email, request.password)
    if not ok:
        raise HTTPException(status_code=400, detail=state.error or "Sign in failed")
    return _session_payload(state)


@app.post("/auth/refresh")
async def refresh_session(request: RefreshRequest, backend: BackendClient = Depends(get_backend)):
    session = backend.auth.refresh_session(request.refresh_token)
    return {"session": session.to_dict()}


@app.post("/auth/sign-out")
async def sign_out(state: AuthState = Depends(get_auth_state)):
    await state.sign_out()
    return {"signed_out": True, "error": state.error}


@app.get("/auth/session")
async def get_session_state(state: AuthState = Depends(get_auth_state)):
    """Bootstrap the caller's session; loading is false once this returns."""
    view = SessionView(**state.snapshot())
    return {**view.model_dump(mode="json"), "timed_out": state.timed_out,
            "notifications": state.notifier.drain()}


# =============================================================================
# Diagnostics & Storage
# =============================================================================

@app.get("/api/diagnostics/connection")
async def connection_check(
    backend: BackendClient = Depends(get_backend),
    settings: Settings = Depends(get_settings),
):
    return check_connection(backend, settings.default_profile_role).to_dict()


@app.get("/storage/{bucket}/{path:path}")
async def download_object(bucket: str, path: str, backend: BackendClient = Depends(get_backend)):
    data = backend.storage.from_(bucket).download(path)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type)


# =============================================================================
# Error Handlers
# =============================================================================

def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def _backend_status(exc: BackendError) -> int:
    if isinstance(exc, AuthApiError):
        return exc.status
    if is_not_found(exc) or exc.code == STORAGE_NOT_FOUND_CODE:
        return 404
    if exc.code in (UNIQUE_VIOLATION_CODE, STORAGE_DUPLICATE_CODE):
        return 409
    if exc.code == UNKNOWN_FUNCTION_CODE:
        return 404
    return 400


@app.exception_handler(NotAuthenticated)
async def not_authenticated_handler(request: Request, exc: NotAuthenticated):
    """Browsers go to the login page, API clients get 401 with the redirect target."""
    if _wants_html(request):
        return RedirectResponse(url=exc.login_path, status_code=303)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(LexDeskError)
async def lexdesk_error_handler(request: Request, exc: LexDeskError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    status_code = _backend_status(exc)
    logger.warning(f"Backend error on {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.message, "code": exc.code})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.error("Unhandled exception on %s: %s", request.url.path, exc.__class__.__name__)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": exc.__class__.__name__},
    )


# =============================================================================
# Main (for direct execution)
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "lexdesk.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
