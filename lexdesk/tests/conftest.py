"""
Shared fixtures: a fresh SQLite database per test, settings pointing at a
temporary storage root, and a BackendClient over both.
"""

import os
from datetime import datetime
from pathlib import Path

import pytest

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lexdesk.backend import BackendClient
from lexdesk.config import Settings


FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def sqlalchemy_db(tmp_path):
    """Configure a fresh SQLAlchemy SQLite DB for tests."""
    from lexdesk.db.session import reset_engine, init_db

    old_db_url = os.environ.get("DATABASE_URL")
    db_path = tmp_path / "lexdesk_test.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
    reset_engine()
    init_db()

    yield

    if old_db_url is not None:
        os.environ["DATABASE_URL"] = old_db_url
    else:
        os.environ.pop("DATABASE_URL", None)
    reset_engine()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        storage_root=str(tmp_path / "storage"),
        public_url="http://testserver",
        jwt_secret_key="test-secret-key",
        session_loading_timeout=2.0,
        firm_loading_timeout=2.0,
        redis_url=None,
    )


@pytest.fixture
def db(sqlalchemy_db):
    from lexdesk.db.session import get_db

    gen = get_db()
    session = next(gen)
    yield session
    gen.close()


@pytest.fixture
def backend(db, settings):
    return BackendClient(db, settings, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_user(backend):
    """Factory: register an auth identity and (optionally) its profile row. Returns the User."""
    def _make(email="owner@firm.test", password="secret123", full_name="Olivia Owner", with_profile=True):
        response = backend.auth.sign_up(email, password, {"full_name": full_name})
        if with_profile:
            backend.table("profiles").insert({
                "id": response.user.id,
                "email": response.user.email,
                "full_name": full_name,
                "role": "attorney",
            }).execute()
        return response.user
    return _make


@pytest.fixture
def set_prefix(backend):
    """Factory: save the organization prefix for a user."""
    def _set(user_id, prefix="ABC"):
        backend.table("organization_settings").upsert(
            {"user_id": user_id, "organization_prefix": prefix}, on_conflict="user_id"
        ).execute()
    return _set


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def now():
    """The backend clock's fixed time."""
    return FIXED_NOW
