"""
Backend Layer Tests
===================

Tests for:
- Table query builder (filters, single/maybe_single, error codes)
- File storage buckets
- Token blacklist
- Auth provider (sign up/in/out, refresh rotation, listeners)
- Dashboard RPC functions
"""

from datetime import datetime, timedelta

import pytest

from lexdesk.backend import (
    AuthClient, AuthApiError, BackendError, RowNotFound, is_not_found, percent_change,
    SIGNED_IN, SIGNED_OUT, TOKEN_REFRESHED, USER_UPDATED,
    NOT_FOUND_CODE, UNKNOWN_COLUMN_CODE, UNKNOWN_FUNCTION_CODE, UNKNOWN_TABLE_CODE,
    UNIQUE_VIOLATION_CODE,
)
from lexdesk.backend.query import parse_datetime
from lexdesk.backend.token_blacklist import (
    add_to_blacklist, is_blacklisted, remove_expired_blacklist_entries, get_redis_client,
)
from lexdesk.db.models import Profile, Client, Case, Document, Event, TokenBlacklist


# =============================================================================
# Query builder
# =============================================================================

class TestTableQuery:

    def test_unknown_table(self, backend):
        with pytest.raises(BackendError) as exc:
            backend.table("nope")
        assert exc.value.code == UNKNOWN_TABLE_CODE

    def test_unknown_column(self, backend):
        with pytest.raises(BackendError) as exc:
            backend.table("clients").select("*").eq("missing_column", 1)
        assert exc.value.code == UNKNOWN_COLUMN_CODE

    def test_insert_single_returns_row(self, backend):
        row = backend.table("clients").insert({"name": "Acme", "email": "a@acme.test"}).single().execute().data
        assert row["id"]
        assert row["name"] == "Acme"
        assert row["status"] == "active"

    def test_single_without_rows_is_not_found(self, backend):
        with pytest.raises(RowNotFound) as exc:
            backend.table("profiles").select("*").eq("id", "missing").single().execute()
        assert exc.value.code == NOT_FOUND_CODE
        assert is_not_found(exc.value)

    def test_single_with_many_rows(self, backend):
        backend.table("clients").insert([{"name": "A"}, {"name": "B"}]).execute()
        with pytest.raises(BackendError) as exc:
            backend.table("clients").select("*").single().execute()
        assert exc.value.code == NOT_FOUND_CODE

    def test_maybe_single_without_rows(self, backend):
        response = backend.table("profiles").select("*").eq("id", "missing").maybe_single().execute()
        assert response.data is None

    def test_order_limit_and_columns(self, backend):
        backend.table("clients").insert([
            {"name": "One", "sequential_number": 1},
            {"name": "Three", "sequential_number": 3},
            {"name": "Two", "sequential_number": 2},
        ]).execute()
        row = (
            backend.table("clients").select("sequential_number")
            .order("sequential_number", desc=True).limit(1).maybe_single().execute().data
        )
        assert row == {"sequential_number": 3}

    def test_range(self, backend):
        backend.table("clients").insert([{"name": n} for n in ("a", "b", "c", "d")]).execute()
        rows = backend.table("clients").select("name").order("name").range(1, 2).execute().data
        assert [r["name"] for r in rows] == ["b", "c"]

    def test_count(self, backend):
        backend.table("clients").insert([{"name": "a"}, {"name": "b"}]).execute()
        response = backend.table("clients").select("id", count="exact").limit(1).execute()
        assert len(response.data) == 1
        assert response.count == 2

    def test_ilike_any(self, backend):
        backend.table("clients").insert([
            {"name": "Jane Doe", "company": "Globex"},
            {"name": "John Roe", "email": "john@initech.test"},
            {"name": "Other"},
        ]).execute()
        rows = backend.table("clients").select("name").ilike_any(("name", "email", "company"), "%glob%").execute().data
        assert [r["name"] for r in rows] == ["Jane Doe"]
        rows = backend.table("clients").select("name").ilike_any(("name", "email"), "%INITECH%").execute().data
        assert [r["name"] for r in rows] == ["John Roe"]

    def test_eq_any(self, backend):
        backend.table("cases").insert([
            {"title": "mine", "client_id": "c", "created_by": "u1"},
            {"title": "assigned", "client_id": "c", "created_by": "u2", "assigned_to": "u1"},
            {"title": "theirs", "client_id": "c", "created_by": "u2"},
        ]).execute()
        rows = (
            backend.table("cases").select("title")
            .eq_any({"created_by": "u1", "assigned_to": "u1"}).order("title").execute().data
        )
        assert [r["title"] for r in rows] == ["assigned", "mine"]

    def test_update_and_delete(self, backend):
        row = backend.table("clients").insert({"name": "Before"}).single().execute().data
        updated = backend.table("clients").update({"name": "After"}).eq("id", row["id"]).single().execute().data
        assert updated["name"] == "After"

        deleted = backend.table("clients").delete().eq("id", row["id"]).execute().data
        assert len(deleted) == 1
        assert backend.table("clients").select("*").execute().data == []

    def test_unique_violation_code(self, backend):
        backend.table("firm_settings").insert({"organization_id": "u1", "firm_name": "First"}).execute()
        with pytest.raises(BackendError) as exc:
            backend.table("firm_settings").insert({"organization_id": "u1", "firm_name": "Second"}).execute()
        assert exc.value.code == UNIQUE_VIOLATION_CODE
        assert len(backend.table("firm_settings").select("id").execute().data) == 1

    def test_upsert_on_conflict(self, backend):
        table = "organization_settings"
        backend.table(table).upsert({"user_id": "u1", "organization_prefix": "ABC"}, on_conflict="user_id").execute()
        backend.table(table).upsert({"user_id": "u1", "organization_prefix": "XYZ"}, on_conflict="user_id").execute()
        rows = backend.table(table).select("*").execute().data
        assert len(rows) == 1
        assert rows[0]["organization_prefix"] == "XYZ"

    def test_iso_strings_for_datetime_columns(self, backend):
        row = backend.table("events").insert({
            "title": "Hearing",
            "start_date": "2024-07-01T10:00:00Z",
        }).single().execute().data
        assert row["start_date"] == datetime(2024, 7, 1, 10, 0)

        rows = backend.table("events").select("id").gte("start_date", "2024-07-01T00:00:00").execute().data
        assert len(rows) == 1

    def test_invalid_datetime(self, backend):
        with pytest.raises(BackendError):
            backend.table("events").insert({"title": "x", "start_date": "tomorrow"}).execute()

    def test_parse_datetime_normalizes_offsets(self):
        assert parse_datetime("2024-07-01T12:00:00+02:00") == datetime(2024, 7, 1, 10, 0)
        assert parse_datetime(datetime(2024, 1, 1, 9, 30)) == datetime(2024, 1, 1, 9, 30)


# =============================================================================
# Storage
# =============================================================================

class TestStorage:

    def test_upload_download_and_public_url(self, backend):
        bucket = backend.storage.from_("logos")
        bucket.upload("u1/1.png", b"png-bytes", content_type="image/png")
        assert bucket.download("u1/1.png") == b"png-bytes"
        assert bucket.exists("u1/1.png")
        assert bucket.get_public_url("u1/1.png") == "http://testserver/storage/logos/u1/1.png"

    def test_duplicate_upload(self, backend):
        bucket = backend.storage.from_("logos")
        bucket.upload("a.png", b"1")
        with pytest.raises(BackendError) as exc:
            bucket.upload("a.png", b"2")
        assert exc.value.code == "409"

        bucket.upload("a.png", b"2", upsert=True)
        assert bucket.download("a.png") == b"2"

    def test_missing_object(self, backend):
        with pytest.raises(BackendError) as exc:
            backend.storage.from_("logos").download("nothing.png")
        assert exc.value.code == "404"

    @pytest.mark.parametrize("path", ["", "../escape.png", "a/../../b", "a//b"])
    def test_invalid_paths(self, backend, path):
        with pytest.raises(BackendError):
            backend.storage.from_("logos").upload(path, b"x")

    def test_invalid_bucket(self, backend):
        with pytest.raises(BackendError):
            backend.storage.from_("Bad Bucket")

    def test_list_remove_and_usage(self, backend):
        bucket = backend.storage.from_("logos")
        bucket.upload("u1/a.png", b"12345")
        bucket.upload("u1/b.png", b"123")
        assert [e["name"] for e in bucket.list("u1")] == ["u1/a.png", "u1/b.png"]
        assert backend.storage.usage_bytes() == 8

        assert bucket.remove(["u1/a.png", "u1/missing.png"]) == ["u1/a.png"]
        assert backend.storage.usage_bytes() == 3

    def test_usage_per_owner(self, backend):
        backend.storage.from_("logos").upload("u1/logo.png", b"12345")
        backend.storage.from_("documents").upload("u1/brief.pdf", b"123")
        backend.storage.from_("documents").upload("u2/brief.pdf", b"1234567")
        assert backend.storage.usage_bytes("u1") == 8
        assert backend.storage.usage_bytes("u2") == 7
        assert backend.storage.usage_bytes("u3") == 0
        assert backend.storage.usage_bytes() == 15


# =============================================================================
# Token blacklist
# =============================================================================

class TestTokenBlacklist:

    def test_no_redis_without_url(self):
        assert get_redis_client(None) is None

    def test_unreachable_redis_falls_back(self):
        assert get_redis_client("redis://127.0.0.1:1/0") is None

    def test_add_and_check(self, db):
        expires = datetime.utcnow() + timedelta(hours=1)
        assert add_to_blacklist(db, "jti-1", expires, user_id="u1") is False
        assert is_blacklisted(db, "jti-1")
        assert not is_blacklisted(db, "jti-2")

    def test_add_is_idempotent(self, db):
        expires = datetime.utcnow() + timedelta(hours=1)
        add_to_blacklist(db, "jti-1", expires)
        add_to_blacklist(db, "jti-1", expires)
        assert db.query(TokenBlacklist).count() == 1

    def test_remove_expired(self, db):
        add_to_blacklist(db, "old", datetime.utcnow() - timedelta(hours=1))
        add_to_blacklist(db, "new", datetime.utcnow() + timedelta(hours=1))
        assert remove_expired_blacklist_entries(db) == 1
        assert not is_blacklisted(db, "old")
        assert is_blacklisted(db, "new")


# =============================================================================
# Auth provider
# =============================================================================

class TestAuth:

    def test_sign_up_issues_session(self, backend):
        response = backend.auth.sign_up("New@Firm.test", "secret123", {"full_name": "New Person"})
        assert response.user.email == "new@firm.test"
        assert response.user.user_metadata == {"full_name": "New Person"}
        assert response.session.access_token
        assert backend.auth.get_session() is response.session

    def test_sign_up_rejects_bad_input(self, backend):
        with pytest.raises(AuthApiError) as exc:
            backend.auth.sign_up("not-an-email", "secret123")
        assert exc.value.status == 422
        with pytest.raises(AuthApiError):
            backend.auth.sign_up("a@firm.test", "123")
        with pytest.raises(AuthApiError) as exc:
            backend.auth.sign_up("a@firm.test", "x" * 73)
        assert "72 bytes" in exc.value.message

    def test_duplicate_sign_up(self, backend, user):
        with pytest.raises(AuthApiError) as exc:
            backend.auth.sign_up(user.email, "secret123")
        assert exc.value.message == "User already registered"

    def test_sign_in(self, db, settings, user):
        auth = AuthClient(db, settings)
        response = auth.sign_in_with_password("OWNER@firm.test", "secret123")
        assert response.user.id == user.id
        assert auth.get_user().id == user.id

    def test_sign_in_wrong_password(self, db, settings, user):
        with pytest.raises(AuthApiError) as exc:
            AuthClient(db, settings).sign_in_with_password(user.email, "wrong-password")
        assert exc.value.message == "Invalid login credentials"
        assert exc.value.status == 400

    def test_bearer_token_hydrates_session(self, db, settings, backend, user):
        token = backend.auth.get_session().access_token
        auth = AuthClient(db, settings, access_token=token)
        session = auth.get_session()
        assert session is not None
        assert session.user.id == user.id

    def test_get_user_without_session(self, db, settings):
        with pytest.raises(AuthApiError) as exc:
            AuthClient(db, settings).get_user()
        assert exc.value.message == "Auth session missing!"
        assert exc.value.status == 401

    def test_garbage_token(self, db, settings):
        auth = AuthClient(db, settings, access_token="not.a.jwt")
        assert auth.get_session() is None
        with pytest.raises(AuthApiError) as exc:
            auth.get_user("not.a.jwt")
        assert exc.value.message == "Invalid JWT"

    def test_expired_token(self, db, settings, user):
        expired = settings.model_copy(update={"access_token_expire_minutes": -5})
        token = AuthClient(db, expired).sign_in_with_password(user.email, "secret123").session.access_token
        assert AuthClient(db, settings, access_token=token).get_session() is None

    def test_sign_out_revokes_token(self, db, settings, backend, user):
        token = backend.auth.get_session().access_token
        backend.auth.sign_out()
        assert backend.auth.get_session() is None
        assert AuthClient(db, settings, access_token=token).get_session() is None

    def test_refresh_rotates(self, db, settings, backend, user):
        old = backend.auth.get_session()
        new = AuthClient(db, settings).refresh_session(old.refresh_token)
        assert new.user.id == user.id
        assert new.refresh_token != old.refresh_token

        with pytest.raises(AuthApiError) as exc:
            AuthClient(db, settings).refresh_session(old.refresh_token)
        assert exc.value.message == "Invalid Refresh Token"

    def test_access_token_is_not_a_refresh_token(self, db, settings, backend, user):
        with pytest.raises(AuthApiError):
            AuthClient(db, settings).refresh_session(backend.auth.get_session().access_token)

    def test_update_user_merges_metadata(self, backend, user):
        updated = backend.auth.update_user({"title": "Partner"})
        assert updated.user_metadata == {"full_name": "Olivia Owner", "title": "Partner"}

    def test_listeners(self, db, settings, user):
        auth = AuthClient(db, settings)
        events = []
        subscription = auth.on_auth_state_change(lambda event, session: events.append(event))

        session = auth.sign_in_with_password(user.email, "secret123").session
        auth.refresh_session(session.refresh_token)
        auth.update_user({"x": 1})
        auth.sign_out()
        assert events == [SIGNED_IN, TOKEN_REFRESHED, USER_UPDATED, SIGNED_OUT]

        subscription.unsubscribe()
        auth.sign_in_with_password(user.email, "secret123")
        assert len(events) == 4

    def test_failing_listener_does_not_break_sign_in(self, db, settings, user):
        auth = AuthClient(db, settings)

        def boom(event, session):
            raise RuntimeError("listener failure")

        auth.on_auth_state_change(boom)
        assert auth.sign_in_with_password(user.email, "secret123").session is not None


# =============================================================================
# RPC functions
# =============================================================================

class TestPercentChange:

    @pytest.mark.parametrize("current,previous,expected", [
        (10, 5, 100.0),
        (5, 10, -50.0),
        (1, 3, -66.7),
        (3, 3, 0.0),
        (3, 0, 100.0),
        (0, 0, 0.0),
    ])
    def test_values(self, current, previous, expected):
        assert percent_change(current, previous) == expected


@pytest.fixture
def dashboard_data(db, now):
    """Two users' worth of cases, documents and events around the fixed clock."""
    day = timedelta(days=1)
    db.add_all([
        Profile(id="u1", email="u1@firm.test", full_name="Una User"),
        Profile(id="u2", email="u2@firm.test", full_name="Other Person"),
        Client(id="cl1", name="Acme Ltd", created_by="u1"),
        Client(id="cl2", name="Globex", created_by="u2"),
    ])
    db.add_all([
        Case(id="c1", title="Old open", client_id="cl1", status="open", created_by="u1", created_at=now - 60 * day),
        Case(id="c2", title="New closed", client_id="cl1", status="closed", created_by="u1", created_at=now - 5 * day),
        Case(id="c3", title="Assigned pending", client_id="cl2", status="pending", created_by="u2",
             assigned_to="u1", created_at=now - 40 * day),
        Case(id="c4", title="Not mine", client_id="cl2", status="open", created_by="u2", created_at=now - 2 * day),
    ])
    db.add_all([
        Document(id="d1", name="brief.pdf", file_url="x", uploaded_by="u1", uploaded_at=now - 45 * day),
        Document(id="d2", name="exhibit.png", file_url="x", uploaded_by="u2", case_id="c3", uploaded_at=now - day),
        Document(id="d3", name="private.doc", file_url="x", uploaded_by="u2", uploaded_at=now - day),
    ])
    db.add_all([
        Event(id="h1", title="Motion hearing", event_type="hearing", created_by="u1",
              start_date=now + 3 * day, created_at=now - 10 * day),
        Event(id="h2", title="Trial hearing", event_type="hearing", created_by="u2", case_id="c1",
              start_date=now + 10 * day, created_at=now - day),
        Event(id="m1", title="Client meeting", event_type="meeting", created_by="u1",
              start_date=now + day, created_at=now - day),
        Event(id="h3", title="Past hearing", event_type="hearing", created_by="u1",
              start_date=now - 20 * day, created_at=now - 30 * day),
    ])
    db.commit()


class TestRpc:

    def test_unknown_function(self, backend):
        with pytest.raises(BackendError) as exc:
            backend.rpc("get_everything", {"user_id": "u1"}).execute()
        assert exc.value.code == UNKNOWN_FUNCTION_CODE

    def test_missing_user_id(self, backend):
        with pytest.raises(BackendError) as exc:
            backend.rpc("get_dashboard_stats", {}).execute()
        assert exc.value.code == UNKNOWN_FUNCTION_CODE

    def test_dashboard_stats(self, backend, dashboard_data):
        stats = backend.rpc("get_dashboard_stats", {"user_id": "u1"}).execute().data
        assert stats["total_cases"] == 3
        assert stats["cases_last_month"] == 2
        assert stats["cases_change"] == 50.0
        assert stats["active_cases"] == 2
        assert stats["active_cases_last_month"] == 2
        assert stats["active_cases_change"] == 0.0
        assert stats["total_documents"] == 2
        assert stats["documents_last_month"] == 1
        assert stats["documents_change"] == 100.0
        assert stats["upcoming_hearings"] == 2
        assert stats["hearings_last_week"] == 1
        assert stats["hearings_change"] == 100.0

    def test_dashboard_stats_for_new_user(self, backend):
        stats = backend.rpc("get_dashboard_stats", {"user_id": "nobody"}).execute().data
        assert stats["total_cases"] == 0
        assert stats["cases_change"] == 0.0

    def test_recent_cases(self, backend, dashboard_data):
        rows = backend.rpc("get_recent_cases", {"user_id": "u1", "limit_count": 2}).execute().data
        assert [r["id"] for r in rows] == ["c2", "c3"]
        assert rows[1]["client_name"] == "Globex"
        assert rows[1]["assigned_to_name"] == "Una User"
        assert isinstance(rows[0]["created_at"], str)

    def test_upcoming_hearings(self, backend, dashboard_data):
        rows = backend.rpc("get_upcoming_hearings", {"user_id": "u1"}).execute().data
        assert [r["id"] for r in rows] == ["h1", "h2"]
        assert rows[1]["case_title"] == "Old open"
        assert rows[1]["client_name"] == "Acme Ltd"
        assert rows[0]["case_title"] is None

    def test_recent_documents(self, backend, dashboard_data):
        rows = backend.rpc("get_recent_documents", {"user_id": "u1"}).execute().data
        assert [r["id"] for r in rows] == ["d2", "d1"]
        assert rows[0]["case_title"] == "Assigned pending"
        assert rows[0]["client_name"] == "Globex"
        assert rows[0]["uploaded_by_name"] == "Other Person"
