"""
Records Tests
=============

Tests for:
- Client numbering, validation and CRUD
- Case numbering, validation and CRUD
- Dashboard loading
- Billing display
- Document listing and calendar events
"""

from datetime import timedelta

import pytest

from lexdesk.backend import BackendError
from lexdesk.billing import BillingService, invoice_totals, is_overdue, unbilled_time
from lexdesk.cases import CaseService, validate_case
from lexdesk.clients import ClientService, validate_client
from lexdesk.dashboard import DashboardService
from lexdesk.documents import DocumentService
from lexdesk.errors import (
    LexDeskError, PrefixNotConfigured, ProfileMissing, RecordNotFound, ValidationFailed,
)
from lexdesk.events import EventService
from lexdesk.schemas import (
    ClientCreate, ClientUpdate, CaseCreate, CaseUpdate, EventCreate, InvoiceRow, TimeEntryRow,
)


class ExplodingBackend:
    """Fails the test if a service touches the backend."""

    def table(self, name):
        raise AssertionError(f"backend table {name} must not be queried")

    def rpc(self, name, params=None):
        raise AssertionError(f"backend rpc {name} must not be called")


def _seed_clients(backend, user_id, prefix, count):
    backend.table("clients").insert([
        {
            "name": f"Existing {i}",
            "email": f"client{i}@example.test",
            "organization_prefix": prefix,
            "sequential_number": i,
            "client_number": f"{prefix}/{i:03d}",
            "created_by": user_id,
        }
        for i in range(1, count + 1)
    ]).execute()


# =============================================================================
# Clients
# =============================================================================

class TestClientValidation:

    def test_name_required(self):
        with pytest.raises(ValidationFailed) as exc:
            validate_client(ClientCreate(name="  ", email="a@b.test"))
        assert exc.value.errors == {"name": "Client name is required"}

    def test_contact_required(self):
        with pytest.raises(ValidationFailed) as exc:
            validate_client(ClientCreate(name="Acme"))
        assert exc.value.errors == {"contact": "Either email or phone number is required"}

    def test_phone_is_enough(self):
        validate_client(ClientCreate(name="Acme", phone="+1 555 0100"))

    def test_email_format(self):
        with pytest.raises(ValidationFailed) as exc:
            validate_client(ClientCreate(name="Acme", email="not-an-email"))
        assert exc.value.errors == {"email": "Please enter a valid email address"}

    def test_rejected_before_any_backend_call(self):
        service = ClientService(ExplodingBackend(), "u1")
        with pytest.raises(ValidationFailed) as exc:
            service.create(ClientCreate(name="", email=""))
        assert set(exc.value.errors) == {"name", "contact"}
        assert exc.value.status_code == 422


class TestClientNumbering:

    def test_next_number_after_existing(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        _seed_clients(backend, user.id, "ABC", 4)

        client = ClientService(backend, user.id).create(ClientCreate(name="Acme Ltd", email="legal@acme.test"))
        assert client.client_number == "ABC/005"
        assert client.sequential_number == 5
        assert client.organization_prefix == "ABC"
        assert client.status == "active"
        assert client.created_by == user.id

    def test_first_client(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        client = ClientService(backend, user.id).create(ClientCreate(name="Acme", phone="555-0100"))
        assert client.client_number == "ABC/001"

    def test_other_prefixes_do_not_count(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        _seed_clients(backend, user.id, "XYZ", 9)
        client = ClientService(backend, user.id).create(ClientCreate(name="Acme", phone="555-0100"))
        assert client.client_number == "ABC/001"

    def test_sequential_creations(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        service = ClientService(backend, user.id)
        numbers = [
            service.create(ClientCreate(name=f"Client {i}", phone="555")).client_number
            for i in range(3)
        ]
        assert numbers == ["ABC/001", "ABC/002", "ABC/003"]

    def test_preview_does_not_reserve(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        service = ClientService(backend, user.id)
        assert service.preview_next_number() == "ABC/001"
        assert service.preview_next_number() == "ABC/001"

    def test_missing_prefix(self, backend, user):
        with pytest.raises(PrefixNotConfigured) as exc:
            ClientService(backend, user.id).create(ClientCreate(name="Acme", email="legal@acme.test"))
        assert exc.value.message == "Organization prefix is required. Please set it up in settings first."
        assert exc.value.to_dict()["redirect_to"] == "/settings/organization"
        assert backend.table("clients").select("id").execute().data == []

    def test_prefix_from_firm_settings(self, backend, user):
        backend.table("firm_settings").insert({
            "organization_id": user.id, "firm_name": "Firm", "organization_prefix": "frm",
        }).execute()
        client = ClientService(backend, user.id).create(ClientCreate(name="Acme", phone="555"))
        assert client.client_number == "FRM/001"

    def test_missing_profile(self, backend, make_user, set_prefix):
        no_profile = make_user(email="ghost@firm.test", with_profile=False)
        set_prefix(no_profile.id, "ABC")
        with pytest.raises(ProfileMissing):
            ClientService(backend, no_profile.id).create(ClientCreate(name="Acme", phone="555"))


class TestClientCrud:

    @pytest.fixture
    def service(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        return ClientService(backend, user.id)

    def test_list_search_and_order(self, service):
        service.create(ClientCreate(name="Zeta Corp", email="z@zeta.test"))
        service.create(ClientCreate(name="Alpha", email="a@alpha.test", company="Globex"))
        service.create(ClientCreate(name="Beta", phone="555"))

        assert [c.name for c in service.list()] == ["Alpha", "Beta", "Zeta Corp"]
        assert [c.name for c in service.list("globex")] == ["Alpha"]
        assert [c.name for c in service.list("ZETA.TEST")] == ["Zeta Corp"]

    def test_list_is_scoped_to_creator(self, backend, service, make_user):
        service.create(ClientCreate(name="Mine", phone="555"))
        other = make_user(email="other@firm.test")
        assert ClientService(backend, other.id).list() == []

    def test_get_with_cases(self, backend, service, user):
        client = service.create(ClientCreate(name="Acme", phone="555"))
        CaseService(backend, user.id).create(CaseCreate(title="Dispute", client_id=client.id, matter_type="LIT"))
        detail = service.get(client.id)
        assert detail.client.id == client.id
        assert [c.title for c in detail.cases] == ["Dispute"]

    def test_get_missing(self, service):
        with pytest.raises(RecordNotFound) as exc:
            service.get("missing")
        assert exc.value.status_code == 404

    def test_update(self, service):
        client = service.create(ClientCreate(name="Acme", phone="555"))
        updated = service.update(client.id, ClientUpdate(company="Acme Holdings", status="inactive"))
        assert updated.company == "Acme Holdings"
        assert updated.status == "inactive"
        assert updated.client_number == client.client_number

    def test_update_normalizes_contact_details(self, service):
        client = service.create(ClientCreate(name="Acme", email="legal@acme.test", phone="555"))
        updated = service.update(client.id, ClientUpdate(email="  ", phone=" 555-0100 "))
        assert updated.email is None
        assert updated.phone == "555-0100"

    def test_update_cannot_remove_all_contact_details(self, service):
        client = service.create(ClientCreate(name="Acme", phone="555"))
        with pytest.raises(ValidationFailed) as exc:
            service.update(client.id, ClientUpdate(phone=""))
        assert "contact" in exc.value.errors

    def test_update_rejects_unknown_status(self, service):
        client = service.create(ClientCreate(name="Acme", phone="555"))
        with pytest.raises(ValidationFailed):
            service.update(client.id, ClientUpdate(status="archived"))

    def test_delete(self, service):
        client = service.create(ClientCreate(name="Acme", phone="555"))
        service.delete(client.id)
        assert service.list() == []

    def test_delete_with_cases(self, backend, service, user):
        client = service.create(ClientCreate(name="Acme", phone="555"))
        CaseService(backend, user.id).create(CaseCreate(title="Dispute", client_id=client.id, matter_type="LIT"))
        with pytest.raises(LexDeskError) as exc:
            service.delete(client.id)
        assert exc.value.message == "Cannot delete a client that has cases"


# =============================================================================
# Cases
# =============================================================================

@pytest.fixture
def acme(backend, user, set_prefix):
    """Client ABC/005 of the signed-in user."""
    set_prefix(user.id, "ABC")
    _seed_clients(backend, user.id, "ABC", 4)
    return ClientService(backend, user.id).create(ClientCreate(name="Acme Ltd", email="legal@acme.test"))


class TestCaseValidation:

    def test_required_fields(self):
        with pytest.raises(ValidationFailed) as exc:
            validate_case(CaseCreate())
        assert set(exc.value.errors) == {"title", "client_id", "matter_type"}

    def test_unknown_matter_type(self):
        with pytest.raises(ValidationFailed) as exc:
            validate_case(CaseCreate(title="x", client_id="c", matter_type="XYZ"))
        assert exc.value.errors == {"matter_type": "Unknown matter type: XYZ"}

    def test_bad_priority(self):
        with pytest.raises(ValidationFailed) as exc:
            validate_case(CaseCreate(title="x", client_id="c", matter_type="LIT", priority="asap"))
        assert "priority" in exc.value.errors

    def test_normalizes_matter_type(self):
        assert validate_case(CaseCreate(title="x", client_id="c", matter_type=" fam ")) == "FAM"

    def test_rejected_before_any_backend_call(self):
        with pytest.raises(ValidationFailed):
            CaseService(ExplodingBackend(), "u1").create(CaseCreate(title="x", matter_type="LIT"))


class TestCaseNumbering:

    def test_first_case_number(self, backend, user, acme):
        case = CaseService(backend, user.id).create(
            CaseCreate(title="Contract dispute", client_id=acme.id, matter_type="lit")
        )
        assert case.case_number == "ABC/005/LIT/01/2024"
        assert case.matter_type == "LIT"
        assert case.sequential_number == 1
        assert case.year == 2024
        assert case.status == "open"
        assert case.priority == "medium"

    def test_sequence_is_per_client(self, backend, user, acme):
        service = CaseService(backend, user.id)
        service.create(CaseCreate(title="One", client_id=acme.id, matter_type="LIT"))
        second = service.create(CaseCreate(title="Two", client_id=acme.id, matter_type="FAM"))
        assert second.case_number == "ABC/005/FAM/02/2024"

        other = ClientService(backend, user.id).create(ClientCreate(name="Other", phone="555"))
        assert service.create(
            CaseCreate(title="Three", client_id=other.id, matter_type="CIV")
        ).case_number == "ABC/006/CIV/01/2024"

    def test_uses_the_clients_prefix(self, backend, user, acme, set_prefix):
        set_prefix(user.id, "NEW")
        case = CaseService(backend, user.id).create(CaseCreate(title="x", client_id=acme.id, matter_type="TAX"))
        assert case.case_number == "ABC/005/TAX/01/2024"

    def test_unknown_client(self, backend, user, set_prefix):
        set_prefix(user.id, "ABC")
        with pytest.raises(RecordNotFound):
            CaseService(backend, user.id).create(CaseCreate(title="x", client_id="missing", matter_type="LIT"))

    def test_client_of_another_user(self, backend, acme, make_user, set_prefix):
        intruder = make_user(email="intruder@firm.test")
        set_prefix(intruder.id, "INT")
        with pytest.raises(RecordNotFound):
            CaseService(backend, intruder.id).create(CaseCreate(title="x", client_id=acme.id, matter_type="LIT"))
        assert backend.table("cases").select("id").execute().data == []


class TestCaseCrud:

    def test_list_includes_assigned_cases(self, backend, user, acme, make_user):
        colleague = make_user(email="colleague@firm.test", full_name="Colin League")
        service = CaseService(backend, user.id)
        service.create(CaseCreate(title="Mine", client_id=acme.id, matter_type="LIT"))
        service.create(CaseCreate(title="Delegated", client_id=acme.id, matter_type="LIT", assigned_to=colleague.id))

        assert {c.title for c in CaseService(backend, colleague.id).list()} == {"Delegated"}
        assert {c.title for c in service.list()} == {"Mine", "Delegated"}

        stranger = make_user(email="stranger@firm.test")
        assert CaseService(backend, stranger.id).list() == []

    def test_list_filters(self, backend, user, acme):
        service = CaseService(backend, user.id)
        service.create(CaseCreate(title="Open", client_id=acme.id, matter_type="LIT"))
        service.create(CaseCreate(title="Closed", client_id=acme.id, matter_type="LIT", status="closed"))
        assert [c.title for c in service.list(status="closed")] == ["Closed"]
        assert len(service.list(client_id=acme.id)) == 2

    def test_get_detail(self, backend, user, acme):
        service = CaseService(backend, user.id)
        case = service.create(CaseCreate(title="Dispute", client_id=acme.id, matter_type="LIT", assigned_to=user.id))
        detail = service.get(case.id)
        assert detail.client.name == "Acme Ltd"
        assert detail.assigned_to.full_name == "Olivia Owner"
        assert detail.created_by.id == user.id

    def test_update_and_delete(self, backend, user, acme):
        service = CaseService(backend, user.id)
        case = service.create(CaseCreate(title="Dispute", client_id=acme.id, matter_type="LIT"))

        updated = service.update(case.id, CaseUpdate(status="pending", priority="urgent"))
        assert updated.status == "pending"
        assert updated.priority == "urgent"
        assert updated.case_number == case.case_number

        with pytest.raises(ValidationFailed):
            service.update(case.id, CaseUpdate(status="won"))

        service.delete(case.id)
        with pytest.raises(RecordNotFound):
            service.get(case.id)


# =============================================================================
# Dashboard
# =============================================================================

class TestDashboard:

    def test_load(self, backend, user, acme, now):
        CaseService(backend, user.id).create(CaseCreate(title="Dispute", client_id=acme.id, matter_type="LIT"))
        backend.table("events").insert({
            "title": "Hearing", "event_type": "hearing", "created_by": user.id,
            "start_date": now + timedelta(days=2),
        }).execute()

        dashboard = DashboardService(backend, user.id).load()
        assert dashboard.error is None
        assert dashboard.loading is False
        assert dashboard.stats.total_cases == 1
        assert dashboard.stats.upcoming_hearings == 1
        assert [c.title for c in dashboard.recent_cases] == ["Dispute"]
        assert dashboard.recent_cases[0].client_name == "Acme Ltd"
        assert [h.title for h in dashboard.upcoming_hearings] == ["Hearing"]
        assert dashboard.recent_documents == []

        payload = dashboard.to_dict()
        assert payload["stats"]["total_cases"] == 1
        assert payload["error"] is None

    def test_stops_at_first_failure(self, backend, user):
        real_rpc = backend.rpc

        def flaky_rpc(name, params=None):
            if name == "get_upcoming_hearings":
                raise BackendError("function timed out")
            return real_rpc(name, params)

        backend.rpc = flaky_rpc
        dashboard = DashboardService(backend, user.id).load()
        assert dashboard.error == "function timed out"
        assert dashboard.stats is not None
        assert dashboard.recent_cases == []
        assert dashboard.upcoming_hearings == []
        assert dashboard.loading is False

    def test_refresh_stats_error(self, backend, user):
        def broken_rpc(name, params=None):
            raise BackendError("boom")

        backend.rpc = broken_rpc
        dashboard = DashboardService(backend, user.id)
        assert dashboard.refresh_stats() is None
        assert dashboard.error == "boom"


# =============================================================================
# Billing
# =============================================================================

class TestBillingHelpers:

    def _invoice(self, status, due, amount=100.0):
        return InvoiceRow(id=status, invoice_number="INV", client_id="c", due_date=due, amount=amount, status=status)

    def test_is_overdue(self, now):
        past, future = now - timedelta(days=1), now + timedelta(days=1)
        assert is_overdue(self._invoice("sent", past), now)
        assert is_overdue(self._invoice("overdue", future), now)
        assert not is_overdue(self._invoice("sent", future), now)
        assert not is_overdue(self._invoice("paid", past), now)
        assert not is_overdue(self._invoice("cancelled", past), now)

    def test_totals(self, now):
        past, future = now - timedelta(days=1), now + timedelta(days=1)
        totals = invoice_totals([
            self._invoice("sent", past, 100.0),
            self._invoice("sent", future, 50.0),
            self._invoice("paid", past, 75.5),
            self._invoice("draft", future, 20.0),
        ], now)
        assert totals["overdue"] == 100.0
        assert totals["sent"] == 50.0
        assert totals["paid"] == 75.5
        assert totals["draft"] == 20.0
        assert totals["outstanding"] == 150.0

    def test_unbilled_time(self):
        entries = [
            TimeEntryRow(id="1", description="a", case_id="c", client_id="c", duration=2, rate=150),
            TimeEntryRow(id="2", description="b", case_id="c", client_id="c", duration=1.5, rate=200),
            TimeEntryRow(id="3", description="c", case_id="c", client_id="c", duration=4, rate=150, billable=False),
            TimeEntryRow(id="4", description="d", case_id="c", client_id="c", duration=1, rate=150, status="billed"),
        ]
        summary = unbilled_time(entries)
        assert summary.entries == 2
        assert summary.hours == 3.5
        assert summary.amount == 600.0


class TestBillingService:

    def test_summary(self, backend, user, acme, now):
        invoices = backend.table("invoices").insert([
            {"invoice_number": "INV-001", "client_id": acme.id, "amount": 1000.0, "status": "sent",
             "issue_date": now - timedelta(days=40), "due_date": now - timedelta(days=10), "created_by": user.id},
            {"invoice_number": "INV-002", "client_id": acme.id, "amount": 250.0, "status": "paid",
             "issue_date": now - timedelta(days=20), "due_date": now - timedelta(days=5), "created_by": user.id},
        ]).execute().data
        backend.table("invoice_items").insert([
            {"invoice_id": invoices[0]["id"], "description": "Drafting", "quantity": 4, "rate": 200, "amount": 800},
            {"invoice_id": invoices[0]["id"], "description": "Filing", "quantity": 1, "rate": 200, "amount": 200},
        ]).execute()
        case = CaseService(backend, user.id).create(CaseCreate(title="x", client_id=acme.id, matter_type="LIT"))
        backend.table("time_entries").insert({
            "description": "Research", "case_id": case.id, "client_id": acme.id,
            "duration": 2.5, "rate": 200, "attorney_id": user.id,
        }).execute()
        backend.storage.from_("logos").upload(f"{user.id}/logo.png", b"x" * 1024)
        backend.storage.from_("documents").upload("someone-else/brief.pdf", b"y" * 4096)

        summary = BillingService(backend, user.id, storage_limit_bytes=2048).summary()
        assert [v.invoice.invoice_number for v in summary.invoices] == ["INV-002", "INV-001"]
        overdue = summary.invoices[1]
        assert overdue.is_overdue
        assert overdue.items_total == 1000.0
        assert len(overdue.items) == 2
        assert summary.totals["overdue"] == 1000.0
        assert summary.totals["paid"] == 250.0
        assert summary.totals["outstanding"] == 1000.0
        assert summary.unbilled.hours == 2.5
        assert summary.unbilled.amount == 500.0
        assert summary.storage.used_bytes == 1024
        assert summary.storage.percent_used == 50.0

    def test_invoice_of_another_user(self, backend, user, acme, make_user, now):
        row = backend.table("invoices").insert({
            "invoice_number": "INV-9", "client_id": acme.id, "amount": 1.0,
            "due_date": now, "created_by": user.id,
        }).single().execute().data
        other = make_user(email="other@firm.test")
        with pytest.raises(RecordNotFound):
            BillingService(backend, other.id, 1).get_invoice(row["id"])
        assert BillingService(backend, user.id, 1).get_invoice(row["id"]).invoice.invoice_number == "INV-9"


# =============================================================================
# Documents & events
# =============================================================================

class TestDocuments:

    @pytest.fixture
    def documents(self, backend, user, now):
        backend.table("documents").insert([
            {"name": "Complaint", "file_url": "f1", "file_type": "application/pdf", "uploaded_by": user.id,
             "uploaded_at": now - timedelta(days=3)},
            {"name": "Engagement letter", "description": "Signed copy", "file_url": "f2",
             "file_type": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
             "uploaded_by": user.id, "uploaded_at": now - timedelta(days=2)},
            {"name": "Scene photo", "file_url": "f3", "file_type": "image/jpeg", "uploaded_by": user.id,
             "uploaded_at": now - timedelta(days=1)},
            {"name": "Someone else's", "file_url": "f4", "file_type": "application/pdf", "uploaded_by": "other"},
        ]).execute()

    def test_newest_first_and_scoped(self, backend, user, documents):
        names = [d.name for d in DocumentService(backend, user.id).list()]
        assert names == ["Scene photo", "Engagement letter", "Complaint"]

    @pytest.mark.parametrize("type_filter,expected", [
        ("pdf", ["Complaint"]),
        ("doc", ["Engagement letter"]),
        ("image", ["Scene photo"]),
    ])
    def test_type_filter(self, backend, user, documents, type_filter, expected):
        assert [d.name for d in DocumentService(backend, user.id).list(type_filter=type_filter)] == expected

    def test_search_description(self, backend, user, documents):
        assert [d.name for d in DocumentService(backend, user.id).list(search="signed")] == ["Engagement letter"]

    def test_unknown_type(self, backend, user):
        with pytest.raises(ValidationFailed):
            DocumentService(backend, user.id).list(type_filter="video")


class TestEvents:

    def test_create_and_list_range(self, backend, user, now):
        service = EventService(backend, user.id)
        service.create(EventCreate(title="Mediation", start_date=now + timedelta(days=1), event_type="meeting"))
        service.create(EventCreate(title="Trial", start_date=now + timedelta(days=20), event_type="hearing"))

        events = service.list(start=now, end=now + timedelta(days=7))
        assert [e.title for e in events] == ["Mediation"]
        assert [e.title for e in service.list(event_type="hearing")] == ["Trial"]
        assert events[0].created_by == user.id

    def test_validation(self, now):
        service = EventService(ExplodingBackend(), "u1")
        with pytest.raises(ValidationFailed) as exc:
            service.create(EventCreate(
                title=" ", start_date=now, end_date=now - timedelta(hours=1), event_type="party",
            ))
        assert set(exc.value.errors) == {"title", "end_date", "event_type"}

    def test_start_required(self):
        with pytest.raises(ValidationFailed) as exc:
            EventService(ExplodingBackend(), "u1").create(EventCreate(title="x"))
        assert exc.value.errors == {"start_date": "Start date is required"}

    def test_links_must_belong_to_the_user(self, backend, user, acme, make_user, now):
        case = CaseService(backend, user.id).create(CaseCreate(title="Dispute", client_id=acme.id, matter_type="LIT"))
        stranger = EventService(backend, make_user(email="stranger@firm.test").id)

        with pytest.raises(RecordNotFound):
            stranger.create(EventCreate(title="x", start_date=now, client_id=acme.id))
        with pytest.raises(RecordNotFound):
            stranger.create(EventCreate(title="x", start_date=now, case_id=case.id))
        assert stranger.list() == []

        event = EventService(backend, user.id).create(
            EventCreate(title="Hearing", start_date=now, event_type="hearing", case_id=case.id, client_id=acme.id)
        )
        assert event.case_id == case.id

    def test_assigned_case_can_be_linked(self, backend, user, acme, make_user, now):
        colleague = make_user(email="colleague@firm.test")
        case = CaseService(backend, user.id).create(
            CaseCreate(title="Delegated", client_id=acme.id, matter_type="LIT", assigned_to=colleague.id)
        )
        event = EventService(backend, colleague.id).create(EventCreate(title="Prep", start_date=now, case_id=case.id))
        assert event.case_id == case.id
