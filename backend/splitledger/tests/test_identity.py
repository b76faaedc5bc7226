"""
Tests for identity enrichment.
"""
import httpx
import pytest
from splitledger.core.config import settings
from splitledger.core.errors import StoreAccessError
from splitledger.services import ledger_store
from splitledger.services.balance_service import compute_overall_balances
from splitledger.services.identity_service import (
    UNKNOWN_USER_LABEL, Identity, describe, enrich_report, fetch_emails
)
from splitledger.services.participant_resolver import ParticipantRef


@pytest.fixture
def shared_group(builder):
    """Alice paid $30 split between Alice, Bob and invited Carol."""
    alice = builder.user("alice@example.com", full_name="Alice A.", avatar_url="https://img/alice.png")
    bob = builder.user("bob@example.com")
    group = builder.group("Dinner")
    a, b = builder.member(group, alice), builder.member(group, bob)
    carol = builder.invite(group, "carol@example.com")
    builder.expense(group, a, "30.00", "USD", {a: "10.00", b: "10.00", carol: "10.00"})
    return alice, bob, carol


def test_enrichment_attaches_account_and_profile_data(make_context, shared_group):
    alice, bob, carol = shared_group
    context = make_context(alice)

    report = enrich_report(compute_overall_balances(context), context)

    rows = {b.participant_id: b.identity for b in report.group_balances[0].balances}
    alice_row = next(b for b in report.group_balances[0].balances if b.user_id == alice.id)
    assert alice_row.identity.email == "alice@example.com"
    assert alice_row.identity.full_name == "Alice A."
    assert alice_row.identity.avatar_url == "https://img/alice.png"

    bob_row = next(b for b in report.group_balances[0].balances if b.user_id == bob.id)
    assert bob_row.identity.email == "bob@example.com"
    assert bob_row.identity.full_name == "bob@example.com"

    assert rows[carol.id].email == "carol@example.com"
    assert rows[carol.id].full_name == "carol@example.com"

    assert report.overall_balances[0].identity.full_name == "Alice A."


def test_viewer_email_comes_from_request_context(make_context, shared_group):
    alice = shared_group[0]
    context = make_context(alice, viewer_email="alice@sso.example.com")

    report = enrich_report(compute_overall_balances(context), context)

    assert report.overall_balances[0].identity.email == "alice@sso.example.com"


def test_lookups_are_batched(make_context, builder, monkeypatch):
    viewer = builder.user("viewer@example.com")
    others = [builder.user(f"user{i}@example.com") for i in range(5)]
    seen_batches = []
    real_fetch = ledger_store.fetch_user_emails

    def spy(db, user_ids):
        seen_batches.append(list(user_ids))
        return real_fetch(db, user_ids)

    monkeypatch.setattr(settings, "IDENTITY_BATCH_SIZE", 2)
    monkeypatch.setattr(ledger_store, "fetch_user_emails", spy)

    emails = fetch_emails([u.id for u in others] + [viewer.id], make_context(viewer))

    assert len(emails) == 6
    assert all(len(batch) <= 2 for batch in seen_batches)
    assert sorted(uid for batch in seen_batches for uid in batch) == sorted(u.id for u in others)


def test_profile_failure_degrades_to_fallbacks(make_context, monkeypatch, shared_group):
    alice = shared_group[0]

    def unavailable(db, user_ids):
        raise StoreAccessError("Failed to load profiles")

    monkeypatch.setattr(ledger_store, "fetch_profiles", unavailable)
    context = make_context(alice)

    report = enrich_report(compute_overall_balances(context), context)

    alice_row = next(b for b in report.group_balances[0].balances if b.user_id == alice.id)
    assert alice_row.identity.full_name == "alice@example.com"
    assert alice_row.identity.avatar_url is None


def test_admin_api_emails_with_per_user_failures(make_context, builder):
    viewer = builder.user("viewer@example.com")
    known = builder.user("known@example.com")
    missing = builder.user("missing@example.com")
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith(known.id):
            return httpx.Response(200, json={"user": {"email": "known@auth.example.com"}})
        return httpx.Response(500, json={"message": "upstream error"})

    client = httpx.Client(
        transport=httpx.MockTransport(handler),
        base_url="https://auth.example.com/auth/v1",
        headers={"apikey": "service-key"}
    )

    emails = fetch_emails([known.id, missing.id, viewer.id], make_context(viewer), client=client)

    assert emails == {viewer.id: "viewer@example.com", known.id: "known@auth.example.com"}
    assert len(requests) == 2
    assert all(r.url.path.startswith("/auth/v1/admin/users/") for r in requests)
    assert all(r.headers["apikey"] == "service-key" for r in requests)


def test_describe_falls_back_to_unknown_label():
    assert describe(None, None, {}).full_name == UNKNOWN_USER_LABEL
    assert describe("u-ghost", None, {"u-ghost": Identity()}).full_name == UNKNOWN_USER_LABEL


def test_describe_prefers_account_data_over_participant():
    participant = ParticipantRef("p1", user_id="u1", email="old@example.com", full_name="Old Name")
    identities = {"u1": Identity(email="new@example.com", full_name="New Name")}

    identity = describe("u1", participant, identities)

    assert identity.email == "new@example.com"
    assert identity.full_name == "New Name"
    assert describe("u2", participant, identities).full_name == "Old Name"


def test_admin_api_non_object_bodies_are_ignored(make_context, builder):
    """Bodies that are not a JSON object, or carry a malformed user, yield no email."""
    viewer = builder.user("viewer@example.com")
    listed, empty, odd, good = (builder.user(f"{name}@example.com") for name in ("listed", "empty", "odd", "good"))
    bodies = {
        listed.id: [],
        empty.id: None,
        odd.id: {"user": "not-an-object"},
        good.id: {"user": {"email": "good@auth.example.com"}},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=bodies[request.url.path.rsplit("/", 1)[-1]])

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://auth.example.com/auth/v1")

    emails = fetch_emails(list(bodies) + [viewer.id], make_context(viewer), client=client)

    assert emails == {viewer.id: "viewer@example.com", good.id: "good@auth.example.com"}


def test_enrichment_survives_malformed_admin_api_responses(make_context, shared_group):
    alice, bob, carol = shared_group
    client = httpx.Client(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[])),
        base_url="https://auth.example.com/auth/v1"
    )
    context = make_context(alice)

    report = enrich_report(compute_overall_balances(context), context, client=client)

    rows = {b.participant_id: b for b in report.group_balances[0].balances}
    bob_row = next(b for b in rows.values() if b.user_id == bob.id)
    assert bob_row.identity.email is None
    assert bob_row.identity.full_name == UNKNOWN_USER_LABEL
    assert rows[carol.id].identity.full_name == "carol@example.com"
    assert report.overall_balances[0].identity.email == "alice@example.com"


def test_unexpected_lookup_errors_only_degrade_display_data(make_context, monkeypatch, shared_group):
    alice, bob, _ = shared_group

    def broken(db, user_ids):
        raise RuntimeError("driver crashed")

    monkeypatch.setattr(ledger_store, "fetch_user_emails", broken)
    monkeypatch.setattr(ledger_store, "fetch_profiles", broken)
    context = make_context(alice)

    report = enrich_report(compute_overall_balances(context), context)

    bob_row = next(b for b in report.group_balances[0].balances if b.user_id == bob.id)
    assert bob_row.identity.full_name == UNKNOWN_USER_LABEL
    assert bob_row.amount == -10
