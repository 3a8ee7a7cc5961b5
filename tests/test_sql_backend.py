from decimal import Decimal

import pytest

from impactmining.backend import AuthEvent, Order
from impactmining.errors import AuthError, BackendError, NotFound

from .conftest import donations, project_raised


def test_select_filters_and_orders(backend, seed_project):
    seed_project(title="Bravo", status="completed")
    seed_project(title="Alpha")
    seed_project(title="Charlie")

    rows = backend.select("projects", columns="id, title", filters={"status": "in-progress"}, order=Order("title"))
    assert [r["title"] for r in rows] == ["Alpha", "Charlie"]
    assert set(rows[0]) == {"id", "title"}


def test_select_in_filter(backend, seed_project):
    a = seed_project(title="A")
    seed_project(title="B")
    c = seed_project(title="C")
    rows = backend.select("projects", filters={"id": [a, c]}, order=Order("title", descending=True))
    assert [r["title"] for r in rows] == ["C", "A"]


def test_select_one_missing_row_is_none(backend):
    assert backend.select_one("projects", filters={"id": "nope"}) is None


def test_unknown_collection_and_column(backend):
    with pytest.raises(BackendError):
        backend.select("accounts")
    with pytest.raises(BackendError):
        backend.select("projects", filters={"colour": "red"})


def test_count(backend, seed_project):
    seed_project()
    seed_project(status="completed")
    assert backend.count("projects") == 2
    assert backend.count("projects", filters={"status": "completed"}) == 1


def test_insert_returns_row_with_id(backend):
    row = backend.insert("stories", {"title": "Lights on", "body_md": "Now we study at night.", "approved": False})
    assert row["id"]
    assert row["approved"] is False
    assert row["created_at"]


def test_update_requires_filter(backend):
    with pytest.raises(BackendError):
        backend.update("stories", {}, {"approved": True})


def test_update_returns_changed_rows(backend):
    row = backend.insert("stories", {"title": "t", "body_md": "b", "approved": False})
    changed = backend.update("stories", {"id": row["id"]}, {"approved": True})
    assert len(changed) == 1 and changed[0]["approved"] is True
    assert backend.update("stories", {"id": "missing"}, {"approved": True}) == []


def test_record_donation_increments_project(app, backend, seed_project):
    pid = seed_project()
    row = backend.record_donation(project_id=pid, user_id="u1", amount_usd=Decimal("250"), tx_hash="sim_card_1_aaa")
    assert row["project_id"] == pid
    assert project_raised(app, pid) == Decimal("750.00")


def test_record_donation_is_idempotent_on_tx_hash(app, backend, seed_project):
    pid = seed_project()
    first = backend.record_donation(project_id=pid, user_id="u1", amount_usd=Decimal("10"), tx_hash="sim_card_2_bbb")
    again = backend.record_donation(project_id=pid, user_id="u1", amount_usd=Decimal("10"), tx_hash="sim_card_2_bbb")
    assert first["id"] == again["id"]
    assert len(donations(app)) == 1
    assert project_raised(app, pid) == Decimal("510.00")


def test_record_donation_unknown_project_writes_nothing(app, backend):
    with pytest.raises(NotFound):
        backend.record_donation(project_id="missing", user_id="u1", amount_usd=Decimal("5"), tx_hash="sim_card_3_ccc")
    assert donations(app) == []


def test_record_donation_general_fund(app, backend, seed_project):
    pid = seed_project()
    row = backend.record_donation(project_id=None, user_id="u1", amount_usd=Decimal("100"), tx_hash="sim_crypto_4_ddd")
    assert row["project_id"] is None
    assert project_raised(app, pid) == Decimal("500.00")


def test_sign_up_then_sign_in(backend):
    identity, session = backend.sign_up("Amara@Example.org", "secret", {"display_name": "Amara"})
    assert identity.email == "amara@example.org"
    assert identity.display_name == "Amara"
    assert session is not None

    signed_in = backend.sign_in_with_password("amara@example.org", "secret")
    assert signed_in.identity.id == identity.id


@pytest.mark.parametrize(
    "email, password, message",
    [
        ("not-an-email", "secret", "invalid format"),
        ("x@example.org", "123", "at least 6"),
    ],
)
def test_sign_up_rejects_bad_credentials(backend, email, password, message):
    with pytest.raises(AuthError) as exc:
        backend.sign_up(email, password)
    assert message in exc.value.message


def test_duplicate_sign_up(backend):
    backend.sign_up("dup@example.org", "secret")
    with pytest.raises(AuthError, match="already registered"):
        backend.sign_up("dup@example.org", "secret")


def test_wrong_password(backend):
    backend.sign_up("a@example.org", "secret")
    with pytest.raises(AuthError, match="Invalid login credentials"):
        backend.sign_in_with_password("a@example.org", "wrong!")


def test_restore_session_round_trip(backend):
    _, session = backend.sign_up("r@example.org", "secret")
    restored = backend.restore_session(session.to_storage())
    assert restored.identity.id == session.identity.id
    assert backend.restore_session({"access_token": "garbage"}) is None
    assert backend.restore_session({}) is None


def test_expired_access_token_is_refreshed(ctx):
    from impactmining.backend.sql import SqlDataClient

    client = SqlDataClient(secret=ctx.config["BACKEND_KEY"], access_ttl=-10)
    _, session = client.sign_up("old@example.org", "secret")
    events = []
    client.on_auth_state_change(lambda event, s: events.append(event))

    restored = client.restore_session(session.to_storage())
    assert restored is not None
    assert restored.identity.email == "old@example.org"
    assert events == [AuthEvent.TOKEN_REFRESHED]


def test_sign_out_emits_signed_out(backend):
    events = []
    sub = backend.on_auth_state_change(lambda event, s: events.append((event, s)))
    backend.sign_out()
    assert events == [(AuthEvent.SIGNED_OUT, None)]

    sub.unsubscribe()
    backend.sign_out()
    assert len(events) == 1


def test_oauth_is_not_available(backend):
    with pytest.raises(AuthError):
        backend.sign_in_with_oauth("google", "http://localhost/auth/callback")
    with pytest.raises(AuthError, match="Unsupported"):
        backend.sign_in_with_oauth("myspace", "http://localhost/auth/callback")
