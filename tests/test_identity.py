import pytest

from impactmining.errors import AuthError, AuthRequired, BackendError
from impactmining.identity import SESSION_KEY, IdentityContext

from .conftest import ConfirmEmailClient, profiles


@pytest.fixture
def store():
    return {}


@pytest.fixture
def ident(backend, store):
    ctx = IdentityContext(backend, store).init()
    yield ctx
    ctx.teardown()


def test_sign_up_creates_profile_and_session(app, ident, store):
    identity = ident.sign_up("amara@example.org", "secret", "Amara")
    assert ident.is_authenticated
    assert store[SESSION_KEY]["access_token"]
    assert ident.display_name == "Amara"
    assert not ident.is_admin

    rows = profiles(app)
    assert [(p.id, p.display_name, p.role) for p in rows] == [(identity.id, "Amara", "user")]


def test_profile_failure_propagates_and_is_repaired_on_sign_in(app, backend, ident, monkeypatch):
    real_insert = backend.insert

    def failing_insert(collection, row):
        if collection == "profiles":
            raise BackendError("profiles unavailable", collection="profiles")
        return real_insert(collection, row)

    monkeypatch.setattr(backend, "insert", failing_insert)
    with pytest.raises(BackendError):
        ident.sign_up("kofi@example.org", "secret", "Kofi")
    assert profiles(app) == []

    monkeypatch.setattr(backend, "insert", real_insert)
    ident.sign_out()
    ident.sign_in("kofi@example.org", "secret")
    assert [p.display_name for p in profiles(app)] == ["Kofi"]


def test_sign_up_without_session_defers_profile(app, ctx, store):
    client = ConfirmEmailClient(secret=ctx.config["BACKEND_KEY"])
    ident = IdentityContext(client, store).init()
    identity = ident.sign_up("nia@example.org", "secret", "Nia")
    assert not ident.is_authenticated
    assert profiles(app) == []

    ident.sign_in("nia@example.org", "secret")
    assert [(p.id, p.display_name) for p in profiles(app)] == [(identity.id, "Nia")]
    ident.teardown()
    client.close()


def test_session_is_restored_from_store(backend, store):
    first = IdentityContext(backend, store).init()
    identity = first.sign_up("lin@example.org", "secret", "Lin")
    first.teardown()

    second = IdentityContext(backend, store).init()
    assert second.identity.id == identity.id
    second.teardown()


def test_unreadable_session_is_cleared(backend):
    store = {SESSION_KEY: {"access_token": "garbage", "refresh_token": ""}}
    ctx = IdentityContext(backend, store).init()
    assert not ctx.is_authenticated
    assert SESSION_KEY not in store
    ctx.teardown()


def test_sign_out_clears_store(ident, store):
    ident.sign_up("amara@example.org", "secret", "Amara")
    ident.sign_out()
    assert ident.identity is None
    assert SESSION_KEY not in store


def test_failed_sign_in_leaves_signed_out(ident):
    with pytest.raises(AuthError):
        ident.sign_in("nobody@example.org", "secret")
    assert not ident.is_authenticated


def test_require(ident):
    with pytest.raises(AuthRequired):
        ident.require()
    ident.sign_up("amara@example.org", "secret", "Amara")
    assert ident.require().email == "amara@example.org"


def test_admin_role(backend, ident, store):
    identity = ident.sign_up("admin@example.org", "secret", "Root")
    backend.update("profiles", {"id": identity.id}, {"role": "admin"})
    fresh = IdentityContext(backend, dict(store)).init()
    assert fresh.is_admin
    fresh.teardown()


def test_teardown_unsubscribes(backend, store):
    ctx = IdentityContext(backend, store).init()
    assert len(backend._auth_events) == 1
    ctx.teardown()
    assert len(backend._auth_events) == 0
