from datetime import timedelta

from langtrans.services.admin_sessions import AdminSessionStore


def test_create_and_get(clock):
    store = AdminSessionStore(ttl_seconds=3600, clock=clock)
    session = store.create()

    assert len(session.token) == 64
    assert session.expires_at - session.issued_at == timedelta(hours=1)
    assert store.get(session.token) == session


def test_tokens_are_unique(clock):
    store = AdminSessionStore(clock=clock)
    assert store.create().token != store.create().token


def test_unknown_token(clock):
    store = AdminSessionStore(clock=clock)
    assert store.get("nope") is None


def test_expired_session_is_dropped(clock):
    store = AdminSessionStore(ttl_seconds=60, clock=clock)
    session = store.create()

    clock.advance(60)
    assert store.get(session.token) is None
    assert len(store) == 0


def test_remove(clock):
    store = AdminSessionStore(clock=clock)
    session = store.create()
    store.remove(session.token)
    store.remove(session.token)
    assert store.get(session.token) is None


def test_create_purges_expired(clock):
    store = AdminSessionStore(ttl_seconds=60, clock=clock)
    store.create()
    store.create()
    clock.advance(120)

    store.create()
    assert len(store) == 1
