"""Tests for the signed session cookie and the server-side session store."""

from __future__ import annotations

from xero_app.auth.config import load_app_config
from xero_app.auth.models import Connected, Disconnected
from xero_app.auth.session import (
    SESSION_COOKIE_NAME,
    SessionStore,
    decode_session_id,
    encode_session_id,
    session_cookie_kwargs,
)
from xero_app.auth.tokens import decode_token_set

from conftest import make_token_set, tenant


class _Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _connected() -> Connected:
    ts = make_token_set("a")
    id_claims, access_claims = decode_token_set(ts)
    t1 = tenant(1)
    return Connected(
        token_set=ts,
        id_token_claims=id_claims,
        access_token_claims=access_claims,
        tenants=(t1,),
        active_tenant=t1,
    )


def test_session_id_round_trips_through_signed_cookie() -> None:
    cfg = load_app_config()
    value = encode_session_id(cfg, "abc123")
    assert decode_session_id(cfg, value) == "abc123"


def test_tampered_cookie_is_rejected() -> None:
    cfg = load_app_config()
    value = encode_session_id(cfg, "abc123")
    assert decode_session_id(cfg, value[:-2] + "xx") is None
    assert decode_session_id(cfg, "garbage") is None
    assert decode_session_id(cfg, None) is None
    assert decode_session_id(cfg, "") is None


def test_cookie_kwargs_are_http_only_and_not_secure_by_default() -> None:
    cfg = load_app_config()
    kwargs = session_cookie_kwargs(cfg, "v")
    assert kwargs["key"] == SESSION_COOKIE_NAME
    assert kwargs["httponly"] is True
    assert kwargs["secure"] is False
    assert kwargs["samesite"] == "lax"
    assert kwargs["path"] == "/"
    assert kwargs["max_age"] == cfg.session_ttl_seconds


def test_new_session_is_disconnected() -> None:
    store = SessionStore(ttl_seconds=60)
    sid = store.create()
    assert store.exists(sid)
    assert store.get(sid) == Disconnected()
    assert len(store) == 1


def test_unknown_session_reads_as_disconnected() -> None:
    store = SessionStore(ttl_seconds=60)
    assert not store.exists("nope")
    assert store.get("nope") == Disconnected()


def test_put_replaces_state() -> None:
    store = SessionStore(ttl_seconds=60)
    sid = store.create()
    state = _connected()
    store.put(sid, state)
    assert store.get(sid) is state


def test_sessions_expire_after_ttl_of_inactivity() -> None:
    clock = _Clock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    sid = store.create()
    store.put(sid, _connected())

    clock.now += 59
    assert isinstance(store.get(sid), Connected)  # access slides the expiry

    clock.now += 59
    assert store.exists(sid)

    clock.now += 60
    assert not store.exists(sid)
    assert store.get(sid) == Disconnected()


def test_purge_expired_drops_only_stale_sessions() -> None:
    clock = _Clock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    old = store.create()
    clock.now += 30
    fresh = store.create()
    clock.now += 45

    assert store.purge_expired() == 1
    assert not store.exists(old)
    assert store.exists(fresh)


def test_create_purges_stale_sessions() -> None:
    clock = _Clock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    store.create()
    clock.now += 120
    store.create()
    assert len(store) == 1
