from __future__ import annotations

import threading
import time
from functools import lru_cache
from typing import Callable, Dict, Optional, Tuple

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from xero_app.auth.config import AppConfig
from xero_app.auth.models import Disconnected, SessionState
from xero_app.auth.util import new_secret_key, new_session_id

SESSION_COOKIE_NAME = "xero_session"
SESSION_SALT = "xero-app-session-v1"


@lru_cache(maxsize=1)
def _process_secret() -> str:
    return new_secret_key()


def _serializer(cfg: AppConfig) -> URLSafeTimedSerializer:
    secret = cfg.session_secret or _process_secret()
    return URLSafeTimedSerializer(secret_key=secret, salt=SESSION_SALT)


def encode_session_id(cfg: AppConfig, session_id: str) -> str:
    # Cookie carries only the opaque id; tokens stay server-side.
    return _serializer(cfg).dumps(session_id)


def decode_session_id(cfg: AppConfig, value: str | None) -> Optional[str]:
    if not value:
        return None
    try:
        sid = _serializer(cfg).loads(value, max_age=cfg.session_ttl_seconds)
    except (BadSignature, BadTimeSignature):
        return None
    if not isinstance(sid, str) or not sid:
        return None
    return sid


def session_cookie_kwargs(cfg: AppConfig, value: str) -> dict:
    return {
        "key": SESSION_COOKIE_NAME,
        "value": value,
        "max_age": cfg.session_ttl_seconds,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": "/",
    }


class SessionStore:
    """
    In-memory server-side session store.

    Maps session id -> (last_seen, state). Entries expire `ttl_seconds` after their
    last access (sliding expiry); expired entries are dropped lazily.
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.time):
        self._ttl = ttl_seconds
        self._clock = clock
        self._items: Dict[str, Tuple[float, SessionState]] = {}
        self._lock = threading.Lock()

    def create(self) -> str:
        """Start a Disconnected session; stale sessions are purged first."""
        self.purge_expired()
        sid = new_session_id()
        with self._lock:
            self._items[sid] = (self._clock(), Disconnected())
        return sid

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return self._live(session_id, self._clock()) is not None

    def get(self, session_id: str) -> SessionState:
        """Return the session state; unknown or expired ids read as Disconnected."""
        now = self._clock()
        with self._lock:
            state = self._live(session_id, now)
            if state is None:
                return Disconnected()
            self._items[session_id] = (now, state)
            return state

    def put(self, session_id: str, state: SessionState) -> None:
        with self._lock:
            self._items[session_id] = (self._clock(), state)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [sid for sid, (seen, _) in self._items.items() if now - seen >= self._ttl]
            for sid in stale:
                del self._items[sid]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def _live(self, session_id: str, now: float) -> Optional[SessionState]:
        item = self._items.get(session_id)
        if item is None:
            return None
        seen, state = item
        if now - seen >= self._ttl:
            del self._items[session_id]
            return None
        return state
