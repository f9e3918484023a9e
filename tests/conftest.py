"""
Pytest config.

Local imports like `import xero_app` rely on the repo root being on sys.path. When a
global `pytest` entrypoint is used that doesn't happen reliably during collection, so
we pin the behavior here.
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import jwt
import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from xero_app.auth.config import load_app_config  # noqa: E402
from xero_app.auth.deps import reset_caches  # noqa: E402
from xero_app.auth.models import Tenant, TokenSet  # noqa: E402
from xero_app.providers.xero_provider import XeroApiError  # noqa: E402


@pytest.fixture(autouse=True)
def _app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Every test starts from a fully configured app and empty process caches
    (config, session store, Xero client).
    """
    monkeypatch.setenv("CLIENT_ID", "test-client-id")
    monkeypatch.setenv("CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("REDIRECT_URI", "http://localhost:5000/callback")
    monkeypatch.setenv("SESSION_SECRET", "test-secret-key-for-testing-purposes-only")
    for name in ("PORT", "SESSION_TTL_SECONDS", "COOKIE_SECURE"):
        monkeypatch.delenv(name, raising=False)
    load_app_config.cache_clear()
    reset_caches()
    yield
    load_app_config.cache_clear()
    reset_caches()


def make_jwt(**claims) -> str:
    payload = {"iat": int(time.time()), "exp": int(time.time()) + 1800}
    payload.update(claims)
    return jwt.encode(payload, "not-a-real-signing-key-but-long-enough-for-hs256", algorithm="HS256")


def make_token_set(label: str, *, with_id_token: bool = True) -> TokenSet:
    return TokenSet(
        access_token=make_jwt(sub="user-1", xero_userid="xu-1", label=label),
        refresh_token=f"refresh-{label}",
        id_token=make_jwt(sub="user-1", email="owner@example.com", label=label) if with_id_token else None,
        expires_at=time.time() + 1800,
    )


def tenant(n: int) -> Tenant:
    return Tenant(id=f"conn-{n}", tenant_id=f"tenant-{n}", tenant_name=f"Org {n}")


class FakeXeroClient:
    """In-memory XeroClient: a grant covering `tenants`, recording every call."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.tenants: List[Tenant] = []
        self.token_set = make_token_set("initial")
        self.refreshed_token_set = make_token_set("refreshed")
        self.org_names: Dict[str, str] = {}
        self.consent_error: Optional[Exception] = None
        self.exchange_error: Optional[Exception] = None
        self.list_error: Optional[Exception] = None
        self.disconnect_error: Optional[Exception] = None
        self.org_error: Optional[Exception] = None

    def build_consent_url(self, state: str) -> str:
        self.calls.append(("build_consent_url", state))
        if self.consent_error:
            raise self.consent_error
        return f"https://login.xero.com/identity/connect/authorize?state={state}"

    def exchange_code(self, callback_url: str, *, expected_state: Optional[str] = None) -> TokenSet:
        self.calls.append(("exchange_code", callback_url))
        if self.exchange_error:
            raise self.exchange_error
        params = parse_qs(urlparse(callback_url).query)
        if expected_state is not None and (params.get("state") or [""])[0] != expected_state:
            raise XeroApiError("State mismatch - possible CSRF attack")
        return self.token_set

    def refresh(self, token_set: TokenSet) -> TokenSet:
        self.calls.append(("refresh",))
        return self.refreshed_token_set

    def list_tenants(self, token_set: TokenSet) -> List[Tenant]:
        self.calls.append(("list_tenants", token_set))
        if self.list_error:
            raise self.list_error
        return list(self.tenants)

    def disconnect(self, token_set: TokenSet, connection_id: str) -> TokenSet:
        self.calls.append(("disconnect", connection_id))
        if self.disconnect_error:
            raise self.disconnect_error
        self.tenants = [t for t in self.tenants if t.id != connection_id]
        return self.refreshed_token_set

    def get_organisation_name(self, token_set: TokenSet, tenant_id: str) -> str:
        self.calls.append(("get_organisation_name", tenant_id))
        if self.org_error:
            raise self.org_error
        return self.org_names[tenant_id]


@pytest.fixture
def fake_xero() -> FakeXeroClient:
    return FakeXeroClient()
