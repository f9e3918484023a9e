from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Request

from xero_app.auth.config import AppConfig, load_app_config
from xero_app.auth.session import SessionStore
from xero_app.providers.xero_provider import DefaultXeroClient, XeroClient


def get_app_config() -> AppConfig:
    return load_app_config()


@lru_cache(maxsize=4)
def _session_store(ttl_seconds: int) -> SessionStore:
    return SessionStore(ttl_seconds=ttl_seconds)


def get_session_store(cfg: AppConfig = Depends(get_app_config)) -> SessionStore:
    """Process-wide session store (one per configured TTL)."""
    return _session_store(cfg.session_ttl_seconds)


@lru_cache(maxsize=4)
def _xero_client(cfg: AppConfig) -> DefaultXeroClient:
    return DefaultXeroClient(cfg)


def get_xero_client(cfg: AppConfig = Depends(get_app_config)) -> XeroClient:
    """
    Xero client built once per configuration.

    Tests replace it through `app.dependency_overrides[get_xero_client]`.
    """
    return _xero_client(cfg)


def get_session_id(request: Request) -> str:
    # Set by the session middleware for every request.
    return request.state.session_id


def reset_caches() -> None:
    _session_store.cache_clear()
    _xero_client.cache_clear()
