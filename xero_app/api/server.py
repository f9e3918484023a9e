"""
Xero tenant console.

Connects a browser session to one or more Xero organisations via OAuth2, keeps the
first authorised tenant active, and lets the user disconnect tenants one at a time.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from xero_app.auth.config import AppConfig, load_app_config
from xero_app.auth.deps import get_app_config, get_session_id, get_session_store, get_xero_client
from xero_app.auth.flow import DisconnectIncomplete, complete_callback, disconnect_active, load_organisation_name
from xero_app.auth.models import Connected
from xero_app.auth.session import (
    SESSION_COOKIE_NAME,
    SessionStore,
    decode_session_id,
    encode_session_id,
    session_cookie_kwargs,
)
from xero_app.auth.util import new_oauth_state
from xero_app.providers.xero_provider import XeroApiError, XeroClient
from xero_app.views import render_connect, render_connected, render_error, render_expired

logger = logging.getLogger(__name__)

app = FastAPI(title="Xero tenant console")


# ---- OAuth state cookie (CSRF) ----
_STATE_COOKIE = "xero_oauth_state"
_STATE_COOKIE_PATH = "/callback"
_STATE_TTL_SECONDS = 10 * 60


def _state_cookie_kwargs(cfg: AppConfig, *, value: str, max_age: int) -> dict:
    return {
        "key": _STATE_COOKIE,
        "value": value,
        "max_age": max_age,
        "httponly": True,
        "secure": cfg.cookie_secure,
        "samesite": "lax",
        "path": _STATE_COOKIE_PATH,
    }


def _state_cookie_clear_kwargs(cfg: AppConfig) -> dict:
    return _state_cookie_kwargs(cfg, value="", max_age=0)


def _is_sessionless_path(path: str) -> bool:
    return path == "/healthz"


@app.on_event("startup")
def _startup_check_config() -> None:
    """
    Fail fast when the app registration is not configured.
    """
    cfg = load_app_config()
    logger.info(
        "Xero console configured: client_id=%s redirect_uri=%s cookie_secure=%s session_ttl=%ds",
        cfg.client_id,
        cfg.redirect_uri,
        cfg.cookie_secure,
        cfg.session_ttl_seconds,
    )


@app.middleware("http")
async def session_and_logging(request: Request, call_next):
    """Attach a server-side session to every request and log it."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        if _is_sessionless_path(request.url.path or ""):
            response = await call_next(request)
        else:
            cfg = load_app_config()
            store = get_session_store(cfg)
            sid = decode_session_id(cfg, request.cookies.get(SESSION_COOKIE_NAME))
            if sid is None or not store.exists(sid):
                sid = store.create()
                logger.debug("Issued new session")
            request.state.session_id = sid

            response = await call_next(request)
            # Re-sign on every response so the cookie slides with the store TTL.
            response.set_cookie(**session_cookie_kwargs(cfg, encode_session_id(cfg, sid)))

        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.get("/", response_class=HTMLResponse)
def index(
    sid: str = Depends(get_session_id),
    store: SessionStore = Depends(get_session_store),
    xero: XeroClient = Depends(get_xero_client),
) -> HTMLResponse:
    """Show the active organisation, or a connect link."""
    state = store.get(sid)
    if not isinstance(state, Connected):
        return HTMLResponse(render_connect())

    try:
        updated = load_organisation_name(xero, state)
    except XeroApiError as e:
        if e.is_auth_error:
            # Expired: keep the session so the user can reconnect or disconnect.
            logger.info("Xero rejected the access token for tenant %s", state.active_tenant.tenant_id)
            return HTMLResponse(render_expired(state.active_tenant_name))
        logger.exception("Organisation lookup failed")
        return HTMLResponse(render_error())
    except Exception:
        logger.exception("Organisation lookup failed")
        return HTMLResponse(render_error())

    store.put(sid, updated)
    return HTMLResponse(render_connected(updated.active_tenant_name or ""))


@app.get("/connect")
def connect(
    cfg: AppConfig = Depends(get_app_config),
    xero: XeroClient = Depends(get_xero_client),
):
    """Redirect to the Xero consent page."""
    state = new_oauth_state()
    try:
        url = xero.build_consent_url(state)
    except Exception:
        logger.exception("Could not build Xero consent URL")
        return HTMLResponse(render_error())

    resp = RedirectResponse(url=url, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    resp.set_cookie(**_state_cookie_kwargs(cfg, value=state, max_age=_STATE_TTL_SECONDS))
    return resp


@app.get("/callback")
def callback(
    request: Request,
    sid: str = Depends(get_session_id),
    store: SessionStore = Depends(get_session_store),
    cfg: AppConfig = Depends(get_app_config),
    xero: XeroClient = Depends(get_xero_client),
):
    """Handle the OAuth2 redirect from Xero."""
    expected_state = (request.cookies.get(_STATE_COOKIE) or "").strip()
    try:
        if not expected_state:
            raise XeroApiError("Missing OAuth state - start again from /connect")
        new_state = complete_callback(xero, str(request.url), expected_state=expected_state)
    except Exception as e:
        logger.exception("Xero callback failed")
        resp = HTMLResponse(render_error(str(e) or e.__class__.__name__))
    else:
        store.put(sid, new_state)
        resp = RedirectResponse(url="/", status_code=302)
        resp.headers["Cache-Control"] = "no-store"

    resp.set_cookie(**_state_cookie_clear_kwargs(cfg))
    return resp


@app.get("/disconnect")
def disconnect(
    sid: str = Depends(get_session_id),
    store: SessionStore = Depends(get_session_store),
    xero: XeroClient = Depends(get_xero_client),
):
    """Disconnect the active tenant; switch to the next one if any remain."""
    state = store.get(sid)
    if not isinstance(state, Connected):
        return RedirectResponse(url="/", status_code=302)

    try:
        new_state = disconnect_active(xero, state)
    except DisconnectIncomplete as e:
        logger.exception("Disconnected %s but could not refresh tenants", state.active_tenant.id)
        store.put(sid, e.state)
        return HTMLResponse(render_error())
    except Exception:
        logger.exception("Disconnect failed")
        return HTMLResponse(render_error())

    store.put(sid, new_state)
    return RedirectResponse(url="/", status_code=302)


def run(host: str = "0.0.0.0", port: Optional[int] = None) -> None:
    import uvicorn

    # Configure logging for the application (replaces the CLI defaults set in main.py)
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Missing app registration is fatal: ConfigError propagates to the caller.
    cfg = load_app_config()

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    port = port or cfg.port
    logger.info("Starting Xero console on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
