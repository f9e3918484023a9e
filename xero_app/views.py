"""HTML snippets returned by the console routes."""

from __future__ import annotations

from html import escape
from typing import Optional

GENERIC_ERROR = "Sorry, something went wrong"


def render_connect() -> str:
    return "<a href='/connect'>Connect to Xero</a>"


def render_connected(org_name: str) -> str:
    return f"<p>Connected to: {escape(org_name)}</p>" "<p><a href='/disconnect'>Disconnect</a></p>"


def render_expired(org_name: Optional[str]) -> str:
    label = f" {escape(org_name)}" if org_name else ""
    return (
        "<p>Session has expired...</p>"
        f"<p><a href='/connect'>Reconnect{label}</a></p>"
        "<p><a href='/disconnect'>Disconnect</a></p>"
    )


def render_error(detail: Optional[str] = None) -> str:
    if not detail:
        return GENERIC_ERROR
    return f"{GENERIC_ERROR}: {escape(detail)}"
