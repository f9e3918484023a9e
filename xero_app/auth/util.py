from __future__ import annotations

import secrets


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


def new_oauth_state() -> str:
    """Opaque CSRF value round-tripped through the Xero consent page."""
    return secrets.token_urlsafe(24)


def new_secret_key() -> str:
    return secrets.token_urlsafe(32)
