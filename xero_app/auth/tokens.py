from __future__ import annotations

from typing import Any, Dict, Optional

import jwt  # PyJWT

from xero_app.auth.models import TokenSet


class TokenDecodeError(ValueError):
    """A token could not be decoded as a JWT."""


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode a JWT and return its claims without verifying the signature.

    The claims are only used for display and session bookkeeping.
    """
    if not token:
        raise TokenDecodeError("Empty token")
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise TokenDecodeError(f"Malformed token: {e}") from e
    if not isinstance(claims, dict):
        raise TokenDecodeError("Invalid token claims")
    return claims


def decode_token_set(token_set: TokenSet) -> tuple[Optional[Dict[str, Any]], Dict[str, Any]]:
    """Return (id_token claims or None, access_token claims)."""
    id_claims = decode_token(token_set.id_token) if token_set.id_token else None
    return id_claims, decode_token(token_set.access_token)
