"""
Session transitions for connect / callback / disconnect.

Every transition computes the complete next state before anything is stored, so a
failure before the first upstream change leaves the caller's session exactly as it
was. Once a connection has been removed upstream the session follows Xero, even if
a later step fails (see `DisconnectIncomplete`).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from xero_app.auth.models import Connected, Disconnected, SessionState, Tenant, TokenSet
from xero_app.auth.tokens import TokenDecodeError, decode_token_set
from xero_app.providers.xero_provider import XeroClient

logger = logging.getLogger(__name__)


def session_from_grant(token_set: TokenSet, tenants: List[Tenant]) -> SessionState:
    """
    Build the session for a fresh or refreshed grant.

    The first tenant becomes active; no tenants means Disconnected.
    """
    if not tenants:
        logger.warning("Xero grant covers no tenants; session stays disconnected")
        return Disconnected()
    id_claims, access_claims = decode_token_set(token_set)
    return Connected(
        token_set=token_set,
        id_token_claims=id_claims,
        access_token_claims=access_claims,
        tenants=tuple(tenants),
        active_tenant=tenants[0],
    )


def complete_callback(xero: XeroClient, callback_url: str, *, expected_state: Optional[str]) -> SessionState:
    token_set = xero.exchange_code(callback_url, expected_state=expected_state)
    tenants = xero.list_tenants(token_set)
    return session_from_grant(token_set, tenants)


class DisconnectIncomplete(Exception):
    """
    The connection was removed upstream but the follow-up tenant refresh failed.

    `state` is the session matching what Xero now holds and must still be stored.
    """

    def __init__(self, state: SessionState):
        super().__init__("Tenant list refresh failed after disconnect")
        self.state = state


def disconnect_active(xero: XeroClient, state: Connected) -> SessionState:
    """
    Remove the active tenant from the grant and move on to the next one, if any.

    Raises:
        DisconnectIncomplete if the disconnect succeeded but the tenant list could
        not be refreshed; the exception carries the state to store.
    """
    removed = state.active_tenant
    logger.info("Disconnecting tenant connection %s", removed.id)
    token_set = xero.disconnect(state.token_set, removed.id)
    try:
        tenants = xero.list_tenants(token_set)
        return session_from_grant(token_set, tenants)
    except Exception as e:
        remaining = [t for t in state.tenants if t.id != removed.id]
        try:
            fallback = session_from_grant(token_set, remaining)
        except TokenDecodeError:
            fallback = Disconnected()
        raise DisconnectIncomplete(fallback) from e


def load_organisation_name(xero: XeroClient, state: Connected) -> Connected:
    name = xero.get_organisation_name(state.token_set, state.active_tenant.tenant_id)
    return state.with_name(name)
