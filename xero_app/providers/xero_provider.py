"""
Xero provider: OAuth2 consent/code exchange, connection management and the
accounting API calls the console needs.

Endpoints:
- Authorize: https://login.xero.com/identity/connect/authorize
- Token:     https://identity.xero.com/connect/token
- Connections / Accounting API: https://api.xero.com
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import parse_qs, urlencode, urlparse

import requests

from xero_app.auth.config import AppConfig
from xero_app.auth.models import Tenant, TokenSet

logger = logging.getLogger(__name__)

XERO_AUTHORIZE_URL = "https://login.xero.com/identity/connect/authorize"
XERO_TOKEN_URL = "https://identity.xero.com/connect/token"
XERO_CONNECTIONS_URL = "https://api.xero.com/connections"
XERO_ACCOUNTING_URL = "https://api.xero.com/api.xro/2.0"

_TIMEOUT_SECONDS = 30


class XeroApiError(Exception):
    """An OAuth or API call to Xero failed."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_error(self) -> bool:
        return self.status_code == 401


class XeroClient(Protocol):
    """Protocol for the Xero OAuth client (consent, tokens, tenants, org lookup)."""

    def build_consent_url(self, state: str) -> str:
        """
        Build the URL of the Xero consent page for the configured scopes.

        Args:
            state: Opaque CSRF value echoed back on the callback

        Returns:
            Absolute URL to redirect the browser to
        """
        ...

    def exchange_code(self, callback_url: str, *, expected_state: Optional[str] = None) -> TokenSet:
        """
        Exchange the authorization code carried by the callback URL for tokens.

        Args:
            callback_url: Full URL (or path + query) the provider redirected to
            expected_state: When set, the callback's `state` must match it

        Raises:
            XeroApiError on provider errors, state mismatch or a failed exchange
        """
        ...

    def refresh(self, token_set: TokenSet) -> TokenSet:
        """Refresh a token set with its refresh token."""
        ...

    def list_tenants(self, token_set: TokenSet) -> List[Tenant]:
        """List the connections (tenants) authorised for this grant, in Xero's order."""
        ...

    def disconnect(self, token_set: TokenSet, connection_id: str) -> TokenSet:
        """
        Remove a connection from the grant.

        Returns:
            The refreshed token set for the remaining connections
        """
        ...

    def get_organisation_name(self, token_set: TokenSet, tenant_id: str) -> str:
        """Fetch the display name of the organisation behind `tenant_id`."""
        ...


def _raise_for_status(resp: requests.Response, what: str) -> None:
    if resp.status_code < 400:
        return
    # Keep token endpoint bodies out of error text.
    raise XeroApiError(f"{what} failed (status={resp.status_code})", status_code=resp.status_code)


class DefaultXeroClient:
    """
    Xero client over `requests`.

    Holds only the app registration; all per-user state (tokens, tenants) is passed
    in and returned, so one instance serves every session.
    """

    def __init__(self, cfg: AppConfig) -> None:
        self.client_id = cfg.client_id
        self.client_secret = cfg.client_secret
        self.redirect_uri = cfg.redirect_uri
        self.scopes = list(cfg.scopes)

    def build_consent_url(self, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{XERO_AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, callback_url: str, *, expected_state: Optional[str] = None) -> TokenSet:
        params = parse_qs(urlparse(callback_url).query)
        if "error" in params:
            detail = params.get("error_description", params["error"])[0]
            raise XeroApiError(f"Authorization failed: {detail}")

        code = (params.get("code") or [""])[0]
        if not code:
            raise XeroApiError("No authorization code received")
        if expected_state is not None:
            state = (params.get("state") or [""])[0]
            if state != expected_state:
                raise XeroApiError("State mismatch - possible CSRF attack")

        data = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
            what="Token exchange",
        )
        logger.info("Exchanged authorization code for Xero tokens")
        return TokenSet.from_token_response(data)

    def refresh(self, token_set: TokenSet) -> TokenSet:
        if not token_set.refresh_token:
            raise XeroApiError("No refresh token available (offline_access not granted?)")

        data = self._token_request(
            {"grant_type": "refresh_token", "refresh_token": token_set.refresh_token},
            what="Token refresh",
        )
        refreshed = TokenSet.from_token_response(data)
        if not refreshed.refresh_token:
            refreshed = replace(refreshed, refresh_token=token_set.refresh_token)
        logger.info("Refreshed Xero access token")
        return refreshed

    def list_tenants(self, token_set: TokenSet) -> List[Tenant]:
        resp = requests.get(
            XERO_CONNECTIONS_URL,
            headers=self._auth_headers(token_set),
            timeout=_TIMEOUT_SECONDS,
        )
        _raise_for_status(resp, "List connections")
        data = resp.json()
        if not isinstance(data, list):
            raise XeroApiError("Invalid connections response")
        tenants = [Tenant.from_connection(c) for c in data if isinstance(c, dict)]
        logger.debug("Xero grant covers %d tenant(s)", len(tenants))
        return tenants

    def disconnect(self, token_set: TokenSet, connection_id: str) -> TokenSet:
        if not connection_id:
            raise XeroApiError("Missing connection id")
        resp = requests.delete(
            f"{XERO_CONNECTIONS_URL}/{connection_id}",
            headers=self._auth_headers(token_set),
            timeout=_TIMEOUT_SECONDS,
        )
        _raise_for_status(resp, "Disconnect")
        logger.info("Disconnected Xero connection %s", connection_id)
        if not token_set.refresh_token:
            return token_set
        return self.refresh(token_set)

    def get_organisation_name(self, token_set: TokenSet, tenant_id: str) -> str:
        headers = self._auth_headers(token_set)
        headers["xero-tenant-id"] = tenant_id
        resp = requests.get(
            f"{XERO_ACCOUNTING_URL}/Organisation",
            headers=headers,
            timeout=_TIMEOUT_SECONDS,
        )
        _raise_for_status(resp, "Get organisation")
        data = resp.json()
        orgs = data.get("Organisations") if isinstance(data, dict) else None
        if not isinstance(orgs, list) or not orgs or not isinstance(orgs[0], dict):
            raise XeroApiError("Organisation response contained no organisations")
        return str(orgs[0].get("Name") or "")

    def _auth_headers(self, token_set: TokenSet) -> Dict[str, str]:
        return {
            "Authorization": f"{token_set.token_type or 'Bearer'} {token_set.access_token}",
            "Accept": "application/json",
        }

    def _token_request(self, payload: Dict[str, str], *, what: str) -> Dict[str, Any]:
        resp = requests.post(
            XERO_TOKEN_URL,
            data=payload,
            auth=(self.client_id, self.client_secret),
            headers={"Accept": "application/json"},
            timeout=_TIMEOUT_SECONDS,
        )
        _raise_for_status(resp, what)
        data = resp.json()
        if not isinstance(data, dict):
            raise XeroApiError("Invalid token response")
        return data
