from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class Tenant:
    """A Xero connection (organisation or practice) the grant covers."""

    id: str  # connection id, used for disconnect
    tenant_id: str  # used as `xero-tenant-id` on API calls
    tenant_type: str = "ORGANISATION"
    tenant_name: Optional[str] = None

    @classmethod
    def from_connection(cls, data: Dict[str, Any]) -> "Tenant":
        return cls(
            id=str(data.get("id") or ""),
            tenant_id=str(data.get("tenantId") or ""),
            tenant_type=str(data.get("tenantType") or "ORGANISATION"),
            tenant_name=str(data["tenantName"]) if data.get("tenantName") else None,
        )


@dataclass(frozen=True)
class TokenSet:
    """OAuth2 token bundle for one grant."""

    access_token: str
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: str = ""
    expires_at: float = 0.0

    @classmethod
    def from_token_response(cls, data: Dict[str, Any]) -> "TokenSet":
        access_token = str(data.get("access_token") or "")
        if not access_token:
            raise ValueError("Token response missing access_token")
        expires_in = data.get("expires_in")
        return cls(
            access_token=access_token,
            refresh_token=str(data["refresh_token"]) if data.get("refresh_token") else None,
            id_token=str(data["id_token"]) if data.get("id_token") else None,
            token_type=str(data.get("token_type") or "Bearer"),
            scope=str(data.get("scope") or ""),
            expires_at=time.time() + float(expires_in) if expires_in else 0.0,
        )


@dataclass(frozen=True)
class Disconnected:
    """Session without an active tenant."""


@dataclass(frozen=True)
class Connected:
    """Session with an active tenant selected for API calls."""

    token_set: TokenSet
    access_token_claims: Dict[str, Any]
    tenants: Tuple[Tenant, ...]
    active_tenant: Tenant
    id_token_claims: Optional[Dict[str, Any]] = None
    active_tenant_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.active_tenant not in self.tenants:
            raise ValueError("active_tenant must be one of tenants")

    def with_name(self, name: Optional[str]) -> "Connected":
        return replace(self, active_tenant_name=name)


SessionState = Union[Disconnected, Connected]
