"""
Tenant context for tenant-scoped visibility.

The accessor tenant is read from its own request header (Edc-Bpn by
default), not from the bearer token. Operation permissions are decided
separately by security.policy.rbac.

A missing or blank header means "no tenant": such a caller owns nothing,
holds no explicit grants and only ever sees PUBLIC attributes.

Classes:
  - TenantContext: The accessor tenant of one request
"""

from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class TenantContext:
    tenant_id: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.tenant_id is None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str], header_name: str) -> "TenantContext":
        raw = headers.get(header_name)
        if raw is None or not raw.strip():
            return cls()
        return cls(tenant_id=raw.strip())
