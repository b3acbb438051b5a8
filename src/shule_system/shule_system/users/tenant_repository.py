from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Tuple

from ..core.enums import TenantStatus
from .model import Tenant


class TenantRepository(Protocol):
    def get_by_id(self, tenant_id: int) -> Optional[Tenant]:
        raise NotImplementedError

    def get_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        raise NotImplementedError

    def list_tenants(
        self,
        *,
        search: Optional[str] = None,
        status: Optional[TenantStatus] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[Tenant], int]:
        raise NotImplementedError

    def create_tenant(
        self,
        *,
        name: str,
        subdomain: str,
        email: Optional[str],
        phone: Optional[str],
        address: Optional[str],
    ) -> int:
        raise NotImplementedError

    def update_tenant(self, tenant_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def set_status(self, tenant_id: int, status: TenantStatus) -> bool:
        raise NotImplementedError

    def count_users_excluding_role(self, tenant_id: int, role_name: str) -> int:
        raise NotImplementedError
