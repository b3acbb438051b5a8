from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from ..core.enums import TenantStatus


@dataclass(frozen=True)
class User:
    """Domain entity: a person with an account inside one tenant.

    Super Admins are not bound to a tenant (`tenant_id` is None). `roles` holds
    role names and `permissions` the flattened "resource:action" grants of
    those roles, both loaded together with the user.
    """

    user_id: int
    tenant_id: Optional[int]
    email: str
    first_name: str
    last_name: str
    password_hash: str
    roles: Tuple[str, ...] = ()
    permissions: Tuple[str, ...] = ()
    phone: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def public_view(self) -> dict:
        return {
            "user_id": self.user_id,
            "tenant_id": self.tenant_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "roles": list(self.roles),
            "permissions": list(self.permissions),
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class Role:
    role_id: int
    tenant_id: Optional[int]
    name: str
    description: Optional[str] = None
    permissions: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Tenant:
    tenant_id: int
    name: str
    subdomain: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: TenantStatus = TenantStatus.ACTIVE
    created_at: Optional[datetime] = None
