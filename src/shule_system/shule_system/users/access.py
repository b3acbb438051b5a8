"""Authorization helpers shared by every feature service."""

from __future__ import annotations

from typing import Iterable, Optional, Union

from ..core.enums import RoleName
from ..core.exceptions import AuthorizationError, ValidationError
from .permissions import RolePermissionChecker


def require_user(current_user):
    if current_user is None:
        raise AuthorizationError("Login required")
    return current_user


def require_permission(current_user, resource: str, action: str) -> RolePermissionChecker:
    checker = RolePermissionChecker(require_user(current_user))
    if not checker.has_permission(resource, action):
        raise AuthorizationError(f"Missing permission {resource}:{action}")
    return checker


def require_any_role(current_user, roles: Iterable[Union[str, RoleName]]) -> RolePermissionChecker:
    checker = RolePermissionChecker(require_user(current_user))
    if not checker.has_any_role(roles):
        raise AuthorizationError("You do not have access to this resource")
    return checker


def tenant_scope(current_user) -> Optional[int]:
    """Tenant to filter reads by; None means every tenant (Super Admin only)."""
    checker = RolePermissionChecker(require_user(current_user))
    if checker.is_super_admin():
        return checker.get_tenant_id()
    tenant_id = checker.get_tenant_id()
    if tenant_id is None:
        raise AuthorizationError("User is not attached to a tenant")
    return int(tenant_id)


def resolve_tenant(current_user, requested: Optional[int] = None) -> int:
    """Tenant a write lands in.

    Regular users always write into their own tenant; a Super Admin may
    target any tenant but has to name one when not attached to a tenant.
    """
    checker = RolePermissionChecker(require_user(current_user))
    own = checker.get_tenant_id()
    if checker.is_super_admin():
        target = requested if requested is not None else own
        if target is None:
            raise ValidationError("tenant_id is required")
        return int(target)
    if own is None:
        raise AuthorizationError("User is not attached to a tenant")
    if requested is not None and int(requested) != int(own):
        raise AuthorizationError("Cannot act on another tenant")
    return int(own)


def ensure_same_tenant(current_user, record_tenant_id: Optional[int]) -> None:
    checker = RolePermissionChecker(require_user(current_user))
    if checker.is_super_admin():
        return
    if not checker.belongs_to_tenant(record_tenant_id):
        raise AuthorizationError("Record belongs to another tenant")
