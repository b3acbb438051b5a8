from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..common.paging import Page, normalize_paging
from ..common.validators import optional_text, require_min_length, require_non_empty
from ..core.constants import MIN_PASSWORD_LENGTH
from ..core.enums import RoleName, TenantStatus
from ..core.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from .access import ensure_same_tenant, require_permission, require_user, resolve_tenant, tenant_scope
from .model import Role, Tenant, User
from .permissions import RolePermissionChecker, all_permission_names
from .repository import RoleRepository, UserRepository
from .tenant_repository import TenantRepository

logger = logging.getLogger(__name__)


class AuthService:
    """Use case: authenticate user (login) and reload them per request."""

    def __init__(self, users: UserRepository):
        self._users = users

    def authenticate(self, email: str, password: str) -> User:
        user = self._users.get_by_email((email or "").strip().lower())
        if not user or not user.is_active:
            raise AuthenticationError("Invalid email or password")

        try:
            ok = check_password_hash(user.password_hash, password or "")
        except ValueError:
            # placeholder hashes like 'CHANGE_ME' are not parseable
            ok = False

        if not ok:
            logger.warning("Failed login for %s", user.email)
            raise AuthenticationError("Invalid email or password")

        logger.info("User %s logged in", user.user_id)
        return user

    def get_session_user(self, user_id: Optional[int]) -> Optional[User]:
        if not user_id:
            return None
        user = self._users.get_by_id(int(user_id))
        if not user or not user.is_active:
            return None
        return user


class UserService:
    """Use case: manage user accounts and roles."""

    def __init__(self, users: UserRepository, roles: RoleRepository):
        self._users = users
        self._roles = roles

    def _validate_roles(self, current: User, role_names: Sequence[str], tenant_id: Optional[int]) -> List[str]:
        names = [str(r).strip() for r in role_names or [] if str(r).strip()]
        if not names:
            raise ValidationError("At least one role is required")
        if RoleName.SUPER_ADMIN.value in names and not RolePermissionChecker(current).is_super_admin():
            raise AuthorizationError("Only a Super Admin can grant the Super Admin role")
        missing = [n for n in names if not self._roles.get_by_name(n, tenant_id=tenant_id)]
        if missing:
            raise ValidationError("Unknown role", details=[f"Role '{n}' does not exist" for n in missing])
        return names

    def list_users(
        self,
        *,
        current_user: User,
        search: Optional[str] = None,
        role: Optional[str] = None,
        page: Any = None,
        limit: Any = None,
    ) -> Page[User]:
        require_permission(current_user, "users", "read")
        p, n = normalize_paging(page, limit)
        items, total = self._users.list_users(
            tenant_id=tenant_scope(current_user),
            search=optional_text(search),
            role=optional_text(role),
            offset=(p - 1) * n,
            limit=n,
        )
        return Page(items=items, page=p, limit=n, total=total)

    def get_user(self, *, current_user: User, user_id: int) -> User:
        require_permission(current_user, "users", "read")
        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        ensure_same_tenant(current_user, user.tenant_id)
        return user

    def create_user(
        self,
        *,
        current_user: User,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role_names: Sequence[str],
        phone: Optional[str] = None,
        tenant_id: Optional[int] = None,
    ) -> int:
        require_permission(current_user, "users", "create")
        email = require_non_empty(email, "Email").lower()
        if "@" not in email:
            raise ValidationError("Email is not valid")
        first_name = require_non_empty(first_name, "First name")
        last_name = require_non_empty(last_name, "Last name")
        require_min_length(password, "Password", MIN_PASSWORD_LENGTH)

        names = list(role_names or [])
        if RoleName.SUPER_ADMIN.value in names and RolePermissionChecker(current_user).is_super_admin() and tenant_id is None:
            target_tenant: Optional[int] = None
        else:
            target_tenant = resolve_tenant(current_user, tenant_id)
        names = self._validate_roles(current_user, names, target_tenant)

        if self._users.get_by_email(email):
            raise ConflictError("Email is already registered")

        user_id = self._users.create_user(
            tenant_id=target_tenant,
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=generate_password_hash(password),
            phone=optional_text(phone),
            role_names=names,
        )
        logger.info("User %s created in tenant %s with roles %s", user_id, target_tenant, names)
        return user_id

    def update_user(
        self,
        *,
        current_user: User,
        user_id: int,
        changes: Dict[str, Any],
    ) -> User:
        require_permission(current_user, "users", "update")
        user = self.get_user(current_user=current_user, user_id=user_id)
        if RoleName.SUPER_ADMIN.value in user.roles and not RolePermissionChecker(current_user).is_super_admin():
            raise AuthorizationError("Cannot modify a Super Admin account")

        fields: Dict[str, Any] = {}
        for key in ("first_name", "last_name"):
            if key in changes:
                fields[key] = require_non_empty(changes[key], key.replace("_", " ").capitalize())
        if "phone" in changes:
            fields["phone"] = optional_text(changes["phone"])
        if "email" in changes:
            email = require_non_empty(changes["email"], "Email").lower()
            other = self._users.get_by_email(email)
            if other and other.user_id != user.user_id:
                raise ConflictError("Email is already registered")
            fields["email"] = email
        if "password" in changes and changes["password"]:
            require_min_length(changes["password"], "Password", MIN_PASSWORD_LENGTH)
            fields["password_hash"] = generate_password_hash(changes["password"])
        if "is_active" in changes:
            if int(user_id) == current_user.user_id and not changes["is_active"]:
                raise ValidationError("You cannot deactivate your own account")
            fields["is_active"] = 1 if changes["is_active"] else 0

        role_names = None
        if "roles" in changes:
            role_names = self._validate_roles(current_user, changes["roles"], user.tenant_id)

        if not fields and role_names is None:
            raise ValidationError("No updatable fields were provided")

        self._users.update_user(int(user_id), fields=fields, role_names=role_names)
        logger.info("User %s updated by %s (%s)", user_id, current_user.user_id, sorted(fields))
        return self._users.get_by_id(int(user_id)) or user

    def delete_user(self, *, current_user: User, user_id: int) -> None:
        require_permission(current_user, "users", "delete")
        if int(user_id) == current_user.user_id:
            raise ValidationError("You cannot delete your own account")

        user = self._users.get_by_id(int(user_id))
        if not user:
            raise NotFoundError("User not found")
        ensure_same_tenant(current_user, user.tenant_id)
        if RoleName.SUPER_ADMIN.value in user.roles and not RolePermissionChecker(current_user).is_super_admin():
            raise AuthorizationError("Cannot delete a Super Admin account")

        if not self._users.delete_by_id(int(user_id)):
            raise ValidationError("Failed to delete user")
        logger.info("User %s deleted by %s", user_id, current_user.user_id)

    def list_roles(self, *, current_user: User) -> List[Role]:
        require_permission(current_user, "users", "read")
        return self._roles.list_roles(tenant_id=tenant_scope(current_user))

    def create_role(
        self,
        *,
        current_user: User,
        name: str,
        permissions: Sequence[str],
        description: Optional[str] = None,
    ) -> int:
        require_permission(current_user, "users", "create")
        name = require_non_empty(name, "Role name")
        if name in {r.value for r in RoleName}:
            raise ConflictError("Built-in roles cannot be redefined")
        tenant_id = resolve_tenant(current_user)
        if self._roles.get_by_name(name, tenant_id=tenant_id):
            raise ConflictError("Role already exists")

        known = set(all_permission_names())
        unknown = [p for p in permissions or [] if p not in known]
        if unknown:
            raise ValidationError("Unknown permissions", details=unknown)
        return self._roles.create_role(
            tenant_id=tenant_id, name=name, description=optional_text(description), permissions=list(permissions or [])
        )

    def get_user_stats(self, *, current_user: User) -> dict:
        require_permission(current_user, "users", "read")
        stats = self._users.get_stats(tenant_id=tenant_scope(current_user))
        return {
            "total": stats["total"],
            "active": stats["active"],
            "inactive": stats["total"] - stats["active"],
            "by_role": stats["by_role"],
        }


class TenantService:
    """Use case: manage schools (tenants). Super Admin only."""

    def __init__(self, tenants: TenantRepository, users: UserRepository):
        self._tenants = tenants
        self._users = users

    @staticmethod
    def _require_super_admin(current_user) -> None:
        if not RolePermissionChecker(require_user(current_user)).is_super_admin():
            raise AuthorizationError("Only a Super Admin can manage tenants")

    def list_tenants(
        self,
        *,
        current_user: User,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: Any = None,
        limit: Any = None,
    ) -> Page[Tenant]:
        self._require_super_admin(current_user)
        p, n = normalize_paging(page, limit)
        status_enum = TenantStatus(status) if status else None
        items, total = self._tenants.list_tenants(
            search=optional_text(search), status=status_enum, offset=(p - 1) * n, limit=n
        )
        return Page(items=items, page=p, limit=n, total=total)

    def get_tenant(self, *, current_user: User, tenant_id: int) -> Tenant:
        self._require_super_admin(current_user)
        tenant = self._tenants.get_by_id(int(tenant_id))
        if not tenant:
            raise NotFoundError("Tenant not found")
        return tenant

    def create_tenant(
        self,
        *,
        current_user: User,
        name: str,
        subdomain: str,
        admin_email: str,
        admin_password: str,
        admin_first_name: str,
        admin_last_name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> int:
        """Create a school together with its first Tenant Admin account."""
        self._require_super_admin(current_user)
        name = require_non_empty(name, "School name")
        subdomain = require_non_empty(subdomain, "Subdomain").lower()
        if not subdomain.replace("-", "").isalnum():
            raise ValidationError("Subdomain may contain only letters, digits and '-'")
        admin_email = require_non_empty(admin_email, "Admin email").lower()
        require_min_length(admin_password, "Admin password", MIN_PASSWORD_LENGTH)

        if self._tenants.get_by_subdomain(subdomain):
            raise ConflictError("Subdomain is already taken")
        if self._users.get_by_email(admin_email):
            raise ConflictError("Admin email is already registered")

        tenant_id = self._tenants.create_tenant(
            name=name,
            subdomain=subdomain,
            email=optional_text(email),
            phone=optional_text(phone),
            address=optional_text(address),
        )
        self._users.create_user(
            tenant_id=tenant_id,
            email=admin_email,
            first_name=require_non_empty(admin_first_name, "Admin first name"),
            last_name=require_non_empty(admin_last_name, "Admin last name"),
            password_hash=generate_password_hash(admin_password),
            phone=None,
            role_names=[RoleName.TENANT_ADMIN.value],
        )
        logger.info("Tenant %s (%s) created", tenant_id, subdomain)
        return tenant_id

    def update_tenant(self, *, current_user: User, tenant_id: int, changes: Dict[str, Any]) -> Tenant:
        tenant = self.get_tenant(current_user=current_user, tenant_id=tenant_id)
        fields = {k: changes[k] for k in ("name", "subdomain", "email", "phone", "address") if k in changes}
        if not fields:
            raise ValidationError("No updatable fields were provided")
        if "name" in fields:
            fields["name"] = require_non_empty(fields["name"], "School name")
        if "subdomain" in fields:
            fields["subdomain"] = require_non_empty(fields["subdomain"], "Subdomain").lower()
            other = self._tenants.get_by_subdomain(fields["subdomain"])
            if other and other.tenant_id != tenant.tenant_id:
                raise ConflictError("Subdomain is already taken")
        self._tenants.update_tenant(tenant.tenant_id, fields=fields)
        return self._tenants.get_by_id(tenant.tenant_id) or tenant

    def update_tenant_status(self, *, current_user: User, tenant_id: int, status: str) -> None:
        tenant = self.get_tenant(current_user=current_user, tenant_id=tenant_id)
        try:
            new_status = TenantStatus(status)
        except ValueError:
            raise ValidationError("Status must be ACTIVE, SUSPENDED or INACTIVE")
        self._tenants.set_status(tenant.tenant_id, new_status)
        logger.info("Tenant %s status %s -> %s", tenant.tenant_id, tenant.status.value, new_status.value)

    def delete_tenant(self, *, current_user: User, tenant_id: int) -> None:
        """Soft delete: only allowed once nobody but the school admins remain."""
        tenant = self.get_tenant(current_user=current_user, tenant_id=tenant_id)
        remaining = self._tenants.count_users_excluding_role(tenant.tenant_id, RoleName.TENANT_ADMIN.value)
        if remaining > 0:
            raise ConflictError(f"Tenant still has {remaining} user(s); remove them first")
        self._tenants.set_status(tenant.tenant_id, TenantStatus.INACTIVE)
        logger.info("Tenant %s deactivated", tenant.tenant_id)
