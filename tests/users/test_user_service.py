from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

import pytest

from src.shule_system.shule_system.core.enums import RoleName, TenantStatus
from src.shule_system.shule_system.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.shule_system.shule_system.users.model import Role, Tenant
from src.shule_system.shule_system.users.permissions import permissions_for_role
from src.shule_system.shule_system.users.service import AuthService, TenantService, UserService

from tests.conftest import make_user


class InMemoryRoles:
    def __init__(self):
        self.roles: List[Role] = [
            Role(role_id=i, tenant_id=None, name=r.value, permissions=tuple(permissions_for_role(r)))
            for i, r in enumerate(RoleName, start=1)
        ]

    def list_roles(self, *, tenant_id):
        return [r for r in self.roles if r.tenant_id is None or r.tenant_id == tenant_id]

    def get_by_name(self, name, *, tenant_id):
        return next((r for r in self.list_roles(tenant_id=tenant_id) if r.name == name), None)

    def create_role(self, *, tenant_id, name, description, permissions):
        role = Role(role_id=len(self.roles) + 1, tenant_id=tenant_id, name=name, description=description,
                    permissions=tuple(permissions))
        self.roles.append(role)
        return role.role_id


class InMemoryTenants:
    def __init__(self, users):
        self.tenants: Dict[int, Tenant] = {1: Tenant(tenant_id=1, name="Mfano", subdomain="mfano")}
        self.users = users

    def get_by_id(self, tenant_id):
        return self.tenants.get(int(tenant_id))

    def get_by_subdomain(self, subdomain) -> Optional[Tenant]:
        return next((t for t in self.tenants.values() if t.subdomain == subdomain), None)

    def list_tenants(self, *, search=None, status=None, offset=0, limit=25):
        items = list(self.tenants.values())
        return items[offset:offset + limit], len(items)

    def create_tenant(self, *, name, subdomain, email, phone, address):
        tenant_id = max(self.tenants) + 1
        self.tenants[tenant_id] = Tenant(tenant_id=tenant_id, name=name, subdomain=subdomain, email=email)
        return tenant_id

    def update_tenant(self, tenant_id, *, fields):
        self.tenants[tenant_id] = replace(self.tenants[tenant_id], **fields)
        return True

    def set_status(self, tenant_id, status):
        self.tenants[tenant_id] = replace(self.tenants[tenant_id], status=status)
        return True

    def count_users_excluding_role(self, tenant_id, role_name):
        return sum(1 for u in self.users.users.values() if u.tenant_id == tenant_id and role_name not in u.roles)


# ---- auth ----------------------------------------------------------------


def test_authenticate_success(users, teacher):
    assert AuthService(users).authenticate(teacher.email, "secret123").user_id == teacher.user_id


def test_authenticate_normalises_email(users, teacher):
    assert AuthService(users).authenticate(f"  {teacher.email.upper()} ", "secret123").user_id == teacher.user_id


def test_authenticate_wrong_password(users, teacher):
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate(teacher.email, "nope")


def test_authenticate_inactive_user(users):
    users.add(make_user(20, RoleName.TEACHER, email="gone@shule.test", is_active=False))
    with pytest.raises(AuthenticationError):
        AuthService(users).authenticate("gone@shule.test", "secret123")


def test_session_user_ignores_missing_ids(users, teacher):
    auth = AuthService(users)
    assert auth.get_session_user(None) is None
    assert auth.get_session_user(999) is None
    assert auth.get_session_user(teacher.user_id) == teacher


# ---- users ---------------------------------------------------------------


def test_tenant_admin_creates_user_in_own_tenant(users, tenant_admin):
    service = UserService(users, InMemoryRoles())
    user_id = service.create_user(
        current_user=tenant_admin,
        email="New.Teacher@Shule.test",
        password="secret123",
        first_name="New",
        last_name="Teacher",
        role_names=["Teacher"],
    )
    created = users.get_by_id(user_id)
    assert created.tenant_id == 1
    assert created.email == "new.teacher@shule.test"
    assert created.roles == ("Teacher",)


def test_create_user_rejects_duplicate_email(users, tenant_admin, teacher):
    with pytest.raises(ConflictError):
        UserService(users, InMemoryRoles()).create_user(
            current_user=tenant_admin, email=teacher.email, password="secret123",
            first_name="A", last_name="B", role_names=["Teacher"],
        )


def test_create_user_rejects_short_password(users, tenant_admin):
    with pytest.raises(ValidationError):
        UserService(users, InMemoryRoles()).create_user(
            current_user=tenant_admin, email="x@shule.test", password="123",
            first_name="A", last_name="B", role_names=["Teacher"],
        )


def test_create_user_unknown_role_lists_details(users, tenant_admin):
    with pytest.raises(ValidationError) as exc:
        UserService(users, InMemoryRoles()).create_user(
            current_user=tenant_admin, email="x@shule.test", password="secret123",
            first_name="A", last_name="B", role_names=["Janitor"],
        )
    assert exc.value.details == ["Role 'Janitor' does not exist"]


def test_only_super_admin_grants_super_admin(users, tenant_admin):
    with pytest.raises(AuthorizationError):
        UserService(users, InMemoryRoles()).create_user(
            current_user=tenant_admin, email="x@shule.test", password="secret123",
            first_name="A", last_name="B", role_names=["Super Admin"],
        )


def test_student_cannot_create_users(users, student):
    with pytest.raises(AuthorizationError):
        UserService(users, InMemoryRoles()).create_user(
            current_user=student, email="x@shule.test", password="secret123",
            first_name="A", last_name="B", role_names=["Student"],
        )


def test_list_users_is_tenant_scoped(users, tenant_admin):
    page = UserService(users, InMemoryRoles()).list_users(current_user=tenant_admin)
    assert {u.tenant_id for u in page.items} == {1}
    assert page.total == 3


def test_get_user_in_other_tenant_is_forbidden(users, tenant_admin, other_tenant_admin):
    with pytest.raises(AuthorizationError):
        UserService(users, InMemoryRoles()).get_user(current_user=tenant_admin, user_id=other_tenant_admin.user_id)


def test_cannot_deactivate_self(users, tenant_admin):
    with pytest.raises(ValidationError):
        UserService(users, InMemoryRoles()).update_user(
            current_user=tenant_admin, user_id=tenant_admin.user_id, changes={"is_active": False}
        )


def test_update_user_changes_roles(users, tenant_admin, teacher):
    updated = UserService(users, InMemoryRoles()).update_user(
        current_user=tenant_admin, user_id=teacher.user_id, changes={"roles": ["Staff"], "phone": " 0755 "}
    )
    assert updated.roles == ("Staff",)
    assert updated.phone == "0755"


def test_delete_user(users, tenant_admin, student):
    service = UserService(users, InMemoryRoles())
    service.delete_user(current_user=tenant_admin, user_id=student.user_id)
    with pytest.raises(NotFoundError):
        service.get_user(current_user=tenant_admin, user_id=student.user_id)


def test_cannot_delete_self(users, tenant_admin):
    with pytest.raises(ValidationError):
        UserService(users, InMemoryRoles()).delete_user(current_user=tenant_admin, user_id=tenant_admin.user_id)


def test_user_stats(users, tenant_admin):
    stats = UserService(users, InMemoryRoles()).get_user_stats(current_user=tenant_admin)
    assert stats["total"] == 3
    assert stats["inactive"] == 0
    assert stats["by_role"]["Teacher"] == 1


def test_create_role_validates_permissions(users, tenant_admin):
    service = UserService(users, InMemoryRoles())
    with pytest.raises(ValidationError):
        service.create_role(current_user=tenant_admin, name="Bursar", permissions=["money:print"])
    with pytest.raises(ConflictError):
        service.create_role(current_user=tenant_admin, name="Teacher", permissions=[])
    role_id = service.create_role(current_user=tenant_admin, name="Bursar", permissions=["finance:read"])
    assert role_id > 0


# ---- tenants -------------------------------------------------------------


def test_create_tenant_with_first_admin(users, super_admin):
    tenants = InMemoryTenants(users)
    tenant_id = TenantService(tenants, users).create_tenant(
        current_user=super_admin,
        name="Shule ya Pili",
        subdomain="Pili",
        admin_email="admin@pili.test",
        admin_password="secret123",
        admin_first_name="Asha",
        admin_last_name="Said",
    )
    assert tenants.get_by_id(tenant_id).subdomain == "pili"
    admin = users.get_by_email("admin@pili.test")
    assert admin.tenant_id == tenant_id
    assert admin.roles == ("Tenant Admin",)


def test_create_tenant_rejects_taken_subdomain(users, super_admin):
    with pytest.raises(ConflictError):
        TenantService(InMemoryTenants(users), users).create_tenant(
            current_user=super_admin, name="X", subdomain="mfano", admin_email="a@b.test",
            admin_password="secret123", admin_first_name="A", admin_last_name="B",
        )


def test_tenant_admin_cannot_manage_tenants(users, tenant_admin):
    with pytest.raises(AuthorizationError):
        TenantService(InMemoryTenants(users), users).list_tenants(current_user=tenant_admin)


def test_update_tenant_status(users, super_admin):
    tenants = InMemoryTenants(users)
    service = TenantService(tenants, users)
    service.update_tenant_status(current_user=super_admin, tenant_id=1, status="SUSPENDED")
    assert tenants.get_by_id(1).status == TenantStatus.SUSPENDED
    with pytest.raises(ValidationError):
        service.update_tenant_status(current_user=super_admin, tenant_id=1, status="PAUSED")


def test_delete_tenant_refused_while_users_remain(users, super_admin):
    with pytest.raises(ConflictError):
        TenantService(InMemoryTenants(users), users).delete_tenant(current_user=super_admin, tenant_id=1)
