import pytest

from src.shule_system.shule_system.core.enums import RoleName
from src.shule_system.shule_system.core.exceptions import AuthorizationError, ValidationError
from src.shule_system.shule_system.users.access import (
    ensure_same_tenant,
    require_any_role,
    require_permission,
    resolve_tenant,
    tenant_scope,
)

from tests.conftest import make_user


def test_require_permission_rejects_anonymous():
    with pytest.raises(AuthorizationError):
        require_permission(None, "courses", "read")


def test_require_permission_rejects_missing_grant():
    with pytest.raises(AuthorizationError) as exc:
        require_permission(make_user(1, RoleName.STUDENT), "courses", "create")
    assert "courses:create" in exc.value.message


def test_require_any_role():
    user = make_user(1, RoleName.TEACHER)
    assert require_any_role(user, [RoleName.TEACHER]).is_teacher()
    with pytest.raises(AuthorizationError):
        require_any_role(user, [RoleName.TENANT_ADMIN])


def test_tenant_scope_for_super_admin_without_tenant_is_global():
    assert tenant_scope(make_user(1, RoleName.SUPER_ADMIN, tenant_id=None)) is None


def test_tenant_scope_requires_tenant_for_regular_users():
    with pytest.raises(AuthorizationError):
        tenant_scope(make_user(1, RoleName.TEACHER, tenant_id=None))
    assert tenant_scope(make_user(1, RoleName.TEACHER, tenant_id=3)) == 3


def test_resolve_tenant_super_admin_must_name_one():
    sa = make_user(1, RoleName.SUPER_ADMIN, tenant_id=None)
    with pytest.raises(ValidationError):
        resolve_tenant(sa)
    assert resolve_tenant(sa, 9) == 9


def test_resolve_tenant_blocks_cross_tenant_writes():
    admin = make_user(2, RoleName.TENANT_ADMIN, tenant_id=1)
    assert resolve_tenant(admin) == 1
    assert resolve_tenant(admin, 1) == 1
    with pytest.raises(AuthorizationError):
        resolve_tenant(admin, 2)


def test_ensure_same_tenant():
    ensure_same_tenant(make_user(1, RoleName.SUPER_ADMIN, tenant_id=None), 5)
    ensure_same_tenant(make_user(2, RoleName.TEACHER, tenant_id=5), 5)
    with pytest.raises(AuthorizationError):
        ensure_same_tenant(make_user(2, RoleName.TEACHER, tenant_id=5), 6)
