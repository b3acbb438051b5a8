"""Role-based access control.

`ROLE_PERMISSIONS` is the static role -> (resource, action) table. Each entry
also lists every role allowed to perform it, so a role's effective grant set
is the union of entries naming it, wherever they appear in the table.
Users carry their granted permissions as "resource:action" strings loaded
from the database; `RolePermissionChecker` answers questions about them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..core.enums import RoleName

SA = RoleName.SUPER_ADMIN.value
TA = RoleName.TENANT_ADMIN.value
TEACHER = RoleName.TEACHER.value
STUDENT = RoleName.STUDENT.value
PARENT = RoleName.PARENT.value
STAFF = RoleName.STAFF.value


@dataclass(frozen=True)
class Permission:
    resource: str
    action: str
    roles: Tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return f"{self.resource}:{self.action}"


def _p(resource: str, action: str, *roles: str) -> Permission:
    return Permission(resource=resource, action=action, roles=tuple(roles))


def _crud(resource: str, *, read_roles: Tuple[str, ...], write_roles: Tuple[str, ...] = (SA, TA)) -> List[Permission]:
    return [
        _p(resource, "create", *write_roles),
        _p(resource, "read", *read_roles),
        _p(resource, "update", *write_roles),
        _p(resource, "delete", *write_roles),
    ]


_ACADEMIC_READERS = (SA, TA, TEACHER, STUDENT)
_STAFF_READERS = (SA, TA, TEACHER)

ROLE_PERMISSIONS: Dict[str, Tuple[Permission, ...]] = {
    SA: (
        _p("system", "manage", SA),
        _p("tenants", "create", SA),
        _p("tenants", "read", SA),
        _p("tenants", "update", SA),
        _p("tenants", "delete", SA),
        *_crud("users", read_roles=_ACADEMIC_READERS),
        _p("courses", "read", *_ACADEMIC_READERS),
        _p("subjects", "read", *_ACADEMIC_READERS),
        _p("classes", "read", *_ACADEMIC_READERS),
        _p("reports", "read", *_STAFF_READERS),
        _p("analytics", "read", SA, TA),
    ),
    TA: (
        *_crud("users", read_roles=_ACADEMIC_READERS),
        *_crud("courses", read_roles=_ACADEMIC_READERS),
        *_crud("subjects", read_roles=_ACADEMIC_READERS),
        *_crud("classes", read_roles=_ACADEMIC_READERS),
        *_crud("teacher_assignments", read_roles=_STAFF_READERS),
        *_crud("examinations", read_roles=_ACADEMIC_READERS),
        _p("grades", "create", *_STAFF_READERS),
        _p("grades", "read", *_ACADEMIC_READERS),
        _p("grades", "update", *_STAFF_READERS),
        _p("grades", "delete", SA, TA),
        _p("grading-scales", "create", SA, TA),
        _p("grading-scales", "read", *_STAFF_READERS),
        *_crud("academic-years", read_roles=_ACADEMIC_READERS),
        _p("reports", "read", *_STAFF_READERS),
        _p("analytics", "read", SA, TA),
        _p("students", "create", SA, TA),
        _p("students", "read", *_STAFF_READERS),
        _p("students", "update", *_STAFF_READERS),
        _p("students", "delete", SA, TA),
        *_crud("parents", read_roles=_STAFF_READERS),
        _p("library", "manage", SA, TA),
        _p("transport", "manage", SA, TA),
        _p("hostel", "manage", SA, TA),
    ),
    TEACHER: (
        _p("courses", "read", *_ACADEMIC_READERS),
        _p("subjects", "read", *_ACADEMIC_READERS),
        _p("classes", "read", *_ACADEMIC_READERS),
        _p("teacher_assignments", "read", *_STAFF_READERS),
        *_crud("gradebook", read_roles=_STAFF_READERS, write_roles=_STAFF_READERS),
        *_crud("assessments", read_roles=_STAFF_READERS, write_roles=_STAFF_READERS),
        _p("examinations", "read", *_ACADEMIC_READERS),
        _p("examinations", "create", *_STAFF_READERS),
        _p("examinations", "update", *_STAFF_READERS),
        _p("grades", "create", *_STAFF_READERS),
        _p("grades", "read", *_ACADEMIC_READERS),
        _p("grades", "update", *_STAFF_READERS),
        _p("students", "read", *_STAFF_READERS),
        _p("students", "create", SA, TA),
        _p("students", "update", *_STAFF_READERS),
        _p("students", "delete", SA, TA),
        _p("parents", "read", *_STAFF_READERS),
        _p("parents", "create", SA, TA),
        _p("parents", "update", SA, TA),
        _p("parents", "delete", SA, TA),
        _p("attendance", "read", *_STAFF_READERS),
        _p("attendance", "update", *_STAFF_READERS),
        _p("reports", "read", *_STAFF_READERS),
    ),
    STUDENT: (
        _p("courses", "read", *_ACADEMIC_READERS),
        _p("subjects", "read", *_ACADEMIC_READERS),
        _p("classes", "read", *_ACADEMIC_READERS),
        _p("personal_grades", "read", *_ACADEMIC_READERS),
        _p("personal_attendance", "read", *_ACADEMIC_READERS),
        _p("personal_schedule", "read", *_ACADEMIC_READERS),
        _p("announcements", "read", *_ACADEMIC_READERS),
    ),
    PARENT: (
        _p("child_grades", "read", SA, TA, TEACHER, PARENT),
        _p("child_attendance", "read", SA, TA, TEACHER, PARENT),
        _p("child_schedule", "read", SA, TA, TEACHER, PARENT),
        _p("announcements", "read", SA, TA, TEACHER, STUDENT, PARENT),
    ),
    STAFF: (
        _p("library", "manage", SA, TA, STAFF),
        _p("finance", "read", SA, TA, STAFF),
        _p("finance", "update", SA, TA, STAFF),
        _p("announcements", "read", SA, TA, TEACHER, STUDENT, STAFF),
    ),
}


def all_permission_names() -> List[str]:
    """Every distinct "resource:action" in the table, in first-seen order."""
    seen: Dict[str, None] = {}
    for entries in ROLE_PERMISSIONS.values():
        for perm in entries:
            seen.setdefault(perm.name, None)
    return list(seen)


def permissions_for_role(role: Union[str, RoleName]) -> List[str]:
    """Names of every permission whose allowed roles include `role`."""
    role_name = role.value if isinstance(role, RoleName) else str(role)
    seen: Dict[str, None] = {}
    for entries in ROLE_PERMISSIONS.values():
        for perm in entries:
            if role_name in perm.roles:
                seen.setdefault(perm.name, None)
    return list(seen)


class RolePermissionChecker:
    """Answers role/permission questions for one (possibly anonymous) user.

    The user object only needs `roles`, `permissions` and `tenant_id`
    attributes, so both the domain `User` and test doubles work.
    """

    def __init__(self, user):
        self._user = user

    @property
    def user(self):
        return self._user

    def _role_names(self) -> Tuple[str, ...]:
        if self._user is None:
            return ()
        return tuple(getattr(self._user, "roles", None) or ())

    def has_role(self, role_name: Union[str, RoleName]) -> bool:
        name = role_name.value if isinstance(role_name, RoleName) else role_name
        return name in self._role_names()

    def has_any_role(self, role_names: Iterable[Union[str, RoleName]]) -> bool:
        return any(self.has_role(r) for r in role_names)

    def has_permission(self, resource: str, action: str) -> bool:
        if self._user is None:
            return False
        granted = getattr(self._user, "permissions", None) or ()
        return f"{resource}:{action}" in granted

    def get_user_permissions(self) -> List[Permission]:
        if self._user is None:
            return []
        roles = self._role_names()
        out: List[Permission] = []
        for name in getattr(self._user, "permissions", None) or ():
            resource, _, action = name.partition(":")
            out.append(Permission(resource=resource, action=action, roles=roles))
        return out

    def can_manage_academic(self) -> bool:
        return self.has_any_role([SA, TA])

    def can_view_academic(self) -> bool:
        return self.has_any_role([SA, TA, TEACHER, STUDENT])

    def can_manage_users(self) -> bool:
        return self.has_any_role([SA, TA])

    def can_view_reports(self) -> bool:
        return self.has_any_role([SA, TA, TEACHER])

    def can_manage_gradebooks(self) -> bool:
        return self.has_any_role([SA, TA, TEACHER])

    def is_super_admin(self) -> bool:
        return self.has_role(SA)

    def is_tenant_admin(self) -> bool:
        return self.has_role(TA)

    def is_teacher(self) -> bool:
        return self.has_role(TEACHER)

    def is_student(self) -> bool:
        return self.has_role(STUDENT)

    def is_parent(self) -> bool:
        return self.has_role(PARENT)

    def is_staff(self) -> bool:
        return self.has_role(STAFF)

    def get_tenant_id(self) -> Optional[int]:
        if self._user is None:
            return None
        return getattr(self._user, "tenant_id", None)

    def belongs_to_tenant(self, tenant_id: Optional[int]) -> bool:
        own = self.get_tenant_id()
        return own is not None and tenant_id is not None and int(own) == int(tenant_id)


def check_permission(user, resource: str, action: str) -> bool:
    return RolePermissionChecker(user).has_permission(resource, action)


def has_role(user, role_name: Union[str, RoleName]) -> bool:
    return RolePermissionChecker(user).has_role(role_name)


def has_any_role(user, role_names: Iterable[Union[str, RoleName]]) -> bool:
    return RolePermissionChecker(user).has_any_role(role_names)
