"""Role-aware academic data access.

`AcademicDataFilter` narrows the filters a caller sends according to who the
caller is before handing them to the repository:

* Super Admin   - no tenant restriction
* Tenant Admin  - own tenant
* Teacher       - own tenant, only records they teach
* Student       - own tenant, only records they are enrolled in
* anyone else   - nothing
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, TypeVar

from ..core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE
from ..core.enums import RecordStatus, RoleName
from ..users.permissions import RolePermissionChecker
from .model import Course, SchoolClass, Subject, TeacherAssignment
from .repository import AcademicRepository

_PERMISSION_RESOURCES = ("courses", "subjects", "classes", "examinations", "grades")

F = TypeVar("F", bound="AcademicFilters")


@dataclass(frozen=True)
class AcademicFilters:
    search: Optional[str] = None
    status: Optional[str] = None
    level: Optional[str] = None
    type: Optional[str] = None
    tenant_id: Optional[int] = None
    user_id: Optional[int] = None
    assigned_to_user: bool = False
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_SIZE
    sort_by: str = "created_at"
    sort_order: str = "desc"


@dataclass(frozen=True)
class CourseFilters(AcademicFilters):
    course_code: Optional[str] = None
    credits: Optional[int] = None
    subject_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class SubjectFilters(AcademicFilters):
    subject_code: Optional[str] = None
    subject_level: Optional[str] = None
    subject_type: Optional[str] = None
    teacher_ids: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ClassFilters(AcademicFilters):
    class_name: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None
    teacher_id: Optional[int] = None


class AcademicDataFilter:
    def __init__(self, user, repository: AcademicRepository):
        self._user = user
        self._checker = RolePermissionChecker(user)
        self._repo = repository

    @property
    def checker(self) -> RolePermissionChecker:
        return self._checker

    def _user_id(self) -> Optional[int]:
        return getattr(self._user, "user_id", None) if self._user is not None else None

    def apply_role_based_filters(self, filters: F) -> F:
        """Copy of `filters` with the tenant forced for every non-Super Admin."""
        tenant_id = self._checker.get_tenant_id()
        if not self._checker.is_super_admin() and tenant_id is not None:
            return replace(filters, tenant_id=tenant_id)
        return replace(filters)

    def _scoped(self, filters: F) -> Optional[F]:
        scoped = self.apply_role_based_filters(filters)
        tenant_id = self._checker.get_tenant_id()
        if self._checker.is_super_admin():
            return scoped
        if self._checker.is_tenant_admin():
            return replace(scoped, tenant_id=tenant_id)
        if self._checker.is_teacher() or self._checker.is_student():
            return replace(scoped, tenant_id=tenant_id, assigned_to_user=True, user_id=self._user_id())
        return None

    def get_courses(self, filters: Optional[CourseFilters] = None) -> List[Course]:
        scoped = self._scoped(filters or CourseFilters())
        return self._repo.list_courses(scoped) if scoped is not None else []

    def get_subjects(self, filters: Optional[SubjectFilters] = None) -> List[Subject]:
        scoped = self._scoped(filters or SubjectFilters())
        return self._repo.list_subjects(scoped) if scoped is not None else []

    def get_classes(self, filters: Optional[ClassFilters] = None) -> List[SchoolClass]:
        base = self.apply_role_based_filters(filters or ClassFilters())
        tenant_id = self._checker.get_tenant_id()
        if self._checker.is_super_admin():
            scoped = base
        elif self._checker.is_tenant_admin():
            scoped = replace(base, tenant_id=tenant_id)
        elif self._checker.is_teacher():
            scoped = replace(base, tenant_id=tenant_id, teacher_id=self._user_id())
        elif self._checker.is_student():
            scoped = replace(base, tenant_id=tenant_id, assigned_to_user=True, user_id=self._user_id())
        else:
            return []
        return self._repo.list_classes(scoped)

    def get_teacher_assignments(self, filters: Optional[AcademicFilters] = None) -> List[TeacherAssignment]:
        base = self.apply_role_based_filters(filters or AcademicFilters())
        tenant_id = self._checker.get_tenant_id()
        if self._checker.is_super_admin():
            scoped = base
        elif self._checker.is_tenant_admin():
            scoped = replace(base, tenant_id=tenant_id)
        elif self._checker.is_teacher():
            scoped = replace(base, tenant_id=tenant_id, user_id=self._user_id())
        else:
            return []
        return self._repo.list_teacher_assignments(scoped)

    def get_academic_stats(self, filters: Optional[AcademicFilters] = None) -> Dict[str, Any]:
        base = self.apply_role_based_filters(filters or AcademicFilters())
        tenant_id = self._checker.get_tenant_id()
        if self._checker.is_super_admin():
            scoped = base
        elif self._checker.is_tenant_admin():
            scoped = replace(base, tenant_id=tenant_id)
        elif self._checker.is_teacher() or self._checker.is_student():
            scoped = replace(base, tenant_id=tenant_id, user_id=self._user_id())
        else:
            return {}
        return self._repo.get_stats(scoped)

    def can_view_academic_data(self, resource: str) -> bool:
        if resource in _PERMISSION_RESOURCES:
            return self._checker.has_permission(resource, "read")
        if resource == "teacher_assignments":
            return self._checker.has_any_role([RoleName.SUPER_ADMIN, RoleName.TENANT_ADMIN, RoleName.TEACHER])
        return False

    def can_manage_academic_data(self, resource: str) -> bool:
        if resource in _PERMISSION_RESOURCES:
            return any(self._checker.has_permission(resource, a) for a in ("create", "update", "delete"))
        if resource == "teacher_assignments":
            return self._checker.has_any_role([RoleName.SUPER_ADMIN, RoleName.TENANT_ADMIN])
        return False

    def get_available_filters(self, resource: str) -> Dict[str, bool]:
        available = {
            "search": True,
            "status": True,
            "page": True,
            "limit": True,
            "sort_by": True,
            "sort_order": True,
        }
        if self._checker.is_super_admin():
            available.update(tenant_id=True, user_id=True)
        elif self._checker.is_tenant_admin():
            available.update(user_id=True)
        elif self._checker.is_teacher() or self._checker.is_student():
            available.update(assigned_to_user=True)
        return available

    def get_default_filters(self, resource: str) -> AcademicFilters:
        defaults = AcademicFilters(
            status=RecordStatus.ACTIVE.value,
            page=DEFAULT_PAGE,
            limit=DEFAULT_PAGE_SIZE,
            sort_by="created_at",
            sort_order="desc",
        )
        tenant_id = self._checker.get_tenant_id()
        if not self._checker.is_super_admin() and tenant_id is not None:
            defaults = replace(defaults, tenant_id=tenant_id)
        if self._checker.is_teacher() or self._checker.is_student():
            defaults = replace(defaults, assigned_to_user=True, user_id=self._user_id())
        return defaults
