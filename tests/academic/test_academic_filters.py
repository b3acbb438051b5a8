import pytest

from src.shule_system.shule_system.academic.filters import (
    AcademicDataFilter,
    AcademicFilters,
    ClassFilters,
    CourseFilters,
    SubjectFilters,
)
from src.shule_system.shule_system.academic.mysql_academic_repository import MySQLAcademicRepository
from src.shule_system.shule_system.academic.service import build_filters
from src.shule_system.shule_system.core.enums import RoleName

from tests.conftest import make_user


class RecordingRepo:
    """Captures the filters each listing call receives."""

    def __init__(self):
        self.calls = []

    def _record(self, name, filters):
        self.calls.append((name, filters))
        return []

    def list_subjects(self, filters):
        return self._record("subjects", filters)

    def list_courses(self, filters):
        return self._record("courses", filters)

    def list_classes(self, filters):
        return self._record("classes", filters)

    def list_teacher_assignments(self, filters):
        return self._record("teacher_assignments", filters)

    def get_stats(self, filters):
        self.calls.append(("stats", filters))
        return {"subjects": 0}


def test_super_admin_keeps_requested_tenant():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(1, RoleName.SUPER_ADMIN, tenant_id=None), repo).get_courses(
        CourseFilters(tenant_id=7)
    )
    _, filters = repo.calls[0]
    assert filters.tenant_id == 7
    assert filters.assigned_to_user is False


def test_tenant_admin_is_forced_into_own_tenant():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(2, RoleName.TENANT_ADMIN, tenant_id=1), repo).get_subjects(
        SubjectFilters(tenant_id=99, search="math")
    )
    _, filters = repo.calls[0]
    assert filters.tenant_id == 1
    assert filters.search == "math"


def test_teacher_sees_only_assigned_subjects():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(3, RoleName.TEACHER), repo).get_subjects()
    _, filters = repo.calls[0]
    assert (filters.tenant_id, filters.assigned_to_user, filters.user_id) == (1, True, 3)


def test_teacher_classes_filter_on_class_teacher():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(3, RoleName.TEACHER), repo).get_classes(ClassFilters())
    _, filters = repo.calls[0]
    assert filters.teacher_id == 3
    assert filters.assigned_to_user is False


def test_student_classes_filter_on_enrolment():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(4, RoleName.STUDENT), repo).get_classes()
    _, filters = repo.calls[0]
    assert filters.assigned_to_user is True
    assert filters.user_id == 4


def test_students_get_no_teacher_assignments():
    repo = RecordingRepo()
    assert AcademicDataFilter(make_user(4, RoleName.STUDENT), repo).get_teacher_assignments() == []
    assert repo.calls == []


def test_parent_sees_nothing_and_anonymous_sees_nothing():
    repo = RecordingRepo()
    assert AcademicDataFilter(make_user(6, RoleName.PARENT), repo).get_courses() == []
    assert AcademicDataFilter(None, repo).get_subjects() == []
    assert AcademicDataFilter(None, repo).get_academic_stats() == {}
    assert repo.calls == []


def test_view_and_manage_rights():
    repo = RecordingRepo()
    teacher = AcademicDataFilter(make_user(3, RoleName.TEACHER), repo)
    admin = AcademicDataFilter(make_user(2, RoleName.TENANT_ADMIN), repo)

    assert teacher.can_view_academic_data("subjects")
    assert not teacher.can_manage_academic_data("subjects")
    assert teacher.can_view_academic_data("teacher_assignments")
    assert not teacher.can_manage_academic_data("teacher_assignments")
    assert admin.can_manage_academic_data("classes")
    assert not admin.can_view_academic_data("spaceships")


def test_available_filters_depend_on_role():
    repo = RecordingRepo()
    sa = AcademicDataFilter(make_user(1, RoleName.SUPER_ADMIN, tenant_id=None), repo).get_available_filters("courses")
    student = AcademicDataFilter(make_user(4, RoleName.STUDENT), repo).get_available_filters("courses")
    assert sa["tenant_id"] and sa["user_id"]
    assert student["assigned_to_user"]
    assert "tenant_id" not in student


def test_default_filters_for_teacher():
    defaults = AcademicDataFilter(make_user(3, RoleName.TEACHER), RecordingRepo()).get_default_filters("subjects")
    assert defaults.status == "ACTIVE"
    assert defaults.tenant_id == 1
    assert defaults.assigned_to_user and defaults.user_id == 3


def test_build_filters_parses_query_values():
    filters = build_filters(
        CourseFilters,
        {"page": "2", "limit": "10", "subject_ids": "1, 2,", "assigned_to_user": "true", "bogus": "x"},
    )
    assert filters.page == 2 and filters.limit == 10
    assert filters.subject_ids == (1, 2)
    assert filters.assigned_to_user is True


def test_build_filters_defaults():
    assert build_filters(AcademicFilters, {}) == AcademicFilters()


@pytest.mark.parametrize("role, user_id", [(RoleName.TEACHER, 3), (RoleName.STUDENT, 4)])
def test_stats_for_teachers_and_students_are_their_own(role, user_id):
    repo = RecordingRepo()
    AcademicDataFilter(make_user(user_id, role), repo).get_academic_stats(AcademicFilters(tenant_id=9, user_id=77))
    name, filters = repo.calls[0]
    assert name == "stats"
    assert (filters.tenant_id, filters.user_id) == (1, user_id)


def test_tenant_admin_stats_stay_in_own_tenant():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(2, RoleName.TENANT_ADMIN), repo).get_academic_stats(AcademicFilters(tenant_id=9))
    _, filters = repo.calls[0]
    assert filters.tenant_id == 1
    assert filters.user_id is None


def test_super_admin_stats_keep_requested_tenant():
    repo = RecordingRepo()
    AcademicDataFilter(make_user(1, RoleName.SUPER_ADMIN, tenant_id=None), repo).get_academic_stats(
        AcademicFilters(tenant_id=9)
    )
    _, filters = repo.calls[0]
    assert filters.tenant_id == 9


def test_parent_gets_no_stats():
    repo = RecordingRepo()
    assert AcademicDataFilter(make_user(6, RoleName.PARENT), repo).get_academic_stats() == {}
    assert repo.calls == []


def test_user_scoped_class_stats_keep_tenant_and_status():
    clause, params = MySQLAcademicRepository._stats_class_where(
        AcademicFilters(tenant_id=1, status="ACTIVE", user_id=3)
    )
    assert clause == (
        "1=1 AND k.tenant_id=%s AND k.status=%s"
        " AND (k.class_id IN (SELECT class_id FROM class_enrollments WHERE student_user_id=%s)"
        " OR k.class_id IN (SELECT class_id FROM teacher_assignments WHERE teacher_user_id=%s))"
    )
    assert params == [1, "ACTIVE", 3, 3]


def test_unscoped_class_stats_have_no_user_branch():
    clause, params = MySQLAcademicRepository._stats_class_where(AcademicFilters(tenant_id=1))
    assert clause == "1=1 AND k.tenant_id=%s"
    assert params == [1]
