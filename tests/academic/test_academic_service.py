from dataclasses import replace

import pytest

from src.shule_system.shule_system.academic.model import Course, SchoolClass, Subject, TeacherAssignment
from src.shule_system.shule_system.academic.service import AcademicService
from src.shule_system.shule_system.core.enums import RecordStatus, RoleName
from src.shule_system.shule_system.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

from tests.conftest import make_user


class InMemoryAcademic:
    def __init__(self):
        self.subjects = {}
        self.courses = {}
        self.classes = {}
        self.enrolments = set()
        self.assignments = {}

    def _next(self, table):
        return max(table, default=0) + 1

    def list_subjects(self, filters):
        return [s for s in self.subjects.values() if filters.tenant_id in (None, s.tenant_id)]

    def list_courses(self, filters):
        return list(self.courses.values())

    def list_classes(self, filters):
        return list(self.classes.values())

    def list_teacher_assignments(self, filters):
        return list(self.assignments.values())

    def get_stats(self, filters):
        return {"subjects": len(self.subjects)}

    def get_subject(self, subject_id):
        return self.subjects.get(subject_id)

    def get_subject_by_code(self, tenant_id, subject_code):
        return next(
            (s for s in self.subjects.values() if s.tenant_id == tenant_id and s.subject_code == subject_code), None
        )

    def create_subject(self, *, tenant_id, subject_name, subject_code, subject_level, subject_type, description):
        sid = self._next(self.subjects)
        self.subjects[sid] = Subject(sid, tenant_id, subject_name, subject_code, subject_level, subject_type, description)
        return sid

    def update_subject(self, subject_id, *, fields):
        if "status" in fields:
            fields = {**fields, "status": RecordStatus(fields["status"])}
        self.subjects[subject_id] = replace(self.subjects[subject_id], **fields)
        return True

    def get_course(self, course_id):
        return self.courses.get(course_id)

    def get_course_by_code(self, tenant_id, course_code):
        return next((c for c in self.courses.values() if c.tenant_id == tenant_id and c.course_code == course_code), None)

    def create_course(self, *, tenant_id, course_name, course_code, credits, description, subject_ids):
        cid = self._next(self.courses)
        self.courses[cid] = Course(cid, tenant_id, course_name, course_code, credits, description,
                                   subject_ids=tuple(subject_ids))
        return cid

    def update_course(self, course_id, *, fields, subject_ids=None):
        if "status" in fields:
            fields = {**fields, "status": RecordStatus(fields["status"])}
        if subject_ids is not None:
            fields = {**fields, "subject_ids": tuple(subject_ids)}
        self.courses[course_id] = replace(self.courses[course_id], **fields)
        return True

    def get_class(self, class_id):
        klass = self.classes.get(class_id)
        if klass:
            count = sum(1 for c, _ in self.enrolments if c == class_id)
            klass = replace(klass, student_count=count)
        return klass

    def create_class(self, *, tenant_id, class_name, grade, section, capacity, teacher_id, academic_year):
        cid = self._next(self.classes)
        self.classes[cid] = SchoolClass(cid, tenant_id, class_name, grade, section, capacity, teacher_id, academic_year)
        return cid

    def update_class(self, class_id, *, fields):
        if "status" in fields:
            fields = {**fields, "status": RecordStatus(fields["status"])}
        self.classes[class_id] = replace(self.classes[class_id], **fields)
        return True

    def is_enrolled(self, class_id, student_user_id):
        return (class_id, student_user_id) in self.enrolments

    def enroll_student(self, class_id, student_user_id):
        self.enrolments.add((class_id, student_user_id))

    def unenroll_student(self, class_id, student_user_id):
        if (class_id, student_user_id) not in self.enrolments:
            return False
        self.enrolments.discard((class_id, student_user_id))
        return True

    def list_class_students(self, class_id):
        return sorted(s for c, s in self.enrolments if c == class_id)

    def get_teacher_assignment(self, assignment_id):
        return self.assignments.get(assignment_id)

    def find_teacher_assignment(self, *, tenant_id, teacher_user_id, subject_id, class_id):
        return next(
            (
                a
                for a in self.assignments.values()
                if (a.tenant_id, a.teacher_user_id, a.subject_id, a.class_id)
                == (tenant_id, teacher_user_id, subject_id, class_id)
            ),
            None,
        )

    def create_teacher_assignment(self, *, tenant_id, teacher_user_id, subject_id, class_id):
        aid = self._next(self.assignments)
        self.assignments[aid] = TeacherAssignment(aid, tenant_id, teacher_user_id, subject_id, class_id)
        return aid

    def delete_teacher_assignment(self, assignment_id):
        return self.assignments.pop(assignment_id, None) is not None


@pytest.fixture
def academic():
    return InMemoryAcademic()


@pytest.fixture
def service(academic, users):
    return AcademicService(academic, users)


def _subject(service, user, code="MATH", **kw):
    return service.create_subject(
        current_user=user,
        subject_name=kw.get("name", "Basic Mathematics"),
        subject_code=code,
        subject_level=kw.get("level", "O_LEVEL"),
        subject_type=kw.get("type", "CORE"),
    )


def test_create_subject_normalises_code(service, academic, tenant_admin):
    sid = _subject(service, tenant_admin, code="math")
    assert academic.subjects[sid].subject_code == "MATH"
    assert academic.subjects[sid].tenant_id == 1


def test_duplicate_subject_code_conflicts(service, tenant_admin):
    _subject(service, tenant_admin)
    with pytest.raises(ConflictError):
        _subject(service, tenant_admin)


def test_subject_level_must_be_known(service, tenant_admin):
    with pytest.raises(ValidationError):
        _subject(service, tenant_admin, level="KINDERGARTEN")


def test_teacher_cannot_create_subjects(service, teacher):
    with pytest.raises(AuthorizationError):
        _subject(service, teacher)


def test_delete_subject_deactivates(service, academic, tenant_admin):
    sid = _subject(service, tenant_admin)
    service.delete_subject(current_user=tenant_admin, subject_id=sid)
    assert academic.subjects[sid].status == RecordStatus.INACTIVE


def test_subject_in_other_tenant_is_hidden(service, tenant_admin, other_tenant_admin):
    sid = _subject(service, tenant_admin)
    with pytest.raises(AuthorizationError):
        service.get_subject(current_user=other_tenant_admin, subject_id=sid)


def test_course_rejects_unknown_subjects(service, tenant_admin):
    with pytest.raises(ValidationError) as exc:
        service.create_course(
            current_user=tenant_admin, course_name="PCM", course_code="PCM", credits=3, subject_ids=[41]
        )
    assert exc.value.details == ["Subject 41 does not exist"]


def test_course_subjects_are_deduplicated(service, academic, tenant_admin):
    sid = _subject(service, tenant_admin)
    cid = service.create_course(
        current_user=tenant_admin, course_name="PCM", course_code="pcm", subject_ids=[sid, str(sid)]
    )
    assert academic.courses[cid].subject_ids == (sid,)
    updated = service.update_course(current_user=tenant_admin, course_id=cid, changes={"credits": "4"})
    assert updated.credits == 4


def test_create_class_requires_teacher_role(service, tenant_admin, student):
    with pytest.raises(ValidationError):
        service.create_class(
            current_user=tenant_admin, class_name="Form One", capacity=40, teacher_id=student.user_id
        )


def test_class_capacity_must_be_positive(service, tenant_admin):
    with pytest.raises(ValidationError):
        service.create_class(current_user=tenant_admin, class_name="Form One", capacity=0)


def test_enrolment_respects_capacity_and_duplicates(service, users, tenant_admin, student):
    second = users.add(make_user(30, RoleName.STUDENT))
    cid = service.create_class(current_user=tenant_admin, class_name="Form One", capacity=1)

    service.enroll_student(current_user=tenant_admin, class_id=cid, student_user_id=student.user_id)
    with pytest.raises(ConflictError):
        service.enroll_student(current_user=tenant_admin, class_id=cid, student_user_id=student.user_id)
    with pytest.raises(ConflictError):
        service.enroll_student(current_user=tenant_admin, class_id=cid, student_user_id=second.user_id)


def test_capacity_cannot_drop_below_enrolment(service, users, tenant_admin, student):
    second = users.add(make_user(30, RoleName.STUDENT))
    cid = service.create_class(current_user=tenant_admin, class_name="Form One", capacity=5)
    service.enroll_student(current_user=tenant_admin, class_id=cid, student_user_id=student.user_id)
    service.enroll_student(current_user=tenant_admin, class_id=cid, student_user_id=second.user_id)
    with pytest.raises(ConflictError):
        service.update_class(current_user=tenant_admin, class_id=cid, changes={"capacity": 1})


def test_unenroll_missing_student(service, tenant_admin, student):
    cid = service.create_class(current_user=tenant_admin, class_name="Form One", capacity=5)
    with pytest.raises(NotFoundError):
        service.unenroll_student(current_user=tenant_admin, class_id=cid, student_user_id=student.user_id)


def test_assign_teacher_once(service, tenant_admin, teacher):
    sid = _subject(service, tenant_admin)
    aid = service.assign_teacher(current_user=tenant_admin, teacher_user_id=teacher.user_id, subject_id=sid)
    assert aid == 1
    with pytest.raises(ConflictError):
        service.assign_teacher(current_user=tenant_admin, teacher_user_id=teacher.user_id, subject_id=sid)
    service.remove_teacher_assignment(current_user=tenant_admin, assignment_id=aid)
    with pytest.raises(NotFoundError):
        service.remove_teacher_assignment(current_user=tenant_admin, assignment_id=aid)


def test_teacher_lists_subjects_but_student_cannot_see_assignments(service, teacher, student):
    assert service.list_subjects(current_user=teacher) == []
    with pytest.raises(AuthorizationError):
        service.list_teacher_assignments(current_user=student)


def test_describe_filters(service, teacher):
    described = service.describe_filters(current_user=teacher, resource="subjects")
    assert described["can_view"] is True
    assert described["can_manage"] is False
    assert described["available"]["assigned_to_user"] is True
