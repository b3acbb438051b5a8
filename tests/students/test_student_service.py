from dataclasses import replace
from datetime import date, datetime

import pytest

from src.shule_system.shule_system.academic.model import Course, SchoolClass, Subject
from src.shule_system.shule_system.core.enums import EnrollmentType, Gender, RecordStatus, RoleName
from src.shule_system.shule_system.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.shule_system.shule_system.students.model import Student, StudentEnrollment
from src.shule_system.shule_system.students.service import StudentService

from tests.conftest import make_user


class Catalogue:
    def __init__(self):
        self.classes = {1: SchoolClass(1, 1, "Form One A"), 2: SchoolClass(2, 2, "Form One A")}
        self.courses = {1: Course(1, 1, "Science Stream", "SCI")}
        self.subjects = {1: Subject(1, 1, "Mathematics", "MATH", "O_LEVEL", "CORE")}

    def get_class(self, class_id):
        return self.classes.get(class_id)

    def get_course(self, course_id):
        return self.courses.get(course_id)

    def get_subject(self, subject_id):
        return self.subjects.get(subject_id)


class InMemoryStudents:
    def __init__(self, users):
        self.users = users
        self.students = {}
        self.enrollments = {}

    def _hydrate(self, student):
        user = self.users.get_by_id(student.user_id)
        return replace(student, first_name=user.first_name, last_name=user.last_name, email=user.email)

    def list_students(self, query):
        items = [self._hydrate(s) for s in reversed(list(self.students.values()))
                 if (query.tenant_id is None or s.tenant_id == query.tenant_id)
                 and (not query.gender or s.gender.value == query.gender)
                 and (not query.status or s.status.value == query.status)
                 and (query.class_id is None or any(
                     e.class_id == query.class_id and e.is_active
                     for e in self.enrollments.values() if e.student_id == s.student_id))]
        return items[query.offset:query.offset + query.limit], len(items)

    def get_student(self, student_id):
        student = self.students.get(student_id)
        return self._hydrate(student) if student else None

    def get_by_student_number(self, tenant_id, number):
        return next((s for s in self.students.values()
                     if s.tenant_id == tenant_id and s.student_number == number), None)

    def get_by_user(self, user_id):
        return next((s for s in self.students.values() if s.user_id == user_id), None)

    def create_student(self, *, tenant_id, user_id, fields):
        student_id = len(self.students) + 1
        self.students[student_id] = Student(
            student_id=student_id, tenant_id=tenant_id, user_id=user_id, first_name="", last_name="", email="",
            **fields,
        )
        return student_id

    def update_student(self, student_id, *, fields):
        self.students[student_id] = replace(self.students[student_id], **fields)
        return True

    def delete_student(self, student_id):
        self.enrollments = {k: e for k, e in self.enrollments.items() if e.student_id != student_id}
        return self.students.pop(student_id, None) is not None

    def list_enrollments(self, student_id):
        return [e for e in self.enrollments.values() if e.student_id == student_id]

    def get_enrollment(self, enrollment_id):
        return self.enrollments.get(enrollment_id)

    def create_enrollment(self, *, tenant_id, student_id, fields):
        enrollment_id = len(self.enrollments) + 1
        self.enrollments[enrollment_id] = StudentEnrollment(
            enrollment_id=enrollment_id, tenant_id=tenant_id, student_id=student_id, **fields
        )
        return enrollment_id

    def update_enrollment(self, enrollment_id, *, fields):
        self.enrollments[enrollment_id] = replace(self.enrollments[enrollment_id], **fields)
        return True

    def delete_enrollment(self, enrollment_id):
        return self.enrollments.pop(enrollment_id, None) is not None


@pytest.fixture
def repo(users):
    users.add(make_user(6, RoleName.STUDENT, tenant_id=1))
    users.add(make_user(7, RoleName.STUDENT, tenant_id=2))
    return InMemoryStudents(users)


@pytest.fixture
def service(repo, users):
    return StudentService(repo, users, Catalogue(), clock=lambda: datetime(2026, 3, 2, 8, 0))


def _data(user_id=4, number="STU-001", **extra):
    return {
        "user_id": user_id, "student_number": number, "date_of_birth": "2012-05-17", "gender": "FEMALE",
        "address": "Plot 12, Sinza", "city": "Dar es Salaam", "region": "Dar es Salaam",
        "emergency_contact": "Mama Neema", "emergency_phone": "+255700000001", **extra,
    }


def test_create_student_defaults_nationality(service, tenant_admin):
    created = service.create_student(current_user=tenant_admin, data=_data(admission_date="2026-01-08"))
    assert created.student_number == "STU-001"
    assert created.nationality == "Tanzanian"
    assert created.gender == Gender.FEMALE
    assert created.date_of_birth == date(2012, 5, 17)
    assert created.admission_date == date(2026, 1, 8)
    assert created.full_name == "First4 Last4"


@pytest.mark.parametrize("missing", ["address", "city", "region", "emergency_contact", "emergency_phone"])
def test_required_profile_fields(service, tenant_admin, missing):
    with pytest.raises(ValidationError):
        service.create_student(current_user=tenant_admin, data=_data(**{missing: "  "}))


def test_bad_gender_and_birth_date(service, tenant_admin):
    with pytest.raises(ValidationError):
        service.create_student(current_user=tenant_admin, data=_data(gender="UNKNOWN"))
    with pytest.raises(ValidationError):
        service.create_student(current_user=tenant_admin, data=_data(date_of_birth="2027-01-01"))
    with pytest.raises(ValidationError):
        service.create_student(current_user=tenant_admin, data=_data(date_of_birth="17/05/2012"))


def test_student_number_is_unique_per_school(service, tenant_admin, other_tenant_admin):
    service.create_student(current_user=tenant_admin, data=_data())
    with pytest.raises(ConflictError):
        service.create_student(current_user=tenant_admin, data=_data(user_id=6))
    other = service.create_student(current_user=other_tenant_admin, data=_data(user_id=7))
    assert other.tenant_id == 2


def test_user_must_belong_to_the_school(service, tenant_admin):
    with pytest.raises(NotFoundError):
        service.create_student(current_user=tenant_admin, data=_data(user_id=7))
    with pytest.raises(NotFoundError):
        service.create_student(current_user=tenant_admin, data=_data(user_id=99))


def test_one_profile_per_user(service, tenant_admin):
    service.create_student(current_user=tenant_admin, data=_data())
    with pytest.raises(ConflictError):
        service.create_student(current_user=tenant_admin, data=_data(number="STU-002"))


def test_teachers_read_but_cannot_create_or_delete(service, tenant_admin, teacher):
    created = service.create_student(current_user=tenant_admin, data=_data())
    assert service.get_student(current_user=teacher, student_id=created.student_id) == created
    with pytest.raises(AuthorizationError):
        service.create_student(current_user=teacher, data=_data(user_id=6, number="STU-002"))
    with pytest.raises(AuthorizationError):
        service.delete_student(current_user=teacher, student_id=created.student_id)


def test_students_cannot_list_students(service, student):
    with pytest.raises(AuthorizationError):
        service.list_students(current_user=student)


def test_other_tenant_cannot_read(service, tenant_admin, other_tenant_admin):
    created = service.create_student(current_user=tenant_admin, data=_data())
    with pytest.raises(AuthorizationError):
        service.get_student(current_user=other_tenant_admin, student_id=created.student_id)


def test_update_profile(service, tenant_admin):
    created = service.create_student(current_user=tenant_admin, data=_data())
    second = service.create_student(current_user=tenant_admin, data=_data(user_id=6, number="STU-002"))
    updated = service.update_student(
        current_user=tenant_admin, student_id=created.student_id,
        changes={"city": "Arusha", "status": "INACTIVE", "nationality": ""},
    )
    assert updated.city == "Arusha"
    assert updated.status == RecordStatus.INACTIVE
    assert updated.nationality == "Tanzanian"
    with pytest.raises(ConflictError):
        service.update_student(current_user=tenant_admin, student_id=second.student_id,
                               changes={"student_number": "STU-001"})
    same = service.update_student(current_user=tenant_admin, student_id=created.student_id,
                                  changes={"student_number": "STU-001"})
    assert same.student_number == "STU-001"
    with pytest.raises(ValidationError):
        service.update_student(current_user=tenant_admin, student_id=created.student_id, changes={})


def test_list_filters(service, tenant_admin, super_admin):
    first = service.create_student(current_user=tenant_admin, data=_data())
    service.create_student(current_user=tenant_admin, data=_data(user_id=6, number="STU-002", gender="MALE"))
    service.create_enrollment(current_user=tenant_admin, student_id=first.student_id,
                              data={"academic_year": "2026", "enrollment_type": "CLASS", "class_id": 1})

    page = service.list_students(current_user=tenant_admin, params={"gender": "MALE"})
    assert [s.student_number for s in page.items] == ["STU-002"]
    page = service.list_students(current_user=tenant_admin, params={"class_id": "1"})
    assert [s.student_id for s in page.items] == [first.student_id]
    assert service.list_students(current_user=super_admin).total == 2
    with pytest.raises(ValidationError):
        service.list_students(current_user=tenant_admin, params={"gender": "female"})


def test_delete_removes_enrollments(service, repo, tenant_admin):
    created = service.create_student(current_user=tenant_admin, data=_data())
    service.create_enrollment(current_user=tenant_admin, student_id=created.student_id,
                              data={"academic_year": "2026", "enrollment_type": "CLASS", "class_id": 1})
    service.delete_student(current_user=tenant_admin, student_id=created.student_id)
    assert repo.students == {}
    assert repo.enrollments == {}
    with pytest.raises(NotFoundError):
        service.get_student(current_user=tenant_admin, student_id=created.student_id)


def test_enrollment_lifecycle(service, tenant_admin, teacher):
    created = service.create_student(current_user=tenant_admin, data=_data())
    enrollment = service.create_enrollment(
        current_user=teacher, student_id=created.student_id,
        data={"academic_year": "2026", "enrollment_type": "COURSE", "course_id": "1", "notes": " Science "},
    )
    assert enrollment.enrollment_type == EnrollmentType.COURSE
    assert enrollment.course_id == 1
    assert enrollment.notes == "Science"

    updated = service.update_enrollment(current_user=teacher, student_id=created.student_id,
                                        enrollment_id=enrollment.enrollment_id, changes={"is_active": "false"})
    assert updated.is_active is False
    assert service.list_enrollments(current_user=teacher, student_id=created.student_id) == [updated]

    service.delete_enrollment(current_user=teacher, student_id=created.student_id,
                              enrollment_id=enrollment.enrollment_id)
    with pytest.raises(NotFoundError):
        service.delete_enrollment(current_user=teacher, student_id=created.student_id,
                                  enrollment_id=enrollment.enrollment_id)


def test_same_program_cannot_be_enrolled_twice(service, tenant_admin):
    created = service.create_student(current_user=tenant_admin, data=_data())
    body = {"academic_year": "2026", "enrollment_type": "SUBJECT", "subject_id": 1}
    first = service.create_enrollment(current_user=tenant_admin, student_id=created.student_id, data=body)
    with pytest.raises(ConflictError):
        service.create_enrollment(current_user=tenant_admin, student_id=created.student_id, data=body)
    second = service.create_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                       data={**body, "academic_year": "2027"})
    with pytest.raises(ConflictError):
        service.update_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                  enrollment_id=second.enrollment_id, changes={"academic_year": "2026"})
    kept = service.update_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                     enrollment_id=first.enrollment_id, changes={"notes": "core"})
    assert kept.notes == "core"


def test_enrollment_needs_a_target_in_the_same_school(service, tenant_admin):
    created = service.create_student(current_user=tenant_admin, data=_data())
    with pytest.raises(ValidationError):
        service.create_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                  data={"academic_year": "2026", "enrollment_type": "CLASS"})
    with pytest.raises(NotFoundError):
        service.create_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                  data={"academic_year": "2026", "enrollment_type": "CLASS", "class_id": 2})
    with pytest.raises(ValidationError):
        service.create_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                  data={"academic_year": " ", "enrollment_type": "CLASS", "class_id": 1})
    with pytest.raises(ValidationError):
        service.create_enrollment(current_user=tenant_admin, student_id=created.student_id,
                                  data={"academic_year": "2026", "enrollment_type": "TERM", "class_id": 1})


def test_enrollment_of_another_student_is_not_found(service, tenant_admin):
    first = service.create_student(current_user=tenant_admin, data=_data())
    second = service.create_student(current_user=tenant_admin, data=_data(user_id=6, number="STU-002"))
    enrollment = service.create_enrollment(current_user=tenant_admin, student_id=first.student_id,
                                           data={"academic_year": "2026", "enrollment_type": "CLASS", "class_id": 1})
    with pytest.raises(NotFoundError):
        service.update_enrollment(current_user=tenant_admin, student_id=second.student_id,
                                  enrollment_id=enrollment.enrollment_id, changes={"notes": "x"})
