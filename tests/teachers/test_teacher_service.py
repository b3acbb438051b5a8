import io
from dataclasses import replace
from datetime import date, datetime

import pytest

from src.shule_system.shule_system.academic.model import SchoolClass, Subject
from src.shule_system.shule_system.core.enums import ClassRole
from src.shule_system.shule_system.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.shule_system.shule_system.teachers.model import Teacher, TeacherClass, TeacherQualification, TeacherSubject
from src.shule_system.shule_system.teachers.service import TeacherService, employee_number


class Catalogue:
    def __init__(self):
        self.subjects = {
            1: Subject(1, 1, "Mathematics", "MATH", "O_LEVEL", "CORE"),
            2: Subject(2, 2, "Mathematics", "MATH", "O_LEVEL", "CORE"),
        }
        self.classes = {1: SchoolClass(1, 1, "Form One A")}

    def get_subject(self, subject_id):
        return self.subjects.get(subject_id)

    def get_class(self, class_id):
        return self.classes.get(class_id)


class InMemoryTeachers:
    def __init__(self, users):
        self.users = users
        self.teachers = {}
        self.subjects = set()
        self.classes = {}
        self.qualifications = {}

    def _hydrate(self, teacher):
        user = self.users.get_by_id(teacher.user_id)
        if not user:
            return teacher
        return replace(teacher, first_name=user.first_name, last_name=user.last_name, email=user.email,
                       phone=user.phone, is_active=user.is_active)

    def list_teachers(self, query):
        items = [self._hydrate(t) for t in self.teachers.values()
                 if query.tenant_id is None or t.tenant_id == query.tenant_id]
        return items[query.offset:query.offset + query.limit], len(items)

    def get_teacher(self, teacher_id):
        teacher = self.teachers.get(teacher_id)
        return self._hydrate(teacher) if teacher else None

    def get_by_employee_number(self, tenant_id, number):
        return next((t for t in self.teachers.values()
                     if t.tenant_id == tenant_id and t.employee_number == number), None)

    def count_teachers(self, tenant_id):
        return sum(1 for t in self.teachers.values() if t.tenant_id == tenant_id)

    def create_teacher(self, *, tenant_id, user_id, employee_number, profile):
        teacher_id = len(self.teachers) + 1
        self.teachers[teacher_id] = Teacher(teacher_id, tenant_id, user_id, employee_number, "", "", "", **profile)
        return teacher_id

    def update_teacher(self, teacher_id, *, fields):
        self.teachers[teacher_id] = replace(self.teachers[teacher_id], **fields)
        return True

    def delete_teacher(self, teacher_id):
        self.subjects = {(t, s) for t, s in self.subjects if t != teacher_id}
        return self.teachers.pop(teacher_id, None) is not None

    def list_subjects(self, teacher_id):
        return [TeacherSubject(t, s, f"Subject {s}") for t, s in sorted(self.subjects) if t == teacher_id]

    def has_subject(self, teacher_id, subject_id):
        return (teacher_id, subject_id) in self.subjects

    def add_subject(self, *, tenant_id, teacher_id, subject_id, assigned_by):
        self.subjects.add((teacher_id, subject_id))

    def remove_subject(self, teacher_id, subject_id):
        if (teacher_id, subject_id) not in self.subjects:
            return False
        self.subjects.discard((teacher_id, subject_id))
        return True

    def list_classes(self, teacher_id):
        return [c for (t, _), c in self.classes.items() if t == teacher_id]

    def get_class_link(self, teacher_id, class_id):
        return self.classes.get((teacher_id, class_id))

    def add_class(self, *, tenant_id, teacher_id, class_id, role):
        self.classes[(teacher_id, class_id)] = TeacherClass(teacher_id, class_id, f"Class {class_id}", ClassRole(role))

    def remove_class(self, teacher_id, class_id):
        return self.classes.pop((teacher_id, class_id), None) is not None

    def list_qualifications(self, teacher_id):
        return [q for q in self.qualifications.values() if q.teacher_id == teacher_id]

    def get_qualification(self, qualification_id):
        return self.qualifications.get(qualification_id)

    def create_qualification(self, *, tenant_id, teacher_id, fields, created_by):
        qid = len(self.qualifications) + 1
        self.qualifications[qid] = TeacherQualification(
            qualification_id=qid, tenant_id=tenant_id, teacher_id=teacher_id, **fields
        )
        return qid

    def update_qualification(self, qualification_id, *, fields):
        self.qualifications[qualification_id] = replace(self.qualifications[qualification_id], **fields)
        return True

    def delete_qualification(self, qualification_id):
        return self.qualifications.pop(qualification_id, None) is not None


@pytest.fixture
def repo(users):
    return InMemoryTeachers(users)


@pytest.fixture
def service(repo, users):
    return TeacherService(repo, users, Catalogue(), clock=lambda: datetime(2026, 3, 2, 8, 0))


def _data(email="asha@shule.test", **extra):
    return {"first_name": "Asha", "last_name": "Mushi", "email": email, "password": "kalamu123", **extra}


def test_employee_number_format():
    assert employee_number(7) == "TCH-0007"
    assert employee_number(12345) == "TCH-12345"


def test_create_teacher_with_login(service, users, tenant_admin):
    teacher = service.create_teacher(
        current_user=tenant_admin, data=_data(email="Asha@Shule.test", joining_date="2026-01-10")
    )
    assert teacher.employee_number == "TCH-0001"
    assert teacher.joining_date == date(2026, 1, 10)
    login = users.get_by_email("asha@shule.test")
    assert login.roles == ("Teacher",)
    assert login.tenant_id == 1


def test_numbering_skips_taken_numbers(service, tenant_admin):
    service.create_teacher(current_user=tenant_admin, data=_data(email="a@shule.test", employee_number="TCH-0002"))
    second = service.create_teacher(current_user=tenant_admin, data=_data(email="b@shule.test"))
    assert second.employee_number == "TCH-0003"


def test_duplicate_employee_number(service, tenant_admin):
    service.create_teacher(current_user=tenant_admin, data=_data(email="a@shule.test", employee_number="T-1"))
    with pytest.raises(ConflictError):
        service.create_teacher(current_user=tenant_admin, data=_data(email="b@shule.test", employee_number="T-1"))


def test_duplicate_email(service, tenant_admin, teacher):
    with pytest.raises(ConflictError):
        service.create_teacher(current_user=tenant_admin, data=_data(email=teacher.email))


def test_negative_experience_rejected(service, tenant_admin):
    with pytest.raises(ValidationError):
        service.create_teacher(current_user=tenant_admin, data=_data(experience_years="-2"))


def test_teachers_cannot_create_teachers(service, teacher):
    with pytest.raises(AuthorizationError):
        service.create_teacher(current_user=teacher, data=_data())


def test_super_admin_must_name_tenant(service, super_admin):
    with pytest.raises(ValidationError):
        service.create_teacher(current_user=super_admin, data=_data())
    created = service.create_teacher(current_user=super_admin, data=_data(tenant_id=2))
    assert created.tenant_id == 2


def test_update_profile_and_account(service, users, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    updated = service.update_teacher(
        current_user=tenant_admin, teacher_id=created.teacher_id,
        changes={"specialization": "Algebra", "last_name": "Mrema"},
    )
    assert updated.specialization == "Algebra"
    assert users.get_by_id(created.user_id).last_name == "Mrema"
    with pytest.raises(ValidationError):
        service.update_teacher(current_user=tenant_admin, teacher_id=created.teacher_id, changes={})


def test_delete_deactivates_login(service, repo, users, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    service.assign_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id=1)
    service.delete_teacher(current_user=tenant_admin, teacher_id=created.teacher_id)
    assert repo.teachers == {}
    assert repo.subjects == set()
    assert users.get_by_id(created.user_id).is_active is False


def test_other_tenant_cannot_read(service, tenant_admin, other_tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    with pytest.raises(AuthorizationError):
        service.get_teacher(current_user=other_tenant_admin, teacher_id=created.teacher_id)


def test_subject_assignment(service, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    subjects = service.assign_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id="1")
    assert [s.subject_id for s in subjects] == [1]
    with pytest.raises(ConflictError):
        service.assign_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id=1)
    with pytest.raises(NotFoundError):
        service.assign_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id=2)
    service.remove_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id=1)
    with pytest.raises(NotFoundError):
        service.remove_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id=1)


def test_bulk_assign_skips_existing_pairs(service, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    service.assign_subject(current_user=tenant_admin, teacher_id=created.teacher_id, subject_id=1)
    result = service.bulk_assign_subjects(
        current_user=tenant_admin,
        assignments=[{"teacher_id": created.teacher_id, "subject_id": 1}],
    )
    assert result == {"created": 0, "skipped": 1}
    with pytest.raises(ValidationError):
        service.bulk_assign_subjects(current_user=tenant_admin, assignments=[])


def test_bulk_assign_validates_before_writing(service, repo, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    with pytest.raises(NotFoundError):
        service.bulk_assign_subjects(current_user=tenant_admin, assignments=[
            {"teacher_id": created.teacher_id, "subject_id": 1},
            {"teacher_id": created.teacher_id, "subject_id": 2},
        ])
    assert repo.subjects == set()


def test_class_assignment_role(service, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    link = service.assign_class(
        current_user=tenant_admin, teacher_id=created.teacher_id, class_id=1, role="CLASS_TEACHER"
    )
    assert link.role == ClassRole.CLASS_TEACHER
    with pytest.raises(ConflictError):
        service.assign_class(current_user=tenant_admin, teacher_id=created.teacher_id, class_id=1)
    with pytest.raises(NotFoundError):
        service.assign_class(current_user=tenant_admin, teacher_id=created.teacher_id, class_id=9)


def test_qualification_dates(service, tenant_admin):
    created = service.create_teacher(current_user=tenant_admin, data=_data())
    with pytest.raises(ValidationError):
        service.add_qualification(current_user=tenant_admin, teacher_id=created.teacher_id, data={
            "title": "BEd", "institution": "UDSM", "date_obtained": "2020-06-01", "expiry_date": "2019-01-01",
        })
    q = service.add_qualification(current_user=tenant_admin, teacher_id=created.teacher_id, data={
        "title": "BEd", "institution": "UDSM", "date_obtained": "2020-06-01",
    })
    assert q.date_obtained == date(2020, 6, 1)
    updated = service.update_qualification(
        current_user=tenant_admin, teacher_id=created.teacher_id, qualification_id=q.qualification_id,
        changes={"certificate_number": "C-77"},
    )
    assert updated.certificate_number == "C-77"


def test_import_reports_bad_rows(service, users, tenant_admin, teacher):
    csv = (
        "first_name,last_name,email,password\n"
        "Juma,Said,juma@shule.test,kalamu123\n"
        f"Neema,Kimaro,{teacher.email},kalamu123\n"
        "Baraka,Ally,baraka@shule.test,\n"
    )
    result = service.import_teachers(current_user=tenant_admin, stream=io.BytesIO(csv.encode("utf-8")))
    assert result["created"] == 1
    assert result["errors"] == [
        {"row": 3, "email": teacher.email, "error": "Email already exists"},
        {"row": 4, "email": "baraka@shule.test", "error": "Password must be at least 6 characters"},
    ]
    assert users.get_by_email("juma@shule.test") is not None


def test_export_csv(service, tenant_admin):
    service.create_teacher(current_user=tenant_admin, data=_data(gender="F"))
    export = service.export_teachers(current_user=tenant_admin)
    assert export.filename == "teachers-2026-03-02.csv"
    lines = export.content.decode("utf-8").splitlines()
    assert lines[0].startswith("Employee Number,First Name,Last Name,Email")
    assert lines[1].startswith("TCH-0001,Asha,Mushi,asha@shule.test")
