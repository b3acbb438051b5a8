from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from src.shule_system.shule_system.academic.model import SchoolClass, Subject
from src.shule_system.shule_system.core.enums import ExaminationStatus, RoleName
from src.shule_system.shule_system.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from src.shule_system.shule_system.examinations.model import Examination, ExamResult
from src.shule_system.shule_system.examinations.service import ExaminationService

from tests.conftest import make_user


class Catalogue:
    def __init__(self):
        self.subjects = {
            1: Subject(1, 1, "Physics", "PHY", "A_LEVEL", "COMBINATION"),
            2: Subject(2, 2, "Physics", "PHY", "A_LEVEL", "COMBINATION"),
        }
        self.classes = {1: SchoolClass(1, 1, "Form Five")}

    def get_subject(self, subject_id):
        return self.subjects.get(subject_id)

    def get_class(self, class_id):
        return self.classes.get(class_id)


class InMemoryExams:
    def __init__(self):
        self.exams = {}
        self.results = {}

    def get_exam(self, exam_id):
        return self.exams.get(exam_id)

    def list_exams(self, *, tenant_id, subject_id=None, class_id=None):
        return [
            e for e in self.exams.values()
            if tenant_id in (None, e.tenant_id) and subject_id in (None, e.subject_id) and class_id in (None, e.class_id)
        ]

    def create_exam(self, *, tenant_id, exam_name, subject_id, class_id, level, exam_date, max_marks, created_by):
        exam_id = len(self.exams) + 1
        self.exams[exam_id] = Examination(exam_id, tenant_id, exam_name, subject_id, level, exam_date, max_marks,
                                          class_id=class_id, created_by=created_by)
        return exam_id

    def set_exam_status(self, exam_id, status):
        self.exams[exam_id] = replace(self.exams[exam_id], status=status)
        return True

    def get_result(self, exam_id, student_user_id):
        return self.results.get((exam_id, student_user_id))

    def save_result(self, *, tenant_id, exam_id, student_user_id, marks, percentage, grade, points, remarks,
                    recorded_by):
        key = (exam_id, student_user_id)
        result_id = self.results[key].result_id if key in self.results else len(self.results) + 1
        self.results[key] = ExamResult(result_id, tenant_id, exam_id, student_user_id, marks, percentage, grade, points,
                                       remarks, recorded_by)
        return result_id

    def list_results(self, exam_id, *, student_user_id=None):
        return [
            r for (e, s), r in sorted(self.results.items())
            if e == exam_id and student_user_id in (None, s)
        ]


@pytest.fixture
def exams():
    return InMemoryExams()


@pytest.fixture
def service(exams, users):
    return ExaminationService(exams, Catalogue(), users)


def _exam(service, user, **kw):
    return service.create_examination(
        current_user=user,
        exam_name=kw.get("name", "Mid-term"),
        subject_id=kw.get("subject_id", 1),
        exam_date=kw.get("exam_date", "2026-06-10"),
        max_marks=kw.get("max_marks", 50),
        class_id=kw.get("class_id"),
    )


def test_exam_takes_level_from_subject(service, exams, teacher):
    exam_id = _exam(service, teacher, class_id="1")
    exam = exams.exams[exam_id]
    assert exam.level == "A_LEVEL"
    assert exam.exam_date == date(2026, 6, 10)
    assert exam.max_marks == Decimal("50.00")
    assert exam.class_id == 1


def test_exam_subject_must_be_in_tenant(service, teacher):
    with pytest.raises(NotFoundError):
        _exam(service, teacher, subject_id=2)


def test_exam_rejects_bad_date_and_marks(service, teacher):
    with pytest.raises(ValidationError):
        _exam(service, teacher, exam_date="10/06/2026")
    with pytest.raises(ValidationError):
        _exam(service, teacher, max_marks=0)


def test_students_cannot_create_exams(service, student):
    with pytest.raises(AuthorizationError):
        _exam(service, student)


def test_record_result_grades_on_percentage(service, teacher, student):
    exam_id = _exam(service, teacher)
    result = service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=student.user_id,
                                   marks="39.75", remarks=" good ")
    assert result.percentage == Decimal("79.50")
    assert (result.grade, result.points) == ("A", 7)
    assert result.remarks == "good"


def test_rerecording_replaces_result(service, exams, teacher, student):
    exam_id = _exam(service, teacher)
    service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=student.user_id, marks=10)
    service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=student.user_id, marks=30)
    assert len(exams.results) == 1
    assert exams.get_result(exam_id, student.user_id).grade == "B"


def test_marks_cannot_exceed_maximum(service, teacher, student):
    exam_id = _exam(service, teacher)
    with pytest.raises(ValidationError):
        service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=student.user_id, marks=51)


def test_only_students_receive_results(service, teacher):
    exam_id = _exam(service, teacher)
    with pytest.raises(NotFoundError):
        service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=teacher.user_id, marks=10)


def test_cancelled_exam_takes_no_results(service, tenant_admin, teacher, student):
    exam_id = _exam(service, teacher)
    service.update_status(current_user=tenant_admin, exam_id=exam_id, status="CANCELLED")
    with pytest.raises(ValidationError):
        service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=student.user_id, marks=10)


def test_student_sees_only_own_results(service, users, teacher, student):
    classmate = users.add(make_user(40, RoleName.STUDENT))
    exam_id = _exam(service, teacher)
    for who in (student, classmate):
        service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=who.user_id, marks=25)

    own = service.list_results(current_user=student, exam_id=exam_id)
    assert [r.student_user_id for r in own] == [student.user_id]
    assert len(service.list_results(current_user=teacher, exam_id=exam_id)) == 2


def test_exam_of_other_tenant_is_forbidden(service, teacher, other_tenant_admin):
    exam_id = _exam(service, teacher)
    with pytest.raises(AuthorizationError):
        service.get_examination(current_user=other_tenant_admin, exam_id=exam_id)


def test_export_results_csv(service, teacher, student):
    exam_id = _exam(service, teacher)
    service.record_result(current_user=teacher, exam_id=exam_id, student_user_id=student.user_id, marks=25)
    export = service.export_results(current_user=teacher, exam_id=exam_id, fmt="csv")
    assert export.filename == f"exam_{exam_id}_results.csv"
    lines = export.content.decode("utf-8").splitlines()
    assert lines[0] == "student_user_id,marks,percentage,grade,points,remarks"
    assert lines[1].startswith(f"{student.user_id},25.0,50.0,C,3")


def test_export_rejects_unknown_format(service, teacher):
    exam_id = _exam(service, teacher)
    with pytest.raises(ValidationError):
        service.export_results(current_user=teacher, exam_id=exam_id, fmt="pdf")
