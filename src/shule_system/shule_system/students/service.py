from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from ..academic.repository import AcademicRepository
from ..common.datetime_utils import coerce_date, coerce_optional_date, now_local
from ..common.paging import Page, normalize_paging
from ..common.validators import optional_text, parse_enum, parse_int, require_non_empty
from ..core.constants import DEFAULT_NATIONALITY
from ..core.enums import EnrollmentType, Gender, RecordStatus
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_permission, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.repository import UserRepository
from .model import Student, StudentEnrollment
from .repository import StudentQuery, StudentRepository

logger = logging.getLogger(__name__)

_REQUIRED_TEXT = (
    ("address", "Address"),
    ("city", "City"),
    ("region", "Region"),
    ("emergency_contact", "Emergency contact"),
    ("emergency_phone", "Emergency phone"),
)
_OPTIONAL_TEXT = ("admission_number", "religion", "blood_group", "postal_code", "phone", "medical_info",
                  "previous_school", "previous_grade", "transport_mode", "transport_route")

# enrollment type -> the reference it must carry
_TARGET_FIELD = {
    EnrollmentType.CLASS: "class_id",
    EnrollmentType.COURSE: "course_id",
    EnrollmentType.SUBJECT: "subject_id",
}


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in {"1", "true", "yes"}


class StudentService:
    """Student profiles and their enrollments."""

    def __init__(
        self,
        students: StudentRepository,
        users: UserRepository,
        academic: AcademicRepository,
        *,
        clock: Callable = now_local,
    ):
        self._students = students
        self._users = users
        self._academic = academic
        self._clock = clock

    def _load(self, current_user: User, student_id: Any, action: str = "read") -> Student:
        require_permission(current_user, "students", action)
        student = self._students.get_student(parse_int(student_id, "student_id"))
        if not student:
            raise NotFoundError("Student not found")
        ensure_same_tenant(current_user, student.tenant_id)
        return student

    def _profile_fields(self, data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, label in _REQUIRED_TEXT:
            if not partial or key in data:
                fields[key] = require_non_empty(data.get(key), label)
        for key in _OPTIONAL_TEXT:
            if key in data:
                fields[key] = optional_text(data[key])

        if not partial or "date_of_birth" in data:
            born = coerce_date(data.get("date_of_birth"), "date_of_birth")
            if born > self._clock().date():
                raise ValidationError("date_of_birth cannot be in the future")
            fields["date_of_birth"] = born
        if "admission_date" in data:
            fields["admission_date"] = coerce_optional_date(data["admission_date"], "admission_date")
        if not partial or "gender" in data:
            fields["gender"] = parse_enum(Gender, data.get("gender"), "Gender")
        if not partial or "nationality" in data:
            fields["nationality"] = optional_text(data.get("nationality")) or DEFAULT_NATIONALITY
        if partial and data.get("status") is not None:
            fields["status"] = parse_enum(RecordStatus, data["status"], "Status")
        return fields

    def _check_student_number(self, tenant_id: int, number: str, *, student_id: Optional[int] = None) -> None:
        other = self._students.get_by_student_number(tenant_id, number)
        if other and other.student_id != student_id:
            raise ConflictError("Student with this ID already exists in this school")

    # ---- profiles --------------------------------------------------------

    def list_students(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Student]:
        require_permission(current_user, "students", "read")
        params = params or {}
        page, limit = normalize_paging(params.get("page"), params.get("limit"))
        status = params.get("status")
        gender = params.get("gender")
        class_id = params.get("class_id")
        items, total = self._students.list_students(StudentQuery(
            tenant_id=tenant_scope(current_user),
            search=optional_text(params.get("search")),
            status=parse_enum(RecordStatus, status, "Status").value if status else None,
            gender=parse_enum(Gender, gender, "Gender").value if gender else None,
            class_id=parse_int(class_id, "class_id") if class_id not in (None, "") else None,
            offset=(page - 1) * limit,
            limit=limit,
        ))
        return Page(items=items, page=page, limit=limit, total=total)

    def get_student(self, *, current_user: User, student_id: Any) -> Student:
        return self._load(current_user, student_id)

    def create_student(self, *, current_user: User, data: Dict[str, Any]) -> Student:
        """Attach a student profile to an existing login in the same school."""
        require_permission(current_user, "students", "create")
        tenant = resolve_tenant(current_user, data.get("tenant_id"))

        number = require_non_empty(data.get("student_number"), "Student ID")
        user_id = parse_int(data.get("user_id"), "user_id")
        fields = self._profile_fields(data, partial=False)

        self._check_student_number(tenant, number)
        user = self._users.get_by_id(user_id)
        if not user or user.tenant_id != tenant:
            raise NotFoundError("User not found")
        if self._students.get_by_user(user_id):
            raise ConflictError("User already has a student profile")

        fields["student_number"] = number
        student_id = self._students.create_student(tenant_id=tenant, user_id=user_id, fields=fields)
        logger.info("Student %s (%s) created in tenant %s", student_id, number, tenant)
        return self._students.get_student(student_id)

    def update_student(self, *, current_user: User, student_id: Any, changes: Dict[str, Any]) -> Student:
        student = self._load(current_user, student_id, "update")
        fields = self._profile_fields(changes, partial=True)
        if changes.get("student_number"):
            number = require_non_empty(changes["student_number"], "Student ID")
            self._check_student_number(student.tenant_id, number, student_id=student.student_id)
            fields["student_number"] = number
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._students.update_student(student.student_id, fields=fields)
        return self._students.get_student(student.student_id)

    def delete_student(self, *, current_user: User, student_id: Any) -> None:
        student = self._load(current_user, student_id, "delete")
        self._students.delete_student(student.student_id)
        logger.info("Student %s deleted from tenant %s", student.student_id, student.tenant_id)

    # ---- enrollments -----------------------------------------------------

    def list_enrollments(self, *, current_user: User, student_id: Any) -> List[StudentEnrollment]:
        student = self._load(current_user, student_id)
        return self._students.list_enrollments(student.student_id)

    def _load_enrollment(self, student: Student, enrollment_id: Any) -> StudentEnrollment:
        enrollment = self._students.get_enrollment(parse_int(enrollment_id, "enrollment_id"))
        if not enrollment or enrollment.student_id != student.student_id:
            raise NotFoundError("Enrollment not found")
        return enrollment

    def _reference(self, student: Student, key: str, value: Any) -> Optional[int]:
        if value in (None, ""):
            return None
        ref = parse_int(value, key)
        lookup = {
            "class_id": (self._academic.get_class, "Class not found"),
            "course_id": (self._academic.get_course, "Course not found"),
            "subject_id": (self._academic.get_subject, "Subject not found"),
        }
        getter, missing = lookup[key]
        record = getter(ref)
        if not record or record.tenant_id != student.tenant_id:
            raise NotFoundError(missing)
        return ref

    def _enrollment_fields(self, student: Student, data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if not partial or "academic_year" in data:
            fields["academic_year"] = require_non_empty(data.get("academic_year"), "Academic year")
        if not partial or "enrollment_type" in data:
            fields["enrollment_type"] = parse_enum(EnrollmentType, data.get("enrollment_type"), "Enrollment type")
        for key in _TARGET_FIELD.values():
            if key in data:
                fields[key] = self._reference(student, key, data[key])
        if "is_active" in data:
            fields["is_active"] = _truthy(data["is_active"])
        if "notes" in data:
            fields["notes"] = optional_text(data["notes"])
        return fields

    def _check_target(self, student: Student, candidate: StudentEnrollment) -> None:
        if getattr(candidate, _TARGET_FIELD[candidate.enrollment_type]) is None:
            raise ValidationError(f"{_TARGET_FIELD[candidate.enrollment_type]} is required for "
                                  f"{candidate.enrollment_type.value} enrollments")
        for other in self._students.list_enrollments(student.student_id):
            if other.enrollment_id != candidate.enrollment_id and other.target() == candidate.target():
                raise ConflictError("Student is already enrolled in this program")

    def create_enrollment(self, *, current_user: User, student_id: Any, data: Dict[str, Any]) -> StudentEnrollment:
        student = self._load(current_user, student_id, "update")
        fields = self._enrollment_fields(student, data, partial=False)
        self._check_target(student, StudentEnrollment(
            enrollment_id=0, tenant_id=student.tenant_id, student_id=student.student_id, **fields
        ))
        enrollment_id = self._students.create_enrollment(
            tenant_id=student.tenant_id, student_id=student.student_id, fields=fields
        )
        logger.info("Student %s enrolled (%s) for %s", student.student_id,
                    fields["enrollment_type"].value, fields["academic_year"])
        return self._students.get_enrollment(enrollment_id)

    def update_enrollment(self, *, current_user: User, student_id: Any, enrollment_id: Any,
                          changes: Dict[str, Any]) -> StudentEnrollment:
        student = self._load(current_user, student_id, "update")
        enrollment = self._load_enrollment(student, enrollment_id)
        fields = self._enrollment_fields(student, changes, partial=True)
        if not fields:
            raise ValidationError("No updatable fields were provided")
        merged = replace(enrollment, **fields)
        self._check_target(student, merged)
        self._students.update_enrollment(enrollment.enrollment_id, fields=fields)
        return self._students.get_enrollment(enrollment.enrollment_id)

    def delete_enrollment(self, *, current_user: User, student_id: Any, enrollment_id: Any) -> None:
        student = self._load(current_user, student_id, "update")
        enrollment = self._load_enrollment(student, enrollment_id)
        self._students.delete_enrollment(enrollment.enrollment_id)
