from __future__ import annotations

import logging
from dataclasses import fields as dataclass_fields
from typing import Any, Dict, Iterable, List, Optional, Sequence, Type

from ..common.validators import optional_text, parse_enum, parse_int, require_non_empty
from ..core.enums import RecordStatus, RoleName, SubjectLevel, SubjectType
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_user, resolve_tenant
from ..users.model import User
from ..users.repository import UserRepository
from .filters import AcademicDataFilter, AcademicFilters, ClassFilters, CourseFilters, SubjectFilters
from .model import Course, SchoolClass, Subject, TeacherAssignment
from .repository import AcademicRepository

logger = logging.getLogger(__name__)


def build_filters(cls: Type[AcademicFilters], params: Dict[str, Any]) -> AcademicFilters:
    """Build a filters dataclass from query-string style values, ignoring unknown keys."""
    known = {f.name: f for f in dataclass_fields(cls)}
    values: Dict[str, Any] = {}
    for key, raw in (params or {}).items():
        if key not in known or raw in (None, ""):
            continue
        if key in {"page", "limit", "tenant_id", "user_id", "credits", "teacher_id"}:
            values[key] = parse_int(raw, key)
        elif key == "assigned_to_user":
            values[key] = str(raw).lower() in {"1", "true", "yes"}
        elif key in {"subject_ids", "teacher_ids"}:
            items = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
            values[key] = tuple(parse_int(v, key) for v in items if str(v).strip())
        else:
            values[key] = str(raw).strip()
    return cls(**values)


class AcademicService:
    """Use cases for subjects, courses, classes and teacher assignments."""

    def __init__(self, academic: AcademicRepository, users: UserRepository):
        self._academic = academic
        self._users = users

    def data_filter(self, current_user: Optional[User]) -> AcademicDataFilter:
        return AcademicDataFilter(current_user, self._academic)

    def _require_view(self, current_user: User, resource: str) -> AcademicDataFilter:
        data_filter = self.data_filter(require_user(current_user))
        if not data_filter.can_view_academic_data(resource):
            raise AuthorizationError(f"You cannot view {resource.replace('_', ' ')}")
        return data_filter

    def _require_manage(self, current_user: User, resource: str) -> AcademicDataFilter:
        data_filter = self.data_filter(require_user(current_user))
        if not data_filter.can_manage_academic_data(resource):
            raise AuthorizationError(f"You cannot manage {resource.replace('_', ' ')}")
        return data_filter

    def _require_role(self, user_id: Any, role: RoleName, tenant_id: int, label: str) -> User:
        user = self._users.get_by_id(parse_int(user_id, label))
        if not user or user.tenant_id != tenant_id:
            raise NotFoundError(f"{label} not found")
        if role.value not in user.roles:
            raise ValidationError(f"{label} must have the {role.value} role")
        return user

    # ---- listings --------------------------------------------------------

    def list_subjects(self, *, current_user: User, filters: Optional[SubjectFilters] = None) -> List[Subject]:
        return self._require_view(current_user, "subjects").get_subjects(filters)

    def list_courses(self, *, current_user: User, filters: Optional[CourseFilters] = None) -> List[Course]:
        return self._require_view(current_user, "courses").get_courses(filters)

    def list_classes(self, *, current_user: User, filters: Optional[ClassFilters] = None) -> List[SchoolClass]:
        return self._require_view(current_user, "classes").get_classes(filters)

    def list_teacher_assignments(
        self, *, current_user: User, filters: Optional[AcademicFilters] = None
    ) -> List[TeacherAssignment]:
        return self._require_view(current_user, "teacher_assignments").get_teacher_assignments(filters)

    def get_stats(self, *, current_user: User, filters: Optional[AcademicFilters] = None) -> Dict[str, Any]:
        return self.data_filter(require_user(current_user)).get_academic_stats(filters)

    def describe_filters(self, *, current_user: User, resource: str) -> Dict[str, Any]:
        data_filter = self.data_filter(require_user(current_user))
        return {
            "available": data_filter.get_available_filters(resource),
            "defaults": data_filter.get_default_filters(resource),
            "can_view": data_filter.can_view_academic_data(resource),
            "can_manage": data_filter.can_manage_academic_data(resource),
        }

    # ---- subjects --------------------------------------------------------

    def get_subject(self, *, current_user: User, subject_id: int) -> Subject:
        self._require_view(current_user, "subjects")
        subject = self._academic.get_subject(int(subject_id))
        if not subject:
            raise NotFoundError("Subject not found")
        ensure_same_tenant(current_user, subject.tenant_id)
        return subject

    def create_subject(
        self,
        *,
        current_user: User,
        subject_name: str,
        subject_code: str,
        subject_level: str,
        subject_type: str,
        description: Optional[str] = None,
        tenant_id: Optional[int] = None,
    ) -> int:
        self._require_manage(current_user, "subjects")
        tenant = resolve_tenant(current_user, tenant_id)
        name = require_non_empty(subject_name, "Subject name")
        code = require_non_empty(subject_code, "Subject code").upper()
        level = parse_enum(SubjectLevel, subject_level, "Subject level")
        stype = parse_enum(SubjectType, subject_type, "Subject type")
        if self._academic.get_subject_by_code(tenant, code):
            raise ConflictError(f"Subject code {code} already exists")

        subject_id = self._academic.create_subject(
            tenant_id=tenant,
            subject_name=name,
            subject_code=code,
            subject_level=level.value,
            subject_type=stype.value,
            description=optional_text(description),
        )
        logger.info("Subject %s (%s) created in tenant %s", subject_id, code, tenant)
        return subject_id

    def update_subject(self, *, current_user: User, subject_id: int, changes: Dict[str, Any]) -> Subject:
        self._require_manage(current_user, "subjects")
        subject = self.get_subject(current_user=current_user, subject_id=subject_id)
        fields: Dict[str, Any] = {}
        if "subject_name" in changes:
            fields["subject_name"] = require_non_empty(changes["subject_name"], "Subject name")
        if "subject_code" in changes:
            code = require_non_empty(changes["subject_code"], "Subject code").upper()
            other = self._academic.get_subject_by_code(subject.tenant_id, code)
            if other and other.subject_id != subject.subject_id:
                raise ConflictError(f"Subject code {code} already exists")
            fields["subject_code"] = code
        if "subject_level" in changes:
            fields["subject_level"] = parse_enum(SubjectLevel, changes["subject_level"], "Subject level").value
        if "subject_type" in changes:
            fields["subject_type"] = parse_enum(SubjectType, changes["subject_type"], "Subject type").value
        if "description" in changes:
            fields["description"] = optional_text(changes["description"])
        if "status" in changes:
            fields["status"] = parse_enum(RecordStatus, changes["status"], "Status").value
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._academic.update_subject(subject.subject_id, fields=fields)
        return self._academic.get_subject(subject.subject_id) or subject

    def delete_subject(self, *, current_user: User, subject_id: int) -> None:
        self._require_manage(current_user, "subjects")
        subject = self.get_subject(current_user=current_user, subject_id=subject_id)
        self._academic.update_subject(subject.subject_id, fields={"status": RecordStatus.INACTIVE.value})
        logger.info("Subject %s deactivated", subject.subject_id)

    # ---- courses ---------------------------------------------------------

    def _check_subjects(self, tenant_id: int, subject_ids: Iterable[Any]) -> List[int]:
        ids = [parse_int(s, "Subject id") for s in subject_ids or []]
        missing = []
        for sid in ids:
            subject = self._academic.get_subject(sid)
            if not subject or subject.tenant_id != tenant_id:
                missing.append(f"Subject {sid} does not exist")
        if missing:
            raise ValidationError("Invalid subjects", details=missing)
        return list(dict.fromkeys(ids))

    def get_course(self, *, current_user: User, course_id: int) -> Course:
        self._require_view(current_user, "courses")
        course = self._academic.get_course(int(course_id))
        if not course:
            raise NotFoundError("Course not found")
        ensure_same_tenant(current_user, course.tenant_id)
        return course

    def create_course(
        self,
        *,
        current_user: User,
        course_name: str,
        course_code: str,
        credits: Any = 0,
        description: Optional[str] = None,
        subject_ids: Sequence[Any] = (),
        tenant_id: Optional[int] = None,
    ) -> int:
        self._require_manage(current_user, "courses")
        tenant = resolve_tenant(current_user, tenant_id)
        name = require_non_empty(course_name, "Course name")
        code = require_non_empty(course_code, "Course code").upper()
        credit_value = parse_int(credits or 0, "Credits")
        if credit_value < 0:
            raise ValidationError("Credits cannot be negative")
        if self._academic.get_course_by_code(tenant, code):
            raise ConflictError(f"Course code {code} already exists")
        ids = self._check_subjects(tenant, subject_ids)

        course_id = self._academic.create_course(
            tenant_id=tenant,
            course_name=name,
            course_code=code,
            credits=credit_value,
            description=optional_text(description),
            subject_ids=ids,
        )
        logger.info("Course %s (%s) created with %d subject(s)", course_id, code, len(ids))
        return course_id

    def update_course(self, *, current_user: User, course_id: int, changes: Dict[str, Any]) -> Course:
        self._require_manage(current_user, "courses")
        course = self.get_course(current_user=current_user, course_id=course_id)
        fields: Dict[str, Any] = {}
        if "course_name" in changes:
            fields["course_name"] = require_non_empty(changes["course_name"], "Course name")
        if "course_code" in changes:
            code = require_non_empty(changes["course_code"], "Course code").upper()
            other = self._academic.get_course_by_code(course.tenant_id, code)
            if other and other.course_id != course.course_id:
                raise ConflictError(f"Course code {code} already exists")
            fields["course_code"] = code
        if "credits" in changes:
            fields["credits"] = parse_int(changes["credits"], "Credits")
        if "description" in changes:
            fields["description"] = optional_text(changes["description"])
        if "status" in changes:
            fields["status"] = parse_enum(RecordStatus, changes["status"], "Status").value
        subject_ids = None
        if "subject_ids" in changes:
            subject_ids = self._check_subjects(course.tenant_id, changes["subject_ids"])
        if not fields and subject_ids is None:
            raise ValidationError("No updatable fields were provided")
        self._academic.update_course(course.course_id, fields=fields, subject_ids=subject_ids)
        return self._academic.get_course(course.course_id) or course

    def delete_course(self, *, current_user: User, course_id: int) -> None:
        self._require_manage(current_user, "courses")
        course = self.get_course(current_user=current_user, course_id=course_id)
        self._academic.update_course(course.course_id, fields={"status": RecordStatus.INACTIVE.value})
        logger.info("Course %s deactivated", course.course_id)

    # ---- classes ---------------------------------------------------------

    def get_class(self, *, current_user: User, class_id: int) -> SchoolClass:
        self._require_view(current_user, "classes")
        klass = self._academic.get_class(int(class_id))
        if not klass:
            raise NotFoundError("Class not found")
        ensure_same_tenant(current_user, klass.tenant_id)
        return klass

    def create_class(
        self,
        *,
        current_user: User,
        class_name: str,
        capacity: Any,
        grade: Optional[str] = None,
        section: Optional[str] = None,
        teacher_id: Optional[Any] = None,
        academic_year: Optional[str] = None,
        tenant_id: Optional[int] = None,
    ) -> int:
        self._require_manage(current_user, "classes")
        tenant = resolve_tenant(current_user, tenant_id)
        name = require_non_empty(class_name, "Class name")
        cap = parse_int(capacity, "Capacity")
        if cap <= 0:
            raise ValidationError("Capacity must be greater than 0")
        teacher = None
        if teacher_id not in (None, ""):
            teacher = self._require_role(teacher_id, RoleName.TEACHER, tenant, "Class teacher").user_id

        return self._academic.create_class(
            tenant_id=tenant,
            class_name=name,
            grade=optional_text(grade),
            section=optional_text(section),
            capacity=cap,
            teacher_id=teacher,
            academic_year=optional_text(academic_year),
        )

    def update_class(self, *, current_user: User, class_id: int, changes: Dict[str, Any]) -> SchoolClass:
        self._require_manage(current_user, "classes")
        klass = self.get_class(current_user=current_user, class_id=class_id)
        fields: Dict[str, Any] = {}
        if "class_name" in changes:
            fields["class_name"] = require_non_empty(changes["class_name"], "Class name")
        for key in ("grade", "section", "academic_year"):
            if key in changes:
                fields[key] = optional_text(changes[key])
        if "capacity" in changes:
            cap = parse_int(changes["capacity"], "Capacity")
            if cap <= 0:
                raise ValidationError("Capacity must be greater than 0")
            if cap < klass.student_count:
                raise ConflictError(f"Class already has {klass.student_count} students")
            fields["capacity"] = cap
        if "teacher_id" in changes:
            raw = changes["teacher_id"]
            fields["teacher_id"] = (
                None if raw in (None, "") else self._require_role(raw, RoleName.TEACHER, klass.tenant_id, "Class teacher").user_id
            )
        if "status" in changes:
            fields["status"] = parse_enum(RecordStatus, changes["status"], "Status").value
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._academic.update_class(klass.class_id, fields=fields)
        return self._academic.get_class(klass.class_id) or klass

    def delete_class(self, *, current_user: User, class_id: int) -> None:
        self._require_manage(current_user, "classes")
        klass = self.get_class(current_user=current_user, class_id=class_id)
        self._academic.update_class(klass.class_id, fields={"status": RecordStatus.INACTIVE.value})

    def enroll_student(self, *, current_user: User, class_id: int, student_user_id: Any) -> None:
        self._require_manage(current_user, "classes")
        klass = self.get_class(current_user=current_user, class_id=class_id)
        student = self._require_role(student_user_id, RoleName.STUDENT, klass.tenant_id, "Student")
        if self._academic.is_enrolled(klass.class_id, student.user_id):
            raise ConflictError("Student is already enrolled in this class")
        if klass.student_count >= klass.capacity:
            raise ConflictError("Class is at full capacity")
        self._academic.enroll_student(klass.class_id, student.user_id)
        logger.info("Student %s enrolled in class %s", student.user_id, klass.class_id)

    def unenroll_student(self, *, current_user: User, class_id: int, student_user_id: Any) -> None:
        self._require_manage(current_user, "classes")
        klass = self.get_class(current_user=current_user, class_id=class_id)
        if not self._academic.unenroll_student(klass.class_id, parse_int(student_user_id, "Student")):
            raise NotFoundError("Student is not enrolled in this class")

    # ---- teacher assignments --------------------------------------------

    def assign_teacher(
        self,
        *,
        current_user: User,
        teacher_user_id: Any,
        subject_id: Any,
        class_id: Optional[Any] = None,
        tenant_id: Optional[int] = None,
    ) -> int:
        self._require_manage(current_user, "teacher_assignments")
        tenant = resolve_tenant(current_user, tenant_id)
        teacher = self._require_role(teacher_user_id, RoleName.TEACHER, tenant, "Teacher")
        subject = self._academic.get_subject(parse_int(subject_id, "Subject"))
        if not subject or subject.tenant_id != tenant:
            raise NotFoundError("Subject not found")
        klass_id = None
        if class_id not in (None, ""):
            klass = self._academic.get_class(parse_int(class_id, "Class"))
            if not klass or klass.tenant_id != tenant:
                raise NotFoundError("Class not found")
            klass_id = klass.class_id

        if self._academic.find_teacher_assignment(
            tenant_id=tenant, teacher_user_id=teacher.user_id, subject_id=subject.subject_id, class_id=klass_id
        ):
            raise ConflictError("Teacher is already assigned to this subject")
        assignment_id = self._academic.create_teacher_assignment(
            tenant_id=tenant, teacher_user_id=teacher.user_id, subject_id=subject.subject_id, class_id=klass_id
        )
        logger.info("Teacher %s assigned to subject %s (class %s)", teacher.user_id, subject.subject_id, klass_id)
        return assignment_id

    def remove_teacher_assignment(self, *, current_user: User, assignment_id: int) -> None:
        self._require_manage(current_user, "teacher_assignments")
        assignment = self._academic.get_teacher_assignment(int(assignment_id))
        if not assignment:
            raise NotFoundError("Assignment not found")
        ensure_same_tenant(current_user, assignment.tenant_id)
        self._academic.delete_teacher_assignment(assignment.assignment_id)
