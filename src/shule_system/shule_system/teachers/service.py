from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from werkzeug.security import generate_password_hash

from ..academic.repository import AcademicRepository
from ..common.datetime_utils import coerce_date, coerce_optional_date, now_local
from ..common.exporting import ExportFile, export_rows, read_csv_rows
from ..common.paging import Page, normalize_paging
from ..common.validators import optional_text, parse_enum, parse_int, require_min_length, require_non_empty
from ..core.constants import MIN_PASSWORD_LENGTH
from ..core.enums import ClassRole, RoleName
from ..core.exceptions import ConflictError, DomainError, NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_permission, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.repository import UserRepository
from .model import Teacher, TeacherClass, TeacherQualification, TeacherSubject, TeacherWorkload
from .repository import TeacherQuery, TeacherRepository

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ["Employee Number", "First Name", "Last Name", "Email", "Phone", "Gender",
                  "Qualification", "Specialization", "Experience (years)", "Joining Date"]
EXPORT_ROW_LIMIT = 10_000

_DATE_FIELDS = ("date_of_birth", "joining_date", "license_expiry")
_TEXT_FIELDS = ("gender", "nationality", "qualification", "specialization", "address", "region",
                "emergency_contact", "emergency_phone", "teaching_license")


def employee_number(sequence: int) -> str:
    return f"TCH-{sequence:04d}"


def _profile_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key in _TEXT_FIELDS:
        if key in data:
            fields[key] = optional_text(data[key])
    for key in _DATE_FIELDS:
        if key in data:
            fields[key] = coerce_optional_date(data[key], key)
    if data.get("experience_years") not in (None, ""):
        years = parse_int(data["experience_years"], "experience_years")
        if years < 0:
            raise ValidationError("experience_years cannot be negative")
        fields["experience_years"] = years
    return fields


class TeacherService:
    """Teacher profiles with their subjects, classes and qualifications."""

    def __init__(
        self,
        teachers: TeacherRepository,
        users: UserRepository,
        academic: AcademicRepository,
        *,
        clock: Callable = now_local,
    ):
        self._teachers = teachers
        self._users = users
        self._academic = academic
        self._clock = clock

    def _load(self, current_user: User, teacher_id: Any, action: str = "read") -> Teacher:
        require_permission(current_user, "users", action)
        teacher = self._teachers.get_teacher(parse_int(teacher_id, "teacher_id"))
        if not teacher:
            raise NotFoundError("Teacher not found")
        ensure_same_tenant(current_user, teacher.tenant_id)
        return teacher

    def _next_employee_number(self, tenant_id: int) -> str:
        seq = self._teachers.count_teachers(tenant_id) + 1
        while self._teachers.get_by_employee_number(tenant_id, employee_number(seq)):
            seq += 1
        return employee_number(seq)

    # ---- profiles --------------------------------------------------------

    def list_teachers(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Teacher]:
        require_permission(current_user, "users", "read")
        params = params or {}
        page, limit = normalize_paging(params.get("page"), params.get("limit"))
        items, total = self._teachers.list_teachers(TeacherQuery(
            tenant_id=tenant_scope(current_user),
            search=optional_text(params.get("search")),
            offset=(page - 1) * limit,
            limit=limit,
        ))
        return Page(items=items, page=page, limit=limit, total=total)

    def get_teacher(self, *, current_user: User, teacher_id: Any) -> Teacher:
        return self._load(current_user, teacher_id)

    def create_teacher(self, *, current_user: User, data: Dict[str, Any]) -> Teacher:
        """Create the Teacher login and its profile together."""
        require_permission(current_user, "users", "create")
        tenant = resolve_tenant(current_user, data.get("tenant_id"))

        email = require_non_empty(data.get("email"), "Email").lower()
        if "@" not in email:
            raise ValidationError("Email is not valid")
        first_name = require_non_empty(data.get("first_name"), "First name")
        last_name = require_non_empty(data.get("last_name"), "Last name")
        password = require_min_length(data.get("password"), "Password", MIN_PASSWORD_LENGTH)
        profile = _profile_fields(data)

        if self._users.get_by_email(email):
            raise ConflictError("Email already exists")
        number = optional_text(data.get("employee_number"))
        if number and self._teachers.get_by_employee_number(tenant, number):
            raise ConflictError("Employee number already exists in this school")
        number = number or self._next_employee_number(tenant)

        user_id = self._users.create_user(
            tenant_id=tenant,
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=generate_password_hash(password),
            phone=optional_text(data.get("phone")),
            role_names=[RoleName.TEACHER.value],
        )
        try:
            teacher_id = self._teachers.create_teacher(
                tenant_id=tenant, user_id=user_id, employee_number=number, profile=profile
            )
        except Exception:
            self._users.delete_by_id(user_id)
            raise
        logger.info("Teacher %s (%s) created in tenant %s", teacher_id, number, tenant)
        return self._teachers.get_teacher(teacher_id)

    def update_teacher(self, *, current_user: User, teacher_id: Any, changes: Dict[str, Any]) -> Teacher:
        teacher = self._load(current_user, teacher_id, "update")
        fields = _profile_fields(changes)
        if changes.get("employee_number"):
            number = require_non_empty(changes["employee_number"], "Employee number")
            other = self._teachers.get_by_employee_number(teacher.tenant_id, number)
            if other and other.teacher_id != teacher.teacher_id:
                raise ConflictError("Employee number already exists in this school")
            fields["employee_number"] = number

        account: Dict[str, Any] = {}
        for key, label in (("first_name", "First name"), ("last_name", "Last name")):
            if changes.get(key) is not None:
                account[key] = require_non_empty(changes[key], label)
        if "phone" in changes:
            account["phone"] = optional_text(changes["phone"])
        if changes.get("email"):
            email = require_non_empty(changes["email"], "Email").lower()
            existing = self._users.get_by_email(email)
            if existing and existing.user_id != teacher.user_id:
                raise ConflictError("Email already exists")
            account["email"] = email
        if changes.get("password"):
            account["password_hash"] = generate_password_hash(
                require_min_length(changes["password"], "Password", MIN_PASSWORD_LENGTH)
            )

        if not fields and not account:
            raise ValidationError("No updatable fields were provided")
        if fields:
            self._teachers.update_teacher(teacher.teacher_id, fields=fields)
        if account:
            self._users.update_user(teacher.user_id, fields=account)
        return self._teachers.get_teacher(teacher.teacher_id)

    def delete_teacher(self, *, current_user: User, teacher_id: Any) -> None:
        """Drop the profile and its links; the login is only deactivated."""
        teacher = self._load(current_user, teacher_id, "delete")
        self._teachers.delete_teacher(teacher.teacher_id)
        self._users.update_user(teacher.user_id, fields={"is_active": 0})
        logger.info("Teacher %s deleted; user %s deactivated", teacher.teacher_id, teacher.user_id)

    # ---- subjects --------------------------------------------------------

    def list_subjects(self, *, current_user: User, teacher_id: Any) -> List[TeacherSubject]:
        teacher = self._load(current_user, teacher_id)
        return self._teachers.list_subjects(teacher.teacher_id)

    def _check_subject(self, teacher: Teacher, subject_id: Any) -> int:
        sid = parse_int(subject_id, "subject_id")
        subject = self._academic.get_subject(sid)
        if not subject or subject.tenant_id != teacher.tenant_id:
            raise NotFoundError("Subject not found")
        return sid

    def assign_subject(self, *, current_user: User, teacher_id: Any, subject_id: Any) -> List[TeacherSubject]:
        teacher = self._load(current_user, teacher_id, "update")
        sid = self._check_subject(teacher, subject_id)
        if self._teachers.has_subject(teacher.teacher_id, sid):
            raise ConflictError("Subject already assigned to teacher")
        self._teachers.add_subject(
            tenant_id=teacher.tenant_id, teacher_id=teacher.teacher_id, subject_id=sid,
            assigned_by=current_user.user_id,
        )
        return self._teachers.list_subjects(teacher.teacher_id)

    def remove_subject(self, *, current_user: User, teacher_id: Any, subject_id: Any) -> None:
        teacher = self._load(current_user, teacher_id, "update")
        if not self._teachers.remove_subject(teacher.teacher_id, parse_int(subject_id, "subject_id")):
            raise NotFoundError("Assignment not found")

    def bulk_assign_subjects(self, *, current_user: User, assignments: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        """Assign many (teacher_id, subject_id) pairs; existing pairs are skipped."""
        require_permission(current_user, "users", "update")
        pairs = list(assignments or [])
        if not pairs:
            raise ValidationError("At least one assignment is required")

        # validate everything before writing anything
        checked = []
        for item in pairs:
            teacher = self._load(current_user, item.get("teacher_id"), "update")
            checked.append((teacher, self._check_subject(teacher, item.get("subject_id"))))

        created = skipped = 0
        for teacher, sid in checked:
            if self._teachers.has_subject(teacher.teacher_id, sid):
                skipped += 1
                continue
            self._teachers.add_subject(
                tenant_id=teacher.tenant_id, teacher_id=teacher.teacher_id, subject_id=sid,
                assigned_by=current_user.user_id,
            )
            created += 1
        logger.info("Bulk subject assignment: %d created, %d skipped", created, skipped)
        return {"created": created, "skipped": skipped}

    # ---- classes ---------------------------------------------------------

    def list_classes(self, *, current_user: User, teacher_id: Any) -> List[TeacherClass]:
        teacher = self._load(current_user, teacher_id)
        return self._teachers.list_classes(teacher.teacher_id)

    def assign_class(self, *, current_user: User, teacher_id: Any, class_id: Any,
                     role: Any = ClassRole.SUBJECT_TEACHER.value) -> TeacherClass:
        teacher = self._load(current_user, teacher_id, "update")
        cid = parse_int(class_id, "class_id")
        klass = self._academic.get_class(cid)
        if not klass or klass.tenant_id != teacher.tenant_id:
            raise NotFoundError("Class not found")
        class_role = parse_enum(ClassRole, role or ClassRole.SUBJECT_TEACHER.value, "Role")
        if self._teachers.get_class_link(teacher.teacher_id, cid):
            raise ConflictError("Class already assigned to teacher")
        self._teachers.add_class(
            tenant_id=teacher.tenant_id, teacher_id=teacher.teacher_id, class_id=cid, role=class_role.value
        )
        return self._teachers.get_class_link(teacher.teacher_id, cid)

    def remove_class(self, *, current_user: User, teacher_id: Any, class_id: Any) -> None:
        teacher = self._load(current_user, teacher_id, "update")
        if not self._teachers.remove_class(teacher.teacher_id, parse_int(class_id, "class_id")):
            raise NotFoundError("Assignment not found")

    # ---- qualifications --------------------------------------------------

    @staticmethod
    def _qualification_fields(data: Dict[str, Any], *, partial: bool) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, label in (("title", "Title"), ("institution", "Institution")):
            if not partial or key in data:
                fields[key] = require_non_empty(data.get(key), label)
        if not partial or "date_obtained" in data:
            fields["date_obtained"] = coerce_date(data.get("date_obtained"), "date_obtained")
        if "expiry_date" in data:
            fields["expiry_date"] = coerce_optional_date(data["expiry_date"], "expiry_date")
        for key in ("certificate_number", "description"):
            if key in data:
                fields[key] = optional_text(data[key])
        obtained, expiry = fields.get("date_obtained"), fields.get("expiry_date")
        if obtained and expiry and expiry < obtained:
            raise ValidationError("expiry_date cannot be before date_obtained")
        return fields

    def list_qualifications(self, *, current_user: User, teacher_id: Any) -> List[TeacherQualification]:
        teacher = self._load(current_user, teacher_id)
        return self._teachers.list_qualifications(teacher.teacher_id)

    def _load_qualification(self, teacher: Teacher, qualification_id: Any) -> TeacherQualification:
        q = self._teachers.get_qualification(parse_int(qualification_id, "qualification_id"))
        if not q or q.teacher_id != teacher.teacher_id:
            raise NotFoundError("Qualification not found")
        return q

    def add_qualification(self, *, current_user: User, teacher_id: Any, data: Dict[str, Any]) -> TeacherQualification:
        teacher = self._load(current_user, teacher_id, "update")
        qid = self._teachers.create_qualification(
            tenant_id=teacher.tenant_id,
            teacher_id=teacher.teacher_id,
            fields=self._qualification_fields(data, partial=False),
            created_by=current_user.user_id,
        )
        return self._teachers.get_qualification(qid)

    def update_qualification(self, *, current_user: User, teacher_id: Any, qualification_id: Any,
                             changes: Dict[str, Any]) -> TeacherQualification:
        teacher = self._load(current_user, teacher_id, "update")
        q = self._load_qualification(teacher, qualification_id)
        fields = self._qualification_fields(changes, partial=True)
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._teachers.update_qualification(q.qualification_id, fields=fields)
        return self._teachers.get_qualification(q.qualification_id)

    def delete_qualification(self, *, current_user: User, teacher_id: Any, qualification_id: Any) -> None:
        teacher = self._load(current_user, teacher_id, "update")
        q = self._load_qualification(teacher, qualification_id)
        self._teachers.delete_qualification(q.qualification_id)

    # ---- workload & exchange ---------------------------------------------

    def get_workload(self, *, current_user: User, teacher_id: Any) -> TeacherWorkload:
        teacher = self._load(current_user, teacher_id)
        return self._teachers.get_workload(teacher.teacher_id)

    def export_teachers(self, *, current_user: User, fmt: str = "csv") -> ExportFile:
        require_permission(current_user, "users", "read")
        items, _ = self._teachers.list_teachers(
            TeacherQuery(tenant_id=tenant_scope(current_user), limit=EXPORT_ROW_LIMIT)
        )
        rows = [
            {
                "Employee Number": t.employee_number,
                "First Name": t.first_name,
                "Last Name": t.last_name,
                "Email": t.email,
                "Phone": t.phone or "",
                "Gender": t.gender or "",
                "Qualification": t.qualification or "",
                "Specialization": t.specialization or "",
                "Experience (years)": t.experience_years if t.experience_years is not None else "",
                "Joining Date": t.joining_date.isoformat() if t.joining_date else "",
            }
            for t in items
        ]
        stamp = self._clock().date().isoformat()
        return export_rows(rows, fmt=fmt, basename=f"teachers-{stamp}", sheet_name="Teachers", columns=EXPORT_COLUMNS)

    def import_teachers(self, *, current_user: User, stream, tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """Create teachers from CSV rows.

        Headers use the JSON field names (first_name, last_name, email,
        password, ...). A bad row is reported and skipped; the rest still
        go in.
        """
        require_permission(current_user, "users", "create")
        try:
            rows = read_csv_rows(stream)
        except ValueError as exc:
            raise ValidationError("Could not read CSV file", details=[str(exc)])

        created = 0
        errors: List[Dict[str, Any]] = []
        for index, row in enumerate(rows, start=2):
            data = {k: v for k, v in row.items() if v is not None}
            if tenant_id is not None:
                data["tenant_id"] = tenant_id
            try:
                self.create_teacher(current_user=current_user, data=data)
            except DomainError as exc:
                errors.append({"row": index, "email": data.get("email"), "error": exc.message})
                continue
            created += 1
        logger.info("Teacher import: %d created, %d failed", created, len(errors))
        return {"created": created, "errors": errors}
