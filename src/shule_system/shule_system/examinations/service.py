from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Optional

from ..academic.repository import AcademicRepository
from ..common.datetime_utils import coerce_date
from ..common.exporting import ExportFile, export_rows
from ..common.validators import optional_text, parse_decimal, parse_enum, parse_int, require_non_empty, require_positive
from ..core.enums import ExaminationStatus, RoleName
from ..core.exceptions import NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_permission, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.permissions import RolePermissionChecker
from ..users.repository import UserRepository
from .grading import calculate_grade
from .model import Examination, ExamResult
from .repository import ExaminationRepository

logger = logging.getLogger(__name__)


class ExaminationService:
    def __init__(self, exams: ExaminationRepository, academic: AcademicRepository, users: UserRepository):
        self._exams = exams
        self._academic = academic
        self._users = users

    def create_examination(
        self,
        *,
        current_user: User,
        exam_name: str,
        subject_id: Any,
        exam_date: Any,
        max_marks: Any = 100,
        class_id: Optional[Any] = None,
        tenant_id: Optional[int] = None,
    ) -> int:
        require_permission(current_user, "examinations", "create")
        tenant = resolve_tenant(current_user, tenant_id)
        name = require_non_empty(exam_name, "Exam name")
        subject = self._academic.get_subject(parse_int(subject_id, "Subject"))
        if not subject or subject.tenant_id != tenant:
            raise NotFoundError("Subject not found")
        klass_id = None
        if class_id not in (None, ""):
            klass = self._academic.get_class(parse_int(class_id, "Class"))
            if not klass or klass.tenant_id != tenant:
                raise NotFoundError("Class not found")
            klass_id = klass.class_id

        exam_id = self._exams.create_exam(
            tenant_id=tenant,
            exam_name=name,
            subject_id=subject.subject_id,
            class_id=klass_id,
            level=subject.subject_level,
            exam_date=coerce_date(exam_date, "exam date"),
            max_marks=require_positive(max_marks, "Maximum marks"),
            created_by=current_user.user_id,
        )
        logger.info("Examination %s created for subject %s", exam_id, subject.subject_id)
        return exam_id

    def list_examinations(
        self,
        *,
        current_user: User,
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> List[Examination]:
        require_permission(current_user, "examinations", "read")
        return self._exams.list_exams(tenant_id=tenant_scope(current_user), subject_id=subject_id, class_id=class_id)

    def get_examination(self, *, current_user: User, exam_id: int) -> Examination:
        require_permission(current_user, "examinations", "read")
        exam = self._exams.get_exam(int(exam_id))
        if not exam:
            raise NotFoundError("Examination not found")
        ensure_same_tenant(current_user, exam.tenant_id)
        return exam

    def update_status(self, *, current_user: User, exam_id: int, status: str) -> None:
        require_permission(current_user, "examinations", "update")
        exam = self.get_examination(current_user=current_user, exam_id=exam_id)
        self._exams.set_exam_status(exam.exam_id, parse_enum(ExaminationStatus, status, "Status"))

    def record_result(
        self,
        *,
        current_user: User,
        exam_id: int,
        student_user_id: Any,
        marks: Any,
        remarks: Optional[str] = None,
    ) -> ExamResult:
        """Grade a student's marks on the exam's level scale and store it."""
        require_permission(current_user, "grades", "create")
        exam = self.get_examination(current_user=current_user, exam_id=exam_id)
        if exam.status == ExaminationStatus.CANCELLED:
            raise ValidationError("Examination was cancelled")

        student = self._users.get_by_id(parse_int(student_user_id, "Student"))
        if not student or student.tenant_id != exam.tenant_id or RoleName.STUDENT.value not in student.roles:
            raise NotFoundError("Student not found")
        if self._exams.get_result(exam.exam_id, student.user_id):
            require_permission(current_user, "grades", "update")

        score = parse_decimal(marks, "Marks")
        if score < 0 or score > exam.max_marks:
            raise ValidationError(f"Marks must be between 0 and {exam.max_marks}")

        percentage = (score / exam.max_marks * 100).quantize(Decimal("0.01"))
        grade, points = calculate_grade(percentage, exam.level)
        self._exams.save_result(
            tenant_id=exam.tenant_id,
            exam_id=exam.exam_id,
            student_user_id=student.user_id,
            marks=score,
            percentage=percentage,
            grade=grade,
            points=points,
            remarks=optional_text(remarks),
            recorded_by=current_user.user_id,
        )
        logger.info("Result for student %s on exam %s: %s (%s)", student.user_id, exam.exam_id, grade, percentage)
        result = self._exams.get_result(exam.exam_id, student.user_id)
        if result is None:
            raise NotFoundError("Result was not saved")
        return result

    def list_results(self, *, current_user: User, exam_id: int) -> List[ExamResult]:
        require_permission(current_user, "grades", "read")
        exam = self.get_examination(current_user=current_user, exam_id=exam_id)
        checker = RolePermissionChecker(current_user)
        if checker.is_student() and not checker.can_view_reports():
            return self._exams.list_results(exam.exam_id, student_user_id=current_user.user_id)
        return self._exams.list_results(exam.exam_id)

    def export_results(self, *, current_user: User, exam_id: int, fmt: str = "csv") -> ExportFile:
        results = self.list_results(current_user=current_user, exam_id=exam_id)
        rows = [
            {
                "student_user_id": r.student_user_id,
                "marks": float(r.marks),
                "percentage": float(r.percentage),
                "grade": r.grade,
                "points": r.points,
                "remarks": r.remarks or "",
            }
            for r in results
        ]
        return export_rows(
            rows,
            fmt=fmt,
            basename=f"exam_{exam_id}_results",
            sheet_name="Results",
            columns=["student_user_id", "marks", "percentage", "grade", "points", "remarks"],
        )
