from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import List, Optional, Protocol

from ..core.enums import ExaminationStatus
from .model import Examination, ExamResult


class ExaminationRepository(Protocol):
    def get_exam(self, exam_id: int) -> Optional[Examination]:
        raise NotImplementedError

    def list_exams(
        self,
        *,
        tenant_id: Optional[int],
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
    ) -> List[Examination]:
        raise NotImplementedError

    def create_exam(
        self,
        *,
        tenant_id: int,
        exam_name: str,
        subject_id: int,
        class_id: Optional[int],
        level: str,
        exam_date: date,
        max_marks: Decimal,
        created_by: int,
    ) -> int:
        raise NotImplementedError

    def set_exam_status(self, exam_id: int, status: ExaminationStatus) -> bool:
        raise NotImplementedError

    def get_result(self, exam_id: int, student_user_id: int) -> Optional[ExamResult]:
        raise NotImplementedError

    def save_result(
        self,
        *,
        tenant_id: int,
        exam_id: int,
        student_user_id: int,
        marks: Decimal,
        percentage: Decimal,
        grade: str,
        points: float,
        remarks: Optional[str],
        recorded_by: int,
    ) -> int:
        """Insert or replace the student's result for the exam."""
        raise NotImplementedError

    def list_results(self, exam_id: int, *, student_user_id: Optional[int] = None) -> List[ExamResult]:
        raise NotImplementedError
