from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import ExaminationStatus


@dataclass(frozen=True)
class Examination:
    exam_id: int
    tenant_id: int
    exam_name: str
    subject_id: int
    level: str
    exam_date: date
    max_marks: Decimal
    class_id: Optional[int] = None
    status: ExaminationStatus = ExaminationStatus.SCHEDULED
    created_by: Optional[int] = None


@dataclass(frozen=True)
class ExamResult:
    result_id: int
    tenant_id: int
    exam_id: int
    student_user_id: int
    marks: Decimal
    percentage: Decimal
    grade: str
    points: float
    remarks: Optional[str] = None
    recorded_by: Optional[int] = None
    recorded_at: Optional[datetime] = None
