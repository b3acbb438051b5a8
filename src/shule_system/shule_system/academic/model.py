from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from ..core.enums import RecordStatus


@dataclass(frozen=True)
class Subject:
    """A taught subject.

    `subject_level` / `subject_type` keep the stored strings rather than enums
    so records imported from older systems with unexpected values can still
    be loaded and reported on by the NECTA checker.
    """

    subject_id: int
    tenant_id: int
    subject_name: str
    subject_code: str
    subject_level: str
    subject_type: str
    description: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Course:
    course_id: int
    tenant_id: int
    course_name: str
    course_code: str
    credits: int = 0
    description: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE
    subject_ids: Tuple[int, ...] = ()
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class SchoolClass:
    class_id: int
    tenant_id: int
    class_name: str
    grade: Optional[str] = None
    section: Optional[str] = None
    capacity: int = 40
    teacher_id: Optional[int] = None
    academic_year: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE
    student_count: int = 0
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TeacherAssignment:
    assignment_id: int
    tenant_id: int
    teacher_user_id: int
    subject_id: int
    class_id: Optional[int] = None
    assigned_at: Optional[datetime] = None
