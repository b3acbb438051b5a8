from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import ClassRole


@dataclass(frozen=True)
class Teacher:
    """Teacher profile; the login account lives in `users`."""

    teacher_id: int
    tenant_id: int
    user_id: int
    employee_number: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    qualification: Optional[str] = None
    specialization: Optional[str] = None
    experience_years: Optional[int] = None
    address: Optional[str] = None
    region: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    joining_date: Optional[date] = None
    teaching_license: Optional[str] = None
    license_expiry: Optional[date] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class TeacherQualification:
    qualification_id: int
    tenant_id: int
    teacher_id: int
    title: str
    institution: str
    date_obtained: date
    expiry_date: Optional[date] = None
    certificate_number: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class TeacherSubject:
    teacher_id: int
    subject_id: int
    subject_name: str
    subject_level: Optional[str] = None
    subject_type: Optional[str] = None
    assigned_at: Optional[datetime] = None


@dataclass(frozen=True)
class TeacherClass:
    teacher_id: int
    class_id: int
    class_name: str
    role: ClassRole = ClassRole.SUBJECT_TEACHER
    student_count: int = 0
    assigned_at: Optional[datetime] = None


@dataclass(frozen=True)
class TeacherWorkload:
    teacher_id: int
    subject_count: int
    class_count: int
    student_count: int
    class_teacher_of: int = 0
