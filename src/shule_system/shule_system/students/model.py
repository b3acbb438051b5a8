from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.constants import DEFAULT_NATIONALITY
from ..core.enums import EnrollmentType, Gender, RecordStatus


@dataclass(frozen=True)
class Student:
    """Student profile; the login account lives in `users`.

    `student_number` is the school's own identifier and is unique per
    tenant. `student_id` is the row key.
    """

    student_id: int
    tenant_id: int
    user_id: int
    student_number: str
    first_name: str
    last_name: str
    email: str
    date_of_birth: date
    gender: Gender
    address: str
    city: str
    region: str
    emergency_contact: str
    emergency_phone: str
    admission_number: Optional[str] = None
    admission_date: Optional[date] = None
    nationality: str = DEFAULT_NATIONALITY
    religion: Optional[str] = None
    blood_group: Optional[str] = None
    postal_code: Optional[str] = None
    phone: Optional[str] = None
    medical_info: Optional[str] = None
    previous_school: Optional[str] = None
    previous_grade: Optional[str] = None
    transport_mode: Optional[str] = None
    transport_route: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class StudentEnrollment:
    enrollment_id: int
    tenant_id: int
    student_id: int
    academic_year: str
    enrollment_type: EnrollmentType
    class_id: Optional[int] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    is_active: bool = True
    notes: Optional[str] = None
    enrollment_date: Optional[datetime] = None

    def target(self) -> tuple:
        """Identity used to spot a student enrolled twice in the same program."""
        return (self.academic_year, self.class_id, self.course_id, self.subject_id)
