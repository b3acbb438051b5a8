from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .model import Student, StudentEnrollment


@dataclass(frozen=True)
class StudentQuery:
    tenant_id: Optional[int] = None
    search: Optional[str] = None
    status: Optional[str] = None
    gender: Optional[str] = None
    class_id: Optional[int] = None
    offset: int = 0
    limit: int = 25


class StudentRepository(Protocol):
    def list_students(self, query: StudentQuery) -> Tuple[List[Student], int]:
        """Newest first; `class_id` keeps students with an active enrollment in that class."""
        raise NotImplementedError

    def get_student(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def get_by_student_number(self, tenant_id: int, student_number: str) -> Optional[Student]:
        raise NotImplementedError

    def get_by_user(self, user_id: int) -> Optional[Student]:
        raise NotImplementedError

    def create_student(self, *, tenant_id: int, user_id: int, fields: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update_student(self, student_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_student(self, student_id: int) -> bool:
        """Remove the profile together with its enrollments."""
        raise NotImplementedError

    # enrollments
    def list_enrollments(self, student_id: int) -> List[StudentEnrollment]:
        raise NotImplementedError

    def get_enrollment(self, enrollment_id: int) -> Optional[StudentEnrollment]:
        raise NotImplementedError

    def create_enrollment(self, *, tenant_id: int, student_id: int, fields: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update_enrollment(self, enrollment_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_enrollment(self, enrollment_id: int) -> bool:
        raise NotImplementedError
