from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .model import Teacher, TeacherClass, TeacherQualification, TeacherSubject, TeacherWorkload


@dataclass(frozen=True)
class TeacherQuery:
    tenant_id: Optional[int] = None
    search: Optional[str] = None
    active_only: bool = True
    offset: int = 0
    limit: int = 25


class TeacherRepository(Protocol):
    def list_teachers(self, query: TeacherQuery) -> Tuple[List[Teacher], int]:
        raise NotImplementedError

    def get_teacher(self, teacher_id: int) -> Optional[Teacher]:
        raise NotImplementedError

    def get_by_employee_number(self, tenant_id: int, employee_number: str) -> Optional[Teacher]:
        raise NotImplementedError

    def count_teachers(self, tenant_id: int) -> int:
        """All profiles ever created in the tenant, used for numbering."""
        raise NotImplementedError

    def create_teacher(self, *, tenant_id: int, user_id: int, employee_number: str, profile: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update_teacher(self, teacher_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_teacher(self, teacher_id: int) -> bool:
        """Remove the profile with its subject, class and qualification links."""
        raise NotImplementedError

    # subjects
    def list_subjects(self, teacher_id: int) -> List[TeacherSubject]:
        raise NotImplementedError

    def has_subject(self, teacher_id: int, subject_id: int) -> bool:
        raise NotImplementedError

    def add_subject(self, *, tenant_id: int, teacher_id: int, subject_id: int, assigned_by: int) -> None:
        raise NotImplementedError

    def remove_subject(self, teacher_id: int, subject_id: int) -> bool:
        raise NotImplementedError

    # classes
    def list_classes(self, teacher_id: int) -> List[TeacherClass]:
        raise NotImplementedError

    def get_class_link(self, teacher_id: int, class_id: int) -> Optional[TeacherClass]:
        raise NotImplementedError

    def add_class(self, *, tenant_id: int, teacher_id: int, class_id: int, role: str) -> None:
        raise NotImplementedError

    def remove_class(self, teacher_id: int, class_id: int) -> bool:
        raise NotImplementedError

    # qualifications
    def list_qualifications(self, teacher_id: int) -> List[TeacherQualification]:
        raise NotImplementedError

    def get_qualification(self, qualification_id: int) -> Optional[TeacherQualification]:
        raise NotImplementedError

    def create_qualification(self, *, tenant_id: int, teacher_id: int, fields: Dict[str, Any], created_by: int) -> int:
        raise NotImplementedError

    def update_qualification(self, qualification_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_qualification(self, qualification_id: int) -> bool:
        raise NotImplementedError

    def get_workload(self, teacher_id: int) -> TeacherWorkload:
        raise NotImplementedError
