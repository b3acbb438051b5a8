from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Sequence

from .model import Course, SchoolClass, Subject, TeacherAssignment

if TYPE_CHECKING:
    from .filters import AcademicFilters, ClassFilters, CourseFilters, SubjectFilters


class AcademicRepository(Protocol):
    """Persistence for subjects, courses, classes and teacher assignments.

    List methods receive already role-scoped filters. When
    `filters.assigned_to_user` is set, results are limited to records linked
    to `filters.user_id` (taught by them, or enrolled in by them).
    """

    # listings
    def list_subjects(self, filters: "SubjectFilters") -> List[Subject]:
        raise NotImplementedError

    def list_courses(self, filters: "CourseFilters") -> List[Course]:
        raise NotImplementedError

    def list_classes(self, filters: "ClassFilters") -> List[SchoolClass]:
        raise NotImplementedError

    def list_teacher_assignments(self, filters: "AcademicFilters") -> List[TeacherAssignment]:
        raise NotImplementedError

    def get_stats(self, filters: "AcademicFilters") -> Dict[str, Any]:
        raise NotImplementedError

    # subjects
    def get_subject(self, subject_id: int) -> Optional[Subject]:
        raise NotImplementedError

    def get_subject_by_code(self, tenant_id: int, subject_code: str) -> Optional[Subject]:
        raise NotImplementedError

    def create_subject(
        self,
        *,
        tenant_id: int,
        subject_name: str,
        subject_code: str,
        subject_level: str,
        subject_type: str,
        description: Optional[str],
    ) -> int:
        raise NotImplementedError

    def update_subject(self, subject_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    # courses
    def get_course(self, course_id: int) -> Optional[Course]:
        raise NotImplementedError

    def get_course_by_code(self, tenant_id: int, course_code: str) -> Optional[Course]:
        raise NotImplementedError

    def create_course(
        self,
        *,
        tenant_id: int,
        course_name: str,
        course_code: str,
        credits: int,
        description: Optional[str],
        subject_ids: Sequence[int],
    ) -> int:
        raise NotImplementedError

    def update_course(self, course_id: int, *, fields: Dict[str, Any], subject_ids: Optional[Sequence[int]] = None) -> bool:
        raise NotImplementedError

    # classes
    def get_class(self, class_id: int) -> Optional[SchoolClass]:
        raise NotImplementedError

    def create_class(
        self,
        *,
        tenant_id: int,
        class_name: str,
        grade: Optional[str],
        section: Optional[str],
        capacity: int,
        teacher_id: Optional[int],
        academic_year: Optional[str],
    ) -> int:
        raise NotImplementedError

    def update_class(self, class_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def is_enrolled(self, class_id: int, student_user_id: int) -> bool:
        raise NotImplementedError

    def enroll_student(self, class_id: int, student_user_id: int) -> None:
        raise NotImplementedError

    def unenroll_student(self, class_id: int, student_user_id: int) -> bool:
        raise NotImplementedError

    def list_class_students(self, class_id: int) -> List[int]:
        raise NotImplementedError

    # teacher assignments
    def get_teacher_assignment(self, assignment_id: int) -> Optional[TeacherAssignment]:
        raise NotImplementedError

    def find_teacher_assignment(
        self, *, tenant_id: int, teacher_user_id: int, subject_id: int, class_id: Optional[int]
    ) -> Optional[TeacherAssignment]:
        raise NotImplementedError

    def create_teacher_assignment(
        self, *, tenant_id: int, teacher_user_id: int, subject_id: int, class_id: Optional[int]
    ) -> int:
        raise NotImplementedError

    def delete_teacher_assignment(self, assignment_id: int) -> bool:
        raise NotImplementedError
