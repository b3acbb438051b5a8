from __future__ import annotations

from typing import Sequence

from ...academic.model import Course, Subject
from ...core.enums import CheckStatus, CheckType
from ..model import ComplianceCheckResult
from .base import ComplianceCheck


class CourseStructureCheck(ComplianceCheck):
    """Every course needs at least one subject; missing ones only warn."""

    check_id = "course_structure_check"
    check_type = CheckType.COURSE_STRUCTURE

    def run(self, *, courses: Sequence[Course], subjects: Sequence[Subject]) -> ComplianceCheckResult:
        empty = [c for c in courses if not c.subject_ids]
        if not empty:
            return ComplianceCheckResult(
                id=self.check_id,
                check_type=self.check_type,
                status=CheckStatus.PASS,
                message="All courses have subjects assigned",
                details={"total_courses": len(courses), "courses_with_subjects": len(courses)},
            )
        return ComplianceCheckResult(
            id=self.check_id,
            check_type=self.check_type,
            status=CheckStatus.WARNING,
            message=f"{len(empty)} courses have no subjects assigned",
            details={"total_courses": len(courses), "courses_without_subjects": len(empty)},
            recommendations=["Assign subjects to all courses to ensure proper academic structure"],
        )
