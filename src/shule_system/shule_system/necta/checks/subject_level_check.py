from __future__ import annotations

from typing import Sequence

from ...academic.model import Course, Subject
from ...core.enums import CheckStatus, CheckType
from ..model import ComplianceCheckResult
from ..rules import is_valid_subject_level
from .base import ComplianceCheck


class SubjectLevelCheck(ComplianceCheck):
    check_id = "subject_level_check"
    check_type = CheckType.SUBJECT_LEVEL

    def run(self, *, courses: Sequence[Course], subjects: Sequence[Subject]) -> ComplianceCheckResult:
        invalid = [s for s in subjects if not is_valid_subject_level(s.subject_level)]
        if not invalid:
            return ComplianceCheckResult(
                id=self.check_id,
                check_type=self.check_type,
                status=CheckStatus.PASS,
                message="All subjects have valid academic levels",
                details={"total_subjects": len(subjects), "valid_subjects": len(subjects)},
            )
        return ComplianceCheckResult(
            id=self.check_id,
            check_type=self.check_type,
            status=CheckStatus.FAIL,
            message=f"{len(invalid)} subjects have invalid academic levels",
            details={"total_subjects": len(subjects), "invalid_subjects": len(invalid)},
            recommendations=["Ensure all subjects have valid academic levels: Primary, O-Level, A-Level, University"],
        )
