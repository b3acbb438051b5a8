from __future__ import annotations

from typing import List, Sequence

from ...academic.model import Course, Subject
from ...core.enums import CheckStatus, CheckType, SubjectLevel, SubjectType
from ..model import ComplianceCheckResult
from .base import ComplianceCheck

MIN_O_LEVEL_CORE = 7
MIN_A_LEVEL_COMBINATION = 3


class DivisionCalculationCheck(ComplianceCheck):
    check_id = "division_calculation_check"
    check_type = CheckType.DIVISION_CALCULATION

    def run(self, *, courses: Sequence[Course], subjects: Sequence[Subject]) -> ComplianceCheckResult:
        o_level_core = [
            s for s in subjects
            if s.subject_level == SubjectLevel.O_LEVEL.value and s.subject_type == SubjectType.CORE.value
        ]
        a_level_combination = [
            s for s in subjects
            if s.subject_level == SubjectLevel.A_LEVEL.value and s.subject_type == SubjectType.COMBINATION.value
        ]
        details = {
            "o_level_core_subjects": len(o_level_core),
            "a_level_combination_subjects": len(a_level_combination),
        }

        recommendations: List[str] = []
        if len(o_level_core) < MIN_O_LEVEL_CORE:
            recommendations.append("Ensure O-Level has sufficient core subjects")
        if len(a_level_combination) < MIN_A_LEVEL_COMBINATION:
            recommendations.append("Ensure A-Level has sufficient combination subjects")

        if not recommendations:
            return ComplianceCheckResult(
                id=self.check_id,
                check_type=self.check_type,
                status=CheckStatus.PASS,
                message="Division calculation requirements are met",
                details=details,
            )
        return ComplianceCheckResult(
            id=self.check_id,
            check_type=self.check_type,
            status=CheckStatus.WARNING,
            message="Division calculation requirements may not be fully met",
            details=details,
            recommendations=recommendations,
        )
