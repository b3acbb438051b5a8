from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ..academic.model import Course, Subject
from ..common.datetime_utils import now_local
from ..core.enums import CheckStatus
from .checks.base import ComplianceCheck
from .checks.course_structure_check import CourseStructureCheck
from .checks.division_calculation_check import DivisionCalculationCheck
from .checks.grading_system_check import GradingSystemCheck
from .checks.subject_level_check import SubjectLevelCheck
from .checks.subject_type_check import SubjectTypeCheck
from .model import ComplianceCheckResult, ComplianceReport, ComplianceSummary

GENERAL_RECOMMENDATIONS = (
    "Regularly review and update academic structure to maintain NECTA compliance",
    "Ensure all teachers are familiar with NECTA requirements",
    "Maintain accurate records of student performance for division calculations",
)


def default_checks() -> List[ComplianceCheck]:
    return [
        SubjectLevelCheck(),
        SubjectTypeCheck(),
        CourseStructureCheck(),
        GradingSystemCheck(),
        DivisionCalculationCheck(),
    ]


class NECTAComplianceChecker:
    """Runs every institution-wide check and folds them into one report."""

    def __init__(
        self,
        checks: Optional[Sequence[ComplianceCheck]] = None,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._checks = list(checks) if checks is not None else default_checks()
        self._clock = clock

    def generate_compliance_report(self, courses: Sequence[Course], subjects: Sequence[Subject]) -> ComplianceReport:
        results = [check.run(courses=courses, subjects=subjects) for check in self._checks]

        passed = sum(1 for r in results if r.status == CheckStatus.PASS)
        overall = (passed * 100) / len(results) if results else 0

        summary = ComplianceSummary(
            total_checks=len(results),
            passed_checks=passed,
            failed_checks=sum(1 for r in results if r.status == CheckStatus.FAIL),
            warning_checks=sum(1 for r in results if r.status == CheckStatus.WARNING),
        )

        return ComplianceReport(
            overall_compliance=overall,
            checks=results,
            summary=summary,
            recommendations=self._recommendations(results),
            last_checked=self._clock().isoformat(),
        )

    @staticmethod
    def _recommendations(results: Sequence[ComplianceCheckResult]) -> List[str]:
        collected: List[str] = []
        for result in results:
            collected.extend(result.recommendations)
        collected.extend(GENERAL_RECOMMENDATIONS)
        return list(dict.fromkeys(collected))
