from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

from ...academic.model import Course, Subject
from ...core.enums import CheckStatus, CheckType
from ...examinations.grading import NECTA_SCALES, GradeBand, scale_problems
from ..model import ComplianceCheckResult
from .base import ComplianceCheck


class GradingSystemCheck(ComplianceCheck):
    """Validate the grading scales in use against the NECTA bands.

    With no custom scales configured the built-in NECTA scales are used and
    the check passes.
    """

    check_id = "grading_system_check"
    check_type = CheckType.GRADING_SYSTEM

    def __init__(self, scales: Optional[Dict[str, Sequence[GradeBand]]] = None):
        self._scales = scales

    def run(self, *, courses: Sequence[Course], subjects: Sequence[Subject]) -> ComplianceCheckResult:
        if self._scales is None:
            return ComplianceCheckResult(
                id=self.check_id,
                check_type=self.check_type,
                status=CheckStatus.PASS,
                message="Grading system is compliant with NECTA standards",
                details={"grading_system": "NECTA Compliant"},
            )

        problems = []
        for level, bands in self._scales.items():
            expected: Tuple[GradeBand, ...] = NECTA_SCALES.get(level, ())
            problems.extend(f"{level}: {p}" for p in scale_problems(bands))
            if expected and tuple(sorted(bands, key=lambda b: -b.min)) != expected:
                problems.append(f"{level}: bands differ from the NECTA scale")

        if not problems:
            return ComplianceCheckResult(
                id=self.check_id,
                check_type=self.check_type,
                status=CheckStatus.PASS,
                message="Grading system is compliant with NECTA standards",
                details={"grading_system": "NECTA Compliant", "levels": sorted(self._scales)},
            )
        return ComplianceCheckResult(
            id=self.check_id,
            check_type=self.check_type,
            status=CheckStatus.FAIL,
            message="Grading system does not match NECTA standards",
            details={"grading_system": "Custom", "problems": problems},
            recommendations=["Align grading scales with the NECTA grade bands"],
        )
