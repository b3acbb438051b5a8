from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.enums import CheckStatus, CheckType


@dataclass(frozen=True)
class SubjectCompliance:
    subject_id: Optional[int]
    subject_name: str
    subject_level: str
    subject_type: str
    compliance_score: float
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class CourseCompliance:
    course_id: Optional[int]
    course_name: str
    compliance_score: float
    subject_compliance: List[SubjectCompliance] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ComplianceCheckResult:
    id: str
    check_type: CheckType
    status: CheckStatus
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ComplianceSummary:
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_checks: int


@dataclass(frozen=True)
class ComplianceReport:
    overall_compliance: float
    checks: List[ComplianceCheckResult]
    summary: ComplianceSummary
    recommendations: List[str]
    last_checked: str
