"""Per-record NECTA rules for subjects and courses.

Scores start at 100 and lose points per violation; they never go below 0.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from ..academic.model import Course, Subject
from ..core.enums import SubjectLevel, SubjectType
from .model import CourseCompliance, SubjectCompliance

VALID_LEVELS = frozenset(level.value for level in SubjectLevel)
VALID_TYPES = frozenset(kind.value for kind in SubjectType)

O_LEVEL_REQUIRED_CORE = ("Mathematics", "English", "Kiswahili", "Civics")
A_LEVEL_COMBINATIONS = ("PCB", "EGM", "HKL", "CBG", "HGE")

INVALID_LEVEL_PENALTY = 20
INVALID_TYPE_PENALTY = 20
O_LEVEL_COMBINATION_PENALTY = 15
A_LEVEL_TYPE_PENALTY = 15
MISPLACED_TYPE_PENALTY = 10
EMPTY_COURSE_PENALTY = 30


def is_valid_subject_level(level: str) -> bool:
    return level in VALID_LEVELS


def is_valid_subject_type(subject_type: str) -> bool:
    return subject_type in VALID_TYPES


def _o_level_findings(subject: Subject) -> Tuple[List[str], List[str], int]:
    issues: List[str] = []
    recommendations: List[str] = []
    reduction = 0

    if subject.subject_type == SubjectType.COMBINATION.value:
        issues.append("O-Level subjects cannot be Combination type")
        recommendations.append("Change subject type to Core or Optional for O-Level")
        reduction += O_LEVEL_COMBINATION_PENALTY

    if subject.subject_name in O_LEVEL_REQUIRED_CORE and subject.subject_type != SubjectType.CORE.value:
        issues.append(f"{subject.subject_name} should be a Core subject for O-Level")
        recommendations.append("Change subject type to Core")
        reduction += MISPLACED_TYPE_PENALTY

    return issues, recommendations, reduction


def _a_level_findings(subject: Subject) -> Tuple[List[str], List[str], int]:
    issues: List[str] = []
    recommendations: List[str] = []
    reduction = 0

    if not is_valid_subject_type(subject.subject_type):
        issues.append("Invalid subject type for A-Level")
        recommendations.append("Subject type must be Core, Optional, or Combination for A-Level")
        reduction += A_LEVEL_TYPE_PENALTY

    if subject.subject_name in A_LEVEL_COMBINATIONS and subject.subject_type != SubjectType.COMBINATION.value:
        issues.append(f"{subject.subject_name} should be a Combination subject for A-Level")
        recommendations.append("Change subject type to Combination")
        reduction += MISPLACED_TYPE_PENALTY

    return issues, recommendations, reduction


def check_subject_compliance(subject: Subject) -> SubjectCompliance:
    issues: List[str] = []
    recommendations: List[str] = []
    score = 100

    if not is_valid_subject_level(subject.subject_level):
        issues.append(f"Invalid subject level: {subject.subject_level}")
        recommendations.append("Subject level must be one of: Primary, O-Level, A-Level, University")
        score -= INVALID_LEVEL_PENALTY

    if not is_valid_subject_type(subject.subject_type):
        issues.append(f"Invalid subject type: {subject.subject_type}")
        recommendations.append("Subject type must be one of: Core, Optional, Combination")
        score -= INVALID_TYPE_PENALTY

    level_rules = {
        SubjectLevel.O_LEVEL.value: _o_level_findings,
        SubjectLevel.A_LEVEL.value: _a_level_findings,
    }.get(subject.subject_level)
    if level_rules:
        extra_issues, extra_recs, reduction = level_rules(subject)
        issues.extend(extra_issues)
        recommendations.extend(extra_recs)
        score -= reduction

    return SubjectCompliance(
        subject_id=subject.subject_id,
        subject_name=subject.subject_name,
        subject_level=subject.subject_level,
        subject_type=subject.subject_type,
        compliance_score=float(max(0, score)),
        issues=issues,
        recommendations=recommendations,
    )


def check_course_compliance(course: Course, subjects: Sequence[Subject]) -> CourseCompliance:
    issues: List[str] = []
    recommendations: List[str] = []
    score = 100.0

    if not subjects:
        issues.append("Course has no subjects assigned")
        recommendations.append("Assign at least one subject to the course")
        score -= EMPTY_COURSE_PENALTY

    per_subject: List[SubjectCompliance] = []
    for subject in subjects:
        result = check_subject_compliance(subject)
        per_subject.append(result)
        if result.compliance_score < 100:
            issues.append(f'Subject "{subject.subject_name}" has compliance issues')

    if per_subject:
        average = sum(s.compliance_score for s in per_subject) / len(per_subject)
        score = min(score, average)

    return CourseCompliance(
        course_id=course.course_id,
        course_name=course.course_name,
        compliance_score=score,
        subject_compliance=per_subject,
        issues=issues,
        recommendations=recommendations,
    )


def subjects_of(course: Course, subjects: Iterable[Subject]) -> List[Subject]:
    """The subjects (from `subjects`) that belong to `course`, in course order."""
    by_id = {s.subject_id: s for s in subjects}
    return [by_id[sid] for sid in course.subject_ids if sid in by_id]
