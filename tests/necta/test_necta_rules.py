import pytest

from src.shule_system.shule_system.academic.model import Course, Subject
from src.shule_system.shule_system.necta.rules import (
    check_course_compliance,
    check_subject_compliance,
    subjects_of,
)


def subject(sid, name, level="O_LEVEL", kind="CORE"):
    return Subject(subject_id=sid, tenant_id=1, subject_name=name, subject_code=f"S{sid}",
                   subject_level=level, subject_type=kind)


def test_clean_subject_scores_full_marks():
    result = check_subject_compliance(subject(1, "Mathematics"))
    assert result.compliance_score == 100
    assert result.issues == []


@pytest.mark.parametrize(
    "level, kind, name, expected",
    [
        ("KINDERGARTEN", "CORE", "Art", 80),
        ("O_LEVEL", "OPTIONAL", "Kiswahili", 90),
        ("O_LEVEL", "COMBINATION", "Art", 85),
        ("A_LEVEL", "CORE", "PCB", 90),
        ("A_LEVEL", "ELECTIVE", "Art", 65),
    ],
)
def test_subject_penalties(level, kind, name, expected):
    assert check_subject_compliance(subject(1, name, level, kind)).compliance_score == expected


def test_score_never_drops_below_zero_and_lists_recommendations():
    result = check_subject_compliance(subject(1, "PCB", "A_LEVEL", "ELECTIVE"))
    assert result.compliance_score >= 0
    assert len(result.issues) == len(result.recommendations)


def test_empty_course_loses_thirty_points():
    result = check_course_compliance(Course(1, 1, "Empty", "EMP"), [])
    assert result.compliance_score == 70
    assert result.issues == ["Course has no subjects assigned"]


def test_course_score_is_capped_by_subject_average():
    subjects = [subject(1, "Mathematics"), subject(2, "Kiswahili", kind="OPTIONAL")]
    result = check_course_compliance(Course(1, 1, "General", "GEN", subject_ids=(1, 2)), subjects)
    assert result.compliance_score == 95
    assert result.issues == ['Subject "Kiswahili" has compliance issues']
    assert len(result.subject_compliance) == 2


def test_subjects_of_keeps_course_order_and_skips_missing():
    subjects = [subject(1, "A"), subject(2, "B"), subject(3, "C")]
    course = Course(1, 1, "X", "X", subject_ids=(3, 9, 1))
    assert [s.subject_id for s in subjects_of(course, subjects)] == [3, 1]
