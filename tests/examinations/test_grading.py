import pytest

from src.shule_system.shule_system.examinations.grading import (
    SECONDARY_SCALE,
    GradeBand,
    calculate_grade,
    scale_for,
    scale_problems,
)


@pytest.mark.parametrize(
    "percentage, grade, points",
    [
        (100, "A", 7),
        (80, "A", 7),
        (79.5, "A", 7),
        (79.4, "B", 5),
        (60, "B", 5),
        (45, "C", 3),
        (20, "D", 1),
        (19.49, "F", 0),
        (0, "F", 0),
    ],
)
def test_o_level_bands(percentage, grade, points):
    assert calculate_grade(percentage, "O_LEVEL") == (grade, points)


def test_university_uses_gpa_scale():
    assert calculate_grade(92, "UNIVERSITY") == ("A+", 4.0)
    assert calculate_grade(66, "UNIVERSITY") == ("C+", 2.7)
    assert calculate_grade(49, "UNIVERSITY") == ("F", 0.0)


def test_unknown_level_falls_back_to_o_level():
    assert scale_for("DIPLOMA") is SECONDARY_SCALE


def test_necta_scale_has_no_gaps():
    assert scale_problems(SECONDARY_SCALE) == []


def test_scale_problems_reports_bounds():
    problems = scale_problems([GradeBand("A", 10, 90, 1)])
    assert "Grading scale does not start at 0" in problems
    assert "Grading scale does not end at 100" in problems
    assert scale_problems([]) == ["Grading scale has no bands"]
