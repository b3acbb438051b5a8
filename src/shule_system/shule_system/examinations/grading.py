"""NECTA grading scales.

Secondary levels share one letter scale worth division points; university
results use a 4.0 GPA scale. Unknown levels fall back to the O-Level scale.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Sequence, Tuple, Union

from ..common.validators import round_half_up
from ..core.enums import SubjectLevel

Number = Union[int, float, Decimal]


@dataclass(frozen=True)
class GradeBand:
    grade: str
    min: float
    max: float
    points: float

    def contains(self, percentage: float) -> bool:
        return self.min <= percentage <= self.max


SECONDARY_SCALE: Tuple[GradeBand, ...] = (
    GradeBand("A", 80, 100, 7),
    GradeBand("B", 60, 79, 5),
    GradeBand("C", 40, 59, 3),
    GradeBand("D", 20, 39, 1),
    GradeBand("F", 0, 19, 0),
)

UNIVERSITY_SCALE: Tuple[GradeBand, ...] = (
    GradeBand("A+", 90, 100, 4.0),
    GradeBand("A", 80, 89, 3.7),
    GradeBand("B+", 75, 79, 3.3),
    GradeBand("B", 70, 74, 3.0),
    GradeBand("C+", 65, 69, 2.7),
    GradeBand("C", 60, 64, 2.3),
    GradeBand("D", 50, 59, 2.0),
    GradeBand("F", 0, 49, 0.0),
)

NECTA_SCALES: Dict[str, Tuple[GradeBand, ...]] = {
    SubjectLevel.PRIMARY.value: SECONDARY_SCALE,
    SubjectLevel.O_LEVEL.value: SECONDARY_SCALE,
    SubjectLevel.A_LEVEL.value: SECONDARY_SCALE,
    SubjectLevel.UNIVERSITY.value: UNIVERSITY_SCALE,
}


def scale_for(level: str) -> Tuple[GradeBand, ...]:
    return NECTA_SCALES.get(level, NECTA_SCALES[SubjectLevel.O_LEVEL.value])


def calculate_grade(percentage: Number, level: str) -> Tuple[str, float]:
    """Return (grade, points) for a percentage on the level's scale.

    Percentages are rounded half-up to whole marks first, so 79.5 lands in
    the A band instead of falling between two bands.
    """
    value = float(round_half_up(percentage))
    for band in scale_for(level):
        if band.contains(value):
            return band.grade, band.points
    return "F", 0


def scale_problems(bands: Sequence[GradeBand]) -> List[str]:
    """Describe gaps/overlaps in a custom scale (empty when it covers 0-100 exactly once)."""
    problems: List[str] = []
    ordered = sorted(bands, key=lambda b: b.min)
    if not ordered:
        return ["Grading scale has no bands"]
    if ordered[0].min != 0:
        problems.append("Grading scale does not start at 0")
    if ordered[-1].max != 100:
        problems.append("Grading scale does not end at 100")
    for lower, upper in zip(ordered, ordered[1:]):
        if upper.min != lower.max + 1:
            problems.append(f"Bands {lower.grade} and {upper.grade} are not contiguous")
    return problems
