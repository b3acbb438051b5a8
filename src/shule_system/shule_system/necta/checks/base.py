from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ...academic.model import Course, Subject
from ...core.enums import CheckType
from ..model import ComplianceCheckResult


class ComplianceCheck(ABC):
    """Strategy Pattern: one institution-wide NECTA rule."""

    check_id: str
    check_type: CheckType

    @abstractmethod
    def run(self, *, courses: Sequence[Course], subjects: Sequence[Subject]) -> ComplianceCheckResult:
        raise NotImplementedError
