from __future__ import annotations

import logging
from typing import List, Optional

from ..academic.filters import AcademicDataFilter, CourseFilters, SubjectFilters
from ..academic.model import Subject
from ..academic.repository import AcademicRepository
from ..core.enums import RecordStatus
from ..core.exceptions import AuthorizationError, NotFoundError
from ..users.access import ensure_same_tenant, require_user
from ..users.model import User
from .checker import NECTAComplianceChecker
from .model import ComplianceReport, CourseCompliance, SubjectCompliance
from .rules import check_course_compliance, check_subject_compliance

logger = logging.getLogger(__name__)

# Reports look at the whole catalogue, not one page of it.
REPORT_ROW_LIMIT = 10_000


class NECTAComplianceService:
    def __init__(self, academic: AcademicRepository, checker: Optional[NECTAComplianceChecker] = None):
        self._academic = academic
        self._checker = checker or NECTAComplianceChecker()

    def _data_filter(self, current_user: User) -> AcademicDataFilter:
        data_filter = AcademicDataFilter(require_user(current_user), self._academic)
        if not data_filter.checker.can_view_reports():
            raise AuthorizationError("You cannot view compliance reports")
        return data_filter

    def tenant_report(self, *, current_user: User, tenant_id: Optional[int] = None) -> ComplianceReport:
        """Report over every active course/subject the caller can see."""
        data_filter = self._data_filter(current_user)
        status = RecordStatus.ACTIVE.value
        courses = data_filter.get_courses(CourseFilters(status=status, tenant_id=tenant_id, limit=REPORT_ROW_LIMIT))
        subjects = data_filter.get_subjects(SubjectFilters(status=status, tenant_id=tenant_id, limit=REPORT_ROW_LIMIT))
        report = self._checker.generate_compliance_report(courses, subjects)
        logger.info(
            "NECTA report for user %s: %.0f%% (%d courses, %d subjects)",
            current_user.user_id,
            report.overall_compliance,
            len(courses),
            len(subjects),
        )
        return report

    def subject_report(self, *, current_user: User, subject_id: int) -> SubjectCompliance:
        self._data_filter(current_user)
        subject = self._academic.get_subject(int(subject_id))
        if not subject:
            raise NotFoundError("Subject not found")
        ensure_same_tenant(current_user, subject.tenant_id)
        return check_subject_compliance(subject)

    def course_report(self, *, current_user: User, course_id: int) -> CourseCompliance:
        self._data_filter(current_user)
        course = self._academic.get_course(int(course_id))
        if not course:
            raise NotFoundError("Course not found")
        ensure_same_tenant(current_user, course.tenant_id)

        subjects: List[Subject] = []
        for sid in course.subject_ids:
            subject = self._academic.get_subject(sid)
            if subject:
                subjects.append(subject)
        return check_course_compliance(course, subjects)
