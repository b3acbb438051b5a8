from datetime import datetime

import pytest

from src.shule_system.shule_system.academic.model import Course, Subject
from src.shule_system.shule_system.core.enums import CheckStatus, RoleName
from src.shule_system.shule_system.core.exceptions import AuthorizationError
from src.shule_system.shule_system.examinations.grading import SECONDARY_SCALE, GradeBand
from src.shule_system.shule_system.necta.checker import GENERAL_RECOMMENDATIONS, NECTAComplianceChecker
from src.shule_system.shule_system.necta.checks.course_structure_check import CourseStructureCheck
from src.shule_system.shule_system.necta.checks.grading_system_check import GradingSystemCheck
from src.shule_system.shule_system.necta.checks.subject_level_check import SubjectLevelCheck
from src.shule_system.shule_system.necta.service import NECTAComplianceService

from tests.conftest import make_user


def subject(sid, level="O_LEVEL", kind="CORE", tenant_id=1):
    return Subject(subject_id=sid, tenant_id=tenant_id, subject_name=f"Subject {sid}",
                   subject_code=f"S{sid}", subject_level=level, subject_type=kind)


def complete_catalogue():
    subjects = [subject(i) for i in range(1, 8)]
    subjects += [subject(i, "A_LEVEL", "COMBINATION") for i in range(8, 11)]
    courses = [Course(1, 1, "PCM", "PCM", subject_ids=(8, 9, 10))]
    return courses, subjects


def fixed_clock():
    return datetime(2026, 3, 1, 9, 30)


def test_complete_catalogue_is_fully_compliant():
    courses, subjects = complete_catalogue()
    report = NECTAComplianceChecker(clock=fixed_clock).generate_compliance_report(courses, subjects)
    assert report.overall_compliance == 100
    assert report.summary.passed_checks == 5
    assert report.last_checked == "2026-03-01T09:30:00"
    assert report.recommendations == list(GENERAL_RECOMMENDATIONS)


def test_failures_and_warnings_are_counted():
    subjects = [subject(1, "NURSERY"), subject(2)]
    courses = [Course(1, 1, "Empty", "EMP")]
    report = NECTAComplianceChecker(clock=fixed_clock).generate_compliance_report(courses, subjects)

    statuses = {c.id: c.status for c in report.checks}
    assert statuses["subject_level_check"] == CheckStatus.FAIL
    assert statuses["course_structure_check"] == CheckStatus.WARNING
    assert statuses["division_calculation_check"] == CheckStatus.WARNING
    assert report.summary.failed_checks == 1
    assert report.summary.warning_checks == 2
    assert report.overall_compliance == 40


def test_recommendations_are_deduplicated():
    report = NECTAComplianceChecker(
        [SubjectLevelCheck(), SubjectLevelCheck()], clock=fixed_clock
    ).generate_compliance_report([], [subject(1, "NURSERY")])
    assert report.recommendations.count(report.checks[0].recommendations[0]) == 1


def test_no_checks_gives_zero():
    report = NECTAComplianceChecker([], clock=fixed_clock).generate_compliance_report([], [])
    assert report.overall_compliance == 0
    assert report.summary.total_checks == 0


def test_course_structure_check_details():
    result = CourseStructureCheck().run(courses=[Course(1, 1, "A", "A"), Course(2, 1, "B", "B", subject_ids=(1,))],
                                        subjects=[])
    assert result.details == {"total_courses": 2, "courses_without_subjects": 1}


def test_grading_check_accepts_necta_scale_and_rejects_gaps():
    ok = GradingSystemCheck({"O_LEVEL": SECONDARY_SCALE}).run(courses=[], subjects=[])
    assert ok.status == CheckStatus.PASS

    gappy = (GradeBand("A", 80, 100, 7), GradeBand("F", 0, 50, 0))
    bad = GradingSystemCheck({"O_LEVEL": gappy}).run(courses=[], subjects=[])
    assert bad.status == CheckStatus.FAIL
    assert "O_LEVEL: Bands F and A are not contiguous" in bad.details["problems"]


class CatalogueRepo:
    def __init__(self, courses, subjects):
        self.courses = {c.course_id: c for c in courses}
        self.subjects = {s.subject_id: s for s in subjects}
        self.seen_filters = []

    def list_courses(self, filters):
        self.seen_filters.append(filters)
        return list(self.courses.values())

    def list_subjects(self, filters):
        self.seen_filters.append(filters)
        return list(self.subjects.values())

    def get_subject(self, subject_id):
        return self.subjects.get(subject_id)

    def get_course(self, course_id):
        return self.courses.get(course_id)


def test_service_report_is_scoped_to_tenant(tenant_admin):
    courses, subjects = complete_catalogue()
    repo = CatalogueRepo(courses, subjects)
    report = NECTAComplianceService(repo, NECTAComplianceChecker(clock=fixed_clock)).tenant_report(
        current_user=tenant_admin, tenant_id=5
    )
    assert report.overall_compliance == 100
    assert {f.tenant_id for f in repo.seen_filters} == {1}
    assert {f.status for f in repo.seen_filters} == {"ACTIVE"}


def test_students_cannot_view_reports(student):
    with pytest.raises(AuthorizationError):
        NECTAComplianceService(CatalogueRepo([], [])).tenant_report(current_user=student)


def test_course_report_loads_member_subjects(teacher):
    courses, subjects = complete_catalogue()
    result = NECTAComplianceService(CatalogueRepo(courses, subjects)).course_report(
        current_user=teacher, course_id=1
    )
    assert result.compliance_score == 100
    assert [s.subject_id for s in result.subject_compliance] == [8, 9, 10]


def test_subject_report_other_tenant_forbidden():
    repo = CatalogueRepo([], [subject(1, tenant_id=2)])
    with pytest.raises(AuthorizationError):
        NECTAComplianceService(repo).subject_report(current_user=make_user(2, RoleName.TENANT_ADMIN), subject_id=1)
