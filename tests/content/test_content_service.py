from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from src.shule_system.shule_system.content.model import Content, ContentAssignment, ContentUsage, ContentVersion
from src.shule_system.shule_system.content.service import ContentService, parse_tags, period_range
from src.shule_system.shule_system.content.storage import ContentFileStore
from src.shule_system.shule_system.core.enums import (
    ApprovalStatus,
    ContentAssignmentType,
    ContentStatus,
    ContentType,
    RoleName,
    UsageAction,
)
from src.shule_system.shule_system.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)

from tests.conftest import make_user

NOW = datetime(2026, 5, 4, 9, 0)


class InMemoryContent:
    def __init__(self):
        self.items = {}
        self.versions = []
        self.assignments = {}
        self.usage = []
        self.queries = []

    def list_content(self, query):
        self.queries.append(query)
        rows = [
            c for c in self.items.values()
            if not query.visible_to_students or c.is_visible_to_students
        ]
        return rows, len(rows)

    def get_content(self, content_id):
        return self.items.get(content_id)

    def create_content(self, **kw):
        content_id = len(self.items) + 1
        kw["content_type"] = ContentType(kw["content_type"])
        kw["status"] = ContentStatus(kw["status"])
        kw["approval_status"] = ApprovalStatus(kw["approval_status"])
        kw["tags"] = tuple(kw["tags"])
        self.items[content_id] = Content(content_id=content_id, **kw)
        return content_id

    def update_content(self, content_id, *, fields):
        fields = dict(fields)
        for key, enum_cls in (("status", ContentStatus), ("approval_status", ApprovalStatus),
                              ("content_type", ContentType)):
            if key in fields:
                fields[key] = enum_cls(fields[key])
        self.items[content_id] = replace(self.items[content_id], **fields)
        return True

    def delete_content(self, content_id):
        return self.items.pop(content_id, None) is not None

    def increment_counter(self, content_id, counter):
        item = self.items[content_id]
        self.items[content_id] = replace(item, **{counter: getattr(item, counter) + 1})

    def latest_version_number(self, content_id):
        return max((v.version_number for v in self.versions if v.content_id == content_id), default=0)

    def add_version(self, *, tenant_id, **kw):
        version_id = len(self.versions) + 1
        self.versions.append(ContentVersion(version_id=version_id, **kw))
        return version_id

    def list_versions(self, content_id):
        return sorted((v for v in self.versions if v.content_id == content_id), key=lambda v: -v.version_number)

    def create_assignment(self, **kw):
        assignment_id = len(self.assignments) + 1
        kw["assignment_type"] = ContentAssignmentType(kw["assignment_type"])
        self.assignments[assignment_id] = ContentAssignment(assignment_id=assignment_id, **kw)
        return assignment_id

    def list_assignments(self, content_id):
        return [a for a in self.assignments.values() if a.content_id == content_id]

    def record_usage(self, **kw):
        usage_id = len(self.usage) + 1
        kw["action"] = UsageAction(kw["action"])
        self.usage.append(ContentUsage(usage_id=usage_id, accessed_at=NOW, **kw))
        return usage_id

    def list_usage(self, content_id, *, start, end):
        return [u for u in self.usage if u.content_id == content_id and start <= u.accessed_at <= end]


@pytest.fixture
def repo():
    return InMemoryContent()


@pytest.fixture
def service(repo, tmp_path):
    return ContentService(repo, ContentFileStore(str(tmp_path)), clock=lambda: NOW)


def _create(service, user, **data):
    return service.create_content(
        current_user=user, data={"title": "Photosynthesis", "content_type": "document", **data}
    )


def test_parse_tags_deduplicates():
    assert parse_tags("biology, plants ,biology,") == ("biology", "plants")
    assert parse_tags(["a", " ", "b"]) == ("a", "b")
    assert parse_tags(None) == ()


def test_period_range_falls_back_to_thirty_days():
    key, start, end = period_range("2w", NOW)
    assert key == "30d"
    assert end - start == timedelta(days=30)
    assert period_range("1y", NOW)[1] == NOW - timedelta(days=365)


def test_teacher_content_waits_for_approval(service, repo, teacher):
    content = _create(service, teacher, tags="biology,form-two")
    assert content.approval_status == ApprovalStatus.PENDING
    assert content.status == ContentStatus.DRAFT
    assert content.tags == ("biology", "form-two")
    assert repo.versions[0].changes_description == "Initial version"


def test_admin_content_is_approved_on_creation(service, tenant_admin):
    content = _create(service, tenant_admin)
    assert content.approval_status == ApprovalStatus.APPROVED
    assert content.approved_by == tenant_admin.user_id


def test_students_cannot_create(service, student):
    with pytest.raises(AuthorizationError):
        _create(service, student)


def test_unapproved_content_cannot_be_published(service, teacher):
    content = _create(service, teacher)
    with pytest.raises(ValidationError):
        service.update_content(current_user=teacher, content_id=content.content_id, changes={"status": "published"})


def test_students_only_see_published_approved_content(service, tenant_admin, teacher, student):
    draft = _create(service, teacher)
    with pytest.raises(NotFoundError):
        service.get_content(current_user=student, content_id=draft.content_id)

    service.approve_content(current_user=tenant_admin, content_id=draft.content_id, notes="Good")
    visible = service.get_content(current_user=student, content_id=draft.content_id)
    assert visible.status == ContentStatus.PUBLISHED
    assert visible.views_count == 1


def test_list_marks_student_queries(service, repo, teacher, student):
    _create(service, teacher)
    assert service.list_content(current_user=student).total == 0
    assert service.list_content(current_user=teacher).total == 1
    assert [q.visible_to_students for q in repo.queries] == [True, False]


def test_only_owner_or_admin_edits(service, users, teacher):
    colleague = users.add(make_user(70, RoleName.TEACHER))
    content = _create(service, teacher)
    with pytest.raises(AuthorizationError):
        service.update_content(current_user=colleague, content_id=content.content_id, changes={"title": "Mine"})


def test_significant_change_adds_version(service, repo, teacher):
    content = _create(service, teacher)
    service.update_content(current_user=teacher, content_id=content.content_id, changes={"category": "notes"})
    assert len(repo.versions) == 1

    service.update_content(
        current_user=teacher, content_id=content.content_id,
        changes={"title": "Photosynthesis II", "changes_description": "Added diagrams"},
    )
    versions = service.list_versions(current_user=teacher, content_id=content.content_id)
    assert [v.version_number for v in versions] == [2, 1]
    assert versions[0].title == "Photosynthesis II"
    assert versions[0].changes_description == "Added diagrams"


def test_rejection_needs_reason(service, tenant_admin, teacher):
    content = _create(service, teacher)
    with pytest.raises(ValidationError):
        service.reject_content(current_user=tenant_admin, content_id=content.content_id, notes=" ")
    rejected = service.reject_content(current_user=tenant_admin, content_id=content.content_id, notes="Blurry")
    assert rejected.approval_status == ApprovalStatus.REJECTED
    assert rejected.review_notes == "Blurry"


def test_teachers_cannot_approve(service, teacher):
    content = _create(service, teacher)
    with pytest.raises(AuthorizationError):
        service.approve_content(current_user=teacher, content_id=content.content_id)


def test_assign_to_targets(service, teacher):
    content = _create(service, teacher)
    created = service.assign_content(
        current_user=teacher, content_id=content.content_id,
        data={"assignment_type": "class", "target_ids": [1, "1", 2], "due_date": "2026-05-10"},
    )
    assert [a.target_id for a in created] == ["1", "2"]
    with pytest.raises(ValidationError):
        service.assign_content(current_user=teacher, content_id=content.content_id,
                               data={"assignment_type": "class", "target_ids": []})


def test_usage_and_analytics(service, tenant_admin, teacher):
    content = _create(service, tenant_admin)
    service.get_content(current_user=teacher, content_id=content.content_id, device_info="Chrome")
    service.record_usage(current_user=teacher, content_id=content.content_id, action="share")
    service.get_content(current_user=tenant_admin, content_id=content.content_id)

    analytics = service.get_analytics(current_user=teacher, content_id=content.content_id, period="7d")
    assert analytics.total_usage == {"view": 2, "share": 1}
    assert analytics.views_over_time == [{"date": NOW.date(), "views": 2}]
    assert analytics.user_engagement[0] == {"user_id": teacher.user_id, "user_type": "Teacher", "interactions": 2}
    assert {"device_info": "Unknown", "count": 2} in analytics.device_stats


def test_download_needs_file(service, teacher):
    content = _create(service, teacher)
    with pytest.raises(NotFoundError):
        service.download_path(current_user=teacher, content_id=content.content_id)


def test_export_json_summary(service, tenant_admin, teacher):
    _create(service, tenant_admin)
    _create(service, teacher, content_type="video")
    report = service.export_report(current_user=tenant_admin, fmt="json")
    assert report["summary"] == {
        "total_content": 2,
        "by_type": {"document": 1, "video": 1},
        "by_status": {"draft": 2},
    }


def test_export_csv(service, tenant_admin):
    _create(service, tenant_admin, grade_level="Form 2")
    export = service.export_report(current_user=tenant_admin, fmt="csv")
    assert export.filename == "content-report-2026-05-04.csv"
    header = export.content.decode("utf-8").splitlines()[0]
    assert header.startswith("Content ID,Title,Type,Status,Approval")
