from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from werkzeug.datastructures import FileStorage

from ..common.datetime_utils import coerce_optional_date, now_local
from ..common.exporting import export_rows
from ..common.paging import Page, normalize_paging
from ..common.validators import optional_text, parse_enum, parse_int, require_non_empty
from ..core.enums import (
    ApprovalStatus,
    ContentAssignmentType,
    ContentStatus,
    ContentType,
    RoleName,
    UsageAction,
)
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_any_role, require_user, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.permissions import RolePermissionChecker
from .model import Content, ContentAnalytics, ContentAssignment, ContentVersion
from .repository import ContentQuery, ContentRepository
from .storage import ContentFileStore

logger = logging.getLogger(__name__)

CREATOR_ROLES = (RoleName.SUPER_ADMIN, RoleName.TENANT_ADMIN, RoleName.TEACHER)
ADMIN_ROLES = (RoleName.SUPER_ADMIN, RoleName.TENANT_ADMIN)

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
DEFAULT_PERIOD = "30d"
EXPORT_ROW_LIMIT = 10_000


def period_range(period: Optional[str], now: datetime) -> Tuple[str, datetime, datetime]:
    """Resolve an analytics period key; unknown keys fall back to 30 days."""
    key = period if period in PERIOD_DAYS else DEFAULT_PERIOD
    return key, now - timedelta(days=PERIOD_DAYS[key]), now


def parse_tags(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    items: Iterable[Any] = value if isinstance(value, (list, tuple)) else str(value).split(",")
    return tuple(dict.fromkeys(t for t in (str(i).strip() for i in items) if t))


class ContentService:
    """Learning material: uploads, review, assignment to learners and usage."""

    def __init__(
        self,
        content: ContentRepository,
        files: ContentFileStore,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._content = content
        self._files = files
        self._clock = clock

    @staticmethod
    def _is_admin(current_user: User) -> bool:
        return RolePermissionChecker(current_user).has_any_role(ADMIN_ROLES)

    def _students_only(self, current_user: User) -> bool:
        checker = RolePermissionChecker(current_user)
        return not checker.has_any_role(CREATOR_ROLES)

    def _require_owner_or_admin(self, current_user: User, content: Content) -> None:
        if content.created_by != current_user.user_id and not self._is_admin(current_user):
            raise AuthorizationError("Only the creator or an administrator can change this content")

    # ---- reads -----------------------------------------------------------

    def list_content(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Content]:
        require_user(current_user)
        params = params or {}
        page, limit = normalize_paging(params.get("page"), params.get("limit"))
        query = ContentQuery(
            tenant_id=tenant_scope(current_user),
            content_type=optional_text(params.get("content_type")),
            status=optional_text(params.get("status")),
            approval_status=optional_text(params.get("approval_status")),
            grade_level=optional_text(params.get("grade_level")),
            subject_id=parse_int(params["subject_id"], "subject_id") if params.get("subject_id") else None,
            created_by=parse_int(params["created_by"], "created_by") if params.get("created_by") else None,
            search=optional_text(params.get("search")),
            visible_to_students=self._students_only(current_user),
            offset=(page - 1) * limit,
            limit=limit,
        )
        items, total = self._content.list_content(query)
        return Page(items=items, page=page, limit=limit, total=total)

    def _load(self, current_user: User, content_id: Any) -> Content:
        require_user(current_user)
        content = self._content.get_content(parse_int(content_id, "content_id"))
        if not content:
            raise NotFoundError("Content not found")
        ensure_same_tenant(current_user, content.tenant_id)
        if self._students_only(current_user) and not content.is_visible_to_students:
            raise NotFoundError("Content not found")
        return content

    def get_content(self, *, current_user: User, content_id: Any, device_info: Optional[str] = None,
                    ip_address: Optional[str] = None) -> Content:
        """Fetch one item; every read counts as a view."""
        content = self._load(current_user, content_id)
        self._track(current_user, content, UsageAction.VIEW, device_info, ip_address)
        return self._content.get_content(content.content_id) or content

    def list_versions(self, *, current_user: User, content_id: Any) -> List[ContentVersion]:
        content = self._load(current_user, content_id)
        return self._content.list_versions(content.content_id)

    # ---- writes ----------------------------------------------------------

    def create_content(self, *, current_user: User, data: Dict[str, Any],
                       upload: Optional[FileStorage] = None) -> Content:
        require_any_role(current_user, CREATOR_ROLES)
        tenant = resolve_tenant(current_user, data.get("tenant_id"))
        title = require_non_empty(data.get("title"), "Title")
        content_type = parse_enum(ContentType, data.get("content_type"), "Content type")
        file_url = optional_text(data.get("file_url"))

        stored = self._files.save(upload) if upload is not None and upload.filename else None
        auto_approved = self._is_admin(current_user)
        try:
            content_id = self._content.create_content(
                tenant_id=tenant,
                title=title,
                description=optional_text(data.get("description")),
                content_type=content_type.value,
                status=ContentStatus.DRAFT.value,
                approval_status=(ApprovalStatus.APPROVED if auto_approved else ApprovalStatus.PENDING).value,
                file_path=stored.file_path if stored else None,
                file_url=file_url,
                file_size=stored.file_size if stored else None,
                mime_type=stored.mime_type if stored else None,
                category=optional_text(data.get("category")),
                tags=parse_tags(data.get("tags")),
                grade_level=optional_text(data.get("grade_level")),
                subject_id=parse_int(data["subject_id"], "subject_id") if data.get("subject_id") else None,
                created_by=current_user.user_id,
                approved_by=current_user.user_id if auto_approved else None,
            )
        except Exception:
            if stored:
                self._files.delete(stored.file_path)
            raise

        self._content.add_version(
            tenant_id=tenant,
            content_id=content_id,
            version_number=1,
            title=title,
            description=optional_text(data.get("description")),
            file_path=stored.file_path if stored else None,
            file_url=file_url,
            changes_description="Initial version",
            created_by=current_user.user_id,
        )
        logger.info("Content %s created by user %s", content_id, current_user.user_id)
        return self._load(current_user, content_id)

    def update_content(self, *, current_user: User, content_id: Any, changes: Dict[str, Any],
                       upload: Optional[FileStorage] = None) -> Content:
        content = self._load(current_user, content_id)
        self._require_owner_or_admin(current_user, content)

        fields: Dict[str, Any] = {}
        if changes.get("title") is not None:
            fields["title"] = require_non_empty(changes["title"], "Title")
        if "description" in changes:
            fields["description"] = optional_text(changes["description"])
        if changes.get("content_type"):
            fields["content_type"] = parse_enum(ContentType, changes["content_type"], "Content type").value
        if "file_url" in changes:
            fields["file_url"] = optional_text(changes["file_url"])
        for key in ("category", "grade_level"):
            if key in changes:
                fields[key] = optional_text(changes[key])
        if "tags" in changes:
            fields["tags"] = parse_tags(changes["tags"])
        if changes.get("subject_id"):
            fields["subject_id"] = parse_int(changes["subject_id"], "subject_id")
        if changes.get("status"):
            status = parse_enum(ContentStatus, changes["status"], "Status")
            if status == ContentStatus.PUBLISHED and content.approval_status != ApprovalStatus.APPROVED:
                raise ValidationError("Content must be approved before it is published")
            fields["status"] = status.value

        stored = self._files.save(upload) if upload is not None and upload.filename else None
        if stored:
            fields.update(file_path=stored.file_path, file_size=stored.file_size, mime_type=stored.mime_type)
        if not fields:
            raise ValidationError("No updatable fields were provided")

        self._content.update_content(content.content_id, fields=fields)
        if stored and content.file_path:
            self._files.delete(content.file_path)

        if stored or {"title", "description", "file_url"} & set(fields):
            self._content.add_version(
                tenant_id=content.tenant_id,
                content_id=content.content_id,
                version_number=self._content.latest_version_number(content.content_id) + 1,
                title=fields.get("title", content.title),
                description=fields.get("description", content.description),
                file_path=fields.get("file_path", content.file_path),
                file_url=fields.get("file_url", content.file_url),
                changes_description=optional_text(changes.get("changes_description")) or "Content updated",
                created_by=current_user.user_id,
            )
        return self._load(current_user, content.content_id)

    def delete_content(self, *, current_user: User, content_id: Any) -> None:
        content = self._load(current_user, content_id)
        self._require_owner_or_admin(current_user, content)
        self._content.delete_content(content.content_id)
        self._files.delete(content.file_path)
        logger.info("Content %s deleted by user %s", content.content_id, current_user.user_id)

    # ---- review ----------------------------------------------------------

    def approve_content(self, *, current_user: User, content_id: Any, notes: Optional[str] = None) -> Content:
        require_any_role(current_user, ADMIN_ROLES)
        content = self._load(current_user, content_id)
        self._content.update_content(content.content_id, fields={
            "approval_status": ApprovalStatus.APPROVED.value,
            "status": ContentStatus.PUBLISHED.value,
            "approved_by": current_user.user_id,
            "approved_at": self._clock(),
            "review_notes": optional_text(notes),
        })
        logger.info("Content %s approved by user %s", content.content_id, current_user.user_id)
        return self._load(current_user, content.content_id)

    def reject_content(self, *, current_user: User, content_id: Any, notes: Optional[str] = None) -> Content:
        require_any_role(current_user, ADMIN_ROLES)
        content = self._load(current_user, content_id)
        reason = require_non_empty(notes, "Rejection reason")
        self._content.update_content(content.content_id, fields={
            "approval_status": ApprovalStatus.REJECTED.value,
            "status": ContentStatus.DRAFT.value,
            "approved_by": None,
            "approved_at": None,
            "review_notes": reason,
        })
        logger.info("Content %s rejected by user %s", content.content_id, current_user.user_id)
        return self._load(current_user, content.content_id)

    # ---- assignments & usage ---------------------------------------------

    def assign_content(self, *, current_user: User, content_id: Any, data: Dict[str, Any]) -> List[ContentAssignment]:
        require_any_role(current_user, CREATOR_ROLES)
        content = self._load(current_user, content_id)
        assignment_type = parse_enum(ContentAssignmentType, data.get("assignment_type"), "Assignment type")
        targets = data.get("target_ids")
        if isinstance(targets, (str, int)):
            targets = [targets]
        target_ids = [str(t).strip() for t in targets or [] if str(t).strip()]
        if not target_ids:
            raise ValidationError("At least one target is required")
        due = coerce_optional_date(data.get("due_date"), "due_date")

        created = [
            self._content.create_assignment(
                tenant_id=content.tenant_id,
                content_id=content.content_id,
                assignment_type=assignment_type.value,
                target_id=target,
                assigned_by=current_user.user_id,
                due_date=due,
                instructions=optional_text(data.get("instructions")),
                is_mandatory=bool(data.get("is_mandatory", False)),
            )
            for target in dict.fromkeys(target_ids)
        ]
        logger.info("Content %s assigned to %d %s target(s)", content.content_id, len(created), assignment_type.value)
        wanted = set(created)
        return [a for a in self._content.list_assignments(content.content_id) if a.assignment_id in wanted]

    def list_assignments(self, *, current_user: User, content_id: Any) -> List[ContentAssignment]:
        content = self._load(current_user, content_id)
        return self._content.list_assignments(content.content_id)

    def _track(self, current_user: User, content: Content, action: UsageAction,
               device_info: Optional[str], ip_address: Optional[str]) -> None:
        roles = tuple(current_user.roles)
        self._content.record_usage(
            tenant_id=content.tenant_id,
            content_id=content.content_id,
            user_id=current_user.user_id,
            user_type=roles[0] if roles else None,
            action=action.value,
            device_info=device_info or "Unknown",
            ip_address=ip_address,
        )
        if action == UsageAction.VIEW:
            self._content.increment_counter(content.content_id, "views_count")
        elif action == UsageAction.DOWNLOAD:
            self._content.increment_counter(content.content_id, "downloads_count")

    def record_usage(self, *, current_user: User, content_id: Any, action: Any,
                     device_info: Optional[str] = None, ip_address: Optional[str] = None) -> None:
        content = self._load(current_user, content_id)
        self._track(current_user, content, parse_enum(UsageAction, action, "Action"), device_info, ip_address)

    def download_path(self, *, current_user: User, content_id: Any, device_info: Optional[str] = None,
                      ip_address: Optional[str] = None):
        content = self._load(current_user, content_id)
        if not content.file_path:
            raise NotFoundError("Content has no uploaded file")
        self._track(current_user, content, UsageAction.DOWNLOAD, device_info, ip_address)
        return self._files.path_for(content.file_path), content.mime_type

    # ---- analytics & export ----------------------------------------------

    def get_analytics(self, *, current_user: User, content_id: Any, period: Optional[str] = None) -> ContentAnalytics:
        require_any_role(current_user, CREATOR_ROLES)
        content = self._load(current_user, content_id)
        key, start, end = period_range(period, self._clock())
        usage = self._content.list_usage(content.content_id, start=start, end=end)

        totals = Counter(u.action.value for u in usage)
        per_day = Counter(u.accessed_at.date() for u in usage if u.action == UsageAction.VIEW)
        per_user = Counter((u.user_id, u.user_type) for u in usage)
        devices = Counter(u.device_info or "Unknown" for u in usage)

        return ContentAnalytics(
            content_id=content.content_id,
            period=key,
            start=start,
            end=end,
            total_usage=dict(totals),
            views_over_time=[{"date": d, "views": n} for d, n in sorted(per_day.items())],
            user_engagement=[
                {"user_id": uid, "user_type": utype, "interactions": n}
                for (uid, utype), n in per_user.most_common()
            ],
            device_stats=[{"device_info": d, "count": n} for d, n in devices.most_common(10)],
        )

    def export_report(self, *, current_user: User, fmt: str = "csv",
                      params: Optional[Dict[str, Any]] = None) -> Any:
        """CSV/Excel download, or a JSON summary when `fmt` is json."""
        require_any_role(current_user, CREATOR_ROLES)
        params = params or {}
        ids = params.get("content_ids") or ()
        if isinstance(ids, str):
            ids = [i for i in ids.split(",") if i.strip()]
        query = ContentQuery(
            tenant_id=tenant_scope(current_user),
            content_ids=tuple(parse_int(i, "content_ids") for i in ids),
            created_from=coerce_optional_date(params.get("start_date"), "start_date"),
            created_to=coerce_optional_date(params.get("end_date"), "end_date"),
            limit=EXPORT_ROW_LIMIT,
        )
        items, _ = self._content.list_content(query)

        if (fmt or "csv").lower() == "json":
            return {
                "content": items,
                "summary": {
                    "total_content": len(items),
                    "by_type": dict(Counter(c.content_type.value for c in items)),
                    "by_status": dict(Counter(c.status.value for c in items)),
                },
            }

        rows = [
            {
                "Content ID": c.content_id,
                "Title": c.title,
                "Type": c.content_type.value,
                "Status": c.status.value,
                "Approval": c.approval_status.value,
                "Creator": c.creator_name or "",
                "Grade Level": c.grade_level or "N/A",
                "Views": c.views_count,
                "Downloads": c.downloads_count,
                "Assignments": c.assignments_count,
                "Created Date": c.created_at.date().isoformat() if c.created_at else "",
            }
            for c in items
        ]
        return export_rows(
            rows,
            fmt=fmt,
            basename=f"content-report-{self._clock().date().isoformat()}",
            sheet_name="Content",
            columns=["Content ID", "Title", "Type", "Status", "Approval", "Creator", "Grade Level",
                     "Views", "Downloads", "Assignments", "Created Date"],
        )
