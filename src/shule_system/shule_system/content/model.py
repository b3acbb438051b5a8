from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import (
    ApprovalStatus,
    ContentAssignmentStatus,
    ContentAssignmentType,
    ContentStatus,
    ContentType,
    UsageAction,
)


@dataclass(frozen=True)
class Content:
    content_id: int
    tenant_id: int
    title: str
    content_type: ContentType
    created_by: int
    description: Optional[str] = None
    status: ContentStatus = ContentStatus.DRAFT
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    category: Optional[str] = None
    tags: Tuple[str, ...] = ()
    grade_level: Optional[str] = None
    subject_id: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    views_count: int = 0
    downloads_count: int = 0
    assignments_count: int = 0
    creator_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_visible_to_students(self) -> bool:
        return self.status == ContentStatus.PUBLISHED and self.approval_status == ApprovalStatus.APPROVED


@dataclass(frozen=True)
class ContentVersion:
    version_id: int
    content_id: int
    version_number: int
    title: str
    description: Optional[str] = None
    file_path: Optional[str] = None
    file_url: Optional[str] = None
    changes_description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ContentAssignment:
    assignment_id: int
    tenant_id: int
    content_id: int
    assignment_type: ContentAssignmentType
    target_id: str
    assigned_by: int
    due_date: Optional[date] = None
    instructions: Optional[str] = None
    is_mandatory: bool = False
    status: ContentAssignmentStatus = ContentAssignmentStatus.ASSIGNED
    assigned_at: Optional[datetime] = None


@dataclass(frozen=True)
class ContentUsage:
    usage_id: int
    tenant_id: int
    content_id: int
    user_id: int
    action: UsageAction
    accessed_at: datetime
    user_type: Optional[str] = None
    device_info: Optional[str] = None
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class ContentAnalytics:
    content_id: int
    period: str
    start: datetime
    end: datetime
    total_usage: Dict[str, int] = field(default_factory=dict)
    views_over_time: List[Dict[str, Any]] = field(default_factory=list)
    user_engagement: List[Dict[str, Any]] = field(default_factory=list)
    device_stats: List[Dict[str, Any]] = field(default_factory=list)
