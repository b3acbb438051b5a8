from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .model import Content, ContentAssignment, ContentUsage, ContentVersion


@dataclass(frozen=True)
class ContentQuery:
    tenant_id: Optional[int] = None
    content_type: Optional[str] = None
    status: Optional[str] = None
    approval_status: Optional[str] = None
    grade_level: Optional[str] = None
    subject_id: Optional[int] = None
    created_by: Optional[int] = None
    search: Optional[str] = None
    visible_to_students: bool = False
    content_ids: Tuple[int, ...] = ()
    created_from: Optional[date] = None
    created_to: Optional[date] = None
    offset: int = 0
    limit: int = 25


class ContentRepository(Protocol):
    def list_content(self, query: ContentQuery) -> Tuple[List[Content], int]:
        raise NotImplementedError

    def get_content(self, content_id: int) -> Optional[Content]:
        raise NotImplementedError

    def create_content(
        self,
        *,
        tenant_id: int,
        title: str,
        description: Optional[str],
        content_type: str,
        status: str,
        approval_status: str,
        file_path: Optional[str],
        file_url: Optional[str],
        file_size: Optional[int],
        mime_type: Optional[str],
        category: Optional[str],
        tags: Sequence[str],
        grade_level: Optional[str],
        subject_id: Optional[int],
        created_by: int,
        approved_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def update_content(self, content_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def delete_content(self, content_id: int) -> bool:
        raise NotImplementedError

    def increment_counter(self, content_id: int, counter: str) -> None:
        """Add one to `views_count` or `downloads_count`."""
        raise NotImplementedError

    # versions
    def latest_version_number(self, content_id: int) -> int:
        raise NotImplementedError

    def add_version(
        self,
        *,
        tenant_id: int,
        content_id: int,
        version_number: int,
        title: str,
        description: Optional[str],
        file_path: Optional[str],
        file_url: Optional[str],
        changes_description: str,
        created_by: int,
    ) -> int:
        raise NotImplementedError

    def list_versions(self, content_id: int) -> List[ContentVersion]:
        raise NotImplementedError

    # assignments
    def create_assignment(
        self,
        *,
        tenant_id: int,
        content_id: int,
        assignment_type: str,
        target_id: str,
        assigned_by: int,
        due_date: Optional[date],
        instructions: Optional[str],
        is_mandatory: bool,
    ) -> int:
        raise NotImplementedError

    def list_assignments(self, content_id: int) -> List[ContentAssignment]:
        raise NotImplementedError

    # usage
    def record_usage(
        self,
        *,
        tenant_id: int,
        content_id: int,
        user_id: int,
        user_type: Optional[str],
        action: str,
        device_info: Optional[str],
        ip_address: Optional[str],
    ) -> int:
        raise NotImplementedError

    def list_usage(self, content_id: int, *, start: datetime, end: datetime) -> List[ContentUsage]:
        raise NotImplementedError
