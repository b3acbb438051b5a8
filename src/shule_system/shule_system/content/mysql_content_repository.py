from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import (
    ApprovalStatus,
    ContentAssignmentStatus,
    ContentAssignmentType,
    ContentStatus,
    ContentType,
    UsageAction,
)
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone, split_csv
from .model import Content, ContentAssignment, ContentUsage, ContentVersion
from .repository import ContentQuery, ContentRepository

_CONTENT_COLS = ("title", "description", "content_type", "status", "approval_status", "file_path",
                 "file_url", "file_size", "mime_type", "category", "tags", "grade_level", "subject_id",
                 "approved_by", "approved_at", "review_notes")
_COUNTERS = {"views_count", "downloads_count"}

_CONTENT_SELECT = """
    SELECT c.*, CONCAT(u.first_name, ' ', u.last_name) AS creator_name,
           (SELECT COUNT(*) FROM content_assignments ca WHERE ca.content_id = c.content_id) AS assignments_count
    FROM content c
    JOIN users u ON u.user_id = c.created_by
"""


def _row_to_content(r: dict) -> Content:
    return Content(
        content_id=int(r["content_id"]),
        tenant_id=int(r["tenant_id"]),
        title=r["title"],
        content_type=ContentType(r["content_type"]),
        created_by=int(r["created_by"]),
        description=r.get("description"),
        status=ContentStatus(r.get("status") or "draft"),
        approval_status=ApprovalStatus(r.get("approval_status") or "pending"),
        file_path=r.get("file_path"),
        file_url=r.get("file_url"),
        file_size=r.get("file_size"),
        mime_type=r.get("mime_type"),
        category=r.get("category"),
        tags=split_csv(r.get("tags")),
        grade_level=r.get("grade_level"),
        subject_id=r.get("subject_id"),
        approved_by=r.get("approved_by"),
        approved_at=r.get("approved_at"),
        review_notes=r.get("review_notes"),
        views_count=int(r.get("views_count") or 0),
        downloads_count=int(r.get("downloads_count") or 0),
        assignments_count=int(r.get("assignments_count") or 0),
        creator_name=r.get("creator_name"),
        created_at=r.get("created_at"),
    )


def _row_to_version(r: dict) -> ContentVersion:
    return ContentVersion(
        version_id=int(r["version_id"]),
        content_id=int(r["content_id"]),
        version_number=int(r["version_number"]),
        title=r["title"],
        description=r.get("description"),
        file_path=r.get("file_path"),
        file_url=r.get("file_url"),
        changes_description=r.get("changes_description"),
        created_by=r.get("created_by"),
        created_at=r.get("created_at"),
    )


def _row_to_assignment(r: dict) -> ContentAssignment:
    return ContentAssignment(
        assignment_id=int(r["assignment_id"]),
        tenant_id=int(r["tenant_id"]),
        content_id=int(r["content_id"]),
        assignment_type=ContentAssignmentType(r["assignment_type"]),
        target_id=str(r["target_id"]),
        assigned_by=int(r["assigned_by"]),
        due_date=r.get("due_date"),
        instructions=r.get("instructions"),
        is_mandatory=bool(r.get("is_mandatory")),
        status=ContentAssignmentStatus(r.get("status") or "assigned"),
        assigned_at=r.get("assigned_at"),
    )


def _row_to_usage(r: dict) -> ContentUsage:
    return ContentUsage(
        usage_id=int(r["usage_id"]),
        tenant_id=int(r["tenant_id"]),
        content_id=int(r["content_id"]),
        user_id=int(r["user_id"]),
        action=UsageAction(r["action_type"]),
        accessed_at=r["accessed_at"],
        user_type=r.get("user_type"),
        device_info=r.get("device_info"),
        ip_address=r.get("ip_address"),
    )


class MySQLContentRepository(ContentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _where(q: ContentQuery) -> Tuple[str, List[Any]]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        for attr in ("tenant_id", "content_type", "status", "approval_status", "grade_level",
                     "subject_id", "created_by"):
            value = getattr(q, attr)
            if value not in (None, ""):
                where.append(f"c.{attr}=%s")
                params.append(value)
        if q.visible_to_students:
            where.append("c.status='published' AND c.approval_status='approved'")
        if q.search:
            where.append("(c.title LIKE %s OR c.description LIKE %s OR FIND_IN_SET(%s, c.tags))")
            params.extend([f"%{q.search}%", f"%{q.search}%", q.search])
        if q.content_ids:
            where.append(f"c.content_id IN ({','.join(['%s'] * len(q.content_ids))})")
            params.extend(q.content_ids)
        if q.created_from:
            where.append("DATE(c.created_at)>=%s")
            params.append(q.created_from)
        if q.created_to:
            where.append("DATE(c.created_at)<=%s")
            params.append(q.created_to)
        return " AND ".join(where), params

    def list_content(self, query: ContentQuery) -> Tuple[List[Content], int]:
        where, params = self._where(query)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM content c WHERE {where}", params)
            total = int((fetchone(cur) or {}).get("n") or 0)
            cur.execute(
                f"{_CONTENT_SELECT} WHERE {where} ORDER BY c.created_at DESC LIMIT %s OFFSET %s",
                (*params, int(query.limit), int(query.offset)),
            )
            return [_row_to_content(r) for r in fetchall(cur)], total

    def get_content(self, content_id: int) -> Optional[Content]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_CONTENT_SELECT} WHERE c.content_id=%s", (int(content_id),))
            row = fetchone(cur)
            return _row_to_content(row) if row else None

    def create_content(self, *, tenant_id, title, description, content_type, status, approval_status,
                       file_path, file_url, file_size, mime_type, category, tags, grade_level, subject_id,
                       created_by, approved_by) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO content (tenant_id, title, description, content_type, status, approval_status,
                                     file_path, file_url, file_size, mime_type, category, tags, grade_level,
                                     subject_id, created_by, approved_by, approved_at)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,
                        CASE WHEN %s IS NULL THEN NULL ELSE NOW() END)
                """,
                (tenant_id, title, description, content_type, status, approval_status, file_path, file_url,
                 file_size, mime_type, category, ",".join(tags), grade_level, subject_id, created_by,
                 approved_by, approved_by),
            )
            return int(cur.lastrowid)

    def update_content(self, content_id: int, *, fields: Dict[str, Any]) -> bool:
        values = dict(fields)
        if "tags" in values and not isinstance(values["tags"], str):
            values["tags"] = ",".join(values["tags"])
        sql, params = build_update(values, _CONTENT_COLS)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE content SET {sql}, updated_at=NOW() WHERE content_id=%s", (*params, int(content_id)))
            return cur.rowcount > 0

    def delete_content(self, content_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            for table in ("content_usage", "content_assignments", "content_versions"):
                cur.execute(f"DELETE FROM {table} WHERE content_id=%s", (int(content_id),))
            cur.execute("DELETE FROM content WHERE content_id=%s", (int(content_id),))
            return cur.rowcount > 0

    def increment_counter(self, content_id: int, counter: str) -> None:
        if counter not in _COUNTERS:
            raise ValueError(f"Unknown counter {counter}")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE content SET {counter}={counter}+1 WHERE content_id=%s", (int(content_id),))

    # ---- versions --------------------------------------------------------

    def latest_version_number(self, content_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT MAX(version_number) AS v FROM content_versions WHERE content_id=%s", (int(content_id),))
            return int((fetchone(cur) or {}).get("v") or 0)

    def add_version(self, *, tenant_id, content_id, version_number, title, description, file_path, file_url,
                    changes_description, created_by) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO content_versions (tenant_id, content_id, version_number, title, description,
                                              file_path, file_url, changes_description, created_by)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (tenant_id, content_id, version_number, title, description, file_path, file_url,
                 changes_description, created_by),
            )
            return int(cur.lastrowid)

    def list_versions(self, content_id: int) -> List[ContentVersion]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM content_versions WHERE content_id=%s ORDER BY version_number DESC",
                (int(content_id),),
            )
            return [_row_to_version(r) for r in fetchall(cur)]

    # ---- assignments -----------------------------------------------------

    def create_assignment(self, *, tenant_id, content_id, assignment_type, target_id, assigned_by, due_date,
                          instructions, is_mandatory) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO content_assignments (tenant_id, content_id, assignment_type, target_id, assigned_by,
                                                 due_date, instructions, is_mandatory, status)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,'assigned')
                """,
                (tenant_id, content_id, assignment_type, target_id, assigned_by, due_date, instructions,
                 1 if is_mandatory else 0),
            )
            return int(cur.lastrowid)

    def list_assignments(self, content_id: int) -> List[ContentAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM content_assignments WHERE content_id=%s ORDER BY assigned_at DESC",
                (int(content_id),),
            )
            return [_row_to_assignment(r) for r in fetchall(cur)]

    # ---- usage -----------------------------------------------------------

    def record_usage(self, *, tenant_id, content_id, user_id, user_type, action, device_info, ip_address) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO content_usage (tenant_id, content_id, user_id, user_type, action_type,
                                           device_info, ip_address, accessed_at)
                VALUES (%s,%s,%s,%s,%s,%s,%s,NOW())
                """,
                (tenant_id, content_id, user_id, user_type, action, device_info, ip_address),
            )
            return int(cur.lastrowid)

    def list_usage(self, content_id: int, *, start: datetime, end: datetime) -> List[ContentUsage]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM content_usage WHERE content_id=%s AND accessed_at BETWEEN %s AND %s "
                "ORDER BY accessed_at",
                (int(content_id), start, end),
            )
            return [_row_to_usage(r) for r in fetchall(cur)]
