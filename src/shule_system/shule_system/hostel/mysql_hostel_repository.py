from __future__ import annotations

import json
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import (
    HostelAssignmentStatus,
    HostelReportType,
    HostelStatus,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceType,
    ReportFormat,
    RoomStatus,
)
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone, to_decimal
from .model import Hostel, HostelAssignment, HostelMaintenance, HostelReport, HostelRoom, HostelStats
from .repository import HostelQuery, HostelRepository

_HOSTEL_COLS = ("name", "description", "address", "total_capacity", "monthly_fee",
                "warden_name", "warden_email", "warden_phone", "gender", "status")
_ROOM_COLS = ("room_number", "capacity", "room_type", "floor_number", "monthly_fee",
              "amenities", "notes", "status", "is_active")
_ASSIGNMENT_COLS = ("status", "end_date", "notes")
_MAINTENANCE_COLS = ("title", "description", "maintenance_type", "priority", "status",
                     "scheduled_date", "completed_date", "cost", "vendor", "room_id")
_REPORT_COLS = ("status", "title")

_ASSIGNMENT_SELECT = """
    SELECT a.*, CONCAT(u.first_name, ' ', u.last_name) AS student_name,
           h.name AS hostel_name, r.room_number
    FROM hostel_assignments a
    JOIN users u ON u.user_id = a.student_user_id
    JOIN hostels h ON h.hostel_id = a.hostel_id
    JOIN hostel_rooms r ON r.room_id = a.room_id
"""

_ROOM_SELECT = """
    SELECT r.*,
           (SELECT COUNT(*) FROM hostel_assignments a
            WHERE a.room_id = r.room_id AND a.status='ACTIVE') AS active_assignments
    FROM hostel_rooms r
"""


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else to_decimal(value)


def _row_to_hostel(r: dict) -> Hostel:
    return Hostel(
        hostel_id=int(r["hostel_id"]),
        tenant_id=int(r["tenant_id"]),
        name=r["name"],
        description=r.get("description") or "",
        address=r.get("address") or "",
        total_capacity=int(r.get("total_capacity") or 0),
        monthly_fee=to_decimal(r.get("monthly_fee")),
        warden_name=r.get("warden_name") or "",
        warden_email=r.get("warden_email") or "",
        warden_phone=r.get("warden_phone"),
        gender=r.get("gender"),
        status=HostelStatus(r.get("status") or "ACTIVE"),
        created_at=r.get("created_at"),
    )


def _row_to_room(r: dict) -> HostelRoom:
    return HostelRoom(
        room_id=int(r["room_id"]),
        tenant_id=int(r["tenant_id"]),
        hostel_id=int(r["hostel_id"]),
        room_number=r["room_number"],
        capacity=int(r.get("capacity") or 0),
        room_type=r.get("room_type"),
        floor_number=r.get("floor_number"),
        monthly_fee=_optional_decimal(r.get("monthly_fee")),
        amenities=r.get("amenities"),
        notes=r.get("notes"),
        status=RoomStatus(r.get("status") or "AVAILABLE"),
        is_active=bool(r.get("is_active", 1)),
        active_assignments=int(r.get("active_assignments") or 0),
    )


def _row_to_assignment(r: dict) -> HostelAssignment:
    return HostelAssignment(
        assignment_id=int(r["assignment_id"]),
        tenant_id=int(r["tenant_id"]),
        hostel_id=int(r["hostel_id"]),
        room_id=int(r["room_id"]),
        student_user_id=int(r["student_user_id"]),
        start_date=r["start_date"],
        end_date=r.get("end_date"),
        monthly_fee=_optional_decimal(r.get("monthly_fee")),
        deposit_amount=_optional_decimal(r.get("deposit_amount")),
        notes=r.get("notes"),
        status=HostelAssignmentStatus(r.get("status") or "ACTIVE"),
        student_name=r.get("student_name"),
        hostel_name=r.get("hostel_name"),
        room_number=r.get("room_number"),
    )


def _row_to_maintenance(r: dict) -> HostelMaintenance:
    return HostelMaintenance(
        maintenance_id=int(r["maintenance_id"]),
        tenant_id=int(r["tenant_id"]),
        hostel_id=int(r["hostel_id"]),
        title=r["title"],
        maintenance_type=MaintenanceType(r["maintenance_type"]),
        priority=MaintenancePriority(r.get("priority") or "NORMAL"),
        status=MaintenanceStatus(r.get("status") or "SCHEDULED"),
        room_id=r.get("room_id"),
        description=r.get("description"),
        scheduled_date=r.get("scheduled_date"),
        completed_date=r.get("completed_date"),
        cost=_optional_decimal(r.get("cost")),
        vendor=r.get("vendor"),
    )


def _row_to_report(r: dict) -> HostelReport:
    raw = r.get("data")
    return HostelReport(
        report_id=int(r["report_id"]),
        tenant_id=int(r["tenant_id"]),
        report_type=HostelReportType(r["report_type"]),
        title=r["title"],
        format=ReportFormat(r.get("format") or "JSON"),
        status=r.get("status") or "GENERATED",
        hostel_id=r.get("hostel_id"),
        data=json.loads(raw) if raw else {},
        generated_by=r.get("generated_by"),
        generated_at=r.get("generated_at"),
    )


def _scoped_where(alias: str, query: HostelQuery, *, status_default: bool = True) -> Tuple[str, List[Any]]:
    where: List[str] = ["1=1"]
    params: List[Any] = []
    if query.tenant_id is not None:
        where.append(f"{alias}.tenant_id=%s")
        params.append(query.tenant_id)
    if query.status:
        where.append(f"{alias}.status=%s")
        params.append(query.status)
    elif status_default:
        where.append(f"{alias}.status<>'INACTIVE'")
    for attr, col in (("hostel_id", "hostel_id"), ("room_id", "room_id"),
                      ("student_id", "student_user_id"), ("maintenance_type", "maintenance_type"),
                      ("report_type", "report_type")):
        value = getattr(query, attr)
        if value is not None and value != "":
            where.append(f"{alias}.{col}=%s")
            params.append(value)
    return " AND ".join(where), params


class MySQLHostelRepository(HostelRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _update(self, table: str, key: str, row_id: int, fields: Dict[str, Any], allowed) -> bool:
        sql, params = build_update(fields, allowed)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE {table} SET {sql} WHERE {key}=%s", (*params, int(row_id)))
            return cur.rowcount > 0

    # ---- hostels ---------------------------------------------------------

    def list_hostels(self, query: HostelQuery) -> List[Hostel]:
        where, params = _scoped_where("h", HostelQuery(tenant_id=query.tenant_id, status=query.status))
        if query.search:
            where += " AND (h.name LIKE %s OR h.address LIKE %s OR h.warden_name LIKE %s)"
            params.extend([f"%{query.search}%"] * 3)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT h.* FROM hostels h WHERE {where} ORDER BY h.name", params)
            return [_row_to_hostel(r) for r in fetchall(cur)]

    def get_hostel(self, hostel_id: int) -> Optional[Hostel]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM hostels WHERE hostel_id=%s", (int(hostel_id),))
            row = fetchone(cur)
            return _row_to_hostel(row) if row else None

    def create_hostel(self, *, tenant_id, name, description, address, total_capacity, monthly_fee,
                      warden_name, warden_email, warden_phone, gender, status) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO hostels (tenant_id, name, description, address, total_capacity, monthly_fee,
                                     warden_name, warden_email, warden_phone, gender, status)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (tenant_id, name, description, address, total_capacity, monthly_fee,
                 warden_name, warden_email, warden_phone, gender, status),
            )
            return int(cur.lastrowid)

    def update_hostel(self, hostel_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("hostels", "hostel_id", hostel_id, fields, _HOSTEL_COLS)

    def count_hostel_dependencies(self, hostel_id: int) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        with db_cursor(self._conn_factory) as (_, cur):
            for key, table in (("rooms", "hostel_rooms"), ("assignments", "hostel_assignments"),
                               ("maintenance", "hostel_maintenance")):
                cur.execute(f"SELECT COUNT(*) AS n FROM {table} WHERE hostel_id=%s", (int(hostel_id),))
                counts[key] = int((fetchone(cur) or {}).get("n") or 0)
        return counts

    # ---- rooms -----------------------------------------------------------

    def list_rooms(self, query: HostelQuery) -> List[HostelRoom]:
        where, params = _scoped_where("r", HostelQuery(
            tenant_id=query.tenant_id, status=query.status, hostel_id=query.hostel_id))
        if query.search:
            where += " AND r.room_number LIKE %s"
            params.append(f"%{query.search}%")
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_ROOM_SELECT} WHERE {where} ORDER BY r.room_number", params)
            return [_row_to_room(r) for r in fetchall(cur)]

    def get_room(self, room_id: int) -> Optional[HostelRoom]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_ROOM_SELECT} WHERE r.room_id=%s", (int(room_id),))
            row = fetchone(cur)
            return _row_to_room(row) if row else None

    def create_room(self, *, tenant_id, hostel_id, room_number, capacity, room_type, floor_number,
                    monthly_fee, amenities, notes, status) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO hostel_rooms (tenant_id, hostel_id, room_number, capacity, room_type,
                                          floor_number, monthly_fee, amenities, notes, status, is_active)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,1)
                """,
                (tenant_id, hostel_id, room_number, capacity, room_type, floor_number,
                 monthly_fee, amenities, notes, status),
            )
            return int(cur.lastrowid)

    def update_room(self, room_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("hostel_rooms", "room_id", room_id, fields, _ROOM_COLS)

    def count_active_assignments(self, room_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT COUNT(*) AS n FROM hostel_assignments WHERE room_id=%s AND status='ACTIVE'",
                (int(room_id),),
            )
            return int((fetchone(cur) or {}).get("n") or 0)

    # ---- assignments -----------------------------------------------------

    def list_assignments(self, query: HostelQuery) -> List[HostelAssignment]:
        where, params = _scoped_where("a", HostelQuery(
            tenant_id=query.tenant_id, status=query.status, hostel_id=query.hostel_id,
            room_id=query.room_id, student_id=query.student_id))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_ASSIGNMENT_SELECT} WHERE {where} ORDER BY a.start_date DESC", params)
            return [_row_to_assignment(r) for r in fetchall(cur)]

    def get_assignment(self, assignment_id: int) -> Optional[HostelAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_ASSIGNMENT_SELECT} WHERE a.assignment_id=%s", (int(assignment_id),))
            row = fetchone(cur)
            return _row_to_assignment(row) if row else None

    def find_active_assignment_for_student(self, student_user_id: int) -> Optional[HostelAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"{_ASSIGNMENT_SELECT} WHERE a.student_user_id=%s AND a.status='ACTIVE' LIMIT 1",
                (int(student_user_id),),
            )
            row = fetchone(cur)
            return _row_to_assignment(row) if row else None

    def create_assignment(self, *, tenant_id, hostel_id, room_id, student_user_id, start_date: date,
                          end_date, monthly_fee, deposit_amount, notes, status) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO hostel_assignments (tenant_id, hostel_id, room_id, student_user_id, start_date,
                                                end_date, monthly_fee, deposit_amount, notes, status)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (tenant_id, hostel_id, room_id, student_user_id, start_date, end_date,
                 monthly_fee, deposit_amount, notes, status),
            )
            return int(cur.lastrowid)

    def update_assignment(self, assignment_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("hostel_assignments", "assignment_id", assignment_id, fields, _ASSIGNMENT_COLS)

    # ---- maintenance -----------------------------------------------------

    def list_maintenance(self, query: HostelQuery) -> List[HostelMaintenance]:
        where, params = _scoped_where("m", HostelQuery(
            tenant_id=query.tenant_id, status=query.status, hostel_id=query.hostel_id,
            room_id=query.room_id, maintenance_type=query.maintenance_type), status_default=False)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT m.* FROM hostel_maintenance m WHERE {where} ORDER BY m.scheduled_date DESC",
                params,
            )
            return [_row_to_maintenance(r) for r in fetchall(cur)]

    def get_maintenance(self, maintenance_id: int) -> Optional[HostelMaintenance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM hostel_maintenance WHERE maintenance_id=%s", (int(maintenance_id),))
            row = fetchone(cur)
            return _row_to_maintenance(row) if row else None

    def create_maintenance(self, *, tenant_id, hostel_id, room_id, title, description, maintenance_type,
                           priority, status, scheduled_date, cost, vendor) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO hostel_maintenance (tenant_id, hostel_id, room_id, title, description,
                                                maintenance_type, priority, status, scheduled_date, cost, vendor)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (tenant_id, hostel_id, room_id, title, description, maintenance_type,
                 priority, status, scheduled_date, cost, vendor),
            )
            return int(cur.lastrowid)

    def update_maintenance(self, maintenance_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("hostel_maintenance", "maintenance_id", maintenance_id, fields, _MAINTENANCE_COLS)

    # ---- reports ---------------------------------------------------------

    def list_reports(self, query: HostelQuery) -> List[HostelReport]:
        where, params = _scoped_where("rp", HostelQuery(
            tenant_id=query.tenant_id, status=query.status, hostel_id=query.hostel_id,
            report_type=query.report_type), status_default=False)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT rp.* FROM hostel_reports rp WHERE {where} AND rp.status<>'FAILED' "
                "ORDER BY rp.generated_at DESC",
                params,
            )
            return [_row_to_report(r) for r in fetchall(cur)]

    def get_report(self, report_id: int) -> Optional[HostelReport]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM hostel_reports WHERE report_id=%s", (int(report_id),))
            row = fetchone(cur)
            return _row_to_report(row) if row else None

    def create_report(self, *, tenant_id, hostel_id, report_type, title, format, data, status,
                      generated_by) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO hostel_reports (tenant_id, hostel_id, report_type, title, format, data,
                                            status, generated_by, generated_at)
                VALUES (%s,%s,%s,%s,%s,%s,%s,%s,NOW())
                """,
                (tenant_id, hostel_id, report_type, title, format,
                 json.dumps(data, default=str), status, generated_by),
            )
            return int(cur.lastrowid)

    def update_report(self, report_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("hostel_reports", "report_id", report_id, fields, _REPORT_COLS)

    # ---- stats -----------------------------------------------------------

    def get_stats(self, tenant_id: int) -> HostelStats:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT
                  (SELECT COUNT(*) FROM hostels WHERE tenant_id=%s AND status='ACTIVE') AS total_hostels,
                  (SELECT COUNT(*) FROM hostel_rooms WHERE tenant_id=%s
                     AND status IN ('AVAILABLE','OCCUPIED')) AS total_rooms,
                  (SELECT COUNT(*) FROM hostel_assignments WHERE tenant_id=%s) AS total_assignments,
                  (SELECT COUNT(*) FROM hostel_assignments WHERE tenant_id=%s
                     AND status='ACTIVE') AS active_assignments,
                  (SELECT COUNT(*) FROM hostel_rooms WHERE tenant_id=%s AND status='AVAILABLE') AS available_rooms,
                  (SELECT COUNT(*) FROM hostel_rooms WHERE tenant_id=%s AND status='OCCUPIED') AS occupied_rooms,
                  (SELECT COUNT(*) FROM hostel_maintenance WHERE tenant_id=%s
                     AND status IN ('SCHEDULED','IN_PROGRESS')) AS maintenance_requests,
                  (SELECT COUNT(*) FROM hostel_maintenance WHERE tenant_id=%s
                     AND status='COMPLETED') AS completed_maintenance
                """,
                (tenant_id,) * 8,
            )
            row = fetchone(cur) or {}
        return HostelStats(**{k: int(row.get(k) or 0) for k in (
            "total_hostels", "total_rooms", "total_assignments", "active_assignments",
            "available_rooms", "occupied_rooms", "maintenance_requests", "completed_maintenance")})
