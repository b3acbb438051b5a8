from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from ..common.datetime_utils import coerce_date, coerce_optional_date, now_local
from ..common.exporting import ExportFile, export_rows
from ..common.validators import optional_text, parse_decimal, parse_enum, parse_int, require_non_empty, round_half_up
from ..core.enums import (
    HostelAssignmentStatus,
    HostelReportType,
    HostelStatus,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceType,
    ReportFormat,
    RoleName,
    RoomStatus,
    RoomType,
)
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_permission, require_user, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.repository import UserRepository
from .model import Hostel, HostelAssignment, HostelMaintenance, HostelReport, HostelRoom, HostelStats
from .repository import HostelQuery, HostelRepository
from .stats_cache import HostelStatsCache

logger = logging.getLogger(__name__)

_PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REPORT_GENERATED = "GENERATED"
REPORT_FAILED = "FAILED"

# Assignment status changes accepted through update_assignment.
_UPDATABLE_ASSIGNMENT_STATUSES = {
    HostelAssignmentStatus.ACTIVE,
    HostelAssignmentStatus.COMPLETED,
    HostelAssignmentStatus.CANCELLED,
}


def _is_number(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        return Decimal(str(value)).is_finite()
    except (InvalidOperation, ValueError, TypeError):
        return False


def _text_missing(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_phone(phone: str) -> bool:
    return bool(_PHONE_RE.match(re.sub(r"[\s\-()]", "", phone or "")))


def validate_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email or ""))


class HostelService:
    """Hostels, rooms, student assignments, maintenance and reports.

    Reads are open to any member of the tenant; writes need `hostel:manage`.
    Every write that can move occupancy numbers drops the tenant's cached
    statistics.
    """

    def __init__(
        self,
        hostels: HostelRepository,
        users: UserRepository,
        stats_cache: Optional[HostelStatsCache] = None,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._hostels = hostels
        self._users = users
        self._cache = stats_cache or HostelStatsCache()
        self._clock = clock

    def _manage(self, current_user: User) -> None:
        require_permission(current_user, "hostel", "manage")

    def _query(self, current_user: User, **filters: Any) -> HostelQuery:
        clean = {k: v for k, v in filters.items() if v not in (None, "")}
        for key in ("hostel_id", "room_id", "student_id"):
            if key in clean:
                clean[key] = parse_int(clean[key], key)
        return HostelQuery(tenant_id=tenant_scope(current_user), **clean)

    def _changed(self, tenant_id: int) -> None:
        self._cache.invalidate(tenant_id)

    # ---- hostels ---------------------------------------------------------

    def list_hostels(self, *, current_user: User, status: Optional[str] = None,
                     search: Optional[str] = None) -> List[Hostel]:
        return self._hostels.list_hostels(self._query(current_user, status=status, search=search))

    def get_hostel(self, *, current_user: User, hostel_id: int) -> Hostel:
        require_user(current_user)
        hostel = self._hostels.get_hostel(parse_int(hostel_id, "hostel_id"))
        if not hostel:
            raise NotFoundError("Hostel not found")
        ensure_same_tenant(current_user, hostel.tenant_id)
        return hostel

    @staticmethod
    def _hostel_errors(data: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        for key in ("name", "description", "address", "warden_name", "warden_email"):
            if _text_missing(data.get(key)):
                errors.append(f"{key} is required and must be a non-empty string")
        capacity = data.get("total_capacity")
        if not _is_number(capacity) or Decimal(str(capacity)) <= 0:
            errors.append("total_capacity is required and must be a positive number")
        fee = data.get("monthly_fee")
        if not _is_number(fee) or Decimal(str(fee)) < 0:
            errors.append("monthly_fee is required and must be a non-negative number")
        phone = data.get("warden_phone")
        if phone is not None:
            if not isinstance(phone, str):
                errors.append("warden_phone must be a string")
            elif phone and not validate_phone(phone):
                errors.append("warden_phone must be a valid phone number format")
        email = data.get("warden_email")
        if isinstance(email, str) and email.strip() and not validate_email(email.strip()):
            errors.append("warden_email must be a valid email format")
        return errors

    def create_hostel(self, *, current_user: User, data: Dict[str, Any]) -> Hostel:
        self._manage(current_user)
        tenant = resolve_tenant(current_user, data.get("tenant_id"))
        errors = self._hostel_errors(data)
        if errors:
            raise ValidationError("Validation failed", details=errors)

        hostel_id = self._hostels.create_hostel(
            tenant_id=tenant,
            name=data["name"].strip(),
            description=data["description"].strip(),
            address=data["address"].strip(),
            total_capacity=int(Decimal(str(data["total_capacity"]))),
            monthly_fee=parse_decimal(data["monthly_fee"], "monthly_fee"),
            warden_name=data["warden_name"].strip(),
            warden_email=data["warden_email"].strip(),
            warden_phone=optional_text(data.get("warden_phone")),
            gender=optional_text(data.get("gender")),
            status=HostelStatus.ACTIVE.value,
        )
        self._changed(tenant)
        logger.info("Hostel %s created in tenant %s", hostel_id, tenant)
        return self.get_hostel(current_user=current_user, hostel_id=hostel_id)

    def update_hostel(self, *, current_user: User, hostel_id: int, changes: Dict[str, Any]) -> Hostel:
        self._manage(current_user)
        hostel = self.get_hostel(current_user=current_user, hostel_id=hostel_id)
        merged = {
            "name": hostel.name,
            "description": hostel.description,
            "address": hostel.address,
            "total_capacity": hostel.total_capacity,
            "monthly_fee": hostel.monthly_fee,
            "warden_name": hostel.warden_name,
            "warden_email": hostel.warden_email,
            "warden_phone": hostel.warden_phone,
        }
        merged.update({k: v for k, v in changes.items() if k in merged})
        errors = self._hostel_errors(merged)
        if errors:
            raise ValidationError("Validation failed", details=errors)

        fields: Dict[str, Any] = {}
        for key in ("name", "description", "address", "warden_name", "warden_email"):
            if key in changes:
                fields[key] = changes[key].strip()
        if "warden_phone" in changes:
            fields["warden_phone"] = optional_text(changes["warden_phone"])
        if "gender" in changes:
            fields["gender"] = optional_text(changes["gender"])
        if "total_capacity" in changes:
            fields["total_capacity"] = int(Decimal(str(changes["total_capacity"])))
        if "monthly_fee" in changes:
            fields["monthly_fee"] = parse_decimal(changes["monthly_fee"], "monthly_fee")
        if "status" in changes:
            fields["status"] = parse_enum(HostelStatus, changes["status"], "status").value
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._hostels.update_hostel(hostel.hostel_id, fields=fields)
        self._changed(hostel.tenant_id)
        return self.get_hostel(current_user=current_user, hostel_id=hostel.hostel_id)

    def delete_hostel(self, *, current_user: User, hostel_id: int) -> None:
        self._manage(current_user)
        hostel = self.get_hostel(current_user=current_user, hostel_id=hostel_id)
        counts = self._hostels.count_hostel_dependencies(hostel.hostel_id)
        if any(counts.values()):
            raise ConflictError(
                "Cannot delete hostel with existing dependencies",
                details=[f"{key}: {n}" for key, n in counts.items() if n],
            )
        self._hostels.update_hostel(hostel.hostel_id, fields={"status": HostelStatus.INACTIVE.value})
        self._changed(hostel.tenant_id)
        logger.info("Hostel %s deactivated", hostel.hostel_id)

    # ---- rooms -----------------------------------------------------------

    def list_rooms(self, *, current_user: User, hostel_id: Any = None, status: Optional[str] = None,
                   search: Optional[str] = None) -> List[HostelRoom]:
        return self._hostels.list_rooms(self._query(current_user, hostel_id=hostel_id, status=status, search=search))

    def get_room(self, *, current_user: User, room_id: int) -> HostelRoom:
        require_user(current_user)
        room = self._hostels.get_room(parse_int(room_id, "room_id"))
        if not room:
            raise NotFoundError("Hostel room not found")
        ensure_same_tenant(current_user, room.tenant_id)
        return room

    def create_room(self, *, current_user: User, data: Dict[str, Any]) -> HostelRoom:
        self._manage(current_user)
        errors: List[str] = []
        hostel_id = data.get("hostel_id")
        if not _is_number(hostel_id) or Decimal(str(hostel_id)) <= 0:
            errors.append("hostel_id is required and must be a positive number")
        if _text_missing(data.get("room_number")):
            errors.append("room_number is required and must be a non-empty string")
        capacity = data.get("capacity")
        if not _is_number(capacity) or Decimal(str(capacity)) <= 0:
            errors.append("capacity is required and must be a positive number")
        floor = data.get("floor_number")
        if floor is not None and (not _is_number(floor) or Decimal(str(floor)) < 0):
            errors.append("floor_number must be a non-negative number")
        fee = data.get("monthly_fee")
        if fee is not None and (not _is_number(fee) or Decimal(str(fee)) < 0):
            errors.append("monthly_fee must be a non-negative number")
        room_type = data.get("room_type")
        if room_type is not None:
            valid = [t.value for t in RoomType]
            if not isinstance(room_type, str) or room_type.upper() not in valid:
                errors.append(f"room_type must be one of: {', '.join(valid)}")
        for key in ("amenities", "notes"):
            if data.get(key) is not None and not isinstance(data[key], str):
                errors.append(f"{key} must be a string")
        if errors:
            raise ValidationError("Validation failed", details=errors)

        hostel = self._hostels.get_hostel(int(Decimal(str(hostel_id))))
        if not hostel or hostel.status == HostelStatus.INACTIVE:
            raise NotFoundError("Hostel not found")
        ensure_same_tenant(current_user, hostel.tenant_id)

        room_id = self._hostels.create_room(
            tenant_id=hostel.tenant_id,
            hostel_id=hostel.hostel_id,
            room_number=data["room_number"].strip(),
            capacity=int(Decimal(str(capacity))),
            room_type=room_type.upper() if room_type else None,
            floor_number=int(Decimal(str(floor))) if floor is not None else None,
            monthly_fee=parse_decimal(fee, "monthly_fee") if fee is not None else None,
            amenities=optional_text(data.get("amenities")),
            notes=optional_text(data.get("notes")),
            status=RoomStatus.AVAILABLE.value,
        )
        self._changed(hostel.tenant_id)
        logger.info("Room %s added to hostel %s", room_id, hostel.hostel_id)
        return self.get_room(current_user=current_user, room_id=room_id)

    def update_room(self, *, current_user: User, room_id: int, changes: Dict[str, Any]) -> HostelRoom:
        self._manage(current_user)
        room = self.get_room(current_user=current_user, room_id=room_id)
        fields: Dict[str, Any] = {}
        if "room_number" in changes:
            fields["room_number"] = require_non_empty(changes["room_number"], "room_number")
        if "capacity" in changes:
            capacity = parse_int(changes["capacity"], "capacity")
            if capacity <= 0:
                raise ValidationError("capacity must be a positive number")
            if capacity < room.active_assignments:
                raise ValidationError("capacity cannot be lower than the number of active assignments")
            fields["capacity"] = capacity
        if "room_type" in changes:
            fields["room_type"] = parse_enum(RoomType, str(changes["room_type"]).upper(), "room_type").value
        if "floor_number" in changes:
            floor = parse_int(changes["floor_number"], "floor_number")
            if floor < 0:
                raise ValidationError("floor_number must be a non-negative number")
            fields["floor_number"] = floor
        if "monthly_fee" in changes:
            fields["monthly_fee"] = parse_decimal(changes["monthly_fee"], "monthly_fee")
        if "status" in changes:
            fields["status"] = parse_enum(RoomStatus, changes["status"], "status").value
        for key in ("amenities", "notes"):
            if key in changes:
                fields[key] = optional_text(changes[key])
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._hostels.update_room(room.room_id, fields=fields)
        self._changed(room.tenant_id)
        return self.get_room(current_user=current_user, room_id=room.room_id)

    def delete_room(self, *, current_user: User, room_id: int) -> None:
        self._manage(current_user)
        room = self.get_room(current_user=current_user, room_id=room_id)
        active = self._hostels.count_active_assignments(room.room_id)
        if active > 0:
            raise ValidationError(
                "Cannot delete room with active assignments",
                details=[f"active_assignments: {active}"],
            )
        self._hostels.update_room(
            room.room_id, fields={"status": RoomStatus.MAINTENANCE.value, "is_active": 0}
        )
        self._changed(room.tenant_id)
        logger.info("Room %s taken out of service", room.room_id)

    def _sync_room_status(self, room_id: int) -> RoomStatus:
        room = self._hostels.get_room(room_id)
        active = self._hostels.count_active_assignments(room_id)
        status = RoomStatus.AVAILABLE if active == 0 else RoomStatus.OCCUPIED
        if room and room.status in (RoomStatus.AVAILABLE, RoomStatus.OCCUPIED) and room.status != status:
            self._hostels.update_room(room_id, fields={"status": status.value})
            logger.info("Room %s is now %s", room_id, status.value)
        return status

    # ---- assignments -----------------------------------------------------

    def list_assignments(self, *, current_user: User, status: Optional[str] = None, student_id: Any = None,
                         hostel_id: Any = None, room_id: Any = None) -> List[HostelAssignment]:
        user = require_user(current_user)
        if RoleName.STUDENT.value in user.roles and RoleName.TENANT_ADMIN.value not in user.roles:
            student_id = user.user_id
        return self._hostels.list_assignments(self._query(
            current_user, status=status, student_id=student_id, hostel_id=hostel_id, room_id=room_id))

    def get_assignment(self, *, current_user: User, assignment_id: int) -> HostelAssignment:
        require_user(current_user)
        assignment = self._hostels.get_assignment(parse_int(assignment_id, "assignment_id"))
        if not assignment:
            raise NotFoundError("Hostel assignment not found")
        ensure_same_tenant(current_user, assignment.tenant_id)
        return assignment

    def create_assignment(self, *, current_user: User, data: Dict[str, Any]) -> HostelAssignment:
        self._manage(current_user)
        room = self._hostels.get_room(parse_int(data.get("room_id"), "room_id"))
        if not room or not room.is_active:
            raise NotFoundError("Room not found")
        ensure_same_tenant(current_user, room.tenant_id)
        if data.get("hostel_id") not in (None, "") and parse_int(data["hostel_id"], "hostel_id") != room.hostel_id:
            raise ValidationError("Room does not belong to the given hostel")

        active = self._hostels.count_active_assignments(room.room_id)
        if active >= room.capacity:
            raise ValidationError("Room is at full capacity")

        start = coerce_date(data.get("start_date"), "start_date")
        end = coerce_optional_date(data.get("end_date"), "end_date")
        if end is not None and end < start:
            raise ValidationError("end_date cannot be before start_date")

        student_id = parse_int(data.get("student_id"), "student_id")
        student = self._users.get_by_id(student_id)
        if not student or student.tenant_id != room.tenant_id:
            raise NotFoundError("Student not found")
        if RoleName.STUDENT.value not in student.roles:
            raise ValidationError("Only students can be assigned to a hostel")
        if self._hostels.find_active_assignment_for_student(student_id):
            raise ValidationError("Student already has an active hostel assignment")

        fee = data.get("monthly_fee")
        deposit = data.get("deposit_amount")
        assignment_id = self._hostels.create_assignment(
            tenant_id=room.tenant_id,
            hostel_id=room.hostel_id,
            room_id=room.room_id,
            student_user_id=student_id,
            start_date=start,
            end_date=end,
            monthly_fee=parse_decimal(fee, "monthly_fee") if fee not in (None, "") else room.monthly_fee,
            deposit_amount=parse_decimal(deposit, "deposit_amount") if deposit not in (None, "") else None,
            notes=optional_text(data.get("notes")),
            status=HostelAssignmentStatus.ACTIVE.value,
        )
        if active + 1 >= room.capacity:
            self._hostels.update_room(room.room_id, fields={"status": RoomStatus.OCCUPIED.value})
            logger.info("Room %s is now full", room.room_id)
        self._changed(room.tenant_id)
        logger.info("Student %s assigned to room %s", student_id, room.room_id)
        return self.get_assignment(current_user=current_user, assignment_id=assignment_id)

    def update_assignment(self, *, current_user: User, assignment_id: int, changes: Dict[str, Any]) -> HostelAssignment:
        self._manage(current_user)
        assignment = self.get_assignment(current_user=current_user, assignment_id=assignment_id)
        fields: Dict[str, Any] = {}
        status = None
        if changes.get("status"):
            try:
                status = HostelAssignmentStatus(changes["status"])
            except ValueError:
                status = None
            if status in _UPDATABLE_ASSIGNMENT_STATUSES:
                fields["status"] = status.value
        if changes.get("end_date"):
            end = coerce_date(changes["end_date"], "end_date")
            if end < assignment.start_date:
                raise ValidationError("end_date cannot be before start_date")
            fields["end_date"] = end
        if "notes" in changes:
            fields["notes"] = optional_text(changes["notes"])
        if not fields:
            raise ValidationError("No updatable fields were provided")

        self._hostels.update_assignment(assignment.assignment_id, fields=fields)
        if status in (HostelAssignmentStatus.COMPLETED, HostelAssignmentStatus.CANCELLED):
            self._sync_room_status(assignment.room_id)
        self._changed(assignment.tenant_id)
        return self.get_assignment(current_user=current_user, assignment_id=assignment.assignment_id)

    def delete_assignment(self, *, current_user: User, assignment_id: int) -> None:
        self._manage(current_user)
        assignment = self.get_assignment(current_user=current_user, assignment_id=assignment_id)
        self._hostels.update_assignment(
            assignment.assignment_id,
            fields={"status": HostelAssignmentStatus.CANCELLED.value, "end_date": self._clock().date()},
        )
        self._sync_room_status(assignment.room_id)
        self._changed(assignment.tenant_id)
        logger.info("Hostel assignment %s cancelled", assignment.assignment_id)

    # ---- maintenance -----------------------------------------------------

    def list_maintenance(self, *, current_user: User, status: Optional[str] = None, hostel_id: Any = None,
                         room_id: Any = None, maintenance_type: Optional[str] = None) -> List[HostelMaintenance]:
        return self._hostels.list_maintenance(self._query(
            current_user, status=status, hostel_id=hostel_id, room_id=room_id, maintenance_type=maintenance_type))

    def get_maintenance(self, *, current_user: User, maintenance_id: int) -> HostelMaintenance:
        require_user(current_user)
        record = self._hostels.get_maintenance(parse_int(maintenance_id, "maintenance_id"))
        if not record:
            raise NotFoundError("Maintenance record not found")
        ensure_same_tenant(current_user, record.tenant_id)
        return record

    def create_maintenance(self, *, current_user: User, data: Dict[str, Any]) -> HostelMaintenance:
        self._manage(current_user)
        hostel = self.get_hostel(current_user=current_user, hostel_id=data.get("hostel_id"))
        room_id = None
        if data.get("room_id") not in (None, ""):
            room = self.get_room(current_user=current_user, room_id=data["room_id"])
            if room.hostel_id != hostel.hostel_id:
                raise ValidationError("Room does not belong to the given hostel")
            room_id = room.room_id
        cost = data.get("cost")
        maintenance_id = self._hostels.create_maintenance(
            tenant_id=hostel.tenant_id,
            hostel_id=hostel.hostel_id,
            room_id=room_id,
            title=require_non_empty(data.get("title"), "title"),
            description=optional_text(data.get("description")),
            maintenance_type=parse_enum(MaintenanceType, data.get("maintenance_type"), "maintenance_type").value,
            priority=parse_enum(MaintenancePriority, data.get("priority") or "NORMAL", "priority").value,
            status=MaintenanceStatus.SCHEDULED.value,
            scheduled_date=coerce_date(data.get("scheduled_date"), "scheduled_date"),
            cost=parse_decimal(cost, "cost") if cost not in (None, "") else None,
            vendor=optional_text(data.get("vendor")),
        )
        self._changed(hostel.tenant_id)
        logger.info("Maintenance %s scheduled for hostel %s", maintenance_id, hostel.hostel_id)
        return self.get_maintenance(current_user=current_user, maintenance_id=maintenance_id)

    def update_maintenance(self, *, current_user: User, maintenance_id: int, changes: Dict[str, Any]) -> HostelMaintenance:
        self._manage(current_user)
        record = self.get_maintenance(current_user=current_user, maintenance_id=maintenance_id)
        fields: Dict[str, Any] = {}
        if "title" in changes:
            fields["title"] = require_non_empty(changes["title"], "title")
        if "description" in changes:
            fields["description"] = optional_text(changes["description"])
        if "vendor" in changes:
            fields["vendor"] = optional_text(changes["vendor"])
        if "maintenance_type" in changes:
            fields["maintenance_type"] = parse_enum(MaintenanceType, changes["maintenance_type"], "maintenance_type").value
        if "priority" in changes:
            fields["priority"] = parse_enum(MaintenancePriority, changes["priority"], "priority").value
        if changes.get("scheduled_date"):
            fields["scheduled_date"] = coerce_date(changes["scheduled_date"], "scheduled_date")
        if changes.get("cost") not in (None, ""):
            fields["cost"] = parse_decimal(changes["cost"], "cost")
        if "status" in changes:
            status = parse_enum(MaintenanceStatus, changes["status"], "status")
            fields["status"] = status.value
            if status == MaintenanceStatus.COMPLETED:
                fields["completed_date"] = self._clock()
        if changes.get("completed_date"):
            fields["completed_date"] = coerce_date(changes["completed_date"], "completed_date")
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._hostels.update_maintenance(record.maintenance_id, fields=fields)
        self._changed(record.tenant_id)
        return self.get_maintenance(current_user=current_user, maintenance_id=record.maintenance_id)

    def delete_maintenance(self, *, current_user: User, maintenance_id: int) -> None:
        self._manage(current_user)
        record = self.get_maintenance(current_user=current_user, maintenance_id=maintenance_id)
        self._hostels.update_maintenance(
            record.maintenance_id,
            fields={"status": MaintenanceStatus.CANCELLED.value, "completed_date": self._clock()},
        )
        self._changed(record.tenant_id)

    # ---- reports ---------------------------------------------------------

    def list_reports(self, *, current_user: User, report_type: Optional[str] = None,
                     hostel_id: Any = None) -> List[HostelReport]:
        return self._hostels.list_reports(self._query(current_user, report_type=report_type, hostel_id=hostel_id))

    def get_report(self, *, current_user: User, report_id: int) -> HostelReport:
        require_user(current_user)
        report = self._hostels.get_report(parse_int(report_id, "report_id"))
        if not report or report.status == REPORT_FAILED:
            raise NotFoundError("Hostel report not found")
        ensure_same_tenant(current_user, report.tenant_id)
        return report

    def build_report_data(self, tenant_id: int, report_type: HostelReportType,
                          hostel_id: Optional[int] = None) -> Dict[str, Any]:
        """Compute report rows from the current records of a tenant."""
        query = HostelQuery(tenant_id=tenant_id, hostel_id=hostel_id)
        if report_type == HostelReportType.OCCUPANCY:
            rows = []
            hostels = [h for h in self._hostels.list_hostels(HostelQuery(tenant_id=tenant_id))
                       if hostel_id is None or h.hostel_id == hostel_id]
            for hostel in hostels:
                rooms = self._hostels.list_rooms(HostelQuery(tenant_id=tenant_id, hostel_id=hostel.hostel_id))
                beds = sum(r.capacity for r in rooms)
                occupied = sum(r.active_assignments for r in rooms)
                rows.append({
                    "hostel": hostel.name,
                    "rooms": len(rooms),
                    "beds": beds,
                    "occupied_beds": occupied,
                    "occupancy_rate": float(round_half_up(occupied / beds * 100, 2)) if beds else 0.0,
                })
            return {"rows": rows}
        if report_type == HostelReportType.ROOM_AVAILABILITY:
            rows = [
                {
                    "room_number": r.room_number,
                    "hostel_id": r.hostel_id,
                    "room_type": r.room_type,
                    "capacity": r.capacity,
                    "free_beds": max(r.capacity - r.active_assignments, 0),
                    "status": r.status.value,
                }
                for r in self._hostels.list_rooms(query)
                if r.is_active and r.active_assignments < r.capacity
            ]
            return {"rows": rows}
        if report_type == HostelReportType.MAINTENANCE:
            records = self._hostels.list_maintenance(query)
            by_status: Dict[str, int] = {}
            for m in records:
                by_status[m.status.value] = by_status.get(m.status.value, 0) + 1
            rows = [
                {
                    "title": m.title,
                    "type": m.maintenance_type.value,
                    "priority": m.priority.value,
                    "status": m.status.value,
                    "scheduled_date": m.scheduled_date,
                    "cost": m.cost,
                }
                for m in records
            ]
            return {"by_status": by_status, "rows": rows}
        if report_type == HostelReportType.STUDENT_LIST:
            rows = [
                {
                    "student": a.student_name,
                    "hostel": a.hostel_name,
                    "room_number": a.room_number,
                    "start_date": a.start_date,
                    "end_date": a.end_date,
                }
                for a in self._hostels.list_assignments(HostelQuery(
                    tenant_id=tenant_id, hostel_id=hostel_id, status=HostelAssignmentStatus.ACTIVE.value))
            ]
            return {"rows": rows}
        return {}

    def create_report(self, *, current_user: User, data: Dict[str, Any]) -> HostelReport:
        self._manage(current_user)
        tenant = resolve_tenant(current_user, data.get("tenant_id"))
        report_type = parse_enum(HostelReportType, data.get("report_type"), "report_type")
        fmt = parse_enum(ReportFormat, (data.get("format") or "JSON").upper(), "format")
        hostel_id = None
        if data.get("hostel_id") not in (None, ""):
            hostel_id = self.get_hostel(current_user=current_user, hostel_id=data["hostel_id"]).hostel_id

        payload = self.build_report_data(tenant, report_type, hostel_id)
        if not payload:
            payload = dict(data.get("data") or {})
        title = optional_text(data.get("title")) or f"{report_type.value.replace('_', ' ').title()} report"
        report_id = self._hostels.create_report(
            tenant_id=tenant,
            hostel_id=hostel_id,
            report_type=report_type.value,
            title=title,
            format=fmt.value,
            data=payload,
            status=REPORT_GENERATED,
            generated_by=current_user.user_id,
        )
        logger.info("Hostel %s report %s generated for tenant %s", report_type.value, report_id, tenant)
        return self.get_report(current_user=current_user, report_id=report_id)

    def delete_report(self, *, current_user: User, report_id: int) -> None:
        self._manage(current_user)
        report = self.get_report(current_user=current_user, report_id=report_id)
        self._hostels.update_report(report.report_id, fields={"status": REPORT_FAILED})

    def download_report(self, *, current_user: User, report_id: int) -> ExportFile:
        report = self.get_report(current_user=current_user, report_id=report_id)
        if report.format not in (ReportFormat.CSV, ReportFormat.EXCEL):
            raise ValidationError("Only CSV and EXCEL reports can be downloaded")
        return export_rows(
            report.data.get("rows", []),
            fmt=report.format.value,
            basename=f"hostel_{report.report_type.value.lower()}_{report.report_id}",
            sheet_name=report.report_type.value.title(),
        )

    # ---- stats -----------------------------------------------------------

    def get_stats(self, *, current_user: User, tenant_id: Optional[int] = None) -> HostelStats:
        tenant = tenant_scope(current_user)
        if tenant is None:
            tenant = resolve_tenant(current_user, tenant_id)
        return self._cache.get(tenant, lambda: self._hostels.get_stats(tenant))
