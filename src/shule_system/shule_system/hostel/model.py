from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from ..common.validators import round_half_up
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


@dataclass(frozen=True)
class Hostel:
    hostel_id: int
    tenant_id: int
    name: str
    description: str
    address: str
    total_capacity: int
    monthly_fee: Decimal
    warden_name: str
    warden_email: str
    warden_phone: Optional[str] = None
    gender: Optional[str] = None
    status: HostelStatus = HostelStatus.ACTIVE
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class HostelRoom:
    room_id: int
    tenant_id: int
    hostel_id: int
    room_number: str
    capacity: int
    room_type: Optional[str] = None
    floor_number: Optional[int] = None
    monthly_fee: Optional[Decimal] = None
    amenities: Optional[str] = None
    notes: Optional[str] = None
    status: RoomStatus = RoomStatus.AVAILABLE
    is_active: bool = True
    active_assignments: int = 0


@dataclass(frozen=True)
class HostelAssignment:
    assignment_id: int
    tenant_id: int
    hostel_id: int
    room_id: int
    student_user_id: int
    start_date: date
    end_date: Optional[date] = None
    monthly_fee: Optional[Decimal] = None
    deposit_amount: Optional[Decimal] = None
    notes: Optional[str] = None
    status: HostelAssignmentStatus = HostelAssignmentStatus.ACTIVE
    student_name: Optional[str] = None
    hostel_name: Optional[str] = None
    room_number: Optional[str] = None


@dataclass(frozen=True)
class HostelMaintenance:
    maintenance_id: int
    tenant_id: int
    hostel_id: int
    title: str
    maintenance_type: MaintenanceType
    priority: MaintenancePriority = MaintenancePriority.NORMAL
    status: MaintenanceStatus = MaintenanceStatus.SCHEDULED
    room_id: Optional[int] = None
    description: Optional[str] = None
    scheduled_date: Optional[date] = None
    completed_date: Optional[datetime] = None
    cost: Optional[Decimal] = None
    vendor: Optional[str] = None


@dataclass(frozen=True)
class HostelReport:
    report_id: int
    tenant_id: int
    report_type: HostelReportType
    title: str
    format: ReportFormat
    status: str
    hostel_id: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)
    generated_by: Optional[int] = None
    generated_at: Optional[datetime] = None


@dataclass(frozen=True)
class HostelStats:
    total_hostels: int = 0
    total_rooms: int = 0
    total_assignments: int = 0
    active_assignments: int = 0
    available_rooms: int = 0
    occupied_rooms: int = 0
    maintenance_requests: int = 0
    completed_maintenance: int = 0

    @property
    def occupancy_rate(self) -> float:
        if self.total_rooms <= 0:
            return 0.0
        return float(round_half_up(self.occupied_rooms / self.total_rooms * 100, 2))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_hostels": self.total_hostels,
            "total_rooms": self.total_rooms,
            "total_assignments": self.total_assignments,
            "active_assignments": self.active_assignments,
            "available_rooms": self.available_rooms,
            "occupied_rooms": self.occupied_rooms,
            "occupancy_rate": self.occupancy_rate,
            "maintenance_requests": self.maintenance_requests,
            "completed_maintenance": self.completed_maintenance,
        }
