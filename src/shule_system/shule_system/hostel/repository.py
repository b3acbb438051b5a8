from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol

from .model import Hostel, HostelAssignment, HostelMaintenance, HostelReport, HostelRoom, HostelStats


@dataclass(frozen=True)
class HostelQuery:
    """Listing filters shared by every hostel table.

    `tenant_id=None` means no tenant filter (Super Admin). Without a
    `status`, rows whose status is INACTIVE are left out.
    """

    tenant_id: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None
    hostel_id: Optional[int] = None
    room_id: Optional[int] = None
    student_id: Optional[int] = None
    maintenance_type: Optional[str] = None
    report_type: Optional[str] = None


class HostelRepository(Protocol):
    # hostels
    def list_hostels(self, query: HostelQuery) -> List[Hostel]:
        raise NotImplementedError

    def get_hostel(self, hostel_id: int) -> Optional[Hostel]:
        raise NotImplementedError

    def create_hostel(
        self,
        *,
        tenant_id: int,
        name: str,
        description: str,
        address: str,
        total_capacity: int,
        monthly_fee: Decimal,
        warden_name: str,
        warden_email: str,
        warden_phone: Optional[str],
        gender: Optional[str],
        status: str,
    ) -> int:
        raise NotImplementedError

    def update_hostel(self, hostel_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def count_hostel_dependencies(self, hostel_id: int) -> Dict[str, int]:
        """Return {"rooms": n, "assignments": n, "maintenance": n}."""
        raise NotImplementedError

    # rooms
    def list_rooms(self, query: HostelQuery) -> List[HostelRoom]:
        raise NotImplementedError

    def get_room(self, room_id: int) -> Optional[HostelRoom]:
        raise NotImplementedError

    def create_room(
        self,
        *,
        tenant_id: int,
        hostel_id: int,
        room_number: str,
        capacity: int,
        room_type: Optional[str],
        floor_number: Optional[int],
        monthly_fee: Optional[Decimal],
        amenities: Optional[str],
        notes: Optional[str],
        status: str,
    ) -> int:
        raise NotImplementedError

    def update_room(self, room_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def count_active_assignments(self, room_id: int) -> int:
        raise NotImplementedError

    # assignments
    def list_assignments(self, query: HostelQuery) -> List[HostelAssignment]:
        raise NotImplementedError

    def get_assignment(self, assignment_id: int) -> Optional[HostelAssignment]:
        raise NotImplementedError

    def find_active_assignment_for_student(self, student_user_id: int) -> Optional[HostelAssignment]:
        raise NotImplementedError

    def create_assignment(
        self,
        *,
        tenant_id: int,
        hostel_id: int,
        room_id: int,
        student_user_id: int,
        start_date: date,
        end_date: Optional[date],
        monthly_fee: Optional[Decimal],
        deposit_amount: Optional[Decimal],
        notes: Optional[str],
        status: str,
    ) -> int:
        raise NotImplementedError

    def update_assignment(self, assignment_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    # maintenance
    def list_maintenance(self, query: HostelQuery) -> List[HostelMaintenance]:
        raise NotImplementedError

    def get_maintenance(self, maintenance_id: int) -> Optional[HostelMaintenance]:
        raise NotImplementedError

    def create_maintenance(
        self,
        *,
        tenant_id: int,
        hostel_id: int,
        room_id: Optional[int],
        title: str,
        description: Optional[str],
        maintenance_type: str,
        priority: str,
        status: str,
        scheduled_date: Optional[date],
        cost: Optional[Decimal],
        vendor: Optional[str],
    ) -> int:
        raise NotImplementedError

    def update_maintenance(self, maintenance_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    # reports
    def list_reports(self, query: HostelQuery) -> List[HostelReport]:
        raise NotImplementedError

    def get_report(self, report_id: int) -> Optional[HostelReport]:
        raise NotImplementedError

    def create_report(
        self,
        *,
        tenant_id: int,
        hostel_id: Optional[int],
        report_type: str,
        title: str,
        format: str,
        data: Dict[str, Any],
        status: str,
        generated_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def update_report(self, report_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    # stats
    def get_stats(self, tenant_id: int) -> HostelStats:
        raise NotImplementedError
