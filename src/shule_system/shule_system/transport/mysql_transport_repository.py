from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.enums import (
    DriverStatus,
    MaintenanceStatus,
    RouteStatus,
    TransportAssignmentStatus,
    TransportAttendanceStatus,
    TripType,
    VehicleStatus,
)
from ..core.exceptions import ConflictError, NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone, to_decimal
from .model import (
    Driver,
    StudentTransport,
    TransportAttendance,
    TransportRoute,
    TransportStats,
    Vehicle,
    VehicleMaintenance,
)
from .repository import TransportQuery, TransportRepository

ROUTE_COLUMNS = ("route_name", "route_code", "description", "start_location", "end_location", "distance_km",
                 "estimated_duration_min", "capacity", "fare_amount", "vehicle_id", "driver_id", "start_time",
                 "end_time", "status")
VEHICLE_COLUMNS = ("vehicle_number", "make", "model", "year", "capacity", "fuel_type", "registration_number",
                   "current_mileage", "insurance_expiry", "road_tax_expiry", "notes", "status")
DRIVER_COLUMNS = ("driver_code", "first_name", "last_name", "phone", "email", "license_number", "license_type",
                  "license_expiry", "joining_date", "experience_years", "performance_rating", "status")
ASSIGNMENT_COLUMNS = ("route_id", "pickup_point", "dropoff_point", "pickup_time", "dropoff_time", "monthly_fee",
                      "seat_number", "status")
MAINTENANCE_COLUMNS = ("maintenance_type", "description", "scheduled_date", "completed_date", "cost",
                       "service_provider", "status")

_ASSIGNMENT_SELECT = """
    SELECT st.*, CONCAT(u.first_name, ' ', u.last_name) AS student_name, r.route_name
    FROM student_transport st
    JOIN users u ON u.user_id = st.student_user_id
    JOIN transport_routes r ON r.route_id = st.route_id
"""

_MAINTENANCE_SELECT = """
    SELECT m.*, v.vehicle_number
    FROM vehicle_maintenance m
    JOIN vehicles v ON v.vehicle_id = m.vehicle_id
"""


def _opt_decimal(value: Any):
    return to_decimal(value) if value is not None else None


def _time_text(value: Any) -> Optional[str]:
    # TIME columns come back as timedelta
    if value is None:
        return None
    if hasattr(value, "total_seconds"):
        minutes = int(value.total_seconds()) // 60
        return f"{minutes // 60:02d}:{minutes % 60:02d}"
    return str(value)[:5]


def _row_to_route(r: dict) -> TransportRoute:
    return TransportRoute(
        route_id=int(r["route_id"]),
        tenant_id=int(r["tenant_id"]),
        route_name=r["route_name"],
        start_location=r["start_location"],
        end_location=r["end_location"],
        capacity=int(r["capacity"]),
        route_code=r.get("route_code"),
        description=r.get("description"),
        distance_km=_opt_decimal(r.get("distance_km")),
        estimated_duration_min=r.get("estimated_duration_min"),
        fare_amount=_opt_decimal(r.get("fare_amount")),
        current_occupancy=int(r.get("current_occupancy") or 0),
        vehicle_id=r.get("vehicle_id"),
        driver_id=r.get("driver_id"),
        start_time=_time_text(r.get("start_time")),
        end_time=_time_text(r.get("end_time")),
        status=RouteStatus(r.get("status") or "ACTIVE"),
        created_at=r.get("created_at"),
    )


def _row_to_vehicle(r: dict) -> Vehicle:
    return Vehicle(
        vehicle_id=int(r["vehicle_id"]),
        tenant_id=int(r["tenant_id"]),
        vehicle_number=r["vehicle_number"],
        make=r["make"],
        model=r["model"],
        capacity=int(r["capacity"]),
        year=r.get("year"),
        fuel_type=r.get("fuel_type"),
        registration_number=r.get("registration_number"),
        current_mileage=int(r.get("current_mileage") or 0),
        insurance_expiry=r.get("insurance_expiry"),
        road_tax_expiry=r.get("road_tax_expiry"),
        notes=r.get("notes"),
        status=VehicleStatus(r.get("status") or "ACTIVE"),
        created_at=r.get("created_at"),
    )


def _row_to_driver(r: dict) -> Driver:
    return Driver(
        driver_id=int(r["driver_id"]),
        tenant_id=int(r["tenant_id"]),
        first_name=r["first_name"],
        last_name=r["last_name"],
        license_number=r["license_number"],
        driver_code=r.get("driver_code"),
        phone=r.get("phone"),
        email=r.get("email"),
        license_type=r.get("license_type"),
        license_expiry=r.get("license_expiry"),
        joining_date=r.get("joining_date"),
        experience_years=int(r.get("experience_years") or 0),
        performance_rating=_opt_decimal(r.get("performance_rating")),
        status=DriverStatus(r.get("status") or "ACTIVE"),
        created_at=r.get("created_at"),
    )


def _row_to_assignment(r: dict) -> StudentTransport:
    return StudentTransport(
        assignment_id=int(r["assignment_id"]),
        tenant_id=int(r["tenant_id"]),
        student_id=int(r["student_user_id"]),
        route_id=int(r["route_id"]),
        pickup_point=r["pickup_point"],
        dropoff_point=r["dropoff_point"],
        pickup_time=_time_text(r.get("pickup_time")),
        dropoff_time=_time_text(r.get("dropoff_time")),
        monthly_fee=_opt_decimal(r.get("monthly_fee")),
        seat_number=r.get("seat_number"),
        status=TransportAssignmentStatus(r.get("status") or "ACTIVE"),
        student_name=r.get("student_name"),
        route_name=r.get("route_name"),
        created_at=r.get("created_at"),
    )


def _row_to_attendance(r: dict) -> TransportAttendance:
    return TransportAttendance(
        attendance_id=int(r["attendance_id"]),
        tenant_id=int(r["tenant_id"]),
        student_id=int(r["student_user_id"]),
        route_id=int(r["route_id"]),
        attendance_date=r["attendance_date"],
        trip_type=TripType(r["trip_type"]),
        status=TransportAttendanceStatus(r["status"]),
        notes=r.get("notes"),
        recorded_by=r.get("recorded_by"),
        student_name=r.get("student_name"),
        created_at=r.get("created_at"),
    )


def _row_to_maintenance(r: dict) -> VehicleMaintenance:
    return VehicleMaintenance(
        maintenance_id=int(r["maintenance_id"]),
        tenant_id=int(r["tenant_id"]),
        vehicle_id=int(r["vehicle_id"]),
        maintenance_type=r["maintenance_type"],
        description=r["description"],
        scheduled_date=r["scheduled_date"],
        status=MaintenanceStatus(r.get("status") or "SCHEDULED"),
        completed_date=r.get("completed_date"),
        cost=_opt_decimal(r.get("cost")),
        service_provider=r.get("service_provider"),
        vehicle_number=r.get("vehicle_number"),
        created_by=r.get("created_by"),
        created_at=r.get("created_at"),
    )


def _where(alias: str, q: TransportQuery, *, search_cols: Sequence[str] = (), **columns: str) -> Tuple[str, List[Any]]:
    """WHERE clause from the query; `columns` maps query attribute -> column."""
    where: List[str] = ["1=1"]
    params: List[Any] = []
    if q.tenant_id is not None:
        where.append(f"{alias}.tenant_id=%s")
        params.append(q.tenant_id)
    if q.status:
        where.append(f"{alias}.status=%s")
        params.append(q.status)
    for attr, column in columns.items():
        value = getattr(q, attr)
        if value is not None:
            where.append(f"{column}=%s")
            params.append(value)
    if q.search and search_cols:
        where.append("(" + " OR ".join(f"{c} LIKE %s" for c in search_cols) + ")")
        params.extend([f"%{q.search}%"] * len(search_cols))
    return " AND ".join(where), params


class MySQLTransportRepository(TransportRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _insert(self, table: str, tenant_id: int, values: Dict[str, Any]) -> int:
        cols = ["tenant_id", *values.keys()]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))})",
                (tenant_id, *values.values()),
            )
            return int(cur.lastrowid)

    def _update(self, table: str, key: str, key_value: int, fields: Dict[str, Any], allowed: Sequence[str]) -> bool:
        sql, params = build_update(fields, allowed)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE {table} SET {sql} WHERE {key}=%s", (*params, int(key_value)))
            return cur.rowcount > 0

    def _one(self, sql: str, params: Sequence[Any]) -> Optional[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return fetchone(cur)

    def _all(self, sql: str, params: Sequence[Any]) -> List[dict]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return fetchall(cur)

    def _delete(self, table: str, key: str, key_value: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"DELETE FROM {table} WHERE {key}=%s", (int(key_value),))
            return cur.rowcount > 0

    # ---- routes ----------------------------------------------------------

    def list_routes(self, query: TransportQuery) -> List[TransportRoute]:
        clause, params = _where("r", query, search_cols=("r.route_name", "r.route_code", "r.start_location",
                                                          "r.end_location"), vehicle_id="r.vehicle_id")
        rows = self._all(f"SELECT r.* FROM transport_routes r WHERE {clause} ORDER BY r.route_name", params)
        return [_row_to_route(r) for r in rows]

    def get_route(self, route_id: int) -> Optional[TransportRoute]:
        row = self._one("SELECT * FROM transport_routes WHERE route_id=%s", (int(route_id),))
        return _row_to_route(row) if row else None

    def find_route(self, tenant_id: int, *, route_name: Optional[str] = None,
                   route_code: Optional[str] = None) -> Optional[TransportRoute]:
        column, value = ("route_name", route_name) if route_name else ("route_code", route_code)
        row = self._one(f"SELECT * FROM transport_routes WHERE tenant_id=%s AND {column}=%s", (tenant_id, value))
        return _row_to_route(row) if row else None

    def create_route(self, *, tenant_id: int, fields: Dict[str, Any]) -> int:
        return self._insert("transport_routes", tenant_id, {k: v for k, v in fields.items() if k in ROUTE_COLUMNS})

    def update_route(self, route_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("transport_routes", "route_id", route_id, fields, ROUTE_COLUMNS)

    def delete_route(self, route_id: int) -> bool:
        return self._delete("transport_routes", "route_id", route_id)

    # ---- vehicles --------------------------------------------------------

    def list_vehicles(self, query: TransportQuery) -> List[Vehicle]:
        clause, params = _where("v", query, search_cols=("v.vehicle_number", "v.make", "v.model",
                                                          "v.registration_number"))
        rows = self._all(f"SELECT v.* FROM vehicles v WHERE {clause} ORDER BY v.vehicle_number", params)
        return [_row_to_vehicle(r) for r in rows]

    def get_vehicle(self, vehicle_id: int) -> Optional[Vehicle]:
        row = self._one("SELECT * FROM vehicles WHERE vehicle_id=%s", (int(vehicle_id),))
        return _row_to_vehicle(row) if row else None

    def find_vehicle(self, tenant_id: int, *, vehicle_number: Optional[str] = None,
                     registration_number: Optional[str] = None) -> Optional[Vehicle]:
        column, value = (
            ("vehicle_number", vehicle_number) if vehicle_number else ("registration_number", registration_number)
        )
        row = self._one(f"SELECT * FROM vehicles WHERE tenant_id=%s AND {column}=%s", (tenant_id, value))
        return _row_to_vehicle(row) if row else None

    def create_vehicle(self, *, tenant_id: int, fields: Dict[str, Any]) -> int:
        return self._insert("vehicles", tenant_id, {k: v for k, v in fields.items() if k in VEHICLE_COLUMNS})

    def update_vehicle(self, vehicle_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("vehicles", "vehicle_id", vehicle_id, fields, VEHICLE_COLUMNS)

    def delete_vehicle(self, vehicle_id: int) -> bool:
        return self._delete("vehicles", "vehicle_id", vehicle_id)

    # ---- drivers ---------------------------------------------------------

    def list_drivers(self, query: TransportQuery) -> List[Driver]:
        clause, params = _where("d", query, search_cols=("d.first_name", "d.last_name", "d.license_number",
                                                          "d.driver_code"))
        rows = self._all(f"SELECT d.* FROM drivers d WHERE {clause} ORDER BY d.last_name, d.first_name", params)
        return [_row_to_driver(r) for r in rows]

    def get_driver(self, driver_id: int) -> Optional[Driver]:
        row = self._one("SELECT * FROM drivers WHERE driver_id=%s", (int(driver_id),))
        return _row_to_driver(row) if row else None

    def find_driver(self, tenant_id: int, *, license_number: Optional[str] = None,
                    driver_code: Optional[str] = None) -> Optional[Driver]:
        column, value = ("license_number", license_number) if license_number else ("driver_code", driver_code)
        row = self._one(f"SELECT * FROM drivers WHERE tenant_id=%s AND {column}=%s", (tenant_id, value))
        return _row_to_driver(row) if row else None

    def create_driver(self, *, tenant_id: int, fields: Dict[str, Any]) -> int:
        return self._insert("drivers", tenant_id, {k: v for k, v in fields.items() if k in DRIVER_COLUMNS})

    def update_driver(self, driver_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("drivers", "driver_id", driver_id, fields, DRIVER_COLUMNS)

    def delete_driver(self, driver_id: int) -> bool:
        return self._delete("drivers", "driver_id", driver_id)

    def count_routes_using(self, *, vehicle_id: Optional[int] = None, driver_id: Optional[int] = None) -> int:
        column, value = ("vehicle_id", vehicle_id) if vehicle_id is not None else ("driver_id", driver_id)
        row = self._one(
            f"SELECT COUNT(*) AS n FROM transport_routes WHERE {column}=%s AND status<>'INACTIVE'", (value,)
        )
        return int((row or {}).get("n") or 0)

    # ---- student assignments ---------------------------------------------

    def list_assignments(self, query: TransportQuery) -> List[StudentTransport]:
        clause, params = _where("st", query, search_cols=("u.first_name", "u.last_name", "st.pickup_point"),
                                route_id="st.route_id", student_id="st.student_user_id")
        rows = self._all(f"{_ASSIGNMENT_SELECT} WHERE {clause} ORDER BY st.created_at DESC", params)
        return [_row_to_assignment(r) for r in rows]

    def get_assignment(self, assignment_id: int) -> Optional[StudentTransport]:
        row = self._one(f"{_ASSIGNMENT_SELECT} WHERE st.assignment_id=%s", (int(assignment_id),))
        return _row_to_assignment(row) if row else None

    def find_active_assignment(self, student_id: int, *, route_id: Optional[int] = None) -> Optional[StudentTransport]:
        sql = f"{_ASSIGNMENT_SELECT} WHERE st.student_user_id=%s AND st.status='ACTIVE'"
        params: List[Any] = [int(student_id)]
        if route_id is not None:
            sql += " AND st.route_id=%s"
            params.append(int(route_id))
        row = self._one(sql + " LIMIT 1", params)
        return _row_to_assignment(row) if row else None

    def count_active_assignments(self, route_id: int) -> int:
        row = self._one(
            "SELECT COUNT(*) AS n FROM student_transport WHERE route_id=%s AND status='ACTIVE'", (int(route_id),)
        )
        return int((row or {}).get("n") or 0)

    def create_assignment(self, *, tenant_id: int, fields: Dict[str, Any], created_by: int) -> int:
        route_id = int(fields["route_id"])
        values = {"tenant_id": tenant_id, **{k: v for k, v in fields.items() if k in ASSIGNMENT_COLUMNS}}
        values["student_user_id"] = fields["student_id"]
        values["created_by"] = created_by
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT capacity FROM transport_routes WHERE route_id=%s FOR UPDATE", (route_id,))
            route = fetchone(cur)
            if route is None:
                raise NotFoundError("Transport route not found")
            cur.execute("SELECT COUNT(*) AS n FROM student_transport WHERE route_id=%s AND status='ACTIVE'",
                        (route_id,))
            if int((fetchone(cur) or {}).get("n") or 0) >= int(route["capacity"]):
                raise ConflictError("Route has reached maximum capacity")
            cur.execute(
                f"INSERT INTO student_transport ({', '.join(values)}) VALUES ({', '.join(['%s'] * len(values))})",
                tuple(values.values()),
            )
            assignment_id = int(cur.lastrowid)
            cur.execute("UPDATE transport_routes SET current_occupancy=current_occupancy + 1 WHERE route_id=%s",
                        (route_id,))
            return assignment_id

    def end_assignment(self, assignment_id: int, *, status: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT route_id, status FROM student_transport WHERE assignment_id=%s FOR UPDATE",
                        (int(assignment_id),))
            row = fetchone(cur)
            if row is None or row["status"] != TransportAssignmentStatus.ACTIVE.value:
                return False
            cur.execute("UPDATE student_transport SET status=%s WHERE assignment_id=%s", (status, int(assignment_id)))
            cur.execute(
                "UPDATE transport_routes SET current_occupancy=GREATEST(current_occupancy - 1, 0) WHERE route_id=%s",
                (int(row["route_id"]),),
            )
            return True

    # ---- attendance ------------------------------------------------------

    def list_attendance(self, query: TransportQuery) -> List[TransportAttendance]:
        clause, params = _where("a", query, route_id="a.route_id", student_id="a.student_user_id",
                                attendance_date="a.attendance_date")
        rows = self._all(
            f"""
            SELECT a.*, CONCAT(u.first_name, ' ', u.last_name) AS student_name
            FROM transport_attendance a
            JOIN users u ON u.user_id = a.student_user_id
            WHERE {clause}
            ORDER BY a.attendance_date DESC, a.trip_type
            """,
            params,
        )
        return [_row_to_attendance(r) for r in rows]

    def find_attendance(self, student_id: int, attendance_date: date, trip_type: str) -> Optional[TransportAttendance]:
        row = self._one(
            "SELECT * FROM transport_attendance WHERE student_user_id=%s AND attendance_date=%s AND trip_type=%s",
            (int(student_id), attendance_date, trip_type),
        )
        return _row_to_attendance(row) if row else None

    def create_attendance(self, *, tenant_id: int, fields: Dict[str, Any], recorded_by: int) -> int:
        return self._insert("transport_attendance", tenant_id, {
            "student_user_id": fields["student_id"],
            "route_id": fields["route_id"],
            "attendance_date": fields["attendance_date"],
            "trip_type": fields["trip_type"],
            "status": fields["status"],
            "notes": fields.get("notes"),
            "recorded_by": recorded_by,
        })

    # ---- maintenance -----------------------------------------------------

    def list_maintenance(self, query: TransportQuery) -> List[VehicleMaintenance]:
        clause, params = _where("m", query, vehicle_id="m.vehicle_id")
        rows = self._all(f"{_MAINTENANCE_SELECT} WHERE {clause} ORDER BY m.scheduled_date DESC", params)
        return [_row_to_maintenance(r) for r in rows]

    def get_maintenance(self, maintenance_id: int) -> Optional[VehicleMaintenance]:
        row = self._one(f"{_MAINTENANCE_SELECT} WHERE m.maintenance_id=%s", (int(maintenance_id),))
        return _row_to_maintenance(row) if row else None

    def create_maintenance(self, *, tenant_id: int, fields: Dict[str, Any], created_by: int) -> int:
        values = {k: v for k, v in fields.items() if k in MAINTENANCE_COLUMNS}
        values["vehicle_id"] = fields["vehicle_id"]
        values["created_by"] = created_by
        return self._insert("vehicle_maintenance", tenant_id, values)

    def update_maintenance(self, maintenance_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("vehicle_maintenance", "maintenance_id", maintenance_id, fields, MAINTENANCE_COLUMNS)

    # ---- stats -----------------------------------------------------------

    def get_stats(self, tenant_id: Optional[int], *, expiry_horizon: date) -> TransportStats:
        scope = "tenant_id=%s" if tenant_id is not None else "1=1"
        p: Tuple[Any, ...] = (tenant_id,) if tenant_id is not None else ()

        def pair(table: str, active: str = "ACTIVE") -> Tuple[str, Tuple[Any, ...]]:
            return (
                f"(SELECT COUNT(*) FROM {table} WHERE {scope}), "
                f"(SELECT COUNT(*) FROM {table} WHERE {scope} AND status='{active}')",
                p + p,
            )

        parts = [pair("transport_routes"), pair("vehicles"), pair("drivers"), pair("student_transport")]
        select = ", ".join(sql for sql, _ in parts)
        params: List[Any] = [v for _, ps in parts for v in ps]
        with db_cursor(self._conn_factory, dictionary=False) as (_, cur):
            cur.execute(
                f"""
                SELECT {select},
                  (SELECT COUNT(*) FROM vehicle_maintenance WHERE {scope} AND status IN ('SCHEDULED','IN_PROGRESS')),
                  (SELECT COUNT(*) FROM vehicle_maintenance WHERE {scope} AND status='OVERDUE'),
                  (SELECT COUNT(*) FROM vehicles WHERE {scope}
                     AND (insurance_expiry <= %s OR road_tax_expiry <= %s))
                """,
                (*params, *p, *p, *p, expiry_horizon, expiry_horizon),
            )
            row = cur.fetchone() or (0,) * 11
        counts = [int(v or 0) for v in row]
        return TransportStats(*counts)
