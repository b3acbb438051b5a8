from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import EnrollmentType, Gender, RecordStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone
from .model import Student, StudentEnrollment
from .repository import StudentQuery, StudentRepository

PROFILE_COLUMNS = (
    "student_number", "admission_number", "admission_date", "date_of_birth", "gender", "nationality",
    "religion", "blood_group", "address", "city", "region", "postal_code", "phone", "emergency_contact",
    "emergency_phone", "medical_info", "previous_school", "previous_grade", "transport_mode",
    "transport_route", "status",
)
ENROLLMENT_COLUMNS = ("academic_year", "enrollment_type", "class_id", "course_id", "subject_id", "is_active", "notes")

_STUDENT_SELECT = """
    SELECT s.*, u.first_name, u.last_name, u.email
    FROM students s
    JOIN users u ON u.user_id = s.user_id
"""


def _row_to_student(r: dict) -> Student:
    return Student(
        student_id=int(r["student_id"]),
        tenant_id=int(r["tenant_id"]),
        user_id=int(r["user_id"]),
        student_number=r["student_number"],
        first_name=r["first_name"],
        last_name=r["last_name"],
        email=r["email"],
        date_of_birth=r["date_of_birth"],
        gender=Gender(r["gender"]),
        address=r["address"],
        city=r["city"],
        region=r["region"],
        emergency_contact=r["emergency_contact"],
        emergency_phone=r["emergency_phone"],
        admission_number=r.get("admission_number"),
        admission_date=r.get("admission_date"),
        nationality=r.get("nationality"),
        religion=r.get("religion"),
        blood_group=r.get("blood_group"),
        postal_code=r.get("postal_code"),
        phone=r.get("phone"),
        medical_info=r.get("medical_info"),
        previous_school=r.get("previous_school"),
        previous_grade=r.get("previous_grade"),
        transport_mode=r.get("transport_mode"),
        transport_route=r.get("transport_route"),
        status=RecordStatus(r.get("status") or RecordStatus.ACTIVE.value),
        created_at=r.get("created_at"),
    )


def _row_to_enrollment(r: dict) -> StudentEnrollment:
    return StudentEnrollment(
        enrollment_id=int(r["enrollment_id"]),
        tenant_id=int(r["tenant_id"]),
        student_id=int(r["student_id"]),
        academic_year=r["academic_year"],
        enrollment_type=EnrollmentType(r["enrollment_type"]),
        class_id=r.get("class_id"),
        course_id=r.get("course_id"),
        subject_id=r.get("subject_id"),
        is_active=bool(r.get("is_active", 1)),
        notes=r.get("notes"),
        enrollment_date=r.get("enrollment_date"),
    )


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, (Gender, EnrollmentType, RecordStatus)) else value


class MySQLStudentRepository(StudentRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_students(self, query: StudentQuery) -> Tuple[List[Student], int]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if query.tenant_id is not None:
            where.append("s.tenant_id=%s")
            params.append(query.tenant_id)
        if query.status:
            where.append("s.status=%s")
            params.append(query.status)
        if query.gender:
            where.append("s.gender=%s")
            params.append(query.gender)
        if query.class_id is not None:
            where.append(
                "s.student_id IN (SELECT student_id FROM student_enrollments WHERE class_id=%s AND is_active=1)"
            )
            params.append(int(query.class_id))
        if query.search:
            like = f"%{query.search}%"
            where.append("(s.student_number LIKE %s OR u.first_name LIKE %s OR u.last_name LIKE %s OR u.email LIKE %s)")
            params.extend([like, like, like, like])
        clause = " AND ".join(where)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT COUNT(*) AS n FROM students s JOIN users u ON u.user_id = s.user_id WHERE {clause}",
                tuple(params),
            )
            total = int((fetchone(cur) or {}).get("n") or 0)
            cur.execute(
                f"{_STUDENT_SELECT} WHERE {clause} ORDER BY s.created_at DESC, s.student_id DESC LIMIT %s OFFSET %s",
                tuple(params + [int(query.limit), int(query.offset)]),
            )
            return [_row_to_student(r) for r in fetchall(cur)], total

    def get_student(self, student_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_STUDENT_SELECT} WHERE s.student_id=%s", (int(student_id),))
            row = fetchone(cur)
            return _row_to_student(row) if row else None

    def get_by_student_number(self, tenant_id: int, student_number: str) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"{_STUDENT_SELECT} WHERE s.tenant_id=%s AND s.student_number=%s",
                (int(tenant_id), student_number),
            )
            row = fetchone(cur)
            return _row_to_student(row) if row else None

    def get_by_user(self, user_id: int) -> Optional[Student]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_STUDENT_SELECT} WHERE s.user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_student(row) if row else None

    def create_student(self, *, tenant_id: int, user_id: int, fields: Dict[str, Any]) -> int:
        values = {k: _db_value(v) for k, v in fields.items() if k in PROFILE_COLUMNS}
        cols = ["tenant_id", "user_id", *values.keys()]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO students ({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))})",
                (tenant_id, user_id, *values.values()),
            )
            return int(cur.lastrowid)

    def update_student(self, student_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update({k: _db_value(v) for k, v in fields.items()}, PROFILE_COLUMNS)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE students SET {sql}, updated_at=NOW() WHERE student_id=%s", (*params, int(student_id)))
            return cur.rowcount > 0

    def delete_student(self, student_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM student_enrollments WHERE student_id=%s", (int(student_id),))
            cur.execute("DELETE FROM students WHERE student_id=%s", (int(student_id),))
            return cur.rowcount > 0

    # ---- enrollments -----------------------------------------------------

    def list_enrollments(self, student_id: int) -> List[StudentEnrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM student_enrollments WHERE student_id=%s ORDER BY enrollment_date DESC, enrollment_id DESC",
                (int(student_id),),
            )
            return [_row_to_enrollment(r) for r in fetchall(cur)]

    def get_enrollment(self, enrollment_id: int) -> Optional[StudentEnrollment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM student_enrollments WHERE enrollment_id=%s", (int(enrollment_id),))
            row = fetchone(cur)
            return _row_to_enrollment(row) if row else None

    def create_enrollment(self, *, tenant_id: int, student_id: int, fields: Dict[str, Any]) -> int:
        values = {k: _db_value(v) for k, v in fields.items() if k in ENROLLMENT_COLUMNS}
        cols = ["tenant_id", "student_id", *values.keys()]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO student_enrollments ({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))})",
                (tenant_id, student_id, *values.values()),
            )
            return int(cur.lastrowid)

    def update_enrollment(self, enrollment_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update({k: _db_value(v) for k, v in fields.items()}, ENROLLMENT_COLUMNS)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE student_enrollments SET {sql} WHERE enrollment_id=%s",
                (*params, int(enrollment_id)),
            )
            return cur.rowcount > 0

    def delete_enrollment(self, enrollment_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM student_enrollments WHERE enrollment_id=%s", (int(enrollment_id),))
            return cur.rowcount > 0
