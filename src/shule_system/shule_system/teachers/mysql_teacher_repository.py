from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import ClassRole
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone
from .model import Teacher, TeacherClass, TeacherQualification, TeacherSubject, TeacherWorkload
from .repository import TeacherQuery, TeacherRepository

PROFILE_COLUMNS = (
    "employee_number", "date_of_birth", "gender", "nationality", "qualification", "specialization",
    "experience_years", "address", "region", "emergency_contact", "emergency_phone", "joining_date",
    "teaching_license", "license_expiry",
)
QUALIFICATION_COLUMNS = ("title", "institution", "date_obtained", "expiry_date", "certificate_number", "description")

_TEACHER_SELECT = """
    SELECT t.*, u.first_name, u.last_name, u.email, u.phone, u.is_active
    FROM teachers t
    JOIN users u ON u.user_id = t.user_id
"""


def _row_to_teacher(r: dict) -> Teacher:
    return Teacher(
        teacher_id=int(r["teacher_id"]),
        tenant_id=int(r["tenant_id"]),
        user_id=int(r["user_id"]),
        employee_number=r["employee_number"],
        first_name=r["first_name"],
        last_name=r["last_name"],
        email=r["email"],
        phone=r.get("phone"),
        date_of_birth=r.get("date_of_birth"),
        gender=r.get("gender"),
        nationality=r.get("nationality"),
        qualification=r.get("qualification"),
        specialization=r.get("specialization"),
        experience_years=r.get("experience_years"),
        address=r.get("address"),
        region=r.get("region"),
        emergency_contact=r.get("emergency_contact"),
        emergency_phone=r.get("emergency_phone"),
        joining_date=r.get("joining_date"),
        teaching_license=r.get("teaching_license"),
        license_expiry=r.get("license_expiry"),
        is_active=bool(r.get("is_active", 1)),
        created_at=r.get("created_at"),
    )


def _row_to_qualification(r: dict) -> TeacherQualification:
    return TeacherQualification(
        qualification_id=int(r["qualification_id"]),
        tenant_id=int(r["tenant_id"]),
        teacher_id=int(r["teacher_id"]),
        title=r["title"],
        institution=r["institution"],
        date_obtained=r["date_obtained"],
        expiry_date=r.get("expiry_date"),
        certificate_number=r.get("certificate_number"),
        description=r.get("description"),
        created_at=r.get("created_at"),
    )


def _row_to_class(r: dict) -> TeacherClass:
    return TeacherClass(
        teacher_id=int(r["teacher_id"]),
        class_id=int(r["class_id"]),
        class_name=r["class_name"],
        role=ClassRole(r.get("role") or ClassRole.SUBJECT_TEACHER.value),
        student_count=int(r.get("student_count") or 0),
        assigned_at=r.get("assigned_at"),
    )


class MySQLTeacherRepository(TeacherRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_teachers(self, query: TeacherQuery) -> Tuple[List[Teacher], int]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if query.tenant_id is not None:
            where.append("t.tenant_id=%s")
            params.append(query.tenant_id)
        if query.active_only:
            where.append("u.is_active=1")
        if query.search:
            like = f"%{query.search}%"
            where.append("(u.first_name LIKE %s OR u.last_name LIKE %s OR u.email LIKE %s OR t.employee_number LIKE %s)")
            params.extend([like, like, like, like])
        clause = " AND ".join(where)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT COUNT(*) AS n FROM teachers t JOIN users u ON u.user_id = t.user_id WHERE {clause}",
                tuple(params),
            )
            total = int((fetchone(cur) or {}).get("n") or 0)
            cur.execute(
                f"{_TEACHER_SELECT} WHERE {clause} ORDER BY u.last_name, u.first_name LIMIT %s OFFSET %s",
                tuple(params + [int(query.limit), int(query.offset)]),
            )
            return [_row_to_teacher(r) for r in fetchall(cur)], total

    def get_teacher(self, teacher_id: int) -> Optional[Teacher]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_TEACHER_SELECT} WHERE t.teacher_id=%s", (int(teacher_id),))
            row = fetchone(cur)
            return _row_to_teacher(row) if row else None

    def get_by_employee_number(self, tenant_id: int, employee_number: str) -> Optional[Teacher]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"{_TEACHER_SELECT} WHERE t.tenant_id=%s AND t.employee_number=%s",
                (int(tenant_id), employee_number),
            )
            row = fetchone(cur)
            return _row_to_teacher(row) if row else None

    def count_teachers(self, tenant_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT COUNT(*) AS n FROM teachers WHERE tenant_id=%s", (int(tenant_id),))
            return int((fetchone(cur) or {}).get("n") or 0)

    def create_teacher(self, *, tenant_id: int, user_id: int, employee_number: str, profile: Dict[str, Any]) -> int:
        values = {k: v for k, v in profile.items() if k in PROFILE_COLUMNS}
        values["employee_number"] = employee_number
        cols = ["tenant_id", "user_id", *values.keys()]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO teachers ({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))})",
                (tenant_id, user_id, *values.values()),
            )
            return int(cur.lastrowid)

    def update_teacher(self, teacher_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update(fields, PROFILE_COLUMNS)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE teachers SET {sql}, updated_at=NOW() WHERE teacher_id=%s", (*params, int(teacher_id)))
            return cur.rowcount > 0

    def delete_teacher(self, teacher_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            for table in ("teacher_subjects", "teacher_classes", "teacher_qualifications"):
                cur.execute(f"DELETE FROM {table} WHERE teacher_id=%s", (int(teacher_id),))
            cur.execute("DELETE FROM teachers WHERE teacher_id=%s", (int(teacher_id),))
            return cur.rowcount > 0

    # ---- subjects --------------------------------------------------------

    def list_subjects(self, teacher_id: int) -> List[TeacherSubject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT ts.teacher_id, ts.subject_id, ts.assigned_at, s.subject_name, s.subject_level, s.subject_type
                FROM teacher_subjects ts
                JOIN subjects s ON s.subject_id = ts.subject_id
                WHERE ts.teacher_id=%s
                ORDER BY s.subject_name
                """,
                (int(teacher_id),),
            )
            return [
                TeacherSubject(
                    teacher_id=int(r["teacher_id"]),
                    subject_id=int(r["subject_id"]),
                    subject_name=r["subject_name"],
                    subject_level=r.get("subject_level"),
                    subject_type=r.get("subject_type"),
                    assigned_at=r.get("assigned_at"),
                )
                for r in fetchall(cur)
            ]

    def has_subject(self, teacher_id: int, subject_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS x FROM teacher_subjects WHERE teacher_id=%s AND subject_id=%s",
                (int(teacher_id), int(subject_id)),
            )
            return fetchone(cur) is not None

    def add_subject(self, *, tenant_id: int, teacher_id: int, subject_id: int, assigned_by: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO teacher_subjects (tenant_id, teacher_id, subject_id, assigned_by) VALUES (%s,%s,%s,%s)",
                (tenant_id, teacher_id, subject_id, assigned_by),
            )

    def remove_subject(self, teacher_id: int, subject_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM teacher_subjects WHERE teacher_id=%s AND subject_id=%s",
                (int(teacher_id), int(subject_id)),
            )
            return cur.rowcount > 0

    # ---- classes ---------------------------------------------------------

    _CLASS_SELECT = """
        SELECT tc.teacher_id, tc.class_id, tc.role, tc.assigned_at, k.class_name,
               (SELECT COUNT(*) FROM class_enrollments ce WHERE ce.class_id = tc.class_id) AS student_count
        FROM teacher_classes tc
        JOIN classes k ON k.class_id = tc.class_id
    """

    def list_classes(self, teacher_id: int) -> List[TeacherClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{self._CLASS_SELECT} WHERE tc.teacher_id=%s ORDER BY k.class_name", (int(teacher_id),))
            return [_row_to_class(r) for r in fetchall(cur)]

    def get_class_link(self, teacher_id: int, class_id: int) -> Optional[TeacherClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"{self._CLASS_SELECT} WHERE tc.teacher_id=%s AND tc.class_id=%s",
                (int(teacher_id), int(class_id)),
            )
            row = fetchone(cur)
            return _row_to_class(row) if row else None

    def add_class(self, *, tenant_id: int, teacher_id: int, class_id: int, role: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO teacher_classes (tenant_id, teacher_id, class_id, role) VALUES (%s,%s,%s,%s)",
                (tenant_id, teacher_id, class_id, role),
            )

    def remove_class(self, teacher_id: int, class_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM teacher_classes WHERE teacher_id=%s AND class_id=%s",
                (int(teacher_id), int(class_id)),
            )
            return cur.rowcount > 0

    # ---- qualifications --------------------------------------------------

    def list_qualifications(self, teacher_id: int) -> List[TeacherQualification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT * FROM teacher_qualifications WHERE teacher_id=%s ORDER BY date_obtained DESC",
                (int(teacher_id),),
            )
            return [_row_to_qualification(r) for r in fetchall(cur)]

    def get_qualification(self, qualification_id: int) -> Optional[TeacherQualification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM teacher_qualifications WHERE qualification_id=%s", (int(qualification_id),))
            row = fetchone(cur)
            return _row_to_qualification(row) if row else None

    def create_qualification(self, *, tenant_id: int, teacher_id: int, fields: Dict[str, Any], created_by: int) -> int:
        values = {k: v for k, v in fields.items() if k in QUALIFICATION_COLUMNS}
        cols = ["tenant_id", "teacher_id", "created_by", *values.keys()]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO teacher_qualifications ({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))})",
                (tenant_id, teacher_id, created_by, *values.values()),
            )
            return int(cur.lastrowid)

    def update_qualification(self, qualification_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update(fields, QUALIFICATION_COLUMNS)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE teacher_qualifications SET {sql} WHERE qualification_id=%s",
                (*params, int(qualification_id)),
            )
            return cur.rowcount > 0

    def delete_qualification(self, qualification_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM teacher_qualifications WHERE qualification_id=%s", (int(qualification_id),))
            return cur.rowcount > 0

    def get_workload(self, teacher_id: int) -> TeacherWorkload:
        tid = int(teacher_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT
                  (SELECT COUNT(*) FROM teacher_subjects WHERE teacher_id=%s) AS subject_count,
                  (SELECT COUNT(*) FROM teacher_classes WHERE teacher_id=%s) AS class_count,
                  (SELECT COUNT(*) FROM teacher_classes WHERE teacher_id=%s AND role='CLASS_TEACHER') AS class_teacher_of,
                  (SELECT COUNT(DISTINCT ce.student_user_id)
                     FROM class_enrollments ce
                     JOIN teacher_classes tc ON tc.class_id = ce.class_id
                    WHERE tc.teacher_id=%s) AS student_count
                """,
                (tid, tid, tid, tid),
            )
            r = fetchone(cur) or {}
        return TeacherWorkload(
            teacher_id=tid,
            subject_count=int(r.get("subject_count") or 0),
            class_count=int(r.get("class_count") or 0),
            student_count=int(r.get("student_count") or 0),
            class_teacher_of=int(r.get("class_teacher_of") or 0),
        )
