from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.enums import RecordStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone, split_csv
from .filters import AcademicFilters, ClassFilters, CourseFilters, SubjectFilters
from .model import Course, SchoolClass, Subject, TeacherAssignment
from .repository import AcademicRepository

_ASSIGNED_SUBJECTS = """
    SELECT ta.subject_id FROM teacher_assignments ta WHERE ta.teacher_user_id=%s
    UNION
    SELECT ta.subject_id FROM teacher_assignments ta
    JOIN class_enrollments ce ON ce.class_id = ta.class_id
    WHERE ce.student_user_id=%s
"""


def _order(filters: AcademicFilters, alias: str, allowed: Dict[str, str]) -> str:
    key = (filters.sort_by or "created_at").replace("createdAt", "created_at")
    col = allowed.get(key, "created_at")
    direction = "ASC" if (filters.sort_order or "").lower() == "asc" else "DESC"
    return f"{alias}.{col} {direction}"


def _limit(filters: AcademicFilters) -> Tuple[int, int]:
    page = max(int(filters.page or 1), 1)
    limit = max(int(filters.limit or 25), 1)
    return limit, (page - 1) * limit


def _row_to_subject(r: dict) -> Subject:
    return Subject(
        subject_id=int(r["subject_id"]),
        tenant_id=int(r["tenant_id"]),
        subject_name=r["subject_name"],
        subject_code=r["subject_code"],
        subject_level=r["subject_level"],
        subject_type=r["subject_type"],
        description=r.get("description"),
        status=RecordStatus(r.get("status") or "ACTIVE"),
        created_at=r.get("created_at"),
    )


def _row_to_course(r: dict) -> Course:
    return Course(
        course_id=int(r["course_id"]),
        tenant_id=int(r["tenant_id"]),
        course_name=r["course_name"],
        course_code=r["course_code"],
        credits=int(r.get("credits") or 0),
        description=r.get("description"),
        status=RecordStatus(r.get("status") or "ACTIVE"),
        subject_ids=tuple(int(s) for s in split_csv(r.get("subject_ids"))),
        created_at=r.get("created_at"),
    )


def _row_to_class(r: dict) -> SchoolClass:
    return SchoolClass(
        class_id=int(r["class_id"]),
        tenant_id=int(r["tenant_id"]),
        class_name=r["class_name"],
        grade=r.get("grade"),
        section=r.get("section"),
        capacity=int(r.get("capacity") or 0),
        teacher_id=r.get("teacher_id"),
        academic_year=r.get("academic_year"),
        status=RecordStatus(r.get("status") or "ACTIVE"),
        student_count=int(r.get("student_count") or 0),
        created_at=r.get("created_at"),
    )


def _row_to_assignment(r: dict) -> TeacherAssignment:
    return TeacherAssignment(
        assignment_id=int(r["assignment_id"]),
        tenant_id=int(r["tenant_id"]),
        teacher_user_id=int(r["teacher_user_id"]),
        subject_id=int(r["subject_id"]),
        class_id=r.get("class_id"),
        assigned_at=r.get("assigned_at"),
    )


class MySQLAcademicRepository(AcademicRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # ---- where builders -------------------------------------------------

    @staticmethod
    def _subject_where(f: AcademicFilters) -> Tuple[str, List[Any]]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if f.tenant_id is not None:
            where.append("s.tenant_id=%s")
            params.append(f.tenant_id)
        if f.status:
            where.append("s.status=%s")
            params.append(f.status)
        if f.search:
            where.append("(s.subject_name LIKE %s OR s.subject_code LIKE %s)")
            params.extend([f"%{f.search}%", f"%{f.search}%"])
        level = getattr(f, "subject_level", None) or f.level
        if level:
            where.append("s.subject_level=%s")
            params.append(level)
        stype = getattr(f, "subject_type", None) or f.type
        if stype:
            where.append("s.subject_type=%s")
            params.append(stype)
        code = getattr(f, "subject_code", None)
        if code:
            where.append("s.subject_code=%s")
            params.append(code)
        teacher_ids = getattr(f, "teacher_ids", ())
        if teacher_ids:
            marks = ",".join(["%s"] * len(teacher_ids))
            where.append(f"s.subject_id IN (SELECT subject_id FROM teacher_assignments WHERE teacher_user_id IN ({marks}))")
            params.extend(teacher_ids)
        if f.user_id is not None:
            where.append(f"s.subject_id IN ({_ASSIGNED_SUBJECTS})")
            params.extend([f.user_id, f.user_id])
        return " AND ".join(where), params

    @staticmethod
    def _course_where(f: AcademicFilters) -> Tuple[str, List[Any]]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if f.tenant_id is not None:
            where.append("c.tenant_id=%s")
            params.append(f.tenant_id)
        if f.status:
            where.append("c.status=%s")
            params.append(f.status)
        if f.search:
            where.append("(c.course_name LIKE %s OR c.course_code LIKE %s)")
            params.extend([f"%{f.search}%", f"%{f.search}%"])
        code = getattr(f, "course_code", None)
        if code:
            where.append("c.course_code=%s")
            params.append(code)
        credits = getattr(f, "credits", None)
        if credits is not None:
            where.append("c.credits=%s")
            params.append(int(credits))
        subject_ids = getattr(f, "subject_ids", ())
        if subject_ids:
            marks = ",".join(["%s"] * len(subject_ids))
            where.append(f"c.course_id IN (SELECT course_id FROM course_subjects WHERE subject_id IN ({marks}))")
            params.extend(subject_ids)
        if f.user_id is not None:
            where.append(f"c.course_id IN (SELECT cs.course_id FROM course_subjects cs WHERE cs.subject_id IN ({_ASSIGNED_SUBJECTS}))")
            params.extend([f.user_id, f.user_id])
        return " AND ".join(where), params

    @staticmethod
    def _class_where(f: AcademicFilters) -> Tuple[str, List[Any]]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if f.tenant_id is not None:
            where.append("k.tenant_id=%s")
            params.append(f.tenant_id)
        if f.status:
            where.append("k.status=%s")
            params.append(f.status)
        if f.search:
            where.append("k.class_name LIKE %s")
            params.append(f"%{f.search}%")
        for col in ("class_name", "grade", "section"):
            value = getattr(f, col, None)
            if value:
                where.append(f"k.{col}=%s")
                params.append(value)
        teacher_id = getattr(f, "teacher_id", None)
        if teacher_id is not None:
            where.append("(k.teacher_id=%s OR k.class_id IN (SELECT class_id FROM teacher_assignments WHERE teacher_user_id=%s))")
            params.extend([teacher_id, teacher_id])
        if f.user_id is not None:
            where.append("k.class_id IN (SELECT class_id FROM class_enrollments WHERE student_user_id=%s)")
            params.append(f.user_id)
        return " AND ".join(where), params

    @staticmethod
    def _assignment_where(f: AcademicFilters) -> Tuple[str, List[Any]]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if f.tenant_id is not None:
            where.append("ta.tenant_id=%s")
            params.append(f.tenant_id)
        if f.user_id is not None:
            where.append("ta.teacher_user_id=%s")
            params.append(f.user_id)
        return " AND ".join(where), params

    # ---- listings --------------------------------------------------------

    def list_subjects(self, filters: SubjectFilters) -> List[Subject]:
        clause, params = self._subject_where(filters)
        order = _order(filters, "s", {"created_at": "created_at", "subject_name": "subject_name", "subject_code": "subject_code"})
        limit, offset = _limit(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT s.* FROM subjects s WHERE {clause} ORDER BY {order} LIMIT %s OFFSET %s",
                tuple(params + [limit, offset]),
            )
            return [_row_to_subject(r) for r in fetchall(cur)]

    def list_courses(self, filters: CourseFilters) -> List[Course]:
        clause, params = self._course_where(filters)
        order = _order(filters, "c", {"created_at": "created_at", "course_name": "course_name", "course_code": "course_code"})
        limit, offset = _limit(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT c.*, (SELECT GROUP_CONCAT(cs.subject_id ORDER BY cs.subject_id)
                             FROM course_subjects cs WHERE cs.course_id = c.course_id) AS subject_ids
                FROM courses c
                WHERE {clause}
                ORDER BY {order}
                LIMIT %s OFFSET %s
                """,
                tuple(params + [limit, offset]),
            )
            return [_row_to_course(r) for r in fetchall(cur)]

    def list_classes(self, filters: ClassFilters) -> List[SchoolClass]:
        clause, params = self._class_where(filters)
        order = _order(filters, "k", {"created_at": "created_at", "class_name": "class_name", "grade": "grade"})
        limit, offset = _limit(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT k.*, (SELECT COUNT(*) FROM class_enrollments ce WHERE ce.class_id = k.class_id) AS student_count
                FROM classes k
                WHERE {clause}
                ORDER BY {order}
                LIMIT %s OFFSET %s
                """,
                tuple(params + [limit, offset]),
            )
            return [_row_to_class(r) for r in fetchall(cur)]

    def list_teacher_assignments(self, filters: AcademicFilters) -> List[TeacherAssignment]:
        clause, params = self._assignment_where(filters)
        limit, offset = _limit(filters)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT ta.* FROM teacher_assignments ta WHERE {clause} ORDER BY ta.assigned_at DESC LIMIT %s OFFSET %s",
                tuple(params + [limit, offset]),
            )
            return [_row_to_assignment(r) for r in fetchall(cur)]

    @classmethod
    def _stats_class_where(cls, filters: AcademicFilters) -> Tuple[str, List[Any]]:
        """Tenant/status filters always apply; a user narrows to classes they attend or teach."""
        clause, params = cls._class_where(ClassFilters(tenant_id=filters.tenant_id, status=filters.status))
        if filters.user_id is not None:
            clause += (
                " AND (k.class_id IN (SELECT class_id FROM class_enrollments WHERE student_user_id=%s)"
                " OR k.class_id IN (SELECT class_id FROM teacher_assignments WHERE teacher_user_id=%s))"
            )
            params.extend([filters.user_id, filters.user_id])
        return clause, params

    def get_stats(self, filters: AcademicFilters) -> Dict[str, Any]:
        subject_clause, subject_params = self._subject_where(filters)
        course_clause, course_params = self._course_where(filters)
        class_clause, class_params = self._stats_class_where(filters)
        assignment_clause, assignment_params = self._assignment_where(filters)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM subjects s WHERE {subject_clause}", tuple(subject_params))
            subjects = int(fetchone(cur)["n"])
            cur.execute(f"SELECT COUNT(*) AS n FROM courses c WHERE {course_clause}", tuple(course_params))
            courses = int(fetchone(cur)["n"])
            cur.execute(
                f"""
                SELECT COUNT(*) AS n,
                       COALESCE(SUM((SELECT COUNT(*) FROM class_enrollments ce WHERE ce.class_id = k.class_id)), 0) AS students
                FROM classes k WHERE {class_clause}
                """,
                tuple(class_params),
            )
            row = fetchone(cur) or {}
            cur.execute(f"SELECT COUNT(*) AS n FROM teacher_assignments ta WHERE {assignment_clause}", tuple(assignment_params))
            assignments = int(fetchone(cur)["n"])

        return {
            "total_subjects": subjects,
            "total_courses": courses,
            "total_classes": int(row.get("n") or 0),
            "total_students": int(row.get("students") or 0),
            "total_teacher_assignments": assignments,
        }

    # ---- subjects --------------------------------------------------------

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM subjects WHERE subject_id=%s", (subject_id,))
            r = fetchone(cur)
            return _row_to_subject(r) if r else None

    def get_subject_by_code(self, tenant_id: int, subject_code: str) -> Optional[Subject]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM subjects WHERE tenant_id=%s AND subject_code=%s", (tenant_id, subject_code))
            r = fetchone(cur)
            return _row_to_subject(r) if r else None

    def create_subject(
        self,
        *,
        tenant_id: int,
        subject_name: str,
        subject_code: str,
        subject_level: str,
        subject_type: str,
        description: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO subjects(tenant_id, subject_name, subject_code, subject_level, subject_type, description, status)
                VALUES(%s,%s,%s,%s,%s,%s,'ACTIVE')
                """,
                (tenant_id, subject_name, subject_code, subject_level, subject_type, description),
            )
            return int(cur.lastrowid)

    def update_subject(self, subject_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update(
            fields, ["subject_name", "subject_code", "subject_level", "subject_type", "description", "status"]
        )
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE subjects SET {sql} WHERE subject_id=%s", tuple(params + [subject_id]))
            return cur.rowcount > 0

    # ---- courses ---------------------------------------------------------

    def _get_course(self, where: str, params: tuple) -> Optional[Course]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT c.*, (SELECT GROUP_CONCAT(cs.subject_id ORDER BY cs.subject_id)
                             FROM course_subjects cs WHERE cs.course_id = c.course_id) AS subject_ids
                FROM courses c WHERE {where}
                """,
                params,
            )
            r = fetchone(cur)
            return _row_to_course(r) if r else None

    def get_course(self, course_id: int) -> Optional[Course]:
        return self._get_course("c.course_id=%s", (course_id,))

    def get_course_by_code(self, tenant_id: int, course_code: str) -> Optional[Course]:
        return self._get_course("c.tenant_id=%s AND c.course_code=%s", (tenant_id, course_code))

    @staticmethod
    def _set_course_subjects(cur, course_id: int, subject_ids: Sequence[int]) -> None:
        cur.execute("DELETE FROM course_subjects WHERE course_id=%s", (course_id,))
        for sid in dict.fromkeys(int(s) for s in subject_ids):
            cur.execute("INSERT INTO course_subjects(course_id, subject_id) VALUES(%s,%s)", (course_id, sid))

    def create_course(
        self,
        *,
        tenant_id: int,
        course_name: str,
        course_code: str,
        credits: int,
        description: Optional[str],
        subject_ids: Sequence[int],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO courses(tenant_id, course_name, course_code, credits, description, status)
                VALUES(%s,%s,%s,%s,%s,'ACTIVE')
                """,
                (tenant_id, course_name, course_code, int(credits), description),
            )
            course_id = int(cur.lastrowid)
            self._set_course_subjects(cur, course_id, subject_ids)
            return course_id

    def update_course(self, course_id: int, *, fields: Dict[str, Any], subject_ids: Optional[Sequence[int]] = None) -> bool:
        sql, params = build_update(fields, ["course_name", "course_code", "credits", "description", "status"])
        with db_cursor(self._conn_factory) as (_, cur):
            if sql:
                cur.execute(f"UPDATE courses SET {sql} WHERE course_id=%s", tuple(params + [course_id]))
            if subject_ids is not None:
                self._set_course_subjects(cur, course_id, subject_ids)
            return True

    # ---- classes ---------------------------------------------------------

    def get_class(self, class_id: int) -> Optional[SchoolClass]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT k.*, (SELECT COUNT(*) FROM class_enrollments ce WHERE ce.class_id = k.class_id) AS student_count
                FROM classes k WHERE k.class_id=%s
                """,
                (class_id,),
            )
            r = fetchone(cur)
            return _row_to_class(r) if r else None

    def create_class(
        self,
        *,
        tenant_id: int,
        class_name: str,
        grade: Optional[str],
        section: Optional[str],
        capacity: int,
        teacher_id: Optional[int],
        academic_year: Optional[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO classes(tenant_id, class_name, grade, section, capacity, teacher_id, academic_year, status)
                VALUES(%s,%s,%s,%s,%s,%s,%s,'ACTIVE')
                """,
                (tenant_id, class_name, grade, section, int(capacity), teacher_id, academic_year),
            )
            return int(cur.lastrowid)

    def update_class(self, class_id: int, *, fields: Dict[str, Any]) -> bool:
        sql, params = build_update(
            fields, ["class_name", "grade", "section", "capacity", "teacher_id", "academic_year", "status"]
        )
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE classes SET {sql} WHERE class_id=%s", tuple(params + [class_id]))
            return cur.rowcount > 0

    def is_enrolled(self, class_id: int, student_user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS x FROM class_enrollments WHERE class_id=%s AND student_user_id=%s",
                (class_id, student_user_id),
            )
            return fetchone(cur) is not None

    def enroll_student(self, class_id: int, student_user_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO class_enrollments(class_id, student_user_id) VALUES(%s,%s)",
                (class_id, student_user_id),
            )

    def unenroll_student(self, class_id: int, student_user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM class_enrollments WHERE class_id=%s AND student_user_id=%s",
                (class_id, student_user_id),
            )
            return cur.rowcount > 0

    def list_class_students(self, class_id: int) -> List[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT student_user_id FROM class_enrollments WHERE class_id=%s ORDER BY student_user_id",
                (class_id,),
            )
            return [int(r["student_user_id"]) for r in fetchall(cur)]

    # ---- teacher assignments --------------------------------------------

    def get_teacher_assignment(self, assignment_id: int) -> Optional[TeacherAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT * FROM teacher_assignments WHERE assignment_id=%s", (assignment_id,))
            r = fetchone(cur)
            return _row_to_assignment(r) if r else None

    def find_teacher_assignment(
        self, *, tenant_id: int, teacher_user_id: int, subject_id: int, class_id: Optional[int]
    ) -> Optional[TeacherAssignment]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT * FROM teacher_assignments
                WHERE tenant_id=%s AND teacher_user_id=%s AND subject_id=%s AND class_id <=> %s
                """,
                (tenant_id, teacher_user_id, subject_id, class_id),
            )
            r = fetchone(cur)
            return _row_to_assignment(r) if r else None

    def create_teacher_assignment(
        self, *, tenant_id: int, teacher_user_id: int, subject_id: int, class_id: Optional[int]
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO teacher_assignments(tenant_id, teacher_user_id, subject_id, class_id)
                VALUES(%s,%s,%s,%s)
                """,
                (tenant_id, teacher_user_id, subject_id, class_id),
            )
            return int(cur.lastrowid)

    def delete_teacher_assignment(self, assignment_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM teacher_assignments WHERE assignment_id=%s", (assignment_id,))
            return cur.rowcount > 0
