from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone
from .model import User
from .repository import UserRepository

_USER_COLUMNS = "u.user_id, u.tenant_id, u.email, u.first_name, u.last_name, u.phone, u.password_hash, u.is_active, u.created_at"


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    @staticmethod
    def _grants(cur, user_id: int) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
        cur.execute(
            """
            SELECT r.name
            FROM user_roles ur
            JOIN roles r ON r.role_id = ur.role_id
            WHERE ur.user_id=%s
            ORDER BY r.name
            """,
            (user_id,),
        )
        roles = tuple(r["name"] for r in fetchall(cur))
        cur.execute(
            """
            SELECT DISTINCT p.name
            FROM user_roles ur
            JOIN role_permissions rp ON rp.role_id = ur.role_id
            JOIN permissions p ON p.permission_id = rp.permission_id
            WHERE ur.user_id=%s
            ORDER BY p.name
            """,
            (user_id,),
        )
        permissions = tuple(r["name"] for r in fetchall(cur))
        return roles, permissions

    def _to_user(self, cur, row: dict) -> User:
        roles, permissions = self._grants(cur, int(row["user_id"]))
        return User(
            user_id=int(row["user_id"]),
            tenant_id=row.get("tenant_id"),
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            password_hash=row["password_hash"],
            roles=roles,
            permissions=permissions,
            phone=row.get("phone"),
            is_active=bool(row.get("is_active", True)),
            created_at=row.get("created_at"),
        )

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users u WHERE u.user_id=%s", (user_id,))
            row = fetchone(cur)
            return self._to_user(cur, row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users u WHERE u.email=%s", (email,))
            row = fetchone(cur)
            return self._to_user(cur, row) if row else None

    def list_users(
        self,
        *,
        tenant_id: Optional[int],
        search: Optional[str] = None,
        role: Optional[str] = None,
        offset: int = 0,
        limit: int = 25,
    ) -> Tuple[List[User], int]:
        where: List[str] = ["1=1"]
        params: List[Any] = []
        if tenant_id is not None:
            where.append("u.tenant_id=%s")
            params.append(tenant_id)
        if search:
            where.append("(u.email LIKE %s OR u.first_name LIKE %s OR u.last_name LIKE %s)")
            like = f"%{search}%"
            params.extend([like, like, like])
        if role:
            where.append(
                "EXISTS (SELECT 1 FROM user_roles ur JOIN roles r ON r.role_id=ur.role_id "
                "WHERE ur.user_id=u.user_id AND r.name=%s)"
            )
            params.append(role)
        clause = " AND ".join(where)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM users u WHERE {clause}", tuple(params))
            total = int(fetchone(cur)["n"])
            cur.execute(
                f"SELECT {_USER_COLUMNS} FROM users u WHERE {clause} ORDER BY u.user_id DESC LIMIT %s OFFSET %s",
                tuple(params + [int(limit), int(offset)]),
            )
            rows = fetchall(cur)
            return [self._to_user(cur, r) for r in rows], total

    @staticmethod
    def _set_roles(cur, user_id: int, tenant_id: Optional[int], role_names: Sequence[str]) -> None:
        cur.execute("DELETE FROM user_roles WHERE user_id=%s", (user_id,))
        for name in role_names:
            cur.execute(
                """
                SELECT role_id FROM roles
                WHERE name=%s AND (tenant_id=%s OR tenant_id IS NULL)
                ORDER BY tenant_id IS NULL
                LIMIT 1
                """,
                (name, tenant_id),
            )
            row = fetchone(cur)
            if row:
                cur.execute("INSERT INTO user_roles(user_id, role_id) VALUES(%s,%s)", (user_id, int(row["role_id"])))

    def create_user(
        self,
        *,
        tenant_id: Optional[int],
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        phone: Optional[str],
        role_names: Sequence[str],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(tenant_id, email, first_name, last_name, phone, password_hash, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,1)
                """,
                (tenant_id, email, first_name, last_name, phone, password_hash),
            )
            user_id = int(cur.lastrowid)
            self._set_roles(cur, user_id, tenant_id, role_names)
            return user_id

    def update_user(self, user_id: int, *, fields: Dict[str, Any], role_names: Optional[Sequence[str]] = None) -> bool:
        sql, params = build_update(fields, ["email", "first_name", "last_name", "phone", "password_hash", "is_active"])
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT tenant_id FROM users WHERE user_id=%s", (user_id,))
            row = fetchone(cur)
            if not row:
                return False
            if sql:
                cur.execute(f"UPDATE users SET {sql} WHERE user_id=%s", tuple(params + [user_id]))
            if role_names is not None:
                self._set_roles(cur, user_id, row.get("tenant_id"), role_names)
            return True

    def delete_by_id(self, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM user_roles WHERE user_id=%s", (user_id,))
            cur.execute("DELETE FROM users WHERE user_id=%s", (user_id,))
            return cur.rowcount > 0

    def get_stats(self, *, tenant_id: Optional[int]) -> dict:
        scope = "WHERE u.tenant_id=%s" if tenant_id is not None else ""
        params = (tenant_id,) if tenant_id is not None else ()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT COUNT(*) AS total, COALESCE(SUM(u.is_active), 0) AS active FROM users u {scope}",
                params,
            )
            totals = fetchone(cur) or {}
            cur.execute(
                f"""
                SELECT r.name, COUNT(DISTINCT u.user_id) AS n
                FROM users u
                JOIN user_roles ur ON ur.user_id = u.user_id
                JOIN roles r ON r.role_id = ur.role_id
                {scope}
                GROUP BY r.name
                """,
                params,
            )
            by_role = {r["name"]: int(r["n"]) for r in fetchall(cur)}
        return {"total": int(totals.get("total") or 0), "active": int(totals.get("active") or 0), "by_role": by_role}
