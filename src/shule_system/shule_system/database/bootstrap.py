from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

import mysql.connector
from werkzeug.security import generate_password_hash

from ..core.enums import RoleName
from ..users.permissions import all_permission_names, permissions_for_role
from .connection import DBConfig

DEMO_TENANT = ("Shule ya Mfano", "mfano")

# (email, password, first, last, role, belongs to demo tenant)
DEMO_USERS: Sequence[Tuple[str, str, str, str, RoleName, bool]] = (
    ("superadmin@shule.local", "admin123", "System", "Admin", RoleName.SUPER_ADMIN, False),
    ("admin@mfano.shule.local", "admin123", "Amina", "Juma", RoleName.TENANT_ADMIN, True),
    ("teacher@mfano.shule.local", "teacher123", "Baraka", "Mushi", RoleName.TEACHER, True),
    ("student@mfano.shule.local", "student123", "Neema", "Kimaro", RoleName.STUDENT, True),
)


def _connect(db_config: dict, *, with_database: bool = True):
    target = DBConfig.from_dict(db_config)
    kwargs = dict(host=target.host, port=target.port, user=target.user, password=target.password, use_pure=True)
    if with_database:
        kwargs["database"] = target.database
    return mysql.connector.connect(**kwargs)


def _strip_create_db_and_use(sql: str) -> str:
    # schema.sql names a database; the configured one wins.
    sql = re.sub(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$", "", sql)
    sql = re.sub(r"(?im)^\s*USE\b.*?;\s*$", "", sql)
    return sql


def _strip_comments(sql: str) -> str:
    return re.sub(r"(?m)^\s*--.*$", "", sql)


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a script on ';' outside of quoted strings."""
    buf: List[str] = []
    in_single = False
    in_double = False
    escape = False

    for ch in sql:
        if escape:
            buf.append(ch)
            escape = False
            continue

        if ch == "\\":
            buf.append(ch)
            escape = True
            continue

        if ch == "'" and not in_double:
            in_single = not in_single
        elif ch == '"' and not in_single:
            in_double = not in_double
        elif ch == ";" and not in_single and not in_double:
            stmt = "".join(buf).strip()
            buf.clear()
            if stmt:
                yield stmt
            continue

        buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def _run_script(db_config: dict, path: Path) -> None:
    sql = _strip_comments(_strip_create_db_and_use(Path(path).read_text(encoding="utf-8")))
    conn = _connect(db_config)
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


def ensure_database_exists(db_config: dict) -> None:
    target = DBConfig.from_dict(db_config)
    conn = _connect(db_config, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{target.database}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path) -> None:
    ensure_database_exists(db_config)
    _run_script(db_config, Path(schema_path))


def apply_seed_sql(db_config: dict, *, seed_path) -> None:
    _run_script(db_config, Path(seed_path))
    seed_roles(db_config)


def seed_roles(db_config: dict) -> None:
    """Create the system roles and grant each the permissions the static table gives it."""
    conn = _connect(db_config)
    try:
        cur = conn.cursor(dictionary=True)
        for name in all_permission_names():
            resource, _, action = name.partition(":")
            cur.execute(
                "INSERT IGNORE INTO permissions(resource, action, name) VALUES(%s,%s,%s)",
                (resource, action, name),
            )

        for role in RoleName:
            cur.execute("SELECT role_id FROM roles WHERE name=%s AND tenant_id IS NULL", (role.value,))
            row = cur.fetchone()
            if row:
                role_id = int(row["role_id"])
            else:
                cur.execute(
                    "INSERT INTO roles(tenant_id, name, description) VALUES(NULL,%s,%s)",
                    (role.value, f"System role: {role.value}"),
                )
                role_id = int(cur.lastrowid)

            cur.execute("DELETE FROM role_permissions WHERE role_id=%s", (role_id,))
            for name in permissions_for_role(role):
                cur.execute(
                    """
                    INSERT INTO role_permissions(role_id, permission_id)
                    SELECT %s, permission_id FROM permissions WHERE name=%s
                    """,
                    (role_id, name),
                )
        conn.commit()
    finally:
        conn.close()


def ensure_demo_users(db_config: dict) -> None:
    conn = _connect(db_config)
    try:
        cur = conn.cursor(dictionary=True)

        name, subdomain = DEMO_TENANT
        cur.execute("SELECT tenant_id FROM tenants WHERE subdomain=%s", (subdomain,))
        row = cur.fetchone()
        if row:
            tenant_id = int(row["tenant_id"])
        else:
            cur.execute(
                "INSERT INTO tenants(name, subdomain, status) VALUES(%s,%s,'ACTIVE')",
                (name, subdomain),
            )
            tenant_id = int(cur.lastrowid)

        def role_id(role: RoleName) -> int:
            cur.execute("SELECT role_id FROM roles WHERE name=%s AND tenant_id IS NULL", (role.value,))
            found = cur.fetchone()
            if not found:
                raise RuntimeError(f"Missing system role {role.value}; run seed_roles first")
            return int(found["role_id"])

        for email, password, first, last, role, in_tenant in DEMO_USERS:
            password_hash = generate_password_hash(password)
            user_tenant = tenant_id if in_tenant else None
            cur.execute("SELECT user_id FROM users WHERE email=%s", (email,))
            existing = cur.fetchone()
            if existing:
                user_id = int(existing["user_id"])
                cur.execute(
                    """
                    UPDATE users SET tenant_id=%s, first_name=%s, last_name=%s, password_hash=%s, is_active=1
                    WHERE user_id=%s
                    """,
                    (user_tenant, first, last, password_hash, user_id),
                )
            else:
                cur.execute(
                    """
                    INSERT INTO users(tenant_id, email, first_name, last_name, password_hash, is_active)
                    VALUES(%s,%s,%s,%s,%s,1)
                    """,
                    (user_tenant, email, first, last, password_hash),
                )
                user_id = int(cur.lastrowid)
            cur.execute("INSERT IGNORE INTO user_roles(user_id, role_id) VALUES(%s,%s)", (user_id, role_id(role)))

        conn.commit()
    finally:
        conn.close()


def list_tables(db_config: dict) -> List[str]:
    conn = _connect(db_config)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
