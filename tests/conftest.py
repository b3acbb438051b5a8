from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Dict, Optional, Sequence

import pytest
from werkzeug.security import generate_password_hash

from src.shule_system.shule_system.core.enums import RoleName
from src.shule_system.shule_system.users.model import User
from src.shule_system.shule_system.users.permissions import permissions_for_role


def make_user(
    user_id: int,
    *roles: RoleName,
    tenant_id: Optional[int] = 1,
    email: Optional[str] = None,
    password: str = "secret123",
    is_active: bool = True,
) -> User:
    names = tuple(r.value for r in roles)
    grants: Dict[str, None] = {}
    for role in roles:
        for name in permissions_for_role(role):
            grants.setdefault(name, None)
    return User(
        user_id=user_id,
        tenant_id=tenant_id,
        email=email or f"user{user_id}@shule.test",
        first_name=f"First{user_id}",
        last_name=f"Last{user_id}",
        password_hash=generate_password_hash(password),
        roles=names,
        permissions=tuple(grants),
        is_active=is_active,
        created_at=datetime(2026, 1, 1, 8, 0),
    )


class InMemoryUsers:
    """UserRepository over a dict; roles map to grants via the static table."""

    def __init__(self, *users: User):
        self.users: Dict[int, User] = {u.user_id: u for u in users}
        self._next = max(self.users, default=0) + 1

    def add(self, user: User) -> User:
        self.users[user.user_id] = user
        self._next = max(self._next, user.user_id + 1)
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.users.get(int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    def list_users(self, *, tenant_id, search=None, role=None, offset=0, limit=25):
        items = [u for u in self.users.values() if tenant_id is None or u.tenant_id == tenant_id]
        if search:
            items = [u for u in items if search in u.email or search in u.full_name]
        if role:
            items = [u for u in items if role in u.roles]
        items.sort(key=lambda u: u.user_id, reverse=True)
        return items[offset:offset + limit], len(items)

    def create_user(self, *, tenant_id, email, first_name, last_name, password_hash, phone,
                    role_names: Sequence[str]) -> int:
        user_id = self._next
        self._next += 1
        roles = [RoleName(n) for n in role_names]
        user = make_user(user_id, *roles, tenant_id=tenant_id, email=email)
        self.users[user_id] = replace(
            user, first_name=first_name, last_name=last_name, password_hash=password_hash, phone=phone
        )
        return user_id

    def update_user(self, user_id: int, *, fields, role_names=None) -> bool:
        user = self.users.get(int(user_id))
        if not user:
            return False
        if "is_active" in fields:
            fields = {**fields, "is_active": bool(fields["is_active"])}
        user = replace(user, **fields)
        if role_names is not None:
            rebuilt = make_user(user.user_id, *[RoleName(n) for n in role_names], tenant_id=user.tenant_id)
            user = replace(user, roles=rebuilt.roles, permissions=rebuilt.permissions)
        self.users[user.user_id] = user
        return True

    def delete_by_id(self, user_id: int) -> bool:
        return self.users.pop(int(user_id), None) is not None

    def get_stats(self, *, tenant_id):
        scoped = [u for u in self.users.values() if tenant_id is None or u.tenant_id == tenant_id]
        by_role: Dict[str, int] = {}
        for u in scoped:
            for r in u.roles:
                by_role[r] = by_role.get(r, 0) + 1
        return {"total": len(scoped), "active": sum(1 for u in scoped if u.is_active), "by_role": by_role}



class ScriptedConnection:
    """Stands in for a mysql-connector connection.

    `responses` pairs an SQL fragment with the rows a statement containing it
    returns; every statement is recorded as (normalised sql, params).
    """

    def __init__(self, responses=(), *, lastrowid: int = 41):
        self.responses = list(responses)
        self.lastrowid = lastrowid
        self.statements = []
        self.commits = 0
        self.rollbacks = 0
        self.connects = 0

    def connect(self):
        self.connects += 1
        return self

    def cursor(self, dictionary=False):
        return _ScriptedCursor(self)

    def rows_for(self, sql):
        for fragment, rows in self.responses:
            if fragment in sql:
                return list(rows)
        return []

    def sql(self):
        return [s for s, _ in self.statements]

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        pass


class _ScriptedCursor:
    def __init__(self, conn: ScriptedConnection):
        self._conn = conn
        self._rows = []
        self.lastrowid = None
        self.rowcount = 0

    def execute(self, sql, params=()):
        sql = " ".join(sql.split())
        self._conn.statements.append((sql, tuple(params)))
        self._rows = self._conn.rows_for(sql)
        self.rowcount = 1
        if sql.startswith("INSERT"):
            self.lastrowid = self._conn.lastrowid

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        pass


@pytest.fixture
def super_admin() -> User:
    return make_user(1, RoleName.SUPER_ADMIN, tenant_id=None)


@pytest.fixture
def tenant_admin() -> User:
    return make_user(2, RoleName.TENANT_ADMIN, tenant_id=1)


@pytest.fixture
def teacher() -> User:
    return make_user(3, RoleName.TEACHER, tenant_id=1)


@pytest.fixture
def student() -> User:
    return make_user(4, RoleName.STUDENT, tenant_id=1)


@pytest.fixture
def other_tenant_admin() -> User:
    return make_user(5, RoleName.TENANT_ADMIN, tenant_id=2)


@pytest.fixture
def users(super_admin, tenant_admin, teacher, student, other_tenant_admin) -> InMemoryUsers:
    return InMemoryUsers(super_admin, tenant_admin, teacher, student, other_tenant_admin)
