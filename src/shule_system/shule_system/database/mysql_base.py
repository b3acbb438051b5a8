from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .connection import DatabaseConnection


@contextmanager
def db_cursor(conn_factory: DatabaseConnection, *, dictionary: bool = True):
    conn = conn_factory.connect()
    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"))


def split_csv(value: Any) -> Tuple[str, ...]:
    """Split GROUP_CONCAT output into a tuple, tolerating NULL."""
    if not value:
        return ()
    return tuple(v for v in str(value).split(",") if v)


def build_update(fields: Dict[str, Any], allowed: Sequence[str]) -> Tuple[str, List[Any]]:
    """Build a `col=%s, ...` fragment from whitelisted columns only."""
    cols = [c for c in allowed if c in fields]
    sql = ", ".join(f"{c}=%s" for c in cols)
    return sql, [fields[c] for c in cols]
