import pytest

from src.shule_system.shule_system.core.exceptions import ConflictError
from src.shule_system.shule_system.transport.mysql_transport_repository import MySQLTransportRepository

from tests.conftest import ScriptedConnection

FIELDS = {"student_id": 4, "route_id": 3, "pickup_point": "Mbezi", "dropoff_point": "Gate", "status": "ACTIVE"}


def _repo(riders, capacity=2):
    conn = ScriptedConnection([
        ("FROM transport_routes WHERE route_id", [{"capacity": capacity}]),
        ("COUNT(*) AS n FROM student_transport", [{"n": riders}]),
    ])
    return MySQLTransportRepository(conn), conn


def test_seat_is_taken_with_the_route_locked():
    repo, conn = _repo(riders=1)
    assert repo.create_assignment(tenant_id=1, fields=FIELDS, created_by=2) == 41

    sql = conn.sql()
    assert sql[0] == "SELECT capacity FROM transport_routes WHERE route_id=%s FOR UPDATE"
    assert sql[2].startswith("INSERT INTO student_transport")
    assert sql[3] == "UPDATE transport_routes SET current_occupancy=current_occupancy + 1 WHERE route_id=%s"
    assert (conn.connects, conn.commits) == (1, 1)


def test_full_route_rolls_back():
    repo, conn = _repo(riders=2)
    with pytest.raises(ConflictError):
        repo.create_assignment(tenant_id=1, fields=FIELDS, created_by=2)
    assert (conn.commits, conn.rollbacks) == (0, 1)
    assert not any(s.startswith(("INSERT", "UPDATE")) for s in conn.sql())


def test_ending_an_inactive_assignment_changes_nothing():
    conn = ScriptedConnection([("FROM student_transport WHERE assignment_id", [{"route_id": 3, "status": "INACTIVE"}])])
    assert MySQLTransportRepository(conn).end_assignment(8, status="INACTIVE") is False
    assert not any(s.startswith("UPDATE") for s in conn.sql())
