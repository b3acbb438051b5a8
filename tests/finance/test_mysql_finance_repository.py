from datetime import date, datetime
from decimal import Decimal

import pytest

from src.shule_system.shule_system.core.exceptions import ValidationError
from src.shule_system.shule_system.finance.model import PaymentDraft
from src.shule_system.shule_system.finance.mysql_finance_repository import MySQLFinanceRepository

from tests.conftest import ScriptedConnection

ASSIGNMENT_ROW = {
    "assignment_id": 7, "tenant_id": 1, "fee_id": 3, "student_user_id": 4, "assigned_amount": "1000",
    "discount_amount": 0, "scholarship_amount": 0, "final_amount": "1000", "paid_amount": "800", "status": "PARTIAL",
}
INVOICE_ROW = {
    "invoice_id": 9, "tenant_id": 1, "invoice_number": "INV-000001", "student_user_id": 4, "total_amount": "1000",
    "outstanding_amount": "200", "due_date": date(2026, 3, 1), "status": "PARTIAL", "fee_assignment_id": 7,
}


def _draft(amount):
    return PaymentDraft(
        tenant_id=1, student_user_id=4, fee_assignment_id=7, amount=Decimal(amount), currency="TZS",
        payment_method="CASH", payment_date=datetime(2026, 2, 14, 10, 15, 30),
    )


@pytest.fixture
def conn():
    return ScriptedConnection([
        ("FROM tenants", [{"tenant_id": 1}]),
        ("COUNT(*) AS n FROM payments", [{"n": 4}]),
        ("FROM fee_assignments WHERE assignment_id", [ASSIGNMENT_ROW]),
        ("FROM invoices WHERE fee_assignment_id", [INVOICE_ROW]),
    ])


def test_payment_is_written_in_one_locked_transaction(conn):
    payment_id = MySQLFinanceRepository(conn).record_payment(_draft("200.00"))

    assert payment_id == 41
    assert (conn.connects, conn.commits, conn.rollbacks) == (1, 1, 0)
    sql = conn.sql()
    assert sql[0] == "SELECT tenant_id FROM tenants WHERE tenant_id=%s FOR UPDATE"
    assert any(s.startswith("SELECT * FROM fee_assignments") and s.endswith("FOR UPDATE") for s in sql)
    assert any(s.startswith("SELECT * FROM invoices") and s.endswith("FOR UPDATE") for s in sql)

    insert = next(params for s, params in conn.statements if s.startswith("INSERT INTO payments"))
    assert "RCP-000005" in insert
    assert "TXN202602141015300005" in insert
    assert 9 in insert

    updates = {s.split()[1]: params for s, params in conn.statements if s.startswith("UPDATE")}
    assert updates["fee_assignments"] == (Decimal("1000.00"), "PAID", 7)
    assert updates["invoices"] == (Decimal("0.00"), "PAID", 9)


def test_overpayment_found_under_lock_rolls_back(conn):
    with pytest.raises(ValidationError):
        MySQLFinanceRepository(conn).record_payment(_draft("300.00"))

    assert (conn.commits, conn.rollbacks) == (0, 1)
    assert not any(s.startswith(("INSERT", "UPDATE")) for s in conn.sql())


def test_invoice_number_is_taken_under_the_tenant_lock():
    conn = ScriptedConnection([
        ("FROM tenants", [{"tenant_id": 1}]),
        ("COUNT(*) AS n FROM invoices", [{"n": 2}]),
    ])
    MySQLFinanceRepository(conn).create_invoice(
        tenant_id=1, fee_assignment_id=7, student_user_id=4, total_amount=Decimal("500.00"), currency="TZS",
        due_date=date(2026, 3, 1), payment_terms=None, notes=None, status="PENDING", created_by=2,
    )

    sql = conn.sql()
    assert sql[0].endswith("FOR UPDATE")
    assert sql[1].startswith("SELECT COUNT(*) AS n FROM invoices")
    insert = next(params for s, params in conn.statements if s.startswith("INSERT INTO invoices"))
    assert "INV-000003" in insert
    assert conn.commits == 1
