from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from ..core.constants import DEFAULT_CURRENCY
from ..core.enums import (
    ExpenseCategory,
    FeeAssignmentStatus,
    FeeFrequency,
    FeeType,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
)
from ..core.exceptions import NotFoundError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_update, db_cursor, fetchall, fetchone, to_decimal
from .model import (
    Budget,
    Expense,
    Fee,
    FeeAssignment,
    FinanceStats,
    Invoice,
    Payment,
    PaymentDraft,
    check_payable,
    invoice_number,
    payment_numbers,
    settled_assignment,
    settled_invoice,
)
from .repository import FinanceQuery, FinanceRepository

_FEE_COLS = ("fee_name", "fee_type", "amount", "frequency", "currency", "description", "is_active")
_ASSIGNMENT_COLS = ("paid_amount", "status", "due_date", "notes", "discount_amount",
                    "scholarship_amount", "final_amount")
_INVOICE_COLS = ("outstanding_amount", "status", "due_date", "notes")

_ASSIGNMENT_SELECT = """
    SELECT fa.*, f.fee_name, CONCAT(u.first_name, ' ', u.last_name) AS student_name
    FROM fee_assignments fa
    JOIN fees f ON f.fee_id = fa.fee_id
    JOIN users u ON u.user_id = fa.student_user_id
"""

_PAYMENT_SELECT = """
    SELECT p.*, CONCAT(u.first_name, ' ', u.last_name) AS student_name, f.fee_name
    FROM payments p
    JOIN users u ON u.user_id = p.student_user_id
    LEFT JOIN fee_assignments fa ON fa.assignment_id = p.fee_assignment_id
    LEFT JOIN fees f ON f.fee_id = fa.fee_id
"""

_BUDGET_SELECT = """
    SELECT b.*,
           (SELECT COALESCE(SUM(e.amount), 0) FROM expenses e
            WHERE e.tenant_id = b.tenant_id AND e.expense_category = b.budget_category
              AND e.expense_date BETWEEN b.start_date AND b.end_date) AS spent_amount
    FROM budgets b
"""


def _row_to_fee(r: dict) -> Fee:
    return Fee(
        fee_id=int(r["fee_id"]),
        tenant_id=int(r["tenant_id"]),
        fee_name=r["fee_name"],
        fee_type=FeeType(r["fee_type"]),
        amount=to_decimal(r["amount"]),
        frequency=FeeFrequency(r["frequency"]),
        currency=r.get("currency") or DEFAULT_CURRENCY,
        description=r.get("description"),
        is_active=bool(r.get("is_active", 1)),
        effective_date=r.get("effective_date"),
    )


def _row_to_assignment(r: dict) -> FeeAssignment:
    return FeeAssignment(
        assignment_id=int(r["assignment_id"]),
        tenant_id=int(r["tenant_id"]),
        fee_id=int(r["fee_id"]),
        student_user_id=int(r["student_user_id"]),
        assigned_amount=to_decimal(r["assigned_amount"]),
        discount_amount=to_decimal(r.get("discount_amount")),
        scholarship_amount=to_decimal(r.get("scholarship_amount")),
        final_amount=to_decimal(r["final_amount"]),
        paid_amount=to_decimal(r.get("paid_amount")),
        status=FeeAssignmentStatus(r.get("status") or "PENDING"),
        due_date=r.get("due_date"),
        class_id=r.get("class_id"),
        notes=r.get("notes"),
        fee_name=r.get("fee_name"),
        student_name=r.get("student_name"),
    )


def _row_to_payment(r: dict) -> Payment:
    return Payment(
        payment_id=int(r["payment_id"]),
        tenant_id=int(r["tenant_id"]),
        student_user_id=int(r["student_user_id"]),
        amount=to_decimal(r["amount"]),
        payment_method=PaymentMethod(r["payment_method"]),
        transaction_id=r["transaction_id"],
        reference_number=r["reference_number"],
        receipt_number=r["receipt_number"],
        payment_date=r["payment_date"],
        currency=r.get("currency") or DEFAULT_CURRENCY,
        status=PaymentStatus(r.get("status") or "COMPLETED"),
        fee_assignment_id=r.get("fee_assignment_id"),
        invoice_id=r.get("invoice_id"),
        notes=r.get("notes"),
        processed_by=r.get("processed_by"),
        student_name=r.get("student_name"),
        fee_name=r.get("fee_name"),
    )


def _row_to_invoice(r: dict) -> Invoice:
    return Invoice(
        invoice_id=int(r["invoice_id"]),
        tenant_id=int(r["tenant_id"]),
        invoice_number=r["invoice_number"],
        student_user_id=int(r["student_user_id"]),
        total_amount=to_decimal(r["total_amount"]),
        outstanding_amount=to_decimal(r["outstanding_amount"]),
        due_date=r["due_date"],
        currency=r.get("currency") or DEFAULT_CURRENCY,
        status=InvoiceStatus(r.get("status") or "PENDING"),
        fee_assignment_id=r.get("fee_assignment_id"),
        payment_terms=r.get("payment_terms"),
        notes=r.get("notes"),
        created_by=r.get("created_by"),
    )


def _row_to_expense(r: dict) -> Expense:
    return Expense(
        expense_id=int(r["expense_id"]),
        tenant_id=int(r["tenant_id"]),
        expense_category=ExpenseCategory(r["expense_category"]),
        title=r["title"],
        amount=to_decimal(r["amount"]),
        expense_date=r["expense_date"],
        currency=r.get("currency") or DEFAULT_CURRENCY,
        description=r.get("description"),
        vendor=r.get("vendor"),
        receipt_number=r.get("receipt_number"),
        budget_id=r.get("budget_id"),
        created_by=r.get("created_by"),
    )


def _row_to_budget(r: dict) -> Budget:
    return Budget(
        budget_id=int(r["budget_id"]),
        tenant_id=int(r["tenant_id"]),
        budget_name=r["budget_name"],
        budget_year=int(r["budget_year"]),
        budget_category=ExpenseCategory(r["budget_category"]),
        allocated_amount=to_decimal(r["allocated_amount"]),
        start_date=r["start_date"],
        end_date=r["end_date"],
        currency=r.get("currency") or DEFAULT_CURRENCY,
        description=r.get("description"),
        spent_amount=to_decimal(r.get("spent_amount")),
    )


def _insert_row(cur, table: str, values: Dict[str, Any]) -> int:
    cols = ", ".join(values)
    marks = ", ".join(["%s"] * len(values))
    cur.execute(f"INSERT INTO {table} ({cols}) VALUES ({marks})", tuple(values.values()))
    return int(cur.lastrowid)


def _where(alias: str, q: FinanceQuery, *, search_cols: Tuple[str, ...] = (),
           date_col: Optional[str] = None, **columns: str) -> Tuple[str, List[Any]]:
    """Build a WHERE clause; `columns` maps FinanceQuery attributes to column names."""
    where: List[str] = ["1=1"]
    params: List[Any] = []
    if q.tenant_id is not None:
        where.append(f"{alias}.tenant_id=%s")
        params.append(q.tenant_id)
    for attr, col in columns.items():
        value = getattr(q, attr)
        if value not in (None, ""):
            where.append(f"{col}=%s")
            params.append(value)
    if q.search and search_cols:
        where.append("(" + " OR ".join(f"{c} LIKE %s" for c in search_cols) + ")")
        params.extend([f"%{q.search}%"] * len(search_cols))
    if date_col and q.start_date:
        where.append(f"{date_col}>=%s")
        params.append(q.start_date)
    if date_col and q.end_date:
        where.append(f"{date_col}<=%s")
        params.append(q.end_date)
    return " AND ".join(where), params


class MySQLFinanceRepository(FinanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _page(self, select: str, count_from: str, where: str, params: List[Any],
              order: str, q: FinanceQuery, mapper) -> Tuple[list, int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS n FROM {count_from} WHERE {where}", params)
            total = int((fetchone(cur) or {}).get("n") or 0)
            cur.execute(f"{select} WHERE {where} ORDER BY {order} LIMIT %s OFFSET %s",
                        (*params, int(q.limit), int(q.offset)))
            return [mapper(r) for r in fetchall(cur)], total

    def _get(self, sql: str, row_id: int, mapper):
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, (int(row_id),))
            row = fetchone(cur)
            return mapper(row) if row else None

    def _update(self, table: str, key: str, row_id: int, fields: Dict[str, Any], allowed) -> bool:
        sql, params = build_update(fields, allowed)
        if not sql:
            return False
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE {table} SET {sql} WHERE {key}=%s", (*params, int(row_id)))
            return cur.rowcount > 0

    def _insert(self, table: str, values: Dict[str, Any]) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            return _insert_row(cur, table, values)

    @staticmethod
    def _next_sequence(cur, table: str, tenant_id: int) -> int:
        # the tenant row lock serialises numbering until the transaction ends
        cur.execute("SELECT tenant_id FROM tenants WHERE tenant_id=%s FOR UPDATE", (int(tenant_id),))
        fetchall(cur)
        cur.execute(f"SELECT COUNT(*) AS n FROM {table} WHERE tenant_id=%s", (int(tenant_id),))
        return int((fetchone(cur) or {}).get("n") or 0) + 1

    # ---- fees ------------------------------------------------------------

    def list_fees(self, query: FinanceQuery) -> Tuple[List[Fee], int]:
        where, params = _where("f", query, search_cols=("f.fee_name", "f.description"), fee_type="f.fee_type")
        if query.active_only:
            where += " AND f.is_active=1"
        return self._page("SELECT f.* FROM fees f", "fees f", where, params, "f.fee_name", query, _row_to_fee)

    def get_fee(self, fee_id: int) -> Optional[Fee]:
        return self._get("SELECT * FROM fees WHERE fee_id=%s", fee_id, _row_to_fee)

    def create_fee(self, *, tenant_id, fee_name, fee_type, amount, frequency, currency, description,
                   effective_date) -> int:
        return self._insert("fees", {
            "tenant_id": tenant_id, "fee_name": fee_name, "fee_type": fee_type, "amount": amount,
            "frequency": frequency, "currency": currency, "description": description,
            "effective_date": effective_date, "is_active": 1,
        })

    def update_fee(self, fee_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("fees", "fee_id", fee_id, fields, _FEE_COLS)

    # ---- assignments -----------------------------------------------------

    def list_assignments(self, query: FinanceQuery) -> Tuple[List[FeeAssignment], int]:
        where, params = _where("fa", query, search_cols=("f.fee_name", "u.first_name", "u.last_name"),
                               status="fa.status", student_id="fa.student_user_id")
        return self._page(
            _ASSIGNMENT_SELECT,
            "fee_assignments fa JOIN fees f ON f.fee_id = fa.fee_id JOIN users u ON u.user_id = fa.student_user_id",
            where, params, "fa.due_date IS NULL, fa.due_date", query, _row_to_assignment,
        )

    def get_assignment(self, assignment_id: int) -> Optional[FeeAssignment]:
        return self._get(f"{_ASSIGNMENT_SELECT} WHERE fa.assignment_id=%s", assignment_id, _row_to_assignment)

    def create_assignment(self, *, tenant_id, fee_id, student_user_id, class_id, assigned_amount,
                          discount_amount, scholarship_amount, final_amount, due_date, notes, status,
                          created_by) -> int:
        return self._insert("fee_assignments", {
            "tenant_id": tenant_id, "fee_id": fee_id, "student_user_id": student_user_id,
            "class_id": class_id, "assigned_amount": assigned_amount, "discount_amount": discount_amount,
            "scholarship_amount": scholarship_amount, "final_amount": final_amount, "paid_amount": 0,
            "due_date": due_date, "notes": notes, "status": status, "created_by": created_by,
        })

    def update_assignment(self, assignment_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("fee_assignments", "assignment_id", assignment_id, fields, _ASSIGNMENT_COLS)

    def list_assignments_due_before(self, tenant_id: Optional[int], day: date) -> List[FeeAssignment]:
        sql = f"{_ASSIGNMENT_SELECT} WHERE fa.status IN ('PENDING','PARTIAL') AND fa.due_date < %s"
        params: List[Any] = [day]
        if tenant_id is not None:
            sql += " AND fa.tenant_id=%s"
            params.append(tenant_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_row_to_assignment(r) for r in fetchall(cur)]

    # ---- payments --------------------------------------------------------

    def list_payments(self, query: FinanceQuery) -> Tuple[List[Payment], int]:
        where, params = _where("p", query, search_cols=("p.transaction_id", "p.receipt_number", "u.last_name"),
                               date_col="DATE(p.payment_date)", status="p.status",
                               student_id="p.student_user_id", payment_method="p.payment_method")
        return self._page(
            _PAYMENT_SELECT,
            "payments p JOIN users u ON u.user_id = p.student_user_id",
            where, params, "p.payment_date DESC", query, _row_to_payment,
        )

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self._get(f"{_PAYMENT_SELECT} WHERE p.payment_id=%s", payment_id, _row_to_payment)

    def record_payment(self, draft: PaymentDraft) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            sequence = self._next_sequence(cur, "payments", draft.tenant_id)
            cur.execute("SELECT * FROM fee_assignments WHERE assignment_id=%s FOR UPDATE",
                        (int(draft.fee_assignment_id),))
            row = fetchone(cur)
            if row is None:
                raise NotFoundError("Fee assignment not found")
            assignment = _row_to_assignment(row)
            check_payable(assignment, draft.amount)

            if draft.invoice_id is not None:
                cur.execute("SELECT * FROM invoices WHERE invoice_id=%s FOR UPDATE", (int(draft.invoice_id),))
            else:
                cur.execute(
                    "SELECT * FROM invoices WHERE fee_assignment_id=%s AND outstanding_amount > 0 "
                    "AND status NOT IN ('PAID','CANCELLED') ORDER BY invoice_id LIMIT 1 FOR UPDATE",
                    (assignment.assignment_id,),
                )
            invoice_row = fetchone(cur)
            invoice = _row_to_invoice(invoice_row) if invoice_row else None

            payment_id = _insert_row(cur, "payments", {
                "tenant_id": draft.tenant_id, "student_user_id": draft.student_user_id,
                "fee_assignment_id": assignment.assignment_id,
                "invoice_id": invoice.invoice_id if invoice else None,
                "amount": draft.amount, "currency": draft.currency, "payment_method": draft.payment_method,
                **payment_numbers(draft, sequence),
                "payment_date": draft.payment_date, "status": PaymentStatus.COMPLETED.value,
                "notes": draft.notes, "processed_by": draft.processed_by,
            })
            settled = settled_assignment(assignment, draft.amount)
            cur.execute("UPDATE fee_assignments SET paid_amount=%s, status=%s WHERE assignment_id=%s",
                        (settled["paid_amount"], settled["status"], assignment.assignment_id))
            if invoice is not None:
                settled = settled_invoice(invoice, draft.amount)
                cur.execute("UPDATE invoices SET outstanding_amount=%s, status=%s WHERE invoice_id=%s",
                            (settled["outstanding_amount"], settled["status"], invoice.invoice_id))
            return payment_id

    # ---- invoices --------------------------------------------------------

    def list_invoices(self, query: FinanceQuery) -> Tuple[List[Invoice], int]:
        where, params = _where("i", query, search_cols=("i.invoice_number",), date_col="i.due_date",
                               status="i.status", student_id="i.student_user_id")
        return self._page("SELECT i.* FROM invoices i", "invoices i", where, params,
                          "i.invoice_id DESC", query, _row_to_invoice)

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self._get("SELECT * FROM invoices WHERE invoice_id=%s", invoice_id, _row_to_invoice)

    def create_invoice(self, *, tenant_id, fee_assignment_id, student_user_id, total_amount,
                       currency, due_date, payment_terms, notes, status, created_by) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            sequence = self._next_sequence(cur, "invoices", tenant_id)
            return _insert_row(cur, "invoices", {
                "tenant_id": tenant_id, "invoice_number": invoice_number(sequence),
                "fee_assignment_id": fee_assignment_id,
                "student_user_id": student_user_id, "total_amount": total_amount, "outstanding_amount": total_amount,
                "currency": currency, "due_date": due_date, "payment_terms": payment_terms, "notes": notes,
                "status": status, "created_by": created_by,
            })

    def update_invoice(self, invoice_id: int, *, fields: Dict[str, Any]) -> bool:
        return self._update("invoices", "invoice_id", invoice_id, fields, _INVOICE_COLS)

    def list_invoices_due_before(self, tenant_id: Optional[int], day: date) -> List[Invoice]:
        sql = "SELECT * FROM invoices WHERE status IN ('PENDING','PARTIAL') AND due_date < %s"
        params: List[Any] = [day]
        if tenant_id is not None:
            sql += " AND tenant_id=%s"
            params.append(tenant_id)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_row_to_invoice(r) for r in fetchall(cur)]

    # ---- expenses & budgets ----------------------------------------------

    def list_expenses(self, query: FinanceQuery) -> Tuple[List[Expense], int]:
        where, params = _where("e", query, search_cols=("e.title", "e.vendor"), date_col="e.expense_date",
                               category="e.expense_category")
        return self._page("SELECT e.* FROM expenses e", "expenses e", where, params,
                          "e.expense_date DESC", query, _row_to_expense)

    def create_expense(self, *, tenant_id, expense_category, title, description, amount, currency,
                       expense_date, vendor, receipt_number, budget_id, created_by) -> int:
        return self._insert("expenses", {
            "tenant_id": tenant_id, "expense_category": expense_category, "title": title,
            "description": description, "amount": amount, "currency": currency, "expense_date": expense_date,
            "vendor": vendor, "receipt_number": receipt_number, "budget_id": budget_id, "created_by": created_by,
        })

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        return self._get("SELECT * FROM expenses WHERE expense_id=%s", expense_id, _row_to_expense)

    def list_budgets(self, query: FinanceQuery) -> Tuple[List[Budget], int]:
        where, params = _where("b", query, search_cols=("b.budget_name",),
                               category="b.budget_category", year="b.budget_year")
        return self._page(_BUDGET_SELECT, "budgets b", where, params,
                          "b.budget_year DESC, b.budget_name", query, _row_to_budget)

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        return self._get(f"{_BUDGET_SELECT} WHERE b.budget_id=%s", budget_id, _row_to_budget)

    def create_budget(self, *, tenant_id, budget_name, budget_year, budget_category, allocated_amount,
                      currency, start_date, end_date, description, created_by) -> int:
        return self._insert("budgets", {
            "tenant_id": tenant_id, "budget_name": budget_name, "budget_year": budget_year,
            "budget_category": budget_category, "allocated_amount": allocated_amount, "currency": currency,
            "start_date": start_date, "end_date": end_date, "description": description,
            "created_by": created_by,
        })

    # ---- dashboard -------------------------------------------------------

    def get_stats(self, tenant_id: Optional[int], *, month_start: date, today: date,
                  upcoming_until: date) -> FinanceStats:
        scope = "tenant_id=%s" if tenant_id is not None else "1=1"
        tp: Tuple[Any, ...] = (tenant_id,) if tenant_id is not None else ()

        def totals(cur, sql: str, params: Tuple[Any, ...]) -> Tuple[Any, int]:
            cur.execute(sql, params)
            row = fetchone(cur) or {}
            return to_decimal(row.get("total")), int(row.get("n") or 0)

        with db_cursor(self._conn_factory) as (_, cur):
            collected = totals(cur, f"SELECT COALESCE(SUM(amount),0) AS total, COUNT(*) AS n FROM payments "
                                    f"WHERE {scope} AND status='COMPLETED'", tp)
            monthly = totals(cur, f"SELECT COALESCE(SUM(amount),0) AS total, COUNT(*) AS n FROM payments "
                                  f"WHERE {scope} AND status='COMPLETED' AND DATE(payment_date) BETWEEN %s AND %s",
                             (*tp, month_start, today))
            outstanding = totals(cur, f"SELECT COALESCE(SUM(final_amount - paid_amount),0) AS total, COUNT(*) AS n "
                                      f"FROM fee_assignments WHERE {scope} "
                                      f"AND status IN ('PENDING','PARTIAL','OVERDUE')", tp)
            expenses = totals(cur, f"SELECT COALESCE(SUM(amount),0) AS total, COUNT(*) AS n FROM expenses "
                                   f"WHERE {scope}", tp)
            budgets = totals(cur, f"SELECT COALESCE(SUM(allocated_amount),0) AS total, COUNT(*) AS n FROM budgets "
                                  f"WHERE {scope}", tp)

            cur.execute(f"{_PAYMENT_SELECT} WHERE {scope.replace('tenant_id', 'p.tenant_id')} "
                        "ORDER BY p.payment_date DESC LIMIT 5", tp)
            recent = [_row_to_payment(r) for r in fetchall(cur)]

            cur.execute(f"{_ASSIGNMENT_SELECT} WHERE {scope.replace('tenant_id', 'fa.tenant_id')} "
                        "AND fa.status IN ('PENDING','PARTIAL') AND fa.due_date BETWEEN %s AND %s "
                        "ORDER BY fa.due_date LIMIT 5", (*tp, today, upcoming_until))
            upcoming = [_row_to_assignment(r) for r in fetchall(cur)]

            cur.execute(f"SELECT expense_category, COALESCE(SUM(amount),0) AS total, COUNT(*) AS n "
                        f"FROM expenses WHERE {scope} GROUP BY expense_category ORDER BY total DESC", tp)
            breakdown = [{"expense_category": r["expense_category"], "total": to_decimal(r["total"]),
                          "count": int(r["n"])} for r in fetchall(cur)]

            cur.execute(f"SELECT payment_method, COALESCE(SUM(amount),0) AS total, COUNT(*) AS n "
                        f"FROM payments WHERE {scope} AND status='COMPLETED' GROUP BY payment_method", tp)
            methods = [{"payment_method": r["payment_method"], "total": to_decimal(r["total"]),
                        "count": int(r["n"])} for r in fetchall(cur)]

        return FinanceStats(
            total_fees_collected=collected[0], total_fees_count=collected[1],
            monthly_payments=monthly[0], monthly_payments_count=monthly[1],
            outstanding_fees=outstanding[0], outstanding_fees_count=outstanding[1],
            total_expenses=expenses[0], total_expenses_count=expenses[1],
            total_budgets=budgets[0], total_budgets_count=budgets[1],
            recent_payments=recent, upcoming_due_dates=upcoming,
            expense_breakdown=breakdown, payment_methods=methods,
        )
