from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ..common.datetime_utils import coerce_date, coerce_optional_date, now_local
from ..common.exporting import ExportFile, export_rows
from ..common.paging import Page, normalize_paging
from ..common.validators import (
    optional_text,
    parse_enum,
    parse_int,
    require_non_empty,
    require_non_negative,
    require_positive,
)
from ..core.constants import DEFAULT_CURRENCY, UPCOMING_DUE_DAYS
from ..core.enums import (
    ExpenseCategory,
    FeeAssignmentStatus,
    FeeFrequency,
    FeeType,
    InvoiceStatus,
    PaymentMethod,
    RoleName,
)
from ..core.exceptions import NotFoundError, ValidationError
from ..users.access import ensure_same_tenant, require_permission, resolve_tenant, tenant_scope
from ..users.model import User
from ..users.repository import UserRepository
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
)
from .repository import FinanceQuery, FinanceRepository

logger = logging.getLogger(__name__)

EXPORT_ROW_LIMIT = 10_000


class FinanceService:
    """Fees, fee assignments, payments, invoices, expenses and budgets."""

    def __init__(
        self,
        finance: FinanceRepository,
        users: UserRepository,
        *,
        clock: Callable[[], datetime] = now_local,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        self._finance = finance
        self._users = users
        self._clock = clock
        self._currency = default_currency

    def _read(self, current_user: User) -> Optional[int]:
        require_permission(current_user, "finance", "read")
        return tenant_scope(current_user)

    def _write(self, current_user: User, tenant_id: Any = None) -> int:
        require_permission(current_user, "finance", "update")
        return resolve_tenant(current_user, tenant_id)

    def _query(self, current_user: User, params: Optional[Dict[str, Any]]) -> FinanceQuery:
        params = params or {}
        page, limit = normalize_paging(params.get("page"), params.get("limit"))
        return FinanceQuery(
            tenant_id=self._read(current_user),
            search=optional_text(params.get("search")),
            status=optional_text(params.get("status")),
            student_id=parse_int(params["student_id"], "student_id") if params.get("student_id") else None,
            fee_type=optional_text(params.get("fee_type")),
            payment_method=optional_text(params.get("payment_method")),
            category=optional_text(params.get("category")),
            year=parse_int(params["year"], "year") if params.get("year") else None,
            start_date=coerce_optional_date(params.get("start_date"), "start_date"),
            end_date=coerce_optional_date(params.get("end_date"), "end_date"),
            active_only=str(params.get("active_only", "")).lower() in {"1", "true", "yes"},
            offset=(page - 1) * limit,
            limit=limit,
        )

    @staticmethod
    def _page(rows_total, query: FinanceQuery) -> Page:
        rows, total = rows_total
        return Page(items=rows, page=query.offset // query.limit + 1, limit=query.limit, total=total)

    def _student(self, student_id: Any, tenant_id: int) -> User:
        student = self._users.get_by_id(parse_int(student_id, "student_id"))
        if not student or student.tenant_id != tenant_id:
            raise NotFoundError("Student not found")
        if RoleName.STUDENT.value not in student.roles:
            raise ValidationError("Fees can only be assigned to students")
        return student

    # ---- fees ------------------------------------------------------------

    def list_fees(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Fee]:
        query = self._query(current_user, params)
        return self._page(self._finance.list_fees(query), query)

    def get_fee(self, *, current_user: User, fee_id: Any) -> Fee:
        self._read(current_user)
        fee = self._finance.get_fee(parse_int(fee_id, "fee_id"))
        if not fee:
            raise NotFoundError("Fee not found")
        ensure_same_tenant(current_user, fee.tenant_id)
        return fee

    def create_fee(self, *, current_user: User, data: Dict[str, Any]) -> Fee:
        tenant = self._write(current_user, data.get("tenant_id"))
        fee_id = self._finance.create_fee(
            tenant_id=tenant,
            fee_name=require_non_empty(data.get("fee_name"), "Fee name"),
            fee_type=parse_enum(FeeType, data.get("fee_type"), "Fee type").value,
            amount=require_positive(data.get("amount"), "Amount"),
            frequency=parse_enum(FeeFrequency, data.get("frequency") or "ONE_TIME", "Frequency").value,
            currency=optional_text(data.get("currency")) or self._currency,
            description=optional_text(data.get("description")),
            effective_date=coerce_optional_date(data.get("effective_date"), "effective_date") or self._clock().date(),
        )
        logger.info("Fee %s created in tenant %s", fee_id, tenant)
        return self.get_fee(current_user=current_user, fee_id=fee_id)

    def update_fee(self, *, current_user: User, fee_id: Any, changes: Dict[str, Any]) -> Fee:
        fee = self.get_fee(current_user=current_user, fee_id=fee_id)
        self._write(current_user, fee.tenant_id)
        fields: Dict[str, Any] = {}
        if "fee_name" in changes:
            fields["fee_name"] = require_non_empty(changes["fee_name"], "Fee name")
        if "fee_type" in changes:
            fields["fee_type"] = parse_enum(FeeType, changes["fee_type"], "Fee type").value
        if "amount" in changes:
            fields["amount"] = require_positive(changes["amount"], "Amount")
        if "frequency" in changes:
            fields["frequency"] = parse_enum(FeeFrequency, changes["frequency"], "Frequency").value
        if "currency" in changes:
            fields["currency"] = require_non_empty(changes["currency"], "Currency").upper()
        if "description" in changes:
            fields["description"] = optional_text(changes["description"])
        if "is_active" in changes:
            fields["is_active"] = 1 if changes["is_active"] else 0
        if not fields:
            raise ValidationError("No updatable fields were provided")
        self._finance.update_fee(fee.fee_id, fields=fields)
        return self.get_fee(current_user=current_user, fee_id=fee.fee_id)

    def deactivate_fee(self, *, current_user: User, fee_id: Any) -> None:
        fee = self.get_fee(current_user=current_user, fee_id=fee_id)
        self._write(current_user, fee.tenant_id)
        self._finance.update_fee(fee.fee_id, fields={"is_active": 0})
        logger.info("Fee %s deactivated", fee.fee_id)

    # ---- fee assignments -------------------------------------------------

    def list_assignments(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[FeeAssignment]:
        query = self._query(current_user, params)
        return self._page(self._finance.list_assignments(query), query)

    def get_assignment(self, *, current_user: User, assignment_id: Any) -> FeeAssignment:
        self._read(current_user)
        assignment = self._finance.get_assignment(parse_int(assignment_id, "fee_assignment_id"))
        if not assignment:
            raise NotFoundError("Fee assignment not found")
        ensure_same_tenant(current_user, assignment.tenant_id)
        return assignment

    def assign_fee(self, *, current_user: User, data: Dict[str, Any]) -> FeeAssignment:
        fee = self.get_fee(current_user=current_user, fee_id=data.get("fee_id"))
        tenant = self._write(current_user, fee.tenant_id)
        if not fee.is_active:
            raise ValidationError("Fee is not active")
        student = self._student(data.get("student_id"), tenant)

        assigned = fee.amount
        if data.get("assigned_amount") not in (None, ""):
            assigned = require_positive(data["assigned_amount"], "Assigned amount")
        discount = require_non_negative(data.get("discount_amount") or 0, "Discount amount")
        scholarship = require_non_negative(data.get("scholarship_amount") or 0, "Scholarship amount")
        final = assigned - discount - scholarship
        if final < 0:
            raise ValidationError("Discount and scholarship cannot exceed the assigned amount")

        assignment_id = self._finance.create_assignment(
            tenant_id=tenant,
            fee_id=fee.fee_id,
            student_user_id=student.user_id,
            class_id=parse_int(data["class_id"], "class_id") if data.get("class_id") else None,
            assigned_amount=assigned,
            discount_amount=discount,
            scholarship_amount=scholarship,
            final_amount=final,
            due_date=coerce_optional_date(data.get("due_date"), "due_date"),
            notes=optional_text(data.get("notes")),
            status=(FeeAssignmentStatus.PAID if final == 0 else FeeAssignmentStatus.PENDING).value,
            created_by=current_user.user_id,
        )
        logger.info("Fee %s assigned to student %s (final %s)", fee.fee_id, student.user_id, final)
        return self.get_assignment(current_user=current_user, assignment_id=assignment_id)

    # ---- payments --------------------------------------------------------

    def list_payments(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Payment]:
        query = self._query(current_user, params)
        return self._page(self._finance.list_payments(query), query)

    def get_payment(self, *, current_user: User, payment_id: Any) -> Payment:
        self._read(current_user)
        payment = self._finance.get_payment(parse_int(payment_id, "payment_id"))
        if not payment:
            raise NotFoundError("Payment not found")
        ensure_same_tenant(current_user, payment.tenant_id)
        return payment

    def record_payment(self, *, current_user: User, data: Dict[str, Any]) -> Payment:
        assignment = self.get_assignment(current_user=current_user, assignment_id=data.get("fee_assignment_id"))
        tenant = self._write(current_user, assignment.tenant_id)
        amount = require_positive(data.get("amount"), "Amount")
        check_payable(assignment, amount)
        method = parse_enum(PaymentMethod, data.get("payment_method"), "Payment method")

        invoice_id: Optional[int] = None
        if data.get("invoice_id"):
            invoice = self.get_invoice(current_user=current_user, invoice_id=data["invoice_id"])
            if invoice.fee_assignment_id not in (None, assignment.assignment_id):
                raise ValidationError("Invoice belongs to another fee assignment")
            invoice_id = invoice.invoice_id

        payment_id = self._finance.record_payment(PaymentDraft(
            tenant_id=tenant,
            student_user_id=assignment.student_user_id,
            fee_assignment_id=assignment.assignment_id,
            amount=amount,
            currency=optional_text(data.get("currency")) or self._currency,
            payment_method=method.value,
            payment_date=self._clock(),
            invoice_id=invoice_id,
            reference_number=optional_text(data.get("reference_number")),
            notes=optional_text(data.get("notes")),
            processed_by=current_user.user_id,
        ))
        payment = self.get_payment(current_user=current_user, payment_id=payment_id)
        logger.info(
            "Payment %s of %s recorded for assignment %s",
            payment.receipt_number, amount, assignment.assignment_id,
        )
        return payment

    # ---- invoices --------------------------------------------------------

    def list_invoices(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Invoice]:
        query = self._query(current_user, params)
        return self._page(self._finance.list_invoices(query), query)

    def get_invoice(self, *, current_user: User, invoice_id: Any) -> Invoice:
        self._read(current_user)
        invoice = self._finance.get_invoice(parse_int(invoice_id, "invoice_id"))
        if not invoice:
            raise NotFoundError("Invoice not found")
        ensure_same_tenant(current_user, invoice.tenant_id)
        return invoice

    def create_invoice(self, *, current_user: User, data: Dict[str, Any]) -> Invoice:
        assignment: Optional[FeeAssignment] = None
        if data.get("fee_assignment_id"):
            assignment = self.get_assignment(current_user=current_user, assignment_id=data["fee_assignment_id"])
            tenant = self._write(current_user, assignment.tenant_id)
            student_id = assignment.student_user_id
        else:
            tenant = self._write(current_user, data.get("tenant_id"))
            student_id = self._student(data.get("student_id"), tenant).user_id

        if data.get("total_amount") not in (None, ""):
            total = require_positive(data["total_amount"], "Total amount")
        elif assignment is not None:
            total = assignment.outstanding
            if total <= 0:
                raise ValidationError("Fee assignment has nothing outstanding")
        else:
            raise ValidationError("Total amount is required")

        due = coerce_optional_date(data.get("due_date"), "due_date") or (assignment.due_date if assignment else None)
        if due is None:
            raise ValidationError("Due date is required")

        invoice_id = self._finance.create_invoice(
            tenant_id=tenant,
            fee_assignment_id=assignment.assignment_id if assignment else None,
            student_user_id=student_id,
            total_amount=total,
            currency=optional_text(data.get("currency")) or self._currency,
            due_date=due,
            payment_terms=optional_text(data.get("payment_terms")),
            notes=optional_text(data.get("notes")),
            status=InvoiceStatus.PENDING.value,
            created_by=current_user.user_id,
        )
        invoice = self.get_invoice(current_user=current_user, invoice_id=invoice_id)
        logger.info("Invoice %s issued in tenant %s", invoice.invoice_number, tenant)
        return invoice

    def mark_overdue(self, *, current_user: User, today: Optional[date] = None) -> Dict[str, int]:
        """Flag unpaid assignments and invoices whose due date has passed."""
        require_permission(current_user, "finance", "update")
        scope = tenant_scope(current_user)
        day = today or self._clock().date()
        assignments = self._finance.list_assignments_due_before(scope, day)
        for a in assignments:
            self._finance.update_assignment(a.assignment_id, fields={"status": FeeAssignmentStatus.OVERDUE.value})
        invoices = self._finance.list_invoices_due_before(scope, day)
        for inv in invoices:
            self._finance.update_invoice(inv.invoice_id, fields={"status": InvoiceStatus.OVERDUE.value})
        if assignments or invoices:
            logger.info("Marked %d assignments and %d invoices overdue", len(assignments), len(invoices))
        return {"assignments": len(assignments), "invoices": len(invoices)}

    # ---- expenses & budgets ----------------------------------------------

    def list_expenses(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Expense]:
        query = self._query(current_user, params)
        return self._page(self._finance.list_expenses(query), query)

    def create_expense(self, *, current_user: User, data: Dict[str, Any]) -> Expense:
        tenant = self._write(current_user, data.get("tenant_id"))
        budget_id = None
        if data.get("budget_id"):
            budget = self._finance.get_budget(parse_int(data["budget_id"], "budget_id"))
            if not budget or budget.tenant_id != tenant:
                raise NotFoundError("Budget not found")
            budget_id = budget.budget_id
        expense_id = self._finance.create_expense(
            tenant_id=tenant,
            expense_category=parse_enum(ExpenseCategory, data.get("expense_category"), "Expense category").value,
            title=require_non_empty(data.get("title"), "Title"),
            description=optional_text(data.get("description")),
            amount=require_positive(data.get("amount"), "Amount"),
            currency=optional_text(data.get("currency")) or self._currency,
            expense_date=coerce_optional_date(data.get("expense_date"), "expense_date") or self._clock().date(),
            vendor=optional_text(data.get("vendor")),
            receipt_number=optional_text(data.get("receipt_number")),
            budget_id=budget_id,
            created_by=current_user.user_id,
        )
        logger.info("Expense %s recorded in tenant %s", expense_id, tenant)
        expense = self._finance.get_expense(expense_id)
        if expense is None:
            raise NotFoundError("Expense not found")
        return expense

    def list_budgets(self, *, current_user: User, params: Optional[Dict[str, Any]] = None) -> Page[Budget]:
        query = self._query(current_user, params)
        return self._page(self._finance.list_budgets(query), query)

    def create_budget(self, *, current_user: User, data: Dict[str, Any]) -> Budget:
        tenant = self._write(current_user, data.get("tenant_id"))
        start = coerce_date(data.get("start_date"), "start_date")
        end = coerce_date(data.get("end_date"), "end_date")
        if end < start:
            raise ValidationError("end_date cannot be before start_date")
        year = parse_int(data.get("budget_year") or start.year, "budget_year")
        budget_id = self._finance.create_budget(
            tenant_id=tenant,
            budget_name=require_non_empty(data.get("budget_name"), "Budget name"),
            budget_year=year,
            budget_category=parse_enum(ExpenseCategory, data.get("budget_category"), "Budget category").value,
            allocated_amount=require_positive(data.get("allocated_amount"), "Allocated amount"),
            currency=optional_text(data.get("currency")) or self._currency,
            start_date=start,
            end_date=end,
            description=optional_text(data.get("description")),
            created_by=current_user.user_id,
        )
        budget = self._finance.get_budget(budget_id)
        if budget is None:
            raise NotFoundError("Budget not found")
        logger.info("Budget %s created in tenant %s", budget_id, tenant)
        return budget

    # ---- dashboard & export ----------------------------------------------

    def get_stats(self, *, current_user: User, today: Optional[date] = None) -> FinanceStats:
        scope = self._read(current_user)
        day = today or self._clock().date()
        return self._finance.get_stats(
            scope,
            month_start=day.replace(day=1),
            today=day,
            upcoming_until=day + timedelta(days=UPCOMING_DUE_DAYS),
        )

    def export_payments(self, *, current_user: User, fmt: str = "csv",
                        params: Optional[Dict[str, Any]] = None) -> ExportFile:
        query = self._query(current_user, params)
        query = replace(query, offset=0, limit=EXPORT_ROW_LIMIT)
        payments, _ = self._finance.list_payments(query)
        rows = [
            {
                "Receipt": p.receipt_number,
                "Transaction": p.transaction_id,
                "Student": p.student_name or p.student_user_id,
                "Fee": p.fee_name or "",
                "Amount": float(p.amount),
                "Currency": p.currency,
                "Method": p.payment_method.value,
                "Status": p.status.value,
                "Date": p.payment_date.strftime("%Y-%m-%d %H:%M") if p.payment_date else "",
            }
            for p in payments
        ]
        stamp = self._clock().strftime("%Y%m%d")
        return export_rows(
            rows,
            fmt=fmt,
            basename=f"payments_{stamp}",
            sheet_name="Payments",
            columns=["Receipt", "Transaction", "Student", "Fee", "Amount", "Currency", "Method", "Status", "Date"],
        )
