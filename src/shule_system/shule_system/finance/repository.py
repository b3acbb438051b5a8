from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .model import Budget, Expense, Fee, FeeAssignment, FinanceStats, Invoice, Payment, PaymentDraft


@dataclass(frozen=True)
class FinanceQuery:
    tenant_id: Optional[int] = None
    search: Optional[str] = None
    status: Optional[str] = None
    student_id: Optional[int] = None
    fee_type: Optional[str] = None
    payment_method: Optional[str] = None
    category: Optional[str] = None
    year: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    active_only: bool = False
    offset: int = 0
    limit: int = 25


class FinanceRepository(Protocol):
    # fees
    def list_fees(self, query: FinanceQuery) -> Tuple[List[Fee], int]:
        raise NotImplementedError

    def get_fee(self, fee_id: int) -> Optional[Fee]:
        raise NotImplementedError

    def create_fee(
        self,
        *,
        tenant_id: int,
        fee_name: str,
        fee_type: str,
        amount: Decimal,
        frequency: str,
        currency: str,
        description: Optional[str],
        effective_date: date,
    ) -> int:
        raise NotImplementedError

    def update_fee(self, fee_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    # fee assignments
    def list_assignments(self, query: FinanceQuery) -> Tuple[List[FeeAssignment], int]:
        raise NotImplementedError

    def get_assignment(self, assignment_id: int) -> Optional[FeeAssignment]:
        raise NotImplementedError

    def create_assignment(
        self,
        *,
        tenant_id: int,
        fee_id: int,
        student_user_id: int,
        class_id: Optional[int],
        assigned_amount: Decimal,
        discount_amount: Decimal,
        scholarship_amount: Decimal,
        final_amount: Decimal,
        due_date: Optional[date],
        notes: Optional[str],
        status: str,
        created_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def update_assignment(self, assignment_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def list_assignments_due_before(self, tenant_id: Optional[int], day: date) -> List[FeeAssignment]:
        """Unpaid (PENDING/PARTIAL) assignments with a due date before `day`."""
        raise NotImplementedError

    # payments
    def list_payments(self, query: FinanceQuery) -> Tuple[List[Payment], int]:
        raise NotImplementedError

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        raise NotImplementedError

    def record_payment(self, draft: PaymentDraft) -> int:
        """Store the payment and apply it to its assignment and invoice as one unit.

        The balance is re-checked against the locked assignment row, so
        concurrent payments cannot overpay it, and the receipt sequence is
        taken under a per-tenant lock. Without `draft.invoice_id` the oldest
        open invoice of the assignment is settled. Raises ValidationError
        when the assignment can no longer take the amount.
        """
        raise NotImplementedError

    # invoices
    def list_invoices(self, query: FinanceQuery) -> Tuple[List[Invoice], int]:
        raise NotImplementedError

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        raise NotImplementedError

    def create_invoice(
        self,
        *,
        tenant_id: int,
        fee_assignment_id: Optional[int],
        student_user_id: int,
        total_amount: Decimal,
        currency: str,
        due_date: date,
        payment_terms: Optional[str],
        notes: Optional[str],
        status: str,
        created_by: Optional[int],
    ) -> int:
        """Insert with the tenant's next INV- number; returns the new id."""
        raise NotImplementedError

    def update_invoice(self, invoice_id: int, *, fields: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def list_invoices_due_before(self, tenant_id: Optional[int], day: date) -> List[Invoice]:
        raise NotImplementedError

    # expenses & budgets
    def list_expenses(self, query: FinanceQuery) -> Tuple[List[Expense], int]:
        raise NotImplementedError

    def create_expense(
        self,
        *,
        tenant_id: int,
        expense_category: str,
        title: str,
        description: Optional[str],
        amount: Decimal,
        currency: str,
        expense_date: date,
        vendor: Optional[str],
        receipt_number: Optional[str],
        budget_id: Optional[int],
        created_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        raise NotImplementedError

    def list_budgets(self, query: FinanceQuery) -> Tuple[List[Budget], int]:
        """Budgets with `spent_amount` filled from expenses of the same
        category dated within the budget period."""
        raise NotImplementedError

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        raise NotImplementedError

    def create_budget(
        self,
        *,
        tenant_id: int,
        budget_name: str,
        budget_year: int,
        budget_category: str,
        allocated_amount: Decimal,
        currency: str,
        start_date: date,
        end_date: date,
        description: Optional[str],
        created_by: Optional[int],
    ) -> int:
        raise NotImplementedError

    # dashboard
    def get_stats(
        self, tenant_id: Optional[int], *, month_start: date, today: date, upcoming_until: date
    ) -> FinanceStats:
        raise NotImplementedError
