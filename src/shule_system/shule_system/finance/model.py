from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

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
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class Fee:
    fee_id: int
    tenant_id: int
    fee_name: str
    fee_type: FeeType
    amount: Decimal
    frequency: FeeFrequency
    currency: str = DEFAULT_CURRENCY
    description: Optional[str] = None
    is_active: bool = True
    effective_date: Optional[date] = None


@dataclass(frozen=True)
class FeeAssignment:
    assignment_id: int
    tenant_id: int
    fee_id: int
    student_user_id: int
    assigned_amount: Decimal
    discount_amount: Decimal
    scholarship_amount: Decimal
    final_amount: Decimal
    paid_amount: Decimal = Decimal("0.00")
    status: FeeAssignmentStatus = FeeAssignmentStatus.PENDING
    due_date: Optional[date] = None
    class_id: Optional[int] = None
    notes: Optional[str] = None
    fee_name: Optional[str] = None
    student_name: Optional[str] = None

    @property
    def outstanding(self) -> Decimal:
        return max(self.final_amount - self.paid_amount, Decimal("0.00"))


@dataclass(frozen=True)
class Payment:
    payment_id: int
    tenant_id: int
    student_user_id: int
    amount: Decimal
    payment_method: PaymentMethod
    transaction_id: str
    reference_number: str
    receipt_number: str
    payment_date: datetime
    currency: str = DEFAULT_CURRENCY
    status: PaymentStatus = PaymentStatus.COMPLETED
    fee_assignment_id: Optional[int] = None
    invoice_id: Optional[int] = None
    notes: Optional[str] = None
    processed_by: Optional[int] = None
    student_name: Optional[str] = None
    fee_name: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    invoice_id: int
    tenant_id: int
    invoice_number: str
    student_user_id: int
    total_amount: Decimal
    outstanding_amount: Decimal
    due_date: date
    currency: str = DEFAULT_CURRENCY
    status: InvoiceStatus = InvoiceStatus.PENDING
    fee_assignment_id: Optional[int] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None


@dataclass(frozen=True)
class Expense:
    expense_id: int
    tenant_id: int
    expense_category: ExpenseCategory
    title: str
    amount: Decimal
    expense_date: date
    currency: str = DEFAULT_CURRENCY
    description: Optional[str] = None
    vendor: Optional[str] = None
    receipt_number: Optional[str] = None
    budget_id: Optional[int] = None
    created_by: Optional[int] = None


@dataclass(frozen=True)
class Budget:
    budget_id: int
    tenant_id: int
    budget_name: str
    budget_year: int
    budget_category: ExpenseCategory
    allocated_amount: Decimal
    start_date: date
    end_date: date
    currency: str = DEFAULT_CURRENCY
    description: Optional[str] = None
    spent_amount: Decimal = Decimal("0.00")

    @property
    def remaining_amount(self) -> Decimal:
        return self.allocated_amount - self.spent_amount


@dataclass(frozen=True)
class FinanceStats:
    total_fees_collected: Decimal
    total_fees_count: int
    monthly_payments: Decimal
    monthly_payments_count: int
    outstanding_fees: Decimal
    outstanding_fees_count: int
    total_expenses: Decimal
    total_expenses_count: int
    total_budgets: Decimal
    total_budgets_count: int
    recent_payments: List[Payment] = field(default_factory=list)
    upcoming_due_dates: List[FeeAssignment] = field(default_factory=list)
    expense_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    payment_methods: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class PaymentDraft:
    """A payment waiting to be applied; receipt and transaction numbers are
    assigned when it is stored."""

    tenant_id: int
    student_user_id: int
    fee_assignment_id: int
    amount: Decimal
    currency: str
    payment_method: str
    payment_date: datetime
    invoice_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    processed_by: Optional[int] = None


def invoice_number(sequence: int) -> str:
    return f"INV-{sequence:06d}"


def receipt_number(sequence: int) -> str:
    return f"RCP-{sequence:06d}"


def payment_numbers(draft: PaymentDraft, sequence: int) -> Dict[str, str]:
    stamp = draft.payment_date.strftime("%Y%m%d%H%M%S")
    return {
        "transaction_id": f"TXN{stamp}{sequence:04d}",
        "reference_number": draft.reference_number or f"REF{stamp}{sequence:04d}",
        "receipt_number": receipt_number(sequence),
    }


def check_payable(assignment: FeeAssignment, amount: Decimal) -> None:
    if assignment.status == FeeAssignmentStatus.CANCELLED:
        raise ValidationError("Fee assignment is cancelled")
    if amount > assignment.outstanding:
        raise ValidationError(f"Amount exceeds the outstanding balance of {assignment.outstanding}")


def settled_assignment(assignment: FeeAssignment, amount: Decimal) -> Dict[str, Any]:
    paid = assignment.paid_amount + amount
    status = FeeAssignmentStatus.PAID if paid >= assignment.final_amount else FeeAssignmentStatus.PARTIAL
    return {"paid_amount": paid, "status": status.value}


def settled_invoice(invoice: Invoice, amount: Decimal) -> Dict[str, Any]:
    remaining = max(invoice.outstanding_amount - amount, Decimal("0.00"))
    status = InvoiceStatus.PAID if remaining == 0 else InvoiceStatus.PARTIAL
    return {"outstanding_amount": remaining, "status": status.value}
