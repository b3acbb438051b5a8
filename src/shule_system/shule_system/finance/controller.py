from __future__ import annotations

from flask import Flask, request

from ..common.http import current_user, json_body, login_required, ok, ok_page, query_args, send_export
from ..container import Container


def register(app: Flask, container: Container) -> None:
    service = container.finance_service

    @app.route("/api/finance/fees", methods=["GET"], endpoint="finance_fees_list")
    @login_required
    def finance_fees_list():
        return ok_page(service.list_fees(current_user=current_user(), params=query_args()))

    @app.route("/api/finance/fees", methods=["POST"], endpoint="finance_fees_create")
    @login_required
    def finance_fees_create():
        return ok(service.create_fee(current_user=current_user(), data=json_body()), 201,
                  message="Fee created successfully")

    @app.route("/api/finance/fees/<int:fee_id>", methods=["PUT"], endpoint="finance_fees_update")
    @login_required
    def finance_fees_update(fee_id: int):
        return ok(service.update_fee(current_user=current_user(), fee_id=fee_id, changes=json_body()))

    @app.route("/api/finance/fees/<int:fee_id>", methods=["DELETE"], endpoint="finance_fees_delete")
    @login_required
    def finance_fees_delete(fee_id: int):
        service.deactivate_fee(current_user=current_user(), fee_id=fee_id)
        return ok(message="Fee deactivated")

    @app.route("/api/finance/assignments", methods=["GET"], endpoint="finance_assignments_list")
    @login_required
    def finance_assignments_list():
        return ok_page(service.list_assignments(current_user=current_user(), params=query_args()))

    @app.route("/api/finance/assignments", methods=["POST"], endpoint="finance_assignments_create")
    @login_required
    def finance_assignments_create():
        return ok(service.assign_fee(current_user=current_user(), data=json_body()), 201,
                  message="Fee assignment created successfully")

    @app.route("/api/finance/payments", methods=["GET"], endpoint="finance_payments_list")
    @login_required
    def finance_payments_list():
        return ok_page(service.list_payments(current_user=current_user(), params=query_args()))

    @app.route("/api/finance/payments", methods=["POST"], endpoint="finance_payments_create")
    @login_required
    def finance_payments_create():
        return ok(service.record_payment(current_user=current_user(), data=json_body()), 201,
                  message="Payment recorded successfully")

    @app.route("/api/finance/payments/export", methods=["GET"], endpoint="finance_payments_export")
    @login_required
    def finance_payments_export():
        fmt = request.args.get("format", "csv")
        return send_export(service.export_payments(current_user=current_user(), fmt=fmt, params=query_args()))

    @app.route("/api/finance/invoices", methods=["GET"], endpoint="finance_invoices_list")
    @login_required
    def finance_invoices_list():
        return ok_page(service.list_invoices(current_user=current_user(), params=query_args()))

    @app.route("/api/finance/invoices", methods=["POST"], endpoint="finance_invoices_create")
    @login_required
    def finance_invoices_create():
        return ok(service.create_invoice(current_user=current_user(), data=json_body()), 201,
                  message="Invoice created successfully")

    @app.route("/api/finance/overdue", methods=["POST"], endpoint="finance_mark_overdue")
    @login_required
    def finance_mark_overdue():
        return ok(service.mark_overdue(current_user=current_user()))

    @app.route("/api/finance/expenses", methods=["GET"], endpoint="finance_expenses_list")
    @login_required
    def finance_expenses_list():
        return ok_page(service.list_expenses(current_user=current_user(), params=query_args()))

    @app.route("/api/finance/expenses", methods=["POST"], endpoint="finance_expenses_create")
    @login_required
    def finance_expenses_create():
        return ok(service.create_expense(current_user=current_user(), data=json_body()), 201,
                  message="Expense created successfully")

    @app.route("/api/finance/budgets", methods=["GET"], endpoint="finance_budgets_list")
    @login_required
    def finance_budgets_list():
        return ok_page(service.list_budgets(current_user=current_user(), params=query_args()))

    @app.route("/api/finance/budgets", methods=["POST"], endpoint="finance_budgets_create")
    @login_required
    def finance_budgets_create():
        return ok(service.create_budget(current_user=current_user(), data=json_body()), 201,
                  message="Budget created successfully")

    @app.route("/api/finance/stats", methods=["GET"], endpoint="finance_stats")
    @login_required
    def finance_stats():
        return ok(service.get_stats(current_user=current_user()))
