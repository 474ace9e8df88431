# Overview: authenticated JSON endpoints for sales, stock, lending, expenses, profit and deliveries.

from datetime import date
from io import BytesIO

from flask import Blueprint, jsonify, request, send_file

from bsm.domain.errors import ValidationError
from ..context import THEME_COOKIE, THEMES, container, current_context
from ..serializers import sku_payload, to_json

dashboard_bp = Blueprint("dashboard", __name__)


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _parse_day(value: str | None) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationError("Date must be formatted as YYYY-MM-DD.") from e


@dashboard_bp.get("/")
def home():
    summary = container().reporting.dashboard_summary(date.today())
    ctx = current_context()
    return jsonify({
        "user": ctx.user.email,
        "theme": ctx.theme,
        "today": to_json(summary.today),
        "all_time_profit": summary.all_time_profit,
        "stock_levels": [sku_payload(s) for s in summary.stock_levels],
        "outstanding_lending": summary.outstanding_lending,
    })


@dashboard_bp.post("/preferences/theme")
def set_theme():
    theme = _payload().get("theme")
    if theme not in THEMES:
        raise ValidationError(f"Theme must be one of: {', '.join(THEMES)}.")
    response = jsonify({"theme": theme})
    response.set_cookie(THEME_COOKIE, theme, max_age=365 * 24 * 3600, samesite="Lax")
    return response


# ---------- Sales ----------
@dashboard_bp.get("/sales")
def list_sales():
    svc = container().sales
    rows = svc.list_sales()
    return jsonify({"sales": to_json(rows), "totals": to_json(svc.sales_totals(rows))})


@dashboard_bp.post("/sales")
def create_sale():
    data = _payload()
    sale_id = container().sales.create_sale(
        product_type=data.get("product_type", ""),
        bottle_size=data.get("bottle_size"),
        quantity=data.get("quantity", 0),
        price_per_unit=data.get("price_per_unit", 0),
        amount_paid=data.get("amount_paid", 0),
        payment_status=data.get("payment_status", "pending"),
        payment_mode=data.get("payment_mode", "cash"),
        customer_name=data.get("customer_name"),
        notes=data.get("notes"),
    )
    return jsonify(to_json(container().sales.get_sale(sale_id))), 201


@dashboard_bp.post("/sales/<int:sale_id>/payments")
def record_payment(sale_id: int):
    sale = container().lending.record_payment(sale_id, _payload().get("amount"))
    return jsonify(to_json(sale))


# ---------- Lending / customers ----------
@dashboard_bp.get("/lending")
def list_lending():
    svc = container().lending
    return jsonify({"sales": to_json(svc.list_lending()), "outstanding": svc.outstanding_lending()})


@dashboard_bp.post("/lending/<int:sale_id>/mark-pending")
def mark_pending(sale_id: int):
    return jsonify(to_json(container().lending.mark_as_pending(sale_id)))


@dashboard_bp.get("/customers")
def list_customers():
    return jsonify({"customers": to_json(container().lending.customer_summaries())})


# ---------- Inventory ----------
@dashboard_bp.get("/inventory")
def stock_levels():
    return jsonify({"stock": [sku_payload(s) for s in container().inventory.stock_levels()]})


@dashboard_bp.post("/inventory")
def add_stock():
    data = _payload()
    svc = container().inventory
    batch_id = svc.add_stock(
        product_type=data.get("product_type", ""),
        bottle_size=data.get("bottle_size"),
        quantity=data.get("quantity", 0),
        amount_paid=data.get("amount_paid", 0),
        notes=data.get("notes"),
    )
    return jsonify({"id": batch_id}), 201


@dashboard_bp.get("/inventory/history")
def stock_history():
    svc = container().inventory
    rows = svc.stock_history(request.args.get("product_type"), request.args.get("bottle_size"))
    total_qty, total_amount = svc.history_totals(rows)
    return jsonify({"batches": to_json(rows), "total_quantity": total_qty, "total_amount": total_amount})


# ---------- Expenses ----------
@dashboard_bp.get("/expenses")
def list_expenses():
    svc = container().expenses
    return jsonify({
        "expenses": to_json(svc.list_expenses(request.args.get("category"))),
        "totals": to_json(svc.expense_totals()),
    })


@dashboard_bp.post("/expenses")
def add_expense():
    data = _payload()
    expense_id = container().expenses.add_expense(
        data.get("category", ""),
        data.get("amount", 0),
        data.get("reason", ""),
        data.get("description"),
    )
    return jsonify({"id": expense_id}), 201


# ---------- Profit ----------
@dashboard_bp.get("/profit/daily")
def daily_profit():
    day = _parse_day(request.args.get("date"))
    return jsonify(to_json(container().reporting.daily_report(day)))


@dashboard_bp.get("/profit/monthly")
def monthly_profit():
    reporting = container().reporting
    return jsonify({
        "months": to_json(reporting.monthly_report()),
        "all_time_profit": reporting.total_profit(),
        "zero_cost_skus": reporting.zero_cost_skus(),
    })


@dashboard_bp.get("/profit/export")
def export_profit():
    day = _parse_day(request.args.get("date"))
    buf = BytesIO()
    container().reporting.export_profit_report_excel(buf, day)
    buf.seek(0)
    return send_file(
        buf,
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=f"profit_{day.isoformat()}.xlsx",
    )


# ---------- Deliveries ----------
@dashboard_bp.get("/deliveries")
def list_deliveries():
    return jsonify({"deliveries": to_json(container().deliveries.list_deliveries())})


@dashboard_bp.post("/deliveries")
def add_delivery():
    upload = request.files.get("image")
    if upload is None:
        raise ValidationError("Please select an image.")
    record = container().deliveries.add_delivery(upload.read(), upload.filename or "upload", request.form.get("notes"))
    return jsonify(to_json(record)), 201
