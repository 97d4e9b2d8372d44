from flask import Blueprint, request, send_file, jsonify, current_app
from models import db, RevenueObligation, Payment, Expense
from datetime import date
from decimal import Decimal
from sqlalchemy import func
from flask_login import login_required, current_user
from routes.auth import role_required, request_data
from services.ai_service import AIReportService, AIServiceError
from utils import log_audit, parse_date, get_owner_currency, get_owner_settings
from utils_schedule import KIND_DEPOSIT, KIND_RENT, KIND_SERVICE_CHARGE
import io
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment

reports_bp = Blueprint('reports', __name__)

ZERO = Decimal('0.00')


def _period(args):
    """Reads start/end from the request, defaulting to the current year to date."""
    today = date.today()
    start = parse_date(args['start'], 'start') if args.get('start') else today.replace(month=1, day=1)
    end = parse_date(args['end'], 'end') if args.get('end') else today
    if end < start:
        raise ValueError("End date must be on or after the start date")
    return start, end


def build_pnl(owner_id, start, end):
    """
    Profit and loss for a date range.

    Income is accrual based (obligations due in the period); collections are
    payments received in the period. Deposits are refundable and reported
    separately from income.
    """
    due_by_kind = dict(
        db.session.query(RevenueObligation.kind, func.sum(RevenueObligation.amount_due))
        .filter(RevenueObligation.owner_id == owner_id)
        .filter(RevenueObligation.due_date >= start, RevenueObligation.due_date <= end)
        .group_by(RevenueObligation.kind)
        .all()
    )

    collected = db.session.query(func.sum(Payment.amount))\
        .filter(Payment.owner_id == owner_id)\
        .filter(Payment.date_received >= start, Payment.date_received <= end)\
        .scalar() or ZERO

    expenses_by_category = dict(
        db.session.query(Expense.category, func.sum(Expense.amount))
        .filter(Expense.owner_id == owner_id)
        .filter(Expense.date >= start, Expense.date <= end)
        .group_by(Expense.category)
        .order_by(Expense.category)
        .all()
    )

    rent = Decimal(due_by_kind.get(KIND_RENT) or ZERO)
    service_charges = Decimal(due_by_kind.get(KIND_SERVICE_CHARGE) or ZERO)
    deposits = Decimal(due_by_kind.get(KIND_DEPOSIT) or ZERO)
    total_income = rent + service_charges
    total_expenses = sum((Decimal(v) for v in expenses_by_category.values()), ZERO)

    return {
        'start_date': start.isoformat(),
        'end_date': end.isoformat(),
        'income': {
            'rent': float(rent),
            'service_charges': float(service_charges),
            'total': float(total_income),
        },
        'deposits_due': float(deposits),
        'collected': float(Decimal(collected)),
        'expenses': {category: float(Decimal(amount)) for category, amount in expenses_by_category.items()},
        'total_expenses': float(total_expenses),
        'net': float(total_income - total_expenses),
    }


@reports_bp.route('/pnl')
@login_required
@role_required('landlord', 'accounts')
def pnl_report():
    try:
        start, end = _period(request.args)
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    report = build_pnl(current_user.owner_id, start, end)
    currency, locale = get_owner_currency(current_user.owner_id)
    report['currency'] = currency
    return jsonify(report)


@reports_bp.route('/pnl/export')
@login_required
@role_required('landlord', 'accounts')
def export_pnl():
    try:
        start, end = _period(request.args)
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    report = build_pnl(current_user.owner_id, start, end)
    currency, _ = get_owner_currency(current_user.owner_id)

    wb = Workbook()
    ws = wb.active
    ws.title = "Profit and Loss"

    ws.append([f"Profit and Loss: {report['start_date']} to {report['end_date']}", f"Amount ({currency})"])
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')

    ws.append(['Rent', report['income']['rent']])
    ws.append(['Service Charges', report['income']['service_charges']])
    ws.append(['Total Income', report['income']['total']])
    ws[f"A{ws.max_row}"].font = Font(bold=True)
    ws.append([])

    for category, amount in report['expenses'].items():
        ws.append([category, amount])
    ws.append(['Total Expenses', report['total_expenses']])
    ws[f"A{ws.max_row}"].font = Font(bold=True)
    ws.append([])

    ws.append(['Net', report['net']])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)
    ws.append(['Collected in period', report['collected']])
    ws.append(['Deposits due in period', report['deposits_due']])

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)

    log_audit('REPORT', 'System', 0, f"Exported P&L: {report['start_date']} to {report['end_date']}")

    return send_file(
        output,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=f"PnL_{report['start_date']}_to_{report['end_date']}.xlsx"
    )


@reports_bp.route('/pnl/summary', methods=['POST'])
@login_required
@role_required('landlord', 'accounts')
def pnl_summary():
    try:
        start, end = _period(request_data())
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    report = build_pnl(current_user.owner_id, start, end)
    currency, _ = get_owner_currency(current_user.owner_id)
    settings = get_owner_settings(current_user.owner_id)
    company_name = (settings.company_name if settings and settings.company_name
                    else current_app.config['COMPANY_NAME'])

    try:
        summary = AIReportService().generate_pnl_summary(report, currency, company_name)
    except AIServiceError as e:
        current_app.logger.warning("P&L summary failed: %s", e)
        return jsonify({'status': 'error', 'message': str(e)}), 502

    log_audit('REPORT', 'System', 0, f"Generated P&L summary: {report['start_date']} to {report['end_date']}")
    return jsonify({'status': 'success', 'figures': report, **summary})
