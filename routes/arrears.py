import io
from datetime import date

from flask import Blueprint, request, jsonify, send_file, current_app
from flask_login import login_required, current_user
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment

from models import db, Tenancy
from routes.auth import role_required
from services.ai_service import AIReportService, AIServiceError
from utils import (log_audit, parse_date, get_obligation_records, get_owner_currency,
                   get_owner_settings, get_owned_or_404)
from utils_arrears import (compute_arrears, compute_tenancy_arrears, aging_buckets, unpaid_items,
                           group_by_tenancy, serialize_summary, AGING_BUCKETS)
from utils_currency import format_currency

arrears_bp = Blueprint('arrears', __name__)

AGING_HEADERS = ['Tenant', 'Property', 'Current', '1-30 Days', '31-60 Days', '61-90 Days', '>90 Days', 'Total']


def _as_of():
    value = request.args.get('as_of')
    return parse_date(value, 'as_of') if value else date.today()


def _tenancy_info(tenancy):
    return {
        'tenant': tenancy.tenant.full_name,
        'tenant_email': tenancy.tenant.email,
        'tenant_phone': tenancy.tenant.phone,
        'property_address': tenancy.property_obj.display_name,
    }


def build_aging_report(owner_id, as_of):
    tenancies = {t.id: t for t in Tenancy.query.filter_by(owner_id=owner_id).all()}
    report = []
    for tenancy_id, records in group_by_tenancy(get_obligation_records(owner_id)).items():
        row = aging_buckets(records, as_of)
        if row['total'] <= 0:
            continue
        row = serialize_summary(row)
        row['tenancy_id'] = tenancy_id
        row.update(_tenancy_info(tenancies[tenancy_id]))
        report.append(row)

    # Sort by Total Due Descending
    report.sort(key=lambda x: x['total'], reverse=True)
    return report


@arrears_bp.route('/')
@login_required
def list_arrears():
    try:
        as_of = _as_of()
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    currency, locale = get_owner_currency(current_user.owner_id)
    summaries = compute_arrears(get_obligation_records(current_user.owner_id), as_of)

    arrears = []
    for summary in summaries:
        tenancy = db.session.get(Tenancy, summary['tenancy_id'])
        entry = serialize_summary(summary)
        entry.update(_tenancy_info(tenancy))
        entry['amount_owed_display'] = format_currency(summary['amount_owed'], currency, locale)
        arrears.append(entry)

    return jsonify({
        'as_of': as_of.isoformat(),
        'total_owed': sum(a['amount_owed'] for a in arrears),
        'arrears': arrears,
    })


@arrears_bp.route('/aging')
@login_required
@role_required('landlord', 'accounts')
def aging_report():
    try:
        as_of = _as_of()
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    report = build_aging_report(current_user.owner_id, as_of)
    totals = {bucket: sum(r[bucket] for r in report) for bucket in AGING_BUCKETS + ('total',)}
    return jsonify({'as_of': as_of.isoformat(), 'report': report, 'totals': totals})


@arrears_bp.route('/aging/export')
@login_required
@role_required('landlord', 'accounts')
def export_aging_report():
    try:
        as_of = _as_of()
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    report = build_aging_report(current_user.owner_id, as_of)

    wb = Workbook()
    ws = wb.active
    ws.title = "Aging"

    # Style Headers
    ws.append(AGING_HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')

    for row in report:
        ws.append([row['tenant'], row['property_address']] + [row[b] for b in AGING_BUCKETS] + [row['total']])

    # Summary Row
    ws.append([])
    ws.append(['TOTAL', ''] + [sum(r[b] for r in report) for b in AGING_BUCKETS + ('total',)])
    for cell in ws[ws.max_row]:
        cell.font = Font(bold=True)

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)

    log_audit('REPORT', 'Arrears', 0, f"Exported aging report as of {as_of.isoformat()}")

    return send_file(
        output,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=f"Aging_Report_{as_of.isoformat()}.xlsx"
    )


@arrears_bp.route('/<int:tenancy_id>/reminder', methods=['POST'])
@login_required
@role_required('landlord', 'accounts')
def reminder_email(tenancy_id):
    tenancy = get_owned_or_404(Tenancy, tenancy_id)
    today = date.today()

    records = get_obligation_records(current_user.owner_id, tenancy.id)
    summary = compute_tenancy_arrears(records, today)
    if summary['amount_owed'] <= 0:
        return jsonify({'status': 'error', 'message': f"{tenancy.tenant.full_name} has no outstanding payments."}), 400

    currency, locale = get_owner_currency(current_user.owner_id)
    settings = get_owner_settings(current_user.owner_id)
    company_name = (settings.company_name if settings and settings.company_name
                    else current_app.config['COMPANY_NAME'])

    breakdown = "\n".join(
        f"- {item['notes']} (due {item['due_date'].isoformat()}): "
        f"{format_currency(item['unpaid_amount'], currency, locale, decimals=2)}"
        for item in unpaid_items(records, today)
    )

    try:
        service = AIReportService()
        email = service.generate_reminder_email(
            tenant_name=tenancy.tenant.full_name,
            property_address=tenancy.property_obj.display_name,
            amount_owed=format_currency(summary['amount_owed'], currency, locale, decimals=2),
            days_overdue=summary['days_overdue'],
            company_name=company_name,
            arrears_breakdown=breakdown,
        )
    except AIServiceError as e:
        current_app.logger.warning("Reminder email for tenancy %s failed: %s", tenancy.id, e)
        return jsonify({'status': 'error', 'message': str(e)}), 502

    log_audit('REPORT', 'Tenancy', tenancy.id, "Generated arrears reminder email")
    return jsonify({'status': 'success', 'to': tenancy.tenant.email, **email})
