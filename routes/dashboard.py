from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from models import db, RevenueObligation, Payment, Property, Tenancy, MaintenanceRequest
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy import func, and_
from dateutil.relativedelta import relativedelta
from utils import get_obligation_records, get_owner_currency
from utils_arrears import compute_arrears, aging_buckets, group_by_tenancy, AGING_BUCKETS
from utils_schedule import KIND_DEPOSIT

dashboard_bp = Blueprint('dashboard', __name__)

AGING_LABELS = {
    'current': 'Current',
    'd1_30': '1-30 Days',
    'd31_60': '31-60 Days',
    'd61_90': '61-90 Days',
    'over_90': '>90 Days',
}


def _month_bounds(d):
    month_start = d.replace(day=1)
    month_end = (month_start + relativedelta(months=1)) - timedelta(days=1)
    return month_start, month_end


def get_dashboard_metrics(owner_id, today=None):
    """Helper to calculate all dashboard metrics"""
    today = today or date.today()

    # 1. Financial Metrics (Last 6 Months)
    months = []
    revenue_data = []
    receipts_data = []

    for i in range(5, -1, -1):
        month_start, month_end = _month_bounds(today - relativedelta(months=i))
        months.append(month_start.strftime('%b %Y'))

        # Revenue due (deposits are refundable, not income)
        rev = db.session.query(func.sum(RevenueObligation.amount_due))\
            .filter(RevenueObligation.owner_id == owner_id)\
            .filter(RevenueObligation.kind != KIND_DEPOSIT)\
            .filter(RevenueObligation.due_date >= month_start, RevenueObligation.due_date <= month_end)\
            .scalar() or 0
        revenue_data.append(float(rev))

        # Collected
        rec = db.session.query(func.sum(Payment.amount))\
            .filter(Payment.owner_id == owner_id)\
            .filter(Payment.date_received >= month_start, Payment.date_received <= month_end)\
            .scalar() or 0
        receipts_data.append(float(rec))

    # 2. Occupancy Rate (Last 6 Months)
    total_properties = Property.query.filter_by(owner_id=owner_id, archived=False).count()
    occupancy_data = []

    for i in range(5, -1, -1):
        chk_date = (today - relativedelta(months=i)).replace(day=1)
        occupied_count_month = db.session.query(func.count(func.distinct(Tenancy.property_id)))\
            .join(Property, Tenancy.property_id == Property.id)\
            .filter(
                Tenancy.owner_id == owner_id,
                Property.archived == False,
                and_(Tenancy.start_date <= chk_date, Tenancy.end_date >= chk_date),
                db.or_(Tenancy.ended_on.is_(None), Tenancy.ended_on >= chk_date)
            ).scalar() or 0

        rate = (occupied_count_month / total_properties * 100) if total_properties else 0
        occupancy_data.append(round(rate, 1))

    # 3. Aging Metrics (Current Snapshot)
    records = get_obligation_records(owner_id)
    aging = {bucket: Decimal('0.00') for bucket in AGING_BUCKETS}
    for tenancy_records in group_by_tenancy(records).values():
        row = aging_buckets(tenancy_records, today)
        for bucket in AGING_BUCKETS:
            aging[bucket] += row[bucket]

    # 4. Tenancy Expiry Forecast (Next 6 Months)
    expiry_labels = []
    expiry_counts = []

    for i in range(1, 7):
        month_start, month_end = _month_bounds(today + relativedelta(months=i))
        expiry_labels.append(month_start.strftime('%b %Y'))

        count = Tenancy.query.filter(
            Tenancy.owner_id == owner_id,
            Tenancy.status == 'Active',
            and_(Tenancy.end_date >= month_start, Tenancy.end_date <= month_end)
        ).count()
        expiry_counts.append(count)

    open_maintenance = MaintenanceRequest.query.filter(
        MaintenanceRequest.owner_id == owner_id,
        MaintenanceRequest.status.in_(['To Do', 'In Progress'])
    ).count()

    active_tenancies = Tenancy.query.filter(
        Tenancy.owner_id == owner_id,
        Tenancy.status == 'Active',
        Tenancy.start_date <= today,
        Tenancy.end_date >= today
    ).count()

    # Overdue now vs. the last day of last month
    def get_overdue_balance_at(target_date, target_records):
        return float(sum((a['amount_owed'] for a in compute_arrears(target_records, target_date)), Decimal('0.00')))

    last_month_date = today.replace(day=1) - timedelta(days=1)
    last_month_records = get_obligation_records(owner_id, paid_as_of=last_month_date)
    currency, locale = get_owner_currency(owner_id)

    return {
        'currency': currency,
        'locale': locale,
        'months': months,
        'revenue_data': revenue_data,
        'receipts_data': receipts_data,
        'occupancy_data': occupancy_data,
        'aging_labels': [AGING_LABELS[b] for b in AGING_BUCKETS],
        'aging_data': [float(aging[b]) for b in AGING_BUCKETS],
        'expiry_labels': expiry_labels,
        'expiry_counts': expiry_counts,

        'kpi_revenue_current': revenue_data[-1],
        'kpi_revenue_last': revenue_data[-2],

        'kpi_collected_current': receipts_data[-1],
        'kpi_collected_last': receipts_data[-2],

        'kpi_occupancy_current': occupancy_data[-1],
        'kpi_occupancy_last': occupancy_data[-2],

        'kpi_overdue_current': get_overdue_balance_at(today, records),
        'kpi_overdue_last': get_overdue_balance_at(last_month_date, last_month_records),

        'kpi_active_tenancies': active_tenancies,
        'kpi_open_maintenance': open_maintenance,
    }


@dashboard_bp.route('/api/dashboard/metrics')
@login_required
def dashboard_metrics():
    """JSON Endpoint for dashboard charts"""
    return jsonify(get_dashboard_metrics(current_user.owner_id))
