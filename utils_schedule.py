import calendar
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from dateutil.relativedelta import relativedelta

KIND_RENT = 'Rent'
KIND_DEPOSIT = 'Deposit'
KIND_SERVICE_CHARGE = 'Service Charge'

PAYMENT_FREQUENCIES = ('Monthly', 'Quarterly', 'Annually')

CENT = Decimal('0.01')


def to_decimal(value):
    if value is None:
        return Decimal('0.00')
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 don't drag binary noise in
    return Decimal(str(value))


def round2(value):
    """Round to 2 decimal places, half up (standard money rounding)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def days_in_month(year, month):
    return calendar.monthrange(year, month)[1]


def first_of_month(d):
    return d.replace(day=1)


def safe_month_date(year, month, day):
    """
    Returns day-of-month `day` in the given month, clamped to the last
    valid day (e.g. 31 in February -> 28th or 29th).
    """
    return date(year, month, min(day, days_in_month(year, month)))


def prorate(amount, month_days, days_active):
    if days_active == month_days:
        return to_decimal(amount)
    return round2(to_decimal(amount) / Decimal(month_days) * Decimal(days_active))


def _period_note(month_start, period_start, period_end, days_active, is_full_month):
    if is_full_month:
        return month_start.strftime('%B %Y')
    return (f"Pro-rata: {period_start.strftime('%b')} {period_start.day} - "
            f"{period_end.strftime('%b')} {period_end.day} ({days_active} days)")


def generate_rent_schedule(start_date, end_date, rent_amount, rent_due_day=1,
                           service_charges=(), deposit_amount=0):
    """
    Expands a tenancy into its revenue obligations.

    One Deposit record dated at the start date (only if the deposit is
    positive), then for every calendar month from the start month to the end
    month inclusive: one Rent record plus one record per service charge.
    Partial first/last months are prorated by day count:
    round2(monthly / days_in_month * days_active).

    The due date is the start date in the first month and `rent_due_day`
    (clamped to the month length) afterwards.

    An end date before the start date yields an empty list.

    Returns:
        list of dicts: {
            'kind', 'charge_name', 'amount_due', 'due_date',
            'period_start', 'period_end', 'days_active',
            'is_full_month', 'notes'
        }
    """
    records = []
    if end_date < start_date:
        return records

    deposit = to_decimal(deposit_amount)
    if deposit > 0:
        records.append({
            'kind': KIND_DEPOSIT,
            'charge_name': None,
            'amount_due': round2(deposit),
            'due_date': start_date,
            'period_start': start_date,
            'period_end': start_date,
            'days_active': None,
            'is_full_month': False,
            'notes': 'Security Deposit',
        })

    rent = to_decimal(rent_amount)
    charges = [(sc['name'], to_decimal(sc['amount'])) for sc in service_charges]

    current = first_of_month(start_date)
    last_month = first_of_month(end_date)

    while current <= last_month:
        month_days = days_in_month(current.year, current.month)
        month_end = current.replace(day=month_days)

        period_start = max(start_date, current)
        period_end = min(end_date, month_end)
        days_active = (period_end - period_start).days + 1
        is_full_month = days_active == month_days

        if current == first_of_month(start_date):
            due_date = start_date
        else:
            due_date = safe_month_date(current.year, current.month, rent_due_day)

        note = _period_note(current, period_start, period_end, days_active, is_full_month)

        records.append({
            'kind': KIND_RENT,
            'charge_name': None,
            'amount_due': round2(prorate(rent, month_days, days_active)),
            'due_date': due_date,
            'period_start': period_start,
            'period_end': period_end,
            'days_active': days_active,
            'is_full_month': is_full_month,
            'notes': f"Rent: {note}",
        })

        for name, monthly in charges:
            amount = round2(prorate(monthly, month_days, days_active))
            if amount <= 0:
                continue
            records.append({
                'kind': KIND_SERVICE_CHARGE,
                'charge_name': name,
                'amount_due': amount,
                'due_date': due_date,
                'period_start': period_start,
                'period_end': period_end,
                'days_active': days_active,
                'is_full_month': is_full_month,
                'notes': f"{name}: {note}",
            })

        current = current + relativedelta(months=1)

    return records


def validate_tenancy_params(start_date, end_date, rent_amount, rent_due_day,
                            service_charges=(), deposit_amount=0,
                            payment_frequency='Monthly'):
    """Raises ValueError describing the first problem found."""
    if start_date is None or end_date is None:
        raise ValueError("Start date and end date are required")
    if end_date < start_date:
        raise ValueError("End date cannot be before start date")
    if to_decimal(rent_amount) < 0:
        raise ValueError("Rent amount cannot be negative")
    if to_decimal(deposit_amount) < 0:
        raise ValueError("Deposit amount cannot be negative")
    if not isinstance(rent_due_day, int) or not 1 <= rent_due_day <= 31:
        raise ValueError("Rent due day must be between 1 and 31")
    if payment_frequency not in PAYMENT_FREQUENCIES:
        raise ValueError(f"Unknown payment frequency: {payment_frequency}")
    for sc in service_charges:
        if not (sc.get('name') or '').strip():
            raise ValueError("Service charge name is required")
        if to_decimal(sc.get('amount')) < 0:
            raise ValueError(f"Service charge '{sc['name']}' cannot be negative")
    return True


def invoice_number(record, tenancy_id):
    stamp = record['due_date'].strftime('%Y%m%d')
    if record['kind'] == KIND_DEPOSIT:
        return f"DEP-{tenancy_id}"
    if record['kind'] == KIND_SERVICE_CHARGE:
        return f"SC-{tenancy_id}-{record['charge_name'][:3].upper()}-{stamp}"
    return f"INV-{tenancy_id}-{stamp}"


def schedule_totals(records):
    totals = {KIND_DEPOSIT: Decimal('0.00'), KIND_RENT: Decimal('0.00'), KIND_SERVICE_CHARGE: Decimal('0.00')}
    for r in records:
        totals[r['kind']] += to_decimal(r['amount_due'])
    return {
        'deposit': totals[KIND_DEPOSIT],
        'rent': totals[KIND_RENT],
        'service_charges': totals[KIND_SERVICE_CHARGE],
        'total': sum(totals.values(), Decimal('0.00')),
    }
