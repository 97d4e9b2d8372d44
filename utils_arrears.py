from collections import OrderedDict
from decimal import Decimal

from utils_schedule import KIND_DEPOSIT, KIND_RENT, KIND_SERVICE_CHARGE, to_decimal

# Payments clear deposit first, then rent, then service charges
ALLOCATION_ORDER = (KIND_DEPOSIT, KIND_RENT, KIND_SERVICE_CHARGE)

AGING_BUCKETS = ('current', 'd1_30', 'd31_60', 'd61_90', 'over_90')

ZERO = Decimal('0.00')


def _priority(kind):
    try:
        return ALLOCATION_ORDER.index(kind)
    except ValueError:
        return len(ALLOCATION_ORDER)


def _is_due(record, as_of):
    return record['due_date'] <= as_of


def allocate_payment(amount_paid, category_totals):
    """
    Spreads a lump payment over categories in ALLOCATION_ORDER, each capped
    at its own total. Returns (allocated per category, unallocated remainder).
    """
    remaining = to_decimal(amount_paid)
    allocated = {}
    for kind in ALLOCATION_ORDER:
        due = category_totals.get(kind, ZERO)
        portion = min(remaining, due) if remaining > 0 else ZERO
        allocated[kind] = portion
        remaining -= portion
    return allocated, remaining


def compute_tenancy_arrears(records, as_of):
    """
    Arrears summary for a single tenancy.

    Only obligations due on or before `as_of` count towards what is owed, but
    every payment recorded against the tenancy is available for allocation,
    whichever obligation it was booked against. The overdue date comes from
    the same allocation, so an obligation cleared by a payment booked
    elsewhere is not reported as overdue.
    """
    totals = {kind: ZERO for kind in ALLOCATION_ORDER}
    total_paid = ZERO
    tenancy_id = None

    for r in records:
        tenancy_id = r.get('tenancy_id', tenancy_id)
        total_paid += to_decimal(r.get('amount_paid'))

        if not _is_due(r, as_of):
            continue
        totals[r['kind']] = totals.get(r['kind'], ZERO) + to_decimal(r['amount_due'])

    allocated, credit = allocate_payment(total_paid, totals)
    owed = {kind: totals[kind] - allocated[kind] for kind in ALLOCATION_ORDER}
    amount_owed = sum(owed.values(), ZERO)

    earliest_unpaid = None
    days_overdue = None
    if amount_owed > 0:
        earliest_unpaid = min((item['due_date'] for item in unpaid_items(records, as_of)), default=None)
    if earliest_unpaid is not None:
        days_overdue = (as_of - earliest_unpaid).days

    return {
        'tenancy_id': tenancy_id,
        'total_due': sum(totals.values(), ZERO),
        'total_paid': total_paid,
        'amount_owed': amount_owed,
        'deposit_owed': owed[KIND_DEPOSIT],
        'rent_owed': owed[KIND_RENT],
        'service_charges_owed': owed[KIND_SERVICE_CHARGE],
        'credit': credit,
        'due_date': earliest_unpaid,
        'days_overdue': days_overdue,
    }


def group_by_tenancy(records):
    grouped = OrderedDict()
    for r in records:
        grouped.setdefault(r['tenancy_id'], []).append(r)
    return grouped


def compute_arrears(records, as_of):
    """
    Arrears across many tenancies. Tenancies owing nothing (or in credit) are
    left out; the rest are sorted most overdue first, then by amount owed.
    """
    summaries = []
    for tenancy_id, tenancy_records in group_by_tenancy(records).items():
        summary = compute_tenancy_arrears(tenancy_records, as_of)
        summary['tenancy_id'] = tenancy_id
        if summary['amount_owed'] <= 0:
            continue
        summaries.append(summary)

    summaries.sort(key=lambda s: (s['days_overdue'] or 0, s['amount_owed']), reverse=True)
    return summaries


def unpaid_items(records, as_of):
    """
    Returns the individual due obligations left unpaid after waterfall
    allocation of the tenancy's total payments.

    Sort Priority: Deposit (1) -> Rent (2) -> Service Charge (3) -> Due Date
    """
    total_paid = sum((to_decimal(r.get('amount_paid')) for r in records), ZERO)

    due = [r for r in records if _is_due(r, as_of)]
    due.sort(key=lambda r: (_priority(r['kind']), r['due_date']))

    items = []
    for r in due:
        amount_due = to_decimal(r['amount_due'])
        if total_paid >= amount_due:
            total_paid -= amount_due
            continue

        # Partial or Unpaid
        covered = total_paid
        total_paid = ZERO
        remaining = amount_due - covered
        if remaining > 0:
            item = dict(r)
            item['unpaid_amount'] = remaining
            item['days_overdue'] = (as_of - r['due_date']).days
            items.append(item)

    return items


def serialize_summary(summary):
    """JSON-friendly copy of an arrears summary (floats and ISO dates)."""
    out = {}
    for key, value in summary.items():
        if isinstance(value, Decimal):
            out[key] = float(value)
        elif hasattr(value, 'isoformat'):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


def bucket_for(days_overdue):
    if days_overdue <= 0:
        return 'current'
    elif days_overdue <= 30:
        return 'd1_30'
    elif days_overdue <= 60:
        return 'd31_60'
    elif days_overdue <= 90:
        return 'd61_90'
    return 'over_90'


def aging_buckets(records, as_of):
    row = {bucket: ZERO for bucket in AGING_BUCKETS}
    row['total'] = ZERO

    for item in unpaid_items(records, as_of):
        row[bucket_for(item['days_overdue'])] += item['unpaid_amount']
        row['total'] += item['unpaid_amount']

    return row
