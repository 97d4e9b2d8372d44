import logging
from datetime import datetime
from decimal import InvalidOperation

from flask import abort, current_app
from flask_login import current_user
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from models import db, AuditLog, Payment, RevenueObligation, UserSettings
from utils_currency import settings_currency
from utils_schedule import round2, to_decimal

logger = logging.getLogger(__name__)


def parse_date(value, field='date'):
    """Parses YYYY-MM-DD. Raises ValueError naming the field on bad input."""
    if not value:
        raise ValueError(f"{field} is required")
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {field}: {value!r} (expected YYYY-MM-DD)")


def parse_amount(value, field='amount', default=None):
    """Parses a money amount into a 2dp Decimal. Raises ValueError on bad input."""
    if value in (None, ''):
        if default is not None:
            return round2(default)
        raise ValueError(f"{field} is required")
    try:
        amount = round2(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Invalid {field}: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid {field}: {value!r}")
    return amount


def parse_int(value, field, default=None):
    if value in (None, ''):
        if default is not None:
            return default
        raise ValueError(f"{field} is required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {field}: {value!r}")


def get_owned_or_404(model, id):
    """Fetches a row in the logged-in user's portfolio, 404 otherwise."""
    obj = db.session.get(model, id)
    if obj is None or obj.owner_id != current_user.owner_id:
        abort(404)
    return obj


def get_owner_settings(owner_id):
    return UserSettings.query.filter_by(owner_id=owner_id).first()


def get_owner_currency(owner_id):
    return settings_currency(get_owner_settings(owner_id), current_app.config)


def get_obligation_records(owner_id, tenancy_id=None, paid_as_of=None):
    """
    Loads obligations as plain dicts for the arrears calculations.

    With `paid_as_of`, amount_paid is rebuilt from the payments received on
    or before that date, so a past balance is not reduced by later receipts.
    """
    query = RevenueObligation.query.filter_by(owner_id=owner_id)
    if tenancy_id is not None:
        query = query.filter_by(tenancy_id=tenancy_id)
    records = [o.to_record() for o in query.order_by(RevenueObligation.due_date).all()]

    if paid_as_of is not None:
        paid = dict(db.session.query(Payment.obligation_id, func.sum(Payment.amount))
                    .filter(Payment.owner_id == owner_id, Payment.date_received <= paid_as_of)
                    .group_by(Payment.obligation_id)
                    .all())
        for r in records:
            r['amount_paid'] = to_decimal(paid.get(r['id']))
    return records


def update_obligation_status(obligation):
    if obligation.amount_paid >= obligation.amount_due:
        obligation.status = 'Paid'
    elif obligation.amount_paid > 0:
        obligation.status = 'Partial'
    else:
        obligation.status = 'Unpaid'


def log_audit(action, target_type, target_id, details=""):
    """
    Creates an AuditLog entry.
    """
    try:
        user_id = current_user.id if (current_user and current_user.is_authenticated) else 1 # Default to 1 (Admin) if system/background

        log = AuditLog(
            user_id=user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details
        )
        db.session.add(log)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error logging audit: %s %s #%s", action, target_type, target_id)
