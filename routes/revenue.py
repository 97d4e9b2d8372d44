from datetime import date

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db, RevenueObligation, Payment, Tenancy
from routes.auth import role_required, request_data
from utils import (log_audit, parse_date, parse_amount, get_owned_or_404,
                   update_obligation_status)

revenue_bp = Blueprint('revenue', __name__)

PAYMENT_METHODS = ('M-Pesa', 'Bank Transfer', 'Cash', 'Credit Card', 'Other')


@revenue_bp.route('/')
@login_required
def list_obligations():
    query = RevenueObligation.query.filter_by(owner_id=current_user.owner_id)

    # Filters
    tenancy_id = request.args.get('tenancy_id', type=int)
    if tenancy_id:
        query = query.filter(RevenueObligation.tenancy_id == tenancy_id)

    kind = request.args.get('kind')
    if kind:
        query = query.filter(RevenueObligation.kind == kind)

    status = request.args.get('status')
    if status:
        query = query.filter(RevenueObligation.status == status)

    try:
        if request.args.get('start'):
            query = query.filter(RevenueObligation.due_date >= parse_date(request.args['start'], 'start'))
        if request.args.get('end'):
            query = query.filter(RevenueObligation.due_date <= parse_date(request.args['end'], 'end'))
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    obligations = query.order_by(RevenueObligation.due_date, RevenueObligation.id).all()
    return jsonify([o.to_dict() for o in obligations])


@revenue_bp.route('/<int:id>/payment', methods=['POST'])
@login_required
@role_required('landlord', 'accounts')
def record_payment(id):
    """
    Records a payment against one obligation. Amount paid only ever grows;
    paying more than is due is accepted and shows up as credit in arrears.
    """
    obligation = get_owned_or_404(RevenueObligation, id)
    data = request_data()

    try:
        amount = parse_amount(data.get('amount'), 'amount')
        if amount <= 0:
            raise ValueError("Payment amount must be greater than zero")

        payment_date = parse_date(data.get('date'), 'date') if data.get('date') else date.today()

        method = data.get('method') or 'Other'
        if method not in PAYMENT_METHODS:
            raise ValueError(f"Unknown payment method: {method}")
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    payment = Payment(
        owner_id=current_user.owner_id,
        obligation_id=obligation.id,
        tenancy_id=obligation.tenancy_id,
        amount=amount,
        date_received=payment_date,
        method=method,
        reference=data.get('reference'),
    )
    db.session.add(payment)

    obligation.amount_paid = (obligation.amount_paid or 0) + amount
    update_obligation_status(obligation)

    db.session.commit()
    log_audit('CREATE', 'Payment', payment.id,
              f"Received payment of {amount} for {obligation.invoice_number or obligation.id}")

    return jsonify({'status': 'success', 'payment': payment.to_dict(), 'obligation': obligation.to_dict()}), 201


@revenue_bp.route('/statement/<int:tenancy_id>')
@login_required
def tenancy_statement(tenancy_id):
    tenancy = get_owned_or_404(Tenancy, tenancy_id)

    # Combine into a ledger
    ledger = []
    for o in tenancy.obligations:
        ledger.append({
            'date': o.due_date,
            'type': o.kind,
            'ref': o.invoice_number,
            'desc': o.notes,
            'debit': o.amount_due,
            'credit': 0,
        })

    for p in tenancy.payments:
        ledger.append({
            'date': p.date_received,
            'type': 'Payment',
            'ref': f"R-{p.id}",
            'desc': f"Ref: {p.reference}" if p.reference else p.method,
            'debit': 0,
            'credit': p.amount,
        })

    # Sort by date, charges before payments on the same day
    ledger.sort(key=lambda x: (x['date'], x['type'] == 'Payment'))

    # Calculate Running Balance
    balance = 0
    for entry in ledger:
        balance += entry['debit'] - entry['credit']
        entry['balance'] = float(balance)
        entry['debit'] = float(entry['debit'])
        entry['credit'] = float(entry['credit'])
        entry['date'] = entry['date'].isoformat()

    return jsonify({'tenancy': tenancy.to_dict(), 'ledger': ledger, 'balance': float(balance)})
