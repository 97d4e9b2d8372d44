from flask import Blueprint, request, jsonify
from models import db, Expense, Property, Contractor
from flask_login import login_required, current_user
from routes.auth import role_required, request_data
from utils import log_audit, parse_date, parse_amount, parse_int, get_owned_or_404

expenses_bp = Blueprint('expenses', __name__)

EXPENSE_CATEGORIES = ('Repairs', 'Utilities', 'Insurance', 'Taxes', 'Management Fees', 'Cleaning', 'Other')
EXPENSE_TYPES = ('one-off', 'recurring')
FREQUENCIES = ('weekly', 'bi-weekly', 'monthly', 'quarterly', 'yearly')


def apply_expense_fields(expense, data):
    """Copies submitted fields onto an Expense. Raises ValueError."""
    if 'amount' in data:
        amount = parse_amount(data.get('amount'), 'amount')
        if amount <= 0:
            raise ValueError("Expense amount must be greater than zero")
        expense.amount = amount

    if 'date' in data:
        expense.date = parse_date(data.get('date'), 'date')

    if 'category' in data:
        if data['category'] not in EXPENSE_CATEGORIES:
            raise ValueError(f"Unknown category: {data['category']}")
        expense.category = data['category']

    if 'property_id' in data:
        expense.property_id = (get_owned_or_404(Property, parse_int(data['property_id'], 'property_id')).id
                               if data['property_id'] else None)

    if 'contractor_id' in data:
        expense.contractor_id = (get_owned_or_404(Contractor, parse_int(data['contractor_id'], 'contractor_id')).id
                                 if data['contractor_id'] else None)

    if 'expense_type' in data:
        if data['expense_type'] not in EXPENSE_TYPES:
            raise ValueError(f"Unknown expense type: {data['expense_type']}")
        expense.expense_type = data['expense_type']

    if 'frequency' in data:
        if data['frequency'] and data['frequency'] not in FREQUENCIES:
            raise ValueError(f"Unknown frequency: {data['frequency']}")
        expense.frequency = data['frequency'] or None

    for field in ('vendor_name', 'invoice_number', 'notes'):
        if field in data:
            setattr(expense, field, data.get(field))

    if expense.expense_type == 'recurring' and not expense.frequency:
        raise ValueError("Recurring expenses need a frequency")
    if expense.expense_type == 'one-off':
        expense.frequency = None


@expenses_bp.route('/')
@login_required
def list_expenses():
    query = Expense.query.filter_by(owner_id=current_user.owner_id)

    # Filters
    property_id = request.args.get('property_id', type=int)
    if property_id:
        query = query.filter(Expense.property_id == property_id)

    category = request.args.get('category')
    if category:
        query = query.filter(Expense.category == category)

    try:
        if request.args.get('start'):
            query = query.filter(Expense.date >= parse_date(request.args['start'], 'start'))
        if request.args.get('end'):
            query = query.filter(Expense.date <= parse_date(request.args['end'], 'end'))
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    expenses = query.order_by(Expense.date.desc(), Expense.id.desc()).all()
    return jsonify({
        'expenses': [e.to_dict() for e in expenses],
        'total': float(sum(e.amount for e in expenses)),
    })


@expenses_bp.route('/add', methods=['POST'])
@login_required
@role_required('landlord', 'accounts')
def add_expense():
    data = request_data()
    expense = Expense(owner_id=current_user.owner_id, expense_type='one-off')

    try:
        for field in ('amount', 'date', 'category'):
            if not data.get(field):
                raise ValueError(f"{field} is required")
        apply_expense_fields(expense, data)
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    db.session.add(expense)
    db.session.commit()
    log_audit('CREATE', 'Expense', expense.id, f"Expense of {expense.amount} ({expense.category}) was created.")
    return jsonify({'status': 'success', 'expense': expense.to_dict()}), 201


@expenses_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
@role_required('landlord', 'accounts')
def edit_expense(id):
    expense = get_owned_or_404(Expense, id)

    try:
        apply_expense_fields(expense, request_data())
    except ValueError as e:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': str(e)}), 400

    db.session.commit()
    log_audit('UPDATE', 'Expense', expense.id, "Expense was updated.")
    return jsonify({'status': 'success', 'expense': expense.to_dict()})


@expenses_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
@role_required('landlord', 'accounts')
def delete_expense(id):
    expense = get_owned_or_404(Expense, id)
    db.session.delete(expense)
    db.session.commit()
    log_audit('DELETE', 'Expense', id, "Expense was deleted.")
    return jsonify({'status': 'success'})
