from flask import Blueprint, jsonify
from models import db, Contractor
from flask_login import login_required, current_user
from routes.auth import role_required, request_data
from utils import log_audit, get_owned_or_404

contractors_bp = Blueprint('contractors', __name__, url_prefix='/contractors')

CONTRACTOR_FIELDS = ('name', 'specialty', 'email', 'phone', 'notes')


@contractors_bp.route('/')
@login_required
def list_contractors():
    contractors = Contractor.query.filter_by(owner_id=current_user.owner_id).order_by(Contractor.name).all()

    result = []
    for c in contractors:
        data = c.to_dict()
        # Calculate stats per contractor
        data['total_spend'] = float(sum(e.amount for e in c.expenses))
        data['open_jobs'] = len([m for m in c.maintenance_requests if m.status in ('To Do', 'In Progress')])
        result.append(data)

    return jsonify(result)


@contractors_bp.route('/add', methods=['POST'])
@login_required
@role_required('landlord')
def add_contractor():
    data = request_data()
    name = (data.get('name') or '').strip()

    if not name:
        return jsonify({'status': 'error', 'message': 'Contractor name is required'}), 400

    new_contractor = Contractor(owner_id=current_user.owner_id)
    for field in CONTRACTOR_FIELDS:
        setattr(new_contractor, field, data.get(field))
    new_contractor.name = name

    db.session.add(new_contractor)
    db.session.commit()
    log_audit('CREATE', 'Contractor', new_contractor.id, f"Created contractor {name}")
    return jsonify({'status': 'success', 'contractor': new_contractor.to_dict()}), 201


@contractors_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def edit_contractor(id):
    contractor = get_owned_or_404(Contractor, id)
    data = request_data()

    for field in CONTRACTOR_FIELDS:
        if field in data:
            setattr(contractor, field, data.get(field))

    if not (contractor.name or '').strip():
        db.session.rollback()
        return jsonify({'status': 'error', 'message': 'Contractor name is required'}), 400

    db.session.commit()
    log_audit('UPDATE', 'Contractor', contractor.id, f"Updated contractor {contractor.name}")
    return jsonify({'status': 'success', 'contractor': contractor.to_dict()})


@contractors_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def delete_contractor(id):
    contractor = get_owned_or_404(Contractor, id)

    # Expenses and jobs stay, the ORM nulls their contractor_id
    db.session.delete(contractor)
    db.session.commit()
    log_audit('DELETE', 'Contractor', id, "Deleted contractor")
    return jsonify({'status': 'success'})
