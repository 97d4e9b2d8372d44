from datetime import date

from flask import Blueprint, request, jsonify
from models import db, MaintenanceRequest, Property, Contractor
from flask_login import login_required, current_user
from routes.auth import role_required, request_data
from utils import log_audit, parse_date, parse_amount, parse_int, get_owned_or_404

maintenance_bp = Blueprint('maintenance', __name__)

STATUSES = ('To Do', 'In Progress', 'Done', 'Cancelled')
PRIORITIES = ('Low', 'Medium', 'High', 'Emergency')


def apply_request_fields(req, data):
    """Copies submitted fields onto a MaintenanceRequest. Raises ValueError."""
    if 'description' in data:
        description = (data.get('description') or '').strip()
        if not description:
            raise ValueError("Description is required")
        req.description = description

    if 'property_id' in data:
        req.property_id = get_owned_or_404(Property, parse_int(data['property_id'], 'property_id')).id

    if 'contractor_id' in data:
        req.contractor_id = (get_owned_or_404(Contractor, parse_int(data['contractor_id'], 'contractor_id')).id
                             if data['contractor_id'] else None)

    if 'priority' in data:
        if data['priority'] not in PRIORITIES:
            raise ValueError(f"Unknown priority: {data['priority']}")
        req.priority = data['priority']

    if 'reported_date' in data:
        req.reported_date = parse_date(data.get('reported_date'), 'reported_date')

    if 'cost' in data:
        req.cost = parse_amount(data.get('cost'), 'cost') if data.get('cost') not in (None, '') else None

    if 'status' in data:
        if data['status'] not in STATUSES:
            raise ValueError(f"Unknown status: {data['status']}")
        req.status = data['status']
        # Completion date follows the status
        if req.status == 'Done':
            req.completed_date = (parse_date(data['completed_date'], 'completed_date')
                                  if data.get('completed_date') else date.today())
        else:
            req.completed_date = None


@maintenance_bp.route('/')
@login_required
def list_requests():
    query = MaintenanceRequest.query.filter_by(owner_id=current_user.owner_id)

    status = request.args.get('status')
    if status:
        query = query.filter(MaintenanceRequest.status == status)

    property_id = request.args.get('property_id', type=int)
    if property_id:
        query = query.filter(MaintenanceRequest.property_id == property_id)

    requests_ = query.order_by(MaintenanceRequest.reported_date.desc(), MaintenanceRequest.id.desc()).all()
    return jsonify([r.to_dict() for r in requests_])


@maintenance_bp.route('/add', methods=['POST'])
@login_required
@role_required('landlord')
def add_request():
    data = request_data()
    req = MaintenanceRequest(owner_id=current_user.owner_id, status='To Do', priority='Medium', reported_date=date.today())

    try:
        if not data.get('property_id'):
            raise ValueError("property_id is required")
        if not (data.get('description') or '').strip():
            raise ValueError("Description is required")
        apply_request_fields(req, data)
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    db.session.add(req)
    if req.status in ('To Do', 'In Progress'):
        prop = db.session.get(Property, req.property_id)
        if prop.status == 'vacant' and data.get('take_offline'):
            prop.status = 'maintenance'
    db.session.commit()

    log_audit('CREATE', 'Maintenance', req.id, f"Maintenance request ({req.priority}) was created.")
    return jsonify({'status': 'success', 'request': req.to_dict()}), 201


@maintenance_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def edit_request(id):
    req = get_owned_or_404(MaintenanceRequest, id)

    try:
        apply_request_fields(req, request_data())
    except ValueError as e:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': str(e)}), 400

    db.session.commit()
    log_audit('UPDATE', 'Maintenance', req.id, f"Maintenance request set to {req.status}.")
    return jsonify({'status': 'success', 'request': req.to_dict()})


@maintenance_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def delete_request(id):
    req = get_owned_or_404(MaintenanceRequest, id)
    db.session.delete(req)
    db.session.commit()
    log_audit('DELETE', 'Maintenance', id, "Maintenance request was deleted.")
    return jsonify({'status': 'success'})
