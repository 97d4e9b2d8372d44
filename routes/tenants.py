from flask import Blueprint, request, jsonify
from models import db, Tenant, Tenancy
from flask_login import login_required, current_user
from routes.auth import role_required, request_data
from utils import log_audit, get_owned_or_404

tenants_bp = Blueprint('tenants', __name__)

TENANT_FIELDS = ('first_name', 'last_name', 'email', 'phone', 'id_type', 'id_number', 'notes')


@tenants_bp.route('/')
@login_required
def list_tenants():
    params = request.args
    query = Tenant.query.filter_by(owner_id=current_user.owner_id)

    # Search Filter
    search_term = params.get('search')
    if search_term:
        term = f"%{search_term}%"
        query = query.filter(
            db.or_(
                Tenant.first_name.ilike(term),
                Tenant.last_name.ilike(term),
                Tenant.email.ilike(term),
                Tenant.phone.ilike(term)
            )
        )

    sort_order = params.get('order', 'asc')
    col = Tenant.last_name
    if sort_order == 'desc':
        query = query.order_by(col.desc(), Tenant.first_name.desc())
    else:
        query = query.order_by(col.asc(), Tenant.first_name.asc())

    tenants = query.all()

    # Filter by Status (derived from tenancies)
    status_filter = params.get('status')
    if status_filter == 'active':
        tenants = [t for t in tenants if t.has_active_tenancy]
    elif status_filter == 'past':
        tenants = [t for t in tenants if not t.has_active_tenancy]

    return jsonify([t.to_dict() for t in tenants])


@tenants_bp.route('/<int:id>')
@login_required
def tenant_detail(id):
    tenant = get_owned_or_404(Tenant, id)
    data = tenant.to_dict()
    data['tenancies'] = [t.to_dict() for t in tenant.tenancies]
    return jsonify(data)


@tenants_bp.route('/add', methods=['POST'])
@login_required
@role_required('landlord')
def add_tenant():
    data = request_data()

    first_name = (data.get('first_name') or '').strip()
    last_name = (data.get('last_name') or '').strip()
    if not first_name or not last_name:
        return jsonify({'status': 'error', 'message': 'First and last name are required'}), 400

    new_tenant = Tenant(owner_id=current_user.owner_id)
    for field in TENANT_FIELDS:
        setattr(new_tenant, field, data.get(field))
    new_tenant.first_name = first_name
    new_tenant.last_name = last_name

    db.session.add(new_tenant)
    db.session.commit()

    log_audit('CREATE', 'Tenant', new_tenant.id, f"Created tenant {new_tenant.full_name}")
    return jsonify({'status': 'success', 'tenant': new_tenant.to_dict()}), 201


@tenants_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def edit_tenant(id):
    tenant = get_owned_or_404(Tenant, id)
    data = request_data()

    for field in TENANT_FIELDS:
        if field in data:
            setattr(tenant, field, data.get(field))

    if not (tenant.first_name or '').strip() or not (tenant.last_name or '').strip():
        db.session.rollback()
        return jsonify({'status': 'error', 'message': 'First and last name are required'}), 400

    db.session.commit()
    log_audit('UPDATE', 'Tenant', tenant.id, f"Updated tenant {tenant.full_name}")
    return jsonify({'status': 'success', 'tenant': tenant.to_dict()})


@tenants_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def delete_tenant(id):
    tenant = get_owned_or_404(Tenant, id)

    if Tenancy.query.filter_by(tenant_id=tenant.id).first():
        return jsonify({'status': 'error', 'message': 'Tenant has tenancies; delete those first.'}), 400

    db.session.delete(tenant)
    db.session.commit()
    log_audit('DELETE', 'Tenant', id, "Deleted tenant")
    return jsonify({'status': 'success'})
