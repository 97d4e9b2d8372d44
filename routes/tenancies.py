from datetime import date

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from models import db, Tenancy, TenancyServiceCharge, RevenueObligation, Tenant, Property
from routes.auth import role_required, request_data
from utils import (log_audit, parse_date, parse_amount, parse_int, get_owned_or_404,
                   get_obligation_records)
from utils_schedule import (generate_rent_schedule, validate_tenancy_params, invoice_number,
                            schedule_totals)
from utils_arrears import compute_tenancy_arrears, serialize_summary

tenancies_bp = Blueprint('tenancies', __name__)


def _totals_dict(totals):
    return {k: float(v) for k, v in totals.items()}


def _record_dict(record):
    return {
        'kind': record['kind'],
        'charge_name': record['charge_name'],
        'amount_due': float(record['amount_due']),
        'due_date': record['due_date'].isoformat(),
        'period_start': record['period_start'].isoformat(),
        'period_end': record['period_end'].isoformat(),
        'days_active': record['days_active'],
        'is_full_month': record['is_full_month'],
        'notes': record['notes'],
    }


def parse_tenancy_params(data):
    """
    Pulls the schedule-relevant fields out of a request payload and
    validates them. Raises ValueError on the first problem.
    """
    service_charges = []
    for sc in data.get('service_charges') or []:
        if not isinstance(sc, dict):
            raise ValueError("Invalid service charge")
        service_charges.append({
            'name': (sc.get('name') or '').strip(),
            'amount': parse_amount(sc.get('amount'), 'service charge amount'),
        })

    params = {
        'start_date': parse_date(data.get('start_date'), 'start_date'),
        'end_date': parse_date(data.get('end_date'), 'end_date'),
        'rent_amount': parse_amount(data.get('rent_amount'), 'rent_amount'),
        'deposit_amount': parse_amount(data.get('deposit_amount'), 'deposit_amount', default=0),
        'rent_due_day': parse_int(data.get('rent_due_day'), 'rent_due_day', default=1),
        'service_charges': service_charges,
    }
    payment_frequency = data.get('payment_frequency') or 'Monthly'

    validate_tenancy_params(payment_frequency=payment_frequency, **params)
    return params, payment_frequency


def _resolve_tenant(data):
    tenant_id = data.get('tenant_id')
    if tenant_id:
        return get_owned_or_404(Tenant, parse_int(tenant_id, 'tenant_id'))

    tenant_data = data.get('tenant') or {}
    first_name = (tenant_data.get('first_name') or '').strip()
    last_name = (tenant_data.get('last_name') or '').strip()
    if not first_name or not last_name:
        raise ValueError("Tenant first and last name are required")

    tenant = Tenant(
        owner_id=current_user.owner_id,
        first_name=first_name,
        last_name=last_name,
        email=tenant_data.get('email'),
        phone=tenant_data.get('phone'),
        id_type=tenant_data.get('id_type'),
        id_number=tenant_data.get('id_number'),
        notes=tenant_data.get('notes'),
    )
    db.session.add(tenant)
    db.session.flush() # Get ID
    return tenant


@tenancies_bp.route('/')
@login_required
def list_tenancies():
    query = Tenancy.query.filter_by(owner_id=current_user.owner_id)

    property_id = request.args.get('property_id', type=int)
    if property_id:
        query = query.filter(Tenancy.property_id == property_id)

    status = request.args.get('status')
    if status:
        query = query.filter(Tenancy.status == status)

    tenancies = query.order_by(Tenancy.start_date.desc()).all()
    return jsonify([t.to_dict() for t in tenancies])


@tenancies_bp.route('/<int:id>')
@login_required
def tenancy_detail(id):
    tenancy = get_owned_or_404(Tenancy, id)
    records = get_obligation_records(current_user.owner_id, tenancy.id)
    summary = compute_tenancy_arrears(records, date.today())

    data = tenancy.to_dict()
    data['obligations'] = [o.to_dict() for o in tenancy.obligations]
    data['totals'] = _totals_dict(schedule_totals(records))
    data['arrears'] = serialize_summary(summary)
    return jsonify(data)


@tenancies_bp.route('/preview', methods=['POST'])
@login_required
def preview_schedule():
    """Shows what a tenancy would generate without saving anything."""
    try:
        params, _ = parse_tenancy_params(request_data())
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    records = generate_rent_schedule(**params)
    return jsonify({
        'obligations': [_record_dict(r) for r in records],
        'totals': _totals_dict(schedule_totals(records)),
    })


@tenancies_bp.route('/add', methods=['POST'])
@login_required
@role_required('landlord')
def add_tenancy():
    data = request_data()

    try:
        params, payment_frequency = parse_tenancy_params(data)

        property_obj = get_owned_or_404(Property, parse_int(data.get('property_id'), 'property_id'))
        if property_obj.archived:
            raise ValueError("Cannot create a tenancy on an archived property")

        tenant = _resolve_tenant(data)

        tenancy = Tenancy(
            owner_id=current_user.owner_id,
            tenant_id=tenant.id,
            property_id=property_obj.id,
            start_date=params['start_date'],
            end_date=params['end_date'],
            rent_amount=params['rent_amount'],
            deposit_amount=params['deposit_amount'],
            rent_due_day=params['rent_due_day'],
            payment_frequency=payment_frequency,
            status='Active',
            lease_agreement_url=data.get('lease_agreement_url'),
            move_in_checklist_url=data.get('move_in_checklist_url'),
            notes=data.get('notes'),
        )
        db.session.add(tenancy)
        db.session.flush() # Get ID for invoice numbers

        for sc in params['service_charges']:
            db.session.add(TenancyServiceCharge(tenancy_id=tenancy.id, name=sc['name'], amount=sc['amount']))

        records = generate_rent_schedule(**params)
        for r in records:
            db.session.add(RevenueObligation(
                owner_id=current_user.owner_id,
                tenancy_id=tenancy.id,
                property_id=property_obj.id,
                tenant_id=tenant.id,
                kind=r['kind'],
                charge_name=r['charge_name'],
                amount_due=r['amount_due'],
                due_date=r['due_date'],
                period_start=r['period_start'],
                period_end=r['period_end'],
                invoice_number=invoice_number(r, tenancy.id),
                notes=r['notes'],
                status='Unpaid',
            ))

        if params['start_date'] <= date.today() <= params['end_date']:
            property_obj.status = 'occupied'

        # Tenant, tenancy and the whole schedule land in one commit
        db.session.commit()

    except ValueError as e:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': str(e)}), 400

    log_audit('CREATE', 'Tenancy', tenancy.id,
              f"Tenancy for \"{tenant.full_name}\" was created with {len(records)} obligations")

    return jsonify({'status': 'success', 'tenancy_id': tenancy.id, 'obligations': len(records)}), 201


@tenancies_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def edit_tenancy(id):
    """Administrative edits only; the financial schedule is fixed at creation."""
    tenancy = get_owned_or_404(Tenancy, id)
    data = request_data()

    frequency = data.get('payment_frequency')
    if frequency:
        try:
            validate_tenancy_params(tenancy.start_date, tenancy.end_date, tenancy.rent_amount,
                                    tenancy.rent_due_day, payment_frequency=frequency)
        except ValueError as e:
            return jsonify({'status': 'error', 'message': str(e)}), 400
        tenancy.payment_frequency = frequency

    for field in ('notes', 'lease_agreement_url', 'move_in_checklist_url'):
        if field in data:
            setattr(tenancy, field, data.get(field))

    db.session.commit()
    log_audit('UPDATE', 'Tenancy', tenancy.id, "Updated tenancy details")
    return jsonify({'status': 'success', 'tenancy': tenancy.to_dict()})


@tenancies_bp.route('/end/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def end_tenancy(id):
    tenancy = get_owned_or_404(Tenancy, id)
    data = request_data()

    try:
        ended_on = parse_date(data.get('ended_on'), 'ended_on') if data.get('ended_on') else date.today()
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    if ended_on < tenancy.start_date:
        return jsonify({'status': 'error', 'message': 'Tenancy cannot end before it starts'}), 400

    tenancy.status = 'Ended'
    tenancy.ended_on = ended_on

    # Free the property unless another tenancy is still running on it
    still_let = Tenancy.query.filter(
        Tenancy.property_id == tenancy.property_id,
        Tenancy.id != tenancy.id,
        Tenancy.status == 'Active',
    ).first()
    if not still_let and tenancy.property_obj.status == 'occupied':
        tenancy.property_obj.status = 'vacant'

    db.session.commit()
    log_audit('UPDATE', 'Tenancy', tenancy.id, f"Tenancy ended on {ended_on.isoformat()}")
    return jsonify({'status': 'success'})


@tenancies_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def delete_tenancy(id):
    tenancy = get_owned_or_404(Tenancy, id)
    count = len(tenancy.obligations)

    # Obligations (and their payments) and service charges go with it
    db.session.delete(tenancy)
    db.session.commit()

    log_audit('DELETE', 'Tenancy', id, f"Deleted tenancy and {count} obligations")
    return jsonify({'status': 'success', 'deleted_obligations': count})
