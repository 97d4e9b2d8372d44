from flask import Blueprint, request, jsonify, make_response
from models import db, Property, Tenancy
from datetime import date, datetime
from decimal import Decimal
import io
import zipfile
import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from flask_login import login_required, current_user
from routes.auth import role_required, request_data
from utils import log_audit, parse_amount, parse_int, get_owned_or_404

properties_bp = Blueprint('properties', __name__, url_prefix='/properties')

PROPERTY_TYPES = ('Domestic', 'Commercial')
PROPERTY_STATUSES = ('vacant', 'occupied', 'maintenance')

UPLOAD_COLUMNS = {
    'Address': 'address_line_1',
    'City': 'city',
    'State': 'state',
    'Postal Code': 'postal_code',
    'Type': 'property_type',
    'Building Type': 'building_type',
    'Bedrooms': 'bedrooms',
    'Bathrooms': 'bathrooms',
    'Purchase Price': 'purchase_price',
    'Current Value': 'current_value',
    'Rental Value': 'rental_value',
}


def recalculate_property_statuses(owner_id):
    """Recalculate property statuses based on running tenancies"""
    today = date.today()
    properties = Property.query.filter_by(owner_id=owner_id).all()

    for prop in properties:
        active = Tenancy.query.filter(
            Tenancy.property_id == prop.id,
            Tenancy.status == 'Active',
            Tenancy.start_date <= today,
            Tenancy.end_date >= today
        ).first()

        if active:
            prop.status = 'occupied'
        elif prop.status == 'occupied':
            # Only revert to vacant if it was occupied; keeps manual 'maintenance'
            prop.status = 'vacant'

    db.session.commit()


def apply_property_fields(prop, data):
    """Copies submitted fields onto a Property. Raises ValueError."""
    if 'address_line_1' in data:
        address = (data.get('address_line_1') or '').strip()
        if not address:
            raise ValueError("Address is required")
        prop.address_line_1 = address

    for field in ('city', 'state', 'postal_code', 'building_type'):
        if field in data:
            setattr(prop, field, data.get(field))

    if 'property_type' in data:
        if data['property_type'] not in PROPERTY_TYPES:
            raise ValueError(f"Unknown property type: {data['property_type']}")
        prop.property_type = data['property_type']

    if 'status' in data:
        if data['status'] not in PROPERTY_STATUSES:
            raise ValueError(f"Unknown status: {data['status']}")
        prop.status = data['status']

    for field in ('bedrooms', 'bathrooms'):
        if field in data:
            setattr(prop, field, parse_int(data.get(field), field, default=0))

    for field in ('purchase_price', 'current_value', 'rental_value'):
        if field in data:
            setattr(prop, field, parse_amount(data.get(field), field, default=0))


@properties_bp.route('/')
@login_required
def list_properties():
    recalculate_property_statuses(current_user.owner_id)

    # Filters
    status_filter = request.args.get('status')
    type_filter = request.args.get('type')
    search_term = request.args.get('search')
    show_archived = request.args.get('show_archived') == 'true'

    query = Property.query.filter_by(owner_id=current_user.owner_id)

    # Exclude archived by default
    if not show_archived:
        query = query.filter(Property.archived == False)

    if status_filter:
        query = query.filter(Property.status == status_filter)

    if type_filter:
        query = query.filter(Property.property_type.ilike(type_filter))

    if search_term:
        term = f"%{search_term}%"
        query = query.filter(
            db.or_(
                Property.address_line_1.ilike(term),
                Property.city.ilike(term),
                Property.building_type.ilike(term)
            )
        )

    properties = query.order_by(Property.city, Property.address_line_1).all()

    # Calculate stats (exclude archived)
    total = Property.query.filter_by(owner_id=current_user.owner_id, archived=False).count()
    occupancy = Property.query.filter_by(owner_id=current_user.owner_id, status='occupied', archived=False).count()
    occupancy_rate = (occupancy / total * 100) if total > 0 else 0

    return jsonify({
        'properties': [p.to_dict() for p in properties],
        'stats': {
            'total': total,
            'occupancy': occupancy,
            'vacancy': total - occupancy,
            'rate': round(occupancy_rate, 1),
        },
    })


@properties_bp.route('/<int:id>')
@login_required
def property_detail(id):
    prop = get_owned_or_404(Property, id)
    data = prop.to_dict()
    data['tenancies'] = [t.to_dict() for t in sorted(prop.tenancies, key=lambda t: t.start_date, reverse=True)]
    data['expenses_total'] = float(sum((e.amount for e in prop.expenses), Decimal('0.00')))
    data['open_maintenance'] = len([m for m in prop.maintenance_requests if m.status in ('To Do', 'In Progress')])
    return jsonify(data)


@properties_bp.route('/add', methods=['POST'])
@login_required
@role_required('landlord')
def add_property():
    data = request_data()
    prop = Property(owner_id=current_user.owner_id, address_line_1='')

    try:
        if not (data.get('address_line_1') or '').strip():
            raise ValueError("Address is required")
        apply_property_fields(prop, data)
    except ValueError as e:
        return jsonify({'status': 'error', 'message': str(e)}), 400

    db.session.add(prop)
    db.session.commit()
    log_audit('CREATE', 'Property', prop.id, f"Property \"{prop.address_line_1}\" was created.")
    return jsonify({'status': 'success', 'property': prop.to_dict()}), 201


@properties_bp.route('/edit/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def edit_property(id):
    prop = get_owned_or_404(Property, id)

    try:
        apply_property_fields(prop, request_data())
    except ValueError as e:
        db.session.rollback()
        return jsonify({'status': 'error', 'message': str(e)}), 400

    db.session.commit()
    log_audit('UPDATE', 'Property', prop.id, f"Property \"{prop.address_line_1}\" was updated.")
    return jsonify({'status': 'success', 'property': prop.to_dict()})


@properties_bp.route('/archive/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def archive_property(id):
    prop = get_owned_or_404(Property, id)
    prop.archived = True
    prop.archived_date = datetime.utcnow()
    db.session.commit()
    log_audit('ARCHIVE', 'Property', prop.id, "Archived property")
    return jsonify({'status': 'success'})


@properties_bp.route('/unarchive/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def unarchive_property(id):
    prop = get_owned_or_404(Property, id)
    prop.archived = False
    prop.archived_date = None
    db.session.commit()
    log_audit('UNARCHIVE', 'Property', prop.id, "Restored property")
    return jsonify({'status': 'success'})


@properties_bp.route('/delete/<int:id>', methods=['POST'])
@login_required
@role_required('landlord')
def delete_property(id):
    prop = get_owned_or_404(Property, id)

    # Keep history: properties with tenancies or jobs can only be archived
    if prop.tenancies or prop.maintenance_requests:
        return jsonify({'status': 'error', 'message': 'Property has history; archive it instead.'}), 400

    db.session.delete(prop)
    db.session.commit()
    log_audit('DELETE', 'Property', id, "Deleted property")
    return jsonify({'status': 'success'})


@properties_bp.route('/download_template')
@login_required
def download_template():
    # Create a DataFrame with sample data
    data = {
        'Address': ['12 Riverside Drive', 'Kilimani Court, Flat 4'],
        'City': ['Nairobi', 'Nairobi'],
        'State': ['Nairobi County', 'Nairobi County'],
        'Postal Code': ['00100', '00100'],
        'Type': ['Domestic', 'Domestic'],
        'Building Type': ['Detached House', 'Flat'],
        'Bedrooms': [4, 2],
        'Bathrooms': [3, 1],
        'Purchase Price': [25000000, 9000000],
        'Current Value': [28000000, 9500000],
        'Rental Value': [180000, 65000],
    }
    df = pd.DataFrame(data)

    # Save to buffer
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df.to_excel(writer, index=False, sheet_name='Template')
    output.seek(0)

    response = make_response(output.getvalue())
    response.headers["Content-Disposition"] = "attachment; filename=property_upload_template.xlsx"
    response.headers["Content-Type"] = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    return response


@properties_bp.route('/bulk_upload', methods=['POST'])
@login_required
@role_required('landlord')
def bulk_upload():
    if 'file' not in request.files:
        return jsonify({'status': 'error', 'message': 'No file part'}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({'status': 'error', 'message': 'No selected file'}), 400

    try:
        # Determine file type
        if file.filename.endswith('.csv'):
            df = pd.read_csv(file)
        else:
            df = pd.read_excel(file)
    except (ValueError, pd.errors.ParserError, zipfile.BadZipFile, InvalidFileException) as e:
        return jsonify({'status': 'error', 'message': f'Could not read file: {e}'}), 400

    added_count = 0
    errors = []

    for index, row in df.iterrows():
        values = {}
        for column, field in UPLOAD_COLUMNS.items():
            value = row.get(column)
            if value is None or pd.isna(value):
                continue
            values[field] = str(value).strip() if isinstance(value, str) else value

        prop = Property(owner_id=current_user.owner_id, address_line_1='')
        try:
            if not str(values.get('address_line_1', '')).strip():
                raise ValueError("Address is required")
            # Spreadsheet numbers come through as floats
            for field in ('bedrooms', 'bathrooms'):
                if field in values:
                    values[field] = int(values[field])
            for field in ('postal_code', 'city', 'state', 'building_type'):
                if field in values:
                    values[field] = str(values[field])
            apply_property_fields(prop, values)
        except ValueError as e:
            errors.append(f"Row {index + 2}: {e}")
            continue

        db.session.add(prop)
        added_count += 1

    db.session.commit()

    if added_count > 0:
        log_audit('CREATE', 'Property', 0, f"Bulk uploaded {added_count} properties")

    return jsonify({'status': 'success', 'added': added_count, 'skipped': len(errors), 'errors': errors})
