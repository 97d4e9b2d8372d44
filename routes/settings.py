from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user
from models import db, UserSettings
from routes.auth import role_required, request_data
from utils import log_audit, get_owner_settings
from utils_currency import settings_currency

settings_bp = Blueprint('settings', __name__)

RESIDENCY_STATUSES = ('resident', 'non-resident')


@settings_bp.route('/', methods=['GET'])
@login_required
def get_settings():
    settings = get_owner_settings(current_user.owner_id)
    currency, locale = settings_currency(settings, current_app.config)
    return jsonify({
        'currency': currency,
        'locale': locale,
        'company_name': (settings.company_name if settings and settings.company_name
                         else current_app.config['COMPANY_NAME']),
        'residency_status': settings.residency_status if settings else 'resident',
    })


@settings_bp.route('/', methods=['POST'])
@login_required
@role_required('landlord')
def update_settings():
    data = request_data()
    settings = get_owner_settings(current_user.owner_id)

    if settings is None:
        currency, locale = settings_currency(None, current_app.config)
        settings = UserSettings(owner_id=current_user.owner_id, currency=currency, locale=locale)
        db.session.add(settings)

    if 'currency' in data:
        currency = (data.get('currency') or '').strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            db.session.rollback()
            return jsonify({'status': 'error', 'message': 'Currency must be a 3-letter ISO code'}), 400
        settings.currency = currency

    if 'locale' in data:
        locale = (data.get('locale') or '').strip()
        if not locale:
            db.session.rollback()
            return jsonify({'status': 'error', 'message': 'Locale is required'}), 400
        settings.locale = locale

    if 'company_name' in data:
        settings.company_name = (data.get('company_name') or '').strip() or None

    if 'residency_status' in data:
        if data['residency_status'] not in RESIDENCY_STATUSES:
            db.session.rollback()
            return jsonify({'status': 'error', 'message': f"Unknown residency status: {data['residency_status']}"}), 400
        settings.residency_status = data['residency_status']

    db.session.commit()
    log_audit('UPDATE', 'Settings', settings.id, f"Settings updated ({settings.currency}, {settings.locale})")
    return jsonify({'status': 'success', 'settings': settings.to_dict()})
