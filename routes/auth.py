from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.security import check_password_hash, generate_password_hash
from models import User, AuditLog, db
from functools import wraps

auth_bp = Blueprint('auth', __name__)

ROLES = ('admin', 'landlord', 'accounts')


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'status': 'error', 'message': 'Login required'}), 401

            # Allow Admin to access everything
            if current_user.role == 'admin':
                return f(*args, **kwargs)

            if current_user.role not in roles:
                return jsonify({'status': 'error', 'message': 'You do not have permission to access this resource.'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def request_data():
    """JSON body if present, otherwise the submitted form."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


from utils import log_audit


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request_data()
    username = data.get('username')
    password = data.get('password')

    user = User.query.filter_by(username=username).first()

    if user and check_password_hash(user.password_hash, password or ''):
        login_user(user)
        log_audit('LOGIN', 'User', user.id, 'User logged in')
        return jsonify({'status': 'success', 'user': {'id': user.id, 'username': user.username, 'role': user.role}})

    return jsonify({'status': 'error', 'message': 'Invalid username or password'}), 401


@auth_bp.route('/logout')
@login_required
def logout():
    log_audit('LOGOUT', 'User', current_user.id, 'User logged out')
    logout_user()
    return jsonify({'status': 'success'})


@auth_bp.route('/audit_logs')
@login_required
@role_required('admin')
def view_audit_logs():
    logs = AuditLog.query.order_by(AuditLog.timestamp.desc()).limit(100).all()
    return jsonify([log.to_dict() for log in logs])


@auth_bp.route('/register_user', methods=['POST'])
@login_required
@role_required('admin')
def register_user():
    data = request_data()
    username = data.get('username')
    password = data.get('password')
    confirm_password = data.get('confirm_password')
    role = data.get('role')

    # Basic validation
    if not username or not password or not role:
        return jsonify({'status': 'error', 'message': 'Please fill in all fields'}), 400

    if role not in ROLES:
        return jsonify({'status': 'error', 'message': f'Unknown role: {role}'}), 400

    if password != confirm_password:
        return jsonify({'status': 'error', 'message': 'Passwords do not match'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'status': 'error', 'message': 'Username already exists'}), 400

    # Accounts staff must be attached to the landlord they keep the books for
    landlord_id = None
    if role == 'accounts':
        try:
            landlord_id = int(data.get('landlord_id'))
        except (TypeError, ValueError):
            return jsonify({'status': 'error', 'message': 'Accounts users need a landlord_id'}), 400
        landlord = db.session.get(User, landlord_id)
        if landlord is None or landlord.role != 'landlord':
            return jsonify({'status': 'error', 'message': f'Unknown landlord: {landlord_id}'}), 400

    new_user = User(
        username=username,
        password_hash=generate_password_hash(password),
        role=role,
        landlord_id=landlord_id
    )
    db.session.add(new_user)
    db.session.commit()

    log_audit('CREATE', 'User', new_user.id, f"Created user {username} as {role}")
    return jsonify({'status': 'success', 'id': new_user.id}), 201
