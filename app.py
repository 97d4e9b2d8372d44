import logging

from flask import Flask, jsonify
from flask_login import LoginManager
from werkzeug.security import generate_password_hash

from config import Config
from errors import register_error_handlers
from models import db, User
from routes.auth import auth_bp
from routes.tenancies import tenancies_bp
from routes.revenue import revenue_bp
from routes.arrears import arrears_bp
from routes.properties import properties_bp
from routes.tenants import tenants_bp
from routes.contractors import contractors_bp
from routes.maintenance import maintenance_bp
from routes.expenses import expenses_bp
from routes.settings import settings_bp
from routes.dashboard import dashboard_bp
from routes.reports import reports_bp


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('services').setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'status': 'error', 'message': 'Login required'}), 401

    # Register Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(tenancies_bp, url_prefix='/tenancies')
    app.register_blueprint(revenue_bp, url_prefix='/revenue')
    app.register_blueprint(arrears_bp, url_prefix='/arrears')
    app.register_blueprint(properties_bp)
    app.register_blueprint(tenants_bp, url_prefix='/tenants')
    app.register_blueprint(contractors_bp)
    app.register_blueprint(maintenance_bp, url_prefix='/maintenance')
    app.register_blueprint(expenses_bp, url_prefix='/expenses')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(reports_bp, url_prefix='/reports')

    register_error_handlers(app)

    @app.route('/')
    def index():
        return jsonify({'name': app.config['COMPANY_NAME'], 'status': 'ok'})

    with app.app_context():
        db.create_all()
        # Seed Admin User
        if app.config['SEED_ADMIN'] and not User.query.filter_by(username='admin').first():
            admin = User(
                username='admin',
                password_hash=generate_password_hash(app.config['ADMIN_PASSWORD']),
                role='admin'
            )
            db.session.add(admin)
            db.session.commit()
            app.logger.info("Created default admin user.")

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
