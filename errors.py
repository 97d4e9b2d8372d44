from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError

from models import db


def _error(message, code):
    return jsonify({'status': 'error', 'message': message}), code


def register_error_handlers(app):
    @app.errorhandler(400)
    def bad_request(e): return _error(getattr(e, 'description', None) or 'Bad request', 400)

    @app.errorhandler(401)
    def unauthorized(e): return _error('Login required', 401)

    @app.errorhandler(403)
    def forbidden(e): return _error('You do not have permission to access this resource.', 403)

    @app.errorhandler(404)
    def not_found(e): return _error('Not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(e): return _error('Method not allowed', 405)

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        app.logger.exception("Database error")
        return _error('Database error', 500)

    @app.errorhandler(500)
    def server_error(e): return _error('Server error', 500)
