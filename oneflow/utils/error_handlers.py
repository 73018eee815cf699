"""
Error Handlers

FLOW OVERVIEW
- register_error_handlers(app): JSON bodies for 400/404/405/413/500.
- 500 rolls back the current session so the next request starts clean.
"""

import logging

from flask import jsonify

logger = logging.getLogger(__name__)


def error_response(message, status_code):
    return jsonify({'message': message}), status_code


def register_error_handlers(app):
    """Register error handlers with the Flask app"""

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', 400)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Resource not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method not allowed', 405)

    @app.errorhandler(413)
    def payload_too_large(error):
        return error_response('File too large', 413)

    @app.errorhandler(500)
    def internal_error(error):
        from ..models import db
        db.session.rollback()
        logger.error('Unhandled server error: %s', error)
        return error_response('Server error', 500)
