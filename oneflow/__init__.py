"""
OneFlow Application Package

FLOW OVERVIEW
- create_app(test_config=None)
  • Build Flask app, apply Config (env-based) and layer test_config on top.
  • Configure logging, init extensions (DB, Mail).
  • Register blueprints: every API blueprint under /api/<resource>, plus main
    (/api/health, /metrics, /uploads).
  • Register global error handlers, request metrics hooks and CLI commands.
"""

import logging
import os
import time

from flask import Flask, g, request

from .config import Config
from .models import db
from .routes import API_BLUEPRINTS, main_bp
from .utils.mailer import mail
from .utils.prom_metrics import observe_request


def configure_logging(level_name):
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger('oneflow').setLevel(level)


def create_app(test_config=None):
    """Application factory pattern for production deployment"""
    app = Flask(__name__)

    # Configuration
    app.config.from_object(Config())
    if test_config:
        # Tests override individual keys
        app.config.update(test_config)

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Initialize extensions
    db.init_app(app)
    mail.init_app(app)

    # Register blueprints
    for blueprint, prefix in API_BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)
    app.register_blueprint(main_bp)

    # Register error handlers
    from .utils.error_handlers import register_error_handlers
    register_error_handlers(app)

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def record_request(response):
        started = g.pop('request_started', None)
        if started is not None:
            endpoint = request.url_rule.rule if request.url_rule else 'unmatched'
            observe_request(endpoint, response.status_code, time.perf_counter() - started)
        return response

    from .cli import register_commands
    register_commands(app)

    app.logger.info('OneFlow app created (database: %s)', app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0])
    return app
