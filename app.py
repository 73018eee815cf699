#!/usr/bin/env python3
"""
OneFlow application entry point.

This module creates the Flask application via `create_app`, creates any
missing tables and, when SEED_DATABASE is enabled, fills empty catalog tables
with sample data. When executed directly, it runs the development server. In
production, a WSGI server should import `app` from this module.

Environment variables of interest:
- FLASK_ENV: 'production' loads config.prod.env, 'testing' skips .env files.
- DATABASE_URL, SECRET_KEY, JWT_SECRET_KEY, mail settings: consumed by `create_app`.
- PORT: development server port (default 5000).
"""

import logging
import os

from oneflow import create_app
from oneflow.models import db
from oneflow.models.seed import seed_database

logger = logging.getLogger('oneflow.app')

app = create_app()

with app.app_context():
    db.create_all()
    logger.info('Database tables ready')
    if app.config.get('SEED_DATABASE'):
        seed_database()

if __name__ == '__main__':
    app.run(debug=os.getenv('FLASK_ENV') == 'development', host='0.0.0.0', port=int(os.getenv('PORT', 5000)))
