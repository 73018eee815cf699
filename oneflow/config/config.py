"""
Application Configuration

FLOW OVERVIEW
- Config.__init__
  • FLASK_ENV picks the dotenv file: config.prod.env for production, config.env
    otherwise; 'testing' reads the process environment only.
- Each upper-case property maps one environment variable onto a Flask config key,
  so `app.config.from_object(Config())` sees the values at call time.
- create_app() applies Config first; a test_config dict is layered on top.
"""

import os
from dotenv import load_dotenv

ENV_FILES = {
    'production': 'config.prod.env',
    'development': 'config.env',
}


def _env_bool(name, default):
    return os.getenv(name, str(default)).strip().lower() in ('true', '1', 'yes')


def _env_int(name, default):
    return int(os.getenv(name, default))


class Config:
    """Environment-driven settings"""

    def __init__(self):
        flask_env = os.getenv('FLASK_ENV', 'development')
        if flask_env != 'testing':
            load_dotenv(ENV_FILES.get(flask_env, ENV_FILES['development']))

    # Flask / persistence

    @property
    def SECRET_KEY(self):
        return os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    @property
    def SQLALCHEMY_DATABASE_URI(self):
        """DATABASE_URL, defaulting to a local SQLite file"""
        return os.getenv('DATABASE_URL', 'sqlite:///oneflow.db')

    @property
    def SQLALCHEMY_TRACK_MODIFICATIONS(self):
        return False

    @property
    def SEED_DATABASE(self):
        """Insert sample customers, vendors and products on startup"""
        return _env_bool('SEED_DATABASE', True)

    # Authentication

    @property
    def JWT_SECRET_KEY(self):
        return os.getenv('JWT_SECRET_KEY', 'jwt-secret-key-change-in-production')

    @property
    def JWT_ACCESS_TOKEN_EXPIRES(self):
        """Token lifetime in seconds (24 hours)"""
        return _env_int('JWT_ACCESS_TOKEN_EXPIRES', 86400)

    @property
    def OTP_EXPIRES_MINUTES(self):
        return _env_int('OTP_EXPIRES_MINUTES', 10)

    @property
    def BCRYPT_LOG_ROUNDS(self):
        return _env_int('BCRYPT_LOG_ROUNDS', 10)

    # Outgoing mail (Flask-Mail)

    @property
    def MAIL_SERVER(self):
        return os.getenv('MAIL_SERVER', 'smtp.gmail.com')

    @property
    def MAIL_PORT(self):
        return _env_int('MAIL_PORT', 587)

    @property
    def MAIL_USE_TLS(self):
        return _env_bool('MAIL_USE_TLS', True)

    @property
    def MAIL_USE_SSL(self):
        return _env_bool('MAIL_USE_SSL', False)

    @property
    def MAIL_USERNAME(self):
        return os.getenv('MAIL_USERNAME')

    @property
    def MAIL_PASSWORD(self):
        return os.getenv('MAIL_PASSWORD')

    @property
    def MAIL_DEFAULT_SENDER(self):
        return os.getenv('MAIL_DEFAULT_SENDER', 'noreply@oneflow.local')

    @property
    def MAIL_SUPPRESS_SEND(self):
        """Skip SMTP delivery; messages are still recorded"""
        return _env_bool('MAIL_SUPPRESS_SEND', False)

    # Uploads and logging

    @property
    def UPLOAD_FOLDER(self):
        """Root for profile pictures, project images, receipts and attachments"""
        return os.getenv('UPLOAD_FOLDER', os.path.join(os.getcwd(), 'uploads'))

    @property
    def MAX_CONTENT_LENGTH(self):
        return _env_int('MAX_CONTENT_LENGTH', 16 * 1024 * 1024)

    @property
    def LOG_LEVEL(self):
        return os.getenv('LOG_LEVEL', 'INFO').upper()
