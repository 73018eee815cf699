"""
Authentication Utilities

FLOW OVERVIEW
- hash_password / verify_password: bcrypt with BCRYPT_LOG_ROUNDS from config.
- generate_jwt_token(user) / verify_jwt_token(token): HS256 tokens carrying
  user_id, email and role, valid for JWT_ACCESS_TOKEN_EXPIRES seconds.
- issue_otp(user): store a fresh 6-digit code on the user (caller commits and mails it).
- token_required: Bearer token → g.current_user (401 missing/unknown user, 403 invalid/inactive).
- roles_required(*roles): 403 unless g.current_user.role is listed.
"""

import logging
from datetime import datetime, timedelta
from functools import wraps

import bcrypt
import jwt
from flask import current_app, g, jsonify, request

from ..models import db, User
from ..models.utils import generate_otp

logger = logging.getLogger(__name__)


def hash_password(password):
    """Hash a password using bcrypt"""
    rounds = current_app.config.get('BCRYPT_LOG_ROUNDS', 10)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password, password_hash):
    """Verify a password against its hash"""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def generate_jwt_token(user):
    """Generate a JWT token for user authentication"""
    now = datetime.utcnow()
    expires_in = current_app.config.get('JWT_ACCESS_TOKEN_EXPIRES', 86400)
    payload = {
        'user_id': user.id,
        'email': user.email,
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm='HS256')


def verify_jwt_token(token):
    """Verify and decode a JWT token"""
    try:
        return jwt.decode(token, current_app.config['JWT_SECRET_KEY'], algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def issue_otp(user):
    """Attach a new one-time code to the user and return it"""
    code = generate_otp()
    user.set_otp(code, current_app.config.get('OTP_EXPIRES_MINUTES', 10))
    return code


def _bearer_token():
    header = request.headers.get('Authorization', '')
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == 'bearer':
        return parts[1]
    return None


def token_required(f):
    """Decorator to require a valid Bearer token"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({'message': 'Access token required'}), 401

        payload = verify_jwt_token(token)
        if payload is None or 'user_id' not in payload:
            return jsonify({'message': 'Invalid token'}), 403

        user = db.session.get(User, payload['user_id'])
        if user is None:
            return jsonify({'message': 'User not found'}), 401
        if not user.is_active():
            return jsonify({'message': 'Account is inactive'}), 403

        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*roles):
    """Decorator to restrict a route to the given roles (use under token_required)"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = g.get('current_user')
            if user is None or user.role not in roles:
                logger.info('Access denied for %s on %s', user.email if user else None, request.path)
                return jsonify({'message': 'Access denied'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
