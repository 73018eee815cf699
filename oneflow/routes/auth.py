"""
Authentication Routes

FLOW OVERVIEW
- /api/auth/signup [POST]
  • Validate → create unverified user with a 6-digit OTP → email it.
- /api/auth/verify-otp [POST]
  • Match code and expiry → mark verified, clear the code.
- /api/auth/resend-otp [POST]
  • Fresh code for a user that has not verified yet.
- /api/auth/login [POST]
  • Check password, verification and status → return JWT and user summary.
- /api/auth/me [GET]
  • Current user from the Bearer token.
"""

import logging

from flask import Blueprint, g, jsonify

from ..models import db, User, ROLES
from ..utils.api_utils import commit_or_rollback, request_payload, validation_response
from ..utils.auth_utils import (
    generate_jwt_token, hash_password, issue_otp, token_required, verify_password
)
from ..utils.mailer import send_otp_email
from ..utils.validators import FieldErrors, validate_choice, validate_email, validate_password, validate_text

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/signup', methods=['POST'])
def signup():
    """User registration endpoint"""
    data = request_payload()
    errors = FieldErrors()
    email = errors.check('email', validate_email(data.get('email')))
    password = errors.check('password', validate_password(data.get('password')))
    first_name = errors.check('firstName', validate_text(data.get('firstName'), 'First name', max_length=100))
    last_name = errors.check('lastName', validate_text(data.get('lastName'), 'Last name', max_length=100))
    role = errors.check('role', validate_choice(data.get('role'), 'Role', ROLES, default='team_member'))
    if errors:
        return validation_response(errors.errors)

    if User.query.filter_by(email=email).first():
        return jsonify({'message': 'User already exists'}), 400

    user = User(
        email=email,
        password=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_verified=False,
        status='active',
    )
    otp = issue_otp(user)
    db.session.add(user)
    db.session.flush()

    if not send_otp_email(user, otp, purpose='signup'):
        db.session.rollback()
        return jsonify({'message': 'Failed to send verification email'}), 500

    failure = commit_or_rollback('creating user')
    if failure:
        return failure

    logger.info('User %s signed up as %s', user.email, user.role)
    return jsonify({'message': 'User created. Please verify your email with the OTP sent.'}), 201


@auth_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    """Confirm the signup code"""
    data = request_payload()
    email = (data.get('email') or '').strip().lower()
    otp = str(data.get('otp') or '').strip()

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({'message': 'User not found'}), 400

    if not user.otp_matches(otp) or user.otp_expired():
        return jsonify({'message': 'Invalid or expired OTP'}), 400

    user.is_verified = True
    user.clear_otp()
    failure = commit_or_rollback('verifying user')
    if failure:
        return failure

    return jsonify({'message': 'Email verified successfully'})


@auth_bp.route('/resend-otp', methods=['POST'])
def resend_otp():
    data = request_payload()
    email = (data.get('email') or '').strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({'message': 'User not found'}), 400
    if user.is_verified:
        return jsonify({'message': 'Email already verified'}), 400

    otp = issue_otp(user)
    if not send_otp_email(user, otp, purpose='signup'):
        db.session.rollback()
        return jsonify({'message': 'Failed to send verification email'}), 500

    failure = commit_or_rollback('reissuing OTP')
    if failure:
        return failure
    return jsonify({'message': 'OTP sent to your email'})


@auth_bp.route('/login', methods=['POST'])
def login():
    """User login endpoint"""
    data = request_payload()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({'message': 'Invalid credentials'}), 400

    if not user.is_verified:
        return jsonify({'message': 'Please verify your email first'}), 400

    if not verify_password(password, user.password):
        logger.info('Failed login for %s', email)
        return jsonify({'message': 'Invalid credentials'}), 400

    if not user.is_active():
        return jsonify({'message': 'Account is inactive'}), 403

    token = generate_jwt_token(user)
    return jsonify({'token': token, 'user': user.to_summary()})


@auth_bp.route('/me', methods=['GET'])
@token_required
def me():
    return jsonify({'user': g.current_user.to_dict()})
