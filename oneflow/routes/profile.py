"""
Profile Routes

FLOW OVERVIEW
- /api/profile [GET, PUT]
  • Read own profile / update names and optional `profilePicture` upload.
- /api/profile/change-password-request [POST]
  • Email a 6-digit code to the signed-in user.
- /api/profile/change-password [POST]
  • Code + new password → replace the hash, clear the code.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models import db
from ..utils.api_utils import commit_or_rollback, request_payload, validation_response
from ..utils.auth_utils import hash_password, issue_otp, token_required
from ..utils.mailer import send_otp_email
from ..utils.uploads import (
    IMAGE_EXTENSIONS, PROFILE_PICTURE_MAX_BYTES, UploadError, delete_upload, save_upload
)
from ..utils.validators import FieldErrors, validate_password, validate_text

logger = logging.getLogger(__name__)

profile_bp = Blueprint('profile', __name__)


@profile_bp.route('', methods=['GET'])
@profile_bp.route('/', methods=['GET'])
@token_required
def get_profile():
    return jsonify(g.current_user.to_dict())


@profile_bp.route('', methods=['PUT'])
@profile_bp.route('/', methods=['PUT'])
@token_required
def update_profile():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    first_name = errors.check('first_name', validate_text(
        data.get('first_name', data.get('firstName')), 'First name', max_length=100))
    last_name = errors.check('last_name', validate_text(
        data.get('last_name', data.get('lastName')), 'Last name', max_length=100))
    if errors:
        return validation_response(errors.errors)

    old_picture = None
    picture = request.files.get('profilePicture')
    if picture is not None and picture.filename:
        try:
            path, _, _ = save_upload(picture, 'profiles', IMAGE_EXTENSIONS, PROFILE_PICTURE_MAX_BYTES)
        except UploadError as e:
            return jsonify({'message': str(e)}), 400
        old_picture = user.profile_picture
        user.profile_picture = path

    user.first_name = first_name
    user.last_name = last_name
    failure = commit_or_rollback('updating profile')
    if failure:
        return failure

    if old_picture:
        delete_upload(old_picture)

    return jsonify({'message': 'Profile updated successfully', 'user': user.to_dict()})


@profile_bp.route('/change-password-request', methods=['POST'])
@token_required
def change_password_request():
    user = g.current_user
    otp = issue_otp(user)
    if not send_otp_email(user, otp, purpose='password_change'):
        db.session.rollback()
        return jsonify({'message': 'Failed to send OTP email'}), 500

    failure = commit_or_rollback('issuing password OTP')
    if failure:
        return failure
    return jsonify({'message': 'OTP sent to your email'})


@profile_bp.route('/change-password', methods=['POST'])
@token_required
def change_password():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    otp = str(data.get('otp') or '').strip()
    if len(otp) != 6:
        errors.add('otp', 'OTP must be 6 digits')
    new_password = errors.check('newPassword', validate_password(data.get('newPassword')))
    if errors:
        return validation_response(errors.errors)

    if not user.otp_matches(otp):
        return jsonify({'message': 'Invalid OTP'}), 400
    if user.otp_expired():
        return jsonify({'message': 'OTP has expired'}), 400

    user.password = hash_password(new_password)
    user.clear_otp()
    failure = commit_or_rollback('changing password')
    if failure:
        return failure

    logger.info('Password changed for %s', user.email)
    return jsonify({'message': 'Password changed successfully'})
