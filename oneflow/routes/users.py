"""
User Management Routes

FLOW OVERVIEW
- /api/users/managers, /api/users/team-members [GET]
  • Active users for manager/assignee dropdowns (any signed-in user).
- /api/users [GET, POST]  (admin)
  • Search by name/email; create pre-verified active users.
- /api/users/<id> [GET, PUT, DELETE]  (admin)
  • Read / partial update / soft delete (status → inactive, never self).
"""

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy import or_

from ..models import db, User, ROLES
from ..models.user import USER_STATUSES
from ..utils.api_utils import commit_or_rollback, not_found, request_payload, validation_response
from ..utils.auth_utils import hash_password, roles_required, token_required
from ..utils.validators import (
    FieldErrors, validate_choice, validate_email, validate_password, validate_text
)

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__)


def _dropdown_entry(user):
    return {
        'id': user.id,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'email': user.email,
    }


@users_bp.route('/managers', methods=['GET'])
@token_required
def list_managers():
    managers = (User.query
                .filter(User.role.in_(('admin', 'project_manager')), User.status == 'active')
                .order_by(User.first_name)
                .all())
    return jsonify([_dropdown_entry(u) for u in managers])


@users_bp.route('/team-members', methods=['GET'])
@token_required
def list_team_members():
    members = (User.query
               .filter(User.role == 'team_member', User.status == 'active')
               .order_by(User.first_name)
               .all())
    return jsonify([_dropdown_entry(u) for u in members])


@users_bp.route('', methods=['GET'])
@users_bp.route('/', methods=['GET'])
@token_required
@roles_required('admin')
def list_users():
    query = User.query
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.email.ilike(pattern),
        ))
    users = query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify([u.to_dict() for u in users])


@users_bp.route('', methods=['POST'])
@users_bp.route('/', methods=['POST'])
@token_required
@roles_required('admin')
def create_user():
    data = request_payload()
    errors = FieldErrors()
    email = errors.check('email', validate_email(data.get('email')))
    password = errors.check('password', validate_password(data.get('password')))
    first_name = errors.check('firstName', validate_text(data.get('firstName'), 'First name', max_length=100))
    last_name = errors.check('lastName', validate_text(data.get('lastName'), 'Last name', max_length=100))
    role = errors.check('role', validate_choice(data.get('role'), 'Role', ROLES))
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
        is_verified=True,
        status='active',
    )
    db.session.add(user)
    failure = commit_or_rollback('creating user')
    if failure:
        return failure

    logger.info('Admin %s created user %s (%s)', g.current_user.email, user.email, user.role)
    return jsonify({'message': 'User created successfully', 'user': user.to_dict()}), 201


@users_bp.route('/<int:user_id>', methods=['GET'])
@token_required
@roles_required('admin')
def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return not_found('User')
    return jsonify(user.to_dict())


@users_bp.route('/<int:user_id>', methods=['PUT'])
@token_required
@roles_required('admin')
def update_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return not_found('User')

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if data.get('email'):
        updates['email'] = errors.check('email', validate_email(data['email']))
    if data.get('firstName'):
        updates['first_name'] = errors.check('firstName', validate_text(data['firstName'], 'First name', max_length=100))
    if data.get('lastName'):
        updates['last_name'] = errors.check('lastName', validate_text(data['lastName'], 'Last name', max_length=100))
    if data.get('role'):
        updates['role'] = errors.check('role', validate_choice(data['role'], 'Role', ROLES))
    if data.get('status'):
        updates['status'] = errors.check('status', validate_choice(data['status'], 'Status', USER_STATUSES))
    if errors:
        return validation_response(errors.errors)

    if not updates:
        return jsonify({'message': 'No fields to update'}), 400

    if user.id == g.current_user.id and (
            updates.get('role', user.role) != user.role or updates.get('status', user.status) != user.status):
        return jsonify({'message': 'Cannot change your own role or status'}), 400

    if 'email' in updates:
        taken = User.query.filter(User.email == updates['email'], User.id != user.id).first()
        if taken:
            return jsonify({'message': 'Email already exists'}), 400

    for column, value in updates.items():
        setattr(user, column, value)
    failure = commit_or_rollback('updating user')
    if failure:
        return failure

    return jsonify({'message': 'User updated successfully', 'user': user.to_dict()})


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@token_required
@roles_required('admin')
def delete_user(user_id):
    if user_id == g.current_user.id:
        return jsonify({'message': 'Cannot delete your own account'}), 400

    user = db.session.get(User, user_id)
    if not user:
        return not_found('User')

    user.status = 'inactive'
    failure = commit_or_rollback('deactivating user')
    if failure:
        return failure

    logger.info('Admin %s deactivated user %s', g.current_user.email, user.email)
    return jsonify({'message': 'User deleted successfully'})
