"""
Project Routes

FLOW OVERVIEW
- /api/projects [GET, POST]
  • List by role: admin/finance all, project manager own, team member where assigned.
  • Create (admin/PM) from JSON or multipart with optional `image`.
- /api/projects/<id> [GET, PUT, DELETE]
  • Update/delete require admin or the owning PM; only admin reassigns manager.
  • Delete is refused while tasks other than completed/cancelled remain.
- /api/projects/<id>/tasks [GET]
"""

import json
import logging

from flask import Blueprint, g, jsonify, request

from ..models import (
    db, Expense, Invoice, Project, PurchaseOrder, SalesOrder, Task, User, VendorBill,
    PROJECT_STATUSES, PRIORITIES
)
from ..utils.api_utils import commit_or_rollback, not_found, request_payload, validation_response
from ..utils.auth_utils import roles_required, token_required
from ..utils.permissions import can_manage_project, can_view_project
from ..utils.uploads import IMAGE_EXTENSIONS, PROFILE_PICTURE_MAX_BYTES, UploadError, delete_upload, save_upload
from ..utils.validators import (
    FieldErrors, parse_date, parse_decimal, parse_int, validate_choice, validate_text
)

logger = logging.getLogger(__name__)

projects_bp = Blueprint('projects', __name__)

PROJECT_IMAGE_MAX_BYTES = PROFILE_PICTURE_MAX_BYTES


def _parse_tags(value):
    """Tags arrive as a JSON list, a JSON-encoded string, or comma separated text"""
    if value in (None, ''):
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            value = value.split(',')
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError('Tags must be a list')
    return [str(tag).strip() for tag in value if str(tag).strip()]


def visible_projects_query(user):
    """Projects the user may see"""
    query = Project.query
    if user.role == 'project_manager':
        query = query.filter(Project.manager_id == user.id)
    elif user.role == 'team_member':
        assigned = db.session.query(Task.project_id).filter(Task.assigned_to == user.id)
        query = query.filter(Project.id.in_(assigned))
    return query


def _validate_manager(manager_id, errors):
    manager = db.session.get(User, manager_id)
    if manager is None or manager.role not in ('admin', 'project_manager') or not manager.is_active():
        errors.add('manager_id', 'Manager must be an active admin or project manager')
        return None
    return manager


def _store_image(project):
    """Save an uploaded `image`; returns an error response or None"""
    image = request.files.get('image')
    if image is None or not image.filename:
        return None
    try:
        path, _, _ = save_upload(image, 'projects', IMAGE_EXTENSIONS, PROJECT_IMAGE_MAX_BYTES)
    except UploadError as e:
        return jsonify({'message': str(e)}), 400
    old = project.image_url
    project.image_url = path
    if old:
        delete_upload(old)
    return None


@projects_bp.route('', methods=['GET'])
@projects_bp.route('/', methods=['GET'])
@token_required
def list_projects():
    query = visible_projects_query(g.current_user)
    status = request.args.get('status')
    if status:
        query = query.filter(Project.status == status)
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(Project.name.ilike(f'%{search}%'))
    projects = query.order_by(Project.created_at.desc(), Project.id.desc()).all()
    return jsonify([p.to_dict() for p in projects])


@projects_bp.route('', methods=['POST'])
@projects_bp.route('/', methods=['POST'])
@token_required
@roles_required('admin', 'project_manager')
def create_project():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    name = errors.check('name', validate_text(data.get('name'), 'Project name'))
    description = errors.check('description', validate_text(
        data.get('description'), 'Description', required=False, max_length=5000))
    budget = errors.check('budget', parse_decimal(data.get('budget'), 'Budget', minimum=0))
    status = errors.check('status', validate_choice(data.get('status'), 'Status', PROJECT_STATUSES, default='planned'))
    priority = errors.check('priority', validate_choice(data.get('priority'), 'Priority', PRIORITIES, default='medium'))
    start_date = errors.check('start_date', parse_date(data.get('start_date'), 'Start date'))
    end_date = errors.check('end_date', parse_date(data.get('end_date'), 'End date'))
    deadline = errors.check('deadline', parse_date(data.get('deadline'), 'Deadline'))
    manager_id = errors.check('manager_id', parse_int(data.get('manager_id'), 'Manager'))
    try:
        tags = _parse_tags(data.get('tags'))
    except ValueError as e:
        errors.add('tags', str(e))
        tags = []

    if user.role != 'admin' or manager_id is None:
        manager_id = user.id
    elif not errors:
        _validate_manager(manager_id, errors)
    if errors:
        return validation_response(errors.errors)

    project = Project(
        name=name,
        description=description,
        budget=budget,
        status=status,
        priority=priority,
        start_date=start_date,
        end_date=end_date,
        deadline=deadline,
        manager_id=manager_id,
        tags=tags,
    )
    upload_error = _store_image(project)
    if upload_error:
        return upload_error

    db.session.add(project)
    failure = commit_or_rollback('creating project')
    if failure:
        return failure

    logger.info('Project %s created by %s', project.id, user.email)
    return jsonify({'message': 'Project created successfully', 'project': project.to_dict()}), 201


@projects_bp.route('/<int:project_id>', methods=['GET'])
@token_required
def get_project(project_id):
    project = db.session.get(Project, project_id)
    if not project:
        return not_found('Project')
    if not can_view_project(g.current_user, project):
        return jsonify({'message': 'Access denied'}), 403
    return jsonify(project.to_dict())


@projects_bp.route('/<int:project_id>/tasks', methods=['GET'])
@token_required
def get_project_tasks(project_id):
    project = db.session.get(Project, project_id)
    if not project:
        return not_found('Project')
    if not can_view_project(g.current_user, project):
        return jsonify({'message': 'Access denied'}), 403
    tasks = project.tasks.order_by(Task.created_at.desc(), Task.id.desc()).all()
    return jsonify([t.to_dict() for t in tasks])


@projects_bp.route('/<int:project_id>', methods=['PUT'])
@token_required
@roles_required('admin', 'project_manager')
def update_project(project_id):
    user = g.current_user
    project = db.session.get(Project, project_id)
    if not project:
        return not_found('Project')
    if not can_manage_project(user, project):
        return jsonify({'message': 'Access denied. You can only edit projects you manage.'}), 403

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if 'name' in data:
        updates['name'] = errors.check('name', validate_text(data['name'], 'Project name'))
    if 'description' in data:
        updates['description'] = errors.check('description', validate_text(
            data['description'], 'Description', required=False, max_length=5000))
    if 'budget' in data:
        updates['budget'] = errors.check('budget', parse_decimal(data['budget'], 'Budget', minimum=0))
    if data.get('status'):
        updates['status'] = errors.check('status', validate_choice(data['status'], 'Status', PROJECT_STATUSES))
    if data.get('priority'):
        updates['priority'] = errors.check('priority', validate_choice(data['priority'], 'Priority', PRIORITIES))
    for column in ('start_date', 'end_date', 'deadline'):
        if column in data:
            label = column.replace('_', ' ').capitalize()
            updates[column] = errors.check(column, parse_date(data[column], label))
    if 'tags' in data:
        try:
            updates['tags'] = _parse_tags(data['tags'])
        except ValueError as e:
            errors.add('tags', str(e))
    if data.get('manager_id') not in (None, ''):
        manager_id = errors.check('manager_id', parse_int(data['manager_id'], 'Manager'))
        if manager_id is not None and manager_id != project.manager_id:
            if user.role != 'admin':
                return jsonify({'message': 'Only admins can reassign the project manager'}), 403
            if _validate_manager(manager_id, errors):
                updates['manager_id'] = manager_id
    if errors:
        return validation_response(errors.errors)

    has_image = 'image' in request.files and request.files['image'].filename
    if not updates and not has_image:
        return jsonify({'message': 'No fields to update'}), 400

    for column, value in updates.items():
        setattr(project, column, value)
    upload_error = _store_image(project)
    if upload_error:
        return upload_error

    failure = commit_or_rollback('updating project')
    if failure:
        return failure
    return jsonify({'message': 'Project updated successfully', 'project': project.to_dict()})


@projects_bp.route('/<int:project_id>', methods=['DELETE'])
@token_required
@roles_required('admin', 'project_manager')
def delete_project(project_id):
    user = g.current_user
    project = db.session.get(Project, project_id)
    if not project:
        return not_found('Project')
    if not can_manage_project(user, project):
        return jsonify({'message': 'Access denied. You can only delete projects you manage.'}), 403

    if project.open_task_count() > 0:
        return jsonify({
            'message': 'Cannot delete project with active tasks. Please complete or cancel all tasks first.'
        }), 400

    for model in (SalesOrder, PurchaseOrder, VendorBill, Invoice, Expense):
        if model.query.filter_by(project_id=project.id).first():
            return jsonify({'message': 'Project has financial documents or expenses and cannot be deleted'}), 400

    image_url = project.image_url
    for task in project.tasks.all():
        db.session.delete(task)
    db.session.delete(project)
    failure = commit_or_rollback('deleting project')
    if failure:
        return failure

    if image_url:
        delete_upload(image_url)
    logger.info('Project %s deleted by %s', project_id, user.email)
    return jsonify({'message': 'Project deleted successfully'})
