"""
Task Routes

FLOW OVERVIEW
- /api/tasks [GET, POST]
  • List by role (optional ?project_id); create (admin/owning PM) with a TASK-NNNNN number.
- /api/tasks/project/<project_id> [GET]
  • Board view with search/assignee/priority/status filters.
- /api/tasks/for-invoice [GET]
  • Completed tasks that can be billed on an invoice line.
- /api/tasks/<id> [GET, PUT]; /api/tasks/<id>/status [PATCH]
- /api/tasks/<id>/comments | time-logs | subtasks | attachments [POST]
- /api/tasks/subtasks/<id> [PATCH]
- Every change appends a TaskActivityLog row in the same transaction.
"""

import logging
from datetime import date

from flask import Blueprint, g, jsonify, request
from sqlalchemy import or_

from ..models import (
    db, Project, Task, Subtask, TaskComment, TaskAttachment, TimeLog, TaskActivityLog, User,
    TASK_STATUSES, PRIORITIES
)
from ..utils.api_utils import commit_or_rollback, not_found, request_payload, validation_response
from ..utils.auth_utils import roles_required, token_required
from ..utils.numbering import next_task_number
from ..utils.permissions import can_manage_project, can_view_project
from ..utils.uploads import ATTACHMENT_EXTENSIONS, ATTACHMENT_MAX_BYTES, UploadError, save_upload
from ..utils.validators import (
    FieldErrors, parse_bool, parse_date, parse_decimal, parse_int, validate_choice, validate_text
)
from .projects import visible_projects_query

logger = logging.getLogger(__name__)

tasks_bp = Blueprint('tasks', __name__)


def log_activity(task, user, action, details=None):
    db.session.add(TaskActivityLog(task=task, user_id=user.id, action=action, details=details))


def _can_view_task(user, task):
    return task.assigned_to == user.id or can_view_project(user, task.project)


def _can_work_on_task(user, task):
    return task.assigned_to == user.id or can_manage_project(user, task.project)


def _load_task(task_id, user, for_update=False):
    """Return (task, None) or (None, error response)"""
    task = db.session.get(Task, task_id)
    if not task:
        return None, not_found('Task')
    allowed = _can_work_on_task(user, task) if for_update else _can_view_task(user, task)
    if not allowed:
        return None, (jsonify({'message': 'Access denied'}), 403)
    return task, None


def _validate_assignee(value, errors):
    assignee_id = errors.check('assigned_to', parse_int(value, 'Assignee'))
    if assignee_id is None:
        return None
    assignee = db.session.get(User, assignee_id)
    if assignee is None or not assignee.is_active():
        errors.add('assigned_to', 'Assignee must be an active user')
        return None
    return assignee_id


@tasks_bp.route('', methods=['GET'])
@tasks_bp.route('/', methods=['GET'])
@token_required
def list_tasks():
    user = g.current_user
    query = Task.query.join(Project)
    if user.role == 'project_manager':
        query = query.filter(or_(Project.manager_id == user.id, Task.assigned_to == user.id))
    elif user.role == 'team_member':
        query = query.filter(Task.assigned_to == user.id)

    project_id = request.args.get('project_id', type=int)
    if project_id:
        query = query.filter(Task.project_id == project_id)

    tasks = query.order_by(Task.created_at.desc(), Task.id.desc()).all()
    return jsonify([t.to_dict() for t in tasks])


@tasks_bp.route('/project/<int:project_id>', methods=['GET'])
@token_required
def list_project_tasks(project_id):
    project = db.session.get(Project, project_id)
    if not project:
        return not_found('Project')
    if not can_view_project(g.current_user, project):
        return jsonify({'message': 'Access denied'}), 403

    query = Task.query.filter(Task.project_id == project_id)
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.filter(or_(Task.title.ilike(pattern), Task.task_id.ilike(pattern)))
    assignee = request.args.get('assignee', type=int)
    if assignee:
        query = query.filter(Task.assigned_to == assignee)
    for arg in ('priority', 'status'):
        value = request.args.get(arg)
        if value:
            query = query.filter(getattr(Task, arg) == value)

    tasks = query.order_by(Task.created_at.desc(), Task.id.desc()).all()
    result = []
    for task in tasks:
        data = task.to_dict()
        data['assignee_email'] = task.assignee.email if task.assignee else None
        data['total_hours'] = float(sum(log.hours for log in task.time_logs))
        result.append(data)
    return jsonify(result)


@tasks_bp.route('/for-invoice', methods=['GET'])
@token_required
@roles_required('admin', 'project_manager', 'finance_manager')
def tasks_for_invoice():
    visible = visible_projects_query(g.current_user).with_entities(Project.id)
    tasks = (Task.query
             .filter(Task.status == 'completed', Task.project_id.in_(visible))
             .order_by(Task.title)
             .all())
    return jsonify([t.to_dict() for t in tasks])


@tasks_bp.route('/<int:task_id>', methods=['GET'])
@token_required
def get_task(task_id):
    task, error = _load_task(task_id, g.current_user)
    if error:
        return error
    return jsonify(task.to_detail_dict())


@tasks_bp.route('', methods=['POST'])
@tasks_bp.route('/', methods=['POST'])
@token_required
@roles_required('admin', 'project_manager')
def create_task():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    title = errors.check('title', validate_text(data.get('title'), 'Title'))
    description = errors.check('description', validate_text(
        data.get('description'), 'Description', required=False, max_length=5000))
    project_id = errors.check('project_id', parse_int(data.get('project_id'), 'Project', required=True))
    priority = errors.check('priority', validate_choice(data.get('priority'), 'Priority', PRIORITIES))
    status = errors.check('status', validate_choice(data.get('status'), 'Status', TASK_STATUSES, default='pending'))
    start_date = errors.check('start_date', parse_date(data.get('start_date'), 'Start date'))
    deadline = errors.check('deadline', parse_date(data.get('deadline'), 'Deadline'))
    estimated_hours = errors.check('estimated_hours', parse_decimal(
        data.get('estimated_hours'), 'Estimated hours', minimum=0))
    hourly_rate = errors.check('hourly_rate', parse_decimal(
        data.get('hourly_rate'), 'Hourly rate', minimum=0))
    role = errors.check('role', validate_text(data.get('role'), 'Role', required=False, max_length=100))
    assigned_to = _validate_assignee(data.get('assigned_to'), errors)
    if errors:
        return validation_response(errors.errors)

    project = db.session.get(Project, project_id)
    if not project:
        return not_found('Project')
    if not can_manage_project(user, project):
        return jsonify({'message': 'Access denied. You can only add tasks to projects you manage.'}), 403

    task = Task(
        task_id=next_task_number(),
        title=title,
        description=description,
        project=project,
        assigned_to=assigned_to,
        priority=priority,
        status=status,
        start_date=start_date,
        deadline=deadline,
        estimated_hours=estimated_hours,
        role=role,
    )
    if hourly_rate is not None:
        task.hourly_rate = hourly_rate
    db.session.add(task)
    log_activity(task, user, 'Task Created', f'Task "{title}" created')
    failure = commit_or_rollback('creating task')
    if failure:
        return failure

    return jsonify({'message': 'Task created successfully', 'task': task.to_dict()}), 201


@tasks_bp.route('/<int:task_id>', methods=['PUT'])
@token_required
@roles_required('admin', 'project_manager')
def update_task(task_id):
    user = g.current_user
    task = db.session.get(Task, task_id)
    if not task:
        return not_found('Task')
    if not can_manage_project(user, task.project):
        return jsonify({'message': 'Access denied'}), 403

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if 'title' in data:
        updates['title'] = errors.check('title', validate_text(data['title'], 'Title'))
    if 'description' in data:
        updates['description'] = errors.check('description', validate_text(
            data['description'], 'Description', required=False, max_length=5000))
    if data.get('priority'):
        updates['priority'] = errors.check('priority', validate_choice(data['priority'], 'Priority', PRIORITIES))
    if data.get('status'):
        updates['status'] = errors.check('status', validate_choice(data['status'], 'Status', TASK_STATUSES))
    for column in ('start_date', 'deadline'):
        if column in data:
            updates[column] = errors.check(column, parse_date(data[column], column.replace('_', ' ').capitalize()))
    if 'estimated_hours' in data:
        updates['estimated_hours'] = errors.check('estimated_hours', parse_decimal(
            data['estimated_hours'], 'Estimated hours', minimum=0))
    if data.get('hourly_rate') not in (None, ''):
        updates['hourly_rate'] = errors.check('hourly_rate', parse_decimal(
            data['hourly_rate'], 'Hourly rate', minimum=0))
    if 'role' in data:
        updates['role'] = errors.check('role', validate_text(data['role'], 'Role', required=False, max_length=100))
    if 'assigned_to' in data:
        updates['assigned_to'] = _validate_assignee(data['assigned_to'], errors)
    if errors:
        return validation_response(errors.errors)

    if not updates:
        return jsonify({'message': 'No fields to update'}), 400

    changed = [column for column, value in updates.items() if getattr(task, column) != value]
    for column, value in updates.items():
        setattr(task, column, value)
    log_activity(task, user, 'Task Updated', f'Updated: {", ".join(changed) or "no changes"}')
    failure = commit_or_rollback('updating task')
    if failure:
        return failure

    return jsonify({'message': 'Task updated successfully', 'task': task.to_dict()})


@tasks_bp.route('/<int:task_id>/status', methods=['PATCH'])
@token_required
def update_task_status(task_id):
    user = g.current_user
    task, error = _load_task(task_id, user, for_update=True)
    if error:
        return error

    data = request_payload()
    result = validate_choice(data.get('status'), 'Status', TASK_STATUSES)
    if not result.is_valid:
        return validation_response([{'field': 'status', 'message': result.error_message}])

    previous = task.status
    task.status = result.sanitized_value
    log_activity(task, user, 'Status Changed', f'Status changed from {previous} to {task.status}')
    failure = commit_or_rollback('changing task status')
    if failure:
        return failure

    return jsonify({'message': 'Task status updated successfully', 'task': task.to_dict()})


@tasks_bp.route('/<int:task_id>/comments', methods=['POST'])
@token_required
def add_comment(task_id):
    user = g.current_user
    task, error = _load_task(task_id, user)
    if error:
        return error

    data = request_payload()
    result = validate_text(data.get('comment'), 'Comment', max_length=5000)
    if not result.is_valid:
        return validation_response([{'field': 'comment', 'message': result.error_message}])

    comment = TaskComment(task=task, user_id=user.id, comment=result.sanitized_value)
    db.session.add(comment)
    log_activity(task, user, 'Comment Added', result.sanitized_value[:100])
    failure = commit_or_rollback('adding comment')
    if failure:
        return failure

    return jsonify({'message': 'Comment added successfully', 'comment': comment.to_dict()}), 201


@tasks_bp.route('/<int:task_id>/time-logs', methods=['POST'])
@token_required
def add_time_log(task_id):
    user = g.current_user
    task, error = _load_task(task_id, user, for_update=True)
    if error:
        return error

    data = request_payload()
    errors = FieldErrors()
    hours = errors.check('hours', parse_decimal(data.get('hours'), 'Hours', required=True,
                                                minimum=0, exclusive_minimum=True))
    log_date = errors.check('date', parse_date(data.get('date'), 'Date'))
    note = errors.check('note', validate_text(data.get('note'), 'Note', required=False, max_length=2000))
    if errors:
        return validation_response(errors.errors)

    time_log = TimeLog(task=task, user_id=user.id, hours=hours, date=log_date or date.today(), note=note)
    db.session.add(time_log)
    db.session.flush()
    task.recompute_hours()
    log_activity(task, user, 'Time Logged', f'{hours} hours logged')
    failure = commit_or_rollback('logging time')
    if failure:
        return failure

    return jsonify({
        'message': 'Time log added successfully',
        'timeLog': time_log.to_dict(),
        'hours_logged': float(task.hours_logged),
    }), 201


@tasks_bp.route('/<int:task_id>/subtasks', methods=['POST'])
@token_required
def add_subtask(task_id):
    user = g.current_user
    task, error = _load_task(task_id, user, for_update=True)
    if error:
        return error

    data = request_payload()
    result = validate_text(data.get('title'), 'Title')
    if not result.is_valid:
        return validation_response([{'field': 'title', 'message': result.error_message}])

    subtask = Subtask(task=task, title=result.sanitized_value)
    db.session.add(subtask)
    log_activity(task, user, 'Subtask Added', result.sanitized_value)
    failure = commit_or_rollback('adding subtask')
    if failure:
        return failure

    return jsonify({'message': 'Subtask added successfully', 'subtask': subtask.to_dict()}), 201


@tasks_bp.route('/subtasks/<int:subtask_id>', methods=['PATCH'])
@token_required
def toggle_subtask(subtask_id):
    user = g.current_user
    subtask = db.session.get(Subtask, subtask_id)
    if not subtask:
        return not_found('Subtask')
    if not _can_work_on_task(user, subtask.task):
        return jsonify({'message': 'Access denied'}), 403

    data = request_payload()
    if 'is_completed' in data:
        subtask.is_completed = parse_bool(data['is_completed'])
    else:
        subtask.is_completed = not subtask.is_completed
    state = 'completed' if subtask.is_completed else 'reopened'
    log_activity(subtask.task, user, 'Subtask Updated', f'"{subtask.title}" {state}')
    failure = commit_or_rollback('updating subtask')
    if failure:
        return failure

    return jsonify({'message': 'Subtask updated successfully', 'subtask': subtask.to_dict()})


@tasks_bp.route('/<int:task_id>/attachments', methods=['POST'])
@token_required
def add_attachment(task_id):
    user = g.current_user
    task, error = _load_task(task_id, user, for_update=True)
    if error:
        return error

    upload = request.files.get('file')
    try:
        path, size, original_name = save_upload(upload, 'attachments', ATTACHMENT_EXTENSIONS,
                                                ATTACHMENT_MAX_BYTES)
    except UploadError as e:
        return jsonify({'message': str(e)}), 400

    attachment = TaskAttachment(
        task=task,
        user_id=user.id,
        filename=original_name,
        file_path=path,
        file_size=size,
        mime_type=upload.mimetype,
    )
    db.session.add(attachment)
    log_activity(task, user, 'Attachment Added', original_name)
    failure = commit_or_rollback('adding attachment')
    if failure:
        return failure

    return jsonify({'message': 'Attachment uploaded successfully', 'attachment': attachment.to_dict()}), 201
