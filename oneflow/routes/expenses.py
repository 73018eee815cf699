"""
Expense Routes

FLOW OVERVIEW
- /api/expenses [GET, POST]
  • List: admin/finance see everything, project managers their own claims plus
    claims on projects they manage, everyone else their own claims.
    Filters: project_id, status, billable, submitted_by, start_date, end_date.
  • Create (multipart or JSON, optional `receipt`): the submitter must be on the
    project. The company-currency amount and receipt requirement are derived.
- /api/expenses/customers/list [GET]
- /api/expenses/<id> [GET, PUT]; /api/expenses/<id>/history [GET]
  • PUT only while draft, by the submitter or a manager.
- /api/expenses/<id>/submit | approve | reject | reimburse [POST]
  • draft → submitted → approved | rejected; approved → reimbursed.
  • Approval adds the company-currency amount to the project cost.
- Every change appends an ExpenseHistory row with before/after snapshots.
"""

import logging
from datetime import datetime
from decimal import Decimal

from flask import Blueprint, g, jsonify, request
from sqlalchemy import or_

from ..models import db, Customer, Expense, ExpenseHistory, Project, Task, CompanySetting, EXPENSE_CATEGORIES
from ..utils.api_utils import commit_or_rollback, not_found, request_payload, validation_response
from ..utils.auth_utils import token_required
from ..utils.numbering import next_document_number
from ..utils.permissions import can_manage_project, has_expense_permission, is_project_member
from ..utils.prom_metrics import observe_transition
from ..utils.uploads import RECEIPT_EXTENSIONS, RECEIPT_MAX_BYTES, UploadError, delete_upload, save_upload
from ..utils.validators import (
    FieldErrors, parse_bool, parse_date, parse_decimal, parse_int, validate_choice, validate_text
)

logger = logging.getLogger(__name__)

expenses_bp = Blueprint('expenses', __name__)


def log_history(expense, user, action, old_status, new_status, reason=None, before=None, after=None):
    db.session.add(ExpenseHistory(
        expense=expense,
        action=action,
        old_status=old_status,
        new_status=new_status,
        changed_by=user.id,
        change_reason=reason,
        before_snapshot=before,
        after_snapshot=after,
    ))


def _load_expense(expense_id, user):
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return None, not_found('Expense')
    if not has_expense_permission(user, 'view', expense):
        return None, (jsonify({'message': 'Access denied'}), 403)
    return expense, None


def _can_decide(user, expense):
    """Approve/reject: admins, or the manager of the expense's project"""
    return has_expense_permission(user, 'approve') and can_manage_project(user, expense.project)


def _store_receipt(expense):
    """Save an uploaded `receipt`; returns an error response or None"""
    receipt = request.files.get('receipt')
    if receipt is None or not receipt.filename:
        return None
    try:
        path, _, _ = save_upload(receipt, 'receipts', RECEIPT_EXTENSIONS, RECEIPT_MAX_BYTES)
    except UploadError as e:
        return jsonify({'message': str(e)}), 400
    old = expense.receipt_url
    expense.receipt_url = path
    if old:
        delete_upload(old)
    return None


def _parse_expense_fields(data, errors, partial):
    values = {}
    if not partial or 'expense_date' in data:
        values['expense_date'] = errors.check('expense_date', parse_date(
            data.get('expense_date'), 'Expense date', required=True))
    if not partial or 'category' in data:
        values['category'] = errors.check('category', validate_choice(
            data.get('category'), 'Category', EXPENSE_CATEGORIES))
    if not partial or 'description' in data:
        values['description'] = errors.check('description', validate_text(
            data.get('description'), 'Description', max_length=5000))
    if not partial or 'amount' in data:
        values['amount'] = errors.check('amount', parse_decimal(
            data.get('amount'), 'Amount', required=True, minimum=Decimal('0'), exclusive_minimum=True))
    if not partial or data.get('currency'):
        currency = errors.check('currency', validate_text(
            data.get('currency') or CompanySetting.get_value('default_currency', 'USD'),
            'Currency', max_length=3))
        values['currency'] = currency.upper() if currency else currency
    if not partial or data.get('exchange_rate') not in (None, ''):
        rate = errors.check('exchange_rate', parse_decimal(
            data.get('exchange_rate'), 'Exchange rate', minimum=Decimal('0'), exclusive_minimum=True))
        values['exchange_rate'] = rate if rate is not None else Decimal('1')
    if not partial or 'billable' in data:
        values['billable'] = parse_bool(data.get('billable'))
    if not partial or 'billable_to_customer_id' in data:
        values['billable_to_customer_id'] = errors.check('billable_to_customer_id', parse_int(
            data.get('billable_to_customer_id'), 'Customer'))
    if not partial or 'task_id' in data:
        values['task_id'] = errors.check('task_id', parse_int(data.get('task_id'), 'Task'))
    return values


def _check_references(state, errors):
    """Customer/task rules that depend on the merged expense state"""
    if state['billable'] and not state['billable_to_customer_id']:
        errors.add('billable_to_customer_id', 'Customer is required for billable expenses')
    elif state['billable_to_customer_id'] and db.session.get(Customer, state['billable_to_customer_id']) is None:
        errors.add('billable_to_customer_id', 'Customer not found')
    if state['task_id']:
        task = db.session.get(Task, state['task_id'])
        if task is None or task.project_id != state['project_id']:
            errors.add('task_id', 'Task does not belong to this project')


@expenses_bp.route('', methods=['GET'])
@expenses_bp.route('/', methods=['GET'])
@token_required
def list_expenses():
    user = g.current_user
    query = Expense.query.join(Project, Expense.project_id == Project.id)
    if not has_expense_permission(user, 'view_all'):
        if has_expense_permission(user, 'view_project'):
            query = query.filter(or_(Expense.submitted_by == user.id, Project.manager_id == user.id))
        else:
            query = query.filter(Expense.submitted_by == user.id)

    args = request.args
    if args.get('project_id', type=int):
        query = query.filter(Expense.project_id == args.get('project_id', type=int))
    if args.get('status'):
        query = query.filter(Expense.status == args['status'])
    if args.get('billable') is not None:
        query = query.filter(Expense.billable.is_(parse_bool(args['billable'])))
    if args.get('submitted_by', type=int):
        query = query.filter(Expense.submitted_by == args.get('submitted_by', type=int))
    start_date = parse_date(args.get('start_date'), 'Start date')
    end_date = parse_date(args.get('end_date'), 'End date')
    if not start_date.is_valid or not end_date.is_valid:
        return jsonify({'message': start_date.error_message or end_date.error_message}), 400
    if start_date.sanitized_value:
        query = query.filter(Expense.expense_date >= start_date.sanitized_value)
    if end_date.sanitized_value:
        query = query.filter(Expense.expense_date <= end_date.sanitized_value)

    expenses = query.order_by(Expense.created_at.desc(), Expense.id.desc()).all()
    return jsonify([e.to_dict() for e in expenses])


@expenses_bp.route('/customers/list', methods=['GET'])
@token_required
def list_customers():
    customers = Customer.query.order_by(Customer.name).all()
    return jsonify([{'id': c.id, 'name': c.name, 'email': c.email} for c in customers])


@expenses_bp.route('/<int:expense_id>', methods=['GET'])
@token_required
def get_expense(expense_id):
    expense, error = _load_expense(expense_id, g.current_user)
    if error:
        return error
    return jsonify(expense.to_dict())


@expenses_bp.route('/<int:expense_id>/history', methods=['GET'])
@token_required
def get_expense_history(expense_id):
    expense, error = _load_expense(expense_id, g.current_user)
    if error:
        return error
    return jsonify([h.to_dict() for h in reversed(expense.history)])


@expenses_bp.route('', methods=['POST'])
@expenses_bp.route('/', methods=['POST'])
@token_required
def create_expense():
    user = g.current_user
    if not has_expense_permission(user, 'create'):
        return jsonify({'message': 'Access denied'}), 403

    data = request_payload()
    errors = FieldErrors()
    project_id = errors.check('project_id', parse_int(data.get('project_id'), 'Project', required=True))
    values = _parse_expense_fields(data, errors, partial=False)
    if errors:
        return validation_response(errors.errors)

    project = db.session.get(Project, project_id)
    if project is None:
        return not_found('Project')
    if not is_project_member(user, project):
        return jsonify({'message': 'Access denied to this project'}), 403

    values['project_id'] = project.id
    _check_references(values, errors)
    if errors:
        return validation_response(errors.errors)

    expense = Expense(
        expense_number=next_document_number(Expense),
        submitted_by=user.id,
        created_by=user.id,
        updated_by=user.id,
        status='draft',
        **values
    )
    expense.refresh_derived(CompanySetting.receipt_threshold())
    upload_error = _store_receipt(expense)
    if upload_error:
        return upload_error

    db.session.add(expense)
    db.session.flush()
    log_history(expense, user, 'CREATE', None, 'draft', after=expense.snapshot())
    failure = commit_or_rollback('creating expense')
    if failure:
        return failure

    logger.info('Expense %s created by %s', expense.expense_number, user.email)
    return jsonify(expense.to_dict()), 201


@expenses_bp.route('/<int:expense_id>', methods=['PUT'])
@token_required
def update_expense(expense_id):
    user = g.current_user
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return not_found('Expense')
    if not has_expense_permission(user, 'edit_draft', expense):
        return jsonify({'message': 'Cannot edit this expense'}), 403

    data = request_payload()
    errors = FieldErrors()
    values = _parse_expense_fields(data, errors, partial=True)
    if errors:
        return validation_response(errors.errors)

    state = {
        'project_id': expense.project_id,
        'billable': expense.billable,
        'billable_to_customer_id': expense.billable_to_customer_id,
        'task_id': expense.task_id,
    }
    state.update({k: v for k, v in values.items() if k in state})
    _check_references(state, errors)
    if errors:
        return validation_response(errors.errors)

    before = expense.snapshot()
    for column, value in values.items():
        setattr(expense, column, value)
    expense.refresh_derived(CompanySetting.receipt_threshold())
    upload_error = _store_receipt(expense)
    if upload_error:
        db.session.rollback()
        return upload_error
    expense.updated_by = user.id
    log_history(expense, user, 'UPDATE', expense.status, expense.status, before=before, after=expense.snapshot())
    failure = commit_or_rollback('updating expense')
    if failure:
        return failure
    return jsonify(expense.to_dict())


def _finish_transition(expense, user, action, from_status, before, reason=None):
    log_history(expense, user, action, from_status, expense.status, reason=reason,
                before=before, after=expense.snapshot())
    failure = commit_or_rollback(f'{action.lower()} expense')
    if failure:
        return failure
    observe_transition('expense', expense.status)
    logger.info('Expense %s %s by %s', expense.expense_number, expense.status, user.email)
    return jsonify(expense.to_dict())


@expenses_bp.route('/<int:expense_id>/submit', methods=['POST'])
@token_required
def submit_expense(expense_id):
    user = g.current_user
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return not_found('Expense')
    if expense.submitted_by != user.id and user.role not in ('project_manager', 'admin'):
        return jsonify({'message': 'Access denied'}), 403
    if expense.status != 'draft':
        return jsonify({'message': 'Only draft expenses can be submitted'}), 400
    if expense.receipt_required and not expense.receipt_url:
        return jsonify({'message': 'Receipt is required for this expense amount'}), 400

    before = expense.snapshot()
    expense.status = 'submitted'
    expense.submitted_at = datetime.utcnow()
    expense.updated_by = user.id
    return _finish_transition(expense, user, 'SUBMIT', 'draft', before)


@expenses_bp.route('/<int:expense_id>/approve', methods=['POST'])
@token_required
def approve_expense(expense_id):
    user = g.current_user
    if not has_expense_permission(user, 'approve'):
        return jsonify({'message': 'Access denied'}), 403
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return not_found('Expense')
    if not _can_decide(user, expense):
        return jsonify({'message': 'Access denied'}), 403
    if expense.status != 'submitted':
        return jsonify({'message': 'Only submitted expenses can be approved'}), 400

    before = expense.snapshot()
    expense.status = 'approved'
    expense.approver_id = user.id
    expense.approved_at = datetime.utcnow()
    expense.updated_by = user.id
    expense.project.add_cost(expense.amount_company_currency)
    return _finish_transition(expense, user, 'APPROVE', 'submitted', before)


@expenses_bp.route('/<int:expense_id>/reject', methods=['POST'])
@token_required
def reject_expense(expense_id):
    user = g.current_user
    if not has_expense_permission(user, 'approve'):
        return jsonify({'message': 'Access denied'}), 403
    reason = validate_text(request_payload().get('reason'), 'Rejection reason', max_length=5000)
    if not reason.is_valid:
        return jsonify({'message': 'Rejection reason is required'}), 400
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return not_found('Expense')
    if not _can_decide(user, expense):
        return jsonify({'message': 'Access denied'}), 403
    if expense.status != 'submitted':
        return jsonify({'message': 'Only submitted expenses can be rejected'}), 400

    before = expense.snapshot()
    expense.status = 'rejected'
    expense.approver_id = user.id
    expense.rejection_reason = reason.sanitized_value
    expense.updated_by = user.id
    return _finish_transition(expense, user, 'REJECT', 'submitted', before, reason=reason.sanitized_value)


@expenses_bp.route('/<int:expense_id>/reimburse', methods=['POST'])
@token_required
def reimburse_expense(expense_id):
    user = g.current_user
    if not has_expense_permission(user, 'reimburse'):
        return jsonify({'message': 'Access denied'}), 403
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return not_found('Expense')
    if expense.status != 'approved':
        return jsonify({'message': 'Only approved expenses can be reimbursed'}), 400

    before = expense.snapshot()
    expense.status = 'reimbursed'
    expense.reimbursed_by = user.id
    expense.reimbursed_at = datetime.utcnow()
    expense.updated_by = user.id
    return _finish_transition(expense, user, 'REIMBURSE', 'approved', before)
