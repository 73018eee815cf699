"""
Customer Invoice Routes

FLOW OVERVIEW
- /api/invoices [GET, POST]
  • Create: customer, project and lines. A line bills a sales product or a task;
    task lines default to the task's logged hours at its hourly rate.
- /api/invoices/<id> [GET, PUT]
  • PUT only while draft.
- /api/invoices/post/<id> [POST]       draft → posted
- /api/invoices/mark-paid/<id> [POST]  posted → paid; grand total is added to
  the project's revenue and profit is recomputed.
- /api/invoices/from-sales-order/<so_id> [POST]
  • Draft invoice copied from a confirmed sales order.
"""

import logging
from datetime import date, timedelta

from flask import Blueprint, g, jsonify, request

from ..models import db, Customer, Invoice, InvoiceLine, SalesOrder
from ..utils.api_utils import commit_or_rollback, request_payload, validation_response
from ..utils.audit import record_audit
from ..utils.auth_utils import roles_required, token_required
from ..utils.documents import (
    apply_lines, can_access_project_documents, copy_lines, load_document,
    resolve_counterparty, resolve_project, scoped_documents, transition
)
from ..utils.line_items import LineItemError
from ..utils.numbering import next_document_number
from ..utils.permissions import FINANCE_ROLES
from ..utils.validators import FieldErrors, parse_date, validate_text

logger = logging.getLogger(__name__)

invoices_bp = Blueprint('invoices', __name__)

PAYMENT_TERMS = timedelta(days=30)


def _apply_invoice_lines(invoice, raw_lines, project_id):
    apply_lines(invoice, InvoiceLine, raw_lines, product_flag='type_sales', allow_tasks=True,
                project_id=project_id)


@invoices_bp.route('', methods=['GET'])
@invoices_bp.route('/', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def list_invoices():
    query = scoped_documents(Invoice, g.current_user)
    project_id = request.args.get('project_id', type=int)
    if project_id:
        query = query.filter(Invoice.project_id == project_id)
    status = request.args.get('status')
    if status:
        query = query.filter(Invoice.status == status)
    invoices = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
    return jsonify([i.to_dict() for i in invoices])


@invoices_bp.route('/<int:invoice_id>', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def get_invoice(invoice_id):
    invoice, error = load_document(Invoice, invoice_id, g.current_user, 'Invoice')
    if error:
        return error
    return jsonify(invoice.to_dict(include_lines=True))


@invoices_bp.route('', methods=['POST'])
@invoices_bp.route('/', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def create_invoice():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    customer = resolve_counterparty(Customer, data.get('customer_id'), 'customer_id', 'Customer', errors)
    project = resolve_project(data.get('project_id'), user, errors)
    invoice_date = errors.check('invoice_date', parse_date(data.get('invoice_date'), 'Invoice date'))
    due_date = errors.check('due_date', parse_date(data.get('due_date'), 'Due date'))
    notes = errors.check('notes', validate_text(data.get('notes'), 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    invoice_date = invoice_date or date.today()
    invoice = Invoice(
        invoice_number=next_document_number(Invoice),
        customer_id=customer.id,
        project_id=project.id,
        invoice_date=invoice_date,
        due_date=due_date or invoice_date + PAYMENT_TERMS,
        notes=notes,
        created_by=user.id,
        updated_by=user.id,
    )
    try:
        _apply_invoice_lines(invoice, data.get('lines'), project.id)
    except LineItemError as e:
        return validation_response(e.errors)

    db.session.add(invoice)
    db.session.flush()
    record_audit('CREATED', 'INVOICE', invoice.id, user.id, after=invoice.to_dict())
    failure = commit_or_rollback('creating invoice')
    if failure:
        return failure

    logger.info('Invoice %s created by %s', invoice.invoice_number, user.email)
    return jsonify(invoice.to_dict(include_lines=True)), 201


@invoices_bp.route('/<int:invoice_id>', methods=['PUT'])
@token_required
@roles_required(*FINANCE_ROLES)
def update_invoice(invoice_id):
    user = g.current_user
    invoice, error = load_document(Invoice, invoice_id, user, 'Invoice')
    if error:
        return error
    if invoice.status != 'draft':
        return jsonify({'message': 'Cannot update posted invoice'}), 400

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if data.get('customer_id') not in (None, ''):
        customer = resolve_counterparty(Customer, data['customer_id'], 'customer_id', 'Customer', errors)
        updates['customer_id'] = customer.id if customer else None
    if data.get('project_id') not in (None, ''):
        project = resolve_project(data['project_id'], user, errors)
        updates['project_id'] = project.id if project else None
    for column, label in (('invoice_date', 'Invoice date'), ('due_date', 'Due date')):
        if data.get(column):
            updates[column] = errors.check(column, parse_date(data[column], label))
    if 'notes' in data:
        updates['notes'] = errors.check('notes', validate_text(
            data['notes'], 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    project_id = updates.get('project_id', invoice.project_id)
    if 'lines' not in data and any(
            line.task is not None and line.task.project_id != project_id for line in invoice.lines):
        return validation_response([{
            'field': 'project_id', 'message': 'Existing task lines belong to another project; resend the lines',
        }])

    before = invoice.to_dict()
    if 'lines' in data:
        try:
            _apply_invoice_lines(invoice, data['lines'], project_id)
        except LineItemError as e:
            return validation_response(e.errors)
    for column, value in updates.items():
        setattr(invoice, column, value)
    invoice.updated_by = user.id
    db.session.flush()
    db.session.expire(invoice, ['customer', 'project'])
    record_audit('UPDATED', 'INVOICE', invoice.id, user.id, before=before, after=invoice.to_dict())
    failure = commit_or_rollback('updating invoice')
    if failure:
        return failure
    return jsonify(invoice.to_dict(include_lines=True))


@invoices_bp.route('/post/<int:invoice_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def post_invoice(invoice_id):
    user = g.current_user
    invoice, error = load_document(Invoice, invoice_id, user, 'Invoice')
    if error:
        return error
    error = transition(invoice, 'draft', 'posted', 'INVOICE', user, 'Invoice is already posted')
    if error:
        return error
    failure = commit_or_rollback('posting invoice')
    if failure:
        return failure
    return jsonify(invoice.to_dict(include_lines=True))


@invoices_bp.route('/mark-paid/<int:invoice_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def mark_invoice_paid(invoice_id):
    user = g.current_user
    invoice, error = load_document(Invoice, invoice_id, user, 'Invoice')
    if error:
        return error
    error = transition(invoice, 'posted', 'paid', 'INVOICE', user,
                       'Invoice must be posted before marking as paid')
    if error:
        return error
    invoice.project.add_revenue(invoice.grand_total)
    failure = commit_or_rollback('paying invoice')
    if failure:
        return failure
    logger.info('Invoice %s paid; project %s revenue now %s',
                invoice.invoice_number, invoice.project_id, invoice.project.revenue)
    return jsonify(invoice.to_dict(include_lines=True))


@invoices_bp.route('/from-sales-order/<int:so_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def create_invoice_from_sales_order(so_id):
    user = g.current_user
    order = db.session.get(SalesOrder, so_id)
    if order is None or order.status != 'confirmed':
        return jsonify({'message': 'Sales order not found or not confirmed'}), 404
    if not can_access_project_documents(user, order.project):
        return jsonify({'message': 'Access denied'}), 403

    today = date.today()
    invoice = Invoice(
        invoice_number=next_document_number(Invoice),
        customer_id=order.customer_id,
        project_id=order.project_id,
        sales_order_id=order.id,
        invoice_date=today,
        due_date=today + PAYMENT_TERMS,
        notes=f'Created from sales order {order.order_number}',
        subtotal=order.subtotal,
        total_tax=order.total_tax,
        grand_total=order.grand_total,
        created_by=user.id,
        updated_by=user.id,
    )
    invoice.lines = copy_lines(order.lines, InvoiceLine)
    db.session.add(invoice)
    db.session.flush()
    record_audit('CREATED', 'INVOICE', invoice.id, user.id, after=invoice.to_dict())
    failure = commit_or_rollback('creating invoice from sales order')
    if failure:
        return failure

    logger.info('Invoice %s created from %s', invoice.invoice_number, order.order_number)
    return jsonify(invoice.to_dict(include_lines=True)), 201
