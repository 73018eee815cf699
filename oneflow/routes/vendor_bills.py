"""
Vendor Bill Routes

FLOW OVERVIEW
- /api/vendor-bills [GET, POST]
  • Create: vendor, project and lines (purchase products); due date defaults to
    the bill date + 30 days.
- /api/vendor-bills/<id> [GET, PUT]
  • PUT only while draft.
- /api/vendor-bills/post/<id> [POST]       draft → posted
- /api/vendor-bills/mark-paid/<id> [POST]  posted → paid; grand total is added
  to the project's cost and profit is recomputed.
- /api/vendor-bills/from-po/<po_id> [POST]
  • Draft bill copied from a confirmed purchase order.
"""

import logging
from datetime import date, timedelta

from flask import Blueprint, g, jsonify, request

from ..models import db, Vendor, VendorBill, VendorBillLine, PurchaseOrder
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

vendor_bills_bp = Blueprint('vendor_bills', __name__)

PAYMENT_TERMS = timedelta(days=30)


@vendor_bills_bp.route('', methods=['GET'])
@vendor_bills_bp.route('/', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def list_vendor_bills():
    query = scoped_documents(VendorBill, g.current_user)
    project_id = request.args.get('project_id', type=int)
    if project_id:
        query = query.filter(VendorBill.project_id == project_id)
    status = request.args.get('status')
    if status:
        query = query.filter(VendorBill.status == status)
    bills = query.order_by(VendorBill.created_at.desc(), VendorBill.id.desc()).all()
    return jsonify([b.to_dict() for b in bills])


@vendor_bills_bp.route('/<int:bill_id>', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def get_vendor_bill(bill_id):
    bill, error = load_document(VendorBill, bill_id, g.current_user, 'Vendor bill')
    if error:
        return error
    return jsonify(bill.to_dict(include_lines=True))


@vendor_bills_bp.route('', methods=['POST'])
@vendor_bills_bp.route('/', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def create_vendor_bill():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    vendor = resolve_counterparty(Vendor, data.get('vendor_id'), 'vendor_id', 'Vendor', errors)
    project = resolve_project(data.get('project_id'), user, errors)
    bill_date = errors.check('bill_date', parse_date(data.get('bill_date'), 'Bill date'))
    due_date = errors.check('due_date', parse_date(data.get('due_date'), 'Due date'))
    notes = errors.check('notes', validate_text(data.get('notes'), 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    bill_date = bill_date or date.today()
    bill = VendorBill(
        bill_number=next_document_number(VendorBill),
        vendor_id=vendor.id,
        project_id=project.id,
        bill_date=bill_date,
        due_date=due_date or bill_date + PAYMENT_TERMS,
        notes=notes,
        created_by=user.id,
        updated_by=user.id,
    )
    try:
        apply_lines(bill, VendorBillLine, data.get('lines'), product_flag='type_purchase')
    except LineItemError as e:
        return validation_response(e.errors)

    db.session.add(bill)
    db.session.flush()
    record_audit('CREATED', 'VENDOR_BILL', bill.id, user.id, after=bill.to_dict())
    failure = commit_or_rollback('creating vendor bill')
    if failure:
        return failure

    logger.info('Vendor bill %s created by %s', bill.bill_number, user.email)
    return jsonify(bill.to_dict(include_lines=True)), 201


@vendor_bills_bp.route('/<int:bill_id>', methods=['PUT'])
@token_required
@roles_required(*FINANCE_ROLES)
def update_vendor_bill(bill_id):
    user = g.current_user
    bill, error = load_document(VendorBill, bill_id, user, 'Vendor bill')
    if error:
        return error
    if bill.status != 'draft':
        return jsonify({'message': 'Cannot update posted vendor bill'}), 400

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if data.get('vendor_id') not in (None, ''):
        vendor = resolve_counterparty(Vendor, data['vendor_id'], 'vendor_id', 'Vendor', errors)
        updates['vendor_id'] = vendor.id if vendor else None
    if data.get('project_id') not in (None, ''):
        project = resolve_project(data['project_id'], user, errors)
        updates['project_id'] = project.id if project else None
    for column, label in (('bill_date', 'Bill date'), ('due_date', 'Due date')):
        if data.get(column):
            updates[column] = errors.check(column, parse_date(data[column], label))
    if 'notes' in data:
        updates['notes'] = errors.check('notes', validate_text(
            data['notes'], 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    before = bill.to_dict()
    if 'lines' in data:
        try:
            apply_lines(bill, VendorBillLine, data['lines'], product_flag='type_purchase')
        except LineItemError as e:
            return validation_response(e.errors)
    for column, value in updates.items():
        setattr(bill, column, value)
    bill.updated_by = user.id
    db.session.flush()
    db.session.expire(bill, ['vendor', 'project'])
    record_audit('UPDATED', 'VENDOR_BILL', bill.id, user.id, before=before, after=bill.to_dict())
    failure = commit_or_rollback('updating vendor bill')
    if failure:
        return failure
    return jsonify(bill.to_dict(include_lines=True))


@vendor_bills_bp.route('/post/<int:bill_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def post_vendor_bill(bill_id):
    user = g.current_user
    bill, error = load_document(VendorBill, bill_id, user, 'Vendor bill')
    if error:
        return error
    error = transition(bill, 'draft', 'posted', 'VENDOR_BILL', user, 'Vendor bill is already posted')
    if error:
        return error
    failure = commit_or_rollback('posting vendor bill')
    if failure:
        return failure
    return jsonify(bill.to_dict(include_lines=True))


@vendor_bills_bp.route('/mark-paid/<int:bill_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def mark_vendor_bill_paid(bill_id):
    user = g.current_user
    bill, error = load_document(VendorBill, bill_id, user, 'Vendor bill')
    if error:
        return error
    error = transition(bill, 'posted', 'paid', 'VENDOR_BILL', user,
                       'Vendor bill must be posted before marking as paid')
    if error:
        return error
    bill.project.add_cost(bill.grand_total)
    failure = commit_or_rollback('paying vendor bill')
    if failure:
        return failure
    logger.info('Vendor bill %s paid; project %s cost now %s', bill.bill_number, bill.project_id, bill.project.cost)
    return jsonify(bill.to_dict(include_lines=True))


@vendor_bills_bp.route('/from-po/<int:po_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def create_bill_from_purchase_order(po_id):
    user = g.current_user
    order = db.session.get(PurchaseOrder, po_id)
    if order is None or order.status != 'confirmed':
        return jsonify({'message': 'Purchase order not found or not confirmed'}), 404
    if not can_access_project_documents(user, order.project):
        return jsonify({'message': 'Access denied'}), 403

    today = date.today()
    bill = VendorBill(
        bill_number=next_document_number(VendorBill),
        vendor_id=order.vendor_id,
        project_id=order.project_id,
        purchase_order_id=order.id,
        bill_date=today,
        due_date=today + PAYMENT_TERMS,
        notes=f'Created from purchase order {order.po_number}',
        subtotal=order.subtotal,
        total_tax=order.total_tax,
        grand_total=order.grand_total,
        created_by=user.id,
        updated_by=user.id,
    )
    bill.lines = copy_lines(order.lines, VendorBillLine)
    db.session.add(bill)
    db.session.flush()
    record_audit('CREATED', 'VENDOR_BILL', bill.id, user.id, after=bill.to_dict())
    failure = commit_or_rollback('creating vendor bill from purchase order')
    if failure:
        return failure

    logger.info('Vendor bill %s created from %s', bill.bill_number, order.po_number)
    return jsonify(bill.to_dict(include_lines=True)), 201
