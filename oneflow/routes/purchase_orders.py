"""
Purchase Order Routes

FLOW OVERVIEW
- /api/purchase-orders/vendors/list [GET]
- /api/purchase-orders [GET, POST]
  • List (?project_id=) scoped to the caller's projects; create with purchase-product lines.
- /api/purchase-orders/<id> [GET, PUT]
  • PUT only while draft.
- /api/purchase-orders/confirm/<id> [POST]
  • draft → confirmed; confirmed orders can be turned into vendor bills.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models import db, Vendor, PurchaseOrder, PurchaseOrderLine
from ..utils.api_utils import commit_or_rollback, request_payload, validation_response
from ..utils.audit import record_audit
from ..utils.auth_utils import roles_required, token_required
from ..utils.documents import (
    apply_lines, load_document, resolve_counterparty, resolve_project, scoped_documents, transition
)
from ..utils.line_items import LineItemError
from ..utils.numbering import next_document_number
from ..utils.permissions import FINANCE_ROLES
from ..utils.validators import FieldErrors, parse_date, validate_text

logger = logging.getLogger(__name__)

purchase_orders_bp = Blueprint('purchase_orders', __name__)


@purchase_orders_bp.route('/vendors/list', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def list_vendors():
    vendors = Vendor.query.order_by(Vendor.name).all()
    return jsonify([v.to_dict() for v in vendors])


@purchase_orders_bp.route('', methods=['GET'])
@purchase_orders_bp.route('/', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def list_purchase_orders():
    query = scoped_documents(PurchaseOrder, g.current_user)
    project_id = request.args.get('project_id', type=int)
    if project_id:
        query = query.filter(PurchaseOrder.project_id == project_id)
    status = request.args.get('status')
    if status:
        query = query.filter(PurchaseOrder.status == status)
    orders = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()
    return jsonify([o.to_dict() for o in orders])


@purchase_orders_bp.route('/<int:order_id>', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def get_purchase_order(order_id):
    order, error = load_document(PurchaseOrder, order_id, g.current_user, 'Purchase order')
    if error:
        return error
    return jsonify(order.to_dict(include_lines=True))


@purchase_orders_bp.route('', methods=['POST'])
@purchase_orders_bp.route('/', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def create_purchase_order():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    vendor = resolve_counterparty(Vendor, data.get('vendor_id'), 'vendor_id', 'Vendor', errors)
    project = resolve_project(data.get('project_id'), user, errors)
    order_date = errors.check('order_date', parse_date(data.get('order_date'), 'Order date'))
    notes = errors.check('notes', validate_text(data.get('notes'), 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    order = PurchaseOrder(
        po_number=next_document_number(PurchaseOrder),
        vendor_id=vendor.id,
        project_id=project.id,
        notes=notes,
        created_by=user.id,
        updated_by=user.id,
    )
    if order_date:
        order.order_date = order_date
    try:
        apply_lines(order, PurchaseOrderLine, data.get('lines'), product_flag='type_purchase')
    except LineItemError as e:
        return validation_response(e.errors)

    db.session.add(order)
    db.session.flush()
    record_audit('CREATED', 'PURCHASE_ORDER', order.id, user.id, after=order.to_dict())
    failure = commit_or_rollback('creating purchase order')
    if failure:
        return failure

    logger.info('Purchase order %s created by %s', order.po_number, user.email)
    return jsonify(order.to_dict(include_lines=True)), 201


@purchase_orders_bp.route('/<int:order_id>', methods=['PUT'])
@token_required
@roles_required(*FINANCE_ROLES)
def update_purchase_order(order_id):
    user = g.current_user
    order, error = load_document(PurchaseOrder, order_id, user, 'Purchase order')
    if error:
        return error
    if order.status != 'draft':
        return jsonify({'message': 'Cannot edit confirmed purchase order'}), 400

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if data.get('vendor_id') not in (None, ''):
        vendor = resolve_counterparty(Vendor, data['vendor_id'], 'vendor_id', 'Vendor', errors)
        updates['vendor_id'] = vendor.id if vendor else None
    if data.get('project_id') not in (None, ''):
        project = resolve_project(data['project_id'], user, errors)
        updates['project_id'] = project.id if project else None
    if data.get('order_date'):
        updates['order_date'] = errors.check('order_date', parse_date(data['order_date'], 'Order date'))
    if 'notes' in data:
        updates['notes'] = errors.check('notes', validate_text(
            data['notes'], 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    before = order.to_dict()
    if 'lines' in data:
        try:
            apply_lines(order, PurchaseOrderLine, data['lines'], product_flag='type_purchase')
        except LineItemError as e:
            return validation_response(e.errors)
    for column, value in updates.items():
        setattr(order, column, value)
    order.updated_by = user.id
    db.session.flush()
    db.session.expire(order, ['vendor', 'project'])
    record_audit('UPDATED', 'PURCHASE_ORDER', order.id, user.id, before=before, after=order.to_dict())
    failure = commit_or_rollback('updating purchase order')
    if failure:
        return failure
    return jsonify(order.to_dict(include_lines=True))


@purchase_orders_bp.route('/confirm/<int:order_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def confirm_purchase_order(order_id):
    user = g.current_user
    order, error = load_document(PurchaseOrder, order_id, user, 'Purchase order')
    if error:
        return error
    error = transition(order, 'draft', 'confirmed', 'PURCHASE_ORDER', user, 'Purchase order already confirmed')
    if error:
        return error
    failure = commit_or_rollback('confirming purchase order')
    if failure:
        return failure
    logger.info('Purchase order %s confirmed by %s', order.po_number, user.email)
    return jsonify(order.to_dict(include_lines=True))
