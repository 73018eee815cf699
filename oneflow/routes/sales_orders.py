"""
Sales Order Routes

FLOW OVERVIEW
- /api/sales-orders/data/customers|projects|products [GET]
  • Dropdown data for the order form; products are sales products only.
- /api/sales-orders [GET, POST]
  • List (?project_id=) scoped to the caller's projects; create with lines.
- /api/sales-orders/<id> [GET, PUT]
  • Read with lines; drafts may be edited, which replaces every line.
- /api/sales-orders/confirm/<id> [POST]
  • draft → confirmed.

Access: admin, project_manager (own projects), finance_manager.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models import db, Customer, Product, Project, SalesOrder, SalesOrderLine
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
from .projects import visible_projects_query

logger = logging.getLogger(__name__)

sales_orders_bp = Blueprint('sales_orders', __name__)


@sales_orders_bp.route('/data/customers', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def order_customers():
    customers = Customer.query.order_by(Customer.name).all()
    return jsonify([c.to_dict() for c in customers])


@sales_orders_bp.route('/data/projects', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def order_projects():
    projects = visible_projects_query(g.current_user).order_by(Project.name).all()
    return jsonify([{'id': p.id, 'name': p.name, 'status': p.status} for p in projects])


@sales_orders_bp.route('/data/products', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def order_products():
    products = Product.query.filter(Product.type_sales.is_(True)).order_by(Product.name).all()
    return jsonify([p.to_dict() for p in products])


@sales_orders_bp.route('', methods=['GET'])
@sales_orders_bp.route('/', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def list_sales_orders():
    query = scoped_documents(SalesOrder, g.current_user)
    project_id = request.args.get('project_id', type=int)
    if project_id:
        query = query.filter(SalesOrder.project_id == project_id)
    orders = query.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc()).all()
    return jsonify([o.to_dict() for o in orders])


@sales_orders_bp.route('/<int:order_id>', methods=['GET'])
@token_required
@roles_required(*FINANCE_ROLES)
def get_sales_order(order_id):
    order, error = load_document(SalesOrder, order_id, g.current_user, 'Sales order')
    if error:
        return error
    return jsonify(order.to_dict(include_lines=True))


@sales_orders_bp.route('', methods=['POST'])
@sales_orders_bp.route('/', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def create_sales_order():
    user = g.current_user
    data = request_payload()
    errors = FieldErrors()
    customer = resolve_counterparty(Customer, data.get('customer_id'), 'customer_id', 'Customer', errors)
    project = resolve_project(data.get('project_id'), user, errors)
    order_date = errors.check('order_date', parse_date(data.get('order_date'), 'Order date'))
    notes = errors.check('notes', validate_text(data.get('notes'), 'Notes', required=False, max_length=5000))
    if errors:
        return validation_response(errors.errors)

    order = SalesOrder(
        order_number=next_document_number(SalesOrder),
        customer_id=customer.id,
        project_id=project.id,
        notes=notes,
        created_by=user.id,
        updated_by=user.id,
    )
    if order_date:
        order.order_date = order_date
    try:
        apply_lines(order, SalesOrderLine, data.get('lines'), product_flag='type_sales')
    except LineItemError as e:
        return validation_response(e.errors)

    db.session.add(order)
    db.session.flush()
    record_audit('CREATED', 'SALES_ORDER', order.id, user.id, after=order.to_dict())
    failure = commit_or_rollback('creating sales order')
    if failure:
        return failure

    logger.info('Sales order %s created by %s', order.order_number, user.email)
    return jsonify(order.to_dict(include_lines=True)), 201


@sales_orders_bp.route('/<int:order_id>', methods=['PUT'])
@token_required
@roles_required(*FINANCE_ROLES)
def update_sales_order(order_id):
    user = g.current_user
    order, error = load_document(SalesOrder, order_id, user, 'Sales order')
    if error:
        return error
    if order.status != 'draft':
        return jsonify({'message': 'Cannot edit confirmed sales order'}), 400

    data = request_payload()
    errors = FieldErrors()
    updates = {}
    if data.get('customer_id') not in (None, ''):
        customer = resolve_counterparty(Customer, data['customer_id'], 'customer_id', 'Customer', errors)
        updates['customer_id'] = customer.id if customer else None
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
            apply_lines(order, SalesOrderLine, data['lines'], product_flag='type_sales')
        except LineItemError as e:
            return validation_response(e.errors)
    for column, value in updates.items():
        setattr(order, column, value)
    order.updated_by = user.id
    db.session.flush()
    db.session.expire(order, ['customer', 'project'])
    record_audit('UPDATED', 'SALES_ORDER', order.id, user.id, before=before, after=order.to_dict())
    failure = commit_or_rollback('updating sales order')
    if failure:
        return failure
    return jsonify(order.to_dict(include_lines=True))


@sales_orders_bp.route('/confirm/<int:order_id>', methods=['POST'])
@token_required
@roles_required(*FINANCE_ROLES)
def confirm_sales_order(order_id):
    user = g.current_user
    order, error = load_document(SalesOrder, order_id, user, 'Sales order')
    if error:
        return error
    error = transition(order, 'draft', 'confirmed', 'SALES_ORDER', user, 'Sales order already confirmed')
    if error:
        return error
    failure = commit_or_rollback('confirming sales order')
    if failure:
        return failure
    logger.info('Sales order %s confirmed by %s', order.order_number, user.email)
    return jsonify(order.to_dict(include_lines=True))

