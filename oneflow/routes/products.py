"""
Product Routes

FLOW OVERVIEW
- /api/products [GET, POST]
  • List with ?search= (name contains) and ?type=sales|purchase|expenses; create (admin/PM).
- /api/products/<id> [GET, PUT, DELETE]
  • Update (admin/PM), delete (admin, refused while lines reference the product).
- Rules on the resulting product: at least one type; sales products need a price
  and a 0-100 tax percent; purchase/expense products need a cost price; unique name.
- Every write is recorded in audit_logs with before/after values.
"""

import logging

from flask import Blueprint, g, jsonify, request

from ..models import (
    db, Product, SalesOrderLine, PurchaseOrderLine, VendorBillLine, InvoiceLine
)
from ..utils.api_utils import commit_or_rollback, not_found, request_payload, validation_response
from ..utils.audit import record_audit
from ..utils.auth_utils import roles_required, token_required
from ..utils.validators import FieldErrors, parse_bool, parse_decimal, validate_text

logger = logging.getLogger(__name__)

products_bp = Blueprint('products', __name__)

PRODUCT_TYPES = ('type_sales', 'type_purchase', 'type_expenses')
PRICE_FIELDS = {
    'sales_price': ('Sales price', None),
    'sales_tax_percent': ('Tax percent', 100),
    'cost_price': ('Cost price', None),
}


def product_rule_violation(state):
    """Message for the first business rule the product state breaks, or None"""
    if not any(state[t] for t in PRODUCT_TYPES):
        return 'At least one product type must be selected'
    if state['type_sales'] and (state['sales_price'] is None or state['sales_tax_percent'] is None):
        return 'Sales price and tax percent are required for sales products'
    if (state['type_purchase'] or state['type_expenses']) and not state['cost_price']:
        return 'Cost price is required for purchase/expense products'
    return None


def _parse_fields(data, errors, partial):
    """Coerce the request's product fields; partial=True keeps only keys that were sent"""
    values = {}
    if not partial or 'name' in data:
        values['name'] = errors.check('name', validate_text(data.get('name'), 'Product name'))
    for flag in PRODUCT_TYPES:
        if not partial or flag in data:
            values[flag] = parse_bool(data.get(flag))
    for column, (label, maximum) in PRICE_FIELDS.items():
        if not partial or column in data:
            values[column] = errors.check(column, parse_decimal(
                data.get(column), label, minimum=0, maximum=maximum))
    return values


@products_bp.route('', methods=['GET'])
@products_bp.route('/', methods=['GET'])
@token_required
def list_products():
    query = Product.query
    search = (request.args.get('search') or '').strip()
    if search:
        query = query.filter(Product.name.ilike(f'%{search}%'))
    product_type = request.args.get('type')
    if product_type in ('sales', 'purchase', 'expenses'):
        query = query.filter(getattr(Product, f'type_{product_type}').is_(True))
    return jsonify([p.to_dict() for p in query.order_by(Product.name).all()])


@products_bp.route('/<int:product_id>', methods=['GET'])
@token_required
def get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product:
        return not_found('Product')
    return jsonify(product.to_dict())


@products_bp.route('', methods=['POST'])
@products_bp.route('/', methods=['POST'])
@token_required
@roles_required('admin', 'project_manager')
def create_product():
    user = g.current_user
    errors = FieldErrors()
    values = _parse_fields(request_payload(), errors, partial=False)
    if errors:
        return validation_response(errors.errors)

    violation = product_rule_violation(values)
    if violation:
        return jsonify({'message': violation}), 400

    if Product.query.filter_by(name=values['name']).first():
        return jsonify({'message': 'Product name already exists'}), 400

    product = Product(created_by=user.id, updated_by=user.id, **values)
    db.session.add(product)
    db.session.flush()
    record_audit('CREATED', 'PRODUCT', product.id, user.id, after=product.to_dict())
    failure = commit_or_rollback('creating product')
    if failure:
        return failure

    logger.info('Product %s created by %s', product.name, user.email)
    return jsonify({'message': 'Product created successfully', 'product': product.to_dict()}), 201


@products_bp.route('/<int:product_id>', methods=['PUT'])
@token_required
@roles_required('admin', 'project_manager')
def update_product(product_id):
    user = g.current_user
    product = db.session.get(Product, product_id)
    if not product:
        return not_found('Product')

    errors = FieldErrors()
    values = _parse_fields(request_payload(), errors, partial=True)
    if errors:
        return validation_response(errors.errors)

    state = {column: getattr(product, column) for column in ('name',) + PRODUCT_TYPES + tuple(PRICE_FIELDS)}
    state.update(values)
    violation = product_rule_violation(state)
    if violation:
        return jsonify({'message': violation}), 400

    if 'name' in values and values['name'] != product.name:
        taken = Product.query.filter(Product.name == values['name'], Product.id != product.id).first()
        if taken:
            return jsonify({'message': 'Product name already exists'}), 400

    before = product.to_dict()
    for column, value in values.items():
        setattr(product, column, value)
    product.updated_by = user.id
    db.session.flush()
    record_audit('UPDATED', 'PRODUCT', product.id, user.id, before=before, after=product.to_dict())
    failure = commit_or_rollback('updating product')
    if failure:
        return failure

    return jsonify({'message': 'Product updated successfully', 'product': product.to_dict()})


@products_bp.route('/<int:product_id>', methods=['DELETE'])
@token_required
@roles_required('admin')
def delete_product(product_id):
    user = g.current_user
    product = db.session.get(Product, product_id)
    if not product:
        return not_found('Product')

    for line_model in (SalesOrderLine, PurchaseOrderLine, VendorBillLine, InvoiceLine):
        if line_model.query.filter_by(product_id=product.id).first():
            return jsonify({'message': 'Product is used on existing documents and cannot be deleted'}), 400

    before = product.to_dict()
    db.session.delete(product)
    record_audit('DELETED', 'PRODUCT', product_id, user.id, before=before)
    failure = commit_or_rollback('deleting product')
    if failure:
        return failure

    logger.info('Product %s deleted by %s', before['name'], user.email)
    return jsonify({'message': 'Product deleted successfully'})
