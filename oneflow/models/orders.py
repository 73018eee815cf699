"""
Sales and Purchase Order Models

FLOW OVERVIEW
- SalesOrder (SO-YYYYMM-NNN): customer + project, lines of sales products.
- PurchaseOrder (PO-YYYYMM-NNN): vendor + project, lines of purchase products.
- Both move draft → confirmed; only drafts accept edits.
"""

from datetime import date
from .database import db
from .mixins import DocumentMixin, LineMixin, line_constraints
from .utils import iso

ORDER_STATUSES = ('draft', 'confirmed')


class SalesOrder(DocumentMixin, db.Model):
    """Sales order header"""
    __tablename__ = 'sales_orders'
    NUMBER_PREFIX = 'SO'
    number_attr = 'order_number'

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(50), unique=True, nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    order_date = db.Column(db.Date, nullable=False, default=date.today)
    status = db.Column(db.String(20), nullable=False, default='draft')

    __table_args__ = (
        db.CheckConstraint("status IN ('draft', 'confirmed')", name='ck_sales_orders_status'),
    )

    customer = db.relationship('Customer')
    project = db.relationship('Project')
    lines = db.relationship('SalesOrderLine', backref='sales_order',
                            cascade='all, delete-orphan', order_by='SalesOrderLine.id')

    def to_dict(self, include_lines=False):
        data = self.document_fields()
        data.update({
            'order_number': self.order_number,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'order_date': iso(self.order_date),
        })
        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data


class SalesOrderLine(LineMixin, db.Model):
    __tablename__ = 'sales_order_lines'

    id = db.Column(db.Integer, primary_key=True)
    sales_order_id = db.Column(db.Integer, db.ForeignKey('sales_orders.id', ondelete='CASCADE'),
                               nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)

    __table_args__ = line_constraints('sales_order_lines')

    product = db.relationship('Product')

    def to_dict(self):
        data = self.line_fields()
        data['product_id'] = self.product_id
        data['product_name'] = self.product.name if self.product else None
        return data


class PurchaseOrder(DocumentMixin, db.Model):
    """Purchase order header"""
    __tablename__ = 'purchase_orders'
    NUMBER_PREFIX = 'PO'
    number_attr = 'po_number'

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(50), unique=True, nullable=False)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    order_date = db.Column(db.Date, nullable=False, default=date.today)
    status = db.Column(db.String(20), nullable=False, default='draft')

    __table_args__ = (
        db.CheckConstraint("status IN ('draft', 'confirmed')", name='ck_purchase_orders_status'),
    )

    vendor = db.relationship('Vendor')
    project = db.relationship('Project')
    lines = db.relationship('PurchaseOrderLine', backref='purchase_order',
                            cascade='all, delete-orphan', order_by='PurchaseOrderLine.id')

    def to_dict(self, include_lines=False):
        data = self.document_fields()
        data.update({
            'po_number': self.po_number,
            'vendor_id': self.vendor_id,
            'vendor_name': self.vendor.name if self.vendor else None,
            'order_date': iso(self.order_date),
        })
        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data


class PurchaseOrderLine(LineMixin, db.Model):
    __tablename__ = 'purchase_order_lines'

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer,
                                  db.ForeignKey('purchase_orders.id', ondelete='CASCADE'),
                                  nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)

    __table_args__ = line_constraints('purchase_order_lines')

    product = db.relationship('Product')

    def to_dict(self):
        data = self.line_fields()
        data['product_id'] = self.product_id
        data['product_name'] = self.product.name if self.product else None
        return data
