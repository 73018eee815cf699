"""
Vendor Bill and Customer Invoice Models

FLOW OVERVIEW
- VendorBill (BILL-YYYYMM-NNN): vendor + project, optionally from a confirmed PO.
  Paying a bill adds its grand total to the project's cost.
- Invoice (INV-YYYYMM-NNN): customer + project, optionally from a confirmed SO.
  Lines bill either a product or a task's hours. Paying adds to project revenue.
- Both move draft → posted → paid; 'cancelled' is accepted by the column.
"""

from datetime import date
from .database import db
from .mixins import DocumentMixin, LineMixin, line_constraints
from .utils import iso

BILL_STATUSES = ('draft', 'posted', 'paid', 'cancelled')


class VendorBill(DocumentMixin, db.Model):
    """Vendor bill header"""
    __tablename__ = 'vendor_bills'
    NUMBER_PREFIX = 'BILL'
    number_attr = 'bill_number'

    id = db.Column(db.Integer, primary_key=True)
    bill_number = db.Column(db.String(50), unique=True, nullable=False)
    vendor_id = db.Column(db.Integer, db.ForeignKey('vendors.id'), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey('purchase_orders.id'))
    bill_date = db.Column(db.Date, nullable=False, default=date.today)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='draft')

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'posted', 'paid', 'cancelled')", name='ck_vendor_bills_status'
        ),
    )

    vendor = db.relationship('Vendor')
    project = db.relationship('Project')
    purchase_order = db.relationship('PurchaseOrder')
    lines = db.relationship('VendorBillLine', backref='vendor_bill',
                            cascade='all, delete-orphan', order_by='VendorBillLine.id')

    def to_dict(self, include_lines=False):
        data = self.document_fields()
        data.update({
            'bill_number': self.bill_number,
            'vendor_id': self.vendor_id,
            'vendor_name': self.vendor.name if self.vendor else None,
            'purchase_order_id': self.purchase_order_id,
            'po_number': self.purchase_order.po_number if self.purchase_order else None,
            'bill_date': iso(self.bill_date),
            'due_date': iso(self.due_date),
        })
        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data


class VendorBillLine(LineMixin, db.Model):
    __tablename__ = 'vendor_bill_lines'

    id = db.Column(db.Integer, primary_key=True)
    vendor_bill_id = db.Column(db.Integer, db.ForeignKey('vendor_bills.id', ondelete='CASCADE'),
                               nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)

    __table_args__ = line_constraints('vendor_bill_lines')

    product = db.relationship('Product')

    def to_dict(self):
        data = self.line_fields()
        data['product_id'] = self.product_id
        data['product_name'] = self.product.name if self.product else None
        return data


class Invoice(DocumentMixin, db.Model):
    """Customer invoice header"""
    __tablename__ = 'invoices'
    NUMBER_PREFIX = 'INV'
    number_attr = 'invoice_number'

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(50), unique=True, nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    sales_order_id = db.Column(db.Integer, db.ForeignKey('sales_orders.id'))
    invoice_date = db.Column(db.Date, nullable=False, default=date.today)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='draft')

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('draft', 'posted', 'paid', 'cancelled')", name='ck_invoices_status'
        ),
    )

    customer = db.relationship('Customer')
    project = db.relationship('Project')
    sales_order = db.relationship('SalesOrder')
    lines = db.relationship('InvoiceLine', backref='invoice',
                            cascade='all, delete-orphan', order_by='InvoiceLine.id')

    def to_dict(self, include_lines=False):
        data = self.document_fields()
        data.update({
            'invoice_number': self.invoice_number,
            'customer_id': self.customer_id,
            'customer_name': self.customer.name if self.customer else None,
            'sales_order_id': self.sales_order_id,
            'order_number': self.sales_order.order_number if self.sales_order else None,
            'invoice_date': iso(self.invoice_date),
            'due_date': iso(self.due_date),
        })
        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(LineMixin, db.Model):
    __tablename__ = 'invoice_lines'

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('invoices.id', ondelete='CASCADE'),
                           nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'))
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id'))

    __table_args__ = line_constraints('invoice_lines') + (
        db.CheckConstraint(
            'product_id IS NOT NULL OR task_id IS NOT NULL', name='ck_invoice_lines_source'
        ),
    )

    product = db.relationship('Product')
    task = db.relationship('Task')

    def to_dict(self):
        data = self.line_fields()
        data.update({
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'task_id': self.task_id,
            'task_title': self.task.title if self.task else None,
        })
        return data
