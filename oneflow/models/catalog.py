"""
Catalog Models

FLOW OVERVIEW
- Customer / Vendor: counterparties for sales-side and purchase-side documents.
- Product: a named item usable on sales lines (type_sales), purchase/bill lines
  (type_purchase) or expenses (type_expenses). Names are unique.
- CompanySetting: key/value configuration rows (default currency, receipt threshold).
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from .database import db
from .utils import iso, money


class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    address = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'created_at': iso(self.created_at),
        }


class Vendor(db.Model):
    __tablename__ = 'vendors'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    address = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'created_at': iso(self.created_at),
        }


class Product(db.Model):
    """Product model"""
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), unique=True, nullable=False)
    type_sales = db.Column(db.Boolean, nullable=False, default=False)
    type_purchase = db.Column(db.Boolean, nullable=False, default=False)
    type_expenses = db.Column(db.Boolean, nullable=False, default=False)
    sales_price = db.Column(db.Numeric(15, 2))
    sales_tax_percent = db.Column(db.Numeric(5, 2))
    cost_price = db.Column(db.Numeric(15, 2))
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            'type_sales OR type_purchase OR type_expenses', name='ck_products_has_type'
        ),
        db.CheckConstraint(
            'sales_tax_percent IS NULL OR (sales_tax_percent >= 0 AND sales_tax_percent <= 100)',
            name='ck_products_tax_range'
        ),
    )

    def __repr__(self):
        return f'<Product {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type_sales': self.type_sales,
            'type_purchase': self.type_purchase,
            'type_expenses': self.type_expenses,
            'sales_price': money(self.sales_price),
            'sales_tax_percent': money(self.sales_tax_percent),
            'cost_price': money(self.cost_price),
            'created_by': self.created_by,
            'updated_by': self.updated_by,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }


class CompanySetting(db.Model):
    __tablename__ = 'company_settings'

    id = db.Column(db.Integer, primary_key=True)
    setting_key = db.Column(db.String(100), unique=True, nullable=False)
    setting_value = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    DEFAULTS = {
        'default_currency': 'USD',
        'receipt_required_threshold': '100.00',
        'expense_approval_required': 'true',
    }

    @classmethod
    def get_value(cls, key, default=None):
        row = cls.query.filter_by(setting_key=key).first()
        if row is None or row.setting_value is None:
            return cls.DEFAULTS.get(key, default)
        return row.setting_value

    @classmethod
    def receipt_threshold(cls):
        """Expense amount at or above which a receipt must be attached"""
        try:
            return Decimal(cls.get_value('receipt_required_threshold', '100.00'))
        except InvalidOperation:
            return Decimal('100.00')
