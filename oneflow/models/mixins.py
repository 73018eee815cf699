"""
Shared Columns for Financial Documents

FLOW OVERVIEW
- DocumentMixin: notes, subtotal/total_tax/grand_total, created/updated by and at.
- LineMixin: quantity, unit, unit_price, tax_percent and the three computed amounts.
- line_constraints(table): quantity > 0, unit_price > 0, tax_percent >= 0 as named
  CHECK constraints for a line table.
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import declared_attr
from .database import db
from .utils import iso, money, full_name


def line_constraints(table):
    return (
        db.CheckConstraint('quantity > 0', name=f'ck_{table}_quantity'),
        db.CheckConstraint('unit_price > 0', name=f'ck_{table}_unit_price'),
        db.CheckConstraint('tax_percent >= 0', name=f'ck_{table}_tax_percent'),
    )


class DocumentMixin:
    notes = db.Column(db.Text)
    subtotal = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal('0'))
    total_tax = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal('0'))
    grand_total = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal('0'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @declared_attr
    def created_by(cls):
        return db.Column(db.Integer, db.ForeignKey('users.id'))

    @declared_attr
    def updated_by(cls):
        return db.Column(db.Integer, db.ForeignKey('users.id'))

    @declared_attr
    def creator(cls):
        return db.relationship('User', foreign_keys=f'{cls.__name__}.created_by')

    def apply_totals(self, totals):
        """Copy a DocumentTotals onto the header columns"""
        self.subtotal = totals.subtotal
        self.total_tax = totals.total_tax
        self.grand_total = totals.grand_total

    def document_fields(self):
        return {
            'id': self.id,
            'status': self.status,
            'notes': self.notes,
            'project_id': self.project_id,
            'project_name': self.project.name if self.project else None,
            'subtotal': money(self.subtotal),
            'total_tax': money(self.total_tax),
            'grand_total': money(self.grand_total),
            'created_by': self.created_by,
            'created_by_name': full_name(self.creator),
            'updated_by': self.updated_by,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }


class LineMixin:
    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    unit = db.Column(db.String(50), nullable=False)
    unit_price = db.Column(db.Numeric(15, 2), nullable=False)
    tax_percent = db.Column(db.Numeric(5, 2), nullable=False, default=Decimal('0'))
    line_total = db.Column(db.Numeric(15, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(15, 2), nullable=False)
    line_grand_total = db.Column(db.Numeric(15, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def line_fields(self):
        return {
            'id': self.id,
            'quantity': money(self.quantity),
            'unit': self.unit,
            'unit_price': money(self.unit_price),
            'tax_percent': money(self.tax_percent),
            'line_total': money(self.line_total),
            'tax_amount': money(self.tax_amount),
            'line_grand_total': money(self.line_grand_total),
        }

    def copy_values(self):
        """Plain dict of the entered values, used to clone lines onto another document"""
        return {
            'product_id': getattr(self, 'product_id', None),
            'quantity': self.quantity,
            'unit': self.unit,
            'unit_price': self.unit_price,
            'tax_percent': self.tax_percent,
        }
