"""
Expense Models

FLOW OVERVIEW
- Expense (EXP-YYYYMM-NNN): a cost a user incurred against a project.
  • amount_company_currency = amount × exchange_rate (refresh_derived()).
  • receipt_required = amount >= company receipt threshold (refresh_derived()).
  • draft → submitted → approved | rejected; approved → reimbursed.
- ExpenseHistory: one row per create/update/transition with before/after snapshots.
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from .database import db
from .utils import iso, money, full_name

EXPENSE_CATEGORIES = ('Travel', 'Software', 'Hardware', 'Meals', 'Other')
EXPENSE_STATUSES = ('draft', 'submitted', 'approved', 'reimbursed', 'rejected')


class Expense(db.Model):
    """Expense claim"""
    __tablename__ = 'expenses'
    NUMBER_PREFIX = 'EXP'
    number_attr = 'expense_number'

    id = db.Column(db.Integer, primary_key=True)
    expense_number = db.Column(db.String(50), unique=True, nullable=False)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id'))
    submitted_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    submitted_at = db.Column(db.DateTime)
    expense_date = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=False)
    amount = db.Column(db.Numeric(15, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='USD')
    exchange_rate = db.Column(db.Numeric(10, 6), nullable=False, default=Decimal('1'))
    amount_company_currency = db.Column(db.Numeric(15, 2))
    billable = db.Column(db.Boolean, nullable=False, default=False)
    billable_to_customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'))
    receipt_url = db.Column(db.String(500))
    receipt_required = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default='draft')
    approver_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    approved_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)
    reimbursed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    reimbursed_at = db.Column(db.DateTime)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "category IN ('Travel', 'Software', 'Hardware', 'Meals', 'Other')",
            name='ck_expenses_category'
        ),
        db.CheckConstraint('amount > 0', name='ck_expenses_amount'),
        db.CheckConstraint(
            "status IN ('draft', 'submitted', 'approved', 'reimbursed', 'rejected')",
            name='ck_expenses_status'
        ),
        db.Index('idx_expenses_project_id', 'project_id'),
        db.Index('idx_expenses_submitted_by', 'submitted_by'),
        db.Index('idx_expenses_status', 'status'),
    )

    project = db.relationship('Project')
    task = db.relationship('Task')
    submitter = db.relationship('User', foreign_keys=[submitted_by])
    approver = db.relationship('User', foreign_keys=[approver_id])
    reimburser = db.relationship('User', foreign_keys=[reimbursed_by])
    customer = db.relationship('Customer')
    history = db.relationship('ExpenseHistory', backref='expense', cascade='all, delete-orphan',
                              order_by='ExpenseHistory.id')

    def refresh_derived(self, receipt_threshold):
        """Recompute the company-currency amount and the receipt requirement"""
        rate = Decimal(self.exchange_rate if self.exchange_rate is not None else 1)
        self.amount_company_currency = (Decimal(self.amount) * rate).quantize(
            Decimal('0.01'), rounding=ROUND_HALF_UP
        )
        self.receipt_required = Decimal(self.amount) >= receipt_threshold

    def snapshot(self):
        """JSON-safe copy for the history trail"""
        return {
            'expense_number': self.expense_number,
            'project_id': self.project_id,
            'task_id': self.task_id,
            'expense_date': iso(self.expense_date),
            'category': self.category,
            'description': self.description,
            'amount': money(self.amount),
            'currency': self.currency,
            'exchange_rate': money(self.exchange_rate),
            'amount_company_currency': money(self.amount_company_currency),
            'billable': self.billable,
            'billable_to_customer_id': self.billable_to_customer_id,
            'receipt_url': self.receipt_url,
            'status': self.status,
        }

    def to_dict(self):
        data = self.snapshot()
        data.update({
            'id': self.id,
            'project_name': self.project.name if self.project else None,
            'task_title': self.task.title if self.task else None,
            'submitted_by': self.submitted_by,
            'submitted_by_name': full_name(self.submitter),
            'submitted_at': iso(self.submitted_at),
            'customer_name': self.customer.name if self.customer else None,
            'receipt_required': self.receipt_required,
            'approver_id': self.approver_id,
            'approver_name': full_name(self.approver),
            'approved_at': iso(self.approved_at),
            'rejection_reason': self.rejection_reason,
            'reimbursed_by': self.reimbursed_by,
            'reimbursed_by_name': full_name(self.reimburser),
            'reimbursed_at': iso(self.reimbursed_at),
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        })
        return data


class ExpenseHistory(db.Model):
    __tablename__ = 'expense_history'

    id = db.Column(db.Integer, primary_key=True)
    expense_id = db.Column(db.Integer, db.ForeignKey('expenses.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    action = db.Column(db.String(50), nullable=False)
    old_status = db.Column(db.String(20))
    new_status = db.Column(db.String(20))
    changed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    change_reason = db.Column(db.Text)
    changed_at = db.Column(db.DateTime, default=datetime.utcnow)
    before_snapshot = db.Column(db.JSON)
    after_snapshot = db.Column(db.JSON)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'expense_id': self.expense_id,
            'action': self.action,
            'old_status': self.old_status,
            'new_status': self.new_status,
            'changed_by': self.changed_by,
            'changed_by_name': full_name(self.user),
            'change_reason': self.change_reason,
            'changed_at': iso(self.changed_at),
            'before_snapshot': self.before_snapshot,
            'after_snapshot': self.after_snapshot,
        }
