"""
Database Models Package

FLOW OVERVIEW
- Centralizes SQLAlchemy DB instance and model imports for convenient usage.
- Exposes: db, users, projects/tasks, catalog, orders, bills/invoices, expenses, audit logs.
"""

from .database import db
from .user import User, ROLES
from .project import (
    Project, Task, Subtask, TaskComment, TaskAttachment, TimeLog, TaskActivityLog,
    PROJECT_STATUSES, TASK_STATUSES, PRIORITIES
)
from .catalog import Customer, Vendor, Product, CompanySetting
from .orders import SalesOrder, SalesOrderLine, PurchaseOrder, PurchaseOrderLine
from .billing import VendorBill, VendorBillLine, Invoice, InvoiceLine
from .expense import Expense, ExpenseHistory, EXPENSE_CATEGORIES
from .audit_log import AuditLog

__all__ = [
    'db',
    'User',
    'ROLES',
    'Project',
    'Task',
    'Subtask',
    'TaskComment',
    'TaskAttachment',
    'TimeLog',
    'TaskActivityLog',
    'PROJECT_STATUSES',
    'TASK_STATUSES',
    'PRIORITIES',
    'Customer',
    'Vendor',
    'Product',
    'CompanySetting',
    'SalesOrder',
    'SalesOrderLine',
    'PurchaseOrder',
    'PurchaseOrderLine',
    'VendorBill',
    'VendorBillLine',
    'Invoice',
    'InvoiceLine',
    'Expense',
    'ExpenseHistory',
    'EXPENSE_CATEGORIES',
    'AuditLog',
]
