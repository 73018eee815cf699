"""
Routes Package

This package contains all Flask route blueprints.
"""

from .auth import auth_bp
from .profile import profile_bp
from .users import users_bp
from .dashboard import dashboard_bp
from .projects import projects_bp
from .tasks import tasks_bp
from .products import products_bp
from .sales_orders import sales_orders_bp
from .purchase_orders import purchase_orders_bp
from .vendor_bills import vendor_bills_bp
from .invoices import invoices_bp
from .expenses import expenses_bp
from .analytics import analytics_bp
from .audit import audit_bp
from .main import main_bp

# (blueprint, url_prefix) in registration order
API_BLUEPRINTS = [
    (auth_bp, '/api/auth'),
    (profile_bp, '/api/profile'),
    (users_bp, '/api/users'),
    (dashboard_bp, '/api/dashboard'),
    (projects_bp, '/api/projects'),
    (tasks_bp, '/api/tasks'),
    (products_bp, '/api/products'),
    (sales_orders_bp, '/api/sales-orders'),
    (purchase_orders_bp, '/api/purchase-orders'),
    (vendor_bills_bp, '/api/vendor-bills'),
    (invoices_bp, '/api/invoices'),
    (expenses_bp, '/api/expenses'),
    (analytics_bp, '/api/analytics'),
    (audit_bp, '/api/audit-logs'),
]

__all__ = [
    'auth_bp',
    'profile_bp',
    'users_bp',
    'dashboard_bp',
    'projects_bp',
    'tasks_bp',
    'products_bp',
    'sales_orders_bp',
    'purchase_orders_bp',
    'vendor_bills_bp',
    'invoices_bp',
    'expenses_bp',
    'analytics_bp',
    'audit_bp',
    'main_bp',
    'API_BLUEPRINTS',
]
