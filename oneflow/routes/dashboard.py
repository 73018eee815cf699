"""
Dashboard Routes

FLOW OVERVIEW
- /api/dashboard/admin            (admin)
- /api/dashboard/project-manager  (project_manager, admin)
- /api/dashboard/team-member      (team_member, project_manager, admin)
- /api/dashboard/finance-manager  (finance_manager, admin)

Each returns {'message', 'user', 'data'} where data holds counts computed for
the calling user.
"""

from flask import Blueprint, g, jsonify
from sqlalchemy import func

from ..models import (
    db, User, Project, Task, TaskActivityLog, Expense, Invoice, VendorBill, SalesOrder, PurchaseOrder
)
from ..models.project import OPEN_TASK_EXCLUDED
from ..models.utils import money
from ..utils.auth_utils import roles_required, token_required

dashboard_bp = Blueprint('dashboard', __name__)

RECENT_ACTIVITY_LIMIT = 5


def _dashboard(title, data):
    return jsonify({'message': title, 'user': g.current_user.to_summary(), 'data': data})


def _sum(column, *criteria):
    return money(db.session.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar())


@dashboard_bp.route('/admin', methods=['GET'])
@token_required
@roles_required('admin')
def admin_dashboard():
    recent = (TaskActivityLog.query
              .order_by(TaskActivityLog.created_at.desc(), TaskActivityLog.id.desc())
              .limit(RECENT_ACTIVITY_LIMIT)
              .all())
    return _dashboard('Admin Dashboard', {
        'totalUsers': User.query.count(),
        'activeUsers': User.query.filter_by(status='active').count(),
        'totalProjects': Project.query.count(),
        'activeProjects': Project.query.filter_by(status='in_progress').count(),
        'totalTasks': Task.query.count(),
        'openTasks': Task.query.filter(Task.status.notin_(OPEN_TASK_EXCLUDED)).count(),
        'pendingExpenses': Expense.query.filter_by(status='submitted').count(),
        'recentActivity': [f'{entry.action}: {entry.task.title}' for entry in recent],
    })


@dashboard_bp.route('/project-manager', methods=['GET'])
@token_required
@roles_required('project_manager', 'admin')
def project_manager_dashboard():
    user = g.current_user
    my_projects = Project.query.filter_by(manager_id=user.id)
    project_ids = db.session.query(Project.id).filter(Project.manager_id == user.id)
    tasks = Task.query.filter(Task.project_id.in_(project_ids))
    team_members = (db.session.query(func.count(func.distinct(Task.assigned_to)))
                    .filter(Task.project_id.in_(project_ids), Task.assigned_to.isnot(None))
                    .scalar())
    return _dashboard('Project Manager Dashboard', {
        'myProjects': my_projects.count(),
        'teamMembers': team_members or 0,
        'pendingTasks': tasks.filter(Task.status.notin_(OPEN_TASK_EXCLUDED)).count(),
        'completedTasks': tasks.filter(Task.status == 'completed').count(),
        'expensesAwaitingApproval': (Expense.query
                                     .filter(Expense.project_id.in_(project_ids), Expense.status == 'submitted')
                                     .count()),
        'projects': [p.name for p in my_projects.order_by(Project.name).all()],
    })


@dashboard_bp.route('/team-member', methods=['GET'])
@token_required
@roles_required('team_member', 'project_manager', 'admin')
def team_member_dashboard():
    user = g.current_user
    assigned = Task.query.filter_by(assigned_to=user.id)
    latest = assigned.order_by(Task.updated_at.desc(), Task.id.desc())
    current = latest.filter(Task.status.notin_(OPEN_TASK_EXCLUDED)).first()
    return _dashboard('Team Member Dashboard', {
        'assignedTasks': assigned.count(),
        'completedTasks': assigned.filter(Task.status == 'completed').count(),
        'pendingTasks': assigned.filter(Task.status.notin_(OPEN_TASK_EXCLUDED)).count(),
        'hoursLogged': _sum(Task.hours_logged, Task.assigned_to == user.id),
        'currentProject': current.project.name if current else None,
        'recentTasks': [f'{t.task_id}: {t.title}' for t in latest.limit(RECENT_ACTIVITY_LIMIT).all()],
    })


@dashboard_bp.route('/finance-manager', methods=['GET'])
@token_required
@roles_required('finance_manager', 'admin')
def finance_manager_dashboard():
    return _dashboard('Finance Manager Dashboard', {
        'totalRevenue': _sum(Project.revenue),
        'totalCost': _sum(Project.cost),
        'totalProfit': _sum(Project.profit),
        'draftSalesOrders': SalesOrder.query.filter_by(status='draft').count(),
        'draftPurchaseOrders': PurchaseOrder.query.filter_by(status='draft').count(),
        'unpaidInvoices': Invoice.query.filter_by(status='posted').count(),
        'receivables': _sum(Invoice.grand_total, Invoice.status == 'posted'),
        'unpaidVendorBills': VendorBill.query.filter_by(status='posted').count(),
        'payables': _sum(VendorBill.grand_total, VendorBill.status == 'posted'),
        'expensesToReimburse': Expense.query.filter_by(status='approved').count(),
    })
