"""
Analytics Routes

FLOW OVERVIEW
- /api/analytics [GET]  (admin, project_manager)
  • Filters: startDate + endDate (project creation date), projectId, role (manager role).
  • Project managers only ever see projects they manage.
  • Returns per-project revenue/cost/profit/progress, a monthly trend for the
    latest 12 months with projects, totals and a summary.
- /api/analytics/projects [GET]
  • Project dropdown, limited to managed projects for a project manager.
"""

from collections import OrderedDict
from datetime import datetime, time, timedelta
from decimal import Decimal

from flask import Blueprint, g, jsonify, request

from ..models import Project, User
from ..models.utils import full_name, iso, money
from ..utils.auth_utils import roles_required, token_required
from ..utils.validators import parse_date

analytics_bp = Blueprint('analytics', __name__)

TREND_MONTHS = 12
ZERO = Decimal('0')


def _scoped_projects(user):
    query = Project.query
    if user.role == 'project_manager':
        query = query.filter(Project.manager_id == user.id)
    return query


def _project_row(project):
    return {
        'id': project.id,
        'name': project.name,
        'revenue': money(project.revenue or ZERO),
        'cost': money(project.cost or ZERO),
        'profit': money(project.profit or ZERO),
        'budget': money(project.budget),
        'progress': project.progress,
        'status': project.status,
        'created_at': iso(project.created_at),
        'manager_name': full_name(project.manager),
        'manager_role': project.manager.role if project.manager else None,
    }


def monthly_trend(projects, months=TREND_MONTHS):
    """Revenue/cost/profit per creation month (YYYY-MM), newest first"""
    buckets = OrderedDict()
    for project in sorted(projects, key=lambda p: p.created_at or datetime.min, reverse=True):
        if project.created_at is None:
            continue
        month = project.created_at.strftime('%Y-%m')
        bucket = buckets.setdefault(month, {'revenue': ZERO, 'cost': ZERO, 'profit': ZERO})
        bucket['revenue'] += project.revenue or ZERO
        bucket['cost'] += project.cost or ZERO
        bucket['profit'] += project.profit or ZERO
    return [
        {'month': month, 'revenue': money(v['revenue']), 'cost': money(v['cost']), 'profit': money(v['profit'])}
        for month, v in list(buckets.items())[:months]
    ]


@analytics_bp.route('', methods=['GET'])
@analytics_bp.route('/', methods=['GET'])
@token_required
@roles_required('admin', 'project_manager')
def get_analytics():
    query = _scoped_projects(g.current_user)
    args = request.args

    project_id = args.get('projectId')
    if project_id and project_id != 'all':
        if not project_id.isdigit():
            return jsonify({'message': 'projectId must be an integer'}), 400
        query = query.filter(Project.id == int(project_id))

    start = parse_date(args.get('startDate'), 'startDate')
    end = parse_date(args.get('endDate'), 'endDate')
    if not start.is_valid or not end.is_valid:
        return jsonify({'message': start.error_message or end.error_message}), 400
    if start.sanitized_value and end.sanitized_value:
        query = query.filter(
            Project.created_at >= datetime.combine(start.sanitized_value, time.min),
            Project.created_at < datetime.combine(end.sanitized_value + timedelta(days=1), time.min),
        )

    role = args.get('role')
    if role and role != 'all':
        query = query.join(User, Project.manager_id == User.id).filter(User.role == role)

    projects = query.order_by(Project.created_at.desc(), Project.id.desc()).all()
    rows = [_project_row(p) for p in projects]

    totals = {
        'totalRevenue': money(sum((p.revenue or ZERO for p in projects), ZERO)),
        'totalCost': money(sum((p.cost or ZERO for p in projects), ZERO)),
        'totalProfit': money(sum((p.profit or ZERO for p in projects), ZERO)),
    }
    avg_progress = sum(p.progress for p in projects) / len(projects) if projects else 0

    return jsonify({
        'projects': rows,
        'monthlyTrend': monthly_trend(projects),
        'totals': totals,
        'summary': {
            'totalProjects': len(projects),
            'avgProgress': avg_progress,
        },
    })


@analytics_bp.route('/projects', methods=['GET'])
@token_required
@roles_required('admin', 'project_manager')
def analytics_projects():
    projects = _scoped_projects(g.current_user).order_by(Project.name).all()
    return jsonify([{'id': p.id, 'name': p.name} for p in projects])
