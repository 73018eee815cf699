"""
Authorization Rules

FLOW OVERVIEW
- can_manage_project(user, project): admin, or the project manager who owns it.
- can_view_project(user, project): managers as above, any finance manager, or a
  team member with a task on the project.
- is_project_member(user, project): used by expense creation (manager, assignee, admin).
- has_expense_permission(user, action, expense=None): the expense action table.
"""

from ..models import Task

FINANCE_ROLES = ('admin', 'project_manager', 'finance_manager')
MANAGER_ROLES = ('admin', 'project_manager')

EXPENSE_ACTIONS = {
    'create': ('team_member', 'project_manager', 'admin'),
    'view_own': ('team_member', 'project_manager', 'admin', 'finance_manager'),
    'view_project': ('project_manager', 'admin'),
    'view_all': ('admin', 'finance_manager'),
    'approve': ('project_manager', 'admin'),
    'reimburse': ('admin', 'finance_manager'),
}


def can_manage_project(user, project):
    if user.role == 'admin':
        return True
    return user.role == 'project_manager' and project.manager_id == user.id


def has_task_on_project(user, project):
    return Task.query.filter_by(project_id=project.id, assigned_to=user.id).first() is not None


def can_view_project(user, project):
    if user.role in ('admin', 'finance_manager'):
        return True
    if user.role == 'project_manager':
        return project.manager_id == user.id
    return has_task_on_project(user, project)


def is_project_member(user, project):
    if user.role == 'admin' or project.manager_id == user.id:
        return True
    return has_task_on_project(user, project)


def has_expense_permission(user, action, expense=None):
    """True when `user` may perform `action` (on `expense` where relevant)"""
    if action == 'edit_draft':
        return (
            expense is not None
            and expense.status == 'draft'
            and (expense.submitted_by == user.id or user.role in MANAGER_ROLES)
        )
    if action == 'view':
        if expense is None:
            return False
        if user.role in EXPENSE_ACTIONS['view_all'] or expense.submitted_by == user.id:
            return True
        return (
            user.role == 'admin'
            or (user.role == 'project_manager' and expense.project is not None
                and expense.project.manager_id == user.id)
        )
    return user.role in EXPENSE_ACTIONS.get(action, ())
