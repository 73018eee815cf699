"""
Financial Document Helpers

FLOW OVERVIEW
- scoped_documents(model, user): admins and finance managers see every document;
  project managers only those on projects they manage.
- load_document(model, id, user, label) → (document, None) | (None, error response).
- resolve_project(project_id, user, errors): the project must exist and be
  within the user's reach.
- apply_lines(document, line_model, raw_lines, ...): rebuild lines and totals.
- transition(document, from_status, to_status, entity, user, message):
  status change + audit row + metric, or a 400 response when not allowed.
"""

from flask import jsonify

from ..models import db, Project
from .audit import record_audit
from .line_items import build_lines
from .prom_metrics import observe_transition
from .validators import parse_int


def can_access_project_documents(user, project):
    if project is None:
        return False
    if user.role in ('admin', 'finance_manager'):
        return True
    return user.role == 'project_manager' and project.manager_id == user.id


def scoped_documents(model, user):
    query = model.query
    if user.role == 'project_manager':
        query = query.join(Project, model.project_id == Project.id).filter(Project.manager_id == user.id)
    return query


def load_document(model, document_id, user, label):
    document = db.session.get(model, document_id)
    if document is None:
        return None, (jsonify({'message': f'{label} not found'}), 404)
    if not can_access_project_documents(user, document.project):
        return None, (jsonify({'message': 'Access denied'}), 403)
    return document, None


def resolve_counterparty(model, value, field_name, label, errors):
    """Customer or vendor row for a request id"""
    counterparty_id = errors.check(field_name, parse_int(value, label, required=True))
    if counterparty_id is None:
        return None
    counterparty = db.session.get(model, counterparty_id)
    if counterparty is None:
        errors.add(field_name, f'{label} not found')
    return counterparty


def resolve_project(value, user, errors):
    project_id = errors.check('project_id', parse_int(value, 'Project', required=True))
    if project_id is None:
        return None
    project = db.session.get(Project, project_id)
    if project is None:
        errors.add('project_id', 'Project not found')
        return None
    if not can_access_project_documents(user, project):
        errors.add('project_id', 'You can only use projects you manage')
        return None
    return project


def apply_lines(document, line_model, raw_lines, product_flag=None, allow_tasks=False, project_id=None):
    """Replace the document's lines; raises LineItemError on invalid input"""
    rows, totals = build_lines(line_model, raw_lines, product_flag=product_flag,
                               allow_tasks=allow_tasks, project_id=project_id)
    document.lines = rows
    document.apply_totals(totals)
    return totals


def copy_lines(source_lines, line_model):
    """Clone entered values and computed amounts onto another document type"""
    copies = []
    for line in source_lines:
        copies.append(line_model(
            line_total=line.line_total,
            tax_amount=line.tax_amount,
            line_grand_total=line.line_grand_total,
            **line.copy_values()
        ))
    return copies


def transition(document, from_status, to_status, entity, user, message):
    """Move `document` from one status to the next; returns an error response or None"""
    if document.status != from_status:
        return jsonify({'message': message}), 400
    document.status = to_status
    document.updated_by = user.id
    record_audit(
        to_status.upper(), entity, document.id, user.id,
        before={'status': from_status}, after={'status': to_status},
    )
    observe_transition(entity.lower(), to_status)
    return None
