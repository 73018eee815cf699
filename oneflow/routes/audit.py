"""
Audit Log Routes

- /api/audit-logs [GET]  (admin)
  • Newest first; optional ?entity=PRODUCT&entity_id=3 and ?limit= (default 100, max 500).
"""

from flask import Blueprint, jsonify, request

from ..models import AuditLog
from ..utils.auth_utils import roles_required, token_required

audit_bp = Blueprint('audit', __name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


@audit_bp.route('', methods=['GET'])
@audit_bp.route('/', methods=['GET'])
@token_required
@roles_required('admin')
def list_audit_logs():
    query = AuditLog.query
    entity = request.args.get('entity')
    if entity:
        query = query.filter(AuditLog.entity == entity.upper())
    entity_id = request.args.get('entity_id', type=int)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    limit = max(1, min(request.args.get('limit', DEFAULT_LIMIT, type=int), MAX_LIMIT))
    entries = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([e.to_dict() for e in entries])
