"""
Audit Trail Helpers

record_audit() adds an AuditLog row to the current session; it is committed
together with the change it describes.
"""

from ..models import db, AuditLog


def record_audit(action, entity, entity_id, user_id, before=None, after=None):
    entry = AuditLog(
        action=action,
        entity=entity,
        entity_id=entity_id,
        user_id=user_id,
        before_values=before,
        after_values=after,
    )
    db.session.add(entry)
    return entry
