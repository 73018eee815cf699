"""
Audit Log Model

One row per create/update/delete/transition on products and financial documents,
with JSON before/after values.
"""

from datetime import datetime
from .database import db
from .utils import iso, full_name


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(50), nullable=False)
    entity = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    before_values = db.Column(db.JSON)
    after_values = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.Index('idx_audit_logs_entity', 'entity', 'entity_id'),
    )

    user = db.relationship('User')

    def __repr__(self):
        return f'<AuditLog {self.action} {self.entity}#{self.entity_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'entity': self.entity,
            'entity_id': self.entity_id,
            'user_id': self.user_id,
            'user_name': full_name(self.user),
            'before_values': self.before_values,
            'after_values': self.after_values,
            'created_at': iso(self.created_at),
        }
