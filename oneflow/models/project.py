"""
Project and Task Models

FLOW OVERVIEW
- Project: owned by a manager (project_manager or admin); carries budget and the
  running financials (cost from paid bills/approved expenses, revenue from paid
  invoices, profit = revenue - cost).
- Task: belongs to a project, optionally assigned to a user, numbered TASK-NNNNN.
- Subtask / TaskComment / TaskAttachment / TimeLog / TaskActivityLog hang off a
  task and are removed with it.
"""

from datetime import datetime
from decimal import Decimal
from .database import db
from .utils import iso, money, full_name

PROJECT_STATUSES = ('planned', 'in_progress', 'completed', 'on_hold')
TASK_STATUSES = ('pending', 'in_progress', 'blocked', 'completed', 'cancelled')
PRIORITIES = ('low', 'medium', 'high')
OPEN_TASK_EXCLUDED = ('completed', 'cancelled')

# Analytics progress weight per project status
STATUS_PROGRESS = {
    'completed': 100,
    'in_progress': 60,
    'planned': 10,
    'on_hold': 0,
}


class Project(db.Model):
    """Project model"""
    __tablename__ = 'projects'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(50), nullable=False, default='planned')
    priority = db.Column(db.String(20), nullable=False, default='medium')
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    deadline = db.Column(db.Date)
    manager_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    tags = db.Column(db.JSON, default=list)
    image_url = db.Column(db.String(500))
    budget = db.Column(db.Numeric(15, 2))
    cost = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal('0'))
    revenue = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal('0'))
    profit = db.Column(db.Numeric(15, 2), nullable=False, default=Decimal('0'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('planned', 'in_progress', 'completed', 'on_hold')",
            name='ck_projects_status'
        ),
        db.CheckConstraint("priority IN ('low', 'medium', 'high')", name='ck_projects_priority'),
        db.CheckConstraint('budget IS NULL OR budget >= 0', name='ck_projects_budget'),
    )

    manager = db.relationship('User', foreign_keys=[manager_id])
    tasks = db.relationship('Task', back_populates='project', lazy='dynamic')

    def __repr__(self):
        return f'<Project {self.name}>'

    def add_cost(self, amount):
        self.cost = (self.cost or Decimal('0')) + Decimal(amount)
        self.recompute_profit()

    def add_revenue(self, amount):
        self.revenue = (self.revenue or Decimal('0')) + Decimal(amount)
        self.recompute_profit()

    def recompute_profit(self):
        self.profit = (self.revenue or Decimal('0')) - (self.cost or Decimal('0'))

    @property
    def progress(self):
        return STATUS_PROGRESS.get(self.status, 0)

    def open_task_count(self):
        """Tasks that still block deletion"""
        return self.tasks.filter(~Task.status.in_(OPEN_TASK_EXCLUDED)).count()

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'start_date': iso(self.start_date),
            'end_date': iso(self.end_date),
            'deadline': iso(self.deadline),
            'manager_id': self.manager_id,
            'manager_name': full_name(self.manager),
            'tags': self.tags or [],
            'image_url': self.image_url,
            'budget': money(self.budget),
            'cost': money(self.cost),
            'revenue': money(self.revenue),
            'profit': money(self.profit),
            'task_count': self.tasks.count(),
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }


class Task(db.Model):
    """Task model"""
    __tablename__ = 'tasks'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.String(20), unique=True, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    project_id = db.Column(db.Integer, db.ForeignKey('projects.id'), nullable=False)
    assigned_to = db.Column(db.Integer, db.ForeignKey('users.id'))
    status = db.Column(db.String(50), nullable=False, default='pending')
    priority = db.Column(db.String(20), nullable=False, default='medium')
    hours_logged = db.Column(db.Numeric(7, 2), nullable=False, default=Decimal('0'))
    estimated_hours = db.Column(db.Numeric(7, 2))
    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('100.00'))
    start_date = db.Column(db.Date)
    deadline = db.Column(db.Date)
    role = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'in_progress', 'blocked', 'completed', 'cancelled')",
            name='ck_tasks_status'
        ),
        db.CheckConstraint("priority IN ('low', 'medium', 'high')", name='ck_tasks_priority'),
    )

    project = db.relationship('Project', back_populates='tasks')
    assignee = db.relationship('User', foreign_keys=[assigned_to])
    subtasks = db.relationship('Subtask', backref='task', cascade='all, delete-orphan',
                               order_by='Subtask.id')
    comments = db.relationship('TaskComment', backref='task', cascade='all, delete-orphan',
                               order_by='TaskComment.created_at')
    attachments = db.relationship('TaskAttachment', backref='task', cascade='all, delete-orphan',
                                  order_by='TaskAttachment.created_at')
    time_logs = db.relationship('TimeLog', backref='task', cascade='all, delete-orphan',
                                order_by='TimeLog.date')
    activity_logs = db.relationship('TaskActivityLog', backref='task', cascade='all, delete-orphan',
                                    order_by='TaskActivityLog.id')

    def __repr__(self):
        return f'<Task {self.task_id} {self.title}>'

    def recompute_hours(self):
        """hours_logged always equals the sum of the task's time logs"""
        self.hours_logged = sum((log.hours for log in self.time_logs), Decimal('0'))

    def to_dict(self):
        """Convert model to dictionary."""
        return {
            'id': self.id,
            'task_id': self.task_id,
            'title': self.title,
            'description': self.description,
            'project_id': self.project_id,
            'project_name': self.project.name if self.project else None,
            'assigned_to': self.assigned_to,
            'assignee_name': full_name(self.assignee),
            'status': self.status,
            'priority': self.priority,
            'hours_logged': money(self.hours_logged),
            'estimated_hours': money(self.estimated_hours),
            'hourly_rate': money(self.hourly_rate),
            'start_date': iso(self.start_date),
            'deadline': iso(self.deadline),
            'role': self.role,
            'subtask_count': len(self.subtasks),
            'completed_subtasks': sum(1 for s in self.subtasks if s.is_completed),
            'comment_count': len(self.comments),
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }

    def to_detail_dict(self):
        data = self.to_dict()
        data.update({
            'subtasks': [s.to_dict() for s in self.subtasks],
            'comments': [c.to_dict() for c in self.comments],
            'attachments': [a.to_dict() for a in self.attachments],
            'time_logs': [t.to_dict() for t in self.time_logs],
            'activity_logs': [a.to_dict() for a in reversed(self.activity_logs)],
        })
        return data


class Subtask(db.Model):
    __tablename__ = 'subtasks'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'title': self.title,
            'is_completed': self.is_completed,
            'created_at': iso(self.created_at),
        }


class TaskComment(db.Model):
    __tablename__ = 'task_comments'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    comment = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    author = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'user_id': self.user_id,
            'user_name': full_name(self.author),
            'comment': self.comment,
            'created_at': iso(self.created_at),
        }


class TaskAttachment(db.Model):
    __tablename__ = 'task_attachments'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    filename = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_size = db.Column(db.Integer)
    mime_type = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'user_id': self.user_id,
            'filename': self.filename,
            'file_path': self.file_path,
            'file_size': self.file_size,
            'mime_type': self.mime_type,
            'created_at': iso(self.created_at),
        }


class TimeLog(db.Model):
    __tablename__ = 'time_logs'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    hours = db.Column(db.Numeric(5, 2), nullable=False)
    date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint('hours > 0', name='ck_time_logs_hours'),
    )

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'user_id': self.user_id,
            'user_name': full_name(self.user),
            'hours': money(self.hours),
            'date': iso(self.date),
            'note': self.note,
            'created_at': iso(self.created_at),
        }


class TaskActivityLog(db.Model):
    __tablename__ = 'task_activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'task_id': self.task_id,
            'user_id': self.user_id,
            'user_name': full_name(self.user),
            'action': self.action,
            'details': self.details,
            'created_at': iso(self.created_at),
        }
