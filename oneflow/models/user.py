"""
User Model

FLOW OVERVIEW
- User holds credentials, role, verification state and the pending one-time code.
- set_otp(code, minutes) / check_otp(code) / clear_otp() drive both the signup
  verification and the password-change flows.
- Soft deletion flips status to 'inactive'; rows are never removed.
"""

from datetime import datetime, timedelta
from .database import db
from .utils import iso

ROLES = ('admin', 'project_manager', 'team_member', 'finance_manager')
USER_STATUSES = ('active', 'inactive')


class User(db.Model):
    """User model for authentication and role-based access"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(50), nullable=False, default='team_member')
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default='active')
    profile_picture = db.Column(db.String(255))
    otp = db.Column(db.String(6))
    otp_expires = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin', 'project_manager', 'team_member', 'finance_manager')",
            name='ck_users_role'
        ),
        db.CheckConstraint("status IN ('active', 'inactive')", name='ck_users_status'),
    )

    def __init__(self, email, password, first_name, last_name, role='team_member', **kwargs):
        """Create a user after validating the email and role"""
        from ..utils.validators import validate_email

        email_validation = validate_email(email)
        if not email_validation.is_valid:
            raise ValueError(email_validation.error_message)
        if role not in ROLES:
            raise ValueError(f'Invalid role: {role}')

        super().__init__(
            email=email_validation.sanitized_value,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
            **kwargs
        )

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    def is_active(self):
        """Check if user account is active"""
        return self.status == 'active'

    def set_otp(self, code, expires_in_minutes=10):
        """Store a one-time code with its expiry"""
        self.otp = code
        self.otp_expires = datetime.utcnow() + timedelta(minutes=expires_in_minutes)

    def otp_matches(self, code):
        return bool(self.otp) and self.otp == code

    def otp_expired(self):
        return self.otp_expires is None or datetime.utcnow() > self.otp_expires

    def clear_otp(self):
        self.otp = None
        self.otp_expires = None

    def to_summary(self):
        """Shape returned next to a freshly issued token"""
        return {
            'id': self.id,
            'email': self.email,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'role': self.role,
            'profilePicture': self.profile_picture,
        }

    def to_dict(self):
        """Convert model to dictionary (never exposes the hash or the OTP)."""
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'is_verified': self.is_verified,
            'status': self.status,
            'profile_picture': self.profile_picture,
            'created_at': iso(self.created_at),
        }
