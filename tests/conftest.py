"""
Test configuration and shared fixtures for OneFlow tests.

This file contains:
- Centralized test configuration
- Shared fixtures: app, client, database session, one user per role
- Helpers for bearer headers and common records (project, task, catalog)
"""

from decimal import Decimal

import pytest

from oneflow import create_app
from oneflow.models import db, User, Project, Task, Customer, Vendor, Product
from oneflow.models.seed import seed_database
from oneflow.utils.auth_utils import generate_jwt_token, hash_password


# Centralized test configuration
TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SECRET_KEY': 'test-secret-key',
    'JWT_SECRET_KEY': 'test-jwt-secret-key',
    'MAIL_SERVER': 'localhost',
    'MAIL_PORT': 587,
    'MAIL_USE_TLS': False,
    'MAIL_USE_SSL': False,
    'MAIL_USERNAME': 'test@example.com',
    'MAIL_PASSWORD': 'test-password',
    'MAIL_DEFAULT_SENDER': 'test@example.com',
    'MAIL_SUPPRESS_SEND': True,
    'BCRYPT_LOG_ROUNDS': 4,
    'SEED_DATABASE': False,
}

TEST_PASSWORD = 'TestPass123'


@pytest.fixture
def app(tmp_path):
    """Create and configure a new app instance for each test."""
    config = dict(TEST_CONFIG, UPLOAD_FOLDER=str(tmp_path / 'uploads'))
    app = create_app(config)
    return app


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture
def app_context(app):
    """Create an application context for database operations."""
    with app.app_context():
        yield


@pytest.fixture
def db_session(app_context):
    """Create a database session and clean up after tests."""
    db.create_all()
    yield db.session
    db.session.remove()
    db.drop_all()


@pytest.fixture
def make_user(db_session):
    """Factory for verified, active users."""
    def _make_user(email, role='team_member', first_name='Test', last_name='User', **kwargs):
        kwargs.setdefault('is_verified', True)
        kwargs.setdefault('status', 'active')
        user = User(
            email=email,
            password=hash_password(TEST_PASSWORD),
            first_name=first_name,
            last_name=last_name,
            role=role,
            **kwargs
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user('admin@example.com', role='admin', first_name='Ada', last_name='Admin')


@pytest.fixture
def manager(make_user):
    return make_user('pm@example.com', role='project_manager', first_name='Pat', last_name='Manager')


@pytest.fixture
def other_manager(make_user):
    return make_user('pm2@example.com', role='project_manager', first_name='Quinn', last_name='Other')


@pytest.fixture
def member(make_user):
    return make_user('member@example.com', role='team_member', first_name='Tess', last_name='Member')


@pytest.fixture
def finance(make_user):
    return make_user('finance@example.com', role='finance_manager', first_name='Fin', last_name='Lead')


@pytest.fixture
def auth_headers(app_context):
    """Bearer headers for a user."""
    def _headers(user):
        return {'Authorization': f'Bearer {generate_jwt_token(user)}'}
    return _headers


@pytest.fixture
def project(db_session, manager):
    """A project managed by `manager`."""
    project = Project(name='Website Redesign', budget=Decimal('10000'), manager_id=manager.id,
                      status='in_progress', priority='high')
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture
def task(db_session, project, member):
    """A task on `project` assigned to `member`."""
    task = Task(task_id='TASK-00001', title='Build landing page', project_id=project.id,
                assigned_to=member.id, priority='medium')
    db_session.add(task)
    db_session.commit()
    return task


@pytest.fixture
def catalog(db_session):
    """Seeded company settings, customers, vendors and products."""
    seed_database()
    return {
        'customer': Customer.query.order_by(Customer.id).first(),
        'vendor': Vendor.query.order_by(Vendor.id).first(),
        'sales_product': Product.query.filter_by(name='Consulting Hours').one(),
        'purchase_product': Product.query.filter_by(name='Hardware Equipment').one(),
        'dual_product': Product.query.filter_by(name='Software License').one(),
    }
