"""
Flask CLI commands.

FLOW OVERVIEW
- flask --app app init-db           create missing tables
- flask --app app seed-db           insert sample settings/customers/vendors/products
- flask --app app create-user EMAIL create a verified, active user (any role)
- flask --app app activate-user EMAIL
"""

import click

from .models import db, User, ROLES
from .models.seed import seed_database
from .utils.auth_utils import hash_password
from .utils.validators import validate_email, validate_password


def register_commands(app):

    @app.cli.command('init-db')
    def init_db():
        """Create database tables that do not exist yet."""
        db.create_all()
        click.echo('Database initialized')

    @app.cli.command('seed-db')
    def seed_db():
        """Insert sample data into empty tables."""
        inserted = seed_database()
        if inserted:
            for table, count in inserted.items():
                click.echo(f'{table}: {count} rows')
        else:
            click.echo('Nothing to seed')

    @app.cli.command('create-user')
    @click.argument('email')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--first-name', default='Admin')
    @click.option('--last-name', default='User')
    @click.option('--role', type=click.Choice(ROLES), default='admin')
    def create_user(email, password, first_name, last_name, role):
        """Create a verified, active user."""
        email_result = validate_email(email)
        if not email_result.is_valid:
            raise click.BadParameter(email_result.error_message, param_hint='EMAIL')
        password_result = validate_password(password)
        if not password_result.is_valid:
            raise click.BadParameter(password_result.error_message, param_hint='--password')
        if User.query.filter_by(email=email_result.sanitized_value).first():
            raise click.ClickException(f'User {email_result.sanitized_value} already exists')

        user = User(
            email=email_result.sanitized_value,
            password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_verified=True,
            status='active',
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f'User {user.email} created (id {user.id}, role {user.role})')

    @app.cli.command('activate-user')
    @click.argument('email')
    def activate_user(email):
        """Mark a user verified and active."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if user is None:
            raise click.ClickException(f'User {email} not found')
        user.is_verified = True
        user.status = 'active'
        user.clear_otp()
        db.session.commit()
        click.echo(f'User {user.email} activated')
