"""
Outgoing Mail

FLOW OVERVIEW
- `mail` is the Flask-Mail extension, bound in the app factory.
- send_otp_email(user, otp, purpose): deliver a verification or password-change
  code. Returns False (and logs) when the SMTP hand-off fails so the route can
  answer with a 500.
"""

import logging
import smtplib

from flask import current_app
from flask_mail import Mail, Message

from .prom_metrics import observe_otp_email

logger = logging.getLogger(__name__)

mail = Mail()

OTP_SUBJECTS = {
    'signup': 'OneFlow - Email Verification OTP',
    'password_change': 'OneFlow - Password Change OTP',
}

OTP_INTROS = {
    'signup': 'Your OTP for email verification is',
    'password_change': 'Your OTP for password change is',
}


def send_otp_email(user, otp, purpose='signup'):
    """Send a one-time code to the user"""
    minutes = current_app.config.get('OTP_EXPIRES_MINUTES', 10)
    msg = Message(
        OTP_SUBJECTS[purpose],
        recipients=[user.email],
        body=(
            f'Hello {user.first_name},\n\n'
            f'{OTP_INTROS[purpose]}: {otp}\n\n'
            f'This code will expire in {minutes} minutes.\n'
        ),
    )
    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception('Failed to send %s OTP email to %s', purpose, user.email)
        observe_otp_email(purpose, False)
        return False

    observe_otp_email(purpose, True)
    return True
