"""
API Utilities Module

FLOW OVERVIEW
- request_payload() → JSON object body, or the form fields of a multipart request.
- validation_response(errors) → 400 with `{'errors': [{'field', 'message'}]}`.
- not_found(label) → 404 with `{'message': '<label> not found'}`.
- commit_or_rollback(action) → commit; on failure roll back, log, and return the
  error response (409 for constraint violations, 500 otherwise). None on success.

Used by every blueprint so that responses keep one shape.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from flask import jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import db

logger = logging.getLogger(__name__)


def request_payload() -> Dict[str, Any]:
    """Return the request body as a dict regardless of content type."""
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return request.form.to_dict()


def validation_response(errors: List[Dict[str, str]]) -> Tuple[Any, int]:
    return jsonify({'errors': errors}), 400


def not_found(label: str) -> Tuple[Any, int]:
    return jsonify({'message': f'{label} not found'}), 404


def commit_or_rollback(action: str) -> Optional[Tuple[Any, int]]:
    """
    Commit the session.

    Args:
        action: Short description for the log line (e.g. 'creating project')

    Returns:
        None on success, otherwise an error response tuple
    """
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning('Integrity error while %s', action, exc_info=True)
        return jsonify({'message': 'Request conflicts with existing data'}), 409
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception('Database error while %s', action)
        return jsonify({'message': 'Server error'}), 500
    return None
