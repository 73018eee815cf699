"""
File Upload Helpers

FLOW OVERVIEW
- save_upload(file, category, allowed_extensions, max_bytes)
  • Reject missing names, disallowed extensions and oversized files (UploadError).
  • Store as UPLOAD_FOLDER/<category>/<category>-<timestamp>-<random><ext>.
  • Return the public path '/uploads/<category>/<name>'.
- delete_upload(public_path): remove a previously stored file if it still exists.
"""

import logging
import os
import secrets
from datetime import datetime

from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.jpeg', '.jpg', '.png', '.gif'}
RECEIPT_EXTENSIONS = {'.jpeg', '.jpg', '.png', '.pdf'}
ATTACHMENT_EXTENSIONS = {'.jpeg', '.jpg', '.png', '.gif', '.pdf', '.txt', '.csv', '.doc', '.docx',
                         '.xls', '.xlsx', '.zip'}

PROFILE_PICTURE_MAX_BYTES = 5 * 1024 * 1024
RECEIPT_MAX_BYTES = 10 * 1024 * 1024
ATTACHMENT_MAX_BYTES = 10 * 1024 * 1024


class UploadError(ValueError):
    """Uploaded file was rejected"""


def _file_size(file_storage):
    stream = file_storage.stream
    position = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(position)
    return size


def save_upload(file_storage, category, allowed_extensions, max_bytes):
    """Validate and persist an uploaded file; returns (public_path, size, original_name)"""
    if file_storage is None or not file_storage.filename:
        raise UploadError('No file provided')

    original_name = secure_filename(file_storage.filename)
    extension = os.path.splitext(original_name)[1].lower()
    if extension not in allowed_extensions:
        allowed = ', '.join(sorted(ext.lstrip('.').upper() for ext in allowed_extensions))
        raise UploadError(f'Only {allowed} files are allowed')

    size = _file_size(file_storage)
    if size > max_bytes:
        raise UploadError(f'File too large (max {max_bytes // (1024 * 1024)}MB)')

    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], category)
    os.makedirs(folder, exist_ok=True)

    stamp = int(datetime.utcnow().timestamp() * 1000)
    stored_name = f'{category}-{stamp}-{secrets.token_hex(4)}{extension}'
    file_storage.save(os.path.join(folder, stored_name))
    logger.info('Stored upload %s (%d bytes) under %s', original_name, size, category)

    return f'/uploads/{category}/{stored_name}', size, original_name


def delete_upload(public_path):
    """Remove a stored upload; missing files are ignored"""
    if not public_path or not public_path.startswith('/uploads/'):
        return False
    relative = public_path[len('/uploads/'):]
    full_path = os.path.join(current_app.config['UPLOAD_FOLDER'], *relative.split('/'))
    if os.path.isfile(full_path):
        os.remove(full_path)
        return True
    return False
