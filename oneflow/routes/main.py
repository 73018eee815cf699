"""
Service routes.

FLOW OVERVIEW
- /api/health [GET]
  • JSON liveness check.
- /metrics [GET]
  • Prometheus exposition (multiprocess-aware).
- /uploads/<path> [GET]
  • Serves stored profile pictures, project images, receipts and attachments.
"""

from flask import Blueprint, Response, current_app, jsonify, send_from_directory

from ..utils.prom_metrics import metrics_latest, CONTENT_TYPE_LATEST

main_bp = Blueprint('main', __name__)


@main_bp.route('/api/health')
def health():
    """Health check endpoint"""
    return jsonify({'message': 'Server is running', 'status': 'OK'})


@main_bp.route('/metrics')
def metrics():
    """Prometheus metrics endpoint."""
    output = metrics_latest()
    return Response(output, mimetype=CONTENT_TYPE_LATEST)


@main_bp.route('/uploads/<path:filename>')
def uploaded_file(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
