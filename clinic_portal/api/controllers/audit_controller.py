from flask import request, jsonify
from clinic_portal.models.system_models import AuditLog


def get_audit_log():
    """Most recent audit entries, optionally filtered by action or user."""
    query = AuditLog.query
    if request.args.get('action'):
        query = query.filter_by(action=request.args['action'])
    if request.args.get('user_id', type=int):
        query = query.filter_by(user_id=request.args.get('user_id', type=int))

    limit = min(request.args.get('limit', 100, type=int), 500)
    entries = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify({'entries': [e.to_dict() for e in entries]}), 200
