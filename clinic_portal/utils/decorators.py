import hmac
from functools import wraps
from flask import request, current_app, jsonify, make_response
from clinic_portal.models.system_models import AuditLog
from clinic_portal.extensions import db
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from sqlalchemy.exc import SQLAlchemyError
from clinic_portal.models.user_models import User


def current_user():
    """Returns the User for the verified JWT identity, or None."""
    user_id = get_jwt_identity()
    if user_id is None:
        return None
    return db.session.get(User, int(user_id))


def _record_audit(action, resource, user_id, resource_id, success, details):
    log_entry = AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        ip_address=request.remote_addr,
        user_agent=(request.headers.get('User-Agent') or '')[:255],
        success=success,
        details=details
    )
    try:
        db.session.add(log_entry)
        db.session.commit()
    except SQLAlchemyError as db_error:
        current_app.audit_logger.error(f"Failed to log audit entry due to DB error: {db_error}")
        db.session.rollback()


def _audit_user_id():
    # Read after the view runs: some views verify the JWT themselves.
    try:
        identity = get_jwt_identity()
    except RuntimeError:
        # No JWT verified for this request (e.g., invitation validate/activate)
        return None
    return int(identity) if identity is not None else None


def audit_log(action, resource):
    """Logs user actions on patient data."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Route parameters such as patient_id identify the resource
            resource_id = next(iter(kwargs.values()), None)

            try:
                raw_response = f(*args, **kwargs)
            except Exception as e:
                user_id = _audit_user_id()
                details = f"An error occurred: {type(e).__name__}"
                _record_audit(action, resource, user_id, str(resource_id) if resource_id is not None else None,
                              False, details)
                current_app.audit_logger.error(
                    f"Action='{action}', Resource='{resource}', UserID='{user_id}', Success='False', Details='{details}'"
                )
                raise

            user_id = _audit_user_id()
            # Use make_response to handle both Response objects and tuples.
            response = make_response(raw_response)
            success = response.status_code < 400
            details = f"Request completed. Status: {response.status_code}"
            _record_audit(action, resource, user_id, str(resource_id) if resource_id is not None else None,
                          success, details)
            current_app.audit_logger.info(
                f"Action='{action}', Resource='{resource}', UserID='{user_id}', Success='{success}', Details='{details}'"
            )
            return response

        return decorated_function
    return decorator


def require_role(*roles):
    """Checks that the authenticated user holds at least one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            user = current_user()

            if not user or not user.is_active:
                return jsonify({'error': 'User not found or inactive'}), 403

            # Admins may act wherever staff may
            if user.has_role('admin') and 'staff' in roles:
                return f(*args, **kwargs)

            if not user.has_role(*roles):
                return jsonify({'error': 'Permission denied'}), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_service_key(f):
    """Allows requests carrying the privileged service key as bearer token or apikey header."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('SERVICE_ROLE_KEY')
        auth_header = request.headers.get('Authorization', '')
        supplied = request.headers.get('apikey')
        if auth_header.startswith('Bearer '):
            supplied = auth_header[len('Bearer '):]

        if not expected or not supplied or not hmac.compare_digest(supplied, expected):
            return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function
