from flask import request, jsonify, current_app
from flask_jwt_extended import verify_jwt_in_request
from clinic_portal.utils.decorators import current_user


def _service():
    return current_app.extensions['invitation_service']


def handle_invitation_action():
    """Dispatches the invitation function on the `action` query parameter."""
    action = request.args.get('action')
    if action == 'create':
        return create_patient_invitation()
    if action == 'validate':
        return validate_invitation()
    if action == 'activate':
        return activate_account()
    return jsonify({'error': 'Invalid action'}), 400


def create_patient_invitation():
    """Staff-only: registers a patient and issues their invitation."""
    verify_jwt_in_request()
    user = current_user()
    if not user or not user.is_active or not user.has_role('staff', 'admin'):
        return jsonify({'error': 'Permission denied'}), 403

    result = _service().create(request.get_json(silent=True), origin=request.host_url)
    return jsonify(result), 200


def validate_invitation():
    result = _service().validate(request.args.get('token'))
    return jsonify(result), 200


def activate_account():
    result = _service().activate(request.get_json(silent=True))
    return jsonify(result), 200
