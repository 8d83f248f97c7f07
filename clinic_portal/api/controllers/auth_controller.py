from datetime import datetime, timezone
from flask import request, jsonify
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    get_jwt_identity, get_jwt
)
from clinic_portal.extensions import db
from clinic_portal.models.user_models import User
from clinic_portal.models.system_models import RevokedToken


def _issue_tokens(user):
    # NOTE: We do NOT put PII like phone or email in the token payload.
    access_token = create_access_token(
        identity=str(user.id), additional_claims={'roles': user.role_names}
    )
    refresh_token = create_refresh_token(identity=str(user.id))
    return access_token, refresh_token


def login_user():
    """Handles login by email (staff) or phone (patients) using hashed lookups."""
    data = request.get_json(silent=True)
    login = (data or {}).get('email') or (data or {}).get('phone')
    if not login or not data.get('password'):
        return jsonify({'error': 'Email or phone and password required'}), 400

    user = User.find_by_login(login)

    if not user or not user.check_password(data['password']):
        return jsonify({'error': 'Invalid credentials'}), 401
    if user.account_locked:
        return jsonify({'error': 'Account locked due to multiple failed attempts'}), 423
    if not user.is_active:
        return jsonify({'error': 'Account deactivated'}), 403

    access_token, refresh_token = _issue_tokens(user)
    return jsonify({
        'access_token': access_token,
        'refresh_token': refresh_token,
        'user': {'id': user.id, 'roles': user.role_names}
    }), 200


def logout_user():
    token = get_jwt()
    revoked_token = RevokedToken(
        jti=token['jti'],
        expires_at=datetime.fromtimestamp(token['exp'], tz=timezone.utc).replace(tzinfo=None)
    )
    db.session.add(revoked_token)
    db.session.commit()
    return jsonify({'message': 'Successfully logged out'}), 200


def refresh_token():
    user_id = get_jwt_identity()
    user = db.session.get(User, int(user_id))
    if not user or not user.is_active:
        return jsonify({'error': 'User not found or inactive'}), 403

    access_token = create_access_token(
        identity=user_id, additional_claims={'roles': user.role_names}
    )
    return jsonify({'access_token': access_token}), 200


def change_user_password():
    user = db.session.get(User, int(get_jwt_identity()))
    data = request.get_json(silent=True) or {}

    if not data.get('current_password') or not data.get('new_password'):
        return jsonify({'error': 'Current and new passwords required'}), 400
    if not user.check_password(data['current_password']):
        return jsonify({'error': 'Invalid current password'}), 401

    try:
        user.set_password(data['new_password'])
        db.session.commit()
        return jsonify({'message': 'Password changed successfully'}), 200
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
