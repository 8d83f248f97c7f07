from flask import request, jsonify
from flask_jwt_extended import get_jwt_identity
from sqlalchemy.exc import IntegrityError
from clinic_portal.extensions import db
from clinic_portal.models.user_models import User, Role, UserRole, ROLE_STAFF, ROLE_ADMIN
from clinic_portal.utils.encryption_util import encryptor
from clinic_portal.utils.errors import ConflictError
from clinic_portal.utils.validators import missing_fields


def get_current_user_details():
    """Get details for the currently authenticated user."""
    user = db.session.get(User, int(get_jwt_identity()))

    if not user:
        return jsonify({"error": "User not found"}), 404

    data = user.to_dict()
    if user.patient:
        data['patient'] = user.patient.to_dict()
    return jsonify(data), 200


def get_all_users_list():
    """Lists staff and admin identities for the admin screen."""
    users = (
        User.query.join(UserRole).join(Role)
        .filter(Role.name.in_([ROLE_STAFF, ROLE_ADMIN]))
        .distinct()
        .order_by(User.created_at)
        .all()
    )
    return jsonify({'users': [u.to_dict() for u in users]}), 200


def create_staff_user():
    """Admin-only: creates a staff identity with an initial password."""
    data = request.get_json(silent=True) or {}
    if missing_fields(data, ('email', 'password')):
        return jsonify({'error': 'Missing required fields: email, password'}), 400

    role_names = data.get('roles') or [ROLE_STAFF]
    if any(name not in (ROLE_STAFF, ROLE_ADMIN) for name in role_names):
        return jsonify({'error': 'Invalid role'}), 400

    try:
        user = build_staff_user(data['email'], data['password'], data.get('full_name'), role_names)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Email already exists'}), 409

    return jsonify({'message': 'Staff user created successfully', 'user': user.to_dict()}), 201


def build_staff_user(email, password, full_name=None, role_names=(ROLE_STAFF,)):
    """Builds an unsaved staff User with its role assignments."""
    if User.query.filter_by(email_hash=User.create_hash(email)).first():
        raise ConflictError('Email already exists')

    roles = [Role.get_or_create(name) for name in role_names]
    user = User(
        email=encryptor.encrypt(email),
        email_hash=User.create_hash(email),
        full_name=encryptor.encrypt(full_name),
        user_metadata={'role': role_names[0]},
    )
    user.set_password(password)
    for role in roles:
        user.role_assignments.append(UserRole(role=role))
    return user
