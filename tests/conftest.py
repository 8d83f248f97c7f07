from concurrent.futures import Future
from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from clinic_portal import create_app
from clinic_portal.extensions import db
from clinic_portal.models.patient_models import Patient
from clinic_portal.models.user_models import User, Role, UserRole, ROLE_STAFF, ROLE_PATIENT, ROLE_ADMIN
from clinic_portal.utils.encryption_util import encryptor, lookup_hash

STAFF_EMAIL = 'nurse@clinic.test'
STAFF_PASSWORD = 'correct-horse-battery'


class ImmediateExecutor:
    """Runs submitted work inline so dispatch results are visible to the test."""

    def __init__(self):
        self.calls = []

    def submit(self, fn, *args, **kwargs):
        self.calls.append(args)
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:  # surfaced through the future like a real executor
            future.set_exception(e)
        return future

    def shutdown(self, wait=True):
        pass


@pytest.fixture
def app():
    app = create_app('testing')
    app.extensions['sms_dispatcher'].executor = ImmediateExecutor()
    with app.app_context():
        db.create_all()
        for name in (ROLE_STAFF, ROLE_PATIENT, ROLE_ADMIN):
            Role.get_or_create(name)
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email=None, phone=None, password=STAFF_PASSWORD, roles=(ROLE_STAFF,), metadata_role=None):
    user = User(
        email=encryptor.encrypt(email),
        email_hash=lookup_hash(email) or None,
        phone=encryptor.encrypt(phone),
        phone_hash=lookup_hash(phone) or None,
        user_metadata={'role': metadata_role or roles[0]} if roles else {},
    )
    user.set_password(password)
    for name in roles:
        user.role_assignments.append(UserRole(role=Role.get_by_name(name)))
    db.session.add(user)
    db.session.commit()
    return user


def make_patient(first_name='Jane', last_name='Doe', phone='+61412345678', user=None):
    patient = Patient(
        first_name=encryptor.encrypt(first_name),
        last_name=encryptor.encrypt(last_name),
        phone=encryptor.encrypt(phone),
        phone_hash=lookup_hash(phone),
        user_id=user.id if user else None,
        created_at=datetime.utcnow(),
    )
    db.session.add(patient)
    db.session.commit()
    return patient


def bearer(user):
    token = create_access_token(identity=str(user.id), additional_claims={'roles': user.role_names})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def staff_user(app):
    return make_user(email=STAFF_EMAIL)


@pytest.fixture
def staff_headers(staff_user):
    return bearer(staff_user)


@pytest.fixture
def service_headers(app):
    return {'Authorization': f"Bearer {app.config['SERVICE_ROLE_KEY']}"}
