import logging
import secrets
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clinic_portal.extensions import db
from clinic_portal.models.patient_models import Patient, PatientInvitation
from clinic_portal.models.user_models import User, Role, UserRole, ROLE_PATIENT
from clinic_portal.utils.encryption_util import encryptor, lookup_hash
from clinic_portal.utils.errors import (
    ValidationError, ConflictError, InvitationInvalidError, PersistenceError
)
from clinic_portal.utils.validators import is_valid_au_phone, is_iso_date, missing_fields

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16  # 128 bits
PHONE_FORMAT_ERROR = 'Invalid phone format. Must be Australian format: +61[2-478]XXXXXXXX'
ACCOUNT_CREATION_ERROR = 'Failed to create account. Phone may already be in use.'
REQUIRED_PATIENT_FIELDS = ('first_name', 'last_name', 'phone')


def generate_invitation_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def _request_body(data):
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Invalid request body')
    return data


class InvitationService:
    """
    Issues patient invitations and turns them into patient accounts.

    An invitation is valid while ``used_at`` is null and ``expires_at`` lies
    in the future. ``activate`` creates the identity first; role assignment,
    patient linking and the used marker follow as separate best-effort
    writes. Each of those writes checks whether it already happened, so
    retrying with a still-valid token picks up where a failed attempt
    stopped.
    """

    def __init__(self, dispatcher, ttl=timedelta(days=7), activation_base_url=None):
        self.dispatcher = dispatcher
        self.ttl = ttl
        self.activation_base_url = activation_base_url.rstrip('/') if activation_base_url else None

    # --- create -----------------------------------------------------------

    def create(self, data, origin=None):
        """Registers a patient, issues an invitation and queues the SMS."""
        data = _request_body(data)
        if missing_fields(data, REQUIRED_PATIENT_FIELDS):
            raise ValidationError('Missing required fields')
        if not all(isinstance(data[field], str) for field in REQUIRED_PATIENT_FIELDS):
            raise ValidationError('first_name, last_name and phone must be strings')

        phone = data['phone']
        if not is_valid_au_phone(phone):
            raise ValidationError(PHONE_FORMAT_ERROR)

        date_of_birth = data.get('date_of_birth') or None
        if date_of_birth and not is_iso_date(date_of_birth):
            raise ValidationError('Invalid date_of_birth. Expected YYYY-MM-DD')

        if Patient.find_by_phone(phone):
            raise ConflictError('Patient with this phone number already exists')

        patient = Patient(
            first_name=encryptor.encrypt(data['first_name']),
            last_name=encryptor.encrypt(data['last_name']),
            phone=encryptor.encrypt(phone),
            phone_hash=lookup_hash(phone),
            date_of_birth=encryptor.encrypt(date_of_birth),
            external_id=data.get('external_id') or None,
        )
        db.session.add(patient)
        try:
            db.session.flush()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('Patient with this phone number already exists')
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating patient: {e}")
            raise PersistenceError('Failed to create patient')

        token = generate_invitation_token()
        expires_at = datetime.utcnow() + self.ttl
        invitation = PatientInvitation(patient_id=patient.id, token=token, expires_at=expires_at)
        db.session.add(invitation)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating invitation: {e}")
            raise PersistenceError('Failed to create invitation')

        activation_url = self.build_activation_url(token, origin)
        patient_data = patient.to_dict()
        self.dispatcher.dispatch({
            'phone': patient_data['phone'],
            'first_name': patient_data['first_name'],
            'last_name': patient_data['last_name'],
            'activation_url': activation_url,
        })

        logger.info(f"Patient created successfully: patient_id={patient.id}, invitation_id={invitation.id}")
        return {
            'success': True,
            'patient': patient_data,
            'invitation': {
                'token': token,
                'expires_at': expires_at.isoformat(),
                'activation_url': activation_url,
            },
        }

    def build_activation_url(self, token, origin=None):
        base = self.activation_base_url or (origin or '').rstrip('/')
        return f"{base}/activate?{urlencode({'token': token})}"

    # --- validate ---------------------------------------------------------

    def validate(self, token):
        """Read-only validity check. Invalid tokens are a result, not an error."""
        if not token:
            raise ValidationError('Token required')

        invitation = PatientInvitation.find_valid(token)
        if invitation is None:
            return {'valid': False, 'error': 'Invalid or expired token'}
        return {'valid': True, 'patient': invitation.patient.to_dict()}

    # --- activate ---------------------------------------------------------

    def activate(self, data):
        """Creates the patient's identity from a valid invitation."""
        data = _request_body(data)
        token, password = data.get('token'), data.get('password')
        if not token or not password:
            raise ValidationError('Token and password required')
        if not isinstance(token, str) or not isinstance(password, str):
            raise ValidationError('Token and password must be strings')
        if not User.validate_password_strength(password):
            raise ValidationError('Password must be at least 8 characters')

        invitation = PatientInvitation.find_valid(token)
        if invitation is None:
            raise InvitationInvalidError('Invalid or expired invitation')

        patient = invitation.patient
        patient_id = patient.id
        user = self._create_identity(patient, password)
        user_id = user.id

        try:
            self._assign_patient_role(user_id)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating user role for user {user_id}: {e}")

        try:
            self._link_patient(patient_id, user_id)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error linking patient {patient_id} to user {user_id}: {e}")

        try:
            self._mark_used(token)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error marking invitation used for patient {patient_id}: {e}")

        logger.info(f"Account activated successfully: user_id={user_id}, patient_id={patient_id}")
        return {'success': True, 'message': 'Account activated successfully'}

    def _create_identity(self, patient, password):
        phone = encryptor.decrypt(patient.phone)
        phone_hash = lookup_hash(phone)

        existing = User.query.filter_by(phone_hash=phone_hash).first()
        if existing is not None:
            if not self._can_resume(existing, patient):
                logger.error(f"Identity for patient {patient.id} not created: phone already registered")
                raise PersistenceError(ACCOUNT_CREATION_ERROR)
            # An earlier attempt created the identity but never marked the invitation used.
            logger.warning(f"Resuming activation for patient {patient.id} with existing user {existing.id}")
            existing.set_password(password)
            try:
                db.session.commit()
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Error updating resumed identity {existing.id}: {e}")
                raise PersistenceError(ACCOUNT_CREATION_ERROR)
            return existing

        user = User(
            phone=encryptor.encrypt(phone),
            phone_hash=phone_hash,
            phone_confirmed_at=datetime.utcnow(),
            user_metadata={'role': ROLE_PATIENT},
        )
        user.set_password(password)
        db.session.add(user)
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating auth user: {e}")
            raise PersistenceError(ACCOUNT_CREATION_ERROR)
        return user

    @staticmethod
    def _can_resume(user, patient):
        role = (user.user_metadata or {}).get('role')
        return role == ROLE_PATIENT and patient.user_id in (None, user.id)

    def _assign_patient_role(self, user_id):
        role = Role.get_or_create(ROLE_PATIENT)
        if UserRole.query.filter_by(user_id=user_id, role_id=role.id).first():
            return
        db.session.add(UserRole(user_id=user_id, role_id=role.id))
        db.session.commit()

    def _link_patient(self, patient_id, user_id):
        patient = db.session.get(Patient, patient_id)
        if patient.user_id == user_id:
            return
        patient.user_id = user_id
        db.session.commit()

    def _mark_used(self, token):
        PatientInvitation.query.filter(
            PatientInvitation.token == token,
            PatientInvitation.used_at.is_(None),
        ).update({'used_at': datetime.utcnow()}, synchronize_session=False)
        db.session.commit()
