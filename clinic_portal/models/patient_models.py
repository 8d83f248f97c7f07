from datetime import datetime
from clinic_portal.extensions import db
from clinic_portal.utils.encryption_util import encryptor, lookup_hash


class Patient(db.Model):
    """Model for storing encrypted patient information."""
    __tablename__ = 'patients'

    id = db.Column(db.Integer, primary_key=True)

    # --- Encrypted Patient PII ---
    first_name = db.Column(db.String(512), nullable=False)
    last_name = db.Column(db.String(512), nullable=False)
    phone = db.Column(db.String(512), nullable=False)
    date_of_birth = db.Column(db.String(255))

    # Hashed phone for uniqueness and lookups
    phone_hash = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # --- Non-encrypted fields ---
    external_id = db.Column(db.String(100))  # identifier in the clinic's practice system
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), unique=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', back_populates='patient')
    invitations = db.relationship('PatientInvitation', back_populates='patient', cascade="all, delete-orphan", lazy='dynamic')
    appointments = db.relationship('Appointment', back_populates='patient', cascade="all, delete-orphan", lazy='dynamic')
    tasks = db.relationship('FollowUpTask', back_populates='patient', cascade="all, delete-orphan", lazy='dynamic')
    messages = db.relationship('Message', back_populates='patient', cascade="all, delete-orphan", lazy='dynamic')

    @classmethod
    def find_by_phone(cls, phone):
        return cls.query.filter_by(phone_hash=lookup_hash(phone)).first()

    @property
    def display_name(self):
        return f"{encryptor.decrypt(self.first_name)} {encryptor.decrypt(self.last_name)}"

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': encryptor.decrypt(self.first_name),
            'last_name': encryptor.decrypt(self.last_name),
            'phone': encryptor.decrypt(self.phone),
            'date_of_birth': encryptor.decrypt(self.date_of_birth),
            'external_id': self.external_id,
            'user_id': self.user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class PatientInvitation(db.Model):
    """Single-use, time-limited activation credential for one patient."""
    __tablename__ = 'patient_invitations'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    used_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    patient = db.relationship('Patient', back_populates='invitations')

    @classmethod
    def find_valid(cls, token, now=None):
        """Returns the invitation for token if it is unused and unexpired."""
        now = now or datetime.utcnow()
        return cls.query.filter(
            cls.token == token,
            cls.used_at.is_(None),
            cls.expires_at > now,
        ).first()

    def is_valid(self, now=None):
        now = now or datetime.utcnow()
        return self.used_at is None and now < self.expires_at
