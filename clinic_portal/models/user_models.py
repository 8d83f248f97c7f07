from datetime import datetime, timedelta
from clinic_portal.extensions import db, bcrypt
from clinic_portal.utils.encryption_util import encryptor, lookup_hash

MIN_PASSWORD_LENGTH = 8
MAX_FAILED_LOGINS = 5

ROLE_STAFF = 'staff'
ROLE_PATIENT = 'patient'
ROLE_ADMIN = 'admin'


class User(db.Model):
    """Authenticated identity. Staff sign in by email, patients by phone."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(512))
    phone = db.Column(db.String(512))
    email_hash = db.Column(db.String(64), unique=True, index=True)
    phone_hash = db.Column(db.String(64), unique=True, index=True)
    full_name = db.Column(db.String(512))
    password_hash = db.Column(db.String(255), nullable=False)
    user_metadata = db.Column(db.JSON, default=dict)
    phone_confirmed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime)
    failed_login_attempts = db.Column(db.Integer, default=0)
    account_locked = db.Column(db.Boolean, default=False)
    account_locked_until = db.Column(db.DateTime)
    password_changed_at = db.Column(db.DateTime, default=datetime.utcnow)
    is_active = db.Column(db.Boolean, default=True)

    # --- Relationships ---
    role_assignments = db.relationship('UserRole', back_populates='user', cascade="all, delete-orphan")
    audit_logs = db.relationship('AuditLog', backref='user', lazy='dynamic')
    patient = db.relationship('Patient', back_populates='user', uselist=False)

    @staticmethod
    def create_hash(value: str) -> str:
        return lookup_hash(value)

    @classmethod
    def find_by_login(cls, login: str):
        """Looks a user up by email or phone through the hashed columns."""
        value_hash = cls.create_hash(login)
        if not value_hash:
            return None
        return cls.query.filter(
            db.or_(cls.email_hash == value_hash, cls.phone_hash == value_hash)
        ).first()

    @property
    def role_names(self):
        return sorted(assignment.role.name for assignment in self.role_assignments)

    def has_role(self, *names) -> bool:
        return any(name in names for name in self.role_names)

    def set_password(self, password: str) -> None:
        """Hashes and sets the user's password, enforcing the length rule."""
        if not self.validate_password_strength(password):
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')
        self.password_changed_at = datetime.utcnow()

    def check_password(self, password: str) -> bool:
        """Checks a password and handles login attempt logic."""
        if self.account_locked and self.account_locked_until and datetime.utcnow() < self.account_locked_until:
            return False
        elif self.account_locked:
            self.account_locked = False
            self.account_locked_until = None
            self.failed_login_attempts = 0

        is_valid = bcrypt.check_password_hash(self.password_hash, password)

        if not is_valid:
            self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
            if self.failed_login_attempts >= MAX_FAILED_LOGINS:
                self.account_locked = True
                self.account_locked_until = datetime.utcnow() + timedelta(minutes=30)
        else:
            self.failed_login_attempts = 0
            self.last_login = datetime.utcnow()

        db.session.commit()
        return is_valid

    def to_dict(self):
        """Serializes the User object to a dictionary for API responses."""
        return {
            'id': self.id,
            'email': encryptor.decrypt(self.email),
            'phone': encryptor.decrypt(self.phone),
            'full_name': encryptor.decrypt(self.full_name),
            'roles': self.role_names,
            'user_metadata': self.user_metadata or {},
            'phone_confirmed_at': self.phone_confirmed_at.isoformat() if self.phone_confirmed_at else None,
            'is_active': self.is_active,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def validate_password_strength(password: str) -> bool:
        return isinstance(password, str) and len(password) >= MIN_PASSWORD_LENGTH


class Role(db.Model):
    """Model for user roles."""
    __tablename__ = 'roles'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @classmethod
    def get_by_name(cls, name):
        return cls.query.filter_by(name=name).first()

    @classmethod
    def get_or_create(cls, name):
        """Get the named role, creating it if the database was not seeded."""
        role = cls.get_by_name(name)
        if not role:
            role = cls(name=name)
            db.session.add(role)
            db.session.commit()
        return role


class UserRole(db.Model):
    """Role assignment for an identity."""
    __tablename__ = 'user_roles'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship('User', back_populates='role_assignments')
    role = db.relationship('Role')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'role_id', name='unique_user_role'),
    )
