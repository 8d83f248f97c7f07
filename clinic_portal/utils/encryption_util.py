# /clinic_portal/utils/encryption_util.py
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app


def lookup_hash(value: str) -> str:
    """SHA-256 digest used for indexed equality lookups on encrypted columns."""
    if not value:
        return ""
    return hashlib.sha256(value.strip().lower().encode('utf-8')).hexdigest()


class Encryptor:
    """
    Encrypts and decrypts patient PII stored in the database.
    It must be initialized with the Flask app to load the key.
    """
    def __init__(self, app=None):
        self.fernet = None
        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initializes the Fernet suite with the key from the app's config."""
        key = app.config.get('PORTAL_ENCRYPTION_KEY')
        if not key:
            raise ValueError("PORTAL_ENCRYPTION_KEY not set in the Flask application config.")

        self.fernet = Fernet(key.encode())

    def encrypt(self, data) -> str | None:
        """Encrypts a string. None passes through unchanged."""
        if self.fernet is None:
            raise RuntimeError("Encryptor has not been initialized with an app context.")

        if data is None:
            return None
        if not isinstance(data, str):
            data = str(data)

        encrypted_data = self.fernet.encrypt(data.encode('utf-8'))
        return encrypted_data.decode('utf-8')

    def decrypt(self, token: str) -> str | None:
        """Decrypts an encrypted token string."""
        if self.fernet is None:
            raise RuntimeError("Encryptor has not been initialized with an app context.")

        if not token:
            return None

        try:
            decrypted_data = self.fernet.decrypt(token.encode('utf-8'))
            return decrypted_data.decode('utf-8')
        except InvalidToken:
            current_app.logger.error("Decryption failed: Invalid token provided.")
            return None


# Create a single, uninitialized instance to be imported by other modules.
encryptor = Encryptor()
