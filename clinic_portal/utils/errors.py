# /clinic_portal/utils/errors.py


class PortalError(Exception):
    """Base error carrying the HTTP status and a message safe to show callers."""
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.message}


class ValidationError(PortalError):
    status_code = 400
    message = 'Invalid request'


class ConflictError(PortalError):
    status_code = 409
    message = 'Resource already exists'


class InvitationInvalidError(PortalError):
    """The invitation token is unknown, expired or already used."""
    status_code = 400
    message = 'Invalid or expired invitation'


class PersistenceError(PortalError):
    status_code = 500
    message = 'Database operation failed'
