# /clinic_portal/models/message_models.py
from datetime import datetime
from clinic_portal.extensions import db
from clinic_portal.utils.encryption_util import encryptor

MESSAGE_DIRECTIONS = ('OUTBOUND', 'INBOUND')
MESSAGE_CHANNELS = ('SMS', 'WHATSAPP')
MESSAGE_STATUSES = ('SENT', 'DELIVERED', 'FAILED', 'RECEIVED')


class Message(db.Model):
    """Model for storing encrypted SMS/WhatsApp messages exchanged with patients."""
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id', ondelete='CASCADE'), index=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id', ondelete='SET NULL'))

    direction = db.Column(db.String(10), nullable=False)
    channel = db.Column(db.String(10), nullable=False, default='SMS')
    body = db.Column(db.Text, nullable=False)  # Encrypted
    status = db.Column(db.String(20), nullable=False, default='SENT')
    phone = db.Column(db.String(512))  # Encrypted
    template_key = db.Column(db.String(100))
    provider_message_id = db.Column(db.String(255))

    sent_at = db.Column(db.DateTime)
    received_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    patient = db.relationship('Patient', back_populates='messages')

    @property
    def plain_body(self):
        return encryptor.decrypt(self.body) or ''

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'appointment_id': self.appointment_id,
            'direction': self.direction,
            'channel': self.channel,
            'body': self.plain_body,
            'status': self.status,
            'template_key': self.template_key,
            'sent_at': self.sent_at.isoformat() if self.sent_at else None,
            'received_at': self.received_at.isoformat() if self.received_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
