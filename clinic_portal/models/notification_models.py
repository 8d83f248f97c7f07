from datetime import datetime
from clinic_portal.extensions import db

NOTIFICATION_URGENT_TASK = 'urgent_task'
NOTIFICATION_MISSED_APPOINTMENT = 'missed_appointment'
NOTIFICATION_PATIENT_MESSAGE = 'patient_message'
NOTIFICATION_TYPES = (NOTIFICATION_URGENT_TASK, NOTIFICATION_MISSED_APPOINTMENT, NOTIFICATION_PATIENT_MESSAGE)


class Notification(db.Model):
    """Alert surfaced to one staff member about one underlying event."""
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(30), nullable=False)
    related_id = db.Column(db.Integer)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(
            "type IN ('urgent_task', 'missed_appointment', 'patient_message')",
            name='notification_type_check'
        ),
        db.UniqueConstraint('related_id', 'type', 'user_id', name='unique_notification_per_recipient'),
        db.Index('idx_notifications_user_id_read', 'user_id', 'is_read'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'related_id': self.related_id,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
