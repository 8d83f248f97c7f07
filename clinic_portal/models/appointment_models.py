from datetime import datetime
from clinic_portal.extensions import db

APPOINTMENT_STATUSES = ('SCHEDULED', 'CONFIRMED', 'RESCHEDULED', 'CANCELLED', 'MISSED')


class Appointment(db.Model):
    """Model for storing a patient's appointment, usually synced from the practice system."""
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)

    # Appointment details
    scheduled_start = db.Column(db.DateTime, nullable=False)
    scheduled_end = db.Column(db.DateTime)
    status = db.Column(db.String(20), nullable=False, default='SCHEDULED', index=True)
    provider_name = db.Column(db.String(255))
    location = db.Column(db.String(255))
    source_system_id = db.Column(db.String(100))  # id in the clinic's practice system

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, index=True)

    patient = db.relationship('Patient', back_populates='appointments')

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('SCHEDULED', 'CONFIRMED', 'RESCHEDULED', 'CANCELLED', 'MISSED')",
            name='appointment_status_check'
        ),
    )
