from datetime import datetime
from clinic_portal.extensions import db

TASK_TYPES = ('MISSED_APPOINTMENT', 'NO_RESPONSE', 'SYMPTOM_ALERT', 'RESCHEDULE_REQUEST', 'CANCEL_REQUEST')
TASK_PRIORITIES = ('LOW', 'MEDIUM', 'HIGH')
TASK_STATUSES = ('OPEN', 'IN_PROGRESS', 'DONE')


class FollowUpTask(db.Model):
    """Follow-up work item raised for a patient, optionally tied to an appointment."""
    __tablename__ = 'follow_up_tasks'

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False, index=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id', ondelete='SET NULL'))

    type = db.Column(db.String(30), nullable=False)
    priority = db.Column(db.String(10), nullable=False, default='MEDIUM')
    status = db.Column(db.String(20), nullable=False, default='OPEN')
    risk_score = db.Column(db.Float, nullable=False, default=0)
    description = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    completed_at = db.Column(db.DateTime)

    patient = db.relationship('Patient', back_populates='tasks')
    appointment = db.relationship('Appointment')
