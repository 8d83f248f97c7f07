from flask import request, jsonify
from flask_jwt_extended import get_jwt_identity
from clinic_portal.extensions import db
from clinic_portal.models.appointment_models import Appointment, APPOINTMENT_STATUSES
from clinic_portal.models.patient_models import Patient
from datetime import datetime

UPDATABLE_FIELDS = ('status', 'provider_name', 'location', 'source_system_id')


def _serialize_appointment(appt, include_patient=False):
    """Helper function to format appointment data for API responses."""
    data = {
        "id": appt.id,
        "patient_id": appt.patient_id,
        "scheduled_start": appt.scheduled_start.isoformat(),
        "scheduled_end": appt.scheduled_end.isoformat() if appt.scheduled_end else None,
        "status": appt.status,
        "provider_name": appt.provider_name,
        "location": appt.location,
        "updated_at": appt.updated_at.isoformat() if appt.updated_at else None,
    }
    if include_patient:
        data["patient_name"] = appt.patient.display_name
    return data


def _parse_datetime(value, field):
    try:
        return datetime.fromisoformat(value), None
    except (TypeError, ValueError):
        return None, (jsonify({"error": f"Invalid {field}. Expected ISO 8601 datetime"}), 400)


def create_appointment():
    """Creates an appointment for a patient."""
    data = request.get_json(silent=True) or {}

    if not data.get('patient_id') or not data.get('scheduled_start'):
        return jsonify({"error": "Missing required fields: patient_id, scheduled_start"}), 400

    if not db.session.get(Patient, data['patient_id']):
        return jsonify({"error": "Patient not found"}), 404

    scheduled_start, error = _parse_datetime(data['scheduled_start'], 'scheduled_start')
    if error:
        return error
    scheduled_end = None
    if data.get('scheduled_end'):
        scheduled_end, error = _parse_datetime(data['scheduled_end'], 'scheduled_end')
        if error:
            return error

    status = data.get('status', 'SCHEDULED')
    if status not in APPOINTMENT_STATUSES:
        return jsonify({"error": f"Invalid status. Must be one of {', '.join(APPOINTMENT_STATUSES)}"}), 400

    new_appointment = Appointment(
        patient_id=data['patient_id'],
        scheduled_start=scheduled_start,
        scheduled_end=scheduled_end,
        status=status,
        provider_name=data.get('provider_name'),
        location=data.get('location'),
        source_system_id=data.get('source_system_id')
    )

    db.session.add(new_appointment)
    db.session.commit()
    return jsonify({"message": "Appointment created successfully", "appointment": _serialize_appointment(new_appointment)}), 201


def get_appointments():
    """Staff view of all appointments, optionally filtered by status or patient."""
    query = Appointment.query
    if request.args.get('status'):
        query = query.filter_by(status=request.args['status'])
    if request.args.get('patient_id', type=int):
        query = query.filter_by(patient_id=request.args.get('patient_id', type=int))

    appointments = query.order_by(Appointment.scheduled_start.desc()).all()
    return jsonify({"appointments": [_serialize_appointment(a, include_patient=True) for a in appointments]}), 200


def get_my_appointments():
    """Patient portal: appointments for the signed-in patient only."""
    patient = Patient.query.filter_by(user_id=int(get_jwt_identity())).first()
    if not patient:
        return jsonify({"appointments": []}), 200

    appointments = patient.appointments.order_by(Appointment.scheduled_start.desc()).all()
    return jsonify({"appointments": [_serialize_appointment(a) for a in appointments]}), 200


def update_appointment(appointment_id):
    """Updates an existing appointment."""
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        return jsonify({"error": "Appointment not found"}), 404

    data = request.get_json(silent=True) or {}
    if 'status' in data and data['status'] not in APPOINTMENT_STATUSES:
        return jsonify({"error": f"Invalid status. Must be one of {', '.join(APPOINTMENT_STATUSES)}"}), 400

    for key in ('scheduled_start', 'scheduled_end'):
        if data.get(key):
            value, error = _parse_datetime(data[key], key)
            if error:
                return error
            setattr(appointment, key, value)

    for key in UPDATABLE_FIELDS:
        if key in data:
            setattr(appointment, key, data[key])

    db.session.commit()
    return jsonify({"message": "Appointment updated successfully", "appointment": _serialize_appointment(appointment)}), 200


def delete_appointment(appointment_id):
    """Deletes an appointment."""
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        return jsonify({"error": "Appointment not found"}), 404

    db.session.delete(appointment)
    db.session.commit()
    return jsonify({"message": "Appointment deleted successfully"}), 200
