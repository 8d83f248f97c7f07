from flask import request, jsonify
from flask_jwt_extended import get_jwt_identity
from sqlalchemy.exc import IntegrityError
from clinic_portal.extensions import db
from clinic_portal.models.patient_models import Patient, PatientInvitation
from clinic_portal.utils.encryption_util import encryptor, lookup_hash
from clinic_portal.utils.validators import is_valid_au_phone, is_iso_date


def _patient_with_invitation(patient):
    """Adds the latest invitation's status to the patient payload."""
    data = patient.to_dict()
    invitation = patient.invitations.order_by(PatientInvitation.created_at.desc()).first()
    if patient.user_id:
        data['account_status'] = 'active'
    elif invitation and invitation.is_valid():
        data['account_status'] = 'invited'
    elif invitation:
        data['account_status'] = 'invitation_expired'
    else:
        data['account_status'] = 'not_invited'
    data['invitation_expires_at'] = invitation.expires_at.isoformat() if invitation else None
    return data


def get_all_patients():
    """Retrieves all patients. Names are encrypted, so search happens after decryption."""
    search = (request.args.get('search') or '').strip().lower()
    patients = Patient.query.order_by(Patient.created_at.desc()).all()

    results = [_patient_with_invitation(p) for p in patients]
    if search:
        results = [
            p for p in results
            if search in f"{p['first_name']} {p['last_name']}".lower() or search in (p['phone'] or '')
        ]
    return jsonify({'patients': results}), 200


def get_patient_by_id(patient_id):
    patient = db.session.get(Patient, patient_id)
    if not patient:
        return jsonify({'error': 'Patient not found'}), 404
    return jsonify({'patient': _patient_with_invitation(patient)}), 200


def get_own_patient_record():
    """Patient portal: the record linked to the signed-in identity."""
    patient = Patient.query.filter_by(user_id=int(get_jwt_identity())).first()
    if not patient:
        return jsonify({'error': 'Patient record not found'}), 404
    return jsonify({'patient': patient.to_dict()}), 200


def update_patient(patient_id):
    """Updates a patient's demographic fields."""
    patient = db.session.get(Patient, patient_id)
    if not patient:
        return jsonify({'error': 'Patient not found'}), 404

    data = request.get_json(silent=True) or {}

    # Validate everything before touching the record
    if 'phone' in data and not is_valid_au_phone(data['phone']):
        return jsonify({'error': 'Invalid phone format. Must be Australian format: +61[2-478]XXXXXXXX'}), 400
    if data.get('date_of_birth') and not is_iso_date(data['date_of_birth']):
        return jsonify({'error': 'Invalid date_of_birth. Expected YYYY-MM-DD'}), 400
    for field in ('first_name', 'last_name'):
        if field in data and not data[field]:
            return jsonify({'error': f'{field} cannot be empty'}), 400

    if 'phone' in data:
        patient.phone = encryptor.encrypt(data['phone'])
        patient.phone_hash = lookup_hash(data['phone'])

    for field in ('first_name', 'last_name', 'date_of_birth'):
        if field in data:
            setattr(patient, field, encryptor.encrypt(data[field] or None))

    if 'external_id' in data:
        patient.external_id = data['external_id'] or None

    try:
        db.session.commit()
        return jsonify({'message': 'Patient updated successfully', 'patient': patient.to_dict()}), 200
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Patient with this phone number already exists'}), 409


def delete_patient(patient_id):
    """Deletes a patient with their invitations, appointments, tasks and messages."""
    patient = db.session.get(Patient, patient_id)
    if not patient:
        return jsonify({'error': 'Patient not found'}), 404

    db.session.delete(patient)
    db.session.commit()
    return jsonify({'message': 'Patient deleted successfully'}), 200
