# /clinic_portal/api/controllers/message_controller.py
from datetime import datetime
from flask import request, jsonify
from flask_jwt_extended import get_jwt_identity
from sqlalchemy import desc
from clinic_portal.extensions import db
from clinic_portal.models.message_models import Message, MESSAGE_CHANNELS
from clinic_portal.models.patient_models import Patient
from clinic_portal.utils.encryption_util import encryptor
from clinic_portal.utils.validators import missing_fields


def _paginated(query, serialize):
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 50, type=int), 200)
    messages_paginated = query.order_by(desc(Message.created_at), desc(Message.id)).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return {
        'messages': [serialize(m) for m in messages_paginated.items],
        'pagination': {
            'page': messages_paginated.page,
            'per_page': messages_paginated.per_page,
            'total': messages_paginated.total,
            'pages': messages_paginated.pages,
            'has_next': messages_paginated.has_next,
            'has_prev': messages_paginated.has_prev
        }
    }


def _with_patient_name(message):
    data = message.to_dict()
    data['patient_name'] = message.patient.display_name if message.patient else None
    return data


def get_messages():
    """Staff view of the SMS log, optionally for one patient or direction."""
    query = Message.query
    if request.args.get('patient_id', type=int):
        query = query.filter_by(patient_id=request.args.get('patient_id', type=int))
    if request.args.get('direction'):
        query = query.filter_by(direction=request.args['direction'])
    return jsonify(_paginated(query, _with_patient_name)), 200


def get_my_messages():
    """Patient portal: messages exchanged with the signed-in patient."""
    patient = Patient.query.filter_by(user_id=int(get_jwt_identity())).first()
    if not patient:
        return jsonify({'messages': [], 'pagination': None}), 200
    return jsonify(_paginated(Message.query.filter_by(patient_id=patient.id), Message.to_dict)), 200


def receive_inbound_message():
    """SMS gateway callback: stores a patient reply so the notification scan can pick it up."""
    data = request.get_json(silent=True) or {}
    if missing_fields(data, ('phone', 'body')):
        return jsonify({'error': 'Missing required fields: phone, body'}), 400

    channel = data.get('channel', 'SMS')
    if channel not in MESSAGE_CHANNELS:
        return jsonify({'error': f"Invalid channel. Must be one of {', '.join(MESSAGE_CHANNELS)}"}), 400

    patient = Patient.find_by_phone(data['phone'])
    now = datetime.utcnow()
    message = Message(
        patient_id=patient.id if patient else None,
        direction='INBOUND',
        channel=channel,
        body=encryptor.encrypt(data['body']),
        status='RECEIVED',
        phone=encryptor.encrypt(data['phone']),
        provider_message_id=data.get('provider_message_id'),
        received_at=now,
        created_at=now,
    )
    db.session.add(message)
    db.session.commit()
    return jsonify({'message': 'Message stored', 'id': message.id, 'matched_patient': patient is not None}), 201
