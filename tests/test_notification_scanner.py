from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from clinic_portal.extensions import db
from clinic_portal.models.appointment_models import Appointment
from clinic_portal.models.message_models import Message
from clinic_portal.models.notification_models import Notification
from clinic_portal.models.task_models import FollowUpTask
from clinic_portal.services.notification_scanner import NotificationScanner, preview
from clinic_portal.utils.encryption_util import encryptor
from conftest import make_user, make_patient, bearer

SCAN_URL = '/functions/create-notifications'


@pytest.fixture
def scanner(app):
    return app.extensions['notification_scanner']


@pytest.fixture
def patient(app):
    return make_patient()


def add_task(patient, created_at=None, priority='HIGH', status='OPEN', task_type='SYMPTOM_ALERT'):
    task = FollowUpTask(
        patient_id=patient.id, type=task_type, priority=priority, status=status,
        created_at=created_at or datetime.utcnow(),
    )
    db.session.add(task)
    db.session.commit()
    return task


def add_missed_appointment(patient, updated_at=None):
    now = datetime.utcnow()
    appointment = Appointment(
        patient_id=patient.id, scheduled_start=now - timedelta(hours=2), status='MISSED',
        created_at=now - timedelta(days=3), updated_at=updated_at or now,
    )
    db.session.add(appointment)
    db.session.commit()
    return appointment


def add_inbound_message(patient, body='Can I move my appointment?', created_at=None):
    message = Message(
        patient_id=patient.id, direction='INBOUND', channel='SMS', status='RECEIVED',
        body=encryptor.encrypt(body), created_at=created_at or datetime.utcnow(),
    )
    db.session.add(message)
    db.session.commit()
    return message


def test_preview_truncates_long_text():
    assert preview('a' * 50) == 'a' * 50
    assert preview('a' * 51) == 'a' * 50 + '...'
    assert preview(None) == ''


def test_scan_without_staff_creates_nothing(scanner, patient):
    add_task(patient)
    add_missed_appointment(patient)

    assert scanner.scan() == 0
    assert Notification.query.count() == 0


def test_scan_fans_out_to_each_staff_member(scanner, patient, staff_user):
    other_staff = make_user(email='doctor@clinic.test')
    task = add_task(patient, task_type='SYMPTOM_ALERT')
    appointment = add_missed_appointment(patient)
    message = add_inbound_message(patient)

    assert scanner.scan() == 6

    for user in (staff_user, other_staff):
        rows = {n.type: n for n in Notification.query.filter_by(user_id=user.id)}
        assert rows['urgent_task'].related_id == task.id
        assert rows['urgent_task'].title == '🚨 Urgent Task'
        assert rows['urgent_task'].message == 'High priority SYMPTOM ALERT for Jane Doe'
        assert rows['missed_appointment'].related_id == appointment.id
        assert rows['missed_appointment'].title == '📅 Missed Appointment'
        assert rows['missed_appointment'].message == 'Jane Doe missed appointment'
        assert rows['patient_message'].related_id == message.id
        assert rows['patient_message'].title == '💬 New Patient Message'
        assert rows['patient_message'].message == 'Jane Doe: Can I move my appointment?'
        assert not rows['patient_message'].is_read


def test_patients_and_admins_are_not_recipients(scanner, patient, staff_user):
    make_user(phone='+61400000000', roles=('patient',))
    make_user(email='admin@clinic.test', roles=('admin',))
    add_task(patient)

    assert scanner.scan() == 1
    assert Notification.query.one().user_id == staff_user.id


def test_long_message_body_is_previewed(scanner, patient, staff_user):
    body = 'My chest pain came back this morning and it is worse than last week'
    add_inbound_message(patient, body=body)

    scanner.scan()

    notification = Notification.query.one()
    assert notification.message == f'Jane Doe: {body[:50]}...'


def test_events_outside_windows_are_ignored(scanner, patient, staff_user):
    now = datetime.utcnow()
    add_task(patient, created_at=now - timedelta(minutes=61))
    add_task(patient, priority='MEDIUM')
    add_task(patient, status='DONE')
    add_missed_appointment(patient, updated_at=now - timedelta(minutes=61))
    add_inbound_message(patient, created_at=now - timedelta(minutes=11))

    assert scanner.scan(now=now) == 0


def test_second_scan_creates_nothing(scanner, patient, staff_user):
    add_task(patient)
    add_inbound_message(patient)

    assert scanner.scan() == 2
    assert scanner.scan() == 0
    assert Notification.query.count() == 2


def test_overlapping_scans_skip_duplicate_rows(scanner, patient, staff_user, monkeypatch):
    add_task(patient)
    assert scanner.scan() == 1

    # Another scan that passed the existence check before this one inserted
    monkeypatch.setattr(NotificationScanner, 'already_notified', staticmethod(lambda related_id, type_: False))

    assert scanner.scan() == 0
    assert Notification.query.count() == 1


def test_existing_event_is_not_sent_to_new_staff(scanner, patient, staff_user):
    task = add_task(patient)
    assert scanner.scan() == 1

    late_staff = make_user(email='late@clinic.test')

    assert scanner.scan() == 0
    assert Notification.query.filter_by(user_id=late_staff.id, related_id=task.id).count() == 0


def test_failing_detector_does_not_block_others(app, patient, staff_user, monkeypatch):
    def broken(self, now):
        raise SQLAlchemyError('appointments table unavailable')

    monkeypatch.setattr(NotificationScanner, 'find_missed_appointments', broken)
    scanner = NotificationScanner()
    add_task(patient)
    add_missed_appointment(patient)
    add_inbound_message(patient)

    assert scanner.scan() == 2
    assert {n.type for n in Notification.query} == {'urgent_task', 'patient_message'}


def test_scan_endpoint_requires_service_key(client, staff_headers):
    assert client.post(SCAN_URL).status_code == 401
    assert client.post(SCAN_URL, headers=staff_headers).status_code == 401
    assert client.post(SCAN_URL, headers={'apikey': 'wrong'}).status_code == 401


def test_scan_endpoint_reports_count(client, app, patient, staff_user, service_headers):
    add_task(patient)

    response = client.post(SCAN_URL, headers=service_headers)
    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'notificationsCreated': 1}

    response = client.post(SCAN_URL, headers={'apikey': app.config['SERVICE_ROLE_KEY']})
    assert response.get_json() == {'success': True, 'notificationsCreated': 0}


def test_scan_endpoint_without_staff(client, patient, service_headers):
    add_task(patient)

    response = client.post(SCAN_URL, headers=service_headers)
    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'notificationsCreated': 0}


def test_scan_endpoint_staff_lookup_failure(client, scanner, service_headers, monkeypatch):
    def broken():
        raise SQLAlchemyError('connection reset')

    monkeypatch.setattr(scanner, 'staff_recipients', broken)

    response = client.post(SCAN_URL, headers=service_headers)
    assert response.status_code == 500
    assert response.get_json() == {'error': 'Failed to load staff users'}


def test_read_flags_are_per_recipient(client, scanner, patient, staff_user, staff_headers):
    other_staff = make_user(email='doctor@clinic.test')
    add_task(patient)
    scanner.scan()

    mine = client.get('/api/notifications', headers=staff_headers).get_json()
    assert mine['unread_count'] == 1
    notification_id = mine['notifications'][0]['id']

    response = client.post(f'/api/notifications/{notification_id}/read', headers=staff_headers)
    assert response.status_code == 200
    assert response.get_json()['notification']['is_read'] is True

    assert client.get('/api/notifications', headers=staff_headers).get_json()['unread_count'] == 0
    theirs = client.get('/api/notifications', headers=bearer(other_staff)).get_json()
    assert theirs['unread_count'] == 1

    # Cannot mark someone else's notification
    response = client.post(f'/api/notifications/{notification_id}/read', headers=bearer(other_staff))
    assert response.status_code == 404


def test_mark_all_read(client, scanner, patient, staff_user, staff_headers):
    add_task(patient)
    add_inbound_message(patient)
    scanner.scan()

    response = client.post('/api/notifications/read-all', headers=staff_headers)
    assert response.get_json()['updated'] == 2

    unread = client.get('/api/notifications?unread=true', headers=staff_headers).get_json()
    assert unread['notifications'] == []
