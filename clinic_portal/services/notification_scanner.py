import logging
from collections import namedtuple
from datetime import datetime, timedelta

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from clinic_portal.extensions import db
from clinic_portal.models.appointment_models import Appointment
from clinic_portal.models.message_models import Message
from clinic_portal.models.notification_models import (
    Notification, NOTIFICATION_URGENT_TASK, NOTIFICATION_MISSED_APPOINTMENT, NOTIFICATION_PATIENT_MESSAGE
)
from clinic_portal.models.task_models import FollowUpTask
from clinic_portal.models.user_models import Role, UserRole, ROLE_STAFF
from clinic_portal.utils.errors import PersistenceError

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50
INSERT_BATCH_SIZE = 100

# One detected event that staff should hear about.
Alert = namedtuple('Alert', ['type', 'related_id', 'title', 'message'])


def preview(text, length=PREVIEW_LENGTH):
    text = text or ''
    return text[:length] + '...' if len(text) > length else text


class NotificationScanner:
    """
    Turns recent high-priority events into staff notifications.

    Each detector looks back over its own window. An event produces one
    notification per staff member, unless a notification of the same type
    already exists for it. The unique (related_id, type, user_id) constraint
    makes a second, overlapping scan skip rows instead of duplicating them.
    """

    def __init__(self, task_window=timedelta(hours=1), appointment_window=timedelta(hours=1),
                 message_window=timedelta(minutes=10)):
        self.task_window = task_window
        self.appointment_window = appointment_window
        self.message_window = message_window
        self.detectors = (
            ('urgent tasks', self.find_urgent_tasks),
            ('missed appointments', self.find_missed_appointments),
            ('new inbound messages', self.find_inbound_messages),
        )

    def scan(self, now=None) -> int:
        """Runs every detector once and returns the number of notifications created."""
        now = now or datetime.utcnow()
        logger.info('Checking for notification triggers...')

        try:
            staff_ids = self.staff_recipients()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error fetching staff users: {e}")
            raise PersistenceError('Failed to load staff users')

        if not staff_ids:
            logger.info('No staff users found')
            return 0

        rows = []
        for label, detector in self.detectors:
            try:
                rows.extend(self._collect(label, detector, staff_ids, now))
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error(f"Error fetching {label}: {e}")

        if not rows:
            logger.info('No new notifications to create')
            return 0

        logger.info(f"Creating {len(rows)} notifications")
        try:
            created = self._insert(rows)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error inserting notifications: {e}")
            raise PersistenceError('Failed to create notifications')

        if created < len(rows):
            logger.warning(f"Skipped {len(rows) - created} notifications already created by another scan")
        logger.info('Notifications created successfully')
        return created

    def staff_recipients(self):
        rows = (
            db.session.query(UserRole.user_id)
            .join(Role, UserRole.role_id == Role.id)
            .filter(Role.name == ROLE_STAFF)
            .order_by(UserRole.user_id)
            .all()
        )
        return [row.user_id for row in rows]

    def _collect(self, label, detector, staff_ids, now):
        alerts = detector(now)
        if alerts:
            logger.info(f"Found {len(alerts)} {label}")

        rows = []
        for alert in alerts:
            if self.already_notified(alert.related_id, alert.type):
                continue
            rows.extend(
                {
                    'user_id': user_id,
                    'title': alert.title,
                    'message': alert.message,
                    'type': alert.type,
                    'related_id': alert.related_id,
                    'is_read': False,
                    'created_at': now,
                }
                for user_id in staff_ids
            )
        return rows

    @staticmethod
    def already_notified(related_id, notification_type):
        # Per event, not per recipient: staff added later are not back-filled.
        return db.session.query(Notification.id).filter_by(
            related_id=related_id, type=notification_type
        ).first() is not None

    # --- detectors --------------------------------------------------------

    def find_urgent_tasks(self, now):
        tasks = (
            FollowUpTask.query.join(FollowUpTask.patient)
            .filter(
                FollowUpTask.priority == 'HIGH',
                FollowUpTask.status == 'OPEN',
                FollowUpTask.created_at >= now - self.task_window,
            )
            .all()
        )
        return [
            Alert(
                NOTIFICATION_URGENT_TASK, task.id, '🚨 Urgent Task',
                f"High priority {task.type.replace('_', ' ')} for {task.patient.display_name}"
            )
            for task in tasks
        ]

    def find_missed_appointments(self, now):
        appointments = (
            Appointment.query.join(Appointment.patient)
            .filter(
                Appointment.status == 'MISSED',
                Appointment.updated_at >= now - self.appointment_window,
            )
            .all()
        )
        return [
            Alert(
                NOTIFICATION_MISSED_APPOINTMENT, appointment.id, '📅 Missed Appointment',
                f"{appointment.patient.display_name} missed appointment"
            )
            for appointment in appointments
        ]

    def find_inbound_messages(self, now):
        messages = (
            Message.query.join(Message.patient)
            .filter(
                Message.direction == 'INBOUND',
                Message.created_at >= now - self.message_window,
            )
            .all()
        )
        return [
            Alert(
                NOTIFICATION_PATIENT_MESSAGE, message.id, '💬 New Patient Message',
                f"{message.patient.display_name}: {preview(message.plain_body)}"
            )
            for message in messages
        ]

    # --- persistence ------------------------------------------------------

    def _insert(self, rows):
        dialect = db.engine.dialect.name
        if dialect == 'postgresql':
            insert = postgresql.insert
        elif dialect == 'sqlite':
            insert = sqlite.insert
        else:
            return self._insert_each(rows)

        created = 0
        for start in range(0, len(rows), INSERT_BATCH_SIZE):
            batch = rows[start:start + INSERT_BATCH_SIZE]
            result = db.session.execute(insert(Notification).values(batch).on_conflict_do_nothing())
            created += result.rowcount
        db.session.commit()
        return created

    def _insert_each(self, rows):
        created = 0
        for row in rows:
            try:
                with db.session.begin_nested():
                    db.session.add(Notification(**row))
                created += 1
            except IntegrityError:
                logger.debug(f"Notification for {row['type']} {row['related_id']} already exists")
        db.session.commit()
        return created
