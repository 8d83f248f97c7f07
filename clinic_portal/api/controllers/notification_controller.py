from flask import request, jsonify, current_app
from flask_jwt_extended import get_jwt_identity
from clinic_portal.extensions import db
from clinic_portal.models.notification_models import Notification


def run_notification_scan():
    """Scheduler entry point: runs one scan and reports how many alerts were created."""
    created = current_app.extensions['notification_scanner'].scan()
    return jsonify({'success': True, 'notificationsCreated': created}), 200


def get_my_notifications():
    """Lists the current staff member's notifications, newest first."""
    user_id = int(get_jwt_identity())
    limit = min(request.args.get('limit', 50, type=int), 200)
    unread_only = request.args.get('unread', 'false').lower() in ('true', '1')

    query = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        query = query.filter_by(is_read=False)
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    unread_count = Notification.query.filter_by(user_id=user_id, is_read=False).count()

    return jsonify({
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': unread_count
    }), 200


def mark_notification_read(notification_id):
    user_id = int(get_jwt_identity())
    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        return jsonify({'error': 'Notification not found'}), 404

    notification.is_read = True
    db.session.commit()
    return jsonify({'notification': notification.to_dict()}), 200


def mark_all_notifications_read():
    user_id = int(get_jwt_identity())
    updated = Notification.query.filter_by(user_id=user_id, is_read=False).update(
        {'is_read': True}, synchronize_session=False
    )
    db.session.commit()
    return jsonify({'message': 'Notifications marked as read', 'updated': updated}), 200
