from datetime import datetime
from flask import request, jsonify
from clinic_portal.extensions import db
from clinic_portal.models.task_models import FollowUpTask, TASK_PRIORITIES, TASK_STATUSES


def _serialize_task(task):
    appointment = task.appointment
    return {
        'id': task.id,
        'patient_id': task.patient_id,
        'patient_name': task.patient.display_name,
        'appointment_id': task.appointment_id,
        'scheduled_start': appointment.scheduled_start.isoformat() if appointment else None,
        'type': task.type,
        'priority': task.priority,
        'status': task.status,
        'risk_score': task.risk_score,
        'description': task.description,
        'created_at': task.created_at.isoformat() if task.created_at else None,
        'completed_at': task.completed_at.isoformat() if task.completed_at else None,
    }


def get_tasks():
    """Lists follow-up tasks, newest first, with optional status/priority filters."""
    query = FollowUpTask.query
    status = request.args.get('status')
    priority = request.args.get('priority')
    if status:
        query = query.filter_by(status=status)
    if priority:
        query = query.filter_by(priority=priority)

    tasks = query.order_by(FollowUpTask.created_at.desc()).all()
    return jsonify({'tasks': [_serialize_task(t) for t in tasks]}), 200


def update_task(task_id):
    task = db.session.get(FollowUpTask, task_id)
    if not task:
        return jsonify({'error': 'Task not found'}), 404

    data = request.get_json(silent=True) or {}
    if 'status' in data and data['status'] not in TASK_STATUSES:
        return jsonify({'error': f"Invalid status. Must be one of {', '.join(TASK_STATUSES)}"}), 400
    if 'priority' in data and data['priority'] not in TASK_PRIORITIES:
        return jsonify({'error': f"Invalid priority. Must be one of {', '.join(TASK_PRIORITIES)}"}), 400

    if 'status' in data and data['status'] != task.status:
        task.status = data['status']
        task.completed_at = datetime.utcnow() if task.status == 'DONE' else None
    if 'priority' in data:
        task.priority = data['priority']
    if 'description' in data:
        task.description = data['description']

    db.session.commit()
    return jsonify({'message': 'Task updated successfully', 'task': _serialize_task(task)}), 200


def delete_task(task_id):
    task = db.session.get(FollowUpTask, task_id)
    if not task:
        return jsonify({'error': 'Task not found'}), 404

    db.session.delete(task)
    db.session.commit()
    return jsonify({'message': 'Task deleted successfully'}), 200
