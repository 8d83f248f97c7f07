# /clinic_portal/api/routes.py

from flask_jwt_extended import jwt_required
from . import api_bp
from clinic_portal.extensions import limiter
from clinic_portal.utils.decorators import audit_log, require_role, require_service_key
from .controllers import (
    auth_controller, user_controller, patient_controller, appointment_controller,
    task_controller, message_controller, notification_controller, audit_controller
)


# --- Authentication Endpoints ---
@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit("10 per minute")
@audit_log("USER_LOGIN", "authentication")
def login():
    return auth_controller.login_user()

@api_bp.route('/auth/logout', methods=['POST'])
@jwt_required()
@audit_log("USER_LOGOUT", "authentication")
def logout():
    return auth_controller.logout_user()

@api_bp.route('/auth/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    return auth_controller.refresh_token()

@api_bp.route('/auth/change-password', methods=['POST'])
@jwt_required()
@limiter.limit("5 per minute")
@audit_log("PASSWORD_CHANGE", "authentication")
def change_password():
    return auth_controller.change_user_password()


# --- User Endpoints ---
@api_bp.route('/users/me', methods=['GET'])
@jwt_required()
def get_current_user_route():
    return user_controller.get_current_user_details()

@api_bp.route('/admin/users', methods=['GET'])
@jwt_required()
@require_role('admin')
@audit_log("VIEW_ALL_USERS", "users")
def get_all_users():
    return user_controller.get_all_users_list()

@api_bp.route('/admin/users', methods=['POST'])
@jwt_required()
@require_role('admin')
@audit_log("CREATE_STAFF_USER", "users")
def create_staff_user():
    return user_controller.create_staff_user()


# --- Patient Management Endpoints ---
@api_bp.route('/patients', methods=['GET'])
@jwt_required()
@require_role('staff')
@audit_log("VIEW_ALL_PATIENTS", "patients")
def get_patients_route():
    return patient_controller.get_all_patients()

@api_bp.route('/patients/me', methods=['GET'])
@jwt_required()
@require_role('patient')
@audit_log("VIEW_OWN_PATIENT_RECORD", "patients")
def get_own_patient_route():
    return patient_controller.get_own_patient_record()

@api_bp.route('/patients/<int:patient_id>', methods=['GET'])
@jwt_required()
@require_role('staff')
@audit_log("VIEW_PATIENT_DETAIL", "patients")
def get_patient_route(patient_id):
    return patient_controller.get_patient_by_id(patient_id)

@api_bp.route('/patients/<int:patient_id>', methods=['PUT'])
@jwt_required()
@require_role('staff')
@audit_log("UPDATE_PATIENT", "patients")
def update_patient_route(patient_id):
    return patient_controller.update_patient(patient_id)

@api_bp.route('/patients/<int:patient_id>', methods=['DELETE'])
@jwt_required()
@require_role('staff')
@audit_log("DELETE_PATIENT", "patients")
def delete_patient_route(patient_id):
    return patient_controller.delete_patient(patient_id)


# --- Appointment Endpoints ---
@api_bp.route('/appointments', methods=['POST'])
@jwt_required()
@require_role('staff')
@audit_log("CREATE_APPOINTMENT", "appointments")
def create_appointment_route():
    return appointment_controller.create_appointment()

@api_bp.route('/appointments', methods=['GET'])
@jwt_required()
@require_role('staff')
@audit_log("VIEW_ALL_APPOINTMENTS", "appointments")
def get_appointments_route():
    return appointment_controller.get_appointments()

@api_bp.route('/appointments/<int:appointment_id>', methods=['PUT'])
@jwt_required()
@require_role('staff')
@audit_log("UPDATE_APPOINTMENT", "appointments")
def update_appointment_route(appointment_id):
    return appointment_controller.update_appointment(appointment_id)

@api_bp.route('/appointments/<int:appointment_id>', methods=['DELETE'])
@jwt_required()
@require_role('staff')
@audit_log("DELETE_APPOINTMENT", "appointments")
def delete_appointment_route(appointment_id):
    return appointment_controller.delete_appointment(appointment_id)

@api_bp.route('/my/appointments', methods=['GET'])
@jwt_required()
@require_role('patient')
@audit_log("VIEW_OWN_APPOINTMENTS", "appointments")
def get_my_appointments_route():
    return appointment_controller.get_my_appointments()


# --- Follow-up Task Endpoints ---
@api_bp.route('/tasks', methods=['GET'])
@jwt_required()
@require_role('staff')
@audit_log("VIEW_ALL_TASKS", "follow_up_tasks")
def get_tasks_route():
    return task_controller.get_tasks()

@api_bp.route('/tasks/<int:task_id>', methods=['PUT'])
@jwt_required()
@require_role('staff')
@audit_log("UPDATE_TASK", "follow_up_tasks")
def update_task_route(task_id):
    return task_controller.update_task(task_id)

@api_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
@jwt_required()
@require_role('staff')
@audit_log("DELETE_TASK", "follow_up_tasks")
def delete_task_route(task_id):
    return task_controller.delete_task(task_id)


# --- Message Endpoints ---
@api_bp.route('/messages', methods=['GET'])
@jwt_required()
@require_role('staff')
@audit_log("VIEW_MESSAGES", "messages")
def get_messages_route():
    return message_controller.get_messages()

@api_bp.route('/my/messages', methods=['GET'])
@jwt_required()
@require_role('patient')
@audit_log("VIEW_OWN_MESSAGES", "messages")
def get_my_messages_route():
    return message_controller.get_my_messages()

@api_bp.route('/messages/inbound', methods=['POST'])
@require_service_key
@audit_log("RECEIVE_INBOUND_MESSAGE", "messages")
def receive_inbound_message_route():
    return message_controller.receive_inbound_message()


# --- Notification Endpoints ---
@api_bp.route('/notifications', methods=['GET'])
@jwt_required()
@require_role('staff')
def get_notifications_route():
    return notification_controller.get_my_notifications()

@api_bp.route('/notifications/<int:notification_id>/read', methods=['POST'])
@jwt_required()
@require_role('staff')
def mark_notification_read_route(notification_id):
    return notification_controller.mark_notification_read(notification_id)

@api_bp.route('/notifications/read-all', methods=['POST'])
@jwt_required()
@require_role('staff')
def mark_all_notifications_read_route():
    return notification_controller.mark_all_notifications_read()


# --- Audit Log Endpoints ---
@api_bp.route('/audit-log', methods=['GET'])
@jwt_required()
@require_role('staff')
def get_audit_log_route():
    return audit_controller.get_audit_log()
