# Function endpoints called by the activation page, the SMS workflow and the scheduler.
# CORS for these routes is configured in create_app to allow any origin.

from . import functions_bp
from clinic_portal.extensions import limiter
from clinic_portal.utils.decorators import audit_log, require_service_key
from .controllers import invitation_controller, notification_controller


# The action query parameter selects the operation, whatever the HTTP method
INVITATION_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']


@functions_bp.route('/patient-invitation', methods=INVITATION_METHODS)
@limiter.limit("30 per minute")
@audit_log("PATIENT_INVITATION", "patient_invitations")
def patient_invitation():
    return invitation_controller.handle_invitation_action()


@functions_bp.route('/create-notifications', methods=['POST'])
@require_service_key
def create_notifications():
    return notification_controller.run_notification_scan()
