# Import every model module so string-based relationships resolve.
from clinic_portal.models import (  # noqa: F401
    user_models,
    patient_models,
    appointment_models,
    task_models,
    message_models,
    notification_models,
    system_models,
)
