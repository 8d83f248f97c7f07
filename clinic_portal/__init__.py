from datetime import timedelta

from flask import Flask
from clinic_portal.extensions import db, bcrypt, migrate, jwt, limiter, cors
from clinic_portal.utils.encryption_util import encryptor
from clinic_portal.utils.error_handlers import register_error_handlers, register_jwt_callbacks
from clinic_portal.utils.sms_dispatch import SmsInvitationDispatcher
from clinic_portal.services.invitation_service import InvitationService
from clinic_portal.services.notification_scanner import NotificationScanner
from clinic_portal.commands import register_commands
from config import config


def create_app(config_name='default'):
    app = Flask(__name__)
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    register_jwt_callbacks()
    limiter.init_app(app)

    # Browser clients call the function endpoints from any origin
    cors.init_app(app, resources={
        r"/functions/*": {
            "origins": "*",
            "send_wildcard": True,
            "allow_headers": app.config['FUNCTION_ALLOWED_HEADERS'],
        },
        r"/api/*": {"origins": app.config['ALLOWED_ORIGINS']},
    })

    # Initialize custom utilities
    encryptor.init_app(app)

    # Initialize app with config
    config_class.init_app(app)

    # Services used by the function endpoints and CLI
    dispatcher = SmsInvitationDispatcher(
        webhook_url=app.config['SMS_INVITATION_WEBHOOK_URL'],
        timeout=app.config['SMS_WEBHOOK_TIMEOUT'],
        max_workers=app.config['SMS_DISPATCH_WORKERS'],
    )
    app.extensions['sms_dispatcher'] = dispatcher
    app.extensions['invitation_service'] = InvitationService(
        dispatcher,
        ttl=timedelta(days=app.config['INVITATION_TTL_DAYS']),
        activation_base_url=app.config['ACTIVATION_BASE_URL'],
    )
    app.extensions['notification_scanner'] = NotificationScanner(
        task_window=timedelta(minutes=app.config['NOTIFICATION_TASK_WINDOW_MINUTES']),
        appointment_window=timedelta(minutes=app.config['NOTIFICATION_APPOINTMENT_WINDOW_MINUTES']),
        message_window=timedelta(minutes=app.config['NOTIFICATION_MESSAGE_WINDOW_MINUTES']),
    )

    # Register models so create_all and migrations see every table
    from clinic_portal import models  # noqa: F401

    # Register blueprints
    from clinic_portal.api import api_bp, functions_bp
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(functions_bp, url_prefix='/functions')

    # Register error handlers and commands
    register_error_handlers(app)
    register_commands(app)

    return app
