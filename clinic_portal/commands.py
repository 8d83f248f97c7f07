import click
from flask import current_app
from flask.cli import with_appcontext
from clinic_portal.extensions import db
from clinic_portal.models.user_models import Role, ROLE_STAFF, ROLE_ADMIN, ROLE_PATIENT
from clinic_portal.utils.errors import PortalError

DEFAULT_ROLES = [
    {'name': ROLE_ADMIN, 'description': 'Administrative access'},
    {'name': ROLE_STAFF, 'description': 'Clinic staff access'},
    {'name': ROLE_PATIENT, 'description': 'Patient portal access'},
]


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables and seed the default roles."""
    db.create_all()

    for role_data in DEFAULT_ROLES:
        if not Role.get_by_name(role_data['name']):
            db.session.add(Role(**role_data))
    db.session.commit()

    click.echo("Database initialized successfully with default roles!")


@click.command('create-staff')
@click.option('--email', prompt=True, help='Login email for the staff member.')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', default=None, help='Display name.')
@click.option('--admin', is_flag=True, help='Also grant the admin role.')
@with_appcontext
def create_staff_command(email, password, full_name, admin):
    """Create a staff identity, optionally with admin rights."""
    from clinic_portal.api.controllers.user_controller import build_staff_user

    role_names = (ROLE_STAFF, ROLE_ADMIN) if admin else (ROLE_STAFF,)
    try:
        user = build_staff_user(email, password, full_name, role_names)
    except (PortalError, ValueError) as e:
        raise click.ClickException(str(e))

    db.session.add(user)
    db.session.commit()
    click.echo(f"Created staff user {user.id} with roles: {', '.join(user.role_names)}")


@click.command('scan-notifications')
@with_appcontext
def scan_notifications_command():
    """Run one notification scan, as the scheduler would."""
    try:
        created = current_app.extensions['notification_scanner'].scan()
    except PortalError as e:
        raise click.ClickException(e.message)
    click.echo(f"Notifications created: {created}")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_staff_command)
    app.cli.add_command(scan_notifications_command)
