# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/icestock/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Shop owner inspection/bootstrap:
# - python -m flask users list
#   List shop owner accounts with verification status.
# - python -m flask users create --name "Asha" --email asha@example.com --contact 9876543210 \
#       --shop-name "Polar Treats" --shop-address "12 MG Road" --gstin 29ABCDE1234F1Z5 --password secret1
#   Create an already-verified shop owner (prompts if options are omitted).
#
# Delivery partner inspection/repair:
# - python -m flask partners list [--status pending|approved|rejected]
#   List delivery partners.
# - python -m flask partners set-status 7 approved
#   Force a partner's lifecycle status. Leaving "approved" revokes the session.
#
# Maintenance:
# - python -m flask maintenance purge-otps
#   Clear expired one-time passcodes on users, managers and delivery partners.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Manager, DeliveryPartner
from .models.delivery import PARTNER_STATUSES, PARTNER_APPROVED
from .services.auth_service import (
    GSTIN_RE,
    PasswordValidationError,
    hash_password,
    validate_contact,
    validate_email_format,
)
from .services.otp_service import default_policy
from .validation import ValidationError, normalize_email
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables and data are left alone)."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


# =============================================================================
# SHOP OWNERS
# =============================================================================


@click.group('users')
def users_group():
    """Shop owner inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Owner name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--contact', prompt=True, help='10-digit contact number')
@click.option('--shop-name', prompt=True, help='Shop name')
@click.option('--shop-address', prompt=True, help='Shop address')
@click.option('--gstin', prompt=True, help='GSTIN')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(name, email, contact, shop_name, shop_address, gstin, password):
    """
    Create a shop owner without the email verification round trip.

    The account is marked verified so it can log in immediately.
    """
    email = normalize_email(email)
    gstin = gstin.strip().upper()
    try:
        validate_email_format(email)
        contact = validate_contact(contact)
        if not GSTIN_RE.match(gstin):
            raise ValidationError("Invalid GSTIN format")
        password_hash = hash_password(password)
    except (ValidationError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return

    existing = db.session.query(User).filter(db.or_(User.email == email, User.gstin == gstin)).first()
    if existing:
        click.echo(f"FAIL Email or GSTIN already registered (user ID: {existing.id})")
        return

    user = User(
        name=name.strip(),
        email=email,
        contact=contact,
        shop_name=shop_name.strip(),
        shop_address=shop_address.strip(),
        gstin=gstin,
        password_hash=password_hash,
        is_verified=True,
    )
    db.session.add(user)
    db.session.commit()

    click.echo(f"PASS Created user: {user.name} ({user.email}) ID: {user.id}")
    click.echo(f"     Shop: {user.shop_name}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all shop owners."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<32} {'Shop':<28} {'Verified'}")
    click.echo("="*100)

    for user in users:
        verified_str = "Yes" if user.is_verified else "No"
        click.echo(f"{user.id:<5} {user.name[:20]:<20} {user.email[:32]:<32} {user.shop_name[:28]:<28} {verified_str}")

    click.echo("="*100 + "\n")


# =============================================================================
# DELIVERY PARTNERS
# =============================================================================


@click.group('partners')
def partners_group():
    """Delivery partner inspection and repair commands."""


@partners_group.command('list')
@click.option('--status', type=click.Choice(sorted(PARTNER_STATUSES)), help='Filter by lifecycle status')
@with_appcontext
def list_partners(status):
    """List delivery partners, newest first."""
    query = db.session.query(DeliveryPartner)
    if status:
        query = query.filter_by(status=status)
    partners = query.order_by(DeliveryPartner.created_at.desc()).all()

    if not partners:
        click.echo("No delivery partners found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<32} {'Shop':<6} {'Status':<10} {'Session'}")
    click.echo("="*100)

    for p in partners:
        shop = p.created_by_user_id if p.created_by_user_id is not None else "-"
        session_str = "active" if p.session_token_hash else "-"
        click.echo(f"{p.id:<5} {p.name[:20]:<20} {p.email[:32]:<32} {shop:<6} {p.status:<10} {session_str}")

    click.echo("="*100 + "\n")


@partners_group.command('set-status')
@click.argument('partner_id', type=int)
@click.argument('status', type=click.Choice(sorted(PARTNER_STATUSES)))
@with_appcontext
def set_partner_status(partner_id, status):
    """Force a partner's status (support tool; no notification mail is sent)."""
    partner = db.session.get(DeliveryPartner, partner_id)
    if not partner:
        click.echo(f"FAIL Delivery partner ID {partner_id} not found")
        return

    previous = partner.status
    partner.status = status
    if status != PARTNER_APPROVED:
        partner.session_token_hash = None
    elif partner.notified_at is None:
        partner.notified_at = utcnow()
    db.session.commit()

    click.echo(f"PASS Partner {partner.id} ({partner.email}): {previous} -> {status}")


# =============================================================================
# MAINTENANCE
# =============================================================================


@click.group('maintenance')
def maintenance_group():
    """Maintenance and cleanup commands."""


@maintenance_group.command('purge-otps')
@with_appcontext
def purge_otps_cli():
    """Clear one-time passcodes whose expiry has passed."""
    now = utcnow()
    for model in (User, Manager, DeliveryPartner):
        expired = db.session.query(model).filter(model.otp_expires.isnot(None), model.otp_expires < now).all()
        for record in expired:
            default_policy.clear(record)
        click.echo(f"Cleared {len(expired)} expired codes on {model.__tablename__}.")
    db.session.commit()


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(partners_group)
    app.cli.add_command(maintenance_group)
