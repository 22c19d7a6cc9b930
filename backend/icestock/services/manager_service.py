# Overview: Service-layer operations for shop managers; CRUD under an admin and OTP password change.

"""
Managers belong to exactly one admin (shop owner). Every query is scoped by
admin_id; (admin_id, email) is unique.

Password change is confirmed by the ADMIN: the code is mailed to the admin's
address, not the manager's, so a manager cannot reset their own password
without the owner's involvement.
"""

from flask import current_app

from ..extensions import db
from ..models import Manager, User
from ..validation import ValidationError, ConflictError, NotFoundError, normalize_email, require_fields
from .auth_service import hash_password, validate_email_format, validate_contact
from .mail_service import send_mail, otp_email
from .otp_service import default_policy


def _admin_id(value) -> int:
    if value in (None, ""):
        raise ValidationError("adminId required")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("adminId must be an integer")


def _email_taken(admin_id: int, email: str, exclude_id: int | None = None) -> Manager | None:
    query = db.session.query(Manager).filter_by(admin_id=admin_id, email=email)
    if exclude_id is not None:
        query = query.filter(Manager.id != exclude_id)
    return query.first()


def get_manager(admin_id, manager_id) -> Manager:
    manager = db.session.query(Manager).filter_by(id=manager_id, admin_id=_admin_id(admin_id)).first()
    if not manager:
        raise NotFoundError("Not found")
    return manager


def create_manager(data: dict) -> Manager:
    require_fields(data, "adminId", "name", "email", "contact", "password", message="All fields required")
    admin_id = _admin_id(data["adminId"])
    if not db.session.get(User, admin_id):
        raise NotFoundError("Admin not found")

    email = normalize_email(data["email"])
    validate_email_format(email)
    existing = _email_taken(admin_id, email)
    if existing:
        raise ConflictError("Manager already exists", record_id=existing.id)

    manager = Manager(
        admin_id=admin_id,
        name=str(data["name"]).strip(),
        email=email,
        contact=validate_contact(data["contact"]),
        password_hash=hash_password(data["password"]),
    )
    db.session.add(manager)
    db.session.commit()
    return manager


def list_managers(admin_id) -> list[Manager]:
    return db.session.query(Manager).filter_by(admin_id=_admin_id(admin_id)).order_by(
        Manager.created_at.desc(), Manager.id.desc()
    ).all()


def update_manager(data: dict) -> Manager:
    if not data.get("id") or not data.get("adminId"):
        raise ValidationError("id & adminId required")
    manager = get_manager(data["adminId"], data["id"])

    if data.get("email") is not None:
        email = normalize_email(data["email"])
        validate_email_format(email)
        existing = _email_taken(manager.admin_id, email, exclude_id=manager.id)
        if existing:
            raise ConflictError("Manager already exists", record_id=existing.id)
        manager.email = email
    if data.get("name") is not None:
        name = str(data["name"]).strip()
        if not name:
            raise ValidationError("name cannot be blank")
        manager.name = name
    if data.get("contact") is not None:
        manager.contact = validate_contact(data["contact"])

    db.session.commit()
    return manager


def delete_manager(admin_id, manager_id) -> None:
    if not manager_id or not admin_id:
        raise ValidationError("id & adminId required")
    manager = get_manager(admin_id, manager_id)
    db.session.delete(manager)
    db.session.commit()


def request_password_otp(manager_id, admin_id) -> None:
    if not manager_id or not admin_id:
        raise ValidationError("managerId & adminId required")
    manager = db.session.query(Manager).filter_by(id=manager_id, admin_id=_admin_id(admin_id)).first()
    if not manager:
        raise NotFoundError("Manager not found")
    admin = db.session.get(User, manager.admin_id)
    if not admin:
        raise NotFoundError("Admin not found")

    code = default_policy.issue(manager)
    db.session.commit()

    text, html = otp_email(admin.name, code, f"resetting the password of manager {manager.name}")
    send_mail(admin.email, "Manager Password Reset OTP", text=text, html=html)
    current_app.logger.info("Manager %s password OTP sent to admin %s", manager.id, admin.id)


def change_password(data: dict) -> None:
    require_fields(data, "managerId", "otp", "password", "adminId",
                   message="managerId, otp, password & adminId are required")
    manager = db.session.query(Manager).filter_by(
        id=data["managerId"], admin_id=_admin_id(data["adminId"])
    ).first()
    password_hash = hash_password(data["password"])

    def _set_password(m: Manager):
        m.password_hash = password_hash

    default_policy.verify(manager, data["otp"], _set_password, subject="Manager")
