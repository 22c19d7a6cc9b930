# Overview: Service-layer operations for delivery partners; registration lifecycle, login, profile, location.

"""
Delivery Partner Lifecycle

STATE MACHINE (status):
    pending  -> approved   (owner / admin-email approval)
    pending  -> rejected   (owner / admin-email rejection)
    rejected -> pending    (re-registration under the same email + shop, row reused)

Approved partners are never pushed back to pending by registering again.
Owner-side updates may set any status explicitly.

A partner is identified for deduplication by (email, created_by_user_id):
the same person may work for several shops, one row per shop.

LOGIN (two steps, both require status == approved):
    request_login_otp(email, password) -> code mailed (best effort)
    verify_login_otp(partner, code)    -> opaque session token, returned once
"""

from flask import current_app
from markupsafe import escape

from ..extensions import db
from ..models import DeliveryPartner, SearchHistory, User, Order
from ..models.delivery import PARTNER_PENDING, PARTNER_APPROVED, PARTNER_REJECTED, PARTNER_STATUSES
from ..models.orders import DELIVERY_PENDING, DELIVERY_ON_THE_WAY
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    AuthenticationError,
    normalize_email,
    require_fields,
)
from .access_service import (
    AccessDeniedError,
    Proof,
    require_partner_action,
    REASON_ADMIN_EMAIL,
    REASON_SUPERUSER,
    log_security_event,
)
from .auth_service import hash_password, verify_password
from .mail_service import notify, otp_email
from .otp_service import default_policy
from . import session_service
from icestock.time_utils import utcnow


def get_partner(partner_id) -> DeliveryPartner:
    if not partner_id:
        raise ValidationError("partnerId required")
    try:
        partner_id = int(partner_id)
    except (TypeError, ValueError):
        raise NotFoundError("Partner not found")
    partner = db.session.get(DeliveryPartner, partner_id)
    if not partner:
        raise NotFoundError("Partner not found")
    return partner


def _send_code(partner: DeliveryPartner, code: str, purpose: str, subject: str) -> None:
    text, html = otp_email(partner.name, code, purpose)
    notify(partner.email, subject, text=text, html=html)


# =============================================================================
# REGISTRATION AND OWNER ACTIONS
# =============================================================================


def register(data: dict) -> tuple[DeliveryPartner, bool]:
    """
    Register a partner under a shop, or re-submit a rejected request.

    Returns (partner, created). created is False when a rejected row was reused.

    Raises ConflictError (carrying the partner id) when a request for the same
    email + shop is already pending or approved.
    """
    require_fields(data, "name", "email", "password", message="Name, email and password are required")

    email = normalize_email(data["email"])
    if "@" not in email:
        raise ValidationError("Invalid email")

    created_by = data.get("createdByUser") or data.get("userId")
    owner = None
    if created_by not in (None, ""):
        try:
            owner = db.session.get(User, int(created_by))
        except (TypeError, ValueError):
            raise ValidationError("createdByUser must be a user id")
        if not owner:
            raise NotFoundError("User not found")

    admin_id = str(data.get("adminId") or "").strip() or None
    admin_email = normalize_email(data.get("adminEmail")) or None
    if not admin_email and owner:
        admin_email = owner.email.lower()

    phone = str(data.get("phone") or "").strip()
    password_hash = hash_password(data["password"])

    partner = db.session.query(DeliveryPartner).filter_by(
        email=email,
        created_by_user_id=owner.id if owner else None,
    ).first()

    if partner and partner.status == PARTNER_PENDING:
        raise ConflictError("Request already pending", record_id=partner.id)
    if partner and partner.status == PARTNER_APPROVED:
        raise ConflictError("Partner already approved", record_id=partner.id)

    created = partner is None
    if created:
        partner = DeliveryPartner(
            email=email,
            created_by_user_id=owner.id if owner else None,
        )
        db.session.add(partner)

    partner.name = str(data["name"]).strip()
    if phone or created:
        partner.phone = phone
    partner.password_hash = password_hash
    partner.admin_id = admin_id or partner.admin_id
    partner.admin_email = admin_email or partner.admin_email
    partner.status = PARTNER_PENDING
    partner.session_token_hash = None

    code = default_policy.issue(partner)
    db.session.commit()

    current_app.logger.info(
        "Delivery partner %s %s for user %s", partner.id,
        "registered" if created else "re-requested", partner.created_by_user_id,
    )
    _send_code(partner, code, "delivery partner verification", "Delivery Partner Verification Code")
    return partner, created


def _require_owner_proof(proof: Proof, allow_superuser: bool) -> None:
    if proof.user_id is None and not proof.admin_email and not (allow_superuser and proof.admin_id):
        if allow_superuser:
            raise ValidationError("userId or adminEmail or adminId required for authorization")
        raise ValidationError("userId or adminEmail required")


def approve(partner_id, proof: Proof) -> DeliveryPartner:
    if not partner_id:
        raise ValidationError("partnerId required")
    _require_owner_proof(proof, allow_superuser=False)
    partner = get_partner(partner_id)
    require_partner_action(partner, proof, action="approve")

    partner.status = PARTNER_APPROVED
    partner.notified_at = utcnow()
    db.session.commit()

    notify(
        partner.email,
        "Delivery Partner Approved",
        text=f"Hello {partner.name},\n\nYour registration as a delivery partner has been approved. "
             f"You can now login using OTP.\n",
        html=f"<p>Hello {escape(partner.name)},</p>"
             f"<p>Your registration as a delivery partner has been <strong>approved</strong>. "
             f"You can now login using OTP.</p>",
    )
    return partner


def reject(partner_id, proof: Proof) -> DeliveryPartner:
    if not partner_id:
        raise ValidationError("partnerId required")
    _require_owner_proof(proof, allow_superuser=False)
    partner = get_partner(partner_id)
    require_partner_action(partner, proof, action="reject")

    partner.status = PARTNER_REJECTED
    partner.notified_at = utcnow()
    db.session.commit()

    notify(
        partner.email,
        "Delivery Partner Request Rejected",
        text=f"Hello {partner.name},\n\nYour delivery partner request has been rejected. "
             f"You may submit a new request.\n",
    )
    return partner


def delete(partner_id, proof: Proof) -> None:
    if not partner_id:
        raise ValidationError("partnerId required")
    _require_owner_proof(proof, allow_superuser=True)
    partner = get_partner(partner_id)
    require_partner_action(partner, proof, allow_superuser=True, action="delete")

    db.session.query(SearchHistory).filter_by(partner_id=partner.id).delete()
    db.session.delete(partner)
    db.session.commit()
    current_app.logger.info("Delivery partner %s deleted by %s", partner_id, proof.actor)


def update(partner_id, proof: Proof, data: dict) -> DeliveryPartner:
    """
    Owner-side edit of name, email, phone, status and admin email.

    Changing admin_email requires the admin-email or superuser capability;
    a plain owner proof leaves it untouched.
    """
    if not partner_id:
        raise ValidationError("partnerId required")
    _require_owner_proof(proof, allow_superuser=True)
    partner = get_partner(partner_id)
    decision = require_partner_action(partner, proof, allow_superuser=True, action="update")

    if data.get("status") is not None:
        status = str(data["status"]).strip().lower()
        if status not in PARTNER_STATUSES:
            raise ValidationError("Invalid status")
        partner.status = status

    if data.get("name") is not None:
        name = str(data["name"]).strip()
        if not name:
            raise ValidationError("name cannot be blank")
        partner.name = name

    if data.get("email") is not None:
        email = normalize_email(data["email"])
        if "@" not in email:
            raise ValidationError("Invalid email")
        conflict = db.session.query(DeliveryPartner).filter_by(
            email=email,
            created_by_user_id=partner.created_by_user_id,
        ).filter(DeliveryPartner.id != partner.id).first()
        if conflict:
            raise ConflictError(
                "Another partner with this email already exists for this shop. "
                "Use a different email or remove the existing partner first.",
                record_id=conflict.id,
            )
        partner.email = email

    if "phone" in data:
        partner.phone = str(data.get("phone") or "").strip()

    if "adminEmail" in data and decision.reason in (REASON_ADMIN_EMAIL, REASON_SUPERUSER):
        partner.admin_email = normalize_email(data.get("adminEmail")) or None

    db.session.commit()
    return partner


def list_partners(user_id=None, admin_email: str | None = None, status: str | None = None) -> list[DeliveryPartner]:
    """
    Partners visible to a shop (by owner id) or to an admin (by admin email).

    admin_email wins when both are given; ADMIN_EMAIL config is the fallback.
    Newest first.
    """
    admin_email = normalize_email(admin_email) or normalize_email(current_app.config.get("ADMIN_EMAIL")) or None
    if user_id in ("", None) and not admin_email:
        raise ValidationError("userId or adminEmail required")

    query = db.session.query(DeliveryPartner)
    if admin_email:
        query = query.filter(db.func.lower(DeliveryPartner.admin_email) == admin_email)
    else:
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise ValidationError("userId must be an integer")
        if not db.session.get(User, user_id):
            raise NotFoundError("User not found")
        query = query.filter(DeliveryPartner.created_by_user_id == user_id)

    if status:
        query = query.filter(DeliveryPartner.status == str(status).strip().lower())

    return query.order_by(DeliveryPartner.created_at.desc(), DeliveryPartner.id.desc()).all()


def notification_counts(user_id=None, admin_email: str | None = None) -> dict:
    admin_email = normalize_email(admin_email) or None
    if user_id in ("", None) and not admin_email:
        raise ValidationError("userId or adminEmail required")

    pending_partners = 0
    pending_deliveries = 0
    if user_id not in ("", None):
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            raise ValidationError("userId must be an integer")
        pending_partners = db.session.query(DeliveryPartner).filter_by(
            created_by_user_id=user_id, status=PARTNER_PENDING
        ).count()
        pending_deliveries = db.session.query(Order).filter(
            Order.user_id == user_id,
            Order.discarded_at.is_(None),
            Order.delivery_status.in_([DELIVERY_PENDING, DELIVERY_ON_THE_WAY]),
        ).count()
    else:
        # Unowned partners with no admin email are routed to every admin
        pending_partners = db.session.query(DeliveryPartner).filter(
            DeliveryPartner.status == PARTNER_PENDING,
            db.or_(
                db.func.lower(DeliveryPartner.admin_email) == admin_email,
                db.and_(DeliveryPartner.created_by_user_id.is_(None), DeliveryPartner.admin_email.is_(None)),
            ),
        ).count()

    return {"pendingPartners": pending_partners, "pendingDeliveries": pending_deliveries}


def live_location(partner_id) -> dict:
    partner = get_partner(partner_id)
    location = partner.location_dict()
    if not location:
        raise NotFoundError("Location not available")
    return {
        "partnerId": partner.id,
        "name": partner.name,
        "phone": partner.phone or None,
        "latitude": location["latitude"],
        "longitude": location["longitude"],
        "updatedAt": location["updatedAt"],
    }


# =============================================================================
# LOGIN
# =============================================================================


def request_login_otp(email: str, password: str) -> DeliveryPartner:
    """
    Step 1 of partner login.

    A partner email can exist under several shops. Approved rows are tried in
    order; the first whose password matches receives the code.
    """
    require_fields({"email": email, "password": password}, "email", "password",
                   message="Email and password required")
    email = normalize_email(email)

    partners = db.session.query(DeliveryPartner).filter_by(email=email).order_by(DeliveryPartner.id).all()
    if not partners:
        raise NotFoundError("Partner not found")

    approved = [p for p in partners if p.status == PARTNER_APPROVED]
    if not approved:
        raise AccessDeniedError(f"Partner not approved ({partners[0].status})")

    partner = next((p for p in approved if verify_password(password, p.password_hash)), None)
    if not partner:
        log_security_event(
            actor=f"partner_email:{email}",
            event_type="DELIVERY_LOGIN_FAILED",
            success=False,
            resource="delivery_login",
            reason="Invalid credentials",
        )
        raise AuthenticationError("Invalid credentials")

    code = default_policy.issue(partner)
    db.session.commit()

    _send_code(partner, code, "delivery login", "Delivery Partner Login OTP")
    return partner


def verify_login_otp(partner_id=None, code=None, email: str | None = None) -> tuple[DeliveryPartner, str]:
    """
    Step 2 of partner login. Returns (partner, plaintext session token).

    The partner is addressed by id; an email is accepted instead when it maps
    to exactly one approved partner holding an outstanding code.
    """
    if not code or (not partner_id and not email):
        raise ValidationError("partnerId and OTP required")

    if partner_id:
        partner = get_partner(partner_id)
    else:
        candidates = db.session.query(DeliveryPartner).filter(
            DeliveryPartner.email == normalize_email(email),
            DeliveryPartner.status == PARTNER_APPROVED,
            DeliveryPartner.otp.isnot(None),
        ).all()
        if not candidates:
            raise NotFoundError("Partner not found")
        if len(candidates) > 1:
            raise ValidationError("partnerId required")
        partner = candidates[0]

    # Approval may have been withdrawn between the two login steps
    if partner.status != PARTNER_APPROVED:
        raise AccessDeniedError("Partner not approved")

    token = default_policy.verify(partner, code, session_service.mint_session, subject="Partner")
    current_app.logger.info("Delivery partner %s logged in", partner.id)
    return partner, token


# =============================================================================
# PARTNER SELF-SERVICE (behind require_delivery_auth)
# =============================================================================


def update_profile(partner: DeliveryPartner, data: dict) -> DeliveryPartner:
    name = str(data.get("name") or "").strip()
    phone = str(data.get("phone") or "").strip()
    if name:
        partner.name = name
    if phone:
        partner.phone = phone
    db.session.commit()
    return partner


def request_password_otp(partner: DeliveryPartner) -> None:
    code = default_policy.issue(partner)
    db.session.commit()
    _send_code(partner, code, "changing your password", "Password Change OTP")


def change_password(partner: DeliveryPartner, code, new_password) -> None:
    require_fields({"otp": code, "newPassword": new_password}, "otp", "newPassword",
                   message="otp and newPassword required")
    password_hash = hash_password(new_password)

    def _set_password(p: DeliveryPartner):
        p.password_hash = password_hash

    default_policy.verify(partner, code, _set_password, subject="Partner")


def update_location(partner: DeliveryPartner, latitude, longitude) -> DeliveryPartner:
    if latitude in (None, "") or longitude in (None, ""):
        raise ValidationError("latitude and longitude required")
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("latitude and longitude must be numbers")
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationError("latitude/longitude out of range")

    partner.last_latitude = lat
    partner.last_longitude = lng
    partner.location_updated_at = utcnow()
    db.session.commit()
    return partner
