# Overview: Service-layer authorization for partner management; capability checks and security audit log.

"""
Partner Management Authorization

WHY: Owner-side partner actions (approve, reject, update, delete) accept three
different kinds of proof. Each is a separate capability and is reported as
such, so callers and auditors can tell them apart:

- owner:       proof.user_id == partner.created_by_user_id
- admin_email: proof.admin_email matches partner.admin_email (case-insensitive)
- superuser:   proof.admin_id equals the configured ADMIN_ID shared secret

The superuser capability bypasses ownership entirely. Every use of it is
written to security_events (SUPERUSER_PARTNER_ACTION) so it can be audited
independently of normal owner activity.
"""

import hmac
from dataclasses import dataclass

from flask import current_app, request, has_request_context

from ..extensions import db
from ..models import SecurityEvent, DeliveryPartner
from ..validation import ValidationError
from icestock.time_utils import utcnow


REASON_OWNER = "owner"
REASON_ADMIN_EMAIL = "admin_email"
REASON_SUPERUSER = "superuser"


class AccessDeniedError(Exception):
    """Raised when the caller holds no capability for the requested action (HTTP 403)."""
    pass


@dataclass(frozen=True)
class Proof:
    """Identity claims presented with an owner-side request."""
    user_id: int | None = None
    admin_email: str | None = None
    admin_id: str | None = None

    @classmethod
    def from_payload(cls, data: dict) -> "Proof":
        user_id = data.get("userId")
        if user_id in ("", None):
            user_id = None
        else:
            try:
                user_id = int(user_id)
            except (TypeError, ValueError):
                user_id = None
        admin_email = str(data.get("adminEmail") or "").strip().lower() or None
        admin_id = str(data.get("adminId") or "").strip() or None
        return cls(user_id=user_id, admin_email=admin_email, admin_id=admin_id)

    @property
    def actor(self) -> str:
        if self.user_id is not None:
            return f"user:{self.user_id}"
        if self.admin_email:
            return f"admin:{self.admin_email}"
        return "superuser" if self.admin_id else "anonymous"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


def log_security_event(
    actor: str | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    WHY: Immutable audit log for security monitoring.

    event_type examples:
    - SUPERUSER_PARTNER_ACTION
    - PARTNER_ACTION_DENIED
    - DELIVERY_LOGIN_FAILED
    - REVOKED_SESSION_USED
    """
    if ip_address is None and has_request_context():
        ip_address = request.remote_addr
        user_agent = user_agent or request.headers.get("User-Agent")

    event = SecurityEvent(
        actor=actor,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def partner_shop_id(partner: DeliveryPartner, user_id=None) -> int:
    """
    Shop a delivery partner is working for on this request.

    A partner registered by a shop is bound to it (a different userId is
    refused). A partner with no owning shop must name one with userId.
    """
    if partner.created_by_user_id is not None:
        if user_id not in (None, "") and str(user_id) != str(partner.created_by_user_id):
            raise AccessDeniedError("Partner not associated with this shop")
        return partner.created_by_user_id
    if user_id in (None, ""):
        raise ValidationError("userId required")
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise ValidationError("userId must be an integer")


def is_superuser(proof: Proof) -> bool:
    secret = current_app.config.get("ADMIN_ID")
    if not secret or not proof.admin_id:
        return False
    return hmac.compare_digest(str(proof.admin_id), str(secret))


def authorize_partner_action(
    partner: DeliveryPartner,
    proof: Proof,
    allow_superuser: bool = False,
    action: str | None = None,
) -> AccessDecision:
    """
    Decide whether `proof` may act on `partner`.

    Ownership and admin-email matches are checked before the superuser secret,
    so a shop owner acting on their own partner is never logged as superuser.
    """
    if proof.user_id is not None and partner.created_by_user_id is not None:
        if proof.user_id == partner.created_by_user_id:
            return AccessDecision(True, REASON_OWNER)

    if proof.admin_email and partner.admin_email:
        if proof.admin_email.strip().lower() == partner.admin_email.strip().lower():
            return AccessDecision(True, REASON_ADMIN_EMAIL)

    if allow_superuser and is_superuser(proof):
        log_security_event(
            actor="superuser",
            event_type="SUPERUSER_PARTNER_ACTION",
            success=True,
            resource=f"delivery_partner:{partner.id}",
            action=action,
        )
        current_app.logger.warning("Superuser %s on delivery partner %s", action or "action", partner.id)
        return AccessDecision(True, REASON_SUPERUSER)

    return AccessDecision(False, None)


def require_partner_action(
    partner: DeliveryPartner,
    proof: Proof,
    allow_superuser: bool = False,
    action: str | None = None,
) -> AccessDecision:
    """authorize_partner_action() that raises AccessDeniedError instead of returning a denial."""
    decision = authorize_partner_action(partner, proof, allow_superuser=allow_superuser, action=action)
    if not decision.allowed:
        log_security_event(
            actor=proof.actor,
            event_type="PARTNER_ACTION_DENIED",
            success=False,
            resource=f"delivery_partner:{partner.id}",
            action=action,
            reason="No owner, admin email or superuser proof",
        )
        raise AccessDeniedError("Not authorized")
    return decision
