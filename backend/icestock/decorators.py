# Overview: Request decorators for API routes; delivery partner bearer-token guard.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.access_service import log_security_event


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_delivery_auth(f):
    """
    Require a delivery partner session.

    Sets the following Flask g attributes:
    - g.partner_id: id of the authenticated partner
    - g.delivery_partner: the DeliveryPartner row

    The partner is re-read on every request, nothing is cached, so approval
    withdrawn after login takes effect on the very next call.

    Returns:
    - 401 "Authorization token missing": no or malformed Bearer header
    - 401 "Session expired. Please login again.": token matches no partner
    - 403 "Access revoked. Please login again.": partner no longer approved
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization token missing"}), 401

        partner = session_service.resolve_session(token)
        if not partner:
            return jsonify({"error": "Session expired. Please login again."}), 401

        if not partner.is_approved:
            log_security_event(
                actor=f"partner:{partner.id}",
                event_type="REVOKED_SESSION_USED",
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"Partner status is {partner.status}",
            )
            return jsonify({"error": "Access revoked. Please login again."}), 403

        g.partner_id = partner.id
        g.delivery_partner = partner

        return f(*args, **kwargs)

    return decorated_function
