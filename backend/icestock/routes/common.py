# Overview: Shared route helpers; request body parsing and domain exception to JSON error mapping.

from flask import current_app, jsonify, request

from ..validation import ValidationError, ConflictError, NotFoundError, AuthenticationError
from ..services.access_service import AccessDeniedError
from ..services.auth_service import PasswordValidationError, OtpCooldownError
from ..services.mail_service import MailDeliveryError
from ..services.otp_service import OtpError


DOMAIN_ERRORS = (
    ValidationError,
    PasswordValidationError,
    OtpError,
    OtpCooldownError,
    AuthenticationError,
    AccessDeniedError,
    NotFoundError,
    ConflictError,
    MailDeliveryError,
)

_STATUS = (
    ((ValidationError, PasswordValidationError, OtpError), 400),
    ((AuthenticationError,), 401),
    ((AccessDeniedError,), 403),
    ((NotFoundError,), 404),
    ((ConflictError,), 409),
    ((OtpCooldownError,), 429),
)


def error_response(e: Exception, **extra):
    """JSON body + status for a domain exception. Mail failures become a generic 500."""
    if isinstance(e, MailDeliveryError):
        current_app.logger.error("Mail delivery failed: %s", e)
        return jsonify({"error": "Failed to send email. Please try again later."}), 500

    body = {"error": str(e)}
    if isinstance(e, OtpCooldownError):
        body["waitSeconds"] = e.wait_seconds
    body.update(extra)

    for classes, status in _STATUS:
        if isinstance(e, classes):
            return jsonify(body), status

    current_app.logger.error("Unmapped domain error %s: %s", type(e).__name__, e)
    return jsonify({"error": "Internal server error"}), 500


def json_body() -> dict:
    """Request JSON object, or {} for a missing/invalid/non-object body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
