# backend/icestock/routes/system.py
"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, DeliveryPartner
from ..models.delivery import PARTNER_APPROVED
from icestock.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        partner_count = db.session.query(DeliveryPartner).count()
        active_sessions = db.session.query(DeliveryPartner).filter(
            DeliveryPartner.session_token_hash.isnot(None),
            DeliveryPartner.status == PARTNER_APPROVED,
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "delivery_partners": partner_count,
                "active_partner_sessions": active_sessions,
            }
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_mail_health() -> dict:
    cfg = current_app.config
    backend = cfg.get("MAIL_BACKEND", "smtp")
    if backend == "memory":
        return {"status": "healthy", "backend": backend}
    configured = bool(cfg.get("SMTP_HOST") and cfg.get("SMTP_USER") and cfg.get("SMTP_PASS"))
    return {
        "status": "healthy" if configured else "degraded",
        "backend": backend,
        **({} if configured else {"warning": "SMTP is not configured; OTP mails will fail"}),
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (mail not configured)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    mail_health = check_mail_health()

    all_checks = [database_health, mail_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "mail": mail_health,
        }
    }, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging. Exposes no secrets.
    """
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "app_name": current_app.config.get("APP_NAME"),
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
