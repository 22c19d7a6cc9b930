# Overview: Flask API routes for delivery partner management (shop owner / admin side).

# backend/icestock/routes/delivery.py
"""
Owner-side delivery partner routes.

Callers identify themselves with userId (shop owner), adminEmail, or adminId
(shared superuser secret) in the body or query string; access_service decides
which of these proofs may perform each action.
"""

from flask import Blueprint, request, jsonify

from ..services import partner_service
from ..services.access_service import Proof
from ..validation import ConflictError
from .common import DOMAIN_ERRORS, error_response, json_body


delivery_bp = Blueprint("delivery", __name__, url_prefix="/api/delivery")


@delivery_bp.post("/register")
def register_partner():
    """
    Register a delivery partner (or re-submit a rejected request).

    201 new registration, 200 re-request, 409 (with partnerId) when a request
    for this email + shop is already pending or approved.
    """
    try:
        partner, created = partner_service.register(json_body())
    except ConflictError as e:
        return error_response(e, partnerId=e.record_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    if created:
        return jsonify({"message": "Delivery partner registered", "partnerId": partner.id}), 201
    return jsonify({"message": "Re-request submitted", "partnerId": partner.id}), 200


@delivery_bp.patch("/approve")
def approve_partner():
    data = json_body()
    try:
        partner = partner_service.approve(data.get("partnerId"), Proof.from_payload(data))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Partner approved", "partner": partner.to_dict()})


@delivery_bp.patch("/reject")
def reject_partner():
    data = json_body()
    try:
        partner = partner_service.reject(data.get("partnerId"), Proof.from_payload(data))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Partner rejected", "partner": partner.to_dict()})


@delivery_bp.delete("/delete")
def delete_partner():
    data = json_body() or request.args.to_dict()
    try:
        partner_service.delete(data.get("partnerId"), Proof.from_payload(data))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Partner deleted", "partnerId": data.get("partnerId")})


@delivery_bp.patch("/update")
def update_partner():
    data = json_body()
    try:
        partner = partner_service.update(data.get("partnerId"), Proof.from_payload(data), data)
    except ConflictError as e:
        return error_response(e, partnerId=e.record_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Partner updated", "partner": partner.to_dict()})


@delivery_bp.get("/list")
def list_partners():
    """Query: userId or adminEmail (falls back to ADMIN_EMAIL), status (optional)."""
    try:
        partners = partner_service.list_partners(
            user_id=request.args.get("userId"),
            admin_email=request.args.get("adminEmail"),
            status=request.args.get("status"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify([p.to_dict() for p in partners])


@delivery_bp.get("/notifications")
def notifications():
    try:
        counts = partner_service.notification_counts(
            user_id=request.args.get("userId"),
            admin_email=request.args.get("adminEmail"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(counts)


@delivery_bp.get("/live-location")
def live_location():
    try:
        location = partner_service.live_location(request.args.get("partnerId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(location)
