# Overview: Flask API routes for delivery partners themselves; OTP login and authenticated field work.

# backend/icestock/routes/delivery_app.py
"""
Partner-side delivery routes.

Login is two unauthenticated steps (login-otp, verify-otp). Everything else
requires the bearer session token from verify-otp; the acting partner is
always g.delivery_partner, never an id taken from the request.
"""

from flask import Blueprint, request, jsonify, g

from ..services import partner_service, order_service, field_service
from ..decorators import require_delivery_auth
from .common import DOMAIN_ERRORS, error_response, json_body


delivery_app_bp = Blueprint("delivery_app", __name__, url_prefix="/api/delivery")


# =============================================================================
# LOGIN
# =============================================================================


@delivery_app_bp.post("/login-otp")
def login_otp():
    data = json_body()
    try:
        partner = partner_service.request_login_otp(data.get("email"), data.get("password"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "OTP sent", "partnerId": partner.id})


@delivery_app_bp.post("/verify-otp")
def verify_otp():
    data = json_body()
    try:
        partner, token = partner_service.verify_login_otp(
            partner_id=data.get("partnerId"),
            code=data.get("otp"),
            email=data.get("email"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({
        "message": "Login successful",
        "partnerId": partner.id,
        "token": token,
        "partner": partner.to_dict(),
    })


# =============================================================================
# PROFILE
# =============================================================================


@delivery_app_bp.get("/profile")
@require_delivery_auth
def profile():
    return jsonify({"partner": g.delivery_partner.to_dict()})


@delivery_app_bp.patch("/profile/update")
@require_delivery_auth
def profile_update():
    partner = partner_service.update_profile(g.delivery_partner, json_body())
    return jsonify({"message": "Profile updated successfully", "partner": partner.to_dict()})


@delivery_app_bp.post("/profile/request-password-otp")
@require_delivery_auth
def profile_request_password_otp():
    partner_service.request_password_otp(g.delivery_partner)
    return jsonify({"message": "OTP sent to email"})


@delivery_app_bp.patch("/profile/change-password")
@require_delivery_auth
def profile_change_password():
    data = json_body()
    try:
        partner_service.change_password(g.delivery_partner, data.get("otp"), data.get("newPassword"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Password updated successfully"})


@delivery_app_bp.post("/update-location")
@require_delivery_auth
def update_location():
    data = json_body()
    try:
        partner_service.update_location(g.delivery_partner, data.get("latitude"), data.get("longitude"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Location updated"})


# =============================================================================
# ORDERS
# =============================================================================


@delivery_app_bp.get("/orders")
@require_delivery_auth
def orders():
    only_unsettled = request.args.get("onlyUnsettled", "true").strip().lower() == "true"
    try:
        queue = order_service.delivery_queue(
            g.delivery_partner, only_unsettled=only_unsettled, user_id=request.args.get("userId")
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(queue)


@delivery_app_bp.patch("/update-order-status")
@require_delivery_auth
def update_order_status():
    data = json_body()
    try:
        order = order_service.update_delivery_status(
            g.delivery_partner, data.get("orderId"), data.get("status"), data.get("note"),
            user_id=data.get("userId"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    view = order.delivery_dict()
    return jsonify({
        "message": "Order updated successfully",
        "order": {k: view[k] for k in ("id", "orderId", "deliveryStatus", "deliveryPartnerId",
                                       "deliveryOnTheWayAt", "deliveryCompletedAt", "deliveryNotes")},
    })


@delivery_app_bp.get("/delivered-orders")
@require_delivery_auth
def delivered_orders():
    return jsonify(order_service.delivered_orders(g.delivery_partner))


# =============================================================================
# FIELD TOOLS
# =============================================================================


@delivery_app_bp.get("/search-customers")
@require_delivery_auth
def search_customers():
    try:
        customers = field_service.search_customers(
            g.delivery_partner, request.args.get("q"), request.args.get("userId")
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"customers": customers})


@delivery_app_bp.get("/search-products")
@require_delivery_auth
def search_products():
    try:
        products = field_service.search_products(
            g.delivery_partner, request.args.get("q"), request.args.get("userId")
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"products": products})


@delivery_app_bp.get("/customer-details")
@require_delivery_auth
def customer_details():
    try:
        customer = field_service.customer_details(g.delivery_partner, request.args.get("customerId", type=int))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"customer": customer})


@delivery_app_bp.get("/search-history")
@require_delivery_auth
def search_history():
    history = field_service.list_search_history(g.delivery_partner)
    return jsonify({"history": [h.to_dict() for h in history]})


@delivery_app_bp.post("/search-history")
@require_delivery_auth
def record_search():
    data = json_body()
    try:
        field_service.record_search(g.delivery_partner, data.get("customerId"), data.get("name"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Search saved"}), 201


@delivery_app_bp.get("/sticky-notes")
@require_delivery_auth
def sticky_notes():
    notes = field_service.list_sticky_notes(g.delivery_partner)
    return jsonify({"notes": [n.to_dict() for n in notes]})


@delivery_app_bp.post("/sticky-notes")
@require_delivery_auth
def create_sticky_note():
    try:
        note = field_service.create_sticky_note(g.delivery_partner, json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Sticky note created", "sticky": note.to_dict()}), 201
