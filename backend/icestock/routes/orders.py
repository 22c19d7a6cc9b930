# Overview: Flask API routes for orders; billing and settlement actions.

from flask import Blueprint, request, jsonify

from ..services import order_service
from .common import DOMAIN_ERRORS, error_response, json_body


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
def create_order():
    try:
        order = order_service.create_order(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "order": order.to_dict()}), 201


@orders_bp.get("")
def list_orders():
    """Orders of a shop, newest first. status: Unsettled | settled (optional)."""
    try:
        orders = order_service.list_orders(request.args.get("userId"), request.args.get("status"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify([o.to_dict() for o in orders])


@orders_bp.patch("")
def update_order():
    """
    Settlement actions.

    Body: {action: discard | settle | settleDebt, orderId, userId, method?, amount?}
    """
    try:
        order = order_service.apply_action(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "order": order.to_dict()})
