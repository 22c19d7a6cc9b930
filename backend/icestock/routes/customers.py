# Overview: Flask API routes for customers; scoped by the owning shop.

from flask import Blueprint, request, jsonify

from ..services import customer_service
from .common import DOMAIN_ERRORS, error_response, json_body


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
def create_customer():
    try:
        customer = customer_service.create_customer(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(customer.to_dict()), 201


@customers_bp.get("")
def list_customers():
    try:
        customers = customer_service.list_customers(request.args.get("userId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify([c.to_dict() for c in customers])


@customers_bp.put("")
def update_customer():
    try:
        customer = customer_service.update_customer(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(customer.to_dict())


@customers_bp.delete("")
def delete_customer():
    data = json_body()
    try:
        customer_id = customer_service.delete_customer(data.get("userId"), data.get("id"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "id": customer_id})
