# Overview: Flask API routes for products, stock actions and restock history.

# backend/icestock/routes/inventory.py
"""
Product and stock routes. Every call names the owning shop (userId) in the
query string (GET) or the JSON body (writes).
"""
from flask import Blueprint, request, jsonify

from ..services import inventory_service
from .common import DOMAIN_ERRORS, error_response, json_body


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.post("/products")
def create_product():
    try:
        product = inventory_service.create_product(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(product.to_dict()), 201


@inventory_bp.get("/products")
def list_products():
    try:
        products = inventory_service.list_products(request.args.get("userId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify([p.to_dict() for p in products])


@inventory_bp.put("/products")
def update_product():
    try:
        product = inventory_service.update_product(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(product.to_dict())


@inventory_bp.delete("/products")
def delete_product():
    data = json_body()
    try:
        product_id = inventory_service.delete_product(data.get("userId"), data.get("id"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "id": product_id})


@inventory_bp.post("/products/empty")
def empty_stock():
    """
    Zero every product of the shop and record an "Empty Stock" history entry.

    Always 200 once stock is zeroed; historyError is set if the audit record failed.
    """
    try:
        result = inventory_service.empty_stock(json_body().get("userId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(result)


@inventory_bp.post("/products/restock")
def restock():
    data = json_body()
    try:
        entry = inventory_service.restock(data.get("userId"), data.get("items"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(entry.to_dict()), 201


@inventory_bp.get("/restock-history")
def list_history():
    try:
        history = inventory_service.list_history(request.args.get("userId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify([h.to_dict() for h in history])


@inventory_bp.post("/restock-history")
def add_history():
    data = json_body()
    try:
        entry = inventory_service.add_history(data.get("userId"), data.get("items"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(entry.to_dict()), 201
