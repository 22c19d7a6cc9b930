# Overview: Flask API routes for invoice metadata; seller details and bank details.

from flask import Blueprint, request, jsonify

from ..services import seller_service
from .common import DOMAIN_ERRORS, error_response, json_body


seller_bp = Blueprint("seller", __name__, url_prefix="/api")


@seller_bp.get("/seller-details")
def get_seller_details():
    try:
        details = seller_service.get_seller_details(request.args.get("userId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(details.to_dict() if details else {})


@seller_bp.post("/seller-details")
def save_seller_details():
    try:
        details, created = seller_service.save_seller_details(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(details.to_dict()), 201 if created else 200


@seller_bp.get("/bank-details")
def get_bank_details():
    try:
        bank = seller_service.get_bank_details(request.args.get("sellerId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(bank.to_dict() if bank else {})


@seller_bp.post("/bank-details")
def save_bank_details():
    try:
        bank = seller_service.save_bank_details(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(bank.to_dict())
