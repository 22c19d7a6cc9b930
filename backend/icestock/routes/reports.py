# Overview: Flask API routes for sales reports; summary and customer ledger.

from flask import Blueprint, jsonify, request

from ..services import reporting_service
from .common import DOMAIN_ERRORS, error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/sales")


@reports_bp.get("/summary")
def sales_summary():
    """Query: userId (required), from, to (inclusive dates)."""
    try:
        report = reporting_service.sales_summary(
            user_id=request.args.get("userId"),
            start=request.args.get("from"),
            end=request.args.get("to"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(report), 200


@reports_bp.get("/customer-ledger")
def customer_ledger():
    try:
        report = reporting_service.customer_ledger(
            user_id=request.args.get("userId"),
            customer_id=request.args.get("customerId"),
            manager_id=request.args.get("managerId"),
            start=request.args.get("from"),
            end=request.args.get("to"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(report), 200
