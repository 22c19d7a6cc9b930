# Overview: Flask API routes for shop managers; CRUD under an admin and OTP password change.

from flask import Blueprint, request, jsonify

from ..services import manager_service
from .common import DOMAIN_ERRORS, error_response, json_body


managers_bp = Blueprint("managers", __name__, url_prefix="/api/manager")


@managers_bp.post("")
def create_manager_route():
    try:
        manager = manager_service.create_manager(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(manager.to_dict()), 201


@managers_bp.get("")
def list_managers_route():
    try:
        managers = manager_service.list_managers(request.args.get("adminId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify([m.to_dict() for m in managers])


@managers_bp.put("")
def update_manager_route():
    try:
        manager = manager_service.update_manager(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(manager.to_dict())


@managers_bp.delete("")
def delete_manager_route():
    data = json_body()
    try:
        manager_service.delete_manager(data.get("adminId"), data.get("id"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "id": data.get("id")})


@managers_bp.post("/request-password-otp")
def request_password_otp_route():
    """Mail a password-change code for a manager to the owning admin's email."""
    data = json_body()
    try:
        manager_service.request_password_otp(data.get("managerId"), data.get("adminId"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "message": "OTP sent"})


@managers_bp.put("/change-password")
def change_password_route():
    try:
        manager_service.change_password(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"success": True, "message": "Password updated"})
