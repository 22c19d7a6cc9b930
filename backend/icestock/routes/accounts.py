# Overview: Flask API routes for shop accounts; signup, login, password reset and profile.

"""
Shop account API routes.

Signup:          POST /api/register, POST /api/register/resend, POST /api/verify
Login:           POST /api/login (owner or manager, see auth_service.LoginIdentity)
Forgot password: POST /api/forgot-password/request, PUT /api/forgot-password/verify
Profile:         GET /api/profile, PUT /api/profile/update,
                 PUT /api/profile/change-password,
                 POST /api/profile/change-password/request-otp,
                 PUT /api/profile/change-password/verify
"""

from flask import Blueprint, request, jsonify

from ..services import auth_service
from .common import DOMAIN_ERRORS, error_response, json_body


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api")


@accounts_bp.post("/register")
def register_route():
    try:
        user = auth_service.register_user(json_body())
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({
        "message": "User registered. Verification code sent to email.",
        "userId": user.id,
        "email": user.email,
    }), 201


@accounts_bp.post("/register/resend")
def resend_route():
    try:
        auth_service.resend_signup_otp(json_body().get("email"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "OTP resent to registered email"})


@accounts_bp.post("/verify")
def verify_route():
    data = json_body()
    try:
        auth_service.verify_signup(data.get("email"), data.get("otp"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Account verified successfully"})


@accounts_bp.post("/login")
def login_route():
    """
    Authenticate a shop owner or manager.

    Response carries role ("admin" | "manager"), effectiveUserId (the admin id,
    which owns all shop data) and managerId (managers only).
    """
    data = json_body()
    try:
        identity = auth_service.login(data.get("email"), data.get("password"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Login successful", **identity.to_response()})


@accounts_bp.post("/forgot-password/request")
def forgot_password_request_route():
    try:
        auth_service.request_password_reset(json_body().get("email"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "If an account exists for this email, a reset code has been sent."})


@accounts_bp.put("/forgot-password/verify")
def forgot_password_verify_route():
    data = json_body()
    try:
        changed = auth_service.reset_password(data.get("email"), data.get("otp"), data.get("newPassword"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    if not changed:
        return jsonify({"otpValid": True})
    return jsonify({"message": "Password updated successfully"})


@accounts_bp.get("/profile")
def profile_route():
    try:
        user = auth_service.get_profile(request.args.get("userId", type=int))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(user.to_dict())


@accounts_bp.put("/profile/update")
def profile_update_route():
    data = json_body()
    try:
        user = auth_service.update_profile(data.get("userId"), data)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Profile updated", "user": user.to_dict()})


@accounts_bp.put("/profile/change-password")
def change_password_route():
    data = json_body()
    try:
        auth_service.change_password(data.get("userId"), data.get("oldPassword"), data.get("newPassword"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Password updated successfully"})


@accounts_bp.post("/profile/change-password/request-otp")
def change_password_request_otp_route():
    data = json_body()
    try:
        auth_service.request_password_change_otp(data.get("userId"), data.get("oldPassword"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "OTP sent to your email"})


@accounts_bp.put("/profile/change-password/verify")
def change_password_verify_route():
    data = json_body()
    try:
        auth_service.verify_password_change(data.get("userId"), data.get("otp"), data.get("newPassword"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify({"message": "Password updated successfully"})
