# Overview: Flask API routes for image uploads and serving stored files.

from flask import Blueprint, request, jsonify, send_from_directory

from ..services import upload_service
from .common import DOMAIN_ERRORS, error_response


uploads_bp = Blueprint("uploads", __name__)


@uploads_bp.post("/api/uploads/image")
def upload_image():
    """multipart/form-data: file (required), folder, tag."""
    file = request.files.get("file")
    if file is None or not file.filename:
        return jsonify({"error": "No file uploaded"}), 400
    try:
        result = upload_service.store_image(file.stream, request.form.get("folder"), request.form.get("tag"))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return jsonify(result), 201


@uploads_bp.get("/uploads/<path:public_path>")
def serve_upload(public_path: str):
    try:
        directory, filename = upload_service.resolve_path(public_path)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return send_from_directory(directory, filename)
