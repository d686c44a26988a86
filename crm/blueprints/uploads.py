"""Uploads blueprint - /api/upload/*

Route Map:
  POST /api/upload/avatar    - Multipart `avatar`; becomes the caller's avatar
  POST /api/upload/document  - Multipart `document`; returns the stored file info
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user

from crm.decorators import role_required
from crm.errors import ValidationError
from crm.extensions import db
from crm.services import storage_service
from crm.services.side_effects import best_effort

uploads_bp = Blueprint("uploads", __name__, url_prefix="/api/upload")


def _validated(field, allowed):
    file = request.files.get(field)
    ok, error = storage_service.validate_file(file, allowed)
    if not ok:
        raise ValidationError(error)
    return file


@uploads_bp.route("/avatar", methods=["POST"])
@role_required("upload:avatar")
def upload_avatar():
    file = _validated("avatar", storage_service.IMAGE_EXTENSIONS)
    old_path = storage_service.storage_path_from_url(current_user.avatar)

    stored = storage_service.upload_file(file, "avatars")
    current_user.avatar = stored["public_url"]
    db.session.commit()

    body = {"success": True, "url": stored["public_url"]}
    if old_path:
        warning = best_effort("Old avatar removal", storage_service.delete_file, old_path)
        if warning:
            body["warnings"] = [warning]
    return jsonify(body)


@uploads_bp.route("/document", methods=["POST"])
@role_required("upload:document")
def upload_document():
    file = _validated("document", storage_service.DOCUMENT_EXTENSIONS)
    stored = storage_service.upload_file(file, "documents")
    return jsonify({
        "success": True,
        "url": stored["public_url"],
        "fileName": stored["filename"],
        "fileType": stored["content_type"],
        "fileSize": stored["file_size"],
    })
