"""Settings blueprint - /api/settings/*

Company profile and custom field definitions.

Route Map:
  GET    /api/settings/company              - Company settings (created on first read)
  PUT    /api/settings/company              - Update (admin/manager)
  POST   /api/settings/company/logo         - Upload logo (admin/manager)
  POST   /api/settings/custom-fields        - Define a field (admin/manager)
  PUT    /api/settings/custom-fields/<id>   - Edit a field (admin/manager)
  DELETE /api/settings/custom-fields/<id>   - Remove a field (admin/manager)
"""

from flask import Blueprint, jsonify, request

from crm.decorators import role_required
from crm.errors import ValidationError
from crm.extensions import db
from crm.services import company_service, storage_service
from crm.services.inputs import json_body
from crm.services.side_effects import best_effort

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.route("/company")
@role_required("company:read")
def get_company():
    company = company_service.get_or_create_company()
    db.session.commit()
    return jsonify({"success": True, "company": company.to_dict()})


@settings_bp.route("/company", methods=["PUT"])
@role_required("company:write")
def update_company():
    company = company_service.update_company(json_body())
    db.session.commit()
    return jsonify({"success": True, "company": company.to_dict()})


@settings_bp.route("/company/logo", methods=["POST"])
@role_required("upload:logo")
def upload_logo():
    file = request.files.get("logo")
    ok, error = storage_service.validate_file(file, storage_service.IMAGE_EXTENSIONS)
    if not ok:
        raise ValidationError(error)

    company = company_service.get_or_create_company()
    old_path = storage_service.storage_path_from_url(company.logo)
    stored = storage_service.upload_file(file, "logos")
    company_service.set_logo(stored["public_url"])
    db.session.commit()

    body = {"success": True, "logo": company.logo}
    if old_path:
        warning = best_effort("Old logo removal", storage_service.delete_file, old_path)
        if warning:
            body["warnings"] = [warning]
    return jsonify(body)


@settings_bp.route("/custom-fields", methods=["POST"])
@role_required("custom_field:write")
def add_custom_field():
    field = company_service.add_custom_field(json_body())
    db.session.commit()
    return jsonify({"success": True, "customField": field.to_dict()}), 201


@settings_bp.route("/custom-fields/<field_id>", methods=["PUT"])
@role_required("custom_field:write")
def update_custom_field(field_id):
    field = company_service.update_custom_field(field_id, json_body())
    db.session.commit()
    return jsonify({"success": True, "customField": field.to_dict()})


@settings_bp.route("/custom-fields/<field_id>", methods=["DELETE"])
@role_required("custom_field:write")
def delete_custom_field(field_id):
    company_service.delete_custom_field(field_id)
    db.session.commit()
    return jsonify({"success": True, "message": "Custom field deleted successfully"})
