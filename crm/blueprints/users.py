"""Users blueprint - /api/users/*

Route Map:
  GET    /api/users                     - All users (admin/manager)
  GET    /api/users/<id>                - One user (employees: self only)
  PUT    /api/users/<id>                - Update profile (self or admin)
  DELETE /api/users/<id>                - Delete (admin)
  PUT    /api/users/<id>/settings       - Own preferences
  PUT    /api/users/<id>/security       - Own security preferences
  GET    /api/users/<id>/login-history  - Own history, or any as admin
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from crm import policy
from crm.decorators import role_required
from crm.extensions import db
from crm.services import storage_service, user_service
from crm.services.inputs import json_body
from crm.services.side_effects import best_effort

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _authorize(operation, user_id):
    policy.authorize(current_user.role, current_user.id, operation, owner_id=user_id)


@users_bp.route("")
@role_required("user:list")
def list_users():
    users = user_service.list_users()
    return jsonify({
        "success": True,
        "count": len(users),
        "users": [u.to_dict(include_private=False) for u in users],
    })


@users_bp.route("/<user_id>")
@login_required
def get_user(user_id):
    _authorize("user:read", user_id)
    user = user_service.get_user_or_404(user_id)
    return jsonify({"success": True, "user": user.to_dict()})


@users_bp.route("/<user_id>", methods=["PUT"])
@login_required
def update_user(user_id):
    _authorize("user:update", user_id)
    user = user_service.get_user_or_404(user_id)
    user_service.update_user(user, json_body(), current_user)
    db.session.commit()
    return jsonify({"success": True, "user": user.to_dict()})


@users_bp.route("/<user_id>", methods=["DELETE"])
@role_required("user:delete")
def delete_user(user_id):
    user = user_service.get_user_or_404(user_id)
    avatar_path = user_service.delete_user(user)
    db.session.commit()

    body = {"success": True, "message": "User deleted successfully"}
    if avatar_path:
        warning = best_effort("Avatar removal", storage_service.delete_file, avatar_path)
        if warning:
            body["warnings"] = [warning]
    return jsonify(body)


@users_bp.route("/<user_id>/settings", methods=["PUT"])
@login_required
def update_settings(user_id):
    _authorize("user:settings", user_id)
    user = user_service.get_user_or_404(user_id)
    settings = user_service.update_settings(user, json_body())
    db.session.commit()
    return jsonify({"success": True, "settings": settings})


@users_bp.route("/<user_id>/security", methods=["PUT"])
@login_required
def update_security(user_id):
    _authorize("user:security", user_id)
    user = user_service.get_user_or_404(user_id)
    security = user_service.update_security(user, json_body())
    db.session.commit()
    return jsonify({"success": True, "security": security})


@users_bp.route("/<user_id>/login-history")
@login_required
def login_history(user_id):
    _authorize("user:login_history", user_id)
    user = user_service.get_user_or_404(user_id)
    return jsonify({"success": True, "loginHistory": user_service.login_history(user)})
