"""Auth blueprint - /api/auth/*

Registration, login (JWT bearer tokens), password flows.

Route Map:
  POST /api/auth/register          - Create account (first account is admin)
  POST /api/auth/login             - Credentials -> token + user
  GET  /api/auth/me                - Current user
  POST /api/auth/logout            - No-op; the client drops its token
  POST /api/auth/forgot-password   - Email a reset link
  POST /api/auth/reset-password    - Token + new password
  POST /api/auth/change-password   - Current + new password
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from crm.extensions import db, limiter
from crm.services import auth_service
from crm.services.inputs import json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per minute")
def register():
    user = auth_service.register(json_body())
    db.session.commit()
    return jsonify({
        "success": True,
        "message": "User registered successfully",
        "user": user.to_dict(),
    }), 201


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = json_body()
    user, token = auth_service.login(
        data.get("email"),
        data.get("password"),
        user_agent=request.headers.get("User-Agent"),
        ip=request.remote_addr,
    )
    db.session.commit()
    return jsonify({"success": True, "token": token, "user": user.to_dict()})


@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"success": True, "user": current_user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    return jsonify({"success": True, "message": "Logged out successfully"})


@auth_bp.route("/forgot-password", methods=["POST"])
@limiter.limit("5 per minute")
def forgot_password():
    auth_service.forgot_password(json_body().get("email"))
    db.session.commit()
    return jsonify({"success": True, "message": "Password reset email sent"})


@auth_bp.route("/reset-password", methods=["POST"])
@limiter.limit("10 per minute")
def reset_password():
    data = json_body()
    auth_service.reset_password(data.get("token"), data.get("password"))
    db.session.commit()
    return jsonify({"success": True, "message": "Password reset successful"})


@auth_bp.route("/change-password", methods=["POST"])
@login_required
def change_password():
    data = json_body()
    auth_service.change_password(
        current_user, data.get("currentPassword"), data.get("newPassword")
    )
    db.session.commit()
    return jsonify({"success": True, "message": "Password changed successfully"})
