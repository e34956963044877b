from flask import Blueprint, jsonify, request
from flask_login import current_user, login_user, logout_user

from services.auth_service import authenticate_user, issue_token
from utils.decorators import role_required

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# =========================================================
# LOGIN ROUTE
# =========================================================
@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"success": False, "message": "Email and password are required"}), 400

    user = authenticate_user(email, password)
    if not user:
        return jsonify({"success": False, "message": "Invalid email or password"}), 401

    login_user(user)

    return jsonify({
        "success": True,
        "data": {
            "user": user.to_dict(),
            "token": issue_token(user),
        }
    })


# =========================================================
# LOGOUT ROUTE
# =========================================================
@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify({"success": True, "message": "Logged out"})


@auth_bp.route("/me")
@role_required()
def me():
    return jsonify({"success": True, "data": current_user.to_dict()})
