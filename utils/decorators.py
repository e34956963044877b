import logging
from functools import wraps

from flask import jsonify, request
from flask_login import current_user

from services.auth_service import caller_context

logger = logging.getLogger(__name__)


def role_required(*roles):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # 1. Check if user is logged in
            if not current_user.is_authenticated:
                return jsonify({"success": False, "message": "Authentication required", "error": "UNAUTHENTICATED"}), 401

            # 2. Check if user has the correct role
            if roles and current_user.role not in roles:
                logger.warning(
                    "User %s (%s) refused on %s %s", current_user.user_id, current_user.role, request.method, request.path
                )
                return jsonify({"success": False, "message": "Access denied for this role", "error": "UNAUTHORIZED"}), 403

            return func(*args, **kwargs)
        return wrapper
    return decorator


def current_caller():
    """The request's caller as an explicit context for the service layer."""
    return caller_context(current_user)
