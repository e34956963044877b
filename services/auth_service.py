import logging

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash

from extensions import db
from models.user import User
from services.grading import CallerContext

logger = logging.getLogger(__name__)

TOKEN_SALT = "api-token"


def authenticate_user(email: str, password: str):
    user = User.query.filter_by(email=email.strip().lower()).first()

    if not user:
        return None

    if not check_password_hash(user.password_hash, password):
        return None

    if user.is_active is False:
        return None

    return user


def _token_serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"])


def issue_token(user) -> str:
    return _token_serializer().dumps({"uid": user.user_id, "role": user.role}, salt=TOKEN_SALT)


def load_user_from_token(token: str):
    try:
        payload = _token_serializer().loads(
            token,
            salt=TOKEN_SALT,
            max_age=current_app.config["TOKEN_MAX_AGE"]
        )
    except SignatureExpired:
        logger.info("Rejected expired bearer token")
        return None
    except BadSignature:
        logger.warning("Rejected bearer token with bad signature")
        return None

    user = db.session.get(User, payload.get("uid"))
    if user is None or not user.is_active:
        return None
    return user


def caller_context(user):
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return CallerContext(caller_id=user.user_id, role=user.role)
