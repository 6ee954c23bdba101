# app/utils/tokens.py
from __future__ import annotations

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.models import Role

_TOKEN_SALT = "access-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_TOKEN_SALT)


def issue_token(user_id: int, role: Role | str) -> str:
    """Sign a bearer token carrying the user id and role."""
    role_value = role.value if isinstance(role, Role) else str(role)
    return _serializer().dumps({"id": int(user_id), "role": role_value})


def verify_token(token: str) -> dict | None:
    """
    Returns the ``{"id", "role"}`` payload, or None when the token is expired,
    tampered with or malformed.
    """
    if not token:
        return None
    max_age = current_app.config.get("TOKEN_MAX_AGE_SECONDS")
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("Rejected expired bearer token")
        return None
    except BadSignature:
        current_app.logger.info("Rejected bearer token with bad signature")
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("id"), int):
        return None
    return payload
