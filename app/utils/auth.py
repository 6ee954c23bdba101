# app/utils/auth.py
"""
Identity context.

Resolves ``Authorization: Bearer <token>`` into an Identity (user id + role)
through Flask-Login's request_loader. Registration, login and passwords live
with the external identity provider; this module only trusts signed tokens.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import request
from flask_login import UserMixin

from app.errors import AuthenticationError
from app.extensions import login_manager
from app.models import Role

from .tokens import verify_token


@dataclass(frozen=True)
class Identity(UserMixin):
    user_id: int
    role: Role | None
    role_name: str = ""

    def get_id(self) -> str:
        return str(self.user_id)


def _bearer_token() -> str | None:
    header = (request.headers.get("Authorization") or "").strip()
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


# =========================================================
# Flask-Login loaders
# =========================================================
@login_manager.request_loader
def load_identity_from_request(req):
    token = _bearer_token()
    if token is None:
        return None

    payload = verify_token(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired token.")

    role_name = str(payload.get("role") or "")
    return Identity(user_id=payload["id"], role=Role.parse(role_name), role_name=role_name)


@login_manager.unauthorized_handler
def unauthorized():
    raise AuthenticationError("Authentication token required.")
