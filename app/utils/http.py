# app/utils/http.py
from __future__ import annotations

from flask import request
from flask_login import current_user

from app.errors import ValidationError


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def current_identity():
    """The Identity behind flask_login's current_user proxy."""
    return current_user._get_current_object()
