# app/errors.py
"""
Error taxonomy for the marketplace API.

Every business-rule failure is raised as a MarketplaceError subclass carrying
the HTTP status it maps to. Handlers registered by register_error_handlers()
turn them into ``{"message": ...}`` (plus ``errors`` for field validation).
"""
from __future__ import annotations

from typing import Any

from flask import Flask, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

GENERIC_FAILURE_MESSAGE = "An unexpected internal server error occurred."


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(MarketplaceError):
    status_code = 400


class AuthenticationError(MarketplaceError):
    status_code = 401


class ForbiddenError(MarketplaceError):
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404


class ConflictError(MarketplaceError):
    status_code = 409


class InvalidStateError(MarketplaceError):
    status_code = 400


class InternalError(MarketplaceError):
    status_code = 500

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE):
        super().__init__(message)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MarketplaceError)
    def marketplace_error(e: MarketplaceError):
        if isinstance(e, InternalError):
            # Detail was logged where the failure happened.
            return jsonify({"message": GENERIC_FAILURE_MESSAGE}), 500
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        return jsonify({"message": e.description or e.name}), e.code or 500

    @app.errorhandler(429)
    def ratelimit_handler(e):
        return jsonify({"message": "Too many requests. Please try again later."}), 429

    @app.errorhandler(SQLAlchemyError)
    def storage_error(e: SQLAlchemyError):
        current_app.logger.exception("Storage failure")
        return jsonify({"message": GENERIC_FAILURE_MESSAGE}), 500

    @app.errorhandler(Exception)
    def unexpected_error(e: Exception):
        current_app.logger.exception("Unhandled exception")
        return jsonify({"message": GENERIC_FAILURE_MESSAGE}), 500
