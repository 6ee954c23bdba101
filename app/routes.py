# app/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify

from app.services import get_queries, get_storage
from app.utils.guards import ANY_ROLE, roles_required
from app.utils.http import current_identity

main = Blueprint("main", __name__)


@main.route("/")
def home():
    return jsonify({"message": "Agricultural services marketplace API is running."})


@main.route("/health")
def health():
    if get_storage().ping():
        return jsonify({"message": "ok", "database": "ok"}), 200
    return jsonify({"message": "Database unavailable.", "database": "unavailable"}), 503


# =========================================================
# Notifications (any logged-in role)
# =========================================================
@main.route("/api/notifications", methods=["GET"])
@roles_required(*ANY_ROLE)
def list_notifications():
    rows = get_queries().notifications_for(current_identity().user_id)
    return jsonify({
        "message": "Notifications fetched successfully.",
        "count": len(rows),
        "notifications": rows,
    })
