# app/service_requests.py
from __future__ import annotations

from flask import Blueprint, jsonify

from .extensions import limiter
from .models import PROVIDER_ROLES, Role
from .services import get_engine, get_queries
from .utils.guards import roles_required
from .utils.http import current_identity, json_body

service_requests = Blueprint("service_requests", __name__, url_prefix="/api/service-requests")


# =========================================================
# Create (farmer)
# =========================================================
@service_requests.route("", methods=["POST"])
@limiter.limit("30 per minute")
@roles_required(Role.FARMER)
def create_service_request():
    req = get_engine().create_request(current_identity(), json_body())
    return jsonify({
        "message": "Service request created successfully.",
        "request_id": req.id,
        "status": req.status.value,
    }), 201


# =========================================================
# Open requests (providers)
# =========================================================
@service_requests.route("", methods=["GET"])
@roles_required(*PROVIDER_ROLES)
def list_open_requests():
    rows = get_queries().open_requests()
    return jsonify({
        "message": "Service requests fetched successfully.",
        "count": len(rows),
        "requests": rows,
    })


# =========================================================
# My requests + nested offers (farmer)
# =========================================================
@service_requests.route("/my-requests", methods=["GET"])
@roles_required(Role.FARMER)
def list_my_requests():
    rows = get_queries().farmer_requests(current_identity().user_id)
    return jsonify({
        "message": "My service requests fetched successfully.",
        "count": len(rows),
        "requests": rows,
    })


# =========================================================
# Complete (assigned provider)
# =========================================================
@service_requests.route("/<int:request_id>/complete", methods=["PUT"])
@limiter.limit("30 per minute")
@roles_required(*PROVIDER_ROLES)
def complete_service_request(request_id: int):
    req = get_engine().complete_request(current_identity(), request_id)
    return jsonify({
        "message": "Service request marked as completed successfully!",
        "request_id": req.id,
        "status": req.status.value,
    })
