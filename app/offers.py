# app/offers.py
from __future__ import annotations

from flask import Blueprint, jsonify

from .extensions import limiter
from .models import PROVIDER_ROLES, Role
from .services import get_engine, get_queries
from .utils.guards import ANY_ROLE, roles_required
from .utils.http import current_identity, json_body

offers = Blueprint("offers", __name__, url_prefix="/api/offers")


@offers.route("", methods=["POST"])
@limiter.limit("30 per minute")
@roles_required(*PROVIDER_ROLES)
def create_offer():
    offer = get_engine().create_offer(current_identity(), json_body())
    return jsonify({
        "message": "Offer created successfully.",
        "offer_id": offer.id,
        "status": offer.status.value,
    }), 201


@offers.route("", methods=["GET"])
@roles_required(*ANY_ROLE)
def list_offers():
    rows = get_queries().offers_for(current_identity())
    return jsonify({
        "message": "Offers fetched successfully.",
        "count": len(rows),
        "offers": rows,
    })


@offers.route("/<int:offer_id>", methods=["GET"])
@roles_required(*ANY_ROLE)
def get_offer(offer_id: int):
    row = get_queries().offer_for(current_identity(), offer_id)
    return jsonify({"message": "Offer fetched successfully.", "offer": row})


@offers.route("/<int:offer_id>/accept", methods=["PUT"])
@limiter.limit("30 per minute")
@roles_required(Role.FARMER)
def accept_offer(offer_id: int):
    offer = get_engine().accept_offer(current_identity(), offer_id)
    return jsonify({
        "message": "Offer accepted successfully! Request status updated to in progress.",
        "offer_id": offer.id,
        "request_id": offer.request_id,
    })


@offers.route("/<int:offer_id>/reject", methods=["PUT"])
@limiter.limit("30 per minute")
@roles_required(Role.FARMER)
def reject_offer(offer_id: int):
    outcome = get_engine().reject_offer(current_identity(), offer_id)
    if outcome.request_reverted:
        message = "Offer rejected, and service request reverted to pending."
    else:
        message = "Offer rejected successfully!"
    return jsonify({
        "message": message,
        "offer_id": outcome.offer.id,
        "request_reverted": outcome.request_reverted,
    })
