# app/services/queries.py
"""
Read-side projections. No state changes happen here; every function opens a
short read session and returns plain dicts ready for JSON.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import aliased, selectinload

from app.errors import ForbiddenError, NotFoundError
from app.models import (
    PROVIDER_ROLES,
    Notification,
    Offer,
    RequestStatus,
    Role,
    ServiceRequest,
    User,
)

from .storage import Storage


# =========================================================
# Serializers
# =========================================================
def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_request(req: ServiceRequest) -> dict[str, Any]:
    return {
        "id": req.id,
        "farmer_id": req.farmer_id,
        "service_type": req.service_type.value,
        "description": req.description,
        "location_lat": req.location_lat,
        "location_lon": req.location_lon,
        "required_date": _iso(req.required_date),
        "budget": _money(req.budget),
        "status": req.status.value,
        "accepted_offer_id": req.accepted_offer_id,
        "service_provider_id": req.service_provider_id,
        "completed_at": _iso(req.completed_at),
        "created_at": _iso(req.created_at),
    }


def serialize_offer(offer: Offer) -> dict[str, Any]:
    return {
        "id": offer.id,
        "request_id": offer.request_id,
        "provider_id": offer.provider_id,
        "offered_price": _money(offer.offered_price),
        "estimated_cost": _money(offer.estimated_cost),
        "notes": offer.notes,
        "status": offer.status.value,
        "created_at": _iso(offer.created_at),
    }


def _serialize_offer_row(offer: Offer, req: ServiceRequest, provider_name, farmer_name) -> dict[str, Any]:
    row = serialize_offer(offer)
    row.update(
        {
            "service_type": req.service_type.value,
            "request_description": req.description,
            "farmer_id": req.farmer_id,
            "request_status": req.status.value,
            "service_provider_username": provider_name,
            "farmer_username": farmer_name,
        }
    )
    return row


def _joined_offers_query():
    provider = aliased(User)
    farmer = aliased(User)
    stmt = (
        select(Offer, ServiceRequest, provider.username, farmer.username)
        .join(ServiceRequest, Offer.request_id == ServiceRequest.id)
        .join(provider, Offer.provider_id == provider.id)
        .join(farmer, ServiceRequest.farmer_id == farmer.id)
    )
    return stmt


class MarketplaceQueries:
    def __init__(self, storage: Storage):
        self._storage = storage

    # =====================================================
    # Service requests
    # =====================================================
    def open_requests(self) -> list[dict[str, Any]]:
        """Requests still open for bidding, newest first."""
        with self._storage.read_session() as session:
            rows = session.execute(
                select(ServiceRequest)
                .where(ServiceRequest.status == RequestStatus.PENDING)
                .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
            ).scalars().all()
            return [serialize_request(r) for r in rows]

    def farmer_requests(self, farmer_id: int) -> list[dict[str, Any]]:
        """A farmer's own requests, each with every offer on it (newest first)."""
        with self._storage.read_session() as session:
            rows = session.execute(
                select(ServiceRequest)
                .options(selectinload(ServiceRequest.offers))
                .where(ServiceRequest.farmer_id == farmer_id)
                .order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
            ).unique().scalars().all()

            result = []
            for req in rows:
                item = serialize_request(req)
                item["offers"] = [serialize_offer(o) for o in req.offers]
                result.append(item)
            return result

    # =====================================================
    # Offers
    # =====================================================
    def offers_for(self, identity) -> list[dict[str, Any]]:
        role = identity.role
        stmt = _joined_offers_query()

        if role is Role.ADMIN:
            pass
        elif role in PROVIDER_ROLES:
            stmt = stmt.where(Offer.provider_id == identity.user_id)
        elif role is Role.FARMER:
            stmt = stmt.where(ServiceRequest.farmer_id == identity.user_id)
        else:
            raise ForbiddenError("Unauthorized to view offers.")

        stmt = stmt.order_by(Offer.created_at.desc(), Offer.id.desc())

        with self._storage.read_session() as session:
            return [_serialize_offer_row(*row) for row in session.execute(stmt).all()]

    def offer_for(self, identity, offer_id: int) -> dict[str, Any]:
        stmt = _joined_offers_query().where(Offer.id == offer_id)

        with self._storage.read_session() as session:
            row = session.execute(stmt).first()
            if row is None:
                raise NotFoundError("Offer not found.")
            offer, req = row[0], row[1]

            allowed = (
                identity.role is Role.ADMIN
                or (identity.role in PROVIDER_ROLES and offer.provider_id == identity.user_id)
                or (identity.role is Role.FARMER and req.farmer_id == identity.user_id)
            )
            if not allowed:
                raise ForbiddenError("Unauthorized to view this offer.")
            return _serialize_offer_row(*row)

    # =====================================================
    # Notifications
    # =====================================================
    def notifications_for(self, user_id: int, limit: int = 50) -> list[dict[str, Any]]:
        with self._storage.read_session() as session:
            rows = session.execute(
                select(Notification)
                .where(Notification.user_id == user_id)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit)
            ).scalars().all()
            return [
                {
                    "id": n.id,
                    "type": n.type,
                    "message": n.message,
                    "related_entity_type": n.related_entity_type,
                    "related_entity_id": n.related_entity_id,
                    "is_read": n.is_read,
                    "created_at": _iso(n.created_at),
                }
                for n in rows
            ]
