# app/models.py
from __future__ import annotations

import enum
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import Enum as SAEnum

from .extensions import db


# Use **naive UTC** everywhere: DB columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.utcnow()


def _enum_column(enum_cls: type[enum.Enum], name: str) -> SAEnum:
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda cls: [e.value for e in cls],
        native_enum=False,
        validate_strings=True,
        length=20,
    )


# =========================================================
# Roles (closed set)
# =========================================================
class Role(enum.Enum):
    FARMER = "farmer"
    SERVICE_PROVIDER = "service_provider"
    TRACTOR_OWNER = "tractor_owner"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> "Role | None":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except (ValueError, AttributeError):
            return None


PROVIDER_ROLES = frozenset({Role.SERVICE_PROVIDER, Role.TRACTOR_OWNER})


# =========================================================
# Status / type enums
# =========================================================
class ServiceType(enum.Enum):
    PLOUGHING = "ploughing"
    HARVESTING = "harvesting"
    SPRAYING = "spraying"
    OTHER = "other"


class RequestStatus(enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OfferStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


REQUEST_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.IN_PROGRESS},
    RequestStatus.IN_PROGRESS: {RequestStatus.COMPLETED, RequestStatus.PENDING},
    RequestStatus.COMPLETED: set(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in REQUEST_TRANSITIONS.get(current, set())


# =========================================================
# User (identity directory; read for display names)
# =========================================================
class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False)
    phone_number = db.Column(db.String(30), unique=True, nullable=True)
    role = db.Column(_enum_column(Role, "user_role"), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("username", name="user_username_key"),
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.username} {self.role.value}>"


# =========================================================
# Service Request (a farmer's posted need)
# =========================================================
class ServiceRequest(db.Model):
    __tablename__ = "service_requests"

    id = db.Column(db.Integer, primary_key=True)

    farmer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    service_type = db.Column(_enum_column(ServiceType, "service_type"), nullable=False)
    description = db.Column(db.Text, nullable=True)
    location_lat = db.Column(db.Float, nullable=True)
    location_lon = db.Column(db.Float, nullable=True)
    required_date = db.Column(db.Date, nullable=False)
    budget = db.Column(db.Numeric(12, 2), nullable=True)

    status = db.Column(
        _enum_column(RequestStatus, "request_status"),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )

    # Plain column, not a FK: offers already reference this table.
    accepted_offer_id = db.Column(db.Integer, nullable=True)
    service_provider_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)

    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    offers = db.relationship(
        "Offer",
        back_populates="request",
        lazy="select",
        order_by=lambda: [Offer.created_at.desc(), Offer.id.desc()],
    )

    __table_args__ = (
        db.CheckConstraint(
            "(accepted_offer_id IS NULL) = (service_provider_id IS NULL)",
            name="ck_service_requests_assignment_pair",
        ),
        db.CheckConstraint(
            "location_lat IS NULL OR (location_lat BETWEEN -90 AND 90)",
            name="ck_service_requests_lat",
        ),
        db.CheckConstraint(
            "location_lon IS NULL OR (location_lon BETWEEN -180 AND 180)",
            name="ck_service_requests_lon",
        ),
    )

    def __repr__(self) -> str:
        return f"<ServiceRequest {self.id} {self.service_type.value} {self.status.value}>"


# =========================================================
# Offer (a provider's bid against a request)
# =========================================================
class Offer(db.Model):
    __tablename__ = "offers"

    id = db.Column(db.Integer, primary_key=True)

    request_id = db.Column(
        db.Integer,
        db.ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    request = db.relationship("ServiceRequest", back_populates="offers", lazy="select")

    provider_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    offered_price = db.Column(db.Numeric(12, 2), nullable=False)
    estimated_cost = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(
        _enum_column(OfferStatus, "offer_status"),
        nullable=False,
        default=OfferStatus.PENDING,
        index=True,
    )

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (
        db.CheckConstraint("offered_price > 0", name="ck_offers_offered_price_positive"),
        db.CheckConstraint("estimated_cost > 0", name="ck_offers_estimated_cost_positive"),
        # One pending offer per provider per request, enforced by the DB as well.
        db.Index(
            "uq_offers_pending_per_provider",
            "request_id",
            "provider_id",
            unique=True,
            postgresql_where=sa.text("status = 'pending'"),
            sqlite_where=sa.text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Offer {self.id} request={self.request_id} {self.status.value}>"


# =========================================================
# Notification (written by the notification sink)
# =========================================================
class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)

    type = db.Column(db.String(40), nullable=False)  # new_offer, offer_accepted, ...
    message = db.Column(db.Text, nullable=False)

    related_entity_type = db.Column(db.String(40), nullable=True)  # offer | service_request
    related_entity_id = db.Column(db.Integer, nullable=True)

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self) -> str:
        return f"<Notification {self.id} user={self.user_id} {self.type}>"
