# app/services/transitions.py
"""
Request/offer transition engine.

The only writer of mutable fields on ServiceRequest and Offer. Each public
operation is one UnitOfWork: preconditions are read under row locks, effects
are applied, and the whole thing commits or rolls back together.

Lock order is always: service request row, then its offer rows. Concurrent
create/accept/reject/complete calls touching one request therefore serialize
on the request row. SQLite has no row locks; there the storage client takes
the database write lock when the transaction begins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, lazyload

from app.errors import ConflictError, ForbiddenError, InvalidStateError, NotFoundError
from app.models import (
    PROVIDER_ROLES,
    Offer,
    OfferStatus,
    RequestStatus,
    Role,
    ServiceRequest,
    can_transition,
    utcnow_naive,
)
from app.utils.validation import validate_offer, validate_service_request

from .notifications import NotificationEvent, NotificationSink
from .storage import Storage

logger = logging.getLogger(__name__)

# Capabilities per operation
CREATE_REQUEST_ROLES = frozenset({Role.FARMER})
CREATE_OFFER_ROLES = PROVIDER_ROLES
DECIDE_OFFER_ROLES = frozenset({Role.FARMER})
COMPLETE_REQUEST_ROLES = PROVIDER_ROLES

_PENDING_OFFER_INDEX = "uq_offers_pending_per_provider"


@dataclass(frozen=True)
class RejectOutcome:
    offer: Offer
    request_reverted: bool


def _require_role(actor, allowed: frozenset, action: str) -> None:
    if getattr(actor, "role", None) not in allowed:
        raise ForbiddenError(f"Your role is not allowed to {action}.")


def _is_pending_offer_conflict(exc: IntegrityError) -> bool:
    msg = str(getattr(exc, "orig", exc))
    return _PENDING_OFFER_INDEX in msg or "offers.request_id, offers.provider_id" in msg


# =========================================================
# Locked reads
# =========================================================
def _lock_request(session: Session, request_id: int) -> ServiceRequest | None:
    return (
        session.execute(
            select(ServiceRequest)
            .options(lazyload("*"))
            .where(ServiceRequest.id == request_id)
            .with_for_update(of=ServiceRequest)
        )
        .scalars()
        .first()
    )


def _lock_offers(session: Session, request_id: int) -> list[Offer]:
    return list(
        session.execute(
            select(Offer)
            .options(lazyload("*"))
            .where(Offer.request_id == request_id)
            .order_by(Offer.id)
            .with_for_update(of=Offer)
        ).scalars()
    )


def _offer_request_id(session: Session, offer_id: int) -> int | None:
    return session.execute(select(Offer.request_id).where(Offer.id == offer_id)).scalar_one_or_none()


def _move_request(req: ServiceRequest, target: RequestStatus) -> None:
    if not can_transition(req.status, target):
        raise InvalidStateError(
            f"Service request cannot move from {req.status.value} to {target.value}."
        )
    req.status = target


class TransitionEngine:
    def __init__(
        self,
        storage: Storage,
        notifier: NotificationSink | None = None,
        clock: Callable[[], datetime] = utcnow_naive,
        today: Callable[[], date] = date.today,
    ):
        self._storage = storage
        self._notifier = notifier
        self._clock = clock
        self._today = today

    def _notify_after_commit(self, uow, events: list[NotificationEvent]) -> None:
        if self._notifier is not None and events:
            uow.after_commit(lambda: self._notifier.emit_all(events))

    # =====================================================
    # Service request creation
    # =====================================================
    def create_request(self, actor, data: dict) -> ServiceRequest:
        _require_role(actor, CREATE_REQUEST_ROLES, "create service requests")
        payload = validate_service_request(data, today=self._today())

        with self._storage.unit_of_work("Create service request") as uow:
            req = ServiceRequest(
                farmer_id=actor.user_id,
                service_type=payload.service_type,
                description=payload.description,
                location_lat=payload.location_lat,
                location_lon=payload.location_lon,
                required_date=payload.required_date,
                budget=payload.budget,
                status=RequestStatus.PENDING,
                accepted_offer_id=None,
                service_provider_id=None,
                completed_at=None,
                created_at=self._clock(),
            )
            uow.session.add(req)
            uow.session.flush()

        logger.info("Service request %s created by farmer=%s", req.id, actor.user_id)
        return req

    # =====================================================
    # Offer creation
    # =====================================================
    def create_offer(self, actor, data: dict) -> Offer:
        _require_role(actor, CREATE_OFFER_ROLES, "create offers")
        payload = validate_offer(data)

        with self._storage.unit_of_work("Create offer") as uow:
            session = uow.session

            req = _lock_request(session, payload.request_id)
            if req is None or req.status is not RequestStatus.PENDING:
                raise NotFoundError(
                    "Service request not found or not in a pending state. Cannot make an offer."
                )

            if req.farmer_id == actor.user_id:
                raise ForbiddenError("You cannot make an offer on your own service request.")

            existing = session.execute(
                select(Offer.id).where(
                    Offer.request_id == req.id,
                    Offer.provider_id == actor.user_id,
                    Offer.status == OfferStatus.PENDING,
                )
            ).first()
            if existing is not None:
                raise ConflictError("You have already made a pending offer for this service request.")

            offer = Offer(
                request_id=req.id,
                provider_id=actor.user_id,
                offered_price=payload.offered_price,
                estimated_cost=payload.estimated_cost,
                notes=payload.notes,
                status=OfferStatus.PENDING,
                created_at=self._clock(),
            )
            session.add(offer)
            try:
                session.flush()
            except IntegrityError as exc:
                if _is_pending_offer_conflict(exc):
                    raise ConflictError(
                        "You have already made a pending offer for this service request."
                    ) from exc
                raise

            self._notify_after_commit(uow, [
                NotificationEvent(
                    user_id=req.farmer_id,
                    message=f"New offer of {offer.offered_price} received on service request #{req.id}.",
                    type="new_offer",
                    related_entity_type="offer",
                    related_entity_id=offer.id,
                )
            ])

        logger.info("Offer %s created on request %s by provider=%s", offer.id, offer.request_id, actor.user_id)
        return offer

    # =====================================================
    # Accept offer (farmer)
    # =====================================================
    def accept_offer(self, actor, offer_id: int) -> Offer:
        _require_role(actor, DECIDE_OFFER_ROLES, "accept offers")

        with self._storage.unit_of_work("Accept offer") as uow:
            session = uow.session

            request_id = _offer_request_id(session, offer_id)
            if request_id is None:
                raise NotFoundError("Offer not found.")

            req = _lock_request(session, request_id)
            offers = _lock_offers(session, request_id)
            offer = next((o for o in offers if o.id == offer_id), None)
            if req is None or offer is None:
                raise NotFoundError("Offer not found.")

            if req.farmer_id != actor.user_id:
                raise ForbiddenError("You are not authorized to accept offers for this request.")

            if offer.status is not OfferStatus.PENDING:
                raise InvalidStateError("Only pending offers can be accepted.")

            if req.status is not RequestStatus.PENDING:
                raise InvalidStateError(
                    f"Service request is no longer pending (current status: {req.status.value}). "
                    "Cannot accept offer."
                )

            _move_request(req, RequestStatus.IN_PROGRESS)
            req.accepted_offer_id = offer.id
            req.service_provider_id = offer.provider_id
            offer.status = OfferStatus.ACCEPTED

            siblings = [o for o in offers if o.id != offer.id and o.status is OfferStatus.PENDING]
            for sibling in siblings:
                sibling.status = OfferStatus.REJECTED

            session.flush()

            events = [
                NotificationEvent(
                    user_id=offer.provider_id,
                    message=f"Your offer on service request #{req.id} was accepted.",
                    type="offer_accepted",
                    related_entity_type="offer",
                    related_entity_id=offer.id,
                )
            ]
            events += [
                NotificationEvent(
                    user_id=s.provider_id,
                    message=f"Your offer on service request #{req.id} was not selected.",
                    type="offer_rejected",
                    related_entity_type="offer",
                    related_entity_id=s.id,
                )
                for s in siblings
            ]
            self._notify_after_commit(uow, events)

        logger.info(
            "Offer %s accepted; request %s in_progress; %d sibling offer(s) rejected",
            offer.id, req.id, len(siblings),
        )
        return offer

    # =====================================================
    # Reject offer (farmer)
    # =====================================================
    def reject_offer(self, actor, offer_id: int) -> RejectOutcome:
        _require_role(actor, DECIDE_OFFER_ROLES, "reject offers")

        with self._storage.unit_of_work("Reject offer") as uow:
            session = uow.session

            request_id = _offer_request_id(session, offer_id)
            if request_id is None:
                raise NotFoundError("Offer not found.")

            req = _lock_request(session, request_id)
            offers = _lock_offers(session, request_id)
            offer = next((o for o in offers if o.id == offer_id), None)
            if req is None or offer is None:
                raise NotFoundError("Offer not found.")

            if req.farmer_id != actor.user_id:
                raise ForbiddenError("You are not authorized to reject offers for this request.")

            is_current_assignment = (
                offer.status is OfferStatus.ACCEPTED
                and req.accepted_offer_id == offer.id
                and req.status is RequestStatus.IN_PROGRESS
            )
            if not is_current_assignment and offer.status is not OfferStatus.PENDING:
                raise InvalidStateError("Only pending offers can be rejected.")

            offer.status = OfferStatus.REJECTED
            if is_current_assignment:
                _move_request(req, RequestStatus.PENDING)
                req.accepted_offer_id = None
                req.service_provider_id = None

            session.flush()

            self._notify_after_commit(uow, [
                NotificationEvent(
                    user_id=offer.provider_id,
                    message=f"Your offer on service request #{req.id} was rejected.",
                    type="offer_rejected",
                    related_entity_type="offer",
                    related_entity_id=offer.id,
                )
            ])

        if is_current_assignment:
            logger.info("Accepted offer %s rejected; request %s reverted to pending", offer.id, req.id)
        else:
            logger.info("Offer %s rejected on request %s", offer.id, req.id)
        return RejectOutcome(offer=offer, request_reverted=is_current_assignment)

    # =====================================================
    # Complete request (assigned provider)
    # =====================================================
    def complete_request(self, actor, request_id: int) -> ServiceRequest:
        _require_role(actor, COMPLETE_REQUEST_ROLES, "complete service requests")

        with self._storage.unit_of_work("Complete service request") as uow:
            session = uow.session

            req = _lock_request(session, request_id)
            if req is None:
                raise NotFoundError("Service request not found.")

            if req.status is not RequestStatus.IN_PROGRESS:
                raise InvalidStateError(
                    "Cannot mark a request as completed unless its status is \"in_progress\"."
                )

            if req.service_provider_id != actor.user_id:
                raise ForbiddenError(
                    "You are not authorized to mark this request as completed. "
                    "You are not the assigned service provider."
                )

            _move_request(req, RequestStatus.COMPLETED)
            req.completed_at = self._clock()

            if req.accepted_offer_id is not None:
                accepted = next(
                    (o for o in _lock_offers(session, req.id) if o.id == req.accepted_offer_id),
                    None,
                )
                if accepted is not None:
                    accepted.status = OfferStatus.COMPLETED

            session.flush()

            self._notify_after_commit(uow, [
                NotificationEvent(
                    user_id=req.farmer_id,
                    message=f"Service request #{req.id} has been marked as completed.",
                    type="request_completed",
                    related_entity_type="service_request",
                    related_entity_id=req.id,
                )
            ])

        logger.info("Service request %s completed by provider=%s", req.id, actor.user_id)
        return req
