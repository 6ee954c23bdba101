# app/services/notifications.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from app.errors import InternalError
from app.models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    user_id: int
    message: str
    type: str
    related_entity_type: str | None = None
    related_entity_id: int | None = None


class NotificationSink:
    """
    Fire-and-forget delivery: logs the message (SMS simulation) and stores an
    in-app Notification row in its own unit of work. Never raises to the caller.
    """

    def __init__(self, storage):
        self._storage = storage

    def emit(self, event: NotificationEvent) -> None:
        logger.info("SMS to user=%s type=%s: %s", event.user_id, event.type, event.message)
        try:
            with self._storage.unit_of_work("Save notification") as uow:
                uow.session.add(
                    Notification(
                        user_id=event.user_id,
                        type=event.type,
                        message=event.message,
                        related_entity_type=event.related_entity_type,
                        related_entity_id=event.related_entity_id,
                    )
                )
        except InternalError:
            logger.warning("Notification for user=%s was not stored", event.user_id)

    def emit_all(self, events: list[NotificationEvent]) -> None:
        for event in events:
            self.emit(event)
