"""Persisted notification feed, newest entry first."""
from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone
from typing import Union

from . import schemas
from .state import StateContainer

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_notification_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


class NotificationStore(StateContainer[schemas.NotificationFeed]):
    storage_key = "notifications-storage"
    state_model = schemas.NotificationFeed

    def add(
        self, event: Union[schemas.NotificationEvent, dict]
    ) -> schemas.Notification:
        if not isinstance(event, schemas.NotificationEvent):
            event = schemas.NotificationEvent.model_validate(event)
        notification = schemas.Notification(
            **event.model_dump(),
            id=generate_notification_id(),
            timestamp=datetime.now(timezone.utc),
            read=False,
        )
        self.set(
            lambda feed: {"notifications": [notification, *feed.notifications]}
        )
        return notification

    def mark_read(self, notification_id: str) -> None:
        self.set(
            lambda feed: {
                "notifications": [
                    item.model_copy(update={"read": True})
                    if item.id == notification_id
                    else item
                    for item in feed.notifications
                ]
            }
        )

    def mark_all_read(self) -> None:
        self.set(
            lambda feed: {
                "notifications": [
                    item.model_copy(update={"read": True}) for item in feed.notifications
                ]
            }
        )

    def remove(self, notification_id: str) -> None:
        self.set(
            lambda feed: {
                "notifications": [
                    item for item in feed.notifications if item.id != notification_id
                ]
            }
        )

    def clear(self) -> None:
        self.set({"notifications": []})

    def notifications(self) -> list[schemas.Notification]:
        return self.get().notifications

    def unread_count(self) -> int:
        return sum(1 for item in self._state.notifications if not item.read)
