"""In-process change events for request lifecycle notifications.

Services queue events on the session; they are handed to subscribers only
after the surrounding transaction commits, and dropped on rollback.
Subscriber failures are logged and never reach the caller, so a decision
that committed stays committed whatever the notifier does.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_PENDING_KEY = "ops_portal.pending_events"


class ChangeEvent(BaseModel):
    """Payload handed to subscribers."""

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str  # e.g. "request.created", "request.decided"
    kind: str
    entity_id: str
    actor_id: Optional[str] = None
    status: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[ChangeEvent], None]


class EventBus:
    """Minimal publish/subscribe hub; delivery and retry belong to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[tuple[str, Subscriber]] = []

    def subscribe(self, handler: Subscriber, prefix: str = "") -> Callable[[], None]:
        """Register *handler* for events whose name starts with *prefix*.

        Returns a callable that removes the subscription.
        """
        entry = (prefix, handler)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    def publish(self, evt: ChangeEvent) -> int:
        """Deliver *evt*; returns how many subscribers accepted it."""
        delivered = 0
        for prefix, handler in list(self._subscribers):
            if not evt.name.startswith(prefix):
                continue
            try:
                handler(evt)
                delivered += 1
            except Exception:
                logger.exception(
                    "Event subscriber %r failed for %s %s",
                    handler, evt.name, evt.entity_id,
                )
        return delivered

    def clear(self) -> None:
        self._subscribers.clear()


bus = EventBus()


# ── Session-bound queueing ──────────────────────────────────────────

def queue_event(db: AsyncSession, evt: ChangeEvent) -> None:
    """Publish *evt* once *db* commits."""
    db.sync_session.info.setdefault(_PENDING_KEY, []).append(evt)


@event.listens_for(Session, "after_commit")
def _flush_events(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    for evt in pending or []:
        bus.publish(evt)


@event.listens_for(Session, "after_soft_rollback")
def _drop_events(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(_PENDING_KEY, None)
    if dropped:
        logger.info("Dropped %d unpublished event(s) after rollback", len(dropped))
