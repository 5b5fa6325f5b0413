"""Change-event publishing."""

from ops_portal.events.publisher import ChangeEvent, EventBus, bus, queue_event

__all__ = ["ChangeEvent", "EventBus", "bus", "queue_event"]
