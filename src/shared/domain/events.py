"""Domain event primitives shared by the bounded contexts."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import UUID

from uuid6 import uuid7


@dataclass(frozen=True)
class DomainEvent:
    """Immutable fact about an aggregate.

    ``event_id`` is a UUIDv7, so ids sort in emission order like the
    primary keys of the models.
    """

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid7)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def log_fields(self) -> Dict[str, Any]:
        """Flat, string-keyed view of the event for structured logs."""
        fields = asdict(self)
        fields["aggregate_id"] = str(self.aggregate_id)
        fields["event_id"] = str(self.event_id)
        fields["occurred_on"] = self.occurred_on.isoformat()
        return fields


class DomainEventMixin:
    """Lets an aggregate root queue events until its repository saves it."""

    _domain_events: List[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def pull_domain_events(self) -> List[DomainEvent]:
        """Return the queued events and forget them."""
        events = list(getattr(self, "_domain_events", []))
        self._domain_events = []
        return events

    @property
    def domain_events(self) -> List[DomainEvent]:
        return list(getattr(self, "_domain_events", []))
