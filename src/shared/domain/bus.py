"""Contracts between event producers and their in-process consumers."""

from __future__ import annotations

from typing import Generic, Iterable, Protocol, Type, TypeVar

from shared.domain.events import DomainEvent

E = TypeVar("E", bound=DomainEvent, contravariant=True)


class IEventHandler(Protocol, Generic[E]):
    def handle(self, event: E) -> None: ...


class IEventBus(Protocol):
    """Delivers events to the handlers subscribed to their exact class."""

    def publish(self, event: DomainEvent) -> None: ...

    def publish_on_commit(self, events: Iterable[DomainEvent]) -> None:
        """Deliver ``events`` only once the current transaction commits."""
        ...

    def subscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...

    def unsubscribe(self, event_class: Type[E], handler: IEventHandler[E]) -> None: ...
