"""Observer registration for coordinator notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, TypeVar

from magnus_tool.core.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


class EventChannel(Generic[T]):
    """Synchronous fan-out of one notification type.

    Handlers run in registration order, on the caller's stack, so
    successive emit() calls reach every handler in emission order.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Callable[[T], object]] = []

    def register(self, handler: Callable[[T], object]) -> Callable[[], None]:
        """Add a handler. Returns a callable that removes it again."""
        self._handlers.append(handler)

        def unregister() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unregister

    def emit(self, payload: T) -> None:
        get_logger(__name__).debug("event", channel=self.name, handlers=len(self._handlers))
        for handler in list(self._handlers):
            handler(payload)

    def __len__(self) -> int:
        return len(self._handlers)
