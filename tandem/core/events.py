"""
Tandem Event Bus - Local Pub/Sub for same-side components
=========================================================

Provides deterministic, in-process communication between components that
live on the same side of the process pair. Nothing here touches the network.

Features:
- Named Events with any number of subscribers
- Named Functions with exactly one handler (direct synchronous call)
- Snapshot delivery: a fire works on the subscribers present when it began
- Error isolation: a failing callback is logged, the rest still run

Usage:
    bus = EventBus("Inventory", events={"Changed"}, functions={"Count": count})

    sub = bus.on("Changed", lambda item, qty: print(item, qty))
    bus.fire("Changed", "apple", 3)
    sub.disconnect()

    bus.invoke("Count", "apple")
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import UnknownEvent, UnknownFunction

logger = logging.getLogger(__name__)

Callback = Callable[..., Any]


class Subscription:
    """
    Handle returned by every subscribe operation.

    ``disconnect()`` detaches the callback from whatever owns it. Calling it
    more than once is harmless.
    """

    __slots__ = ("_detach", "_connected")

    def __init__(self, detach: Callable[[], None]) -> None:
        self._detach = detach
        self._connected = True

    @property
    def connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self._detach()

    def _consumed(self) -> None:
        self._connected = False

    def __repr__(self) -> str:
        state = "connected" if self._connected else "disconnected"
        return f"<Subscription {state}>"


@dataclass(eq=False)
class _Slot:
    callback: Callback
    once: bool = False
    subscription: Subscription | None = None


class Signal:
    """
    Multi-subscriber broadcast primitive.

    Callbacks run synchronously, in subscription order, and all of them have
    returned by the time ``fire`` returns.
    """

    def __init__(self, name: str, owner: str = "") -> None:
        self.name = name
        self.owner = owner
        self._slots: list[_Slot] = []
        self.errors = 0

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def label(self) -> str:
        return f"{self.owner}.{self.name}" if self.owner else self.name

    def connect(self, callback: Callback, once: bool = False) -> Subscription:
        if not callable(callback):
            raise TypeError(f"callback for {self.label} is not callable")
        if inspect.iscoroutinefunction(callback):
            raise TypeError(
                f"callback for {self.label} is a coroutine function; "
                "signals deliver synchronously"
            )

        slot = _Slot(callback=callback, once=once)
        slot.subscription = Subscription(lambda: self._remove(slot))
        self._slots.append(slot)
        return slot.subscription

    def _remove(self, slot: _Slot) -> None:
        try:
            self._slots.remove(slot)
        except ValueError:
            pass

    def fire(self, *args: Any) -> int:
        """Deliver ``args`` to a snapshot of subscribers. Returns the count."""
        snapshot = tuple(self._slots)
        delivered = 0

        for slot in snapshot:
            if slot.once:
                # a re-entrant fire may already have consumed it
                if slot not in self._slots:
                    continue
                self._remove(slot)
                slot.subscription._consumed()
            try:
                slot.callback(*args)
                delivered += 1
            except Exception:
                self.errors += 1
                logger.exception("Callback error for %s", self.label)

        return delivered

    def disconnect_all(self) -> None:
        self._slots.clear()


class EventBus:
    """
    Per-component table of Events and Functions.

    Only names declared up front exist; everything else fails fast with
    UnknownEvent / UnknownFunction.
    """

    def __init__(
        self,
        component: str,
        events: Iterable[str] = (),
        functions: Mapping[str, Callback] | None = None,
    ) -> None:
        self.component = component
        self._events: dict[str, Signal] = {
            name: Signal(name, owner=component) for name in events
        }
        self._functions: dict[str, Callback] = dict(functions or {})
        self._stats = {
            "events_fired": 0,
            "callbacks_invoked": 0,
            "functions_invoked": 0,
        }

    @property
    def events(self) -> list[str]:
        return list(self._events)

    @property
    def functions(self) -> list[str]:
        return list(self._functions)

    def _event(self, name: str) -> Signal:
        try:
            return self._events[name]
        except KeyError:
            raise UnknownEvent(self.component, name) from None

    def on(self, name: str, callback: Callback) -> Subscription:
        """Subscribe ``callback`` to event ``name``."""
        return self._event(name).connect(callback)

    def once(self, name: str, callback: Callback) -> Subscription:
        """Subscribe for the next delivery only."""
        return self._event(name).connect(callback, once=True)

    def fire(self, name: str, *args: Any) -> None:
        """Synchronously deliver ``args`` to every subscriber of ``name``."""
        signal = self._event(name)
        delivered = signal.fire(*args)
        self._stats["events_fired"] += 1
        self._stats["callbacks_invoked"] += delivered
        logger.debug("Fired %s to %d subscriber(s)", signal.label, delivered)

    def invoke(self, name: str, *args: Any) -> Any:
        """Call Function ``name`` directly and return its result."""
        try:
            handler = self._functions[name]
        except KeyError:
            raise UnknownFunction(self.component, name) from None
        self._stats["functions_invoked"] += 1
        return handler(*args)

    def subscriber_count(self, name: str) -> int:
        return len(self._event(name))

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics."""
        return {
            **self._stats,
            "callback_errors": sum(s.errors for s in self._events.values()),
            "subscriber_count": sum(len(s) for s in self._events.values()),
        }

    def clear(self) -> None:
        """Drop every subscriber of every event."""
        for signal in self._events.values():
            signal.disconnect_all()
