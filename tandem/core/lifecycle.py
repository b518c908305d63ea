"""
Lifecycle coordinator.

Two phases per process:

1. Init - every component's ``init`` hook, in registration order, one at a
   time. Later components may rely on what earlier ones set up, so nothing
   here runs in parallel.
2. Start - every component's ``start`` hook as its own asyncio task. Start
   hooks may run forever; nobody waits for them.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from .errors import AlreadyInitialized, ComponentInitError, InvalidTransition

if TYPE_CHECKING:
    from .component import Component

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    """Process lifecycle state. Only ever moves forward, one step at a time."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    STARTING = "starting"
    RUNNING = "running"


_ORDER = list(LifecycleState)


class LifecycleCoordinator:
    """Drives one process through Init then Start."""

    def __init__(self, label: str = "process") -> None:
        self.label = label
        self._state = LifecycleState.UNINITIALIZED
        self._history: list[tuple[LifecycleState, float]] = [(self._state, time.time())]
        self._tasks: dict[str, asyncio.Task] = {}
        self._running: asyncio.Event | None = None
        self._listeners: list[Callable[[LifecycleState], Any]] = []

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return _ORDER.index(self._state) >= _ORDER.index(LifecycleState.READY)

    @property
    def history(self) -> list[tuple[LifecycleState, float]]:
        return list(self._history)

    @property
    def tasks(self) -> dict[str, asyncio.Task]:
        return dict(self._tasks)

    def on_transition(self, callback: Callable[[LifecycleState], Any]) -> None:
        """Call ``callback(new_state)`` after every transition."""
        self._listeners.append(callback)

    def advance(self, target: LifecycleState) -> None:
        """Move to ``target``, which must be the next state."""
        current = _ORDER.index(self._state)
        if _ORDER.index(target) != current + 1:
            raise InvalidTransition(self._state, target)

        self._state = target
        self._history.append((target, time.time()))
        logger.info("%s lifecycle: %s", self.label, target.value)

        if target is LifecycleState.RUNNING and self._running is not None:
            self._running.set()
        for listener in list(self._listeners):
            listener(target)

    def begin_init(self) -> None:
        if self._state is not LifecycleState.UNINITIALIZED:
            raise AlreadyInitialized(self._state, LifecycleState.INITIALIZING)
        self.advance(LifecycleState.INITIALIZING)

    # ==========================================================================
    # Init
    # ==========================================================================

    async def run_init(self, components: Sequence[Component]) -> None:
        """
        Run Init hooks strictly in order, then become READY.

        A hook that suspends (returns an awaitable) is awaited before the
        next hook runs. That blocks the whole sequence, and is logged.

        Raises:
            ComponentInitError: a hook raised; the sequence stops there
        """
        if self._state is not LifecycleState.INITIALIZING:
            raise InvalidTransition(self._state, LifecycleState.READY)

        for component in components:
            hook = component.declaration.init
            if hook is None:
                continue
            try:
                result = hook(component)
                if inspect.isawaitable(result):
                    logger.warning(
                        "Init hook of %s suspended; init sequence blocked until it returns",
                        component.name,
                    )
                    await result
            except Exception as exc:
                logger.error("Init hook failed for %s: %s", component.name, exc)
                raise ComponentInitError(component.name) from exc
            logger.debug("Initialized %s", component.name)

        self.advance(LifecycleState.READY)

    # ==========================================================================
    # Start
    # ==========================================================================

    def run_start(self, components: Sequence[Component]) -> dict[str, asyncio.Task]:
        """Launch every Start hook as its own task and become RUNNING."""
        self.advance(LifecycleState.STARTING)

        for component in components:
            hook = component.declaration.start
            if hook is None:
                continue
            self._tasks[component.name] = asyncio.create_task(
                self._start_hook(component, hook),
                name=f"{component.name}.start",
            )

        self.advance(LifecycleState.RUNNING)
        return dict(self._tasks)

    async def _start_hook(self, component: Component, hook: Callable[..., Any]) -> None:
        try:
            result = hook(component)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Start hook failed for %s", component.name)

    async def wait_until_running(self) -> None:
        if self._state is LifecycleState.RUNNING:
            return
        if self._running is None:
            self._running = asyncio.Event()
        await self._running.wait()

    async def cancel_tasks(self) -> None:
        """Cancel start tasks that are still running and wait for them to unwind."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
