"""
Request dispatcher.

Serves inbound method calls: middleware, then handler, then response. Any
failure past the middleware is contained here and reported to the caller as
``(None, reason)``; it never takes the dispatcher, or other requests, down.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from ..transport.base import RequestChannel, TransportError
from .declaration import ComponentDeclaration
from .errors import UnknownMethod
from .events import Subscription
from .middleware import INTERNAL_ERROR, MiddlewareContext, MiddlewarePipeline, Reject
from .registry import RemoteDescriptor

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]


def as_response(result: Any) -> tuple:
    """Normalise a handler's return value into a response tuple."""
    if result is None:
        return ()
    if isinstance(result, tuple):
        return result
    return (result,)


class RequestDispatcher:
    """
    Routes requests arriving on bound request channels to their handlers.

    Each request is served in its own task. Tasks are created in the order
    the transport delivers requests, so a caller's requests on one channel
    start in order; nothing is reordered here.
    """

    def __init__(
        self,
        pipeline: MiddlewarePipeline,
        internal_error: str = INTERNAL_ERROR,
        log_tracebacks: bool = True,
    ) -> None:
        self._pipeline = pipeline
        self._internal_error = internal_error
        self._log_tracebacks = log_tracebacks
        self._handlers: dict[str, dict[str, Handler]] = {}
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task] = set()
        self._stats = {
            "requests_received": 0,
            "requests_served": 0,
            "requests_rejected": 0,
            "handler_errors": 0,
        }

    def bind(self, declaration: ComponentDeclaration, descriptor: RemoteDescriptor) -> None:
        """Start serving every method channel of one Service."""
        handlers = self._handlers.setdefault(declaration.name, {})
        for method, channel in descriptor.methods.items():
            handlers[method] = declaration.methods[method]
            subscription = channel.receive(self._receiver(declaration.name, method, channel))
            self._subscriptions.append(subscription)
        logger.debug("Serving %d method(s) on %s", len(descriptor.methods), declaration.name)

    def _receiver(
        self,
        component: str,
        method: str,
        channel: RequestChannel,
    ) -> Callable[[str, int, tuple], None]:
        def on_request(caller: str, request_id: int, args: tuple) -> None:
            self._stats["requests_received"] += 1
            task = asyncio.create_task(
                self._serve(channel, caller, request_id, component, method, args),
                name=f"{component}.{method}#{request_id}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return on_request

    async def _serve(
        self,
        channel: RequestChannel,
        caller: str,
        request_id: int,
        component: str,
        method: str,
        args: tuple,
    ) -> None:
        try:
            values = await self.dispatch(caller, component, method, args)
        except asyncio.CancelledError:
            # the caller still gets an answer when the server shuts down mid-request
            logger.warning("Request %s.%s from %s cancelled", component, method, caller)
            self._respond(channel, caller, request_id, (None, self._internal_error))
            raise
        self._respond(channel, caller, request_id, values)

    def _respond(self, channel: RequestChannel, caller: str, request_id: int, values: tuple) -> None:
        try:
            channel.respond(caller, request_id, values)
        except TransportError as exc:
            logger.warning("Could not respond to %s on %r: %s", caller, channel, exc)

    def _resolve(self, component: str, method: str) -> Handler:
        try:
            return self._handlers[component][method]
        except KeyError:
            raise UnknownMethod(component, method) from None

    async def dispatch(self, caller: str, component: str, method: str, args: tuple = ()) -> tuple:
        """
        Run one request through middleware and its handler.

        Returns the response tuple; rejections and handler faults come back
        as ``(None, reason)``.

        Raises:
            UnknownMethod: nothing is bound for ``component.method``
        """
        handler = self._resolve(component, method)

        verdict = await self._pipeline.evaluate(
            MiddlewareContext(caller=caller, component=component, method=method, args=tuple(args))
        )
        if isinstance(verdict, Reject):
            self._stats["requests_rejected"] += 1
            return (None, verdict.reason)

        try:
            result = handler(caller, *args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self._stats["handler_errors"] += 1
            if self._log_tracebacks:
                logger.exception("Handler error in %s.%s (caller=%s)", component, method, caller)
            else:
                logger.error("Handler error in %s.%s (caller=%s): %s", component, method, caller, exc)
            return (None, self._internal_error)

        self._stats["requests_served"] += 1
        return as_response(result)

    def get_stats(self) -> dict[str, int]:
        """Get dispatcher statistics."""
        return {**self._stats, "in_flight": len(self._tasks)}

    def close(self) -> None:
        """Stop receiving and cancel requests still being served."""
        for subscription in self._subscriptions:
            subscription.disconnect()
        self._subscriptions.clear()
        for task in list(self._tasks):
            task.cancel()
