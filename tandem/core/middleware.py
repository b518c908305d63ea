"""
Inbound middleware pipeline.

An ordered chain of predicates that every remote method call passes through
before its handler runs. The first rejection wins and later predicates are
never consulted. Signals and the local EventBus do not go through here.

Usage:
    pipeline = MiddlewarePipeline()

    def only_admins(ctx: MiddlewareContext):
        if ctx.caller not in ADMINS:
            return Reject("admins only")
        return ALLOW

    pipeline.add_middleware(only_admins)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Union

from .errors import RegistrationClosed

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"
DEFAULT_REJECTION = "Request rejected"


@dataclass(frozen=True)
class Allow:
    """Let the call through."""


@dataclass(frozen=True)
class Reject:
    """Stop the call; ``reason`` is returned to the caller verbatim."""
    reason: str = DEFAULT_REJECTION


ALLOW = Allow()

Verdict = Union[Allow, Reject]


@dataclass(frozen=True)
class MiddlewareContext:
    """What a predicate gets to look at."""
    caller: str
    component: str
    method: str
    args: tuple[Any, ...] = ()


Predicate = Callable[[MiddlewareContext], Union[Verdict, bool, None, Awaitable[Any]]]


def _as_verdict(result: Any) -> Verdict:
    if isinstance(result, Reject):
        return result
    if result is False:
        return Reject()
    return ALLOW


class MiddlewarePipeline:
    """Registration-ordered, short-circuiting guard chain."""

    def __init__(self, internal_error: str = INTERNAL_ERROR) -> None:
        self._chain: list[Predicate] = []
        self._closed = False
        self.internal_error = internal_error

    def __len__(self) -> int:
        return len(self._chain)

    @property
    def closed(self) -> bool:
        return self._closed

    def add_middleware(self, predicate: Predicate) -> None:
        """Append ``predicate`` to the chain."""
        if self._closed:
            raise RegistrationClosed("middleware cannot be added once the server is initializing")
        if not callable(predicate):
            raise TypeError("middleware must be callable")
        self._chain.append(predicate)
        logger.debug(
            "Added middleware #%d: %s",
            len(self._chain),
            getattr(predicate, "__name__", repr(predicate)),
        )

    def close(self) -> None:
        """Freeze the chain."""
        self._closed = True

    async def evaluate(self, context: MiddlewareContext) -> Verdict:
        """Run the chain in order; stop at the first Reject."""
        for index, predicate in enumerate(self._chain):
            try:
                result = predicate(context)
                if inspect.isawaitable(result):
                    result = await result
            except Exception:
                logger.exception(
                    "Middleware #%d failed on %s.%s",
                    index + 1,
                    context.component,
                    context.method,
                )
                return Reject(self.internal_error)

            verdict = _as_verdict(result)
            if isinstance(verdict, Reject):
                logger.debug(
                    "Middleware #%d rejected %s.%s from %s: %s",
                    index + 1,
                    context.component,
                    context.method,
                    context.caller,
                    verdict.reason,
                )
                return verdict

        return ALLOW
