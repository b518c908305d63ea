"""Unit tests for the middleware pipeline."""

from __future__ import annotations

import pytest

from tandem.core.errors import RegistrationClosed
from tandem.core.middleware import (
    ALLOW,
    Allow,
    MiddlewareContext,
    MiddlewarePipeline,
    Reject,
)


def _ctx(**overrides) -> MiddlewareContext:
    values = {"caller": "player-1", "component": "S", "method": "Get", "args": (1, 2)}
    values.update(overrides)
    return MiddlewareContext(**values)


@pytest.mark.asyncio
class TestMiddlewarePipeline:
    """Test MiddlewarePipeline."""

    async def test_empty_chain_allows(self):
        pipeline = MiddlewarePipeline()

        assert await pipeline.evaluate(_ctx()) == ALLOW

    async def test_registration_order(self):
        """Predicates should run in the order they were added."""
        seen = []
        pipeline = MiddlewarePipeline()
        for label in ("first", "second", "third"):
            pipeline.add_middleware(lambda ctx, label=label: seen.append(label))

        verdict = await pipeline.evaluate(_ctx())

        assert isinstance(verdict, Allow)
        assert seen == ["first", "second", "third"]

    async def test_first_reject_short_circuits(self):
        """[Allow, Reject("x"), Allow] rejects with "x"; the third never runs."""
        calls = []

        def allow_first(ctx):
            calls.append(1)
            return ALLOW

        def reject(ctx):
            calls.append(2)
            return Reject("x")

        def allow_last(ctx):
            calls.append(3)
            return ALLOW

        pipeline = MiddlewarePipeline()
        pipeline.add_middleware(allow_first)
        pipeline.add_middleware(reject)
        pipeline.add_middleware(allow_last)

        verdict = await pipeline.evaluate(_ctx())

        assert verdict == Reject("x")
        assert calls == [1, 2]

    async def test_faulting_predicate_is_internal_error(self):
        """A predicate that raises becomes a generic rejection."""
        reached = []

        def broken(ctx):
            raise KeyError("oops")

        pipeline = MiddlewarePipeline()
        pipeline.add_middleware(broken)
        pipeline.add_middleware(lambda ctx: reached.append(True))

        verdict = await pipeline.evaluate(_ctx())

        assert verdict == Reject("Internal server error")
        assert reached == []

    async def test_false_rejects(self):
        pipeline = MiddlewarePipeline()
        pipeline.add_middleware(lambda ctx: False)

        verdict = await pipeline.evaluate(_ctx())

        assert isinstance(verdict, Reject)

    async def test_async_predicate(self):
        async def only_admins(ctx):
            if ctx.caller != "admin":
                return Reject("admins only")
            return ALLOW

        pipeline = MiddlewarePipeline()
        pipeline.add_middleware(only_admins)

        assert await pipeline.evaluate(_ctx(caller="admin")) == ALLOW
        assert await pipeline.evaluate(_ctx()) == Reject("admins only")

    async def test_context_is_passed(self):
        received = []
        pipeline = MiddlewarePipeline()
        pipeline.add_middleware(received.append)

        await pipeline.evaluate(_ctx(method="Buy", args=("sword",)))

        assert received[0].caller == "player-1"
        assert received[0].component == "S"
        assert received[0].method == "Buy"
        assert received[0].args == ("sword",)

    async def test_custom_internal_error(self):
        pipeline = MiddlewarePipeline(internal_error="try again later")
        pipeline.add_middleware(lambda ctx: 1 / 0)

        assert await pipeline.evaluate(_ctx()) == Reject("try again later")


class TestMiddlewareRegistration:
    """Test chain freezing."""

    def test_add_after_close(self):
        pipeline = MiddlewarePipeline()
        pipeline.add_middleware(lambda ctx: ALLOW)
        pipeline.close()

        with pytest.raises(RegistrationClosed):
            pipeline.add_middleware(lambda ctx: ALLOW)
        assert len(pipeline) == 1

    def test_not_callable(self):
        pipeline = MiddlewarePipeline()

        with pytest.raises(TypeError):
            pipeline.add_middleware("nope")  # type: ignore[arg-type]
