"""
Per-process coordinator.

One Coordinator per process, on either side of the pair. It owns the
registry, the middleware pipeline, the dispatcher, the lifecycle and (on the
client) the bridge factory, and passes itself to every Component it builds.
There is no hidden global.

Server:
    server = Coordinator(transport)
    server.add_middleware(rate_limit)
    await server.init_server("services/")
    await server.start_server()

Client:
    client = Coordinator(transport, client_id="player-1")
    await client.init_client("controllers/")
    await client.start_client()
    inventory = await client.get_service("Inventory")
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from enum import Enum
from typing import Any

from ..config import TandemConfig
from ..loader import ModuleLoader, load_modules
from ..transport.base import TransportProvider
from .bridge import Bridge, ClientBridgeFactory
from .component import Component
from .declaration import Role, parse_declaration
from .dispatcher import RequestDispatcher
from .errors import (
    DuplicateComponent,
    NotReady,
    RegistrationClosed,
    UnknownComponent,
    WrongSide,
)
from .lifecycle import LifecycleCoordinator, LifecycleState
from .middleware import MiddlewarePipeline, Predicate
from .registry import CapabilityRegistry

logger = logging.getLogger(__name__)


class Side(str, Enum):
    SERVER = "server"
    CLIENT = "client"


_ROLE_FOR_SIDE = {Side.SERVER: Role.SERVICE, Side.CLIENT: Role.CONTROLLER}


class Coordinator:
    """
    The exposed surface of one process.

    The side is fixed by the first side-specific call (``create_service``,
    ``add_middleware``, ``init_server`` for the server; ``create_controller``,
    ``init_client`` for the client).
    """

    def __init__(
        self,
        transport: TransportProvider,
        config: TandemConfig | None = None,
        loader: ModuleLoader | None = None,
        client_id: str | None = None,
    ) -> None:
        self.config = config or TandemConfig()
        self.transport = transport
        self._loader = loader
        self.side: Side | None = None
        self.client_id = client_id or self.config.client.client_id or f"client-{uuid.uuid4().hex[:8]}"

        dispatch = self.config.dispatch
        self.pipeline = MiddlewarePipeline(internal_error=dispatch.internal_error_message)
        self.dispatcher = RequestDispatcher(
            self.pipeline,
            internal_error=dispatch.internal_error_message,
            log_tracebacks=dispatch.log_tracebacks,
        )
        self.lifecycle = LifecycleCoordinator()
        self.registry: CapabilityRegistry | None = None
        self.bridges: ClientBridgeFactory | None = None

        self._staged: list[Mapping[str, Any]] = []
        self._staged_names: set[str] = set()
        self._components: dict[str, Component] = {}

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    @property
    def components(self) -> list[Component]:
        return list(self._components.values())

    def _claim_side(self, side: Side) -> None:
        if self.side is None:
            self.side = side
            self.lifecycle.label = side.value
            if side is Side.SERVER:
                self.registry = CapabilityRegistry(self.transport)
            else:
                self.registry = CapabilityRegistry()
                self.bridges = ClientBridgeFactory(
                    self.transport,
                    caller=self.client_id,
                    timeout=self.config.discovery.timeout,
                    poll_interval=self.config.discovery.poll_interval,
                )
        elif self.side is not side:
            raise WrongSide(f"this process is the {self.side.value}, not the {side.value}")

    # ==========================================================================
    # Registration
    # ==========================================================================

    def create_service(self, raw: Mapping[str, Any]) -> None:
        """Stage a Service declaration; it is registered by init_server."""
        self._stage(raw, Side.SERVER)

    def create_controller(self, raw: Mapping[str, Any]) -> None:
        """Stage a Controller declaration; it is registered by init_client."""
        self._stage(raw, Side.CLIENT)

    def _stage(self, raw: Mapping[str, Any], side: Side) -> None:
        self._claim_side(side)
        if self.lifecycle.state is not LifecycleState.UNINITIALIZED:
            raise RegistrationClosed(f"cannot create components once the {side.value} is initializing")

        role = _ROLE_FOR_SIDE[side]
        declaration = parse_declaration(raw, role)
        if declaration.name in self._staged_names:
            raise DuplicateComponent(declaration.name, role.value)
        self._staged.append(raw)
        self._staged_names.add(declaration.name)

    def add_middleware(self, predicate: Predicate) -> None:
        """Append inbound middleware; only before the server initializes."""
        self._claim_side(Side.SERVER)
        self.pipeline.add_middleware(predicate)

    def _register_all(self, root: Any, side: Side) -> None:
        assert self.registry is not None
        role = _ROLE_FOR_SIDE[side]
        declarations = [*self._staged, *(m.declaration for m in load_modules(root, self._loader))]

        for raw in declarations:
            declaration = self.registry.register(raw, role)
            descriptor = None
            if side is Side.SERVER:
                descriptor = self.registry.descriptor(declaration.name)
                self.dispatcher.bind(declaration, descriptor)
            self._components[declaration.name] = Component(declaration, self, descriptor)

        self._staged.clear()
        self.registry.close()
        logger.info("Registered %d %s(s)", len(self._components), role.value)

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def _init(self, root: Any, side: Side) -> None:
        if self.lifecycle.state is LifecycleState.UNINITIALIZED:
            self._claim_side(side)
        self.lifecycle.begin_init()
        if side is Side.SERVER:
            self.pipeline.close()
        self._register_all(root, side)
        await self.lifecycle.run_init(self.components)

    async def init_server(self, root: Any = None) -> None:
        """
        Register Services from ``root`` (plus any created in code), bind and
        publish their channels, then run every Init hook in order.

        Raises:
            AlreadyInitialized: this process has already been initialized
            WrongSide: Controllers were created on this process
        """
        await self._init(root, Side.SERVER)

    async def init_client(self, root: Any = None) -> None:
        """Register Controllers from ``root`` and run every Init hook in order."""
        await self._init(root, Side.CLIENT)

    def _start(self, side: Side) -> None:
        if self.side is not side:
            raise WrongSide(f"cannot start the {side.value} on this process")
        self.lifecycle.run_start(self.components)

    async def start_server(self) -> None:
        """Launch every Service's Start hook as a background task."""
        self._start(Side.SERVER)

    async def start_client(self) -> None:
        """Launch every Controller's Start hook as a background task."""
        self._start(Side.CLIENT)

    async def wait_until_running(self) -> None:
        await self.lifecycle.wait_until_running()

    # ==========================================================================
    # Lookups
    # ==========================================================================

    def _require_ready(self) -> None:
        if not self.lifecycle.is_ready:
            raise NotReady(f"lookups are valid once the process is ready (now {self.state.value})")

    def _local(self, name: str) -> Component:
        try:
            return self._components[name]
        except KeyError:
            raise UnknownComponent(f"no component named {name!r}") from None

    async def get_service(self, name: str, timeout: float | None = None) -> Component | Bridge:
        """
        Server: the local Service. Client: the (cached) Bridge to it.

        Raises:
            NotReady: called before Init finished
            UnknownComponent: (server) no such Service
            ServiceDiscoveryTimeout: (client) never published
        """
        self._require_ready()
        if self.side is Side.SERVER:
            return self._local(name)
        assert self.bridges is not None
        return await self.bridges.get_service(name, timeout=timeout)

    def get_controller(self, name: str) -> Component:
        """Client only."""
        self._require_ready()
        if self.side is not Side.CLIENT:
            raise WrongSide("controllers only exist on the client")
        return self._local(name)

    # ==========================================================================
    # Utilities
    # ==========================================================================

    def get_status(self) -> dict[str, Any]:
        return {
            "side": self.side.value if self.side else None,
            "state": self.state.value,
            "client_id": self.client_id if self.side is Side.CLIENT else None,
            "components": [c.get_status() for c in self._components.values()],
            "middleware": len(self.pipeline),
            "dispatcher": self.dispatcher.get_stats(),
            "bridges": [b.name for b in self.bridges.bridges] if self.bridges else [],
        }

    async def shutdown(self) -> None:
        """Cancel Start tasks, stop serving requests and destroy bridges."""
        await self.lifecycle.cancel_tasks()
        self.dispatcher.close()
        if self.bridges is not None:
            self.bridges.destroy_all()
        logger.info("Coordinator (%s) shut down", self.side.value if self.side else "unassigned")
