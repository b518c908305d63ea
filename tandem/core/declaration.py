"""
Component declarations.

Raw declarations are plain mappings (usually a module-level ``component``
dict). They are parsed once, at registration, into an immutable
ComponentDeclaration with every optional field defaulted to an empty
collection, so nothing downstream has to re-check shapes.

Example:
    component = {
        "name": "Inventory",
        "methods": {"GetItems": get_items},
        "signals": ["ItemAdded"],
        "inbound_signals": ["Drop"],
        "events": ["Changed"],
        "init": init,
        "start": start,
    }
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from .errors import InvalidCapabilityType, MissingName


class Role(str, Enum):
    """Which side of the process pair a component belongs to."""
    SERVICE = "service"         # Server side
    CONTROLLER = "controller"   # Client side


class CapabilityKind(str, Enum):
    """Every kind of capability a declaration can carry (value = raw key)."""
    METHOD = "methods"
    SIGNAL = "signals"
    UNRELIABLE_SIGNAL = "unreliable_signals"
    INBOUND_SIGNAL = "inbound_signals"
    EVENT = "events"
    FUNCTION = "functions"

    @property
    def has_handlers(self) -> bool:
        """Handler tables (name -> callable) rather than name sets."""
        return self in (CapabilityKind.METHOD, CapabilityKind.FUNCTION)

    @property
    def remote(self) -> bool:
        """Backed by a transport channel; only Services may declare these."""
        return self in _REMOTE_KINDS


_REMOTE_KINDS = frozenset({
    CapabilityKind.METHOD,
    CapabilityKind.SIGNAL,
    CapabilityKind.UNRELIABLE_SIGNAL,
    CapabilityKind.INBOUND_SIGNAL,
})

HOOK_KEYS = ("init", "start")
KNOWN_KEYS = frozenset({"name", *HOOK_KEYS, *(kind.value for kind in CapabilityKind)})

@dataclass(frozen=True)
class ComponentDeclaration:
    """Validated, immutable description of one component."""
    name: str
    role: Role
    methods: Mapping[str, Callable[..., Any]] = field(default_factory=lambda: MappingProxyType({}))
    signals: frozenset[str] = frozenset()
    unreliable_signals: frozenset[str] = frozenset()
    inbound_signals: frozenset[str] = frozenset()
    events: frozenset[str] = frozenset()
    functions: Mapping[str, Callable[..., Any]] = field(default_factory=lambda: MappingProxyType({}))
    init: Callable[..., Any] | None = None
    start: Callable[..., Any] | None = None

    def names(self, kind: CapabilityKind) -> frozenset[str]:
        """Names declared for ``kind``, whatever its shape."""
        value = getattr(self, kind.value)
        return frozenset(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.value,
            **{kind.value: sorted(self.names(kind)) for kind in CapabilityKind},
            "init": self.init is not None,
            "start": self.start is not None,
        }


def _parse_names(name: str, kind: CapabilityKind, value: Any) -> frozenset[str]:
    if isinstance(value, (str, bytes)) or isinstance(value, Mapping) or not isinstance(value, Iterable):
        raise InvalidCapabilityType(name, kind.value, "expected a collection of names")
    names = list(value)
    for item in names:
        if not isinstance(item, str) or not item:
            raise InvalidCapabilityType(name, kind.value, f"invalid name: {item!r}")
    return frozenset(names)


def _parse_handlers(name: str, kind: CapabilityKind, value: Any) -> Mapping[str, Callable[..., Any]]:
    if not isinstance(value, Mapping):
        raise InvalidCapabilityType(name, kind.value, "expected a mapping of name to handler")
    handlers: dict[str, Callable[..., Any]] = {}
    for key, handler in value.items():
        if not isinstance(key, str) or not key:
            raise InvalidCapabilityType(name, kind.value, f"invalid name: {key!r}")
        if not callable(handler):
            raise InvalidCapabilityType(name, kind.value, f"handler for {key!r} is not callable")
        handlers[key] = handler
    return MappingProxyType(handlers)


def parse_declaration(raw: Mapping[str, Any], role: Role) -> ComponentDeclaration:
    """
    Parse a raw declaration for ``role``.

    Raises:
        MissingName: no (or an empty) ``name``
        InvalidCapabilityType: a field has the wrong shape, is unknown, or
            is Service-only and declared on a Controller
    """
    if not isinstance(raw, Mapping):
        raise InvalidCapabilityType("<unnamed>", "<declaration>", "declaration must be a mapping")

    name = raw.get("name")
    if name is None or name == "":
        raise MissingName()
    if not isinstance(name, str):
        raise InvalidCapabilityType(repr(name), "name", "name must be a string")

    for key in raw:
        if key not in KNOWN_KEYS:
            raise InvalidCapabilityType(name, str(key), "unknown field")

    parsed: dict[str, Any] = {}
    for kind in CapabilityKind:
        value = raw.get(kind.value)
        if value is None:
            continue
        if kind.remote and role is Role.CONTROLLER:
            raise InvalidCapabilityType(name, kind.value, "only Services may declare this field")
        if kind.has_handlers:
            parsed[kind.value] = _parse_handlers(name, kind, value)
        else:
            parsed[kind.value] = _parse_names(name, kind, value)

    for hook in HOOK_KEYS:
        value = raw.get(hook)
        if value is not None and not callable(value):
            raise InvalidCapabilityType(name, hook, "hook is not callable")
        parsed[hook] = value

    return ComponentDeclaration(name=name, role=role, **parsed)
