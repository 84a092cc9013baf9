from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

INVALID_TRACE_ID = "0" * 32
INVALID_SPAN_ID = "0" * 16

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(attributes: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not attributes:
        return _EMPTY
    return MappingProxyType(dict(attributes))


class SpanKind(str, Enum):
    """
    Enumeration of span kinds.

    Describes the relationship between the span, its parents, and its children
    in a trace.
    """

    INTERNAL = "internal"
    SERVER = "server"
    CLIENT = "client"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class StatusCode(str, Enum):
    """
    Enumeration of span status codes.
    """

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


@dataclass(frozen=True)
class Status:
    """
    Status of a span. A description is only kept for ERROR statuses.
    """

    status_code: StatusCode = StatusCode.UNSET
    description: Optional[str] = None

    def __post_init__(self):
        if self.status_code is not StatusCode.ERROR and self.description is not None:
            object.__setattr__(self, "description", None)

    @property
    def is_ok(self) -> bool:
        return self.status_code is StatusCode.OK

    @property
    def is_unset(self) -> bool:
        return self.status_code is StatusCode.UNSET


@dataclass(frozen=True)
class SpanContext:
    """
    Immutable identity of a span.

    Links a span to its trace and parent span for building execution hierarchies.
    """

    trace_id: str
    span_id: str
    parent_span_id: Optional[str] = None
    is_remote: bool = False

    @property
    def is_valid(self) -> bool:
        """
        Whether both identifiers are set to non-zero values.

        Returns:
            bool: True if the context identifies a real span
        """
        return self.trace_id != INVALID_TRACE_ID and self.span_id != INVALID_SPAN_ID

    @classmethod
    def invalid(cls) -> "SpanContext":
        return cls(trace_id=INVALID_TRACE_ID, span_id=INVALID_SPAN_ID)


@dataclass(frozen=True)
class Event:
    """A point-in-time annotation recorded on a span."""

    name: str
    timestamp_ns: int
    attributes: Mapping[str, Any] = field(default_factory=dict)
    dropped_attributes: int = 0

    def __post_init__(self):
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "timestamp_ns": self.timestamp_ns,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class Link:
    """A reference from one span to another, fixed when the span starts."""

    context: SpanContext
    attributes: Mapping[str, Any] = field(default_factory=dict)
    dropped_attributes: int = 0

    def __post_init__(self):
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "trace_id": self.context.trace_id,
            "span_id": self.context.span_id,
            "attributes": dict(self.attributes),
        }


@dataclass(frozen=True)
class InstrumentationInfo:
    """Name and version of the tracer that produced a span."""

    name: str
    version: Optional[str] = None


@dataclass(frozen=True)
class Resource:
    """
    Attributes describing the entity producing telemetry (service, host, ...).
    """

    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    @classmethod
    def create(
        cls, attributes: Optional[Mapping[str, Any]] = None, *, service_name: Optional[str] = None
    ) -> "Resource":
        """
        Build a resource on top of the SDK defaults.

        Args:
            attributes (Optional[Mapping[str, Any]]): Extra resource attributes. Defaults to None.
            service_name (Optional[str]): Shortcut for the ``service.name`` attribute.

        Returns:
            Resource: The merged resource
        """
        from spanline import __version__

        merged: dict[str, Any] = {
            "service.name": "unknown_service",
            "telemetry.sdk.name": "spanline",
            "telemetry.sdk.language": "python",
            "telemetry.sdk.version": __version__,
        }
        merged.update(attributes or {})
        if service_name is not None:
            merged["service.name"] = service_name
        return cls(attributes=merged)

    def merge(self, other: "Resource") -> "Resource":
        """Returns a new resource where ``other`` wins on conflicting keys."""
        merged = dict(self.attributes)
        merged.update(other.attributes)
        return Resource(attributes=merged)


@dataclass(frozen=True)
class SpanData:
    """
    Immutable snapshot of a span, taken atomically when the span ends.

    This is the only view of a span that processors and exporters receive.
    """

    name: str
    kind: SpanKind
    context: SpanContext
    start_ns: int
    end_ns: int
    status: Status = field(default_factory=Status)
    attributes: Mapping[str, Any] = field(default_factory=dict)
    events: Tuple[Event, ...] = ()
    links: Tuple[Link, ...] = ()
    instrumentation: Optional[InstrumentationInfo] = None
    resource: Optional[Resource] = None
    dropped_attributes: int = 0
    dropped_events: int = 0
    dropped_links: int = 0

    def __post_init__(self):
        object.__setattr__(self, "attributes", _freeze(self.attributes))
        object.__setattr__(self, "events", tuple(self.events))
        object.__setattr__(self, "links", tuple(self.links))

    @property
    def trace_id(self) -> str:
        return self.context.trace_id

    @property
    def span_id(self) -> str:
        return self.context.span_id

    @property
    def parent_span_id(self) -> Optional[str]:
        return self.context.parent_span_id

    @property
    def duration_ns(self) -> int:
        return max(self.end_ns - self.start_ns, 0)

    def to_dict(self) -> dict[str, Any]:
        """
        Render the span as a JSON-serializable dictionary.

        Returns:
            dict[str, Any]: Span fields with enums rendered as their string values
        """
        return {
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "name": self.name,
            "kind": self.kind.value,
            "status": {
                "code": self.status.status_code.value,
                "description": self.status.description,
            },
            "start_ns": self.start_ns,
            "end_ns": self.end_ns,
            "duration_ms": self.duration_ns / 1e6,
            "attributes": dict(self.attributes),
            "events": [e.to_dict() for e in self.events],
            "links": [link.to_dict() for link in self.links],
            "instrumentation": (
                {"name": self.instrumentation.name, "version": self.instrumentation.version}
                if self.instrumentation
                else None
            ),
            "resource": dict(self.resource.attributes) if self.resource else {},
            "dropped": {
                "attributes": self.dropped_attributes,
                "events": self.dropped_events,
                "links": self.dropped_links,
            },
        }
