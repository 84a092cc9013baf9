from __future__ import annotations

import threading
import traceback
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, Optional, Sequence, Union

from spanline._base._attributes import BoundedAttributes, bounded_copy
from spanline.logging import get_logger
from spanline.models.config import SpanLimits
from spanline.models.tracing import (
    Event,
    InstrumentationInfo,
    Link,
    Resource,
    SpanContext,
    SpanData,
    SpanKind,
    Status,
    StatusCode,
)

if TYPE_CHECKING:
    from spanline.processors._processor import SpanProcessor

logger = get_logger(__name__)


class Span:
    """
    A started unit of work that records timing, attributes, events and status.

    Spans are created by a Tracer. Every mutating method is thread-safe and becomes a
    silent no-op once the span has ended. Ending the span freezes an immutable
    SpanData snapshot and hands it to the owning provider's processors.

    The span can be used as a context manager; an exception escaping the block is
    recorded, the status is set to ERROR, and the span is ended.
    """

    def __init__(
        self,
        name: str,
        context: SpanContext,
        *,
        processor: "SpanProcessor",
        clock: Callable[[], int],
        kind: SpanKind = SpanKind.INTERNAL,
        limits: Optional[SpanLimits] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        links: Optional[Sequence[Link]] = None,
        start_time: Optional[int] = None,
        instrumentation: Optional[InstrumentationInfo] = None,
        resource: Optional[Resource] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._name = name
        self._context = context
        self._kind = kind
        self._processor = processor
        self._clock = clock
        self._limits = limits or SpanLimits()
        self._instrumentation = instrumentation
        self._resource = resource

        self._attributes = BoundedAttributes(self._limits.max_attributes, attributes)
        self._events: List[Event] = []
        self._dropped_events = 0
        self._links, self._dropped_links = self._bound_links(links or ())
        self._status = Status()

        self._start_ns = start_time if start_time is not None else clock()
        self._end_ns: Optional[int] = None

    def _bound_links(self, links: Sequence[Link]):
        kept: List[Link] = []
        for link in links[: self._limits.max_links]:
            attrs, dropped = bounded_copy(link.attributes, self._limits.max_attributes_per_link)
            kept.append(
                Link(
                    context=link.context,
                    attributes=attrs,
                    dropped_attributes=link.dropped_attributes + dropped,
                )
            )
        return tuple(kept), max(len(links) - self._limits.max_links, 0)

    # ---------- read-only views ----------

    @property
    def context(self) -> SpanContext:
        return self._context

    @property
    def name(self) -> str:
        with self._lock:
            return self._name

    @property
    def kind(self) -> SpanKind:
        return self._kind

    @property
    def start_ns(self) -> int:
        return self._start_ns

    @property
    def end_ns(self) -> Optional[int]:
        with self._lock:
            return self._end_ns

    @property
    def status(self) -> Status:
        with self._lock:
            return self._status

    @property
    def attributes(self) -> dict:
        """A copy of the attributes recorded so far."""
        with self._lock:
            return self._attributes.snapshot()

    @property
    def is_ended(self) -> bool:
        with self._lock:
            return self._end_ns is not None

    def is_recording(self) -> bool:
        """
        Whether the span still accepts mutations.

        Returns:
            bool: True until the span ends
        """
        return not self.is_ended

    # ---------- mutation ----------

    def set_attribute(self, key: str, value: Any) -> None:
        """
        Set one attribute; the last write per key wins.

        Args:
            key (str): Attribute key
            value (Any): str, bool, int, float or a homogeneous sequence of one of them
        """
        with self._lock:
            if self._end_ns is not None:
                return
            self._attributes.set(key, value)

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        with self._lock:
            if self._end_ns is not None:
                return
            self._attributes.update(attributes)

    def add_event(
        self,
        name: str,
        attributes: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[int] = None,
    ) -> None:
        """
        Record a point-in-time event.

        Args:
            name (str): Name of the event
            attributes (Optional[Mapping[str, Any]]): Event attributes. Defaults to None.
            timestamp (Optional[int]): Epoch nanoseconds, defaults to now
        """
        attrs, dropped = bounded_copy(attributes, self._limits.max_attributes_per_event)
        with self._lock:
            if self._end_ns is not None:
                return
            if len(self._events) >= self._limits.max_events:
                self._dropped_events += 1
                return
            self._events.append(
                Event(
                    name=name,
                    timestamp_ns=timestamp if timestamp is not None else self._clock(),
                    attributes=attrs,
                    dropped_attributes=dropped,
                )
            )

    def set_status(
        self, status: Union[Status, StatusCode], description: Optional[str] = None
    ) -> None:
        """
        Set the span status; the last call wins.

        Args:
            status (Union[Status, StatusCode]): A Status, or a bare StatusCode
            description (Optional[str]): Only kept for ERROR. Defaults to None.
        """
        if isinstance(status, StatusCode):
            status = Status(status_code=status, description=description)
        elif not isinstance(status, Status):
            logger.debug("Ignoring invalid status %r", status)
            return
        with self._lock:
            if self._end_ns is not None:
                return
            self._status = status

    def update_name(self, name: str) -> None:
        with self._lock:
            if self._end_ns is not None:
                return
            self._name = name

    def record_exception(
        self,
        exception: BaseException,
        attributes: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[int] = None,
    ) -> None:
        """
        Record an exception as an ``exception`` event. The status is left unchanged.

        Args:
            exception (BaseException): The exception to record
            attributes (Optional[Mapping[str, Any]]): Extra event attributes. Defaults to None.
            timestamp (Optional[int]): Epoch nanoseconds, defaults to now
        """
        event_attributes = {
            "exception.type": type(exception).__name__,
            "exception.message": str(exception),
            "exception.stacktrace": "".join(
                traceback.format_exception(type(exception), exception, exception.__traceback__)
            ),
        }
        if isinstance(attributes, Mapping):
            event_attributes.update(attributes)
        self.add_event("exception", event_attributes, timestamp)

    def end(self, end_time: Optional[int] = None) -> None:
        """
        End the span and hand its snapshot to the processors. Only the first call has
        any effect.

        Args:
            end_time (Optional[int]): Epoch nanoseconds, defaults to now
        """
        with self._lock:
            if self._end_ns is not None:
                return
            self._end_ns = end_time if end_time is not None else self._clock()
            data = self._snapshot()
        self._processor.on_end(data)

    def _snapshot(self) -> SpanData:
        return SpanData(
            name=self._name,
            kind=self._kind,
            context=self._context,
            start_ns=self._start_ns,
            end_ns=self._end_ns,
            status=self._status,
            attributes=self._attributes.snapshot(),
            events=tuple(self._events),
            links=self._links,
            instrumentation=self._instrumentation,
            resource=self._resource,
            dropped_attributes=self._attributes.dropped,
            dropped_events=self._dropped_events,
            dropped_links=self._dropped_links,
        )

    # ---------- context manager ----------

    def __enter__(self) -> "Span":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.record_exception(exc)
            self.set_status(StatusCode.ERROR, f"{exc_type.__name__}: {exc}")
        self.end()

    def __repr__(self) -> str:
        return (
            f"<Span name={self._name!r} trace_id={self._context.trace_id} "
            f"span_id={self._context.span_id}>"
        )
