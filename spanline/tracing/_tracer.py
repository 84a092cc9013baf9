from __future__ import annotations

import contextvars
import inspect
from contextlib import asynccontextmanager, contextmanager
from functools import wraps
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncIterator,
    Callable,
    Iterator,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from spanline._base._span import Span
from spanline.models.tracing import InstrumentationInfo, Link, SpanContext, SpanKind, StatusCode

if TYPE_CHECKING:
    from spanline.tracing._provider import TracerProvider


_current_span: contextvars.ContextVar[Optional[Span]] = contextvars.ContextVar(
    "spanline_current_span", default=None
)


def get_current_span() -> Optional[Span]:
    """
    Returns the span made current by ``start_as_current_span`` / ``span`` in this context.

    Returns:
        Optional[Span]: The current span, or None if no span is active
    """
    return _current_span.get()


class Tracer:
    """
    Creates spans and routes their start and end to the provider's processors.

    Tracers are obtained from ``TracerProvider.get_tracer``; a tracer holds no state
    beyond its name and version.
    """

    def __init__(self, provider: "TracerProvider", name: str, version: Optional[str] = None):
        self._provider = provider
        self._instrumentation = InstrumentationInfo(name=name, version=version)

    @property
    def name(self) -> str:
        return self._instrumentation.name

    @property
    def version(self) -> Optional[str]:
        return self._instrumentation.version

    @property
    def current_span(self) -> Optional[Span]:
        """
        Returns the currently active span from context.

        Returns:
            Optional[Span]: The current span, or None if no span is active
        """
        return _current_span.get()

    # ---------- low-level lifecycle ----------

    def start_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        parent: Optional[Union[Span, SpanContext]] = None,
        attributes: Optional[Mapping[str, Any]] = None,
        links: Optional[Sequence[Link]] = None,
        start_time: Optional[int] = None,
        root: bool = False,
    ) -> Span:
        """
        Start a new span. The caller must end it.

        Args:
            name (str): Name of the span
            kind (SpanKind): Kind of span. Defaults to SpanKind.INTERNAL.
            parent (Optional[Union[Span, SpanContext]]): Parent span or context.
                Defaults to the current span.
            attributes (Optional[Mapping[str, Any]]): Initial span attributes. Defaults to None.
            links (Optional[Sequence[Link]]): Links to other spans, fixed at start.
            start_time (Optional[int]): Epoch nanoseconds, defaults to now
            root (bool): Start a new trace, ignoring the current span. Defaults to False.

        Returns:
            Span: The newly started span
        """
        provider = self._provider
        if parent is None and not root:
            parent = _current_span.get()
        parent_context = parent.context if isinstance(parent, Span) else parent

        if parent_context is not None and parent_context.is_valid:
            trace_id = parent_context.trace_id
            parent_span_id = parent_context.span_id
        else:
            trace_id = provider.id_generator.new_trace_id()
            parent_span_id = None

        context = SpanContext(
            trace_id=trace_id,
            span_id=provider.id_generator.new_span_id(),
            parent_span_id=parent_span_id,
        )
        span = Span(
            name,
            context,
            processor=provider.active_processor,
            clock=provider.clock,
            kind=kind,
            limits=provider.span_limits,
            attributes=attributes,
            links=links,
            start_time=start_time,
            instrumentation=self._instrumentation,
            resource=provider.resource,
        )
        provider.active_processor.on_start(span)
        return span

    # ---------- ergonomics: contexts ----------

    @contextmanager
    def start_as_current_span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        *,
        attributes: Optional[Mapping[str, Any]] = None,
        links: Optional[Sequence[Link]] = None,
        parent: Optional[Union[Span, SpanContext]] = None,
        end_on_exit: bool = True,
    ) -> Iterator[Span]:
        """
        Start a span, make it current for the block, and end it on exit.

        An exception escaping the block is recorded on the span and sets its status
        to ERROR before being re-raised.
        """
        span = self.start_span(name, kind, parent=parent, attributes=attributes, links=links)
        token = _current_span.set(span)
        try:
            yield span
        except BaseException as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR, f"{type(e).__name__}: {e}")
            raise
        finally:
            _current_span.reset(token)
            if end_on_exit:
                span.end()

    @asynccontextmanager
    async def span(
        self,
        name: str,
        kind: SpanKind = SpanKind.INTERNAL,
        *,
        attributes: Optional[Mapping[str, Any]] = None,
        links: Optional[Sequence[Link]] = None,
        parent: Optional[Union[Span, SpanContext]] = None,
    ) -> AsyncIterator[Span]:
        """
        Async counterpart of ``start_as_current_span``; the current span follows the task.
        """
        span = self.start_span(name, kind, parent=parent, attributes=attributes, links=links)
        token = _current_span.set(span)
        try:
            yield span
        except BaseException as e:
            span.record_exception(e)
            span.set_status(StatusCode.ERROR, f"{type(e).__name__}: {e}")
            raise
        finally:
            _current_span.reset(token)
            span.end()


def traced(
    tracer: Tracer,
    name: Optional[str] = None,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Optional[Mapping[str, Any]] = None,
):
    """
    Decorator to run a function inside a span made current for the call.

    Works for plain and ``async`` functions.

    Args:
        tracer (Tracer): Tracer that creates the span
        name (Optional[str]): Custom span name. Defaults to the function's qualified name.
        kind (SpanKind): Kind of span. Defaults to SpanKind.INTERNAL.
        attributes (Optional[Mapping[str, Any]]): Initial span attributes. Defaults to None.

    Returns:
        Callable: Decorated function that runs within a span context
    """

    def outer(fn: Callable):
        span_name = name or fn.__qualname__

        if inspect.iscoroutinefunction(fn):

            @wraps(fn)
            async def async_wrapper(*args, **kwargs):
                async with tracer.span(span_name, kind, attributes=attributes):
                    return await fn(*args, **kwargs)

            return async_wrapper

        @wraps(fn)
        def wrapper(*args, **kwargs):
            with tracer.start_as_current_span(span_name, kind, attributes=attributes):
                return fn(*args, **kwargs)

        return wrapper

    return outer
