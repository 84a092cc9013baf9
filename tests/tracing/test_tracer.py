import asyncio
from unittest.mock import Mock

import pytest

from spanline import (
    CompletableResult,
    SimpleSpanProcessor,
    SpanContext,
    SpanKind,
    SpanProcessor,
    StatusCode,
    TracerProvider,
    get_current_span,
    traced,
)


class TestStartSpan:
    """Test suite for Tracer.start_span."""

    def test_root_span_starts_new_trace(self, tracer):
        first = tracer.start_span("first")
        second = tracer.start_span("second")

        assert first.context.parent_span_id is None
        assert first.context.trace_id != second.context.trace_id

    def test_explicit_parent_span(self, tracer):
        parent = tracer.start_span("parent")
        child = tracer.start_span("child", parent=parent)

        assert child.context.trace_id == parent.context.trace_id
        assert child.context.parent_span_id == parent.context.span_id
        assert child.context.span_id != parent.context.span_id

    def test_explicit_parent_context(self, tracer):
        remote = SpanContext(trace_id="a" * 32, span_id="b" * 16, is_remote=True)
        child = tracer.start_span("child", SpanKind.SERVER, parent=remote)

        assert child.context.trace_id == "a" * 32
        assert child.context.parent_span_id == "b" * 16

    def test_invalid_parent_context_starts_new_trace(self, tracer):
        child = tracer.start_span("child", parent=SpanContext.invalid())

        assert child.context.parent_span_id is None
        assert child.context.is_valid

    def test_current_span_is_default_parent(self, tracer):
        with tracer.start_as_current_span("outer") as outer:
            inner = tracer.start_span("inner")
            detached = tracer.start_span("detached", root=True)

        assert inner.context.parent_span_id == outer.context.span_id
        assert detached.context.parent_span_id is None
        assert detached.context.trace_id != outer.context.trace_id

    def test_processors_see_start(self, provider, tracer):
        processor = Mock(spec=SpanProcessor)
        processor.shutdown.return_value = CompletableResult.success()
        provider.add_span_processor(processor)

        span = tracer.start_span("watched")

        processor.on_start.assert_called_once_with(span)
        processor.on_end.assert_not_called()

    def test_start_time_and_clock(self, exporter):
        ticks = iter([500, 900])
        provider = TracerProvider(clock=lambda: next(ticks))
        provider.add_span_processor(SimpleSpanProcessor(exporter))
        span = provider.get_tracer("clocked").start_span("work")
        span.end()

        (data,) = exporter.get_finished_spans()
        assert data.start_ns == 500
        assert data.end_ns == 900


class TestCurrentSpan:
    """Test suite for context-managed spans."""

    def test_current_span_initially_none(self, tracer):
        assert tracer.current_span is None
        assert get_current_span() is None

    def test_nesting_restores_current(self, tracer, exporter):
        with tracer.start_as_current_span("outer") as outer:
            assert tracer.current_span is outer
            with tracer.start_as_current_span("inner") as inner:
                assert get_current_span() is inner
            assert tracer.current_span is outer
        assert tracer.current_span is None

        assert [s.name for s in exporter.get_finished_spans()] == ["inner", "outer"]

    def test_exception_recorded_and_reraised(self, tracer, exporter):
        with pytest.raises(ValueError, match="Test error"):
            with tracer.start_as_current_span("failing"):
                raise ValueError("Test error")

        (data,) = exporter.get_finished_spans()
        assert data.status.status_code == StatusCode.ERROR
        assert data.status.description == "ValueError: Test error"
        assert data.events[0].attributes["exception.type"] == "ValueError"
        assert tracer.current_span is None

    def test_end_on_exit_false(self, tracer, exporter):
        with tracer.start_as_current_span("kept", end_on_exit=False) as span:
            pass

        assert not span.is_ended
        assert exporter.get_finished_spans() == []
        span.end()
        assert len(exporter.get_finished_spans()) == 1

    @pytest.mark.asyncio
    async def test_async_span(self, tracer, exporter):
        async with tracer.span("async_parent", attributes={"key": "value"}) as parent:
            async with tracer.span("async_child") as child:
                await asyncio.sleep(0)
                assert tracer.current_span is child

        assert child.context.parent_span_id == parent.context.span_id
        assert [s.name for s in exporter.get_finished_spans()] == ["async_child", "async_parent"]

    @pytest.mark.asyncio
    async def test_concurrent_tasks_have_separate_current_spans(self, tracer):
        async def task(name):
            async with tracer.span(name) as span:
                await asyncio.sleep(0.01)
                return tracer.current_span is span, span.context.parent_span_id

        with tracer.start_as_current_span("root") as root:
            results = await asyncio.gather(task("a"), task("b"))

        assert results == [(True, root.context.span_id), (True, root.context.span_id)]


class TestTracedDecorator:
    """Test suite for the traced decorator."""

    def test_traced_sync_function(self, tracer, exporter):
        @traced(tracer, attributes={"component": "math"})
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        (data,) = exporter.get_finished_spans()
        assert data.name.endswith("add")
        assert data.attributes["component"] == "math"

    def test_traced_custom_name_and_kind(self, tracer, exporter):
        @traced(tracer, name="custom_span", kind=SpanKind.CLIENT)
        def call():
            return "ok"

        call()

        (data,) = exporter.get_finished_spans()
        assert data.name == "custom_span"
        assert data.kind == SpanKind.CLIENT

    def test_traced_records_exception(self, tracer, exporter):
        @traced(tracer)
        def explode():
            raise RuntimeError("Function error")

        with pytest.raises(RuntimeError):
            explode()

        assert exporter.get_finished_spans()[0].status.status_code == StatusCode.ERROR

    def test_traced_preserves_metadata(self, tracer):
        @traced(tracer)
        def documented():
            """Test function docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Test function docstring."

    @pytest.mark.asyncio
    async def test_traced_async_function(self, tracer, exporter):
        @traced(tracer, name="fetch")
        async def fetch(value):
            await asyncio.sleep(0)
            return tracer.current_span.name, value

        assert await fetch(7) == ("fetch", 7)
        assert exporter.get_finished_spans()[0].name == "fetch"
