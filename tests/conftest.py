import logging

import pytest

from spanline import (
    InMemorySpanExporter,
    SimpleSpanProcessor,
    SpanContext,
    SpanData,
    SpanKind,
    TracerProvider,
)


@pytest.fixture(autouse=True)
def propagate_spanline_logs(monkeypatch):
    """Lets caplog see records from the spanline logger, which does not propagate by default"""
    monkeypatch.setattr(logging.getLogger("spanline"), "propagate", True)


def make_span_data(name="span", span_id="0000000000000001", trace_id="1" * 32, **kwargs):
    """Builds a SpanData without going through a tracer."""
    return SpanData(
        name=name,
        kind=kwargs.pop("kind", SpanKind.INTERNAL),
        context=SpanContext(trace_id=trace_id, span_id=span_id),
        start_ns=kwargs.pop("start_ns", 1_000_000_000),
        end_ns=kwargs.pop("end_ns", 2_000_000_000),
        **kwargs,
    )


@pytest.fixture
def span_data_factory():
    """Returns a factory producing SpanData with sequential span ids"""
    counter = {"n": 0}

    def factory(name=None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        kwargs.setdefault("span_id", f"{n:016x}")
        return make_span_data(name=name or f"span-{n}", **kwargs)

    return factory


@pytest.fixture
def exporter():
    """Creates an in-memory exporter for inspecting exported spans"""
    return InMemorySpanExporter()


@pytest.fixture
def provider(exporter):
    """Creates a provider exporting synchronously to the in-memory exporter"""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    yield provider
    provider.shutdown(timeout=5)


@pytest.fixture
def tracer(provider):
    """Creates a tracer bound to the test provider"""
    return provider.get_tracer("tests.tracer", "1.0")
