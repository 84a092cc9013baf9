"""
spanline: a span-processing pipeline for Python tracing.

spanline captures spans from application code and forwards them to exporters
without blocking the caller, without losing data on shutdown, and without
unbounded memory growth:
  - Spans: thread-safe, mutable until ended, frozen into SpanData snapshots
  - Processors: SimpleSpanProcessor (export inline) and BatchSpanProcessor
    (bounded queue, background worker, drop-on-full)
  - Exporters: pluggable SpanExporter interface with no-op, in-memory and
    console implementations
  - Completion: every export, flush and shutdown returns a CompletableResult

Quick Start:
    ```python
    from spanline import TracerProvider, BatchSpanProcessor, ConsoleSpanExporter

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    tracer = provider.get_tracer("my.module")

    with tracer.start_as_current_span("handle-request") as span:
        span.set_attribute("http.method", "GET")
        span.add_event("Event 0")

    provider.shutdown()  # drains the queue before returning
    ```

Main Components:
    - TracerProvider: Owns processors, issues tracers, flushes and shuts down
    - Tracer: Creates spans bound to a provider
    - SpanProcessor / SimpleSpanProcessor / BatchSpanProcessor
    - SpanExporter / NoOpSpanExporter / InMemorySpanExporter / ConsoleSpanExporter
    - CompletableResult: Settleable result handle for asynchronous completion
"""

__version__ = "0.1.0"

from spanline._base._result import CompletableResult
from spanline._base._span import Span
from spanline._base._ids import IdGenerator
from spanline.models.config import BatchConfig, SpanLimits
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
from spanline.exporters import (
    SpanExporter,
    MultiSpanExporter,
    NoOpSpanExporter,
    InMemorySpanExporter,
    ConsoleSpanExporter,
)
from spanline.processors import SpanProcessor, SimpleSpanProcessor, BatchSpanProcessor
from spanline.tracing import Tracer, TracerProvider, traced, get_current_span

__all__ = [
    "CompletableResult",
    "Span",
    "IdGenerator",
    "BatchConfig",
    "SpanLimits",
    "Event",
    "InstrumentationInfo",
    "Link",
    "Resource",
    "SpanContext",
    "SpanData",
    "SpanKind",
    "Status",
    "StatusCode",
    "SpanExporter",
    "MultiSpanExporter",
    "NoOpSpanExporter",
    "InMemorySpanExporter",
    "ConsoleSpanExporter",
    "SpanProcessor",
    "SimpleSpanProcessor",
    "BatchSpanProcessor",
    "Tracer",
    "TracerProvider",
    "traced",
    "get_current_span",
]
