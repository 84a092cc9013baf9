"""
Span exporters.

Exporters receive batches of finished spans (SpanData) from a processor and
deliver them somewhere, reporting the outcome through a CompletableResult.
"""

from spanline.exporters._exporter import SpanExporter, MultiSpanExporter
from spanline.exporters._memory import NoOpSpanExporter, InMemorySpanExporter
from spanline.exporters._console import ConsoleSpanExporter

__all__ = [
    "SpanExporter",
    "MultiSpanExporter",
    "NoOpSpanExporter",
    "InMemorySpanExporter",
    "ConsoleSpanExporter",
]
