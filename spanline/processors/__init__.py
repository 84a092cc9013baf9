"""
Span processors.

Processors sit between the Tracer and an exporter: they observe span start and
end and decide when ended spans are handed to the exporter.

- SimpleSpanProcessor: exports each span immediately on the ending thread
- BatchSpanProcessor: queues spans and exports batches from a worker thread
"""

from spanline.processors._processor import SpanProcessor, CompositeSpanProcessor
from spanline.processors._simple import SimpleSpanProcessor
from spanline.processors._batch import BatchSpanProcessor

__all__ = [
    "SpanProcessor",
    "CompositeSpanProcessor",
    "SimpleSpanProcessor",
    "BatchSpanProcessor",
]
