from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

from spanline._base._exceptions import ExportFailedError
from spanline._base._result import CompletableResult
from spanline.logging import get_logger
from spanline.models.tracing import SpanData

if TYPE_CHECKING:
    from spanline._base._span import Span
    from spanline.exporters._exporter import SpanExporter

logger = get_logger(__name__)


def invoke_exporter(exporter: "SpanExporter", operation: str, *args) -> CompletableResult:
    """
    Call an exporter method, turning exceptions and bad return values into failures.

    Args:
        exporter (SpanExporter): The exporter to call
        operation (str): ``export``, ``flush`` or ``shutdown``
        *args: Arguments for the call

    Returns:
        CompletableResult: The exporter's result, or a failed result
    """
    name = type(exporter).__name__
    try:
        result = getattr(exporter, operation)(*args)
    except Exception as e:
        logger.exception("%s.%s() raised", name, operation)
        return CompletableResult.failure(ExportFailedError(name, repr(e)))
    if not isinstance(result, CompletableResult):
        logger.error("%s.%s() returned %r instead of a CompletableResult", name, operation, result)
        return CompletableResult.failure(
            ExportFailedError(name, f"{operation}() returned {type(result).__name__}")
        )
    return result


class SpanProcessor(ABC):
    """
    Processor interface for spanline.

    A processor observes span start and end, and decides when and how finished spans
    reach its exporter. ``on_start`` and ``on_end`` are called on the application
    thread and must never raise or block on the exporter.
    """

    exporter: Optional["SpanExporter"] = None

    def on_start(self, span: "Span") -> None:
        """
        Called when a span starts, with the live span.

        Args:
            span (Span): The started span
        """

    @abstractmethod
    def on_end(self, span: SpanData) -> None:
        """
        Called once per ended span with its immutable snapshot.

        Args:
            span (SpanData): Snapshot of the ended span
        """
        ...

    @abstractmethod
    def flush(self, timeout: Optional[float] = None) -> CompletableResult:
        """
        Export everything pending and wait for it.

        Args:
            timeout (Optional[float]): Seconds to wait, None for the processor default

        Returns:
            CompletableResult: Settled result; failed if the timeout elapsed
        """
        ...

    @abstractmethod
    def shutdown(self, timeout: Optional[float] = None) -> CompletableResult:
        """
        Flush, shut the exporter down, and stop accepting spans. Idempotent.

        Args:
            timeout (Optional[float]): Seconds to wait, None for the processor default

        Returns:
            CompletableResult: Settled result; failed if the timeout elapsed
        """
        ...


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


class CompositeSpanProcessor(SpanProcessor):
    """
    Ordered fan-out to the processors registered on a TracerProvider.

    Processors are kept in an immutable tuple that is replaced on registration, so
    span start/end reads the current list without taking a lock. An exception from
    one processor is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._processors: Tuple[SpanProcessor, ...] = ()
        self._lock = threading.Lock()

    @property
    def processors(self) -> Tuple[SpanProcessor, ...]:
        return self._processors

    def add(self, processor: SpanProcessor) -> None:
        with self._lock:
            self._processors = self._processors + (processor,)

    def on_start(self, span: "Span") -> None:
        for processor in self._processors:
            try:
                processor.on_start(span)
            except Exception:
                logger.exception("%s.on_start() raised", type(processor).__name__)

    def on_end(self, span: SpanData) -> None:
        for processor in self._processors:
            try:
                processor.on_end(span)
            except Exception:
                logger.exception("%s.on_end() raised", type(processor).__name__)

    def _each(self, operation: str, timeout: Optional[float]) -> CompletableResult:
        deadline = None if timeout is None else time.monotonic() + timeout
        results = []
        for processor in self._processors:
            try:
                results.append(getattr(processor, operation)(_remaining(deadline)))
            except Exception as e:
                logger.exception("%s.%s() raised", type(processor).__name__, operation)
                results.append(
                    CompletableResult.failure(ExportFailedError(type(processor).__name__, repr(e)))
                )
        return CompletableResult.of_all(results)

    def flush(self, timeout: Optional[float] = None) -> CompletableResult:
        return self._each("flush", timeout)

    def shutdown(self, timeout: Optional[float] = None) -> CompletableResult:
        return self._each("shutdown", timeout)


def find_shared_exporter(
    processors: Sequence[SpanProcessor], candidate: SpanProcessor
) -> Optional["SpanExporter"]:
    """
    Return the candidate's exporter if another processor already owns it and it is not
    safe for concurrent delivery.
    """
    exporter = getattr(candidate, "exporter", None)
    if exporter is None or exporter.concurrent_safe:
        return None
    for processor in processors:
        if processor is not candidate and getattr(processor, "exporter", None) is exporter:
            return exporter
    return None
