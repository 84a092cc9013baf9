from __future__ import annotations

import threading
from typing import List, Sequence, Tuple

from spanline._base._exceptions import ExporterShutdownError
from spanline._base._result import CompletableResult
from spanline.exporters._exporter import SpanExporter
from spanline.models.tracing import SpanData


class NoOpSpanExporter(SpanExporter):
    """
    Exporter that discards every span and reports success.

    Useful for measuring pipeline overhead without any delivery cost.
    """

    concurrent_safe = True

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._is_shutdown = False

    def export(self, spans: Sequence[SpanData]) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "export"))
        return CompletableResult.success()

    def flush(self) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "flush"))
        return CompletableResult.success()

    def shutdown(self) -> CompletableResult:
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.failure(
                    ExporterShutdownError(type(self).__name__, "shutdown")
                )
            self._is_shutdown = True
        return CompletableResult.success()


class InMemorySpanExporter(SpanExporter):
    """
    Exporter that keeps every exported span in memory.

    - Spans are stored in the order they were exported
    - Each export call is also kept as a batch, so batching behaviour can be inspected
    - ``clear()`` empties storage; the exporter keeps working
    """

    concurrent_safe = True

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._finished: List[SpanData] = []
        self._batches: List[Tuple[SpanData, ...]] = []
        self._flush_count = 0
        self._is_shutdown = False

    def export(self, spans: Sequence[SpanData]) -> CompletableResult:
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.failure(
                    ExporterShutdownError(type(self).__name__, "export")
                )
            batch = tuple(spans)
            self._batches.append(batch)
            self._finished.extend(batch)
        return CompletableResult.success()

    def flush(self) -> CompletableResult:
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "flush"))
            self._flush_count += 1
        return CompletableResult.success()

    def shutdown(self) -> CompletableResult:
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.failure(
                    ExporterShutdownError(type(self).__name__, "shutdown")
                )
            self._is_shutdown = True
        return CompletableResult.success()

    # ---------- inspection ----------

    def get_finished_spans(self) -> List[SpanData]:
        """
        Get all spans exported so far.

        Returns:
            List[SpanData]: Exported spans in export order
        """
        with self._lock:
            return list(self._finished)

    @property
    def batches(self) -> List[Tuple[SpanData, ...]]:
        """One tuple per export call."""
        with self._lock:
            return list(self._batches)

    @property
    def flush_count(self) -> int:
        with self._lock:
            return self._flush_count

    @property
    def is_shutdown(self) -> bool:
        with self._lock:
            return self._is_shutdown

    def clear(self) -> None:
        """
        Clear stored spans and batches.
        """
        with self._lock:
            self._finished.clear()
            self._batches.clear()
