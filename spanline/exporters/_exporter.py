from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Sequence

from spanline._base._exceptions import ExporterShutdownError, ExportFailedError
from spanline._base._result import CompletableResult
from spanline.logging import get_logger
from spanline.models.tracing import SpanData

logger = get_logger(__name__)


class SpanExporter(ABC):
    """
    Exporter interface for spanline.

    An exporter sends batches of finished spans somewhere. Implementations must
    report ordinary failures through the returned CompletableResult instead of
    raising. Once ``shutdown`` has been called, every method must return an
    already-failed result without doing any I/O.

    Set ``concurrent_safe = True`` on implementations that accept concurrent
    ``export`` calls; processors serialize calls to every other exporter.
    """

    concurrent_safe: bool = False

    @abstractmethod
    def export(self, spans: Sequence[SpanData]) -> CompletableResult:
        """
        Export a batch of spans.

        Args:
            spans (Sequence[SpanData]): Finished spans, in end order

        Returns:
            CompletableResult: Settles once the batch has been delivered or has failed
        """
        ...

    def flush(self) -> CompletableResult:
        """
        Deliver anything the exporter itself buffers.

        Returns:
            CompletableResult: Settles once buffered data is delivered
        """
        return CompletableResult.success()

    @abstractmethod
    def shutdown(self) -> CompletableResult:
        """
        Release the exporter's resources. Later calls return a failed result.

        Returns:
            CompletableResult: Settles once the exporter is shut down
        """
        ...


class MultiSpanExporter(SpanExporter):
    """
    Delivers every batch to several exporters and combines their results.

    The combined exporter is only as concurrent-safe as its least safe member.
    """

    def __init__(self, exporters: Sequence[SpanExporter]) -> None:
        self._exporters = tuple(exporters)
        self._is_shutdown = False
        self._lock = threading.Lock()
        self.concurrent_safe = all(e.concurrent_safe for e in self._exporters)

    @property
    def exporters(self) -> tuple:
        return self._exporters

    def _fan_out(self, operation: str, *args) -> CompletableResult:
        results = []
        for exporter in self._exporters:
            try:
                results.append(getattr(exporter, operation)(*args))
            except Exception as e:
                logger.exception("%s.%s() raised", type(exporter).__name__, operation)
                error = ExportFailedError(type(exporter).__name__, repr(e))
                results.append(CompletableResult.failure(error))
        return CompletableResult.of_all(results)

    def export(self, spans: Sequence[SpanData]) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "export"))
        return self._fan_out("export", spans)

    def flush(self) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "flush"))
        return self._fan_out("flush")

    def shutdown(self) -> CompletableResult:
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.failure(
                    ExporterShutdownError(type(self).__name__, "shutdown")
                )
            self._is_shutdown = True
        return self._fan_out("shutdown")
