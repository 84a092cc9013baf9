from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Optional, Set

from spanline._base._exceptions import ExportTimeoutError
from spanline._base._result import CompletableResult
from spanline.logging import get_logger
from spanline.models.tracing import SpanData
from spanline.processors._processor import SpanProcessor, invoke_exporter

if TYPE_CHECKING:
    from spanline.exporters._exporter import SpanExporter

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class SimpleSpanProcessor(SpanProcessor):
    """
    Exports every ended span immediately, as a one-element batch, on the thread that
    ended it.

    Exporter latency is therefore visible to the code ending the span; use
    BatchSpanProcessor when that matters. Calls to an exporter that is not
    ``concurrent_safe`` are serialized.

    Every span handed to ``on_end`` before shutdown completes is counted in exactly
    one of ``exported_spans`` or ``dropped_spans``: failed exports, exports still
    pending when shutdown times out, and spans ending while shutdown runs are dropped.

    Args:
        exporter (SpanExporter): Destination for ended spans
        timeout (float): Default wait for ``flush`` and ``shutdown``, in seconds
    """

    def __init__(self, exporter: "SpanExporter", timeout: float = DEFAULT_TIMEOUT) -> None:
        self.exporter = exporter
        self._timeout = timeout
        self._export_lock = threading.Lock()
        self._state_lock = threading.Lock()
        # export results that have not settled yet; flush waits on these
        self._pending: Set[CompletableResult] = set()
        self._is_shutdown = False
        self._terminated = False
        self._exported = 0
        self._dropped = 0

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    @property
    def exported_spans(self) -> int:
        """Spans whose export was confirmed by the exporter."""
        with self._state_lock:
            return self._exported

    @property
    def dropped_spans(self) -> int:
        """Spans whose export failed, timed out at shutdown, or arrived during shutdown."""
        with self._state_lock:
            return self._dropped

    def on_end(self, span: SpanData) -> None:
        with self._state_lock:
            if self._terminated:
                return
            if self._is_shutdown:
                self._dropped += 1
                return
        if self.exporter.concurrent_safe:
            result = invoke_exporter(self.exporter, "export", (span,))
        else:
            with self._export_lock:
                result = invoke_exporter(self.exporter, "export", (span,))

        with self._state_lock:
            deferred = not result.is_done
            if deferred:
                self._pending.add(result)
        if deferred:
            result.when_complete(lambda r: self._settled(span, r))
        else:
            self._record(span, result)

    def _settled(self, span: SpanData, result: CompletableResult) -> None:
        with self._state_lock:
            if result not in self._pending:
                # already counted as dropped by a timed-out shutdown
                return
            self._pending.discard(result)
        self._record(span, result)

    def _record(self, span: SpanData, result: CompletableResult) -> None:
        with self._state_lock:
            if result.is_success:
                self._exported += 1
            else:
                self._dropped += 1
        if not result.is_success:
            logger.warning("Export of span %s (%s) failed: %s", span.span_id, span.name, result.error)

    def _wait(self, result: CompletableResult, operation: str, timeout: float) -> CompletableResult:
        if not result.wait(timeout).is_done:
            logger.warning("%s timed out after %.3fs", operation, timeout)
            result.fail(ExportTimeoutError(operation, timeout))
        return result

    def flush(self, timeout: Optional[float] = None) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.success()
        timeout = self._timeout if timeout is None else timeout
        with self._state_lock:
            pending = list(self._pending)
        pending.append(invoke_exporter(self.exporter, "flush"))
        return self._wait(CompletableResult.of_all(pending), "SimpleSpanProcessor.flush", timeout)

    def shutdown(self, timeout: Optional[float] = None) -> CompletableResult:
        with self._state_lock:
            if self._is_shutdown:
                return CompletableResult.success()
            self._is_shutdown = True
            pending = list(self._pending)

        timeout = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        drained = self._wait(
            CompletableResult.of_all(pending), "SimpleSpanProcessor.shutdown", timeout
        )
        with self._state_lock:
            abandoned = len(self._pending)
            self._pending.clear()
            self._dropped += abandoned
        if abandoned:
            logger.warning("%d span exports still pending at shutdown; counted as dropped", abandoned)

        closed = invoke_exporter(self.exporter, "shutdown")
        self._wait(
            closed, "SimpleSpanProcessor.shutdown", max(deadline - time.monotonic(), 0.0)
        )
        with self._state_lock:
            self._terminated = True
        return CompletableResult.of_all([drained, closed])
