from __future__ import annotations

import threading
import time
from collections import deque
from typing import TYPE_CHECKING, Deque, List, Optional, Tuple

from spanline._base._exceptions import ExportFailedError, ExportTimeoutError
from spanline._base._result import CompletableResult
from spanline.logging import get_logger
from spanline.models.config import BatchConfig
from spanline.models.tracing import SpanData
from spanline.processors._processor import SpanProcessor, invoke_exporter

if TYPE_CHECKING:
    from spanline.exporters._exporter import SpanExporter

logger = get_logger(__name__)


class BatchSpanProcessor(SpanProcessor):
    """
    Queues ended spans and exports them in batches from one background worker thread.

    - A batch is exported once the queue holds ``max_export_batch_size`` spans, or
      ``schedule_delay`` seconds after the oldest queued span was queued
    - When the queue is full, new spans are dropped and counted; the thread ending
      the span never waits for the exporter
    - Only the worker calls the exporter, so batches are delivered one at a time
      and in end order
    - ``shutdown`` stops intake, drains the queue until its deadline, counts what is
      left as dropped, then shuts the exporter down

    Every span handed to ``on_end`` before shutdown completes ends up counted in
    exactly one of ``exported_spans`` or ``dropped_spans``. If ``shutdown`` times out
    while the exporter is still busy, the queued and in-flight spans are counted as
    dropped before ``shutdown`` returns.

    Args:
        exporter (SpanExporter): Destination for batches
        config (Optional[BatchConfig]): Processor settings. Defaults to BatchConfig().
        **options: Overrides for individual BatchConfig fields
    """

    def __init__(
        self,
        exporter: "SpanExporter",
        config: Optional[BatchConfig] = None,
        **options,
    ) -> None:
        if config is None:
            config = BatchConfig(**options)
        elif options:
            config = BatchConfig(**{**config.model_dump(exclude_unset=True), **options})

        self.exporter = exporter
        self.config = config

        self._condition = threading.Condition(threading.Lock())
        # (enqueue time, span) pairs, oldest first
        self._queue: Deque[Tuple[float, SpanData]] = deque()
        # monotonic time by which the oldest queued span must be exported
        self._deadline: Optional[float] = None
        self._flush_requests: List[CompletableResult] = []
        self._exporting = False
        self._dropping = False
        # spans taken off the queue whose outcome is not counted yet
        self._unaccounted = 0
        # set when shutdown gave up on the worker; late outcomes are not counted again
        self._abandoned = False

        self._stopping = False
        self._terminated = False
        self._shutdown_deadline: Optional[float] = None
        self._shutdown_result: Optional[CompletableResult] = None

        self._exported = 0
        self._dropped = 0

        self._worker = threading.Thread(
            target=self._run, name=f"{type(self).__name__}-worker", daemon=True
        )
        self._worker.start()

    # ---------- counters ----------

    @property
    def exported_spans(self) -> int:
        """Spans whose export was confirmed by the exporter."""
        with self._condition:
            return self._exported

    @property
    def dropped_spans(self) -> int:
        """Spans rejected by a full queue, discarded at shutdown, or in a failed batch."""
        with self._condition:
            return self._dropped

    @property
    def queue_size(self) -> int:
        with self._condition:
            return len(self._queue)

    @property
    def is_shutdown(self) -> bool:
        with self._condition:
            return self._stopping

    # ---------- producer side ----------

    def on_end(self, span: SpanData) -> None:
        warn = False
        with self._condition:
            if self._terminated:
                return
            if self._stopping:
                self._dropped += 1
                return
            if len(self._queue) >= self.config.max_queue_size:
                self._dropped += 1
                warn = not self._dropping
                self._dropping = True
            else:
                self._dropping = False
                now = time.monotonic()
                self._queue.append((now, span))
                if self._deadline is None:
                    self._deadline = now + self.config.schedule_delay
                    self._condition.notify()
                elif len(self._queue) >= self.config.max_export_batch_size:
                    self._condition.notify()
        if warn:
            logger.warning(
                "Span queue is full (%d spans); dropping spans until it drains",
                self.config.max_queue_size,
            )

    # ---------- control ----------

    def flush(self, timeout: Optional[float] = None) -> CompletableResult:
        """
        Export every span queued at call time and flush the exporter.

        Args:
            timeout (Optional[float]): Seconds to wait. Defaults to ``export_timeout``.

        Returns:
            CompletableResult: Settled result; failed if an export failed or the timeout elapsed
        """
        timeout = self.config.export_timeout if timeout is None else timeout
        with self._condition:
            if self._terminated:
                return CompletableResult.success()
            if self._stopping:
                # follow the shutdown drain without letting a flush timeout fail it
                request = CompletableResult()
                self._shutdown_result.when_complete(
                    lambda r: request.succeed() if r.is_success else request.fail(r.error)
                )
            elif not self._queue and not self._exporting and not self._flush_requests:
                request = None
            else:
                request = CompletableResult()
                self._flush_requests.append(request)
                self._condition.notify()

        if request is None:
            request = invoke_exporter(self.exporter, "flush")
        if not request.wait(timeout).is_done:
            logger.warning("BatchSpanProcessor.flush timed out after %.3fs", timeout)
            request.fail(ExportTimeoutError("BatchSpanProcessor.flush", timeout))
        return request

    def shutdown(self, timeout: Optional[float] = None) -> CompletableResult:
        """
        Stop accepting spans, drain the queue, and shut the exporter down.

        Only the first call does any work; later calls return an already-succeeded
        result.

        Args:
            timeout (Optional[float]): Seconds to wait. Defaults to ``shutdown_timeout``.

        Returns:
            CompletableResult: Settled result; failed if spans were lost or the timeout elapsed
        """
        timeout = self.config.shutdown_timeout if timeout is None else timeout
        with self._condition:
            if self._shutdown_result is not None:
                return CompletableResult.success()
            self._stopping = True
            self._shutdown_deadline = time.monotonic() + timeout
            result = self._shutdown_result = CompletableResult()
            self._condition.notify_all()

        if not result.wait(timeout).is_done:
            lost = self._abandon()
            logger.warning(
                "BatchSpanProcessor.shutdown timed out after %.3fs; %d spans dropped",
                timeout,
                lost,
            )
            result.fail(ExportTimeoutError("BatchSpanProcessor.shutdown", timeout))
        return result

    def _abandon(self) -> int:
        """Count everything not yet delivered as dropped. Returns the number of spans."""
        with self._condition:
            if self._terminated or self._abandoned:
                return 0
            lost = len(self._queue) + self._unaccounted
            self._queue.clear()
            self._deadline = None
            self._unaccounted = 0
            self._dropped += lost
            self._abandoned = True
            return lost

    # ---------- worker ----------

    def _should_wake(self) -> bool:
        if self._stopping or self._flush_requests:
            return True
        if len(self._queue) >= self.config.max_export_batch_size:
            return True
        return bool(self._queue) and time.monotonic() >= self._deadline

    def _wait_timeout(self) -> Optional[float]:
        if not self._queue or self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def _take(self, count: int) -> List[List[SpanData]]:
        """Pop ``count`` spans off the queue as batches. Caller holds the condition."""
        size = self.config.max_export_batch_size
        batches: List[List[SpanData]] = []
        while count > 0 and self._queue:
            n = min(size, count, len(self._queue))
            batches.append([self._queue.popleft()[1] for _ in range(n)])
            self._unaccounted += n
            count -= n
        if self._queue:
            self._deadline = self._queue[0][0] + self.config.schedule_delay
        else:
            self._deadline = None
        return batches

    def _run(self) -> None:
        try:
            while True:
                with self._condition:
                    while not self._should_wake():
                        self._condition.wait(self._wait_timeout())
                    if self._stopping:
                        break
                    requests, self._flush_requests = self._flush_requests, []
                    count = len(self._queue) if requests else self.config.max_export_batch_size
                    batches = self._take(count)
                    self._exporting = True

                ok = False
                try:
                    ok = self._export_batches(batches)
                    if requests:
                        flushed = invoke_exporter(self.exporter, "flush")
                        ok = flushed.wait(self.config.export_timeout).is_success and ok
                finally:
                    self._settle(requests, ok, "flush")
                    with self._condition:
                        self._exporting = False
                        self._condition.notify_all()
        except Exception:
            logger.exception("BatchSpanProcessor worker crashed; draining before exit")
        finally:
            self._drain_and_shutdown()

    def _count(self, spans: int, exported: bool) -> None:
        with self._condition:
            if self._abandoned:
                return
            self._unaccounted -= spans
            if exported:
                self._exported += spans
            else:
                self._dropped += spans

    def _export_batches(self, batches: List[List[SpanData]]) -> bool:
        ok = True
        for index, batch in enumerate(batches):
            if self._abandoned:
                return False
            deadline = self._shutdown_deadline
            wait = self.config.export_timeout
            if deadline is not None:
                wait = min(wait, deadline - time.monotonic())
                if wait <= 0:
                    lost = sum(len(b) for b in batches[index:])
                    logger.warning("Shutdown deadline reached; discarding %d queued spans", lost)
                    self._count(lost, exported=False)
                    return False

            result = invoke_exporter(self.exporter, "export", batch)
            if not result.wait(wait).is_done:
                logger.warning("Export of %d spans timed out after %.3fs", len(batch), wait)
                result.fail(ExportTimeoutError("export", wait))
            self._count(len(batch), exported=result.is_success)
            if not result.is_success:
                logger.warning("Export of %d spans failed: %s", len(batch), result.error)
                ok = False
        return ok

    def _settle(self, requests: List[CompletableResult], ok: bool, operation: str) -> None:
        for request in requests:
            if ok:
                request.succeed()
            else:
                request.fail(ExportFailedError(type(self.exporter).__name__, f"{operation} failed"))

    def _drain_and_shutdown(self) -> None:
        with self._condition:
            self._stopping = True
            if self._shutdown_deadline is None:
                self._shutdown_deadline = time.monotonic() + self.config.shutdown_timeout
            if self._shutdown_result is None:
                self._shutdown_result = CompletableResult()
            # spans lost by a crashed export never reached _count
            self._dropped += self._unaccounted
            self._unaccounted = 0
            requests, self._flush_requests = self._flush_requests, []
            batches = self._take(len(self._queue))
            self._exporting = True

        ok = self._export_batches(batches)
        self._settle(requests, ok, "flush")

        closed = invoke_exporter(self.exporter, "shutdown")
        remaining = max(self._shutdown_deadline - time.monotonic(), 0.0)
        ok = closed.wait(remaining).is_success and ok

        with self._condition:
            self._exporting = False
            self._terminated = True
            result = self._shutdown_result
            self._condition.notify_all()

        if ok:
            result.succeed()
        elif closed.is_done and not closed.is_success:
            result.fail(closed.error)
        else:
            result.fail(ExportFailedError(type(self.exporter).__name__, "spans lost at shutdown"))
        logger.debug(
            "BatchSpanProcessor shut down: %d exported, %d dropped", self._exported, self._dropped
        )
