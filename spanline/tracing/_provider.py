from __future__ import annotations

import atexit
import threading
import time
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from spanline._base._ids import IdGenerator
from spanline._base._result import CompletableResult
from spanline.logging import get_logger
from spanline.models.config import SpanLimits
from spanline.models.tracing import Resource
from spanline.processors._batch import BatchSpanProcessor
from spanline.processors._processor import (
    CompositeSpanProcessor,
    SpanProcessor,
    find_shared_exporter,
)
from spanline.processors._simple import SimpleSpanProcessor
from spanline.tracing._tracer import Tracer

if TYPE_CHECKING:
    from spanline.exporters._exporter import SpanExporter

logger = get_logger(__name__)


class TracerProvider:
    """
    Owns the registered span processors and issues Tracers bound to them.

    The provider is constructed and passed explicitly; nothing here is global, so
    several independent pipelines can live in one process (one per test, say).

    - Processors are registered in order and never removed
    - Every ended span is offered to every registered processor, in registration order
    - ``flush`` and ``shutdown`` fan out to the processors and combine their results

    Args:
        resource (Optional[Resource]): Resource attached to every span. Defaults to
            Resource.create().
        span_limits (Optional[SpanLimits]): Per-span limits. Defaults to SpanLimits().
        id_generator (Optional[IdGenerator]): Source of trace and span ids.
        clock (Optional[Callable[[], int]]): Epoch-nanosecond clock. Defaults to time.time_ns.
        shutdown_on_exit (bool): Shut down at interpreter exit. Defaults to False.
    """

    def __init__(
        self,
        resource: Optional[Resource] = None,
        span_limits: Optional[SpanLimits] = None,
        id_generator: Optional[IdGenerator] = None,
        clock: Optional[Callable[[], int]] = None,
        shutdown_on_exit: bool = False,
    ) -> None:
        self.resource = resource or Resource.create()
        self.span_limits = span_limits or SpanLimits()
        self.id_generator = id_generator or IdGenerator()
        self.clock = clock or time.time_ns
        self.active_processor = CompositeSpanProcessor()

        self._tracers: Dict[Tuple[str, Optional[str]], Tracer] = {}
        self._lock = threading.Lock()
        self._is_shutdown = False
        self._atexit_handler: Optional[Callable[[], None]] = None
        if shutdown_on_exit:
            self._atexit_handler = self._shutdown_at_exit
            atexit.register(self._atexit_handler)

    @classmethod
    def for_exporter(
        cls, exporter: "SpanExporter", batch: bool = False, **options
    ) -> "TracerProvider":
        """
        Build a provider with a single processor around one exporter.

        Args:
            exporter (SpanExporter): Destination for ended spans
            batch (bool): Use a BatchSpanProcessor instead of a SimpleSpanProcessor.
            **options: BatchConfig overrides when ``batch`` is True; otherwise
                TracerProvider keyword arguments

        Returns:
            TracerProvider: A provider with the processor registered
        """
        if batch:
            provider = cls()
            provider.add_span_processor(BatchSpanProcessor(exporter, **options))
        else:
            provider = cls(**options)
            provider.add_span_processor(SimpleSpanProcessor(exporter))
        return provider

    @property
    def processors(self) -> Tuple[SpanProcessor, ...]:
        return self.active_processor.processors

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def add_span_processor(self, processor: SpanProcessor) -> None:
        """
        Register a processor; it sees every span that ends from now on.

        Args:
            processor (SpanProcessor): The processor to register
        """
        with self._lock:
            if self._is_shutdown:
                logger.warning(
                    "Ignoring %s registered after shutdown", type(processor).__name__
                )
                return
            shared = find_shared_exporter(self.active_processor.processors, processor)
            if shared is not None:
                logger.warning(
                    "%s is already used by another processor and is not safe for "
                    "concurrent delivery",
                    type(shared).__name__,
                )
            self.active_processor.add(processor)

    def get_tracer(self, name: str, version: Optional[str] = None) -> Tracer:
        """
        Get the tracer for an instrumentation name and version, creating it if needed.

        Args:
            name (str): Instrumentation name, usually a module or library name
            version (Optional[str]): Instrumentation version. Defaults to None.

        Returns:
            Tracer: A tracer bound to this provider
        """
        if not name:
            logger.warning("Tracer requested with an empty name")
            name = ""
        key = (name, version)
        with self._lock:
            if self._is_shutdown:
                logger.warning(
                    "Tracer %r requested after shutdown; spans will not be exported", name
                )
            tracer = self._tracers.get(key)
            if tracer is None:
                tracer = self._tracers[key] = Tracer(self, name, version)
            return tracer

    def flush(self, timeout: Optional[float] = None) -> CompletableResult:
        """
        Flush every processor.

        Args:
            timeout (Optional[float]): Overall seconds to wait. Defaults to each processor's default.

        Returns:
            CompletableResult: Success iff every processor flushed successfully
        """
        if self._is_shutdown:
            return CompletableResult.success()
        return self.active_processor.flush(timeout)

    def shutdown(self, timeout: Optional[float] = None) -> CompletableResult:
        """
        Shut down every processor, in registration order. Only the first call does any
        work; later calls return an already-succeeded result.

        Args:
            timeout (Optional[float]): Overall seconds to wait. Defaults to each processor's default.

        Returns:
            CompletableResult: Success iff every processor shut down successfully
        """
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.success()
            self._is_shutdown = True
            handler, self._atexit_handler = self._atexit_handler, None
        if handler is not None:
            atexit.unregister(handler)

        result = self.active_processor.shutdown(timeout)
        if not result.is_success:
            logger.warning("TracerProvider shutdown did not complete cleanly: %s", result.error)
        return result

    def _shutdown_at_exit(self) -> None:
        self._atexit_handler = None
        self.shutdown()
