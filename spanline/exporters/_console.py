from __future__ import annotations

import json
import sys
import threading
from typing import Callable, Optional, Sequence, TextIO

from spanline._base._exceptions import ExporterShutdownError, ExportFailedError
from spanline._base._result import CompletableResult
from spanline.exporters._exporter import SpanExporter
from spanline.logging import get_logger
from spanline.models.tracing import SpanData

logger = get_logger(__name__)


def _json_line(span: SpanData) -> str:
    return json.dumps(span.to_dict(), default=str) + "\n"


class ConsoleSpanExporter(SpanExporter):
    """
    Writes each exported span as one JSON line to a text stream (stdout by default).

    Args:
        out (Optional[TextIO]): Stream to write to. Defaults to sys.stdout at export time.
        formatter (Callable[[SpanData], str]): Renders one span. Defaults to a JSON line.
    """

    concurrent_safe = True

    def __init__(
        self,
        out: Optional[TextIO] = None,
        formatter: Callable[[SpanData], str] = _json_line,
    ) -> None:
        self._out = out
        self._formatter = formatter
        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def _stream(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    def export(self, spans: Sequence[SpanData]) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "export"))
        try:
            with self._lock:
                for span in spans:
                    self._stream.write(self._formatter(span))
                self._stream.flush()
        except (OSError, ValueError) as e:
            logger.warning("Console export failed: %s", e)
            return CompletableResult.failure(ExportFailedError(type(self).__name__, str(e)))
        return CompletableResult.success()

    def flush(self) -> CompletableResult:
        if self._is_shutdown:
            return CompletableResult.failure(ExporterShutdownError(type(self).__name__, "flush"))
        try:
            with self._lock:
                self._stream.flush()
        except (OSError, ValueError) as e:
            return CompletableResult.failure(ExportFailedError(type(self).__name__, str(e)))
        return CompletableResult.success()

    def shutdown(self) -> CompletableResult:
        with self._lock:
            if self._is_shutdown:
                return CompletableResult.failure(
                    ExporterShutdownError(type(self).__name__, "shutdown")
                )
            self._is_shutdown = True
        return CompletableResult.success()
