from unittest.mock import Mock

from spanline import CompletableResult, InMemorySpanExporter, SimpleSpanProcessor, SpanProcessor
from spanline.processors import CompositeSpanProcessor
from spanline.processors._processor import find_shared_exporter


class RecordingProcessor(SpanProcessor):
    """Processor that appends its tag to a shared call log."""

    def __init__(self, tag, log, result=None):
        self.tag = tag
        self.log = log
        self.result = result or CompletableResult.success()

    def on_start(self, span):
        self.log.append(("start", self.tag))

    def on_end(self, span):
        self.log.append(("end", self.tag))

    def flush(self, timeout=None):
        self.log.append(("flush", self.tag))
        return self.result

    def shutdown(self, timeout=None):
        self.log.append(("shutdown", self.tag))
        return self.result


class TestCompositeDelivery:
    """Test suite for ordered fan-out."""

    def test_registration_order(self, span_data_factory):
        log = []
        composite = CompositeSpanProcessor()
        composite.add(RecordingProcessor("a", log))
        composite.add(RecordingProcessor("b", log))

        composite.on_start(Mock())
        composite.on_end(span_data_factory())

        assert log == [("start", "a"), ("start", "b"), ("end", "a"), ("end", "b")]

    def test_raising_processor_does_not_block_others(self, span_data_factory, caplog):
        log = []
        broken = Mock(spec=SpanProcessor)
        broken.on_end.side_effect = RuntimeError("boom")
        composite = CompositeSpanProcessor()
        composite.add(broken)
        composite.add(RecordingProcessor("after", log))

        composite.on_end(span_data_factory())

        assert log == [("end", "after")]
        assert "on_end() raised" in caplog.text

    def test_empty_composite(self, span_data_factory):
        composite = CompositeSpanProcessor()
        composite.on_end(span_data_factory())

        assert composite.flush().is_success
        assert composite.shutdown().is_success


class TestCompositeControl:
    """Test suite for combined flush and shutdown."""

    def test_flush_combines_results(self):
        log = []
        composite = CompositeSpanProcessor()
        composite.add(RecordingProcessor("ok", log))
        composite.add(RecordingProcessor("bad", log, CompletableResult.failure(RuntimeError("x"))))

        result = composite.flush(timeout=1)

        assert result.is_done and not result.is_success
        assert log == [("flush", "ok"), ("flush", "bad")]

    def test_shutdown_reaches_every_processor(self):
        log = []
        composite = CompositeSpanProcessor()
        for tag in ("a", "b", "c"):
            composite.add(RecordingProcessor(tag, log))

        assert composite.shutdown(timeout=1).is_success
        assert [tag for _, tag in log] == ["a", "b", "c"]

    def test_raising_shutdown_becomes_failure(self):
        broken = Mock(spec=SpanProcessor)
        broken.shutdown.side_effect = RuntimeError("boom")
        composite = CompositeSpanProcessor()
        composite.add(broken)

        assert not composite.shutdown().is_success


class TestFindSharedExporter:
    """Test suite for detecting exporters shared between processors."""

    def test_unsafe_exporter_shared(self):
        exporter = Mock(concurrent_safe=False)
        first = SimpleSpanProcessor(exporter)
        second = SimpleSpanProcessor(exporter)

        assert find_shared_exporter([first], second) is exporter

    def test_safe_exporter_not_reported(self):
        exporter = InMemorySpanExporter()
        first = SimpleSpanProcessor(exporter)
        second = SimpleSpanProcessor(exporter)

        assert find_shared_exporter([first], second) is None

    def test_distinct_exporters(self):
        first = SimpleSpanProcessor(Mock(concurrent_safe=False))
        second = SimpleSpanProcessor(Mock(concurrent_safe=False))

        assert find_shared_exporter([first], second) is None
