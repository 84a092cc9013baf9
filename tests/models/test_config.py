import pytest
from pydantic import ValidationError

from spanline.models.config import BatchConfig, SpanLimits


class TestBatchConfig:
    """Test suite for batch processor settings."""

    def test_defaults(self):
        config = BatchConfig()

        assert config.max_queue_size == 2048
        assert config.max_export_batch_size == 512
        assert config.schedule_delay == 5.0
        assert config.export_timeout == 30.0
        assert config.shutdown_timeout == 30.0

    @pytest.mark.parametrize(
        "field, value",
        [
            ("max_queue_size", 0),
            ("max_export_batch_size", -1),
            ("schedule_delay", 0),
            ("export_timeout", -5.0),
            ("shutdown_timeout", 0),
        ],
    )
    def test_non_positive_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            BatchConfig(**{field: value})

    def test_batch_must_fit_queue(self):
        with pytest.raises(ValidationError, match="must not exceed"):
            BatchConfig(max_queue_size=10, max_export_batch_size=11)

    def test_frozen(self):
        config = BatchConfig()
        with pytest.raises(ValidationError):
            config.max_queue_size = 1


class TestSpanLimits:
    """Test suite for span limits."""

    def test_defaults(self):
        limits = SpanLimits()

        assert limits.max_attributes == 128
        assert limits.max_events == 128
        assert limits.max_links == 128

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            SpanLimits(max_events=-1)


class TestBatchSizeDefaulting:
    """Test suite for fitting the default batch size to a small queue."""

    def test_unset_batch_size_shrinks_to_queue(self):
        config = BatchConfig(max_queue_size=100)

        assert config.max_export_batch_size == 100

    def test_large_queue_keeps_default_batch_size(self):
        assert BatchConfig(max_queue_size=4096).max_export_batch_size == 512

    def test_explicit_batch_size_kept(self):
        config = BatchConfig(max_queue_size=100, max_export_batch_size=10)

        assert config.max_export_batch_size == 10

    def test_explicit_pair_still_validated(self):
        with pytest.raises(ValidationError, match="must not exceed"):
            BatchConfig(max_queue_size=100, max_export_batch_size=512)
