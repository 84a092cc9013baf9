from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SpanLimits(BaseModel):
    """
    Per-span caps on recorded data. Entries beyond a limit are dropped and counted
    on the resulting SpanData.
    """

    model_config = ConfigDict(frozen=True)

    max_attributes: int = Field(default=128, ge=0)
    max_events: int = Field(default=128, ge=0)
    max_links: int = Field(default=128, ge=0)
    max_attributes_per_event: int = Field(default=128, ge=0)
    max_attributes_per_link: int = Field(default=128, ge=0)


class BatchConfig(BaseModel):
    """
    Settings for the BatchSpanProcessor.

    Durations are expressed in seconds.
    """

    model_config = ConfigDict(frozen=True)

    max_queue_size: int = Field(default=2048, gt=0, description="Capacity of the span queue")
    max_export_batch_size: int = Field(default=512, gt=0, description="Spans per export call")
    schedule_delay: float = Field(
        default=5.0, gt=0, description="Maximum time a queued span waits before export"
    )
    export_timeout: float = Field(default=30.0, gt=0, description="Wait limit for one export")
    shutdown_timeout: float = Field(default=30.0, gt=0, description="Default shutdown deadline")

    @model_validator(mode="before")
    @classmethod
    def _default_batch_fits_queue(cls, data: Any) -> Any:
        # an unset batch size shrinks to a smaller queue instead of failing
        if isinstance(data, dict) and "max_export_batch_size" not in data:
            queue_size = data.get("max_queue_size")
            default = cls.model_fields["max_export_batch_size"].default
            if isinstance(queue_size, int) and 0 < queue_size < default:
                data = {**data, "max_export_batch_size": queue_size}
        return data

    @model_validator(mode="after")
    def _batch_fits_queue(self):
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({self.max_export_batch_size}) must not exceed "
                f"max_queue_size ({self.max_queue_size})"
            )
        return self
