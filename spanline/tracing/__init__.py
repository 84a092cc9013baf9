from spanline.tracing._tracer import Tracer, traced, get_current_span
from spanline.tracing._provider import TracerProvider

__all__ = ["Tracer", "TracerProvider", "traced", "get_current_span"]
