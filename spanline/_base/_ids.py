import random
import uuid

from spanline.models.tracing import INVALID_SPAN_ID


class IdGenerator:
    """
    Generates trace and span identifiers as lowercase hex strings.

    Trace ids are 128 bit (32 chars), span ids 64 bit (16 chars). Subclass and
    override both methods for deterministic ids in tests.
    """

    def new_trace_id(self) -> str:
        # uuid4 carries version bits, so it is never all zeros
        return uuid.uuid4().hex

    def new_span_id(self) -> str:
        span_id = f"{random.getrandbits(64):016x}"
        while span_id == INVALID_SPAN_ID:
            span_id = f"{random.getrandbits(64):016x}"
        return span_id
