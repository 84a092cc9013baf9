class SpanlineError(Exception):
    """
    Base class for errors reported by the span pipeline.

    These errors describe why a CompletableResult failed. They are carried on the
    result (``result.error``) and never raised into instrumented code.
    """


class ExporterShutdownError(SpanlineError):
    """
    Raised when an exporter is used after it has been shut down.

    Args:
        exporter_name (str): Class name of the exporter
        operation (str): The operation that was attempted
    """

    def __init__(self, exporter_name, operation):
        self.exporter_name = exporter_name
        self.operation = operation
        super().__init__(f"{exporter_name}.{operation}() called after shutdown")


class ExportTimeoutError(SpanlineError):
    """
    Raised when an export, flush or shutdown does not complete in time.

    Args:
        operation (str): The operation that timed out
        timeout (float): The timeout in seconds
    """

    def __init__(self, operation, timeout):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} did not complete within {timeout:.3f}s")


class ExportFailedError(SpanlineError):
    """
    Raised when an exporter reports a failure or raises while exporting.

    Args:
        exporter_name (str): Class name of the exporter
        reason (str): Description of the failure
    """

    def __init__(self, exporter_name, reason):
        self.exporter_name = exporter_name
        self.reason = reason
        super().__init__(f"{exporter_name} failed: {reason}")
