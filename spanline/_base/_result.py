from __future__ import annotations

import threading
from typing import Callable, Iterable, List, Optional

from spanline.logging import get_logger

logger = get_logger(__name__)


class CompletableResult:
    """
    Settleable handle for the outcome of an asynchronous export, flush or shutdown.

    A result settles exactly once, to success or failure; later attempts to settle
    it are ignored. Callers either poll (``is_done`` / ``is_success``) or block with
    ``wait(timeout)``.
    """

    __slots__ = ("_condition", "_done", "_success", "_error", "_callbacks")

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._done = False
        self._success = False
        self._error: Optional[BaseException] = None
        self._callbacks: List[Callable[["CompletableResult"], None]] = []

    # ---------- constructors ----------

    @classmethod
    def success(cls) -> "CompletableResult":
        """Returns an already-succeeded result."""
        result = cls()
        result.succeed()
        return result

    @classmethod
    def failure(cls, error: Optional[BaseException] = None) -> "CompletableResult":
        """Returns an already-failed result."""
        result = cls()
        result.fail(error)
        return result

    @classmethod
    def of_all(cls, results: Iterable["CompletableResult"]) -> "CompletableResult":
        """
        Combine several results into one.

        The combined result succeeds once every member has succeeded, and fails once
        every member has settled with at least one failure. An empty collection
        gives an already-succeeded result.

        Args:
            results (Iterable[CompletableResult]): Results to combine

        Returns:
            CompletableResult: The combined result
        """
        pending = list(results)
        combined = cls()
        if not pending:
            combined.succeed()
            return combined

        lock = threading.Lock()
        state = {"remaining": len(pending), "error": None, "failed": False}

        def _on_member_done(member: "CompletableResult") -> None:
            with lock:
                if not member.is_success:
                    state["failed"] = True
                    if state["error"] is None:
                        state["error"] = member.error
                state["remaining"] -= 1
                finished = state["remaining"] == 0
            if finished:
                if state["failed"]:
                    combined.fail(state["error"])
                else:
                    combined.succeed()

        for member in pending:
            member.when_complete(_on_member_done)
        return combined

    # ---------- settling ----------

    def succeed(self) -> bool:
        """
        Settle the result as successful.

        Returns:
            bool: True if this call settled the result, False if it was already settled
        """
        return self._settle(True, None)

    def fail(self, error: Optional[BaseException] = None) -> bool:
        """
        Settle the result as failed.

        Args:
            error (Optional[BaseException]): Reason for the failure. Defaults to None.

        Returns:
            bool: True if this call settled the result, False if it was already settled
        """
        return self._settle(False, error)

    def _settle(self, success: bool, error: Optional[BaseException]) -> bool:
        with self._condition:
            if self._done:
                return False
            self._done = True
            self._success = success
            self._error = error
            callbacks, self._callbacks = self._callbacks, []
            self._condition.notify_all()
        for callback in callbacks:
            self._run_callback(callback)
        return True

    def _run_callback(self, callback: Callable[["CompletableResult"], None]) -> None:
        try:
            callback(self)
        except Exception:
            logger.exception("Completion callback raised")

    # ---------- observing ----------

    @property
    def is_done(self) -> bool:
        with self._condition:
            return self._done

    @property
    def is_success(self) -> bool:
        """True only once the result has settled successfully."""
        with self._condition:
            return self._done and self._success

    @property
    def error(self) -> Optional[BaseException]:
        with self._condition:
            return self._error

    def wait(self, timeout: Optional[float] = None) -> "CompletableResult":
        """
        Block until the result settles or the timeout elapses.

        The result is not settled by a timeout; check ``is_done`` afterwards.

        Args:
            timeout (Optional[float]): Seconds to wait, None to wait forever. Defaults to None.

        Returns:
            CompletableResult: This result, for chaining
        """
        with self._condition:
            self._condition.wait_for(lambda: self._done, timeout=timeout)
        return self

    def when_complete(self, callback: Callable[["CompletableResult"], None]) -> "CompletableResult":
        """
        Run ``callback(result)`` once the result settles (immediately if it already has).

        Args:
            callback (Callable[[CompletableResult], None]): Function to call

        Returns:
            CompletableResult: This result, for chaining
        """
        with self._condition:
            if not self._done:
                self._callbacks.append(callback)
                return self
        self._run_callback(callback)
        return self

    def __repr__(self) -> str:
        with self._condition:
            if not self._done:
                state = "pending"
            elif self._success:
                state = "success"
            else:
                state = f"failure({self._error!r})"
        return f"<CompletableResult {state}>"
