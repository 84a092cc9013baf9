import threading
import time

import pytest

from spanline import CompletableResult
from spanline._base._exceptions import ExportTimeoutError


class TestCompletableResult:
    """Test suite for the settleable completion handle."""

    def test_new_result_is_pending(self):
        result = CompletableResult()

        assert not result.is_done
        assert not result.is_success
        assert result.error is None

    def test_success_constructor(self):
        result = CompletableResult.success()

        assert result.is_done
        assert result.is_success

    def test_failure_constructor_keeps_error(self):
        error = ExportTimeoutError("export", 1.0)
        result = CompletableResult.failure(error)

        assert result.is_done
        assert not result.is_success
        assert result.error is error

    def test_first_settle_wins(self):
        """Test that a result settles exactly once."""
        result = CompletableResult()

        assert result.succeed() is True
        assert result.fail(RuntimeError("late")) is False

        assert result.is_success
        assert result.error is None

    def test_wait_times_out_without_settling(self):
        result = CompletableResult()

        start = time.monotonic()
        returned = result.wait(0.05)

        assert returned is result
        assert time.monotonic() - start >= 0.04
        assert not result.is_done

    def test_wait_wakes_when_settled_from_another_thread(self):
        result = CompletableResult()
        timer = threading.Timer(0.05, result.succeed)
        timer.start()

        assert result.wait(5).is_success
        timer.join()

    def test_when_complete_runs_immediately_if_settled(self):
        seen = []
        CompletableResult.success().when_complete(seen.append)

        assert len(seen) == 1
        assert seen[0].is_success

    def test_when_complete_runs_on_settle(self):
        seen = []
        result = CompletableResult()
        result.when_complete(seen.append)
        assert seen == []

        result.fail()
        assert seen == [result]

    def test_callback_error_does_not_break_settling(self):
        result = CompletableResult()

        def bad_callback(_):
            raise ValueError("boom")

        result.when_complete(bad_callback)
        result.succeed()

        assert result.is_success

    def test_repr(self):
        assert "pending" in repr(CompletableResult())
        assert "success" in repr(CompletableResult.success())
        assert "failure" in repr(CompletableResult.failure())


class TestOfAll:
    """Test suite for combining results."""

    def test_empty_is_success(self):
        assert CompletableResult.of_all([]).is_success

    def test_all_success(self):
        combined = CompletableResult.of_all(
            [CompletableResult.success(), CompletableResult.success()]
        )
        assert combined.is_success

    def test_any_failure_fails(self):
        error = RuntimeError("exporter down")
        combined = CompletableResult.of_all(
            [CompletableResult.success(), CompletableResult.failure(error)]
        )

        assert combined.is_done
        assert not combined.is_success
        assert combined.error is error

    def test_waits_for_pending_members(self):
        first = CompletableResult()
        second = CompletableResult()
        combined = CompletableResult.of_all([first, second])

        first.succeed()
        assert not combined.is_done

        second.succeed()
        assert combined.is_success

    def test_failure_settles_only_after_all_members(self):
        first = CompletableResult()
        second = CompletableResult()
        combined = CompletableResult.of_all([first, second])

        first.fail()
        assert not combined.is_done

        second.succeed()
        assert combined.is_done
        assert not combined.is_success

    @pytest.mark.parametrize("count", [1, 10, 100])
    def test_concurrent_settling(self, count):
        members = [CompletableResult() for _ in range(count)]
        combined = CompletableResult.of_all(members)

        threads = [threading.Thread(target=m.succeed) for m in members]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert combined.wait(5).is_success
