"""
Unit tests for retry with exponential backoff.

Sleeps are recorded instead of awaited so the schedule can be checked
exactly and the tests run instantly.
"""
import pytest

from datalayer.resilience import (
    QueryResult,
    RetryOptions,
    is_transient_error,
    query_with_retry,
    retry_with_backoff,
    with_backoff,
)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(float(seconds))


class BackendError(Exception):
    """Exception carrying a backend error code."""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code


@pytest.fixture
def sleep():
    return RecordingSleep()


# =============================================================================
# Classification
# =============================================================================

class TestIsTransientError:

    @pytest.mark.parametrize("error", [
        ConnectionError("reset by peer"),
        TimeoutError(),
        TypeError("Failed to fetch"),
        RuntimeError("net::ERR_INSUFFICIENT_RESOURCES"),
        BackendError("JWT expired", code="PGRST301"),
        {"message": "throttled", "code": "PGRST302"},
    ])
    def test_transient(self, error):
        assert is_transient_error(error) is True

    @pytest.mark.parametrize("error", [
        ValueError("invalid grade"),
        BackendError("duplicate key value", code="23505"),
        {"message": "JSON object requested, multiple (or no) rows returned", "code": "PGRST116"},
        None,
    ])
    def test_not_transient(self, error):
        assert is_transient_error(error) is False


# =============================================================================
# retry_with_backoff
# =============================================================================

class TestRetryWithBackoff:

    @pytest.mark.asyncio
    async def test_success_needs_no_retry(self, sleep):
        async def fn():
            return "ok"

        assert await retry_with_backoff(fn, sleep=sleep) == "ok"
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, sleep):
        attempts = 0

        async def fn():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise ConnectionError("flaky")
            return ["6A", "6B"]

        assert await retry_with_backoff(fn, sleep=sleep) == ["6A", "6B"]
        assert attempts == 3
        assert sleep.delays == pytest.approx([0.1, 0.2])

    @pytest.mark.asyncio
    async def test_delay_growth_is_capped(self, sleep):
        attempts = 0

        async def fn():
            nonlocal attempts
            attempts += 1
            raise ConnectionError("down")

        options = RetryOptions(max_retries=7, initial_delay=0.1, max_delay=2.0, backoff_multiplier=2)
        with pytest.raises(ConnectionError):
            await retry_with_backoff(fn, options, sleep=sleep)

        assert attempts == 8
        assert sleep.delays == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6, 2.0, 2.0])

    @pytest.mark.asyncio
    async def test_exhausted_retries_reraise_last_error(self, sleep):
        raised = []

        async def fn():
            error = BackendError(f"throttled #{len(raised)}", code="PGRST302")
            raised.append(error)
            raise error

        with pytest.raises(BackendError) as excinfo:
            await retry_with_backoff(fn, sleep=sleep)

        assert len(raised) == 4  # max_retries + 1
        assert excinfo.value is raised[-1]
        assert str(excinfo.value) == "throttled #3"

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self, sleep):
        attempts = 0
        error = ValueError("invalid student id")

        async def fn():
            nonlocal attempts
            attempts += 1
            raise error

        with pytest.raises(ValueError) as excinfo:
            await retry_with_backoff(fn, sleep=sleep)

        assert attempts == 1
        assert excinfo.value is error
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_keyword_overrides(self, sleep):
        attempts = 0

        async def fn():
            nonlocal attempts
            attempts += 1
            raise TimeoutError()

        with pytest.raises(TimeoutError):
            await retry_with_backoff(fn, sleep=sleep, max_retries=1, initial_delay=0.5)

        assert attempts == 2
        assert sleep.delays == pytest.approx([0.5])

    @pytest.mark.asyncio
    async def test_decorator(self, sleep):
        attempts = 0

        @with_backoff(max_retries=2)
        async def load_subjects(class_id):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise ConnectionError("flaky")
            return [f"{class_id}:maths"]

        assert await load_subjects("6A") == ["6A:maths"]
        assert attempts == 2
        assert load_subjects.__name__ == "load_subjects"


class TestRetryOptions:

    def test_default_schedule(self):
        assert RetryOptions().schedule() == pytest.approx([0.1, 0.2, 0.4])

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            RetryOptions(max_retries=-1)
        with pytest.raises(ValueError):
            RetryOptions(backoff_multiplier=0.5)


# =============================================================================
# query_with_retry
# =============================================================================

class TestQueryWithRetry:

    @pytest.mark.asyncio
    async def test_successful_pair_returned_unchanged(self, sleep):
        result = QueryResult(data=[{"id": 1}])

        async def query():
            return result

        assert await query_with_retry(query, sleep=sleep) is result
        assert result.ok

    @pytest.mark.asyncio
    async def test_domain_error_is_a_result_not_a_retry(self, sleep):
        calls = 0
        not_found = {"data": None, "error": {"code": "PGRST116", "message": "no rows"}}

        async def query():
            nonlocal calls
            calls += 1
            return not_found

        assert await query_with_retry(query, sleep=sleep) is not_found
        assert calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_transient_error_field_is_retried(self, sleep):
        responses = [
            QueryResult(error={"code": "PGRST301", "message": "JWT expired"}),
            QueryResult(data={"school": "Lycee Blaise Diagne"}),
        ]

        async def query():
            return responses.pop(0)

        result = await query_with_retry(query, sleep=sleep)
        assert result.data == {"school": "Lycee Blaise Diagne"}
        assert sleep.delays == pytest.approx([0.1])

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_last_pair(self, sleep):
        calls = 0

        async def query():
            nonlocal calls
            calls += 1
            return QueryResult(error={"message": "TypeError: Failed to fetch", "attempt": calls})

        result = await query_with_retry(query, RetryOptions(max_retries=2), sleep=sleep)

        assert calls == 3
        assert not result.ok
        assert result.error["attempt"] == 3

    @pytest.mark.asyncio
    async def test_raised_exception_follows_backoff_rules(self, sleep):
        async def query():
            raise PermissionError("row level security")

        with pytest.raises(PermissionError):
            await query_with_retry(query, sleep=sleep)
        assert sleep.delays == []
