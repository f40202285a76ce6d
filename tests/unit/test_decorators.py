"""Tests for the retry and tracing decorators."""

from unittest.mock import MagicMock, patch

import pytest

from lakequery.common.exceptions import AuthError, ServerError, TransportError
from lakequery.utils.decorators import retry_with_backoff, traced


class TestRetryWithBackoff:
    """Test bounded exponential retry."""

    def test_retries_until_success(self):
        sleeps = []
        attempts = {"count": 0}

        @retry_with_backoff(max_retries=3, initial_delay=0.5, exponential_base=2, sleep=sleeps.append)
        def flaky():
            attempts["count"] += 1
            if attempts["count"] < 3:
                raise TransportError("reset")
            return "ok"

        assert flaky() == "ok"
        assert sleeps == [0.5, 1.0]

    def test_delay_is_capped(self):
        sleeps = []

        @retry_with_backoff(max_retries=4, initial_delay=1, max_delay=3, sleep=sleeps.append)
        def always_fails():
            raise TransportError("reset")

        with pytest.raises(TransportError):
            always_fails()
        assert sleeps == [1, 2, 3, 3]

    def test_only_listed_exceptions_are_retried(self):
        calls = []

        @retry_with_backoff(max_retries=3, retry_on=(TransportError, ServerError), sleep=lambda _: None)
        def denied():
            calls.append(1)
            raise AuthError("denied")

        with pytest.raises(AuthError):
            denied()
        assert len(calls) == 1

    def test_retry_condition(self):
        calls = []

        @retry_with_backoff(
            max_retries=3,
            retry_condition=lambda exc: getattr(exc, "status_code", None) != 501,
            sleep=lambda _: None,
        )
        def not_implemented():
            calls.append(1)
            raise ServerError("not implemented", status_code=501)

        with pytest.raises(ServerError):
            not_implemented()
        assert len(calls) == 1

    def test_min_delay_for(self):
        sleeps = []
        attempts = {"count": 0}

        @retry_with_backoff(
            max_retries=1,
            initial_delay=0.1,
            max_delay=30,
            min_delay_for=lambda exc: getattr(exc, "retry_after", None),
            sleep=sleeps.append,
        )
        def rate_limited():
            attempts["count"] += 1
            if attempts["count"] == 1:
                raise ServerError("slow down", status_code=429, retry_after=7)
            return "done"

        assert rate_limited() == "done"
        assert sleeps == [7]


class TestTraced:
    """Test span wrapping."""

    def test_returns_result_and_preserves_name(self):
        @traced(span_name="lakequery.test", attributes={"static": "yes", "skip": None})
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"

    def test_reraises_errors(self):
        @traced(attribute_getter=lambda value: {"value": value})
        def explode(value):
            raise ValueError(value)

        with pytest.raises(ValueError):
            explode("boom")

    def test_span_attributes_from_arguments_and_result(self):
        tracer = MagicMock()
        span = tracer.start_as_current_span.return_value.__enter__.return_value

        @traced(
            span_name="lakequery.client.submit",
            attribute_getter=lambda sql: {"db.statement": sql},
            result_attributes=lambda job_id: {"lakequery.job_id": job_id},
        )
        def submit(sql):
            return "job-1"

        with patch("lakequery.utils.decorators.get_tracer", return_value=tracer):
            assert submit("SELECT 1") == "job-1"

        tracer.start_as_current_span.assert_called_once()
        assert tracer.start_as_current_span.call_args.args[0] == "lakequery.client.submit"
        span.set_attribute.assert_any_call("db.statement", "SELECT 1")
        span.set_attribute.assert_any_call("lakequery.job_id", "job-1")

    def test_failure_records_error_code(self):
        tracer = MagicMock()
        span = tracer.start_as_current_span.return_value.__enter__.return_value

        @traced()
        def denied():
            raise AuthError("denied")

        with patch("lakequery.utils.decorators.get_tracer", return_value=tracer):
            with pytest.raises(AuthError):
                denied()

        span.record_exception.assert_called_once()
        span.set_attribute.assert_any_call("error.type", "AuthError")
        span.set_attribute.assert_any_call("lakequery.error_code", "CONNECTION_002")
