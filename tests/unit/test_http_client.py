"""Tests for the REST job client and its error translation."""

import json
from decimal import Decimal
from unittest.mock import Mock

import pytest
import requests

from conftest import FakeClock, make_settings
from lakequery.client import BearerTokenAuth, JobClient, PasswordLoginAuth
from lakequery.common.exceptions import (
    AuthError,
    ErrorCode,
    JobNotFoundError,
    QueryExecutionError,
    ServerError,
    SQLSyntaxError,
    TransportError,
)
from lakequery.constants import JobState
from lakequery.execution.cancellation import CancellationToken, Deadline


def _response(status: int, body=None, headers=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(body).encode("utf-8") if body is not None else b""
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


class TestJobClient:
    """Test job operations against a mocked HTTP session."""

    @pytest.fixture
    def session(self):
        return Mock(spec=requests.Session)

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def client(self, session, sleeps):
        settings = make_settings(auth_token="secret-token", max_retries=2)
        return JobClient(settings, session=session, sleep=sleeps.append)

    def test_submit_returns_job_id(self, client, session):
        session.request.return_value = _response(200, {"id": "abc-123"})

        assert client.submit("SELECT 1") == "abc-123"

        args, kwargs = session.request.call_args
        assert args == ("POST", "http://engine.test:9047/api/v3/sql")
        assert kwargs["json"] == {"sql": "SELECT 1"}
        assert isinstance(kwargs["auth"], BearerTokenAuth)

    def test_submit_syntax_error_is_not_retried(self, client, session):
        session.request.return_value = _response(
            400, {"errorMessage": "Failure parsing the query."}
        )

        with pytest.raises(SQLSyntaxError) as exc_info:
            client.submit("SELEC 1")

        assert exc_info.value.message == "Failure parsing the query."
        assert session.request.call_count == 1

    def test_status_normalizes_remote_state(self, client, session):
        session.request.return_value = _response(
            200, {"id": "j1", "jobState": "ENQUEUED", "rowCount": 0}
        )

        job = client.status("j1")

        assert job.state is JobState.PENDING
        assert job.row_count == 0

    def test_status_reports_failed_job_message(self, client, session):
        session.request.return_value = _response(
            200, {"id": "j1", "jobState": "FAILED", "errorMessage": "Table 'x' not found"}
        )

        job = client.status("j1")

        assert job.state is JobState.FAILED
        assert job.error_message == "Table 'x' not found"

    def test_unknown_job_is_not_found(self, client, session):
        session.request.return_value = _response(404, {"errorMessage": "Job not found"})

        with pytest.raises(JobNotFoundError):
            client.status("missing")
        assert session.request.call_count == 1

    def test_server_error_is_retried_then_succeeds(self, client, session, sleeps):
        session.request.side_effect = [
            _response(503, {"errorMessage": "busy"}),
            _response(200, {"id": "j1", "jobState": "RUNNING"}),
        ]

        job = client.status("j1")

        assert job.state is JobState.RUNNING
        assert session.request.call_count == 2
        assert len(sleeps) == 1

    def test_server_error_exhausts_retries(self, client, session):
        session.request.return_value = _response(500, {"errorMessage": "boom"})

        with pytest.raises(ServerError) as exc_info:
            client.status("j1")

        assert exc_info.value.status_code == 500
        assert session.request.call_count == 3

    def test_connection_failure_is_transport_error(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError) as exc_info:
            client.submit("SELECT 1")

        assert exc_info.value.is_retryable
        assert session.request.call_count == 3

    def test_auth_failure_is_not_retried(self, client, session):
        session.request.return_value = _response(401, {"errorMessage": "Unauthorized"})

        with pytest.raises(AuthError):
            client.submit("SELECT 1")
        assert session.request.call_count == 1

    def test_rate_limit_honours_retry_after(self, session, sleeps):
        settings = make_settings(
            auth_token="t", max_retries=1, retry_initial_delay=0.1, retry_max_delay=10.0
        )
        client = JobClient(settings, session=session, sleep=sleeps.append)
        session.request.side_effect = [
            _response(429, {"errorMessage": "slow down"}, headers={"Retry-After": "3"}),
            _response(200, {"id": "j1"}),
        ]

        assert client.submit("SELECT 1") == "j1"
        assert sleeps == [3.0]

    def test_rate_limit_error_code(self, client, session):
        session.request.return_value = _response(429, {"errorMessage": "slow down"})

        with pytest.raises(ServerError) as exc_info:
            client.submit("SELECT 1")
        assert exc_info.value.error_code is ErrorCode.RATE_LIMIT_ERROR

    def test_fetch_page_keeps_decimals_exact(self, client, session):
        response = _response(200)
        # raw text, json.dumps would round the number
        response._content = (
            b'{"schema": [{"name": "amount", "type": {"name": "DECIMAL"}}],'
            b' "rows": [[12345678901234567890.5]], "rowCount": 1}'
        )
        session.request.return_value = response

        page = client.fetch_page("j1", offset=0, limit=100)

        assert page.raw_rows[0][0] == Decimal("12345678901234567890.5")
        assert page.total_row_count == 1
        _, kwargs = session.request.call_args
        assert kwargs["params"] == {"offset": 0, "limit": 100}

    def test_invalid_json_body(self, client, session):
        response = _response(200)
        response._content = b"<html>gateway</html>"
        session.request.return_value = response

        with pytest.raises(QueryExecutionError):
            client.status("j1")

    def test_cancel_failure_is_swallowed(self, client, session):
        session.request.return_value = _response(500, {"errorMessage": "nope"})

        assert client.cancel("j1") is False
        assert session.request.call_count == 1

    def test_cancel_success(self, client, session):
        session.request.return_value = _response(200, {})

        assert client.cancel("j1") is True
        args, _ = session.request.call_args
        assert args == ("POST", "http://engine.test:9047/api/v3/job/j1/cancel")

    def test_cancel_during_retry_stops_retrying(self, client, session, sleeps):
        token = CancellationToken()

        def busy_then_cancel(*args, **kwargs):
            token.cancel()
            return _response(503, {"errorMessage": "busy"})

        session.request.side_effect = busy_then_cancel

        with pytest.raises(ServerError):
            client.status("j1", token=token)
        assert session.request.call_count == 1
        assert sleeps == []

    def test_retry_pause_waits_on_token(self, client, session):
        token = CancellationToken()
        waits = []

        def wait_then_cancel(seconds):
            waits.append(seconds)
            token.cancel()
            return True

        token.wait = wait_then_cancel
        session.request.return_value = _response(503, {"errorMessage": "busy"})

        with pytest.raises(ServerError):
            client.fetch_page("j1", offset=0, limit=10, token=token)
        assert len(waits) == 1
        assert session.request.call_count == 1

    def test_retry_pause_is_clipped_to_deadline(self, session, sleeps):
        settings = make_settings(
            auth_token="t", max_retries=1, retry_initial_delay=2.0, retry_max_delay=10.0
        )
        client = JobClient(settings, session=session, sleep=sleeps.append)
        clock = FakeClock()
        deadline = Deadline(0.5, clock=clock)
        session.request.side_effect = [
            _response(503, {"errorMessage": "busy"}),
            _response(200, {"id": "j1"}),
        ]

        assert client.submit("SELECT 1", deadline=deadline) == "j1"
        assert sleeps == [0.5]

    def test_expired_deadline_stops_retrying(self, client, session, sleeps):
        clock = FakeClock()
        deadline = Deadline(1.0, clock=clock)

        def timeout_after_clock_moves(*args, **kwargs):
            clock.advance(2.0)
            raise requests.exceptions.ReadTimeout("read timed out")

        session.request.side_effect = timeout_after_clock_moves

        with pytest.raises(TransportError):
            client.status("j1", deadline=deadline)
        assert session.request.call_count == 1
        assert sleeps == []

    def test_probe_does_not_retry(self, client, session):
        session.request.return_value = _response(503, {"errorMessage": "down"})

        with pytest.raises(ServerError):
            client.probe()
        assert session.request.call_count == 1


class TestPasswordLogin:
    """Test username/password session tokens."""

    def test_token_fetched_once_and_sent(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = _response(200, {"token": "abc"})
        auth = PasswordLoginAuth(session, "http://engine.test/apiv2/login", "ana", "pw", timeout=1)

        first, second = Mock(headers={}), Mock(headers={})
        auth(first)
        auth(second)

        assert first.headers["Authorization"] == "_dremioabc"
        assert second.headers["Authorization"] == "_dremioabc"
        session.post.assert_called_once()
        assert session.post.call_args.kwargs["json"] == {"userName": "ana", "password": "pw"}

    def test_invalidate_forces_new_login(self):
        session = Mock(spec=requests.Session)
        session.post.side_effect = [_response(200, {"token": "one"}), _response(200, {"token": "two"})]
        auth = PasswordLoginAuth(session, "http://engine.test/apiv2/login", "ana", "pw", timeout=1)

        assert auth.token == "one"
        auth.invalidate()
        assert auth.token == "two"

    def test_rejected_login_raises_auth_error(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = _response(401, {"errorMessage": "bad credentials"})
        auth = PasswordLoginAuth(session, "http://engine.test/apiv2/login", "ana", "pw", timeout=1)

        with pytest.raises(AuthError):
            auth.token

    def test_login_server_error_is_retryable(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = _response(503, {"errorMessage": "starting up"})
        auth = PasswordLoginAuth(session, "http://engine.test/apiv2/login", "ana", "pw", timeout=1)

        with pytest.raises(ServerError) as exc_info:
            auth.token

        assert exc_info.value.is_retryable
        assert exc_info.value.status_code == 503

    def test_login_rate_limit_carries_retry_after(self):
        session = Mock(spec=requests.Session)
        session.post.return_value = _response(429, {}, headers={"Retry-After": "2"})
        auth = PasswordLoginAuth(session, "http://engine.test/apiv2/login", "ana", "pw", timeout=1)

        with pytest.raises(ServerError) as exc_info:
            auth.token

        assert exc_info.value.retry_after == 2.0
        assert exc_info.value.error_code is ErrorCode.RATE_LIMIT_ERROR

    def test_client_logs_in_again_after_401(self):
        session = Mock(spec=requests.Session)
        settings = make_settings(username="ana", password="pw")
        client = JobClient(settings, session=session, sleep=lambda _: None)
        session.request.side_effect = [
            _response(401, {"errorMessage": "expired"}),
            _response(200, {"id": "j9"}),
        ]

        assert client.submit("SELECT 1") == "j9"
        assert session.request.call_count == 2
        assert isinstance(session.request.call_args.kwargs["auth"], PasswordLoginAuth)
