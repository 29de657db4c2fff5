"""Tests for the realtime database circuit breaker."""
from unittest.mock import Mock

import pytest
import requests

from clinic_slots.circuit_breaker import CircuitBreaker, DataSourceUnavailable
from clinic_slots.datasource import RealtimeDatabaseClient
from clinic_slots.errors import SlotAlreadyBooked
from clinic_slots.http_client import create_circuit_breaker, is_outage
from clinic_slots.models import Appointment
from tests.utils.dates import MONDAY


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _fail():
    raise ConnectionError("database down")


def _http_error(status_code):
    def raise_error():
        raise requests.exceptions.HTTPError(f"{status_code} Error", response=Mock(status_code=status_code))
    return raise_error


class TestCircuitBreaker:
    """Test circuit breaker behavior."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cb = CircuitBreaker(failure_threshold=3, cooldown=60, clock=self.clock)

    def _trip(self):
        for _ in range(3):
            with pytest.raises(ConnectionError):
                self.cb.call(_fail)

    def test_allows_requests_when_closed(self):
        """Should pass calls through while closed."""
        assert self.cb.call(lambda: "ok") == "ok"
        assert self.cb.state == "closed"

    def test_opens_after_threshold_failures(self):
        """Should open after 3 consecutive failures and stop calling."""
        self._trip()
        assert self.cb.state == "open"

        calls = []
        with pytest.raises(DataSourceUnavailable) as exc_info:
            self.cb.call(lambda: calls.append(1))

        assert calls == []
        assert exc_info.value.retry_after == pytest.approx(60)

    def test_success_resets_failure_count(self):
        """Failures must be consecutive to trip the circuit."""
        for _ in range(2):
            with pytest.raises(ConnectionError):
                self.cb.call(_fail)
        self.cb.call(lambda: "ok")
        with pytest.raises(ConnectionError):
            self.cb.call(_fail)

        assert self.cb.state == "closed"

    def test_half_open_failure_reopens(self):
        """A failed trial call re-opens the circuit."""
        self._trip()
        self.clock.now += 61

        with pytest.raises(ConnectionError):
            self.cb.call(_fail)

        assert self.cb.state == "open"

    def test_half_open_success_closes(self):
        """A successful trial call closes the circuit."""
        self._trip()
        self.clock.now += 61

        assert self.cb.call(lambda: "recovered") == "recovered"
        assert self.cb.state == "closed"
        assert self.cb.failure_count == 0

    def test_still_open_during_cooldown(self):
        self._trip()
        self.clock.now += 30

        with pytest.raises(DataSourceUnavailable) as exc_info:
            self.cb.call(lambda: "ok")

        assert exc_info.value.retry_after == pytest.approx(30)

    def test_reset_closes_circuit(self):
        self._trip()
        self.cb.reset()

        assert self.cb.state == "closed"
        assert self.cb.call(lambda: "ok") == "ok"


class TestClientErrorsDoNotTrip:
    """A 4xx answer means the database is up."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cb = CircuitBreaker(failure_threshold=3, cooldown=60, clock=self.clock, is_failure=is_outage)

    def test_conflicts_keep_circuit_closed(self):
        for _ in range(5):
            with pytest.raises(requests.exceptions.HTTPError):
                self.cb.call(_http_error(409))

        assert self.cb.state == "closed"
        assert self.cb.failure_count == 0

    def test_server_errors_still_trip(self):
        for _ in range(3):
            with pytest.raises(requests.exceptions.HTTPError):
                self.cb.call(_http_error(503))

        assert self.cb.state == "open"

    def test_rate_limit_counts_as_failure(self):
        assert is_outage(requests.exceptions.HTTPError(response=Mock(status_code=429)))
        assert not is_outage(requests.exceptions.HTTPError(response=Mock(status_code=404)))
        assert is_outage(requests.exceptions.ConnectionError("down"))

    def test_conflict_answer_closes_half_open_circuit(self):
        for _ in range(3):
            with pytest.raises(ConnectionError):
                self.cb.call(_fail)
        self.clock.now += 61

        with pytest.raises(requests.exceptions.HTTPError):
            self.cb.call(_http_error(409))

        assert self.cb.state == "closed"

    def test_rejected_bookings_leave_reads_working(self):
        session = Mock()
        session.post.side_effect = requests.exceptions.HTTPError("409 Conflict", response=Mock(status_code=409))
        session.get.return_value.json.return_value = {"firstName": "Ana", "isSpecialist": False}
        client = RealtimeDatabaseClient(
            base_url="https://clinic.example.com",
            auth_token=None,
            session=session,
            breaker=create_circuit_breaker()
        )
        appointment = Appointment(
            doctor_id="doc-gen", patient_id="pat-002", appointment_date=MONDAY, appointment_time="9:00 AM"
        )

        for _ in range(5):
            with pytest.raises(SlotAlreadyBooked):
                client.create_appointment(appointment)

        assert client.breaker.state == "closed"
        assert client.get_doctor_by_id("doc-gen").first_name == "Ana"
