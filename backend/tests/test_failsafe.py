import pytest

from local_planner.failsafe import FailsafeMonitor, MavState
from local_planner.models import PlannerParameters


@pytest.fixture
def monitor():
    return FailsafeMonitor(PlannerParameters(timeout_startup=5.0, timeout_critical=0.5, timeout_termination=15.0))


def test_fresh_data_is_active(monitor):
    status = monitor.check(since_last_cloud=0.1, since_start=100.0)
    assert status.state == MavState.ACTIVE
    assert status.healthy and not status.hover


def test_stale_data_hovers(monitor):
    status = monitor.check(since_last_cloud=1.0, since_start=100.0)
    assert status.state == MavState.CRITICAL
    assert status.healthy and status.hover
    assert monitor.state == MavState.CRITICAL


def test_long_dropout_terminates(monitor):
    status = monitor.check(since_last_cloud=20.0, since_start=100.0)
    assert status.state == MavState.FLIGHT_TERMINATION
    assert not status.healthy


def test_startup_grace_period(monitor):
    status = monitor.check(since_last_cloud=3.0, since_start=3.0)
    assert status.state == MavState.ACTIVE
    assert not status.hover


def test_recovers_when_data_returns(monitor):
    monitor.check(since_last_cloud=1.0, since_start=100.0)
    status = monitor.check(since_last_cloud=0.0, since_start=101.0)
    assert status.state == MavState.ACTIVE
    assert monitor.state == MavState.ACTIVE


def test_missing_position_hovers(monitor):
    status = monitor.check(since_last_cloud=0.0, since_start=100.0, position_received=False)
    assert status.hover
