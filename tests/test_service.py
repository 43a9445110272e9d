import threading
import time
from unittest.mock import patch

import pytest

from foamwatch.monitor import service as service_module
from foamwatch.monitor.service import MonitorService
from foamwatch.plots.renderer import ConvergenceRenderer


def _wait_for(predicate, timeout=10.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return False


@pytest.fixture
def service():
    svc = MonitorService()
    yield svc
    svc.stop()


def test_status_before_start(service):
    status = service.status()
    assert status["running"] is False
    assert status["message"] == "Not started"
    assert "snapshot" not in status
    assert service.snapshot() is None


def test_stop_without_start(service):
    assert service.stop() is False


def test_start_publishes_snapshot(service, monitor_config):
    assert service.start(monitor_config) is True
    assert _wait_for(lambda: service.snapshot() is not None)

    snapshot = service.snapshot()
    assert snapshot.series.times == [1e-06, 2e-06]
    assert snapshot.image
    status = service.status()
    assert status["running"] is True
    assert status["log_file"] == monitor_config.log_file
    assert status["snapshot"]["latest_time"] == "2e-06"


def test_start_twice_is_refused(service, monitor_config):
    assert service.start(monitor_config) is True
    assert service.start(monitor_config) is False


def test_stop_ends_thread(service, monitor_config):
    service.start(monitor_config)
    assert service.stop() is True
    assert service.is_running() is False


def test_concurrent_starts_launch_one_monitor(service, monitor_config):
    def slow_renderer(*args, **kwargs):
        time.sleep(0.2)
        return ConvergenceRenderer(*args, **kwargs)

    results = []
    barrier = threading.Barrier(2)

    def start():
        barrier.wait()
        results.append(service.start(monitor_config))

    with patch.object(service_module, "ConvergenceRenderer", side_effect=slow_renderer) as mock_renderer:
        callers = [threading.Thread(target=start) for _ in range(2)]
        for caller in callers:
            caller.start()
        for caller in callers:
            caller.join(timeout=10)

    assert sorted(results) == [False, True]
    assert service.is_running()
    mock_renderer.assert_called_once()
