"""
Tests for the FOAMWatch application endpoints.
"""
import os
from unittest.mock import MagicMock, patch

import pytest

import app as flask_app
from foamwatch.monitor.store import MonitorContext
from foamwatch.monitor.windowing import build_window_series


def _snapshot(image="aW1hZ2U="):
    context = MonitorContext(["Ux"])
    context.process_log(
        "Time = 1\nSolving for Ux, Initial residual = 0.1, Final residual = 0.01\nTime = 2\n"
    )
    snapshot = MagicMock()
    snapshot.series = build_window_series(context, context.discovered_times())
    snapshot.image = image
    return snapshot


def test_index_route(client):
    """Test the index route renders the configuration form."""
    response = client.get("/")
    assert response.status_code == 200
    assert b"FOAMWatch" in response.data
    assert b"log.reactingFoam" in response.data


def test_get_monitor_config(client):
    response = client.get("/api/monitor/config")
    assert response.status_code == 200
    data = response.get_json()
    assert data["config"]["plot_steps"] == 500
    assert data["caseRoot"] == flask_app.CASE_ROOT


def test_set_monitor_config(client):
    response = client.post(
        "/api/monitor/config",
        json={"log_file": "run1/log.reactingFoam", "fields": "Ux, p", "plot_steps": 100},
    )
    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["config"]["fields"] == ["Ux", "p"]
    assert data["config"]["plot_steps"] == 100
    assert data["config"]["log_file"].startswith(os.path.realpath(flask_app.CASE_ROOT))
    assert flask_app.CONFIG["MONITOR"]["plot_steps"] == 100


def test_set_monitor_config_no_data(client):
    response = client.post("/api/monitor/config", data="", content_type="application/json")
    assert response.status_code == 400
    assert response.get_json()["success"] is False


@pytest.mark.parametrize("body", [["Ux", "p"], "log.foamRun", 42])
def test_set_monitor_config_rejects_non_object(client, body):
    response = client.post("/api/monitor/config", json=body)
    assert response.status_code == 400
    assert response.get_json()["message"] == "No configuration data provided"


def test_start_monitor_rejects_non_object(client):
    with patch.object(flask_app.monitor_service, "start") as mock_start:
        response = client.post("/api/monitor/start", json=["log.foamRun"])
    assert response.status_code == 400
    mock_start.assert_not_called()


def test_set_monitor_config_invalid_value(client):
    response = client.post("/api/monitor/config", json={"plot_steps": 0})
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_set_monitor_config_rejects_traversal(client):
    response = client.post("/api/monitor/config", json={"log_file": "../../etc/passwd"})
    assert response.status_code == 400
    assert "traversal" in response.get_json()["message"]


def test_set_monitor_config_rejects_outside_case_root(client, tmp_path):
    response = client.post("/api/monitor/config", json={"log_file": str(tmp_path / "elsewhere.log")})
    assert response.status_code == 400
    # Absolute paths are not echoed back
    assert str(tmp_path) not in response.get_json()["message"]


def test_start_monitor(client):
    with patch.object(flask_app.monitor_service, "start", return_value=True) as mock_start:
        response = client.post("/api/monitor/start", json={"log_file": "log.foamRun"})

    assert response.status_code == 200
    assert response.get_json()["success"] is True
    config = mock_start.call_args[0][0]
    assert config.log_file.endswith("log.foamRun")
    assert config.log_file.startswith(os.path.realpath(flask_app.CASE_ROOT))


def test_start_monitor_already_running(client):
    with patch.object(flask_app.monitor_service, "start", return_value=False):
        response = client.post("/api/monitor/start", json={})
    assert response.status_code == 409


def test_start_monitor_invalid_fields(client):
    with patch.object(flask_app.monitor_service, "start") as mock_start:
        response = client.post("/api/monitor/start", json={"fields": "Ux;rm"})
    assert response.status_code == 400
    mock_start.assert_not_called()


def test_stop_monitor_not_running(client):
    with patch.object(flask_app.monitor_service, "is_running", return_value=False):
        response = client.post("/api/monitor/stop")
    assert response.status_code == 409


def test_stop_monitor(client):
    with patch.object(flask_app.monitor_service, "is_running", return_value=True), \
            patch.object(flask_app.monitor_service, "stop", return_value=True) as mock_stop:
        response = client.post("/api/monitor/stop")
    assert response.status_code == 200
    assert response.get_json()["success"] is True
    mock_stop.assert_called_once()


def test_monitor_status(client):
    status = {"running": False, "log_file": None, "state": None, "message": "Not started"}
    with patch.object(flask_app.monitor_service, "status", return_value=status):
        response = client.get("/api/monitor/status")
    assert response.status_code == 200
    assert response.get_json() == status


def test_monitor_data_before_first_poll(client):
    with patch.object(flask_app.monitor_service, "snapshot", return_value=None):
        response = client.get("/api/monitor/data")
    assert response.status_code == 404


def test_monitor_data(client):
    with patch.object(flask_app.monitor_service, "snapshot", return_value=_snapshot()):
        response = client.get("/api/monitor/data")

    assert response.status_code == 200
    data = response.get_json()
    assert data["time"] == [1.0, 2.0]
    assert data["residuals"]["Ux"]["initial"] == [0.1, None]
    assert data["latest_time"] == "2"


@pytest.mark.parametrize("snapshot", [None, _snapshot(image=None)])
def test_monitor_plot_not_ready(client, snapshot):
    with patch.object(flask_app.monitor_service, "snapshot", return_value=snapshot):
        response = client.get("/api/monitor/plot")
    assert response.status_code == 404


def test_monitor_plot(client):
    with patch.object(flask_app.monitor_service, "snapshot", return_value=_snapshot()):
        response = client.get("/api/monitor/plot")

    assert response.status_code == 200
    data = response.get_json()
    assert data["success"] is True
    assert data["image"] == "data:image/png;base64,aW1hZ2U="
    assert data["latest_time"] == "2"
