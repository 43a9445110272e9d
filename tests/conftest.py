"""
Pytest configuration and fixtures for FOAMWatch tests.
"""
import sys
from pathlib import Path

import pytest
from flask import Flask

# Add the project root to the Python path
sys.path.append(str(Path(__file__).parent.parent))

# Import the app after adding the project root to the path
import app as flask_app
from foamwatch.config import MonitorConfig


SAMPLE_LOG = """\
Starting time loop

Courant Number mean: 0.01 max: 0.02
deltaT = 1e-06
Time = 1e-06

PIMPLE: iteration 1
smoothSolver:  Solving for Ux, Initial residual = 1, Final residual = 2.1e-07, No Iterations 2
smoothSolver:  Solving for Uy, Initial residual = 0.5, Final residual = 1e-07, No Iterations 2
DILUPBiCGStab:  Solving for OH, Initial residual = 0, Final residual = 0, No Iterations 0
DILUPBiCGStab:  Solving for CO, Initial residual = 0.02, Final residual = 3e-10, No Iterations 1
DILUPBiCGStab:  Solving for h, Initial residual = 0.003, Final residual = 1e-09, No Iterations 1
min/max(T) = 293, 2773.05
DICPCG:  Solving for p, Initial residual = 0.9, Final residual = 0.0001, No Iterations 12
ExecutionTime = 0.5 s  ClockTime = 1 s

Courant Number mean: 0.011 max: 0.021
deltaT = 1e-06
Time = 2e-06

PIMPLE: iteration 1
smoothSolver:  Solving for Ux, Initial residual = 0.00473474, Final residual = 1.98e-07, No Iterations 2
smoothSolver:  Solving for Uy, Initial residual = 0.0021, Final residual = 9.1e-08, No Iterations 2
min/max(T) = 293, 2780.5
DICPCG:  Solving for p, Initial residual = 0.05, Final residual = 2e-06, No Iterations 9
ExecutionTime = 0.9 s  ClockTime = 2 s
"""


@pytest.fixture
def sample_log(tmp_path) -> Path:
    """Write a two-step reactingFoam style log."""
    log_file = tmp_path / "log.reactingFoam"
    log_file.write_text(SAMPLE_LOG)
    return log_file


@pytest.fixture
def monitor_config(sample_log) -> MonitorConfig:
    """Monitor settings pointing at the sample log with short waits."""
    return MonitorConfig(
        log_file=str(sample_log),
        fields=["Ux", "Uy", "p", "OH", "CO", "h"],
        plot_steps=500,
        reset_interval=3,
        poll_interval=0.01,
        missing_file_wait=0.01,
        no_steps_wait=0.01,
    )


@pytest.fixture
def app(tmp_path, monkeypatch) -> Flask:
    """Configure the app against a temporary case root."""
    case_root = tmp_path / "cases"
    case_root.mkdir()
    monkeypatch.setattr(flask_app, "CASE_ROOT", str(case_root))
    monkeypatch.setattr(
        flask_app, "CONFIG", {"CASE_ROOT": str(case_root), "MONITOR": MonitorConfig().model_dump()}
    )
    # Keep tests from writing monitor_config.json into the working directory
    monkeypatch.setattr(flask_app, "save_config", lambda updates: True)
    flask_app.app.config["TESTING"] = True
    return flask_app.app


@pytest.fixture
def client(app):
    """A test client for the app."""
    with app.test_client() as testing_client:
        yield testing_client
