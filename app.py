"""
FOAMWatch - A web interface for monitoring OpenFOAM solver logs.

This module provides a Flask-based web interface for configuring and running
the convergence monitor, and for fetching its rendered charts and plot data.
"""

# Standard library imports
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

# Third-party imports
from flask import Flask, Response, jsonify, render_template_string, request
from pydantic import ValidationError

# Local application imports
from foamwatch.config import MonitorConfig, load_config, save_config
from foamwatch.monitor.service import monitor_service
from foamwatch.security import validate_path
from foamwatch.utils import sanitize_error

# Initialize Flask application
app = Flask(__name__)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("FOAMWatch")

# Global configuration
CONFIG: Optional[Dict[str, Any]] = None
CASE_ROOT: Optional[str] = None

CONFIG = load_config()
CASE_ROOT = CONFIG["CASE_ROOT"]

TEMPLATE_FILE = Path(__file__).parent / "static" / "html" / "foamwatch_frontend.html"
try:
    with TEMPLATE_FILE.open("r", encoding="utf-8") as f:
        TEMPLATE = f.read()
except OSError as e:
    logger.error(
        "[FOAMWatch] Failed to load template file %s: %s", TEMPLATE_FILE, str(e)
    )
    TEMPLATE = "<html><body>FOAMWatch: error loading template</body></html>"


def current_monitor_config() -> MonitorConfig:
    """Build the monitor configuration stored in CONFIG, falling back to defaults."""
    try:
        return MonitorConfig(**CONFIG.get("MONITOR", {}))
    except ValidationError as e:
        logger.warning("[FOAMWatch] Stored monitor config is invalid: %s", str(e))
        return MonitorConfig()


def validated_monitor_config(data: Dict[str, Any]) -> MonitorConfig:
    """
    Merge form data into the stored config and validate it.

    The log file must live under CASE_ROOT; it may not exist yet.

    Raises:
        ValueError: If a value is invalid or the path escapes CASE_ROOT.
        PermissionError: If the path resolves outside CASE_ROOT.
    """
    merged = {**current_monitor_config().model_dump(), **data}
    config = MonitorConfig(**merged)
    log_path = validate_path(config.log_file, CASE_ROOT, allow_new=True)
    return config.model_copy(update={"log_file": str(log_path)})


def error_response(e: Exception, status: int = 400) -> Tuple[Response, int]:
    return jsonify({"success": False, "message": sanitize_error(e)}), status


# --- Routes ---
@app.route("/")
def index() -> str:
    """Render the configuration form and live view.

    Returns:
        Rendered HTML template with the current monitor configuration.
    """
    config = current_monitor_config()
    return render_template_string(
        TEMPLATE,
        config=config,
        fields=", ".join(config.fields),
        CASE_ROOT=CASE_ROOT,
    )


@app.route("/api/monitor/config", methods=["GET"])
def api_get_monitor_config() -> Response:
    """Get the stored monitor configuration."""
    return jsonify({"config": current_monitor_config().model_dump(), "caseRoot": CASE_ROOT})


@app.route("/api/monitor/config", methods=["POST"])
def api_set_monitor_config() -> Union[Response, Tuple[Response, int]]:
    """Validate and save the monitor configuration."""
    try:
        data = request.get_json(silent=True)
        if not data or not isinstance(data, dict):
            return jsonify({"success": False, "message": "No configuration data provided"}), 400

        config = validated_monitor_config(data)
        CONFIG["MONITOR"] = config.model_dump()
        if not save_config({"MONITOR": CONFIG["MONITOR"]}):
            logger.warning("[FOAMWatch] Monitor config applied but not persisted")

        return jsonify({"success": True, "config": CONFIG["MONITOR"]})
    except (ValueError, PermissionError, FileNotFoundError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error in api_set_monitor_config: {e}", exc_info=True)
        return jsonify({"success": False, "message": "An internal error occurred."}), 500


@app.route("/api/monitor/start", methods=["POST"])
def api_start_monitor() -> Union[Response, Tuple[Response, int]]:
    """Start the background monitor, optionally with new settings."""
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"success": False, "message": "Configuration must be a JSON object"}), 400
        config = validated_monitor_config(data)

        if not monitor_service.start(config):
            return jsonify({"success": False, "message": "Monitor is already running"}), 409

        return jsonify({"success": True, "message": f"Monitoring {config.log_file}"})
    except (ValueError, PermissionError, FileNotFoundError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error in api_start_monitor: {e}", exc_info=True)
        return jsonify({"success": False, "message": "An internal error occurred."}), 500


@app.route("/api/monitor/stop", methods=["POST"])
def api_stop_monitor() -> Union[Response, Tuple[Response, int]]:
    """Stop the background monitor."""
    try:
        if not monitor_service.is_running():
            return jsonify({"success": False, "message": "Monitor is not running"}), 409

        stopped = monitor_service.stop()
        return jsonify({"success": stopped})
    except Exception as e:
        logger.error(f"Error in api_stop_monitor: {e}", exc_info=True)
        return jsonify({"success": False, "message": "An internal error occurred."}), 500


@app.route("/api/monitor/status", methods=["GET"])
def api_monitor_status() -> Response:
    """
    Get the monitor status.

    Returns:
        JSON response with running flag, state and last status message.
    """
    return jsonify(monitor_service.status())


@app.route("/api/monitor/data", methods=["GET"])
def api_monitor_data() -> Union[Response, Tuple[Response, int]]:
    """
    Get the windowed plot data of the last poll.
    """
    try:
        snapshot = monitor_service.snapshot()
        if snapshot is None:
            return jsonify({"error": "No data yet"}), 404
        return jsonify(snapshot.series.to_dict())
    except Exception as e:
        logger.error(f"Error getting monitor data: {e}", exc_info=True)
        return jsonify({"error": "An internal error occurred."}), 500


@app.route("/api/monitor/plot", methods=["GET"])
def api_monitor_plot() -> Union[Response, Tuple[Response, int]]:
    """
    Get the last rendered chart as a base64-encoded PNG.
    """
    snapshot = monitor_service.snapshot()
    if snapshot is None or snapshot.image is None:
        return jsonify({"success": False, "error": "No plot rendered yet"}), 404
    return jsonify({
        "success": True,
        "image": f"data:image/png;base64,{snapshot.image}",
        "latest_time": snapshot.series.latest_time,
    })


def main() -> None:
    global CONFIG, CASE_ROOT
    CONFIG = load_config()
    CASE_ROOT = CONFIG["CASE_ROOT"]

    Path(CASE_ROOT).mkdir(parents=True, exist_ok=True)

    host = os.environ.get("FLASK_HOST", "127.0.0.1")
    app.run(host=host, port=5000, debug=False)


if __name__ == "__main__":
    main()
