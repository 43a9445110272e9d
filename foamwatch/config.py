"""
Monitor configuration.
Validated settings for one monitoring session and the JSON config file used by
the web app.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, field_validator

from foamwatch.security import is_safe_field_name

logger = logging.getLogger("FOAMWatch")

CONFIG_FILE = Path("monitor_config.json")

DEFAULT_FIELDS = ["Ux", "Uy", "T", "p", "OH", "CO", "h"]


def parse_field_list(value: Union[str, List[str]]) -> List[str]:
    """Split a comma-separated field string, dropping blanks and duplicates."""
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise ValueError("Fields must be a list or a comma-separated string")
    fields: List[str] = []
    for item in items:
        name = str(item).strip()
        if name and name not in fields:
            fields.append(name)
    return fields


class MonitorConfig(BaseModel):
    log_file: str = Field(
        default="log.reactingFoam",
        description="Path to the solver log file",
    )
    fields: List[str] = Field(
        default_factory=lambda: list(DEFAULT_FIELDS),
        description="Fields whose residuals are plotted",
    )
    plot_steps: int = Field(default=500, ge=1, description="Number of recent time steps to plot")
    reset_interval: int = Field(
        default=50, ge=1, description="Poll cycles between full monitor resets"
    )
    poll_interval: float = Field(default=20.0, gt=0, description="Seconds between polls")
    missing_file_wait: float = Field(default=5.0, gt=0)
    no_steps_wait: float = Field(default=10.0, gt=0)

    @field_validator("log_file", mode="before")
    @classmethod
    def _clean_log_file(cls, value: Any) -> str:
        path = str(value).strip().strip('"').strip("'")
        if not path:
            raise ValueError("Log file path must not be empty")
        return str(Path(path).expanduser())

    @field_validator("fields", mode="before")
    @classmethod
    def _split_fields(cls, value: Any) -> List[str]:
        fields = parse_field_list(value)
        if not fields:
            raise ValueError("At least one field must be monitored")
        for field in fields:
            if not is_safe_field_name(field):
                raise ValueError(f"Invalid field name: {field}")
        return fields


def load_config(config_file: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Load the app configuration with sensible defaults.

    Returns:
        Dictionary with keys:
            - CASE_ROOT: directory the web form may pick log files from
            - MONITOR: MonitorConfig fields as a plain dictionary
    """
    defaults: Dict[str, Any] = {
        "CASE_ROOT": str(Path("cases").resolve()),
        "MONITOR": MonitorConfig().model_dump(),
    }

    if not config_file.exists():
        return defaults

    try:
        with config_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
        merged = {**defaults, **data}
        merged["MONITOR"] = {**defaults["MONITOR"], **data.get("MONITOR", {})}
        return merged
    except (json.JSONDecodeError, OSError, AttributeError) as e:
        logger.warning(
            "[FOAMWatch] Could not load config file: %s. Using defaults.", str(e)
        )
        return defaults


def save_config(updates: Dict[str, Any], config_file: Path = CONFIG_FILE) -> bool:
    """Merge ``updates`` into the config file.

    Returns:
        True if save was successful, False otherwise.
    """
    config = load_config(config_file)
    config.update(updates)

    try:
        with config_file.open("w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        return True
    except (OSError, TypeError) as e:
        logger.error("[FOAMWatch] Could not save config to %s: %s", config_file, str(e))
        return False
