"""
Selection of the most recent time steps and their plot-ready series.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from foamwatch.monitor.store import MonitorContext

# Log axes cannot show zero; a zero residual is drawn at this value instead
RESIDUAL_FLOOR = 1e-16


def select_recent_times(times: Sequence[float], plot_steps: int) -> List[float]:
    """
    Return the last ``plot_steps`` entries of ``times``.

    The window counts occurrences, not distinct values: a time printed twice
    takes two slots.
    """
    if plot_steps <= 0:
        return []
    if len(times) < plot_steps:
        return list(times)
    return list(times[-plot_steps:])


def residual_floor(values: np.ndarray) -> np.ndarray:
    """Replace exact zeros with RESIDUAL_FLOOR, leaving NaN gaps alone."""
    return np.where(values == 0, RESIDUAL_FLOOR, values)


def _to_json_list(values: np.ndarray) -> List[Optional[float]]:
    return [None if math.isnan(v) else float(v) for v in values.tolist()]


class WindowSeries:
    """Arrays aligned to a window of time keys, NaN where a step has no value."""

    def __init__(
        self,
        times: List[float],
        initial: Dict[str, np.ndarray],
        final: Dict[str, np.ndarray],
        max_temperature: np.ndarray,
        courant_mean: np.ndarray,
        courant_max: np.ndarray,
        latest_time: Optional[str] = None,
    ) -> None:
        self.times = times
        self.initial = initial
        self.final = final
        self.max_temperature = max_temperature
        self.courant_mean = courant_mean
        self.courant_max = courant_max
        self.latest_time = latest_time

    @property
    def fields(self) -> List[str]:
        return list(self.initial.keys())

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly form; NaN becomes None."""
        return {
            "time": list(self.times),
            "latest_time": self.latest_time,
            "residuals": {
                field: {
                    "initial": _to_json_list(self.initial[field]),
                    "final": _to_json_list(self.final[field]),
                }
                for field in self.initial
            },
            "max_temperature": _to_json_list(self.max_temperature),
            "courant_mean": _to_json_list(self.courant_mean),
            "courant_max": _to_json_list(self.courant_max),
        }


def _lookup(mapping: Dict[float, float], window: List[float]) -> np.ndarray:
    return np.array([mapping.get(t, np.nan) for t in window], dtype=float)


def build_window_series(
    context: MonitorContext, window: List[float], fields: Optional[List[str]] = None
) -> WindowSeries:
    """
    Build the plot arrays for ``window`` from the aggregate store.

    Residual arrays have zeros floored for log scale; the stored values are
    left untouched.
    """
    if fields is None:
        fields = context.fields

    initial: Dict[str, np.ndarray] = {}
    final: Dict[str, np.ndarray] = {}
    n = len(window)

    for field in fields:
        data = context.residuals.get(field, {})
        i_res = np.full(n, np.nan)
        f_res = np.full(n, np.nan)
        for idx, t in enumerate(window):
            pair = data.get(t)
            if pair is not None:
                i_res[idx], f_res[idx] = pair
        initial[field] = residual_floor(i_res)
        final[field] = residual_floor(f_res)

    return WindowSeries(
        times=list(window),
        initial=initial,
        final=final,
        max_temperature=_lookup(context.max_temperature, window),
        courant_mean=_lookup(context.courant_mean, window),
        courant_max=_lookup(context.courant_max, window),
        latest_time=context.latest_time_label(),
    )
