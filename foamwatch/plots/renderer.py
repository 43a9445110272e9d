"""
Convergence chart rendering.
Draws residuals (log scale), maximum temperature and Courant numbers for the
current window, either into an interactive window or off screen to PNG.
"""

import base64
import logging
import math
import threading
import time
from io import BytesIO
from typing import Any, Optional, Tuple

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from foamwatch.monitor.windowing import WindowSeries

logger = logging.getLogger("FOAMWatch")

GRID_COLUMNS = 5
FIGURE_SIZE = (20, 9)
FONT_SIZE = 11
LINE_STYLE = {"linewidth": 1.3, "markersize": 7}
# Slice length for the GUI event loop while waiting between polls
PAUSE_STEP = 0.1


def grid_shape(n_fields: int) -> Tuple[int, int]:
    """Rows and columns for ``n_fields`` residual tiles plus the three fixed tiles."""
    tiles = n_fields + 3
    rows = max(2, math.ceil(tiles / GRID_COLUMNS))
    return rows, GRID_COLUMNS


def figure_title(latest_time: Optional[str]) -> str:
    if latest_time:
        return f"Convergence Monitor (latest Time = {latest_time})"
    return "Convergence Monitor"


class ConvergenceRenderer:
    """
    Owns the render surface for one monitoring cycle.

    With ``interactive`` True the figure is a pyplot window refreshed in
    place; otherwise an off-screen Agg figure whose PNG is returned by render().
    close() releases the figure; the next render() creates a new one.
    """

    def __init__(self, interactive: bool = False, dpi: int = 80) -> None:
        self.interactive = interactive
        self.dpi = dpi
        self.figure: Optional[Figure] = None

    def _ensure_figure(self) -> Figure:
        if self.interactive:
            import matplotlib.pyplot as plt

            # Recreate the window if the user closed it
            if self.figure is None or not plt.fignum_exists(self.figure.number):
                plt.ion()
                self.figure = plt.figure("OpenFOAM Convergence Monitor", figsize=FIGURE_SIZE)
            return self.figure

        if self.figure is None:
            self.figure = Figure(figsize=FIGURE_SIZE, dpi=self.dpi)
            FigureCanvasAgg(self.figure)
        return self.figure

    def draw(self, series: WindowSeries) -> Figure:
        """Redraw every tile of the figure from ``series``."""
        fig = self._ensure_figure()
        fig.clf()

        fields = series.fields
        rows, cols = grid_shape(len(fields))
        axes = fig.subplots(rows, cols, squeeze=False).ravel()
        times = series.times

        for ax, field in zip(axes, fields):
            ax.semilogy(times, series.initial[field], "-ob", label="Initial", **LINE_STYLE)
            ax.semilogy(times, series.final[field], "-sr", label="Final", **LINE_STYLE)
            ax.set_xlabel("Time")
            ax.set_ylabel("Residual")
            ax.set_title(f"Residuals: {field}")
            ax.legend(loc="best")
            self._style(ax)

        # Fixed diagnostics always occupy the last three tiles
        temp_ax, co_mean_ax, co_max_ax = axes[-3:]
        temp_ax.plot(times, series.max_temperature, "-om", **LINE_STYLE)
        temp_ax.set_xlabel("Time")
        temp_ax.set_ylabel("Max T [K]")
        temp_ax.set_title("Max Temperature")
        self._style(temp_ax)

        co_mean_ax.plot(times, series.courant_mean, "-ok", **LINE_STYLE)
        co_mean_ax.set_xlabel("Time")
        co_mean_ax.set_ylabel("Mean Co")
        co_mean_ax.set_title("Mean Courant Number")
        self._style(co_mean_ax)

        co_max_ax.plot(times, series.courant_max, "-sg", **LINE_STYLE)
        co_max_ax.set_xlabel("Time")
        co_max_ax.set_ylabel("Max Co")
        co_max_ax.set_title("Max Courant Number")
        self._style(co_max_ax)

        for ax in axes[len(fields):-3]:
            ax.set_visible(False)

        fig.suptitle(figure_title(series.latest_time), fontweight="bold", fontsize=15)
        fig.tight_layout()
        return fig

    @staticmethod
    def _style(ax: Any) -> None:
        ax.grid(True, which="both", alpha=0.5)
        ax.tick_params(labelsize=FONT_SIZE)
        ax.autoscale(enable=True, axis="x", tight=True)

    def render(self, series: WindowSeries) -> Optional[str]:
        """
        Draw the series and refresh the surface.

        Returns:
            Base64-encoded PNG for off-screen rendering, None for interactive.
        """
        fig = self.draw(series)

        if self.interactive:
            import matplotlib.pyplot as plt

            fig.canvas.draw_idle()
            # Lets the GUI event loop process the redraw
            plt.pause(0.001)
            return None

        buffered = BytesIO()
        fig.savefig(buffered, format="png")
        return base64.b64encode(buffered.getvalue()).decode()

    def wait(self, stop_event: threading.Event, delay: float) -> bool:
        """
        Wait up to ``delay`` seconds or until ``stop_event`` is set.

        An open interactive window keeps handling GUI events while waiting.

        Returns:
            True if the event was set.
        """
        if not self.interactive or self.figure is None:
            return stop_event.wait(delay)

        import matplotlib.pyplot as plt

        deadline = time.monotonic() + delay
        while not stop_event.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            if not plt.fignum_exists(self.figure.number):
                return stop_event.wait(remaining)
            plt.pause(min(PAUSE_STEP, remaining))
        return True

    def close(self) -> None:
        """Release the figure."""
        if self.figure is None:
            return
        if self.interactive:
            import matplotlib.pyplot as plt

            plt.close(self.figure)
        else:
            self.figure.clf()
        self.figure = None
