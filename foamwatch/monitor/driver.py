"""
Polling driver for the convergence monitor.

Each poll reads the log, records new time steps, selects the display window
and renders it, then waits. After ``reset_interval`` polls all state and the
render surface are discarded and rebuilt, which bounds memory for monitors
left running for days.
"""

import enum
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from foamwatch.config import MonitorConfig
from foamwatch.log.reader import LogReader
from foamwatch.monitor.store import MonitorContext
from foamwatch.monitor.windowing import WindowSeries, build_window_series, select_recent_times
from foamwatch.utils import format_seconds

logger = logging.getLogger("FOAMWatch")


class MonitorState(enum.Enum):
    INIT = "init"
    POLL = "poll"
    RETRY_MISSING_FILE = "retry_missing_file"
    RETRY_NO_STEPS = "retry_no_steps"
    PROCESS = "process"
    RENDER = "render"
    WAIT = "wait"
    RESET = "reset"


class MonitorSnapshot:
    """Immutable view of the monitor after a render, safe to hand to other threads."""

    def __init__(
        self,
        series: WindowSeries,
        image: Optional[str],
        status: str,
        cycle: int,
        poll_count: int,
        recorded_steps: int,
    ) -> None:
        self.series = series
        self.image = image
        self.status = status
        self.cycle = cycle
        self.poll_count = poll_count
        self.recorded_steps = recorded_steps
        self.created = time.time()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "cycle": self.cycle,
            "poll_count": self.poll_count,
            "recorded_steps": self.recorded_steps,
            "latest_time": self.series.latest_time,
            "window_size": len(self.series.times),
            "created": self.created,
        }


class MonitorDriver:
    """
    State machine: INIT -> POLL -> (RETRY_MISSING_FILE | RETRY_NO_STEPS | PROCESS)
    -> RENDER -> WAIT -> POLL, with RESET back to INIT every ``reset_interval`` polls.
    """

    def __init__(
        self,
        config: MonitorConfig,
        renderer: Optional[Any] = None,
        on_snapshot: Optional[Callable[[MonitorSnapshot], None]] = None,
    ) -> None:
        self.config = config
        self.renderer = renderer
        self.on_snapshot = on_snapshot
        self.reader = LogReader(config.log_file)
        self.context = MonitorContext(config.fields)
        self.state = MonitorState.INIT
        self.status = "Initializing..."
        self.cycle = 0
        self.poll_count = 0
        self.last_snapshot: Optional[MonitorSnapshot] = None

    def initialize(self) -> None:
        """Enter INIT: fresh aggregate state, fresh file view, no figure."""
        self.context.reset()
        self.reader.forget()
        if self.renderer is not None:
            self.renderer.close()
        self.poll_count = 0
        self.cycle += 1
        self.state = MonitorState.INIT
        logger.info(f"[FOAMWatch] Monitoring {self.config.log_file} (cycle {self.cycle})")

    def _set_status(self, message: str, level: int = logging.INFO) -> None:
        self.status = message
        logger.log(level, f"[FOAMWatch] {message}")

    def poll(self) -> float:
        """
        Run one poll from POLL through RENDER, or into a retry state.

        Returns:
            Seconds to wait before the next poll.
        """
        if self.state in (MonitorState.INIT, MonitorState.RESET):
            self.initialize()

        self.state = MonitorState.POLL
        self.poll_count += 1

        snapshot = self.reader.read()
        if snapshot is None:
            self.state = MonitorState.RETRY_MISSING_FILE
            self._set_status(
                f"Log file not found: {self.config.log_file}. "
                f"Retrying in {format_seconds(self.config.missing_file_wait)}"
            )
            return self.config.missing_file_wait

        if snapshot.truncated:
            logger.info("[FOAMWatch] Log file was truncated, discarding collected data")
            self.context.reset()

        self.state = MonitorState.PROCESS
        if snapshot.changed or not self.context.discovered:
            steps = self.context.process_log(snapshot.text)
        else:
            steps = self.context.discovered

        if not steps:
            self.state = MonitorState.RETRY_NO_STEPS
            self._set_status("No time steps found. Waiting...")
            return self.config.no_steps_wait

        self.state = MonitorState.RENDER
        window = select_recent_times(self.context.discovered_times(), self.config.plot_steps)
        series = build_window_series(self.context, window)

        image = None
        if self.renderer is not None:
            try:
                image = self.renderer.render(series)
            except Exception as e:
                logger.error(f"[FOAMWatch] Error rendering plots: {e}", exc_info=True)

        self._set_status(
            f"Latest Time = {series.latest_time}, "
            f"{len(self.context.seen_times)} steps recorded",
            level=logging.DEBUG,
        )
        self.last_snapshot = MonitorSnapshot(
            series=series,
            image=image,
            status=self.status,
            cycle=self.cycle,
            poll_count=self.poll_count,
            recorded_steps=len(self.context.seen_times),
        )
        if self.on_snapshot is not None:
            self.on_snapshot(self.last_snapshot)

        self.state = MonitorState.WAIT
        return self.config.poll_interval

    def after_wait(self) -> None:
        """Leave WAIT: schedule a reset once enough polls have run."""
        if self.state == MonitorState.WAIT and self.poll_count >= self.config.reset_interval:
            self.state = MonitorState.RESET
            logger.info("[FOAMWatch] ========== RESETTING MONITOR (timed restart) ==========")

    def wait(self, stop_event: threading.Event, delay: float) -> bool:
        """Sleep between polls. Returns True if ``stop_event`` was set."""
        if self.renderer is not None and self.renderer.interactive:
            return self.renderer.wait(stop_event, delay)
        return stop_event.wait(delay)

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Poll until ``stop_event`` is set.

        The event is checked before every poll and every wait returns as soon
        as it is set, so a stop request ends the loop immediately.
        """
        if stop_event is None:
            stop_event = threading.Event()

        try:
            while not stop_event.is_set():
                delay = self.poll()
                if self.wait(stop_event, delay):
                    break
                self.after_wait()
        finally:
            if self.renderer is not None:
                self.renderer.close()
            logger.info("[FOAMWatch] Monitor stopped")
