"""
Background monitor for the web app.
Runs a MonitorDriver in a daemon thread and keeps the last published snapshot
for request handlers. Handlers never touch the driver's aggregate state.
"""

import logging
import threading
from typing import Any, Dict, Optional

from foamwatch.config import MonitorConfig
from foamwatch.monitor.driver import MonitorDriver, MonitorSnapshot
from foamwatch.plots.renderer import ConvergenceRenderer

logger = logging.getLogger("FOAMWatch")


class MonitorService:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        # Held from the running check through thread start, and during stop
        self._start_lock = threading.Lock()
        self._snapshot: Optional[MonitorSnapshot] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._driver: Optional[MonitorDriver] = None
        self.config: Optional[MonitorConfig] = None

    def _publish(self, snapshot: MonitorSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def _run(self, driver: MonitorDriver, stop_event: threading.Event) -> None:
        try:
            driver.run(stop_event)
        except Exception as e:
            logger.error(f"[FOAMWatch] Monitor thread crashed: {e}", exc_info=True)

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, config: MonitorConfig) -> bool:
        """
        Start monitoring with ``config``.

        Returns:
            False if a monitor is already running.
        """
        with self._start_lock:
            if self.is_running():
                return False

            with self._lock:
                self._snapshot = None
            self.config = config
            self._stop_event = threading.Event()
            self._driver = MonitorDriver(
                config, renderer=ConvergenceRenderer(interactive=False), on_snapshot=self._publish
            )
            self._thread = threading.Thread(
                target=self._run, args=(self._driver, self._stop_event), daemon=True
            )
            self._thread.start()
        logger.info(f"[FOAMWatch] Started monitor for {config.log_file}")
        return True

    def stop(self, timeout: float = 5.0) -> bool:
        """Signal the monitor thread to stop and wait for it."""
        with self._start_lock:
            if self._stop_event is None or self._thread is None:
                return False
            self._stop_event.set()
            self._thread.join(timeout)
            stopped = not self._thread.is_alive()
            if stopped:
                self._thread = None
            return stopped

    def snapshot(self) -> Optional[MonitorSnapshot]:
        with self._lock:
            return self._snapshot

    def status(self) -> Dict[str, Any]:
        driver = self._driver
        info: Dict[str, Any] = {
            "running": self.is_running(),
            "log_file": self.config.log_file if self.config else None,
            "state": driver.state.value if driver else None,
            "message": driver.status if driver else "Not started",
        }
        snapshot = self.snapshot()
        if snapshot is not None:
            info["snapshot"] = snapshot.to_dict()
        return info


monitor_service = MonitorService()
