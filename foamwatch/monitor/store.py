"""
Aggregate store for a monitoring cycle.
Holds every value extracted so far, keyed by simulation time, and the set of
time keys already processed so no step is extracted twice.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

from foamwatch.log.parser import StepValues, TimeStep, extract_step, segment_time_steps

logger = logging.getLogger("FOAMWatch")


class MonitorContext:
    """Session state for one monitoring cycle, replaced wholesale by reset()."""

    def __init__(self, fields: List[str]) -> None:
        self.fields = list(fields)
        self.reset()

    def reset(self) -> None:
        """Discard all aggregate state."""
        self.residuals: Dict[str, Dict[float, Tuple[float, float]]] = {
            field: {} for field in self.fields
        }
        self.courant_mean: Dict[float, float] = {}
        self.courant_max: Dict[float, float] = {}
        self.max_temperature: Dict[float, float] = {}
        self.seen_times: Set[float] = set()
        # Every marker occurrence of the latest poll, duplicates included
        self.discovered: List[TimeStep] = []

    def has_time(self, time_key: float) -> bool:
        return time_key in self.seen_times

    def record_step(self, time_key: float, values: StepValues) -> bool:
        """
        Store the values of one step unless the time key was already seen.

        The key is marked as seen either way, so at most one value set is kept
        per distinct time key.

        Returns:
            True if the values were stored.
        """
        if time_key in self.seen_times:
            return False

        for field, pair in values.residuals.items():
            self.residuals.setdefault(field, {})[time_key] = pair

        if values.courant is not None:
            self.courant_mean[time_key], self.courant_max[time_key] = values.courant

        if values.max_temperature is not None:
            self.max_temperature[time_key] = values.max_temperature

        self.seen_times.add(time_key)
        return True

    def process_log(self, text: str) -> List[TimeStep]:
        """
        Segment the full log text and record every step not seen before.

        Steps are processed in text order and only unseen ones are extracted,
        so replaying an unchanged log does no extraction work.

        Returns:
            All discovered steps in text order, duplicates included.
        """
        steps = segment_time_steps(text)
        self.discovered = steps

        recorded = 0
        for step in steps:
            if step.time in self.seen_times:
                continue
            values = extract_step(step.slice(text), self.fields)
            if self.record_step(step.time, values):
                recorded += 1

        if recorded:
            logger.debug(f"[FOAMWatch] Recorded {recorded} new time steps")
        return steps

    def discovered_times(self) -> List[float]:
        return [step.time for step in self.discovered]

    def recorded_times(self) -> List[float]:
        return sorted(self.seen_times)

    def latest_time_label(self) -> Optional[str]:
        """Raw text of the last time marker, as printed by the solver."""
        if not self.discovered:
            return None
        return self.discovered[-1].token
