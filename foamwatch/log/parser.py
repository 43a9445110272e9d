"""
Log parsing for OpenFOAM solver output.
Splits a log into per-time-step slices and extracts residuals, Courant numbers
and the maximum temperature reported inside each slice.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("FOAMWatch")

# Loose numeric token, validated by float() afterwards.
# Anything that fails to convert is treated as a missing value.
_NUM = r"([\d.eE+-]+)"

# Pre-compiled regex patterns
# Matches "Time = <number>" but not "ExecutionTime = ..." or "ClockTime = ..."
TIME_REGEX = re.compile(r"(?<!\w)Time = " + _NUM)

# Matches "Courant Number mean: <number> max: <number>"
COURANT_REGEX = re.compile(r"Courant Number mean: " + _NUM + r" max: " + _NUM)

# Matches "min/max(T) = <number>, <number>", group 2 is the maximum
TEMPERATURE_REGEX = re.compile(r"min/max\(T\) = " + _NUM + r", " + _NUM)

# Residual patterns are built per field and cached, the field list is user data
_RESIDUAL_REGEX_CACHE: Dict[str, "re.Pattern[str]"] = {}


def parse_number(token: str) -> Optional[float]:
    """Convert a captured numeric token, returning None when it is malformed."""
    try:
        return float(token)
    except (TypeError, ValueError):
        return None


def residual_regex(field: str) -> "re.Pattern[str]":
    """Return the compiled residual pattern for ``field``."""
    pattern = _RESIDUAL_REGEX_CACHE.get(field)
    if pattern is None:
        # The lookbehind keeps "O" from matching inside "CO, Initial residual"
        pattern = re.compile(
            r"(?<!\w)" + re.escape(field)
            + r", Initial residual = " + _NUM
            + r", Final residual = " + _NUM
        )
        _RESIDUAL_REGEX_CACHE[field] = pattern
    return pattern


class TimeStep:
    """One occurrence of a time marker and the span of text it owns."""

    __slots__ = ("time", "token", "start", "end")

    def __init__(self, time: float, token: str, start: int, end: int) -> None:
        self.time = time
        self.token = token
        self.start = start
        self.end = end

    def slice(self, text: str) -> str:
        return text[self.start:self.end]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimeStep):
            return NotImplemented
        return (self.time, self.token, self.start, self.end) == (
            other.time, other.token, other.start, other.end
        )

    def __repr__(self) -> str:
        return f"TimeStep(time={self.time!r}, start={self.start}, end={self.end})"


class StepValues:
    """Diagnostics extracted from a single step slice. Missing metrics stay None."""

    def __init__(
        self,
        residuals: Optional[Dict[str, Tuple[float, float]]] = None,
        courant: Optional[Tuple[float, float]] = None,
        max_temperature: Optional[float] = None,
    ) -> None:
        self.residuals = residuals if residuals is not None else {}
        self.courant = courant
        self.max_temperature = max_temperature

    def is_empty(self) -> bool:
        return not self.residuals and self.courant is None and self.max_temperature is None

    def __repr__(self) -> str:
        return (
            f"StepValues(residuals={self.residuals!r}, courant={self.courant!r}, "
            f"max_temperature={self.max_temperature!r})"
        )


def segment_time_steps(text: str) -> List[TimeStep]:
    """
    Partition log text into per-step slices.

    Every marker occurrence yields one entry, in text order, so a time value
    printed twice yields two entries. Each slice ends where the next marker
    starts, the last one at the end of the text. A marker whose value cannot
    be parsed still bounds the previous slice but produces no entry.

    Returns:
        List of TimeStep, empty when no marker is present.
    """
    matches = list(TIME_REGEX.finditer(text))
    steps: List[TimeStep] = []

    for idx, match in enumerate(matches):
        end = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
        token = match.group(1)
        time_val = parse_number(token)
        if time_val is None:
            logger.debug(f"[FOAMWatch] Skipping malformed time token {token!r}")
            continue
        steps.append(TimeStep(time_val, token, match.start(), end))

    return steps


def extract_residuals(step_text: str, field: str) -> Optional[Tuple[float, float]]:
    """Return (initial, final) for the first residual line of ``field``, or None."""
    match = residual_regex(field).search(step_text)
    if not match:
        return None
    initial = parse_number(match.group(1))
    final = parse_number(match.group(2))
    if initial is None or final is None:
        return None
    return initial, final


def extract_courant(step_text: str) -> Optional[Tuple[float, float]]:
    """
    Return (mean, max) Courant numbers for a step.

    PIMPLE outer loops print the Courant line more than once per step; the
    last one is the converged value, so it wins.
    """
    last = None
    for last in COURANT_REGEX.finditer(step_text):
        pass
    if last is None:
        return None
    mean = parse_number(last.group(1))
    max_co = parse_number(last.group(2))
    if mean is None or max_co is None:
        return None
    return mean, max_co


def extract_max_temperature(step_text: str) -> Optional[float]:
    """Return the maximum of the first ``min/max(T)`` line, or None."""
    match = TEMPERATURE_REGEX.search(step_text)
    if not match:
        return None
    return parse_number(match.group(2))


def extract_step(step_text: str, fields: List[str]) -> StepValues:
    """Extract every monitored metric from one step slice."""
    residuals: Dict[str, Tuple[float, float]] = {}
    for field in fields:
        pair = extract_residuals(step_text, field)
        if pair is not None:
            residuals[field] = pair

    return StepValues(
        residuals=residuals,
        courant=extract_courant(step_text),
        max_temperature=extract_max_temperature(step_text),
    )
