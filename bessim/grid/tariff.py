"""Time-of-use electricity rates for battery dispatch and optimization.

A schedule is an ordered set of non-overlapping half-open hour intervals
``[start_hour, end_hour)`` within 0 -- 24, each with an import price.
Hours not covered by any interval fall back to a default rate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from bessim.config import settings
from bessim.core.errors import InvalidInputError

HOURS_PER_DAY: int = 24


# ======================================================================
# Single interval
# ======================================================================

@dataclass(frozen=True)
class TimeOfUseRate:
    """A single time-of-use pricing interval.

    Parameters
    ----------
    start_hour : int
        First hour of the interval (inclusive), 0 -- 23.
    end_hour : int
        End hour (exclusive), 1 -- 24.
    rate : float
        Import price during this interval ($/kWh).
    name : str
        Human-readable label (e.g. ``"peak"``, ``"off-peak"``).
    """

    start_hour: int
    end_hour: int
    rate: float
    name: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.start_hour < self.end_hour <= HOURS_PER_DAY:
            raise InvalidInputError(
                f"Need 0 <= start_hour < end_hour <= {HOURS_PER_DAY}, got "
                f"[{self.start_hour}, {self.end_hour})"
            )
        if self.rate < 0:
            raise InvalidInputError(f"rate must be >= 0, got {self.rate}")

    @property
    def hours(self) -> int:
        """Length of the interval in hours."""
        return self.end_hour - self.start_hour

    def covers(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour


# ======================================================================
# Schedule
# ======================================================================

@dataclass(frozen=True)
class TimeOfUseSchedule:
    """Ordered, non-overlapping collection of :class:`TimeOfUseRate`.

    Parameters
    ----------
    rates : tuple of TimeOfUseRate
        Intervals; sorted by start hour on construction.
    default_rate : float
        Price for hours not covered by any interval.  Defaults to
        ``settings.default_tou_rate`` (0.15).

    Example
    -------
    >>> schedule = TimeOfUseSchedule.from_rates([
    ...     TimeOfUseRate(0, 7, 0.08, "off-peak"),
    ...     TimeOfUseRate(7, 17, 0.15, "shoulder"),
    ...     TimeOfUseRate(17, 21, 0.30, "peak"),
    ...     TimeOfUseRate(21, 24, 0.08, "off-peak"),
    ... ])
    >>> schedule.rate_at(18)
    0.3
    """

    rates: tuple = field(default_factory=tuple)
    default_rate: float = field(default_factory=lambda: settings.default_tou_rate)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.rates, key=lambda r: r.start_hour))
        for prev, nxt in zip(ordered, ordered[1:]):
            if nxt.start_hour < prev.end_hour:
                raise InvalidInputError(
                    f"Overlapping time-of-use intervals: "
                    f"[{prev.start_hour}, {prev.end_hour}) and "
                    f"[{nxt.start_hour}, {nxt.end_hour})"
                )
        if self.default_rate < 0:
            raise InvalidInputError(
                f"default_rate must be >= 0, got {self.default_rate}"
            )
        object.__setattr__(self, "rates", ordered)

    @classmethod
    def from_rates(
        cls, rates: Iterable[TimeOfUseRate], default_rate: Optional[float] = None
    ) -> "TimeOfUseSchedule":
        if default_rate is None:
            return cls(rates=tuple(rates))
        return cls(rates=tuple(rates), default_rate=default_rate)

    def __len__(self) -> int:
        return len(self.rates)

    def __iter__(self):
        return iter(self.rates)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def rate_at(self, hour: int, default: Optional[float] = None) -> float:
        """Import price at *hour* of day ($/kWh).

        Uncovered hours return *default* when given, else ``default_rate``.
        """
        for rate in self.rates:
            if rate.covers(hour):
                return rate.rate
        return self.default_rate if default is None else default

    def hourly_rates(self, default: Optional[float] = None) -> List[float]:
        """Price for each of the 24 hours of the day."""
        return [self.rate_at(h, default) for h in range(HOURS_PER_DAY)]

    def average_rate(self) -> float:
        """Duration-weighted mean price over the listed intervals.

        Uncovered hours do not enter the average.  An empty schedule
        averages to the default rate.
        """
        total_hours = sum(r.hours for r in self.rates)
        if total_hours <= 0:
            return self.default_rate
        return sum(r.rate * r.hours for r in self.rates) / total_hours

    def min_rate(self) -> float:
        if not self.rates:
            return self.default_rate
        return min(r.rate for r in self.rates)

    def max_rate(self) -> float:
        if not self.rates:
            return self.default_rate
        return max(r.rate for r in self.rates)

    def is_complete(self) -> bool:
        """``True`` if the intervals tile 0 -- 24 without gaps."""
        return sum(r.hours for r in self.rates) == HOURS_PER_DAY
