"""Grid pricing: time-of-use rate schedules."""

from .tariff import TimeOfUseRate, TimeOfUseSchedule

__all__ = ["TimeOfUseRate", "TimeOfUseSchedule"]
