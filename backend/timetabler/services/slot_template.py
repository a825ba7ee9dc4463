"""The fixed weekly grid that generation walks.

Six teaching windows per day with two unscheduled breaks between them. The
grid says nothing about what is taught; it only fixes where teaching may go.
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from timetabler.schemas.timetable import parse_time_to_minutes


@dataclass(frozen=True)
class TimeWindow:
    index: int
    start_time: str
    end_time: str

    @property
    def duration_minutes(self) -> int:
        return parse_time_to_minutes(self.end_time) - parse_time_to_minutes(self.start_time)


@dataclass(frozen=True)
class BreakWindow:
    start_time: str
    end_time: str
    label: str


@dataclass(frozen=True)
class TemplateCell:
    day_of_week: int
    window: TimeWindow


TEACHING_WINDOWS: tuple[TimeWindow, ...] = (
    TimeWindow(0, "09:00", "10:00"),
    TimeWindow(1, "10:00", "11:00"),
    TimeWindow(2, "11:30", "12:30"),
    TimeWindow(3, "12:30", "13:30"),
    TimeWindow(4, "14:30", "15:30"),
    TimeWindow(5, "15:30", "16:30"),
)

BREAK_WINDOWS: tuple[BreakWindow, ...] = (
    BreakWindow("11:00", "11:30", "Break"),
    BreakWindow("13:30", "14:30", "Lunch Break"),
)

# Monday through Friday; 0 is Sunday.
DEFAULT_WEEKDAYS: tuple[int, ...] = (1, 2, 3, 4, 5)


class SlotTemplate:
    def __init__(
        self,
        weekdays: Iterable[int] = DEFAULT_WEEKDAYS,
        windows: Iterable[TimeWindow] = TEACHING_WINDOWS,
        breaks: Iterable[BreakWindow] = BREAK_WINDOWS,
    ) -> None:
        self.weekdays: tuple[int, ...] = tuple(sorted(set(weekdays)))
        self.windows: tuple[TimeWindow, ...] = tuple(windows)
        self.breaks: tuple[BreakWindow, ...] = tuple(breaks)
        for day in self.weekdays:
            if day < 0 or day > 6:
                raise ValueError(f"day_of_week must be between 0 and 6, got {day}")
        for position, window in enumerate(self.windows):
            if window.index != position:
                raise ValueError("Time windows must be indexed in order starting at 0")
            if window.duration_minutes <= 0:
                raise ValueError(f"Window {window.index} must end after it starts")

    @classmethod
    def from_settings(cls, settings) -> "SlotTemplate":
        return cls(weekdays=settings.generation_weekdays)

    def __len__(self) -> int:
        return len(self.weekdays) * len(self.windows)

    def cells(self) -> Iterator[TemplateCell]:
        for day in self.weekdays:
            for window in self.windows:
                yield TemplateCell(day_of_week=day, window=window)

    def window_at(self, start_time: str) -> TimeWindow | None:
        for window in self.windows:
            if window.start_time == start_time:
                return window
        return None

    def rows(self) -> list[TimeWindow | BreakWindow]:
        """Teaching windows and breaks in time order, for grid rendering."""
        rows: list[TimeWindow | BreakWindow] = [*self.windows, *self.breaks]
        return sorted(rows, key=lambda row: parse_time_to_minutes(row.start_time))
