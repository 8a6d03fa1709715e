import calendar
from datetime import datetime, timezone
from typing import List, Sequence, Tuple

from core.clock import SystemClock

# Creation-date boundaries chosen so each window stays under the search API's
# 1000-result cap. First entry: the Zig repository's first commit.
ZIG_WINDOW_BOUNDARIES = (
    "2015-07-04",
    "2017-09-02",
    "2019-02-09",
    "2020-01-11",
    "2020-08-22",
    "2021-02-27",
    "2021-07-31",
    "2021-12-18",
    "2022-04-16",
    "2022-07-30",
    "2022-11-19",
    "2023-02-25",
    "2023-05-20",
    "2023-07-29",
    "2023-09-30",
    "2023-12-02",
    "2024-01-20",
    "2024-03-16",
    "2024-05-04",
)

Window = Tuple[datetime, datetime]


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _parse_boundaries(boundaries: Sequence[str]) -> List[datetime]:
    return [
        datetime.strptime(b, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        for b in boundaries
    ]


class DateWindowCursor:
    """
    Perpetual creation-date window sequence for the "all" traversal.

    Walks the fixed boundaries forward, then rolls one month at a time past
    the last boundary; once a window reaches the present it wraps back to the
    first boundary.
    """

    def __init__(self, clock=None, boundaries: Sequence[str] = ZIG_WINDOW_BOUNDARIES):
        if len(boundaries) < 2:
            raise ValueError("need at least two window boundaries")
        self.clock = clock or SystemClock()
        self.boundaries = _parse_boundaries(boundaries)
        self.index = 0
        self.months_after_last = 0

    def next_window(self) -> Window:
        if self.index < len(self.boundaries) - 1:
            start = self.boundaries[self.index]
            end = self.boundaries[self.index + 1]
            self.index += 1
            return start, end

        last = self.boundaries[-1]
        start = add_months(last, self.months_after_last)
        end = add_months(last, self.months_after_last + 1)
        self.months_after_last += 1

        if end > self.clock.utcnow():
            self.index = 0
            self.months_after_last = 0
        return start, end
