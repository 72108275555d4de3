"""Reminder window calculation.

Produces the ordered candidate instants of a reminder stream for one time
point. Pure: no I/O, and ``now`` is always passed in.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, Optional

from ...utils.dt import as_utc


@dataclass(frozen=True)
class Candidate:
    instant: datetime
    is_final: bool


@dataclass(frozen=True)
class ReminderWindow:
    """A finite, restartable sequence of reminder candidates.

    The first candidate is ``target - offset``, or the instant right after
    ``after`` when continuing an already materialized stream. A first
    candidate in the past is clamped to ``now`` and the cadence continues from
    there. The stream stops when a candidate passes ``end``, when ``count``
    candidates were produced, or after the final candidate (the first one at
    or past ``target``).
    """

    target: datetime
    offset: timedelta
    interval: timedelta
    end: Optional[datetime]
    now: datetime
    count: int
    after: Optional[datetime] = None

    def __post_init__(self):
        if self.interval <= timedelta(0):
            raise ValueError("reminder interval must be positive")

    def _first(self) -> Optional[datetime]:
        if self.after is None:
            current = self.target - self.offset
        elif self.after >= self.target:
            # The stream already reached its final notification
            return None
        else:
            current = self.after + self.interval
        return max(current, self.now)

    def __iter__(self) -> Iterator[Candidate]:
        current = self._first()
        produced = 0
        while current is not None and produced < self.count:
            if self.end is not None and current > self.end:
                return
            is_final = current >= self.target
            yield Candidate(current, is_final)
            produced += 1
            if is_final:
                return
            current = current + self.interval


def next_instants(
    target: datetime,
    offset_minutes: int,
    interval_minutes: int,
    end: Optional[datetime],
    now: datetime,
    count: int,
    after: Optional[datetime] = None,
) -> ReminderWindow:
    """Build the candidate sequence for one reminder stream."""
    return ReminderWindow(
        target=as_utc(target),
        offset=timedelta(minutes=offset_minutes),
        interval=timedelta(minutes=interval_minutes),
        end=as_utc(end) if end is not None else None,
        now=as_utc(now),
        count=count,
        after=as_utc(after) if after is not None else None,
    )
