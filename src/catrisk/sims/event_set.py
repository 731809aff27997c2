"""Historical event-set resampling.

An :class:`EventSet` wraps an immutable, date-ordered record of historical
catastrophe losses. Each :class:`EventSetSimulation` walks successive,
non-overlapping calendar blocks of that record and replays every block onto
the reference window, one block per path.
"""

from __future__ import annotations

import datetime as dt
import logging
from bisect import bisect_left
from operator import attrgetter
from typing import Any, Iterable

from ..core import CatEvent, CatRisk, CatSimulation, Path
from ..dates import add_days, add_years, anchor, to_date
from ..errors import InvalidInputError

logger = logging.getLogger(__name__)

__all__ = ["EventSet", "EventSetSimulation"]


class EventSetSimulation(CatSimulation):
    r"""
    Replay calendar blocks of a historical event set onto ``[start, end]``.

    With :math:`Y = \text{end.year} - \text{start.year}`, block :math:`k` is the
    historical interval

    .. math::
       [\,(\text{start.month}, \text{start.day}, y_0 + k(Y+1)),\;
          (\text{end.month}, \text{end.day}, y_0 + k(Y+1) + Y)\,]

    where :math:`y_0` is the first historical year whose copy of ``start`` is on
    or after ``events_start``. Both ends are inclusive. Each event in the block
    is shifted by whole years onto the reference window with its loss unchanged.
    The simulation is exhausted as soon as a block would end after
    ``events_end``; a trailing partial block is never replayed.

    Parameters
    ----------
    events : tuple of CatEvent
        Shared, date-ordered historical events.
    events_start, events_end : date
        Historical window.
    start, end : date
        Reference window.

    Notes
    -----
    Only calendar years enter :math:`Y`, so sub-year differences between
    windows are ignored. Event dates on 29 February follow
    :func:`catrisk.dates.add_years`. A window starting on 29 February opens
    its common-year blocks on 1 March, so no event lands before ``start``.
    """

    def __init__(
        self,
        events: tuple[CatEvent, ...],
        events_start: dt.date,
        events_end: dt.date,
        start: dt.date,
        end: dt.date,
        name: str = "EventSet",
    ):
        super().__init__(start, end, name)
        self._events = events
        self.events_start = events_start
        self.events_end = events_end
        self.years = end.year - start.year

        first_year = events_start.year
        if self._period(first_year)[0] < events_start:
            first_year += 1
        self._block_year = first_year
        self.period_start, self.period_end = self._period(first_year)
        self._i = bisect_left(events, self.period_start, key=attrgetter("date"))
        self._exhausted = False

    def _period(self, year: int) -> tuple[dt.date, dt.date]:
        period_start = anchor(year, self.start.month, self.start.day)
        if period_start.day != self.start.day:
            # 29 February in a common year: the block opens on 1 March
            period_start = add_days(period_start, 1)
        return period_start, anchor(year + self.years, self.end.month, self.end.day)

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def next_path(self, path: Path) -> bool:
        path.clear()
        if self._exhausted or self.period_end > self.events_end:
            self._exhausted = True
            return False

        events = self._events
        n = len(events)
        i = self._i
        while i < n and events[i].date < self.period_start:
            i += 1
        shift = self.start.year - self.period_start.year
        while i < n and events[i].date <= self.period_end:
            date, loss = events[i]
            path.append(CatEvent(add_years(date, shift), loss))
            i += 1
        self._i = i

        self._block_year += self.years + 1
        self.period_start, self.period_end = self._period(self._block_year)
        return True

    def remaining_paths(self) -> int:
        """Number of further successful :meth:`next_path` calls."""
        if self._exhausted:
            return 0
        count = 0
        year = self._block_year
        while self._period(year)[1] <= self.events_end:
            count += 1
            year += self.years + 1
        return count


class EventSet(CatRisk):
    r"""
    Historical-bootstrap catastrophe model.

    Parameters
    ----------
    events : iterable of (date, loss)
        Historical events, sorted by date, each with ``loss >= 0`` and a date
        inside ``[events_start, events_end]``. Dates may be anything accepted by
        :func:`catrisk.dates.to_date`.
    events_start, events_end : date-like
        Window covered by the historical record.
    name : str, default ``"EventSet"``

    Raises
    ------
    InvalidInputError
        If the window is inverted, or an event is out of order, outside the
        window or has a negative loss.

    Examples
    --------
    >>> model = EventSet(
    ...     [("2000-03-15", 100.0), ("2001-07-04", 50.0)],
    ...     "2000-01-01", "2001-12-31",
    ... )
    >>> sim = model.new_simulation("2010-01-01", "2011-12-31")
    >>> path = []
    >>> sim.next_path(path), [(e.date.isoformat(), e.loss) for e in path]
    (True, [('2010-03-15', 100.0), ('2011-07-04', 50.0)])
    >>> sim.next_path(path), path
    (False, [])
    """

    def __init__(
        self,
        events: Iterable[tuple[Any, float]],
        events_start: Any,
        events_end: Any,
        name: str = "EventSet",
    ):
        self.name = name
        self.events_start = to_date(events_start)
        self.events_end = to_date(events_end)
        if self.events_start > self.events_end:
            raise InvalidInputError(
                f"events_start ({self.events_start}) must not be after events_end ({self.events_end})"
            )
        self.events = self._validated(events)
        logger.debug(
            f"EventSet '{name}': {len(self.events)} events over [{self.events_start}, {self.events_end}]"
        )

    def _validated(self, events: Iterable[tuple[Any, float]]) -> tuple[CatEvent, ...]:
        out: list[CatEvent] = []
        for k, (date, loss) in enumerate(events):
            event = CatEvent(to_date(date), float(loss))
            if not self.events_start <= event.date <= self.events_end:
                raise InvalidInputError(
                    f"Event {k} on {event.date} lies outside [{self.events_start}, {self.events_end}]"
                )
            if event.loss < 0.0:
                raise InvalidInputError(f"Event {k} has negative loss {event.loss}")
            if out and event.date < out[-1].date:
                raise InvalidInputError(f"Events must be sorted by date; event {k} on {event.date} is out of order")
            out.append(event)
        return tuple(out)

    def _simulation(self, start: dt.date, end: dt.date) -> EventSetSimulation:
        return EventSetSimulation(self.events, self.events_start, self.events_end, start, end, self.name)

    def __len__(self) -> int:
        return len(self.events)
