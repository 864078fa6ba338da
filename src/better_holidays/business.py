import logging
import numpy as np
import datetime as dt
from typing import Tuple, Iterable, Optional, List

from .cache import LRUCache
from .date_universe import DateUniverse
from .engine import ENGINE_PLUGIN, ENGINE_SERVICE, HolidayEngine
from .errors import InvalidDateError
from .plugins import InstallContext, PluginDescriptor
from .rules import HolidayOccurrence
from .utils import DateLike, OutputType, to_date
from .utils import _to_internal_date, _from_internal_date
from .validators import MAX_YEAR, MIN_YEAR, is_valid_weekday

logger = logging.getLogger(__name__)

BUSINESS_PLUGIN = "business-days"
BUSINESS_SERVICE = "business-days"
DEFAULT_WEEKEND = (6, 7)


class BusinessCalendar:
    """
    Business-day calendar over a fixed date range for one locale.

    It is defined by :
        - A DateUniverse : the contiguous days of the range and their weekdays
        - A boolean mask of the same length as the universe, where True indicates a business day

    A day is a business day when it is neither a weekend day nor a resolved holiday
    (actual or observed) of the locale.
    """

    def __init__(self,
                 engine: HolidayEngine,
                 locale: Optional[str] = None,
                 start_date: DateLike = "2000-01-01",
                 end_date: DateLike = "2060-12-31",
                 *,
                 weekend: Iterable[int] = DEFAULT_WEEKEND,
                 date_type: OutputType = "date",
                 day_first: bool = True,
                 str_sep: str = "-"):
        """
        Parameters
        ----------
        engine: HolidayEngine
            The engine resolving the holidays.
        locale: Optional[str]
            Locale code. If None, uses the engine locale.
        start_date: DateLike, default "2000-01-01"
            The start date of the calendar. Can be any date-like object (str, datetime, date, np.datetime64, etc.).
        end_date: DateLike, default "2060-12-31"
            The end date of the calendar. Can be any date-like object (str, datetime, date, np.datetime64, etc.).
        weekend: Iterable[int], default (6, 7)
            ISO weekdays that are never business days.
        date_type: OutputType, default "date"
            The output type for methods that return dates. Can be "date", "numpy", "datetime" or "str".
        day_first: bool, default True
            When parsing or outputting strings, whether to use day-first format (e.g. "01-02-2020" => 1st Feb 2020).
        str_sep: str, default "-"
            When output is "str", the separator to use between year, month, and day.
        """
        self.dayfirst = day_first
        self.str_sep = str_sep
        self.output = date_type

        self.engine = engine
        self.locale = engine.locale if locale is None else locale
        self.weekend = tuple(sorted(set(weekend)))
        if not self.weekend or not all(is_valid_weekday(w) for w in self.weekend):
            raise ValueError(f"weekend must contain ISO weekdays 1-7, got {weekend!r}")

        self.start_date: np.datetime64 = _to_internal_date(start_date, dayfirst=day_first)
        self.end_date: np.datetime64 = _to_internal_date(end_date, dayfirst=day_first)

        self.universe = DateUniverse(start=self.start_date, end=self.end_date)
        self._holidays: List[HolidayOccurrence] = engine.holidays_in_range(
            self.universe.days[0].item(), self.universe.days[-1].item(), self.locale
        )
        self.weekend_mask: np.ndarray = np.isin(self.universe.weekday, self.weekend)
        self.holiday_mask: np.ndarray = self._create_holiday_mask()
        self.business_mask: np.ndarray = ~(self.weekend_mask | self.holiday_mask)
        self.business_position: np.ndarray = np.flatnonzero(self.business_mask).astype("int64")
        logger.debug("Built %s business calendar %s..%s (%d holidays)",
                     self.locale, self.start_date, self.end_date, len(self._holidays))

    # ---------------------------------------
    # |            Helper methods           |
    # ---------------------------------------

    def _create_holiday_mask(self) -> np.ndarray:
        """
        Boolean array of the same length as the universe, True on every holiday date.
        """
        mask = np.zeros(len(self.universe), dtype=bool)
        if self._holidays:
            d64 = np.array([o.date for o in self._holidays], dtype="datetime64[D]")
            idx = ((d64 - self.universe.start64) / np.timedelta64(1, "D")).astype("int64")
            mask[idx] = True
        return mask

    def _index(self, day: DateLike) -> int:
        return self.universe.locate(_to_internal_date(day, dayfirst=self.dayfirst))

    def _range_indices(self, start: Optional[DateLike], end: Optional[DateLike]) -> Tuple[int, int]:
        """Universe indices of [start, end], defaulting to the calendar bounds."""
        s = self.universe.start64 if start is None else _to_internal_date(start, dayfirst=self.dayfirst)
        e = self.universe.end64 if end is None else _to_internal_date(end, dayfirst=self.dayfirst)
        i0 = self.universe.locate(s)
        i1 = self.universe.locate(e)
        if i1 < i0:
            raise InvalidDateError("end < start")
        return i0, i1

    def _inclusive_flags(self, inclusive: str) -> Tuple[bool, bool]:
        """("both" | "left" | "right" | "none") -> (include start, include end)."""
        inc = inclusive.lower()
        if inc == "both":
            return True, True
        if inc == "left":
            return True, False
        if inc == "right":
            return False, True
        if inc == "none":
            return False, False
        raise ValueError("inclusive must be one of: 'both', 'left', 'right', 'none'")

    def _out(self, d64: np.datetime64):
        return _from_internal_date(d64, self.output, str_sep=self.str_sep, dayfirst=self.dayfirst)

    # ---------------------------------------
    # |          Public API methods         |
    # ---------------------------------------

    def __len__(self) -> int:
        """Return the number of days in the calendar."""
        return len(self.universe)

    # ------------------------------------------------
    # 1. Basic business / non-business day information
    # ------------------------------------------------

    def is_business(self, day: DateLike) -> bool:
        """
        Return whether the given date is a business day.

        Parameters
        ----------
        day: DateLike
            The input date. Can be any date-like object (str, datetime, date, np.datetime64, etc.).

        Returns
        -------
        bool
            True if the given date is a business day, False otherwise.
        """
        return bool(self.business_mask[self._index(day)])

    def is_non_business(self, day: DateLike) -> bool:
        return not self.is_business(day)

    def is_weekend(self, day: DateLike) -> bool:
        """Return whether the given date falls on one of the calendar's weekend days."""
        return bool(self.weekend_mask[self._index(day)])

    def is_holiday(self, day: DateLike) -> bool:
        """Return whether the given date carries a holiday (actual or observed), weekend or not."""
        return bool(self.holiday_mask[self._index(day)])

    def holidays(self, start_date: Optional[DateLike] = None, end_date: Optional[DateLike] = None) -> List[HolidayOccurrence]:
        """Holiday occurrences dated inside the range (whole calendar by default)."""
        i0, i1 = self._range_indices(start_date, end_date)
        first = self.universe.days[i0].item()
        last = self.universe.days[i1].item()
        return [o for o in self._holidays if first <= o.date <= last]

    def business_days(self, start_date: Optional[DateLike] = None, end_date: Optional[DateLike] = None) -> List[OutputType]:
        """Business days of the range, both ends included, in the calendar output format."""
        i0, i1 = self._range_indices(start_date, end_date)
        pos = self.business_position
        left = np.searchsorted(pos, i0, side="left")
        right = np.searchsorted(pos, i1, side="right")
        return [self._out(d) for d in self.universe.days[pos[left:right]]]

    def non_business_days(self, start_date: Optional[DateLike] = None, end_date: Optional[DateLike] = None) -> List[OutputType]:
        """Weekend days and holidays of the range, both ends included."""
        i0, i1 = self._range_indices(start_date, end_date)
        off = np.flatnonzero(~self.business_mask[i0:i1 + 1]) + i0
        return [self._out(d) for d in self.universe.days[off]]

    def days_between(self,
                     start_date: Optional[DateLike] = None,
                     end_date: Optional[DateLike] = None,
                     *,
                     type: str = "calendar",
                     inclusive: str = "both") -> int:
        """
        Counts the number of days between the given start and end dates, either in calendar days or business days.

        Parameters
        ----------
        start_date: Optional[DateLike]
            The start date of the range. If None, uses the calendar start date.
        end_date: Optional[DateLike]
            The end date of the range. If None, uses the calendar end date.
        type: str, default "calendar"
            Whether to count "calendar" days or "business" days.
        inclusive: str, default "both"
            Whether to include the start and/or end date in the count. Can be "both", "left", "right" or "none".
        """
        i1, i2 = self._range_indices(start_date, end_date)
        inc_start, inc_end = self._inclusive_flags(inclusive)

        if type == "calendar":
            cnt = (i2 - i1 + 1)
            if not inc_start:
                cnt -= 1
            if not inc_end:
                cnt -= 1
            return max(cnt, 0)

        if type == "business":
            bpos = self.business_position
            left_side = "left" if inc_start else "right"
            right_side = "right" if inc_end else "left"

            left = np.searchsorted(bpos, i1, side=left_side)
            right = np.searchsorted(bpos, i2, side=right_side)
            return int(max(right - left, 0))

        raise ValueError("type must be 'calendar' or 'business'")

    def business_days_in_month(self, year: int, month: int) -> int:
        """Number of business days in the given month, which must overlap the calendar."""
        in_month = (self.universe.year == year) & (self.universe.month == month)
        if not in_month.any():
            raise InvalidDateError(f"Month {year}-{month:02d} is outside the calendar [{self.start_date}, {self.end_date}].")
        return int(np.count_nonzero(self.business_mask & in_month))

    # -------------------------
    # 2. Business day offseting
    # -------------------------

    def offset_business_days(self, day: DateLike, n: int) -> OutputType:
        """
        Return the date obtained by offsetting the given date by n business days.
        The offset can be positive (forward) or negative (backward) but it is always a strict offset.

        This method uses numpy.searchsorted to achieve O(log n) complexity.

        Parameters
        ----------
        day: DateLike
            The input date to offset. Can be any date-like object (str, datetime, date, np.datetime64, etc.).
        n: int
            The number of business days to offset. Can be positive (forward) or negative (backward).

        Returns
        -------
        OutputType
            The resulting date in the output format selected at calendar construction.
        """
        d64 = _to_internal_date(day, dayfirst=self.dayfirst)
        i = self.universe.locate(d64)

        if n == 0:
            return self._out(d64)
        if n > 0:
            k = np.searchsorted(self.business_position, i, side="right") + (n - 1)
            if k >= len(self.business_position):
                raise InvalidDateError(f"Offset of {n} business days from {day} goes beyond the calendar end date {self.end_date}.")
        else:
            k = np.searchsorted(self.business_position, i, side="left") + n
            if k < 0:
                raise InvalidDateError(f"Offset of {n} business days from {day} goes beyond the calendar start date {self.start_date}.")
        return self._out(self.universe.days[self.business_position[k]])

    def next_business_day(self, day: DateLike) -> OutputType:
        """Return the next business day strictly after the given date."""
        return self.offset_business_days(day, 1)

    def previous_business_day(self, day: DateLike) -> OutputType:
        """Return the previous business day strictly before the given date."""
        return self.offset_business_days(day, -1)


class BusinessDayService:
    """
    Business-day queries on demand, backed by cached yearly-window ``BusinessCalendar``s.

    Windows are keyed by the engine revision of their locale, so registering a rule makes
    the next query rebuild them.
    """

    def __init__(self, engine: HolidayEngine, *, weekend: Iterable[int] = DEFAULT_WEEKEND, capacity: int = 64):
        self.engine = engine
        self.weekend = tuple(weekend)
        self._calendars = LRUCache(capacity)

    def calendar(self, first_year: int, last_year: int, locale: Optional[str] = None) -> BusinessCalendar:
        loc = self.engine.locale if locale is None else locale
        first_year = max(first_year, MIN_YEAR)
        last_year = min(last_year, MAX_YEAR)
        key = (loc, first_year, last_year, self.engine.revision(loc))
        cal = self._calendars.get(key)
        if cal is None:
            cal = BusinessCalendar(self.engine, loc, dt.date(first_year, 1, 1), dt.date(last_year, 12, 31),
                                   weekend=self.weekend)
            self._calendars.set(key, cal)
        return cal

    def is_business_day(self, day: DateLike, locale: Optional[str] = None) -> bool:
        d = to_date(day)
        return self.calendar(d.year, d.year, locale).is_business(d)

    def add_business_days(self, day: DateLike, n: int, locale: Optional[str] = None) -> dt.date:
        d = to_date(day)
        # ~250 business days a year, plus one spare year for the boundary
        span = abs(n) // 200 + 1
        if n < 0:
            cal = self.calendar(d.year - span, d.year, locale)
        else:
            cal = self.calendar(d.year, d.year + span, locale)
        return cal.offset_business_days(d, n)

    def next_business_day(self, day: DateLike, locale: Optional[str] = None) -> dt.date:
        return self.add_business_days(day, 1, locale)

    def previous_business_day(self, day: DateLike, locale: Optional[str] = None) -> dt.date:
        return self.add_business_days(day, -1, locale)

    def business_days_between(self,
                              start: DateLike,
                              end: DateLike,
                              locale: Optional[str] = None,
                              *,
                              inclusive: str = "both") -> int:
        s, e = to_date(start), to_date(end)
        return self.calendar(s.year, e.year, locale).days_between(s, e, type="business", inclusive=inclusive)


def _install_business_days(ctx: InstallContext) -> None:
    service = BusinessDayService(ctx.service(ENGINE_SERVICE))
    ctx.provide(BUSINESS_SERVICE, service)
    ctx.add_capability("is_business_day", service.is_business_day)
    ctx.add_capability("add_business_days", service.add_business_days)
    ctx.add_capability("next_business_day", service.next_business_day)
    ctx.add_capability("previous_business_day", service.previous_business_day)
    ctx.add_capability("business_days_between", service.business_days_between)


business_plugin = PluginDescriptor(
    name=BUSINESS_PLUGIN,
    install=_install_business_days,
    dependencies=frozenset({ENGINE_PLUGIN}),
)
