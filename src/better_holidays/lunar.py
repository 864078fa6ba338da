"""
Lunar and lunisolar calendar conversion backing the ``lunar`` holiday calculator.

Converters:
  - chinese : lunisolar table (1900-2099) with leap months, via lunardate
  - islamic : tabular Hijri calendar, via convertdate
  - hebrew  : Hebrew calendar (1 = Nisan, 7 = Tishrei, 13 = Adar II), via convertdate
  - persian : Solar Hijri calendar, via convertdate

A native year never lines up with a Gregorian one, so each converter reports which native
years overlap a Gregorian year and the calculator tries all of them.
"""

from __future__ import annotations

import datetime as dt
from typing import Dict, Optional, Tuple

from convertdate import hebrew, islamic, persian
from lunardate import LunarDate

from .errors import InvalidDateError


class ChineseConverter:
    name = "chinese"
    min_year = 1900
    max_year = 2099
    max_month = 12

    def _check(self, gregorian_year: int) -> None:
        if not (self.min_year <= gregorian_year <= self.max_year):
            raise InvalidDateError(
                f"Chinese lunar conversion supports years {self.min_year}-{self.max_year}, got {gregorian_year}."
            )

    def native_years(self, gregorian_year: int) -> Tuple[int, ...]:
        self._check(gregorian_year)
        return tuple(y for y in (gregorian_year - 1, gregorian_year) if self.min_year <= y <= self.max_year)

    def to_gregorian(self, year: int, month: int, day: int, leap_month: bool = False) -> Optional[dt.date]:
        """Gregorian date of the lunar date, or None if it does not exist (missing leap month, day 30 of a short month)."""
        try:
            return LunarDate(year, month, day, bool(leap_month)).to_solar_date()
        except ValueError:
            return None


class ConvertdateConverter:
    """
    Converter over one of convertdate's calendar modules.

    Dates are validated by a round trip, since convertdate silently rolls an impossible
    day (e.g. 30 of a 29-day month) into the next month.
    """

    def __init__(self, name: str, module, max_month: int, min_year: int = 1, max_year: int = 9999):
        self.name = name
        self.module = module
        self.max_month = max_month
        self.min_year = min_year
        self.max_year = max_year

    def native_years(self, gregorian_year: int) -> Tuple[int, ...]:
        if not (self.min_year <= gregorian_year <= self.max_year):
            raise InvalidDateError(
                f"{self.name.capitalize()} conversion supports years {self.min_year}-{self.max_year}, got {gregorian_year}."
            )
        first = self.module.from_gregorian(gregorian_year, 1, 1)[0]
        last = self.module.from_gregorian(gregorian_year, 12, 31)[0]
        return tuple(range(first, last + 1))

    def to_gregorian(self, year: int, month: int, day: int, leap_month: bool = False) -> Optional[dt.date]:
        try:
            y, m, d = self.module.to_gregorian(year, month, day)
            if tuple(self.module.from_gregorian(y, m, d)) != (year, month, day):
                return None
            return dt.date(y, m, d)
        except ValueError:
            return None

    def __repr__(self) -> str:
        return f"ConvertdateConverter({self.name!r})"


LUNAR_CONVERTERS: Dict[str, object] = {
    "chinese": ChineseConverter(),
    "islamic": ConvertdateConverter("islamic", islamic, max_month=12, min_year=623),
    "hebrew": ConvertdateConverter("hebrew", hebrew, max_month=13),
    "persian": ConvertdateConverter("persian", persian, max_month=12, min_year=623),
}
