"""
Calculator strategies: each turns a holiday rule and a year into zero or more dates.

One calculator exists per ``RuleType``. They are stateless; the only shared input is the
resolution context handed over by the engine, which ``relative`` rules use to resolve the
holiday they are anchored to.
"""

from __future__ import annotations

import datetime as dt
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .cache import memoize
from .errors import InvalidCalculatorOutputError, InvalidDateError, InvalidHolidayRuleError
from .lunar import LUNAR_CONVERTERS
from .rules import HolidayRule, RuleType

logger = logging.getLogger(__name__)


# =========================
# Easter
# =========================
@memoize(capacity=512)
def easter_sunday(year: int) -> dt.date:
    """
    Gregorian Easter Sunday, anonymous Gregorian algorithm (Meeus/Jones/Butcher).

    Parameters
    ----------
    year: int
        Gregorian year.

    Returns
    -------
    dt.date
        Easter Sunday of that year, always between March 22 and April 25.
    """
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return dt.date(year, month, day + 1)


@memoize(capacity=512)
def orthodox_easter(year: int) -> dt.date:
    """Orthodox Easter Sunday: Julian computus expressed as a Gregorian date."""
    a = year % 4
    b = year % 7
    c = year % 19
    d = (19 * c + 15) % 30
    e = (2 * a + 4 * b - d + 34) % 7
    month, day = divmod(d + e + 114, 31)
    julian_gap = year // 100 - year // 400 - 2
    return dt.date(year, month, day + 1) + dt.timedelta(days=julian_gap)


# =========================
# Strategies
# =========================
class AbstractCalculator(ABC):
    """
    Interface of a calculator strategy.

    ``calculate`` returns the raw dates of ``rule`` in ``year``, before duration expansion
    and observance shifts.
    """
    type: Optional[RuleType] = None

    @abstractmethod
    def calculate(self, rule: HolidayRule, year: int, context: Any = None) -> List[dt.date]:
        """
        Parameters
        ----------
        rule: HolidayRule
            The rule to compute, with params matching this calculator's type.
        year: int
            Target Gregorian year.
        context: Any
            Resolution context from the engine, needed by relative rules.

        Returns
        -------
        List[dt.date]
            Zero or more dates, sorted.
        """
        pass


class FixedCalculator(AbstractCalculator):
    type = RuleType.FIXED

    def calculate(self, rule, year, context=None):
        p = rule.params
        try:
            return [dt.date(year, p.month, p.day)]
        except ValueError:
            # Feb 29 outside leap years
            return []


class NthWeekdayCalculator(AbstractCalculator):
    type = RuleType.NTH_WEEKDAY

    def calculate(self, rule, year, context=None):
        p = rule.params
        return [nth_weekday(year, p.month, p.weekday, p.nth, rule_id=rule.id)]


def nth_weekday(year: int, month: int, weekday: int, nth: int, *, rule_id: Optional[str] = None) -> dt.date:
    """
    The ``nth`` ISO ``weekday`` of a month, counting from the end when ``nth`` is negative.

    Raises
    ------
    InvalidHolidayRuleError
        If ``nth`` is 0 or the month has fewer than ``abs(nth)`` such weekdays.
    """
    if nth == 0:
        raise InvalidHolidayRuleError("nth cannot be 0", rule_id=rule_id)

    first = dt.date(year, month, 1)
    if month == 12:
        n_days = 31
    else:
        n_days = (dt.date(year, month + 1, 1) - first).days

    if nth > 0:
        day = 1 + (weekday - first.isoweekday()) % 7 + (nth - 1) * 7
    else:
        last_weekday = dt.date(year, month, n_days).isoweekday()
        day = n_days - (last_weekday - weekday) % 7 - (-nth - 1) * 7

    if day < 1 or day > n_days:
        raise InvalidHolidayRuleError(
            f"Rule {rule_id!r}: there is no occurrence {nth} of weekday {weekday} in {year}-{month:02d}",
            rule_id=rule_id,
        )
    return dt.date(year, month, day)


class EasterCalculator(AbstractCalculator):
    type = RuleType.EASTER_OFFSET

    def calculate(self, rule, year, context=None):
        p = rule.params
        easter = orthodox_easter(year) if p.method == "orthodox" else easter_sunday(year)
        return [easter + dt.timedelta(days=p.offset)]


class LunarCalculator(AbstractCalculator):
    """
    Every Gregorian date of the lunar month/day that falls inside the target year.

    A lunar year is shorter than a solar one, so a lunar date can occur twice in one
    Gregorian year (or not at all when the day or leap month does not exist).
    """
    type = RuleType.LUNAR

    def __init__(self, converters: Optional[Dict[str, Any]] = None):
        self.converters = LUNAR_CONVERTERS if converters is None else converters

    def calculate(self, rule, year, context=None):
        p = rule.params
        try:
            converter = self.converters[p.calendar]
        except KeyError:
            raise InvalidHolidayRuleError(f"Rule {rule.id!r}: unknown lunar calendar {p.calendar!r}",
                                          rule_id=rule.id) from None

        dates = set()
        for native_year in converter.native_years(year):
            d = converter.to_gregorian(native_year, p.month, p.day, p.leap_month)
            if d is not None and d.year == year:
                dates.add(d)
        return sorted(dates)


class RelativeCalculator(AbstractCalculator):
    """
    Dates of the referenced holiday shifted by ``offset`` days.

    The referenced holiday is computed for every year the offset can reach from, so that
    e.g. "1 day before New Year's Day" lands on December 31 of ``year``. Neighbouring years
    the reference cannot be computed for (past the end of a lunar table) are skipped.
    """
    type = RuleType.RELATIVE

    def calculate(self, rule, year, context=None):
        if context is None:
            raise InvalidHolidayRuleError(f"Rule {rule.id!r}: relative rules need a resolution context",
                                          rule_id=rule.id)
        offset = rule.params.offset
        delta = dt.timedelta(days=offset)
        dates = set()
        for y in reference_years(year, offset):
            try:
                references = context.reference_dates(rule, y)
            except InvalidDateError:
                if y == year:
                    raise
                logger.debug("Rule %r: no reference dates for neighbouring year %d", rule.id, y)
                continue
            for d in references:
                shifted = d + delta
                if shifted.year == year:
                    dates.add(shifted)
        return sorted(dates)


def reference_years(year: int, offset: int) -> range:
    """Years whose dates, shifted by ``offset`` days, can land in ``year``."""
    first = dt.date(year, 1, 1).toordinal() - offset
    last = dt.date(year, 12, 31).toordinal() - offset
    first = min(max(first, 1), dt.date.max.toordinal())
    last = min(max(last, 1), dt.date.max.toordinal())
    return range(dt.date.fromordinal(first).year, dt.date.fromordinal(last).year + 1)


def normalize_dates(result: Any, rule_id: str) -> List[dt.date]:
    if isinstance(result, dt.datetime):
        return [result.date()]
    if isinstance(result, dt.date):
        return [result]
    if isinstance(result, (str, bytes)) or not hasattr(result, "__iter__"):
        raise InvalidCalculatorOutputError(
            f"Rule {rule_id!r}: calculator must return a date or an iterable of dates, got {type(result).__name__}",
            rule_id=rule_id,
        )
    out = []
    for item in result:
        if isinstance(item, dt.datetime):
            out.append(item.date())
        elif isinstance(item, dt.date):
            out.append(item)
        else:
            raise InvalidCalculatorOutputError(
                f"Rule {rule_id!r}: calculator returned a non-date item {item!r}",
                rule_id=rule_id,
            )
    return sorted(out)


class CustomCalculator(AbstractCalculator):
    type = RuleType.CUSTOM

    def calculate(self, rule, year, context=None):
        return normalize_dates(rule.params.calculate(year), rule.id)


class FunctionCalculator(AbstractCalculator):
    """Adapts a plain ``fn(rule, year)`` to the calculator interface."""

    def __init__(self, fn: Callable[[HolidayRule, int], Any]):
        if not callable(fn):
            raise TypeError("FunctionCalculator expects a callable.")
        self.fn = fn

    def calculate(self, rule, year, context=None):
        return normalize_dates(self.fn(rule, year), rule.id)

    def __repr__(self) -> str:
        return f"FunctionCalculator({getattr(self.fn, '__name__', self.fn)!r})"


CALCULATOR_CLASSES = {
    RuleType.FIXED: FixedCalculator,
    RuleType.NTH_WEEKDAY: NthWeekdayCalculator,
    RuleType.EASTER_OFFSET: EasterCalculator,
    RuleType.LUNAR: LunarCalculator,
    RuleType.RELATIVE: RelativeCalculator,
    RuleType.CUSTOM: CustomCalculator,
}


def default_calculators() -> Dict[RuleType, AbstractCalculator]:
    return {rule_type: cls() for rule_type, cls in CALCULATOR_CLASSES.items()}


