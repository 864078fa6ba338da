# Tests for the holiday calculators (fixed, nth-weekday, easter, lunar, relative, custom).
#
# Run:
#   pip install -e .[test]
#   pytest -q tests/test_calculators.py

from __future__ import annotations

import calendar
import datetime as dt
import warnings

import pytest
from dateutil.easter import EASTER_ORTHODOX, EASTER_WESTERN, easter

from better_holidays.calculators import (
    CustomCalculator,
    EasterCalculator,
    FixedCalculator,
    FunctionCalculator,
    LunarCalculator,
    NthWeekdayCalculator,
    RelativeCalculator,
    default_calculators,
    easter_sunday,
    normalize_dates,
    nth_weekday,
    orthodox_easter,
)
from better_holidays.errors import InvalidCalculatorOutputError, InvalidDateError, InvalidHolidayRuleError
from better_holidays.rules import (
    CustomParams,
    EasterParams,
    FixedParams,
    HolidayRule,
    LunarParams,
    NthWeekdayParams,
    RelativeParams,
    RuleType,
)


def make_rule(rule_type: RuleType, params, rule_id: str = "r", locale: str = "en-US") -> HolidayRule:
    return HolidayRule(id=rule_id, name=rule_id.title(), type=rule_type, locale=locale, params=params)


def lunar(calendar_name: str, month: int, day: int, year: int, leap_month: bool = False):
    rule = make_rule(RuleType.LUNAR, LunarParams(calendar_name, month, day, leap_month))
    return LunarCalculator().calculate(rule, year)


# ============================================================
# 1) Easter
# ============================================================
@pytest.mark.parametrize(
    "year, expected",
    [
        (1900, dt.date(1900, 4, 15)),
        (1943, dt.date(1943, 4, 25)),
        (2000, dt.date(2000, 4, 23)),
        (2008, dt.date(2008, 3, 23)),
        (2011, dt.date(2011, 4, 24)),
        (2023, dt.date(2023, 4, 9)),
        (2024, dt.date(2024, 3, 31)),
        (2025, dt.date(2025, 4, 20)),
        (2038, dt.date(2038, 4, 25)),
        (2100, dt.date(2100, 3, 28)),
    ],
)
def test_easter_sunday_reference_dates(year: int, expected: dt.date) -> None:
    assert easter_sunday(year) == expected


def test_easter_matches_dateutil() -> None:
    for year in range(1583, 4100):
        d = easter_sunday(year)
        assert d == easter(year, EASTER_WESTERN), year
        assert d.isoweekday() == 7, year
        assert dt.date(year, 3, 22) <= d <= dt.date(year, 4, 25), year


def test_orthodox_easter_matches_dateutil() -> None:
    for year in range(1583, 4100):
        assert orthodox_easter(year) == easter(year, EASTER_ORTHODOX), year


@pytest.mark.parametrize(
    "year, expected",
    [
        (2023, dt.date(2023, 4, 16)),
        (2024, dt.date(2024, 5, 5)),
        (2025, dt.date(2025, 4, 20)),
    ],
)
def test_orthodox_easter(year: int, expected: dt.date) -> None:
    assert orthodox_easter(year) == expected
    assert orthodox_easter(year).isoweekday() == 7


def test_easter_offsets() -> None:
    calc = EasterCalculator()
    good_friday = make_rule(RuleType.EASTER_OFFSET, EasterParams(offset=-2))
    pentecost_monday = make_rule(RuleType.EASTER_OFFSET, EasterParams(offset=50))
    orthodox = make_rule(RuleType.EASTER_OFFSET, EasterParams(method="orthodox"))

    assert calc.calculate(good_friday, 2024) == [dt.date(2024, 3, 29)]
    assert calc.calculate(pentecost_monday, 2024) == [dt.date(2024, 5, 20)]
    assert calc.calculate(orthodox, 2024) == [dt.date(2024, 5, 5)]


# ============================================================
# 2) Fixed and nth-weekday
# ============================================================
def test_fixed_dates_and_leap_day() -> None:
    calc = FixedCalculator()
    assert calc.calculate(make_rule(RuleType.FIXED, FixedParams(7, 4)), 2026) == [dt.date(2026, 7, 4)]

    leap_day = make_rule(RuleType.FIXED, FixedParams(2, 29))
    assert calc.calculate(leap_day, 2024) == [dt.date(2024, 2, 29)]
    assert calc.calculate(leap_day, 2023) == []


@pytest.mark.parametrize(
    "year, month, weekday, nth, expected",
    [
        (2024, 1, 1, 3, dt.date(2024, 1, 15)),    # Martin Luther King Jr. Day
        (2024, 5, 1, -1, dt.date(2024, 5, 27)),   # Memorial Day
        (2024, 11, 4, 4, dt.date(2024, 11, 28)),  # Thanksgiving
        (2026, 9, 1, 1, dt.date(2026, 9, 7)),     # Labor Day
        (2024, 12, 2, -1, dt.date(2024, 12, 31)),
    ],
)
def test_nth_weekday_examples(year: int, month: int, weekday: int, nth: int, expected: dt.date) -> None:
    rule = make_rule(RuleType.NTH_WEEKDAY, NthWeekdayParams(month, weekday, nth))
    assert NthWeekdayCalculator().calculate(rule, year) == [expected]


def test_nth_weekday_matches_weekday_and_ordinal() -> None:
    for month in range(1, 13):
        n_days = calendar.monthrange(2024, month)[1]
        for weekday in range(1, 8):
            for nth in (1, 2, 3, 4, -1, -2, -3, -4):
                d = nth_weekday(2024, month, weekday, nth)
                assert d.month == month
                assert d.isoweekday() == weekday
                if nth > 0:
                    assert (d.day - 1) // 7 + 1 == nth
                else:
                    assert (n_days - d.day) // 7 + 1 == -nth


def test_missing_fifth_weekday_raises() -> None:
    # February 2023 has four Mondays
    with pytest.raises(InvalidHolidayRuleError, match="no occurrence"):
        nth_weekday(2023, 2, 1, 5, rule_id="fifth-monday")
    assert nth_weekday(2024, 4, 1, 5) == dt.date(2024, 4, 29)


# ============================================================
# 3) Lunar calendars
# ============================================================
@pytest.mark.parametrize(
    "month, day, year, expected",
    [
        (1, 1, 2023, dt.date(2023, 1, 22)),   # Spring Festival
        (1, 1, 2024, dt.date(2024, 2, 10)),
        (5, 5, 2020, dt.date(2020, 6, 25)),   # Dragon Boat
        (5, 5, 2023, dt.date(2023, 6, 22)),
        (8, 15, 2020, dt.date(2020, 10, 1)),  # Mid-Autumn
        (8, 15, 2023, dt.date(2023, 9, 29)),
        (3, 1, 2023, dt.date(2023, 4, 20)),
    ],
)
def test_chinese_lunar_dates(month: int, day: int, year: int, expected: dt.date) -> None:
    assert lunar("chinese", month, day, year) == [expected]


def test_chinese_leap_month() -> None:
    # 2023 has a leap second month, 2024 has none
    assert lunar("chinese", 2, 1, 2023, leap_month=True) == [dt.date(2023, 3, 22)]
    assert lunar("chinese", 2, 1, 2024, leap_month=True) == []


def test_chinese_out_of_range_raises() -> None:
    with pytest.raises(InvalidDateError):
        lunar("chinese", 1, 1, 2150)


def test_chinese_conversion_uses_current_lunardate_api() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        assert lunar("chinese", 1, 1, 2024) == [dt.date(2024, 2, 10)]
        assert lunar("chinese", 8, 15, 2099)


def test_islamic_date_can_occur_twice_in_a_year() -> None:
    dates = lunar("islamic", 10, 1, 2000)
    assert len(dates) == 2
    assert all(d.year == 2000 for d in dates)
    assert (dates[1] - dates[0]).days in (354, 355)


def test_hebrew_and_persian_new_year() -> None:
    assert lunar("hebrew", 7, 1, 2023) == [dt.date(2023, 9, 16)]

    (nowruz,) = lunar("persian", 1, 1, 2024)
    assert dt.date(2024, 3, 19) <= nowruz <= dt.date(2024, 3, 22)


def test_unknown_lunar_calendar_raises() -> None:
    with pytest.raises(InvalidHolidayRuleError, match="unknown lunar calendar"):
        lunar("mayan", 1, 1, 2024)


# ============================================================
# 4) Relative
# ============================================================
class FakeContext:
    """Stands in for the engine's resolution context."""

    def __init__(self, dates_by_year):
        self.dates_by_year = dates_by_year
        self.requested = []

    def reference_dates(self, rule, year):
        self.requested.append(year)
        return self.dates_by_year.get(year, [])


def test_relative_shifts_reference_dates() -> None:
    rule = make_rule(RuleType.RELATIVE, RelativeParams("thanksgiving", offset=1))
    ctx = FakeContext({2024: [dt.date(2024, 11, 28)], 2023: [dt.date(2023, 11, 23)]})

    assert RelativeCalculator().calculate(rule, 2024, ctx) == [dt.date(2024, 11, 29)]


def test_relative_reaches_into_neighbouring_year() -> None:
    eve = make_rule(RuleType.RELATIVE, RelativeParams("new-year", offset=-1))
    ctx = FakeContext({y: [dt.date(y, 1, 1)] for y in range(2020, 2030)})

    assert RelativeCalculator().calculate(eve, 2024, ctx) == [dt.date(2024, 12, 31)]
    assert sorted(ctx.requested) == [2024, 2025]


def test_relative_reference_years_follow_the_offset() -> None:
    rule = make_rule(RuleType.RELATIVE, RelativeParams("new-year", offset=800))
    ctx = FakeContext({y: [dt.date(y, 1, 1)] for y in range(2020, 2030)})

    assert RelativeCalculator().calculate(rule, 2025, ctx) == [dt.date(2025, 3, 11)]
    assert sorted(ctx.requested) == [2022, 2023]


class EdgeOfTableContext(FakeContext):
    def reference_dates(self, rule, year):
        if year > 2099:
            raise InvalidDateError(f"no table for {year}")
        return super().reference_dates(rule, year)


def test_relative_skips_neighbouring_years_without_reference_dates() -> None:
    eve = make_rule(RuleType.RELATIVE, RelativeParams("new-year", offset=-1))
    ctx = EdgeOfTableContext({y: [dt.date(y, 1, 1)] for y in range(2090, 2100)})

    assert RelativeCalculator().calculate(eve, 2099, ctx) == []
    with pytest.raises(InvalidDateError):
        RelativeCalculator().calculate(eve, 2100, ctx)


def test_relative_without_context_raises() -> None:
    rule = make_rule(RuleType.RELATIVE, RelativeParams("x"))
    with pytest.raises(InvalidHolidayRuleError):
        RelativeCalculator().calculate(rule, 2024)


# ============================================================
# 5) Custom output normalization
# ============================================================
def test_custom_accepts_dates_and_datetimes() -> None:
    rule = make_rule(RuleType.CUSTOM, CustomParams(
        lambda year: [dt.datetime(year, 3, 2, 12, 30), dt.date(year, 1, 5)]
    ))
    assert CustomCalculator().calculate(rule, 2024) == [dt.date(2024, 1, 5), dt.date(2024, 3, 2)]

    single = make_rule(RuleType.CUSTOM, CustomParams(lambda year: dt.date(year, 6, 1)))
    assert CustomCalculator().calculate(single, 2024) == [dt.date(2024, 6, 1)]


@pytest.mark.parametrize("bad", ["2024-01-01", 42, None, [dt.date(2024, 1, 1), "x"]])
def test_invalid_calculator_output_raises(bad) -> None:
    rule = make_rule(RuleType.CUSTOM, CustomParams(lambda year: bad), rule_id="broken")
    with pytest.raises(InvalidCalculatorOutputError) as excinfo:
        CustomCalculator().calculate(rule, 2024)
    assert excinfo.value.rule_id == "broken"


def test_normalize_dates_generators() -> None:
    gen = (dt.date(2024, m, 1) for m in (3, 1, 2))
    assert normalize_dates(gen, "g") == [dt.date(2024, 1, 1), dt.date(2024, 2, 1), dt.date(2024, 3, 1)]


def test_function_calculator_wraps_plain_functions() -> None:
    calc = FunctionCalculator(lambda rule, year: dt.date(year, 12, 24))
    rule = make_rule(RuleType.FIXED, FixedParams(12, 25))
    assert calc.calculate(rule, 2024) == [dt.date(2024, 12, 24)]

    with pytest.raises(TypeError):
        FunctionCalculator("not callable")


def test_default_calculators_cover_every_type() -> None:
    calcs = default_calculators()
    assert set(calcs) == set(RuleType)
    assert all(calc.type == rule_type for rule_type, calc in calcs.items())
