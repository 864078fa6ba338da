"""
Input predicates and holiday rule validation.

``validate_holiday_rule`` returns the list of violated constraints (empty when the rule is
valid) so callers can report them all at once. ``throw_error`` builds the typed exception
for an error kind.
"""

from __future__ import annotations

import calendar
import re
from typing import Any, List, NoReturn, Union

from .cache import memoize
from .errors import ERROR_CLASSES, ErrorKind
from .lunar import LUNAR_CONVERTERS
from .rules import (
    PARAMS_BY_TYPE,
    HolidayRule,
    ObservancePolicy,
    RuleType,
    WILDCARD_LOCALE,
)

MIN_YEAR = 1
MAX_YEAR = 9999
EASTER_METHODS = ("western", "orthodox")
ROLL_DIRECTIONS = (None, "forward", "backward")

_LOCALE_RE = re.compile(r"^[A-Za-z]{2,3}([-_][A-Za-z0-9]{2,8})*$")


def _is_int(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


# =========================
# Predicates
# =========================
def is_valid_year(year: Any) -> bool:
    return _is_int(year) and MIN_YEAR <= year <= MAX_YEAR


def is_valid_month(month: Any) -> bool:
    return _is_int(month) and 1 <= month <= 12


def is_valid_day(day: Any) -> bool:
    return _is_int(day) and 1 <= day <= 31


def is_valid_weekday(weekday: Any) -> bool:
    """ISO weekday: Monday=1, ..., Sunday=7."""
    return _is_int(weekday) and 1 <= weekday <= 7


def is_valid_nth(nth: Any) -> bool:
    return _is_int(nth) and nth != 0 and -5 <= nth <= 5


def is_valid_locale(locale: Any) -> bool:
    if not isinstance(locale, str):
        return False
    return locale == WILDCARD_LOCALE or bool(_LOCALE_RE.match(locale))


@memoize(capacity=10000)
def is_valid_date(year: Any, month: Any, day: Any) -> bool:
    if not (is_valid_year(year) and is_valid_month(month) and is_valid_day(day)):
        return False
    return day <= calendar.monthrange(year, month)[1]


def _fixed_date_can_exist(month: int, day: int) -> bool:
    # checked against a leap year so that Feb 29 is accepted
    return day <= calendar.monthrange(2000, month)[1]


# =========================
# Rule validation
# =========================
def _validate_observance(policy: Any) -> List[str]:
    if policy is None:
        return []
    if not isinstance(policy, ObservancePolicy):
        return [f"observance must be an ObservancePolicy, got {type(policy).__name__}"]

    errors = []
    if not policy.weekend or not all(is_valid_weekday(w) for w in policy.weekend):
        errors.append(f"observance weekend must be a non-empty set of weekdays 1-7, got {sorted(policy.weekend)}")
    elif len(policy.weekend) == 7:
        errors.append("observance weekend cannot cover all seven weekdays")
    for weekday, offset in policy.shifts:
        if not is_valid_weekday(weekday):
            errors.append(f"observance shift weekday must be 1-7, got {weekday!r}")
        if offset == 0:
            errors.append(f"observance shift offset for weekday {weekday} must be non-zero")
    if policy.roll not in ROLL_DIRECTIONS:
        errors.append(f"observance roll must be 'forward', 'backward' or None, got {policy.roll!r}")
    return errors


def _validate_params(rule: HolidayRule) -> List[str]:
    p = rule.params
    expected = PARAMS_BY_TYPE[rule.type]
    if not isinstance(p, expected):
        return [f"params for type {rule.type.value!r} must be {expected.__name__}, got {type(p).__name__}"]

    errors = []
    if rule.type == RuleType.FIXED:
        if not is_valid_month(p.month):
            errors.append(f"month must be 1-12, got {p.month!r}")
        elif not is_valid_day(p.day) or not _fixed_date_can_exist(p.month, p.day):
            errors.append(f"day {p.day!r} does not exist in month {p.month}")

    elif rule.type == RuleType.NTH_WEEKDAY:
        if not is_valid_month(p.month):
            errors.append(f"month must be 1-12, got {p.month!r}")
        if not is_valid_weekday(p.weekday):
            errors.append(f"weekday must be 1-7 (Monday=1), got {p.weekday!r}")
        if not is_valid_nth(p.nth):
            errors.append(f"nth must be 1-5 or -5 to -1, got {p.nth!r}")

    elif rule.type == RuleType.EASTER_OFFSET:
        if not _is_int(p.offset):
            errors.append(f"offset must be an integer, got {p.offset!r}")
        if p.method not in EASTER_METHODS:
            errors.append(f"method must be one of {EASTER_METHODS}, got {p.method!r}")

    elif rule.type == RuleType.LUNAR:
        converter = LUNAR_CONVERTERS.get(p.calendar)
        if converter is None:
            errors.append(f"unknown lunar calendar {p.calendar!r}, expected one of {sorted(LUNAR_CONVERTERS)}")
        elif not (_is_int(p.month) and 1 <= p.month <= converter.max_month):
            errors.append(f"lunar month must be 1-{converter.max_month}, got {p.month!r}")
        if not (_is_int(p.day) and 1 <= p.day <= 30):
            errors.append(f"lunar day must be 1-30, got {p.day!r}")
        if p.leap_month and p.calendar != "chinese":
            errors.append(f"leap_month is only meaningful for the chinese calendar, got {p.calendar!r}")

    elif rule.type == RuleType.RELATIVE:
        if not isinstance(p.relative_to, str) or not p.relative_to:
            errors.append("relative_to must be a non-empty rule id or name")
        elif p.relative_to == rule.id:
            errors.append(f"rule {rule.id!r} cannot be relative to itself")
        if not _is_int(p.offset):
            errors.append(f"offset must be an integer, got {p.offset!r}")

    elif rule.type == RuleType.CUSTOM:
        if not callable(p.calculate):
            errors.append("calculate must be callable")

    return errors


def validate_holiday_rule(rule: Any) -> List[str]:
    """
    Check a holiday rule and list every violated constraint.

    Parameters
    ----------
    rule: HolidayRule
        The rule to check.

    Returns
    -------
    List[str]
        Human readable violations, empty if the rule is valid.
    """
    if not isinstance(rule, HolidayRule):
        return [f"rule must be a HolidayRule, got {type(rule).__name__}"]

    errors = []
    if not isinstance(rule.id, str) or not rule.id.strip():
        errors.append("id must be a non-empty string")
    if not isinstance(rule.name, str) or not rule.name.strip():
        errors.append("name must be a non-empty string")
    if not is_valid_locale(rule.locale):
        errors.append(f"locale {rule.locale!r} is not a valid locale code")
    if not _is_int(rule.duration) or rule.duration < 1:
        errors.append(f"duration must be an integer >= 1, got {rule.duration!r}")
    if not isinstance(rule.active, bool):
        errors.append(f"active must be a bool, got {rule.active!r}")

    if not isinstance(rule.type, RuleType):
        errors.append(f"unknown rule type {rule.type!r}, expected one of {[t.value for t in RuleType]}")
    else:
        errors.extend(_validate_params(rule))

    errors.extend(_validate_observance(rule.observance))
    return errors


def throw_error(kind: Union[ErrorKind, str], message: str, **details: Any) -> NoReturn:
    """
    Raise the typed exception mapped to ``kind``.

    Parameters
    ----------
    kind: ErrorKind or str
        Error kind, e.g. ErrorKind.INVALID_DATE or "InvalidDate".
    message: str
        The error message.
    **details
        Extra keyword attributes accepted by the exception class (e.g. ``dependency=``).
    """
    try:
        cls = ERROR_CLASSES[ErrorKind(kind)]
    except ValueError:
        raise ValueError(f"Unknown error kind: {kind!r}") from None
    raise cls(message, **details)
