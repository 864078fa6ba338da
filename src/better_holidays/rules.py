"""
Immutable holiday rule definitions, observance policies and resolved occurrences.

A ``HolidayRule`` pairs a ``RuleType`` with the matching parameter class:

    fixed          -> FixedParams(month, day)
    nth-weekday    -> NthWeekdayParams(month, weekday, nth)
    easter-offset  -> EasterParams(offset, method)
    lunar          -> LunarParams(calendar, month, day, leap_month)
    relative       -> RelativeParams(relative_to, offset)
    custom         -> CustomParams(calculate)

Weekdays follow the ISO convention (Monday=1, ..., Sunday=7).
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple, Union

from .errors import InvalidHolidayRuleError

WILDCARD_LOCALE = "*"
MAX_OBSERVANCE_STEPS = 366


class RuleType(str, Enum):
    FIXED = "fixed"
    NTH_WEEKDAY = "nth-weekday"
    EASTER_OFFSET = "easter-offset"
    LUNAR = "lunar"
    RELATIVE = "relative"
    CUSTOM = "custom"

    @classmethod
    def coerce(cls, value: Union[str, "RuleType"]) -> "RuleType":
        """Return the RuleType for ``value``. Raises ValueError for an unknown tag."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


# =========================
# Params
# =========================
@dataclass(frozen=True)
class FixedParams:
    month: int
    day: int


@dataclass(frozen=True)
class NthWeekdayParams:
    """``nth`` counts from the start of the month when positive, from the end when negative."""
    month: int
    weekday: int
    nth: int


@dataclass(frozen=True)
class EasterParams:
    offset: int = 0
    method: str = "western"


@dataclass(frozen=True)
class LunarParams:
    calendar: str
    month: int
    day: int
    leap_month: bool = False


@dataclass(frozen=True)
class RelativeParams:
    relative_to: str
    offset: int = 0


@dataclass(frozen=True)
class CustomParams:
    """``calculate(year)`` must return a date or an iterable of dates."""
    calculate: Callable[[int], Any]


RuleParams = Union[FixedParams, NthWeekdayParams, EasterParams, LunarParams, RelativeParams, CustomParams]

PARAMS_BY_TYPE = {
    RuleType.FIXED: FixedParams,
    RuleType.NTH_WEEKDAY: NthWeekdayParams,
    RuleType.EASTER_OFFSET: EasterParams,
    RuleType.LUNAR: LunarParams,
    RuleType.RELATIVE: RelativeParams,
    RuleType.CUSTOM: CustomParams,
}


# =========================
# Observance
# =========================
@dataclass(frozen=True)
class ObservancePolicy:
    """
    How a holiday falling on a non-business day is moved to its observed date.

    The policy only triggers when the raw date falls on one of ``weekend``. The first move
    comes from ``shifts`` (an explicit offset per weekday) or, failing that, from ``roll``
    (one day forward or backward). The date then keeps moving in the same direction while
    it lands on a weekend day or, with ``avoid_holidays``, on a date already taken by
    another holiday of the same resolution.

    Parameters
    ----------
    weekend: FrozenSet[int], default {6, 7}
        ISO weekdays considered non-business for this rule.
    shifts: Tuple[Tuple[int, int], ...]
        Pairs of (weekday, day offset) applied first, e.g. ((6, -1), (7, 1)).
    roll: Optional[str]
        "forward", "backward" or None.
    avoid_holidays: bool, default False
        Also skip dates already occupied by other holidays (substitute days).
    keep_original: bool, default False
        Emit both the actual date and the observed date.
    """
    weekend: FrozenSet[int] = frozenset({6, 7})
    shifts: Tuple[Tuple[int, int], ...] = ()
    roll: Optional[str] = None
    avoid_holidays: bool = False
    keep_original: bool = False

    def __post_init__(self):
        object.__setattr__(self, "weekend", frozenset(self.weekend))
        object.__setattr__(self, "shifts", tuple((int(w), int(o)) for w, o in self.shifts))

    def applies_to(self, day: dt.date) -> bool:
        return day.isoweekday() in self.weekend

    def observe(self, day: dt.date, occupied: Iterable[dt.date] = ()) -> dt.date:
        """
        Return the observed date for ``day``, which is ``day`` itself when no shift applies.

        Parameters
        ----------
        day: dt.date
            The raw holiday date.
        occupied: Iterable[dt.date]
            Dates already taken by other holidays, honoured when ``avoid_holidays`` is set.
        """
        if not self.applies_to(day):
            return day

        explicit = dict(self.shifts).get(day.isoweekday())
        if explicit:
            step = 1 if explicit > 0 else -1
            current = day + dt.timedelta(days=explicit)
        elif self.roll == "forward":
            step = 1
            current = day + dt.timedelta(days=1)
        elif self.roll == "backward":
            step = -1
            current = day - dt.timedelta(days=1)
        else:
            return day

        taken = set(occupied) if self.avoid_holidays else set()
        for _ in range(MAX_OBSERVANCE_STEPS):
            if current.isoweekday() not in self.weekend and current not in taken:
                return current
            current += dt.timedelta(days=step)
        raise InvalidHolidayRuleError(f"Observance policy never reaches a business day from {day}.")


NEAREST_WEEKDAY = ObservancePolicy(shifts=((6, -1), (7, 1)))
SUBSTITUTE = ObservancePolicy(roll="forward", avoid_holidays=True)
PREVIOUS_WEEKDAY = ObservancePolicy(roll="backward")
SUNDAY_TO_MONDAY = ObservancePolicy(weekend=frozenset({7}), roll="forward")
BRIDGE = ObservancePolicy(shifts=((6, -1), (7, 1)), keep_original=True)

OBSERVANCE_PRESETS: Dict[str, ObservancePolicy] = {
    "nearest-weekday": NEAREST_WEEKDAY,
    "substitute": SUBSTITUTE,
    "previous-weekday": PREVIOUS_WEEKDAY,
    "sunday-to-monday": SUNDAY_TO_MONDAY,
    "bridge": BRIDGE,
}


# =========================
# Rules and occurrences
# =========================
@dataclass(frozen=True)
class HolidayRule:
    """
    Declarative holiday definition, immutable once built.

    ``locale`` is a locale code such as "en-US" or the wildcard "*" which applies to every
    locale. ``duration`` expands every calculated date into that many consecutive days.
    Inactive rules stay registered but are skipped by resolution.
    """
    id: str
    name: str
    type: Union[RuleType, str]
    locale: str
    params: Any
    observance: Optional[ObservancePolicy] = None
    duration: int = 1
    active: bool = True

    def __post_init__(self):
        try:
            object.__setattr__(self, "type", RuleType.coerce(self.type))
        except ValueError:
            # left as is, validate_holiday_rule reports it
            pass


@dataclass(frozen=True)
class HolidayOccurrence:
    rule_id: str
    date: dt.date
    name: str
    locale: str
    type: Optional[RuleType] = None
    observed: bool = False
    original_date: Optional[dt.date] = None


def _resolve_observance(value: Any, rule_id: str) -> Optional[ObservancePolicy]:
    if value is None or isinstance(value, ObservancePolicy):
        return value
    if isinstance(value, str):
        try:
            return OBSERVANCE_PRESETS[value.strip().lower()]
        except KeyError:
            raise InvalidHolidayRuleError(
                f"Rule {rule_id!r}: unknown observance preset {value!r}, expected one of {sorted(OBSERVANCE_PRESETS)}",
                rule_id=rule_id,
            )
    if isinstance(value, Mapping):
        return ObservancePolicy(**value)
    raise InvalidHolidayRuleError(f"Rule {rule_id!r}: unsupported observance {value!r}", rule_id=rule_id)


def rule_from_mapping(row: Mapping[str, Any], locale: Optional[str] = None) -> HolidayRule:
    """
    Build a typed ``HolidayRule`` from a plain locale-table row.

    Parameters
    ----------
    row: Mapping[str, Any]
        Keys "id", "name", "type", "params" and optionally "observance" (preset name,
        mapping or ObservancePolicy), "duration", "active" and "locale".
    locale: Optional[str]
        Locale used when the row has none.

    Raises
    ------
    InvalidHolidayRuleError
        If a key or a type-specific parameter is missing or unknown.
    """
    rule_id = row.get("id")
    for key in ("id", "name", "type"):
        if key not in row:
            raise InvalidHolidayRuleError(f"Rule {rule_id!r}: missing required key {key!r}", rule_id=rule_id)

    try:
        rule_type = RuleType.coerce(row["type"])
    except ValueError:
        raise InvalidHolidayRuleError(f"Rule {rule_id!r}: unknown rule type {row['type']!r}", rule_id=rule_id)

    raw_params = row.get("params", {})
    if isinstance(raw_params, Mapping):
        try:
            params = PARAMS_BY_TYPE[rule_type](**raw_params)
        except TypeError as e:
            raise InvalidHolidayRuleError(f"Rule {rule_id!r}: bad parameters for {rule_type.value}: {e}",
                                          rule_id=rule_id) from e
    else:
        params = raw_params

    rule_locale = row.get("locale", locale)
    if rule_locale is None:
        raise InvalidHolidayRuleError(f"Rule {rule_id!r}: no locale given", rule_id=rule_id)

    return HolidayRule(
        id=row["id"],
        name=row["name"],
        type=rule_type,
        locale=rule_locale,
        params=params,
        observance=_resolve_observance(row.get("observance"), rule_id),
        duration=row.get("duration", 1),
        active=row.get("active", True),
    )
