"""
Holiday engine: calculator registry, locale-scoped rule registry and cached resolution.

Resolution of (year, locale):
  1. take the active rules of the wildcard scope "*" and of the locale, in registration order
  2. compute each rule's raw dates through the calculator bound to its type
  3. expand multi-day holidays (``duration``)
  4. apply each rule's observance policy, in (date, registration order)
  5. sort by (date, registration order) and cache the immutable result
"""

from __future__ import annotations

import datetime as dt
import itertools
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .cache import (
    DATE_CACHE_CAPACITY,
    HOLIDAY_CACHE_CAPACITY,
    create_date_cache,
    create_holiday_cache,
    date_cache_key,
    holiday_cache_key,
)
from .calculators import CALCULATOR_CLASSES, AbstractCalculator, FunctionCalculator, normalize_dates
from .errors import CyclicHolidayReferenceError, InvalidDateError, InvalidHolidayRuleError, UnknownLocaleError
from .plugins import InstallContext, PluginDescriptor
from .rules import WILDCARD_LOCALE, HolidayOccurrence, HolidayRule, RuleType
from .utils import DateLike, to_date
from .validators import MAX_YEAR, MIN_YEAR, is_valid_locale, is_valid_year, validate_holiday_rule

logger = logging.getLogger(__name__)

ENGINE_PLUGIN = "holiday-engine"
ENGINE_SERVICE = "holiday-engine"
DEFAULT_LOCALE = "en-US"
MAX_RELATIVE_DEPTH = 16
HOLIDAY_SEARCH_YEARS = 5

CalculatorLike = Union[AbstractCalculator, Callable[[HolidayRule, int], Any]]


class ResolutionContext:
    """
    Per-resolution state: the queried locale and the stack of rules being computed.

    The stack is what turns a relative-rule cycle into ``CyclicHolidayReferenceError``
    instead of infinite recursion; the depth limit bounds chains that are merely long.
    """

    def __init__(self, engine: "HolidayEngine", locale: str):
        self.engine = engine
        self.locale = locale
        self.stack: List[str] = []

    def raw_dates(self, rule: HolidayRule, year: int) -> List[dt.date]:
        if rule.id in self.stack:
            chain = self.stack[self.stack.index(rule.id):] + [rule.id]
            raise CyclicHolidayReferenceError(
                f"Cyclic holiday reference: {' -> '.join(chain)}",
                chain=chain,
            )
        if len(self.stack) >= MAX_RELATIVE_DEPTH:
            chain = self.stack + [rule.id]
            raise CyclicHolidayReferenceError(
                f"Relative holiday chain deeper than {MAX_RELATIVE_DEPTH}: {' -> '.join(chain)}",
                chain=chain,
            )
        self.stack.append(rule.id)
        try:
            return self.engine._raw_dates(rule, year, self)
        finally:
            self.stack.pop()

    def reference_dates(self, rule: HolidayRule, year: int) -> List[dt.date]:
        """Raw dates of the holiday ``rule`` is relative to."""
        target = self.engine._find_reference(rule, self.locale)
        return self.raw_dates(target, year)


class HolidayEngine:
    """
    Resolves holiday rules into dated occurrences per year and locale.

    Parameters
    ----------
    calculators: Mapping[RuleType or str, CalculatorLike], optional
        Initial calculator bindings. The engine starts with none; the calculator plugins
        (or ``default_calculators()``) provide the built-in ones.
    default_locale: str, default "en-US"
        Locale used by queries that do not pass one.
    cache_capacity: int, default HOLIDAY_CACHE_CAPACITY
        Capacity of the resolved (locale, year) cache.
    rule_cache_capacity: int, default DATE_CACHE_CAPACITY
        Capacity of the per-rule raw date cache.
    """

    def __init__(self,
                 calculators: Optional[Mapping[Union[RuleType, str], CalculatorLike]] = None,
                 *,
                 default_locale: str = DEFAULT_LOCALE,
                 cache_capacity: int = HOLIDAY_CACHE_CAPACITY,
                 rule_cache_capacity: int = DATE_CACHE_CAPACITY):
        self._locale = self._query_locale_check(default_locale)
        self._calculators: Dict[RuleType, AbstractCalculator] = {}
        self._rules: Dict[str, Dict[str, Tuple[int, HolidayRule]]] = {}
        self._sequence = itertools.count()
        self._holiday_cache = create_holiday_cache(cache_capacity)
        self._date_cache = create_date_cache(rule_cache_capacity)
        self._global_revision = 0
        self._revisions: Dict[str, int] = {}

        for rule_type, strategy in (calculators or {}).items():
            self.register_calculator(rule_type, strategy)

    # ---------------------------------------
    # |            Helper methods           |
    # ---------------------------------------

    @staticmethod
    def _query_locale_check(locale: Any) -> str:
        if not is_valid_locale(locale) or locale == WILDCARD_LOCALE:
            raise UnknownLocaleError(f"Malformed locale code: {locale!r}", locale=locale)
        return locale

    def _query_locale(self, locale: Optional[str]) -> str:
        return self._locale if locale is None else self._query_locale_check(locale)

    def _invalidate(self, locale: str) -> None:
        if locale == WILDCARD_LOCALE:
            self._holiday_cache.clear()
            self._date_cache.clear()
            self._global_revision += 1
            return
        # relative rules of other locales never see this locale's rules, so only its keys go
        self._holiday_cache.delete_where(lambda k: k[1] == locale)
        self._date_cache.delete_where(lambda k: k[1] == locale)
        self._revisions[locale] = self._revisions.get(locale, 0) + 1

    def _scope(self, locale: str) -> List[Tuple[int, HolidayRule]]:
        """Rules visible from ``locale`` (wildcard ones included), in registration order."""
        entries = list(self._rules.get(WILDCARD_LOCALE, {}).values())
        if locale != WILDCARD_LOCALE:
            entries.extend(self._rules.get(locale, {}).values())
        return sorted(entries, key=lambda e: e[0])

    def _find_reference(self, rule: HolidayRule, locale: str) -> HolidayRule:
        ref = rule.params.relative_to
        local = self._rules.get(locale, {})
        wildcard = self._rules.get(WILDCARD_LOCALE, {})
        if ref in local:
            return local[ref][1]
        if ref in wildcard:
            return wildcard[ref][1]

        wanted = ref.strip().lower()
        for _, candidate in self._scope(locale):
            if candidate.name.strip().lower() == wanted:
                logger.warning("Rule %r refers to %r by name, resolved to rule id %r", rule.id, ref, candidate.id)
                return candidate

        raise InvalidHolidayRuleError(
            f"Rule {rule.id!r} is relative to unknown holiday {ref!r} in locale {locale!r}",
            rule_id=rule.id,
        )

    def _raw_dates(self, rule: HolidayRule, year: int, context: ResolutionContext) -> List[dt.date]:
        key = date_cache_key(context.locale, f"{rule.locale}/{rule.id}", year)
        cached = self._date_cache.get(key)
        if cached is not None:
            return list(cached)

        calculator = self._calculators.get(rule.type)
        if calculator is None:
            raise InvalidHolidayRuleError(
                f"No calculator registered for rule type {rule.type.value!r} (rule {rule.id!r})",
                rule_id=rule.id,
            )
        dates = normalize_dates(calculator.calculate(rule, year, context), rule.id)
        self._date_cache.set(key, tuple(dates))
        return dates

    # ---------------------------------------
    # |          Public API methods         |
    # ---------------------------------------

    # ----------------------------
    # 0. Calculators and rules
    # ----------------------------

    def register_calculator(self, rule_type: Union[RuleType, str], strategy: CalculatorLike) -> None:
        """
        Bind a calculator to a rule type, replacing any previous binding.

        Parameters
        ----------
        rule_type: RuleType or str
            One of the six rule types, e.g. "easter-offset".
        strategy: AbstractCalculator or Callable[[HolidayRule, int], Any]
            The calculator. A plain function is wrapped in ``FunctionCalculator``.
        """
        rule_type = RuleType.coerce(rule_type)
        if not isinstance(strategy, AbstractCalculator):
            strategy = FunctionCalculator(strategy)
        if rule_type in self._calculators:
            logger.info("Overriding %s calculator with %r", rule_type.value, strategy)
        self._calculators[rule_type] = strategy
        self._invalidate(WILDCARD_LOCALE)

    def calculator(self, rule_type: Union[RuleType, str]) -> Optional[AbstractCalculator]:
        return self._calculators.get(RuleType.coerce(rule_type))

    def _check_rule(self, rule: HolidayRule, staged: Optional[Dict[tuple, HolidayRule]] = None) -> bool:
        """Raise InvalidHolidayRuleError unless ``rule`` can be registered; True if it already is."""
        violations = validate_holiday_rule(rule)
        if violations:
            rule_id = getattr(rule, "id", None)
            raise InvalidHolidayRuleError(
                f"Invalid holiday rule {rule_id!r}: " + "; ".join(violations),
                rule_id=rule_id,
                violations=violations,
            )

        entry = self._rules.get(rule.locale, {}).get(rule.id)
        existing = entry[1] if entry is not None else None
        if existing is None and staged is not None:
            existing = staged.get((rule.locale, rule.id))
        if existing is None:
            return False
        if existing == rule:
            return True
        raise InvalidHolidayRuleError(
            f"A different rule with id {rule.id!r} is already registered for locale {rule.locale!r}",
            rule_id=rule.id,
        )

    def register_rule(self, rule: HolidayRule) -> None:
        """
        Validate ``rule`` and add it to its locale.

        Registering the very same rule twice is a no-op. Only the cached years of the rule's
        locale are dropped (all locales for a wildcard rule).

        Raises
        ------
        InvalidHolidayRuleError
            If the rule breaks a constraint, or another rule with the same id exists in its locale.
        """
        if self._check_rule(rule):
            return
        self._rules.setdefault(rule.locale, {})[rule.id] = (next(self._sequence), rule)
        self._invalidate(rule.locale)

    def check_rules(self, rules: Iterable[HolidayRule]) -> List[HolidayRule]:
        """
        Check that every rule of ``rules`` could be registered, without registering any.

        Returns the rules as a list. Raises InvalidHolidayRuleError on the first rule that
        is invalid or clashes with a registered rule or an earlier rule of the batch.
        """
        rules = list(rules)
        staged: Dict[tuple, HolidayRule] = {}
        for rule in rules:
            self._check_rule(rule, staged)
            staged[(rule.locale, rule.id)] = rule
        return rules

    def register_rules(self, rules: Iterable[HolidayRule]) -> None:
        """Register a batch of rules, all or none of them."""
        for rule in self.check_rules(rules):
            self.register_rule(rule)

    def rules(self, locale: Optional[str] = None) -> List[HolidayRule]:
        """Rules registered under exactly ``locale`` (default locale if None), in registration order."""
        loc = self._locale if locale is None else locale
        return [rule for _, rule in self._rules.get(loc, {}).values()]

    def locales(self) -> List[str]:
        return sorted(loc for loc, bucket in self._rules.items() if bucket)

    # ----------------------------
    # 1. Locale and cache
    # ----------------------------

    @property
    def locale(self) -> str:
        return self._locale

    def set_locale(self, locale: str) -> None:
        self._locale = self._query_locale_check(locale)

    def clear_cache(self) -> None:
        self._holiday_cache.clear()
        self._date_cache.clear()

    def cache_stats(self) -> Dict[str, Dict[str, float]]:
        return {"holidays": self._holiday_cache.stats(), "dates": self._date_cache.stats()}

    def revision(self, locale: Optional[str] = None) -> int:
        """Token that grows whenever resolutions for ``locale`` may have changed."""
        loc = self._query_locale(locale)
        return self._global_revision + self._revisions.get(loc, 0)

    # ----------------------------
    # 2. Resolution
    # ----------------------------

    def resolve(self, year: int, locale: Optional[str] = None) -> Tuple[HolidayOccurrence, ...]:
        """
        All holiday occurrences of ``year`` for ``locale``.

        Parameters
        ----------
        year: int
            Gregorian year (1-9999).
        locale: Optional[str]
            Locale code, defaults to the engine locale.

        Returns
        -------
        Tuple[HolidayOccurrence, ...]
            Sorted by date then registration order. Empty for a locale without rules.
            Observed dates may fall in the neighbouring year (e.g. a Saturday January 1
            observed on the previous Friday).
        """
        if not is_valid_year(year):
            raise InvalidDateError(f"Year must be an integer in [{MIN_YEAR}, {MAX_YEAR}], got {year!r}")
        loc = self._query_locale(locale)

        key = holiday_cache_key(loc, year)
        cached = self._holiday_cache.get(key)
        if cached is not None:
            logger.debug("Holiday cache hit for %s %s", loc, year)
            return cached
        logger.debug("Holiday cache miss for %s %s", loc, year)

        context = ResolutionContext(self, loc)
        raw: List[Tuple[dt.date, int, HolidayRule]] = []
        for seq, rule in self._scope(loc):
            if not rule.active:
                continue
            for day in context.raw_dates(rule, year):
                for k in range(rule.duration):
                    raw.append((day + dt.timedelta(days=k), seq, rule))
        raw.sort(key=lambda item: (item[0], item[1]))

        occupied = {day for day, _, _ in raw}
        dated: List[Tuple[dt.date, int, HolidayOccurrence]] = []
        for day, seq, rule in raw:
            policy = rule.observance
            observed = policy.observe(day, occupied) if policy is not None else day
            if observed == day:
                dated.append((day, seq, HolidayOccurrence(rule.id, day, rule.name, loc, rule.type)))
                continue
            occupied.add(observed)
            if policy.keep_original:
                dated.append((day, seq, HolidayOccurrence(rule.id, day, rule.name, loc, rule.type)))
            dated.append((observed, seq, HolidayOccurrence(rule.id, observed, rule.name, loc, rule.type,
                                                           observed=True, original_date=day)))
        dated.sort(key=lambda item: (item[0], item[1]))

        result = tuple(occ for _, _, occ in dated)
        self._holiday_cache.set(key, result)
        return result

    get_holidays = resolve

    def _years_around(self, first: dt.date, last: dt.date) -> range:
        lo = first.year - 1 if first.month == 1 else first.year
        hi = last.year + 1 if last.month == 12 else last.year
        return range(max(lo, MIN_YEAR), min(hi, MAX_YEAR) + 1)

    def holiday_info(self, day: DateLike, locale: Optional[str] = None) -> List[HolidayOccurrence]:
        """Occurrences falling on ``day``, empty when it is not a holiday."""
        d = to_date(day)
        return self.holidays_in_range(d, d, locale)

    def is_holiday(self, day: DateLike, locale: Optional[str] = None) -> bool:
        """Whether ``day`` carries at least one (actual or observed) holiday in ``locale``."""
        return bool(self.holiday_info(day, locale))

    def holidays_in_range(self,
                          start: DateLike,
                          end: DateLike,
                          locale: Optional[str] = None) -> List[HolidayOccurrence]:
        """
        Occurrences dated within [start, end], both inclusive, sorted by date.

        Parameters
        ----------
        start: DateLike
            First day of the range.
        end: DateLike
            Last day of the range.
        locale: Optional[str]
            Locale code, defaults to the engine locale.
        """
        first, last = to_date(start), to_date(end)
        if last < first:
            raise InvalidDateError(f"Range end {last} is before start {first}.")
        loc = self._query_locale(locale)
        found = []
        for year in self._years_around(first, last):
            try:
                occurrences = self.resolve(year, loc)
            except InvalidDateError:
                # observed dates spilling over from a neighbouring year the calendar cannot compute
                if first.year <= year <= last.year:
                    raise
                logger.debug("Skipping neighbouring year %d for locale %r", year, loc)
                continue
            found.extend(o for o in occurrences if first <= o.date <= last)
        found.sort(key=lambda o: o.date)
        return found

    def next_holiday(self, after: DateLike, locale: Optional[str] = None) -> Optional[HolidayOccurrence]:
        """First occurrence strictly after ``after``, searching up to HOLIDAY_SEARCH_YEARS ahead."""
        d = to_date(after)
        if d.year >= MAX_YEAR and d.month == 12 and d.day == 31:
            return None
        start = d + dt.timedelta(days=1)
        for year in range(start.year, min(start.year + HOLIDAY_SEARCH_YEARS, MAX_YEAR) + 1):
            found = self.holidays_in_range(start, dt.date(year, 12, 31), locale)
            if found:
                return found[0]
        return None

    def previous_holiday(self, before: DateLike, locale: Optional[str] = None) -> Optional[HolidayOccurrence]:
        """Last occurrence strictly before ``before``, searching up to HOLIDAY_SEARCH_YEARS back."""
        d = to_date(before)
        if d == dt.date.min:
            return None
        end = d - dt.timedelta(days=1)
        for year in range(end.year, max(end.year - HOLIDAY_SEARCH_YEARS, MIN_YEAR) - 1, -1):
            found = self.holidays_in_range(dt.date(year, 1, 1), end, locale)
            if found:
                return found[-1]
        return None

    def __repr__(self) -> str:
        return f"HolidayEngine(locale={self._locale!r}, locales={self.locales()})"


# =========================
# Plugins
# =========================
def _install_engine(ctx: InstallContext) -> None:
    engine = HolidayEngine()
    ctx.provide(ENGINE_SERVICE, engine)
    ctx.add_capability("is_holiday", engine.is_holiday)
    ctx.add_capability("holiday_info", engine.holiday_info)
    ctx.add_capability("holidays_in_range", engine.holidays_in_range)
    ctx.add_capability("next_holiday", engine.next_holiday)
    ctx.add_capability("previous_holiday", engine.previous_holiday)


def _calculator_installer(rule_type: RuleType) -> Callable[[InstallContext], None]:
    def install(ctx: InstallContext) -> None:
        ctx.service(ENGINE_SERVICE).register_calculator(rule_type, CALCULATOR_CLASSES[rule_type]())
    install.__name__ = f"install_{rule_type.name.lower()}_calculator"
    return install


engine_plugin = PluginDescriptor(name=ENGINE_PLUGIN, install=_install_engine)

CALCULATOR_PLUGINS: Dict[RuleType, PluginDescriptor] = {
    rule_type: PluginDescriptor(
        name=f"holiday-{rule_type.value}-calculator",
        install=_calculator_installer(rule_type),
        dependencies=frozenset({ENGINE_PLUGIN}),
    )
    for rule_type in CALCULATOR_CLASSES
}
