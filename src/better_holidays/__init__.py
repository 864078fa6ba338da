"""
better_holidays

Holiday resolution built from plugins:
  - a plugin registry resolving dependencies and capability conflicts
  - a holiday engine turning declarative rules (fixed, nth-weekday, easter-offset, lunar,
    relative, custom) into dated occurrences, with observance shifts and LRU caching
  - numpy business-day calendars on top of the resolved holidays
  - locale packs for en-US, en-GB, de-DE, zh-CN and tr-TR

Usage:
    from datetime import date
    import better_holidays as bh

    bh.get_holidays(2026, "en-US")
    bh.is_holiday(date(2026, 7, 3), "en-US")   # True, July 4 observed
    bh.call("next_business_day", date(2026, 7, 2), "en-US")
"""

import logging

from .api import (
    call,
    capability,
    default_plugins,
    default_registry,
    get_holidays,
    get_locale,
    holiday_engine,
    install,
    is_holiday,
    register_calculator,
    register_rule,
    reset_all,
    set_locale,
)
from .business import BusinessCalendar, BusinessDayService, business_plugin
from .cache import LRUCache, create_date_cache, create_holiday_cache, memoize
from .calculators import (
    AbstractCalculator,
    CustomCalculator,
    EasterCalculator,
    FixedCalculator,
    FunctionCalculator,
    LunarCalculator,
    NthWeekdayCalculator,
    RelativeCalculator,
    default_calculators,
    easter_sunday,
    orthodox_easter,
)
from .engine import CALCULATOR_PLUGINS, HolidayEngine, engine_plugin
from .errors import (
    CalendarError,
    CapabilityConflictError,
    CyclicDependencyError,
    CyclicHolidayReferenceError,
    ErrorKind,
    InvalidCalculatorOutputError,
    InvalidDateError,
    InvalidHolidayRuleError,
    MissingDependencyError,
    PluginConflictError,
    UnknownLocaleError,
)
from .locales import LOCALE_TABLES, locale_plugin, make_locale_plugin
from .plugins import InstallContext, PluginDescriptor, PluginRegistry
from .rules import (
    BRIDGE,
    NEAREST_WEEKDAY,
    OBSERVANCE_PRESETS,
    PREVIOUS_WEEKDAY,
    SUBSTITUTE,
    SUNDAY_TO_MONDAY,
    CustomParams,
    EasterParams,
    FixedParams,
    HolidayOccurrence,
    HolidayRule,
    LunarParams,
    NthWeekdayParams,
    ObservancePolicy,
    RelativeParams,
    RuleType,
    rule_from_mapping,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
