"""
Locale packs: holiday tables as plain rows, installed as plugins.

Rows are loaded into typed ``HolidayRule``s and validated once, when the pack is installed.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence

from .engine import CALCULATOR_PLUGINS, ENGINE_PLUGIN, ENGINE_SERVICE
from .errors import InvalidHolidayRuleError, UnknownLocaleError
from .plugins import InstallContext, PluginDescriptor
from .rules import RuleType, rule_from_mapping
from .validators import validate_holiday_rule

LOCALE_TABLES: Dict[str, List[Dict[str, Any]]] = {
    # United States, federal holidays
    "en-US": [
        {"id": "new-years-day", "name": "New Year's Day", "type": "fixed",
         "params": {"month": 1, "day": 1}, "observance": "nearest-weekday"},
        {"id": "mlk-day", "name": "Martin Luther King Jr. Day", "type": "nth-weekday",
         "params": {"month": 1, "weekday": 1, "nth": 3}},
        {"id": "presidents-day", "name": "Presidents' Day", "type": "nth-weekday",
         "params": {"month": 2, "weekday": 1, "nth": 3}},
        {"id": "memorial-day", "name": "Memorial Day", "type": "nth-weekday",
         "params": {"month": 5, "weekday": 1, "nth": -1}},
        {"id": "juneteenth", "name": "Juneteenth", "type": "fixed",
         "params": {"month": 6, "day": 19}, "observance": "nearest-weekday"},
        {"id": "independence-day", "name": "Independence Day", "type": "fixed",
         "params": {"month": 7, "day": 4}, "observance": "nearest-weekday"},
        {"id": "labor-day", "name": "Labor Day", "type": "nth-weekday",
         "params": {"month": 9, "weekday": 1, "nth": 1}},
        {"id": "columbus-day", "name": "Columbus Day", "type": "nth-weekday",
         "params": {"month": 10, "weekday": 1, "nth": 2}},
        {"id": "veterans-day", "name": "Veterans Day", "type": "fixed",
         "params": {"month": 11, "day": 11}, "observance": "nearest-weekday"},
        {"id": "thanksgiving", "name": "Thanksgiving Day", "type": "nth-weekday",
         "params": {"month": 11, "weekday": 4, "nth": 4}},
        {"id": "christmas", "name": "Christmas Day", "type": "fixed",
         "params": {"month": 12, "day": 25}, "observance": "nearest-weekday"},
    ],
    # England and Wales, bank holidays
    "en-GB": [
        {"id": "new-years-day", "name": "New Year's Day", "type": "fixed",
         "params": {"month": 1, "day": 1}, "observance": "substitute"},
        {"id": "good-friday", "name": "Good Friday", "type": "easter-offset",
         "params": {"offset": -2}},
        {"id": "easter-monday", "name": "Easter Monday", "type": "easter-offset",
         "params": {"offset": 1}},
        {"id": "early-may", "name": "Early May Bank Holiday", "type": "nth-weekday",
         "params": {"month": 5, "weekday": 1, "nth": 1}},
        {"id": "spring-bank", "name": "Spring Bank Holiday", "type": "nth-weekday",
         "params": {"month": 5, "weekday": 1, "nth": -1}},
        {"id": "summer-bank", "name": "Summer Bank Holiday", "type": "nth-weekday",
         "params": {"month": 8, "weekday": 1, "nth": -1}},
        {"id": "christmas", "name": "Christmas Day", "type": "fixed",
         "params": {"month": 12, "day": 25}, "observance": "substitute"},
        {"id": "boxing-day", "name": "Boxing Day", "type": "fixed",
         "params": {"month": 12, "day": 26}, "observance": "substitute"},
    ],
    # Germany, nationwide holidays
    "de-DE": [
        {"id": "neujahr", "name": "Neujahr", "type": "fixed", "params": {"month": 1, "day": 1}},
        {"id": "karfreitag", "name": "Karfreitag", "type": "easter-offset", "params": {"offset": -2}},
        {"id": "ostermontag", "name": "Ostermontag", "type": "easter-offset", "params": {"offset": 1}},
        {"id": "tag-der-arbeit", "name": "Tag der Arbeit", "type": "fixed", "params": {"month": 5, "day": 1}},
        {"id": "christi-himmelfahrt", "name": "Christi Himmelfahrt", "type": "easter-offset",
         "params": {"offset": 39}},
        {"id": "pfingstmontag", "name": "Pfingstmontag", "type": "easter-offset", "params": {"offset": 50}},
        {"id": "tag-der-deutschen-einheit", "name": "Tag der Deutschen Einheit", "type": "fixed",
         "params": {"month": 10, "day": 3}},
        {"id": "erster-weihnachtstag", "name": "1. Weihnachtstag", "type": "fixed",
         "params": {"month": 12, "day": 25}},
        {"id": "zweiter-weihnachtstag", "name": "2. Weihnachtstag", "type": "fixed",
         "params": {"month": 12, "day": 26}},
    ],
    # China, statutory festivals
    "zh-CN": [
        {"id": "new-years-day", "name": "元旦", "type": "fixed", "params": {"month": 1, "day": 1}},
        {"id": "spring-festival", "name": "春节", "type": "lunar",
         "params": {"calendar": "chinese", "month": 1, "day": 1}, "duration": 3},
        {"id": "spring-festival-eve", "name": "除夕", "type": "relative",
         "params": {"relative_to": "spring-festival", "offset": -1}},
        {"id": "labour-day", "name": "劳动节", "type": "fixed", "params": {"month": 5, "day": 1}},
        {"id": "dragon-boat", "name": "端午节", "type": "lunar",
         "params": {"calendar": "chinese", "month": 5, "day": 5}},
        {"id": "mid-autumn", "name": "中秋节", "type": "lunar",
         "params": {"calendar": "chinese", "month": 8, "day": 15}},
        {"id": "national-day", "name": "国庆节", "type": "fixed",
         "params": {"month": 10, "day": 1}, "duration": 3},
    ],
    # Turkey, national and religious holidays (tabular Hijri)
    "tr-TR": [
        {"id": "new-years-day", "name": "Yılbaşı", "type": "fixed", "params": {"month": 1, "day": 1}},
        {"id": "national-sovereignty-day", "name": "Ulusal Egemenlik ve Çocuk Bayramı", "type": "fixed",
         "params": {"month": 4, "day": 23}},
        {"id": "labour-day", "name": "Emek ve Dayanışma Günü", "type": "fixed", "params": {"month": 5, "day": 1}},
        {"id": "youth-day", "name": "Atatürk'ü Anma, Gençlik ve Spor Bayramı", "type": "fixed",
         "params": {"month": 5, "day": 19}},
        {"id": "democracy-day", "name": "Demokrasi ve Milli Birlik Günü", "type": "fixed",
         "params": {"month": 7, "day": 15}},
        {"id": "victory-day", "name": "Zafer Bayramı", "type": "fixed", "params": {"month": 8, "day": 30}},
        {"id": "republic-day", "name": "Cumhuriyet Bayramı", "type": "fixed", "params": {"month": 10, "day": 29}},
        {"id": "ramadan-feast", "name": "Ramazan Bayramı", "type": "lunar",
         "params": {"calendar": "islamic", "month": 10, "day": 1}, "duration": 3},
        {"id": "sacrifice-feast", "name": "Kurban Bayramı", "type": "lunar",
         "params": {"calendar": "islamic", "month": 12, "day": 10}, "duration": 4},
    ],
}


def _row_types(rows: Sequence[Mapping[str, Any]]) -> List[RuleType]:
    types = []
    for row in rows:
        try:
            rule_type = RuleType.coerce(row.get("type"))
        except ValueError:
            continue
        if rule_type not in types:
            types.append(rule_type)
    return types


def make_locale_plugin(code: str, rows: Sequence[Mapping[str, Any]]) -> PluginDescriptor:
    """
    Build a plugin that registers ``rows`` as the holiday rules of locale ``code``.

    The plugin depends on the engine and on the calculator plugins of the rule types it
    uses. Every row is loaded and validated before the first one is registered.

    Parameters
    ----------
    code: str
        Locale code, e.g. "fr-FR".
    rows: Sequence[Mapping[str, Any]]
        Rows in the ``rule_from_mapping`` format.
    """
    rows = [dict(row) for row in rows]

    def install(ctx: InstallContext) -> None:
        rules = [rule_from_mapping(row, code) for row in rows]
        for rule in rules:
            violations = validate_holiday_rule(rule)
            if violations:
                raise InvalidHolidayRuleError(
                    f"Locale {code!r}, rule {rule.id!r}: " + "; ".join(violations),
                    rule_id=rule.id,
                    violations=violations,
                )
        ctx.service(ENGINE_SERVICE).register_rules(rules)

    install.__name__ = f"install_locale_{code.replace('-', '_')}"
    dependencies = {ENGINE_PLUGIN}
    dependencies.update(CALCULATOR_PLUGINS[t].name for t in _row_types(rows))
    return PluginDescriptor(name=f"locale-{code}", install=install, dependencies=frozenset(dependencies))


LOCALE_PLUGINS: Dict[str, PluginDescriptor] = {
    code: make_locale_plugin(code, rows) for code, rows in LOCALE_TABLES.items()
}


def locale_plugin(code: str) -> PluginDescriptor:
    """The shipped plugin for locale ``code``."""
    try:
        return LOCALE_PLUGINS[code]
    except KeyError:
        raise UnknownLocaleError(
            f"No locale pack for {code!r}. Available: {sorted(LOCALE_PLUGINS)}",
            locale=code,
        ) from None
