# Tests for the module-level convenience API and the shipped locale packs.
#
# Run:
#   pip install -e .[test]
#   pytest -q tests/test_api.py

from __future__ import annotations

import datetime as dt

import pytest

import better_holidays as bh
from better_holidays.errors import InvalidDateError, InvalidHolidayRuleError, UnknownLocaleError
from better_holidays.locales import LOCALE_PLUGINS, LOCALE_TABLES, locale_plugin, make_locale_plugin
from better_holidays.plugins import PluginRegistry
from better_holidays.rules import FixedParams, HolidayRule, RuleType, rule_from_mapping
from better_holidays.validators import validate_holiday_rule


# ============================================================
# Fixtures
# ============================================================
@pytest.fixture(autouse=True)
def clean_default_registry():
    bh.reset_all()
    yield
    bh.reset_all()


# ============================================================
# 1) Default registry API
# ============================================================
def test_bootstraps_default_plugins_lazily() -> None:
    assert bh.default_registry().installed() == []

    holidays = bh.get_holidays(2024, "en-US")

    assert holidays
    registry = bh.default_registry()
    assert registry.is_installed("holiday-engine")
    assert registry.is_installed("business-days")
    assert set(f"locale-{code}" for code in LOCALE_TABLES) <= set(registry.installed())


def test_is_holiday_and_locale_switch() -> None:
    assert bh.is_holiday(dt.date(2024, 12, 25), "en-US")
    assert not bh.is_holiday(dt.date(2024, 10, 3), "en-US")

    assert bh.get_locale() == "en-US"
    bh.set_locale("de-DE")
    assert bh.get_locale() == "de-DE"
    assert bh.is_holiday(dt.date(2024, 10, 3))


def test_register_rule_through_api() -> None:
    bh.register_rule(HolidayRule(id="founders-day", name="Founders Day", type=RuleType.FIXED,
                                 locale="en-US", params=FixedParams(3, 14)))
    assert bh.is_holiday(dt.date(2024, 3, 14), "en-US")


def test_register_calculator_through_api() -> None:
    bh.register_calculator("fixed", lambda rule, year: dt.date(year, 2, 2))
    assert {o.date for o in bh.get_holidays(2024, "de-DE") if o.type == RuleType.FIXED} == {dt.date(2024, 2, 2)}


def test_call_capabilities() -> None:
    assert bh.call("next_business_day", dt.date(2026, 7, 2), "en-US") == dt.date(2026, 7, 6)
    assert bh.call("next_holiday", dt.date(2026, 12, 26), "de-DE").date == dt.date(2027, 1, 1)
    assert bh.capability("is_holiday")(dt.date(2026, 10, 1), "zh-CN")


def test_reset_all_gives_a_fresh_engine() -> None:
    bh.set_locale("de-DE")
    bh.reset_all()
    assert bh.get_locale() == "en-US"


def test_explicit_registry_is_isolated() -> None:
    registry = PluginRegistry()
    bh.install(bh.default_plugins(), registry=registry)

    bh.set_locale("zh-CN", registry=registry)

    assert bh.get_locale(registry=registry) == "zh-CN"
    assert bh.get_locale() == "en-US"


# ============================================================
# 2) Locale packs
# ============================================================
@pytest.mark.parametrize("code", sorted(LOCALE_TABLES))
def test_locale_tables_are_valid(code: str) -> None:
    for row in LOCALE_TABLES[code]:
        assert validate_holiday_rule(rule_from_mapping(row, code)) == []


def test_locale_plugin_dependencies() -> None:
    zh = locale_plugin("zh-CN")
    assert zh.name == "locale-zh-CN"
    assert {"holiday-engine", "holiday-lunar-calculator", "holiday-relative-calculator"} <= zh.dependencies
    assert "holiday-easter-offset-calculator" not in zh.dependencies


def test_unknown_locale_pack_raises() -> None:
    with pytest.raises(UnknownLocaleError):
        locale_plugin("xx-XX")


def test_locale_pack_installs_into_registry() -> None:
    registry = PluginRegistry()
    engine_plugins = [p for p in bh.default_plugins() if not p.name.startswith("locale-")]
    registry.install(engine_plugins + [LOCALE_PLUGINS["de-DE"]])

    assert bh.is_holiday(dt.date(2024, 10, 3), "de-DE", registry=registry)
    assert bh.get_holidays(2024, "en-US", registry=registry) == ()


def test_invalid_locale_pack_installs_nothing() -> None:
    rows = [
        {"id": "ok", "name": "Ok", "type": "fixed", "params": {"month": 1, "day": 1}},
        {"id": "bad", "name": "Bad", "type": "fixed", "params": {"month": 2, "day": 31}},
    ]
    registry = PluginRegistry()
    engine_plugins = [p for p in bh.default_plugins() if not p.name.startswith("locale-")]
    registry.install(engine_plugins)

    with pytest.raises(InvalidHolidayRuleError):
        registry.install(make_locale_plugin("xx-XX", rows))

    assert not registry.is_installed("locale-xx-XX")
    assert bh.get_holidays(2024, "xx-XX", registry=registry) == ()


def test_locale_pack_clashing_with_a_registered_rule_installs_nothing() -> None:
    registry = PluginRegistry()
    engine_plugins = [p for p in bh.default_plugins() if not p.name.startswith("locale-")]
    registry.install(engine_plugins)
    engine = bh.holiday_engine(registry=registry)
    office_christmas = HolidayRule(id="christmas", name="Office Christmas", type=RuleType.FIXED,
                                   locale="en-US", params=FixedParams(12, 24))
    engine.register_rule(office_christmas)

    with pytest.raises(InvalidHolidayRuleError, match="already registered"):
        registry.install(LOCALE_PLUGINS["en-US"])

    assert not registry.is_installed("locale-en-US")
    assert engine.rules("en-US") == [office_christmas]
    assert [o.rule_id for o in engine.resolve(2024, "en-US")] == ["christmas"]


# ============================================================
# 3) Locale calendars
# ============================================================
def test_chinese_festivals_2024() -> None:
    by_id = {}
    for occ in bh.get_holidays(2024, "zh-CN"):
        by_id.setdefault(occ.rule_id, []).append(occ.date)

    assert by_id["spring-festival"] == [dt.date(2024, 2, 10), dt.date(2024, 2, 11), dt.date(2024, 2, 12)]
    assert by_id["spring-festival-eve"] == [dt.date(2024, 2, 9)]
    assert by_id["dragon-boat"] == [dt.date(2024, 6, 10)]
    assert by_id["mid-autumn"] == [dt.date(2024, 9, 17)]


@pytest.mark.parametrize("year", [1900, 2099])
def test_chinese_calendar_at_the_edges_of_the_lunar_table(year: int) -> None:
    by_id = {}
    for occ in bh.get_holidays(year, "zh-CN"):
        by_id.setdefault(occ.rule_id, []).append(occ.date)

    assert by_id["national-day"][0] == dt.date(year, 10, 1)
    festival = by_id["spring-festival"][0]
    assert festival.year == year
    assert by_id["spring-festival-eve"] == [festival - dt.timedelta(days=1)]


def test_chinese_queries_next_to_the_lunar_table_edges() -> None:
    assert not bh.is_holiday(dt.date(2099, 12, 1), "zh-CN")
    assert bh.is_holiday(dt.date(2099, 10, 2), "zh-CN")
    assert bh.is_holiday(dt.date(1900, 1, 1), "zh-CN")
    assert not bh.is_holiday(dt.date(1900, 1, 15), "zh-CN")

    with pytest.raises(InvalidDateError):
        bh.get_holidays(2100, "zh-CN")


def test_turkish_religious_feasts_2024() -> None:
    by_id = {}
    for occ in bh.get_holidays(2024, "tr-TR"):
        by_id.setdefault(occ.rule_id, []).append(occ.date)

    ramadan = by_id["ramadan-feast"]
    sacrifice = by_id["sacrifice-feast"]
    assert len(ramadan) == 3 and len(sacrifice) == 4
    assert ramadan[0].month == 4
    assert sacrifice[0].month == 6
    assert (ramadan[-1] - ramadan[0]).days == 2


def test_uk_easter_bank_holidays_2024() -> None:
    ids = {o.rule_id: o.date for o in bh.get_holidays(2024, "en-GB")}
    assert ids["good-friday"] == dt.date(2024, 3, 29)
    assert ids["easter-monday"] == dt.date(2024, 4, 1)
    assert ids["early-may"] == dt.date(2024, 5, 6)
    assert ids["summer-bank"] == dt.date(2024, 8, 26)
