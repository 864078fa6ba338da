"""
Convenience layer over a module-level default registry.

Applications that need isolation should build their own ``PluginRegistry`` and pass it
around; the functions here all accept an explicit ``registry`` and only fall back to the
default one.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from .business import business_plugin
from .engine import CALCULATOR_PLUGINS, ENGINE_SERVICE, HolidayEngine, engine_plugin
from .locales import LOCALE_PLUGINS
from .plugins import PluginDescriptor, PluginRegistry
from .rules import HolidayOccurrence, HolidayRule, RuleType
from .utils import DateLike

_default_registry: Optional[PluginRegistry] = None


def default_registry() -> PluginRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = PluginRegistry()
    return _default_registry


def _registry(registry: Optional[PluginRegistry]) -> PluginRegistry:
    return default_registry() if registry is None else registry


def default_plugins() -> List[PluginDescriptor]:
    """Engine, the six calculators, business days and every shipped locale pack."""
    return [engine_plugin, *CALCULATOR_PLUGINS.values(), business_plugin, *LOCALE_PLUGINS.values()]


def install(plugins: Union[PluginDescriptor, Iterable[PluginDescriptor]],
            registry: Optional[PluginRegistry] = None) -> List[str]:
    return _registry(registry).install(plugins)


def reset_all(registry: Optional[PluginRegistry] = None) -> None:
    """Forget every installed plugin, capability and service (test isolation)."""
    _registry(registry).reset()


def holiday_engine(registry: Optional[PluginRegistry] = None) -> HolidayEngine:
    """The registry's holiday engine, installing ``default_plugins()`` first if there is none."""
    reg = _registry(registry)
    if not reg.has_service(ENGINE_SERVICE):
        reg.install(default_plugins())
    return reg.service(ENGINE_SERVICE)


def register_calculator(rule_type: Union[RuleType, str],
                        strategy: Any,
                        registry: Optional[PluginRegistry] = None) -> None:
    holiday_engine(registry).register_calculator(rule_type, strategy)


def register_rule(rule: HolidayRule, registry: Optional[PluginRegistry] = None) -> None:
    holiday_engine(registry).register_rule(rule)


def get_holidays(year: int,
                 locale: Optional[str] = None,
                 registry: Optional[PluginRegistry] = None) -> Tuple[HolidayOccurrence, ...]:
    return holiday_engine(registry).resolve(year, locale)


def is_holiday(day: DateLike, locale: Optional[str] = None, registry: Optional[PluginRegistry] = None) -> bool:
    return holiday_engine(registry).is_holiday(day, locale)


def set_locale(locale: str, registry: Optional[PluginRegistry] = None) -> None:
    holiday_engine(registry).set_locale(locale)


def get_locale(registry: Optional[PluginRegistry] = None) -> str:
    return holiday_engine(registry).locale


def capability(name: str, registry: Optional[PluginRegistry] = None) -> Callable:
    holiday_engine(registry)
    return _registry(registry).capability(name)


def call(name: str, day: DateLike, *args, registry: Optional[PluginRegistry] = None, **kwargs) -> Any:
    """Invoke capability ``name`` on ``day``, e.g. ``call("next_business_day", date(2026, 7, 3), "en-US")``."""
    return capability(name, registry)(day, *args, **kwargs)
