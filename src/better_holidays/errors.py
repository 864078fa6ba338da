"""
Typed failures raised by the plugin registry, the holiday engine and its calculators.

Every exception derives from ``CalendarError`` and carries a ``kind`` tag so callers can
switch on the failure category without importing every class.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence


class ErrorKind(str, Enum):
    MISSING_DEPENDENCY = "MissingDependency"
    CYCLIC_DEPENDENCY = "CyclicDependency"
    PLUGIN_CONFLICT = "PluginConflict"
    CAPABILITY_CONFLICT = "CapabilityConflict"
    INVALID_HOLIDAY_RULE = "InvalidHolidayRule"
    CYCLIC_HOLIDAY_REFERENCE = "CyclicHolidayReference"
    INVALID_CALCULATOR_OUTPUT = "InvalidCalculatorOutput"
    UNKNOWN_LOCALE = "UnknownLocale"
    INVALID_DATE = "InvalidDate"


# =========================
# Base
# =========================
class CalendarError(Exception):
    kind: Optional[ErrorKind] = None


# =========================
# Plugin errors
# =========================
class PluginError(CalendarError):
    pass


class MissingDependencyError(PluginError):
    kind = ErrorKind.MISSING_DEPENDENCY

    def __init__(self, message: str, *, plugin: Optional[str] = None, dependency: Optional[str] = None):
        super().__init__(message)
        self.plugin = plugin
        self.dependency = dependency


class CyclicDependencyError(PluginError):
    kind = ErrorKind.CYCLIC_DEPENDENCY

    def __init__(self, message: str, *, cycle: Sequence[str] = ()):
        super().__init__(message)
        self.cycle = list(cycle)


class PluginConflictError(PluginError):
    kind = ErrorKind.PLUGIN_CONFLICT

    def __init__(self, message: str, *, plugin: Optional[str] = None):
        super().__init__(message)
        self.plugin = plugin


class CapabilityConflictError(PluginError):
    kind = ErrorKind.CAPABILITY_CONFLICT

    def __init__(self,
                 message: str,
                 *,
                 capability: Optional[str] = None,
                 existing_owner: Optional[str] = None,
                 new_owner: Optional[str] = None):
        super().__init__(message)
        self.capability = capability
        self.existing_owner = existing_owner
        self.new_owner = new_owner


# =========================
# Holiday rule errors
# =========================
class HolidayRuleError(CalendarError):
    pass


class InvalidHolidayRuleError(HolidayRuleError):
    kind = ErrorKind.INVALID_HOLIDAY_RULE

    def __init__(self, message: str, *, rule_id: Optional[str] = None, violations: Sequence[str] = ()):
        super().__init__(message)
        self.rule_id = rule_id
        self.violations = list(violations)


class CyclicHolidayReferenceError(HolidayRuleError):
    kind = ErrorKind.CYCLIC_HOLIDAY_REFERENCE

    def __init__(self, message: str, *, chain: Sequence[str] = ()):
        super().__init__(message)
        self.chain = list(chain)


class InvalidCalculatorOutputError(HolidayRuleError):
    kind = ErrorKind.INVALID_CALCULATOR_OUTPUT

    def __init__(self, message: str, *, rule_id: Optional[str] = None):
        super().__init__(message)
        self.rule_id = rule_id


# =========================
# Input errors
# =========================
class UnknownLocaleError(CalendarError):
    kind = ErrorKind.UNKNOWN_LOCALE

    def __init__(self, message: str, *, locale: Optional[str] = None):
        super().__init__(message)
        self.locale = locale


class InvalidDateError(CalendarError, ValueError):
    kind = ErrorKind.INVALID_DATE


ERROR_CLASSES = {
    ErrorKind.MISSING_DEPENDENCY: MissingDependencyError,
    ErrorKind.CYCLIC_DEPENDENCY: CyclicDependencyError,
    ErrorKind.PLUGIN_CONFLICT: PluginConflictError,
    ErrorKind.CAPABILITY_CONFLICT: CapabilityConflictError,
    ErrorKind.INVALID_HOLIDAY_RULE: InvalidHolidayRuleError,
    ErrorKind.CYCLIC_HOLIDAY_REFERENCE: CyclicHolidayReferenceError,
    ErrorKind.INVALID_CALCULATOR_OUTPUT: InvalidCalculatorOutputError,
    ErrorKind.UNKNOWN_LOCALE: UnknownLocaleError,
    ErrorKind.INVALID_DATE: InvalidDateError,
}
