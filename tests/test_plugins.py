# Tests for the plugin registry: dependency ordering, conflicts, capabilities and services.
#
# Run:
#   pip install -e .[test]
#   pytest -q tests/test_plugins.py

from __future__ import annotations

from typing import List

import pytest

from better_holidays.errors import (
    CapabilityConflictError,
    CyclicDependencyError,
    MissingDependencyError,
    PluginConflictError,
)
from better_holidays.plugins import InstallContext, PluginDescriptor, PluginRegistry


# ============================================================
# Helpers & fixtures
# ============================================================
@pytest.fixture
def registry() -> PluginRegistry:
    return PluginRegistry()


@pytest.fixture
def log() -> List[str]:
    return []


def plugin(name: str, log: List[str], deps=(), capabilities=()) -> PluginDescriptor:
    def install(ctx: InstallContext) -> None:
        log.append(name)
        for cap in capabilities:
            ctx.add_capability(cap, lambda *args, _cap=cap: (_cap, args))
    return PluginDescriptor(name=name, install=install, dependencies=frozenset(deps))


# ============================================================
# 1) Install and idempotence
# ============================================================
def test_install_registers_capabilities(registry: PluginRegistry, log: List[str]) -> None:
    p = plugin("greeter", log, capabilities=["greet"])
    assert registry.install(p) == ["greeter"]

    assert registry.is_installed("greeter")
    assert registry.has_capability("greet")
    assert registry.owner("greet") == "greeter"
    assert registry.call("greet", 1, 2) == ("greet", (1, 2))


def test_install_twice_is_noop(registry: PluginRegistry, log: List[str]) -> None:
    p = plugin("greeter", log, capabilities=["greet"])
    registry.install(p)
    before = registry.capabilities()

    assert registry.install([p, p]) == []
    assert log == ["greeter"]
    assert registry.capabilities() == before


def test_same_name_different_descriptor_conflicts(registry: PluginRegistry, log: List[str]) -> None:
    registry.install(plugin("greeter", log))
    with pytest.raises(PluginConflictError) as excinfo:
        registry.install(plugin("greeter", log))
    assert excinfo.value.plugin == "greeter"


def test_descriptor_validation() -> None:
    with pytest.raises(ValueError):
        PluginDescriptor(name="", install=lambda ctx: None)
    with pytest.raises(ValueError):
        PluginDescriptor(name="x", install="not callable")


# ============================================================
# 2) Dependencies
# ============================================================
def test_dependencies_installed_first(registry: PluginRegistry, log: List[str]) -> None:
    base = plugin("base", log)
    mid = plugin("mid", log, deps=["base"])
    top = plugin("top", log, deps=["mid", "base"])
    other = plugin("other", log)

    installed = registry.install([top, other, mid, base])

    assert installed == log
    assert log.index("base") < log.index("mid") < log.index("top")
    # stable: "other" has no dependency and comes first in the batch
    assert log[0] == "other"


def test_dependency_already_installed(registry: PluginRegistry, log: List[str]) -> None:
    registry.install(plugin("base", log))
    registry.install(plugin("child", log, deps=["base"]))
    assert registry.installed() == ["base", "child"]


def test_missing_dependency(registry: PluginRegistry, log: List[str]) -> None:
    with pytest.raises(MissingDependencyError) as excinfo:
        registry.install([plugin("ok", log), plugin("child", log, deps=["ghost"])])

    assert excinfo.value.dependency == "ghost"
    assert excinfo.value.plugin == "child"
    assert log == []
    assert registry.installed() == []


def test_cyclic_dependency(registry: PluginRegistry, log: List[str]) -> None:
    a = plugin("a", log, deps=["b"])
    b = plugin("b", log, deps=["c"])
    c = plugin("c", log, deps=["a"])

    with pytest.raises(CyclicDependencyError) as excinfo:
        registry.install([a, b, c])

    cycle = excinfo.value.cycle
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b", "c"}
    assert log == []


# ============================================================
# 3) Capability conflicts and atomic installs
# ============================================================
def test_capability_conflict_names_both_plugins(registry: PluginRegistry, log: List[str]) -> None:
    registry.install(plugin("first", log, capabilities=["shared"]))

    with pytest.raises(CapabilityConflictError) as excinfo:
        registry.install(plugin("second", log, capabilities=["own", "shared"]))

    err = excinfo.value
    assert err.capability == "shared"
    assert err.existing_owner == "first"
    assert err.new_owner == "second"
    # nothing of "second" was committed
    assert not registry.is_installed("second")
    assert not registry.has_capability("own")
    assert registry.owner("shared") == "first"


def test_failing_install_leaves_no_trace(registry: PluginRegistry) -> None:
    def install(ctx: InstallContext) -> None:
        ctx.add_capability("half", lambda: None)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        registry.install(PluginDescriptor(name="broken", install=install))

    assert not registry.is_installed("broken")
    assert not registry.has_capability("half")


def test_services_between_plugins(registry: PluginRegistry) -> None:
    def provide(ctx: InstallContext) -> None:
        ctx.provide("store", {"value": 42})

    def consume(ctx: InstallContext) -> None:
        store = ctx.service("store")
        ctx.add_capability("read", lambda: store["value"])

    registry.install([
        PluginDescriptor(name="consumer", install=consume, dependencies=frozenset({"provider"})),
        PluginDescriptor(name="provider", install=provide),
    ])

    assert registry.call("read") == 42
    assert registry.owner("store") == "provider"


def test_unknown_capability_and_reset(registry: PluginRegistry, log: List[str]) -> None:
    with pytest.raises(KeyError):
        registry.capability("nope")

    registry.install(plugin("greeter", log, capabilities=["greet"]))
    registry.reset()

    assert registry.installed() == []
    assert not registry.has_capability("greet")
    # installable again after a reset
    assert registry.install(plugin("greeter", log)) == ["greeter"]
