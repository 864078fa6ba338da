"""
Plugin registry: installs independently written modules in dependency order and keeps the
named capabilities and services they contribute.

Capabilities are plain functions taking the date value as their first argument, e.g.
``registry.call("is_holiday", date(2026, 1, 1), "en-US")``. Services are shared objects
(the holiday engine for instance) that later plugins look up while installing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .errors import (
    CapabilityConflictError,
    CyclicDependencyError,
    MissingDependencyError,
    PluginConflictError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PluginDescriptor:
    """
    Static description of a plugin.

    Two descriptors are equal when every field is equal; ``install`` compares by identity,
    so descriptors should be built once (module level) and reused.
    """
    name: str
    install: Callable[["InstallContext"], None]
    dependencies: FrozenSet[str] = field(default_factory=frozenset)
    version: str = "1.0.0"

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("Plugin name must be a non-empty string.")
        if not callable(self.install):
            raise ValueError(f"Plugin {self.name!r}: install must be callable.")
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))


class InstallContext:
    """
    Handle given to a plugin's ``install`` callback.

    Capabilities and services are staged here and only committed to the registry once
    ``install`` returns, so a failing plugin leaves no trace in the registry.
    """

    def __init__(self, registry: "PluginRegistry", plugin: str):
        self.registry = registry
        self.plugin = plugin
        self._capabilities: Dict[str, Callable] = {}
        self._services: Dict[str, Any] = {}

    def _check_free(self, kind: str, name: str, owners: Dict[str, Tuple[str, Any]], staged: Dict[str, Any]) -> None:
        if name in owners:
            owner = owners[name][0]
        elif name in staged:
            owner = self.plugin
        else:
            return
        raise CapabilityConflictError(
            f"{kind} {name!r} from plugin {self.plugin!r} conflicts with plugin {owner!r}",
            capability=name,
            existing_owner=owner,
            new_owner=self.plugin,
        )

    def add_capability(self, name: str, fn: Callable) -> None:
        if not callable(fn):
            raise TypeError(f"Capability {name!r} must be callable.")
        self._check_free("Capability", name, self.registry._capabilities, self._capabilities)
        self._capabilities[name] = fn

    def provide(self, name: str, service: Any) -> None:
        self._check_free("Service", name, self.registry._services, self._services)
        self._services[name] = service

    def service(self, name: str) -> Any:
        """Look up a service staged by this plugin or provided by an installed one."""
        if name in self._services:
            return self._services[name]
        return self.registry.service(name)

    def _commit(self) -> None:
        for name, fn in self._capabilities.items():
            self.registry._capabilities[name] = (self.plugin, fn)
        for name, svc in self._services.items():
            self.registry._services[name] = (self.plugin, svc)


class PluginRegistry:
    """
    Set of installed plugins with the capabilities and services they registered.

    An application normally owns one instance and injects it where needed; a default
    module-level instance lives in ``better_holidays.api``.
    """

    def __init__(self):
        self._plugins: Dict[str, PluginDescriptor] = {}
        self._capabilities: Dict[str, Tuple[str, Callable]] = {}
        self._services: Dict[str, Tuple[str, Any]] = {}

    # ---------------------------------------
    # |            Helper methods           |
    # ---------------------------------------

    def _pending(self, descriptors: Iterable[PluginDescriptor]) -> List[PluginDescriptor]:
        """Drop descriptors already installed (or repeated in the batch), rejecting same-name conflicts."""
        pending: Dict[str, PluginDescriptor] = {}
        for d in descriptors:
            if not isinstance(d, PluginDescriptor):
                raise TypeError(f"Expected PluginDescriptor, got {type(d).__name__}")
            known = self._plugins.get(d.name) or pending.get(d.name)
            if known is None:
                pending[d.name] = d
            elif known != d:
                raise PluginConflictError(
                    f"A different plugin named {d.name!r} is already installed or part of the batch.",
                    plugin=d.name,
                )
            else:
                logger.debug("Plugin %s already installed, skipping", d.name)
        return list(pending.values())

    def _check_dependencies(self, batch: List[PluginDescriptor]) -> None:
        available = set(self._plugins) | {d.name for d in batch}
        for d in batch:
            for dep in sorted(d.dependencies):
                if dep not in available:
                    raise MissingDependencyError(
                        f"Plugin {d.name!r} depends on {dep!r}, which is neither installed nor part of the batch.",
                        plugin=d.name,
                        dependency=dep,
                    )

    def _topological_order(self, batch: List[PluginDescriptor]) -> List[PluginDescriptor]:
        """Stable Kahn ordering: the earliest ready descriptor in batch order goes first."""
        done = set(self._plugins)
        remaining = list(batch)
        ordered = []
        while remaining:
            for i, d in enumerate(remaining):
                if d.dependencies <= done:
                    ordered.append(d)
                    done.add(d.name)
                    del remaining[i]
                    break
            else:
                cycle = self._find_cycle(remaining)
                raise CyclicDependencyError(
                    f"Cyclic plugin dependency: {' -> '.join(cycle)}",
                    cycle=cycle,
                )
        return ordered

    @staticmethod
    def _find_cycle(remaining: List[PluginDescriptor]) -> List[str]:
        # every remaining plugin has at least one dependency that is also remaining
        by_name = {d.name: d for d in remaining}
        path: List[str] = []
        current = remaining[0].name
        while current not in path:
            path.append(current)
            current = sorted(dep for dep in by_name[current].dependencies if dep in by_name)[0]
        return path[path.index(current):] + [current]

    def _install_one(self, descriptor: PluginDescriptor) -> None:
        ctx = InstallContext(self, descriptor.name)
        descriptor.install(ctx)
        ctx._commit()
        self._plugins[descriptor.name] = descriptor
        logger.info("Installed plugin %s %s", descriptor.name, descriptor.version)

    # ---------------------------------------
    # |          Public API methods         |
    # ---------------------------------------

    def install(self, descriptors: Union[PluginDescriptor, Iterable[PluginDescriptor]]) -> List[str]:
        """
        Install a batch of plugins.

        The whole batch is checked before any ``install`` callback runs: same-name
        conflicts, missing dependencies and dependency cycles all fail without side
        effects. Plugins are then installed in a stable topological order. Installation is
        atomic per plugin; if one fails, the ones installed before it stay installed.

        Parameters
        ----------
        descriptors: PluginDescriptor or Iterable[PluginDescriptor]
            The plugins to install.

        Returns
        -------
        List[str]
            Names of the plugins actually installed by this call, in install order.

        Raises
        ------
        PluginConflictError, MissingDependencyError, CyclicDependencyError, CapabilityConflictError
        """
        if isinstance(descriptors, PluginDescriptor):
            descriptors = [descriptors]
        batch = self._pending(descriptors)
        self._check_dependencies(batch)
        ordered = self._topological_order(batch)
        for d in ordered:
            self._install_one(d)
        return [d.name for d in ordered]

    def reset(self) -> None:
        self._plugins.clear()
        self._capabilities.clear()
        self._services.clear()

    def is_installed(self, name: str) -> bool:
        return name in self._plugins

    def installed(self) -> List[str]:
        return list(self._plugins)

    def get_plugin(self, name: str) -> Optional[PluginDescriptor]:
        return self._plugins.get(name)

    def has_capability(self, name: str) -> bool:
        return name in self._capabilities

    def capability(self, name: str) -> Callable:
        try:
            return self._capabilities[name][1]
        except KeyError:
            raise KeyError(f"Unknown capability {name!r}. Available: {sorted(self._capabilities)}") from None

    def call(self, name: str, *args, **kwargs) -> Any:
        return self.capability(name)(*args, **kwargs)

    def capabilities(self) -> Dict[str, str]:
        """Capability name -> owning plugin."""
        return {name: owner for name, (owner, _) in self._capabilities.items()}

    def owner(self, name: str) -> str:
        if name in self._capabilities:
            return self._capabilities[name][0]
        if name in self._services:
            return self._services[name][0]
        raise KeyError(f"Unknown capability or service {name!r}")

    def has_service(self, name: str) -> bool:
        return name in self._services

    def service(self, name: str) -> Any:
        try:
            return self._services[name][1]
        except KeyError:
            raise KeyError(f"Unknown service {name!r}. Available: {sorted(self._services)}") from None

    def __repr__(self) -> str:
        return f"PluginRegistry(plugins={self.installed()})"
