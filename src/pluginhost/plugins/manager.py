"""Plugin controller - registration, dependency resolution, initialization.

Lifecycle:
  register() ... -> [host_ready] -> on_host_ready() -> init_plugin() per plugin
  -> (next loop turn) plugins_ready

Plugins may be registered before or after the host is ready. Plugins
registered after the pass stay pending until the host calls
``initialize_pending()``, so a late plugin may be registered ahead of its
own dependencies.

Dependencies are resolved depth-first at initialization time, not at
registration time. Each plugin's initializer runs at most once; a failure
anywhere in a plugin's dependency chain marks only that plugin unsupported
and the pass moves on to the next one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterator

from pluginhost.comms.event_bus import EventBus
from pluginhost.config import Settings, settings as default_settings
from pluginhost.plugins.api import NAMESPACE_ATTR, PluginApiFactory, get_namespace
from pluginhost.plugins.base import Initializer, InitResult, Plugin
from pluginhost.plugins.diagnostics import (
    DiagnosticLevel,
    DiagnosticLog,
    DiagnosticSink,
    PluginDiagnostic,
)
from pluginhost.plugins.errors import (
    AlreadyInitializedError,
    CyclicDependencyError,
    DependencyNotFoundError,
    DependencyUnsupportedError,
    DuplicateNameError,
    InitializerFailure,
    PluginError,
    exception_message,
)

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Name -> Plugin mapping owned by one controller."""

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}

    def add(self, plugin: Plugin) -> Plugin | None:
        """Insert ``plugin``; returns the plugin it replaced, if any."""
        previous = self._plugins.get(plugin.name)
        self._plugins[plugin.name] = plugin
        return previous

    def get(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    def names(self) -> list[str]:
        return list(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    def __iter__(self) -> Iterator[Plugin]:
        return iter(list(self._plugins.values()))


class PluginController:
    """Owns a plugin registry and initializes it when the host is ready."""

    def __init__(
        self,
        bus: EventBus | None = None,
        settings: Settings | None = None,
        sink: DiagnosticSink | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self.registry = PluginRegistry()
        self.diagnostics: DiagnosticSink = sink or DiagnosticLog(
            limit=self._settings.diagnostics_limit
        )
        self._loop = loop
        self._bus: EventBus | None = None
        self._host: Any = None
        self._api_factory: PluginApiFactory | None = None
        self._resolving: list[str] = []
        self.ready = False

        if bus is not None:
            self.attach(bus)

    # ------------------------------------------------------------------
    # Host wiring
    # ------------------------------------------------------------------

    def attach(self, bus: EventBus) -> None:
        """Listen for host-ready on ``bus`` and publish plugins-ready back on it."""
        self.detach()
        self._bus = bus
        bus.on(self._settings.host_ready_event, self._handle_host_ready)

    def detach(self) -> None:
        if self._bus is not None:
            self._bus.off(self._settings.host_ready_event, self._handle_host_ready)
            self._bus = None

    def _handle_host_ready(self, msg: dict) -> None:
        host = (msg.get("data") or {}).get("host")
        if host is None:
            logger.error(f"'{self._settings.host_ready_event}' event carried no host")
            return
        self.on_host_ready(host)

    @property
    def host(self) -> Any:
        return self._host

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        name: str,
        dependencies: list[str] | Initializer | None = None,
        initializer: Initializer | None = None,
    ) -> None:
        """Register a plugin under ``name``.

        ``register(name, initializer)`` is accepted as shorthand for a plugin
        with no dependencies.

        Raises DuplicateNameError on a name collision only when
        ``reject_duplicates`` is enabled; otherwise the new plugin replaces
        the old one.
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Plugin name must be a non-empty string")
        if callable(dependencies):
            initializer, dependencies = dependencies, None
        if not callable(initializer):
            raise TypeError(f"Plugin '{name}' needs a callable initializer")

        if name in self.registry:
            if self._settings.reject_duplicates:
                raise DuplicateNameError(name)
            self.diagnostics(PluginDiagnostic(
                DiagnosticLevel.WARNING,
                "re-registered, replacing the previous registration",
                plugin=name,
            ))

        plugin = Plugin(name, dependencies, initializer, sink=self.diagnostics)
        self.registry.add(plugin)
        logger.info(f"Plugin registered: {name} (deps: {plugin.dependencies})")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def on_host_ready(self, host: Any) -> None:
        """Create the host namespace, initialize every plugin, schedule plugins-ready.

        Never raises: any failure is reported to the diagnostic sink and the
        plugins-ready signal is scheduled regardless.
        """
        try:
            self._initialize_plugins(host)
        except Exception as e:
            self.diagnostics(PluginDiagnostic(
                DiagnosticLevel.ERROR,
                f"Plugins failed to initialize: {exception_message(e)}",
                error=e,
            ))

        self._schedule_ready()

    def _initialize_plugins(self, host: Any) -> None:
        if get_namespace(host) is not None:
            raise AlreadyInitializedError()

        # Namespace for plugin extensions, one slot per plugin name
        setattr(host, NAMESPACE_ATTR, {})
        self._host = host
        self._api_factory = PluginApiFactory(host)

        self._initialize_registered()

        logger.info(
            f"Plugin pass complete: {sum(p.supported for p in self.registry)}"
            f"/{len(self.registry)} supported"
        )

    def initialize_pending(self) -> list[InitResult]:
        """Initialize plugins registered since the host-ready pass.

        Late plugins are resolved together, so one may be registered before
        the plugin it depends on. A no-op before the host is ready.
        """
        if self._api_factory is None:
            logger.debug("initialize_pending() before host ready; nothing to do")
            return []
        return self._initialize_registered()

    def _initialize_registered(self) -> list[InitResult]:
        results = []
        for name in self.registry.names():
            # Looked up per step; an initializer may replace a later entry
            plugin = self.registry.get(name)
            if plugin is None or plugin.initialized:
                continue
            results.append(self._init_one(plugin))
        return results

    def _init_one(self, plugin: Plugin) -> InitResult:
        """Initialize one plugin from the top of a pass, containing any failure."""
        # Fresh resolving stack; an initializer may register plugins mid-walk
        saved, self._resolving = self._resolving, []
        try:
            return self.init_plugin(plugin)
        except Exception as e:
            # Only reachable on internal errors such as RecursionError
            error = InitializerFailure(plugin.name, exception_message(e))
            return plugin._record(InitResult.failure(plugin.name, error))
        finally:
            self._resolving = saved

    def init_plugin(self, plugin: Plugin) -> InitResult:
        """Initialize ``plugin`` after its dependencies (depth-first).

        Returns the stored result without side effects if the plugin was
        already initialized.
        """
        name = plugin.name

        if name in self._resolving:
            cycle = self._resolving[self._resolving.index(name):] + [name]
            # Not recorded here; the plugins along the cycle record it as it unwinds
            return InitResult.failure(name, CyclicDependencyError(name, cycle))

        if plugin.initialized:
            return plugin.result or InitResult(name, plugin.supported)

        self._resolving.append(name)
        try:
            error = self._resolve_dependencies(plugin)
        finally:
            self._resolving.pop()

        if error is not None:
            return plugin._record(InitResult.failure(name, error))

        plugin.initialized = True
        return plugin._record(self._invoke_initializer(plugin))

    def _resolve_dependencies(self, plugin: Plugin) -> PluginError | None:
        for dep_name in plugin.dependencies:
            dep = self.registry.get(dep_name)
            if dep is None:
                return DependencyNotFoundError(plugin.name, dep_name)

            result = self.init_plugin(dep)
            if result.ok:
                continue

            cycle_error = result.error
            if isinstance(cycle_error, CyclicDependencyError) and cycle_error.involves(plugin.name):
                return CyclicDependencyError(plugin.name, cycle_error.cycle)
            return DependencyUnsupportedError(plugin.name, dep_name)
        return None

    def _invoke_initializer(self, plugin: Plugin) -> InitResult:
        factory = self._api_factory or PluginApiFactory(self._host)
        api = factory.create(plugin)
        try:
            plugin.initializer(plugin, api)
        except InitializerFailure as e:
            return InitResult.failure(plugin.name, e)
        except Exception as e:
            return InitResult.failure(
                plugin.name, InitializerFailure(plugin.name, exception_message(e))
            )
        logger.debug(f"Plugin initialized: {plugin.name}")
        return InitResult.success(plugin.name)

    # ------------------------------------------------------------------
    # Plugins-ready signal
    # ------------------------------------------------------------------

    def _schedule_ready(self) -> None:
        try:
            asyncio.get_running_loop().call_soon(self._publish_ready)
            return
        except RuntimeError:
            pass

        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._publish_ready)
        elif self._bus is not None:
            # Runs after every other host_ready handler of this dispatch
            self._bus.defer(self._publish_ready)
        else:
            self._publish_ready()

    def _publish_ready(self) -> None:
        supported = [p.name for p in self.registry if p.supported]
        failed = [p.name for p in self.registry if p.initialized and not p.supported]
        self.ready = True
        logger.info(f"Plugins ready: {len(supported)} supported, {len(failed)} failed")
        if self._bus is not None:
            self._bus.publish(
                self._settings.plugins_ready_event,
                {"supported": supported, "failed": failed},
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_plugin(self, name: str) -> Plugin | None:
        """Get a plugin by name, or None if not registered."""
        return self.registry.get(name)

    def is_supported(self, name: str) -> bool:
        plugin = self.registry.get(name)
        return plugin is not None and plugin.supported

    def list_plugins(self) -> list[dict]:
        """List all plugins with status info."""
        return [plugin.to_dict() for plugin in self.registry]
