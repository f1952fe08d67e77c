"""Plugin entity and the handle passed to plugin initializers.

A plugin is a named unit with an ordered list of dependency names and an
initializer ``initializer(plugin, api)``. The plugin object itself is the
handle the initializer receives: it exposes ``fail()``, ``warn()``,
``create_error()`` and ``deprecation_notice()``.

Lifecycle flags:
- ``initialized`` becomes True once initialization was attempted, whether
  it succeeded or not, and is never reset.
- ``supported`` is True only if every dependency was supported and the
  initializer returned normally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from pluginhost.plugins.diagnostics import (
    DiagnosticLevel,
    DiagnosticSink,
    PluginDiagnostic,
    log_diagnostic,
)
from pluginhost.plugins.errors import InitializerFailure, PluginError

if TYPE_CHECKING:
    from pluginhost.plugins.api import PluginApi

Initializer = Callable[["Plugin", "PluginApi"], Any]


@dataclass(frozen=True)
class InitResult:
    """Outcome of one initialization attempt."""
    name: str
    ok: bool
    error: PluginError | None = None

    @property
    def reason(self) -> str | None:
        return None if self.error is None else self.error.reason

    @classmethod
    def success(cls, name: str) -> InitResult:
        return cls(name=name, ok=True)

    @classmethod
    def failure(cls, name: str, error: PluginError) -> InitResult:
        return cls(name=name, ok=False, error=error)


class Plugin:
    """A registered plugin and its initialization state."""

    def __init__(
        self,
        name: str,
        dependencies: list[str] | None,
        initializer: Initializer,
        sink: DiagnosticSink | None = None,
    ) -> None:
        self.name = name
        self.dependencies: list[str] = list(dependencies or [])
        self.initializer = initializer
        self.initialized = False
        self.supported = False
        self.result: InitResult | None = None
        self._sink: DiagnosticSink = sink or log_diagnostic

    def __repr__(self) -> str:
        return (
            f"Plugin({self.name!r}, dependencies={self.dependencies!r}, "
            f"initialized={self.initialized}, supported={self.supported})"
        )

    @property
    def status(self) -> str:
        if not self.initialized:
            return "registered"
        return "supported" if self.supported else "failed"

    # ------------------------------------------------------------------
    # Handle API (used from inside the initializer)
    # ------------------------------------------------------------------

    def fail(self, reason: str) -> None:
        """Mark this plugin unsupported and abort its initializer."""
        self.initialized = True
        self.supported = False
        raise InitializerFailure(self.name, reason)

    def warn(self, msg: str) -> None:
        self._sink(PluginDiagnostic(DiagnosticLevel.WARNING, msg, plugin=self.name))

    def deprecation_notice(self, deprecated: str, replacement: str) -> None:
        self._sink(PluginDiagnostic(
            DiagnosticLevel.DEPRECATION,
            f"DEPRECATED: {deprecated} is deprecated. Please use {replacement} instead",
            plugin=self.name,
        ))

    def create_error(self, msg: str) -> PluginError:
        """Build (but do not raise) an error scoped to this plugin."""
        return PluginError(f"Error in {self.name} plugin: {msg}", plugin=self.name)

    # ------------------------------------------------------------------
    # State transitions (used by the controller)
    # ------------------------------------------------------------------

    def _record(self, result: InitResult) -> InitResult:
        self.initialized = True
        self.supported = result.ok
        self.result = result
        if result.error is not None:
            self._sink(PluginDiagnostic(
                DiagnosticLevel.ERROR,
                result.error.reason,
                plugin=self.name,
                error=result.error,
            ))
        return result

    def to_dict(self) -> dict:
        return {
            "id": self.name,
            "dependencies": list(self.dependencies),
            "initialized": self.initialized,
            "supported": self.supported,
            "status": self.status,
            "error": self.result.reason if self.result else None,
        }
