"""Plugin error kinds.

Every error carries the name of the plugin it concerns (or None for
host-level errors such as re-initialization).
"""

from __future__ import annotations


class PluginError(Exception):
    """Base class for all plugin errors."""

    def __init__(self, message: str, plugin: str | None = None) -> None:
        super().__init__(message)
        self.plugin = plugin

    @property
    def reason(self) -> str:
        return str(self)


class AlreadyInitializedError(PluginError):
    """Raised when a host that already carries a plugin namespace is readied again."""

    def __init__(self) -> None:
        super().__init__("Already initialized on host")


class DuplicateNameError(PluginError):
    """Raised on name collision when duplicate registration is rejected."""

    def __init__(self, name: str) -> None:
        super().__init__(f"plugin '{name}' already registered", plugin=name)


class DependencyNotFoundError(PluginError):
    """A declared dependency is not registered."""

    def __init__(self, plugin: str, dependency: str) -> None:
        super().__init__(f"required plugin '{dependency}' not found", plugin=plugin)
        self.dependency = dependency


class DependencyUnsupportedError(PluginError):
    """A declared dependency was initialized but is not supported."""

    def __init__(self, plugin: str, dependency: str) -> None:
        super().__init__(f"required plugin '{dependency}' not supported", plugin=plugin)
        self.dependency = dependency


class CyclicDependencyError(PluginError):
    """The dependency walk re-entered a plugin still being resolved."""

    def __init__(self, plugin: str, cycle: list[str]) -> None:
        path = " -> ".join(cycle)
        super().__init__(f"circular dependency detected: {path}", plugin=plugin)
        self.cycle = list(cycle)

    def involves(self, name: str) -> bool:
        return name in self.cycle


class InitializerFailure(PluginError):
    """The initializer raised, or the plugin called ``fail()``."""

    def __init__(self, plugin: str, reason: str) -> None:
        super().__init__(f"plugin '{plugin}' failed to load: {reason}", plugin=plugin)
        self.failure_reason = reason


def exception_message(ex: BaseException) -> str:
    """Best-effort human readable message for an arbitrary exception."""
    return str(ex) or type(ex).__name__
