"""Plugin registration and initialization.

Plugins register a name, optional dependency names and an initializer.
When the host signals it is ready the controller resolves dependencies
depth-first, runs each initializer exactly once and records which plugins
are supported.
"""

from pluginhost.plugins.api import PluginApi, PluginApiFactory
from pluginhost.plugins.base import InitResult, Plugin
from pluginhost.plugins.diagnostics import (
    DiagnosticLevel,
    DiagnosticLog,
    PluginDiagnostic,
    log_diagnostic,
)
from pluginhost.plugins.errors import (
    AlreadyInitializedError,
    CyclicDependencyError,
    DependencyNotFoundError,
    DependencyUnsupportedError,
    DuplicateNameError,
    InitializerFailure,
    PluginError,
)
from pluginhost.plugins.manager import PluginController, PluginRegistry

__all__ = [
    "Plugin",
    "InitResult",
    "PluginApi",
    "PluginApiFactory",
    "PluginController",
    "PluginRegistry",
    "DiagnosticLevel",
    "DiagnosticLog",
    "PluginDiagnostic",
    "log_diagnostic",
    "PluginError",
    "AlreadyInitializedError",
    "CyclicDependencyError",
    "DependencyNotFoundError",
    "DependencyUnsupportedError",
    "DuplicateNameError",
    "InitializerFailure",
]
