"""Per-plugin capability object handed to each initializer.

The host's extension namespace is a dict stored on ``host.plugins``. Each
plugin owns exactly one slot in it, keyed by plugin name, and can only
write to that slot through ``PluginApi.extend_reader``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pluginhost.plugins.base import Plugin

NAMESPACE_ATTR = "plugins"


def get_namespace(host: Any) -> dict | None:
    """Return the host's plugin namespace, or None if it was never created."""
    return getattr(host, NAMESPACE_ATTR, None)


class PluginApi:
    """Capabilities granted to one plugin on one host."""

    def __init__(self, host: Any, plugin: Plugin) -> None:
        self.host = host
        self.plugin = plugin

    def extend_reader(self, extension: Any) -> None:
        """Merge ``extension``'s own properties into this plugin's namespace slot.

        ``extension`` may be a mapping or any object with instance attributes.
        Does nothing if the host has no plugin namespace.
        """
        namespace = get_namespace(self.host)
        if namespace is None:
            return

        if isinstance(extension, Mapping):
            items = dict(extension)
        else:
            items = dict(vars(extension))

        slot = namespace.setdefault(self.plugin.name, {})
        slot.update(items)


class PluginApiFactory:
    """Builds a fresh ``PluginApi`` bound to the given host."""

    def __init__(self, host: Any) -> None:
        self.host = host

    def create(self, plugin: Plugin) -> PluginApi:
        return PluginApi(self.host, plugin)
