"""Host/controller notification channel."""

from pluginhost.comms.event_bus import EventBus

__all__ = ["EventBus"]
