"""pluginhost - plugin registration and initialization for host applications."""

__version__ = "0.1.0"
