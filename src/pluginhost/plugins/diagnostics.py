"""Structured diagnostic sink shared by plugins and the controller.

Warnings, deprecation notices and failures all flow through a single sink
as ``PluginDiagnostic`` records. The default sink keeps a bounded history
and forwards every record to the standard logger.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class DiagnosticLevel(Enum):
    """Severity of a plugin diagnostic."""
    WARNING = "warning"
    DEPRECATION = "deprecation"
    ERROR = "error"


@dataclass(frozen=True)
class PluginDiagnostic:
    """One diagnostic emitted by or about a plugin."""
    level: DiagnosticLevel
    message: str
    plugin: str | None = None          # None for host-level diagnostics
    error: Exception | None = field(default=None, compare=False)

    def format(self) -> str:
        if self.plugin is None:
            return self.message
        return f"Plugin {self.plugin}: {self.message}"


class DiagnosticSink(Protocol):
    def __call__(self, diagnostic: PluginDiagnostic) -> None: ...


_LOG_LEVELS = {
    DiagnosticLevel.WARNING: logging.WARNING,
    DiagnosticLevel.DEPRECATION: logging.WARNING,
    DiagnosticLevel.ERROR: logging.ERROR,
}


def log_diagnostic(diagnostic: PluginDiagnostic) -> None:
    """Sink that only logs; used by plugins created without a controller."""
    logger.log(_LOG_LEVELS[diagnostic.level], diagnostic.format())


class DiagnosticLog:
    """Default sink: bounded in-memory history plus logging.

    Extra listeners (e.g. a host UI) can be attached with ``add_listener``.
    """

    def __init__(self, limit: int = 500) -> None:
        self._records: deque[PluginDiagnostic] = deque(maxlen=limit)
        self._listeners: list[Callable[[PluginDiagnostic], None]] = []

    def __call__(self, diagnostic: PluginDiagnostic) -> None:
        self._records.append(diagnostic)
        log_diagnostic(diagnostic)
        for listener in list(self._listeners):
            try:
                listener(diagnostic)
            except Exception as e:
                logger.error(f"Diagnostic listener failed: {e}")

    def add_listener(self, listener: Callable[[PluginDiagnostic], None]) -> None:
        self._listeners.append(listener)

    @property
    def records(self) -> list[PluginDiagnostic]:
        return list(self._records)

    def for_plugin(self, name: str) -> list[PluginDiagnostic]:
        return [d for d in self._records if d.plugin == name]

    def clear(self) -> None:
        self._records.clear()
