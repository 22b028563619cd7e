"""Common failure shape for external capability adapters."""

from __future__ import annotations


class AdapterError(Exception):
    """Raised by an adapter when its upstream call fails or returns garbage.

    The evidence gatherer catches these (and timeouts) at the adapter
    boundary and degrades the affected evidence type to an empty result.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message
