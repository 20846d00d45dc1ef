"""Default plugins shipped with polyserde."""

from polyserde.plugins.default.logging import LoggingPlugin

__all__ = ["LoggingPlugin"]
