"""
Logging plugin for registry and envelope events.

Example:
    >>> import logging
    >>> from polyserde.plugins import LoggingPlugin
    >>> from polyserde.plugins.manager import register_hooks
    >>>
    >>> register_hooks(LoggingPlugin(level=logging.INFO))  # doctest: +SKIP
"""

import logging
from typing import Any

from polyserde.plugins.hooks.markers import hook_impl

DEFAULT_LOGGER_NAME = "polyserde.registry"


class LoggingPlugin:
    """
    Plugin that reports registrations and envelope traffic through Python's logging system.

    Registrations, freezes and successful serialize/deserialize calls are logged at `level`;
    decode failures are always logged at WARNING (or `level`, if higher).

    Args:
        level: Level used for routine events.
        logger_name: Name of the logger to emit to. Defaults to "polyserde.registry".

    Examples:
        >>> import logging
        >>> plugin = LoggingPlugin(level=logging.INFO)
        >>> plugin.logger.name
        'polyserde.registry'
    """

    def __init__(self, level: int = logging.DEBUG, logger_name: str | None = None) -> None:
        self._level = level
        self.logger = logging.getLogger(logger_name or DEFAULT_LOGGER_NAME)

    @hook_impl
    def after_register(self, kind: Any, entry: Any) -> None:
        self.logger.log(
            self._level,
            f"Registered '{entry.token}' in capability '{kind.name}' (key {entry.key})",
        )

    @hook_impl
    def after_freeze(self, kind: Any) -> None:
        self.logger.log(self._level, f"Capability '{kind.name}' frozen with {len(kind)} types")

    @hook_impl
    def after_serialize(self, kind: Any, value: Any, envelope: Any) -> None:
        self.logger.log(
            self._level,
            f"Serialized '{type(value).__qualname__}' with key {envelope.key} "
            f"(capability '{kind.name}')",
        )

    @hook_impl
    def after_deserialize(self, kind: Any, envelope: Any, value: Any) -> None:
        self.logger.log(
            self._level,
            f"Deserialized key {envelope.key} as '{type(value).__qualname__}' "
            f"(capability '{kind.name}')",
        )

    @hook_impl
    def on_decode_error(self, kind: Any, envelope: Any, error: Exception) -> None:
        self.logger.log(
            max(self._level, logging.WARNING),
            f"Failed to deserialize envelope for capability '{kind.name}': {error}",
        )
