"""
PROMPT COACH INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML settings, YAML message catalog, environment overrides
- event_bus: Session change notifications for the presentation layer
"""

from infrastructure.event_bus import EventBus, EventType, SessionEvent, get_event_bus
from infrastructure.config import (
    CoachSettings,
    ConfigError,
    MessageCatalog,
    get_message_catalog,
    get_settings,
)

__all__ = [
    "EventBus",
    "EventType",
    "SessionEvent",
    "get_event_bus",
    "CoachSettings",
    "ConfigError",
    "MessageCatalog",
    "get_message_catalog",
    "get_settings",
]
