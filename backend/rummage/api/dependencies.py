"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from rummage.core.config import Settings, get_settings
from rummage.services.commands import CommandService
from rummage.services.events import EventBroker

_BROKER: EventBroker | None = None
_SERVICE: CommandService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_event_broker() -> EventBroker:
    global _BROKER
    if _BROKER is None:
        _BROKER = EventBroker()
    return _BROKER


def get_command_service() -> CommandService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = CommandService.open(get_app_settings(), event_sink=get_event_broker().publish)
    return _SERVICE


def shutdown_services() -> None:
    """Cancel in-flight scans and close the database."""
    global _SERVICE
    if _SERVICE is not None:
        _SERVICE.close()
        _SERVICE = None


__all__ = [
    "get_app_settings",
    "get_event_broker",
    "get_command_service",
    "shutdown_services",
]
