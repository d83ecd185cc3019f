"""Wiring — builds a ready-to-use dispatcher from settings."""

from __future__ import annotations

from collections.abc import Sequence

from courier.adapters.outbound.providers import default_providers
from courier.application.services import MessageDispatcher
from courier.config import Settings, get_settings
from courier.ports.outbound import DeliveryProvider
from courier.shared.observability import RecentEvents, configure_logging


def build_dispatcher(
    settings: Settings | None = None,
    providers: Sequence[DeliveryProvider] | None = None,
    *,
    configure_logs: bool = True,
) -> MessageDispatcher:
    """Create a dispatcher with logging configured and recent events captured.

    Falls back to the simulated primary/backup pair when no providers are
    given.
    """
    settings = settings or get_settings()
    recent_events = RecentEvents(maxlen=settings.recent_events_limit)
    if configure_logs:
        configure_logging(
            log_level=settings.log_level,
            json_logs=settings.json_logs,
            recent_events=recent_events,
        )
    return MessageDispatcher(
        providers if providers is not None else default_providers(),
        retry=settings.retry_policy(),
        rate_limit=settings.rate_limit(),
        breaker=settings.breaker(),
        queue_pause_interval=settings.queue_pause_interval_s,
        recent_events=recent_events if configure_logs else None,
    )
