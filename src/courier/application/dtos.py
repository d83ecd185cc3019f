"""Data Transfer Objects — Pydantic models for the dispatcher's read side.

They adapt internal state (breakers, bucket, ledger, queue) into a
serialisable snapshot for dashboards and health endpoints.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class BreakerSnapshot(BaseModel):
    state: str
    failures: int = Field(0, ge=0)
    recent_failures: int = Field(0, ge=0)


class DispatchStatistics(BaseModel):
    total: int = 0
    pending: int = 0
    queued: int = 0
    sending: int = 0
    sent: int = 0
    failed: int = 0
    queue_size: int = 0
    available_tokens: int = 0
    breakers: dict[str, BreakerSnapshot] = Field(default_factory=dict)
    recent_events: list[dict[str, Any]] = Field(default_factory=list)
