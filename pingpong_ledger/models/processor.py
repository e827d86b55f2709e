"""Reactive processor state and statistics."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ProcessorState(str, Enum):
    IDLE = "idle"
    SUBSCRIBED = "subscribed"
    REACTING = "reacting"
    STOPPED = "stopped"
    FAILED = "failed"


class ReactionOutcome(str, Enum):
    SUBMITTED = "submitted"
    DUPLICATE = "duplicate"     # Re-delivered event, absorbed by deduplication
    FAILED = "failed"           # Dropped, not retried


class ProcessorStats(BaseModel):
    """Per-party counters. Owned by exactly one processor."""

    party: str
    events_seen: int = 0
    reactions_submitted: int = 0
    duplicates: int = 0
    failures: int = 0
    last_offset: Optional[int] = None
