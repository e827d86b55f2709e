"""Agent configuration."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class ReactionMode(str, Enum):
    CREATE = "create"       # Create the complementary record directly
    EXERCISE = "exercise"   # Exercise the consuming Respond* choice on the observed record


class AgentConfig(BaseModel):
    """Process-wide settings, passed explicitly into each component."""

    application_id: str = "PingPongApp"
    parties: List[str] = ["Alice", "Bob"]
    module_name: List[str] = ["PingPong"]
    ping_entity: str = "Ping"
    pong_entity: str = "Pong"
    validity_window_seconds: int = Field(gt=0, default=10)
    num_initial_contracts: int = Field(ge=0, default=10)
    run_seconds: float = Field(ge=0, default=5.0)
    poll_timeout_seconds: float = Field(gt=0, default=1.0)
    reaction: ReactionMode = ReactionMode.CREATE
