"""PingPong ledger agent data models."""

from pingpong_ledger.models.config import AgentConfig, ReactionMode
from pingpong_ledger.models.contract import PingPongRecord
from pingpong_ledger.models.ledger import (
    ArchivedEvent,
    Command,
    Completion,
    CompletionStatus,
    CreateAction,
    CreatedEvent,
    ExerciseAction,
    Identifier,
    PackageDescriptor,
    Transaction,
)
from pingpong_ledger.models.package import DecodedPackage, ModuleDescriptor
from pingpong_ledger.models.processor import (
    ProcessorState,
    ProcessorStats,
    ReactionOutcome,
)

__all__ = [
    "AgentConfig",
    "ArchivedEvent",
    "Command",
    "Completion",
    "CompletionStatus",
    "CreateAction",
    "CreatedEvent",
    "DecodedPackage",
    "ExerciseAction",
    "Identifier",
    "ModuleDescriptor",
    "PackageDescriptor",
    "PingPongRecord",
    "ProcessorState",
    "ProcessorStats",
    "ReactionMode",
    "ReactionOutcome",
    "Transaction",
]
