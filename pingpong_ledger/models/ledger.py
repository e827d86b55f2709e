"""Ledger data: identifiers, commands, completions, events and transactions."""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel


class Identifier(BaseModel):
    """Fully qualified template identifier."""

    package_id: str
    module_name: str                        # e.g., "PingPong"
    entity_name: str                        # e.g., "Ping"

    model_config = {"frozen": True}

    def qualified_name(self) -> str:
        return f"{self.module_name}:{self.entity_name}"

    def __str__(self) -> str:
        return f"{self.package_id}:{self.module_name}:{self.entity_name}"


class CreateAction(BaseModel):
    """Create a new contract of a template."""

    kind: Literal["create"] = "create"
    template_id: Identifier
    arguments: dict


class ExerciseAction(BaseModel):
    """Exercise a choice on an existing contract."""

    kind: Literal["exercise"] = "exercise"
    template_id: Identifier
    contract_id: str
    choice: str
    choice_argument: dict = {}


LedgerAction = Union[CreateAction, ExerciseAction]


class Command(BaseModel):
    """
    An intended ledger action. Immutable once built.

    The ledger rejects a second command with the same
    (application_id, act_as, command_id) as a duplicate.
    """

    command_id: str                         # Deduplication key
    application_id: str
    submission_id: str
    act_as: str
    min_ledger_time: datetime               # Validity window start
    max_record_time: datetime               # Validity window end
    workflow_id: Optional[str] = None
    actions: List[LedgerAction]

    model_config = {"frozen": True}


class CompletionStatus(str, Enum):
    OK = "OK"
    ALREADY_EXISTS = "ALREADY_EXISTS"       # Duplicate command id
    ABORTED = "ABORTED"                     # Outside the validity window
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_FOUND = "NOT_FOUND"                 # Contract not active


class Completion(BaseModel):
    """The ledger's answer to one submission."""

    command_id: str
    submission_id: str
    status: CompletionStatus
    message: str = ""
    transaction_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == CompletionStatus.OK


class CreatedEvent(BaseModel):
    kind: Literal["created"] = "created"
    event_id: str
    contract_id: str
    template_id: Identifier
    arguments: dict
    signatories: List[str] = []
    observers: List[str] = []


class ArchivedEvent(BaseModel):
    kind: Literal["archived"] = "archived"
    event_id: str
    contract_id: str
    template_id: Identifier


Event = Union[CreatedEvent, ArchivedEvent]


class Transaction(BaseModel):
    """A committed transaction, as seen by one party."""

    transaction_id: str
    offset: int
    effective_at: datetime
    command_id: Optional[str] = None        # Only visible to the submitter
    workflow_id: Optional[str] = None
    events: List[Event] = []


class PackageDescriptor(BaseModel):
    """An opaque package as returned by the ledger. Immutable once fetched."""

    package_id: str
    archive_payload: bytes
    hash_function: str = "SHA256"

    model_config = {"frozen": True}
