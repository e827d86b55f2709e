"""
Sandbox Ledger: in-process, append-only ledger for development and tests.

Behavioral Contract:
- Append-only. Transactions are never modified or deleted; contracts are
  only ever archived.
- A command is accepted at most once per (application_id, act_as, command_id).
  Later submissions with the same key complete with ALREADY_EXISTS.
- Commands outside their validity window complete with ABORTED.
- A transaction is atomic: either every action in a command commits or none.
- Each party sees only the events of contracts it is a stakeholder of, in
  commit order. The command id is only shown to the submitting party.

This is not a consensus or validation engine; it checks what the agent
relies on and nothing more.
"""

import json
import sqlite3
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from uuid import uuid4

from pingpong_ledger.lf.builder import package_id_for
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

ChoiceBody = Callable[[dict, dict], List[Tuple[str, dict]]]


class ChoiceSpec:
    """
    A choice on a template.

    ``body(contract_arguments, choice_argument)`` returns the contracts the
    choice creates as ``(entity_name, arguments)`` pairs in the template's
    own module.
    """

    def __init__(self, controller_field: str, body: ChoiceBody, consuming: bool = True):
        self.controller_field = controller_field
        self.body = body
        self.consuming = consuming


class TemplateSpec:
    """Authorization and validation rules for one template."""

    def __init__(
        self,
        signatory_fields: Sequence[str],
        observer_fields: Sequence[str] = (),
        choices: Optional[Dict[str, ChoiceSpec]] = None,
        validate: Optional[Callable[[dict], object]] = None,
    ):
        self.signatory_fields = list(signatory_fields)
        self.observer_fields = list(observer_fields)
        self.choices = choices or {}
        self.validate = validate

    def signatories(self, arguments: dict) -> List[str]:
        return _parties(arguments, self.signatory_fields)

    def observers(self, arguments: dict) -> List[str]:
        return [
            p for p in _parties(arguments, self.observer_fields)
            if p not in self.signatories(arguments)
        ]


def _parties(arguments: dict, fields: Sequence[str]) -> List[str]:
    parties = []
    for field in fields:
        value = arguments.get(field)
        if isinstance(value, str) and value not in parties:
            parties.append(value)
    return parties


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Rejected(Exception):
    def __init__(self, status: CompletionStatus, message: str):
        self.status = status
        self.message = message
        super().__init__(message)


class SandboxLedger:
    """
    Append-only sandbox ledger.
    Storage: SQLite (in memory unless a path is given), guarded by one lock.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        ledger_id: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_clock_skew: timedelta = timedelta(seconds=1),
    ):
        self.db_path = db_path
        self.ledger_id = ledger_id or f"sandbox-{uuid4().hex[:12]}"
        self._clock = clock or _utcnow
        self._max_clock_skew = max_clock_skew
        self._templates: Dict[Tuple[str, str, str], TemplateSpec] = {}
        self._lock = threading.RLock()
        self._committed = threading.Condition(self._lock)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()
        self._end = self._load_end()

    def _init_schema(self) -> None:
        """Create the ledger tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS packages (
                package_id TEXT PRIMARY KEY,
                payload BLOB NOT NULL,
                uploaded_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                ledger_offset INTEGER PRIMARY KEY,
                transaction_id TEXT NOT NULL UNIQUE,
                command_id TEXT NOT NULL,
                act_as TEXT NOT NULL,
                workflow_id TEXT,
                effective_at TEXT NOT NULL,
                events_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS contracts (
                contract_id TEXT PRIMARY KEY,
                event_json TEXT NOT NULL,
                stakeholders_json TEXT NOT NULL,
                created_offset INTEGER NOT NULL,
                archived_offset INTEGER
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS commands (
                application_id TEXT NOT NULL,
                act_as TEXT NOT NULL,
                command_id TEXT NOT NULL,
                submission_id TEXT NOT NULL,
                ledger_offset INTEGER NOT NULL,
                PRIMARY KEY (application_id, act_as, command_id)
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_contracts_active ON contracts(archived_offset)
        """)
        self._conn.commit()

    def _load_end(self) -> int:
        row = self._conn.execute(
            "SELECT MAX(ledger_offset) AS end_offset FROM transactions"
        ).fetchone()
        return row["end_offset"] or 0

    # === CONNECTION & PACKAGES ===

    def connect(self) -> str:
        return self.ledger_id

    def upload_package(self, payload: bytes) -> str:
        """Publish a package payload. Uploading the same bytes twice is a no-op."""
        package_id = package_id_for(payload)
        with self._lock:
            self._conn.execute(
                "INSERT OR IGNORE INTO packages (package_id, payload) VALUES (?, ?)",
                (package_id, payload),
            )
            self._conn.commit()
        return package_id

    def list_packages(self) -> List[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT package_id FROM packages ORDER BY rowid"
            ).fetchall()
        return [r["package_id"] for r in rows]

    def get_package(self, package_id: str) -> PackageDescriptor:
        with self._lock:
            row = self._conn.execute(
                "SELECT package_id, payload FROM packages WHERE package_id = ?",
                (package_id,),
            ).fetchone()
        if row is None:
            raise KeyError(package_id)
        return PackageDescriptor(
            package_id=row["package_id"],
            archive_payload=bytes(row["payload"]),
        )

    def register_template(self, template_id: Identifier, rules: TemplateSpec) -> None:
        """Make a template of an uploaded package usable in commands."""
        with self._lock:
            self._templates[self._template_key(template_id)] = rules

    @staticmethod
    def _template_key(template_id: Identifier) -> Tuple[str, str, str]:
        return (template_id.package_id, template_id.module_name, template_id.entity_name)

    # === COMMAND SUBMISSION ===

    def submit_and_wait(self, command: Command) -> Completion:
        """Validate, interpret and commit a command atomically."""
        with self._lock:
            try:
                self._check_duplicate(command)
                effective_at = self._check_time_window(command)
                offset = self._end + 1
                events, witnesses, archived = self._interpret(command, offset)
            except _Rejected as r:
                return Completion(
                    command_id=command.command_id,
                    submission_id=command.submission_id,
                    status=r.status,
                    message=r.message,
                )

            transaction_id = f"tx-{offset}"
            self._commit(command, offset, transaction_id, effective_at, events, witnesses, archived)
            self._end = offset
            self._committed.notify_all()

        return Completion(
            command_id=command.command_id,
            submission_id=command.submission_id,
            status=CompletionStatus.OK,
            transaction_id=transaction_id,
        )

    def _check_duplicate(self, command: Command) -> None:
        row = self._conn.execute(
            "SELECT ledger_offset FROM commands "
            "WHERE application_id = ? AND act_as = ? AND command_id = ?",
            (command.application_id, command.act_as, command.command_id),
        ).fetchone()
        if row is not None:
            raise _Rejected(
                CompletionStatus.ALREADY_EXISTS,
                f"Duplicate command {command.command_id}, "
                f"accepted at offset {row['ledger_offset']}",
            )

    def _check_time_window(self, command: Command) -> datetime:
        now = _as_utc(self._clock())
        not_before = _as_utc(command.min_ledger_time)
        not_after = _as_utc(command.max_record_time)
        if not_before > now + self._max_clock_skew:
            raise _Rejected(
                CompletionStatus.ABORTED,
                f"Ledger time {now.isoformat()} is before the command's "
                f"minimum ledger time {not_before.isoformat()}",
            )
        if now > not_after:
            raise _Rejected(
                CompletionStatus.ABORTED,
                f"Record time {now.isoformat()} exceeds the command's "
                f"maximum record time {not_after.isoformat()}",
            )
        return now

    def _interpret(self, command: Command, offset: int):
        """Turn actions into events. Nothing is written until all actions pass."""
        events = []
        witnesses: List[List[str]] = []
        archived: List[str] = []

        def create(template_id: Identifier, arguments: dict, authorized: bool) -> None:
            rules = self._require_template(template_id)
            if rules.validate is not None:
                try:
                    rules.validate(arguments)
                except ValueError as e:
                    raise _Rejected(
                        CompletionStatus.INVALID_ARGUMENT,
                        f"Invalid arguments for {template_id.qualified_name()}: {e}",
                    ) from e
            signatories = rules.signatories(arguments)
            if not signatories:
                raise _Rejected(
                    CompletionStatus.INVALID_ARGUMENT,
                    f"{template_id.qualified_name()} has no signatory",
                )
            if not authorized and command.act_as not in signatories:
                raise _Rejected(
                    CompletionStatus.PERMISSION_DENIED,
                    f"{command.act_as} is not a signatory of "
                    f"{template_id.qualified_name()}",
                )
            event_id = f"#{offset}:{len(events)}"
            events.append(CreatedEvent(
                event_id=event_id,
                contract_id=event_id,
                template_id=template_id,
                arguments=arguments,
                signatories=signatories,
                observers=rules.observers(arguments),
            ))
            witnesses.append(signatories + rules.observers(arguments))

        for action in command.actions:
            if isinstance(action, CreateAction):
                create(action.template_id, action.arguments, authorized=False)
            elif isinstance(action, ExerciseAction):
                rules = self._require_template(action.template_id)
                contract = self._active_contract(action.contract_id, archived)
                if contract.template_id != action.template_id:
                    raise _Rejected(
                        CompletionStatus.INVALID_ARGUMENT,
                        f"Contract {action.contract_id} is a "
                        f"{contract.template_id.qualified_name()}, not a "
                        f"{action.template_id.qualified_name()}",
                    )
                choice = rules.choices.get(action.choice)
                if choice is None:
                    raise _Rejected(
                        CompletionStatus.INVALID_ARGUMENT,
                        f"Unknown choice {action.choice} on "
                        f"{action.template_id.qualified_name()}",
                    )
                if contract.arguments.get(choice.controller_field) != command.act_as:
                    raise _Rejected(
                        CompletionStatus.PERMISSION_DENIED,
                        f"{command.act_as} is not the controller of {action.choice}",
                    )
                if choice.consuming:
                    archived.append(action.contract_id)
                    events.append(ArchivedEvent(
                        event_id=f"#{offset}:{len(events)}",
                        contract_id=action.contract_id,
                        template_id=action.template_id,
                    ))
                    witnesses.append(contract.signatories + contract.observers)
                for entity_name, arguments in choice.body(
                    contract.arguments, action.choice_argument
                ):
                    created_id = Identifier(
                        package_id=action.template_id.package_id,
                        module_name=action.template_id.module_name,
                        entity_name=entity_name,
                    )
                    create(created_id, arguments, authorized=True)

        return events, witnesses, archived

    def _require_template(self, template_id: Identifier) -> TemplateSpec:
        rules = self._templates.get(self._template_key(template_id))
        if rules is None:
            raise _Rejected(
                CompletionStatus.INVALID_ARGUMENT,
                f"Unknown template {template_id}",
            )
        return rules

    def _active_contract(self, contract_id: str, archived_in_tx: List[str]) -> CreatedEvent:
        row = self._conn.execute(
            "SELECT event_json, archived_offset FROM contracts WHERE contract_id = ?",
            (contract_id,),
        ).fetchone()
        if row is None or row["archived_offset"] is not None or contract_id in archived_in_tx:
            raise _Rejected(
                CompletionStatus.NOT_FOUND,
                f"Contract {contract_id} is not active",
            )
        return CreatedEvent.model_validate_json(row["event_json"])

    def _commit(
        self,
        command: Command,
        offset: int,
        transaction_id: str,
        effective_at: datetime,
        events: list,
        witnesses: List[List[str]],
        archived: List[str],
    ) -> None:
        events_json = json.dumps([
            {"event": e.model_dump(mode="json"), "witnesses": w}
            for e, w in zip(events, witnesses)
        ])
        # All rows of one transaction land together or not at all
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO transactions (
                    ledger_offset, transaction_id, command_id, act_as,
                    workflow_id, effective_at, events_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    offset,
                    transaction_id,
                    command.command_id,
                    command.act_as,
                    command.workflow_id,
                    effective_at.isoformat(),
                    events_json,
                ),
            )
            for event, stakeholders in zip(events, witnesses):
                if isinstance(event, CreatedEvent):
                    self._conn.execute(
                        "INSERT INTO contracts (contract_id, event_json, stakeholders_json, "
                        "created_offset) VALUES (?, ?, ?, ?)",
                        (event.contract_id, event.model_dump_json(), json.dumps(stakeholders), offset),
                    )
            for contract_id in archived:
                self._conn.execute(
                    "UPDATE contracts SET archived_offset = ? WHERE contract_id = ?",
                    (offset, contract_id),
                )
            self._conn.execute(
                "INSERT INTO commands (application_id, act_as, command_id, submission_id, "
                "ledger_offset) VALUES (?, ?, ?, ?, ?)",
                (command.application_id, command.act_as, command.command_id,
                 command.submission_id, offset),
            )

    # === TRANSACTION FEED ===

    def ledger_end(self) -> int:
        with self._lock:
            return self._end

    def get_transactions(
        self, party: str, offset: int, timeout: float = 0.0
    ) -> List[Transaction]:
        """
        Transactions after ``offset`` visible to ``party``.
        Blocks until one arrives or ``timeout`` seconds pass.
        """
        deadline = time.monotonic() + max(0.0, timeout)
        cursor = offset
        with self._committed:
            while True:
                rows = self._conn.execute(
                    "SELECT * FROM transactions WHERE ledger_offset > ? "
                    "ORDER BY ledger_offset",
                    (cursor,),
                ).fetchall()
                visible = [t for t in (self._project(r, party) for r in rows) if t]
                if visible:
                    return visible
                if rows:
                    cursor = rows[-1]["ledger_offset"]

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return []
                self._committed.wait_for(lambda: self._end > cursor, remaining)

    def _project(self, row: sqlite3.Row, party: str) -> Optional[Transaction]:
        events = [
            e["event"] for e in json.loads(row["events_json"])
            if party in e["witnesses"]
        ]
        if not events:
            return None
        return Transaction(
            transaction_id=row["transaction_id"],
            offset=row["ledger_offset"],
            effective_at=row["effective_at"],
            command_id=row["command_id"] if row["act_as"] == party else None,
            workflow_id=row["workflow_id"],
            events=events,
        )

    def active_contracts(self, party: str) -> List[CreatedEvent]:
        """Active contracts ``party`` is a stakeholder of, in creation order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT event_json, stakeholders_json FROM contracts "
                "WHERE archived_offset IS NULL ORDER BY created_offset, contract_id"
            ).fetchall()
        return [
            CreatedEvent.model_validate_json(r["event_json"])
            for r in rows
            if party in json.loads(r["stakeholders_json"])
        ]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
