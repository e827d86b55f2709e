"""
Command Builder: turns a logical intent into a ledger command.

Two intents exist:
  Seed:  create a fresh Ping with count 0
  React: answer an observed Ping/Pong addressed to us with its reply

Command ids are deterministic so the ledger's deduplication absorbs
repeats: a seed id is derived from (sender, index), a reaction id from the
observed contract's id. A re-delivered event therefore produces the same
command id and is rejected as a duplicate instead of reacted to twice.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import uuid4

from pingpong_ledger.models.config import ReactionMode
from pingpong_ledger.models.contract import PingPongRecord
from pingpong_ledger.models.ledger import (
    Command,
    CreateAction,
    CreatedEvent,
    ExerciseAction,
    Identifier,
    LedgerAction,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CommandBuilder:
    """Builds Seed and React commands for one application."""

    def __init__(
        self,
        application_id: str,
        ping_template: Identifier,
        pong_template: Identifier,
        validity_window_seconds: int = 10,
        reaction: ReactionMode = ReactionMode.CREATE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.application_id = application_id
        self.ping_template = ping_template
        self.pong_template = pong_template
        self.validity_window = timedelta(seconds=validity_window_seconds)
        self.reaction = reaction
        self._clock = clock or _utcnow

    def seed(self, sender: str, receiver: str, index: int) -> Command:
        """A creation command for the ``index``-th initial Ping from ``sender``."""
        record = PingPongRecord(sender=sender, receiver=receiver, count=0)
        action = CreateAction(
            template_id=self.ping_template,
            arguments=record.to_arguments(),
        )
        return self._build(
            command_id=f"{self.ping_template.entity_name}-{sender}-{index}",
            act_as=sender,
            action=action,
        )

    def is_reactable(self, party: str, event: CreatedEvent) -> bool:
        """True for a Ping or Pong created with ``party`` as receiver."""
        return (
            event.template_id in (self.ping_template, self.pong_template)
            and event.arguments.get("receiver") == party
        )

    def react(self, party: str, event: CreatedEvent) -> Command:
        """
        The reply to an observed record: parties swapped, count + 1.

        Raises ValueError if ``event`` is not a Ping/Pong addressed to
        ``party``.
        """
        if not self.is_reactable(party, event):
            raise ValueError(
                f"{party} cannot react to {event.template_id.qualified_name()} "
                f"contract {event.contract_id}"
            )

        observed = PingPongRecord.from_arguments(event.arguments)
        if event.template_id == self.ping_template:
            outgoing = self.pong_template
        else:
            outgoing = self.ping_template

        if self.reaction == ReactionMode.EXERCISE:
            action: LedgerAction = ExerciseAction(
                template_id=event.template_id,
                contract_id=event.contract_id,
                choice=f"Respond{outgoing.entity_name}",
            )
        else:
            action = CreateAction(
                template_id=outgoing,
                arguments=observed.reply().to_arguments(),
            )

        return self._build(
            command_id=f"{outgoing.entity_name}-{party}-{event.contract_id}",
            act_as=party,
            action=action,
        )

    def _build(self, command_id: str, act_as: str, action: LedgerAction) -> Command:
        now = self._clock()
        return Command(
            command_id=command_id,
            application_id=self.application_id,
            submission_id=str(uuid4()),
            act_as=act_as,
            min_ledger_time=now,
            max_record_time=now + self.validity_window,
            actions=[action],
        )
