"""
Command Submitter: sends built commands and waits for the ledger's answer.

Behavioral Contract:
- submit() blocks until the command is accepted or rejected
- A duplicate command id raises DuplicateCommand (expected, absorbable)
- Any other rejection raises OtherRejection
- Transport failures surface as LedgerConnectionError
- No retries: a rejected command is reported, never resubmitted
"""

import logging

from pingpong_ledger.errors import DuplicateCommand, OtherRejection
from pingpong_ledger.ledger.client import LedgerClient
from pingpong_ledger.models.ledger import Command, Completion, CompletionStatus

logger = logging.getLogger(__name__)


class CommandSubmitter:
    """Synchronous command submission through a ledger client."""

    def __init__(self, client: LedgerClient):
        self.client = client

    def submit(self, command: Command) -> Completion:
        """Submit ``command`` and return its successful completion."""
        completion = self.client.submit_and_wait(command)

        if completion.status == CompletionStatus.OK:
            logger.debug(
                "Command %s accepted as %s",
                command.command_id,
                completion.transaction_id,
            )
            return completion
        if completion.status == CompletionStatus.ALREADY_EXISTS:
            raise DuplicateCommand(completion)
        raise OtherRejection(completion)
