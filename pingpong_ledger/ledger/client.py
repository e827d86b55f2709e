"""
Ledger client boundary.

Everything the agent needs from a ledger: package listing and fetch,
blocking command submission, and party-scoped transaction feeds.
Implementations must be safe for concurrent use by several processors.
"""

from typing import List, Protocol

from pingpong_ledger.models.ledger import (
    Command,
    Completion,
    CreatedEvent,
    PackageDescriptor,
    Transaction,
)


class LedgerClient(Protocol):
    """Protocol for ledger access. Pluggable transport."""

    def connect(self) -> str:
        """Validate the connection and return the ledger id."""
        ...

    def list_packages(self) -> List[str]: ...

    def get_package(self, package_id: str) -> PackageDescriptor: ...

    def submit_and_wait(self, command: Command) -> Completion:
        """Submit a command and block until it is accepted or rejected."""
        ...

    def ledger_end(self) -> int:
        """Offset of the most recent transaction (0 on an empty ledger)."""
        ...

    def get_transactions(
        self, party: str, offset: int, timeout: float = 0.0
    ) -> List[Transaction]:
        """
        Transactions committed after ``offset`` that ``party`` can see.
        Waits up to ``timeout`` seconds for at least one to arrive.
        """
        ...

    def active_contracts(self, party: str) -> List[CreatedEvent]: ...
