"""
Error taxonomy for the PingPong ledger agent.

Setup failures (connection, module resolution, payload decoding) are fatal
for the process. Submission rejections are isolated to the single reaction
that produced them.
"""

from typing import Optional


class PingPongError(Exception):
    """Base class for all agent errors."""
    pass


class LedgerConnectionError(PingPongError):
    """Raised when the ledger cannot be reached or answers unintelligibly."""
    pass


class ModuleNotFound(PingPongError):
    """Raised when no package on the ledger contains the requested module."""

    def __init__(self, module_name, searched: int = 0):
        self.module_name = list(module_name)
        self.searched = searched
        super().__init__(
            f"Module {'.'.join(self.module_name)} is not available on the ledger "
            f"({searched} packages searched)"
        )


class DecodeError(PingPongError):
    """Raised when a package payload is structurally corrupt."""
    pass


class IndexOutOfRange(DecodeError):
    """Raised when an interned index points outside its table."""

    def __init__(self, table: str, index: int, size: int):
        self.table = table
        self.index = index
        self.size = size
        super().__init__(
            f"Index {index} out of range for {table} table of size {size}"
        )


class SubmissionRejected(PingPongError):
    """Raised when the ledger rejects a submitted command."""

    def __init__(self, completion, message: Optional[str] = None):
        self.completion = completion
        super().__init__(
            message
            or f"Command {completion.command_id} rejected: "
            f"{completion.status.value}: {completion.message}"
        )


class DuplicateCommand(SubmissionRejected):
    """The command id was already accepted. Expected under re-delivery."""
    pass


class OtherRejection(SubmissionRejected):
    """Any rejection other than a duplicate command id."""
    pass
