"""PingPong contract payloads."""

from pydantic import BaseModel, Field


class PingPongRecord(BaseModel):
    """
    Arguments of a Ping or a Pong contract.

    Records are never mutated on the ledger. Each reaction creates a new
    record with the parties swapped and the counter incremented.
    """

    sender: str
    receiver: str
    count: int = Field(ge=0)

    model_config = {"frozen": True}

    @classmethod
    def from_arguments(cls, arguments: dict) -> "PingPongRecord":
        return cls.model_validate(arguments)

    def to_arguments(self) -> dict:
        return self.model_dump()

    def reply(self) -> "PingPongRecord":
        """The record the receiver answers with."""
        return PingPongRecord(
            sender=self.receiver,
            receiver=self.sender,
            count=self.count + 1,
        )
