"""
Event Subscriber: party-scoped, infinite transaction feeds.

A feed starts at a fixed ledger offset (the ledger end at subscription
time, unless a checkpoint is given) and yields every event the party can
see, in commit order, for as long as it is iterated.
"""

import logging
import threading
from typing import Iterable, Iterator, Optional, Sequence

from pingpong_ledger.ledger.client import LedgerClient
from pingpong_ledger.models.ledger import CreatedEvent, Event, Identifier

logger = logging.getLogger(__name__)


class EventFeed:
    """
    Lazy, infinite sequence of events for one party.

    ``offset`` is the checkpoint of the last transaction whose events have
    all been yielded; resuming a subscription from it loses nothing.
    Iteration only ends once ``stop_event`` is set.
    """

    def __init__(
        self,
        client: LedgerClient,
        party: str,
        offset: int,
        poll_timeout_seconds: float = 1.0,
        stop_event: Optional[threading.Event] = None,
    ):
        self.client = client
        self.party = party
        self.offset = offset
        self.poll_timeout_seconds = poll_timeout_seconds
        self.stop_event = stop_event or threading.Event()

    def __iter__(self) -> Iterator[Event]:
        while not self.stop_event.is_set():
            transactions = self.client.get_transactions(
                self.party, self.offset, timeout=self.poll_timeout_seconds
            )
            for transaction in transactions:
                for event in transaction.events:
                    yield event
                self.offset = transaction.offset


class EventSubscriber:
    """Opens event feeds on a ledger."""

    def __init__(self, client: LedgerClient, poll_timeout_seconds: float = 1.0):
        self.client = client
        self.poll_timeout_seconds = poll_timeout_seconds

    def subscribe(
        self,
        party: str,
        begin_offset: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> EventFeed:
        """
        Open a feed for ``party``.

        The start offset is fixed before this returns: events committed
        after the call are delivered even if iteration starts later.
        """
        offset = self.client.ledger_end() if begin_offset is None else begin_offset
        logger.info("Subscribed %s from offset %d", party, offset)
        return EventFeed(
            self.client,
            party,
            offset,
            poll_timeout_seconds=self.poll_timeout_seconds,
            stop_event=stop_event,
        )

    @staticmethod
    def incoming(
        events: Iterable[Event],
        template_ids: Sequence[Identifier],
        receiver: str,
    ) -> Iterator[CreatedEvent]:
        """Created events of ``template_ids`` addressed to ``receiver``."""
        for event in events:
            if (
                isinstance(event, CreatedEvent)
                and event.template_id in template_ids
                and event.arguments.get("receiver") == receiver
            ):
                yield event
