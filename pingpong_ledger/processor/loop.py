"""
Reactive Processor: one party's perpetual subscribe → react → submit loop.

States:
  IDLE → SUBSCRIBED → (matching event) REACTING → SUBSCRIBED → ...
  Terminal: STOPPED (stop event set) or FAILED (the feed raised)

Each party runs its own processor. Processors share no mutable state and
interact only through the ledger. A failed reaction is logged and dropped;
it never stops the loop. Re-delivered events are absorbed by the ledger's
command deduplication.
"""

import logging
import threading
from typing import Optional

from pingpong_ledger.commands.builder import CommandBuilder
from pingpong_ledger.commands.submitter import CommandSubmitter
from pingpong_ledger.errors import DuplicateCommand, LedgerConnectionError, PingPongError
from pingpong_ledger.events.subscriber import EventFeed, EventSubscriber
from pingpong_ledger.ledger.client import LedgerClient
from pingpong_ledger.models.config import AgentConfig
from pingpong_ledger.models.ledger import CreatedEvent
from pingpong_ledger.models.processor import ProcessorState, ProcessorStats, ReactionOutcome

logger = logging.getLogger(__name__)


class ReactiveProcessor:
    """Reacts to every Ping/Pong addressed to ``party`` with its reply."""

    def __init__(
        self,
        party: str,
        client: LedgerClient,
        builder: CommandBuilder,
        config: Optional[AgentConfig] = None,
    ):
        self.party = party
        self.client = client
        self.builder = builder
        self.config = config or AgentConfig()
        self.submitter = CommandSubmitter(client)
        self.subscriber = EventSubscriber(
            client, poll_timeout_seconds=self.config.poll_timeout_seconds
        )
        self.stats = ProcessorStats(party=party)
        self.error: Optional[BaseException] = None
        self._state = ProcessorState.IDLE
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> ProcessorState:
        return self._state

    def subscribe(
        self,
        stop_event: Optional[threading.Event] = None,
        begin_offset: Optional[int] = None,
    ) -> EventFeed:
        """Open this party's feed. Events committed from now on will be seen."""
        feed = self.subscriber.subscribe(
            self.party, begin_offset=begin_offset, stop_event=stop_event
        )
        self.stats.last_offset = feed.offset
        self._state = ProcessorState.SUBSCRIBED
        return feed

    def start(self, stop_event: Optional[threading.Event] = None) -> threading.Thread:
        """
        Subscribe now and run the loop in a daemon thread.

        The subscription offset is fixed before this returns, so commands
        submitted afterwards are guaranteed to be observed.
        """
        feed = self.subscribe(stop_event=stop_event)
        self._thread = threading.Thread(
            target=self.run,
            args=(feed,),
            name=f"pingpong-{self.party}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self, feed: EventFeed) -> None:
        """Consume ``feed`` until it is stopped or fails."""
        templates = [self.builder.ping_template, self.builder.pong_template]
        try:
            for event in self.subscriber.incoming(feed, templates, self.party):
                self.handle_event(event)
                self.stats.last_offset = feed.offset
        except LedgerConnectionError as e:
            self._fail(e)
            logger.error("Subscription for %s failed: %s", self.party, e)
            return
        except Exception as e:
            self._fail(e)
            logger.exception("Subscription for %s failed unexpectedly", self.party)
            return

        self.stats.last_offset = feed.offset
        self._state = ProcessorState.STOPPED
        logger.info("Processor for %s stopped at offset %d", self.party, feed.offset)

    def _fail(self, error: Exception) -> None:
        self.error = error
        self._state = ProcessorState.FAILED

    def handle_event(self, event: CreatedEvent) -> ReactionOutcome:
        """Build and submit the reply to one observed record."""
        self._state = ProcessorState.REACTING
        self.stats.events_seen += 1
        try:
            command = self.builder.react(self.party, event)
            self.submitter.submit(command)
        except DuplicateCommand:
            logger.debug(
                "%s already reacted to %s, ignoring re-delivery",
                self.party,
                event.contract_id,
            )
            self.stats.duplicates += 1
            return ReactionOutcome.DUPLICATE
        except (PingPongError, ValueError) as e:
            logger.warning(
                "%s dropped reaction to %s: %s", self.party, event.contract_id, e
            )
            self.stats.failures += 1
            return ReactionOutcome.FAILED
        except Exception:
            logger.exception(
                "%s dropped reaction to %s after an unexpected error",
                self.party,
                event.contract_id,
            )
            self.stats.failures += 1
            return ReactionOutcome.FAILED
        finally:
            self._state = ProcessorState.SUBSCRIBED

        logger.debug(
            "%s reacted to %s with %s",
            self.party,
            event.contract_id,
            command.command_id,
        )
        self.stats.reactions_submitted += 1
        return ReactionOutcome.SUBMITTED
