"""Tests for the Reactive Processor and Event Subscriber."""

import threading
import time
from collections import Counter

import pytest

from pingpong_ledger.commands.builder import CommandBuilder
from pingpong_ledger.commands.submitter import CommandSubmitter
from pingpong_ledger.errors import LedgerConnectionError, OtherRejection
from pingpong_ledger.events.subscriber import EventSubscriber
from pingpong_ledger.ledger.sandbox import SandboxLedger
from pingpong_ledger.models.config import AgentConfig, ReactionMode
from pingpong_ledger.models.ledger import Completion, CompletionStatus, CreatedEvent
from pingpong_ledger.models.processor import ProcessorState, ReactionOutcome
from pingpong_ledger.processor.loop import ReactiveProcessor
from pingpong_ledger.templates import install_pingpong


def _wait_until(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class _ListFeed:
    """A finite stand-in for an EventFeed."""

    def __init__(self, events):
        self.events = events
        self.offset = 0

    def __iter__(self):
        for i, event in enumerate(self.events):
            yield event
            self.offset = i + 1


class _BrokenFeed:
    offset = 0

    def __iter__(self):
        raise LedgerConnectionError("stream reset")
        yield  # pragma: no cover


class _RaisingFeed:
    """Fails with an arbitrary error, as a malformed response would."""

    offset = 0

    def __init__(self, error):
        self.error = error

    def __iter__(self):
        raise self.error
        yield  # pragma: no cover


class _ExplodingSubmitter:
    """Raises an error outside the rejection taxonomy for the first command."""

    def __init__(self):
        self.calls = []

    def submit(self, command):
        self.calls.append(command.command_id)
        if len(self.calls) == 1:
            raise RuntimeError("serializer crashed")
        return Completion(
            command_id=command.command_id,
            submission_id=command.submission_id,
            status=CompletionStatus.OK,
        )


class _FlakySubmitter:
    """Rejects the first command, accepts the rest."""

    def __init__(self):
        self.calls = []

    def submit(self, command):
        self.calls.append(command.command_id)
        completion = Completion(
            command_id=command.command_id,
            submission_id=command.submission_id,
            status=CompletionStatus.OK if len(self.calls) > 1 else CompletionStatus.INVALID_ARGUMENT,
            message="",
        )
        if not completion.ok:
            raise OtherRejection(completion)
        return completion


class TestEventSubscriber:
    def setup_method(self):
        self.ledger = SandboxLedger()
        _, self.ping, self.pong = install_pingpong(self.ledger)
        self.builder = CommandBuilder("PingPongApp", self.ping, self.pong)
        self.submitter = CommandSubmitter(self.ledger)

    def test_offset_fixed_at_subscription(self):
        self.submitter.submit(self.builder.seed("Alice", "Bob", 0))
        stop = threading.Event()
        feed = EventSubscriber(self.ledger, poll_timeout_seconds=0.05).subscribe(
            "Bob", stop_event=stop
        )
        assert feed.offset == 1
        self.submitter.submit(self.builder.seed("Alice", "Bob", 1))

        event = next(iter(feed))
        stop.set()
        assert event.arguments["count"] == 0
        assert event.contract_id == "#2:0"

    def test_resume_from_checkpoint(self):
        for i in range(3):
            self.submitter.submit(self.builder.seed("Alice", "Bob", i))
        stop = threading.Event()
        feed = EventSubscriber(self.ledger, 0.05).subscribe("Bob", begin_offset=0, stop_event=stop)
        events = iter(feed)
        first = next(events)
        second = next(events)
        assert feed.offset == 1
        assert [first.contract_id, second.contract_id] == ["#1:0", "#2:0"]
        stop.set()

    def test_stop_ends_iteration(self):
        stop = threading.Event()
        stop.set()
        feed = EventSubscriber(self.ledger, 0.05).subscribe("Bob", stop_event=stop)
        assert list(feed) == []

    def test_incoming_filters_type_and_receiver(self):
        self.submitter.submit(self.builder.seed("Alice", "Bob", 0))
        self.submitter.submit(self.builder.seed("Bob", "Alice", 0))
        events = [e for t in self.ledger.get_transactions("Alice", 0) for e in t.events]
        assert len(events) == 2

        incoming = list(EventSubscriber.incoming(events, [self.ping, self.pong], "Alice"))
        assert len(incoming) == 1
        assert incoming[0].arguments["sender"] == "Bob"

        assert list(EventSubscriber.incoming(events, [self.pong], "Alice")) == []


class TestReactiveProcessor:
    def setup_method(self):
        self.ledger = SandboxLedger()
        _, self.ping, self.pong = install_pingpong(self.ledger)
        self.builder = CommandBuilder("PingPongApp", self.ping, self.pong)
        self.submitter = CommandSubmitter(self.ledger)
        self.config = AgentConfig(poll_timeout_seconds=0.05)
        self.bob = ReactiveProcessor("Bob", self.ledger, self.builder, self.config)

    def teardown_method(self):
        self.ledger.close()

    def _observed(self, party: str):
        return [
            e for t in self.ledger.get_transactions(party, 0)
            for e in t.events if isinstance(e, CreatedEvent)
        ]

    def test_initial_state(self):
        assert self.bob.state == ProcessorState.IDLE

    def test_reaction_swaps_parties_and_increments(self):
        self.submitter.submit(self.builder.seed("Alice", "Bob", 0))
        ping = self._observed("Bob")[0]

        assert self.bob.handle_event(ping) == ReactionOutcome.SUBMITTED
        pongs = [c for c in self.ledger.active_contracts("Bob") if c.template_id == self.pong]
        assert len(pongs) == 1
        assert pongs[0].arguments == {"sender": "Bob", "receiver": "Alice", "count": 1}
        assert self.bob.stats.reactions_submitted == 1

    def test_duplicate_delivery_creates_nothing(self):
        self.submitter.submit(self.builder.seed("Alice", "Bob", 0))
        ping = self._observed("Bob")[0]

        assert self.bob.handle_event(ping) == ReactionOutcome.SUBMITTED
        end = self.ledger.ledger_end()
        assert self.bob.handle_event(ping) == ReactionOutcome.DUPLICATE
        assert self.ledger.ledger_end() == end
        assert self.bob.stats.duplicates == 1
        assert self.bob.state == ProcessorState.SUBSCRIBED

    def test_failed_reaction_does_not_stop_loop(self):
        self.submitter.submit(self.builder.seed("Alice", "Bob", 0))
        self.submitter.submit(self.builder.seed("Alice", "Bob", 1))
        events = self._observed("Bob")
        self.bob.submitter = _FlakySubmitter()

        self.bob.run(_ListFeed(events))
        assert self.bob.submitter.calls == ["Pong-Bob-#1:0", "Pong-Bob-#2:0"]
        assert self.bob.stats.failures == 1
        assert self.bob.stats.reactions_submitted == 1
        assert self.bob.stats.last_offset == 2
        assert self.bob.state == ProcessorState.STOPPED

    def test_ignores_records_for_others(self):
        self.submitter.submit(self.builder.seed("Bob", "Alice", 0))
        self.bob.run(_ListFeed(self._observed("Bob")))
        assert self.bob.stats.events_seen == 0
        assert self.ledger.ledger_end() == 1

    def test_subscription_failure_is_terminal(self):
        self.bob.run(_BrokenFeed())
        assert self.bob.state == ProcessorState.FAILED
        assert isinstance(self.bob.error, LedgerConnectionError)

    def test_unexpected_reaction_error_is_dropped(self):
        self.submitter.submit(self.builder.seed("Alice", "Bob", 0))
        self.submitter.submit(self.builder.seed("Alice", "Bob", 1))
        events = self._observed("Bob")
        self.bob.submitter = _ExplodingSubmitter()

        assert self.bob.handle_event(events[0]) == ReactionOutcome.FAILED
        assert self.bob.state == ProcessorState.SUBSCRIBED
        assert self.bob.handle_event(events[1]) == ReactionOutcome.SUBMITTED
        assert self.bob.stats.failures == 1
        assert self.bob.stats.reactions_submitted == 1

    def test_unexpected_feed_error_is_terminal(self):
        self.bob.subscribe()
        self.bob.run(_RaisingFeed(KeyError("/transactions")))
        assert self.bob.state == ProcessorState.FAILED
        assert isinstance(self.bob.error, KeyError)


class TestPingPongChain:
    def setup_method(self):
        self.ledger = SandboxLedger()
        _, self.ping, self.pong = install_pingpong(self.ledger)
        self.stop = threading.Event()

    def teardown_method(self):
        self.stop.set()
        for processor in getattr(self, "processors", []):
            processor.join(timeout=2)
        self.ledger.close()

    def _start(self, reaction: ReactionMode):
        config = AgentConfig(poll_timeout_seconds=0.05, reaction=reaction)
        builder = CommandBuilder("PingPongApp", self.ping, self.pong, reaction=reaction)
        self.processors = [
            ReactiveProcessor(party, self.ledger, builder, config)
            for party in ("Alice", "Bob")
        ]
        for processor in self.processors:
            processor.start(self.stop)
        return builder

    def test_alternating_chain(self):
        """Alice seeds 3 Pings to Bob; every chain alternates without forks."""
        builder = self._start(ReactionMode.CREATE)
        submitter = CommandSubmitter(self.ledger)
        for i in range(3):
            submitter.submit(builder.seed("Alice", "Bob", i))

        def counts():
            return Counter(c.arguments["count"] for c in self.ledger.active_contracts("Alice"))

        assert _wait_until(lambda: counts()[5] == 3)
        self.stop.set()
        for processor in self.processors:
            processor.join(timeout=2)
            assert processor.state == ProcessorState.STOPPED

        contracts = self.ledger.active_contracts("Alice")
        by_count = Counter(c.arguments["count"] for c in contracts)
        assert all(n <= 3 for n in by_count.values())
        for count in range(6):
            assert by_count[count] == 3
        for c in contracts:
            if c.arguments["count"] % 2 == 0:
                assert c.template_id == self.ping
                assert (c.arguments["sender"], c.arguments["receiver"]) == ("Alice", "Bob")
            else:
                assert c.template_id == self.pong
                assert (c.arguments["sender"], c.arguments["receiver"]) == ("Bob", "Alice")

    def test_exercise_chain_keeps_one_live_record(self):
        builder = self._start(ReactionMode.EXERCISE)
        submitter = CommandSubmitter(self.ledger)
        for i in range(3):
            submitter.submit(builder.seed("Alice", "Bob", i))

        assert _wait_until(lambda: self.ledger.ledger_end() >= 3 + 3 * 4)
        self.stop.set()
        for processor in self.processors:
            processor.join(timeout=2)

        active = self.ledger.active_contracts("Alice")
        assert len(active) == 3
        assert sum(p.stats.failures for p in self.processors) == 0
