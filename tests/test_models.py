"""Tests for core data models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from pingpong_ledger.models import (
    AgentConfig,
    Command,
    Completion,
    CompletionStatus,
    CreateAction,
    ExerciseAction,
    Identifier,
    PingPongRecord,
    ProcessorStats,
    ReactionMode,
    Transaction,
)


def _ping_id() -> Identifier:
    return Identifier(package_id="pkg1", module_name="PingPong", entity_name="Ping")


class TestPingPongRecord:
    def test_reply_swaps_parties_and_increments(self):
        record = PingPongRecord(sender="Alice", receiver="Bob", count=7)
        reply = record.reply()
        assert reply.sender == "Bob"
        assert reply.receiver == "Alice"
        assert reply.count == 8

    def test_negative_count_rejected(self):
        with pytest.raises(ValidationError):
            PingPongRecord(sender="Alice", receiver="Bob", count=-1)

    def test_arguments_roundtrip(self):
        args = {"sender": "Alice", "receiver": "Bob", "count": 0}
        assert PingPongRecord.from_arguments(args).to_arguments() == args

    def test_immutable(self):
        record = PingPongRecord(sender="Alice", receiver="Bob", count=0)
        with pytest.raises(ValidationError):
            record.count = 1


class TestIdentifier:
    def test_equality_and_hash(self):
        assert _ping_id() == _ping_id()
        assert len({_ping_id(), _ping_id()}) == 1

    def test_names(self):
        assert _ping_id().qualified_name() == "PingPong:Ping"
        assert str(_ping_id()) == "pkg1:PingPong:Ping"


class TestCommand:
    def test_actions_parse_from_json(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        command = Command(
            command_id="Ping-Alice-0",
            application_id="PingPongApp",
            submission_id="sub-1",
            act_as="Alice",
            min_ledger_time=now,
            max_record_time=now + timedelta(seconds=10),
            actions=[
                CreateAction(template_id=_ping_id(), arguments={"count": 0}),
                ExerciseAction(
                    template_id=_ping_id(), contract_id="#1:0", choice="RespondPong"
                ),
            ],
        )
        parsed = Command.model_validate_json(command.model_dump_json())
        assert isinstance(parsed.actions[0], CreateAction)
        assert isinstance(parsed.actions[1], ExerciseAction)
        assert parsed == command

    def test_completion_ok(self):
        ok = Completion(command_id="c", submission_id="s", status=CompletionStatus.OK)
        dup = Completion(
            command_id="c", submission_id="s", status=CompletionStatus.ALREADY_EXISTS
        )
        assert ok.ok
        assert not dup.ok


class TestTransaction:
    def test_events_discriminated_by_kind(self):
        tx = Transaction.model_validate({
            "transaction_id": "tx-1",
            "offset": 1,
            "effective_at": "2026-01-01T00:00:00+00:00",
            "events": [
                {
                    "kind": "archived",
                    "event_id": "#1:0",
                    "contract_id": "#0:0",
                    "template_id": _ping_id().model_dump(),
                },
                {
                    "kind": "created",
                    "event_id": "#1:1",
                    "contract_id": "#1:1",
                    "template_id": _ping_id().model_dump(),
                    "arguments": {"sender": "Bob", "receiver": "Alice", "count": 1},
                },
            ],
        })
        assert tx.events[0].kind == "archived"
        assert tx.events[1].kind == "created"
        assert tx.events[1].arguments["count"] == 1


class TestConfig:
    def test_defaults(self):
        config = AgentConfig()
        assert config.application_id == "PingPongApp"
        assert config.parties == ["Alice", "Bob"]
        assert config.module_name == ["PingPong"]
        assert config.num_initial_contracts == 10
        assert config.validity_window_seconds == 10
        assert config.reaction == ReactionMode.CREATE

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValidationError):
            AgentConfig(validity_window_seconds=0)

    def test_stats_start_at_zero(self):
        stats = ProcessorStats(party="Alice")
        assert stats.reactions_submitted == 0
        assert stats.last_offset is None
