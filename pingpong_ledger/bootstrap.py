"""
Bootstrap: wires the agents together and drives one run.

  connect → detect the PingPong package → start one processor per party
  → seed initial Pings in both directions → wait → stop

Usage: pingpong-agent HOST PORT [NUM_INITIAL_CONTRACTS]
"""

import argparse
import logging
import sys
import threading
from typing import Dict, List, Optional

from pingpong_ledger.commands.builder import CommandBuilder
from pingpong_ledger.commands.submitter import CommandSubmitter
from pingpong_ledger.errors import (
    DecodeError,
    DuplicateCommand,
    LedgerConnectionError,
    ModuleNotFound,
)
from pingpong_ledger.ledger.client import LedgerClient
from pingpong_ledger.ledger.http import HttpLedgerClient
from pingpong_ledger.lf.resolver import ModuleResolver
from pingpong_ledger.models.config import AgentConfig, ReactionMode
from pingpong_ledger.models.ledger import Identifier
from pingpong_ledger.processor.loop import ReactiveProcessor

logger = logging.getLogger(__name__)


def build_command_builder(
    client: LedgerClient, config: AgentConfig
) -> CommandBuilder:
    """Locate the PingPong package and build its template identifiers."""
    package_id = ModuleResolver(client).detect_package_id(config.module_name)
    module_name = ".".join(config.module_name)
    return CommandBuilder(
        application_id=config.application_id,
        ping_template=Identifier(
            package_id=package_id,
            module_name=module_name,
            entity_name=config.ping_entity,
        ),
        pong_template=Identifier(
            package_id=package_id,
            module_name=module_name,
            entity_name=config.pong_entity,
        ),
        validity_window_seconds=config.validity_window_seconds,
        reaction=config.reaction,
    )


def create_initial_contracts(
    submitter: CommandSubmitter,
    builder: CommandBuilder,
    sender: str,
    receiver: str,
    num_contracts: int,
) -> int:
    """
    Seed ``num_contracts`` Pings from ``sender`` to ``receiver``.
    Re-running the same batch is idempotent. Returns how many were new.
    """
    created = 0
    for i in range(num_contracts):
        try:
            submitter.submit(builder.seed(sender, receiver, i))
            created += 1
        except DuplicateCommand:
            logger.debug("Initial Ping %d from %s already exists", i, sender)
    return created


def run(
    client: LedgerClient,
    config: Optional[AgentConfig] = None,
    stop_event: Optional[threading.Event] = None,
) -> Dict[str, ReactiveProcessor]:
    """
    One full run against ``client``.

    Setup failures (LedgerConnectionError, ModuleNotFound, DecodeError)
    propagate. Processors are stopped before returning.
    """
    config = config or AgentConfig()
    stop_event = stop_event or threading.Event()

    ledger_id = client.connect()
    logger.info("Running %s on ledger %s", config.application_id, ledger_id)

    builder = build_command_builder(client, config)
    submitter = CommandSubmitter(client)

    processors = {
        party: ReactiveProcessor(party, client, builder, config)
        for party in config.parties
    }
    try:
        for processor in processors.values():
            processor.start(stop_event)

        # Each party pings the next one round the circle
        parties = config.parties
        for i, sender in enumerate(parties):
            receiver = parties[(i + 1) % len(parties)]
            if receiver == sender:
                continue
            create_initial_contracts(
                submitter, builder, sender, receiver, config.num_initial_contracts
            )

        stop_event.wait(config.run_seconds)
    finally:
        stop_event.set()
        for processor in processors.values():
            processor.join(timeout=config.poll_timeout_seconds * 2)
            logger.info("Processor %s: %s", processor.party, processor.stats.model_dump())
    return processors


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pingpong-agent",
        description="Run the reactive PingPong agents against a ledger",
    )
    parser.add_argument("host")
    parser.add_argument("port", type=int)
    parser.add_argument(
        "num_initial_contracts", type=int, nargs="?", default=10,
        help="Pings each party creates initially (default: 10)",
    )
    parser.add_argument("--run-seconds", type=float, default=5.0)
    parser.add_argument(
        "--reaction",
        choices=[m.value for m in ReactionMode],
        default=ReactionMode.CREATE.value,
    )
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Process entry point. Exits 0 after the run, 1 on setup failure."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
    )

    config = AgentConfig(
        num_initial_contracts=args.num_initial_contracts,
        run_seconds=args.run_seconds,
        reaction=ReactionMode(args.reaction),
    )
    client = HttpLedgerClient(args.host, args.port)
    try:
        run(client, config)
    except (LedgerConnectionError, ModuleNotFound, DecodeError) as e:
        logger.error("%s", e)
        return 1
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
