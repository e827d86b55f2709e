"""
The PingPong model: the ``PingPong`` module with its ``Ping`` and ``Pong``
templates, as installed on a sandbox ledger.

Both templates are signed by ``sender`` and observed by ``receiver``. The
receiver of a Ping answers with ``RespondPong``, the receiver of a Pong with
``RespondPing``; each choice archives the record and creates its reply.
"""

from typing import Sequence, Tuple

from pingpong_ledger.lf.builder import PackageBuilder
from pingpong_ledger.ledger.sandbox import ChoiceSpec, SandboxLedger, TemplateSpec
from pingpong_ledger.models.contract import PingPongRecord
from pingpong_ledger.models.ledger import Identifier

MODULE_NAME = "PingPong"
PING = "Ping"
PONG = "Pong"
RESPOND_PONG = "RespondPong"
RESPOND_PING = "RespondPing"


def _respond_with(entity_name: str):
    def body(arguments: dict, choice_argument: dict):
        reply = PingPongRecord.from_arguments(arguments).reply()
        return [(entity_name, reply.to_arguments())]
    return body


def pingpong_templates() -> dict:
    """Template specs keyed by entity name."""
    return {
        PING: TemplateSpec(
            signatory_fields=["sender"],
            observer_fields=["receiver"],
            choices={RESPOND_PONG: ChoiceSpec("receiver", _respond_with(PONG))},
            validate=PingPongRecord.from_arguments,
        ),
        PONG: TemplateSpec(
            signatory_fields=["sender"],
            observer_fields=["receiver"],
            choices={RESPOND_PING: ChoiceSpec("receiver", _respond_with(PING))},
            validate=PingPongRecord.from_arguments,
        ),
    }


def install_pingpong(
    ledger: SandboxLedger,
    extra_modules: Sequence[Sequence[str]] = (),
) -> Tuple[str, Identifier, Identifier]:
    """
    Upload a package containing the PingPong module and register its
    templates. Returns (package_id, ping_identifier, pong_identifier).
    """
    builder = PackageBuilder()
    for name in extra_modules:
        builder.add_module(name)
    builder.add_module([MODULE_NAME])
    package_id = ledger.upload_package(builder.build())

    identifiers = {}
    for entity_name, rules in pingpong_templates().items():
        identifier = Identifier(
            package_id=package_id,
            module_name=MODULE_NAME,
            entity_name=entity_name,
        )
        ledger.register_template(identifier, rules)
        identifiers[entity_name] = identifier
    return package_id, identifiers[PING], identifiers[PONG]
