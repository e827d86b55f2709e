"""
Sandbox Ledger API: FastAPI endpoints.

Exposes a sandbox ledger over HTTP for:
- Ledger identity and end offset
- Package listing, fetch and upload
- Blocking command submission
- Party-scoped transaction polling
- Active contract inspection
"""

import argparse
import base64
import binascii
import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from pingpong_ledger.ledger.sandbox import SandboxLedger
from pingpong_ledger.models.ledger import Command, Completion, CreatedEvent, Transaction
from pingpong_ledger.templates import install_pingpong

logger = logging.getLogger(__name__)

# Upper bound for one long poll
MAX_POLL_TIMEOUT_SECONDS = 30.0


# --- Request/Response Models ---

class LedgerIdentityResponse(BaseModel):
    ledger_id: str


class LedgerEndResponse(BaseModel):
    offset: int


class PackageListResponse(BaseModel):
    package_ids: List[str]


class PackageResponse(BaseModel):
    package_id: str
    hash_function: str
    archive_payload: str                    # base64


class PackageUploadRequest(BaseModel):
    archive_payload: str                    # base64


class TransactionsResponse(BaseModel):
    transactions: List[Transaction]


class ActiveContractsResponse(BaseModel):
    contracts: List[CreatedEvent]


# --- Application Factory ---

def create_app(ledger: Optional[SandboxLedger] = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="PingPong Sandbox Ledger",
        description="Append-only sandbox ledger for the PingPong agents",
        version="0.1.0",
    )

    sandbox = ledger or SandboxLedger()
    app.state.ledger = sandbox

    # === LEDGER ===

    @app.get("/ledger", response_model=LedgerIdentityResponse)
    def get_ledger_identity():
        return LedgerIdentityResponse(ledger_id=sandbox.connect())

    @app.get("/ledger/end", response_model=LedgerEndResponse)
    def get_ledger_end():
        return LedgerEndResponse(offset=sandbox.ledger_end())

    # === PACKAGES ===

    @app.get("/packages", response_model=PackageListResponse)
    def list_packages():
        return PackageListResponse(package_ids=sandbox.list_packages())

    @app.get("/packages/{package_id}", response_model=PackageResponse)
    def get_package(package_id: str):
        try:
            descriptor = sandbox.get_package(package_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Package {package_id} not found")
        return PackageResponse(
            package_id=descriptor.package_id,
            hash_function=descriptor.hash_function,
            archive_payload=base64.b64encode(descriptor.archive_payload).decode("ascii"),
        )

    @app.post("/packages", response_model=dict)
    def upload_package(req: PackageUploadRequest):
        try:
            payload = base64.b64decode(req.archive_payload, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail="archive_payload is not valid base64")
        package_id = sandbox.upload_package(payload)
        logger.info("Uploaded package %s", package_id)
        return {"package_id": package_id}

    # === COMMANDS ===

    @app.post("/commands/submit-and-wait", response_model=Completion)
    def submit_and_wait(command: Command):
        return sandbox.submit_and_wait(command)

    # === TRANSACTIONS ===

    @app.get("/transactions", response_model=TransactionsResponse)
    def get_transactions(party: str, offset: int = 0, timeout: float = 0.0):
        timeout = min(max(timeout, 0.0), MAX_POLL_TIMEOUT_SECONDS)
        return TransactionsResponse(
            transactions=sandbox.get_transactions(party, offset, timeout=timeout)
        )

    @app.get("/active-contracts", response_model=ActiveContractsResponse)
    def get_active_contracts(party: str):
        return ActiveContractsResponse(contracts=sandbox.active_contracts(party))

    return app


def main(argv: Optional[List[str]] = None) -> int:
    """Serve a sandbox ledger with the PingPong package installed."""
    import uvicorn

    parser = argparse.ArgumentParser(description="PingPong sandbox ledger")
    parser.add_argument("host")
    parser.add_argument("port", type=int)
    parser.add_argument("--db-path", default=":memory:")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ledger = SandboxLedger(db_path=args.db_path)
    package_id, _, _ = install_pingpong(ledger)
    logger.info("PingPong installed as package %s", package_id)

    uvicorn.run(create_app(ledger), host=args.host, port=args.port)
    return 0
