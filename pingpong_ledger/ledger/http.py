"""HTTP ledger client for the sandbox ledger API."""

import base64
import logging
from typing import Callable, List, Optional, TypeVar

import httpx

from pingpong_ledger.errors import LedgerConnectionError
from pingpong_ledger.models.ledger import (
    Command,
    Completion,
    CreatedEvent,
    PackageDescriptor,
    Transaction,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HttpLedgerClient:
    """
    LedgerClient over the sandbox HTTP API.

    Safe to share between processors: httpx clients are thread-safe.
    Any transport failure, unexpected status or malformed body becomes
    LedgerConnectionError. Only a package fetch answers 404 with KeyError.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6865,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = f"http://{host}:{port}"
        self.timeout = timeout
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)
        self.ledger_id: Optional[str] = None

    def _request(
        self,
        method: str,
        path: str,
        timeout: Optional[float] = None,
        missing_ok: bool = False,
        **kwargs,
    ) -> dict:
        try:
            response = self._client.request(
                method,
                path,
                timeout=timeout if timeout is not None else self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as e:
            raise LedgerConnectionError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404 and missing_ok:
            raise KeyError(path)
        if response.status_code != 200:
            raise LedgerConnectionError(
                f"{method} {path} returned {response.status_code}: {response.text}"
            )
        try:
            return response.json()
        except ValueError as e:
            raise LedgerConnectionError(f"{method} {path} returned invalid JSON") from e

    def _call(self, method: str, path: str, read: Callable[[dict], T], **kwargs) -> T:
        """Send a request and read its body; a body of the wrong shape is a connection error."""
        data = self._request(method, path, **kwargs)
        try:
            return read(data)
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerConnectionError(
                f"{method} {path} returned an unexpected body: {e}"
            ) from e

    def connect(self) -> str:
        """Discover the ledger id; fails if the ledger is unreachable."""
        self.ledger_id = self._call("GET", "/ledger", lambda d: d["ledger_id"])
        logger.info("Connected to ledger %s at %s", self.ledger_id, self.base_url)
        return self.ledger_id

    def list_packages(self) -> List[str]:
        return self._call("GET", "/packages", lambda d: list(d["package_ids"]))

    def get_package(self, package_id: str) -> PackageDescriptor:
        """Fetch one package; raises KeyError if the ledger does not know it."""
        return self._call(
            "GET",
            f"/packages/{package_id}",
            lambda d: PackageDescriptor(
                package_id=d["package_id"],
                hash_function=d["hash_function"],
                archive_payload=base64.b64decode(d["archive_payload"]),
            ),
            missing_ok=True,
        )

    def upload_package(self, payload: bytes) -> str:
        return self._call(
            "POST",
            "/packages",
            lambda d: d["package_id"],
            json={"archive_payload": base64.b64encode(payload).decode("ascii")},
        )

    def submit_and_wait(self, command: Command) -> Completion:
        return self._call(
            "POST",
            "/commands/submit-and-wait",
            Completion.model_validate,
            json=command.model_dump(mode="json"),
        )

    def ledger_end(self) -> int:
        return self._call("GET", "/ledger/end", lambda d: int(d["offset"]))

    def get_transactions(
        self, party: str, offset: int, timeout: float = 0.0
    ) -> List[Transaction]:
        return self._call(
            "GET",
            "/transactions",
            lambda d: [Transaction.model_validate(t) for t in d["transactions"]],
            params={"party": party, "offset": offset, "timeout": timeout},
            timeout=self.timeout + timeout,
        )

    def active_contracts(self, party: str) -> List[CreatedEvent]:
        return self._call(
            "GET",
            "/active-contracts",
            lambda d: [CreatedEvent.model_validate(c) for c in d["contracts"]],
            params={"party": party},
        )

    def close(self) -> None:
        self._client.close()
