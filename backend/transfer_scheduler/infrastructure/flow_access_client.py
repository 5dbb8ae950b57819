"""Flow Access Client - async HTTP wrapper over the Flow REST access node and signing relay.

Invariants:
    - Script arguments/results travel as base64-encoded JSON-Cadence
    - wait_for_seal polls until status is Sealed or Expired, bounded by seal_timeout_seconds
    - All httpx failures mapped to ChainGatewayError (core/errors.py)
    - Private keys never reach this process: transactions are signed by the relay

Design Decisions:
    - Wrapper over raw httpx client: isolates transport and error mapping from collaborators
    - Relay is a separate client: access node reads and signed submissions can point at
      different hosts
"""

import asyncio
import base64
import json
import logging
import time

import httpx

from transfer_scheduler.core.errors import ChainGatewayError
from transfer_scheduler.infrastructure.cadence_templates import decode_cadence

logger = logging.getLogger(__name__)

SEALED = "Sealed"
EXPIRED = "Expired"


def _b64(data: str) -> str:
    return base64.b64encode(data.encode("utf-8")).decode("ascii")


class FlowAccessClient:
    """Reads from a Flow REST access node."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        seal_poll_interval_seconds: float = 2.0,
        seal_timeout_seconds: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, transport=transport,
        )
        self.seal_poll_interval_seconds = seal_poll_interval_seconds
        self.seal_timeout_seconds = seal_timeout_seconds

    async def execute_script(self, cadence: str, arguments: list[dict]):
        """Run a read-only Cadence script and return its decoded result."""
        body = {
            "script": _b64(cadence),
            "arguments": [_b64(json.dumps(arg)) for arg in arguments],
        }
        payload = await self._request("POST", "/v1/scripts", "script", json=body)
        try:
            encoded = payload if isinstance(payload, str) else payload["value"]
            return decode_cadence(json.loads(base64.b64decode(encoded)))
        except (KeyError, TypeError, ValueError) as e:
            raise ChainGatewayError(
                f"Undecodable script result: {e}", "script",
            ) from e

    async def get_transaction_result(self, transaction_id: str) -> dict:
        return await self._request(
            "GET", f"/v1/transaction_results/{transaction_id}", "transaction_result",
        )

    async def wait_for_seal(self, transaction_id: str) -> dict:
        """Poll the transaction result until it is sealed (or expired)."""
        deadline = time.monotonic() + self.seal_timeout_seconds
        while True:
            result = await self.get_transaction_result(transaction_id)
            status = result.get("status")
            if status in (SEALED, EXPIRED):
                return result
            if time.monotonic() >= deadline:
                raise ChainGatewayError(
                    f"transaction {transaction_id} not sealed within "
                    f"{self.seal_timeout_seconds:g}s (last status {status})",
                    "seal",
                )
            await asyncio.sleep(self.seal_poll_interval_seconds)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, url: str, operation: str, **kwargs):
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"Access node {operation} returned {e.response.status_code}",
            )
            raise ChainGatewayError(
                f"HTTP {e.response.status_code}", operation,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Access node {operation} transport error: {e}")
            raise ChainGatewayError(str(e) or type(e).__name__, operation) from e


class SigningRelayClient:
    """Submits Cadence transactions to the service account's signing relay."""

    def __init__(
        self,
        base_url: str,
        proposer: str,
        timeout_seconds: float = 30.0,
        compute_limit: int = 9999,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds, transport=transport,
        )
        self.proposer = proposer
        self.compute_limit = compute_limit

    async def submit(self, cadence: str, arguments: list[dict]) -> str:
        """Sign and send a transaction; returns its id."""
        body = {
            "cadence": cadence,
            "arguments": arguments,
            "proposer": self.proposer,
            "computeLimit": self.compute_limit,
        }
        try:
            response = await self.client.post("/transactions", json=body)
            response.raise_for_status()
            transaction_id = response.json().get("transactionId")
        except httpx.HTTPStatusError as e:
            raise ChainGatewayError(
                f"HTTP {e.response.status_code}", "submit",
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise ChainGatewayError(str(e) or type(e).__name__, "submit") from e
        if not transaction_id:
            raise ChainGatewayError("relay returned no transactionId", "submit")
        logger.info(f"Transaction submitted: {transaction_id}")
        return transaction_id

    async def aclose(self) -> None:
        await self.client.aclose()
