"""Flow Collaborators - AuthorizationChecker and ChainExecutor backed by the Flow network.

Invariants:
    - FlowAuthorizationChecker propagates gateway errors (the engine fails the transfer)
    - FlowChainExecutor never raises for chain or gateway failures: it reports them as
      SendResult(success=False, error=...)
    - A send succeeds only when the transaction is Sealed with status_code == 0
    - retry_limit is passed to the transaction verbatim; retries happen on-chain
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

import httpx

from transfer_scheduler.core.collaborator_protocols import AuthorizationStatus, SendResult
from transfer_scheduler.core.errors import TransferError
from transfer_scheduler.core.transfer_rules import to_decimal
from transfer_scheduler.infrastructure.cadence_templates import (
    AUTHORIZATION_STATUS_SCRIPT, INSURED_TRANSFER_TRANSACTION,
    address_arg, ufix64_arg, uint8_arg,
)
from transfer_scheduler.infrastructure.flow_access_client import (
    FlowAccessClient, SigningRelayClient, SEALED,
)

logger = logging.getLogger(__name__)


def _timestamp(value) -> datetime | None:
    """UFix64 unix seconds -> aware datetime (0 means unset)."""
    if value is None:
        return None
    seconds = float(value)
    if seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class FlowAuthorizationChecker:
    """Reads the user's AuthorizationManager through a Cadence script."""

    def __init__(self, access: FlowAccessClient, contract_address: str):
        self.access = access
        self.script = AUTHORIZATION_STATUS_SCRIPT.format(contract=contract_address)

    async def check(self, user_address: str) -> AuthorizationStatus:
        raw = await self.access.execute_script(
            self.script, [address_arg(user_address)],
        )
        if not isinstance(raw, dict):
            raw = {}
        return AuthorizationStatus(
            is_valid=bool(raw.get("isValid", False)),
            max_amount=to_decimal(raw.get("maxAmount") or 0),
            expiry_date=_timestamp(raw.get("expiryDate")),
            has_authorization=bool(raw.get("hasAuthorization", False)),
            auth_id=raw.get("authId"),
            message=raw.get("message"),
        )


class FlowChainExecutor:
    """Sends one insured transfer through the signing relay and waits for the seal."""

    def __init__(
        self,
        access: FlowAccessClient,
        relay: SigningRelayClient,
        service_address: str,
    ):
        self.access = access
        self.relay = relay
        self.transaction = INSURED_TRANSFER_TRANSACTION.format(
            service=service_address,
        )

    async def send(
        self, from_address: str, to_address: str,
        amount: Decimal, retry_limit: int,
    ) -> SendResult:
        logger.info(
            f"Executing transfer of {amount} FLOW (retry limit {retry_limit})",
            extra={"user_address": from_address, "recipient": to_address},
        )
        transaction_id = None
        try:
            transaction_id = await self.relay.submit(
                self.transaction,
                [
                    address_arg(from_address),
                    address_arg(to_address),
                    ufix64_arg(amount),
                    uint8_arg(retry_limit),
                ],
            )
            sealed = await self.access.wait_for_seal(transaction_id)
        except (TransferError, httpx.HTTPError, ValueError) as e:
            logger.error(
                f"Error executing transfer: {e}",
                extra={"user_address": from_address, "recipient": to_address},
            )
            return SendResult(
                success=False, transaction_id=transaction_id, error=str(e),
            )

        success = sealed.get("status") == SEALED and sealed.get("status_code") == 0
        if not success:
            logger.error(
                f"Transaction failed: {sealed.get('error_message')}",
                extra={"recipient": to_address},
            )
        return SendResult(
            success=success,
            transaction_id=transaction_id,
            error=None if success else (
                sealed.get("error_message") or f"status {sealed.get('status')}"
            ),
        )
