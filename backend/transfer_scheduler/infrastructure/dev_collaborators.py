"""Development Collaborators - simulated authorization and chain sends for local runs.

Invariants:
    - Used only when Settings.development_mode is true (no service account configured
      or SKIP_BLOCKCHAIN_CHECKS set)
    - Authorization is always valid with max_amount = dev_max_amount, 365-day expiry
    - Every send succeeds with a unique simulated id `dev_tx_<epoch-ms>_<n>`
"""

import itertools
import logging
import time
from datetime import timedelta
from decimal import Decimal

from transfer_scheduler.core.collaborator_protocols import AuthorizationStatus, SendResult
from transfer_scheduler.core.domain_types import utc_now

logger = logging.getLogger(__name__)


class DevelopmentAuthorizationChecker:

    def __init__(self, max_amount: Decimal = Decimal("999999.0")):
        self.max_amount = max_amount

    async def check(self, user_address: str) -> AuthorizationStatus:
        logger.debug(
            "Development mode: skipping authorization check",
            extra={"user_address": user_address},
        )
        return AuthorizationStatus(
            is_valid=True,
            max_amount=self.max_amount,
            expiry_date=utc_now() + timedelta(days=365),
            auth_id="dev_auth",
            message="Development mode - authorization bypassed",
        )


class DevelopmentChainExecutor:

    def __init__(self):
        self._counter = itertools.count(1)

    async def send(
        self, from_address: str, to_address: str,
        amount: Decimal, retry_limit: int,
    ) -> SendResult:
        transaction_id = f"dev_tx_{int(time.time() * 1000)}_{next(self._counter)}"
        logger.info(
            f"Development mode: simulated transfer of {amount} FLOW",
            extra={"user_address": from_address, "recipient": to_address},
        )
        return SendResult(success=True, transaction_id=transaction_id)
