"""
Account activation for account-resource chains.

A TRON account does not exist until it receives TRX, and an account with
too little TRX cannot cover the bandwidth of its part in a transfer. Before
a meta-transfer is relayed, both participants are topped up to the minimum
reserve from the operator's reserve wallet.

Funding is not rolled back if the transfer itself later fails.
"""

import asyncio
import logging
from typing import Tuple

from ...engine.exceptions import ActivationFundingFailed, ChainConfigError, ValidationError
from ...schemas.addresses import ChainAddress, normalize_private_key
from ...schemas.relays import ActivationState
from ..bases import ResourceChainAdapter
from .constants import DEFAULT_MIN_RESERVE_SUN


logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL: float = 2.0
DEFAULT_ACTIVATION_TIMEOUT: float = 30.0


class AccountActivator:
    """
    Ensures accounts hold at least the minimum reserve.

    Args:
        adapter: Resource chain adapter used for queries and transfers.
        reserve_private_key: Operator key funding the shortfall. Held by the
            activator for its lifetime, the same way adapters hold the relayer key.
        poll_interval: Seconds between confirmation checks.
        timeout: Seconds to wait for a funding transfer to confirm.

    Example:
        activator = AccountActivator(adapter, reserve_key)
        state = await activator.ensure_activated(recipient, minimum_reserve=1_100_000)
    """

    def __init__(
        self,
        adapter: ResourceChainAdapter,
        reserve_private_key: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_ACTIVATION_TIMEOUT,
    ):
        if not reserve_private_key:
            raise ChainConfigError("Reserve private key is required for account activation")
        try:
            normalize_private_key(reserve_private_key)
        except ValidationError as e:
            raise ChainConfigError("Reserve private key is malformed") from e
        self._adapter = adapter
        self._reserve_private_key = reserve_private_key
        self.poll_interval = poll_interval
        self.timeout = timeout

    async def ensure_activated(
        self,
        address: ChainAddress,
        minimum_reserve: int = DEFAULT_MIN_RESERVE_SUN,
    ) -> ActivationState:
        """
        Fund ``address`` up to ``minimum_reserve`` if it falls short.

        Args:
            address: Account to check.
            minimum_reserve: Required balance in sun.

        Returns:
            ActivationState after funding (or the unchanged state when no
            funding was needed).

        Raises:
            ActivationFundingFailed: If the funding transfer is rejected,
                reverts, or is not confirmed within the timeout.
        """
        state = await self._adapter.get_activation_state(address)
        if state.meets(minimum_reserve):
            logger.debug("%s already holds %s sun, no funding needed", address, state.reserve_balance)
            return state

        # A missing account with a zero minimum still needs one sun to exist
        shortfall = max(minimum_reserve - state.reserve_balance, 1)
        logger.info(
            "Funding %s with %s sun (exists=%s, balance=%s, minimum=%s)",
            address, shortfall, state.exists, state.reserve_balance, minimum_reserve,
        )

        tx_id = await self._adapter.transfer_native(self._reserve_private_key, address, shortfall)
        await self._await_confirmation(address, tx_id)

        return ActivationState(
            address=state.address,
            exists=True,
            reserve_balance=state.reserve_balance + shortfall,
        )

    async def ensure_participants(
        self,
        sender: ChainAddress,
        recipient: ChainAddress,
        minimum_reserve: int = DEFAULT_MIN_RESERVE_SUN,
    ) -> Tuple[ActivationState, ActivationState]:
        """Activate the sender, then the recipient."""
        sender_state = await self.ensure_activated(sender, minimum_reserve)
        recipient_state = await self.ensure_activated(recipient, minimum_reserve)
        return sender_state, recipient_state

    async def _await_confirmation(self, address: ChainAddress, tx_id: str) -> None:
        waited = 0.0
        while waited < self.timeout:
            await self._sleep_async(self.poll_interval)
            waited += self.poll_interval
            try:
                status = await self._adapter.get_transaction_status(tx_id)
            except Exception as e:
                logger.warning("Funding status check for %s failed: %s", tx_id, e)
                continue
            if status is True:
                logger.info("Funding %s for %s confirmed", tx_id, address)
                return
            if status is False:
                raise ActivationFundingFailed(str(address), f"Funding transaction {tx_id} failed", {"tx_id": tx_id})

        raise ActivationFundingFailed(
            str(address),
            f"Funding transaction {tx_id} not confirmed within {self.timeout}s",
            {"tx_id": tx_id},
        )

    @staticmethod
    async def _sleep_async(seconds: float):
        """Simple async sleep utility."""
        await asyncio.sleep(seconds)
