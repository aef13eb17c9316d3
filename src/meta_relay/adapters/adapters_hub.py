"""
Relay Hub - Unified Meta-Transfer Gateway

This module is the main entry point for relaying gasless transfers. It
provides a single operation, ``relay_transfer``, that:
1. Routes the request to the adapter for the requested chain
2. Activates participants on chains with a minimum reserve
3. Prices the relayer's gas in tokens
4. Builds the EIP-712 domain, allocates a nonce and fixes the deadline
5. Signs and submits with bounded retry on nonce conflicts

Architecture:
    RelayHub (you are here)
        ├── ChainRegistry (chain name -> adapter)
        ├── AccountActivator (TRON reserve top-ups)
        ├── GasCostEstimator + PriceOracle
        ├── ChainDomainBuilder
        ├── NonceAllocator
        └── RetryCoordinator + RequestSigner
"""

import logging
import time
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Union

from ..engine.exceptions import ChainConfigError, ValidationError
from ..engine.executors import RetryCoordinator
from ..engine.gas import GasCostEstimator
from ..engine.nonces import NonceAllocator, NonceStore
from ..schemas.bases import ChainKind
from ..schemas.relays import MetaTransferRequest, RelayResult
from ..settings import RelaySettings
from .bases import ChainAdapter
from .domains import ChainDomainBuilder
from .evm.constants import amount_to_value
from .evm.signatures import RequestSigner
from .prices import PriceOracle
from .registry import ChainRegistry
from .tron.activation import AccountActivator
from .tron.constants import get_reserve_private_key_from_env


logger = logging.getLogger(__name__)


class RelayHub:
    """
    Unified meta-transfer relay hub.

    Collaborators are built from settings and environment unless injected,
    which keeps the hub usable both as a service entry point and in tests
    with fake adapters.

    Example:
        hub = RelayHub()
        result = await hub.relay_transfer("evm", sender_key, "0xRecipient...", "12.5")
        print(result.tx_id, result.gas_cost_usd)
    """

    def __init__(
        self,
        settings: Optional[RelaySettings] = None,
        registry: Optional[ChainRegistry] = None,
        price_oracle: Optional[PriceOracle] = None,
        nonce_store: Optional[NonceStore] = None,
        reserve_private_key: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the hub.

        Args:
            settings: Relay settings; ``RelaySettings.from_env()`` when None.
            registry: Chain adapters; built from environment for ``settings.chains`` when None.
            price_oracle: USD quote source; a CoinGecko-compatible oracle when None.
            nonce_store: Nonce backing store; in-memory when None.
            reserve_private_key: Operator key funding TRON activations;
                ``TRON_RESERVE_PRIVATE_KEY`` when None.
            clock: Current Unix time in seconds.
        """
        self._settings = settings or RelaySettings.from_env()
        self._registry = registry or ChainRegistry.from_env(self._settings.chains)
        self._clock = clock

        if price_oracle is None:
            price_oracle = PriceOracle(self._settings.price_oracle_url, self._settings.price_oracle_timeout)

        self._allocator = NonceAllocator(nonce_store, clock_ms=lambda: int(clock() * 1000))
        self._signer = RequestSigner()
        self._estimator = GasCostEstimator(price_oracle, default_buffer_bps=self._settings.gas_buffer_bps)
        self._domain_builder = ChainDomainBuilder(self._settings.domain_name, self._settings.domain_version)
        self._coordinator = RetryCoordinator(
            self._allocator,
            self._signer,
            retry_budget=self._settings.retry_budget,
            clock=clock,
        )
        self._reserve_private_key = reserve_private_key
        self._activators: Dict[ChainKind, AccountActivator] = {}

    def get_supported_chains(self) -> List[ChainKind]:
        return self._registry.get_support_list()

    def _get_activator(self, adapter: ChainAdapter) -> AccountActivator:
        activator = self._activators.get(adapter.chain)
        if activator is None:
            reserve_key = self._reserve_private_key or get_reserve_private_key_from_env()
            if not reserve_key:
                raise ChainConfigError(
                    f"Reserve private key required to activate {adapter.chain.value} accounts. "
                    "Set 'TRON_RESERVE_PRIVATE_KEY'."
                )
            activator = AccountActivator(
                adapter,
                reserve_key,
                poll_interval=self._settings.activation_poll_interval,
                timeout=self._settings.activation_timeout,
            )
            self._activators[adapter.chain] = activator
        return activator

    async def relay_transfer(
        self,
        chain: Union[str, ChainKind],
        sender_private_key: str,
        to: str,
        amount: Union[str, int, float, Decimal],
        buffer_bps: Optional[int] = None,
    ) -> RelayResult:
        """
        Relay a gasless token transfer from the holder of ``sender_private_key``.

        Inputs are validated before any network call. The sender key is used
        to derive the sender address and to sign, and is not retained after
        the call returns.

        Args:
            chain: ``evm``/``tron`` or an alias such as ``AFRi_ERC20``.
            sender_private_key: Token holder's hex key, with or without ``0x``.
            to: Recipient address in the chain's native form.
            amount: Human-readable token amount (e.g. ``"12.5"``).
            buffer_bps: Gas safety margin override.

        Returns:
            RelayResult for the confirmed transfer.

        Raises:
            ValidationError: Malformed key, address or amount, or elapsed deadline.
            ChainConfigError: Unknown chain or missing chain configuration.
            ActivationFundingFailed: A participant could not be funded.
            SubmissionError: The transfer failed for a reason other than a nonce conflict.
            RetryBudgetExhausted: Every attempt hit a nonce conflict.
        """
        adapter = self._registry.get(chain)

        sender = adapter.address_from_private_key(sender_private_key)
        recipient = adapter.parse_address(to)
        value = amount_to_value(amount=amount, decimals=adapter.token_decimals)
        if value <= 0:
            raise ValidationError("amount must be greater than zero", {"amount": str(amount)})

        logger.info("Relaying %s token units on %s from %s to %s", value, adapter.chain.value, sender, recipient)

        if adapter.requires_activation:
            await self._get_activator(adapter).ensure_participants(
                sender, recipient, self._settings.min_reserve_sun
            )

        gas_cost = await self._estimator.estimate(adapter, buffer_bps=buffer_bps)
        domain = await self._domain_builder.build(adapter)

        nonce = await self._allocator.next(adapter.chain, str(sender))
        deadline = int(self._clock()) + self._settings.deadline_window_seconds

        request = MetaTransferRequest(
            from_address=sender,
            to_address=recipient,
            amount=value,
            nonce=nonce,
            deadline=deadline,
            gas_cost_usd=gas_cost,
        )
        outcome = await self._coordinator.run(adapter, domain, request, sender_private_key)

        return RelayResult(
            tx_id=outcome.receipt.tx_id,
            chain=adapter.chain,
            sender=str(sender),
            recipient=str(recipient),
            amount=value,
            nonce=outcome.request.nonce,
            attempts=len(outcome.attempts),
            gas_cost_usd=gas_cost,
            deadline=deadline,
            block_number=outcome.receipt.block_number,
        )
