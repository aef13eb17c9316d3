"""
Relay Flow Models

Pydantic models passed between the stages of a relay call: the signed
meta-transfer authorization, the EIP-712 domain it is bound to, gas quotes,
activation state, per-attempt bookkeeping and the final result.

Core Classes:
    - MetaTransferRequest: The struct the sender signs plus its signature
    - ChainDomain: EIP-712 domain (name, version, chainId, verifyingContract)
    - GasQuote: Breakdown of a gas reimbursement estimate
    - ActivationState: Existence and reserve balance of a TRON account
    - RelayAttempt: One sign-and-submit round inside the retry loop
    - SubmissionReceipt: Transaction id and confirmation data
    - RelayResult: Returned by ``RelayHub.relay_transfer``
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import Field

from .addresses import ChainAddress
from .bases import AttemptOutcome, CanonicalModel, ChainKind


class MetaTransferRequest(CanonicalModel):
    """
    Off-chain transfer authorization signed by the token holder.

    The signature covers exactly ``(from, to, amount, nonce, deadline,
    gasCostUSD)``. Changing any of them invalidates it, which is why
    ``with_nonce`` hands back a copy with the signature cleared.

    Attributes:
        from_address: Sender (serialized as ``from``)
        to_address: Recipient (serialized as ``to``)
        amount: Token amount in smallest units
        nonce: Per-sender authorization counter
        deadline: Unix seconds after which the contract rejects the call
        gas_cost_usd: Reimbursement deducted by the relayer, token units
        signature: ``0x`` + 130 hex chars once signed
    """

    from_address: ChainAddress = Field(..., alias="from")
    to_address: ChainAddress = Field(..., alias="to")
    amount: int = Field(..., ge=0, description="Transfer amount in token smallest units")
    nonce: int = Field(..., ge=0, description="Authorization counter")
    deadline: int = Field(..., ge=0, description="Unix timestamp (seconds)")
    gas_cost_usd: int = Field(..., ge=0, alias="gasCostUSD", description="Gas reimbursement in token smallest units")
    signature: Optional[str] = Field(default=None, description="Packed r || s || v hex signature")

    def with_nonce(self, nonce: int) -> "MetaTransferRequest":
        """Return an unsigned copy carrying ``nonce``; every other field is kept."""
        return self.model_copy(update={"nonce": nonce, "signature": None})

    def with_signature(self, signature: str) -> "MetaTransferRequest":
        return self.model_copy(update={"signature": signature})

    def to_message(self) -> Dict[str, Any]:
        """Return the EIP-712 ``Transfer`` message with signing-form addresses."""
        return {
            "from": self.from_address.to_signing_address(),
            "to": self.to_address.to_signing_address(),
            "amount": self.amount,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "gasCostUSD": self.gas_cost_usd,
        }


class ChainDomain(CanonicalModel):
    """
    EIP-712 domain separator values for one verifier contract.

    ``chain_id`` is always known when this model exists; the builder raises
    ChainConfigError rather than guessing.
    """

    name: str
    version: str
    chain_id: int = Field(..., gt=0, alias="chainId")
    verifying_contract: str = Field(..., alias="verifyingContract", description="0x signing-form contract address")

    def to_eip712(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class GasQuote(CanonicalModel):
    """
    Gas reimbursement estimate with its inputs.

    Attributes:
        gas_units: Gas (or energy) units assumed for the call
        fee_rate: Native smallest units per gas unit (wei or sun)
        fee_source: ``network`` when read live, ``fallback`` otherwise
        native_cost: Cost in whole native units
        usd_rate: USD per whole native unit
        price_source: ``oracle`` or ``fallback``
        buffer_bps: Safety margin in basis points
        token_units: Final reimbursement in token smallest units
    """

    gas_units: int
    fee_rate: int
    fee_source: str = "network"
    native_cost: Decimal
    usd_rate: Decimal
    price_source: str = "oracle"
    buffer_bps: int
    token_units: int


class ActivationState(CanonicalModel):
    """Existence and spendable reserve of an account-resource chain account."""

    address: str
    exists: bool = False
    reserve_balance: int = Field(default=0, ge=0, description="Balance in sun")

    def meets(self, minimum_reserve: int) -> bool:
        return self.exists and self.reserve_balance >= minimum_reserve


class RelayAttempt(CanonicalModel):
    """One sign-and-submit round. Discarded once the retry loop ends."""

    attempt_index: int
    nonce_used: int
    signature_used: str
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    tx_id: Optional[str] = None
    error: Optional[str] = None


class SubmissionReceipt(CanonicalModel):
    """Confirmation data for a relayed transaction."""

    tx_id: str
    block_number: Optional[int] = None
    confirmed: bool = True


class RelayResult(CanonicalModel):
    """
    Outcome of a successful ``relay_transfer`` call.

    Attributes:
        tx_id: Transaction hash (EVM) or transaction id (TRON), plain hex
        chain: Chain family the transfer was relayed on
        sender: Sender address in the chain's native form
        recipient: Recipient address in the chain's native form
        amount: Token amount in smallest units
        nonce: Nonce the confirmed attempt was signed with
        attempts: Number of submissions made, 1 when no conflict occurred
        gas_cost_usd: Reimbursement deducted, token smallest units
        deadline: Deadline all attempts were signed with
        block_number: Inclusion block if reported
    """

    tx_id: str
    chain: ChainKind
    sender: str
    recipient: str
    amount: int
    nonce: int
    attempts: int
    gas_cost_usd: int
    deadline: int
    block_number: Optional[int] = None
