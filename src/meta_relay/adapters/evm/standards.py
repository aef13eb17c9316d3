from dataclasses import dataclass, field
from typing import Dict, Any, List


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across chains and contracts.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# Meta-transfer authorization
# -----------------------------


@dataclass
class MetaTransferMessage:
    """
    Message payload for the verifier contract's ``Transfer`` struct.

    ``from`` is a Python reserved word, so the sender is stored as
    ``sender`` and mapped back to ``from`` in ``to_dict()``. Addresses are
    always in ``0x`` signing form, on every chain.

    Attributes:
        sender: Token holder authorizing the transfer (maps to `from`).
        recipient: Address receiving the tokens (maps to `to`).
        amount: Token amount in smallest units (uint256).
        nonce: Per-sender authorization counter (uint256).
        deadline: Unix timestamp after which the contract rejects the call.
        gasCostUSD: Reimbursement deducted for the relayer, token smallest units.
    """
    sender: str
    recipient: str
    amount: int
    nonce: int
    deadline: int
    gasCostUSD: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "gasCostUSD": self.gasCostUSD,
        }


@dataclass
class MetaTransferTypedData:
    """
    Container for meta-transfer typed data usable with EIP-712 signing routines.

    ``to_dict()`` produces the { types, primaryType, domain, message } layout
    accepted by ``eth_account.Account.sign_typed_data(full_message=...)``.

    Attributes:
        domain: EIP712Domain instance describing the signing domain.
        message: MetaTransferMessage instance carrying the payload.
        primary_type: The primary EIP-712 type (defaults to "Transfer").
        types: The typed definitions required by EIP-712 (automatically set).
    """
    domain: EIP712Domain
    message: MetaTransferMessage

    primary_type: str = "Transfer"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Transfer": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "gasCostUSD", "type": "uint256"},
            ],
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }
