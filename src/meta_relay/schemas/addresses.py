"""
Tagged Chain Addresses

Addresses travel through the relay flow tagged with the chain family they
belong to, so a base58 account-resource address can never be passed where a
checksum EVM address is expected (or the reverse). Both forms convert
losslessly to the 20-byte ``0x`` form that the EIP-712 struct is signed over.

Core Classes:
    - EvmAddress: Checksum hex address (``0x`` + 40 hex)
    - ResourceChainAddress: TRON base58check address (``T...``)
    - ChainAddress: Discriminated union of both, keyed by ``kind``

Helpers:
    - normalize_private_key: Validate a secp256k1 key and strip ``0x``
"""

import re
from typing import Annotated, Literal, Union

from eth_account import Account
from pydantic import ConfigDict, Field
from tronpy.exceptions import BadAddress
from tronpy.keys import PrivateKey, to_base58check_address, to_hex_address
from web3 import Web3

from ..engine.exceptions import ValidationError
from .bases import CanonicalModel


_PRIVATE_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_TRON_HEX_RE = re.compile(r"^41[0-9a-fA-F]{40}$")

#: Order of the secp256k1 group; valid keys lie in [1, n).
SECP256K1_N: int = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def normalize_private_key(private_key: str) -> str:
    """
    Validate a hex private key and return it without the ``0x`` prefix.

    Args:
        private_key: 64 hex characters, optionally ``0x``-prefixed.

    Returns:
        str: Lower-case 64 character hex string.

    Raises:
        ValidationError: If the key is not 32 bytes of hex or lies outside
            the secp256k1 range.
    """
    if not isinstance(private_key, str):
        raise ValidationError("Private key must be a hex string")
    key = private_key.strip()
    if key[:2].lower() == "0x":
        key = key[2:]
    if not _PRIVATE_KEY_RE.match(key):
        raise ValidationError("Invalid private key format")
    if not 0 < int(key, 16) < SECP256K1_N:
        raise ValidationError("Private key is outside the secp256k1 range")
    return key.lower()


class EvmAddress(CanonicalModel):
    """EVM account address in checksum form."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: Literal["evm"] = "evm"
    value: str = Field(..., description="Checksum hex address")

    @classmethod
    def parse(cls, raw: str) -> "EvmAddress":
        """
        Validate and checksum an ``0x`` hex address.

        Raises:
            ValidationError: If ``raw`` is not a 20-byte hex address.
        """
        if not isinstance(raw, str) or not Web3.is_address(raw.strip()):
            raise ValidationError(f"Invalid EVM address: {raw!r}")
        return cls(value=Web3.to_checksum_address(raw.strip()))

    @classmethod
    def from_signing_address(cls, hex_address: str) -> "EvmAddress":
        return cls.parse(hex_address)

    @classmethod
    def from_private_key(cls, private_key: str) -> "EvmAddress":
        key = normalize_private_key(private_key)
        return cls(value=Account.from_key("0x" + key).address)

    def to_signing_address(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class ResourceChainAddress(CanonicalModel):
    """
    TRON account address in base58check form.

    The signing form drops the ``0x41`` network prefix byte and keeps the
    remaining 20 bytes as a checksummed ``0x`` address; ``from_signing_address``
    restores the prefix, so the round trip is lossless.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: Literal["tron"] = "tron"
    value: str = Field(..., description="Base58check address (T...)")

    @classmethod
    def parse(cls, raw: str) -> "ResourceChainAddress":
        """
        Accept a base58 ``T...`` address or a ``41``-prefixed hex address.

        Raises:
            ValidationError: If ``raw`` is neither form or fails its checksum.
        """
        if not isinstance(raw, str):
            raise ValidationError(f"Invalid TRON address: {raw!r}")
        candidate = raw.strip()
        if not (candidate.startswith("T") or _TRON_HEX_RE.match(candidate)):
            raise ValidationError(f"Invalid TRON address: {raw!r}")
        try:
            return cls(value=to_base58check_address(candidate))
        except (BadAddress, ValueError) as e:
            raise ValidationError(f"Invalid TRON address: {raw!r}") from e

    @classmethod
    def from_signing_address(cls, hex_address: str) -> "ResourceChainAddress":
        if not isinstance(hex_address, str) or not Web3.is_address(hex_address):
            raise ValidationError(f"Invalid signing address: {hex_address!r}")
        return cls(value=to_base58check_address("41" + hex_address[2:].lower()))

    @classmethod
    def from_private_key(cls, private_key: str) -> "ResourceChainAddress":
        key = normalize_private_key(private_key)
        return cls(value=PrivateKey(bytes.fromhex(key)).public_key.to_base58check_address())

    def to_hex(self) -> str:
        """Return the ``41``-prefixed hex form used by the TRON node API."""
        return to_hex_address(self.value)

    def to_signing_address(self) -> str:
        return Web3.to_checksum_address("0x" + self.to_hex()[2:])

    def __str__(self) -> str:
        return self.value


ChainAddress = Annotated[
    Union[EvmAddress, ResourceChainAddress],
    Field(discriminator="kind"),
]
