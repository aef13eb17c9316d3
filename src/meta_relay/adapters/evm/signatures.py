"""
Meta-Transfer Signing Utilities

Local EIP-712 signing for the verifier contract's ``Transfer`` struct. All
cryptographic operations are performed in-process using ``eth_account``; no
RPC calls are made. The same secp256k1 signature is used on every chain:
TRON addresses are converted to their ``0x`` signing form before hashing.

Exported helpers
----------------
build_meta_transfer_typed_data
    Wrap a ``MetaTransferRequest`` and ``ChainDomain`` in a
    ``MetaTransferTypedData`` envelope without signing.

normalize_signature
    Bring a signature emitted by any backend to ``0x`` + 130 hex chars with
    ``v`` in {27, 28}, or reject it.

RequestSigner
    Sign a request with the sender's key. The key is held for the duration
    of the call only.
"""

import logging
import re
from typing import Union

from eth_account import Account

from ...engine.exceptions import ValidationError
from ...schemas.addresses import normalize_private_key
from ...schemas.relays import ChainDomain, MetaTransferRequest
from .standards import EIP712Domain, MetaTransferMessage, MetaTransferTypedData


logger = logging.getLogger(__name__)

#: r (32) || s (32) || v (1)
SIGNATURE_LENGTH: int = 65

_HEX_RE = re.compile(r"^[0-9a-fA-F]*$")


# ---------------------------------------------------------------------------
# Typed-data builder
# ---------------------------------------------------------------------------

def build_meta_transfer_typed_data(
    domain: ChainDomain,
    request: MetaTransferRequest,
) -> MetaTransferTypedData:
    """
    Wrap a meta-transfer request in an EIP-712 envelope without signing.

    Use this when signing happens elsewhere (hardware wallet, MPC service)
    or to recover the signer of an already signed request.

    Args:
        domain:  Domain of the verifier contract the request targets.
        request: Request whose signed fields populate the message; its
                 ``signature`` is ignored.

    Returns:
        ``MetaTransferTypedData`` whose ``to_dict()`` is compatible with
        ``eth_account.Account.sign_typed_data`` and ``eth_signTypedData_v4``.
    """
    message = request.to_message()
    return MetaTransferTypedData(
        domain=EIP712Domain(
            name=domain.name,
            version=domain.version,
            chainId=domain.chain_id,
            verifyingContract=domain.verifying_contract,
        ),
        message=MetaTransferMessage(
            sender=message["from"],
            recipient=message["to"],
            amount=message["amount"],
            nonce=message["nonce"],
            deadline=message["deadline"],
            gasCostUSD=message["gasCostUSD"],
        ),
    )


# ---------------------------------------------------------------------------
# Signature normalization
# ---------------------------------------------------------------------------

def normalize_signature(signature: Union[str, bytes]) -> str:
    """
    Normalize a packed ECDSA signature to ``0x`` + 130 lower-case hex chars.

    Exactly one ``0x`` prefix is stripped; a recovery id of 0/1 is mapped
    to 27/28. Anything that is not 65 bytes of hex afterwards (too short,
    prefixed twice, non-hex) is rejected.

    Args:
        signature: Hex string (with or without ``0x``) or raw bytes.

    Returns:
        str: Canonical signature string.

    Raises:
        ValidationError: If the signature cannot be normalized.
    """
    if isinstance(signature, (bytes, bytearray)):
        body = bytes(signature).hex()
    elif isinstance(signature, str):
        body = signature.strip()
        if body[:2].lower() == "0x":
            body = body[2:]
    else:
        raise ValidationError(f"Unsupported signature type: {type(signature).__name__}")

    if len(body) != SIGNATURE_LENGTH * 2 or not _HEX_RE.match(body):
        raise ValidationError(
            f"Signature must be {SIGNATURE_LENGTH} bytes of hex, got {len(body)} characters",
            {"length": len(body)},
        )

    v = int(body[-2:], 16)
    if v in (0, 1):
        v += 27
    if v not in (27, 28):
        raise ValidationError(f"Invalid signature recovery id: {v}", {"v": v})

    return "0x" + body[:-2].lower() + format(v, "02x")


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------

class RequestSigner:
    """
    Computes the sender's EIP-712 signature over a meta-transfer request.

    Deterministic: the same key, domain and request always produce the same
    signature (RFC 6979 nonces in ``eth_account``).

    Example::

        signer = RequestSigner()
        signature = signer.sign(domain, request, sender_private_key)
        signed = request.with_signature(signature)
    """

    def sign(self, domain: ChainDomain, request: MetaTransferRequest, private_key: str) -> str:
        """
        Sign ``request`` under ``domain``.

        Args:
            domain:      Verifier contract domain.
            request:     Request to sign; any existing signature is ignored.
            private_key: Sender's secp256k1 key, with or without ``0x``.

        Returns:
            str: Normalized ``0x`` + 130 hex signature.

        Raises:
            ValidationError: If the key is malformed or the signature cannot
                be normalized.
        """
        key = normalize_private_key(private_key)
        typed_data = build_meta_transfer_typed_data(domain, request)
        signed = Account.sign_typed_data("0x" + key, full_message=typed_data.to_dict())
        logger.debug("Signed meta-transfer nonce=%s for %s", request.nonce, request.from_address)
        return normalize_signature(bytes(signed.signature))

    def sign_request(self, domain: ChainDomain, request: MetaTransferRequest, private_key: str) -> MetaTransferRequest:
        """Return ``request`` with its signature attached."""
        return request.with_signature(self.sign(domain, request, private_key))
