"""
Meta-Transfer Signature Verification Helpers

Off-chain recovery of the signer of a ``Transfer`` authorization. Callers that
sign elsewhere (hardware wallet, MPC service) can check a signature here
before submitting; a request that does not recover to its own ``from`` would
only burn relayer gas on a revert.

All cryptographic operations are performed in-process using ``eth_account``.
"""

from eth_account import Account
from eth_account.messages import encode_typed_data

from ...engine.exceptions import ValidationError
from ...schemas.relays import ChainDomain, MetaTransferRequest
from .signatures import build_meta_transfer_typed_data, normalize_signature


def recover_meta_transfer_signer(domain: ChainDomain, request: MetaTransferRequest) -> str:
    """
    Recover the address that signed ``request`` under ``domain``.

    Args:
        domain:  Domain the request was signed for.
        request: Signed request.

    Returns:
        str: Checksum ``0x`` address of the signer (signing form on every chain).

    Raises:
        ValidationError: If the request carries no signature or the
            signature is malformed.
    """
    if not request.signature:
        raise ValidationError("Request has no signature attached")

    signature = normalize_signature(request.signature)
    signable = encode_typed_data(full_message=build_meta_transfer_typed_data(domain, request).to_dict())
    try:
        return Account.recover_message(signable, signature=bytes.fromhex(signature[2:]))
    except Exception as exc:
        raise ValidationError(f"Signature recovery failed: {exc}") from exc


def verify_meta_transfer_signature(domain: ChainDomain, request: MetaTransferRequest) -> bool:
    """Return True when ``request`` was signed by its own ``from`` address."""
    recovered = recover_meta_transfer_signer(domain, request)
    return recovered.lower() == request.from_address.to_signing_address().lower()
