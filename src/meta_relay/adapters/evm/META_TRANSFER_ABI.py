"""
Meta-Transfer Verifier Contract ABI Module

Minimal ABI definitions for the token contract that verifies and executes
gasless transfers: ``metaTransfer`` (relayer entry point), ``getNonce``
(per-sender counter view) and the ``NonceAlreadyUsed`` custom error used to
classify rejected submissions.
The selector only matches verifiers that revert with that typed error;
reverts carrying an ``Error(string)`` reason fall through to the counter
check in the adapters.

Usage:
    from META_TRANSFER_ABI import (
        get_meta_transfer_abi,
        get_tron_meta_transfer_abi,
        NONCE_ALREADY_USED_SELECTOR,
    )

    # web3.py
    contract = web3.eth.contract(address=token_address, abi=get_meta_transfer_abi())
    nonce = await contract.functions.getNonce(sender).call()
"""

from typing import Dict, Any, List

from eth_utils import function_signature_to_4byte_selector


#: Revert data prefix emitted when ``(from, nonce)`` was already consumed.
NONCE_ALREADY_USED_SIGNATURE: str = "NonceAlreadyUsed(address,uint256)"
NONCE_ALREADY_USED_SELECTOR: str = "0x" + function_signature_to_4byte_selector(NONCE_ALREADY_USED_SIGNATURE).hex()


def get_meta_transfer_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the verifier contract's relay entry points.

    Returns:
        List[Dict[str, Any]]: ABI with ``metaTransfer``, ``getNonce`` and the
        ``NonceAlreadyUsed`` error.

    Example:
        abi = get_meta_transfer_abi()
        contract = web3.eth.contract(address=token_address, abi=abi)
        tx_fn = contract.functions.metaTransfer(frm, to, amount, nonce, deadline, fee, sig)
    """
    return [
        {
            "name": "metaTransfer",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "from", "type": "address"},
                {"name": "to", "type": "address"},
                {"name": "amount", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
                {"name": "gasCostUSD", "type": "uint256"},
                {"name": "signature", "type": "bytes"},
            ],
            "outputs": [],
        },
        {
            "name": "getNonce",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "user", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        },
        {
            "name": "NonceAlreadyUsed",
            "type": "error",
            "inputs": [
                {"name": "from", "type": "address"},
                {"name": "nonce", "type": "uint256"},
            ],
        },
    ]


def get_tron_meta_transfer_abi() -> List[Dict[str, Any]]:
    """
    Same entry points in the capitalized form TRON nodes return for
    on-chain ABIs, for assignment to a tronpy contract's ``abi``.
    """
    return [
        {
            **entry,
            "type": entry["type"].capitalize(),
            **({"stateMutability": entry["stateMutability"].capitalize()} if "stateMutability" in entry else {}),
        }
        for entry in get_meta_transfer_abi()
        if entry["type"] == "function"
    ]
