"""
Base Schema Models for the Meta-Transfer Relayer

This module defines the base classes and enumerations that all other schema
models build on. It provides consistent serialization and the shared status
vocabulary used across the relay flow.

Core Classes:
    - CanonicalModel: Pydantic base model with canonical JSON serialization
    - ChainKind: Supported chain families (EVM, TRON)
    - AttemptOutcome: Lifecycle state of a single relay attempt

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from typing import Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Ensures a consistent, deterministic JSON representation suitable for
    logging, hashing and handing results back to the routing layer.

    Features:
        - Enums and nested models rendered as plain JSON types
        - Deterministic key sorting in JSON output
        - No extra whitespace

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        ``model_dump(mode="json", by_alias=True)`` converts nested models and
        enums to standard Python types; ``json.dumps`` with sorted keys and
        compact separators fixes the layout.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class ChainKind(str, Enum):
    """
    Supported chain families.

    Attributes:
        EVM: Account/gas model chain signing with checksum hex addresses
        TRON: Account-resource model chain with base58 addresses and
            a minimum reserve balance for account activation
    """
    EVM = "evm"
    TRON = "tron"


class AttemptOutcome(str, Enum):
    """
    Enumeration of relay attempt outcomes.

    Attributes:
        PENDING: Signed and submitted, result not yet known
        CONFIRMED: Included on-chain with a successful status
        NONCE_CONFLICT: Rejected because the nonce was already consumed
        FAILED: Rejected for any other reason
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    NONCE_CONFLICT = "nonce_conflict"
    FAILED = "failed"
