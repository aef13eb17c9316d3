"""
Relay-wide settings.

Values shared by every chain (EIP-712 domain, gas buffer, retry budget,
deadline window, activation reserve and polling, price oracle). Chain
specific configuration lives in each adapter's ``constants`` module.
"""

import os
from typing import List

import dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from .engine.exceptions import ChainConfigError

dotenv.load_dotenv()

DEFAULT_PRICE_ORACLE_URL: str = "https://api.coingecko.com/api/v3/simple/price"


class RelaySettings(BaseModel):
    """
    Relay configuration with environment overrides.

    Environment Variables:
        - RELAY_CHAINS: Comma separated chains to enable (default ``evm,tron``)
        - RELAY_DOMAIN_NAME / RELAY_DOMAIN_VERSION: EIP-712 domain (``AFRi`` / ``1``)
        - RELAY_GAS_BUFFER_BPS: Gas safety margin in basis points (1000)
        - RELAY_RETRY_BUDGET: Submissions per relay call (5)
        - RELAY_DEADLINE_WINDOW_SECONDS: Authorization lifetime (300)
        - RELAY_MIN_RESERVE_SUN: TRON activation reserve (1100000)
        - RELAY_ACTIVATION_POLL_INTERVAL / RELAY_ACTIVATION_TIMEOUT: seconds (2 / 30)
        - RELAY_PRICE_ORACLE_URL / RELAY_PRICE_ORACLE_TIMEOUT
    """

    chains: List[str] = Field(default_factory=lambda: ["evm", "tron"])
    domain_name: str = "AFRi"
    domain_version: str = "1"
    gas_buffer_bps: int = Field(default=1000, ge=0)
    retry_budget: int = Field(default=5, ge=1)
    deadline_window_seconds: int = Field(default=300, gt=0)
    min_reserve_sun: int = Field(default=1_100_000, ge=0)
    activation_poll_interval: float = Field(default=2.0, gt=0)
    activation_timeout: float = Field(default=30.0, gt=0)
    price_oracle_url: str = DEFAULT_PRICE_ORACLE_URL
    price_oracle_timeout: float = Field(default=10.0, gt=0)

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """
        Build settings from ``RELAY_*`` environment variables.

        Raises:
            ChainConfigError: If a variable is set to an invalid value.
        """
        env_map = {
            "domain_name": "RELAY_DOMAIN_NAME",
            "domain_version": "RELAY_DOMAIN_VERSION",
            "gas_buffer_bps": "RELAY_GAS_BUFFER_BPS",
            "retry_budget": "RELAY_RETRY_BUDGET",
            "deadline_window_seconds": "RELAY_DEADLINE_WINDOW_SECONDS",
            "min_reserve_sun": "RELAY_MIN_RESERVE_SUN",
            "activation_poll_interval": "RELAY_ACTIVATION_POLL_INTERVAL",
            "activation_timeout": "RELAY_ACTIVATION_TIMEOUT",
            "price_oracle_url": "RELAY_PRICE_ORACLE_URL",
            "price_oracle_timeout": "RELAY_PRICE_ORACLE_TIMEOUT",
        }
        values = {field: os.getenv(var) for field, var in env_map.items() if os.getenv(var)}

        chains = os.getenv("RELAY_CHAINS")
        if chains:
            values["chains"] = [c.strip().lower() for c in chains.split(",") if c.strip()]

        try:
            return cls(**values)
        except PydanticValidationError as e:
            raise ChainConfigError(f"Invalid relay settings: {e}") from e
