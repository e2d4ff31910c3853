"""
Client configuration: endpoints, cache location, prover artifacts and the
scanner/confirmation timing knobs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from privacy_cash.core.constants import (
    CONFIRMATION_INTERVAL_SECONDS,
    CONFIRMATION_MAX_RETRIES,
    DEFAULT_RPC_URL,
    RELAYER_API_URL,
)
from privacy_cash.core.errors import ConfigError


@dataclass
class ClientConfig:
    """
    Configuration for `PrivacyCashClient`.

    Args:
        rpc_url:                  Solana JSON-RPC endpoint
        relayer_url:              Relayer/indexer base URL
        cache_dir:                Directory for the scanner cache; None keeps it in memory
        circuit_path:             Path prefix of the circuit artifacts
                                  (`<path>.wasm` and `<path>.zkey`)
        confirmation_retries:     How many times to poll the indexer for new outputs
        confirmation_interval:    Seconds between confirmation polls
        native_page_delay:        Seconds to pause between SOL scan pages
        spl_page_delay:           Seconds to pause between SPL scan pages
        request_timeout:          HTTP timeout in seconds
    """
    rpc_url: str = DEFAULT_RPC_URL
    relayer_url: str = RELAYER_API_URL
    cache_dir: str | None = None
    circuit_path: str | None = None
    confirmation_retries: int = CONFIRMATION_MAX_RETRIES
    confirmation_interval: float = CONFIRMATION_INTERVAL_SECONDS
    native_page_delay: float = 0.02
    spl_page_delay: float = 0.1
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.confirmation_retries < 1:
            raise ConfigError("confirmation_retries must be at least 1")
        if self.confirmation_interval < 0:
            raise ConfigError("confirmation_interval must not be negative")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")

    @classmethod
    def from_env(cls) -> ClientConfig:
        """
        Build a config from PRIVACY_CASH_* environment variables.

        Recognised: PRIVACY_CASH_RPC_URL, PRIVACY_CASH_RELAYER_URL,
        PRIVACY_CASH_CACHE_DIR, PRIVACY_CASH_CIRCUIT_PATH,
        PRIVACY_CASH_CONFIRMATION_RETRIES, PRIVACY_CASH_CONFIRMATION_INTERVAL.
        """
        try:
            return cls(
                rpc_url=os.getenv("PRIVACY_CASH_RPC_URL", DEFAULT_RPC_URL),
                relayer_url=os.getenv("PRIVACY_CASH_RELAYER_URL", RELAYER_API_URL),
                cache_dir=os.getenv("PRIVACY_CASH_CACHE_DIR") or None,
                circuit_path=os.getenv("PRIVACY_CASH_CIRCUIT_PATH") or None,
                confirmation_retries=int(
                    os.getenv("PRIVACY_CASH_CONFIRMATION_RETRIES", CONFIRMATION_MAX_RETRIES)
                ),
                confirmation_interval=float(
                    os.getenv("PRIVACY_CASH_CONFIRMATION_INTERVAL", CONFIRMATION_INTERVAL_SECONDS)
                ),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment configuration: {e}") from e
