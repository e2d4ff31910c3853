"""
Fee configuration: a read-through cache over the relayer `/config` endpoint.

One instance per client; call `invalidate()` to force the next read to
refetch.
"""

from __future__ import annotations

import asyncio
import logging
import math

from privacy_cash.core.errors import ConfigError
from privacy_cash.core.models import LAMPORTS_PER_SOL, FeeConfig, TokenInfo
from privacy_cash.relayer.api import RelayerClient

logger = logging.getLogger("privacy_cash.fees")


class FeeConfigService:
    def __init__(self, relayer: RelayerClient) -> None:
        self._relayer = relayer
        self._config: FeeConfig | None = None
        self._lock = asyncio.Lock()

    async def get(self) -> FeeConfig:
        if self._config is not None:
            return self._config
        async with self._lock:
            if self._config is None:
                self._config = await self._relayer.get_config()
                logger.debug(f"Loaded fee config: {self._config}")
            return self._config

    def invalidate(self) -> None:
        self._config = None

    # ------------------------------------------------------------------
    # Fee arithmetic
    # ------------------------------------------------------------------

    async def get_token_rent_fee(self, token_name: str) -> float:
        config = await self.get()
        if token_name in config.rent_fees:
            return config.rent_fees[token_name]
        # older relayers publish a single flat rent fee instead of the per-token map
        if config.usdc_withdraw_rent_fee:
            return config.usdc_withdraw_rent_fee
        raise ConfigError(f"No rent fee configured for {token_name}")

    async def withdraw_fee(self, amount: int, token: TokenInfo | None = None) -> int:
        """
        floor(amount * withdraw_fee_rate + units * rent_fee)

        The rent fee is quoted in whole tokens: SOL for native withdrawals, or
        the token's own rent fee for SPL ones.
        """
        config = await self.get()
        if token is None:
            return math.floor(amount * config.withdraw_fee_rate + LAMPORTS_PER_SOL * config.withdraw_rent_fee)
        rent_fee = await self.get_token_rent_fee(token.name)
        return math.floor(amount * config.withdraw_fee_rate + token.units_per_token * rent_fee)

    async def deposit_fee(self, amount: int) -> int:
        config = await self.get()
        return math.floor(amount * config.deposit_fee_rate)
