"""
Unit tests for privacy_cash.relayer.fees — fee configuration and arithmetic.
"""

import asyncio

import pytest

from privacy_cash.core.constants import find_token_by_name
from privacy_cash.core.errors import ConfigError
from privacy_cash.core.models import FeeConfig
from privacy_cash.relayer.fees import FeeConfigService


class StubRelayer:
    def __init__(self, **config):
        self.config = FeeConfig(**config)
        self.fetches = 0

    async def get_config(self):
        self.fetches += 1
        return self.config


def _service(**config):
    return FeeConfigService(StubRelayer(**config))


# ==============================================================================
# Caching
# ==============================================================================


class TestFeeConfigCache:

    def test_fetched_once(self):
        service = _service(withdraw_fee_rate=0.0025)

        async def scenario():
            await service.get()
            await service.get()

        asyncio.run(scenario())
        assert service._relayer.fetches == 1

    def test_concurrent_reads_share_one_fetch(self):
        service = _service()

        async def scenario():
            await asyncio.gather(*(service.get() for _ in range(5)))

        asyncio.run(scenario())
        assert service._relayer.fetches == 1

    def test_invalidate(self):
        service = _service()

        async def scenario():
            await service.get()
            service.invalidate()
            await service.get()

        asyncio.run(scenario())
        assert service._relayer.fetches == 2


# ==============================================================================
# Fee arithmetic
# ==============================================================================


class TestFeeArithmetic:

    def test_native_withdraw_fee(self):
        service = _service(withdraw_fee_rate=0.0025, withdraw_rent_fee=0.001)
        # 1 SOL * 0.25% + 0.001 SOL rent
        assert asyncio.run(service.withdraw_fee(1_000_000_000)) == 3_500_000

    def test_native_withdraw_fee_floors(self):
        service = _service(withdraw_fee_rate=0.0025)
        assert asyncio.run(service.withdraw_fee(999)) == 2

    def test_spl_withdraw_fee(self):
        service = _service(withdraw_fee_rate=0.0025, rent_fees={"usdc": 0.5})
        usdc = find_token_by_name("usdc")
        assert asyncio.run(service.withdraw_fee(10_000_000, token=usdc)) == 525_000

    def test_usdc_legacy_rent_fee(self):
        service = _service(usdc_withdraw_rent_fee=0.25)
        assert asyncio.run(service.get_token_rent_fee("usdc")) == 0.25

    def test_rent_fees_take_precedence(self):
        service = _service(usdc_withdraw_rent_fee=0.25, rent_fees={"usdc": 0.5})
        assert asyncio.run(service.get_token_rent_fee("usdc")) == 0.5

    def test_flat_rent_fee_applies_to_other_tokens(self):
        service = _service(withdraw_fee_rate=0.0025, usdc_withdraw_rent_fee=0.25, rent_fees={"usdc": 0.5})
        usdt = find_token_by_name("usdt")
        assert asyncio.run(service.get_token_rent_fee("usdt")) == 0.25
        assert asyncio.run(service.withdraw_fee(10_000_000, token=usdt)) == 275_000

    def test_missing_rent_fee(self):
        service = _service(rent_fees={"usdc": 0.5})
        with pytest.raises(ConfigError, match="usdt"):
            asyncio.run(service.withdraw_fee(1_000_000, token=find_token_by_name("usdt")))

    def test_deposit_fee(self):
        assert asyncio.run(_service(deposit_fee_rate=0.01).deposit_fee(1_000)) == 10
        assert asyncio.run(_service().deposit_fee(1_000)) == 0
