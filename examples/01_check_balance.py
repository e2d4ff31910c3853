#!/usr/bin/env python3
"""
Example 01: Check private balances.

Scans the pool for outputs owned by your wallet and prints the private SOL
and USDC balances next to the public SOL balance. Nothing is submitted.

Usage:
    export PRIVACY_CASH_SECRET_KEY=<base58 secret key>
    python examples/01_check_balance.py
"""

import asyncio
import logging
import os

from privacy_cash import ClientConfig, PrivacyCashClient, Wallet
from privacy_cash.core.models import LAMPORTS_PER_SOL

logging.basicConfig(level=logging.INFO)


async def main() -> None:
    wallet = Wallet.from_secret_key(os.environ["PRIVACY_CASH_SECRET_KEY"])
    config = ClientConfig.from_env()

    async with PrivacyCashClient(wallet, config=config) as client:
        public = await client.get_sol_balance()
        private = await client.get_private_balance()
        usdc = await client.get_private_balance_usdc()

    print(f"Address:      {wallet.address}")
    print(f"Public SOL:   {public / LAMPORTS_PER_SOL:.4f}")
    print(f"Private SOL:  {private.sol:.4f}")
    print(f"Private USDC: {usdc.amount:.2f}")


if __name__ == "__main__":
    asyncio.run(main())
