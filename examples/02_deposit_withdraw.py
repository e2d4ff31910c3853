#!/usr/bin/env python3
"""
Example 02: Shield and unshield SOL.

Deposits 0.01 SOL into the pool, waits for the indexer to confirm it, then
withdraws the whole private balance back to the wallet (or to a recipient
given on the command line). Requires the circuit artifacts
(`transaction2.wasm` / `transaction2.zkey`) and `snarkjs` on PATH.

Usage:
    export PRIVACY_CASH_SECRET_KEY=<base58 secret key>
    export PRIVACY_CASH_CIRCUIT_PATH=./circuit/transaction2
    python examples/02_deposit_withdraw.py [recipient]
"""

import asyncio
import logging
import os
import sys

from privacy_cash import ClientConfig, PrivacyCashClient, Wallet
from privacy_cash.core.errors import ConfirmationTimeout, InsufficientBalance

logging.basicConfig(level=logging.INFO)

DEPOSIT_LAMPORTS = 10_000_000  # 0.01 SOL


async def main() -> None:
    wallet = Wallet.from_secret_key(os.environ["PRIVACY_CASH_SECRET_KEY"])
    recipient = sys.argv[1] if len(sys.argv) > 1 else None

    async with PrivacyCashClient(wallet, config=ClientConfig.from_env()) as client:
        try:
            deposit = await client.deposit(DEPOSIT_LAMPORTS)
            print(f"Deposited {deposit.amount} lamports: {deposit.signature}")
        except InsufficientBalance as e:
            print(f"Not enough SOL to deposit: {e}")
            return
        except ConfirmationTimeout:
            print("Deposit sent but not yet indexed; check again later.")
            return

        balance = await client.get_private_balance()
        print(f"Private balance: {balance.sol:.4f} SOL")

        withdrawal = await client.withdraw_all(recipient=recipient)
        print(f"Withdrew {withdrawal.amount} lamports (fee {withdrawal.fee}) to {withdrawal.recipient}")
        print(f"Signature: {withdrawal.signature}")


if __name__ == "__main__":
    asyncio.run(main())
