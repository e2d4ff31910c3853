"""
PrivacyCashClient: high-level SDK entry point.

Wires a wallet to the relayer, the ledger RPC, the scanner cache, the
encryption keys derived from the wallet signature and the prover, and
exposes deposit/withdraw/balance operations for SOL and supported SPL tokens.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from privacy_cash.core.address import get_associated_token_address
from privacy_cash.core.config import ClientConfig
from privacy_cash.core.constants import SUPPORTED_TOKENS, USDC_MINT
from privacy_cash.core.errors import InsufficientBalance
from privacy_cash.core.ledger import LedgerRpc
from privacy_cash.core.models import Balance, DepositResult, SplBalance, WithdrawResult
from privacy_cash.core.storage import FileStorage, MemoryStorage, Storage
from privacy_cash.core.wallet import Wallet
from privacy_cash.crypto.encryption import EncryptionService
from privacy_cash.crypto.hasher import FieldHasher
from privacy_cash.crypto.utxo import Utxo
from privacy_cash.pool.prover import Prover, SnarkjsProver
from privacy_cash.pool.scanner import AbortSignal, UtxoScanner
from privacy_cash.pool.transaction import TransactionBuilder, max_spendable
from privacy_cash.relayer.api import RelayerClient
from privacy_cash.relayer.fees import FeeConfigService

logger = logging.getLogger("privacy_cash.client")

DEFAULT_CIRCUIT_PATH = Path("circuit") / "transaction2"


class PrivacyCashClient:
    """
    Usage:
        wallet = Wallet.from_secret_key(os.environ["SOLANA_SECRET_KEY"])
        async with PrivacyCashClient(wallet) as client:
            await client.deposit(10_000_000)          # 0.01 SOL
            balance = await client.get_private_balance()
            await client.withdraw_all()

    Every collaborator can be injected (mainly for tests); anything not
    given is built from `config`.
    """

    def __init__(
        self,
        wallet: Wallet,
        config: ClientConfig | None = None,
        storage: Storage | None = None,
        prover: Prover | None = None,
        relayer: RelayerClient | None = None,
        ledger: LedgerRpc | None = None,
        hasher: FieldHasher | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.wallet = wallet
        self.config = config or ClientConfig()
        cfg = self.config

        if storage is None:
            storage = FileStorage(cfg.cache_dir) if cfg.cache_dir else MemoryStorage()
        self.storage = storage

        self.relayer = relayer or RelayerClient(
            cfg.relayer_url, timeout=cfg.request_timeout, transport=transport
        )
        self.ledger = ledger or LedgerRpc(cfg.rpc_url, timeout=cfg.request_timeout, transport=transport)
        self.prover = prover or SnarkjsProver(cfg.circuit_path or DEFAULT_CIRCUIT_PATH)

        self.encryption = EncryptionService(hasher=hasher)
        self.encryption.derive_encryption_key_from_wallet(wallet)

        self.fees = FeeConfigService(self.relayer)
        self.scanner = UtxoScanner(
            self.relayer,
            self.ledger,
            self.encryption,
            self.storage,
            native_page_delay=cfg.native_page_delay,
            spl_page_delay=cfg.spl_page_delay,
        )
        self.transactions = TransactionBuilder(
            wallet,
            self.relayer,
            self.ledger,
            self.scanner,
            self.encryption,
            self.prover,
            self.fees,
            confirmation_retries=cfg.confirmation_retries,
            confirmation_interval=cfg.confirmation_interval,
        )

    @property
    def address(self) -> str:
        return self.wallet.address

    # ------------------------------------------------------------------
    # SOL
    # ------------------------------------------------------------------

    async def deposit(self, lamports: int, referrer: str | None = None) -> DepositResult:
        return await self.transactions.deposit(lamports, referrer=referrer)

    async def withdraw(
        self,
        lamports: int,
        recipient: str | None = None,
        referrer: str | None = None,
    ) -> WithdrawResult:
        return await self.transactions.withdraw(lamports, recipient=recipient, referrer=referrer)

    async def withdraw_all(self, recipient: str | None = None, referrer: str | None = None) -> WithdrawResult:
        """
        Withdraw the private SOL balance.

        One transaction spends at most two UTXOs. With more, this withdraws
        the two largest and leaves the rest for another call; check
        `get_private_balance()` afterwards.

        Raises:
            InsufficientBalance: need=1, have=0 when there is nothing to withdraw
        """
        utxos = await self.get_utxos()
        amount = _spendable_now(utxos, "lamports")
        return await self.withdraw(amount, recipient=recipient, referrer=referrer)

    async def get_private_balance(self, abort: AbortSignal | None = None) -> Balance:
        return await self.scanner.get_private_balance(self.wallet.address, abort=abort)

    async def get_utxos(self, abort: AbortSignal | None = None) -> list[Utxo]:
        return await self.scanner.get_utxos(self.wallet.address, abort=abort)

    # ------------------------------------------------------------------
    # SPL tokens
    # ------------------------------------------------------------------

    async def deposit_spl(self, base_units: int, mint: str, referrer: str | None = None) -> DepositResult:
        return await self.transactions.deposit_spl(base_units, mint, referrer=referrer)

    async def withdraw_spl(
        self,
        base_units: int,
        mint: str,
        recipient: str | None = None,
        referrer: str | None = None,
    ) -> WithdrawResult:
        return await self.transactions.withdraw_spl(base_units, mint, recipient=recipient, referrer=referrer)

    async def withdraw_all_spl(self, mint: str, recipient: str | None = None) -> WithdrawResult:
        """Token counterpart of `withdraw_all`, with the same two-UTXO limit."""
        utxos = await self.scanner.get_utxos_spl(self.wallet.address, mint)
        amount = _spendable_now(utxos, "base units")
        return await self.withdraw_spl(amount, mint, recipient=recipient)

    async def get_private_balance_spl(self, mint: str, abort: AbortSignal | None = None) -> SplBalance:
        return await self.scanner.get_private_balance_spl(self.wallet.address, mint, abort=abort)

    # USDC shortcuts

    async def deposit_usdc(self, base_units: int) -> DepositResult:
        return await self.deposit_spl(base_units, USDC_MINT)

    async def withdraw_usdc(self, base_units: int, recipient: str | None = None) -> WithdrawResult:
        return await self.withdraw_spl(base_units, USDC_MINT, recipient=recipient)

    async def withdraw_all_usdc(self, recipient: str | None = None) -> WithdrawResult:
        return await self.withdraw_all_spl(USDC_MINT, recipient=recipient)

    async def get_private_balance_usdc(self) -> SplBalance:
        return await self.get_private_balance_spl(USDC_MINT)

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        """Forget scan progress for SOL and every supported token; the next scan starts from 0."""
        self.scanner.clear_cache(self.wallet.address)
        for token in SUPPORTED_TOKENS:
            self.scanner.clear_cache(get_associated_token_address(self.wallet.address, token.mint))
        logger.info("UTXO cache cleared")

    async def get_sol_balance(self) -> int:
        """Public on-chain SOL balance in lamports."""
        return await self.ledger.get_balance(self.wallet.address)

    def set_circuit_path(self, circuit_path: str) -> None:
        self.config.circuit_path = circuit_path
        self.prover = SnarkjsProver(circuit_path)
        self.transactions.prover = self.prover

    async def aclose(self) -> None:
        await self.relayer.aclose()
        await self.ledger.aclose()

    async def __aenter__(self) -> PrivacyCashClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"PrivacyCashClient(address={self.wallet.address!r})"


def _spendable_now(utxos: list[Utxo], unit: str) -> int:
    amount = max_spendable(utxos)
    if amount == 0:
        raise InsufficientBalance(need=1, have=0)
    balance = sum(u.amount for u in utxos)
    if amount < balance:
        logger.info(f"Withdrawing {amount} of {balance} {unit}; the rest needs another withdrawal")
    return amount
