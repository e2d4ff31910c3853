"""
UTXO scanner: rebuilds a wallet's unspent UTXO set from the indexer's
append-only log of encrypted outputs.

Nothing in an output identifies its owner, so ownership is tested by trial
decryption: an output that fails to decrypt belongs to someone else and is
skipped. Decrypted outputs get their authoritative tree index from the
indexer, then are classified spent/unspent by checking the ledger for the
accounts the program creates when their nullifier is consumed.

Progress is cached per owner: `fetch_offset<key>` is how far the log has been
scanned, `encrypted_outputs<key>` the owned outputs found so far. Both are
written after every page; cached outputs are re-checked for spending on a
run's final page and pruned only then.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Protocol

from privacy_cash.core.address import get_associated_token_address, spent_marker_addresses
from privacy_cash.core.constants import (
    FETCH_UTXOS_GROUP_SIZE,
    LSK_ENCRYPTED_OUTPUTS,
    LSK_FETCH_OFFSET,
    PROGRAM_ID,
    find_token_by_mint,
)
from privacy_cash.core.errors import Aborted, DecryptionError, TokenNotSupported
from privacy_cash.core.ledger import LedgerRpc
from privacy_cash.core.models import Balance, SplBalance
from privacy_cash.core.storage import Storage
from privacy_cash.crypto.encryption import EncryptionService
from privacy_cash.crypto.utxo import Utxo, get_balance_from_utxos, get_balance_from_utxos_spl
from privacy_cash.relayer.api import RelayerClient

logger = logging.getLogger("privacy_cash.scanner")


class AbortSignal(Protocol):
    """Anything with `is_set()`, e.g. `asyncio.Event` or `threading.Event`."""

    def is_set(self) -> bool: ...


def localstorage_key(owner: str, program_id: str = PROGRAM_ID) -> str:
    return program_id[:6] + owner


def offset_key(owner: str, program_id: str = PROGRAM_ID) -> str:
    return LSK_FETCH_OFFSET + localstorage_key(owner, program_id)


def encrypted_outputs_key(owner: str, program_id: str = PROGRAM_ID) -> str:
    return LSK_ENCRYPTED_OUTPUTS + localstorage_key(owner, program_id)


class UtxoScanner:
    """
    Usage:
        scanner = UtxoScanner(relayer, ledger, encryption, storage)
        utxos = await scanner.get_utxos(wallet.address)
        balance = await scanner.get_private_balance(wallet.address)
    """

    def __init__(
        self,
        relayer: RelayerClient,
        ledger: LedgerRpc,
        encryption: EncryptionService,
        storage: Storage,
        program_id: str = PROGRAM_ID,
        page_size: int = FETCH_UTXOS_GROUP_SIZE,
        native_page_delay: float = 0.02,
        spl_page_delay: float = 0.1,
    ) -> None:
        self.relayer = relayer
        self.ledger = ledger
        self.encryption = encryption
        self.storage = storage
        self.program_id = program_id
        self.page_size = page_size
        self.native_page_delay = native_page_delay
        self.spl_page_delay = spl_page_delay

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def get_utxos(self, owner: str, abort: AbortSignal | None = None) -> list[Utxo]:
        """All unspent native UTXOs owned by `owner`'s derived keys."""
        return await self._scan(owner, token=None, page_delay=self.native_page_delay, abort=abort)

    async def get_utxos_spl(self, owner: str, mint: str, abort: AbortSignal | None = None) -> list[Utxo]:
        """
        Unspent UTXOs of `mint`. Progress is cached under the owner's
        associated token account.

        Raises:
            TokenNotSupported: if `mint` is not a supported token
        """
        token = find_token_by_mint(mint)
        if token is None:
            raise TokenNotSupported(mint)
        ata = get_associated_token_address(owner, mint)
        utxos = await self._scan(ata, token=token.name, page_delay=self.spl_page_delay, abort=abort)
        return [u for u in utxos if u.asset_id == mint]

    async def _scan(
        self,
        cache_owner: str,
        token: str | None,
        page_delay: float,
        abort: AbortSignal | None,
    ) -> list[Utxo]:
        offset_k = offset_key(cache_owner, self.program_id)
        outputs_k = encrypted_outputs_key(cache_owner, self.program_id)
        offset = _parse_offset(self.storage.get(offset_k))
        cached = self._cached_outputs(outputs_k)

        unspent: list[Utxo] = []
        owned_outputs: list[str] = []
        seen: set[str] = set()

        while True:
            if abort is not None and abort.is_set():
                raise Aborted()

            page = await self.relayer.get_utxo_range(offset, offset + self.page_size, token=token)
            logger.debug(
                f"Fetched {len(page)} outputs [{offset}, {offset + self.page_size}) token={token or 'sol'}"
            )
            final = not page.has_more or not page.encrypted_outputs
            if page.has_more and not page.encrypted_outputs:
                logger.warning(f"Indexer reported more outputs after an empty page at {offset}")

            candidates = [o for o in dict.fromkeys(page.encrypted_outputs) if o and o not in seen]
            seen.update(candidates)
            if final:
                leftover = [o for o in cached if o not in seen]
                seen.update(leftover)
                candidates.extend(leftover)

            utxos, encrypted = await self._decrypt_outputs(candidates, token)
            live = [(u, e) for u, e in zip(utxos, encrypted) if not u.is_dummy]
            if live:
                spent_flags = await self.are_utxos_spent([u for u, _ in live])
                for (utxo, enc), spent in zip(live, spent_flags):
                    if spent:
                        continue
                    unspent.append(utxo)
                    owned_outputs.append(enc)

            offset += len(page)
            # spent cached outputs are only pruned once they have been rechecked
            committed = owned_outputs if final else cached + owned_outputs
            # outputs before offset: a crash in between only redoes this page
            self.storage.set(outputs_k, json.dumps(list(dict.fromkeys(committed))))
            self.storage.set(offset_k, str(offset))

            if final:
                break
            await asyncio.sleep(page_delay)

        logger.info(f"Scan complete: {len(unspent)} unspent UTXOs (token={token or 'sol'})")
        return unspent

    async def _decrypt_outputs(self, outputs: list[str], token: str | None) -> tuple[list[Utxo], list[str]]:
        utxos: list[Utxo] = []
        owned: list[str] = []
        for encrypted in outputs:
            try:
                utxo = self.encryption.decrypt_utxo_hex(encrypted)
            except DecryptionError:
                continue
            utxos.append(utxo)
            owned.append(encrypted)

        if owned:
            indices = await self.relayer.get_utxo_indices(owned, token=token)
            if len(indices) != len(owned):
                logger.warning(f"Indexer returned {len(indices)} indices for {len(owned)} outputs")
            for utxo, index in zip(utxos, indices):
                if utxo.index != index:
                    logger.debug(f"Corrected UTXO index {utxo.index} -> {index}")
                    utxo.index = index
        return utxos, owned

    def _cached_outputs(self, key: str) -> list[str]:
        raw = self.storage.get(key)
        if not raw:
            return []
        try:
            cached = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable cache entry {key!r}")
            return []
        return [str(o) for o in cached] if isinstance(cached, list) else []

    # ------------------------------------------------------------------
    # Spent state
    # ------------------------------------------------------------------

    async def are_utxos_spent(self, utxos: list[Utxo]) -> list[bool]:
        """A UTXO is spent if either of its nullifier accounts exists."""
        if not utxos:
            return []
        addresses: list[str] = []
        for utxo in utxos:
            addresses.extend(spent_marker_addresses(utxo.nullifier(), self.program_id))
        exists = await self.ledger.accounts_exist(addresses)
        return [exists[2 * i] or exists[2 * i + 1] for i in range(len(utxos))]

    async def is_utxo_spent(self, utxo: Utxo) -> bool:
        return (await self.are_utxos_spent([utxo]))[0]

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def get_private_balance(self, owner: str, abort: AbortSignal | None = None) -> Balance:
        return get_balance_from_utxos(await self.get_utxos(owner, abort=abort))

    async def get_private_balance_spl(self, owner: str, mint: str, abort: AbortSignal | None = None) -> SplBalance:
        token = find_token_by_mint(mint)
        if token is None:
            raise TokenNotSupported(mint)
        utxos = await self.get_utxos_spl(owner, mint, abort=abort)
        return get_balance_from_utxos_spl(utxos, token.units_per_token)

    def clear_cache(self, owner: str) -> None:
        self.storage.remove(offset_key(owner, self.program_id))
        self.storage.remove(encrypted_outputs_key(owner, self.program_id))


def _parse_offset(raw: str | None) -> int:
    if not raw:
        return 0
    try:
        return max(int(raw), 0)
    except ValueError:
        logger.warning(f"Ignoring invalid cached fetch offset {raw!r}")
        return 0
