"""
LedgerRpc: async JSON-RPC client for a Solana node.

Only the handful of read calls the client needs: SOL balances, token account
balances and batched account existence checks (used to detect spent nullifiers).

Docs: https://solana.com/docs/rpc
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from privacy_cash.core.constants import DEFAULT_RPC_URL
from privacy_cash.core.errors import LedgerRpcError

logger = logging.getLogger("privacy_cash.ledger")

# getMultipleAccounts accepts at most 100 keys per request
MAX_ACCOUNTS_PER_REQUEST = 100


class LedgerRpc:
    """
    Async client for the Solana JSON-RPC API.

    Usage:
        async with LedgerRpc("https://api.mainnet-beta.solana.com") as rpc:
            lamports = await rpc.get_balance(address)
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        commitment: str = "confirmed",
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        """Return the SOL balance of `address` in lamports."""
        result = await self._call("getBalance", [address, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_token_account_balance(self, token_account: str) -> int:
        """
        Return the raw token amount held by an SPL token account.

        Raises:
            LedgerRpcError: if the account does not exist or is not a token account
        """
        result = await self._call(
            "getTokenAccountBalance", [token_account, {"commitment": self.commitment}]
        )
        return int(result["value"]["amount"])

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def get_multiple_accounts(self, addresses: list[str]) -> list[dict[str, Any] | None]:
        """
        Fetch account infos for `addresses`, preserving order.

        Missing accounts come back as None. Requests are split into chunks of
        MAX_ACCOUNTS_PER_REQUEST.
        """
        accounts: list[dict[str, Any] | None] = []
        for start in range(0, len(addresses), MAX_ACCOUNTS_PER_REQUEST):
            chunk = addresses[start:start + MAX_ACCOUNTS_PER_REQUEST]
            result = await self._call(
                "getMultipleAccounts",
                [chunk, {"encoding": "base64", "commitment": self.commitment}],
            )
            values = result["value"]
            if len(values) != len(chunk):
                raise LedgerRpcError(
                    f"getMultipleAccounts returned {len(values)} entries for {len(chunk)} keys"
                )
            accounts.extend(values)
        return accounts

    async def accounts_exist(self, addresses: list[str]) -> list[bool]:
        return [info is not None for info in await self.get_multiple_accounts(addresses)]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise LedgerRpcError(f"RPC transport error for {method}: {e}") from e
        if response.status_code != 200:
            raise LedgerRpcError(f"RPC error {response.status_code} for {method}: {response.text}")
        data = response.json()
        if data.get("error"):
            err = data["error"]
            raise LedgerRpcError(f"RPC {method} failed: {err.get('message', err)}")
        logger.debug(f"RPC {method} ok")
        return data["result"]

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> LedgerRpc:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()
