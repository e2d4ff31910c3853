"""
RelayerClient: async client for the Privacy Cash relayer/indexer HTTP API.

The indexer serves the Merkle tree state, inclusion proofs and the
append-only log of encrypted outputs; the relayer submits proved
transactions on the user's behalf.

Endpoints:
    GET  /merkle/root[?token=]              -> {root, nextIndex}
    GET  /merkle/proof/{commitment}[?token=] -> {pathElements, pathIndices}
    GET  /utxos/range?start&end[&token=]    -> {encrypted_outputs, hasMore, total}
    POST /utxos/indices                     -> {indices}
    GET  /utxos/check/{hex}[?token=]        -> {exists}
    POST /deposit, /deposit/spl             -> {signature}
    POST /withdraw, /withdraw/spl           -> {signature}
    GET  /config                            -> fee configuration
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from privacy_cash.core.constants import RELAYER_API_URL
from privacy_cash.core.errors import ApiError
from privacy_cash.core.models import FeeConfig, TreeState
from privacy_cash.crypto.merkle import MerklePath

logger = logging.getLogger("privacy_cash.relayer")


@dataclass
class UtxoPage:
    """One page of the encrypted-output log."""
    encrypted_outputs: list[str] = field(default_factory=list)
    has_more: bool = False
    total: int = 0

    def __len__(self) -> int:
        return len(self.encrypted_outputs)


class RelayerClient:
    """
    Async client for the relayer/indexer.

    Usage:
        async with RelayerClient() as relayer:
            state = await relayer.get_tree_state()
            page = await relayer.get_utxo_range(0, 20_000)
    """

    def __init__(
        self,
        base_url: str = RELAYER_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Merkle tree
    # ------------------------------------------------------------------

    async def get_tree_state(self, token: str | None = None) -> TreeState:
        """Current root and next free leaf index of the (per-token) tree."""
        data = await self._get("/merkle/root", params=_token_params(token))
        try:
            state = TreeState.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Failed to parse tree state: {e}") from e
        logger.debug(f"Fetched root {state.root}, nextIndex {state.next_index}")
        return state

    async def get_merkle_proof(self, commitment: int | str, token: str | None = None) -> MerklePath:
        data = await self._get(f"/merkle/proof/{commitment}", params=_token_params(token))
        try:
            return MerklePath.from_api(data["pathElements"], data["pathIndices"])
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Failed to parse Merkle proof: {e}") from e

    # ------------------------------------------------------------------
    # Encrypted output log
    # ------------------------------------------------------------------

    async def get_utxo_range(self, start: int, end: int, token: str | None = None) -> UtxoPage:
        """
        Fetch encrypted outputs in [start, end).

        Also accepts the legacy response shape, a bare array of
        `{commitment, encrypted_output, index}` objects, which is always the
        last page.
        """
        params: dict[str, Any] = {"start": start, "end": end}
        params.update(_token_params(token))
        data = await self._get("/utxos/range", params=params)

        if isinstance(data, dict) and "encrypted_outputs" in data:
            outputs = data["encrypted_outputs"] or []
            return UtxoPage(
                encrypted_outputs=[str(o) for o in outputs],
                has_more=bool(data.get("hasMore", False)),
                total=int(data.get("total") or 0),
            )
        if isinstance(data, list):
            outputs = [
                str(item["encrypted_output"])
                for item in data
                if isinstance(item, dict) and item.get("encrypted_output")
            ]
            return UtxoPage(encrypted_outputs=outputs, has_more=False, total=len(outputs))
        raise ApiError("Unexpected /utxos/range response format")

    async def get_utxo_indices(self, encrypted_outputs: list[str], token: str | None = None) -> list[int]:
        """Resolve the tree index of each encrypted output."""
        body: dict[str, Any] = {"encrypted_outputs": encrypted_outputs}
        if token:
            body["token"] = token
        data = await self._post("/utxos/indices", body)
        try:
            return [int(i) for i in data["indices"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Failed to parse indices: {e}") from e

    async def check_utxo_exists(self, encrypted_hex: str, token: str | None = None) -> bool:
        data = await self._get(f"/utxos/check/{encrypted_hex}", params=_token_params(token))
        return bool(isinstance(data, dict) and data.get("exists", False))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_deposit(
        self,
        signed_transaction: str,
        sender: str,
        referrer: str | None = None,
    ) -> str:
        body: dict[str, Any] = {"signedTransaction": signed_transaction, "senderAddress": sender}
        if referrer:
            body["referralWalletAddress"] = referrer
        return _signature(await self._post("/deposit", body))

    async def submit_deposit_spl(
        self,
        signed_transaction: str,
        sender: str,
        mint: str,
        referrer: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "signedTransaction": signed_transaction,
            "senderAddress": sender,
            "mintAddress": mint,
        }
        if referrer:
            body["referralWalletAddress"] = referrer
        return _signature(await self._post("/deposit/spl", body))

    async def submit_withdraw(self, payload: dict[str, Any], spl: bool = False) -> str:
        """Relay a proved withdrawal; the relayer pays the transaction cost."""
        return _signature(await self._post("/withdraw/spl" if spl else "/withdraw", payload))

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def get_config(self) -> FeeConfig:
        data = await self._get("/config")
        try:
            return FeeConfig.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Failed to parse config: {e}") from e

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {url} failed: {e}") from e
        return _decode(response, url)

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(url, json=body)
        except httpx.HTTPError as e:
            raise ApiError(f"Request to {url} failed: {e}") from e
        return _decode(response, url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RelayerClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()


def _token_params(token: str | None) -> dict[str, str]:
    return {"token": token} if token else {}


def _decode(response: httpx.Response, url: str) -> Any:
    if not response.is_success:
        raise ApiError(
            f"API error {response.status_code} for {url}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
    try:
        return response.json()
    except ValueError as e:
        raise ApiError(f"Invalid JSON from {url}", status_code=response.status_code, body=response.text) from e


def _signature(data: Any) -> str:
    if not isinstance(data, dict) or not data.get("signature"):
        raise ApiError(f"Relayer response missing signature: {data!r}")
    return str(data["signature"])
