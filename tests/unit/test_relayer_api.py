"""
Unit tests for privacy_cash.relayer.api — relayer/indexer HTTP client.
"""

import asyncio
import json

import httpx
import pytest

from privacy_cash.core.errors import ApiError
from privacy_cash.relayer.api import RelayerClient

BASE = "https://relayer.test"


def _client(handler):
    return RelayerClient(BASE, transport=httpx.MockTransport(handler))


def _run(coro):
    return asyncio.run(coro)


# ==============================================================================
# Tree endpoints
# ==============================================================================


class TestTreeEndpoints:

    def test_tree_state(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"root": "987654321", "nextIndex": 14})

        state = _run(_client(handler).get_tree_state(token="usdc"))
        assert state.root == 987654321
        assert state.next_index == 14
        assert seen[0].url.path == "/merkle/root"
        assert seen[0].url.params["token"] == "usdc"

    def test_native_requests_carry_no_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"root": 1, "nextIndex": 0})

        _run(_client(handler).get_tree_state())
        assert "token" not in seen[0].url.params

    def test_bad_tree_state(self):
        client = _client(lambda request: httpx.Response(200, json={"root": "x"}))
        with pytest.raises(ApiError, match="tree state"):
            _run(client.get_tree_state())

    def test_merkle_proof(self):
        def handler(request):
            assert request.url.path == "/merkle/proof/12345"
            return httpx.Response(200, json={"pathElements": ["1", "2"], "pathIndices": [0, 1]})

        path = _run(_client(handler).get_merkle_proof(12345))
        assert path.path_elements == [1, 2]
        assert path.path_indices == [0, 1]

    def test_malformed_merkle_proof(self):
        client = _client(lambda request: httpx.Response(200, json={"pathElements": ["1"]}))
        with pytest.raises(ApiError, match="Merkle proof"):
            _run(client.get_merkle_proof(1))


# ==============================================================================
# Encrypted output log
# ==============================================================================


class TestUtxoEndpoints:

    def test_range_page(self):
        def handler(request):
            assert request.url.params["start"] == "0"
            assert request.url.params["end"] == "20000"
            return httpx.Response(200, json={"encrypted_outputs": ["aa", "bb"], "hasMore": True, "total": 9})

        page = _run(_client(handler).get_utxo_range(0, 20_000))
        assert page.encrypted_outputs == ["aa", "bb"]
        assert page.has_more
        assert page.total == 9
        assert len(page) == 2

    def test_range_legacy_list(self):
        legacy = [
            {"commitment": "1", "encrypted_output": "aa", "index": 0},
            {"commitment": "2", "encrypted_output": "", "index": 1},
            {"commitment": "3", "encrypted_output": "cc", "index": 2},
        ]
        page = _run(_client(lambda request: httpx.Response(200, json=legacy)).get_utxo_range(0, 10))
        assert page.encrypted_outputs == ["aa", "cc"]
        assert not page.has_more

    def test_range_unexpected_shape(self):
        client = _client(lambda request: httpx.Response(200, json={"data": []}))
        with pytest.raises(ApiError, match="Unexpected"):
            _run(client.get_utxo_range(0, 10))

    def test_indices(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"indices": [4, "5"]})

        indices = _run(_client(handler).get_utxo_indices(["aa", "bb"], token="usdc"))
        assert indices == [4, 5]
        assert bodies[0] == {"encrypted_outputs": ["aa", "bb"], "token": "usdc"}

    def test_check_exists(self):
        def handler(request):
            return httpx.Response(200, json={"exists": request.url.path.endswith("/aa")})

        client = _client(handler)
        assert _run(client.check_utxo_exists("aa"))
        assert not _run(client.check_utxo_exists("bb"))


# ==============================================================================
# Submission
# ==============================================================================


class TestSubmission:

    def test_deposit_body(self):
        bodies = []

        def handler(request):
            bodies.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"signature": "5xSig"})

        client = _client(handler)
        assert _run(client.submit_deposit("dHg=", "Sender111")) == "5xSig"
        _run(client.submit_deposit("dHg=", "Sender111", referrer="Ref111"))
        assert bodies[0] == ("/deposit", {"signedTransaction": "dHg=", "senderAddress": "Sender111"})
        assert bodies[1][1]["referralWalletAddress"] == "Ref111"

    def test_spl_endpoints(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"signature": "sig"})

        client = _client(handler)
        _run(client.submit_deposit_spl("dHg=", "Sender111", "Mint111"))
        _run(client.submit_withdraw({"a": 1}, spl=True))
        _run(client.submit_withdraw({"a": 1}))
        assert paths == ["/deposit/spl", "/withdraw/spl", "/withdraw"]

    def test_missing_signature(self):
        client = _client(lambda request: httpx.Response(200, json={"success": True}))
        with pytest.raises(ApiError, match="signature"):
            _run(client.submit_withdraw({}))


# ==============================================================================
# Errors and config
# ==============================================================================


class TestErrors:

    def test_http_error_status(self):
        client = _client(lambda request: httpx.Response(503, text="maintenance"))
        with pytest.raises(ApiError) as exc_info:
            _run(client.get_tree_state())
        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "maintenance"

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ApiError, match="failed"):
            _run(_client(handler).get_tree_state())

    def test_invalid_json(self):
        client = _client(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ApiError, match="Invalid JSON"):
            _run(client.get_config())

    def test_config(self):
        payload = {
            "withdraw_fee_rate": 0.0035,
            "withdraw_rent_fee": 0.006,
            "deposit_fee_rate": 0,
            "rent_fees": {"usdc": 0.75},
        }
        config = _run(_client(lambda request: httpx.Response(200, json=payload)).get_config())
        assert config.withdraw_rent_fee == 0.006
        assert config.rent_fees["usdc"] == 0.75

    def test_base_url_trailing_slash(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={})

        client = RelayerClient(BASE + "/", transport=httpx.MockTransport(handler))
        _run(client.get_config())
        assert seen == [BASE + "/config"]

    def test_context_manager_closes(self):
        async def scenario():
            async with _client(lambda request: httpx.Response(200, json={})) as client:
                pass
            return client

        client = _run(scenario())
        assert client._client.is_closed
