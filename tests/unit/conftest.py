"""
Shared fakes for the unit tests.

FakePool stands in for both remote services behind one httpx.MockTransport:
the relayer/indexer (Merkle tree, encrypted-output log, submission) and the
Solana JSON-RPC node (balances and nullifier accounts). Submitted instructions
are parsed back so that deposits and withdrawals really change the pool state.
"""

import base64
import json
import struct

import httpx
import pytest

from privacy_cash.core.address import find_nullifier_pdas, get_associated_token_address
from privacy_cash.core.config import ClientConfig
from privacy_cash.core.constants import MERKLE_TREE_DEPTH, USDC_MINT, find_token_by_mint
from privacy_cash.core.storage import MemoryStorage
from privacy_cash.core.wallet import Wallet
from privacy_cash.crypto.merkle import MerkleTree
from privacy_cash.crypto.utxo import Utxo
from privacy_cash.pool.client import PrivacyCashClient
from privacy_cash.pool.prover import ProofResult

RELAYER_URL = "https://relayer.test"
RPC_URL = "https://rpc.test"

# discriminator + proof_a + proof_b + proof_c
_PROOF_END = 8 + 64 + 128 + 64
_SIGNALS = 7


class FakeProver:
    """Echoes the circuit input back as public signals."""

    def __init__(self):
        self.calls = []

    async def prove(self, circuit_input):
        self.calls.append(circuit_input)
        signals = [
            circuit_input["root"],
            circuit_input["publicAmount"],
            circuit_input["extDataHash"],
            *circuit_input["inputNullifier"],
            *circuit_input["outputCommitment"],
        ]
        proof = {
            "pi_a": ["1", "2", "1"],
            "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
            "pi_c": ["7", "8", "1"],
        }
        return ProofResult(proof=proof, public_signals=signals)


def parse_instruction(instruction):
    """Split a transact instruction into (signals, ext_amount, fee, enc1, enc2)."""
    offset = _PROOF_END
    signals = [
        int.from_bytes(instruction[offset + 32 * i:offset + 32 * (i + 1)], "big")
        for i in range(_SIGNALS)
    ]
    offset += 32 * _SIGNALS
    ext_amount, fee = struct.unpack_from("<qQ", instruction, offset)
    offset += 16
    (len1,) = struct.unpack_from("<I", instruction, offset)
    offset += 4
    enc1 = instruction[offset:offset + len1]
    offset += len1
    (len2,) = struct.unpack_from("<I", instruction, offset)
    offset += 4
    enc2 = instruction[offset:offset + len2]
    return signals, ext_amount, fee, enc1, enc2


class FakePool:
    def __init__(self):
        self.trees = {}
        self.logs = {}
        self.created_accounts = set()
        self.balances = {}
        self.token_balances = {}
        self.config = {
            "withdraw_fee_rate": 0.0025,
            "withdraw_rent_fee": 0.001,
            "deposit_fee_rate": 0,
            "rent_fees": {"usdc": 0.5},
        }
        self.submissions = []
        self.confirm = True
        self.fail_paths = set()

    def tree(self, token):
        if token not in self.trees:
            self.trees[token] = MerkleTree(MERKLE_TREE_DEPTH)
            self.logs[token] = []
        return self.trees[token]

    def log(self, token):
        self.tree(token)
        return self.logs[token]

    def seed_output(self, service, amount, token=None, asset_id=None, index=None):
        """Append an output encrypted by `service`, as a confirmed transaction would."""
        log = self.log(token)
        position = len(log)
        kwargs = {"asset_id": asset_id} if asset_id else {}
        utxo = Utxo.new(amount, service.utxo_keypair(), index=position if index is None else index, **kwargs)
        self.tree(token).insert(utxo.commitment())
        log.append(service.encrypt_utxo(utxo).hex())
        utxo.index = position
        return utxo

    def transport(self):
        return httpx.MockTransport(self.handle)

    def handle(self, request):
        if any(request.url.path.startswith(p) for p in self.fail_paths):
            return httpx.Response(500, text="internal error")
        if request.url.host == "rpc.test":
            return self._rpc(json.loads(request.content))
        return self._relayer(request)

    # ------------------------------------------------------------------
    # Relayer / indexer
    # ------------------------------------------------------------------

    def _relayer(self, request):
        path = request.url.path
        token = request.url.params.get("token")

        if request.method == "GET" and path == "/merkle/root":
            tree = self.tree(token)
            return httpx.Response(200, json={"root": str(tree.root()), "nextIndex": tree.next_index})

        if request.method == "GET" and path.startswith("/merkle/proof/"):
            tree = self.tree(token)
            index = tree.index_of(int(path.rsplit("/", 1)[1]))
            if index is None:
                return httpx.Response(404, json={"error": "commitment not found"})
            proof = tree.path(index)
            return httpx.Response(200, json={
                "pathElements": [str(e) for e in proof.path_elements],
                "pathIndices": proof.path_indices,
            })

        if request.method == "GET" and path == "/utxos/range":
            log = self.log(token)
            start = int(request.url.params["start"])
            end = int(request.url.params["end"])
            return httpx.Response(200, json={
                "encrypted_outputs": log[start:end],
                "hasMore": end < len(log),
                "total": len(log),
            })

        if request.method == "POST" and path == "/utxos/indices":
            body = json.loads(request.content)
            log = self.log(body.get("token"))
            return httpx.Response(200, json={"indices": [log.index(o) for o in body["encrypted_outputs"]]})

        if request.method == "GET" and path.startswith("/utxos/check/"):
            exists = self.confirm and path.rsplit("/", 1)[1] in self.log(token)
            return httpx.Response(200, json={"exists": exists})

        if request.method == "POST" and path in ("/deposit", "/deposit/spl"):
            body = json.loads(request.content)
            token = _token_name(body.get("mintAddress"))
            self._apply(body["signedTransaction"], token, recipient=None)
            self.submissions.append((path, body))
            return httpx.Response(200, json={"signature": f"sig{len(self.submissions)}"})

        if request.method == "POST" and path in ("/withdraw", "/withdraw/spl"):
            body = json.loads(request.content)
            token = _token_name(body.get("mintAddress"))
            self._apply(body["serializedProof"], token, recipient=body["recipient"])
            self.submissions.append((path, body))
            return httpx.Response(200, json={"signature": f"sig{len(self.submissions)}"})

        if request.method == "GET" and path == "/config":
            return httpx.Response(200, json=self.config)

        return httpx.Response(404, json={"error": f"no route {path}"})

    def _apply(self, instruction_b64, token, recipient):
        signals, ext_amount, _fee, enc1, enc2 = parse_instruction(base64.b64decode(instruction_b64))
        _root, _public_amount, _ext_hash, null0, null1, comm0, comm1 = signals
        self.created_accounts.update(find_nullifier_pdas([null0, null1]))
        tree = self.tree(token)
        tree.insert(comm0)
        tree.insert(comm1)
        self.logs[token].extend([enc1.hex(), enc2.hex()])
        if recipient is not None and ext_amount < 0:
            self.balances[recipient] = self.balances.get(recipient, 0) - ext_amount

    # ------------------------------------------------------------------
    # Ledger JSON-RPC
    # ------------------------------------------------------------------

    def _rpc(self, payload):
        method = payload["method"]
        params = payload["params"]
        if method == "getBalance":
            result = {"value": self.balances.get(params[0], 0)}
        elif method == "getTokenAccountBalance":
            result = {"value": {"amount": str(self.token_balances.get(params[0], 0)), "decimals": 6}}
        elif method == "getMultipleAccounts":
            result = {"value": [
                {"lamports": 1, "owner": "pool"} if address in self.created_accounts else None
                for address in params[0]
            ]}
        else:
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": payload["id"], "error": {"code": -32601, "message": "Method not found"},
            })
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


def _token_name(mint):
    if not mint:
        return None
    return find_token_by_mint(mint).name


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def wallet():
    return Wallet.from_seed(bytes(range(32)))


@pytest.fixture
def pool():
    return FakePool()


@pytest.fixture
def prover():
    return FakeProver()


@pytest.fixture
def config():
    return ClientConfig(
        rpc_url=RPC_URL,
        relayer_url=RELAYER_URL,
        confirmation_retries=3,
        confirmation_interval=0,
        native_page_delay=0,
        spl_page_delay=0,
    )


@pytest.fixture
def make_client(wallet, pool, prover, config):
    def _make(storage=None, **overrides):
        return PrivacyCashClient(
            overrides.pop("wallet", wallet),
            config=config,
            storage=storage or MemoryStorage(),
            prover=prover,
            transport=pool.transport(),
            **overrides,
        )
    return _make


@pytest.fixture
def usdc_account(wallet, pool):
    ata = get_associated_token_address(wallet.address, USDC_MINT)
    pool.token_balances[ata] = 50_000_000
    return ata
