"""
Deposit and withdraw assembly.

Every operation is a 2-in/2-out shielded transaction:

    inputs:  up to two of the wallet's unspent UTXOs, padded with dummies
    outputs: the new balance at tree index `next_index`, and a zero-value
             placeholder at `next_index + 1`
    balance: sum(inputs) + public_amount == sum(outputs)
             public_amount = (ext_amount - fee) mod FIELD_SIZE

The external data (recipient, amounts, encrypted outputs, fee recipient,
mint) is hashed into the proof, so the relayer cannot redirect funds or
change the fee after proving. The pipeline is strictly sequential:
preconditions -> inputs -> outputs -> proof -> instruction -> relay ->
wait for the indexer to see the new outputs.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import struct
from dataclasses import dataclass, field
from typing import Any

from privacy_cash.core.address import (
    decode_address,
    find_cross_check_nullifier_pdas,
    find_nullifier_pdas,
    get_associated_token_address,
    get_program_accounts,
    get_spl_tree_account,
)
from privacy_cash.core.constants import (
    CONFIRMATION_INTERVAL_SECONDS,
    CONFIRMATION_MAX_RETRIES,
    FEE_RECIPIENT,
    FIELD_SIZE,
    MIN_SOL_FOR_FEES,
    PROGRAM_ID,
    SOL_MINT,
    SYSTEM_PROGRAM_ID,
    TRANSACT_IX_DISCRIMINATOR,
    TRANSACT_SPL_IX_DISCRIMINATOR,
    find_token_by_mint,
)
from privacy_cash.core.errors import (
    ApiError,
    ConfirmationTimeout,
    InsufficientBalance,
    InsufficientTokenBalance,
    SerializationError,
    SpendLimitExceeded,
    TokenNotSupported,
)
from privacy_cash.core.ledger import LedgerRpc
from privacy_cash.core.models import DepositResult, TokenInfo, WithdrawResult
from privacy_cash.core.wallet import Wallet
from privacy_cash.crypto.encryption import EncryptionService
from privacy_cash.crypto.keypair import Keypair
from privacy_cash.crypto.merkle import MerklePath
from privacy_cash.crypto.utxo import Utxo, UtxoVersion, asset_field
from privacy_cash.pool.prover import (
    ProofBytes,
    Prover,
    parse_proof_to_bytes,
    parse_public_signals_to_bytes,
)
from privacy_cash.pool.scanner import UtxoScanner
from privacy_cash.relayer.api import RelayerClient
from privacy_cash.relayer.fees import FeeConfigService

logger = logging.getLogger("privacy_cash.transaction")

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_U64_MAX = (1 << 64) - 1


def calculate_public_amount(ext_amount: int, fee: int) -> int:
    """
    (ext_amount - fee) mod FIELD_SIZE

    Negative values (withdrawals) wrap around the field:
    calculate_public_amount(-1000, 100) == FIELD_SIZE - 1100.
    """
    return (ext_amount - fee) % FIELD_SIZE


# ==============================================================================
# External data
# ==============================================================================


@dataclass
class ExtData:
    """Externally visible effect of a transaction, bound into the proof by its hash."""
    recipient: str
    ext_amount: int
    encrypted_output1: bytes
    encrypted_output2: bytes
    fee: int
    fee_recipient: str
    mint: str

    def serialize(self) -> bytes:
        """
        Borsh layout: recipient[32] | ext_amount i64 | enc1 Vec<u8> |
        enc2 Vec<u8> | fee u64 | fee_recipient[32] | mint[32]
        """
        if not _I64_MIN <= self.ext_amount <= _I64_MAX:
            raise SerializationError(f"ext_amount out of i64 range: {self.ext_amount}")
        if not 0 <= self.fee <= _U64_MAX:
            raise SerializationError(f"fee out of u64 range: {self.fee}")
        return b"".join([
            decode_address(self.recipient),
            struct.pack("<q", self.ext_amount),
            struct.pack("<I", len(self.encrypted_output1)),
            self.encrypted_output1,
            struct.pack("<I", len(self.encrypted_output2)),
            self.encrypted_output2,
            struct.pack("<Q", self.fee),
            decode_address(self.fee_recipient),
            decode_address(self.mint),
        ])

    def hash(self) -> bytes:
        return hashlib.sha256(self.serialize()).digest()

    def hash_field(self) -> int:
        """The hash as the circuit's `extDataHash` public input."""
        return int.from_bytes(self.hash(), "big") % FIELD_SIZE


# ==============================================================================
# Circuit input
# ==============================================================================


@dataclass
class CircuitInput:
    root: int
    input_nullifier: list[int]
    output_commitment: list[int]
    public_amount: int
    ext_data_hash: int
    in_amount: list[int]
    in_private_key: list[int]
    in_blinding: list[int]
    in_path_indices: list[int]
    in_path_elements: list[list[int]]
    out_amount: list[int]
    out_blinding: list[int]
    out_pubkey: list[int]
    mint_address: int

    @classmethod
    def build(
        cls,
        root: int,
        inputs: list[Utxo],
        input_paths: list[MerklePath],
        outputs: list[Utxo],
        public_amount: int,
        ext_data_hash: int,
        mint: str,
    ) -> CircuitInput:
        return cls(
            root=root,
            input_nullifier=[u.nullifier() for u in inputs],
            output_commitment=[u.commitment() for u in outputs],
            public_amount=public_amount,
            ext_data_hash=ext_data_hash,
            in_amount=[u.amount for u in inputs],
            in_private_key=[u.keypair.private for u in inputs],
            in_blinding=[u.blinding for u in inputs],
            in_path_indices=[u.index for u in inputs],
            in_path_elements=[p.path_elements for p in input_paths],
            out_amount=[u.amount for u in outputs],
            out_blinding=[u.blinding for u in outputs],
            out_pubkey=[u.keypair.public for u in outputs],
            mint_address=asset_field(mint),
        )

    def to_prover_input(self) -> dict[str, Any]:
        """Circuit signal names mapped to decimal strings."""
        return {
            "root": str(self.root),
            "inputNullifier": _dec(self.input_nullifier),
            "outputCommitment": _dec(self.output_commitment),
            "publicAmount": str(self.public_amount),
            "extDataHash": str(self.ext_data_hash),
            "inAmount": _dec(self.in_amount),
            "inPrivateKey": _dec(self.in_private_key),
            "inBlinding": _dec(self.in_blinding),
            "inPathIndices": _dec(self.in_path_indices),
            "inPathElements": [_dec(path) for path in self.in_path_elements],
            "outAmount": _dec(self.out_amount),
            "outBlinding": _dec(self.out_blinding),
            "outPubkey": _dec(self.out_pubkey),
            "mintAddress": str(self.mint_address),
        }


def _dec(values: list[int]) -> list[str]:
    return [str(v) for v in values]


def serialize_instruction(
    discriminator: bytes,
    proof: ProofBytes,
    public_signals: list[bytes],
    ext_data: ExtData,
) -> bytes:
    """
    discriminator(8) | proof_a(64) | proof_b(128) | proof_c(64) |
    public signals (<= 7 x 32) | ext_amount i64 | fee u64 |
    u32 len | enc1 | u32 len | enc2
    """
    return b"".join([
        discriminator,
        proof.proof_a,
        proof.proof_b,
        proof.proof_c,
        *public_signals[:7],
        struct.pack("<q", ext_data.ext_amount),
        struct.pack("<Q", ext_data.fee),
        struct.pack("<I", len(ext_data.encrypted_output1)),
        ext_data.encrypted_output1,
        struct.pack("<I", len(ext_data.encrypted_output2)),
        ext_data.encrypted_output2,
    ])


@dataclass
class PreparedTransaction:
    """Everything produced between input selection and submission."""
    ext_data: ExtData
    instruction: bytes
    inputs: list[Utxo]
    outputs: list[Utxo]
    nullifiers: list[int] = field(default_factory=list)

    @property
    def instruction_b64(self) -> str:
        return base64.b64encode(self.instruction).decode("ascii")


# ==============================================================================
# Builder
# ==============================================================================


class TransactionBuilder:
    """
    Builds, proves, relays and confirms deposits and withdrawals for one wallet.

    Usage:
        builder = TransactionBuilder(wallet, relayer, ledger, scanner, encryption, prover, fees)
        result = await builder.deposit(10_000_000)
    """

    def __init__(
        self,
        wallet: Wallet,
        relayer: RelayerClient,
        ledger: LedgerRpc,
        scanner: UtxoScanner,
        encryption: EncryptionService,
        prover: Prover,
        fees: FeeConfigService,
        program_id: str = PROGRAM_ID,
        confirmation_retries: int = CONFIRMATION_MAX_RETRIES,
        confirmation_interval: float = CONFIRMATION_INTERVAL_SECONDS,
    ) -> None:
        self.wallet = wallet
        self.relayer = relayer
        self.ledger = ledger
        self.scanner = scanner
        self.encryption = encryption
        self.prover = prover
        self.fees = fees
        self.program_id = program_id
        self.confirmation_retries = confirmation_retries
        self.confirmation_interval = confirmation_interval

    # ------------------------------------------------------------------
    # Deposit
    # ------------------------------------------------------------------

    async def deposit(self, amount: int, referrer: str | None = None) -> DepositResult:
        """Shield `amount` lamports from the wallet's public balance."""
        _require_positive(amount)
        fee = await self.fees.deposit_fee(amount)
        logger.info(f"Starting deposit of {amount} lamports (fee {fee})")

        need = amount + fee + MIN_SOL_FOR_FEES
        have = await self.ledger.get_balance(self.wallet.address)
        if have < need:
            raise InsufficientBalance(need=need, have=have)

        existing = await self.scanner.get_utxos(self.wallet.address)
        prepared = await self._prepare(
            existing=existing,
            ext_amount=amount,
            fee=fee,
            recipient=SYSTEM_PROGRAM_ID,
            fee_recipient=FEE_RECIPIENT,
            mint=SOL_MINT,
            token=None,
        )

        logger.info("Submitting deposit to relayer...")
        signature = await self.relayer.submit_deposit(
            prepared.instruction_b64, self.wallet.address, referrer=referrer
        )
        logger.info(f"Deposit relayed: {signature}")
        await self._wait_for_confirmation(prepared.ext_data.encrypted_output1, token=None)
        return DepositResult(signature=signature, amount=amount, fee=fee)

    async def deposit_spl(self, amount: int, mint: str, referrer: str | None = None) -> DepositResult:
        """Shield `amount` base units of a supported SPL token."""
        _require_positive(amount)
        token = _require_token(mint)
        fee = await self.fees.deposit_fee(amount)
        logger.info(f"Starting {token.name} deposit of {amount} base units (fee {fee})")

        token_account = get_associated_token_address(self.wallet.address, mint)
        token_balance = await self.ledger.get_token_account_balance(token_account)
        if token_balance < amount + fee:
            raise InsufficientTokenBalance(token=token.name, need=amount + fee, have=token_balance)
        sol_balance = await self.ledger.get_balance(self.wallet.address)
        if sol_balance < MIN_SOL_FOR_FEES:
            raise InsufficientBalance(need=MIN_SOL_FOR_FEES, have=sol_balance)

        existing = await self.scanner.get_utxos_spl(self.wallet.address, mint)
        prepared = await self._prepare(
            existing=existing,
            ext_amount=amount,
            fee=fee,
            recipient=get_associated_token_address(SYSTEM_PROGRAM_ID, mint),
            fee_recipient=get_associated_token_address(FEE_RECIPIENT, mint),
            mint=mint,
            token=token,
        )

        logger.info("Submitting SPL deposit to relayer...")
        signature = await self.relayer.submit_deposit_spl(
            prepared.instruction_b64, self.wallet.address, mint, referrer=referrer
        )
        logger.info(f"SPL deposit relayed: {signature}")
        await self._wait_for_confirmation(prepared.ext_data.encrypted_output1, token=token.name)
        return DepositResult(signature=signature, amount=amount, fee=fee, mint=mint)

    # ------------------------------------------------------------------
    # Withdraw
    # ------------------------------------------------------------------

    async def withdraw(
        self,
        amount: int,
        recipient: str | None = None,
        referrer: str | None = None,
    ) -> WithdrawResult:
        """
        Unshield `amount` lamports to `recipient` (default: the wallet).

        The relayer fee comes out of `amount`: the recipient receives
        `amount - fee` and the private balance shrinks by `amount`.
        """
        _require_positive(amount)
        recipient = recipient or self.wallet.address
        fee = await self.fees.withdraw_fee(amount)
        _require_above_fee(amount, fee)
        logger.info(f"Starting withdrawal of {amount} lamports to {recipient} (fee {fee})")

        existing = await self.scanner.get_utxos(self.wallet.address)
        inputs = _require_covered(existing, amount)

        prepared = await self._prepare(
            existing=inputs,
            ext_amount=-(amount - fee),
            fee=fee,
            recipient=recipient,
            fee_recipient=FEE_RECIPIENT,
            mint=SOL_MINT,
            token=None,
        )
        payload = self._withdraw_payload(prepared, recipient, mint=None, referrer=referrer)

        logger.info("Submitting withdrawal to relayer...")
        signature = await self.relayer.submit_withdraw(payload)
        logger.info(f"Withdrawal relayed: {signature}")
        await self._wait_for_confirmation(prepared.ext_data.encrypted_output1, token=None)
        return WithdrawResult(signature=signature, recipient=recipient, amount=amount - fee, fee=fee)

    async def withdraw_spl(
        self,
        amount: int,
        mint: str,
        recipient: str | None = None,
        referrer: str | None = None,
    ) -> WithdrawResult:
        _require_positive(amount)
        token = _require_token(mint)
        recipient = recipient or self.wallet.address
        fee = await self.fees.withdraw_fee(amount, token=token)
        _require_above_fee(amount, fee)
        logger.info(f"Starting {token.name} withdrawal of {amount} base units to {recipient} (fee {fee})")

        existing = await self.scanner.get_utxos_spl(self.wallet.address, mint)
        inputs = _require_covered(existing, amount)

        prepared = await self._prepare(
            existing=inputs,
            ext_amount=-(amount - fee),
            fee=fee,
            recipient=get_associated_token_address(recipient, mint),
            fee_recipient=get_associated_token_address(FEE_RECIPIENT, mint),
            mint=mint,
            token=token,
        )
        payload = self._withdraw_payload(prepared, recipient, mint=mint, referrer=referrer)

        logger.info("Submitting SPL withdrawal to relayer...")
        signature = await self.relayer.submit_withdraw(payload, spl=True)
        logger.info(f"SPL withdrawal relayed: {signature}")
        await self._wait_for_confirmation(prepared.ext_data.encrypted_output1, token=token.name)
        return WithdrawResult(
            signature=signature, recipient=recipient, amount=amount - fee, fee=fee, mint=mint
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _prepare(
        self,
        existing: list[Utxo],
        ext_amount: int,
        fee: int,
        recipient: str,
        fee_recipient: str,
        mint: str,
        token: TokenInfo | None,
    ) -> PreparedTransaction:
        token_name = token.name if token else None
        tree_state = await self.relayer.get_tree_state(token=token_name)
        keypair = self.encryption.utxo_keypair(UtxoVersion.V2)

        inputs, input_paths = await self._select_inputs(existing, keypair, mint, token_name)
        public_amount = calculate_public_amount(ext_amount, fee)

        change = sum(u.amount for u in inputs) + ext_amount - fee
        if change < 0:
            raise InsufficientBalance(need=-(ext_amount - fee), have=sum(u.amount for u in inputs))
        outputs = [
            Utxo.new(change, keypair, index=tree_state.next_index, asset_id=mint),
            Utxo.new(0, keypair, index=tree_state.next_index + 1, asset_id=mint),
        ]

        ext_data = ExtData(
            recipient=recipient,
            ext_amount=ext_amount,
            encrypted_output1=self.encryption.encrypt_utxo(outputs[0]),
            encrypted_output2=self.encryption.encrypt_utxo(outputs[1]),
            fee=fee,
            fee_recipient=fee_recipient,
            mint=mint,
        )
        circuit_input = CircuitInput.build(
            root=tree_state.root,
            inputs=inputs,
            input_paths=input_paths,
            outputs=outputs,
            public_amount=public_amount,
            ext_data_hash=ext_data.hash_field(),
            mint=mint,
        )

        result = await self.prover.prove(circuit_input.to_prover_input())
        proof = parse_proof_to_bytes(result.proof)
        signals = parse_public_signals_to_bytes(result.public_signals)
        discriminator = TRANSACT_SPL_IX_DISCRIMINATOR if token else TRANSACT_IX_DISCRIMINATOR

        return PreparedTransaction(
            ext_data=ext_data,
            instruction=serialize_instruction(discriminator, proof, signals, ext_data),
            inputs=inputs,
            outputs=outputs,
            nullifiers=circuit_input.input_nullifier,
        )

    async def _select_inputs(
        self,
        existing: list[Utxo],
        keypair: Keypair,
        mint: str,
        token_name: str | None,
    ) -> tuple[list[Utxo], list[MerklePath]]:
        """First two real UTXOs with live proofs, padded with dummies on zero paths."""
        inputs = list(existing[:2])
        while len(inputs) < 2:
            inputs.append(Utxo.dummy(keypair, asset_id=mint))

        paths: list[MerklePath] = []
        for utxo in inputs:
            if utxo.is_dummy:
                paths.append(MerklePath.zero())
            else:
                paths.append(await self.relayer.get_merkle_proof(utxo.commitment(), token=token_name))
        return inputs, paths

    def _withdraw_payload(
        self,
        prepared: PreparedTransaction,
        recipient: str,
        mint: str | None,
        referrer: str | None,
    ) -> dict[str, Any]:
        tree_account, tree_token_account, global_config_account = get_program_accounts(self.program_id)
        nullifier0_pda, nullifier1_pda = find_nullifier_pdas(prepared.nullifiers, self.program_id)
        nullifier2_pda, nullifier3_pda = find_cross_check_nullifier_pdas(prepared.nullifiers, self.program_id)
        ext = prepared.ext_data

        payload: dict[str, Any] = {
            "serializedProof": prepared.instruction_b64,
            "treeAccount": tree_account,
            "nullifier0PDA": nullifier0_pda,
            "nullifier1PDA": nullifier1_pda,
            "nullifier2PDA": nullifier2_pda,
            "nullifier3PDA": nullifier3_pda,
            "treeTokenAccount": tree_token_account,
            "globalConfigAccount": global_config_account,
            "recipient": recipient,
            "feeRecipientAccount": ext.fee_recipient,
            "extAmount": ext.ext_amount,
            "encryptedOutput1": base64.b64encode(ext.encrypted_output1).decode("ascii"),
            "encryptedOutput2": base64.b64encode(ext.encrypted_output2).decode("ascii"),
            "fee": ext.fee,
            "senderAddress": self.wallet.address,
        }
        if mint is not None:
            payload["mintAddress"] = mint
            payload["treeAccount"] = get_spl_tree_account(mint, self.program_id)
            payload["recipientTokenAccount"] = ext.recipient
        if referrer:
            payload["referralWalletAddress"] = referrer
        return payload

    async def _wait_for_confirmation(self, encrypted_output: bytes, token: str | None) -> None:
        """
        Poll the indexer until it reports `encrypted_output`.

        Raises:
            ConfirmationTimeout: after `confirmation_retries` attempts; the
                transaction may still land later
        """
        encrypted_hex = encrypted_output.hex()
        for attempt in range(1, self.confirmation_retries + 1):
            await asyncio.sleep(self.confirmation_interval)
            try:
                if await self.relayer.check_utxo_exists(encrypted_hex, token=token):
                    logger.info("Transaction confirmed by indexer")
                    return
            except ApiError as e:
                logger.debug(f"Confirmation check failed: {e}")
            logger.info(f"Confirming transaction... (retry {attempt})")
        raise ConfirmationTimeout(self.confirmation_retries)


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")


def _require_above_fee(amount: int, fee: int) -> None:
    if amount <= fee:
        raise ValueError(f"Amount {amount} does not cover the withdrawal fee {fee}")


def _require_token(mint: str) -> TokenInfo:
    token = find_token_by_mint(mint)
    if token is None:
        raise TokenNotSupported(mint)
    return token


def _largest_two(utxos: list[Utxo]) -> list[Utxo]:
    return sorted(utxos, key=lambda u: u.amount, reverse=True)[:2]


def max_spendable(utxos: list[Utxo]) -> int:
    """Largest amount one transaction can spend: the two largest UTXOs."""
    return sum(u.amount for u in _largest_two(utxos))


def _require_covered(utxos: list[Utxo], amount: int) -> list[Utxo]:
    """
    Pick the two largest UTXOs for `amount`.

    Raises:
        InsufficientBalance: the whole private balance is below `amount`
        SpendLimitExceeded: the balance covers `amount` but two UTXOs do not
    """
    balance = sum(u.amount for u in utxos)
    if balance < amount:
        raise InsufficientBalance(need=amount, have=balance)
    inputs = _largest_two(utxos)
    spendable = sum(u.amount for u in inputs)
    if spendable < amount:
        raise SpendLimitExceeded(need=amount, spendable=spendable, balance=balance)
    return inputs
