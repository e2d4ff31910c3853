"""
Adapter for the external Groth16 prover.

Proving is a black box: a circuit input goes in, a proof and the public
signals come out. `SnarkjsProver` drives the `snarkjs` CLI
(`groth16 fullprove`) in a subprocess against `<circuit>.wasm` and
`<circuit>.zkey`. Anything implementing `Prover` can be used instead.

Proofs are deterministic for a given input, so a failure is final and never
retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from privacy_cash.core.errors import ProofGenerationError, SerializationError

logger = logging.getLogger("privacy_cash.prover")

MAX_PUBLIC_SIGNALS = 7


@dataclass
class ProofResult:
    """snarkjs-shaped proof (`pi_a`, `pi_b`, `pi_c`) plus decimal public signals."""
    proof: dict[str, Any]
    public_signals: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProofBytes:
    proof_a: bytes
    proof_b: bytes
    proof_c: bytes


class Prover(Protocol):
    async def prove(self, circuit_input: dict[str, Any]) -> ProofResult: ...


class SnarkjsProver:
    """
    Usage:
        prover = SnarkjsProver("./circuit/transaction2")
        result = await prover.prove(circuit_input.to_prover_input())
    """

    def __init__(self, circuit_path: str | Path, snarkjs: str = "snarkjs", timeout: float = 300.0) -> None:
        base = Path(circuit_path).expanduser()
        self.wasm_path = base.with_suffix(".wasm")
        self.zkey_path = base.with_suffix(".zkey")
        self.snarkjs = snarkjs
        self.timeout = timeout

    async def prove(self, circuit_input: dict[str, Any]) -> ProofResult:
        for artifact in (self.wasm_path, self.zkey_path):
            if not artifact.is_file():
                raise ProofGenerationError(f"Circuit artifact not found: {artifact}")
        executable = shutil.which(self.snarkjs)
        if executable is None:
            raise ProofGenerationError(f"Prover executable not found: {self.snarkjs}")

        with tempfile.TemporaryDirectory(prefix="privacy-cash-proof-") as workdir:
            work = Path(workdir)
            input_path = work / "input.json"
            proof_path = work / "proof.json"
            public_path = work / "public.json"
            input_path.write_text(json.dumps(circuit_input), encoding="utf-8")

            logger.info("Generating proof...")
            process = await asyncio.create_subprocess_exec(
                executable, "groth16", "fullprove",
                str(input_path), str(self.wasm_path), str(self.zkey_path),
                str(proof_path), str(public_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise ProofGenerationError(f"Prover timed out after {self.timeout}s") from None

            if process.returncode != 0:
                raise ProofGenerationError(
                    f"Prover exited with {process.returncode}: {stderr.decode(errors='replace').strip()}"
                )
            try:
                proof = json.loads(proof_path.read_text(encoding="utf-8"))
                public_signals = json.loads(public_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise ProofGenerationError(f"Prover output unreadable: {e}") from e

        logger.info("Proof generated")
        return ProofResult(proof=proof, public_signals=[str(s) for s in public_signals])


# ------------------------------------------------------------------
# Wire encoding
# ------------------------------------------------------------------


def field_to_bytes_be(value: int | str) -> bytes:
    """32-byte big-endian encoding of a field element."""
    try:
        n = int(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Invalid field element: {value!r}") from e
    if n < 0 or n >= 1 << 256:
        raise SerializationError(f"Field element out of range: {value!r}")
    return n.to_bytes(32, "big")


def parse_proof_to_bytes(proof: dict[str, Any]) -> ProofBytes:
    """
    Encode a snarkjs proof for the on-chain verifier.

    A and C are (x, y); B is a G2 point whose coordinates are written with the
    c1 component first: x.c1, x.c0, y.c1, y.c0.
    """
    try:
        a = proof["pi_a"]
        b = proof["pi_b"]
        c = proof["pi_c"]
        proof_a = field_to_bytes_be(a[0]) + field_to_bytes_be(a[1])
        proof_b = (
            field_to_bytes_be(b[0][1]) + field_to_bytes_be(b[0][0])
            + field_to_bytes_be(b[1][1]) + field_to_bytes_be(b[1][0])
        )
        proof_c = field_to_bytes_be(c[0]) + field_to_bytes_be(c[1])
    except (KeyError, IndexError, TypeError) as e:
        raise SerializationError(f"Malformed proof: {e}") from e
    return ProofBytes(proof_a=proof_a, proof_b=proof_b, proof_c=proof_c)


def parse_public_signals_to_bytes(public_signals: list[int | str]) -> list[bytes]:
    return [field_to_bytes_be(s) for s in public_signals[:MAX_PUBLIC_SIGNALS]]
