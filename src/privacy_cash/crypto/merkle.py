"""
Fixed-depth incremental Merkle tree over field elements.

Leaves are commitments in insertion order. Only the occupied part of each layer
is materialised; a missing sibling is the zero value of its level
(zeros[0] = zero_element, zeros[i] = Hash([zeros[i-1], zeros[i-1]])), so an
empty depth-26 tree costs 27 hashes rather than 2^26.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from privacy_cash.core.constants import MERKLE_TREE_DEPTH
from privacy_cash.core.errors import MerkleProofError, TreeFullError
from privacy_cash.crypto.hasher import FieldHasher, FieldInput, field_hash, to_field_int


@dataclass
class MerklePath:
    """Siblings from leaf to root, and whether the node is a left (0) or right (1) child."""
    path_elements: list[int] = field(default_factory=list)
    path_indices: list[int] = field(default_factory=list)

    @classmethod
    def zero(cls, levels: int = MERKLE_TREE_DEPTH) -> MerklePath:
        """All-zero path used for dummy inputs with no tree position."""
        return cls(path_elements=[0] * levels, path_indices=[0] * levels)

    @classmethod
    def from_api(cls, path_elements: list[FieldInput], path_indices: list[int]) -> MerklePath:
        return cls(
            path_elements=[to_field_int(e) for e in path_elements],
            path_indices=[int(i) for i in path_indices],
        )

    def leaf_index(self) -> int:
        """Leaf position encoded by the direction bits."""
        return sum(bit << level for level, bit in enumerate(self.path_indices))

    def compute_root(self, leaf: FieldInput, hasher: FieldHasher | None = None) -> int:
        if len(self.path_elements) != len(self.path_indices):
            raise MerkleProofError(
                f"Path has {len(self.path_elements)} elements but {len(self.path_indices)} indices"
            )
        current = to_field_int(leaf)
        for sibling, bit in zip(self.path_elements, self.path_indices):
            if bit == 0:
                current = field_hash([current, sibling], hasher)
            else:
                current = field_hash([sibling, current], hasher)
        return current

    def verify(self, leaf: FieldInput, expected_root: FieldInput, hasher: FieldHasher | None = None) -> bool:
        return self.compute_root(leaf, hasher) == to_field_int(expected_root)


class MerkleTree:
    """
    Append-only Merkle accumulator.

    Usage:
        tree = MerkleTree(26)
        index = tree.insert(commitment)
        assert tree.path(index).verify(commitment, tree.root())
    """

    def __init__(
        self,
        levels: int = MERKLE_TREE_DEPTH,
        elements: Iterable[FieldInput] = (),
        zero_element: int = 0,
        hasher: FieldHasher | None = None,
    ) -> None:
        if levels < 1:
            raise MerkleProofError("Tree must have at least one level")
        self.levels = levels
        self.capacity = 1 << levels
        self.zero_element = zero_element
        self.hasher = hasher

        self._zeros = [zero_element]
        for level in range(1, levels + 1):
            prev = self._zeros[level - 1]
            self._zeros.append(self._hash(prev, prev))

        leaves = [to_field_int(e) for e in elements]
        if len(leaves) > self.capacity:
            raise TreeFullError(f"{len(leaves)} elements exceed tree capacity {self.capacity}")
        self._layers: list[list[int]] = [leaves] + [[] for _ in range(levels)]
        self._rebuild()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def root(self) -> int:
        top = self._layers[self.levels]
        return top[0] if top else self._zeros[self.levels]

    @property
    def next_index(self) -> int:
        return len(self._layers[0])

    def zeros(self) -> list[int]:
        return list(self._zeros)

    def elements(self) -> list[int]:
        return list(self._layers[0])

    def index_of(self, leaf: FieldInput) -> int | None:
        try:
            return self._layers[0].index(to_field_int(leaf))
        except ValueError:
            return None

    def __len__(self) -> int:
        return len(self._layers[0])

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(self, leaf: FieldInput) -> int:
        """Append `leaf` and return its index."""
        index = len(self._layers[0])
        if index >= self.capacity:
            raise TreeFullError(f"Tree is full ({self.capacity} leaves)")
        self.update(index, leaf)
        return index

    def update(self, index: int, leaf: FieldInput) -> None:
        """Set leaf `index` and recompute its ancestors."""
        if index < 0 or index >= self.capacity:
            raise MerkleProofError(f"Index {index} out of bounds")

        leaves = self._layers[0]
        while len(leaves) <= index:
            leaves.append(self.zero_element)
        leaves[index] = to_field_int(leaf)

        for level in range(1, self.levels + 1):
            index >>= 1
            below = self._layers[level - 1]
            left = self._node(below, index * 2, level - 1)
            right = self._node(below, index * 2 + 1, level - 1)

            layer = self._layers[level]
            while len(layer) <= index:
                layer.append(self._zeros[level])
            layer[index] = self._hash(left, right)

    def bulk_insert(self, leaves: Iterable[FieldInput]) -> None:
        """Append many leaves and rebuild every upper layer once."""
        new = [to_field_int(leaf) for leaf in leaves]
        if len(self._layers[0]) + len(new) > self.capacity:
            raise TreeFullError(f"Tree is full ({self.capacity} leaves)")
        self._layers[0].extend(new)
        self._rebuild()

    # ------------------------------------------------------------------
    # Proofs
    # ------------------------------------------------------------------

    def path(self, index: int) -> MerklePath:
        if index < 0 or index >= len(self._layers[0]):
            raise MerkleProofError(f"Index {index} out of bounds")
        elements: list[int] = []
        indices: list[int] = []
        for level in range(self.levels):
            indices.append(index % 2)
            elements.append(self._node(self._layers[level], index ^ 1, level))
            index >>= 1
        return MerklePath(path_elements=elements, path_indices=indices)

    def verify(self, index: int, leaf: FieldInput) -> bool:
        return self.path(index).verify(leaf, self.root(), self.hasher)

    @staticmethod
    def zero_path(levels: int = MERKLE_TREE_DEPTH) -> MerklePath:
        return MerklePath.zero(levels)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _hash(self, left: int, right: int) -> int:
        return field_hash([left, right], self.hasher)

    def _node(self, layer: list[int], position: int, level: int) -> int:
        return layer[position] if position < len(layer) else self._zeros[level]

    def _rebuild(self) -> None:
        for level in range(1, self.levels + 1):
            below = self._layers[level - 1]
            self._layers[level] = [
                self._hash(below[i], self._node(below, i + 1, level - 1))
                for i in range(0, len(below), 2)
            ]
