# -*- coding: utf-8 -*-
"""Weak-hash lookup table over a signature."""

from __future__ import annotations

from typing import Dict, List, Tuple

from .config import validate_block_size
from .models import Signature, SignatureEntry


class BlockIndex:
    """
    Mapping from weak hash to the signature entries that carry it.

    Distinct blocks may share a weak hash; all of them are kept as
    candidates, in signature (block_index) order. Read-only once built.

    Attributes:
        signature: The indexed signature
        block_size: Block size of the signature
        block_count: Number of blocks in the signature

    Example:
        >>> index = BlockIndex(signature)
        >>> for entry in index.lookup(weak):
        ...     if entry.strong_hash == strong:
        ...         print(f"Match found: block {entry.block_index}")
    """

    def __init__(self, signature: Signature) -> None:
        validate_block_size(signature.block_size)
        self.signature = signature
        self.block_size = signature.block_size
        self.block_count = signature.num_blocks
        self._table: Dict[int, List[SignatureEntry]] = {}
        for entry in signature.entries:
            self._table.setdefault(entry.weak_hash, []).append(entry)

    def lookup(self, weak_hash: int) -> Tuple[SignatureEntry, ...]:
        """All entries with this weak hash, earliest block first."""
        return tuple(self._table.get(weak_hash, ()))

    def candidates(self, weak_hash: int, length: int) -> List[SignatureEntry]:
        """
        Entries with this weak hash that cover exactly ``length`` bytes.

        A window can only match a block of its own length, which matters
        for the shorter final block and for the shrinking window at the
        end of the updated file.
        """
        bucket = self._table.get(weak_hash)
        if not bucket:
            return []
        return [entry for entry in bucket if entry.block_length == length]

    def __contains__(self, weak_hash: object) -> bool:
        return weak_hash in self._table

    def __len__(self) -> int:
        return self.block_count

    @property
    def bucket_count(self) -> int:
        """Number of distinct weak hashes."""
        return len(self._table)

    def __repr__(self) -> str:
        return (
            f"BlockIndex(blocks={self.block_count}, buckets={self.bucket_count}, "
            f"block_size={self.block_size})"
        )
