# -*- coding: utf-8 -*-
"""
Signature generation for a basis file.

The basis is cut into consecutive, non-overlapping blocks of
``block_size`` bytes (the last one may be shorter) and each block gets a
weak rolling checksum plus a strong digest.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterator, List, Optional, Tuple, Union

from .checksum import ChecksumRegistry, ChecksumType, RollingChecksum, StrongDigest
from .config import Config, logger, validate_block_size
from .errors import SignatureFormatError
from .models import Signature, SignatureEntry
from .streams import DataSource, SourceLike, as_source

# Blocks handed to the thread pool per batch, per worker
_BATCH_PER_WORKER = 64


class SignatureBuilder:
    """
    Build a :class:`Signature` from a basis byte stream.

    Hashing is independent per block, so with ``workers > 1`` blocks are
    hashed on a thread pool. Results are reassembled in block order, so
    the emitted signature is identical to the sequential one.

    Args:
        block_size: Block size in bytes (default: Config.DEFAULT_BLOCK_SIZE)
        checksum_type: Strong digest algorithm (default: Config.DEFAULT_CHECKSUM)
        workers: Hashing threads (default: Config.SIGNATURE_WORKERS)
        strong_digest: Explicit StrongDigest, overrides checksum_type
        rolling_factory: Callable returning a fresh RollingChecksum

    Raises:
        InvalidConfigError: If block_size is not a positive integer

    Example:
        >>> builder = SignatureBuilder(block_size=1024)
        >>> sig = builder.build(b"Hello, World!" * 100)
        >>> print(f"{sig.num_blocks} blocks")
        2 blocks
    """

    def __init__(self,
                 block_size: Optional[int] = None,
                 checksum_type: Union[str, ChecksumType, None] = None,
                 workers: Optional[int] = None,
                 strong_digest: Optional[StrongDigest] = None,
                 rolling_factory: Callable[[], RollingChecksum] = RollingChecksum) -> None:
        if block_size is None:
            block_size = Config.DEFAULT_BLOCK_SIZE
        validate_block_size(block_size)
        self.block_size = block_size
        self.strong_digest = strong_digest or StrongDigest(checksum_type)
        self.workers = max(1, workers if workers is not None else Config.SIGNATURE_WORKERS)
        self.rolling_factory = rolling_factory

    def _hash_block(self, block: bytes) -> Tuple[int, bytes]:
        rc = self.rolling_factory()
        rc.init(block)
        return rc.value(), self.strong_digest.digest(block)

    def _read_blocks(self, source: DataSource) -> Iterator[bytes]:
        while True:
            block = source.read_full(self.block_size)
            if not block:
                return
            yield block
            if len(block) < self.block_size:
                return

    def _read_batches(self, source: DataSource, batch_size: int) -> Iterator[List[bytes]]:
        batch: List[bytes] = []
        for block in self._read_blocks(source):
            batch.append(block)
            if len(batch) >= batch_size:
                yield batch
                batch = []
        if batch:
            yield batch

    def build(self, basis: SourceLike) -> Signature:
        """
        Compute the signature of ``basis``.

        Args:
            basis: bytes, a binary file object, a path or a DataSource

        Returns:
            Signature with one entry per block (none for an empty basis)

        Raises:
            FileIOError: If the basis cannot be read
        """
        source = as_source(basis)
        owns_source = source is not basis
        try:
            entries = self._build_entries(source)
        finally:
            if owns_source:
                source.close()

        file_size = sum(e.block_length for e in entries)
        logger.info(
            "Signature: %d blocks of %d bytes (%s, %d bytes)",
            len(entries), self.block_size, self.strong_digest.checksum_type.value, file_size,
        )
        return Signature(
            block_size=self.block_size,
            entries=tuple(entries),
            checksum_type=self.strong_digest.checksum_type.value,
            file_size=file_size,
        )

    def _build_entries(self, source: DataSource) -> List[SignatureEntry]:
        entries: List[SignatureEntry] = []

        if self.workers == 1:
            for block in self._read_blocks(source):
                weak, strong = self._hash_block(block)
                entries.append(SignatureEntry(len(entries), len(block), weak, strong))
            return entries

        batch_size = self.workers * _BATCH_PER_WORKER
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            for batch in self._read_batches(source, batch_size):
                # map() yields results in submission order
                for block, (weak, strong) in zip(batch, pool.map(self._hash_block, batch)):
                    entries.append(SignatureEntry(len(entries), len(block), weak, strong))
        return entries


def validate_signature(signature: Signature) -> None:
    """
    Check that a signature is internally consistent.

    Block indices must run 0, 1, 2, ... in order; every block but the
    last must be exactly block_size long; every digest has the length of
    the named checksum; and the lengths add up to file_size.

    Raises:
        SignatureFormatError: On any inconsistency
    """
    bs = signature.block_size
    if bs <= 0:
        raise SignatureFormatError(f"Signature block_size must be positive, got {bs}")

    try:
        checksum_type = ChecksumType.parse(signature.checksum_type)
    except ValueError as e:
        raise SignatureFormatError(str(e)) from e
    digest_size = ChecksumRegistry.get_digest_length(checksum_type)
    last = len(signature.entries) - 1
    for i, entry in enumerate(signature.entries):
        if entry.block_index != i:
            raise SignatureFormatError(
                f"Signature entry {i} has block_index {entry.block_index}"
            )
        if entry.block_length <= 0 or entry.block_length > bs:
            raise SignatureFormatError(
                f"Block {i} has invalid length {entry.block_length} (block_size {bs})"
            )
        if i < last and entry.block_length != bs:
            raise SignatureFormatError(
                f"Only the last block may be short; block {i} is {entry.block_length} bytes"
            )
        if len(entry.strong_hash) != digest_size:
            raise SignatureFormatError(
                f"Block {i} digest is {len(entry.strong_hash)} bytes, "
                f"expected {digest_size} for {checksum_type.value}"
            )

    total = sum(e.block_length for e in signature.entries)
    if total != signature.file_size:
        raise SignatureFormatError(
            f"Signature blocks cover {total} bytes but file_size is {signature.file_size}"
        )
