# -*- coding: utf-8 -*-
"""
Delta computation: find basis blocks at any byte offset of the updated file.

The encoder slides a window of ``block_size`` bytes over the updated
file one byte at a time, keeping the weak checksum current with O(1)
rolling updates. A weak hit is only a candidate: the window's strong
digest must equal the candidate block's before a Copy is emitted.

Scan state is two values carried across iterations, the cursor and the
start of the pending literal run. The window shrinks by one byte per
step once it reaches the end of the stream, so a shorter final basis
block can still match the tail.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional

from .checksum import RollingChecksum, StrongDigest
from .config import Config, logger, validate_block_size
from .errors import InvalidConfigError
from .index import BlockIndex
from .models import Delta, DeltaCopy, DeltaLiteral, Instruction, SignatureEntry, SyncStats
from .streams import DataSource, SourceLike, as_source
from .utils import format_size


class DeltaEncoder:
    """
    Compute a :class:`Delta` turning the indexed basis into an updated file.

    Args:
        index: BlockIndex built from the basis file's signature
        block_size: Must equal the signature's block size (default: taken from index)
        strong_digest: Digest used to confirm weak hits (default: the signature's algorithm)
        rolling_factory: Callable returning a fresh RollingChecksum
        compute_digest: Store a whole-file digest (default: Config.COMPUTE_FILE_DIGEST)
        collect_stats: Attach SyncStats (default: Config.COLLECT_STATS)

    Raises:
        InvalidConfigError: If block_size is invalid or disagrees with the index,
            or strong_digest is not the signature's algorithm

    Example:
        >>> index = BlockIndex(SignatureBuilder(block_size=4).build(b"ABCDEFGH"))
        >>> DeltaEncoder(index).encode(b"XABCDEFGH").instructions
        (Literal(len=1, data=58), Copy(0), Copy(1))
    """

    def __init__(self,
                 index: BlockIndex,
                 block_size: Optional[int] = None,
                 strong_digest: Optional[StrongDigest] = None,
                 rolling_factory: Callable[[], RollingChecksum] = RollingChecksum,
                 compute_digest: Optional[bool] = None,
                 collect_stats: Optional[bool] = None) -> None:
        if block_size is None:
            block_size = index.block_size
        validate_block_size(block_size)
        if block_size != index.block_size:
            raise InvalidConfigError(
                f"block_size {block_size} does not match the signature's {index.block_size}"
            )

        signature = index.signature
        if strong_digest is None:
            strong_digest = StrongDigest(signature.checksum_type)
        if signature.entries:
            if strong_digest.checksum_type.value != signature.checksum_type:
                raise InvalidConfigError(
                    f"Strong digest {strong_digest.checksum_type.value} does not match "
                    f"the signature's {signature.checksum_type}"
                )
            if strong_digest.digest_size != signature.digest_size:
                raise InvalidConfigError(
                    f"Digest size {strong_digest.digest_size} does not match "
                    f"the signature's {signature.digest_size}"
                )

        self.index = index
        self.block_size = block_size
        self.strong_digest = strong_digest
        self.rolling_factory = rolling_factory
        self.compute_digest = Config.COMPUTE_FILE_DIGEST if compute_digest is None else compute_digest
        self.collect_stats = Config.COLLECT_STATS if collect_stats is None else collect_stats

    def encode(self, updated: SourceLike) -> Delta:
        """
        Compute the delta for ``updated``.

        Args:
            updated: bytes, a binary file object, a path or a DataSource

        Returns:
            Delta whose instructions rebuild ``updated`` from the basis

        Raises:
            FileIOError: If the updated file cannot be read
        """
        source = as_source(updated)
        owns_source = source is not updated
        try:
            return self._encode(source)
        finally:
            if owns_source:
                source.close()

    def _encode(self, source: DataSource) -> Delta:
        bs = self.block_size
        index = self.index
        digest = self.strong_digest.digest
        stats: Optional[SyncStats] = SyncStats() if self.collect_stats else None
        file_acc: Optional[Any] = self.strong_digest.accumulator() if self.compute_digest else None
        read_size = max(Config.CHUNK_SIZE_STREAMING, bs)

        instructions: List[Instruction] = []

        # buf holds file bytes [buf_start, buf_start + len(buf)); never
        # anything before lit_start is needed again.
        buf = bytearray()
        buf_start = 0
        eof = False

        def ensure(needed_end: int) -> None:
            nonlocal eof
            while not eof and buf_start + len(buf) < needed_end:
                chunk = source.read_chunk(read_size)
                if not chunk:
                    eof = True
                    break
                if file_acc is not None:
                    file_acc.update(chunk)
                buf.extend(chunk)

        def compact() -> None:
            nonlocal buf_start
            drop = lit_start - buf_start
            if drop >= read_size:
                del buf[:drop]
                buf_start += drop

        def flush_literal(end: int) -> None:
            if end <= lit_start:
                return
            data = bytes(buf[lit_start - buf_start:end - buf_start])
            instructions.append(DeltaLiteral(data))
            if stats is not None:
                stats.literal_data += len(data)

        pos = 0
        lit_start = 0
        rolling = self.rolling_factory()

        ensure(bs)
        k = min(bs, len(buf))
        if k > 0:
            rolling.init(buf, 0, k)

        while k > 0:
            off = pos - buf_start
            candidates = index.candidates(rolling.value(), k)
            matched: Optional[SignatureEntry] = None

            if stats is not None:
                stats.positions_scanned += 1

            if candidates:
                if stats is not None:
                    stats.hash_hits += 1
                strong = digest(buf[off:off + k])
                for entry in candidates:
                    if entry.strong_hash == strong:
                        matched = entry
                        break
                    if stats is not None:
                        stats.false_alarms += 1

            if matched is not None:
                flush_literal(pos)
                instructions.append(DeltaCopy(matched.block_index))
                if stats is not None:
                    stats.matches += 1
                    stats.matched_data += matched.block_length

                pos += matched.block_length
                lit_start = pos
                compact()

                # Jump is not incremental; start a fresh window
                ensure(pos + bs)
                k = min(bs, buf_start + len(buf) - pos)
                if k > 0:
                    rolling = self.rolling_factory()
                    rolling.init(buf, pos - buf_start, k)
                continue

            # No match: the byte at pos joins the pending literal
            ensure(pos + k + 1)
            off = pos - buf_start
            if pos + k < buf_start + len(buf):
                rolling.roll(buf[off], buf[off + k])
            else:
                rolling.roll_out(buf[off])
                k -= 1
            pos += 1

        flush_literal(pos)

        delta = Delta(
            block_size=bs,
            instructions=tuple(instructions),
            new_file_size=pos,
            basis_block_count=index.block_count,
            checksum_type=self.strong_digest.checksum_type.value if file_acc is not None else None,
            file_digest=file_acc.digest() if file_acc is not None else None,
            stats=stats,
        )
        logger.info(
            "Delta: %d copies, %d literals (%s literal of %s)",
            delta.num_copies, delta.num_literals,
            format_size(delta.literal_bytes), format_size(delta.new_file_size),
        )
        if stats is not None:
            logger.debug("Delta stats: %r", stats)
        return delta
