# -*- coding: utf-8 -*-
"""Delta application: rebuild the updated file from the basis and a delta."""

from __future__ import annotations

import io
from typing import Any, BinaryIO, Optional

from .checksum import StrongDigest
from .config import Config, logger
from .errors import CorruptDeltaError, DataIntegrityError, FileIOError
from .models import Delta, DeltaCopy, DeltaLiteral
from .streams import DataSource, SourceLike, as_source
from .utils import format_size


class DeltaApplier:
    """
    Replay a delta's instructions, strictly in order, against a basis file.

    Literals are written verbatim. ``Copy(i)`` reads basis block ``i``:
    the bytes at ``i * block_size``, ``block_size`` long except for a
    shorter final block. Block lengths therefore come from the basis
    itself and the signature is not needed here.

    Every Copy index is checked against the basis block count before a
    single byte is written, so a corrupt or mismatched delta never
    produces partial output.

    Args:
        verify_digest: Check the delta's whole-file digest when it has one
            (default: Config.VERIFY_FILE_DIGEST)

    Example:
        >>> applier = DeltaApplier()
        >>> applier.apply_bytes(b"ABCDEFGH", delta)
        b'XABCDEFGH'
    """

    def __init__(self, verify_digest: Optional[bool] = None) -> None:
        self.verify_digest = Config.VERIFY_FILE_DIGEST if verify_digest is None else verify_digest

    def apply(self, basis: SourceLike, delta: Delta, output: BinaryIO) -> int:
        """
        Write the reconstructed file to ``output``.

        Args:
            basis: Seekable basis (bytes, binary file object, path or DataSource)
            delta: Delta computed against that basis
            output: Writable binary stream

        Returns:
            Number of bytes written

        Raises:
            CorruptDeltaError: Copy index out of range, or delta built for another basis
            FileIOError: On read or write failure
            DataIntegrityError: Reconstruction does not match the delta's file digest
        """
        source = as_source(basis)
        owns_source = source is not basis
        try:
            return self._apply(source, delta, output)
        finally:
            if owns_source:
                source.close()

    def apply_bytes(self, basis: SourceLike, delta: Delta) -> bytes:
        """Reconstruct into memory and return the bytes."""
        out = io.BytesIO()
        self.apply(basis, delta, out)
        return out.getvalue()

    def _check(self, delta: Delta, basis_size: int) -> int:
        bs = delta.block_size
        if bs <= 0:
            raise CorruptDeltaError(f"Delta has invalid block_size {bs}")
        block_count = (basis_size + bs - 1) // bs

        if delta.basis_block_count is not None and delta.basis_block_count != block_count:
            raise CorruptDeltaError(
                f"Delta was computed against a basis of {delta.basis_block_count} blocks, "
                f"this basis has {block_count}"
            )

        for n, instr in enumerate(delta.instructions):
            if isinstance(instr, DeltaCopy):
                if not 0 <= instr.block_index < block_count:
                    raise CorruptDeltaError(
                        f"Instruction {n}: Copy({instr.block_index}) is beyond the basis "
                        f"({block_count} blocks)"
                    )
            elif not isinstance(instr, DeltaLiteral):
                raise CorruptDeltaError(f"Instruction {n}: unknown type {type(instr).__name__}")
        return block_count

    def _apply(self, source: DataSource, delta: Delta, output: BinaryIO) -> int:
        basis_size = source.size()
        self._check(delta, basis_size)

        bs = delta.block_size
        acc: Optional[Any] = None
        if self.verify_digest and delta.file_digest is not None and delta.checksum_type:
            acc = StrongDigest(delta.checksum_type).accumulator()

        written = 0
        for instr in delta.instructions:
            if isinstance(instr, DeltaCopy):
                offset = instr.block_index * bs
                expected = min(bs, basis_size - offset)
                source.seek(offset)
                data = source.read_full(expected)
                if len(data) != expected:
                    raise FileIOError(
                        f"Short read from basis at offset {offset}: "
                        f"{len(data)} of {expected} bytes"
                    )
            else:
                data = instr.data

            try:
                output.write(data)
            except OSError as e:
                raise FileIOError(f"Cannot write output: {e}") from e
            if acc is not None:
                acc.update(data)
            written += len(data)

        if acc is not None:
            if written != delta.new_file_size:
                raise DataIntegrityError(
                    f"Reconstructed {written} bytes, expected {delta.new_file_size}"
                )
            actual = acc.digest()
            if actual != delta.file_digest:
                raise DataIntegrityError(
                    f"Reconstructed file {delta.checksum_type} digest {actual.hex()} "
                    f"does not match {delta.file_digest.hex()}"
                )
            logger.debug("File digest verified (%s)", delta.checksum_type)

        logger.info("Patched: %s written from %d instructions",
                    format_size(written), len(delta.instructions))
        return written
