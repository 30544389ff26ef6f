# -*- coding: utf-8 -*-
"""
Binary wire formats for signatures and deltas.

All integers are little-endian.

Signature::

    header  <4s B B B B I Q I>   magic b"BSSG", version, checksum id,
                                digest size, flags, block_size,
                                file_size, entry count
    entry   <I I I> + digest    block_index, block_length, weak_hash,
                                strong_hash

Delta::

    header  <4s B B B B I I Q>   magic b"BSDL", version, compression id,
                                checksum id (0 = no digest), digest size,
                                block_size, basis block count
                                (0xFFFFFFFF = unknown), new file size
    digest  digest size bytes
    body    (compressed as a whole when compression id != 0)
            b"C" <I>            Copy(block_index)
            b"L" <I> + bytes    Literal(length, data)
            b"E"                end of instructions

Instruction order is preserved exactly; apply depends on it.
"""

from __future__ import annotations

import io
import struct
import zlib
from typing import BinaryIO, List, Optional, Union

import zstandard  # type: ignore[import]

from .checksum import CHECKSUM_BY_WIRE_ID, CHECKSUM_WIRE_IDS, ChecksumRegistry, ChecksumType
from .compression import COMPRESSION_BY_WIRE_ID, COMPRESSION_WIRE_IDS, CompressionRegistry, CompressionType
from .config import Config, logger
from .errors import CorruptDeltaError, FileIOError, SignatureFormatError
from .models import Delta, DeltaCopy, DeltaLiteral, Instruction, Signature, SignatureEntry
from .signature import validate_signature

SIGNATURE_MAGIC = b"BSSG"
DELTA_MAGIC = b"BSDL"
WIRE_VERSION = 1

UNKNOWN_BLOCK_COUNT = 0xFFFFFFFF
MAX_RECORD_LENGTH = 0xFFFFFFFF

TAG_COPY = b"C"
TAG_LITERAL = b"L"
TAG_END = b"E"

_SIG_HEADER = struct.Struct('<4sBBBBIQI')
_SIG_ENTRY = struct.Struct('<III')
_DELTA_HEADER = struct.Struct('<4sBBBBIIQ')
_U32 = struct.Struct('<I')


# ============================================================================
# SIGNATURE
# ============================================================================

def encode_signature(signature: Signature) -> bytes:
    """Serialize a signature to its binary form."""
    checksum_type = ChecksumType.parse(signature.checksum_type)
    if signature.entries:
        digest_size = signature.digest_size
    else:
        digest_size = ChecksumRegistry.get_digest_length(checksum_type)

    out = io.BytesIO()
    out.write(_SIG_HEADER.pack(
        SIGNATURE_MAGIC,
        WIRE_VERSION,
        CHECKSUM_WIRE_IDS[checksum_type],
        digest_size,
        0,
        signature.block_size,
        signature.file_size,
        signature.num_blocks,
    ))
    for entry in signature.entries:
        out.write(_SIG_ENTRY.pack(entry.block_index, entry.block_length, entry.weak_hash))
        out.write(entry.strong_hash)
    return out.getvalue()


def decode_signature(data: bytes) -> Signature:
    """
    Parse a binary signature.

    Raises:
        SignatureFormatError: Bad magic, unsupported version, unknown
            checksum, truncation, trailing data or inconsistent entries
    """
    view = memoryview(data)
    if len(view) < _SIG_HEADER.size:
        raise SignatureFormatError("Signature truncated: incomplete header")

    magic, version, checksum_id, digest_size, _flags, block_size, file_size, count = \
        _SIG_HEADER.unpack_from(view, 0)
    if magic != SIGNATURE_MAGIC:
        raise SignatureFormatError(f"Not a signature (magic {bytes(magic)!r})")
    if version != WIRE_VERSION:
        raise SignatureFormatError(f"Unsupported signature version {version}")
    checksum_type = CHECKSUM_BY_WIRE_ID.get(checksum_id)
    if checksum_type is None:
        raise SignatureFormatError(f"Unknown checksum id {checksum_id}")
    if count and digest_size != ChecksumRegistry.get_digest_length(checksum_type):
        raise SignatureFormatError(
            f"Digest size {digest_size} does not match {checksum_type.value} "
            f"({ChecksumRegistry.get_digest_length(checksum_type)} bytes)"
        )

    record_size = _SIG_ENTRY.size + digest_size
    expected = _SIG_HEADER.size + count * record_size
    if len(view) < expected:
        raise SignatureFormatError(
            f"Signature truncated: {len(view)} bytes, expected {expected}"
        )
    if len(view) > expected:
        raise SignatureFormatError(f"Signature has {len(view) - expected} trailing bytes")

    entries: List[SignatureEntry] = []
    pos = _SIG_HEADER.size
    for _ in range(count):
        index, length, weak = _SIG_ENTRY.unpack_from(view, pos)
        pos += _SIG_ENTRY.size
        strong = bytes(view[pos:pos + digest_size])
        pos += digest_size
        entries.append(SignatureEntry(index, length, weak, strong))

    signature = Signature(
        block_size=block_size,
        entries=tuple(entries),
        checksum_type=checksum_type.value,
        file_size=file_size,
    )
    validate_signature(signature)
    return signature


def write_signature(signature: Signature, stream: BinaryIO) -> int:
    data = encode_signature(signature)
    try:
        stream.write(data)
    except OSError as e:
        raise FileIOError(f"Cannot write signature: {e}") from e
    return len(data)


def read_signature(stream: BinaryIO) -> Signature:
    try:
        data = stream.read()
    except OSError as e:
        raise FileIOError(f"Cannot read signature: {e}") from e
    return decode_signature(data)


# ============================================================================
# DELTA
# ============================================================================

def _encode_body(instructions: List[Instruction]) -> bytes:
    out = io.BytesIO()
    for instr in instructions:
        if isinstance(instr, DeltaCopy):
            out.write(TAG_COPY)
            out.write(_U32.pack(instr.block_index))
        elif isinstance(instr, DeltaLiteral):
            data = instr.data
            # Oversized literals become consecutive records
            for start in range(0, len(data), MAX_RECORD_LENGTH):
                piece = data[start:start + MAX_RECORD_LENGTH]
                out.write(TAG_LITERAL)
                out.write(_U32.pack(len(piece)))
                out.write(piece)
        else:
            raise CorruptDeltaError(f"Unknown instruction type: {type(instr).__name__}")
    out.write(TAG_END)
    return out.getvalue()


def _decode_body(body: bytes) -> List[Instruction]:
    view = memoryview(body)
    instructions: List[Instruction] = []
    pos = 0
    end = len(view)

    while True:
        if pos >= end:
            raise CorruptDeltaError("Delta truncated: missing end marker")
        tag = bytes(view[pos:pos + 1])
        pos += 1

        if tag == TAG_END:
            break
        if pos + _U32.size > end:
            raise CorruptDeltaError(f"Delta truncated inside record at byte {pos - 1}")
        (value,) = _U32.unpack_from(view, pos)
        pos += _U32.size

        if tag == TAG_COPY:
            instructions.append(DeltaCopy(value))
        elif tag == TAG_LITERAL:
            if pos + value > end:
                raise CorruptDeltaError(
                    f"Delta truncated: literal of {value} bytes at byte {pos} runs past the end"
                )
            instructions.append(DeltaLiteral(bytes(view[pos:pos + value])))
            pos += value
        else:
            raise CorruptDeltaError(f"Unknown delta record tag {tag!r} at byte {pos - 1}")

    if pos != end:
        raise CorruptDeltaError(f"Delta has {end - pos} trailing bytes after end marker")
    return instructions


def encode_delta(delta: Delta,
                 compression: Union[str, CompressionType, None] = None) -> bytes:
    """
    Serialize a delta to its binary form.

    Args:
        delta: Delta to serialize
        compression: Body compression (default: Config.DEFAULT_COMPRESSION)
    """
    if compression is None:
        compression = Config.DEFAULT_COMPRESSION
    comp_type = CompressionType.parse(compression)

    if delta.file_digest is not None and delta.checksum_type:
        checksum_id = CHECKSUM_WIRE_IDS[ChecksumType.parse(delta.checksum_type)]
        digest = delta.file_digest
    else:
        checksum_id = 0
        digest = b""

    basis_count = UNKNOWN_BLOCK_COUNT if delta.basis_block_count is None else delta.basis_block_count
    body = _encode_body(list(delta.instructions))
    packed = CompressionRegistry.compress(body, comp_type)
    logger.debug("Delta body: %d bytes, %d after %s", len(body), len(packed), comp_type.value)

    header = _DELTA_HEADER.pack(
        DELTA_MAGIC,
        WIRE_VERSION,
        COMPRESSION_WIRE_IDS[comp_type],
        checksum_id,
        len(digest),
        delta.block_size,
        basis_count,
        delta.new_file_size,
    )
    return header + digest + packed


def decode_delta(data: bytes) -> Delta:
    """
    Parse a binary delta.

    Raises:
        CorruptDeltaError: Bad magic, unsupported version or compression,
            truncation, unknown record tags or trailing data
    """
    view = memoryview(data)
    if len(view) < _DELTA_HEADER.size:
        raise CorruptDeltaError("Delta truncated: incomplete header")

    magic, version, comp_id, checksum_id, digest_size, block_size, basis_count, new_size = \
        _DELTA_HEADER.unpack_from(view, 0)
    if magic != DELTA_MAGIC:
        raise CorruptDeltaError(f"Not a delta (magic {bytes(magic)!r})")
    if version != WIRE_VERSION:
        raise CorruptDeltaError(f"Unsupported delta version {version}")

    comp_type = COMPRESSION_BY_WIRE_ID.get(comp_id)
    if comp_type is None:
        raise CorruptDeltaError(f"Unknown compression id {comp_id}")

    checksum_type: Optional[ChecksumType] = None
    if checksum_id:
        checksum_type = CHECKSUM_BY_WIRE_ID.get(checksum_id)
        if checksum_type is None:
            raise CorruptDeltaError(f"Unknown checksum id {checksum_id}")
        if digest_size != ChecksumRegistry.get_digest_length(checksum_type):
            raise CorruptDeltaError(
                f"File digest is {digest_size} bytes, {checksum_type.value} needs "
                f"{ChecksumRegistry.get_digest_length(checksum_type)}"
            )
    elif digest_size:
        raise CorruptDeltaError("Delta carries a digest without a checksum id")

    pos = _DELTA_HEADER.size
    if len(view) < pos + digest_size:
        raise CorruptDeltaError("Delta truncated: incomplete file digest")
    digest = bytes(view[pos:pos + digest_size])
    pos += digest_size

    try:
        body = CompressionRegistry.decompress(bytes(view[pos:]), comp_type)
    except (zlib.error, RuntimeError, ValueError, zstandard.ZstdError) as e:
        raise CorruptDeltaError(f"Cannot decompress delta body ({comp_type.value}): {e}") from e

    return Delta(
        block_size=block_size,
        instructions=tuple(_decode_body(body)),
        new_file_size=new_size,
        basis_block_count=None if basis_count == UNKNOWN_BLOCK_COUNT else basis_count,
        checksum_type=checksum_type.value if checksum_type is not None else None,
        file_digest=digest if checksum_type is not None else None,
    )


def write_delta(delta: Delta, stream: BinaryIO,
                compression: Union[str, CompressionType, None] = None) -> int:
    data = encode_delta(delta, compression)
    try:
        stream.write(data)
    except OSError as e:
        raise FileIOError(f"Cannot write delta: {e}") from e
    return len(data)


def read_delta(stream: BinaryIO) -> Delta:
    try:
        data = stream.read()
    except OSError as e:
        raise FileIOError(f"Cannot read delta: {e}") from e
    return decode_delta(data)
