# -*- coding: utf-8 -*-
"""
blocksync - block-level remote file synchronization.

Transfers only the differences between two versions of a file. The
holder of the old version (the *basis*) sends a compact signature of
per-block weak and strong hashes; the holder of the new version answers
with a delta of Copy/Literal instructions; the basis holder replays the
delta to rebuild the new file.

Example:
    >>> from blocksync import compute_signature, compute_delta, apply_delta
    >>> sig = compute_signature(b"ABCDEFGH", block_size=4)
    >>> delta = compute_delta(sig, b"XABCDEFGH")
    >>> apply_delta(b"ABCDEFGH", delta)
    b'XABCDEFGH'
"""

__version__ = "1.0.0"

from .checksum import ChecksumRegistry, ChecksumType, RollingChecksum, StrongDigest
from .compression import CompressionRegistry, CompressionType
from .config import Config, configure_logging, validate_block_size
from .delta import DeltaEncoder
from .engine import (
    CaseResult,
    EfficiencyReport,
    SyncCase,
    SyncEngine,
    apply_delta,
    compute_delta,
    compute_signature,
    gather_cases,
    load_delta,
    load_signature,
    measure_efficiency,
    run_case,
)
from .errors import (
    BlockSyncError,
    CorruptDeltaError,
    DataIntegrityError,
    FileIOError,
    InvalidConfigError,
    SignatureFormatError,
)
from .index import BlockIndex
from .models import Delta, DeltaCopy, DeltaLiteral, Signature, SignatureEntry, SyncStats
from .patch import DeltaApplier
from .signature import SignatureBuilder, validate_signature
from .streams import BytesDataSource, DataSource, FileDataSource, StreamDataSource
from .wire import decode_delta, decode_signature, encode_delta, encode_signature

__all__ = [
    "__version__",
    # Core
    "RollingChecksum",
    "StrongDigest",
    "SignatureBuilder",
    "BlockIndex",
    "DeltaEncoder",
    "DeltaApplier",
    "SyncEngine",
    # Types
    "Signature",
    "SignatureEntry",
    "Delta",
    "DeltaCopy",
    "DeltaLiteral",
    "SyncStats",
    "ChecksumType",
    "ChecksumRegistry",
    "CompressionType",
    "CompressionRegistry",
    # Streams
    "DataSource",
    "BytesDataSource",
    "StreamDataSource",
    "FileDataSource",
    # Commands
    "compute_signature",
    "compute_delta",
    "apply_delta",
    "load_signature",
    "load_delta",
    "encode_signature",
    "decode_signature",
    "encode_delta",
    "decode_delta",
    # Efficiency and sync cases
    "EfficiencyReport",
    "measure_efficiency",
    "SyncCase",
    "CaseResult",
    "gather_cases",
    "run_case",
    # Configuration and errors
    "Config",
    "configure_logging",
    "validate_block_size",
    "validate_signature",
    "BlockSyncError",
    "InvalidConfigError",
    "FileIOError",
    "CorruptDeltaError",
    "SignatureFormatError",
    "DataIntegrityError",
]
