# -*- coding: utf-8 -*-
"""
High-level synchronization API.

:class:`SyncEngine` wires the pipeline together (signature, index,
delta, patch) and adds file-path helpers that read and write the wire
formats. The module-level ``compute_signature``, ``compute_delta`` and
``apply_delta`` are the three basic commands with default settings.

Also here: efficiency measurement of a basis/updated pair and the
directory-based sync cases used by ``blocksync report``.
"""

from __future__ import annotations

import filecmp
import json
import os
import tempfile
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, List, Optional, Union

from .checksum import ChecksumRegistry, ChecksumType
from .compression import CompressionType
from .config import Config, logger, validate_block_size
from .delta import DeltaEncoder
from .errors import CorruptDeltaError, FileIOError, SignatureFormatError
from .index import BlockIndex
from .models import Delta, Signature
from .patch import DeltaApplier
from .signature import SignatureBuilder, validate_signature
from .streams import SourceLike
from .utils import Profiler, format_size
from .wire import DELTA_MAGIC, SIGNATURE_MAGIC, decode_delta, decode_signature, encode_delta, encode_signature

PathLike = Union[str, os.PathLike]


class SyncEngine:
    """
    Facade over signature, delta and patch computation.

    Args:
        block_size: Block size for new signatures (default: Config.DEFAULT_BLOCK_SIZE)
        checksum_type: Strong digest for new signatures (default: Config.DEFAULT_CHECKSUM)
        workers: Signature hashing threads (default: Config.SIGNATURE_WORKERS)
        compression: Delta body compression (default: Config.DEFAULT_COMPRESSION)

    Example:
        >>> engine = SyncEngine(block_size=4)
        >>> sig = engine.compute_signature(b"ABCDEFGH")
        >>> delta = engine.compute_delta(sig, b"XABCDEFGH")
        >>> engine.apply_delta(b"ABCDEFGH", delta)
        b'XABCDEFGH'
    """

    def __init__(self,
                 block_size: Optional[int] = None,
                 checksum_type: Union[str, ChecksumType, None] = None,
                 workers: Optional[int] = None,
                 compression: Union[str, CompressionType, None] = None) -> None:
        self.block_size = Config.DEFAULT_BLOCK_SIZE if block_size is None else block_size
        validate_block_size(self.block_size)
        self.checksum_type = ChecksumType.parse(
            Config.DEFAULT_CHECKSUM if checksum_type is None else checksum_type
        )
        self.workers = workers
        self.compression = CompressionType.parse(
            Config.DEFAULT_COMPRESSION if compression is None else compression
        )

    def __repr__(self) -> str:
        return (
            f"SyncEngine(block_size={self.block_size}, checksum={self.checksum_type.value}, "
            f"compression={self.compression.value})"
        )

    # ------------------------------------------------------------------
    # In-memory / stream API
    # ------------------------------------------------------------------

    def compute_signature(self, basis: SourceLike) -> Signature:
        builder = SignatureBuilder(
            block_size=self.block_size,
            checksum_type=self.checksum_type,
            workers=self.workers,
        )
        with Profiler("signature"):
            return builder.build(basis)

    def compute_delta(self, signature: Signature, updated: SourceLike) -> Delta:
        """
        Delta of ``updated`` against the basis described by ``signature``.

        The signature carries its own block size and digest algorithm;
        the engine's settings for new signatures do not apply here.
        """
        encoder = DeltaEncoder(BlockIndex(signature), block_size=signature.block_size)
        with Profiler("delta"):
            return encoder.encode(updated)

    def apply_delta(self, basis: SourceLike, delta: Delta,
                    output: Optional[BinaryIO] = None,
                    verify: Optional[bool] = None) -> Union[bytes, int]:
        """
        Rebuild the updated file.

        Returns the bytes when ``output`` is None, otherwise writes to
        ``output`` and returns the number of bytes written.
        """
        applier = DeltaApplier(verify_digest=verify)
        with Profiler("patch"):
            if output is None:
                return applier.apply_bytes(basis, delta)
            return applier.apply(basis, delta, output)

    # ------------------------------------------------------------------
    # File API
    # ------------------------------------------------------------------

    def signature_file(self, basis_path: PathLike, signature_path: PathLike,
                       as_json: bool = False) -> Signature:
        """Compute the signature of a file and save it."""
        signature = self.compute_signature(basis_path)
        if as_json:
            _write_text(signature_path, json.dumps(signature.to_dict(), indent=2))
        else:
            _write_bytes(signature_path, encode_signature(signature))
        return signature

    def delta_file(self, signature_path: PathLike, updated_path: PathLike,
                   delta_path: PathLike, as_json: bool = False) -> Delta:
        """Load a saved signature, compute the delta of a file and save it."""
        signature = load_signature(signature_path)
        delta = self.compute_delta(signature, updated_path)
        if as_json:
            _write_text(delta_path, json.dumps(delta.to_dict(), indent=2))
        else:
            _write_bytes(delta_path, encode_delta(delta, self.compression))
        return delta

    def patch_file(self, basis_path: PathLike, delta_path: PathLike,
                   output_path: PathLike, verify: Optional[bool] = None) -> int:
        """
        Apply a saved delta to a basis file, writing ``output_path``.

        The output is written to a temporary file next to the target and
        moved into place only once reconstruction (and verification)
        succeeded, so a failed patch leaves no partial file behind.
        """
        delta = load_delta(delta_path)
        output_path = os.fspath(output_path)
        target_dir = os.path.dirname(os.path.abspath(output_path))
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".blocksync-", dir=target_dir)
        except OSError as e:
            raise FileIOError(f"Cannot create temporary file in {target_dir}: {e}") from e

        applier = DeltaApplier(verify_digest=verify)
        try:
            with os.fdopen(fd, 'wb') as out, Profiler("patch"):
                written = applier.apply(basis_path, delta, out)
            os.replace(tmp_path, output_path)
        except OSError as e:
            _remove_quietly(tmp_path)
            raise FileIOError(f"Cannot write {output_path}: {e}") from e
        except BaseException:
            _remove_quietly(tmp_path)
            raise
        return written


# ============================================================================
# LOADING / SAVING
# ============================================================================

def _read_bytes(path: PathLike) -> bytes:
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise FileIOError(f"Cannot read {os.fspath(path)}: {e}") from e


def _write_bytes(path: PathLike, data: bytes) -> None:
    try:
        with open(path, 'wb') as f:
            f.write(data)
    except OSError as e:
        raise FileIOError(f"Cannot write {os.fspath(path)}: {e}") from e


def _write_text(path: PathLike, text: str) -> None:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
    except OSError as e:
        raise FileIOError(f"Cannot write {os.fspath(path)}: {e}") from e


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass


def _load_json(data: bytes, what: str, error: Any) -> Dict[str, Any]:
    try:
        return json.loads(data.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise error(f"Not a binary or JSON {what}: {e}") from e


def load_signature(path: PathLike) -> Signature:
    """
    Load a signature saved in binary or JSON form.

    Raises:
        FileIOError: If the file cannot be read
        SignatureFormatError: If it is not a valid signature
    """
    data = _read_bytes(path)
    if data.startswith(SIGNATURE_MAGIC):
        return decode_signature(data)
    raw = _load_json(data, "signature", SignatureFormatError)
    try:
        signature = Signature.from_dict(raw)
        ChecksumType.parse(signature.checksum_type)
    except (KeyError, TypeError, ValueError) as e:
        raise SignatureFormatError(f"Invalid signature JSON: {e}") from e
    validate_signature(signature)
    return signature


def load_delta(path: PathLike) -> Delta:
    """
    Load a delta saved in binary or JSON form.

    Raises:
        FileIOError: If the file cannot be read
        CorruptDeltaError: If it is not a valid delta
    """
    data = _read_bytes(path)
    if data.startswith(DELTA_MAGIC):
        return decode_delta(data)
    raw = _load_json(data, "delta", CorruptDeltaError)
    try:
        delta = Delta.from_dict(raw)
        if delta.checksum_type:
            checksum_type = ChecksumType.parse(delta.checksum_type)
            expected = ChecksumRegistry.get_digest_length(checksum_type)
            if delta.file_digest is not None and len(delta.file_digest) != expected:
                raise CorruptDeltaError(
                    f"File digest is {len(delta.file_digest)} bytes, {checksum_type.value} needs {expected}"
                )
        return delta
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptDeltaError(f"Invalid delta JSON: {e}") from e


# ============================================================================
# MODULE-LEVEL COMMANDS
# ============================================================================

def compute_signature(basis: SourceLike, block_size: Optional[int] = None,
                      checksum_type: Union[str, ChecksumType, None] = None) -> Signature:
    """
    Compute the signature of a basis file.

    Example:
        >>> sig = compute_signature(b"ABCDEFGH", block_size=4)
        >>> sig.num_blocks
        2
    """
    return SyncEngine(block_size=block_size, checksum_type=checksum_type).compute_signature(basis)


def compute_delta(signature: Signature, updated: SourceLike) -> Delta:
    """Compute the delta turning the signed basis into ``updated``."""
    encoder = DeltaEncoder(BlockIndex(signature), block_size=signature.block_size)
    return encoder.encode(updated)


def apply_delta(basis: SourceLike, delta: Delta) -> bytes:
    """Rebuild the updated file from ``basis`` and ``delta``."""
    return DeltaApplier().apply_bytes(basis, delta)


# ============================================================================
# EFFICIENCY
# ============================================================================

@dataclass(frozen=True)
class EfficiencyReport:
    """
    Transfer cost of syncing one file pair at one block size.

    ``efficiency`` is (signature + delta) / updated size: below 1.0 the
    sync moved fewer bytes than sending the updated file whole.

    Attributes:
        block_size: Block size used
        basis_size: Basis file size in bytes
        updated_size: Updated file size in bytes
        signature_size: Encoded signature size in bytes
        delta_size: Encoded delta size in bytes
        copies: Copy instructions in the delta
        literals: Literal instructions in the delta
        exact: Whether the reconstruction equals the updated file
    """
    block_size: int
    basis_size: int
    updated_size: int
    signature_size: int
    delta_size: int
    copies: int = 0
    literals: int = 0
    exact: bool = True

    @property
    def transferred(self) -> int:
        return self.signature_size + self.delta_size

    @property
    def efficiency(self) -> float:
        if self.updated_size == 0:
            return 0.0 if self.transferred == 0 else float('inf')
        return self.transferred / self.updated_size

    @property
    def savings(self) -> float:
        """Fraction of the updated file's size not transferred."""
        return 1.0 - self.efficiency

    def __repr__(self) -> str:
        return (
            f"EfficiencyReport(block_size={self.block_size}, "
            f"transferred={format_size(self.transferred)}, "
            f"updated={format_size(self.updated_size)}, efficiency={self.efficiency:.3f})"
        )


def measure_efficiency(basis: bytes, updated: bytes, block_size: int,
                       compression: Union[str, CompressionType, None] = None,
                       checksum_type: Union[str, ChecksumType, None] = None) -> EfficiencyReport:
    """
    Run the full pipeline in memory and report transfer sizes.

    Example:
        >>> report = measure_efficiency(old, new, block_size=1024)
        >>> print(f"{report.efficiency:.2f}")
    """
    engine = SyncEngine(block_size=block_size, checksum_type=checksum_type, compression=compression)
    signature = engine.compute_signature(basis)
    delta = engine.compute_delta(signature, updated)
    recreated = engine.apply_delta(basis, delta)
    return EfficiencyReport(
        block_size=block_size,
        basis_size=len(basis),
        updated_size=len(updated),
        signature_size=len(encode_signature(signature)),
        delta_size=len(encode_delta(delta, engine.compression)),
        copies=delta.num_copies,
        literals=delta.num_literals,
        exact=recreated == updated,
    )


# ============================================================================
# SYNC CASES
# ============================================================================

BASIS_NAME = "basis_file"
UPDATED_NAME = "updated_file"
SIGNATURE_NAME = "signature"
DELTA_NAME = "delta"
RECREATED_NAME = "recreated"


@dataclass(frozen=True)
class SyncCase:
    """
    A directory holding a ``basis_file`` / ``updated_file`` pair.

    Running a case writes ``signature``, ``delta`` and ``recreated``
    into the same directory.
    """
    path: str

    @property
    def name(self) -> str:
        return os.path.basename(os.path.normpath(self.path))

    @property
    def basis_path(self) -> str:
        return os.path.join(self.path, BASIS_NAME)

    @property
    def updated_path(self) -> str:
        return os.path.join(self.path, UPDATED_NAME)

    @property
    def signature_path(self) -> str:
        return os.path.join(self.path, SIGNATURE_NAME)

    @property
    def delta_path(self) -> str:
        return os.path.join(self.path, DELTA_NAME)

    @property
    def recreated_path(self) -> str:
        return os.path.join(self.path, RECREATED_NAME)


@dataclass(frozen=True)
class CaseResult:
    case: SyncCase
    report: EfficiencyReport
    elapsed: float

    @property
    def exact(self) -> bool:
        return self.report.exact


def gather_cases(root: PathLike) -> List[SyncCase]:
    """
    Find every directory under ``root`` (inclusive) that is a sync case.

    Returns cases sorted by path.

    Raises:
        FileIOError: If root is not a directory
    """
    root = os.fspath(root)
    if not os.path.isdir(root):
        raise FileIOError(f"Not a directory: {root}")

    cases = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if BASIS_NAME in filenames and UPDATED_NAME in filenames:
            cases.append(SyncCase(dirpath))
    cases.sort(key=lambda c: c.path)
    logger.info("Found %d sync cases under %s", len(cases), root)
    return cases


def run_case(case: SyncCase, block_size: Optional[int] = None,
             compression: Union[str, CompressionType, None] = None) -> CaseResult:
    """
    Run signature, delta and patch for one case, persisting every artifact.

    The result records whether ``recreated`` is byte-identical to
    ``updated_file`` along with the transfer sizes.
    """
    engine = SyncEngine(block_size=block_size, compression=compression)
    with Profiler(f"case {case.name}") as timer:
        engine.signature_file(case.basis_path, case.signature_path)
        delta = engine.delta_file(case.signature_path, case.updated_path, case.delta_path)
        engine.patch_file(case.basis_path, case.delta_path, case.recreated_path, verify=False)

    try:
        exact = filecmp.cmp(case.updated_path, case.recreated_path, shallow=False)
        report = EfficiencyReport(
            block_size=engine.block_size,
            basis_size=os.path.getsize(case.basis_path),
            updated_size=os.path.getsize(case.updated_path),
            signature_size=os.path.getsize(case.signature_path),
            delta_size=os.path.getsize(case.delta_path),
            copies=delta.num_copies,
            literals=delta.num_literals,
            exact=exact,
        )
    except OSError as e:
        raise FileIOError(f"Cannot inspect case {case.path}: {e}") from e

    if not exact:
        logger.warning("Case %s: recreated file differs from updated_file", case.name)
    return CaseResult(case=case, report=report, elapsed=timer.elapsed)
