# -*- coding: utf-8 -*-
"""
Value types shared by the signature, delta and patch stages.

Signatures and deltas are write-once: every type here is a frozen
dataclass holding tuples, so a built value can be shared between the
encoder and the applier without copying.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .errors import CorruptDeltaError
from .utils import format_size


@dataclass(frozen=True)
class SignatureEntry:
    """
    Weak and strong hash of one basis block.

    Attributes:
        block_index: 0-based position of the block in the basis file
        block_length: Bytes covered (only the last block may be shorter)
        weak_hash: 32-bit rolling checksum of the block
        strong_hash: Digest of the block

    Example:
        >>> entry = SignatureEntry(0, 4096, 0x12345678, b'\\x00' * 16)
        >>> print(f"Block {entry.block_index}: weak=0x{entry.weak_hash:08x}")
    """
    block_index: int
    block_length: int
    weak_hash: int
    strong_hash: bytes

    def offset(self, block_size: int) -> int:
        """Byte offset of this block in the basis file."""
        return self.block_index * block_size

    def __repr__(self) -> str:
        return (
            f"SignatureEntry(index={self.block_index}, len={self.block_length}, "
            f"weak=0x{self.weak_hash:08x}, strong={self.strong_hash.hex()[:16]}...)"
        )


@dataclass(frozen=True)
class Signature:
    """
    Per-block summary of a basis file.

    Attributes:
        block_size: Block size the basis was cut with
        entries: One SignatureEntry per block, ordered by block_index
        checksum_type: Name of the strong digest algorithm
        file_size: Size of the basis file in bytes

    Example:
        >>> sig = SignatureBuilder(block_size=1024).build(data)
        >>> print(f"{sig.num_blocks} blocks of {sig.block_size} bytes")
    """
    block_size: int
    entries: Tuple[SignatureEntry, ...]
    checksum_type: str = "md5"
    file_size: int = 0

    @property
    def num_blocks(self) -> int:
        return len(self.entries)

    @property
    def remainder(self) -> int:
        """Length of the last block when it is shorter than block_size, else 0."""
        return self.file_size % self.block_size if self.block_size > 0 else 0

    @property
    def digest_size(self) -> int:
        if self.entries:
            return len(self.entries[0].strong_hash)
        return 0

    def __repr__(self) -> str:
        return (
            f"Signature(file_size={format_size(self.file_size)}, "
            f"blocks={self.num_blocks}, block_size={self.block_size}, "
            f"checksum={self.checksum_type})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert signature to dictionary for JSON serialization."""
        return {
            'block_size': self.block_size,
            'file_size': self.file_size,
            'checksum_type': self.checksum_type,
            'entries': [
                {
                    'index': e.block_index,
                    'length': e.block_length,
                    'weak': e.weak_hash,
                    'strong': e.strong_hash.hex(),
                }
                for e in self.entries
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Signature':
        """Create signature from dictionary."""
        entries = tuple(
            SignatureEntry(
                block_index=int(e['index']),
                block_length=int(e['length']),
                weak_hash=int(e['weak']),
                strong_hash=bytes.fromhex(e['strong']),
            )
            for e in data['entries']
        )
        return cls(
            block_size=int(data['block_size']),
            entries=entries,
            checksum_type=data.get('checksum_type', 'md5'),
            file_size=int(data.get('file_size', sum(e.block_length for e in entries))),
        )


@dataclass(frozen=True)
class DeltaCopy:
    """Copy basis block ``block_index`` verbatim."""
    block_index: int

    def __repr__(self) -> str:
        return f"Copy({self.block_index})"


@dataclass(frozen=True)
class DeltaLiteral:
    """Emit ``data`` directly; it was not found at a matchable alignment."""
    data: bytes

    def __repr__(self) -> str:
        preview = self.data[:20].hex() + ('...' if len(self.data) > 20 else '')
        return f"Literal(len={len(self.data)}, data={preview})"


Instruction = Union[DeltaCopy, DeltaLiteral]


@dataclass
class SyncStats:
    """
    Matching statistics for one delta computation.

    Attributes:
        hash_hits: Window positions whose weak hash had length-compatible candidates
        false_alarms: Candidates rejected by the strong hash
        matches: Accepted block matches
        literal_data: Bytes emitted as literals
        matched_data: Bytes covered by Copy instructions
        positions_scanned: Window positions examined
    """
    hash_hits: int = 0
    false_alarms: int = 0
    matches: int = 0
    literal_data: int = 0
    matched_data: int = 0
    positions_scanned: int = 0

    @property
    def efficiency(self) -> float:
        """Fraction of the updated file reused from the basis."""
        total = self.literal_data + self.matched_data
        return self.matched_data / total if total > 0 else 0.0

    def __repr__(self) -> str:
        return (
            f"SyncStats(matches={self.matches}, false_alarms={self.false_alarms}, "
            f"hash_hits={self.hash_hits}, efficiency={self.efficiency:.1%})"
        )


@dataclass(frozen=True)
class Delta:
    """
    Ordered Copy/Literal instructions turning a basis file into the updated file.

    Instructions are replayed strictly in order by the applier.

    Attributes:
        block_size: Block size of the signature the delta was computed from
        instructions: The instruction sequence
        new_file_size: Size of the updated file
        basis_block_count: Block count of the signature, None when unknown
        checksum_type: Algorithm of file_digest, None when there is no digest
        file_digest: Whole-file digest of the updated file, optional
        stats: Matching statistics (only with Config.COLLECT_STATS)

    Example:
        >>> for instr in delta.instructions:
        ...     if isinstance(instr, DeltaCopy):
        ...         print(f"  Copy block {instr.block_index}")
        ...     else:
        ...         print(f"  Literal {len(instr.data)} bytes")
    """
    block_size: int
    instructions: Tuple[Instruction, ...]
    new_file_size: int = 0
    basis_block_count: Optional[int] = None
    checksum_type: Optional[str] = None
    file_digest: Optional[bytes] = None
    stats: Optional[SyncStats] = field(default=None, compare=False)

    @property
    def num_copies(self) -> int:
        return sum(1 for instr in self.instructions if isinstance(instr, DeltaCopy))

    @property
    def num_literals(self) -> int:
        return sum(1 for instr in self.instructions if isinstance(instr, DeltaLiteral))

    @property
    def literal_bytes(self) -> int:
        """Total bytes carried by literals."""
        return sum(len(instr.data) for instr in self.instructions if isinstance(instr, DeltaLiteral))

    @property
    def matched_bytes(self) -> int:
        """Bytes of the updated file reproduced from the basis."""
        return max(0, self.new_file_size - self.literal_bytes)

    @property
    def compression_ratio(self) -> float:
        """Ratio of matched bytes to the updated file size."""
        if self.new_file_size <= 0:
            return 0.0
        return self.matched_bytes / self.new_file_size

    def __repr__(self) -> str:
        return (
            f"Delta(new={format_size(self.new_file_size)}, block_size={self.block_size}, "
            f"copies={self.num_copies}, literals={self.num_literals}, "
            f"ratio={self.compression_ratio:.1%})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert delta to dictionary for JSON serialization."""
        instructions = []
        for instr in self.instructions:
            if isinstance(instr, DeltaCopy):
                instructions.append({'type': 'copy', 'block_index': instr.block_index})
            else:
                instructions.append({'type': 'literal', 'data': instr.data.hex()})
        return {
            'block_size': self.block_size,
            'new_file_size': self.new_file_size,
            'basis_block_count': self.basis_block_count,
            'checksum_type': self.checksum_type,
            'file_digest': self.file_digest.hex() if self.file_digest is not None else None,
            'instructions': instructions,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Delta':
        """Create delta from dictionary."""
        instructions = []
        for instr in data['instructions']:
            if instr['type'] == 'copy':
                instructions.append(DeltaCopy(block_index=int(instr['block_index'])))
            elif instr['type'] == 'literal':
                instructions.append(DeltaLiteral(data=bytes.fromhex(instr['data'])))
            else:
                raise CorruptDeltaError(f"Unknown instruction type: {instr['type']!r}")
        digest = data.get('file_digest')
        basis_count = data.get('basis_block_count')
        return cls(
            block_size=int(data['block_size']),
            instructions=tuple(instructions),
            new_file_size=int(data.get('new_file_size', 0)),
            basis_block_count=int(basis_count) if basis_count is not None else None,
            checksum_type=data.get('checksum_type'),
            file_digest=bytes.fromhex(digest) if digest else None,
        )
