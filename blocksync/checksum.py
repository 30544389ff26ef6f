# -*- coding: utf-8 -*-
"""
Weak (rolling) and strong checksums.

The weak checksum is the rsync/Adler-32 style sum: two 16-bit components
that can be updated in O(1) as a window slides over a byte stream. The
strong checksum is a collision-resistant digest used to confirm every
weak-checksum hit before a block match is accepted.

Weak checksum over a window ``b[0..w)``::

    s1 = sum(b[i] + CHAR_OFFSET)              mod 2^16
    s2 = sum((w - i) * (b[i] + CHAR_OFFSET))  mod 2^16
    value = s1 | (s2 << 16)
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union

import xxhash

from .config import CHAR_OFFSET, WEAK_MASK, Config

BytesLike = Union[bytes, bytearray, memoryview]


class ChecksumAccumulator(Protocol):
    """Protocol for incremental hashers (hashlib and xxhash objects)."""
    def update(self, data: bytes) -> None: ...
    def digest(self) -> bytes: ...


# ============================================================================
# ROLLING CHECKSUM
# ============================================================================

class RollingChecksum:
    """
    Fixed-window incremental checksum.

    ``init`` computes the checksum of a window from scratch in O(w).
    ``roll`` slides the window forward by one byte in O(1). ``roll_out``
    drops the leading byte without adding one, which is how the window
    shrinks when it reaches the end of the stream.

    Calling ``roll`` before ``init``, or more often than there are bytes
    left, is the caller's responsibility.

    Example:
        >>> rc = RollingChecksum()
        >>> rc.init(b"abcd")
        >>> rc.roll(ord("a"), ord("e"))
        >>> rc.value() == RollingChecksum.checksum(b"bcde")
        True
    """

    __slots__ = ("_s1", "_s2", "_size")

    def __init__(self) -> None:
        self._s1 = 0
        self._s2 = 0
        self._size = 0

    def init(self, window: BytesLike, offset: int = 0, length: Optional[int] = None) -> None:
        """Compute the checksum of ``window[offset:offset + length]``."""
        if length is None:
            length = len(window) - offset

        s1 = 0
        s2 = 0
        i = 0

        # 4 bytes per iteration; s2 gains 4*s1 plus the weighted new bytes
        while i < length - 3:
            b0 = window[offset + i] + CHAR_OFFSET
            b1 = window[offset + i + 1] + CHAR_OFFSET
            b2 = window[offset + i + 2] + CHAR_OFFSET
            b3 = window[offset + i + 3] + CHAR_OFFSET
            s2 = (s2 + 4 * (s1 + b0) + 3 * b1 + 2 * b2 + b3) & WEAK_MASK
            s1 = (s1 + b0 + b1 + b2 + b3) & WEAK_MASK
            i += 4

        while i < length:
            s1 = (s1 + window[offset + i] + CHAR_OFFSET) & WEAK_MASK
            s2 = (s2 + s1) & WEAK_MASK
            i += 1

        self._s1 = s1
        self._s2 = s2
        self._size = length

    def roll(self, byte_leaving: int, byte_entering: int) -> None:
        """Advance the window by one byte, keeping its size."""
        old_val = byte_leaving + CHAR_OFFSET
        self._s1 = (self._s1 - old_val + byte_entering + CHAR_OFFSET) & WEAK_MASK
        self._s2 = (self._s2 - self._size * old_val + self._s1) & WEAK_MASK

    def roll_out(self, byte_leaving: int) -> None:
        """Drop the leading byte; the window shrinks by one."""
        old_val = byte_leaving + CHAR_OFFSET
        self._s1 = (self._s1 - old_val) & WEAK_MASK
        self._s2 = (self._s2 - self._size * old_val) & WEAK_MASK
        self._size -= 1

    def value(self) -> int:
        """Current checksum as an unsigned 32-bit integer."""
        return (self._s1 & WEAK_MASK) | ((self._s2 & WEAK_MASK) << 16)

    @property
    def size(self) -> int:
        """Current window length."""
        return self._size

    @property
    def components(self) -> Tuple[int, int]:
        return self._s1, self._s2

    @classmethod
    def checksum(cls, data: BytesLike) -> int:
        """One-shot weak checksum of ``data``."""
        rc = cls()
        rc.init(data)
        return rc.value()

    def __repr__(self) -> str:
        return f"RollingChecksum(value=0x{self.value():08x}, size={self._size})"


# ============================================================================
# STRONG CHECKSUMS
# ============================================================================

class ChecksumType(Enum):
    """
    Supported strong digest algorithms.

    Performance Characteristics:
        - xxHash3: fastest, non-cryptographic
        - xxHash64: fast, non-cryptographic
        - BLAKE2b (128-bit): fast, cryptographic
        - MD5: cryptographic, default
        - SHA1 / SHA256: cryptographic, stronger

    Example:
        >>> digest = StrongDigest(ChecksumType.XXH128)
    """
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    BLAKE2B = "blake2b"
    XXH64 = "xxh64"
    XXH3 = "xxh3"
    XXH128 = "xxh128"

    @classmethod
    def parse(cls, value: Union[str, "ChecksumType"]) -> "ChecksumType":
        """Accept an enum member or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            names = ", ".join(t.value for t in cls)
            raise ValueError(f"Unsupported checksum type: {value!r} (choose from {names})")


# Stable ids used by the wire formats
CHECKSUM_WIRE_IDS: Dict[ChecksumType, int] = {
    ChecksumType.MD5: 1,
    ChecksumType.SHA1: 2,
    ChecksumType.SHA256: 3,
    ChecksumType.BLAKE2B: 4,
    ChecksumType.XXH64: 5,
    ChecksumType.XXH3: 6,
    ChecksumType.XXH128: 7,
}
CHECKSUM_BY_WIRE_ID: Dict[int, ChecksumType] = {v: k for k, v in CHECKSUM_WIRE_IDS.items()}


class ChecksumRegistry:
    """
    Registry of available checksum algorithms.

    Abstracts hashlib and xxhash behind a unified interface: one-shot
    functions for block digests and incremental accumulators for
    whole-file digests.

    Example:
        >>> func = ChecksumRegistry.get_checksum_function(ChecksumType.MD5)
        >>> func(b"Hello, World!").hex()
        '65a8e27d8879283831b664bd8b7f0ad4'
    """

    _DIGEST_LENGTHS: Dict[ChecksumType, int] = {
        ChecksumType.MD5: 16,
        ChecksumType.SHA1: 20,
        ChecksumType.SHA256: 32,
        ChecksumType.BLAKE2B: 16,
        ChecksumType.XXH64: 8,
        ChecksumType.XXH3: 8,
        ChecksumType.XXH128: 16,
    }

    @classmethod
    def get_accumulator(cls, checksum_type: ChecksumType) -> ChecksumAccumulator:
        """Return a fresh incremental hasher with update()/digest()."""
        if checksum_type == ChecksumType.MD5:
            return hashlib.md5()
        if checksum_type == ChecksumType.SHA1:
            return hashlib.sha1()
        if checksum_type == ChecksumType.SHA256:
            return hashlib.sha256()
        if checksum_type == ChecksumType.BLAKE2B:
            return hashlib.blake2b(digest_size=16)
        if checksum_type == ChecksumType.XXH64:
            return xxhash.xxh64()
        if checksum_type == ChecksumType.XXH3:
            return xxhash.xxh3_64()
        if checksum_type == ChecksumType.XXH128:
            return xxhash.xxh3_128()
        raise ValueError(f"Unsupported checksum type: {checksum_type}")

    @classmethod
    def get_checksum_function(cls, checksum_type: ChecksumType) -> Callable[[bytes], bytes]:
        """
        Get the one-shot digest function for a checksum type.

        Raises:
            ValueError: If checksum type is not supported
        """
        if checksum_type == ChecksumType.MD5:
            return cls._md5_checksum
        elif checksum_type == ChecksumType.SHA1:
            return cls._sha1_checksum
        elif checksum_type == ChecksumType.SHA256:
            return cls._sha256_checksum
        elif checksum_type == ChecksumType.BLAKE2B:
            return cls._blake2b_checksum
        elif checksum_type == ChecksumType.XXH64:
            return cls._xxh64_checksum
        elif checksum_type == ChecksumType.XXH3:
            return cls._xxh3_checksum
        elif checksum_type == ChecksumType.XXH128:
            return cls._xxh128_checksum
        else:
            raise ValueError(f"Unsupported checksum type: {checksum_type}")

    @staticmethod
    def _md5_checksum(data: bytes) -> bytes:
        return hashlib.md5(data).digest()

    @staticmethod
    def _sha1_checksum(data: bytes) -> bytes:
        return hashlib.sha1(data).digest()

    @staticmethod
    def _sha256_checksum(data: bytes) -> bytes:
        return hashlib.sha256(data).digest()

    @staticmethod
    def _blake2b_checksum(data: bytes) -> bytes:
        return hashlib.blake2b(data, digest_size=16).digest()

    @staticmethod
    def _xxh64_checksum(data: bytes) -> bytes:
        return xxhash.xxh64(data).digest()

    @staticmethod
    def _xxh3_checksum(data: bytes) -> bytes:
        return xxhash.xxh3_64(data).digest()

    @staticmethod
    def _xxh128_checksum(data: bytes) -> bytes:
        return xxhash.xxh3_128(data).digest()

    @classmethod
    def get_digest_length(cls, checksum_type: ChecksumType) -> int:
        """Get the digest length in bytes for a checksum type."""
        return cls._DIGEST_LENGTHS[checksum_type]


class StrongDigest:
    """
    Collision-resistant digest over an arbitrary byte span.

    Deterministic: the same bytes always produce the same digest. The
    matching code relies on nothing else.

    Attributes:
        checksum_type: Algorithm in use
        digest_size: Length of every digest in bytes
    """

    def __init__(self, checksum_type: Union[str, ChecksumType, None] = None) -> None:
        if checksum_type is None:
            checksum_type = Config.DEFAULT_CHECKSUM
        self.checksum_type = ChecksumType.parse(checksum_type)
        self.digest_size = ChecksumRegistry.get_digest_length(self.checksum_type)
        self._func = ChecksumRegistry.get_checksum_function(self.checksum_type)

    def digest(self, data: BytesLike) -> bytes:
        # Normalize so every backend sees plain bytes
        return self._func(bytes(data))

    def accumulator(self) -> Any:
        """Incremental hasher for the same algorithm (whole-file digests)."""
        return ChecksumRegistry.get_accumulator(self.checksum_type)

    def __repr__(self) -> str:
        return f"StrongDigest({self.checksum_type.value}, {self.digest_size} bytes)"
