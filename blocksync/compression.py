# -*- coding: utf-8 -*-
"""
Compression of the delta wire body.

Literal data dominates a delta's size, so the serialized instruction
stream can optionally be compressed as a whole with zlib, lz4 (frame
format) or zstandard. The chosen algorithm is recorded in the delta
header by its wire id.
"""

from __future__ import annotations

import zlib
from enum import Enum
from typing import Any, Dict, List, Union, cast

import lz4.frame  # type: ignore[import]
import zstandard  # type: ignore[import]

_lz4_frame: Any = cast(Any, lz4.frame)
_zstandard: Any = cast(Any, zstandard)


class CompressionType(Enum):
    """
    Supported compression algorithms.

    Wire ids (delta header byte):

        NONE = 0, ZLIB = 1, LZ4 = 2, ZSTD = 3
    """
    NONE = "none"
    ZLIB = "zlib"
    LZ4 = "lz4"
    ZSTD = "zstd"

    @classmethod
    def parse(cls, value: Union[str, "CompressionType", None]) -> "CompressionType":
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            names = ", ".join(t.value for t in cls)
            raise ValueError(f"Unsupported compression type: {value!r} (choose from {names})")


COMPRESSION_WIRE_IDS: Dict[CompressionType, int] = {
    CompressionType.NONE: 0,
    CompressionType.ZLIB: 1,
    CompressionType.LZ4: 2,
    CompressionType.ZSTD: 3,
}
COMPRESSION_BY_WIRE_ID: Dict[int, CompressionType] = {v: k for k, v in COMPRESSION_WIRE_IDS.items()}


class CompressionRegistry:
    """
    Registry of available compression algorithms.

    Provides a unified interface over zlib, lz4 and zstandard.

    Example:
        >>> packed = CompressionRegistry.compress(body, CompressionType.ZSTD)
        >>> CompressionRegistry.decompress(packed, CompressionType.ZSTD) == body
        True
    """
    # Reused compression contexts, keyed by level
    _zstd_compressors: Dict[int, Any] = {}
    _zstd_decompressors: Dict[int, Any] = {}

    @classmethod
    def compress(cls, data: bytes, comp_type: CompressionType, level: int = -1) -> bytes:
        """
        Compress data using specified algorithm.

        Args:
            data: Data to compress
            comp_type: Compression algorithm
            level: Compression level (-1 = algorithm default)

        Raises:
            ValueError: If compression type is not supported
        """
        if level < 0:
            level = cls.get_compression_level(comp_type)
        if comp_type == CompressionType.NONE:
            return data
        elif comp_type == CompressionType.ZLIB:
            return zlib.compress(data, level)
        elif comp_type == CompressionType.LZ4:
            return cast(bytes, _lz4_frame.compress(data, compression_level=level))
        elif comp_type == CompressionType.ZSTD:
            return cast(bytes, cls._get_zstd_compressor(level).compress(data))
        else:
            raise ValueError(f"Unsupported compression type: {comp_type}")

    @classmethod
    def decompress(cls, data: bytes, comp_type: CompressionType) -> bytes:
        """
        Decompress data using specified algorithm.

        Raises:
            ValueError: If compression type is not supported, or the
                stream is incomplete or followed by extra bytes
        """
        if comp_type == CompressionType.NONE:
            return data
        elif comp_type == CompressionType.ZLIB:
            dobj: Any = zlib.decompressobj()
        elif comp_type == CompressionType.LZ4:
            dobj = _lz4_frame.LZ4FrameDecompressor()
        elif comp_type == CompressionType.ZSTD:
            dobj = cls._get_zstd_decompressor().decompressobj()
        else:
            raise ValueError(f"Unsupported compression type: {comp_type}")

        # Exactly one complete stream, nothing after it
        out = cast(bytes, dobj.decompress(data))
        if not dobj.eof:
            raise ValueError(f"{comp_type.value} stream is incomplete")
        if dobj.unused_data:
            raise ValueError(f"{len(dobj.unused_data)} bytes after the {comp_type.value} stream")
        return out

    @classmethod
    def _get_zstd_compressor(cls, level: int) -> Any:
        """Get or create a ZstdCompressor for the given level."""
        if level not in cls._zstd_compressors:
            cls._zstd_compressors[level] = _zstandard.ZstdCompressor(level=level)
        return cls._zstd_compressors[level]

    @classmethod
    def _get_zstd_decompressor(cls) -> Any:
        if 0 not in cls._zstd_decompressors:
            cls._zstd_decompressors[0] = _zstandard.ZstdDecompressor()
        return cls._zstd_decompressors[0]

    @classmethod
    def get_compression_level(cls, comp_type: CompressionType) -> int:
        """Get default compression level for algorithm."""
        levels = {
            CompressionType.NONE: 0,
            CompressionType.ZLIB: 6,
            CompressionType.LZ4: 1,  # lz4 uses 0-12, 1 is fast
            CompressionType.ZSTD: 3,  # zstd uses 1-22, 3 is balanced
        }
        return levels.get(comp_type, 6)

    @classmethod
    def get_supported_types(cls) -> List[CompressionType]:
        return list(CompressionType)
