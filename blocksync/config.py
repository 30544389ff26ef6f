# -*- coding: utf-8 -*-
"""
Global configuration, constants and the package logger.

All tunables live on :class:`Config` as class attributes so they can be
changed at runtime (tests, CLI flags) and restored with
:meth:`Config.reset_defaults`.
"""

from __future__ import annotations

import logging
from typing import ClassVar, Dict

from .errors import InvalidConfigError

# ============================================================================
# ALGORITHM CONSTANTS
# ============================================================================

CHAR_OFFSET = 0  # added to every byte by the weak checksum (0 = plain sum)
WEAK_MASK = 0xFFFF  # s1 / s2 are kept modulo 2^16

DEFAULT_BLOCK_SIZE = 2048
MAX_BLOCK_SIZE = 16 * 1024 * 1024  # 16MB, well below the u32 wire limit


class Config:
    """
    Global configuration for blocksync behavior.

    Attributes:
        DEFAULT_BLOCK_SIZE (int): Block size used when the caller supplies none
        MAX_BLOCK_SIZE (int): Largest block size accepted by validation
        DEFAULT_CHECKSUM (str): Strong digest algorithm name (see ChecksumType)
        SIGNATURE_WORKERS (int): Threads used to hash signature blocks
        CHUNK_SIZE_STREAMING (int): Read size of the delta encoder's buffer
        COLLECT_STATS (bool): Attach SyncStats to generated deltas
        COMPUTE_FILE_DIGEST (bool): Store a whole-file digest in each delta
        VERIFY_FILE_DIGEST (bool): Check that digest when applying a delta
        DEFAULT_COMPRESSION (str): Compression of the delta wire body
        VERBOSE_LOGGING (bool): INFO-level logging instead of WARNING
        USE_COLORS (bool): Colored CLI output (only on a TTY)

    Example:
        >>> Config.COLLECT_STATS = True
        >>> Config.SIGNATURE_WORKERS = 4
        >>> Config.reset_defaults()
    """
    # Algorithm settings
    DEFAULT_BLOCK_SIZE: ClassVar[int] = DEFAULT_BLOCK_SIZE
    MAX_BLOCK_SIZE: ClassVar[int] = MAX_BLOCK_SIZE
    DEFAULT_CHECKSUM: ClassVar[str] = "md5"

    # Performance settings
    SIGNATURE_WORKERS: ClassVar[int] = 1
    CHUNK_SIZE_STREAMING: ClassVar[int] = 1024 * 1024  # 1MB reads

    # Verification / statistics
    COLLECT_STATS: ClassVar[bool] = False
    COMPUTE_FILE_DIGEST: ClassVar[bool] = True
    VERIFY_FILE_DIGEST: ClassVar[bool] = True

    # Wire settings
    DEFAULT_COMPRESSION: ClassVar[str] = "none"

    # UI settings
    VERBOSE_LOGGING: ClassVar[bool] = False
    USE_COLORS: ClassVar[bool] = True

    @classmethod
    def reset_defaults(cls) -> None:
        """Reset all configuration to default values."""
        defaults: Dict[str, object] = {
            "DEFAULT_BLOCK_SIZE": DEFAULT_BLOCK_SIZE,
            "MAX_BLOCK_SIZE": MAX_BLOCK_SIZE,
            "DEFAULT_CHECKSUM": "md5",
            "SIGNATURE_WORKERS": 1,
            "CHUNK_SIZE_STREAMING": 1024 * 1024,
            "COLLECT_STATS": False,
            "COMPUTE_FILE_DIGEST": True,
            "VERIFY_FILE_DIGEST": True,
            "DEFAULT_COMPRESSION": "none",
            "VERBOSE_LOGGING": False,
            "USE_COLORS": True,
        }
        for name, value in defaults.items():
            setattr(cls, name, value)
        logger.setLevel(logging.WARNING)


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

# Library code never installs handlers; the CLI calls configure_logging().
logger = logging.getLogger('blocksync')
logger.setLevel(logging.INFO if Config.VERBOSE_LOGGING else logging.WARNING)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def configure_logging(verbose: bool = False) -> None:
    """Install a basic stderr handler and pick the level from ``verbose``."""
    Config.VERBOSE_LOGGING = verbose
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)


def validate_block_size(block_size: int) -> None:
    """
    Validate block size is within the accepted range.

    Raises:
        InvalidConfigError: If block_size is zero, negative or too large

    Example:
        >>> validate_block_size(4096)  # OK
        >>> validate_block_size(0)  # Raises InvalidConfigError
    """
    if isinstance(block_size, bool) or not isinstance(block_size, int):
        raise InvalidConfigError(
            f"block_size must be an integer, got {type(block_size).__name__}"
        )
    if block_size <= 0:
        raise InvalidConfigError(f"block_size must be positive, got {block_size}")
    if block_size > Config.MAX_BLOCK_SIZE:
        raise InvalidConfigError(
            f"block_size too large ({block_size}), maximum is {Config.MAX_BLOCK_SIZE} bytes"
        )
