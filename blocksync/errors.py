# -*- coding: utf-8 -*-
"""
Exception hierarchy for blocksync.

Every error carries a numeric ``code`` which the CLI uses as its exit
status.
"""


class BlockSyncError(Exception):
    """
    Base exception for all blocksync errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code (process exit status in the CLI)

    Example:
        >>> raise BlockSyncError("Operation failed", code=1)
    """
    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        return self.message


class InvalidConfigError(BlockSyncError):
    """
    Raised for an unusable configuration.

    A zero or negative block size, or a block size that disagrees with the
    one a signature was built with. The caller must fix the configuration
    before retrying.
    """
    def __init__(self, message: str) -> None:
        super().__init__(message, code=2)


class FileIOError(BlockSyncError):
    """
    Raised when a stream cannot be read or written.

    Wraps OS-level errors; the original exception is chained.
    """
    def __init__(self, message: str) -> None:
        super().__init__(message, code=3)


class CorruptDeltaError(BlockSyncError):
    """
    Raised when a delta cannot be applied as given.

    Covers Copy instructions that reference a block beyond the basis file,
    a delta built against a basis with a different block count, and
    malformed delta streams. Never silently recovered.
    """
    def __init__(self, message: str) -> None:
        super().__init__(message, code=4)


class SignatureFormatError(BlockSyncError):
    """Raised for malformed or internally inconsistent signatures."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code=5)


class DataIntegrityError(BlockSyncError):
    """
    Raised when the reconstructed file fails whole-file verification.

    This is how an otherwise undetected block collision surfaces when the
    delta carries a digest of the updated file.
    """
    def __init__(self, message: str) -> None:
        super().__init__(message, code=6)
