# -*- coding: utf-8 -*-
"""
Byte-stream handles consumed by the core.

The core never opens files on its own behalf: it reads through a
:class:`DataSource`. ``as_source`` wraps whatever the caller has (bytes,
an open binary file, a path) into one.
"""

from __future__ import annotations

import io
import os
from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Optional, Union

from .errors import FileIOError

SourceLike = Union[bytes, bytearray, memoryview, BinaryIO, "DataSource", str, os.PathLike]


class DataSource(ABC):
    """
    Abstract base class for data sources.

    Provides a unified, seekable interface for reading data from memory
    or files. Subclasses must implement read_chunk(), size() and seek().

    Example:
        >>> with FileDataSource("large_file.bin") as source:
        ...     while chunk := source.read_chunk(4096):
        ...         process(chunk)
    """

    @abstractmethod
    def read_chunk(self, size: int) -> bytes:
        """
        Read up to ``size`` bytes from the current position.

        Returns:
            Bytes read (short at EOF, empty past EOF)
        """
        raise NotImplementedError

    @abstractmethod
    def size(self) -> int:
        """Total size in bytes."""
        raise NotImplementedError

    @abstractmethod
    def seek(self, offset: int) -> None:
        """Seek to a byte offset from the start."""
        raise NotImplementedError

    def read_full(self, size: int) -> bytes:
        """
        Read ``size`` bytes, looping over short reads.

        Only returns fewer bytes than asked for at end of stream.
        """
        chunk = self.read_chunk(size)
        if len(chunk) == size or not chunk:
            return chunk
        parts = [chunk]
        remaining = size - len(chunk)
        while remaining > 0:
            chunk = self.read_chunk(remaining)
            if not chunk:
                break
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def close(self) -> None:
        """Close the data source and release resources."""
        pass

    def __enter__(self) -> 'DataSource':
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class BytesDataSource(DataSource):
    """
    DataSource that reads from in-memory bytes.

    Example:
        >>> source = BytesDataSource(b"Hello, World!")
        >>> source.read_chunk(5)
        b'Hello'
        >>> source.read_chunk(5)
        b', Wor'
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview]) -> None:
        self._data = bytes(data)
        self._position = 0

    def read_chunk(self, size: int) -> bytes:
        chunk = self._data[self._position:self._position + size]
        self._position += len(chunk)
        return chunk

    def size(self) -> int:
        return len(self._data)

    def seek(self, offset: int) -> None:
        self._position = max(0, min(offset, len(self._data)))


class StreamDataSource(DataSource):
    """
    DataSource over an already-open binary file object.

    The stream is not closed by this wrapper; whoever opened it owns it.
    Read and seek failures surface as FileIOError.
    """

    def __init__(self, stream: BinaryIO, name: str = "<stream>") -> None:
        self._stream = stream
        self.name = getattr(stream, 'name', name)

    def read_chunk(self, size: int) -> bytes:
        try:
            return self._stream.read(size)
        except OSError as e:
            raise FileIOError(f"Cannot read {self.name}: {e}") from e

    def size(self) -> int:
        try:
            current = self._stream.tell()
            end = self._stream.seek(0, io.SEEK_END)
            self._stream.seek(current)
            return end
        except OSError as e:
            raise FileIOError(f"Cannot determine size of {self.name}: {e}") from e

    def seek(self, offset: int) -> None:
        try:
            self._stream.seek(offset)
        except OSError as e:
            raise FileIOError(f"Cannot seek in {self.name}: {e}") from e


class FileDataSource(DataSource):
    """
    DataSource that reads from a file on disk.

    Example:
        >>> with FileDataSource("/path/to/large.iso") as source:
        ...     print(f"File size: {source.size()}")
        ...     first_block = source.read_chunk(4096)
    """

    def __init__(self, filepath: Union[str, os.PathLike]) -> None:
        """
        Raises:
            FileIOError: If file cannot be accessed
        """
        self.filepath = os.fspath(filepath)
        self._file: Optional[BinaryIO] = None
        try:
            self._size = os.path.getsize(self.filepath)
        except OSError as e:
            raise FileIOError(f"Cannot access file {self.filepath}: {e}") from e

    def __enter__(self) -> 'FileDataSource':
        self.open()
        return self

    def open(self) -> None:
        if self._file is not None:
            return
        try:
            self._file = open(self.filepath, 'rb')
        except OSError as e:
            raise FileIOError(f"Cannot open file {self.filepath}: {e}") from e

    def read_chunk(self, size: int) -> bytes:
        if not self._file:
            self.open()
        assert self._file is not None
        try:
            return self._file.read(size)
        except OSError as e:
            raise FileIOError(f"Cannot read file {self.filepath}: {e}") from e

    def size(self) -> int:
        return self._size

    def seek(self, offset: int) -> None:
        if not self._file:
            self.open()
        assert self._file is not None
        try:
            self._file.seek(offset)
        except OSError as e:
            raise FileIOError(f"Cannot seek in file {self.filepath}: {e}") from e

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None


def as_source(obj: SourceLike) -> DataSource:
    """
    Wrap bytes, a binary file object or a path into a DataSource.

    Paths produce a FileDataSource which the caller should close; the
    other wrappers hold no resources of their own.
    """
    if isinstance(obj, DataSource):
        return obj
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return BytesDataSource(obj)
    if isinstance(obj, (str, os.PathLike)):
        return FileDataSource(obj)
    if hasattr(obj, 'read'):
        return StreamDataSource(obj)
    raise TypeError(f"Cannot read from {type(obj).__name__}")
