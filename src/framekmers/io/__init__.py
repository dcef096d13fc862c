"""
Module for reading annotated genomes and the kmer frame tables.
"""
from abc import ABC, abstractmethod
from typing import Union, Generator, BinaryIO, NamedTuple, Protocol, Iterable, runtime_checkable
from pathlib import Path

from framekmers.utils import Xopen


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class GenomeFormatError(ValueError):
    """Raised when a genome file cannot be parsed."""


class TableFormatError(ValueError):
    """Raised when a kmer table has no usable header or rows."""


# Classes --------------------------------------------------------------------------------------------------------------
class FeatureRecord(NamedTuple):
    """
    An annotated feature as the coding map needs it.

    Attributes:
        contig_id: Contig holding the feature.
        strand: ``'+'`` or ``'-'``.
        regions: 1-based closed ``(left, right)`` pairs.
        type: Feature type, e.g. ``'CDS'``.
        id: Feature identifier.
    """
    contig_id: str
    strand: str
    regions: tuple[tuple[int, int], ...]
    type: str = 'CDS'
    id: str = ''


@runtime_checkable
class GenomeSource(Protocol):
    """Protocol for annotated genomes: contigs are streamed as ``(contig_id, sequence)``."""
    @property
    def id(self) -> str: ...
    def contigs(self) -> Iterable[tuple[str, str]]: ...
    def features(self) -> Iterable[FeatureRecord]: ...


class BaseReader(ABC):
    """Abstract base class for file readers working on an open binary handle."""
    _CHUNK_SIZE = 65536
    __slots__ = ('_handle', '_iterator')

    def __init__(self, handle: BinaryIO, **kwargs):
        """
        Initializes the reader.

        Args:
            handle: The open file handle to read from.
            **kwargs: Additional arguments.
        """
        self._handle = handle
        self._iterator = None

    @abstractmethod
    def __iter__(self) -> Generator: ...
    def __enter__(self): return self
    def __exit__(self, exc_type, exc_val, exc_tb): self.close()
    def __next__(self):
        if self._iterator is None:
            self._iterator = self.__iter__()
        return next(self._iterator)

    def close(self):
        """Closes the reader."""
        pass

    def read_chunks(self, chunk_size: int = None) -> Generator[bytes, None, None]:
        """Yields chunks of data from the file handle, then a final empty chunk."""
        if chunk_size is None: chunk_size = self._CHUNK_SIZE
        read = self._handle.read
        while chunk := read(chunk_size): yield chunk
        yield b''

    @classmethod
    def open(cls, file: Union[str, Path, BinaryIO], **kwargs) -> Generator:
        """Opens a file (compressed or not) and yields every item of it."""
        with Xopen(file, 'rb') as handle:
            yield from cls(handle, **kwargs)


class BaseWriter(ABC):
    """
    Abstract base class for file writers; the file is opened on enter and closed on exit.
    """
    __slots__ = ('_opener', '_handle')

    def __init__(self, file: Union[str, Path, BinaryIO], mode: str = 'wb'):
        self._opener = Xopen(file, mode=mode)
        self._handle = None

    def __enter__(self):
        self._handle = self._opener.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._opener.__exit__(exc_type, exc_val, exc_tb)
        self._handle = None

    @abstractmethod
    def write_one(self, item): ...

    def write(self, items: Iterable) -> int:
        """Writes every item and returns how many were written."""
        n = 0
        for item in items:
            self.write_one(item)
            n += 1
        return n


class TabularReader(BaseReader):
    """Base class for readers of tab-separated formats (GFF, kmer tables)."""
    _delim = b'\t'
    _min_cols: int = 1
    _stop = None
    __slots__ = ()

    def _read_parts(self) -> Generator[list[bytes], None, None]:
        """Internal generator that yields split lines, skipping blanks and comments."""
        delim = self._delim
        min_cols = self._min_cols
        stop = self._stop

        buf = bytearray()
        for chunk in self.read_chunks(self._CHUNK_SIZE):
            if not chunk:
                if buf:
                    line = bytes(buf).rstrip()
                    if line and not line.startswith(b'#'):
                        parts = line.split(delim)
                        if len(parts) >= min_cols:
                            yield parts
                break

            buf.extend(chunk)
            pos = 0

            while True:
                nl_pos = buf.find(b'\n', pos)
                if nl_pos == -1:
                    del buf[:pos]
                    break

                line = bytes(buf[pos:nl_pos]).rstrip()
                pos = nl_pos + 1

                if stop is not None and line.startswith(stop): return
                if not line or line.startswith(b'#'): continue

                parts = line.split(delim)
                if len(parts) < min_cols: continue
                yield parts

    def __iter__(self) -> Generator:
        """
        Iterates over lines, parsing valid rows.

        Yields:
            Parsed rows; rows the parser rejects with ``None`` are skipped.
        """
        parse = self.parse_row
        for parts in self._read_parts():
            if (row := parse(parts)) is not None: yield row

    @abstractmethod
    def parse_row(self, parts: list[bytes]):
        """
        Parses a single row split by delimiter.

        Args:
            parts: List of column bytes.
        """
        pass


__all__ = ['GenomeFormatError', 'TableFormatError', 'FeatureRecord', 'GenomeSource', 'BaseReader', 'BaseWriter',
           'TabularReader']
