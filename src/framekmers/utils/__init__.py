"""
Module containing various utility functions and classes.
"""
from dataclasses import dataclass, fields
from io import IOBase
from pathlib import Path
from typing import Union, Iterable, BinaryIO, IO, Any
from shutil import get_terminal_size
from time import time
from sys import stderr, stdout, stdin
from importlib import import_module

from .resources import RESOURCES, jit


# Classes --------------------------------------------------------------------------------------------------------------
class PeekableHandle:
    """
    A wrapper around a BinaryIO stream that allows peeking at the beginning of the
    content without consuming it. Used by Xopen to sniff compression on pipes.
    """
    __slots__ = ('_stream', '_peek_buffer', '_buffer_pos', '_buffer_len')

    def __init__(self, stream: BinaryIO, max_peek: int = 4096):
        self._stream = stream
        self._peek_buffer = stream.read(max_peek)
        self._buffer_pos = 0
        self._buffer_len = len(self._peek_buffer)

    def peek(self, size: int = -1) -> bytes:
        """
        Returns content from the buffer without advancing the stream position.

        Args:
            size: Number of bytes to peek. If -1, returns the entire buffer.

        Returns:
            The peeked bytes.
        """
        if size == -1 or size > self._buffer_len: return self._peek_buffer
        return self._peek_buffer[:size]

    def read(self, size: int = -1) -> bytes:
        """
        Reads from the stream, consuming the buffer first if available.

        Args:
            size: Number of bytes to read. If -1, reads until EOF.

        Returns:
            The read bytes.
        """
        if self._buffer_pos >= self._buffer_len:
            return self._stream.read(size)
        if size is None or size < 0:
            chunk = self._peek_buffer[self._buffer_pos:]
            self._buffer_pos = self._buffer_len
            return chunk + self._stream.read()
        available = self._buffer_len - self._buffer_pos
        if size <= available:
            chunk = self._peek_buffer[self._buffer_pos: self._buffer_pos + size]
            self._buffer_pos += size
            return chunk
        chunk = self._peek_buffer[self._buffer_pos:]
        self._buffer_pos = self._buffer_len
        return chunk + self._stream.read(size - available)

    def readable(self) -> bool: return True

    def close(self):
        """Closes the underlying stream if possible."""
        if hasattr(self._stream, 'close'): self._stream.close()


class Xopen:
    """
    Handles the Physical Layer: Compression and File System.

    Every handle opened by this object is closed on exit, including the raw file underneath
    a decompression wrapper.

    Examples:
        >>> with Xopen("kmers.tbl.gz", "rb") as f:
        ...     content = f.read()
    """
    _MAGIC = {
        b'\x1f\x8b': 'gzip',
        b'\x42\x5a': 'bz2',
        b'\xfd7zXZ\x00': 'lzma',
    }
    _EXT_TO_PKG = {'gz': 'gzip', 'bz2': 'bz2', 'xz': 'lzma'}
    _MIN_N_BYTES = max(len(i) for i in _MAGIC.keys())
    _OPEN_FUNCS = {}

    def __init__(self, file: Union[str, Path, BinaryIO], mode: str = 'rb'):
        """
        Initializes the Xopen context manager.

        Args:
            file: File path (str or Path) or an existing file object.
            mode: File opening mode ('rb' or 'wb').
        """
        self.file = file
        self.mode = mode
        self._handles: list = []

    def __enter__(self) -> BinaryIO:
        """
        Opens the file and returns the file handle.

        Returns:
            The opened file handle.
        """
        try:
            return self._open()
        except BaseException:
            self._close()
            raise

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Closes the file handles opened by this instance, outermost first.
        """
        self._close()

    def _close(self):
        while self._handles: self._handles.pop().close()

    def _own(self, handle):
        self._handles.append(handle)
        return handle

    def _get_opener(self, pkg_name: str):
        """
        Retrieves the open function for a compression package, importing it if necessary.

        Args:
            pkg_name: Name of the compression package (e.g., 'gzip').

        Returns:
            The open function from the package.
        """
        if pkg_name not in self._OPEN_FUNCS:
            try:
                mod = import_module(pkg_name)
                self._OPEN_FUNCS[pkg_name] = mod.open
            except ImportError:
                raise ModuleNotFoundError(f"Compression module '{pkg_name}' not installed.")
        return self._OPEN_FUNCS[pkg_name]

    def _open(self) -> BinaryIO:
        writing = 'w' in self.mode or 'a' in self.mode
        # 1. Resolve Raw Stream
        if isinstance(self.file, (IOBase, PeekableHandle)):
            raw_stream = self.file
        elif str(self.file) in {'-', 'stdin'} and not writing:
            raw_stream = stdin.buffer
        elif str(self.file) in {'-', 'stdout'} and writing:
            raw_stream = stdout.buffer
        else:
            path = Path(self.file).expanduser()
            # Write mode: Extension based
            if writing:
                ext = path.suffix.lower().lstrip('.')
                if pkg := self._EXT_TO_PKG.get(ext): return self._own(self._get_opener(pkg)(path, mode=self.mode))
                return self._own(open(path, mode=self.mode))
            raw_stream = self._own(open(path, mode='rb'))

        if writing: return raw_stream

        # 2. Read Mode: Sniff Compression
        try: seekable = raw_stream.seekable()
        except (AttributeError, ValueError, OSError): seekable = False

        if seekable:
            start = raw_stream.read(self._MIN_N_BYTES)
            raw_stream.seek(0)
            stream_to_use = raw_stream
        elif hasattr(raw_stream, 'peek'):
            start = raw_stream.peek(self._MIN_N_BYTES)[:self._MIN_N_BYTES]
            stream_to_use = raw_stream
        else:
            stream_to_use = PeekableHandle(raw_stream)
            start = stream_to_use.peek(self._MIN_N_BYTES)

        for magic, pkg in self._MAGIC.items():
            if start.startswith(magic):
                return self._own(self._get_opener(pkg)(stream_to_use, mode='rb'))
        return stream_to_use


@dataclass(slots=True, frozen=True, kw_only=True)
class Config:
    """
    Config parent class that can conveniently set attributes from CLI args
    """
    @classmethod
    def from_obj(cls, obj: Any) -> 'Config':
        return cls(**{f.name: val for f in fields(cls) if (val := getattr(obj, f.name, None)) is not None})


class ProgressBar:
    """
    A lightweight progress bar written to stderr.
    Supports automatic iteration and manual updates.
    """
    __slots__ = ('_iterable', '_total', '_desc', '_unit', '_leave', '_file', '_cols', '_min_interval',
                 '_last_print_t', '_start_t', '_n', '_disable')

    def __init__(self, iterable: Iterable = None, total: int = None, desc: str = None, unit: str = 'it',
                 leave: bool = True, file: IO = stderr, min_interval: float = 0.1, cols: int = None,
                 disable: bool = False):
        self._iterable = iterable
        self._total = total
        if total is None and iterable is not None:
            try: self._total = len(iterable)
            except (TypeError, AttributeError): pass
        self._desc = desc + ": " if desc else ""
        self._unit = unit
        self._leave = leave
        self._file = file
        self._min_interval = min_interval
        self._cols = cols
        self._disable = disable
        self._n = 0
        self._start_t = time()
        self._last_print_t = self._start_t

    def __iter__(self):
        if self._iterable is None: return
        if self._disable:
            yield from self._iterable
            return
        for item in self._iterable:
            yield item
            self.update()
        self._update(time(), final=True)

    def __enter__(self):
        self._start_t = time()
        self._last_print_t = self._start_t
        if not self._disable: self._update(self._start_t)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._disable: self._update(time(), final=True)

    @property
    def n(self) -> int: return self._n

    def update(self, n: int = 1):
        self._n += n
        if self._disable: return
        curr_t = time()
        if curr_t - self._last_print_t >= self._min_interval: self._update(curr_t)

    @staticmethod
    def _format_time(seconds):
        if not seconds or seconds < 0 or seconds == float('inf'): return "??:??"
        seconds = int(seconds)
        m, s = divmod(seconds, 60)
        h, m = divmod(m, 60)
        if h: return f"{h}:{m:02d}:{s:02d}"
        return f"{m:02d}:{s:02d}"

    def _update(self, curr_t, final=False):
        self._last_print_t = curr_t
        cols = self._cols or get_terminal_size().columns
        elapsed = curr_t - self._start_t
        rate = self._n / elapsed if elapsed > 0 else 0.0
        if self._total:
            frac = min(1.0, self._n / self._total)
            l_bar = f"{self._desc}{frac * 100:3.0f}%|"
            r_bar = f"| {self._n}/{self._total} [{self._format_time(elapsed)}, {rate:.2f}{self._unit}/s]"
            bar_len = max(1, cols - len(l_bar) - len(r_bar) - 1)
            fill = int(frac * bar_len)
            line = f"\r{l_bar}{'#' * fill}{'-' * (bar_len - fill)}{r_bar}"
        else:
            line = f"\r{self._desc} {self._n} [{self._format_time(elapsed)}, {rate:.2f}{self._unit}/s]"
        if len(line) < cols: line += " " * (cols - len(line))
        self._file.write(line)
        self._file.flush()
        if final:
            if self._leave: self._file.write('\n')
            else: self._file.write(f"\r{' ' * cols}\r")
            self._file.flush()


__all__ = ['RESOURCES', 'jit', 'PeekableHandle', 'Xopen', 'Config', 'ProgressBar']
