"""
Frame-by-kmer count table: accumulates how often each kmer falls in each coding frame of annotated genomes.
"""
from pathlib import Path
from typing import Union, Iterator, Iterable, BinaryIO, Any, Final
from warnings import warn

import numpy as np

from framekmers import InputWarning
from framekmers.core.frame import Frame, REVERSE_FRAMES
from framekmers.core.interval import LocationList, coding_map
from framekmers.core.kmer import KmerCodec, KmerError, KmerSizeError
from framekmers.core.traversal import KmerStrategy, KmerTraversal, KmerSpec
from framekmers.io.tabular import KmerTableWriter
from framekmers.utils import Xopen, ProgressBar
from framekmers.utils.resources import jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class CounterFormatError(IOError):
    """Raised when a saved count table is truncated, mistagged or does not match its declared kmer size."""


# Classes --------------------------------------------------------------------------------------------------------------
class FrameCountTable:
    """
    Saturating 16-bit counters for every (frame, kmer) pair.

    The table has one row per counted frame (``Frame.N_FRAMES``) and one column per kmer, and is allocated once
    for its kmer size. Counters stop at 65535 instead of wrapping.

    Examples:
        >>> table = FrameCountTable(4)
        >>> kmer = table.codec.encode('acgt')
        >>> table.increment(kmer, Frame.P1)
        >>> table.best_frame(kmer)
        <Frame.P1: 5>
    """
    __slots__ = ('_codec', '_strategy', '_counts')
    MAX_COUNT: Final = 0xFFFF
    DTYPE: Final = np.uint16
    HEADER_DTYPE: Final = np.dtype('>i4')
    COUNT_DTYPE: Final = np.dtype('>u2')

    def __init__(self, k: int = 15, strategy: KmerStrategy = KmerStrategy.CONTIGUOUS):
        """
        Initializes an empty table.

        Args:
            k: Kmer size (1 to 15).
            strategy: Traversal strategy the counts come from; it is recorded in saved files.

        Raises:
            KmerSizeError: If ``k`` is out of range or does not suit the strategy.
        """
        self._codec = KmerCodec(k)
        self._strategy = KmerStrategy(strategy)
        self._strategy.validate(k)
        self._counts = np.zeros((Frame.N_FRAMES, self._codec.max_kmers), dtype=self.DTYPE)

    @classmethod
    def from_spec(cls, spec: Union[str, KmerSpec]) -> 'FrameCountTable':
        """Builds a table from compact kmer notation such as ``'15'`` or ``'8p'``."""
        if isinstance(spec, str): spec = KmerSpec.parse(spec)
        return cls(spec.k, spec.strategy)

    @property
    def k(self) -> int: return self._codec.k
    @property
    def codec(self) -> KmerCodec: return self._codec
    @property
    def strategy(self) -> KmerStrategy: return self._strategy
    @property
    def spec(self) -> KmerSpec: return KmerSpec(self.k, self._strategy)

    @property
    def matrix(self) -> np.ndarray:
        """Read-only view of the ``(N_FRAMES, 4 ** k)`` count matrix."""
        view = self._counts.view()
        view.flags.writeable = False
        return view

    def __repr__(self): return f'FrameCountTable(k={self.k}, {self._strategy.name}, {self.n_kmers()} kmers)'

    def __eq__(self, other):
        if not isinstance(other, FrameCountTable): return NotImplemented
        return (self.k == other.k and self._strategy == other._strategy and
                np.array_equal(self._counts, other._counts))

    __hash__ = None

    def _check(self, kmer: int) -> int:
        if not 0 <= kmer < self._codec.max_kmers: raise KmerError(f'Kmer index {kmer} is not a valid {self.k}-mer')
        return int(kmer)

    def increment(self, kmer: int, frame: Frame):
        """
        Adds one hit for a kmer in a frame. Hits in ``XX`` are ignored.

        Raises:
            KmerError: If ``kmer`` is a sentinel or out of range.
        """
        if frame == Frame.XX: return
        kmer = self._check(kmer)
        if self._counts[frame, kmer] < self.MAX_COUNT: self._counts[frame, kmer] += 1

    def count(self, kmer: int, frame: Frame) -> int:
        if frame == Frame.XX: return 0
        return int(self._counts[frame, self._check(kmer)])

    def counts(self, kmer: int) -> np.ndarray:
        """Returns a copy of the per-frame counts of a kmer."""
        return self._counts[:, self._check(kmer)].copy()

    def total(self, kmer: int) -> int:
        return int(self._counts[:, self._check(kmer)].sum(dtype=np.int64))

    def best_frame(self, kmer: int) -> Frame:
        """
        Returns the frame with the most hits.

        Ties go to the lowest frame ordinal; a kmer that was never seen gives ``XX``.
        """
        column = self._counts[:, self._check(kmer)]
        if not column.any(): return Frame.XX
        return Frame(int(np.argmax(column)))

    def fraction(self, kmer: int, frame: Frame) -> float:
        """Returns the share of a kmer's hits that fell in a frame, 0.0 for an unseen kmer."""
        total = self.total(kmer)
        return self.count(kmer, frame) / total if total else 0.0

    def __iter__(self) -> Iterator[int]:
        """Yields, in ascending order, every kmer with at least one hit."""
        for kmer in np.flatnonzero(self._counts.any(axis=0)): yield int(kmer)

    def n_kmers(self) -> int:
        """Number of kmers with at least one hit."""
        return int(np.count_nonzero(self._counts.any(axis=0)))

    def clear(self):
        """Zeroes every counter."""
        self._counts.fill(0)

    def count_sequence(self, sequence: Union[str, bytes, np.ndarray], locations: LocationList = None) -> int:
        """
        Counts every kmer of one contig.

        Each window is counted at the frame its position has in ``locations`` (``F0`` everywhere when there are
        none), and the kmer read from the other strand of the same window is counted at the reversed frame.
        Windows in ``XX`` are skipped, as are other-strand kmers that hit an ambiguity character.

        Args:
            sequence: Contig DNA or its code array.
            locations: The contig's coding locations.

        Returns:
            The number of windows that were counted.
        """
        traversal = KmerTraversal(sequence, self._codec, self._strategy)
        positions, forward, reverse = traversal.windows()
        if locations is None: frames = np.full(len(positions), Frame.F0, dtype=np.uint8)
        else: frames = locations.frames(positions, traversal.span)
        return int(_accumulate_kernel(self._counts, forward, reverse, frames, REVERSE_FRAMES, self.MAX_COUNT))

    def process_genome(self, source: Any, feature_types: Iterable[str] = ('CDS', 'peg'),
                       progress: ProgressBar = None) -> int:
        """
        Counts a whole genome, one contig at a time.

        Args:
            source: A genome source with ``contigs()`` and ``features()``.
            feature_types: Feature types used to build the coding map.
            progress: Progress bar updated with the bases of every contig.

        Returns:
            The number of contigs processed.
        """
        locations = coding_map(source, feature_types)
        seen = set()
        for contig_id, sequence in source.contigs():
            seen.add(contig_id)
            self.count_sequence(sequence, locations.get(contig_id))
            if progress is not None: progress.update(len(sequence))
        if missing := locations.keys() - seen:
            warn(f'{getattr(source, "id", "Genome")} has features on unknown contigs: {", ".join(sorted(missing))}',
                 InputWarning)
        return len(seen)

    def rows(self, min_fraction: float = 0.0, min_hits: int = 1) -> Iterator[tuple[str, Frame, float, int]]:
        """
        Yields the prediction table rows ``(kmer, frame, fraction, hits)``.

        Each seen kmer gives its best frame, the fraction of its hits in that frame and the hits in that frame.

        Args:
            min_fraction: Smallest best-frame fraction for a kmer to qualify.
            min_hits: Smallest best-frame hit count for a kmer to qualify.
        """
        seen = np.flatnonzero(self._counts.any(axis=0))
        block = self._counts[:, seen]
        best = np.argmax(block, axis=0)
        hits = block[best, np.arange(len(seen))].astype(np.int64)
        fractions = hits / block.sum(axis=0, dtype=np.int64)
        keep = (hits >= min_hits) & (fractions >= min_fraction)
        decode = self._codec.decode
        for kmer, frame, fraction, n in zip(seen[keep], best[keep], fractions[keep], hits[keep]):
            yield decode(int(kmer)), Frame(int(frame)), float(fraction), int(n)

    def export(self, file: Union[str, Path, BinaryIO], min_fraction: float = 0.0, min_hits: int = 1) -> int:
        """
        Writes the tab-separated prediction table read by :class:`FramePredictor`.

        Returns:
            The number of rows written.
        """
        with KmerTableWriter(file) as writer:
            return writer.write(self.rows(min_fraction, min_hits))

    def save(self, file: Union[str, Path, BinaryIO]):
        """
        Writes the table in its binary layout: big-endian ``int32`` kmer size and strategy tag, then the matrix as
        big-endian ``uint16``, frame-major.
        """
        with Xopen(file, 'wb') as handle:
            handle.write(np.array([self.k, self._strategy], dtype=self.HEADER_DTYPE).tobytes())
            handle.write(self._counts.astype(self.COUNT_DTYPE).tobytes())

    @classmethod
    def load(cls, file: Union[str, Path, BinaryIO], k: int = None,
             strategy: KmerStrategy = None) -> 'FrameCountTable':
        """
        Reads a table written by :meth:`save`.

        Args:
            file: Path or binary handle.
            k: Kmer size the file must have (optional).
            strategy: Strategy the file must have (optional).

        Returns:
            The restored table.

        Raises:
            CounterFormatError: If the file is truncated, oversized, has a bad strategy tag or kmer size, or does
                not match the expected ``k`` or ``strategy``.
        """
        with Xopen(file, 'rb') as handle:
            header = handle.read(8)
            if len(header) < 8: raise CounterFormatError(f'Count table header is truncated ({len(header)} bytes)')
            file_k, file_strategy = (int(i) for i in np.frombuffer(header, dtype=cls.HEADER_DTYPE))
            if file_strategy not in tuple(KmerStrategy):
                raise CounterFormatError(f'Unknown kmer strategy tag {file_strategy}')
            try: table = cls(file_k, KmerStrategy(file_strategy))
            except KmerSizeError as e: raise CounterFormatError(f'Invalid kmer size in count table: {e}') from e
            if k is not None and file_k != k:
                raise CounterFormatError(f'Count table has kmer size {file_k}, expected {k}')
            if strategy is not None and file_strategy != strategy:
                raise CounterFormatError(f'Count table has strategy {KmerStrategy(file_strategy).name}, '
                                         f'expected {KmerStrategy(strategy).name}')
            expected = table._counts.size * cls.COUNT_DTYPE.itemsize
            payload = handle.read(expected)
            if len(payload) != expected:
                raise CounterFormatError(f'Count table is truncated: expected {expected} bytes, got {len(payload)}')
            if handle.read(1): raise CounterFormatError(f'Count table is longer than {expected} bytes for k={file_k}')
        table._counts[:] = np.frombuffer(payload, dtype=cls.COUNT_DTYPE).reshape(table._counts.shape)
        return table


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _accumulate_kernel(counts, forward, reverse, frames, reverse_frames, max_count):
    n = 0
    for i in range(len(forward)):
        frame = frames[i]
        if frame == 7: continue  # XX
        if counts[frame, forward[i]] < max_count: counts[frame, forward[i]] += 1
        r = reverse[i]
        if r >= 0:
            rev = reverse_frames[frame]
            if counts[rev, r] < max_count: counts[rev, r] += 1
        n += 1
    return n
