"""
Kmer-to-frame lookup loaded from an exported prediction table, used to classify unannotated DNA.
"""
from pathlib import Path
from typing import Union, Mapping, BinaryIO

import numpy as np

from framekmers.core.frame import Frame
from framekmers.core.kmer import KmerCodec, KmerError
from framekmers.core.traversal import KmerStrategy, KmerTraversal
from framekmers.io import TableFormatError
from framekmers.io.tabular import KmerTableReader
from framekmers.utils.resources import jit


# Classes --------------------------------------------------------------------------------------------------------------
class FramePredictor:
    """
    Immutable kmer to frame mapping. Kmers missing from the mapping predict ``XX``.

    Only the mapped kmers are held, as a sorted ``uint32`` kmer array with a parallel ``uint8`` frame array, so
    memory follows the size of the table rather than ``4 ** k``.

    Examples:
        >>> predictor = FramePredictor({'acgt': Frame.P0}, k=4)
        >>> predictor.frame_of('acgt'), predictor.frame_of('tttt')
        (<Frame.P0: 4>, <Frame.XX: 7>)
    """
    __slots__ = ('_codec', '_kmers', '_frames')

    def __init__(self, mapping: Mapping[Union[int, str], Frame], k: int):
        """
        Args:
            mapping: Kmer (index or string) to frame. Kmers mapped to ``XX`` are not stored.
            k: Kmer size.

        Raises:
            KmerError: If a kmer does not have size ``k`` or contains an ambiguity character.
        """
        self._codec = KmerCodec(k)
        lookup = {}
        for kmer, frame in mapping.items():
            index = self._index(kmer)
            if index < 0: raise KmerError(f'Cannot use "{kmer}" as a {k}-mer')
            lookup[index] = Frame.from_label(frame)
        kmers = sorted(index for index, frame in lookup.items() if frame != Frame.XX)
        self._kmers = np.array(kmers, dtype=np.uint32)
        self._frames = np.array([lookup[index] for index in kmers], dtype=np.uint8)
        self._kmers.flags.writeable = False
        self._frames.flags.writeable = False

    @classmethod
    def load(cls, file: Union[str, Path, BinaryIO]) -> 'FramePredictor':
        """
        Loads the tab-separated prediction table written by ``FrameCountTable.export``.

        The kmer size is taken from the first row; statistics columns are ignored.

        Raises:
            TableFormatError: If the table has no rows or kmers of mixed sizes.
        """
        mapping = {row.kmer: row.frame for row in KmerTableReader.open(file)}
        if not mapping: raise TableFormatError(f'Kmer table {file} has no rows')
        sizes = {len(kmer) for kmer in mapping}
        if len(sizes) > 1: raise TableFormatError(f'Kmer table {file} mixes kmer sizes {sorted(sizes)}')
        return cls(mapping, sizes.pop())

    def _index(self, kmer: Union[int, str]) -> int:
        if isinstance(kmer, (int, np.integer)): return int(kmer) if 0 <= kmer < self._codec.max_kmers else -1
        if len(kmer) != self._codec.k: return -1
        return self._codec.encode(kmer)

    @property
    def k(self) -> int: return self._codec.k
    @property
    def codec(self) -> KmerCodec: return self._codec
    @property
    def nbytes(self) -> int: return self._kmers.nbytes + self._frames.nbytes
    def __len__(self): return len(self._kmers)
    def __repr__(self): return f'FramePredictor(k={self.k}, {len(self)} kmers)'

    def __iter__(self):
        """Yields ``(kmer index, frame)`` in ascending kmer order."""
        for kmer, frame in zip(self._kmers, self._frames): yield int(kmer), Frame(int(frame))

    def frame_of(self, kmer: Union[int, str]) -> Frame:
        """
        Predicts the frame of a kmer given as an index or a string.

        Returns:
            The recorded frame, or ``XX`` for unseen kmers and strings that are not valid kmers of this size.
        """
        index = self._index(kmer)
        if index < 0: return Frame.XX
        return Frame(int(self.frames_of(np.array([index], dtype=np.int64))[0]))

    def frames_of(self, kmers: np.ndarray) -> np.ndarray:
        """Predicts the frame ordinals of an array of kmer indices; sentinels and unseen kmers give ``XX``."""
        return _lookup_kernel(self._kmers, self._frames, np.asarray(kmers, dtype=np.int64))

    def predict(self, sequence: Union[str, bytes], strategy: KmerStrategy = KmerStrategy.CONTIGUOUS
                ) -> tuple[np.ndarray, np.ndarray]:
        """
        Predicts the frame of every valid window of a sequence.

        Returns:
            1-based window positions and their predicted frame ordinals.
        """
        positions, forward, _ = KmerTraversal(sequence, self._codec, strategy).windows()
        return positions, self.frames_of(forward)

    def tally(self, sequence: Union[str, bytes], strategy: KmerStrategy = KmerStrategy.CONTIGUOUS) -> np.ndarray:
        """Counts the predicted frames of a sequence, one cell per frame ordinal including ``XX``."""
        _, frames = self.predict(sequence, strategy)
        return np.bincount(frames, minlength=len(Frame))


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _lookup_kernel(kmers, frames, queries):
    out = np.full(len(queries), 7, dtype=np.uint8)  # XX
    n = len(kmers)
    if n == 0: return out
    idx = np.searchsorted(kmers, queries)
    for i in range(len(queries)):
        j = idx[i]
        if queries[i] >= 0 and j < n and kmers[j] == queries[i]: out[i] = frames[j]
    return out
