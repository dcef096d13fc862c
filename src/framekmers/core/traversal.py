"""Walking a DNA sequence window by window to produce kmers, contiguously or with every third base skipped."""
from dataclasses import dataclass
from enum import IntEnum
from typing import Union, ClassVar, Iterator

import numpy as np

from framekmers.core.kmer import KmerCodec, KmerSizeError, KmerError, NULL, EOF, _forward_kernel, _reverse_kernel
from framekmers.utils.resources import jit


# Classes --------------------------------------------------------------------------------------------------------------
class KmerStrategy(IntEnum):
    """
    How the bases of a kmer are drawn from its window.

    ``CONTIGUOUS`` uses ``k`` consecutive bases. ``SPACED`` uses the first two bases of every three, so a kmer of
    even size ``k`` spans ``k // 2 * 3`` bases; the skipped base is the wobble position of a codon.

    Examples:
        >>> KmerStrategy.SPACED.span(10)
        15
        >>> KmerStrategy.from_suffix('p')
        <KmerStrategy.SPACED: 1>
    """
    CONTIGUOUS = 0
    SPACED = 1
    _SUFFIX: ClassVar[dict]

    @property
    def suffix(self) -> str:
        """Suffix used by the compact kmer notation (``'8p'``)."""
        return self._SUFFIX[self]

    def span(self, k: int) -> int:
        """Number of sequence bases covered by a kmer of size ``k``."""
        return k if self == KmerStrategy.CONTIGUOUS else k // 2 * 3

    def validate(self, k: int) -> int:
        """
        Checks that the kmer size suits this strategy.

        Raises:
            KmerSizeError: If a spaced kmer has an odd size.
        """
        if self == KmerStrategy.SPACED and k % 2:
            raise KmerSizeError(f'Spaced kmers must have an even size, not {k}')
        return k

    @classmethod
    def from_suffix(cls, suffix: str) -> 'KmerStrategy':
        for strategy, s in cls._SUFFIX.items():
            if s == suffix.lower(): return strategy
        raise KmerError(f'Unknown kmer strategy suffix "{suffix}"')

    @classmethod
    def _init_caches(cls):
        cls._SUFFIX = {cls.CONTIGUOUS: '', cls.SPACED: 'p'}


KmerStrategy._init_caches()


class KmerTraversal:
    """
    Iterates the kmers of a DNA sequence.

    The traversal owns the current window. ``current_index`` is borrowed state that changes on every ``advance``,
    so callers that keep a kmer take it through :meth:`copy` (iteration already yields plain ints).

    Examples:
        >>> t = KmerTraversal('acgtnacgtt', KmerCodec(4))
        >>> [(pos, t.codec.decode(idx)) for pos, idx in t]
        [(1, 'acgt'), (6, 'acgt'), (7, 'cgtt')]
    """
    __slots__ = ('_codes', '_codec', '_strategy', '_span', '_pos', '_index')

    def __init__(self, sequence: Union[str, bytes, np.ndarray], codec: KmerCodec,
                 strategy: KmerStrategy = KmerStrategy.CONTIGUOUS):
        """
        Args:
            sequence: DNA string, or a code array from :meth:`KmerCodec.encode_sequence`.
            codec: Codec fixing the kmer size.
            strategy: How kmers are drawn from each window.

        Raises:
            KmerSizeError: If the kmer size does not suit the strategy.
        """
        self._strategy = KmerStrategy(strategy)
        self._strategy.validate(codec.k)
        self._codec = codec
        self._codes = sequence if isinstance(sequence, np.ndarray) else codec.encode_sequence(sequence)
        self._span = self._strategy.span(codec.k)
        self._pos = 0
        self._index = NULL

    @property
    def codec(self) -> KmerCodec: return self._codec
    @property
    def strategy(self) -> KmerStrategy: return self._strategy
    @property
    def span(self) -> int: return self._span
    @property
    def current_index(self) -> int: return self._index
    @property
    def current_position(self) -> int:
        """1-based start of the current window, 0 before the first :meth:`advance`."""
        return self._pos
    def __len__(self): return len(self._codes)
    def __repr__(self): return f'KmerTraversal(k={self._codec.k}, {self._strategy.name}, pos={self._pos})'

    def advance(self) -> bool:
        """
        Moves to the next window holding a valid kmer, skipping windows with ambiguity characters.

        Returns:
            ``False`` once the sequence is exhausted; the position is then the first start that does not fit.
        """
        if self._index == EOF: return False
        start, self._index = _next_kernel(self._codes, self._pos, self._codec.k, self._span, int(self._strategy))
        self._pos = int(start) + 1
        self._index = int(self._index)
        return self._index != EOF

    def reverse_in_place(self) -> int:
        """
        Replaces the current kmer with the kmer read from the other strand of the same window.

        For spaced kmers this reads the last two bases of every three, complemented and reversed, so it can be
        ``NULL`` when the skipped bases hold an ambiguity character.

        Returns:
            The new current index.
        """
        if self._index < 0: return self._index
        if self._strategy == KmerStrategy.CONTIGUOUS:
            self._index = self._codec.reverse_complement(self._index)
        else:
            self._index = int(_window_reverse_kernel(self._codes, self._pos - 1, self._codec.k, int(self._strategy)))
        return self._index

    def copy(self) -> int:
        """Returns an owned copy of the current kmer."""
        return int(self._index)

    def __iter__(self) -> Iterator[tuple[int, int]]:
        while self.advance(): yield self._pos, self.copy()

    def windows(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Computes every valid window of the sequence at once.

        Returns:
            1-based positions, forward kmers and other-strand kmers (``NULL`` where those cannot be read),
            covering exactly the windows :meth:`advance` visits.
        """
        return _windows_kernel(self._codes, self._codec.k, self._span, int(self._strategy))


@dataclass(frozen=True, slots=True)
class KmerSpec:
    """
    A kmer size with its strategy, written compactly as ``'15'`` (contiguous) or ``'8p'`` (spaced).

    Examples:
        >>> spec = KmerSpec.parse('8p')
        >>> spec.k, spec.strategy.name, str(spec)
        (8, 'SPACED', '8p')
    """
    k: int
    strategy: KmerStrategy = KmerStrategy.CONTIGUOUS

    def __post_init__(self):
        KmerCodec(self.k)
        object.__setattr__(self, 'strategy', KmerStrategy(self.strategy))
        self.strategy.validate(self.k)

    def __str__(self): return f'{self.k}{self.strategy.suffix}'

    @classmethod
    def parse(cls, text: str) -> 'KmerSpec':
        """
        Parses the compact notation.

        Raises:
            KmerSizeError: If the size is not a number in range or a spaced size is odd.
        """
        text = text.strip()
        digits = text.rstrip('pP')
        strategy = KmerStrategy.from_suffix(text[len(digits):]) if digits != text else KmerStrategy.CONTIGUOUS
        if not digits.isdigit(): raise KmerSizeError(f'Invalid kmer specification "{text}"')
        return cls(int(digits), strategy)

    @property
    def codec(self) -> KmerCodec: return KmerCodec(self.k)
    @property
    def span(self) -> int: return self.strategy.span(self.k)

    def traversal(self, sequence: Union[str, bytes, np.ndarray]) -> KmerTraversal:
        return KmerTraversal(sequence, self.codec, self.strategy)


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _window_kernel(codes, start, k, strategy):
    """Forward kmer of the window at a 0-based start."""
    if strategy == 0: return _forward_kernel(codes, start, k)
    result = 0
    for j in range(k // 2):
        c1 = int(codes[start + 3 * j])
        c2 = int(codes[start + 3 * j + 1])
        if c1 > 3 or c2 > 3: return NULL
        result = (result << 4) | (c1 << 2) | c2
    return result


@jit(nopython=True, cache=True, nogil=True)
def _window_reverse_kernel(codes, start, k, strategy):
    """Other-strand kmer of the window at a 0-based start."""
    if strategy == 0: return _reverse_kernel(codes, start, k)
    result = 0
    for j in range(k // 2 - 1, -1, -1):
        c1 = int(codes[start + 3 * j + 2])
        c2 = int(codes[start + 3 * j + 1])
        if c1 > 3 or c2 > 3: return NULL
        result = (result << 4) | ((3 - c1) << 2) | (3 - c2)
    return result


@jit(nopython=True, cache=True, nogil=True)
def _next_kernel(codes, start, k, span, strategy):
    """First valid window from a 0-based start, as (start, kmer); (first start that does not fit, EOF) at the end."""
    last = len(codes) - span
    while start <= last:
        index = _window_kernel(codes, start, k, strategy)
        if index != NULL: return start, index
        start += 1
    return max(start, last + 1), EOF


@jit(nopython=True, cache=True, nogil=True)
def _windows_kernel(codes, k, span, strategy):
    n = max(len(codes) - span + 1, 0)
    positions = np.empty(n, dtype=np.int64)
    forward = np.empty(n, dtype=np.int64)
    reverse = np.empty(n, dtype=np.int64)
    m = 0
    for start in range(n):
        index = _window_kernel(codes, start, k, strategy)
        if index == NULL: continue
        positions[m] = start + 1
        forward[m] = index
        reverse[m] = _window_reverse_kernel(codes, start, k, strategy)
        m += 1
    return positions[:m], forward[:m], reverse[:m]
