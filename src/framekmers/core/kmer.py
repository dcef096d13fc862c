"""
Bit-packed DNA kmers: two bits per base, most significant base first.

A kmer of size ``k`` is a plain integer in ``0 .. 4**k - 1``. Two negative sentinels travel through the same
integer channel: ``NULL`` (the window holds an ambiguity character) and ``EOF`` (fewer than ``k`` bases remain).
"""
from typing import Union, Final

import numpy as np

from framekmers.utils.resources import RESOURCES, jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class KmerError(ValueError):
    """Raised when a kmer value or kmer operation is invalid."""


class KmerSizeError(KmerError):
    """Raised when a kmer size is outside the supported range."""


# Constants ------------------------------------------------------------------------------------------------------------
NULL: Final = -1
EOF: Final = -2
INVALID: Final = np.uint8(255)
BASES: Final = 'acgt'

_LOOKUP = np.full(256, INVALID, dtype=np.uint8)
for _code, _symbols in enumerate((b'aA', b'cC', b'gG', b'tTuU')):
    _LOOKUP[np.frombuffer(_symbols, dtype=np.uint8)] = _code
_LOOKUP.flags.writeable = False


# Classes --------------------------------------------------------------------------------------------------------------
class KmerCodec:
    """
    Encodes and decodes DNA kmers of one fixed size.

    The size is explicit configuration: every structure sized by ``max_kmers`` must be built from the same codec.

    Examples:
        >>> codec = KmerCodec(4)
        >>> codec.encode('acgt')
        27
        >>> codec.decode(27)
        'acgt'
        >>> codec.decode(codec.reverse_complement(codec.encode('aacc')))
        'ggtt'
    """
    __slots__ = ('_k', '_max_kmers')
    MIN_K: Final = 1
    MAX_K: Final = 15
    DTYPE: Final = np.int32

    def __init__(self, k: int = 15):
        """
        Args:
            k: Number of bases per kmer (1 to 15).

        Raises:
            KmerSizeError: If ``k`` is out of range.
        """
        if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
            raise KmerSizeError(f'Invalid kmer size {k!r}: must be an integer')
        if k < self.MIN_K: raise KmerSizeError(f'Invalid kmer size {k}: must be at least {self.MIN_K}.')
        if k > self.MAX_K: raise KmerSizeError(f'Invalid kmer size {k}: cannot be greater than {self.MAX_K}.')
        self._k = int(k)
        self._max_kmers = 1 << (2 * self._k)

    @property
    def k(self) -> int: return self._k
    @property
    def max_kmers(self) -> int:
        """Number of distinct kmers (``4 ** k``)."""
        return self._max_kmers
    def __repr__(self): return f'KmerCodec(k={self._k})'
    def __hash__(self): return hash(self._k)
    def __eq__(self, other):
        if not isinstance(other, KmerCodec): return False
        return self._k == other._k

    @staticmethod
    def encode_sequence(sequence: Union[str, bytes]) -> np.ndarray:
        """
        Converts a DNA string to its per-base 2-bit codes.

        Args:
            sequence: DNA as ``str`` or ``bytes``.

        Returns:
            A ``uint8`` array with ``INVALID`` at every ambiguity character.
        """
        if isinstance(sequence, str): sequence = sequence.encode('ascii', 'replace')
        return _LOOKUP[np.frombuffer(sequence, dtype=np.uint8)]

    def encode(self, sequence: Union[str, bytes], pos: int = 1) -> int:
        """
        Encodes the ``k`` bases starting at a 1-based position.

        Args:
            sequence: DNA string; it may be longer than the kmer.
            pos: 1-based start of the kmer in ``sequence``.

        Returns:
            The kmer index, ``EOF`` if fewer than ``k`` bases remain, or ``NULL`` on an ambiguity character.
        """
        start = pos - 1
        if start < 0: raise KmerError(f'Invalid kmer position {pos}: positions are 1-based')
        if start + self._k > len(sequence): return EOF
        return int(_forward_kernel(self.encode_sequence(sequence[start:start + self._k]), 0, self._k))

    def encode_reverse_complement(self, sequence: Union[str, bytes]) -> int:
        """
        Encodes the reverse complement of the first ``k`` bases of a string.

        Args:
            sequence: DNA string of at least ``k`` bases.

        Returns:
            The kmer index of the reverse complement, ``EOF`` or ``NULL``.
        """
        if len(sequence) < self._k: return EOF
        return int(_reverse_kernel(self.encode_sequence(sequence[:self._k]), 0, self._k))

    def decode(self, index: int) -> str:
        """
        Decodes a kmer index back to its bases.

        Args:
            index: The kmer index.

        Returns:
            The DNA string, or an empty string for a sentinel.
        """
        if index < 0: return ''
        index = int(index)
        return ''.join(BASES[(index >> (2 * i)) & 3] for i in range(self._k - 1, -1, -1))

    def reverse_complement(self, index: int) -> int:
        """
        Returns the index of the reverse complement of a kmer using only bit arithmetic.

        The packed value is complemented, then its 2-bit groups are shifted out from the right and pushed
        in from the left, which reverses the base order.

        Args:
            index: The kmer index.

        Returns:
            The reverse complement index, or ``NULL`` for a sentinel.
        """
        if index < 0: return NULL
        reverse = ~int(index)
        result = 0
        for _ in range(self._k):
            result = (result << 2) | (reverse & 3)
            reverse >>= 2
        return result

    def is_reverse(self, index: int, other: int) -> bool:
        """Returns ``True`` if ``index`` is the reverse complement of ``other``."""
        return index >= 0 and index == self.reverse_complement(other)

    def random_sequence(self, length: int, rng: np.random.Generator = None) -> str:
        """
        Generates a random unambiguous DNA string.

        Args:
            length: Number of bases.
            rng: Random number generator (optional).

        Returns:
            A lower-case DNA string.
        """
        if rng is None: rng = RESOURCES.rng
        codes = rng.integers(0, 4, size=length, dtype=np.uint8)
        return np.frombuffer(b'acgt', dtype=np.uint8)[codes].tobytes().decode('ascii')


# Functions ------------------------------------------------------------------------------------------------------------
def compare(index: int, other: int) -> int:
    """
    Three-way comparison of two kmer indices where ``EOF`` sorts after every kmer.

    Args:
        index: Left operand.
        other: Right operand.

    Returns:
        A negative number, zero or a positive number.

    Raises:
        KmerError: If either operand is ``NULL``.
    """
    if index == NULL or other == NULL: raise KmerError('NULL kmers cannot be compared')
    if index == EOF: return 0 if other == EOF else 1
    if other == EOF: return -1
    return (index > other) - (index < other)


def sort_key(index: int) -> tuple[bool, int]:
    """
    Sort key matching :func:`compare`.

    Examples:
        >>> sorted([5, EOF, 2], key=sort_key)
        [2, 5, -2]
    """
    if index == NULL: raise KmerError('NULL kmers cannot be compared')
    return index == EOF, index


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _forward_kernel(codes, start, k):
    """Packs ``k`` codes from a 0-based start; codes past the array end must be excluded by the caller."""
    result = 0
    for i in range(start, start + k):
        c = int(codes[i])
        if c > 3: return NULL
        result = (result << 2) | c
    return result


@jit(nopython=True, cache=True, nogil=True)
def _reverse_kernel(codes, start, k):
    """Packs the reverse complement of ``k`` codes from a 0-based start."""
    result = 0
    for i in range(start + k - 1, start - 1, -1):
        c = int(codes[i])
        if c > 3: return NULL
        result = (result << 2) | (3 - c)
    return result
