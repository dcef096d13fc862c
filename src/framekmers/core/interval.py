"""Strand-tagged genomic locations and the per-contig non-overlapping location list that assigns coding frames."""
from bisect import bisect_left, insort
from typing import Union, Any, Iterable, Iterator, ClassVar, Optional
from enum import IntEnum

import numpy as np

from framekmers.core.frame import Frame
from framekmers.utils.resources import jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class RegionError(ValueError):
    """Raised when a region or location would end up with its left bound past its right bound."""


# Classes --------------------------------------------------------------------------------------------------------------
class Strand(IntEnum):
    """
    Enumeration for genomic strands.
    """
    FORWARD = 1
    REVERSE = -1
    UNSTRANDED = 0
    _STR_CACHE: ClassVar[dict]
    _FROM_STR_CACHE: ClassVar[dict]

    def __str__(self): return self._STR_CACHE[self]

    @classmethod
    def from_symbol(cls, s: Any) -> 'Strand':
        if s is None: return cls.UNSTRANDED
        if isinstance(s, cls): return s
        if isinstance(s, (int, np.integer)):
            try: return cls(int(s))
            except ValueError: return cls.UNSTRANDED
        if isinstance(s, bytes): s = s.decode('ascii', 'replace')
        if isinstance(s, str): return cls._FROM_STR_CACHE.get(s.strip(), cls.UNSTRANDED)
        return cls.UNSTRANDED

    @classmethod
    def _init_caches(cls):
        cls._STR_CACHE = {cls.FORWARD: '+', cls.REVERSE: '-', cls.UNSTRANDED: '.'}
        cls._FROM_STR_CACHE = {'+': cls.FORWARD, '-': cls.REVERSE, '.': cls.UNSTRANDED,
                               '1': cls.FORWARD, '-1': cls.REVERSE, '0': cls.UNSTRANDED}


Strand._init_caches()


class Region:
    """
    A closed, 1-based ``[left, right]`` stretch of a contig.

    Regions sort by left bound, and the longer region sorts first when two share a left bound.
    """
    __slots__ = ('_left', '_right')

    def __init__(self, left: int, right: int):
        if left > right: raise RegionError(f'Region left {left} is greater than right {right}.')
        self._left = int(left)
        self._right = int(right)

    @property
    def left(self) -> int: return self._left
    @property
    def right(self) -> int: return self._right

    @left.setter
    def left(self, value: int):
        if value > self._right: raise RegionError(f'New region left {value} is greater than right {self._right}.')
        self._left = int(value)

    @right.setter
    def right(self, value: int):
        if value < self._left: raise RegionError(f'New region right {value} is less than left {self._left}.')
        self._right = int(value)

    @property
    def sort_key(self) -> tuple[int, int]: return self._left, -self._right
    def __len__(self): return self._right - self._left + 1
    def __iter__(self): return iter((self._left, self._right))
    def __repr__(self): return f'Region({self._left}, {self._right})'
    def __eq__(self, other):
        if not isinstance(other, Region): return NotImplemented
        return self._left == other._left and self._right == other._right
    def __lt__(self, other: 'Region'): return self.sort_key < other.sort_key
    __hash__ = None

    def __contains__(self, item: Union[int, 'Region']):
        if isinstance(item, Region): return self._left <= item._left and item._right <= self._right
        return self._left <= item <= self._right

    def overlaps(self, other: 'Region') -> bool:
        return self._left <= other._right and other._left <= self._right


class Location:
    """
    A set of regions on one strand of one contig, with a validity flag.

    Regions are kept start-ascending and never overlap. A location with more than one region is segmented.

    Examples:
        >>> loc = Location.create('contig1', '+')
        >>> loc.add_region(10, 20)
        >>> loc.add_region(30, 20)
        >>> loc.is_segmented, loc.left, loc.right
        (True, 10, 49)
        >>> loc.frame_of(11, 25)
        <Frame.P1: 5>
    """
    __slots__ = ('_contig_id', '_strand', '_regions', '_valid')

    def __init__(self, contig_id: str, strand: Any = Strand.FORWARD, regions: Iterable = (), valid: bool = True):
        """
        Initializes a Location.

        Args:
            contig_id: ID of the contig holding the location.
            strand: ``'+'``/``'-'`` or a ``Strand``.
            regions: ``Region`` objects or ``(left, right)`` pairs.
            valid: Whether the location can be trusted for frame computation.

        Raises:
            RegionError: If the strand is not ``+`` or ``-``, or a region is malformed.
        """
        self._contig_id = contig_id
        self._strand = Strand.from_symbol(strand)
        if self._strand == Strand.UNSTRANDED: raise RegionError(f'Location strand must be "+" or "-", not {strand!r}')
        self._regions: list[Region] = []
        self._valid = bool(valid)
        for left, right in regions: self.put_region(left, right)

    @classmethod
    def create(cls, contig_id: str, strand: Any) -> 'Location':
        """Creates an empty location on a strand of a contig."""
        return cls(contig_id, strand)

    @property
    def contig_id(self) -> str: return self._contig_id
    @property
    def strand(self) -> Strand: return self._strand
    @property
    def regions(self) -> tuple[Region, ...]: return tuple(self._regions)
    @property
    def valid(self) -> bool: return self._valid
    def is_valid(self) -> bool: return self._valid
    @property
    def left(self) -> int: return self._regions[0].left
    @property
    def right(self) -> int: return self._regions[-1].right
    @property
    def length(self) -> int: return self.right + 1 - self.left
    @property
    def is_segmented(self) -> bool: return len(self._regions) > 1

    @property
    def begin(self) -> int:
        """The position where the feature starts, which is the right end on the minus strand."""
        return self.left if self._strand == Strand.FORWARD else self.right

    @property
    def end(self) -> int:
        return self.right if self._strand == Strand.FORWARD else self.left

    @property
    def sort_key(self) -> tuple:
        """Contig, left bound, longer first, plus strand first, fewer regions first, then the regions."""
        return (self._contig_id, self.left, -self.length, -self._strand, len(self._regions),
                tuple(r.sort_key for r in self._regions))

    def __repr__(self):
        regions = ','.join(f'{r.left}-{r.right}' for r in self._regions)
        return f'{self._contig_id}:{regions}({self._strand}){"" if self._valid else "!"}'

    def __eq__(self, other):
        if not isinstance(other, Location): return NotImplemented
        return self.sort_key == other.sort_key and self._valid == other._valid

    def __lt__(self, other: 'Location'): return self.sort_key < other.sort_key
    __hash__ = None

    def add_region(self, begin: int, length: int):
        """
        Adds a region given its start and length in feature orientation.

        On the plus strand ``begin`` is the left end; on the minus strand it is the right end.
        """
        if self._strand == Strand.FORWARD: self.put_region(begin, begin + length - 1)
        else: self.put_region(begin - length + 1, begin)

    def put_region(self, left: int, right: int):
        """Inserts a region given its left and right positions, keeping the regions start-ascending."""
        region = Region(left, right)
        i = 0
        while i < len(self._regions) and self._regions[i].left < left: i += 1
        self._regions.insert(i, region)

    def invalidate(self):
        """Marks the location as untrustworthy for frame computation."""
        self._valid = False

    def region_of(self) -> 'Location':
        """Returns a valid single-region location spanning this one."""
        return Location(self._contig_id, self._strand, [(self.left, self.right)])

    def copy(self) -> 'Location':
        return Location(self._contig_id, self._strand, [(r.left, r.right) for r in self._regions], self._valid)

    def set_left(self, new_left: int):
        """
        Moves the left bound, dropping regions that end before it.

        Raises:
            RegionError: If the new left bound is past the right bound.
        """
        if new_left > self.right:
            raise RegionError(f'New location left of {new_left} is greater than right position {self.right}.')
        while self._regions[0].right < new_left: self._regions.pop(0)
        self._regions[0].left = new_left

    def set_right(self, new_right: int):
        """
        Moves the right bound, dropping regions that start after it.

        Raises:
            RegionError: If the new right bound is before the left bound.
        """
        if new_right < self.left:
            raise RegionError(f'New location right of {new_right} is less than left position {self.left}.')
        while self._regions[-1].left > new_right: self._regions.pop()
        self._regions[-1].right = new_right

    def overlaps(self, other: 'Location') -> bool:
        return self.left <= other.right and other.left <= self.right

    def frame_of(self, pos: int, end: int) -> Frame:
        """
        Computes the frame of the span ``[pos, end]`` relative to this location.

        Args:
            pos: 1-based start of the span on the contig.
            end: 1-based end of the span.

        Returns:
            ``F0`` outside the location, ``XX`` if the location is invalid or no single region holds the span,
            otherwise the strand frame of the span's codon offset.
        """
        if end < self.left or pos > self.right: return Frame.F0
        if not self._valid: return Frame.XX
        for region in self._regions:
            if region.left <= pos and end <= region.right:
                return Frame(_frame_kernel(region.left, region.right, int(self._strand), True, pos, end))
        return Frame.XX

    def kmer_frame(self, pos: int, k: int) -> Frame:
        """Frame of the ``k`` bases starting at ``pos``."""
        return self.frame_of(pos, pos + k - 1)


class LocationList:
    """
    Sorted, non-overlapping, single-region locations of one contig.

    Feature locations are folded in one at a time. Segmented features and every stretch where features overlap
    end up as invalid locations, so that only unambiguous coding stretches produce a frame.

    Examples:
        >>> locs = LocationList('c1')
        >>> locs.add_location(Location('c1', '+', [(10, 60)]))
        True
        >>> locs.add_location(Location('c1', '-', [(50, 90)]))
        True
        >>> [repr(loc) for loc in locs]
        ['c1:10-49(+)', 'c1:50-60(-)!', 'c1:61-90(-)!']
    """
    __slots__ = ('_contig_id', '_locations')

    def __init__(self, contig_id: str):
        self._contig_id = contig_id
        self._locations: list[Location] = []

    @property
    def contig_id(self) -> str: return self._contig_id
    def __len__(self): return len(self._locations)
    def __iter__(self) -> Iterator[Location]: return iter(self._locations)
    def __getitem__(self, item: int) -> Location: return self._locations[item]
    def __repr__(self): return f'LocationList({self._contig_id!r}, {len(self)} locations)'

    def __contains__(self, item: Location):
        i = bisect_left(self._locations, item.sort_key, key=_sort_key)
        return i < len(self._locations) and self._locations[i] == item

    def add_feature(self, feature: Any) -> bool:
        """
        Adds a feature record (anything with ``contig_id``, ``strand`` and ``regions``).

        Returns:
            ``False`` if the feature belongs to another contig.
        """
        return self.add_location(Location(feature.contig_id, feature.strand, feature.regions))

    def add_location(self, location: Location) -> bool:
        """
        Folds a feature location into the list.

        The location is reduced to its bounding region (invalid if it was segmented), then every stored
        location it overlaps is resolved against it from left to right.

        Args:
            location: The feature location.

        Returns:
            ``False`` (and no change) if the location is on another contig.
        """
        if location.contig_id != self._contig_id: return False
        pending = location.region_of()
        if location.is_segmented or not location.valid: pending.invalidate()
        while pending is not None:
            i = bisect_left(self._locations, pending.left, key=_right)
            if i == len(self._locations) or self._locations[i].left > pending.right: break
            stored = self._locations.pop(i)
            if stored.sort_key <= pending.sort_key: pending = self._resolve(stored, pending)
            else: pending = self._resolve(pending, stored)
        if pending is not None: self._insert(pending)
        return True

    def _insert(self, location: Location):
        insort(self._locations, location, key=_sort_key)

    def _resolve(self, first: Location, second: Location) -> Optional[Location]:
        """
        Splits two overlapping locations, stores every piece left of the overlap's end and returns the piece that
        may still overlap locations further right (``None`` if nothing is left).

        ``first`` sorts before ``second``: it starts earlier or, at the same start, is at least as long.
        """
        if first.left == second.left:
            # Shared start: the shorter one is wholly overlapped and the longer one keeps its tail.
            shorter, longer = (second, first) if first.right > second.right else (first, second)
            shorter.invalidate()
            self._insert(shorter)
            if longer.right == shorter.right: return None
            longer.set_left(shorter.right + 1)
            return longer
        if first.right >= second.right:
            # Containment: the prefix of the outer location stays as it was, the inner one is untrustworthy.
            prefix = Location(first.contig_id, first.strand, [(first.left, second.left - 1)], first.valid)
            self._insert(prefix)
            second.invalidate()
            self._insert(second)
            if first.right == second.right: return None
            first.set_left(second.right + 1)
            return first
        # Partial overlap: the overlap belongs to neither, and the tail of the second is carved off.
        suffix = Location(second.contig_id, second.strand, [(first.right + 1, second.right)], False)
        second.set_right(first.right)
        second.invalidate()
        first.set_right(second.left - 1)
        self._insert(first)
        self._insert(second)
        return suffix

    def compute_region_frame(self, pos: int, end: int) -> Frame:
        """
        Computes the frame of the span ``[pos, end]`` on this contig.

        Returns:
            The frame from the location wholly holding the span, ``F0`` if the span touches no location, or
            ``XX`` if it crosses a location boundary.
        """
        i = bisect_left(self._locations, pos, key=_right)
        if i == len(self._locations) or self._locations[i].left > end: return Frame.F0
        location = self._locations[i]
        if location.left <= pos and end <= location.right: return location.frame_of(pos, end)
        return Frame.XX

    def arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """Returns (lefts, rights, strands, valid) arrays of the stored locations."""
        n = len(self._locations)
        lefts = np.empty(n, dtype=np.int64)
        rights = np.empty(n, dtype=np.int64)
        strands = np.empty(n, dtype=np.int8)
        valid = np.empty(n, dtype=np.bool_)
        for i, loc in enumerate(self._locations):
            lefts[i], rights[i], strands[i], valid[i] = loc.left, loc.right, loc.strand, loc.valid
        return lefts, rights, strands, valid

    def frames(self, positions: np.ndarray, span: int) -> np.ndarray:
        """
        Vectorised :meth:`compute_region_frame` for spans of a fixed size.

        Args:
            positions: 1-based span starts.
            span: Number of bases in every span.

        Returns:
            A ``uint8`` array of frame ordinals.
        """
        positions = np.asarray(positions, dtype=np.int64)
        lefts, rights, strands, valid = self.arrays()
        idx = np.searchsorted(rights, positions, side='left')
        return _region_frames_kernel(lefts, rights, strands, valid, positions, idx, span)


# Functions ------------------------------------------------------------------------------------------------------------
def _sort_key(item):
    return item.sort_key


def _right(item):
    return item.right


def coding_map(source: Any, feature_types: Iterable[str] = ('CDS', 'peg')) -> dict[str, LocationList]:
    """
    Builds one location list per contig from a genome's protein-coding features.

    Args:
        source: A genome source (anything with ``features()``) or an iterable of feature records with
            ``contig_id``, ``strand``, ``regions`` and ``type``.
        feature_types: Feature types that count as protein-coding; empty means every feature.

    Returns:
        A dict of contig ID to ``LocationList``; contigs without coding features are absent.
    """
    types = set(feature_types)
    features = source.features() if hasattr(source, 'features') else source
    result = {}
    for feature in features:
        if types and getattr(feature, 'type', None) not in types: continue
        if (locations := result.get(feature.contig_id)) is None:
            locations = result[feature.contig_id] = LocationList(feature.contig_id)
        locations.add_feature(feature)
    return result


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _frame_kernel(left, right, strand, valid, pos, end):
    """Frame ordinal of ``[pos, end]`` against one region."""
    if end < left or pos > right: return 3  # F0
    if not valid: return 7  # XX
    if pos < left or end > right: return 7
    if strand >= 0: return 4 + (pos - left) % 3  # P0 + offset
    return (right - end) % 3  # M0 + offset


@jit(nopython=True, cache=True, nogil=True)
def _region_frames_kernel(lefts, rights, strands, valid, positions, idx, span):
    n = len(positions)
    n_locs = len(lefts)
    out = np.empty(n, dtype=np.uint8)
    for i in range(n):
        pos = positions[i]
        end = pos + span - 1
        j = idx[i]
        if j == n_locs or lefts[j] > end:
            out[i] = 3
        elif lefts[j] <= pos and end <= rights[j]:
            out[i] = _frame_kernel(lefts[j], rights[j], strands[j], valid[j], pos, end)
        else:
            out[i] = 7
    return out
