"""Coding frames: three offsets on each strand, the background frame and the unknown frame."""
from typing import Any, ClassVar
from enum import IntEnum

import numpy as np


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class FrameError(ValueError):
    """Raised when a frame label cannot be parsed."""


# Classes --------------------------------------------------------------------------------------------------------------
class Frame(IntEnum):
    """
    Enumeration of the coding frames.

    ``M0``-``M2`` are minus-strand offsets, ``P0``-``P2`` plus-strand offsets, ``F0`` is the background
    (outside every coding feature) and ``XX`` means no frame information. The ordinal doubles as the row of
    the frame in count tables, so only the first ``N_FRAMES`` values are ever counted.

    Examples:
        >>> Frame.P1.rev()
        <Frame.M1: 1>
        >>> str(Frame.M0)
        '-1'
        >>> Frame.from_label('+3')
        <Frame.P2: 6>
    """
    M0 = 0
    M1 = 1
    M2 = 2
    F0 = 3
    P0 = 4
    P1 = 5
    P2 = 6
    XX = 7
    N_FRAMES: ClassVar[int]
    _LABELS: ClassVar[dict]
    _FROM_LABEL: ClassVar[dict]
    _REVERSE: ClassVar[np.ndarray]

    def __str__(self): return self._LABELS[self]

    @property
    def label(self) -> str: return self._LABELS[self]

    @property
    def is_coding(self) -> bool:
        """``True`` for the six strand offsets."""
        return self not in (Frame.F0, Frame.XX)

    def rev(self) -> 'Frame':
        """
        Returns the frame seen from the opposite strand.

        ``P_i`` and ``M_i`` swap; ``F0`` and ``XX`` map to themselves.
        """
        return Frame(int(self._REVERSE[self]))

    @classmethod
    def plus(cls, offset: int) -> 'Frame':
        """Returns the plus-strand frame for a codon offset."""
        return cls(cls.P0 + offset % 3)

    @classmethod
    def minus(cls, offset: int) -> 'Frame':
        """Returns the minus-strand frame for a codon offset."""
        return cls(cls.M0 + offset % 3)

    @classmethod
    def from_label(cls, s: Any) -> 'Frame':
        """
        Parses a frame from its label (``'+1'``, ``'-3'``, ``'0'``, ``'X'``) or its name (``'P0'``).

        Raises:
            FrameError: If the value is not a frame.
        """
        if isinstance(s, cls): return s
        if isinstance(s, bytes): s = s.decode('ascii', 'replace')
        key = str(s).strip()
        if (frame := cls._FROM_LABEL.get(key)) is None: raise FrameError(f'Unknown frame "{s}"')
        return frame

    @classmethod
    def counted(cls) -> tuple['Frame', ...]:
        """The frames that own a row in a count table."""
        return tuple(cls(i) for i in range(cls.N_FRAMES))

    @classmethod
    def _init_caches(cls):
        cls.N_FRAMES = 7
        cls._LABELS = {cls.M0: '-1', cls.M1: '-2', cls.M2: '-3', cls.F0: '0',
                       cls.P0: '+1', cls.P1: '+2', cls.P2: '+3', cls.XX: 'X'}
        cls._FROM_LABEL = {label: frame for frame, label in cls._LABELS.items()}
        cls._FROM_LABEL.update({frame.name: frame for frame in cls})
        cls._FROM_LABEL.update({frame.name.lower(): frame for frame in cls})
        cls._REVERSE = np.array([cls.P0, cls.P1, cls.P2, cls.F0, cls.M0, cls.M1, cls.M2, cls.XX], dtype=np.uint8)
        cls._REVERSE.flags.writeable = False


Frame._init_caches()


# Constants ------------------------------------------------------------------------------------------------------------
REVERSE_FRAMES = Frame._REVERSE
"""Lookup array from frame ordinal to the ordinal of its strand-reversed frame."""
