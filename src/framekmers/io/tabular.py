from typing import NamedTuple, Optional
from urllib.parse import unquote
from warnings import warn

from framekmers import InputWarning
from framekmers.core.frame import Frame, FrameError
from framekmers.io import BaseWriter, TabularReader, FeatureRecord, GenomeFormatError


# Classes --------------------------------------------------------------------------------------------------------------
class KmerTableRow(NamedTuple):
    """One row of the kmer prediction table."""
    kmer: str
    frame: Frame
    fraction: float = 0.0
    hits: int = 0


class GffReader(TabularReader):
    """
    Reader for GFF3 format files, yielding one ``FeatureRecord`` per row.

    Reading stops at an embedded ``##FASTA`` section.

    Examples:
        >>> with open("features.gff", "rb") as f:
        ...     for feature in GffReader(f):
        ...         print(feature.id, feature.regions)
    """
    _min_cols = 9
    _stop = b'##FASTA'
    __slots__ = ()

    @staticmethod
    def parse_attributes(items: bytes) -> dict[str, str]:
        """
        Parses GFF3 attribute strings.

        Args:
            items: The attribute string (e.g., "ID=gene1;Name=foo").

        Returns:
            A dict of unquoted attribute values.
        """
        attributes = {}
        if not items or b'=' not in items: return attributes
        for item in items.split(b';'):
            key, _, val = item.strip().partition(b'=')
            if key: attributes[key.decode('ascii', 'replace')] = unquote(val.decode('utf-8', 'replace'))
        return attributes

    def parse_row(self, parts: list[bytes]) -> Optional[FeatureRecord]:
        """
        Parses a GFF3 row.

        Returns:
            The feature, or ``None`` (with a warning) for a feature without a strand.

        Raises:
            GenomeFormatError: If the coordinates are not integers.
        """
        try: left, right = int(parts[3]), int(parts[4])
        except ValueError as e: raise GenomeFormatError(f'Invalid GFF coordinates {parts[3]!r}-{parts[4]!r}') from e
        attributes = self.parse_attributes(parts[8])
        feature_id = attributes.get('ID', '')
        strand = parts[6].decode('ascii', 'replace')
        if strand not in ('+', '-'):
            warn(f'Skipping GFF feature {feature_id or left} without strand', InputWarning)
            return None
        return FeatureRecord(parts[0].decode('ascii', 'replace'), strand, ((min(left, right), max(left, right)),),
                             parts[2].decode('ascii', 'replace'), feature_id)


class KmerTableReader(TabularReader):
    """
    Reader for the tab-separated kmer prediction table (``kmer``, ``frame``, then optional statistics).

    The header line and malformed rows are skipped; malformed rows raise an ``InputWarning``.
    """
    _min_cols = 2
    __slots__ = ()

    def parse_row(self, parts: list[bytes]) -> Optional[KmerTableRow]:
        kmer = parts[0].decode('ascii', 'replace').strip()
        if kmer == 'kmer': return None
        try:
            frame = Frame.from_label(parts[1])
            fraction = float(parts[2]) if len(parts) > 2 and parts[2] else 0.0
            hits = int(parts[3]) if len(parts) > 3 and parts[3] else 0
        except (FrameError, ValueError) as e:
            warn(f'Skipping malformed kmer table row for "{kmer}": {e}', InputWarning)
            return None
        return KmerTableRow(kmer, frame, fraction, hits)


class KmerTableWriter(BaseWriter):
    """
    Writer for the kmer prediction table; the header is written when the file is opened.

    Examples:
        >>> with KmerTableWriter("kmers.tbl") as w:
        ...     w.write_one(('acgt', Frame.P0, 0.91, 42))
    """
    HEADER = ('kmer', 'frame', 'fraction', 'hits')
    __slots__ = ()

    def __enter__(self):
        super().__enter__()
        self._handle.write(('\t'.join(self.HEADER) + '\n').encode())
        return self

    def write_one(self, row: tuple[str, Frame, float, int]):
        kmer, frame, fraction, hits = row
        self._handle.write(f'{kmer}\t{Frame.from_label(frame).label}\t{fraction:.2f}\t{hits}\n'.encode())
