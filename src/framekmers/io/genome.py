"""
Annotated genome sources: GTO JSON genomes, FASTA + GFF3 pairs and directories holding either.
"""
from json import load as json_load, JSONDecodeError
from pathlib import Path
from typing import Union, Iterator, Generator
from warnings import warn

from framekmers import InputWarning
from framekmers.io import FeatureRecord, GenomeFormatError
from framekmers.io.seq import FastaReader
from framekmers.io.tabular import GffReader
from framekmers.utils import Xopen


# Constants ------------------------------------------------------------------------------------------------------------
COMPRESSION_SUFFIXES = frozenset({'.gz', '.bz2', '.xz'})
GTO_SUFFIXES = frozenset({'.gto', '.json'})
FASTA_SUFFIXES = frozenset({'.fna', '.fa', '.fasta', '.fas', '.ffn', '.contigs'})
GFF_SUFFIXES = ('.gff3', '.gff')


# Functions ------------------------------------------------------------------------------------------------------------
def split_suffix(path: Path) -> tuple[str, str]:
    """
    Splits a file name into its stem and format suffix, ignoring a compression suffix.

    Examples:
        >>> split_suffix(Path('genome.fna.gz'))
        ('genome', '.fna')
    """
    name = path.name
    suffixes = path.suffixes
    if suffixes and suffixes[-1].lower() in COMPRESSION_SUFFIXES:
        name = name[:-len(suffixes[-1])]
        suffixes = suffixes[:-1]
    if not suffixes: return name, ''
    return name[:-len(suffixes[-1])], suffixes[-1].lower()


def open_genome(file: Union[str, Path]) -> Union['GtoGenome', 'FastaGffGenome']:
    """
    Opens a genome file by its extension; FASTA files pick up a GFF3 file with the same stem.

    Raises:
        GenomeFormatError: If the extension is not a genome format.
    """
    path = Path(file)
    stem, suffix = split_suffix(path)
    if suffix in GTO_SUFFIXES: return GtoGenome(path)
    if suffix in FASTA_SUFFIXES:
        gff = next((p for p in path.parent.glob(f'{stem}.*') if split_suffix(p)[1] in GFF_SUFFIXES), None)
        return FastaGffGenome(path, gff, stem)
    raise GenomeFormatError(f'Unknown genome format for {path}')


# Classes --------------------------------------------------------------------------------------------------------------
class GtoGenome:
    """
    A genome stored as a GTO JSON document.

    Contigs carry their sequence in ``dna``; features carry a ``location`` list of
    ``[contig_id, begin, strand, length]`` segments, where ``begin`` is the right end on the minus strand.

    Examples:
        >>> genome = GtoGenome('83333.1.gto')
        >>> for contig_id, sequence in genome.contigs(): ...
    """
    __slots__ = ('_path', '_data')

    def __init__(self, file: Union[str, Path]):
        self._path = Path(file)
        self._data = None

    def __repr__(self): return f'GtoGenome({self.id!r})'

    @property
    def data(self) -> dict:
        """The parsed document, read on first use."""
        if self._data is None:
            try:
                with Xopen(self._path, 'rb') as handle: data = json_load(handle)
            except (JSONDecodeError, UnicodeDecodeError) as e:
                raise GenomeFormatError(f'Invalid GTO file {self._path}: {e}') from e
            if not isinstance(data, dict) or 'contigs' not in data:
                raise GenomeFormatError(f'GTO file {self._path} has no contigs')
            self._data = data
        return self._data

    @property
    def id(self) -> str: return str(self.data.get('id') or split_suffix(self._path)[0])

    def contigs(self) -> Iterator[tuple[str, str]]:
        for contig in self.data['contigs']:
            try: yield contig['id'], contig['dna']
            except KeyError as e: raise GenomeFormatError(f'GTO contig without {e} in {self._path}') from e

    def features(self) -> Iterator[FeatureRecord]:
        """
        Yields every feature with a location.

        Features split across contigs or strands cannot be placed and are skipped with a warning.
        """
        for feature in self.data.get('features', ()):
            segments = feature.get('location') or ()
            if not segments: continue
            feature_id = feature.get('id', '')
            try:
                contig_ids = {str(s[0]) for s in segments}
                strands = {s[2] for s in segments}
                regions = tuple(self._region(int(begin), strand, int(length)) for _, begin, strand, length in segments)
            except (ValueError, TypeError, IndexError) as e:
                raise GenomeFormatError(f'Invalid location for feature {feature_id}: {segments!r}') from e
            if len(contig_ids) > 1 or len(strands) > 1 or not strands <= {'+', '-'}:
                warn(f'Skipping feature {feature_id} with inconsistent location {segments!r}', InputWarning)
                continue
            yield FeatureRecord(contig_ids.pop(), strands.pop(), regions, feature.get('type', 'CDS'), feature_id)

    @staticmethod
    def _region(begin: int, strand: str, length: int) -> tuple[int, int]:
        return (begin, begin + length - 1) if strand == '+' else (begin - length + 1, begin)


class FastaGffGenome:
    """
    A genome stored as a FASTA file of contigs plus an optional GFF3 annotation file.

    GFF3 rows sharing an ``ID`` (a CDS split into several rows) are merged into one feature.
    """
    __slots__ = ('_fasta', '_gff', '_id')

    def __init__(self, fasta: Union[str, Path], gff: Union[str, Path] = None, genome_id: str = None):
        self._fasta = Path(fasta)
        self._gff = Path(gff) if gff is not None else None
        self._id = genome_id or split_suffix(self._fasta)[0]

    def __repr__(self): return f'FastaGffGenome({self._id!r})'
    @property
    def id(self) -> str: return self._id
    @property
    def gff(self): return self._gff

    def contigs(self) -> Generator[tuple[str, str], None, None]:
        yield from FastaReader.open(self._fasta)

    def features(self) -> Iterator[FeatureRecord]:
        if self._gff is None: return
        merged: dict[tuple, FeatureRecord] = {}
        for n, feature in enumerate(GffReader.open(self._gff)):
            key = (feature.id, feature.contig_id, feature.strand, feature.type) if feature.id else n
            if (previous := merged.get(key)) is not None:
                feature = previous._replace(regions=previous.regions + feature.regions)
            merged[key] = feature
        yield from merged.values()


class GenomeDirectory:
    """
    The genomes found in a directory, opened one at a time in file name order.

    GTO files are used as they are; FASTA files are paired with the GFF3 file of the same stem.

    Examples:
        >>> for genome in GenomeDirectory('genomes'):
        ...     print(genome.id)
    """
    __slots__ = ('_path', '_files')

    def __init__(self, path: Union[str, Path]):
        """
        Raises:
            NotADirectoryError: If the path is not a directory.
        """
        self._path = Path(path)
        if not self._path.is_dir(): raise NotADirectoryError(f'Genome directory {self._path} not found')
        suffixes = GTO_SUFFIXES | FASTA_SUFFIXES
        self._files = sorted(p for p in self._path.iterdir() if p.is_file() and split_suffix(p)[1] in suffixes)

    def __repr__(self): return f'GenomeDirectory({str(self._path)!r}, {len(self)} genomes)'
    def __len__(self): return len(self._files)
    def __iter__(self) -> Iterator[Union[GtoGenome, FastaGffGenome]]:
        for file in self._files: yield open_genome(file)

    @property
    def path(self) -> Path: return self._path
