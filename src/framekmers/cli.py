"""
Command line interface: ``count`` builds the kmer frame statistics of a genome directory, ``classify`` uses the
exported table to tally the predicted frames of every contig in a FASTA file.
"""
from argparse import ArgumentParser, Namespace
from dataclasses import dataclass
from pathlib import Path
import sys
from typing import Sequence

import numpy as np

from framekmers.core.frame import Frame
from framekmers.core.kmer import KmerError
from framekmers.core.traversal import KmerSpec, KmerStrategy
from framekmers.engines.counter import FrameCountTable, CounterFormatError
from framekmers.engines.predictor import FramePredictor
from framekmers.io import GenomeFormatError, TableFormatError
from framekmers.io.genome import GenomeDirectory
from framekmers.io.seq import FastaReader
from framekmers.utils import Config, ProgressBar, Xopen


# Constants ------------------------------------------------------------------------------------------------------------
COUNTS_FILE = 'kmers.ser'
TABLE_FILE = 'kmers.tbl'


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass(slots=True, frozen=True, kw_only=True)
class CountConfig(Config):
    """Settings of the ``count`` command."""
    kmers: str = '15'
    input: Path
    output: Path
    min_fraction: float = 0.0
    min_hits: int = 1
    feature_types: tuple[str, ...] = ('CDS', 'peg')
    quiet: bool = False


@dataclass(slots=True, frozen=True, kw_only=True)
class ClassifyConfig(Config):
    """Settings of the ``classify`` command."""
    table: Path
    input: Path
    output: str = '-'
    spaced: bool = False
    quiet: bool = False


# Functions ------------------------------------------------------------------------------------------------------------
def _log(config, message: str):
    if not config.quiet: print(message, file=sys.stderr)


def run_count(config: CountConfig) -> FrameCountTable:
    """
    Counts every genome of the input directory and writes ``kmers.ser`` and ``kmers.tbl`` to the output directory.

    Returns:
        The filled count table.
    """
    spec = KmerSpec.parse(config.kmers)
    genomes = GenomeDirectory(config.input)
    output = Path(config.output)
    output.mkdir(parents=True, exist_ok=True)
    _log(config, f'Input directory is {genomes.path}.\nOutput directory is {output}.\nKmer type is {spec}.')
    table = FrameCountTable(spec.k, spec.strategy)
    with ProgressBar(total=len(genomes), desc='Genomes', unit='genome', file=sys.stderr,
                     disable=config.quiet) as bar:
        for genome in genomes:
            table.process_genome(genome, config.feature_types)
            bar.update()
    table.save(output / COUNTS_FILE)
    n_rows = table.export(output / TABLE_FILE, config.min_fraction, config.min_hits)
    _log(config, f'{table.n_kmers()} kmers seen, {n_rows} written to {output / TABLE_FILE}.')
    return table


def run_classify(config: ClassifyConfig) -> int:
    """
    Writes one row per contig: its length, the windows predicted in each frame and the most frequent coding or
    background frame.

    Returns:
        The number of contigs classified.
    """
    predictor = FramePredictor.load(config.table)
    strategy = KmerStrategy.SPACED if config.spaced else KmerStrategy.CONTIGUOUS
    header = ['contig', 'length', *(str(frame) for frame in Frame), 'best']
    n = 0
    with Xopen(config.output, 'wb') as out:
        out.write(('\t'.join(header) + '\n').encode())
        for contig_id, sequence in FastaReader.open(config.input):
            tally = predictor.tally(sequence, strategy)
            counted = tally[:Frame.N_FRAMES]
            best = Frame(int(np.argmax(counted))) if counted.any() else Frame.XX
            out.write('\t'.join([contig_id, str(len(sequence)), *map(str, tally), str(best)]).encode() + b'\n')
            n += 1
    _log(config, f'{n} contigs classified.')
    return n


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog='framekmers', description=__doc__)
    subparsers = parser.add_subparsers(dest='command', required=True)

    count = subparsers.add_parser('count', help='count kmer frames over a directory of annotated genomes')
    count.add_argument('kmers', help='kmer type: size, with a "p" suffix for spaced kmers (e.g. 15, 8p)')
    count.add_argument('input', type=Path, help='directory of GTO or FASTA+GFF3 genomes')
    count.add_argument('output', type=Path, help='output directory')
    count.add_argument('--min-fraction', dest='min_fraction', type=float,
                       help='minimum best-frame fraction for a kmer to be written to the table (default: 0.0)')
    count.add_argument('--min-hits', dest='min_hits', type=int,
                       help='minimum best-frame hits for a kmer to be written to the table (default: 1)')
    count.add_argument('--feature-types', dest='feature_types', nargs='+',
                       help='feature types treated as protein-coding (default: CDS peg)')
    count.add_argument('-q', '--quiet', action='store_true', help='suppress progress and messages')

    classify = subparsers.add_parser('classify', help='tally predicted frames for the contigs of a FASTA file')
    classify.add_argument('table', type=Path, help=f'kmer table ({TABLE_FILE}) written by "count"')
    classify.add_argument('input', type=Path, help='FASTA file of contigs')
    classify.add_argument('-o', '--output', help='output file (default: stdout)')
    classify.add_argument('--spaced', action='store_true', help='the table holds spaced kmers')
    classify.add_argument('-q', '--quiet', action='store_true', help='suppress messages')
    return parser


def main(argv: Sequence[str] = None) -> int:
    args: Namespace = build_parser().parse_args(argv)
    if getattr(args, 'feature_types', None): args.feature_types = tuple(args.feature_types)
    try:
        if args.command == 'count': run_count(CountConfig.from_obj(args))
        else: run_classify(ClassifyConfig.from_obj(args))
    except (KmerError, CounterFormatError, GenomeFormatError, TableFormatError, OSError) as e:
        print(f'framekmers {args.command}: error: {e}', file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
