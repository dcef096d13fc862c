import json

import pytest

from framekmers.core.interval import Location
from framekmers.core.kmer import KmerCodec
from framekmers.io import FeatureRecord


CONTIG_SEQ = 'atgaatgaacgttaccagtgtttaaaaactxaaagaatatcaggcacttttatcttccaa'
SPACED_SEQ = 'atgaatgaacgttaccagtgtttaaaaactaaagaatatcaggcacttttatct'


class ListGenome:
    """In-memory genome source."""
    def __init__(self, contigs, features=(), genome_id='test.1'):
        self.id = genome_id
        self._contigs = list(contigs)
        self._features = list(features)

    def contigs(self): return iter(self._contigs)
    def features(self): return iter(self._features)


@pytest.fixture
def codec15():
    return KmerCodec(15)


@pytest.fixture
def plus_location():
    loc = Location.create('c1', '+')
    loc.add_region(10, 20)
    loc.add_region(30, 20)
    return loc


@pytest.fixture
def minus_location():
    loc = Location.create('c1', '-')
    loc.add_region(29, 20)
    loc.add_region(49, 20)
    return loc


@pytest.fixture
def small_genome():
    contig = 'atgaaatagcc' + 'g' * 10
    features = [FeatureRecord('c1', '+', ((1, 9),), 'CDS', 'f1')]
    return ListGenome([('c1', contig)], features)


@pytest.fixture
def gto_file(tmp_path):
    data = {
        'id': '100.1',
        'scientific_name': 'Test organism',
        'contigs': [
            {'id': 'c1', 'dna': 'atgaaatagcc' + 'acgt' * 10},
            {'id': 'c2', 'dna': 'ccccatttcatgg'},
        ],
        'features': [
            {'id': 'fig|100.1.peg.1', 'type': 'CDS', 'location': [['c1', 1, '+', 9]]},
            {'id': 'fig|100.1.peg.2', 'type': 'CDS', 'location': [['c2', 12, '-', 9]]},
            {'id': 'fig|100.1.rna.1', 'type': 'rna', 'location': [['c1', 20, '+', 10]]},
        ],
    }
    path = tmp_path / '100.1.gto'
    path.write_text(json.dumps(data))
    return path
