import gzip

import numpy as np
import pytest

from framekmers import InputWarning
from framekmers.core.frame import Frame
from framekmers.core.interval import LocationList, Location
from framekmers.core.kmer import KmerError, KmerSizeError
from framekmers.core.traversal import KmerStrategy
from framekmers.engines.counter import FrameCountTable, CounterFormatError
from framekmers.io import FeatureRecord

from conftest import ListGenome


class TestFrameCountTableInit:
    def test_shape(self):
        table = FrameCountTable(3)
        assert table.matrix.shape == (7, 64)
        assert table.matrix.dtype == np.uint16
        assert table.n_kmers() == 0
        assert list(table) == []

    def test_invalid_sizes(self):
        with pytest.raises(KmerSizeError):
            FrameCountTable(16)
        with pytest.raises(KmerSizeError):
            FrameCountTable(5, KmerStrategy.SPACED)

    def test_from_spec(self):
        table = FrameCountTable.from_spec('4p')
        assert table.k == 4
        assert table.strategy is KmerStrategy.SPACED
        assert str(table.spec) == '4p'

    def test_matrix_is_read_only(self):
        with pytest.raises(ValueError):
            FrameCountTable(2).matrix[0, 0] = 1


class TestFrameCountTableCounts:
    @pytest.fixture
    def table(self):
        return FrameCountTable(9)

    @pytest.fixture
    def kmer(self, table):
        return table.codec.encode('actgtccat')

    def test_saturation(self, table, kmer):
        expected = {Frame.M0: 40, Frame.M2: 60, Frame.M1: 100, Frame.F0: 200, Frame.P1: 500, Frame.P2: 20,
                    Frame.P0: 80}
        for frame, n in expected.items():
            for _ in range(n): table.increment(kmer, frame)
        for frame, n in expected.items():
            assert table.count(kmer, frame) == n
        assert table.total(kmer) == 1000
        assert table.best_frame(kmer) == Frame.P1
        assert table.fraction(kmer, Frame.P1) == pytest.approx(0.5)
        for _ in range(40000): table.increment(kmer, Frame.P1)
        assert table.count(kmer, Frame.P1) == 40500
        assert table.fraction(kmer, Frame.P1) == pytest.approx(40500 / 41000)
        for _ in range(30000): table.increment(kmer, Frame.P1)
        assert table.count(kmer, Frame.P1) == 65535
        assert table.count(kmer, Frame.F0) == 200

    def test_xx_is_ignored(self, table, kmer):
        table.increment(kmer, Frame.XX)
        assert table.total(kmer) == 0
        assert table.count(kmer, Frame.XX) == 0

    def test_unseen(self, table, kmer):
        assert table.best_frame(kmer) == Frame.XX
        assert table.fraction(kmer, Frame.P0) == 0.0
        np.testing.assert_array_equal(table.counts(kmer), np.zeros(7))

    def test_tie_goes_to_lowest_ordinal(self, table, kmer):
        table.increment(kmer, Frame.P0)
        table.increment(kmer, Frame.M2)
        assert table.best_frame(kmer) == Frame.M2
        table.increment(kmer, Frame.P0)
        assert table.best_frame(kmer) == Frame.P0

    def test_invalid_kmer(self, table):
        with pytest.raises(KmerError):
            table.increment(-1, Frame.P0)
        with pytest.raises(KmerError):
            table.count(4 ** 9, Frame.P0)

    def test_iteration_and_clear(self, table):
        for seq in ('tttttttta', 'aaaaaaaaa', 'cccccccca'):
            table.increment(table.codec.encode(seq), Frame.F0)
        assert list(table) == sorted(table.codec.encode(s) for s in ('tttttttta', 'aaaaaaaaa', 'cccccccca'))
        assert table.n_kmers() == 3
        table.clear()
        assert table.n_kmers() == 0


class TestFrameCountTableScan:
    def test_count_sequence(self):
        table = FrameCountTable(3)
        encode = table.codec.encode
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(1, 9)]))
        assert table.count_sequence('atgaaatagcc', locs) == 7
        assert table.count(encode('atg'), Frame.P0) == 1
        assert table.count(encode('cat'), Frame.M0) == 1
        assert table.count(encode('tga'), Frame.P1) == 1
        assert table.count(encode('tca'), Frame.M1) == 1
        assert table.count(encode('aaa'), Frame.P0) == 1
        assert table.count(encode('ttt'), Frame.M0) == 1
        assert table.count(encode('agc'), Frame.P0) == 0
        assert table.n_kmers() == 14

    def test_background(self):
        table = FrameCountTable(4)
        assert table.count_sequence('acgtacgt') == 5
        assert table.matrix.sum() == 10
        assert table.matrix[Frame.F0].sum() == 10

    def test_skips_ambiguity(self):
        table = FrameCountTable(4)
        assert table.count_sequence('acgtnacgt') == 2
        assert table.count(table.codec.encode('acgt'), Frame.F0) == 4

    def test_spaced_reverse_skipped_on_ambiguity(self):
        table = FrameCountTable(4, KmerStrategy.SPACED)
        assert table.count_sequence('aanaaa') == 1
        assert table.count(0, Frame.F0) == 1
        assert table.matrix.sum() == 1

    def test_process_genome(self, small_genome):
        table = FrameCountTable(3)
        assert table.process_genome(small_genome) == 1
        assert table.count(table.codec.encode('atg'), Frame.P0) == 1
        assert table.count(table.codec.encode('ggg'), Frame.F0) == 8

    def test_unknown_contig_warns(self):
        genome = ListGenome([('c1', 'acgtacgt')], [FeatureRecord('c9', '+', ((1, 6),), 'CDS', 'f1')])
        with pytest.warns(InputWarning, match='c9'):
            FrameCountTable(3).process_genome(genome)


class TestFrameCountTablePersistence:
    @pytest.fixture
    def table(self):
        table = FrameCountTable(5, KmerStrategy.CONTIGUOUS)
        table.count_sequence('atgaatgaacgttaccagtgtttaaaaact')
        for _ in range(3): table.increment(7, Frame.P2)
        return table

    def test_round_trip(self, table, tmp_path):
        table.save(tmp_path / 'kmers.ser')
        loaded = FrameCountTable.load(tmp_path / 'kmers.ser')
        assert loaded == table
        assert loaded.k == 5
        assert loaded.strategy is KmerStrategy.CONTIGUOUS

    def test_round_trip_spaced_gzip(self, tmp_path):
        table = FrameCountTable(4, KmerStrategy.SPACED)
        table.count_sequence('atgaatgaacgttaccagtgttt')
        table.save(tmp_path / 'kmers.ser.gz')
        loaded = FrameCountTable.load(tmp_path / 'kmers.ser.gz', k=4, strategy=KmerStrategy.SPACED)
        assert loaded == table

    def test_layout(self, tmp_path):
        table = FrameCountTable(1)
        for _ in range(3): table.increment(2, Frame.P0)
        table.save(tmp_path / 't.ser')
        data = (tmp_path / 't.ser').read_bytes()
        assert len(data) == 8 + 7 * 4 * 2
        assert data[:8] == b'\x00\x00\x00\x01\x00\x00\x00\x00'
        assert data[8 + (4 * 4 + 2) * 2:8 + (4 * 4 + 2) * 2 + 2] == b'\x00\x03'
        assert data[8:].count(0) == 7 * 4 * 2 - 1

    def test_truncated(self, table, tmp_path):
        table.save(tmp_path / 'kmers.ser')
        data = (tmp_path / 'kmers.ser').read_bytes()
        (tmp_path / 'short.ser').write_bytes(data[:-1])
        with pytest.raises(CounterFormatError, match='truncated'):
            FrameCountTable.load(tmp_path / 'short.ser')
        (tmp_path / 'header.ser').write_bytes(data[:6])
        with pytest.raises(CounterFormatError):
            FrameCountTable.load(tmp_path / 'header.ser')

    def test_trailing_bytes(self, table, tmp_path):
        table.save(tmp_path / 'kmers.ser')
        (tmp_path / 'long.ser').write_bytes((tmp_path / 'kmers.ser').read_bytes() + b'\x00')
        with pytest.raises(CounterFormatError):
            FrameCountTable.load(tmp_path / 'long.ser')

    def test_bad_tag(self, tmp_path):
        (tmp_path / 'bad.ser').write_bytes(b'\x00\x00\x00\x01\x00\x00\x00\x05' + bytes(56))
        with pytest.raises(CounterFormatError, match='strategy'):
            FrameCountTable.load(tmp_path / 'bad.ser')

    def test_bad_size(self, tmp_path):
        (tmp_path / 'bad.ser').write_bytes(b'\x00\x00\x00\x10\x00\x00\x00\x00' + bytes(56))
        with pytest.raises(CounterFormatError):
            FrameCountTable.load(tmp_path / 'bad.ser')

    def test_expected_size(self, table, tmp_path):
        table.save(tmp_path / 'kmers.ser')
        with pytest.raises(CounterFormatError):
            FrameCountTable.load(tmp_path / 'kmers.ser', k=6)
        with pytest.raises(CounterFormatError):
            FrameCountTable.load(tmp_path / 'kmers.ser', strategy=KmerStrategy.SPACED)

    def test_handle(self, table, tmp_path):
        with gzip.open(tmp_path / 'kmers.ser.gz', 'wb') as handle:
            table.save(handle)
        with open(tmp_path / 'kmers.ser.gz', 'rb') as handle:
            assert FrameCountTable.load(handle) == table


class TestFrameCountTableExport:
    @pytest.fixture
    def table(self):
        table = FrameCountTable(2)
        ac, gg = table.codec.encode('ac'), table.codec.encode('gg')
        for _ in range(3): table.increment(ac, Frame.P0)
        table.increment(ac, Frame.M0)
        table.increment(gg, Frame.F0)
        return table

    def test_rows(self, table):
        assert list(table.rows()) == [('ac', Frame.P0, 0.75, 3), ('gg', Frame.F0, 1.0, 1)]
        assert list(table.rows(min_fraction=0.8)) == [('gg', Frame.F0, 1.0, 1)]
        assert list(table.rows(min_hits=2)) == [('ac', Frame.P0, 0.75, 3)]

    def test_export(self, table, tmp_path):
        assert table.export(tmp_path / 'kmers.tbl') == 2
        assert (tmp_path / 'kmers.tbl').read_text() == 'kmer\tframe\tfraction\thits\nac\t+1\t0.75\t3\ngg\t0\t1.00\t1\n'

    def test_export_empty(self, tmp_path):
        assert FrameCountTable(2).export(tmp_path / 'kmers.tbl') == 0
        assert (tmp_path / 'kmers.tbl').read_text() == 'kmer\tframe\tfraction\thits\n'
