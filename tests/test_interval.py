import numpy as np
import pytest

from framekmers.core.frame import Frame
from framekmers.core.interval import Strand, Region, RegionError, Location, LocationList, coding_map
from framekmers.io import FeatureRecord


PLUS_FRAMES = [Frame.P0, Frame.P1, Frame.P2, Frame.P0, Frame.P1, Frame.P2]
MINUS_FRAMES = [Frame.M2, Frame.M1, Frame.M0, Frame.M2, Frame.M1, Frame.M0]


def extents(locations):
    return [(loc.left, loc.right, str(loc.strand), loc.valid) for loc in locations]


class TestStrand:
    def test_from_symbol(self):
        assert Strand.from_symbol('+') is Strand.FORWARD
        assert Strand.from_symbol(b'-') is Strand.REVERSE
        assert Strand.from_symbol(-1) is Strand.REVERSE
        assert Strand.from_symbol(None) is Strand.UNSTRANDED
        assert str(Strand.FORWARD) == '+'


class TestRegion:
    def test_basic(self):
        region = Region(10, 20)
        assert len(region) == 11
        assert 15 in region
        assert Region(12, 14) in region
        assert tuple(region) == (10, 20)

    def test_malformed(self):
        with pytest.raises(RegionError):
            Region(20, 10)
        region = Region(10, 20)
        with pytest.raises(RegionError):
            region.left = 21
        with pytest.raises(RegionError):
            region.right = 9

    def test_ordering(self):
        assert Region(5, 10) < Region(6, 7)
        assert Region(5, 10) < Region(5, 8)
        assert sorted([Region(5, 8), Region(1, 2), Region(5, 10)]) == [Region(1, 2), Region(5, 10), Region(5, 8)]


class TestLocation:
    def test_add_region(self, plus_location, minus_location):
        assert [tuple(r) for r in plus_location.regions] == [(10, 29), (30, 49)]
        assert [tuple(r) for r in minus_location.regions] == [(10, 29), (30, 49)]
        assert plus_location.is_segmented
        assert (plus_location.left, plus_location.right, plus_location.length) == (10, 49, 40)
        assert minus_location.begin == 49

    def test_put_region_keeps_order(self):
        loc = Location('c1', '+')
        loc.put_region(50, 60)
        loc.put_region(10, 20)
        assert [tuple(r) for r in loc.regions] == [(10, 20), (50, 60)]

    def test_bad_strand(self):
        with pytest.raises(RegionError):
            Location('c1', '.')

    def test_plus_frames(self, plus_location):
        frames = [plus_location.kmer_frame(pos, 15) for pos in range(1, 60)]
        assert frames[:9] == [Frame.XX] * 9
        assert frames[9:15] == PLUS_FRAMES
        assert frames[15:29] == [Frame.XX] * 14
        assert frames[29:35] == PLUS_FRAMES
        assert frames[35:49] == [Frame.XX] * 14
        assert frames[49:] == [Frame.F0] * 10

    def test_minus_frames(self, minus_location):
        frames = [minus_location.kmer_frame(pos, 15) for pos in range(1, 60)]
        assert frames[:9] == [Frame.XX] * 9
        assert frames[9:15] == MINUS_FRAMES
        assert frames[15:29] == [Frame.XX] * 14
        assert frames[29:35] == MINUS_FRAMES
        assert frames[35:49] == [Frame.XX] * 14
        assert frames[49:] == [Frame.F0] * 10

    def test_outside_is_background(self, plus_location):
        assert plus_location.frame_of(1, 9) == Frame.F0
        assert plus_location.frame_of(50, 64) == Frame.F0

    def test_invalid(self, plus_location):
        plus_location.invalidate()
        assert not plus_location.is_valid()
        assert plus_location.kmer_frame(10, 15) == Frame.XX
        assert plus_location.kmer_frame(50, 15) == Frame.F0

    def test_region_of(self, plus_location):
        bounds = plus_location.region_of()
        assert [tuple(r) for r in bounds.regions] == [(10, 49)]
        assert bounds.valid and not bounds.is_segmented

    def test_set_left(self, plus_location):
        plus_location.set_left(35)
        assert [tuple(r) for r in plus_location.regions] == [(35, 49)]
        with pytest.raises(RegionError):
            plus_location.set_left(50)

    def test_set_right(self, plus_location):
        plus_location.set_right(20)
        assert [tuple(r) for r in plus_location.regions] == [(10, 20)]
        with pytest.raises(RegionError):
            plus_location.set_right(9)

    def test_copy(self, plus_location):
        copy = plus_location.copy()
        copy.set_left(40)
        assert plus_location.left == 10
        assert copy == Location('c1', '+', [(40, 49)])

    def test_ordering(self):
        a = Location('c1', '+', [(10, 50)])
        b = Location('c1', '+', [(10, 30)])
        c = Location('c1', '-', [(10, 50)])
        d = Location('c1', '+', [(5, 8)])
        assert sorted([b, c, a, d]) == [d, a, c, b]


class TestLocationListInsertion:
    def test_disjoint(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(100, 200)]))
        locs.add_location(Location('c1', '-', [(10, 50)]))
        assert extents(locs) == [(10, 50, '-', True), (100, 200, '+', True)]
        assert len(locs) == 2

    def test_other_contig(self):
        locs = LocationList('c1')
        assert not locs.add_location(Location('c2', '+', [(1, 10)]))
        assert len(locs) == 0

    def test_segmented_feature_is_invalid(self, plus_location):
        locs = LocationList('c1')
        assert locs.add_location(plus_location)
        assert extents(locs) == [(10, 49, '+', False)]
        assert plus_location.valid

    def test_containment(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 100)]))
        locs.add_location(Location('c1', '-', [(40, 60)]))
        assert extents(locs) == [(10, 39, '+', True), (40, 60, '-', False), (61, 100, '+', True)]

    def test_contained_first(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '-', [(40, 60)]))
        locs.add_location(Location('c1', '+', [(10, 100)]))
        assert extents(locs) == [(10, 39, '+', True), (40, 60, '-', False), (61, 100, '+', True)]

    def test_shared_left(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 50)]))
        locs.add_location(Location('c1', '-', [(10, 30)]))
        assert extents(locs) == [(10, 30, '-', False), (31, 50, '+', True)]

    def test_shared_right(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 50)]))
        locs.add_location(Location('c1', '-', [(30, 50)]))
        assert extents(locs) == [(10, 29, '+', True), (30, 50, '-', False)]

    def test_partial_overlap(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 50)]))
        locs.add_location(Location('c1', '-', [(40, 80)]))
        assert extents(locs) == [(10, 39, '+', True), (40, 50, '-', False), (51, 80, '-', False)]

    def test_duplicate(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 50)]))
        locs.add_location(Location('c1', '+', [(10, 50)]))
        assert extents(locs) == [(10, 50, '+', False)]

    def test_spans_several(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 20)]))
        locs.add_location(Location('c1', '+', [(30, 40)]))
        locs.add_location(Location('c1', '-', [(5, 50)]))
        assert extents(locs) == [(5, 9, '-', True), (10, 20, '+', False), (21, 29, '-', True),
                                 (30, 40, '+', False), (41, 50, '-', True)]

    def test_never_overlaps(self):
        rng = np.random.default_rng(3)
        locs = LocationList('c1')
        for _ in range(200):
            left = int(rng.integers(1, 2000))
            length = int(rng.integers(1, 300))
            locs.add_location(Location('c1', '+-'[int(rng.integers(2))], [(left, left + length - 1)]))
        stored = list(locs)
        assert all(not loc.is_segmented for loc in stored)
        assert all(a.right < b.left for a, b in zip(stored, stored[1:]))

    def test_contains(self):
        locs = LocationList('c1')
        loc = Location('c1', '+', [(10, 50)])
        locs.add_location(loc)
        assert Location('c1', '+', [(10, 50)]) in locs
        assert Location('c1', '-', [(10, 50)]) not in locs

    def test_add_feature(self):
        locs = LocationList('c1')
        assert locs.add_feature(FeatureRecord('c1', '-', ((10, 20), (30, 40)), 'CDS', 'f1'))
        assert extents(locs) == [(10, 40, '-', False)]


class TestLocationListFrames:
    @pytest.fixture
    def locs(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '+', [(10, 100)]))
        locs.add_location(Location('c1', '-', [(40, 60)]))
        return locs

    def test_compute_region_frame(self, locs):
        assert locs.compute_region_frame(1, 9) == Frame.F0
        assert locs.compute_region_frame(5, 19) == Frame.XX
        assert locs.compute_region_frame(20, 34) == Frame.P1
        assert locs.compute_region_frame(30, 44) == Frame.XX
        assert locs.compute_region_frame(45, 55) == Frame.XX
        assert locs.compute_region_frame(61, 75) == Frame.P0
        assert locs.compute_region_frame(95, 109) == Frame.XX
        assert locs.compute_region_frame(101, 115) == Frame.F0

    def test_minus_strand(self):
        locs = LocationList('c1')
        locs.add_location(Location('c1', '-', [(10, 29)]))
        assert [locs.compute_region_frame(pos, pos + 14) for pos in range(10, 16)] == MINUS_FRAMES

    def test_empty(self):
        locs = LocationList('c1')
        assert locs.compute_region_frame(1, 15) == Frame.F0
        np.testing.assert_array_equal(locs.frames(np.arange(1, 5), 15), [Frame.F0] * 4)

    def test_vectorised_matches_scalar(self, locs):
        positions = np.arange(1, 120)
        frames = locs.frames(positions, 15)
        assert frames.dtype == np.uint8
        assert frames.tolist() == [locs.compute_region_frame(p, p + 14) for p in range(1, 120)]


class TestCodingMap:
    def test_coding_features_only(self):
        features = [
            FeatureRecord('c1', '+', ((1, 9),), 'CDS', 'f1'),
            FeatureRecord('c1', '-', ((20, 40),), 'rna', 'f2'),
            FeatureRecord('c2', '-', ((5, 13),), 'peg', 'f3'),
        ]
        cmap = coding_map(features)
        assert sorted(cmap) == ['c1', 'c2']
        assert extents(cmap['c1']) == [(1, 9, '+', True)]
        assert extents(cmap['c2']) == [(5, 13, '-', True)]

    def test_all_types(self):
        features = [FeatureRecord('c1', '-', ((20, 40),), 'rna', 'f2')]
        assert len(coding_map(features, feature_types=())['c1']) == 1

    def test_from_source(self, small_genome):
        assert extents(coding_map(small_genome)['c1']) == [(1, 9, '+', True)]
