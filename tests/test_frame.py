import numpy as np
import pytest

from framekmers.core.frame import Frame, FrameError, REVERSE_FRAMES


class TestFrameValues:
    def test_ordinals(self):
        assert [f.value for f in Frame] == list(range(8))
        assert Frame.N_FRAMES == 7
        assert Frame.counted() == (Frame.M0, Frame.M1, Frame.M2, Frame.F0, Frame.P0, Frame.P1, Frame.P2)

    def test_labels(self):
        assert [str(f) for f in Frame] == ['-1', '-2', '-3', '0', '+1', '+2', '+3', 'X']
        assert Frame.P2.label == '+3'

    def test_is_coding(self):
        assert Frame.P0.is_coding and Frame.M2.is_coding
        assert not Frame.F0.is_coding
        assert not Frame.XX.is_coding


class TestFrameReverse:
    @pytest.mark.parametrize('plus,minus', [(Frame.P0, Frame.M0), (Frame.P1, Frame.M1), (Frame.P2, Frame.M2)])
    def test_swaps_strands(self, plus, minus):
        assert plus.rev() == minus
        assert minus.rev() == plus

    def test_fixed_points(self):
        assert Frame.F0.rev() == Frame.F0
        assert Frame.XX.rev() == Frame.XX

    def test_involution(self):
        for frame in Frame:
            assert frame.rev().rev() == frame

    def test_lookup_array(self):
        np.testing.assert_array_equal(REVERSE_FRAMES, [f.rev() for f in Frame])
        assert not REVERSE_FRAMES.flags.writeable


class TestFrameParsing:
    @pytest.mark.parametrize('label,frame', [('-1', Frame.M0), ('-3', Frame.M2), ('0', Frame.F0), ('+2', Frame.P1),
                                             ('X', Frame.XX), ('P0', Frame.P0), ('m1', Frame.M1), (b'+1', Frame.P0)])
    def test_from_label(self, label, frame):
        assert Frame.from_label(label) == frame

    def test_round_trip(self):
        for frame in Frame:
            assert Frame.from_label(str(frame)) is frame

    def test_unknown(self):
        with pytest.raises(FrameError):
            Frame.from_label('+4')

    def test_plus_minus(self):
        assert Frame.plus(0) == Frame.P0
        assert Frame.plus(4) == Frame.P1
        assert Frame.minus(2) == Frame.M2
