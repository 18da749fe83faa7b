import pytest

from dvmeta.pq import ST2084_Y_MAX, nits_to_pq


def test_peak_maps_to_one():
    assert nits_to_pq(ST2084_Y_MAX) == pytest.approx(1.0, abs=1e-12)


def test_zero_is_near_black():
    value = nits_to_pq(0)
    assert 0.0 <= value < 1e-5


def test_sdr_reference_white():
    assert nits_to_pq(100) == pytest.approx(0.508, abs=1e-3)


@pytest.mark.parametrize("low,high", [(0, 1), (1, 100), (100, 1000), (1000, 4000), (4000, 10000)])
def test_monotonic(low, high):
    assert nits_to_pq(low) < nits_to_pq(high)


def test_accepts_integers_and_floats_alike():
    assert nits_to_pq(1000) == nits_to_pq(1000.0)