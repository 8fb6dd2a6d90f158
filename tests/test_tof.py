import numpy as np
import pytest

from ntagger.geometry.pmts import PMTGeometry
from ntagger.physics.hits import HitSeries
from ntagger.physics.tof import (
    SortPermutation,
    as_vertex,
    correct_and_sort,
    subtract_tof,
    time_of_flight,
)

C = 20.0  # cm/ns, round number for the tests


def _line_geometry():
    # PMT k (1-based) sits k*100 cm from the origin along x
    return PMTGeometry.from_array([[100.0 * k, 0.0, 0.0] for k in range(1, 6)])


def test_time_of_flight_and_one_based_ids():
    geo = _line_geometry()
    tof = time_of_flight([0, 0, 0], geo.position_of([1, 3]), C)
    np.testing.assert_allclose(tof, [5.0, 15.0])
    with pytest.raises(ValueError):
        geo.position_of([0])
    with pytest.raises(ValueError):
        geo.position_of([6])


def test_subtract_tof_raw_order():
    geo = _line_geometry()
    raw = HitSeries.from_arrays([50.0, 50.0, 50.0], [1, 1, 1], [5, 1, 2])
    np.testing.assert_allclose(subtract_tof(raw, [0, 0, 0], geo, C), [25.0, 45.0, 40.0])


def test_correct_and_sort_permutation():
    geo = _line_geometry()
    raw = HitSeries.from_arrays(
        [50.0, 50.0, 50.0, 10.0], [1.0, 2.0, 3.0, 4.0], [5, 1, 2, 1], [1, 0, 0, 1]
    )
    corr, perm = correct_and_sort(raw, [0, 0, 0], geo, C)
    np.testing.assert_allclose(corr.t_ns, [5.0, 25.0, 40.0, 45.0])
    np.testing.assert_array_equal(perm.order, [3, 0, 2, 1])
    np.testing.assert_array_equal(corr.q_pe, [4.0, 1.0, 3.0, 2.0])
    np.testing.assert_array_equal(corr.pmt_id, [1, 5, 2, 1])
    np.testing.assert_array_equal(corr.sig_flag, [1, 1, 0, 0])
    # order/reverse are inverse maps
    np.testing.assert_array_equal(perm.reverse[perm.order], np.arange(4))
    perm.validate()
    # same multiset as the unsorted residuals
    np.testing.assert_allclose(
        np.sort(subtract_tof(raw, [0, 0, 0], geo, C)), corr.t_ns
    )
    # raw series untouched
    np.testing.assert_allclose(raw.t_ns, [50.0, 50.0, 50.0, 10.0])


def test_sort_is_stable_and_idempotent():
    geo = PMTGeometry.from_array(np.zeros((3, 3)))
    raw = HitSeries.from_arrays([5.0, 1.0, 5.0, 1.0], [0, 1, 2, 3], [1, 2, 3, 1])
    corr, perm = correct_and_sort(raw, [0, 0, 0], geo, C)
    np.testing.assert_array_equal(perm.order, [1, 3, 0, 2])
    again, perm2 = correct_and_sort(corr, [0, 0, 0], geo, C)
    assert perm2.is_identity()
    np.testing.assert_array_equal(again.t_ns, corr.t_ns)


def test_no_sort_and_no_subtract():
    geo = _line_geometry()
    raw = HitSeries.from_arrays([50.0, 10.0], [1, 1], [1, 2])
    corr, perm = correct_and_sort(raw, [0, 0, 0], geo, C, sort=False)
    assert perm.is_identity()
    np.testing.assert_allclose(corr.t_ns, [45.0, 0.0])
    corr2, perm2 = correct_and_sort(raw, [0, 0, 0], geo, C, subtract=False)
    np.testing.assert_allclose(corr2.t_ns, [10.0, 50.0])
    np.testing.assert_array_equal(perm2.order, [1, 0])


def test_length_mismatch_is_reported():
    geo = _line_geometry()
    bad = HitSeries(np.array([1.0, 2.0]), np.array([1.0, 1.0]), np.array([1]))
    with pytest.raises(ValueError, match="length mismatch"):
        correct_and_sort(bad, [0, 0, 0], geo, C)
    with pytest.raises(ValueError):
        HitSeries.from_arrays([1.0], [1.0, 2.0], [1])


def test_permutation_validate_and_vertex():
    with pytest.raises(ValueError):
        SortPermutation(np.array([0, 1]), np.array([0, 0])).validate()
    assert len(SortPermutation.identity(3)) == 3
    with pytest.raises(ValueError):
        as_vertex([0.0, 1.0])
    with pytest.raises(ValueError):
        as_vertex([0.0, np.nan, 1.0])
