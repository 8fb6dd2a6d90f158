import numpy as np
import pytest

from ntagger.physics import stats


def test_count_in_window_basic():
    t = np.array([100.0, 101.0, 102.0, 200.0, 201.0, 400.0])
    assert stats.count_in_window(t, 0, 10.0) == 3
    assert stats.count_in_window(t, 1, 10.0) == 2
    assert stats.count_in_window(t, 3, 10.0) == 2
    assert stats.count_in_window(t, 5, 10.0) == 1
    # strict upper edge: t[j] - t[start] < width
    assert stats.count_in_window(t, 0, 2.0) == 2
    assert stats.count_in_window(t, 6, 10.0) == 0
    assert stats.count_in_window(t, -1, 10.0) == 0


def test_count_in_window_monotonic():
    rng = np.random.default_rng(7)
    t = np.sort(rng.uniform(0.0, 500.0, size=200))
    widths = [1.0, 5.0, 10.0, 50.0, 200.0]
    for i in range(0, 200, 13):
        counts = [stats.count_in_window(t, i, w) for w in widths]
        assert counts == sorted(counts)
    for w in widths:
        counts = [stats.count_in_window(t, i, w) for i in range(200)]
        # shifting the start right never adds hits past the series end
        ends = [i + c for i, c in enumerate(counts)]
        assert ends == sorted(ends)
        assert all(c >= 1 for c in counts)


def test_count_centered_half_open():
    t = np.array([0.0, 5.0, 10.0])
    assert stats.count_centered(t, 5.0, 10.0) == 2
    assert stats.count_centered(t, 5.0, 10.0001) == 3
    assert stats.count_centered(t, 1000.0, 10.0) == 0


def test_charge_sum_matches_window():
    t = np.array([0.0, 1.0, 2.0, 30.0])
    q = np.array([1.5, 2.0, 0.5, 9.0])
    assert stats.charge_sum(t, q, 0, 10.0) == pytest.approx(4.0)
    assert stats.charge_sum(t, q, 3, 10.0) == pytest.approx(9.0)
    assert stats.charge_sum(t, q, 4, 10.0) == 0.0
    assert stats.window_slice(t, 1, 10.0) == slice(1, 3)


def test_rms_properties():
    assert stats.rms([42.0]) == 0.0
    assert stats.rms([]) == 0.0
    assert stats.rms([1.0, 2.0, 3.0, 4.0]) == pytest.approx(np.sqrt(1.25))
    x = np.array([3.0, 7.5, 8.0, 12.25, 13.0])
    assert stats.rms(x + 1000.0) == pytest.approx(stats.rms(x), rel=1e-9)


def test_mean_median_skewness():
    assert stats.mean([]) == 0.0
    assert stats.median([]) == 0.0
    assert stats.mean([1.0, 2.0, 6.0]) == pytest.approx(3.0)
    assert stats.median([5.0, 1.0, 3.0]) == 3.0
    assert stats.skewness([1.0, 2.0, 3.0]) == pytest.approx(0.0)
    assert stats.skewness([2.0, 2.0]) == 0.0
    x = np.array([0.0, 0.0, 0.0, 1.0])
    d = x - x.mean()
    expected = np.mean(d**3) / np.mean(d**2) ** 1.5
    assert stats.skewness(x) == pytest.approx(expected)
    assert stats.skewness(x) > 0


def test_rms_in_window():
    t = np.array([0.0, 2.0, 4.0, 100.0])
    assert stats.rms_in_window(t, 0, 10.0) == pytest.approx(stats.rms([0.0, 2.0, 4.0]))
    assert stats.rms_in_window(t, 3, 10.0) == 0.0


def _loop_sum(values):
    s = 0.0
    for v in values:
        s += float(v)
    return s


def test_moments_accumulate_left_to_right():
    rng = np.random.default_rng(5)
    for _ in range(200):
        x = 20_000.0 + np.sort(rng.uniform(0.0, 10.0, size=int(rng.integers(20, 40))))
        n = x.size
        assert stats.seq_sum(x) == _loop_sum(x)
        mu = _loop_sum(x) / n
        assert stats.mean(x) == mu
        d = x - mu
        assert stats.rms(x) == float(np.sqrt(_loop_sum(d * d) / n))
        m2 = _loop_sum(d * d) / n
        assert stats.skewness(x) == float((_loop_sum(d * d * d) / n) / m2 ** 1.5)
    assert stats.seq_sum([]) == 0.0
