import numpy as np
import pytest
from numpy.polynomial import legendre as npleg

from ntagger.physics.angular import (
    angles_to_direction,
    beta_coefficients,
    hit_directions,
    legendre,
    mean_direction,
    opening_angle_statistics,
)


def test_legendre_matches_numpy():
    x = np.linspace(-1.0, 1.0, 41)
    for n in range(0, 9):
        ref = npleg.Legendre.basis(n)(x)
        np.testing.assert_allclose(legendre(n, x), ref, atol=1e-12)
    assert legendre(2, 0.5) == pytest.approx(-0.125)
    assert isinstance(legendre(3, 0.2), float)


def test_legendre_negative_order():
    with pytest.raises(ValueError):
        legendre(-1, 0.0)


def test_hit_directions_unit_and_degenerate():
    vertex = np.array([1.0, 0.0, 0.0])
    pos = np.array([[1.0, 0.0, 5.0], [1.0, 0.0, 0.0], [4.0, 4.0, 0.0]])
    d = hit_directions(pos, vertex)
    np.testing.assert_allclose(d[0], [0.0, 0.0, 1.0])
    np.testing.assert_allclose(d[1], [0.0, 0.0, 0.0])
    np.testing.assert_allclose(d[2], [0.6, 0.8, 0.0])


def test_beta_coefficients_simple_patterns():
    same = np.array([[0.0, 0.0, 1.0]] * 4)
    np.testing.assert_allclose(beta_coefficients(same)[1:], np.ones(5))

    opposite = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0]])
    b = beta_coefficients(opposite)
    assert b[0] == 0.0
    np.testing.assert_allclose(b[1:], [-1.0, 1.0, -1.0, 1.0, -1.0])

    assert np.all(beta_coefficients(same[:1]) == 0.0)
    assert beta_coefficients(same, max_order=3).shape == (4,)


def test_beta_normalisation_over_pairs():
    rng = np.random.default_rng(3)
    v = rng.normal(size=(6, 3))
    d = v / np.linalg.norm(v, axis=1)[:, None]
    total = 0.0
    for i in range(6):
        for j in range(i + 1, 6):
            total += legendre(2, float(np.clip(d[i] @ d[j], -1, 1)))
    assert beta_coefficients(d)[2] == pytest.approx(2.0 * total / (6 * 5))


def test_opening_angle_statistics_orthogonal():
    d = np.eye(3)
    st = opening_angle_statistics(d)
    assert st.mean == pytest.approx(90.0)
    assert st.stdev == pytest.approx(0.0, abs=1e-9)
    assert st.skew == 0.0
    assert opening_angle_statistics(d[:1]) == (0.0, 0.0, 0.0)


def test_mean_direction_and_angles():
    d = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    axis = mean_direction(d)
    np.testing.assert_allclose(axis, [np.sqrt(0.5), np.sqrt(0.5), 0.0])
    np.testing.assert_allclose(angles_to_direction(d, axis), [45.0, 45.0])
    cancel = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0]])
    np.testing.assert_allclose(mean_direction(cancel), np.zeros(3))


def test_beta_pair_sum_is_sequential():
    rng = np.random.default_rng(9)
    v = rng.normal(size=(12, 3))
    d = v / np.linalg.norm(v, axis=1)[:, None]
    i, j = np.triu_indices(12, k=1)
    cos_ij = np.clip(np.einsum("ij,ij->i", d[i], d[j]), -1.0, 1.0)
    betas = beta_coefficients(d)
    for l in range(1, 6):
        total = 0.0
        for p in legendre(l, cos_ij):
            total += float(p)
        assert betas[l] == 2.0 * total / 12 / 11
