import numpy as np
import pytest

from ntagger.config.schemas import GeometryCfg
from ntagger.geometry.pmts import PMTGeometry
from ntagger.geometry.tank import Tank
from ntagger.sim.synth import cylinder_pmt_geometry


def test_dwall_and_contains():
    tank = Tank()
    assert tank.dwall([0, 0, 0]) == pytest.approx(1690.0)
    assert tank.dwall([0, 0, 1800]) == pytest.approx(10.0)
    assert tank.dwall([1000, 0, -100]) == pytest.approx(690.0)
    assert tank.contains([0, 0, 0])
    assert not tank.contains([2000, 0, 0])
    assert tank.dwall([2000, 0, 0]) < 0


def test_distance_to_wall_along_direction():
    tank = Tank(radius=100.0, half_height=50.0)
    assert tank.distance_to_wall([0, 0, 0], [1, 0, 0]) == pytest.approx(100.0)
    assert tank.distance_to_wall([0, 0, 0], [0, 0, -3]) == pytest.approx(50.0)
    assert tank.distance_to_wall([20, 0, 0], [-1, 0, 0]) == pytest.approx(120.0)
    # diagonal exits through the cap first
    d = np.array([1.0, 0.0, 1.0])
    assert tank.distance_to_wall([0, 0, 0], d) == pytest.approx(50.0 * np.sqrt(2.0))
    assert tank.distance_to_wall([0, 0, 10], [0, 0, 0]) == pytest.approx(40.0)
    assert tank.distance_to_wall([500, 0, 0], [1, 0, 0]) == 0.0


def test_tank_from_cfg():
    tank = Tank.from_cfg(GeometryCfg(tank_radius_cm=10.0, tank_half_height_cm=20.0))
    assert tank == Tank(10.0, 20.0)


def test_pmt_table_files(tmp_path):
    xyz = np.arange(12, dtype=float).reshape(4, 3)
    np.save(tmp_path / "pmts.npy", xyz)
    np.savez(tmp_path / "pmts.npz", pmt_xyz=xyz)
    np.savez(tmp_path / "wrong.npz", xyz=xyz)
    assert PMTGeometry.from_file(tmp_path / "pmts.npy").n_pmts == 4
    geo = PMTGeometry.from_file(tmp_path / "pmts.npz")
    np.testing.assert_allclose(geo.position_of(2), [3.0, 4.0, 5.0])
    with pytest.raises(KeyError):
        PMTGeometry.from_file(tmp_path / "wrong.npz")
    with pytest.raises(ValueError):
        PMTGeometry.from_file(tmp_path / "pmts.csv")
    with pytest.raises(ValueError):
        PMTGeometry.from_array(np.zeros((4, 2)))
    with pytest.raises(ValueError):
        PMTGeometry.from_cfg(GeometryCfg())


def test_cylinder_geometry_sits_on_barrel():
    tank = Tank(radius=100.0, half_height=50.0)
    geo = cylinder_pmt_geometry(tank, n_phi=8, n_z=3)
    assert geo.n_pmts == 24
    r = np.hypot(geo.positions[:, 0], geo.positions[:, 1])
    np.testing.assert_allclose(r, 100.0)
    assert np.all(np.abs(geo.positions[:, 2]) < 50.0)
