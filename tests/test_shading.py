"""
Tests for Horn slope/aspect and hillshade derivation.
"""

import pytest
import numpy as np
from rasterio.transform import Affine


def _east_ramp(rows=6, cols=6):
    """Elevation rising 1 m per column (0.1 gradient at 10 m cells)."""
    return np.tile(np.arange(cols, dtype=np.float32), (rows, 1))


class TestComputeSlopeAspect:
    """Tests for compute_slope_aspect."""

    def test_flat_plane_has_zero_slope(self, make_grid):
        """Exaggeration 15 on a flat plane at 100 gives an all-zero slope grid."""
        from src.relief.shading import compute_slope_aspect

        grid = make_grid(np.full((8, 8), 100.0))
        slope, aspect = compute_slope_aspect(grid, exaggeration=15)

        np.testing.assert_array_equal(slope.data, 0.0)
        assert np.isnan(aspect.data).all()

    def test_output_is_interior_of_input(self, make_grid):
        """Derived grids lose one cell on each border and stay aligned."""
        from src.relief.shading import compute_slope_aspect

        grid = make_grid(np.zeros((7, 9)), left=0.0, top=70.0, res=10.0)
        slope, aspect = compute_slope_aspect(grid)

        assert slope.shape == (5, 7)
        assert aspect.shape == (5, 7)
        assert slope.transform == grid.transform @ Affine.translation(1, 1)
        assert aspect.transform == slope.transform
        assert slope.crs == grid.crs

    def test_east_ramp_slope_and_aspect(self, make_grid):
        """Ground rising to the east faces west."""
        from src.relief.shading import compute_slope_aspect

        grid = make_grid(_east_ramp(), res=10.0)
        slope, aspect = compute_slope_aspect(grid, exaggeration=1.0)

        np.testing.assert_allclose(slope.data, np.arctan(0.1), rtol=1e-6)
        np.testing.assert_allclose(aspect.data, 1.5 * np.pi, rtol=1e-6)

    def test_north_ramp_faces_south(self, make_grid):
        from src.relief.shading import compute_slope_aspect

        rising_north = np.tile(np.arange(6, 0, -1, dtype=np.float32)[:, None], (1, 6))
        grid = make_grid(rising_north, res=10.0)
        _, aspect = compute_slope_aspect(grid, exaggeration=1.0)

        np.testing.assert_allclose(aspect.data, np.pi, rtol=1e-6)

    def test_exaggeration_steepens_slope(self, make_grid):
        from src.relief.shading import compute_slope_aspect

        grid = make_grid(_east_ramp(), res=10.0)
        slope_1, _ = compute_slope_aspect(grid, exaggeration=1.0)
        slope_15, _ = compute_slope_aspect(grid, exaggeration=15.0)

        np.testing.assert_allclose(slope_15.data, np.arctan(1.5), rtol=1e-6)
        assert (slope_15.data > slope_1.data).all()

    def test_null_cell_nulls_its_neighborhood(self, make_grid):
        from src.relief.shading import compute_slope_aspect

        data = _east_ramp(7, 7)
        data[3, 3] = np.nan
        slope, aspect = compute_slope_aspect(make_grid(data, res=10.0), exaggeration=1.0)

        # Input (3, 3) touches interior cells (1..3, 1..3)
        assert np.isnan(slope.data[1:4, 1:4]).all()
        assert np.isnan(aspect.data[1:4, 1:4]).all()
        assert not np.isnan(slope.data[0, 0])
        assert not np.isnan(slope.data[4, 4])

    def test_geographic_cell_size_in_metres(self, make_grid):
        """A degree grid is measured on the ellipsoid, not in degrees."""
        from src.relief.shading import compute_slope_aspect

        # ~1 km rise per column of ~0.01 degree (~800 m at 44N) would be steep
        # if degrees were used; in metres the slope stays moderate
        data = _east_ramp() * 10.0
        grid = make_grid(data, left=-73.0, top=44.5, res=0.01, crs="EPSG:4326")
        slope, _ = compute_slope_aspect(grid, exaggeration=1.0)

        assert np.degrees(slope.data).max() < 5.0
        assert np.degrees(slope.data).min() > 0.1

    def test_too_small_grid_raises(self, make_grid):
        from src.relief.shading import compute_slope_aspect

        with pytest.raises(ValueError, match="3x3"):
            compute_slope_aspect(make_grid(np.zeros((2, 5))))

    def test_non_positive_exaggeration_raises(self, make_grid):
        from src.relief.shading import compute_slope_aspect

        with pytest.raises(ValueError, match="Exaggeration"):
            compute_slope_aspect(make_grid(np.zeros((4, 4))), exaggeration=0)


class TestHillshade:
    """Tests for hillshade and derive_relief."""

    def test_flat_ground_shades_to_sin_altitude(self, make_grid):
        from src.relief.shading import derive_relief

        grid = make_grid(np.full((6, 6), 100.0))

        for altitude in (30.0, 45.0, 60.0, 90.0):
            surfaces = derive_relief(grid, exaggeration=15, azimuth=315, altitude=altitude)
            np.testing.assert_allclose(
                surfaces.shade.data, np.sin(np.radians(altitude)), rtol=1e-6
            )

    def test_shade_within_unit_interval(self, make_grid):
        """Arbitrary rough terrain still shades into [0, 1]."""
        from src.relief.shading import derive_relief

        rng = np.random.default_rng(42)
        grid = make_grid(rng.uniform(-500, 4000, size=(40, 40)), res=10.0)

        for azimuth, altitude in [(315, 45), (0, 5), (135, 80), (270, 0)]:
            shade = derive_relief(grid, exaggeration=15, azimuth=azimuth, altitude=altitude).shade
            valid = shade.data[shade.valid_mask]
            assert valid.min() >= 0.0
            assert valid.max() <= 1.0

    def test_slope_facing_light_is_brighter(self, make_grid):
        """With light from the NW, NW-facing ground is brighter than flat ground."""
        from src.relief.shading import derive_relief

        rows, cols = np.mgrid[0:8, 0:8].astype(np.float32)
        # Rising to the south-east, so descending (facing) north-west
        facing_nw = rows + cols
        facing_se = -(rows + cols)

        lit = derive_relief(make_grid(facing_nw, res=10.0), exaggeration=1.0).shade
        shaded = derive_relief(make_grid(facing_se, res=10.0), exaggeration=1.0).shade
        flat_value = np.sin(np.radians(45.0))

        assert (lit.data > flat_value).all()
        assert (shaded.data < flat_value).all()

    def test_shade_aligned_with_slope(self, make_grid, sample_dem):
        from src.relief.shading import derive_relief

        surfaces = derive_relief(make_grid(sample_dem, res=30.0))

        assert surfaces.shade.shape == surfaces.slope.shape == surfaces.aspect.shape
        assert surfaces.shade.transform == surfaces.slope.transform

    def test_null_slope_gives_null_shade(self, make_grid):
        from src.relief.shading import derive_relief

        data = np.full((6, 6), 100.0, dtype=np.float32)
        data[0, 0] = np.nan
        shade = derive_relief(make_grid(data)).shade

        assert np.isnan(shade.data[0, 0])
        assert shade.valid_count == shade.data.size - 1

    def test_altitude_out_of_range_raises(self, make_grid):
        from src.relief.shading import compute_slope_aspect, hillshade

        slope, aspect = compute_slope_aspect(make_grid(np.zeros((4, 4))))
        with pytest.raises(ValueError, match="Altitude"):
            hillshade(slope, aspect, altitude=95)

    def test_misaligned_inputs_raise(self, make_grid):
        from src.relief.shading import compute_slope_aspect, hillshade

        slope, _ = compute_slope_aspect(make_grid(np.zeros((4, 4))))
        _, aspect = compute_slope_aspect(make_grid(np.zeros((5, 5))))

        with pytest.raises(ValueError, match="share shape"):
            hillshade(slope, aspect)
