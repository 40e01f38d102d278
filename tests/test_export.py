"""
Tests for point-sample export and re-gridding.
"""

import pytest
import numpy as np
import pandas as pd


@pytest.fixture
def small_grid(make_grid):
    data = np.array([[1.0, 2.0, np.nan], [4.0, np.nan, 6.0]], dtype=np.float32)
    return make_grid(data, left=0.0, top=20.0, res=10.0)


class TestGridToPoints:
    """Tests for grid_to_points / iter_point_samples."""

    def test_row_major_non_null_cells(self, small_grid):
        from src.relief.export import grid_to_points
        from src.relief.grid import PointSample

        points = grid_to_points(small_grid)

        assert points == [
            PointSample(5.0, 15.0, 1.0),
            PointSample(15.0, 15.0, 2.0),
            PointSample(5.0, 5.0, 4.0),
            PointSample(25.0, 5.0, 6.0),
        ]

    def test_iterator_matches_list(self, small_grid):
        from src.relief.export import grid_to_points, iter_point_samples

        assert list(iter_point_samples(small_grid)) == grid_to_points(small_grid)

    def test_all_null_grid_exports_nothing(self, make_grid):
        from src.relief.export import grid_to_points

        assert grid_to_points(make_grid(np.full((3, 3), np.nan))) == []

    def test_export_is_deterministic(self, make_grid, sample_dem):
        from src.relief.export import grid_to_points

        grid = make_grid(sample_dem)
        assert grid_to_points(grid) == grid_to_points(grid)


class TestGridToFrame:
    """Tests for the DataFrame view."""

    def test_frame_columns_and_values(self, small_grid):
        from src.relief.export import grid_to_frame

        frame = grid_to_frame(small_grid)

        assert list(frame.columns) == ["x", "y", "value"]
        assert len(frame) == 4
        np.testing.assert_array_equal(frame["value"].to_numpy(), [1.0, 2.0, 4.0, 6.0])
        assert frame.attrs["crs"] == "EPSG:32618"


class TestPointsToGrid:
    """Tests for re-gridding point samples."""

    def test_round_trip_with_template(self, make_grid):
        """Export then re-grid reproduces non-null cells exactly."""
        from src.relief.export import grid_to_points, points_to_grid

        rng = np.random.default_rng(7)
        data = rng.normal(500.0, 120.0, size=(25, 30)).astype(np.float32)
        data[rng.random(data.shape) < 0.2] = np.nan
        grid = make_grid(data, res=30.0)

        rebuilt = points_to_grid(grid_to_points(grid), template=grid)

        np.testing.assert_array_equal(rebuilt.valid_mask, grid.valid_mask)
        np.testing.assert_array_equal(rebuilt.data[grid.valid_mask], data[grid.valid_mask])
        assert rebuilt.transform == grid.transform

    def test_round_trip_with_resolution(self, make_grid):
        """Without a template the lattice is rebuilt from the points."""
        from src.relief.export import grid_to_frame, points_to_grid

        data = np.arange(20, dtype=np.float32).reshape(4, 5)
        grid = make_grid(data, left=1000.0, top=2000.0, res=25.0)

        rebuilt = points_to_grid(grid_to_frame(grid), resolution=25.0, crs=grid.crs)

        np.testing.assert_array_equal(rebuilt.data, data)
        assert rebuilt.transform.almost_equals(grid.transform)

    def test_point_outside_template_raises(self, small_grid):
        from src.relief.export import points_to_grid
        from src.relief.grid import PointSample

        with pytest.raises(ValueError, match="outside"):
            points_to_grid([PointSample(500.0, 500.0, 1.0)], template=small_grid)

    def test_missing_lattice_raises(self):
        from src.relief.export import points_to_grid

        with pytest.raises(ValueError, match="template"):
            points_to_grid([(0.0, 0.0, 1.0)])

    def test_frame_missing_columns_raises(self, small_grid):
        from src.relief.export import points_to_grid

        with pytest.raises(ValueError, match="missing columns"):
            points_to_grid(pd.DataFrame({"x": [5.0], "y": [15.0]}), template=small_grid)
