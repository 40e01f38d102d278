"""
Tests for tile mosaicking.

Overlapping cells average their non-null contributions; everything else is
copied exactly.
"""

import pytest
import numpy as np


class TestMosaicGrids:
    """Tests for mosaic_grids."""

    def test_full_overlap_averages(self, make_grid):
        """Two fully overlapping 3x3 grids of 1 and 2 give 1.5 everywhere."""
        from src.relief.mosaic import mosaic_grids

        ones = make_grid(np.ones((3, 3)))
        twos = make_grid(np.full((3, 3), 2.0))

        result = mosaic_grids([ones, twos])

        assert result.shape == (3, 3)
        np.testing.assert_allclose(result.data, 1.5)
        assert result.transform == ones.transform

    def test_adjacent_tiles_cover_union(self, make_grid):
        """Side-by-side tiles produce one grid over both extents."""
        from src.relief.mosaic import mosaic_grids

        west = make_grid(np.full((2, 2), 10.0), left=0.0, top=20.0, res=10.0)
        east = make_grid(np.full((2, 2), 20.0), left=20.0, top=20.0, res=10.0)

        result = mosaic_grids([west, east])

        assert result.shape == (2, 4)
        assert result.bounds == pytest.approx((0.0, 0.0, 40.0, 20.0))
        np.testing.assert_array_equal(result.data[:, :2], 10.0)
        np.testing.assert_array_equal(result.data[:, 2:], 20.0)

    def test_partial_overlap_mean_and_exact_copy(self, make_grid):
        """Overlap cells are means; single-coverage cells keep their values."""
        from src.relief.mosaic import mosaic_grids

        a_data = np.arange(9, dtype=np.float32).reshape(3, 3)
        b_data = np.arange(100, 109, dtype=np.float32).reshape(3, 3)
        a = make_grid(a_data, left=0.0, top=30.0, res=10.0)
        # Shifted one cell east and one cell south
        b = make_grid(b_data, left=10.0, top=20.0, res=10.0)

        result = mosaic_grids([a, b])

        assert result.shape == (4, 4)
        # Only-a cells
        assert result.data[0, 0] == a_data[0, 0]
        assert result.data[1, 0] == a_data[1, 0]
        # Only-b cells
        assert result.data[3, 3] == b_data[2, 2]
        # Overlap: a[1:3, 1:3] with b[0:2, 0:2]
        np.testing.assert_allclose(
            result.data[1:3, 1:3], (a_data[1:3, 1:3] + b_data[0:2, 0:2]) / 2.0
        )
        # Covered by neither
        assert np.isnan(result.data[3, 0])
        assert np.isnan(result.data[0, 3])

    def test_null_contributions_are_ignored(self, make_grid):
        """A null cell does not drag the mean toward zero."""
        from src.relief.mosaic import mosaic_grids

        a = make_grid([[np.nan, 4.0], [4.0, 4.0]])
        b = make_grid([[8.0, np.nan], [2.0, 6.0]])

        result = mosaic_grids([a, b])

        np.testing.assert_allclose(result.data, [[8.0, 4.0], [3.0, 5.0]])

    def test_all_null_overlap_stays_null(self, make_grid):
        from src.relief.mosaic import mosaic_grids

        a = make_grid([[np.nan, 1.0]])
        b = make_grid([[np.nan, 3.0]])

        result = mosaic_grids([a, b])

        assert np.isnan(result.data[0, 0])
        assert result.data[0, 1] == 2.0

    def test_single_grid_is_unchanged(self, make_grid):
        from src.relief.mosaic import mosaic_grids

        grid = make_grid(np.arange(6, dtype=np.float32).reshape(2, 3))
        result = mosaic_grids([grid])

        np.testing.assert_array_equal(result.data, grid.data)
        assert result.transform == grid.transform

    def test_resolution_mismatch_raises(self, make_grid):
        from src.relief.mosaic import mosaic_grids
        from src.relief.errors import IncompatibleGridError

        a = make_grid(np.ones((2, 2)), res=30.0)
        b = make_grid(np.ones((2, 2)), res=10.0)

        with pytest.raises(IncompatibleGridError, match="resolution"):
            mosaic_grids([a, b])

    def test_crs_mismatch_raises(self, make_grid):
        from src.relief.mosaic import mosaic_grids
        from src.relief.errors import IncompatibleGridError

        a = make_grid(np.ones((2, 2)), crs="EPSG:32618")
        b = make_grid(np.ones((2, 2)), crs="EPSG:32617")

        with pytest.raises(IncompatibleGridError, match="CRS"):
            mosaic_grids([a, b])

    def test_misaligned_lattice_raises(self, make_grid):
        """Grids offset by a fraction of a cell cannot share one lattice."""
        from src.relief.mosaic import mosaic_grids
        from src.relief.errors import IncompatibleGridError

        a = make_grid(np.ones((2, 2)), left=0.0, res=10.0)
        b = make_grid(np.ones((2, 2)), left=5.0, res=10.0)

        with pytest.raises(IncompatibleGridError, match="aligned"):
            mosaic_grids([a, b])

    def test_empty_input_raises(self):
        from src.relief.mosaic import mosaic_grids
        from src.relief.errors import IncompatibleGridError

        with pytest.raises(IncompatibleGridError):
            mosaic_grids([])
