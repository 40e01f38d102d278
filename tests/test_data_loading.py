"""
Tests for data loading operations.

Tests DEM file loading into RasterGrids.
"""

import pytest
import numpy as np
import tempfile


class TestLoadGrid:
    """Tests for load_grid."""

    def test_nodata_becomes_nan(self, tmp_path, write_tif):
        from src.relief.data_loading import load_grid

        data = np.array([[1, 2], [-32768, 4]], dtype=np.int16)
        path = write_tif(tmp_path / "tile.tif", data, nodata=-32768)

        grid = load_grid(path)

        assert grid.data.dtype == np.float32
        assert np.isnan(grid.data[1, 0])
        assert grid.valid_count == 3
        assert grid.data[1, 1] == 4.0

    def test_transform_and_crs_are_read(self, tmp_path, write_tif):
        from src.relief.data_loading import load_grid

        path = write_tif(tmp_path / "tile.tif", np.ones((3, 4), dtype=np.float32), left=100.0, top=200.0, res=5.0)
        grid = load_grid(path)

        assert grid.shape == (3, 4)
        assert grid.bounds == pytest.approx((100.0, 185.0, 120.0, 200.0))
        assert grid.crs.to_epsg() == 32618

    def test_missing_crs_raises(self, tmp_path, write_tif):
        from src.relief.data_loading import load_grid

        path = write_tif(tmp_path / "nocrs.tif", np.ones((2, 2), dtype=np.float32), crs=None)

        with pytest.raises(ValueError, match="no CRS"):
            load_grid(path)


class TestLoadDemFiles:
    """Tests for load_dem_files function."""

    def test_load_dem_files_nonexistent_directory_raises(self):
        """Test that nonexistent directory raises ValueError."""
        from src.relief.data_loading import load_dem_files

        with pytest.raises(ValueError, match="does not exist"):
            load_dem_files("/nonexistent/directory/path")

    def test_load_dem_files_file_not_directory_raises(self):
        """Test that file path instead of directory raises ValueError."""
        from src.relief.data_loading import load_dem_files

        with tempfile.NamedTemporaryFile() as tmp:
            with pytest.raises(ValueError, match="not a directory"):
                load_dem_files(tmp.name)

    def test_load_dem_files_no_matching_files_raises(self, tmp_path):
        """Test that directory with no matching files raises ValueError."""
        from src.relief.data_loading import load_dem_files

        with pytest.raises(ValueError, match="No files matching"):
            load_dem_files(tmp_path, pattern="*.hgt")

    def test_load_dem_files_returns_sorted_grids(self, tmp_path, write_tif):
        from src.relief.data_loading import load_dem_files

        write_tif(tmp_path / "b.tif", np.full((2, 2), 2.0, dtype=np.float32))
        write_tif(tmp_path / "a.tif", np.full((2, 2), 1.0, dtype=np.float32))

        grids = load_dem_files(tmp_path)

        assert [g.data[0, 0] for g in grids] == [1.0, 2.0]

    def test_load_dem_files_recursive(self, tmp_path, write_tif):
        from src.relief.data_loading import load_dem_files

        (tmp_path / "nested").mkdir()
        write_tif(tmp_path / "nested" / "tile.tif", np.ones((2, 2), dtype=np.float32))

        with pytest.raises(ValueError):
            load_dem_files(tmp_path)
        assert len(load_dem_files(tmp_path, recursive=True)) == 1

    def test_unreadable_files_are_skipped(self, tmp_path, write_tif):
        from src.relief.data_loading import load_dem_files

        write_tif(tmp_path / "good.tif", np.ones((2, 2), dtype=np.float32))
        (tmp_path / "broken.tif").write_bytes(b"not a tiff")

        grids = load_dem_files(tmp_path)

        assert len(grids) == 1

    def test_all_unreadable_raises(self, tmp_path):
        from src.relief.data_loading import load_dem_files

        (tmp_path / "broken.tif").write_bytes(b"not a tiff")

        with pytest.raises(ValueError, match="No valid DEM files"):
            load_dem_files(tmp_path)

    def test_unsupported_dtype_is_skipped(self, tmp_path, write_tif):
        from src.relief.data_loading import load_grid_files

        good = write_tif(tmp_path / "good.tif", np.ones((2, 2), dtype=np.float32))
        odd = write_tif(tmp_path / "odd.tif", np.ones((2, 2), dtype=np.uint8))

        grids = load_grid_files([good, odd])

        assert len(grids) == 1
