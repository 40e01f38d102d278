#!/usr/bin/env python3
"""
Render a shaded-relief map for one region preset.

Runs the relief pipeline and scatters the exported hillshade points with
matplotlib, sized by slope, with the region's boundaries on top. All visual
choices come from the region's styling mapping.

Usage:
    python examples/relief_map.py vermont
    python examples/relief_map.py california --dem-dir data/dem/california --pattern "*.tif"
"""

import argparse
import logging
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import DEFAULT_LOG_LEVEL, OUTPUT_DIR
from src.relief.pipeline import ReliefPipeline
from src.relief.regions import REGION_PRESETS, get_region_config

logger = logging.getLogger(__name__)


def plot_relief(result, styling, output_path: Path, title: str):
    """Scatter shade points, marker size scaled by slope."""
    shade_df, slope_df = result.to_frames()

    low, high = styling.get("slope_size_range", (0.1, 1.0))
    slope = slope_df["value"].to_numpy()
    span = np.nanmax(slope) - np.nanmin(slope)
    norm = (slope - np.nanmin(slope)) / span if span > 0 else np.zeros_like(slope)
    sizes = styling.get("point_size", 0.5) * (low + (high - low) * norm)

    fig, ax = plt.subplots(figsize=(12, 12))
    ax.scatter(
        shade_df["x"],
        shade_df["y"],
        c=shade_df["value"],
        s=sizes,
        cmap=styling.get("cmap", "Greys_r"),
        vmin=0.0,
        vmax=1.0,
        marker="s",
        linewidths=0,
    )
    result.boundaries.boundary.plot(
        ax=ax,
        color=styling.get("boundary_color", "#4d4d4d"),
        linewidth=styling.get("boundary_linewidth", 0.4),
    )

    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.set_aspect("equal")
    ax.set_axis_off()

    plt.savefig(output_path, dpi=300, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved map to {output_path}")


def main():
    parser = argparse.ArgumentParser(description="Render a shaded-relief map")
    parser.add_argument("region", choices=sorted(REGION_PRESETS), help="Region preset")
    parser.add_argument("--dem-dir", type=Path, help="Use local tiles instead of downloading")
    parser.add_argument("--pattern", default="*.tif", help="Local tile pattern")
    parser.add_argument("--zoom", type=int, help="Remote tile zoom level")
    parser.add_argument("--no-cache", action="store_true", help="Disable mosaic caching")
    parser.add_argument("--output", type=Path, help="Output PNG path")
    args = parser.parse_args()

    logging.basicConfig(
        level=DEFAULT_LOG_LEVEL, format="%(asctime)s %(name)s %(levelname)s: %(message)s"
    )

    region = get_region_config(args.region)
    if args.dem_dir or args.zoom is not None:
        region = region.with_tiles(directory=args.dem_dir, pattern=args.pattern, zoom=args.zoom)

    pipeline = ReliefPipeline(region, cache_enabled=not args.no_cache)
    pipeline.explain("export")
    result = pipeline.run()

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    output_path = args.output or OUTPUT_DIR / f"{region.name}_relief.png"
    plot_relief(result, region.styling, output_path, region.name.replace("_", " ").title())
    return 0


if __name__ == "__main__":
    sys.exit(main())
