#!/usr/bin/env python3
"""
Tower Visibility Demo -- chuk-mcp-towerview

Computes which terrain around a 30 m mast on the Brocken (Harz, Germany) is
visible from its top, then plots the sampled visible points.

Usage:
    python examples/tower_visibility_demo.py

Output:
    examples/output/brocken_visibility.png

Requirements:
    pip install chuk-mcp-towerview[demo]
    OPENTOPOGRAPHY_API_KEY set in the environment or .env
"""

import asyncio
import sys
from pathlib import Path

import matplotlib.pyplot as plt

from tool_runner import ToolRunner

# -- Configuration -----------------------------------------------------------

TOWER_LAT = 51.7991
TOWER_LNG = 10.6156
TOWER_HEIGHT_M = 30.0
HALF_SPAN_DEG = 0.1
OUTPUT_DIR = Path(__file__).parent / "output"


def _print_progress(job_id: str, percent: int) -> None:
    if percent % 10 == 0:
        print(f"  [{job_id}] {percent}%")


async def main() -> None:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    runner = ToolRunner(progress_callback=_print_progress)

    print("=" * 60)
    print("Brocken -- Tower Visibility")
    print("=" * 60)

    print(await runner.run_text("tower_status"))

    print(f"\nComputing visibility (half span {HALF_SPAN_DEG} deg)...")
    result = await runner.run(
        "tower_visibility",
        lat=TOWER_LAT,
        lng=TOWER_LNG,
        tower_height_m=TOWER_HEIGHT_M,
        area_half_span_deg=HALF_SPAN_DEG,
    )
    if "error" in result:
        print(f"  ERROR: {result['error']}")
        sys.exit(1)

    print(f"  {result['message']}")
    print(f"  Observer elevation: {result['observer_elevation_m']:.1f}m")

    lats = [p["lat"] for p in result["points"]]
    lngs = [p["lng"] for p in result["points"]]
    west, south, east, north = result["bbox"]

    fig, ax = plt.subplots(1, 1, figsize=(10, 10))
    ax.scatter(lngs, lats, s=2, c="#00c800", label="Visible")
    ax.plot(TOWER_LNG, TOWER_LAT, "k^", markersize=12, label="Tower")
    ax.set_xlim(west, east)
    ax.set_ylim(south, north)
    ax.set_aspect("equal")
    ax.legend(loc="lower right")
    ax.set_title(
        f"Brocken tower visibility\n"
        f"Tower {TOWER_HEIGHT_M:.0f} m | Visible: {result['visible_percentage']:.1f}% | "
        f"DEM: {result['dem_type']}",
        fontsize=14,
        fontweight="bold",
    )

    output_path = OUTPUT_DIR / "brocken_visibility.png"
    fig.savefig(output_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    print(f"\nOutput: {output_path}")

    print("\nReusing the saved location with a taller tower...")
    print(await runner.run_text("tower_visibility", tower_height_m=60.0, area_half_span_deg=0.05))


if __name__ == "__main__":
    asyncio.run(main())
