#!/usr/bin/env python3
"""
Render top-down previews of generated tracks.

One PNG per path strategy:
1. Path growth (random walk that homes back to the start)
2. Angle walk with closing path
3. Closed chain (equal steps summing to zero)

Each preview shows the raw polyline, the ribbon surface coloured by banking,
and the finish region.

Usage:
    python generate_sample_tracks.py [seed]

If no seed is provided, defaults to "hanna"
"""

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent))

from py_trackgen.core.exceptions import TrackGenerationError
from py_trackgen.core.track_generator import PathStrategy, TrackParameters, generate_track
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import PolyCollection


def render_track(params: TrackParameters, output_dir: Path = Path(".")):
    """Generate a track and save a top-down preview."""

    print(f"\nGenerating {params.strategy.value} track...")
    print(f"  Seed: {params.seed}")

    track = generate_track(params)
    mesh = track.mesh
    print(f"  Polyline: {len(track.polyline)} points")
    print(f"  Mesh: {mesh.vertex_count} vertices, {mesh.face_count} faces")
    print(f"  Length: {mesh.total_length:.1f}")

    fig, ax = plt.subplots(figsize=(10, 10))

    # Road surface quads, coloured by banking
    road = mesh.group_faces("road")
    triangles = mesh.positions[road][:, :, :2]
    face_banking = np.degrees(mesh.banking[road[:, 0] // mesh.vertices_per_sample])
    surface = PolyCollection(triangles, array=face_banking, cmap="coolwarm", edgecolors="none")
    ax.add_collection(surface)
    fig.colorbar(surface, ax=ax, label="Banking (degrees)", shrink=0.7, pad=0.02)

    # Finish region
    finish_samples = np.nonzero(mesh.finish_mask[:mesh.sample_count])[0]
    if len(finish_samples):
        finish = mesh.positions.reshape(mesh.sample_count, mesh.vertices_per_sample, 3)[finish_samples]
        ax.scatter(finish[:, :, 0].ravel(), finish[:, :, 1].ravel(), s=4, color="white",
                   edgecolors="black", linewidths=0.3, zorder=3)

    ax.plot(track.polyline[:, 0], track.polyline[:, 1], "-o", color="dimgray",
            markersize=2, linewidth=0.6, alpha=0.7, zorder=2)
    ax.plot(*track.polyline[0, :2], "o", color="darkgreen", markersize=8, zorder=4)

    ax.set_aspect("equal")
    ax.autoscale_view()
    ax.set_xticks([])
    ax.set_yticks([])

    quality = track.quality
    title = f"{params.strategy.value.title()} - {len(track.control_points)} control points\n"
    title += f"Length: {mesh.total_length:.1f} | Forced: {len(quality.forced_indices)} | "
    title += f"Close passes: {len(quality.proximity_violations)}"
    ax.set_title(title, fontsize=14, pad=20)

    ax.text(0.98, 0.02, f"Seed: {params.seed}", transform=ax.transAxes,
            bbox=dict(boxstyle="round,pad=0.3", facecolor="white", alpha=0.8),
            horizontalalignment='right', fontsize=10, family="monospace")

    output_file = output_dir / f"track_{params.strategy.value}_{params.seed}.png"
    plt.savefig(output_file, dpi=200, bbox_inches="tight", pad_inches=0.1)
    print(f"  Saved to: {output_file}")

    plt.close()

    return track


def main():
    """Render one preview per strategy."""

    seed = sys.argv[1] if len(sys.argv) > 1 else "hanna"

    runs = [
        TrackParameters(seed=seed, strategy=PathStrategy.GROWTH, min_step=8.0, max_step=14.0),
        TrackParameters(seed=seed, strategy=PathStrategy.WALK, max_angle=20.0),
        TrackParameters(seed=seed, strategy=PathStrategy.CHAIN, chain_tolerance=5.0, road_width=20.0),
    ]

    print("Generating track previews")
    print(f"Using seed: {seed}")
    print("=" * 60)

    for params in runs:
        try:
            render_track(params)
        except TrackGenerationError as e:
            print(f"  ERROR generating {params.strategy.value}: {e}")

    print("\n" + "=" * 60)
    print("Done.")


if __name__ == "__main__":
    main()
