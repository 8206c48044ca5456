# src/neurodrill/visualization.py
from __future__ import annotations

# General imports (stdlib)
from pathlib import Path
from typing import Optional, Sequence

# General imports (third-party)
import matplotlib
matplotlib.use("Agg")  # non-GUI backend for CLI usage
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import Normalize

# Local imports
from .config import Config, Display
from .exceptions import VisualizationError
from .structure import SummaryRow

# Percentile band edges drawn as shaded reference regions
BAND_EDGES = (2, 9, 25, 75, 91, 98)


def figure_height(n_items: int, display: Display) -> float:
    """Figure height in inches: `base_height` per row, never below `min_height`."""
    return max(display.min_height, max(n_items, 1) * display.base_height + 0.8)


def visualize_dotplot(
    rows: Sequence[SummaryRow],
    display: Display,
    save_file_path: str,
    metric: str = "percentile",
    title: Optional[str] = None,
) -> Path:
    """
    Render and save a horizontal dot plot of aggregated scores.

    Use:
        One row per category, plotted in the given order from top to bottom,
        with a stem from the scale midpoint and markers filled on a red (low)
        to blue (high) colormap. Percentile plots shade the band boundaries.

    Args:
        rows (Sequence[SummaryRow]): Rows to plot (e.g. a root or drilldown series).
        display (Display): Figure sizing and output settings.
        save_file_path (str): Output path prefix without suffix.
        metric (str): "percentile" (0–100 axis) or "z" (z-score axis).
        title (str | None): Optional figure title.

    Returns:
        Path: Path of the saved figure.

    Raises:
        VisualizationError: If `metric` is unknown or the figure cannot be saved.
    """
    if metric not in ("percentile", "z"):
        raise VisualizationError(f"Unknown dot plot metric: {metric!r}")

    # Keep only rows with a value for the plotted metric
    attr = "mean_percentile" if metric == "percentile" else "mean_z"
    plotted = [r for r in rows if getattr(r, attr) is not None]
    names = [r.name for r in plotted]
    values = np.array([getattr(r, attr) for r in plotted], dtype=float)

    if metric == "percentile":
        lims, center, label = (0.0, 100.0), 50.0, "Percentile Rank"
    else:
        lims, center, label = (-3.0, 3.0), 0.0, "z-Score (Mean = 0, SD = 1)"

    fig, ax = plt.subplots(figsize=(display.width, figure_height(len(plotted), display)))

    # Top row first
    y = np.arange(len(plotted))[::-1]

    if metric == "percentile":
        # Shade alternate performance bands
        for i, (lo, hi) in enumerate(zip((0,) + BAND_EDGES, BAND_EDGES + (100,))):
            if i % 2 == 0:
                ax.axvspan(lo, hi, color="0.93", zorder=0)

    ax.hlines(y, center, values, color=display.line_color, linewidth=0.5, zorder=1)
    cmap = plt.get_cmap(display.colormap)
    ax.scatter(
        values,
        y,
        s=display.point_size,
        c=cmap(Normalize(*lims)(values)),
        edgecolors=display.line_color,
        zorder=2,
    )

    ax.set_xlim(*lims)
    ax.set_yticks(y)
    ax.set_yticklabels(names, fontsize=display.font_size)
    ax.set_xlabel(label, fontsize=display.font_size)
    ax.tick_params(axis="x", labelsize=display.font_size)
    ax.axvline(center, color="0.5", linewidth=0.5, linestyle="--", zorder=0)
    if title:
        ax.set_title(title, fontsize=display.font_size + 2, fontweight="bold")

    # Save the figure and always close it to avoid leaking matplotlib state
    output_file = Path(f"{save_file_path}.{display.image_format}")
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_file, format=display.image_format, dpi=display.dpi, bbox_inches="tight")
    except Exception as e:
        plt.close(fig)
        raise VisualizationError(f"Failed to save dot plot to {output_file}: {e}") from e
    else:
        plt.close(fig)

    return output_file


class Visualization:
    """
    Adapter around the plotting helpers.

    Use:
        Construct with a `Config` and call `save_dotplot` for each series
        that needs a static figure.
    """

    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg

    def save_dotplot(
        self,
        rows: Sequence[SummaryRow],
        out_base: Path,
        metric: str = "percentile",
        title: Optional[str] = None,
    ) -> Path:
        """
        Save a dot plot of `rows`.

        Args:
            rows (Sequence[SummaryRow]): Rows to plot.
            out_base (Path): Base output path (without suffix).
            metric (str): "percentile" or "z".
            title (str | None): Optional figure title.

        Returns:
            Path: Saved figure path.
        """
        return visualize_dotplot(
            rows=rows,
            display=self.cfg.display,
            save_file_path=str(out_base),
            metric=metric,
            title=title,
        )
