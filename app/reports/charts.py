"""
Chart generation module for SEO audit reports.

Score bars are drawn with matplotlib and converted to ReportLab Image
flowables for embedding in PDF reports.
"""

from __future__ import annotations

import io
from typing import Sequence

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
from reportlab.lib.units import inch
from reportlab.platypus import Image

from app.utils.logger import get_logger

from .document import ScoreBar

# Use non-interactive backend for server environments
matplotlib.use("Agg")

logger = get_logger(__name__)

DEFAULT_WIDTH = 5.5 * inch
DEFAULT_HEIGHT = 2.8 * inch

# Output quality -> raster resolution
QUALITY_DPI = {"Draft": 72, "Standard": 150, "High": 300}


def score_color(score: int) -> str:
    """Traffic-light color for a 0-100 score."""
    if score >= 80:
        return "#22c55e"
    if score >= 50:
        return "#eab308"
    return "#ef4444"


def fig_to_image(
    fig,
    width: float = DEFAULT_WIDTH,
    height: float = DEFAULT_HEIGHT,
    dpi: int = QUALITY_DPI["Standard"],
) -> Image:
    """
    Convert matplotlib figure to ReportLab Image flowable.

    Args:
        fig: Matplotlib figure object
        width: Image width in ReportLab units
        height: Image height in ReportLab units
        dpi: Raster resolution

    Returns:
        ReportLab Image object ready for PDF embedding
    """
    try:
        img_buffer = io.BytesIO()
        fig.savefig(
            img_buffer,
            format="png",
            dpi=dpi,
            bbox_inches="tight",
            facecolor="white",
            edgecolor="none",
            pad_inches=0.1,
        )
        img_buffer.seek(0)
        plt.close(fig)
        return Image(img_buffer, width=width, height=height)

    except Exception as e:
        logger.error("Failed to convert figure to image", error=str(e))
        plt.close(fig)
        raise


def create_score_bar_chart(
    bars: Sequence[ScoreBar],
    title: str,
    primary_color: str,
    grayscale: bool = False,
    dpi: int = QUALITY_DPI["Standard"],
) -> Image:
    """
    Create a horizontal bar chart of 0-100 scores.

    Args:
        bars: Labelled scores, drawn top to bottom
        title: Chart title
        primary_color: Hex color used for the title and, in grayscale mode,
            for every bar
        grayscale: Draw bars in a single (already gray) color
        dpi: Raster resolution

    Returns:
        ReportLab Image object
    """
    labels = [bar.label for bar in bars]
    values = np.array([bar.score for bar in bars], dtype=float)
    positions = np.arange(len(labels))

    height_in = max(1.6, 0.45 * len(labels) + 0.8)
    fig, ax = plt.subplots(figsize=(7, height_in))

    if grayscale:
        bar_colors = [primary_color] * len(labels)
    else:
        bar_colors = [score_color(bar.score) for bar in bars]

    ax.barh(positions, values, color=bar_colors, height=0.6)
    ax.barh(positions, 100 - values, left=values, color="#e5e7eb", height=0.6)

    ax.set_yticks(positions)
    ax.set_yticklabels(labels)
    ax.invert_yaxis()
    ax.set_xlim(0, 100)
    ax.set_xticks([0, 25, 50, 75, 100])
    ax.set_title(title, fontsize=12, fontweight="bold", color=primary_color, pad=10)

    for position, value in zip(positions, values):
        ax.text(
            min(value + 1.5, 92),
            position,
            f"{value:.0f}",
            va="center",
            fontsize=9,
            fontweight="bold",
        )

    for spine in ("top", "right"):
        ax.spines[spine].set_visible(False)

    plt.tight_layout()
    return fig_to_image(
        fig,
        width=DEFAULT_WIDTH,
        height=DEFAULT_WIDTH * height_in / 7,
        dpi=dpi,
    )
