"""Shared plotting defaults for null-model figures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import matplotlib.pyplot as plt


@dataclass(frozen=True)
class PlotStyle:
    dpi: int = 200
    fig_small: tuple[float, float] = (6.0, 4.0)
    fig_wide: tuple[float, float] = (10.0, 4.5)
    fs_title: int = 13
    fs_label: int = 12
    fs_tick: int = 10
    fs_legend: int = 9
    line_width: float = 1.8
    marker_size: float = 4.8
    alpha_fill: float = 0.18
    hist_bins: int = 30


DEFAULT_STYLE = PlotStyle()

LABEL_SURVIVAL = "Overall survival"
LABEL_MEAN_RATE = r"Mean survival rate $\bar{s}$"
LABEL_OPPORTUNITY = r"Opportunity for selection $I$"


def apply_style(style: PlotStyle = DEFAULT_STYLE) -> None:
    plt.rcParams.update(
        {
            "figure.dpi": style.dpi,
            "savefig.dpi": style.dpi,
            "font.size": style.fs_tick,
            "axes.titlesize": style.fs_title,
            "axes.labelsize": style.fs_label,
            "xtick.labelsize": style.fs_tick,
            "ytick.labelsize": style.fs_tick,
            "legend.fontsize": style.fs_legend,
            "lines.linewidth": style.line_width,
            "lines.markersize": style.marker_size,
            "axes.spines.top": False,
            "axes.spines.right": False,
        }
    )


def finalize_fig(
    fig: plt.Figure, outpath: str | Path, style: PlotStyle = DEFAULT_STYLE
) -> Path:
    out = Path(outpath)
    out.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out, dpi=style.dpi, bbox_inches="tight")
    plt.close(fig)
    return out
