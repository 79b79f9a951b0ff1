"""
Chart generation for the /parses command.
"""
import io
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import seaborn as sns  # noqa: E402

from .config import logger  # noqa: E402
from .models import MetricRankings, Ranking  # noqa: E402

# Warcraft Logs parse colours
TIER_COLORS = [
    (100, "#e5cc80"),
    (99, "#e268a8"),
    (95, "#ff8000"),
    (75, "#a335ee"),
    (50, "#0070ff"),
    (25, "#1eff00"),
    (0, "#666666"),
]


def tier_color(percent: float) -> str:
    for threshold, color in TIER_COLORS:
        if percent >= threshold:
            return color
    return TIER_COLORS[-1][1]


def generate_parses_chart(title: str, rankings: MetricRankings) -> Optional[io.BytesIO]:
    """
    Generate a horizontal bar chart of percentiles per encounter, one panel per metric.

    Returns:
        BytesIO buffer containing the PNG image, or None when there is nothing to draw
    """
    metrics: List[str] = [m for m in sorted(rankings) if rankings[m]]
    if not metrics:
        return None

    try:
        sns.set_theme(style="whitegrid")
        height = max(3, 0.45 * max(len(rankings[m]) for m in metrics) + 1.5)
        fig, axes = plt.subplots(1, len(metrics), figsize=(7 * len(metrics), height), squeeze=False)

        for ax, metric in zip(axes[0], metrics):
            entries: List[Ranking] = rankings[metric]
            names = [r.encounter_name for r in entries]
            values = [r.rank_percent for r in entries]
            ax.barh(names, values, color=[tier_color(v) for v in values])
            ax.invert_yaxis()  # first encounter on top
            ax.set_xlim(0, 100)
            ax.set_title(metric.upper(), fontsize=14, fontweight="bold")
            ax.set_xlabel("Percentile", fontsize=12)
            for y, v in enumerate(values):
                ax.text(min(v + 1, 92), y, f"{v:.1f}", va="center", fontsize=11)

        fig.suptitle(title, fontsize=15, fontweight="bold")
        fig.tight_layout()

        buffer = io.BytesIO()
        fig.savefig(buffer, format="PNG", dpi=150, bbox_inches="tight")
        buffer.seek(0)
        plt.close(fig)

        logger.info(f"Generated parses chart '{title}' for {len(metrics)} metrics")
        return buffer

    except (ValueError, RuntimeError) as e:
        logger.error(f"Failed to generate parses chart: {e}")
        plt.close("all")
        return None
