from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt

logger = logging.getLogger(__name__)


def plot_source_counts(
    *,
    per_source: Dict[str, int],
    rejected: Dict[str, int],
    out_png: str | Path,
    title: str = "Best-hit assignments",
) -> None:
    """Bar chart of accepted reads per source next to the rejection classes."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = list(per_source) + list(rejected)
    values = [int(v) for v in per_source.values()] + [int(v) for v in rejected.values()]
    colors = ["tab:blue"] * len(per_source) + ["tab:gray"] * len(rejected)

    plt.figure()
    plt.bar(labels, values, color=colors)
    plt.ylabel("Read count")
    plt.title(title)
    plt.xticks(rotation=15, ha="right")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_edit_distance_hist(
    *,
    counts: List[int],
    out_png: str | Path,
    title: str = "Edit distance of accepted reads",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    plt.figure()
    plt.bar(range(len(counts)), [int(c) for c in counts])
    plt.xlabel("Edit distance")
    plt.ylabel("Read count")
    plt.title(title)
    plt.xticks(range(len(counts)), [str(x) for x in range(len(counts))])
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
