from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TextIO

import numpy as np

from .selection import ScoringPolicy, Selection, TagScorePolicy

logger = logging.getLogger(__name__)

SPECIAL = "special"
TOO_DIVERGED = "too_diverged"
TOO_LOW = "too_low"
ACCEPTED = "accepted"

DEFAULT_SPECIAL_MARKER = "ERCC"


@dataclass
class Accumulators:
    """Run-wide counters; all monotonic and non-negative."""

    n_sources: int
    total_mappings: int = 0
    too_low: int = 0
    too_diverged: int = 0
    reads: int = 0
    special: int = 0
    multi: int = 0
    accepted: int = 0
    match_length_sum: int = 0
    counts: List[int] = field(default_factory=list)
    # Accepted reads per edit distance (index = distance).
    edit_distance_hist: np.ndarray = field(default_factory=lambda: np.zeros(1, dtype=np.int64))

    def __post_init__(self) -> None:
        if not self.counts:
            self.counts = [0] * self.n_sources

    @property
    def avg_match_length(self) -> float:
        if self.accepted == 0:
            return 0.0
        return self.match_length_sum / self.accepted

    def stats(self) -> List[int]:
        """Counters in the positional order of the ``stats`` summary line."""
        return [
            self.total_mappings,
            self.too_low,
            self.too_diverged,
            self.reads,
            self.special,
            self.multi,
        ] + list(self.counts)


class ClassificationAccumulator:
    """Apply acceptance thresholds to each winning hit and keep the tallies.

    Parameters
    ----------
    policy:
        Scoring policy; decides which metric ``min_metric`` applies to.
    labels:
        One label per source, written to the keep-list for accepted reads.
    min_metric:
        Minimum alignment score (tag variant) or match length (computed).
    max_edit_distance:
        Reads with a larger edit distance are rejected; equal is accepted.
    special_marker:
        Winning hits whose reference name contains this substring are counted
        as spike-ins and skip the threshold checks.
    keep:
        Optional text stream receiving ``qname<TAB>label`` per accepted read.
    """

    def __init__(
        self,
        *,
        policy: ScoringPolicy,
        labels: Sequence[str],
        min_metric: float,
        max_edit_distance: int,
        special_marker: str = DEFAULT_SPECIAL_MARKER,
        keep: Optional[TextIO] = None,
    ) -> None:
        self.policy = policy
        self.labels = list(labels)
        self.min_metric = min_metric
        self.max_edit_distance = int(max_edit_distance)
        self.special_marker = special_marker
        self.keep = keep
        self.acc = Accumulators(n_sources=len(self.labels))
        self.acc.edit_distance_hist = np.zeros(max(self.max_edit_distance, 0) + 1, dtype=np.int64)

    def classify(self, selection: Selection) -> str:
        """Classify the winner of one selection without touching any counter."""
        record = selection.winner.record
        if self.special_marker and self.special_marker in record.rname:
            return SPECIAL
        if record.edit_distance > self.max_edit_distance:
            return TOO_DIVERGED
        if self.policy.acceptance_metric(record) < self.min_metric:
            return TOO_LOW
        return ACCEPTED

    def record(self, selection: Selection, *, group_size: int) -> str:
        """Account for one processed read and return its class."""
        acc = self.acc
        acc.total_mappings += group_size
        if selection.multi_source_tie:
            acc.multi += 1

        cls = self.classify(selection)
        if cls == SPECIAL:
            acc.special += 1
        elif cls == TOO_DIVERGED:
            acc.too_diverged += 1
        elif cls == TOO_LOW:
            acc.too_low += 1
        else:
            winner = selection.winner
            acc.counts[winner.source] += 1
            acc.accepted += 1
            if isinstance(self.policy, TagScorePolicy):
                acc.match_length_sum += winner.record.match_length
            ed = min(max(winner.record.edit_distance, 0), len(acc.edit_distance_hist) - 1)
            acc.edit_distance_hist[ed] += 1
            if self.keep is not None:
                self.keep.write(f"{winner.record.qname}\t{self.labels[winner.source]}\n")

        acc.reads += 1
        return cls
