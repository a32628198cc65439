"""Best-hit selection across the hits of one read."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import AlignmentRecord, Hit, HitGroup

logger = logging.getLogger(__name__)


class ScoringPolicy:
    """How a hit is scored and which metric the minimum threshold applies to."""

    name: str = ""
    # Report label for reads rejected by the minimum threshold.
    below_minimum_label: str = "too low"

    def score(self, record: AlignmentRecord) -> float:
        raise NotImplementedError

    def acceptance_metric(self, record: AlignmentRecord) -> float:
        raise NotImplementedError


class TagScorePolicy(ScoringPolicy):
    """Score is the aligner's ``AS`` tag; the minimum applies to it too."""

    name = "tag"
    below_minimum_label = "too low"

    def score(self, record: AlignmentRecord) -> float:
        return record.alignment_score

    def acceptance_metric(self, record: AlignmentRecord) -> float:
        return record.alignment_score


class ComputedScorePolicy(ScoringPolicy):
    """Score is ``match_length - edit_distance * penalty``; the minimum applies to match length."""

    name = "computed"
    below_minimum_label = "too short"

    def __init__(self, penalty: float = 2.0) -> None:
        self.penalty = float(penalty)

    def score(self, record: AlignmentRecord) -> float:
        return float(record.match_length) - float(record.edit_distance) * self.penalty

    def acceptance_metric(self, record: AlignmentRecord) -> float:
        return record.match_length


def make_policy(variant: str, *, penalty: float = 2.0) -> ScoringPolicy:
    if variant == "tag":
        return TagScorePolicy()
    if variant == "computed":
        return ComputedScorePolicy(penalty)
    raise ValueError(f"Unknown scoring variant: {variant}")


class RandomSource:
    """Uniform index picker used to break ties between equally good hits."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def pick(self, n: int) -> int:
        return self._rng.randrange(n)


class SequenceRandomSource(RandomSource):
    """Replays a fixed sequence of picks (modulo ``n``); for tests and debugging."""

    def __init__(self, picks: Sequence[int]) -> None:
        self._picks = list(picks)
        self._i = 0

    def pick(self, n: int) -> int:
        value = self._picks[self._i % len(self._picks)]
        self._i += 1
        return value % n


@dataclass(frozen=True)
class Selection:
    """Outcome of picking the best hit of one group."""

    winner: Hit
    score: float
    tied: int
    multi_source_tie: bool


class SelectionEngine:
    def __init__(self, policy: ScoringPolicy, rng: Optional[RandomSource] = None) -> None:
        self.policy = policy
        self.rng = rng if rng is not None else RandomSource()

    def select(self, group: HitGroup) -> Selection:
        """Pick the highest-scoring hit; ties are broken uniformly at random.

        A tie whose hits come from more than one source is flagged as a
        multi-source tie.
        """
        best_score = 0.0
        which_best: List[Hit] = []
        for hit in group.hits:
            score = self.policy.score(hit.record)
            if not which_best or score > best_score:
                best_score = score
                which_best = [hit]
            elif score == best_score:
                which_best.append(hit)

        if not which_best:
            raise ValueError(f"empty hit group for {group.qname}")

        multi = False
        if len(which_best) > 1:
            first_source = which_best[0].source
            multi = any(h.source != first_source for h in which_best)
            winner = which_best[self.rng.pick(len(which_best))]
        else:
            winner = which_best[0]

        return Selection(winner=winner, score=best_score, tied=len(which_best), multi_source_tie=multi)
