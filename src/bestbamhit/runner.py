from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, TextIO

from tqdm import tqdm

from .classify import Accumulators, ClassificationAccumulator
from .config import SelectionConfig
from .errors import ConfigurationError
from .external import LineSource, open_line_source, read_bam_header
from .merge import MergeCoordinator
from .models import HitGroup
from .scanner import StreamScanner
from .selection import RandomSource, SelectionEngine, make_policy
from .utils import open_text_output

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100_000


@dataclass
class RunResult:
    config: SelectionConfig
    acc: Accumulators
    policy_name: str
    below_minimum_label: str
    runtime_seconds: float


def _warn_if_not_name_sorted(path: str, label: str) -> None:
    header = read_bam_header(path)
    for line in header.splitlines():
        if line.startswith("@HD"):
            if "SO:queryname" not in line:
                logger.warning("%s (%s) does not declare SO:queryname; it must be name-sorted", label, path)
            return
    logger.warning("%s (%s) has no @HD line; it must be name-sorted", label, path)


def open_scanners(config: SelectionConfig) -> List[StreamScanner]:
    scanners = []
    for path, label in zip(config.inputs, config.labels):
        if path != "-":
            _warn_if_not_name_sorted(path, label)
        source = open_line_source(
            path, decoder=config.decoder, samtools=config.samtools, threads=config.threads
        )
        scanners.append(StreamScanner(source, label=label))
    return scanners


def _groups(merge: MergeCoordinator, limit: int, counter: ClassificationAccumulator) -> Iterable[HitGroup]:
    for group in merge:
        yield group
        acc = counter.acc
        if acc.reads > 0 and acc.reads % PROGRESS_EVERY == 0:
            logger.info("found %d reads so far", acc.reads)
        if limit > 0 and acc.reads >= limit:
            logger.info("limit of %d reads reached", limit)
            return


def process(
    scanners: Sequence[StreamScanner],
    *,
    engine: SelectionEngine,
    counter: ClassificationAccumulator,
    limit: int = 0,
    progress: bool = False,
) -> Accumulators:
    """Merge the scanners and feed every read through selection and classification.

    Stops early after ``limit`` reads when ``limit`` > 0.
    """
    merge = MergeCoordinator(scanners)
    it: Iterable[HitGroup] = _groups(merge, limit, counter)
    if progress:
        it = tqdm(it, unit="read", desc="Selecting best hits", total=limit or None)
    for group in it:
        selection = engine.select(group)
        counter.record(selection, group_size=len(group))
    return counter.acc


def run_best_hit(
    config: SelectionConfig,
    *,
    sources: Optional[Sequence[LineSource]] = None,
    rng: Optional[RandomSource] = None,
    keep: Optional[TextIO] = None,
    progress: bool = True,
) -> RunResult:
    """Main workhorse: open inputs, pick the best hit per read, return the tallies.

    ``sources`` overrides the decoders built from ``config.inputs`` and
    ``keep`` overrides ``config.keep_path``; both are mainly for embedding and
    tests. Decoders still running when processing stops are terminated.
    """
    config.validate()
    t0 = time.time()

    policy = make_policy(config.variant, penalty=config.penalty)
    engine = SelectionEngine(policy, rng if rng is not None else RandomSource(config.seed))

    if sources is not None:
        if len(sources) != len(config.labels):
            raise ConfigurationError(
                f"got {len(sources)} sources for {len(config.labels)} labels"
            )
        scanners = [StreamScanner(s, label=lab) for s, lab in zip(sources, config.labels)]
    else:
        scanners = open_scanners(config)

    keep_fh: Optional[TextIO] = keep
    own_keep = False
    try:
        if keep_fh is None and config.keep_path:
            keep_fh = open_text_output(config.keep_path)
            own_keep = True
        counter = ClassificationAccumulator(
            policy=policy,
            labels=config.labels,
            min_metric=config.min_metric,
            max_edit_distance=config.max_edit_distance,
            special_marker=config.special_marker,
            keep=keep_fh,
        )
        acc = process(scanners, engine=engine, counter=counter, limit=config.limit, progress=progress)
    finally:
        for s in scanners:
            s.close()
        if own_keep and keep_fh is not None:
            keep_fh.close()

    dt = time.time() - t0
    logger.info("processing took %.2fs", dt)

    return RunResult(
        config=config,
        acc=acc,
        policy_name=policy.name,
        below_minimum_label=policy.below_minimum_label,
        runtime_seconds=float(dt),
    )
