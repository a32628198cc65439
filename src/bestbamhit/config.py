from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from .classify import DEFAULT_SPECIAL_MARKER
from .errors import ConfigurationError

DEFAULT_MIN_LEN = 60
DEFAULT_MIN_SCORE = 0
DEFAULT_MAX_DIST = 5
DEFAULT_PENALTY = 2.0

VARIANTS = ("computed", "tag")
DECODERS = ("samtools", "pysam")


@dataclass
class SelectionConfig:
    """Parameters of one best-hit run.

    ``min_metric`` is a minimum match length for the ``computed`` variant and
    a minimum ``AS`` score for the ``tag`` variant; left unset it defaults to
    60 and 0 respectively. ``limit`` caps the number of reads visited
    (accepted or not); 0 means no limit.
    """

    inputs: List[str]
    labels: List[str]
    variant: str = "computed"
    min_metric: Optional[float] = None
    max_edit_distance: int = DEFAULT_MAX_DIST
    limit: int = 0
    penalty: float = DEFAULT_PENALTY
    keep_path: Optional[str] = None
    log_path: Optional[str] = None
    seed: Optional[int] = None
    special_marker: str = DEFAULT_SPECIAL_MARKER
    decoder: str = "samtools"
    samtools: str = "samtools"
    threads: int = 1

    def validate(self) -> "SelectionConfig":
        if not self.inputs:
            raise ConfigurationError("must specify at least one BAM file")
        if not self.labels or any(not lab for lab in self.labels):
            raise ConfigurationError("must specify --labels lab1,lab2 (one non-empty label per BAM)")
        if len(self.labels) != len(self.inputs):
            raise ConfigurationError(
                f"got {len(self.labels)} labels for {len(self.inputs)} BAM files"
            )
        if self.variant not in VARIANTS:
            raise ConfigurationError(f"unknown scoring variant: {self.variant}")
        if self.min_metric is None:
            self.min_metric = DEFAULT_MIN_SCORE if self.variant == "tag" else DEFAULT_MIN_LEN
        if self.decoder not in DECODERS:
            raise ConfigurationError(f"unknown decoder: {self.decoder}")
        if self.max_edit_distance < 0:
            raise ConfigurationError("--max-dist must be >= 0")
        if self.limit < 0:
            raise ConfigurationError("--limit must be >= 0")
        if self.threads < 1:
            raise ConfigurationError("--threads must be >= 1")
        if self.inputs.count("-") > 1:
            raise ConfigurationError("stdin ('-') can back at most one input")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_labels(labels: Optional[str]) -> List[str]:
    if not labels:
        return []
    return [x.strip() for x in labels.split(",")]
