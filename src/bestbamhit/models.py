from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class AlignmentRecord:
    """One SAM text line decoded from a BAM.

    Attributes
    ----------
    qname:
        Read name; never empty.
    flag, pos, mapq, pnext:
        Integer SAM columns.
    rname, cigar, rnext, seq, qual:
        String SAM columns, kept verbatim.
    tags:
        Integer tags this package interprets (``AS``, ``HI``, ``nM``, ``NM``).
    match_length:
        Sum of the ``M``/``=``/``X`` run lengths in ``cigar``.
    fields:
        The raw tab-separated fields, optional fields included.
    """

    qname: str
    flag: int
    rname: str
    pos: int
    mapq: int
    cigar: str
    rnext: str
    pnext: int
    seq: str
    qual: str
    tags: Dict[str, int] = field(default_factory=dict)
    match_length: int = 0
    fields: Tuple[str, ...] = ()

    @property
    def alignment_score(self) -> int:
        return self.tags.get("AS", 0)

    @property
    def hit_index(self) -> int:
        return self.tags.get("HI", 0)

    @property
    def edit_distance(self) -> int:
        # STAR reports mismatches per pair as nM; other aligners only NM.
        if "nM" in self.tags:
            return self.tags["nM"]
        return self.tags.get("NM", 0)


@dataclass(frozen=True)
class Hit:
    """An alignment of a read from one input source."""

    source: int
    record: AlignmentRecord


@dataclass
class HitGroup:
    """All hits, across every source, for a single read name."""

    qname: str
    hits: List[Hit] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.hits)

    def __iter__(self):
        return iter(self.hits)
