"""Builders for SAM text lines used across the tests."""

from typing import Iterable, List

from bestbamhit.external import IterableLineSource


def sam_line(
    qname: str,
    *,
    rname: str = "chr1",
    pos: int = 1,
    cigar: str = "76M",
    AS: int = 0,
    nM: int = 0,
    HI: int = 1,
    flag: int = 0,
    extra: Iterable[str] = (),
) -> str:
    fields = [
        qname,
        str(flag),
        rname,
        str(pos),
        "255",
        cigar,
        "*",
        "0",
        "0",
        "A" * 10,
        "I" * 10,
        "NH:i:1",
        f"HI:i:{HI}",
        f"AS:i:{AS}",
        f"nM:i:{nM}",
    ]
    fields.extend(extra)
    return "\t".join(fields)


def source(names: Iterable[str], name: str = "test") -> IterableLineSource:
    return IterableLineSource([sam_line(n) for n in names], name=name)


def lines_source(lines: List[str], name: str = "test") -> IterableLineSource:
    return IterableLineSource(lines, name=name)
