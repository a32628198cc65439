"""Parsing of SAM text lines into :class:`AlignmentRecord`."""

from __future__ import annotations

import re
from typing import Dict, Optional

from .errors import FormatError, StructuralError
from .models import AlignmentRecord

MIN_FIELDS = 11

# Integer tags interpreted downstream; all other optional fields are kept raw.
INT_TAGS = ("AS", "HI", "nM", "NM")

_CIGAR_TOKEN = re.compile(r"([0-9]+)([MIDNSHP=X])")
_CIGAR_FULL = re.compile(r"(?:[0-9]+[MIDNSHP=X])+")
_TAG = re.compile(r"([A-Za-z][A-Za-z0-9]):([AifZHB]):(.*)")

_MATCH_OPS = frozenset("M=X")


def match_length(cigar: str) -> int:
    """Sum the lengths of alignment-match operations (M, =, X) in a CIGAR string.

    ``*`` (no alignment) has a match length of 0.
    """
    if cigar == "*":
        return 0
    if not _CIGAR_FULL.fullmatch(cigar):
        raise FormatError("malformed CIGAR", value=cigar)
    total = 0
    for length, op in _CIGAR_TOKEN.findall(cigar):
        if op in _MATCH_OPS:
            total += int(length)
    return total


def _to_int(value: str, name: str, source: Optional[str], line_number: Optional[int]) -> int:
    try:
        return int(value)
    except ValueError:
        raise FormatError(
            f"failed to parse {name} as integer", source=source, line_number=line_number, value=value
        ) from None


def parse_tags(fields, *, source: Optional[str] = None, line_number: Optional[int] = None) -> Dict[str, int]:
    tags: Dict[str, int] = {}
    for raw in fields:
        m = _TAG.fullmatch(raw)
        if m is None:
            raise FormatError("malformed tag", source=source, line_number=line_number, value=raw)
        key, typ, value = m.groups()
        if key not in INT_TAGS:
            continue
        if typ != "i":
            raise FormatError(
                f"tag {key} must be an integer tag", source=source, line_number=line_number, value=raw
            )
        tags[key] = _to_int(value, f"tag {key}", source, line_number)
    return tags


def parse_record(
    line: str,
    *,
    source: Optional[str] = None,
    line_number: Optional[int] = None,
) -> AlignmentRecord:
    """Parse one SAM text line.

    Raises
    ------
    StructuralError
        If the line is empty or has no read name.
    FormatError
        If a column is missing, a numeric column or an interpreted tag is not
        an integer, or the CIGAR string is malformed.
    """
    line = line.strip()
    if not line:
        raise StructuralError("empty alignment record", source=source, line_number=line_number)

    fields = line.split("\t")
    if len(fields) < MIN_FIELDS:
        raise FormatError(
            f"too few fields ({len(fields)} < {MIN_FIELDS})",
            source=source,
            line_number=line_number,
            value=line,
        )
    if not fields[0]:
        raise StructuralError("record without a read name", source=source, line_number=line_number)

    try:
        mlen = match_length(fields[5])
    except FormatError as e:
        raise FormatError("malformed CIGAR", source=source, line_number=line_number, value=e.value) from None

    return AlignmentRecord(
        qname=fields[0],
        flag=_to_int(fields[1], "FLAG", source, line_number),
        rname=fields[2],
        pos=_to_int(fields[3], "POS", source, line_number),
        mapq=_to_int(fields[4], "MAPQ", source, line_number),
        cigar=fields[5],
        rnext=fields[6],
        pnext=_to_int(fields[7], "PNEXT", source, line_number),
        seq=fields[9],
        qual=fields[10],
        tags=parse_tags(fields[MIN_FIELDS:], source=source, line_number=line_number),
        match_length=mlen,
        fields=tuple(fields),
    )
