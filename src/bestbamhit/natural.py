"""Natural ("strnum") ordering of read names.

Matches the ordering samtools uses for name-sorted BAMs (``strnum_cmp`` in
``bam_sort.c``), so streams sorted by ``samtools sort -n`` merge correctly.
"""

from __future__ import annotations

import functools


def _isdigit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _sign(x: int) -> int:
    return (x > 0) - (x < 0)


def strnum_cmp(a: str, b: str) -> int:
    """Compare two read names; return -1, 0 or 1.

    Embedded digit runs compare as numbers. When two runs denote the same
    number but differ in leading zeros, the run with more leading zeros
    sorts first. Otherwise characters compare by codepoint, and a string
    that is a prefix of the other sorts first.
    """
    i = 0
    j = 0
    la = len(a)
    lb = len(b)
    while i < la and j < lb:
        if _isdigit(a[i]) and _isdigit(b[j]):
            while i < la and a[i] == "0":
                i += 1
            while j < lb and b[j] == "0":
                j += 1
            while i < la and j < lb and _isdigit(a[i]) and _isdigit(b[j]) and a[i] == b[j]:
                i += 1
                j += 1
            a_digit = i < la and _isdigit(a[i])
            b_digit = j < lb and _isdigit(b[j])
            if a_digit and b_digit:
                k = 0
                while i + k < la and _isdigit(a[i + k]) and j + k < lb and _isdigit(b[j + k]):
                    k += 1
                if i + k < la and _isdigit(a[i + k]):
                    return 1
                if j + k < lb and _isdigit(b[j + k]):
                    return -1
                return _sign(int(a[i : i + k]) - int(b[j : j + k]))
            if a_digit:
                return 1
            if b_digit:
                return -1
            if i != j:
                return 1 if i < j else -1
        else:
            if a[i] != b[j]:
                return _sign(ord(a[i]) - ord(b[j]))
            i += 1
            j += 1
    return _sign(la - lb)


natural_sort_key = functools.cmp_to_key(strnum_cmp)
