from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Sequence

from .errors import InvariantError
from .models import Hit, HitGroup
from .natural import strnum_cmp
from .scanner import StreamScanner

logger = logging.getLogger(__name__)

IDLE = "idle"
MERGING = "merging"
TERMINAL = "terminal"


class MergeCoordinator:
    """Lock-step k-way merge of name-sorted scanners into per-read hit groups.

    Groups come out in natural read-name order; each holds every record for
    that name from every source, in source order.
    """

    def __init__(self, scanners: Sequence[StreamScanner]) -> None:
        self.scanners: List[StreamScanner] = list(scanners)
        self.state = IDLE

    def _min_qname(self) -> Optional[str]:
        qname: Optional[str] = None
        any_open = False
        for s in self.scanners:
            record = s.peek()
            if record is None:
                continue
            any_open = True
            if qname is None or strnum_cmp(record.qname, qname) < 0:
                qname = record.qname
        if not any_open:
            return None
        if not qname:
            raise InvariantError("failed to find a read name while streams remain open")
        return qname

    def next_group(self) -> Optional[HitGroup]:
        """Return the next hit group, or ``None`` once every stream is exhausted."""
        if self.state == TERMINAL:
            return None
        self.state = MERGING

        qname = self._min_qname()
        if qname is None:
            self.state = TERMINAL
            return None

        group = HitGroup(qname=qname)
        for i, s in enumerate(self.scanners):
            while True:
                record = s.peek()
                if record is None or record.qname != qname:
                    break
                group.hits.append(Hit(source=i, record=record))
                s.advance()

        if not group.hits:
            raise InvariantError(f"no hits collected for {qname}")
        return group

    def __iter__(self) -> Iterator[HitGroup]:
        while True:
            group = self.next_group()
            if group is None:
                return
            yield group
