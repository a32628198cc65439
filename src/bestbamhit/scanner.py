from __future__ import annotations

import logging
from typing import Optional

from .errors import StructuralError
from .external import LineSource
from .models import AlignmentRecord
from .natural import strnum_cmp
from .records import parse_record

logger = logging.getLogger(__name__)


class StreamScanner:
    """Peekable cursor over one name-sorted stream of SAM text lines.

    At most one parsed record is buffered. :meth:`peek` fills the buffer,
    :meth:`advance` empties it. Once the source is exhausted the scanner is
    closed for good and the source is awaited, so a failed decoder surfaces
    as an error at end of stream.
    """

    def __init__(self, source: LineSource, *, label: Optional[str] = None) -> None:
        self.source = source
        self.label = label if label is not None else source.name
        self.line_number = 0
        self._prev: Optional[str] = None
        self._record: Optional[AlignmentRecord] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def is_closed(self) -> bool:
        return self._closed

    def peek(self) -> Optional[AlignmentRecord]:
        """Return the buffered record, reading one line if needed; ``None`` at end."""
        if self._record is not None:
            return self._record
        if self._closed:
            return None

        line = self.source.readline()
        if line is None:
            self._closed = True
            logger.debug("%s: end of stream after %d lines", self.label, self.line_number)
            self.source.wait()
            return None

        self.line_number += 1
        record = parse_record(line, source=self.label, line_number=self.line_number)
        if self._prev is not None and strnum_cmp(self._prev, record.qname) > 0:
            raise StructuralError(
                f"sorting order violated: {record.qname!r} after {self._prev!r}",
                source=self.label,
                line_number=self.line_number,
                value=record.qname,
            )
        self._prev = record.qname
        self._record = record
        return record

    def advance(self) -> None:
        self._record = None

    def find(self, qname: str) -> Optional[AlignmentRecord]:
        """Fast-forward to the record named ``qname`` and consume it.

        Returns ``None`` if the stream ends or moves past ``qname`` first; in
        the latter case the record past it stays buffered.
        """
        while True:
            record = self.peek()
            if record is None:
                return None
            if record.qname == qname:
                self.advance()
                return record
            if strnum_cmp(record.qname, qname) < 0:
                self.advance()
            else:
                return None

    def close(self) -> None:
        """Stop reading; terminates the source if it has not been exhausted."""
        if not self._closed:
            self.source.terminate()
            self._closed = True
        self._record = None

    def __enter__(self) -> "StreamScanner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
