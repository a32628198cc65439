"""Error types raised by the merge / selection pipeline.

All of them are fatal for a run; the CLI reports them and exits non-zero.
"""

from __future__ import annotations

from typing import Optional


class BestHitError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(BestHitError):
    """Invalid run configuration (missing labels, no inputs, bad thresholds)."""


class _LocatedError(BestHitError):
    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        line_number: Optional[int] = None,
        value: Optional[str] = None,
    ) -> None:
        self.source = source
        self.line_number = line_number
        self.value = value
        parts = [message]
        if source is not None:
            parts.append(f"source={source}")
        if line_number is not None:
            parts.append(f"line={line_number}")
        if value is not None:
            parts.append(f"value={value!r}")
        super().__init__(" ".join(parts) if len(parts) == 1 else f"{parts[0]} ({', '.join(parts[1:])})")


class StructuralError(_LocatedError):
    """A stream is out of order or carries an empty / malformed record."""


class FormatError(_LocatedError):
    """A field of a record could not be parsed."""


class InvariantError(BestHitError):
    """The merge reached a state that well-formed streams cannot produce."""
