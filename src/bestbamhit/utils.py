from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import Any, TextIO


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_text_output(path: str | Path) -> TextIO:
    """Open ``path`` for writing UTF-8 text, gzip-compressed if it ends in ``.gz``.

    Missing parent directories are created.
    """
    p = Path(path)
    ensure_outdir(p.parent)
    if p.suffix == ".gz":
        return gzip.open(p, "wt", encoding="utf-8")  # type: ignore[return-value]
    return open(p, "wt", encoding="utf-8")


def write_json(path: str | Path, obj: Any) -> Path:
    p = Path(path)
    ensure_outdir(p.parent)
    with open(p, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)
        f.write("\n")
    return p
