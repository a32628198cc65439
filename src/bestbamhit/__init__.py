"""bestbamhit: best-hit selection of reads across BAMs aligned to different references.

Most users should use the CLI:

    bestbamhit select --labels human,mouse human.bam mouse.bam --keep keep.tsv.gz

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
