from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Tuple

import pysam

from .natural import natural_sort_key
from .records import match_length
from .utils import ensure_outdir, write_json

READ_LEN = 100

# read name -> per-genome alignments as (contig, pos0, cigar, edit distance)
_PLAN: Dict[str, Dict[str, List[Tuple[str, int, str, int]]]] = {
    "read1": {"genomeA": [("chrA", 10, "100M", 0)], "genomeB": [("chrB", 10, "100M", 2)]},
    "read2": {"genomeA": [("chrA", 40, "100M", 3)], "genomeB": [("chrB", 40, "100M", 0)]},
    "read3": {"genomeA": [("chrA", 70, "100M", 1)], "genomeB": [("chrB", 70, "100M", 1)]},
    "read4": {"genomeA": [("chrA", 100, "100M", 0)]},
    "read5": {"genomeB": [("ERCC-00002", 5, "100M", 0)]},
    "read6": {"genomeA": [("chrA", 130, "100M", 7)]},
    "read7": {"genomeB": [("chrB", 160, "50S50M", 0)]},
    "read8": {"genomeA": [("chrA", 190, "100M", 0), ("chrA", 600, "100M", 0)]},
    "read9": {"genomeB": [("chrB", 220, "100M", 0)]},
    "read10": {"genomeA": [("chrA", 250, "100M", 0)], "genomeB": [("chrB", 250, "100M", 0)]},
}

_CONTIGS = {
    "genomeA": [("chrA", 1000)],
    "genomeB": [("chrB", 1000), ("ERCC-00002", 500)],
}


def _make_read(
    name: str,
    ref_id: int,
    start0: int,
    cigar: str,
    edit_distance: int,
    hit_index: int,
    n_hits: int,
    rng: random.Random,
) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = "".join(rng.choice("ACGT") for _ in range(READ_LEN))
    a.flag = 0 if hit_index == 1 else 256
    a.reference_id = ref_id
    a.reference_start = start0
    a.mapping_quality = 255 if n_hits == 1 else 3
    a.cigarstring = cigar
    a.query_qualities = pysam.qualitystring_to_array("I" * READ_LEN)
    matched = match_length(cigar)
    a.set_tags(
        [
            ("NH", n_hits, "i"),
            ("HI", hit_index, "i"),
            ("AS", matched - 2 * edit_distance, "i"),
            ("nM", edit_distance, "i"),
        ]
    )
    return a


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create two tiny name-sorted BAMs (``genomeA.bam``, ``genomeB.bam``).

    Ten reads cover every outcome with default thresholds: clear winners on
    either genome, cross-genome ties (``read3``, ``read10``), a spike-in
    (``read5``), a too-diverged read (``read6``), a too-short read
    (``read7``) and a read with two equally good hits on one genome
    (``read8``).

    Returns
    -------
    dict
        Paths to the generated files and the matching ``--labels`` value.
    """
    outdir_p = ensure_outdir(outdir)
    rng = random.Random(7)
    names = sorted(_PLAN, key=natural_sort_key)

    paths: Dict[str, str] = {}
    for genome, contigs in _CONTIGS.items():
        ref_ids = {name: i for i, (name, _) in enumerate(contigs)}
        header = {
            "HD": {"VN": "1.6", "SO": "queryname"},
            "SQ": [{"SN": name, "LN": length} for name, length in contigs],
        }
        bam_path = outdir_p / f"{genome}.bam"
        with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
            for read_name in names:
                hits = _PLAN[read_name].get(genome, [])
                for k, (contig, start0, cigar, ed) in enumerate(hits, start=1):
                    bam.write(
                        _make_read(read_name, ref_ids[contig], start0, cigar, ed, k, len(hits), rng)
                    )
        paths[genome] = str(bam_path)

    summary = {
        "genomeA_bam": paths["genomeA"],
        "genomeB_bam": paths["genomeB"],
        "labels": ",".join(_CONTIGS),
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
