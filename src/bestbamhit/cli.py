from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import (
    DECODERS,
    DEFAULT_MAX_DIST,
    DEFAULT_MIN_LEN,
    DEFAULT_MIN_SCORE,
    DEFAULT_PENALTY,
    SelectionConfig,
    parse_labels,
)
from .doctor import collect_checks
from .external import ExternalCommandError
from .plotting import plot_edit_distance_hist, plot_source_counts
from .report import render_report, summary_dict, summary_lines
from .runner import run_best_hit
from .toy_data import make_toy_data
from .utils import ensure_outdir, write_json


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        # The run log always records parameters, progress and the summary.
        file_level = min(level, logging.INFO)
        fh = logging.FileHandler(logfile)
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(log_fmt))
        root = logging.getLogger()
        root.addHandler(fh)
        root.setLevel(file_level)
        for h in root.handlers:
            if h is not fh:
                h.setLevel(level)


def _path_exists(p: str) -> str:
    if p != "-" and not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    if isinstance(err, ExternalCommandError):
        msg = str(err)
    else:
        msg = f"{err.__class__.__name__}: {err}"

    if log_path is not None:
        # Goes to the run log and, through the console handler, to stderr.
        logging.getLogger("bestbamhit").error(msg)
        sys.stderr.write(f"See log: {log_path}\n")
    else:
        sys.stderr.write(msg + "\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bestbamhit",
        description=(
            "bestbamhit: pick the best alignment per read across name-sorted BAMs aligned "
            "to different references, and count which reference each read belongs to."
        ),
    )
    p.add_argument("--version", action="version", version=f"bestbamhit {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # select
    # -----------------
    s = sub.add_parser(
        "select",
        help="Merge name-sorted BAMs and pick the best hit for every read.",
    )
    s.add_argument(
        "bams",
        nargs="+",
        type=_path_exists,
        help="Name-sorted BAMs (samtools sort -n), one per reference. '-' reads SAM text from stdin.",
    )
    s.add_argument(
        "--labels",
        required=True,
        help="Comma-separated labels for the BAMs, in the same order (required).",
    )
    s.add_argument(
        "--score",
        choices=["computed", "tag"],
        default="computed",
        help="Scoring: 'computed' = match length - edit distance * penalty; 'tag' = AS tag.",
    )
    s.add_argument(
        "--min-len",
        type=int,
        default=DEFAULT_MIN_LEN,
        help="Minimum match length for an accepted alignment (computed scoring).",
    )
    s.add_argument(
        "--min-score",
        type=int,
        default=DEFAULT_MIN_SCORE,
        help="Minimum AS score for an accepted alignment (tag scoring).",
    )
    s.add_argument(
        "--max-dist",
        type=int,
        default=DEFAULT_MAX_DIST,
        help="Maximum edit distance for an accepted alignment.",
    )
    s.add_argument(
        "--edit-penalty",
        type=float,
        default=DEFAULT_PENALTY,
        help="Multiple for how to penalize edit distance (computed scoring).",
    )
    s.add_argument(
        "--limit",
        type=int,
        default=0,
        help="Limit the number of reads considered (0 = no limit).",
    )
    s.add_argument("--keep", default=None, help="Write 'read<TAB>label' for accepted reads (.gz ok).")
    s.add_argument("--log", default=None, help="Write parameters and stats to a log file.")
    s.add_argument("--seed", type=int, default=None, help="Seed for random tie-breaking.")
    s.add_argument(
        "--special-marker",
        default="ERCC",
        help="Reference-name substring marking spike-in controls (counted separately).",
    )
    s.add_argument(
        "--decoder",
        choices=list(DECODERS),
        default="samtools",
        help="How BAMs are decoded: 'samtools view' subprocesses or in-process pysam.",
    )
    s.add_argument("--samtools", default="samtools", help="samtools executable.")
    s.add_argument("--threads", type=int, default=1, help="Decompression threads per samtools decoder.")
    s.add_argument(
        "--outdir",
        default=None,
        help="Optional directory for summary.json, plots and report.html.",
    )
    s.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    s.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate two tiny name-sorted BAMs for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    # -----------------
    # doctor
    # -----------------
    d = sub.add_parser(
        "doctor",
        help="Check your environment for the BAM decoders (samtools / pysam).",
    )
    d.add_argument("--samtools", default="samtools", help="samtools executable to check.")
    d.add_argument("--dry-run", action="store_true", help="Print checks without exiting nonzero.")
    d.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


# -----------------
# Command handlers
# -----------------

def _config_from_args(args: argparse.Namespace) -> SelectionConfig:
    return SelectionConfig(
        inputs=list(args.bams),
        labels=parse_labels(args.labels),
        variant=args.score,
        min_metric=args.min_score if args.score == "tag" else args.min_len,
        max_edit_distance=int(args.max_dist),
        limit=int(args.limit),
        penalty=float(args.edit_penalty),
        keep_path=args.keep,
        log_path=args.log,
        seed=args.seed,
        special_marker=str(args.special_marker),
        decoder=str(args.decoder),
        samtools=str(args.samtools),
        threads=int(args.threads),
    )


def _write_outdir(outdir: Path, summary: dict) -> Path:
    outdir = ensure_outdir(outdir)
    write_json(outdir / "summary.json", summary)

    plots_dir = outdir / "plots"
    source_png = plots_dir / "source_counts.png"
    edit_png = plots_dir / "edit_distance_hist.png"

    counts = summary["counts"]
    plot_source_counts(
        per_source=summary["per_source"],
        rejected={
            "too diverged": counts["too_diverged"],
            "too low" if summary["variant"] == "tag" else "too short": counts["too_low"],
            "spike-in": counts["special"],
        },
        out_png=source_png,
    )
    plot_edit_distance_hist(counts=summary["edit_distance_hist"], out_png=edit_png)

    return render_report(
        outdir=outdir,
        version=__version__,
        summary=summary,
        plots={
            "source_counts": str(Path("plots") / source_png.name),
            "edit_distance_hist": str(Path("plots") / edit_png.name),
        },
    )


def cmd_select(args: argparse.Namespace) -> int:
    log_path = Path(args.log).expanduser().resolve() if args.log else None
    _setup_logging(args.verbose, logfile=log_path)

    logger = logging.getLogger("bestbamhit")
    logger.info("bestbamhit %s", __version__)

    try:
        config = _config_from_args(args).validate()
        logger.info("command: %s", " ".join(sys.argv))
        logger.info("%s", json.dumps(config.to_dict(), indent=4))

        result = run_best_hit(config, progress=not args.no_progress)

        lines = summary_lines(result)
        for line in lines:
            logger.info("%s", line)
        print("\n".join(lines))

        if args.outdir:
            report_path = _write_outdir(Path(args.outdir).expanduser().resolve(), summary_dict(result))
            logger.info("Report written: %s", report_path)
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose, logfile=None)

    checks = collect_checks(samtools=args.samtools)

    lines = []
    for name in ["python", "pysam", "samtools"]:
        r = checks[name]
        status = "OK" if r.ok else "MISSING"
        lines.append(f"{name:9s} : {status:7s}  {r.detail}")

    print("\n".join(lines))

    r = checks["samtools"]
    if not r.ok and r.howto:
        print("\n---")
        print("How to install/fix 'samtools':")
        print(r.howto)

    if args.dry_run:
        return 0
    return 0 if all(r.ok for r in checks.values()) else 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "select":
        return cmd_select(args)
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)
    if args.cmd == "doctor":
        return cmd_doctor(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
