"""Environment self-checks.

This module powers the ``bestbamhit doctor`` CLI command.

The default decoder shells out to ``samtools view`` once per input BAM; the
``pysam`` decoder needs no external executable. A single command that says
which of the two is usable saves a failed run on a large dataset.
"""

from __future__ import annotations

import logging
import platform
import shutil
from dataclasses import dataclass
from typing import Dict, Optional

import pysam

from .external import run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str
    howto: Optional[str] = None


def check_python() -> CheckResult:
    v = platform.python_version()
    return CheckResult(name="python", ok=True, detail=f"Python {v}")


def check_pysam() -> CheckResult:
    return CheckResult(name="pysam", ok=True, detail=f"pysam {pysam.__version__}")


def check_samtools(exe: str = "samtools") -> CheckResult:
    howto = (
        "Ubuntu: sudo apt-get install -y samtools\n"
        "Conda/mamba: mamba install -c bioconda samtools\n"
        "Or run with --decoder pysam"
    )
    p = shutil.which(exe)
    if p is None:
        return CheckResult(name="samtools", ok=False, detail="not found in PATH", howto=howto)
    try:
        cp = run_command([exe, "--version"], check=True)
    except Exception as e:
        return CheckResult(name="samtools", ok=False, detail=f"present but not usable: {e}", howto=howto)
    first = cp.stdout.splitlines()[0] if cp.stdout else p
    return CheckResult(name="samtools", ok=True, detail=f"{first} ({p})")


def collect_checks(samtools: str = "samtools") -> Dict[str, CheckResult]:
    """Run all checks and return a mapping name->result."""
    checks: Dict[str, CheckResult] = {}

    checks["python"] = check_python()
    checks["pysam"] = check_pysam()
    checks["samtools"] = check_samtools(samtools)

    return checks
