"""External decoders that turn BAM files into SAM text lines.

Design goals
------------
- The merge core only ever sees ``str`` lines; where they come from is hidden
  behind a small line-source interface (``start`` / ``readline`` / ``wait`` /
  ``terminate``).
- Fail fast with actionable error messages, including the decoder's stderr.
- Stream: decoders run concurrently with the main loop and are read line by
  line, so memory stays bounded regardless of BAM size.
"""

from __future__ import annotations

import io
import logging
import shlex
import subprocess
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import IO, Iterable, Iterator, Optional, Sequence

import pysam

logger = logging.getLogger(__name__)


class ExternalCommandError(RuntimeError):
    """Raised when an external command fails."""

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str],
        returncode: int,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = int(returncode)
        self.stdout = stdout
        self.stderr = stderr


def cmd_to_str(cmd: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(x)) for x in cmd)


def ensure_executable_in_path(exe: str, *, hint: Optional[str] = None) -> None:
    """Raise ``FileNotFoundError`` unless ``exe`` resolves to an executable.

    ``exe`` may be a bare name looked up on PATH or a path to the binary;
    ``hint`` is appended to the error message.
    """
    from shutil import which

    if which(exe) is None:
        msg = f"Decoder executable '{exe}' was not found (not on PATH or not executable)."
        if hint:
            msg += "\n\n" + hint
        raise FileNotFoundError(msg)


def run_command(
    cmd: Sequence[str],
    *,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run a short command, capturing stdout+stderr.

    If ``check`` is True, raise ``ExternalCommandError`` on non-zero exit.
    """
    logger.debug("Running command: %s", cmd_to_str(cmd))

    cp = subprocess.run(
        list(map(str, cmd)),
        check=False,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )

    if check and cp.returncode != 0:
        raise ExternalCommandError(
            _failure_message(cmd, cp.returncode, cp.stderr),
            cmd=cmd,
            returncode=cp.returncode,
            stdout=cp.stdout,
            stderr=cp.stderr,
        )

    return cp


def _tail(s: Optional[str], n: int = 3000) -> str:
    if not s:
        return "(empty)"
    s = str(s)
    if len(s) <= n:
        return s
    return "..." + s[-n:]


def _failure_message(cmd: Sequence[str], returncode: int, stderr: Optional[str]) -> str:
    return textwrap.dedent(
        f"""
        External command failed (exit code {returncode}).

        Command:
          {cmd_to_str(cmd)}

        STDERR (tail):
          {_tail(stderr)}
        """
    ).strip()


class LineSource:
    """A lazily started producer of SAM text lines.

    Subclasses implement :meth:`_open` (start producing) and may override
    :meth:`wait` / :meth:`terminate` when backed by a process.
    """

    name: str = "<lines>"

    def __init__(self) -> None:
        self._lines: Optional[Iterator[str]] = None

    def _open(self) -> Iterator[str]:
        raise NotImplementedError

    def start(self) -> None:
        if self._lines is None:
            self._lines = self._open()

    def readline(self) -> Optional[str]:
        """Return the next line (without trailing newline) or ``None`` at end."""
        self.start()
        assert self._lines is not None
        try:
            line = next(self._lines)
        except StopIteration:
            return None
        return line.rstrip("\r\n")

    def wait(self) -> None:
        """Block until the producer has finished; raise if it failed."""

    def terminate(self) -> None:
        """Stop the producer early (cancellation)."""


class IterableLineSource(LineSource):
    """Lines from an in-memory iterable or an open text stream."""

    def __init__(self, lines: Iterable[str], *, name: str = "<lines>") -> None:
        super().__init__()
        self._iterable = lines
        self.name = name

    def _open(self) -> Iterator[str]:
        return iter(self._iterable)


class SamtoolsViewSource(LineSource):
    """``samtools view <bam>`` run as a subprocess and read line by line.

    stderr goes to a temporary file rather than a pipe so that a chatty
    decoder cannot block on a full pipe while we only drain stdout.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        samtools: str = "samtools",
        threads: int = 1,
    ) -> None:
        super().__init__()
        self.path = str(path)
        self.name = self.path
        self.cmd = [samtools, "view"]
        if threads > 1:
            self.cmd += ["-@", str(int(threads) - 1)]
        self.cmd.append(self.path)
        self._proc: Optional[subprocess.Popen] = None
        self._stderr: Optional[IO[bytes]] = None

    def _open(self) -> Iterator[str]:
        try:
            ensure_executable_in_path(
                self.cmd[0],
                hint="Install samtools, pass --samtools /path/to/samtools, or run with --decoder pysam.",
            )
        except FileNotFoundError as e:
            raise ExternalCommandError(str(e), cmd=self.cmd, returncode=-1) from e
        logger.debug("Starting decoder: %s", cmd_to_str(self.cmd))
        self._stderr = tempfile.TemporaryFile()
        try:
            self._proc = subprocess.Popen(
                self.cmd,
                stdout=subprocess.PIPE,
                stderr=self._stderr,
            )
        except OSError as e:
            raise ExternalCommandError(
                f"Failed to start decoder for {self.path}: {e}",
                cmd=self.cmd,
                returncode=-1,
            ) from e
        assert self._proc.stdout is not None
        return iter(io.TextIOWrapper(self._proc.stdout, encoding="utf-8", errors="replace"))

    def _stderr_text(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        return self._stderr.read().decode("utf-8", errors="replace")

    def wait(self) -> None:
        if self._proc is None:
            return
        rc = self._proc.wait()
        stderr = self._stderr_text()
        self._close_files()
        if rc != 0:
            raise ExternalCommandError(
                _failure_message(self.cmd, rc, stderr),
                cmd=self.cmd,
                returncode=rc,
                stderr=stderr,
            )

    def terminate(self) -> None:
        if self._proc is None:
            return
        if self._proc.poll() is None:
            logger.debug("Terminating decoder: %s", cmd_to_str(self.cmd))
            self._proc.terminate()
        self._proc.wait()
        self._close_files()

    def _close_files(self) -> None:
        if self._proc is not None and self._proc.stdout is not None:
            self._proc.stdout.close()
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None


class PysamLineSource(LineSource):
    """Decode a BAM in-process with pysam, yielding SAM text lines.

    Uses the same htslib as samtools, so no external executable is needed.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = str(path)
        self.name = self.path
        self._bam: Optional[pysam.AlignmentFile] = None

    def _open(self) -> Iterator[str]:
        self._bam = pysam.AlignmentFile(self.path, "rb", check_sq=False)
        return (read.to_string() for read in self._bam.fetch(until_eof=True))

    def wait(self) -> None:
        self.terminate()

    def terminate(self) -> None:
        if self._bam is not None:
            self._bam.close()
            self._bam = None


def open_line_source(
    path: str | Path,
    *,
    decoder: str = "samtools",
    samtools: str = "samtools",
    threads: int = 1,
) -> LineSource:
    """Build the line source for one input; ``-`` reads SAM text from stdin."""
    if str(path) == "-":
        return IterableLineSource(sys.stdin, name="<stdin>")
    if decoder == "samtools":
        return SamtoolsViewSource(path, samtools=samtools, threads=threads)
    if decoder == "pysam":
        return PysamLineSource(path)
    raise ValueError(f"Unknown decoder: {decoder}")


def read_bam_header(path: str | Path) -> str:
    """Return the SAM header text of a BAM."""
    with pysam.AlignmentFile(str(path), "rb", check_sq=False) as bam:
        return str(bam.header)
