import os
import stat
import sys

import pytest

from bestbamhit.errors import FormatError, StructuralError
from bestbamhit.external import ExternalCommandError, LineSource, SamtoolsViewSource
from bestbamhit.scanner import StreamScanner

from samtext import lines_source, sam_line, source


def test_peek_does_not_consume():
    s = StreamScanner(source(["r1", "r2"]))
    assert s.peek().qname == "r1"
    assert s.peek().qname == "r1"
    s.advance()
    assert s.peek().qname == "r2"
    s.advance()
    assert s.peek() is None
    assert s.is_closed()


def test_closed_is_permanent():
    s = StreamScanner(source([]))
    assert not s.closed
    assert s.peek() is None
    assert s.closed
    s.advance()
    assert s.peek() is None
    assert s.closed


def test_out_of_order_fails_on_second_record():
    s = StreamScanner(source(["read2", "read1"]), label="genomeA")
    assert s.peek().qname == "read2"
    s.advance()
    with pytest.raises(StructuralError) as e:
        s.peek()
    assert e.value.line_number == 2
    assert e.value.source == "genomeA"
    assert "read1" in str(e.value)


def test_natural_order_is_accepted():
    s = StreamScanner(source(["read2", "read10", "read10", "read11"]))
    names = []
    while s.peek() is not None:
        names.append(s.peek().qname)
        s.advance()
    assert names == ["read2", "read10", "read10", "read11"]


def test_empty_line_is_structural_error():
    s = StreamScanner(lines_source([sam_line("r1"), ""]))
    s.peek()
    s.advance()
    with pytest.raises(StructuralError):
        s.peek()


def test_parse_error_carries_line_number():
    s = StreamScanner(lines_source([sam_line("r1"), "r2\tzero\tchr1\t1\t1\t1M\t*\t0\t0\tA\tI"]), label="b")
    s.peek()
    s.advance()
    with pytest.raises(FormatError) as e:
        s.peek()
    assert e.value.line_number == 2
    assert e.value.source == "b"


def test_find_fast_forwards():
    s = StreamScanner(source(["r1", "r2", "r3", "r5"]))
    assert s.find("r3").qname == "r3"
    assert s.peek().qname == "r5"
    assert s.find("r4") is None
    # the record past the target stays buffered
    assert s.peek().qname == "r5"
    assert s.find("r9") is None
    assert s.closed


class _FailingSource(LineSource):
    name = "broken.bam"

    def _open(self):
        return iter([sam_line("r1")])

    def wait(self):
        raise ExternalCommandError("decoder failed", cmd=["samtools", "view"], returncode=1)


def test_decoder_failure_surfaces_at_end_of_stream():
    s = StreamScanner(_FailingSource())
    assert s.peek().qname == "r1"
    s.advance()
    with pytest.raises(ExternalCommandError):
        s.peek()


class _TrackingSource(LineSource):
    def __init__(self):
        super().__init__()
        self.terminated = False

    def _open(self):
        return iter([sam_line("r1"), sam_line("r2")])

    def terminate(self):
        self.terminated = True


def test_close_terminates_unfinished_source():
    src = _TrackingSource()
    with StreamScanner(src) as s:
        s.peek()
    assert src.terminated
    assert s.closed


# -----------------
# samtools view subprocess
# -----------------

needs_sh = pytest.mark.skipif(sys.platform == "win32", reason="fake samtools is a shell script")


def _fake_samtools(tmp_path, body: str) -> str:
    """Write an executable stand-in for samtools; it is called as ``<exe> view <path>``."""
    exe = tmp_path / "fake-samtools"
    exe.write_text("#!/bin/sh\n" + body + "\n")
    os.chmod(exe, exe.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(exe)


def _sam_file(tmp_path, names) -> str:
    p = tmp_path / "input.sam"
    p.write_text("".join(sam_line(n) + "\n" for n in names))
    return str(p)


@needs_sh
def test_samtools_failure_reported_after_last_line(tmp_path):
    exe = _fake_samtools(tmp_path, 'cat "$2"\necho boom >&2\nexit 3')
    src = SamtoolsViewSource(_sam_file(tmp_path, ["r1", "r2"]), samtools=exe)
    s = StreamScanner(src, label="genomeA")

    names = []
    with pytest.raises(ExternalCommandError) as e:
        while s.peek() is not None:
            names.append(s.peek().qname)
            s.advance()

    assert names == ["r1", "r2"]
    assert e.value.returncode == 3
    assert "boom" in str(e.value)
    assert "boom" in e.value.stderr
    assert s.closed


@needs_sh
def test_samtools_success_reads_every_line(tmp_path):
    exe = _fake_samtools(tmp_path, 'cat "$2"')
    s = StreamScanner(SamtoolsViewSource(_sam_file(tmp_path, ["read2", "read10"]), samtools=exe))
    assert s.find("read10").qname == "read10"
    assert s.peek() is None
    assert s.closed


@needs_sh
def test_close_reaps_endless_decoder(tmp_path):
    exe = _fake_samtools(tmp_path, 'line=$(cat "$2")\nwhile :; do printf \'%s\\n\' "$line"; done')
    src = SamtoolsViewSource(_sam_file(tmp_path, ["r1"]), samtools=exe)
    s = StreamScanner(src)
    assert s.peek().qname == "r1"
    assert src._proc is not None
    assert src._proc.poll() is None

    s.close()

    assert src._proc.poll() is not None
    assert s.closed


def test_missing_samtools_executable(tmp_path):
    src = SamtoolsViewSource(
        _sam_file(tmp_path, ["r1"]),
        samtools=str(tmp_path / "no-such-samtools"),
    )
    s = StreamScanner(src)
    with pytest.raises(ExternalCommandError) as e:
        s.peek()
    assert "no-such-samtools" in str(e.value)
    assert "--decoder pysam" in str(e.value)
    assert e.value.returncode == -1
