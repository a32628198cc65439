import gzip
import io
from pathlib import Path

import pytest

from bestbamhit.config import SelectionConfig
from bestbamhit.errors import ConfigurationError, StructuralError
from bestbamhit.external import IterableLineSource, LineSource
from bestbamhit.report import summary_dict, summary_lines
from bestbamhit.runner import run_best_hit
from bestbamhit.selection import SequenceRandomSource
from bestbamhit.toy_data import make_toy_data

from samtext import sam_line


def _config(**kwargs):
    base = dict(inputs=["a.bam", "b.bam"], labels=["human", "mouse"])
    base.update(kwargs)
    return SelectionConfig(**base)


def test_two_stream_tie_end_to_end():
    keep = io.StringIO()
    sources = [
        IterableLineSource([sam_line("r1", rname="chr1", AS=20, nM=1)]),
        IterableLineSource([sam_line("r1", rname="chr7", AS=20, nM=1)]),
    ]
    result = run_best_hit(
        _config(variant="tag", min_metric=10, max_edit_distance=5),
        sources=sources,
        keep=keep,
        progress=False,
    )
    acc = result.acc
    assert acc.reads == 1
    assert acc.accepted == 1
    assert acc.multi == 1
    assert acc.total_mappings == 2
    lines = keep.getvalue().splitlines()
    assert len(lines) == 1
    name, label = lines[0].split("\t")
    assert name == "r1"
    assert label in ("human", "mouse")


def test_limit_counts_reads_visited():
    sources = [
        IterableLineSource([sam_line(f"r{i}", AS=0) for i in range(1, 6)]),
        IterableLineSource([sam_line(f"r{i}", AS=50) for i in range(1, 6)]),
    ]
    result = run_best_hit(
        _config(variant="tag", min_metric=10, limit=3), sources=sources, progress=False
    )
    assert result.acc.reads == 3
    assert result.acc.counts == [0, 3]


class _Tracking(IterableLineSource):
    terminated = False

    def terminate(self):
        self.terminated = True


def test_unfinished_sources_are_terminated_after_limit():
    a = _Tracking([sam_line(f"r{i}") for i in range(1, 10)])
    b = _Tracking([sam_line("r1")])
    run_best_hit(_config(limit=2), sources=[a, b], progress=False)
    assert a.terminated
    # b was exhausted before the limit hit, so there is nothing to stop
    assert not b.terminated


def test_out_of_order_input_aborts():
    sources = [
        IterableLineSource([sam_line("read2"), sam_line("read1")]),
        IterableLineSource([]),
    ]
    with pytest.raises(StructuralError):
        run_best_hit(_config(), sources=sources, progress=False)


def test_configuration_errors():
    with pytest.raises(ConfigurationError):
        run_best_hit(_config(labels=[]), sources=[], progress=False)
    with pytest.raises(ConfigurationError):
        run_best_hit(_config(inputs=[], labels=[]), sources=[], progress=False)
    with pytest.raises(ConfigurationError):
        run_best_hit(_config(labels=["only-one"]), sources=[], progress=False)


def test_summary_lines_computed_variant():
    sources = [
        IterableLineSource([sam_line("r1", cigar="80M", nM=0), sam_line("r2", cigar="30M")]),
        IterableLineSource([sam_line("r1", cigar="80M", nM=2), sam_line("r3", rname="ERCC-00002")]),
    ]
    result = run_best_hit(_config(), sources=sources, rng=SequenceRandomSource([0]), progress=False)
    lines = summary_lines(result)
    assert lines == [
        "total\t4",
        "too short\t1",
        "too diverged\t0",
        "reads\t3",
        "ercc\t1",
        "multi\t0",
        "human\t1",
        "mouse\t0",
        "stats\t4\t1\t0\t3\t1\t0\t1\t0",
    ]


def test_summary_lines_tag_variant_reports_average_length():
    sources = [
        IterableLineSource([sam_line("r1", cigar="80M", AS=70), sam_line("r2", cigar="40M", AS=35)]),
        IterableLineSource([]),
    ]
    result = run_best_hit(_config(variant="tag", min_metric=30), sources=sources, progress=False)
    lines = summary_lines(result)
    assert "too low\t0" in lines
    assert "avg match len\t60.00" in lines
    assert summary_dict(result)["avg_match_length"] == pytest.approx(60.0)


def test_keep_path_gzip(tmp_path: Path):
    keep_path = tmp_path / "keep.tsv.gz"
    sources = [IterableLineSource([sam_line("r1", AS=90)]), IterableLineSource([sam_line("r2", AS=90)])]
    run_best_hit(
        _config(variant="tag", min_metric=10, keep_path=str(keep_path)), sources=sources, progress=False
    )
    with gzip.open(keep_path, "rt") as fh:
        assert fh.read() == "r1\thuman\nr2\tmouse\n"


def test_toy_data_with_pysam_decoder(tmp_path: Path):
    toy = make_toy_data(outdir=tmp_path / "toy")
    keep = io.StringIO()
    config = SelectionConfig(
        inputs=[toy["genomeA_bam"], toy["genomeB_bam"]],
        labels=toy["labels"].split(","),
        decoder="pysam",
        seed=1,
    )
    result = run_best_hit(config, keep=keep, progress=False)
    acc = result.acc
    assert acc.reads == 10
    assert acc.total_mappings == 15
    assert acc.accepted == 7
    assert acc.special == 1
    assert acc.too_diverged == 1
    assert acc.too_low == 1
    assert acc.multi == 2
    assert sum(acc.counts) == 7
    kept = dict(line.split("\t") for line in keep.getvalue().splitlines())
    assert kept["read1"] == "genomeA"
    assert kept["read2"] == "genomeB"
    assert kept["read8"] == "genomeA"
    assert list(kept) == ["read1", "read2", "read3", "read4", "read8", "read9", "read10"]


def test_min_metric_defaults_follow_variant():
    assert _config().validate().min_metric == 60
    assert _config(variant="tag").validate().min_metric == 0
    assert _config(variant="tag", min_metric=25).validate().min_metric == 25


def test_tag_variant_default_accepts_low_scores():
    # AS 5 with a 20 base match passes the tag default of 0 but would be
    # too short under the computed default of 60.
    sources = [IterableLineSource([sam_line("r1", cigar="20M", AS=5)]), IterableLineSource([])]
    result = run_best_hit(_config(variant="tag"), sources=sources, progress=False)
    assert result.acc.accepted == 1
    assert result.acc.too_low == 0


def test_source_count_must_match_labels():
    sources = [IterableLineSource([sam_line("r1")]), IterableLineSource([sam_line("r1")])]
    config = _config(inputs=["a.bam", "b.bam", "c.bam"], labels=["human", "mouse", "rat"])
    with pytest.raises(ConfigurationError) as e:
        run_best_hit(config, sources=sources, progress=False)
    assert "2 sources for 3 labels" in str(e.value)


class _BrokenKeep(io.StringIO):
    def write(self, s):
        raise OSError(28, "No space left on device")


def test_keep_write_failure_aborts_and_stops_sources():
    a = _Tracking([sam_line(f"r{i}", AS=90) for i in range(1, 6)])
    b = _Tracking([sam_line(f"r{i}", AS=10) for i in range(1, 6)])
    with pytest.raises(OSError):
        run_best_hit(
            _config(variant="tag", min_metric=10), sources=[a, b], keep=_BrokenKeep(), progress=False
        )
    assert a.terminated
    assert b.terminated


def test_keep_path_parent_is_created(tmp_path: Path):
    keep_path = tmp_path / "out" / "nested" / "keep.tsv"
    sources = [IterableLineSource([sam_line("r1", AS=90)]), IterableLineSource([])]
    run_best_hit(
        _config(variant="tag", min_metric=10, keep_path=str(keep_path)), sources=sources, progress=False
    )
    assert keep_path.read_text(encoding="utf-8") == "r1\thuman\n"
