import gzip
import json
from pathlib import Path

from bestbamhit.utils import open_text_output, write_json


def test_open_text_output_gzip_by_suffix(tmp_path: Path):
    p = tmp_path / "keep.tsv.gz"
    with open_text_output(p) as fh:
        fh.write("read1\tgenomeA\n")
    with gzip.open(p, "rt", encoding="utf-8") as fh:
        assert fh.read() == "read1\tgenomeA\n"


def test_open_text_output_plain_creates_parents(tmp_path: Path):
    p = tmp_path / "a" / "b" / "keep.tsv"
    with open_text_output(p) as fh:
        fh.write("read1\tgenomeA\n")
    assert p.read_text(encoding="utf-8") == "read1\tgenomeA\n"


def test_write_json_sorted_with_trailing_newline(tmp_path: Path):
    p = write_json(tmp_path / "sub" / "summary.json", {"b": 1, "a": [1, 2]})
    text = p.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert text.index('"a"') < text.index('"b"')
    assert json.loads(text) == {"a": [1, 2], "b": 1}
