from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, List

from jinja2 import Template

from .runner import RunResult

logger = logging.getLogger(__name__)


def summary_lines(result: RunResult) -> List[str]:
    """Human-readable summary followed by the positional ``stats`` line."""
    acc = result.acc
    lines = [
        f"total\t{acc.total_mappings}",
        f"{result.below_minimum_label}\t{acc.too_low}",
        f"too diverged\t{acc.too_diverged}",
        f"reads\t{acc.reads}",
        f"ercc\t{acc.special}",
        f"multi\t{acc.multi}",
    ]
    if result.policy_name == "tag":
        lines.append(f"avg match len\t{acc.avg_match_length:.2f}")
    for label, count in zip(result.config.labels, acc.counts):
        lines.append(f"{label}\t{count}")
    lines.append("\t".join(["stats"] + [str(x) for x in acc.stats()]))
    return lines


def summary_dict(result: RunResult) -> Dict[str, Any]:
    acc = result.acc
    cfg = result.config
    return {
        "inputs": list(cfg.inputs),
        "labels": list(cfg.labels),
        "variant": result.policy_name,
        "min_metric": cfg.min_metric,
        "max_edit_distance": cfg.max_edit_distance,
        "penalty": cfg.penalty,
        "limit": cfg.limit,
        "seed": cfg.seed,
        "special_marker": cfg.special_marker,
        "keep_path": cfg.keep_path,
        "counts": {
            "total_mappings": acc.total_mappings,
            "too_low": acc.too_low,
            "too_diverged": acc.too_diverged,
            "reads": acc.reads,
            "special": acc.special,
            "multi": acc.multi,
            "accepted": acc.accepted,
        },
        "per_source": {label: int(c) for label, c in zip(cfg.labels, acc.counts)},
        "avg_match_length": float(acc.avg_match_length) if result.policy_name == "tag" else None,
        "edit_distance_hist": [int(x) for x in acc.edit_distance_hist],
        "stats": acc.stats(),
        "runtime_seconds": result.runtime_seconds,
    }


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>bestbamhit report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>bestbamhit report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>Label</th><th>BAM</th></tr>
      {% for label, path in inputs %}
      <tr><td>{{ label }}</td><td><code>{{ path }}</code></td></tr>
      {% endfor %}
    </table>
  </div>
  <div class="card">
    <h3>Selection</h3>
    <table>
      <tr><th>Scoring</th><td>{{ s.variant }}</td></tr>
      <tr><th>{{ "Min score" if s.variant == "tag" else "Min match length" }}</th><td>{{ s.min_metric }}</td></tr>
      <tr><th>Max edit distance</th><td>{{ s.max_edit_distance }}</td></tr>
      {% if s.variant == "computed" %}
      <tr><th>Edit penalty</th><td>{{ s.penalty }}</td></tr>
      {% endif %}
      <tr><th>Spike-in marker</th><td><code>{{ s.special_marker }}</code></td></tr>
    </table>
  </div>
</div>

<h2>Reads</h2>
<table>
  <tr><th>Mappings seen</th><td>{{ s.counts.total_mappings }}</td></tr>
  <tr><th>Reads processed</th><td>{{ s.counts.reads }}</td></tr>
  <tr><th>Accepted</th><td>{{ s.counts.accepted }}</td></tr>
  <tr><th>Rejected: too diverged</th><td>{{ s.counts.too_diverged }}</td></tr>
  <tr><th>Rejected: {{ "score too low" if s.variant == "tag" else "too short" }}</th><td>{{ s.counts.too_low }}</td></tr>
  <tr><th>Spike-in</th><td>{{ s.counts.special }}</td></tr>
  <tr><th>Multi-source ties</th><td>{{ s.counts.multi }}</td></tr>
  {% if s.avg_match_length is not none %}
  <tr><th>Average accepted match length</th><td>{{ "%.2f"|format(s.avg_match_length) }}</td></tr>
  {% endif %}
</table>

<div class="grid">
  <div class="card">
    <h3>Accepted reads per source</h3>
    <img src="{{ plots.source_counts }}" alt="accepted reads per source">
  </div>
  <div class="card">
    <h3>Edit distance of accepted reads</h3>
    <img src="{{ plots.edit_distance_hist }}" alt="edit distance histogram">
  </div>
</div>

<h2>Outputs</h2>
<ul>
  {% if s.keep_path %}
  <li><code>{{ s.keep_path }}</code> (accepted reads and their source)</li>
  {% endif %}
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<hr>
<p class="small">bestbamhit {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    summary: Dict[str, Any],
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        inputs=list(zip(summary["labels"], summary["inputs"])),
        s=summary,
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    return out_path
