from pathlib import Path
from typing import Dict, Any
import html
import json

from yarawatch_core.models import ScanReport

def export_report(report: ScanReport, out_dir: str | Path, fmt: str = "json") -> Path:
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    data = report.to_dict()
    if fmt == "json":
        out = out_dir / "scan.json"
        out.write_text(json.dumps(data, indent=2), encoding="utf-8")
    elif fmt == "md":
        out = out_dir / "report.md"
        out.write_text(_to_markdown(data), encoding="utf-8")
    elif fmt == "html":
        out = out_dir / "report.html"
        out.write_text(_to_html(data), encoding="utf-8")
    else:
        raise ValueError(f"Unsupported format: {fmt}")
    return out

def _to_markdown(data: Dict[str, Any]) -> str:
    md = []
    md.append("# yarawatch scan report")
    md.append("")
    md.append(f"**Started:** {data['started_at']}  ")
    md.append(f"**Finished:** {data['finished_at']}  ")
    md.append(f"**Duration:** {data['duration_s']} s  ")
    md.append("")
    md.append(f"**Rules digest:** `{data['rules_digest'] or '-'}` ({data['signature_count']} rules)  ")
    md.append(f"**Signatures updated:** {data['signatures_updated_at'] or '-'}  ")
    md.append(f"**Examined:** {data['examined']}  ")
    md.append(f"**Clean:** {data['clean']}  ")
    md.append(f"**Skipped:** {data['skipped']}  ")
    md.append("")
    md.append("## Threats")
    if not data["infected"]:
        md.append("_No threats_")
    for e in data["infected"]:
        md.append(f"- `{e['path']}`: {e['signature']}")
    if data["errors"]:
        md.append("")
        md.append("## Errors")
        for e in data["errors"]:
            md.append(f"- `{e['path']}`: {e['cause']}")
    md.append("")
    return "\n".join(md)

def _to_html(data: Dict[str, Any]) -> str:
    return "<pre>" + html.escape(_to_markdown(data)) + "</pre>"
