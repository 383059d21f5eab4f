"""
HTML report of an analysis run.

Collects section text, tables and saved figures into one document so a run
leaves a single readable record next to the figures and prediction tables.
"""

import html
import os
from datetime import datetime
from pathlib import Path

import pandas as pd

try:
    from .config import OUTPUT_DIR, ensure_output_dir
except ImportError:
    from config import OUTPUT_DIR, ensure_output_dir


_STYLE = """
body { font-family: Helvetica, Arial, sans-serif; max-width: 1100px; margin: 2em auto; color: #222; }
h1 { border-bottom: 2px solid #444; }
h2 { margin-top: 2em; border-bottom: 1px solid #aaa; }
table { border-collapse: collapse; margin: 1em 0; font-size: 0.9em; }
th, td { border: 1px solid #ccc; padding: 4px 8px; text-align: right; }
th { background: #f0f0f0; }
img { max-width: 100%; margin: 1em 0; }
pre { background: #f7f7f7; padding: 0.8em; }
"""


def _render_item(item, base_dir):
    if isinstance(item, pd.DataFrame):
        return item.to_html(index=False, float_format=lambda v: f"{v:.3f}", border=0)
    if isinstance(item, (str, Path)) and Path(item).suffix.lower() in ('.png', '.jpg', '.jpeg', '.svg'):
        src = os.path.relpath(Path(item), base_dir)
        return f'<img src="{html.escape(src)}" alt="{html.escape(Path(item).stem)}">'
    return f"<p>{html.escape(str(item))}</p>"


def write_html_report(sections, path=None, title="Soil C and N response to fire frequency and logging"):
    """
    Write an HTML document.

    Parameters
    ----------
    sections : list of (heading, items)
        items is a list of strings (paragraphs), DataFrames (tables) or
        figure paths (images, linked relative to the report)
    path : str, optional
        Defaults to OUTPUT_DIR/analysis_report.html
    title : str

    Returns
    -------
    Path
    """
    if path is None:
        ensure_output_dir()
        path = Path(OUTPUT_DIR) / "analysis_report.html"
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    parts = [
        "<!DOCTYPE html>",
        "<html><head><meta charset='utf-8'>",
        f"<title>{html.escape(title)}</title>",
        f"<style>{_STYLE}</style></head><body>",
        f"<h1>{html.escape(title)}</h1>",
        f"<p><em>Generated {datetime.now():%Y-%m-%d %H:%M}</em></p>",
    ]
    for heading, items in sections:
        parts.append(f"<h2>{html.escape(heading)}</h2>")
        parts.extend(_render_item(item, path.parent) for item in items)
    parts.append("</body></html>")

    path.write_text("\n".join(parts), encoding='utf-8')
    print(f"Report saved to: {path}")
    return path
