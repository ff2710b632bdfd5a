from __future__ import annotations

"""
Storm impact report generator
-----------------------------
This module turns a `StormSummary` into a DOCX report with three bar charts:

- fatalities by event type,
- injuries by event type,
- economic damage by event type, split into property and crop damage.

Design goals:
- Keep the engine usable without the report dependencies (lazy imports).
- Every chart comes with a short "why this chart" note and the table it was
  drawn from, so the numbers can be checked without the picture.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
import os
import tempfile

import structlog

from .engine import StormSummary
from .models import CategoryTotal, EconomicDamage

logger = structlog.get_logger(__name__)


# -----------------------------
# Configuration / citation types
# -----------------------------

@dataclass
class DatasetCitation:
    """Dataset citation metadata for the DOCX report."""
    database_name: str = "NOAA Storm Events Database"
    institutional_author: str = "U.S. National Oceanic and Atmospheric Administration (NOAA)"
    coverage: str = "1950 to November 2011"
    website: str = "https://www.ncei.noaa.gov/stormevents/"
    file_name: Optional[str] = None
    file_note: Optional[str] = "Compressed CSV export (StormData.csv.bz2)."


@dataclass
class ReportConfig:
    """High-level knobs to control how the report is written."""
    title: str = "Health and Economic Impact of Severe Weather Events"
    subtitle: str = "An analysis of the NOAA storm database"
    dataset_name: str = "NOAA storm-event export"
    citation: DatasetCitation = field(default_factory=DatasetCitation)
    dpi: int = 200
    # Optional: the command used to create the report
    command_line: Optional[str] = None


# -----------------------------
# Formatting helpers
# -----------------------------

def _fmt_int(v: float) -> str:
    return f"{int(round(v)):,}"


def _fmt_billions(v: float) -> str:
    return f"{v:,.2f}"


def _economic_totals(rows: Sequence[EconomicDamage]) -> List[Tuple[str, float, float]]:
    """Fold long-format rows back into (event_type, property, crop), in order."""
    order: List[str] = []
    prop = {}
    crop = {}
    for r in rows:
        if r.event_type not in prop and r.event_type not in crop:
            order.append(r.event_type)
        if r.damage_type == "Property":
            prop[r.event_type] = r.damage_billions
        else:
            crop[r.event_type] = r.damage_billions
    return [(k, prop.get(k, 0.0), crop.get(k, 0.0)) for k in order]


def describe_findings(summary: StormSummary) -> List[str]:
    """Plain-language sentences naming the leading categories."""
    out: List[str] = []
    if summary.fatalities:
        top = summary.fatalities[0]
        out.append(
            f"{top.event_type} is the event type with the most fatalities "
            f"({_fmt_int(top.value)})."
        )
    if summary.injuries:
        top = summary.injuries[0]
        out.append(
            f"{top.event_type} is the event type with the most injuries "
            f"({_fmt_int(top.value)})."
        )
    econ = _economic_totals(summary.economic)
    if econ:
        name, p, c = econ[0]
        out.append(
            f"{name} caused the greatest combined economic damage: "
            f"US$ {_fmt_billions(p)} billion to property and US$ {_fmt_billions(c)} billion to crops."
        )
        by_crop = max(econ, key=lambda t: t[2])
        if by_crop[0] != name and by_crop[2] > 0:
            out.append(
                f"Among those categories, {by_crop[0]} did the most crop damage "
                f"(US$ {_fmt_billions(by_crop[2])} billion)."
            )
    return out


# -----------------------------
# Main entry point used by CLI
# -----------------------------

def generate_docx_report(
    summary: StormSummary,
    out_path: str,
    *,
    config: Optional[ReportConfig] = None,
) -> str:
    """
    Generate a DOCX report + charts for a computed summary.

    Returns the path that was written.
    """
    config = config or ReportConfig()

    # Lazy imports: only required when a report is requested.
    try:
        from docx import Document
        from docx.shared import Pt, Inches
        from docx.enum.text import WD_ALIGN_PARAGRAPH
        from docx.oxml.ns import qn
    except ImportError as e:
        raise ImportError(
            "Missing dependency: python-docx.\n"
            "Install it with: python -m pip install python-docx"
        ) from e

    try:
        import matplotlib
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
        import numpy as np
    except ImportError as e:
        raise ImportError(
            "Missing dependency: matplotlib (and numpy).\n"
            "Install with: python -m pip install matplotlib numpy"
        ) from e

    if summary.retained_records == 0:
        raise ValueError("No events to report on (no record has any recorded impact).")

    # -----------------------------
    # 1) Charts
    # -----------------------------
    tmpdir = tempfile.mkdtemp(prefix="stormreport_")
    # Each chart is: (title, file_path, why_this_chart)
    chart_paths: List[Tuple[str, str, str]] = []

    def _save(filename: str) -> str:
        path = os.path.join(tmpdir, filename)
        plt.tight_layout()
        plt.savefig(path, dpi=config.dpi)
        plt.close()
        return path

    def _bar(title: str, rows: Sequence[CategoryTotal], ylabel: str, color: str, why: str, filename: str) -> None:
        plt.figure(figsize=(9, 5))
        plt.bar([r.event_type for r in rows], [r.value for r in rows], color=color)
        plt.xticks(rotation=45, ha="right")
        plt.title(title)
        plt.xlabel("Event type")
        plt.ylabel(ylabel)
        chart_paths.append((title, _save(filename), why))

    def _grouped_bar(title: str, rows: Sequence[EconomicDamage], why: str, filename: str) -> None:
        totals = _economic_totals(rows)
        labels = [t[0] for t in totals]
        x = np.arange(len(labels))
        width = 0.4
        plt.figure(figsize=(9, 5))
        plt.bar(x - width / 2, [t[1] for t in totals], width, label="Property", color="C0")
        plt.bar(x + width / 2, [t[2] for t in totals], width, label="Crop", color="C2")
        plt.xticks(x, labels, rotation=45, ha="right")
        plt.title(title)
        plt.xlabel("Event type")
        plt.ylabel("Damage (US$ billions)")
        plt.legend(title="Damage type")
        chart_paths.append((title, _save(filename), why))

    n = summary.top_n
    if summary.fatalities:
        _bar(
            f"Top {n} Event Types by Fatalities",
            summary.fatalities,
            "Fatalities",
            "C3",
            "Bar charts compare totals across categories; event types are ordered from most to least harmful.",
            "fatalities.png",
        )
    if summary.injuries:
        _bar(
            f"Top {n} Event Types by Injuries",
            summary.injuries,
            "Injuries",
            "C1",
            "Injuries are ranked separately from fatalities because the two lists differ below the first place.",
            "injuries.png",
        )
    if summary.economic:
        _grouped_bar(
            f"Top {n} Event Types by Economic Damage",
            summary.economic,
            "Categories are chosen by property plus crop damage; side-by-side bars keep the two kinds of damage apart.",
            "economic.png",
        )
    logger.debug("charts_rendered", count=len(chart_paths), tmpdir=tmpdir)

    # -----------------------------
    # 2) Build DOCX report
    # -----------------------------
    doc = Document()

    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style._element.rPr.rFonts.set(qn("w:eastAsia"), "Calibri")
    style.font.size = Pt(11)

    def _center_title(text: str, size: int, bold: bool = False, italic: bool = False) -> None:
        p = doc.add_paragraph()
        r = p.add_run(text)
        r.bold = bold
        r.italic = italic
        r.font.size = Pt(size)
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER

    def _kv(key: str, value: str) -> None:
        p = doc.add_paragraph()
        r = p.add_run(f"{key}: ")
        r.bold = True
        p.add_run(value)

    def _table(header: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        t = doc.add_table(rows=1, cols=len(header))
        for i, h in enumerate(header):
            t.rows[0].cells[i].text = h
        for row in rows:
            cells = t.add_row().cells
            for i, v in enumerate(row):
                cells[i].text = v

    _center_title(config.title, 20, bold=True)
    _center_title(config.subtitle, 12, italic=True)

    # Synopsis
    doc.add_heading("Synopsis", level=1)
    doc.add_paragraph(
        "Storms and other severe weather events cause both public health and economic problems. "
        "This report uses the NOAA storm database to answer two questions: which types of event "
        "are most harmful to population health, and which have the greatest economic consequences. "
        "Health impact is measured by fatalities and injuries; economic impact by property and crop damage."
    )
    for sentence in describe_findings(summary):
        doc.add_paragraph(sentence, style="List Bullet")

    # Data processing
    doc.add_heading("Data processing", level=1)
    _kv("Dataset", config.dataset_name)
    _kv("Records loaded", _fmt_int(summary.total_records))
    _kv("Records with any impact", _fmt_int(summary.retained_records))
    _kv("Distinct event types", _fmt_int(summary.event_types))
    doc.add_paragraph(
        "Only records with at least one fatality, injury, or non-zero property or crop damage are kept. "
        "Records whose event type is unknown are dropped. Event type labels are used exactly as recorded; "
        "near-duplicate spellings are not merged."
    )
    t = doc.add_table(rows=1, cols=2)
    t.rows[0].cells[0].text = "Column"
    t.rows[0].cells[1].text = "Meaning"
    for k, v in [
        ("EVTYPE", "Event type"),
        ("FATALITIES", "Deaths directly attributed to the event"),
        ("INJURIES", "Injuries directly attributed to the event"),
        ("PROPDMG / PROPDMGEXP", "Property damage amount and its scale code"),
        ("CROPDMG / CROPDMGEXP", "Crop damage amount and its scale code"),
    ]:
        row = t.add_row().cells
        row[0].text = k
        row[1].text = v

    doc.add_paragraph("")
    doc.add_paragraph(
        "Damage amounts are multiplied by the power of ten given by their scale code: "
        "H = hundreds, K = thousands, M = millions, B = billions, a digit d = 10^d. "
        "Blank, '-', '+' and any other symbol leave the amount unchanged."
    )
    if summary.scale_codes:
        _table(
            ["Column", "Code", "Records", "Rule", "Multiplier"],
            [
                (u.column, repr(u.code) if u.code == "" else u.code, _fmt_int(u.count), u.rule, f"{u.multiplier:g}")
                for u in summary.scale_codes
            ],
        )

    # Dataset citation
    doc.add_paragraph("")
    doc.add_heading("Dataset citation", level=1)
    cit = config.citation
    if cit.file_name:
        doc.add_paragraph(f"Data file used: {cit.file_name}")
    if cit.file_note:
        doc.add_paragraph(f"File note: {cit.file_note}")
    doc.add_paragraph(
        f"{cit.institutional_author}. {cit.database_name} ({cit.coverage}). {cit.website}."
    )

    # Results
    doc.add_paragraph("")
    doc.add_heading("Results", level=1)
    for title, path, why in chart_paths:
        doc.add_heading(title, level=2)
        doc.add_picture(path, width=Inches(6.5))
        doc.add_paragraph("Why this graph is suitable: " + why)
        if path.endswith("fatalities.png"):
            _table(["Event type", "Fatalities"], [(r.event_type, _fmt_int(r.value)) for r in summary.fatalities])
        elif path.endswith("injuries.png"):
            _table(["Event type", "Injuries"], [(r.event_type, _fmt_int(r.value)) for r in summary.injuries])
        else:
            _table(
                ["Event type", "Property (US$ bn)", "Crop (US$ bn)"],
                [(k, _fmt_billions(p), _fmt_billions(c)) for k, p, c in _economic_totals(summary.economic)],
            )
        doc.add_paragraph("")

    if len(summary.fatalities) > n or len(summary.injuries) > n or len(summary.economic) > 2 * n:
        doc.add_paragraph(
            f"Some tables list more than {n} event types because categories tied at rank {n} are all shown."
        )

    # -----------------------------
    # Reproducibility footer
    # -----------------------------
    doc.add_heading("Reproducibility footer", level=1)
    from . import __version__ as pkg_version
    from datetime import datetime as _dt
    generated_at = _dt.now().isoformat(timespec="seconds")

    doc.add_paragraph(f"stormreport version: {pkg_version}")
    doc.add_paragraph(f"Report generated at: {generated_at}")
    doc.add_paragraph(f"Top-N per chart: {n}")
    if cit.file_name:
        doc.add_paragraph(f"Dataset file: {cit.file_name}")
    if config.command_line:
        doc.add_paragraph(f"Command: {config.command_line}")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    doc.save(out_path)
    logger.info("report_written", path=out_path)
    return out_path
