"""
stormreport Command Line Interface (CLI)
========================================

Run it like:

    python -m stormreport.cli summary
    python -m stormreport.cli --data "data/StormData.csv.bz2" report "storm_report.docx"

If the data file is missing it is downloaded once from the NOAA export URL
and cached at the `--data` path.

The CLI never modifies the dataset file.
"""

from __future__ import annotations
import argparse, shlex, sys
from typing import List, Optional

from .engine import AnalysisConfig, DEFAULT_TOP_N, StormImpactEngine, StormSummary, UNKNOWN_EVENT_TYPE
from .loader import DEFAULT_DATA_PATH, DEFAULT_DATA_URL, DatasetSource, load_storm_events
from .logs import configure_logging


def _make_citation(path: str):
    from .report import DatasetCitation
    import os
    return DatasetCitation(file_name=os.path.basename(path) if path else None)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="stormreport",
        description="Rank NOAA storm event types by health and economic impact.",
    )
    ap.add_argument("--data", default=DEFAULT_DATA_PATH, help="Path to the storm CSV (downloaded here if missing)")
    ap.add_argument("--url", default=DEFAULT_DATA_URL, help="Where to download the dataset from")
    ap.add_argument("--top-n", type=int, default=DEFAULT_TOP_N, help="Categories per chart (ties at the cut-off are kept)")
    ap.add_argument("--unknown-marker", default=UNKNOWN_EVENT_TYPE, help="Event type value meaning 'unknown'")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    ap.add_argument("--log-json", action="store_true", help="Log as JSON lines")

    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("summary", help="Print the three ranked tables")
    rp = sub.add_parser("report", help="Write the DOCX report")
    rp.add_argument("out", help="Output .docx path")
    ep = sub.add_parser("export", help="Export the ranked tables")
    ep.add_argument("format", choices=("csv", "json"))
    ep.add_argument("out", help="Output path")
    sub.add_parser("codes", help="Show how damage scale codes were resolved")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI.

    1) Load (or download) the dataset
    2) Run the pipeline
    3) Dispatch the sub-command
    """
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, json=args.log_json)

    try:
        print("Loading dataset...")
        events = load_storm_events(DatasetSource(path=args.data, url=args.url))
        engine = StormImpactEngine(
            events=events,
            config=AnalysisConfig(top_n=args.top_n, unknown_marker=args.unknown_marker),
            dataset_path=args.data,
        )
        print(f"Loaded {len(events)} records.")
        words = sys.argv[1:] if argv is None else argv
        command_line = "stormreport " + " ".join(shlex.quote(w) for w in words)
        handle(engine, args, command_line)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


def handle(engine: StormImpactEngine, args: argparse.Namespace, command_line: Optional[str] = None) -> None:
    """Run one sub-command against a loaded engine."""
    cmd = args.command

    if cmd == "codes":
        print(f"{'column':<9} {'code':>6} {'records':>9}  {'rule':<14} multiplier")
        for u in engine.scale_code_usage():
            print(f"{u.column:<9} {u.code!r:>6} {u.count:>9}  {u.rule:<14} {u.multiplier:g}")
        return

    summary = engine.summary()

    if cmd == "summary":
        _print_summary(summary)
        return

    if cmd == "export":
        if args.format == "csv":
            engine.export_csv(args.out, summary)
        else:
            engine.export_json(args.out, summary)
        print(f"Exported {args.format.upper()} to {args.out}")
        return

    if cmd == "report":
        from .report import generate_docx_report, ReportConfig
        cfg = ReportConfig(
            citation=_make_citation(engine.dataset_path),
            command_line=command_line,
        )
        generate_docx_report(summary, args.out, config=cfg)
        print(f"Report written to {args.out}")
        return

    raise ValueError(f"Unknown command: {cmd}")


def _print_summary(summary: StormSummary) -> None:
    print(f"Records: {summary.total_records} | with impact: {summary.retained_records} | event types: {summary.event_types}")
    print(f"\nTop {summary.top_n} by fatalities:")
    for r in summary.fatalities:
        print(f"  {r.event_type:<30} {int(r.value):>10,}")
    print(f"\nTop {summary.top_n} by injuries:")
    for r in summary.injuries:
        print(f"  {r.event_type:<30} {int(r.value):>10,}")
    print(f"\nTop {summary.top_n} by economic damage (US$ billions):")
    for r in summary.economic:
        print(f"  {r.event_type:<30} {r.damage_type:<9} {r.damage_billions:>10,.2f}")


if __name__ == "__main__":
    sys.exit(main())
