import argparse
import sys
from dataclasses import asdict
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from wppa.database.sample_store import SampleStore
from wppa.renderers.display import render_panels
from wppa.renderers.history_renderer import (
    ComponentDetailRenderer,
    HistoryRenderer,
    TimelineRenderer,
)
from wppa.settings import load_settings


def _open_store(data_dir: str) -> SampleStore:
    if not data_dir:
        print("Error: --data-dir is required (or set WPPA_DATA_DIR).", file=sys.stderr)
        sys.exit(1)
    return SampleStore.load(data_dir)


def run_report(args, console: Console) -> int:
    store = _open_store(args.data_dir)
    if args.component:
        renderers = [ComponentDetailRenderer(store, args.component, hours=args.hours)]
    elif args.hourly:
        renderers = [TimelineRenderer(store, hours=args.hours)]
    else:
        renderers = [HistoryRenderer(store, days=args.days)]
    render_panels(renderers, console=console)
    return 0


def run_cleanup(args, console: Console) -> int:
    settings = load_settings()
    retention = settings.data_retention_days if args.retention_days is None else args.retention_days
    if retention < 1:
        print("Error: --retention-days must be >= 1.", file=sys.stderr)
        return 1
    store = _open_store(args.data_dir)
    removed = store.cleanup(retention)
    console.print(f"Removed {removed} sample(s) older than {retention} day(s).")
    return 0


def run_clear(args, console: Console) -> int:
    store = _open_store(args.data_dir)
    n = len(store)
    store.clear()
    console.print(f"Cleared {n} sample(s).")
    return 0


def run_settings(args, console: Console) -> int:
    settings = load_settings()
    table = Table(show_header=True, header_style="bold blue", box=None)
    table.add_column("Setting", style="magenta")
    table.add_column("Value")
    for key, value in asdict(settings).items():
        table.add_row(key, str(value))
    console.print(table)
    return 0


def build_parser():
    parser = argparse.ArgumentParser("wppa")
    sub = parser.add_subparsers(dest="command", required=True)

    report = sub.add_parser("report", help="Show persisted performance history")
    report.add_argument("--data-dir", type=str, default=None)
    report.add_argument("--days", type=int, default=7)
    report.add_argument("--hourly", action="store_true", help="Per-hour timeline instead of daily history")
    report.add_argument("--hours", type=int, default=24)
    report.add_argument("--component", type=str, default=None, help="Recent samples for one component")

    cleanup = sub.add_parser("cleanup", help="Delete samples past the retention window")
    cleanup.add_argument("--data-dir", type=str, default=None)
    cleanup.add_argument("--retention-days", type=int, default=None)

    clear = sub.add_parser("clear", help="Delete every persisted sample")
    clear.add_argument("--data-dir", type=str, default=None)

    sub.add_parser("settings", help="Print effective settings")
    return parser


_COMMANDS = {
    "report": run_report,
    "cleanup": run_cleanup,
    "clear": run_clear,
    "settings": run_settings,
}


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if hasattr(args, "data_dir") and args.data_dir is None:
            args.data_dir = load_settings().data_dir
        return _COMMANDS[args.command](args, console or Console())
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
