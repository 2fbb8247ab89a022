from datetime import datetime
from typing import Optional

from rich.console import Group
from rich.panel import Panel
from rich.table import Table

from wppa.database.sample_store import SampleStore
from wppa.renderers.base_renderer import BaseRenderer
from wppa.utils.formatting import fmt_bytes, fmt_seconds_ms, truncate_text


class HistoryRenderer(BaseRenderer):
    """
    Renderer over the persisted sample log.

    Shows realtime stats (last 5 minutes), per-day history and
    per-component performance.
    """

    def __init__(self, store: SampleStore, days: int = 7, now: Optional[float] = None):
        super().__init__(name="Performance History")
        self.store = store
        self.days = days
        self.now = now

    def get_panel_renderable(self) -> Panel:
        rt = self.store.realtime_stats(now=self.now)
        realtime = Table(show_header=False, box=None, pad_edge=False, padding=(0, 1))
        realtime.add_column(style="magenta")
        realtime.add_column(justify="right")
        realtime.add_row("Page Load (5 min avg)", fmt_seconds_ms(rt["avg_time"]))
        realtime.add_row("Queries (5 min avg)", str(int(rt["avg_queries"])))
        realtime.add_row("Memory (5 min avg)", fmt_bytes(rt["avg_memory"]))

        daily = Table(show_header=True, header_style="bold blue", box=None, pad_edge=False, padding=(0, 1))
        daily.add_column("Date", style="magenta")
        daily.add_column("Avg Time", justify="right")
        daily.add_column("Avg Queries", justify="right")
        daily.add_column("Avg Memory", justify="right")
        history = self.store.daily_history(days=self.days, now=self.now)
        for d in history:
            daily.add_row(
                d["date"],
                fmt_seconds_ms(d["avg_time"]),
                f"{d['avg_queries']:.1f}",
                fmt_bytes(d["avg_memory"]),
            )
        if not history:
            daily.add_row("[dim]No samples[/dim]", "-", "-", "-")

        comps = Table(show_header=True, header_style="bold blue", box=None, pad_edge=False, padding=(0, 1))
        comps.add_column("Component", style="magenta")
        comps.add_column("Avg Time", justify="right")
        comps.add_column("Max Time", justify="right")
        comps.add_column("Samples", justify="right")
        for c in self.store.component_performance(days=self.days, now=self.now):
            comps.add_row(
                c["component"],
                fmt_seconds_ms(c["avg_time"]),
                fmt_seconds_ms(c["max_time"]),
                str(c["sample_count"]),
            )

        return Panel(
            Group(
                realtime,
                "",
                f"[bold]Last {self.days} Days[/bold]",
                daily,
                "",
                "[bold]Component Performance[/bold]",
                comps,
            ),
            title=f"[bold blue]{self.name}[/bold blue]",
            border_style="blue",
        )


class TimelineRenderer(BaseRenderer):
    """Hourly averages over the last `hours` hours, oldest first."""

    def __init__(self, store: SampleStore, hours: int = 24, now: Optional[float] = None):
        super().__init__(name="Hourly Timeline")
        self.store = store
        self.hours = hours
        self.now = now

    def get_panel_renderable(self) -> Panel:
        table = Table(show_header=True, header_style="bold blue", box=None, pad_edge=False, padding=(0, 1))
        table.add_column("Hour", style="magenta")
        table.add_column("Avg Time", justify="right")
        table.add_column("Avg Queries", justify="right")
        rows = self.store.hourly_timeline(hours=self.hours, now=self.now)
        for h in rows:
            table.add_row(h["hour"], fmt_seconds_ms(h["avg_time"]), f"{h['avg_queries']:.1f}")
        if not rows:
            table.add_row("[dim]No samples[/dim]", "-", "-")

        return Panel(
            table,
            title=f"[bold blue]{self.name} ({self.hours}h)[/bold blue]",
            border_style="blue",
        )


class ComponentDetailRenderer(BaseRenderer):
    def __init__(
        self,
        store: SampleStore,
        component: str,
        hours: int = 24,
        limit: int = 20,
        now: Optional[float] = None,
    ):
        super().__init__(name=f"Component Details: {component}")
        self.store = store
        self.component = component
        self.hours = hours
        self.limit = limit
        self.now = now

    def get_panel_renderable(self) -> Panel:
        table = Table(show_header=True, header_style="bold blue", box=None, pad_edge=False, padding=(0, 1))
        table.add_column("Time", style="magenta")
        table.add_column("Page", overflow="fold")
        table.add_column("Execution", justify="right")
        table.add_column("Queries", justify="right")
        table.add_column("Memory", justify="right")
        rows = self.store.recent_for_component(
            self.component, hours=self.hours, limit=self.limit, now=self.now
        )
        for r in rows:
            table.add_row(
                datetime.fromtimestamp(float(r["timestamp"])).strftime("%Y-%m-%d %H:%M:%S"),
                truncate_text(r["page_url"], 60),
                fmt_seconds_ms(r["execution_time"]),
                str(r["query_count"]),
                fmt_bytes(r["memory_usage"]),
            )
        if not rows:
            table.add_row(f"[dim]No samples for {self.component} in the last {self.hours}h[/dim]", "", "", "", "")

        return Panel(table, title=f"[bold blue]{self.name}[/bold blue]", border_style="blue")
