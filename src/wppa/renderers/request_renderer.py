"""
Current-request renderers.

Presentation only: every number comes from the Reporter.

- RequestOverviewRenderer : page load time, queries, memory, top-N components
- PhaseRenderer           : time per lifecycle phase
- QueryAnalysisRenderer   : per-type query summary + slowest queries
"""

from rich.console import Group
from rich.panel import Panel
from rich.table import Table

from wppa.aggregator.reporter import Reporter
from wppa.renderers.base_renderer import BaseRenderer
from wppa.utils.formatting import fmt_bytes, fmt_percent, fmt_seconds_ms, truncate_text


def _table() -> Table:
    return Table(
        show_header=True,
        header_style="bold blue",
        box=None,
        pad_edge=False,
        padding=(0, 1),
    )


class RequestOverviewRenderer(BaseRenderer):
    def __init__(self, reporter: Reporter):
        super().__init__(name="Current Performance Overview")
        self.reporter = reporter

    def get_panel_renderable(self) -> Panel:
        summary = self.reporter.current_request_summary()

        metrics = _table()
        metrics.add_column("Metric", justify="left", style="magenta")
        metrics.add_column("Value", justify="right", style="white")
        metrics.add_row("Page Load Time", fmt_seconds_ms(summary.total_time))
        metrics.add_row("Total Queries", str(summary.query_count))
        metrics.add_row("Total Query Time", fmt_seconds_ms(summary.query_time))
        metrics.add_row("Memory Usage", fmt_bytes(summary.memory_usage))

        components = _table()
        components.add_column("Component", justify="left", style="magenta")
        components.add_column("Execution Time", justify="right", style="white")
        components.add_column("% of Total", justify="right", style="cyan")
        if summary.top_components:
            for c in summary.top_components:
                components.add_row(c.name, fmt_seconds_ms(c.time), fmt_percent(c.percentage))
        else:
            components.add_row("[dim]Hook profiling disabled or no data[/dim]", "-", "-")

        n = self.reporter.settings.top_n_components
        return Panel(
            Group(metrics, "", f"[bold]Top {n} Slowest Components[/bold]", components),
            title=f"[bold blue]{self.name}[/bold blue]",
            border_style="blue",
        )


class PhaseRenderer(BaseRenderer):
    def __init__(self, reporter: Reporter):
        super().__init__(name="Request Phases")
        self.reporter = reporter

    def get_panel_renderable(self) -> Panel:
        shares = self.reporter.phase_summary()
        slowest = self.reporter.slowest_phase()

        table = _table()
        table.add_column("Phase", justify="left", style="magenta")
        table.add_column("Duration", justify="right", style="white")
        table.add_column("%", justify="right", style="cyan")
        if shares:
            for s in shares:
                style = "bold red" if slowest is not None and s.name == slowest.name else ""
                table.add_row(s.name, fmt_seconds_ms(s.duration), fmt_percent(s.percentage), style=style)
        else:
            table.add_row("[dim]No phase data[/dim]", "-", "-")

        return Panel(table, title=f"[bold blue]{self.name}[/bold blue]", border_style="blue")


class QueryAnalysisRenderer(BaseRenderer):
    def __init__(self, reporter: Reporter, num_slow_queries=None):
        super().__init__(name="Database Query Analysis")
        self.reporter = reporter
        self.num_slow_queries = num_slow_queries

    def get_panel_renderable(self) -> Panel:
        summary = _table()
        summary.add_column("Query Type", justify="left", style="magenta")
        summary.add_column("Count", justify="right", style="white")
        summary.add_column("Total Time", justify="right", style="white")
        summary.add_column("Avg Time", justify="right", style="cyan")

        groups = self.reporter.grouped_queries()
        for qtype, g in groups.items():
            summary.add_row(qtype, str(g.count), fmt_seconds_ms(g.total_time), fmt_seconds_ms(g.avg_time))
        if not groups:
            summary.add_row("[dim]No queries recorded[/dim]", "-", "-", "-")

        slow = _table()
        slow.add_column("Query", justify="left", style="white", overflow="fold")
        slow.add_column("Time", justify="right", style="cyan")
        slow.add_column("Caller", justify="left", style="magenta")
        for q in self.reporter.slowest_queries(self.num_slow_queries):
            slow.add_row(truncate_text(q.query), fmt_seconds_ms(q.duration), q.caller)

        parts = [summary]
        if not self.reporter.settings.enable_query_tracking:
            parts.insert(0, "[yellow]Query logging is not enabled (WPPA_SAVEQUERIES).[/yellow]")
        parts += ["", "[bold]Slowest Queries[/bold]", slow]

        return Panel(Group(*parts), title=f"[bold blue]{self.name}[/bold blue]", border_style="blue")
