from typing import Iterable, Optional

from rich.console import Console
from rich.panel import Panel

from wppa.loggers.error_log import get_error_logger
from wppa.renderers.base_renderer import BaseRenderer

logger = get_error_logger("display")


def render_panels(renderers: Iterable[BaseRenderer], console: Optional[Console] = None) -> None:
    """
    Print each renderer's panel once. A failing renderer is replaced by an
    error panel; the others still render.
    """
    console = console or Console()
    for r in renderers:
        try:
            renderable = r.get_panel_renderable()
        except Exception as e:
            logger.error(f"[WPPA] Error rendering {r.name}: {e}")
            renderable = Panel(
                f"[red]Error rendering {r.name}: {e}[/red]",
                title=f"[bold red]Render Error: {r.name}[/bold red]",
                border_style="red",
            )
        console.print(renderable)
