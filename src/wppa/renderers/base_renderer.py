import io
from typing import Any

from rich.console import Console


class BaseRenderer:
    """
    Base class for console renderers. Each renderer turns one reporting
    view into a Rich renderable and can append it to a summary file.
    """

    def __init__(self, name: str):
        self.name = name

    def get_panel_renderable(self) -> Any:
        """
        Subclasses must implement this to return a Rich Renderable
        (e.g., Panel, Table, Text).
        """
        raise NotImplementedError(
            "Subclasses must implement get_panel_renderable to provide content for the display."
        )

    def log_summary(self, path: str) -> None:
        """Append a plain-text rendering of the panel to `path`."""
        console = Console(record=True, width=120, file=io.StringIO())
        console.print(self.get_panel_renderable())
        with open(path, "a", encoding="utf-8") as f:
            f.write(console.export_text())
            f.write("\n")
