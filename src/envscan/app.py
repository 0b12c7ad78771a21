"""envscan - Textual browser for the results of one scan."""

from enum import Enum

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from envscan.models import ItemStatus, ResultItem
from envscan.procfs import process_name
from envscan.scanner import ScanSummary


class SortKey(Enum):
    """Sort keys for the result table."""

    PID = "pid"
    NAME = "name"
    STATUS = "status"


def truncate(text: str, width: int) -> str:
    """Shorten text to width characters, marking the cut with an ellipsis."""
    if len(text) <= width:
        return text
    return text[: max(width - 1, 0)] + "…"


class ScanHeader(Static):
    """Header widget showing the scan summary."""

    DEFAULT_CSS = """
    ScanHeader {
        height: auto;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, summary: ScanSummary, *args, **kwargs) -> None:
        """Initialize ScanHeader."""
        self._summary = summary
        super().__init__(self.render_summary(), *args, **kwargs)

    def render_summary(self) -> str:
        """Get the summary display."""
        s = self._summary
        return (
            f"Processes scanned: {s.scanned}  matched: {s.matched_pids}\n"
            f"[green]collected: {s.collected}[/green]  "
            f"[yellow]not collected: {s.not_collected}[/yellow]  "
            f"[dim]malformed records: {s.dropped_records}[/dim]"
        )


class ResultTable(Container):
    """Container for the result data table."""

    DEFAULT_CSS = """
    ResultTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ResultTable."""
        super().__init__(*args, **kwargs)
        self._items: list[ResultItem] = []
        self._names: dict[int, str] = {}
        self._sort_key: SortKey = SortKey.PID
        self._columns_ready = False

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    @property
    def items(self) -> list[ResultItem]:
        return list(self._items)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key, re-render, and return it."""
        keys = list(SortKey)
        current_index = keys.index(self._sort_key)
        self._sort_key = keys[(current_index + 1) % len(keys)]
        self._render_rows()
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the result table."""
        yield DataTable(id="result-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#result-table", DataTable)
        table.cursor_type = "row"

        table.add_column("PID", key="pid", width=8)
        table.add_column("Process", key="process", width=16)
        table.add_column("Status", key="status", width=14)
        table.add_column("Name", key="name", width=24)
        table.add_column("Value / Message", key="value")
        self._columns_ready = True
        self._render_rows()

    def show_items(self, items: list[ResultItem]) -> None:
        """Replace the displayed items."""
        self._items = list(items)
        self._render_rows()

    def _sorted_items(self) -> list[ResultItem]:
        """Sort items based on the current sort key."""
        key_func = {
            SortKey.PID: lambda item: (item.pid, item.name or ""),
            SortKey.NAME: lambda item: ((item.name or "").lower(), item.pid),
            SortKey.STATUS: lambda item: (item.status.value, item.pid),
        }
        return sorted(self._items, key=key_func[self._sort_key])

    def _process_name(self, pid: int) -> str:
        if pid not in self._names:
            self._names[pid] = process_name(pid)
        return self._names[pid]

    def _render_rows(self) -> None:
        """Rebuild the table rows in the current order."""
        if not self._columns_ready:
            return
        table = self.query_one("#result-table", DataTable)
        table.clear()
        for index, item in enumerate(self._sorted_items()):
            if item.status is ItemStatus.COLLECTED:
                status = Text("collected", style="green")
                detail = item.value or ""
            else:
                status = Text("not collected", style="yellow")
                detail = item.message or ""
            table.add_row(
                str(item.pid),
                Text(truncate(self._process_name(item.pid), 16)),
                status,
                Text(truncate(item.name or "", 24)),
                Text(truncate(detail, 120)),
                key=str(index),
            )


class EnvScanApp(App):
    """Browser for one finished environment scan."""

    TITLE = "envscan"
    SUB_TITLE = "Process Environment Scan"

    CSS = """
    Screen {
        layout: vertical;
    }

    #scan-header {
        dock: top;
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
    ]

    def __init__(self, items: list[ResultItem], summary: ScanSummary) -> None:
        """Initialize the EnvScanApp."""
        super().__init__()
        self._items = list(items)
        self._summary = summary

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ScanHeader(self._summary, id="scan-header")
        yield ResultTable()
        yield Footer()

    def on_mount(self) -> None:
        """Load the scan results once the widgets exist."""
        self.query_one(ResultTable).show_items(self._items)

    def action_sort(self) -> None:
        """Handle sort action - cycle through sort keys."""
        new_sort_key = self.query_one(ResultTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")
