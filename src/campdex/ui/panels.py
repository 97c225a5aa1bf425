"""Read-only views of index statistics and project summaries."""

from rich.console import Group
from rich.table import Table
from rich.text import Text
from textual.widgets import Static

from campdex.index import ProjectSummary, Statistics


def stats_renderable(stats: Statistics, by_type: dict[str, int], top: int = 5):
    if stats.built_at is None and not stats.total_cards:
        return Text("Index has not been built yet. Run 'campdex index build'.", style="dim")

    totals = Table.grid(padding=(0, 2))
    totals.add_column(style="bold")
    totals.add_column(justify="right")
    totals.add_row("Projects", f"{stats.total_projects} ({stats.active_projects} active)")
    totals.add_row("People", str(stats.total_people))
    totals.add_row("Cards", str(stats.total_cards))
    totals.add_row("Open", str(stats.open_cards))
    totals.add_row("Completed", str(stats.completed_cards))
    totals.add_row("Overdue", Text(str(stats.overdue_cards), style="red" if stats.overdue_cards else ""))
    if stats.index_age is not None:
        hours = int(stats.index_age.total_seconds() // 3600)
        totals.add_row("Index age", f"{hours // 24}d {hours % 24}h")

    types = Table(title="By column type", box=None, show_header=False)
    types.add_column()
    types.add_column(justify="right")
    for name, count in by_type.items():
        if name != "total" and count:
            types.add_row(name, str(count))

    assignees = Table(title="Top assignees", box=None, show_header=False)
    assignees.add_column()
    assignees.add_column(justify="right")
    for name, count in sorted(stats.by_assignee.items(), key=lambda kv: kv[1], reverse=True)[:top]:
        assignees.add_row(name, str(count))

    return Group(totals, Text(""), types, Text(""), assignees)


def summary_renderable(summary: ProjectSummary):
    project = summary.project
    stats = summary.stats
    header = Text.assemble(
        (project.name, "bold"),
        f"  #{project.id}  ",
        (project.status.value, "dim"),
    )
    counts = Text(f"{stats.total} cards: {stats.open} open, {stats.completed} completed, {stats.overdue} overdue")

    if not summary.columns:
        return Group(header, counts, Text("No board columns indexed.", style="dim"))

    table = Table(box=None, padding=(0, 1))
    table.add_column("", width=2)
    table.add_column("Column")
    table.add_column("Type", style="dim")
    table.add_column("Cards", justify="right")
    for column in summary.columns:
        table.add_row(column.emoji, column.title, column.type.value, str(stats.by_column.get(column.title, 0)))
    return Group(header, counts, Text(""), table)


class StatsPanel(Static):
    DEFAULT_CSS = """
    StatsPanel {
        width: 1fr;
        padding: 1 2;
        border: round $primary;
    }
    """

    def show(self, stats: Statistics, by_type: dict[str, int]) -> None:
        self.update(stats_renderable(stats, by_type))


class SummaryPanel(Static):
    DEFAULT_CSS = """
    SummaryPanel {
        width: 2fr;
        padding: 1 2;
        border: round $secondary;
    }
    """

    summary: ProjectSummary | None = None

    def show(self, summary: ProjectSummary | None, query: str = "") -> None:
        self.summary = summary
        if summary is None:
            self.update(Text(f"No project matches '{query}'", style="yellow"))
        else:
            self.update(summary_renderable(summary))
