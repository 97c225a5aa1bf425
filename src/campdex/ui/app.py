"""Main Textual application for campdex."""

from pathlib import Path

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from campdex.config import init_repo, is_git_repo
from campdex.index import LocalIndex
from campdex.models import Index
from campdex.resolver import resolve_one
from campdex.store import GitSnapshotStore
from campdex.ui.panels import StatsPanel, SummaryPanel
from campdex.ui.search import SearchInput


class ConfirmInitScreen(ModalScreen[bool]):
    """Modal screen asking to create the index repository."""

    CSS = """
    ConfirmInitScreen {
        align: center middle;
    }
    #dialog {
        width: 70;
        height: auto;
        border: thick $primary;
        background: $surface;
        padding: 1 2;
    }
    #message {
        text-align: center;
        margin-bottom: 1;
    }
    #buttons {
        width: 100%;
        height: 3;
        align: center middle;
    }
    Button {
        margin: 0 2;
    }
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = path

    def compose(self) -> ComposeResult:
        with Vertical(id="dialog"):
            yield Static(f"{self.path} is not a campdex repository. Create one?", id="message")
            with Horizontal(id="buttons"):
                yield Button("Yes", id="yes", variant="primary")
                yield Button("No", id="no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "yes")


class CampdexApp(App):
    """Browse the local index: find projects, see their boards and totals."""

    CSS = """
    #panels {
        height: 1fr;
    }
    """

    TITLE = "campdex"
    BINDINGS = [("ctrl+q", "quit", "Quit")]

    def __init__(self, repo_path: Path, local: LocalIndex | None = None):
        super().__init__()
        self.repo_path = repo_path
        self.local = local

    def compose(self) -> ComposeResult:
        yield SearchInput([], placeholder="Find a project by name, acronym or id", id="search")
        with Horizontal(id="panels"):
            yield SummaryPanel("Type a project name above.", id="summary")
            yield StatsPanel(id="stats")

    async def on_mount(self) -> None:
        if self.local is not None:
            self._show_index()
        elif not is_git_repo(self.repo_path):
            self.push_screen(ConfirmInitScreen(self.repo_path), self._on_init_response)
        else:
            self._open_index()

    def _on_init_response(self, result: bool) -> None:
        if result:
            init_repo(self.repo_path)
            GitSnapshotStore(self.repo_path).commit(Index(), "Initialize campdex index")
            self._open_index()
        else:
            self.exit()

    def _open_index(self) -> None:
        self.local = LocalIndex.open(self.repo_path)
        self._show_index()

    def _show_index(self) -> None:
        projects = sorted(self.local.index.projects.values(), key=lambda p: p.name.lower())
        self.query_one(SearchInput).set_options([(p.name, str(p.id)) for p in projects])
        self.query_one(StatsPanel).show(self.local.statistics(), self.local.stats_by_type())
        self.query_one(SearchInput).query_one(Input).focus()

    def on_search_input_submitted(self, event: SearchInput.Submitted) -> None:
        if self.local is None:
            return
        if event.value is not None:
            project = self.local.get_project(int(event.value))
        else:
            project = resolve_one(event.text, self.local.index.projects.values())
        summary = self.local.project_summary(project.id) if project is not None else None
        self.query_one(SummaryPanel).show(summary, event.text)

    def on_search_input_cancelled(self, event: SearchInput.Cancelled) -> None:
        self.query_one(SearchInput).query_one(Input).value = ""
