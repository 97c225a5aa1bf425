"""Project finder: an input whose suggestions are ranked by the match scorer."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Container
from textual.events import DescendantBlur, Key
from textual.message import Message
from textual.widgets import Input, OptionList
from textual.widgets.option_list import Option

from campdex.matcher import score

Choice = tuple[str, str]


def rank_options(options: list[Choice], query: str, limit: int | None = None) -> list[Choice]:
    """Options scoring above zero against query, best first; all of them for an empty query."""
    if not query.strip():
        ranked = list(options)
    else:
        scored = [(score(query, label).score, i) for i, (label, _) in enumerate(options)]
        ranked = [options[i] for s, i in sorted(scored, key=lambda pair: -pair[0]) if s > 0]
    return ranked if limit is None else ranked[:limit]


class SearchInput(Container):
    """Free-text input over (label, value) choices.

    Typing re-ranks the choices by how well their label matches and shows
    the best ones in a dropdown. Enter picks the highlighted choice, or
    submits the raw text with no value when nothing matches.
    """

    DEFAULT_CSS = """
    SearchInput {
        height: auto;
    }
    SearchInput OptionList {
        display: none;
        max-height: 12;
    }
    SearchInput OptionList.-visible {
        display: block;
    }
    """

    class Submitted(Message):
        """A choice (value set) or free text (value None) was entered."""

        def __init__(self, text: str, value: str | None) -> None:
            super().__init__()
            self.text = text
            self.value = value

    class Cancelled(Message):
        """Escape pressed with the dropdown already closed."""

    def __init__(
        self,
        options: list[Choice],
        *,
        placeholder: str = "",
        value: str = "",
        limit: int = 20,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._options = list(options)
        self._placeholder = placeholder
        self._initial_value = value
        self._limit = limit
        self._echo = False

    def compose(self) -> ComposeResult:
        yield Input(placeholder=self._placeholder, value=self._initial_value)
        yield OptionList()

    @property
    def _input(self) -> Input:
        return self.query_one(Input)

    @property
    def _dropdown(self) -> OptionList:
        return self.query_one(OptionList)

    @property
    def dropdown_open(self) -> bool:
        return self._dropdown.has_class("-visible")

    def set_options(self, options: list[Choice]) -> None:
        self._options = list(options)
        self._refresh_dropdown(self._input.value)

    def _refresh_dropdown(self, query: str) -> None:
        dropdown = self._dropdown
        dropdown.clear_options()
        if not query.strip():
            self._hide()
            return
        for label, value in rank_options(self._options, query, self._limit):
            dropdown.add_option(Option(label, id=value))
        if dropdown.option_count:
            dropdown.highlighted = 0
            dropdown.add_class("-visible")
        else:
            self._hide()

    def _hide(self) -> None:
        self._dropdown.remove_class("-visible")

    def _emit(self, text: str, value: str | None) -> None:
        if self._input.value != text:
            # The echoed label must not re-open the dropdown.
            self._echo = True
            self._input.value = text
        self._hide()
        self.post_message(self.Submitted(text, value))

    def on_input_changed(self, event: Input.Changed) -> None:
        if self._echo:
            self._echo = False
        else:
            self._refresh_dropdown(event.value)

    # --- keys ---

    def _key_down(self) -> bool:
        if not self.dropdown_open:
            return False
        self._dropdown.action_cursor_down()
        return True

    def _key_up(self) -> bool:
        if not self.dropdown_open:
            return False
        self._dropdown.action_cursor_up()
        return True

    def _key_enter(self) -> bool:
        dropdown = self._dropdown
        if self.dropdown_open and dropdown.highlighted is not None:
            option = dropdown.get_option_at_index(dropdown.highlighted)
            self._emit(str(option.prompt), option.id)
        else:
            self._emit(self._input.value, None)
        return True

    def _key_escape(self) -> bool:
        if self.dropdown_open:
            self._hide()
        else:
            self.post_message(self.Cancelled())
        return True

    def _on_key(self, event: Key) -> None:
        """Handle navigation keys before the Input sees them."""
        handler = getattr(self, f"_key_{event.key}", None)
        if handler is not None and handler():
            event.prevent_default()
            event.stop()

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        self._emit(str(event.option.prompt), event.option.id)

    def on_descendant_blur(self, event: DescendantBlur) -> None:
        self.call_after_refresh(self._hide_unless_focused)

    def _hide_unless_focused(self) -> None:
        if self.is_attached and self.app.focused not in self.walk_children():
            self._hide()
