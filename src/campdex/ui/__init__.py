"""Textual UI for campdex."""

from campdex.ui.app import CampdexApp
from campdex.ui.search import SearchInput

__all__ = [
    "CampdexApp",
    "SearchInput",
]
