"""Remote API client: the external collaborator the core talks to."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from datetime import date
from typing import Any, Protocol

import httpx

from campdex.errors import RemoteFailure

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://3.basecampapi.com"
DEFAULT_PAGE_SIZE = 15


class RemoteClient(Protocol):
    """What the core needs from the remote API.

    All calls are safe to retry; retry and backoff belong to the client.
    """

    def list_projects(self, status: str | None = None, page: int = 1) -> list[dict]: ...

    def get_project(self, project_id: int) -> dict: ...

    def get_board_column(self, project_id: int, column_id: int) -> dict | None: ...

    def list_cards(self, project_id: int, column_id: int, page: int = 1) -> list[dict]: ...

    def list_people(self, page: int = 1) -> list[dict]: ...

    def list_project_people(self, project_id: int) -> list[dict]: ...

    def create_card(
        self,
        project_id: int,
        column_id: int,
        title: str,
        content: str = "",
        due_on: date | None = None,
        assignee_ids: list[int] | None = None,
    ) -> dict: ...

    def update_card(self, project_id: int, card_id: int, fields: dict[str, Any]) -> dict: ...

    def move_card(self, project_id: int, card_id: int, column_id: int, position: int | None = None) -> dict: ...

    def create_comment(self, project_id: int, recording_id: int, content: str) -> dict: ...

    def archive_project(self, project_id: int) -> dict: ...


def iter_pages(fetch: Callable[[int], list[dict]], page_size: int = DEFAULT_PAGE_SIZE) -> Iterator[dict]:
    """Yield items from successive pages until an empty or short page."""
    page = 1
    while True:
        items = fetch(page)
        if not items:
            return
        yield from items
        if len(items) < page_size:
            return
        page += 1


class BasecampClient:
    """RemoteClient over httpx with bearer-token auth."""

    def __init__(
        self,
        account_id: str,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        user_agent: str = "campdex",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.account_id = str(account_id)
        self._http = httpx.Client(
            base_url=f"{api_base.rstrip('/')}/{self.account_id}",
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> BasecampClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: dict | None = None,
        allow_missing: bool = False,
    ) -> Any:
        try:
            resp = self._http.request(method, path, params=params, json=json)
        except httpx.RequestError as exc:
            raise RemoteFailure(f"{method} {path} failed: {exc}", url=path) from exc

        if allow_missing and resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise RemoteFailure(
                f"{method} {path} returned {resp.status_code}",
                status=resp.status_code,
                url=path,
            )
        logger.debug("%s %s -> %d", method, path, resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return {}
        return resp.json()

    # --- reads ---

    def list_projects(self, status: str | None = None, page: int = 1) -> list[dict]:
        params: dict[str, Any] = {"page": page}
        if status:
            params["status"] = status
        return self._request("GET", "/projects.json", params=params) or []

    def get_project(self, project_id: int) -> dict:
        return self._request("GET", f"/projects/{project_id}.json")

    def get_board_column(self, project_id: int, column_id: int) -> dict | None:
        return self._request(
            "GET",
            f"/buckets/{project_id}/card_tables/columns/{column_id}.json",
            allow_missing=True,
        )

    def list_cards(self, project_id: int, column_id: int, page: int = 1) -> list[dict]:
        return (
            self._request(
                "GET",
                f"/buckets/{project_id}/card_tables/lists/{column_id}/cards.json",
                params={"page": page},
            )
            or []
        )

    def list_people(self, page: int = 1) -> list[dict]:
        return self._request("GET", "/people.json", params={"page": page}) or []

    def list_project_people(self, project_id: int) -> list[dict]:
        return self._request("GET", f"/projects/{project_id}/people.json") or []

    # --- mutations ---

    def create_card(
        self,
        project_id: int,
        column_id: int,
        title: str,
        content: str = "",
        due_on: date | None = None,
        assignee_ids: list[int] | None = None,
    ) -> dict:
        body: dict[str, Any] = {"title": title, "content": content}
        if due_on is not None:
            body["due_on"] = due_on.isoformat()
        if assignee_ids:
            body["assignee_ids"] = list(assignee_ids)
        return self._request(
            "POST",
            f"/buckets/{project_id}/card_tables/lists/{column_id}/cards.json",
            json=body,
        )

    def update_card(self, project_id: int, card_id: int, fields: dict[str, Any]) -> dict:
        return self._request(
            "PUT",
            f"/buckets/{project_id}/card_tables/cards/{card_id}.json",
            json=fields,
        )

    def move_card(self, project_id: int, card_id: int, column_id: int, position: int | None = None) -> dict:
        body: dict[str, Any] = {"column_id": column_id}
        if position is not None:
            body["position"] = position
        return self._request(
            "POST",
            f"/buckets/{project_id}/card_tables/cards/{card_id}/moves.json",
            json=body,
        )

    def create_comment(self, project_id: int, recording_id: int, content: str) -> dict:
        return self._request(
            "POST",
            f"/buckets/{project_id}/recordings/{recording_id}/comments.json",
            json={"content": content},
        )

    def archive_project(self, project_id: int) -> dict:
        return self._request("PUT", f"/projects/{project_id}.json", json={"status": "archived"})
