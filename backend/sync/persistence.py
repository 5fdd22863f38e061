# sync/persistence.py — Remote CRUD over boards, columns, tasks and task sub-entities
"""
PersistenceService is what BoardSync talks to. HttpPersistenceService is the
implementation against the board REST API (routers/boards.py, routers/tasks.py).

Every payload coming back is validated into the schemas.* models here, so the
rest of the client never handles loosely-typed JSON.

Failures are mapped onto sync.errors:
  404                      → NotFound
  any other read failure   → LoadError
  any other write failure  → WriteError
"""
import os
import logging
from urllib.parse import quote
from datetime import date
from typing import Any, List, Optional, Protocol, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from models import TaskPriority
from schemas import (
    AssigneeOut, AttachmentOut, BoardOut, ChecklistItemOut, ColumnOut,
    CommentOut, LabelOut, TaskOut,
)
from sync.errors import LoadError, NotFound, WriteError

logger = logging.getLogger("qms-boards.persistence")

BOARDS_API_URL = os.getenv("BOARDS_API_URL", "http://localhost:8000")
BOARDS_API_TIMEOUT = float(os.getenv("BOARDS_API_TIMEOUT", "30"))

_columns_adapter = TypeAdapter(List[ColumnOut])
_tasks_adapter = TypeAdapter(List[TaskOut])


class PersistenceService(Protocol):
    async def get_board_by_type(self, board_type: str) -> BoardOut: ...

    async def get_columns(self, board_id: str) -> List[ColumnOut]: ...

    async def create_column(self, board_id: str, title: str, position: int) -> ColumnOut: ...

    async def create_default_columns(
        self, board_id: str, titles: Sequence[str], start: int = 0,
    ) -> List[ColumnOut]: ...

    async def get_tasks_with_details(self, column_ids: Sequence[str]) -> List[TaskOut]: ...

    async def create_task(
        self, column_id: str, title: str, priority: TaskPriority,
        description: str = "", due_date: Optional[date] = None,
        position: Optional[int] = None,
    ) -> TaskOut: ...

    async def update_task(
        self, task_id: str, title: str, description: str,
        priority: TaskPriority, due_date: Optional[date],
    ) -> TaskOut: ...

    async def move_task(self, task_id: str, column_id: str, position: Optional[int] = None) -> TaskOut: ...

    async def delete_task(self, task_id: str) -> None: ...

    async def add_checklist_item(self, task_id: str, text: str) -> ChecklistItemOut: ...

    async def set_checklist_item(self, task_id: str, item_id: str, completed: bool) -> ChecklistItemOut: ...

    async def add_comment(self, task_id: str, author_name: str, content: str) -> CommentOut: ...

    async def add_label(self, task_id: str, name: str, color: str) -> LabelOut: ...

    async def remove_label(self, task_id: str, name: str) -> None: ...

    async def add_assignee(self, task_id: str, user_id: str, initials: str) -> AssigneeOut: ...

    async def remove_assignee(self, task_id: str, user_id: str) -> None: ...

    async def create_attachment(
        self, task_id: str, name: str, url: str,
        content_type: Optional[str] = None, size: int = 0,
    ) -> AttachmentOut: ...


def _detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    return str(detail) if detail else resp.reason_phrase or f"HTTP {resp.status_code}"


class HttpPersistenceService:
    """PersistenceService over HTTP using a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, api_prefix: str = "/api/v1"):
        self.client = client
        self.api_prefix = api_prefix.rstrip("/")

    @classmethod
    def from_env(cls) -> "HttpPersistenceService":
        client = httpx.AsyncClient(base_url=BOARDS_API_URL, timeout=BOARDS_API_TIMEOUT)
        return cls(client)

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self) -> "HttpPersistenceService":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, *, write: bool = False, **kwargs) -> Any:
        error_cls = WriteError if write else LoadError
        url = f"{self.api_prefix}{path}"
        try:
            resp = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise error_cls(f"{method} {url} failed: {e}") from e

        if resp.status_code == 404:
            raise NotFound(_detail(resp))
        if resp.is_error:
            logger.warning(f"{method} {url} → {resp.status_code}")
            raise error_cls(_detail(resp), status_code=resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise error_cls(f"{method} {url} returned invalid JSON") from e

    @staticmethod
    def _parse(model, payload: Any, error_cls=LoadError):
        try:
            if isinstance(model, TypeAdapter):
                return model.validate_python(payload)
            return model.model_validate(payload)
        except PydanticValidationError as e:
            raise error_cls(f"Malformed payload from persistence service: {e}") from e

    # --- Boards & columns ---

    async def get_board_by_type(self, board_type: str) -> BoardOut:
        data = await self._request("GET", "/boards", params={"type": board_type})
        return self._parse(BoardOut, data)

    async def get_columns(self, board_id: str) -> List[ColumnOut]:
        data = await self._request("GET", f"/boards/{board_id}/columns")
        return self._parse(_columns_adapter, data)

    async def create_column(self, board_id: str, title: str, position: int) -> ColumnOut:
        data = await self._request(
            "POST", f"/boards/{board_id}/columns",
            json={"title": title, "position": position}, write=True,
        )
        return self._parse(ColumnOut, data, WriteError)

    async def create_default_columns(
        self, board_id: str, titles: Sequence[str], start: int = 0,
    ) -> List[ColumnOut]:
        """Insert the columns one by one, in order, at positions start, start+1, ..."""
        created = []
        for position, title in enumerate(titles, start=start):
            created.append(await self.create_column(board_id, title, position))
        return created

    # --- Tasks ---

    async def get_tasks_with_details(self, column_ids: Sequence[str]) -> List[TaskOut]:
        if not column_ids:
            return []
        data = await self._request("GET", "/tasks", params=[("column_id", cid) for cid in column_ids])
        return self._parse(_tasks_adapter, data)

    async def create_task(
        self, column_id: str, title: str, priority: TaskPriority,
        description: str = "", due_date: Optional[date] = None,
        position: Optional[int] = None,
    ) -> TaskOut:
        payload = {
            "column_id": column_id,
            "title": title,
            "priority": TaskPriority(priority).value,
            "description": description or "",
            "due_date": due_date.isoformat() if due_date else None,
            "position": position,
        }
        data = await self._request("POST", "/tasks", json=payload, write=True)
        return self._parse(TaskOut, data, WriteError)

    async def update_task(
        self, task_id: str, title: str, description: str,
        priority: TaskPriority, due_date: Optional[date],
    ) -> TaskOut:
        payload = {
            "title": title,
            "description": description or "",
            "priority": TaskPriority(priority).value,
            "due_date": due_date.isoformat() if due_date else None,
        }
        data = await self._request("PUT", f"/tasks/{task_id}", json=payload, write=True)
        return self._parse(TaskOut, data, WriteError)

    async def move_task(self, task_id: str, column_id: str, position: Optional[int] = None) -> TaskOut:
        data = await self._request(
            "POST", f"/tasks/{task_id}/move",
            json={"column_id": column_id, "position": position}, write=True,
        )
        return self._parse(TaskOut, data, WriteError)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}", write=True)

    # --- Checklist & comments ---

    async def add_checklist_item(self, task_id: str, text: str) -> ChecklistItemOut:
        data = await self._request("POST", f"/tasks/{task_id}/checklist", json={"text": text}, write=True)
        return self._parse(ChecklistItemOut, data, WriteError)

    async def set_checklist_item(self, task_id: str, item_id: str, completed: bool) -> ChecklistItemOut:
        data = await self._request(
            "PATCH", f"/tasks/{task_id}/checklist/{item_id}",
            json={"completed": completed}, write=True,
        )
        return self._parse(ChecklistItemOut, data, WriteError)

    async def add_comment(self, task_id: str, author_name: str, content: str) -> CommentOut:
        data = await self._request(
            "POST", f"/tasks/{task_id}/comments",
            json={"author_name": author_name, "content": content}, write=True,
        )
        return self._parse(CommentOut, data, WriteError)

    # --- Labels, assignees, attachments ---

    async def add_label(self, task_id: str, name: str, color: str) -> LabelOut:
        data = await self._request(
            "POST", f"/tasks/{task_id}/labels", json={"name": name, "color": color}, write=True,
        )
        return self._parse(LabelOut, data, WriteError)

    async def remove_label(self, task_id: str, name: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}/labels/{quote(name, safe='')}", write=True)

    async def add_assignee(self, task_id: str, user_id: str, initials: str) -> AssigneeOut:
        data = await self._request(
            "POST", f"/tasks/{task_id}/assignees",
            json={"user_id": user_id, "user_initials": initials}, write=True,
        )
        return self._parse(AssigneeOut, data, WriteError)

    async def remove_assignee(self, task_id: str, user_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}/assignees/{quote(user_id, safe='')}", write=True)

    async def create_attachment(
        self, task_id: str, name: str, url: str,
        content_type: Optional[str] = None, size: int = 0,
    ) -> AttachmentOut:
        payload = {"name": name, "url": url, "content_type": content_type, "size": size}
        data = await self._request("POST", f"/tasks/{task_id}/attachments", json=payload, write=True)
        return self._parse(AttachmentOut, data, WriteError)
