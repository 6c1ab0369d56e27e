from __future__ import annotations

from typing import Any

import httpx

from aide.config import GoogleConfig
from aide.google.auth import GoogleAuth
from aide.google.base import GoogleRESTClient, path_segment

MAX_TASKS = 100


class TasksClient(GoogleRESTClient):
    api_name = "Google Tasks"

    def __init__(
        self,
        config: GoogleConfig,
        auth: GoogleAuth,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            auth,
            config.tasks_base_url,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )
        self.default_list_id = config.task_list_id

    async def list_task_lists(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/users/@me/lists")
        return list((data or {}).get("items") or [])

    async def list_tasks(self, list_id: str | None = None, include_completed: bool = False) -> list[dict[str, Any]]:
        flag = "true" if include_completed else "false"
        data = await self._request(
            "GET",
            f"{self._list_path(list_id)}/tasks",
            params={"showCompleted": flag, "showHidden": flag, "maxResults": str(MAX_TASKS)},
        )
        return list((data or {}).get("items") or [])

    async def create_task(self, fields: dict[str, Any], list_id: str | None = None) -> dict[str, Any]:
        return await self._request("POST", f"{self._list_path(list_id)}/tasks", body=fields)

    async def update_task(self, task_id: str, fields: dict[str, Any], list_id: str | None = None) -> dict[str, Any]:
        return await self._request(
            "PATCH",
            f"{self._list_path(list_id)}/tasks/{path_segment(task_id)}",
            body=fields,
        )

    async def complete_task(self, task_id: str, list_id: str | None = None) -> dict[str, Any]:
        return await self.update_task(task_id, {"status": "completed"}, list_id)

    async def delete_task(self, task_id: str, list_id: str | None = None) -> None:
        await self._request("DELETE", f"{self._list_path(list_id)}/tasks/{path_segment(task_id)}")

    def _list_path(self, list_id: str | None) -> str:
        return f"/lists/{path_segment(list_id or self.default_list_id)}"
