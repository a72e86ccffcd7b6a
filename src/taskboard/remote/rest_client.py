# src/taskboard/remote/rest_client.py

"""
PostgREST / Supabase REST backend.

Implements the task source, subtask source and member directory ports over
httpx.AsyncClient. Every write asks for `Prefer: return=representation`, so
the confirmed rows come back in the response; an empty representation means
the scoping filters matched nothing.

Error mapping:
- transport failures and non-2xx responses -> RemoteError(code=<backend code>)
- code 42703 (undefined column)            -> SchemaMismatchError
- code 42P01 on project_members            -> empty member list
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from ..core.errors import UNDEFINED_COLUMN, UNDEFINED_TABLE, RemoteError, SchemaMismatchError
from ..core.ports import TaskPatch
from ..tasks.task_models import SUBTASK_COLUMNS, FetchStrategy, Member, Subtask, Task

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
SUBTASKS_TABLE = "task_subtasks"
MEMBERS_TABLE = "project_members"

_RETURN_REPRESENTATION = {"Prefer": "return=representation"}


def _eq(value: str) -> str:
    return f"eq.{value}"


def _in(values: Iterable[str]) -> str:
    quoted = ",".join('"' + str(v).replace('"', '\\"') + '"' for v in values)
    return f"in.({quoted})"


class RestBackend:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("RestBackend needs a base URL")

        rest_root = base_url.rstrip("/")
        if not rest_root.endswith("/rest/v1"):
            rest_root = f"{rest_root}/rest/v1"

        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Accept": "application/json",
        }

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=rest_root,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        logger.info("RestBackend ready base=%s", rest_root)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RestBackend:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ---- low-level ----

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        try:
            resp = await self._client.request(method, f"/{table}", params=params, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("%s /%s transport error: %s", method, table, e)
            raise RemoteError(f"Network error: {e}") from e

        if resp.is_error:
            raise self._error_from(resp, method, table)

        if resp.status_code == 204 or not resp.content:
            return []

        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from /{table}") from e

        if isinstance(data, dict):
            return [data]
        if isinstance(data, list):
            return [row for row in data if isinstance(row, dict)]
        return []

    @staticmethod
    def _error_from(resp: httpx.Response, method: str, table: str) -> RemoteError:
        code: str | None = None
        message = f"HTTP {resp.status_code}"
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = str(body["code"]) if body.get("code") is not None else None
            message = str(body.get("message") or body.get("error") or message)

        logger.warning("%s /%s failed status=%s code=%s: %s", method, table, resp.status_code, code, message)
        if code == UNDEFINED_COLUMN:
            return SchemaMismatchError(message, code=code)
        return RemoteError(message, code=code)

    # ---- tasks ----

    async def list_tasks(self, project_id: str, *, strategy: FetchStrategy = FetchStrategy.FULL) -> list[Task]:
        rows = await self._request(
            "GET",
            TASKS_TABLE,
            params={
                "select": strategy.select,
                "project_id": _eq(project_id),
                "order": "inserted_at.desc",
            },
        )
        return [Task.from_record(r) for r in rows]

    async def insert_task(self, payload: TaskPatch) -> Task | None:
        rows = await self._request("POST", TASKS_TABLE, json=[payload], headers=_RETURN_REPRESENTATION)
        return Task.from_record(rows[0]) if rows else None

    async def update_task(self, task_id: str, project_id: str, patch: TaskPatch) -> Task | None:
        rows = await self._request(
            "PATCH",
            TASKS_TABLE,
            params={"id": _eq(task_id), "project_id": _eq(project_id)},
            json=patch,
            headers=_RETURN_REPRESENTATION,
        )
        return Task.from_record(rows[0]) if rows else None

    async def update_tasks(self, task_ids: Iterable[str], project_id: str, patch: TaskPatch) -> list[Task]:
        ids = list(task_ids)
        if not ids:
            return []
        rows = await self._request(
            "PATCH",
            TASKS_TABLE,
            params={"id": _in(ids), "project_id": _eq(project_id)},
            json=patch,
            headers=_RETURN_REPRESENTATION,
        )
        return [Task.from_record(r) for r in rows]

    async def delete_task(self, task_id: str, project_id: str) -> bool:
        rows = await self._request(
            "DELETE",
            TASKS_TABLE,
            params={"id": _eq(task_id), "project_id": _eq(project_id)},
            headers=_RETURN_REPRESENTATION,
        )
        return bool(rows)

    # ---- subtasks ----

    async def list_subtasks(self, task_id: str) -> list[Subtask]:
        rows = await self._request(
            "GET",
            SUBTASKS_TABLE,
            params={"select": SUBTASK_COLUMNS, "task_id": _eq(task_id), "order": "created_at.asc"},
        )
        return [Subtask.from_record(r) for r in rows]

    async def list_subtask_flags(self, project_id: str, *, limit: int = 2000) -> list[tuple[str, bool]]:
        rows = await self._request(
            "GET",
            SUBTASKS_TABLE,
            params={
                "select": "task_id,completed,tasks!inner(project_id)",
                "tasks.project_id": _eq(project_id),
                "limit": str(int(limit)),
            },
        )
        return [(str(r["task_id"]), bool(r.get("completed"))) for r in rows if r.get("task_id") is not None]

    async def create_subtask(self, task_id: str, title: str, *, updated_by: str | None = None) -> Subtask | None:
        rows = await self._request(
            "POST",
            SUBTASKS_TABLE,
            json=[{"task_id": task_id, "title": title, "updated_by": updated_by}],
            headers=_RETURN_REPRESENTATION,
        )
        return Subtask.from_record(rows[0]) if rows else None

    async def update_subtask(self, subtask_id: str, task_id: str, patch: TaskPatch) -> Subtask | None:
        rows = await self._request(
            "PATCH",
            SUBTASKS_TABLE,
            params={"id": _eq(subtask_id), "task_id": _eq(task_id)},
            json=patch,
            headers=_RETURN_REPRESENTATION,
        )
        return Subtask.from_record(rows[0]) if rows else None

    async def delete_subtask(self, subtask_id: str, task_id: str) -> None:
        await self._request(
            "DELETE",
            SUBTASKS_TABLE,
            params={"id": _eq(subtask_id), "task_id": _eq(task_id)},
        )

    # ---- members ----

    async def list_members(self, project_id: str) -> list[Member]:
        try:
            rows = await self._request(
                "GET",
                MEMBERS_TABLE,
                params={
                    "select": "member_id,member_email,role",
                    "project_id": _eq(project_id),
                    "order": "member_email.asc",
                },
            )
        except RemoteError as e:
            if e.code == UNDEFINED_TABLE:
                logger.info("%s table missing; project has no member list", MEMBERS_TABLE)
                return []
            raise

        out: list[Member] = []
        for r in rows:
            member_id = r.get("member_id")
            if not member_id:
                continue
            out.append(
                Member(
                    member_id=str(member_id),
                    label=str(r.get("member_email") or member_id),
                    role=str(r.get("role") or "member"),
                )
            )
        return out
