"""Task Store Client: task persistence calls against the backend.

Every call names both the task id (where there is one) and the owning user
id, so the backend rejects requests aimed at somebody else's task instead
of quietly acting on them.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from .errors import AuthRequiredError, StoreError, StoreErrorReason
from .gateway import SessionGateway, error_code
from .models import Task, TaskStatus

logger = logging.getLogger(__name__)

_task_list = TypeAdapter(List[Task])

_STATUS_REASONS = {
    403: StoreErrorReason.PERMISSION_DENIED,
    404: StoreErrorReason.NOT_FOUND,
    409: StoreErrorReason.CONSTRAINT_VIOLATION,
    422: StoreErrorReason.CONSTRAINT_VIOLATION,
}


class TaskStoreClient:
    def __init__(self, http: httpx.AsyncClient, gateway: SessionGateway):
        self.http = http
        self.gateway = gateway

    async def _request(self, method: str, url: str, user_id: str, **kwargs: Any) -> httpx.Response:
        params = {"user_id": user_id}
        try:
            response = await self.http.request(
                method, url, params=params, headers=self.gateway.auth_headers(), **kwargs
            )
        except httpx.TransportError as e:
            logger.warning("store request failed method=%s url=%s error=%s", method, url, e)
            raise StoreError(StoreErrorReason.NETWORK_FAILURE, str(e)) from e
        if response.status_code == 401:
            await self.gateway.handle_unauthorized()
            raise AuthRequiredError("session is no longer valid")
        if not response.is_success:
            code = error_code(response)
            try:
                reason = StoreErrorReason(code)
            except ValueError:
                reason = _STATUS_REASONS.get(response.status_code, StoreErrorReason.UNKNOWN)
            logger.info("store request rejected method=%s url=%s status=%s reason=%s",
                        method, url, response.status_code, reason.value)
            raise StoreError(reason, code)
        return response

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.warning("store reply is not JSON status=%s", response.status_code)
            raise StoreError(StoreErrorReason.UNKNOWN, "malformed response payload") from e

    @staticmethod
    def _task(payload: Any) -> Task:
        try:
            return Task.model_validate(payload)
        except PydanticValidationError as e:
            raise StoreError(StoreErrorReason.UNKNOWN, "malformed task payload") from e

    async def list(self, user_id: str) -> List[Task]:
        """Return the user's tasks, newest first (backend ordering)."""
        response = await self._request("GET", "/todos", user_id)
        try:
            tasks = _task_list.validate_python(self._body(response))
        except PydanticValidationError as e:
            raise StoreError(StoreErrorReason.UNKNOWN, "malformed task list payload") from e
        logger.info("fetched %d tasks for user_id=%s", len(tasks), user_id)
        return tasks

    async def create(self, user_id: str, title: str, description: Optional[str] = None,
                     status: TaskStatus = TaskStatus.IN_PROGRESS) -> Task:
        body = {"title": title, "description": description or "", "status": status.value}
        response = await self._request("POST", "/todos", user_id, json=body)
        task = self._task(self._body(response))
        logger.info("created task id=%s", task.id)
        return task

    async def update(self, task_id: str, user_id: str, fields: Dict[str, Any]) -> Task:
        """Update title / description / status of a task."""
        body = {}
        for key in ("title", "description", "status"):
            if key in fields and fields[key] is not None:
                value = fields[key]
                body[key] = value.value if isinstance(value, TaskStatus) else value
        response = await self._request("PATCH", f"/todos/{task_id}", user_id, json=body)
        return self._task(self._body(response))

    async def update_status(self, task_id: str, user_id: str, status: TaskStatus) -> Task:
        response = await self._request(
            "PATCH", f"/todos/{task_id}/status", user_id, json={"status": status.value}
        )
        return self._task(self._body(response))

    async def delete(self, task_id: str, user_id: str) -> None:
        await self._request("DELETE", f"/todos/{task_id}", user_id)
        logger.info("deleted task id=%s", task_id)
