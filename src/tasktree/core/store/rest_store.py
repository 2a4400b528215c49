"""RecordStore REST 实现 -- PostgREST 兼容的表接口

GET/POST/PATCH/DELETE /rest/v1/<table>，过滤条件使用 `列=eq.值`，
写操作携带 `Prefer: return=representation` 以拿回存储端分配的 id/created_at。
"""

from typing import Any

import httpx
import structlog

from ..exceptions import RecordNotFoundError, StoreError, StoreUnreachableError
from ..models.records import CategoryRecord, TaskRecord

log = structlog.get_logger()

# 连接类异常类型集合（转换为 StoreUnreachableError）
_CONNECTION_ERROR_TYPES = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
)

_RETURN_REPRESENTATION = {"Prefer": "return=representation"}


class RestRecordStore:
    """RecordStore 的 HTTP 实现

    所有请求共享一个 httpx.AsyncClient；transport 参数仅用于测试注入。
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化 REST 客户端

        Args:
            base_url: 端点基础 URL（不含 /rest/v1）
            api_key: 端点访问密钥，同时作为默认 bearer token
            timeout_s: 单次请求传输层超时（秒）
            transport: 自定义 httpx transport
        """
        self._base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers=headers,
            timeout=timeout_s,
            transport=transport,
        )

    def set_access_token(self, token: str) -> None:
        """切换为登录用户的 access token（行级权限按该 token 生效）"""
        self._client.headers["Authorization"] = f"Bearer {token}"

    async def select_categories(self, user_id: str) -> list[CategoryRecord]:
        rows = await self._request(
            "GET",
            "/categories",
            params={
                "select": "*",
                "user_id": f"eq.{user_id}",
                "order": "created_at.asc",
            },
        )
        return [CategoryRecord.model_validate(row) for row in rows]

    async def select_tasks(self, user_id: str) -> list[TaskRecord]:
        rows = await self._request(
            "GET",
            "/tasks",
            params={
                "select": "*",
                "user_id": f"eq.{user_id}",
                "order": "position.asc",
            },
        )
        return [TaskRecord.model_validate(row) for row in rows]

    async def insert_category(
        self,
        user_id: str,
        name: str,
        color: str,
    ) -> CategoryRecord:
        rows = await self._request(
            "POST",
            "/categories",
            json={"user_id": user_id, "name": name, "color": color},
            headers=_RETURN_REPRESENTATION,
        )
        return CategoryRecord.model_validate(self._single(rows, "categories"))

    async def delete_category(self, category_id: str) -> None:
        """删除分类；级联删除由服务端外键负责"""
        await self._request("DELETE", "/categories", params={"id": f"eq.{category_id}"})

    async def insert_task(
        self,
        user_id: str,
        category_id: str,
        text: str,
        position: int,
    ) -> TaskRecord:
        rows = await self._request(
            "POST",
            "/tasks",
            json={
                "user_id": user_id,
                "category_id": category_id,
                "text": text,
                "completed": False,
                "position": position,
            },
            headers=_RETURN_REPRESENTATION,
        )
        return TaskRecord.model_validate(self._single(rows, "tasks"))

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        rows = await self._request(
            "PATCH",
            "/tasks",
            params={"id": f"eq.{task_id}"},
            json=fields,
            headers=_RETURN_REPRESENTATION,
        )
        if not rows:
            raise RecordNotFoundError("tasks", task_id)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", "/tasks", params={"id": f"eq.{task_id}"})

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> list[dict[str, Any]]:
        """发送请求，返回 JSON 行列表（无响应体时返回空列表）

        Raises:
            StoreUnreachableError: 连接失败或超时
            StoreError: 服务端返回非 2xx 或其他传输错误
        """
        try:
            response = await self._client.request(method, path, **kwargs)
        except _CONNECTION_ERROR_TYPES as e:
            raise StoreUnreachableError(self._base_url, e) from e
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} 请求失败: {e}") from e

        log.debug(
            "rest_store_response",
            method=method,
            path=path,
            status_code=response.status_code,
        )
        if response.is_error:
            raise StoreError(
                f"{method} {path} 返回 {response.status_code}: {self._error_message(response)}",
                recoverable=response.status_code >= 500,
            )

        if response.status_code == 204 or not response.content:
            return []
        body = response.json()
        if isinstance(body, dict):
            return [body]
        return body

    @staticmethod
    def _single(rows: list[dict[str, Any]], table: str) -> dict[str, Any]:
        if len(rows) != 1:
            raise StoreError(f"{table} 插入应返回 1 行，实际 {len(rows)} 行")
        return rows[0]

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """提取 PostgREST 错误体中的 message 字段"""
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            return str(body.get("message") or body)
        return str(body)[:200]
