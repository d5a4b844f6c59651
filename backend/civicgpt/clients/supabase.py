import logging
import re
from typing import Any, Iterable, Optional, Union

from .base import BaseAPIClient, APIError
from ..config import get_settings

logger = logging.getLogger(__name__)

Scalar = Union[str, int, float]

_PLAIN_COLUMN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_column(column: str) -> str:
    if _PLAIN_COLUMN.match(column):
        return column
    return f'"{column}"'


def _quote_value(value: Scalar) -> str:
    if isinstance(value, (int, float)):
        return str(value)
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def in_list(values: Iterable[Scalar]) -> str:
    return "in.(" + ",".join(_quote_value(v) for v in values) + ")"


def ilike_any(columns: Iterable[str], keywords: Iterable[str]) -> str:
    """Build a PostgREST ``or`` group matching any keyword in any column."""
    conditions = [
        f"{quote_column(column)}.ilike.*{keyword}*"
        for keyword in keywords
        for column in columns
    ]
    return "(" + ",".join(conditions) + ")"


class SupabaseClient(BaseAPIClient):
    """Thin PostgREST client for the legislative database."""

    cache_responses = False

    def __init__(self, url: Optional[str] = None, service_key: Optional[str] = None):
        settings = get_settings()
        self.url = (url if url is not None else settings.supabase_url).rstrip("/")
        self.service_key = service_key if service_key is not None else settings.supabase_service_key
        super().__init__(base_url=f"{self.url}/rest/v1", timeout=20.0)

    @property
    def configured(self) -> bool:
        return bool(self.url and self.service_key)

    def _get_headers(self) -> dict:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Accept": "application/json",
        }

    async def select(
        self,
        table: str,
        columns: str = "*",
        *,
        eq: Optional[dict[str, Scalar]] = None,
        neq: Optional[dict[str, Scalar]] = None,
        in_: Optional[dict[str, Iterable[Scalar]]] = None,
        or_: Optional[str] = None,
        order: Optional[list[tuple[str, bool]]] = None,
        nulls_last: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        if not self.configured:
            raise APIError("Supabase credentials are not configured", status_code=503)

        params: list[tuple[str, str]] = [("select", columns)]
        for column, value in (eq or {}).items():
            params.append((quote_column(column), f"eq.{value}"))
        for column, value in (neq or {}).items():
            params.append((quote_column(column), f"neq.{value}"))
        for column, values in (in_ or {}).items():
            params.append((quote_column(column), in_list(values)))
        if or_:
            params.append(("or", or_))
        if order:
            parts = []
            for column, ascending in order:
                part = f"{quote_column(column)}.{'asc' if ascending else 'desc'}"
                if nulls_last:
                    part += ".nullslast"
                parts.append(part)
            params.append(("order", ",".join(parts)))
        if limit is not None:
            params.append(("limit", str(limit)))

        url = f"{self.base_url}/{table}"
        logger.debug("Supabase select %s %s", table, params)

        data = await self._request_with_retry(
            method="GET",
            url=url,
            headers=self._get_headers(),
            params=params,
        )
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    async def rpc(self, function: str, payload: dict) -> Any:
        if not self.configured:
            raise APIError("Supabase credentials are not configured", status_code=503)

        url = f"{self.base_url}/rpc/{function}"
        return await self._request_with_retry(
            method="POST",
            url=url,
            headers={**self._get_headers(), "Content-Type": "application/json"},
            json=payload,
        )
