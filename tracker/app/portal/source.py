"""Portal markup sources.

The coordinator only depends on the ``MarkupSource`` protocol. The HTTP
implementation talks to the institution's portal with an authenticated
``httpx.AsyncClient`` (cookies and headers are the caller's concern).
"""

import time
from datetime import datetime
from typing import Optional, Protocol

import httpx

from tracker.app.core.config import settings
from tracker.app.core.logging import get_logger
from tracker.app.exceptions import PortalFetchError, PortalNetworkError
from tracker.app.portal.retry import RetryPolicy, with_retry
from tracker.app.schemas import CacheKey

logger = get_logger(__name__)

# Shorter register bodies are error stubs, not a table
MIN_REGISTER_LENGTH = 50


class MarkupSource(Protocol):
    async def fetch_summary(self, key: CacheKey) -> str: ...

    async def fetch_register(self, key: CacheKey) -> str: ...


def portal_timestamp(now: Optional[datetime] = None) -> str:
    """Format the request timestamp the portal expects (yyMMddHHmmss + microseconds).

    Examples:
        >>> portal_timestamp(datetime(2025, 7, 1, 9, 5, 3, 42))
        '250701090503000042'
    """
    return (now or datetime.now()).strftime("%y%m%d%H%M%S%f")


class HttpMarkupSource:
    """Fetches summary and register markup over HTTP.

    Retryable failures (timeouts, connection errors, 5xx) are retried with
    exponential backoff. A non-2xx answer that survives the retries becomes
    ``PortalFetchError``; transport errors propagate unchanged so callers
    can classify them as network failures.
    """

    SUMMARY_PATH = "/mobile/commonPage"
    REGISTER_PATH = "/chalkpadpro/studentDetails/getAttendanceRegister"
    REQUESTED_WITH = "codebrigade.chalkpadpro.app"

    def __init__(
        self,
        client: httpx.AsyncClient,
        portal_domain: Optional[str] = None,
        role_id: str = "",
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.client = client
        self.portal_domain = portal_domain or settings.portal_domain
        self.role_id = role_id
        self.retry_policy = retry_policy or RetryPolicy.from_settings()

    def _url(self, key: CacheKey, path: str) -> str:
        return f"https://{key.institution}.{self.portal_domain}{path}"

    async def _post(self, url: str, data: dict[str, str], headers: dict[str, str]) -> httpx.Response:
        response = await self.client.post(url, data=data, headers=headers)
        response.raise_for_status()
        return response

    async def _send(
        self,
        key: CacheKey,
        path: str,
        data: dict[str, str],
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        post = with_retry(self.retry_policy)(self._post)
        start = time.perf_counter()
        try:
            response = await post(self._url(key, path), data, headers or {})
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise PortalFetchError(
                f"Portal returned HTTP {status_code} for {path}", status_code
            ) from exc
        except (httpx.TimeoutException, httpx.NetworkError) as exc:
            raise PortalNetworkError(
                f"Portal unreachable ({type(exc).__name__}) for {path}"
            ) from exc

        logger.debug(
            f"POST {path} -> {response.status_code}",
            extra={
                **key.log_context(),
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            },
        )
        return response

    async def fetch_summary(self, key: CacheKey) -> str:
        """Fetch the attendance summary ("common page") markup.

        Raises:
            PortalFetchError: On a non-2xx answer or a body that is not JSON.
            PortalNetworkError: When the portal stays unreachable after retries.
        """
        response = await self._send(
            key,
            self.SUMMARY_PATH,
            {
                "commonPageId": settings.portal_common_page_id,
                "userId": key.user_id,
                "sessionId": key.session_id,
                "roleId": self.role_id,
                "timeStamp": portal_timestamp(),
            },
            headers={"X-Requested-With": self.REQUESTED_WITH},
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise PortalFetchError(
                "Summary response is not JSON", response.status_code
            ) from exc

        content = body.get("content") if isinstance(body, dict) else None
        return content or ""

    async def fetch_register(self, key: CacheKey) -> str:
        """Fetch the per-lecture register markup.

        Raises:
            PortalFetchError: On a non-2xx answer or an empty register.
            PortalNetworkError: When the portal stays unreachable after retries.
        """
        response = await self._send(
            key,
            self.REGISTER_PATH,
            {"studentId": key.user_id, "sessionId": key.session_id},
        )
        markup = response.text
        if len(markup.strip()) < MIN_REGISTER_LENGTH:
            raise PortalFetchError("Empty attendance register response", response.status_code)
        return markup
