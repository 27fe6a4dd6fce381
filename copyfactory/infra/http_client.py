# copyfactory/infra/http_client.py
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence
from urllib.parse import urlencode

import aiohttp

from copyfactory.config import RetryOptions
from copyfactory.errors import (
    ApiError,
    InternalError,
    RequestTimeoutError,
    TooManyRequestsError,
    map_response,
)
from copyfactory.utils.logger import logger
from copyfactory.utils.time import format_iso, utc_now

JSON_SEPARATORS = (",", ":")


class _RetryAfter(Exception):
    """202 Accepted with Retry-After: the server is still processing the request."""

    def __init__(self, delay: float, url: str):
        super().__init__(f"request accepted, retry after {delay}s")
        self.delay = delay
        self.url = url


def _json_default(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return format_iso(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def _json_dumps_compact(obj: Any) -> str:
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False, default=_json_default)


def _query_value(v: Any) -> Any:
    if isinstance(v, Enum):
        return v.value
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, datetime):
        return format_iso(v)
    if isinstance(v, (list, tuple)):
        return [_query_value(x) for x in v]
    return v


def _build_query(params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return ""
    cleaned = {k: _query_value(v) for k, v in params.items() if v is not None}
    if not cleaned:
        return ""
    return "?" + urlencode(cleaned, doseq=True, safe=":/")


def is_host_failure(err: Exception) -> bool:
    """Connection refused, DNS failure, timeout: the host never answered."""
    return isinstance(err, RequestTimeoutError) or (isinstance(err, InternalError) and err.status is None)


class HttpClient:
    """
    aiohttp based transport with timeouts, exponential backoff and typed errors.
    """

    def __init__(self,
                 request_timeout: float = 10.0,
                 extended_timeout: float = 70.0,
                 retry_opts: Optional[RetryOptions] = None,
                 *,
                 session: Optional[aiohttp.ClientSession] = None,
                 ) -> None:
        self.request_timeout = request_timeout
        self.extended_timeout = extended_timeout
        self.retry_opts = retry_opts or RetryOptions()
        self.session = session
        self._owned_session = session is None

        logger.debug(
            f"HttpClient init timeout={request_timeout}s extended_timeout={extended_timeout}s "
            f"retries={self.retry_opts.retries} delay=[{self.retry_opts.min_delay_in_seconds}, "
            f"{self.retry_opts.max_delay_in_seconds}]s"
        )

    # ---- async context manager ----------------------------------------------------
    async def __aenter__(self) -> "HttpClient":
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(raise_for_status=False, trust_env=True)
            self._owned_session = True
        return self.session

    async def close(self) -> None:
        if self._owned_session and self.session is not None and not self.session.closed:
            await self.session.close()

    # ---- clock / sleep (patched in tests) -----------------------------------------
    def _now(self) -> datetime:
        return utc_now()

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))

    # ---- public API ----------------------------------------------------------------
    async def request(
            self,
            method: str,
            url: str,
            *,
            params: Optional[Mapping[str, Any]] = None,
            json_body: Any = None,
            headers: Optional[Mapping[str, str]] = None,
            extended_timeout: bool = False,
            timeout: Optional[float] = None,
        ) -> Any:
        """
        Single entry point for one-shot requests.
        - 2xx: decoded JSON (or raw text / None)
        - 4xx: typed error, never retried
        - 5xx / 429 / network / timeout: retried with backoff, last error raised
        """
        full_url = url + _build_query(params)
        return await self._with_retries(
            lambda: self._send(method, full_url, json_body=json_body, headers=headers,
                               extended_timeout=extended_timeout, timeout=timeout)
        )

    async def request_with_failover(
            self,
            method: str,
            path: str,
            hosts: Sequence[str],
            *,
            params: Optional[Mapping[str, Any]] = None,
            json_body: Any = None,
            headers: Optional[Mapping[str, str]] = None,
            extended_timeout: bool = False,
            timeout: Optional[float] = None,
        ) -> Any:
        """
        Same as request(), but every attempt walks the candidate hosts in order and moves
        on to the next host when one does not answer at all.
        """
        if not hosts:
            raise InternalError("No hosts available for the request", url=path)
        suffix = path + _build_query(params)

        async def attempt_hosts() -> Any:
            last_err: Optional[ApiError] = None
            for host in hosts:
                try:
                    return await self._send(method, host.rstrip("/") + suffix, json_body=json_body,
                                            headers=headers, extended_timeout=extended_timeout,
                                            timeout=timeout)
                except ApiError as err:
                    if not is_host_failure(err):
                        raise
                    logger.warning(f"Host {host} failed ({err}), trying next host")
                    last_err = err
            raise last_err

        return await self._with_retries(attempt_hosts)

    # ---- internals -----------------------------------------------------------------
    async def _with_retries(self, send) -> Any:
        opts = self.retry_opts
        deadline = self._now() + timedelta(seconds=opts.retries * opts.max_delay_in_seconds)
        attempt = 0
        while True:
            attempt += 1
            try:
                return await send()
            except _RetryAfter as e:
                if attempt > opts.retries:
                    raise RequestTimeoutError(
                        "Timed out waiting for the server to complete the request", url=e.url
                    ) from e
                await self._sleep(e.delay)
            except ApiError as err:
                delay = self._retry_delay(err, attempt, deadline)
                if delay is None:
                    raise
                logger.warning(
                    f"{type(err).__name__}: {err}, retry {attempt}/{opts.retries} in {delay:.2f}s"
                )
                await self._sleep(delay)

    def _retry_delay(self, err: ApiError, attempt: int, deadline: datetime) -> Optional[float]:
        if not err.retryable or attempt > self.retry_opts.retries:
            return None
        delay = self.retry_opts.delay(attempt)
        if isinstance(err, TooManyRequestsError) and err.metadata.recommended_retry_time:
            retry_time = err.metadata.recommended_retry_time
            if retry_time > deadline:
                return None
            delay = max(delay, (retry_time - self._now()).total_seconds())
        return delay

    async def _send(
            self,
            method: str,
            url: str,
            *,
            json_body: Any = None,
            headers: Optional[Mapping[str, str]] = None,
            extended_timeout: bool = False,
            timeout: Optional[float] = None,
        ) -> Any:
        session = await self._get_session()
        method = method.upper()
        body_str = _json_dumps_compact(json_body) if json_body is not None else None
        req_headers: Dict[str, str] = {"Content-Type": "application/json", "Accept": "application/json"}
        if headers:
            req_headers.update(headers)
        timeout_s = timeout if timeout is not None else (
            self.extended_timeout if extended_timeout else self.request_timeout)

        logger.debug(f"{method} {url}")
        try:
            async with session.request(
                method,
                url,
                data=body_str,
                headers=req_headers,
                timeout=aiohttp.ClientTimeout(total=timeout_s),
            ) as resp:
                text = await resp.text()
                status = resp.status
                retry_after = resp.headers.get("Retry-After")
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Request timed out after {timeout_s}s", url=url) from e
        except aiohttp.ClientError as e:
            raise InternalError(f"Network error: {e}", url=url) from e

        body = self._decode(text)
        if status == 202 and retry_after:
            raise _RetryAfter(self._parse_retry_after(retry_after), url)
        if status >= 400:
            raise map_response(status, body, url)
        return body

    @staticmethod
    def _decode(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    def _parse_retry_after(self, value: str) -> float:
        try:
            return float(value)
        except ValueError:
            pass
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return self.retry_opts.min_delay_in_seconds
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return max((when - self._now()).total_seconds(), 0.0)
