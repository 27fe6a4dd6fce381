# copyfactory/infra/__init__.py
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, Sequence

from copyfactory.config import RetryOptions
from copyfactory.infra.http_client import HttpClient, is_host_failure


# Upper layers depend on this port rather than on the concrete HttpClient
class HttpPort(Protocol):
    retry_opts: RetryOptions

    async def request(self, method: str, url: str, *, params: Optional[Mapping[str, Any]] = None,
                      json_body: Any = None, headers: Optional[Mapping[str, str]] = None,
                      extended_timeout: bool = False, timeout: Optional[float] = None) -> Any: ...

    async def request_with_failover(self, method: str, path: str, hosts: Sequence[str], *,
                                    params: Optional[Mapping[str, Any]] = None, json_body: Any = None,
                                    headers: Optional[Mapping[str, str]] = None,
                                    extended_timeout: bool = False, timeout: Optional[float] = None) -> Any: ...

    async def close(self) -> None: ...


__all__ = ["HttpClient", "HttpPort", "RetryOptions", "is_host_failure"]
