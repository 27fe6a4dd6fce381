# copyfactory/streaming/user_log_manager.py
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from copyfactory.config import RetryOptions
from copyfactory.enums import LogLevel
from copyfactory.models import UserLogMessage
from copyfactory.streaming.registry import ListenerRegistry
from copyfactory.streaming.transaction_manager import advance_time

if TYPE_CHECKING:
    from copyfactory.clients.domain_client import DomainClient


class UserLogListenerManager:
    """User log streams of strategies and subscribers."""

    def __init__(self, domain_client: DomainClient, *, polling_interval: float = 1.0,
                 retry_opts: Optional[RetryOptions] = None) -> None:
        self._domain_client = domain_client
        retry_opts = retry_opts or domain_client.retry_opts
        self._strategy_registry = ListenerRegistry("strategy-log", "on_user_log",
                                                   polling_interval=polling_interval, retry_opts=retry_opts)
        self._subscriber_registry = ListenerRegistry("subscriber-log", "on_user_log",
                                                     polling_interval=polling_interval, retry_opts=retry_opts)

    @property
    def strategy_log_listeners(self) -> Dict[str, Any]:
        return self._strategy_registry.listeners

    @property
    def subscriber_log_listeners(self) -> Dict[str, Any]:
        return self._subscriber_registry.listeners

    def add_strategy_log_listener(self, listener: Any, strategy_id: str, start_time: Optional[datetime] = None,
                                  limit: Optional[int] = None) -> str:
        path = f"/users/current/strategies/{strategy_id}/user-log/stream"
        return self._strategy_registry.add(listener, self._fetcher(path, {"limit": limit}), advance_time,
                                           start_time)

    def remove_strategy_log_listener(self, listener_id: str) -> None:
        self._strategy_registry.remove(listener_id)

    def add_subscriber_log_listener(self, listener: Any, subscriber_id: str, start_time: Optional[datetime] = None,
                                    strategy_id: Optional[str] = None, position_id: Optional[str] = None,
                                    level: Optional[Union[LogLevel, str]] = None, limit: Optional[int] = None) -> str:
        path = f"/users/current/subscribers/{subscriber_id}/user-log/stream"
        filters = {"strategyId": strategy_id, "positionId": position_id, "level": level, "limit": limit}
        return self._subscriber_registry.add(listener, self._fetcher(path, filters), advance_time, start_time)

    def remove_subscriber_log_listener(self, listener_id: str) -> None:
        self._subscriber_registry.remove(listener_id)

    async def close(self) -> None:
        await self._strategy_registry.close()
        await self._subscriber_registry.close()

    def _fetcher(self, path: str, filters: Dict[str, Any]):
        async def fetch(cursor: Optional[datetime]) -> List[UserLogMessage]:
            resp = await self._domain_client.request_copyfactory(
                "GET", path, params={"startTime": cursor, **filters}, extended_timeout=True,
            )
            return [UserLogMessage.from_dict(d) for d in resp or []]
        return fetch
