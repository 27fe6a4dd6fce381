# copyfactory/streaming/transaction_manager.py
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from copyfactory.config import RetryOptions
from copyfactory.models import Transaction
from copyfactory.streaming.registry import ListenerRegistry
from copyfactory.utils.time import next_millisecond

if TYPE_CHECKING:
    from copyfactory.clients.domain_client import DomainClient

STREAM_LIMIT = 1000


def advance_time(cursor: Optional[datetime], events: List[Any]) -> Optional[datetime]:
    """Next startTime: one millisecond after the latest event time."""
    times = [e.time for e in events if e.time is not None]
    if not times:
        return cursor
    nxt = next_millisecond(max(times))
    return nxt if cursor is None else max(cursor, nxt)


class TransactionListenerManager:
    """Transaction streams of strategies (provider side) and subscribers."""

    def __init__(self, domain_client: DomainClient, *, polling_interval: float = 1.0,
                 retry_opts: Optional[RetryOptions] = None) -> None:
        self._domain_client = domain_client
        retry_opts = retry_opts or domain_client.retry_opts
        self._strategy_registry = ListenerRegistry("strategy-transaction", "on_transaction",
                                                   polling_interval=polling_interval, retry_opts=retry_opts)
        self._subscriber_registry = ListenerRegistry("subscriber-transaction", "on_transaction",
                                                     polling_interval=polling_interval, retry_opts=retry_opts)

    @property
    def strategy_transaction_listeners(self) -> Dict[str, Any]:
        return self._strategy_registry.listeners

    @property
    def subscriber_transaction_listeners(self) -> Dict[str, Any]:
        return self._subscriber_registry.listeners

    def add_strategy_transaction_listener(self, listener: Any, strategy_id: str,
                                          start_time: Optional[datetime] = None) -> str:
        return self._strategy_registry.add(
            listener, self._fetcher(f"/users/current/strategies/{strategy_id}/transactions/stream"),
            advance_time, start_time,
        )

    def remove_strategy_transaction_listener(self, listener_id: str) -> None:
        self._strategy_registry.remove(listener_id)

    def add_subscriber_transaction_listener(self, listener: Any, subscriber_id: str,
                                            start_time: Optional[datetime] = None) -> str:
        return self._subscriber_registry.add(
            listener, self._fetcher(f"/users/current/subscribers/{subscriber_id}/transactions/stream"),
            advance_time, start_time,
        )

    def remove_subscriber_transaction_listener(self, listener_id: str) -> None:
        self._subscriber_registry.remove(listener_id)

    async def close(self) -> None:
        await self._strategy_registry.close()
        await self._subscriber_registry.close()

    def _fetcher(self, path: str):
        async def fetch(cursor: Optional[datetime]) -> List[Transaction]:
            resp = await self._domain_client.request_copyfactory(
                "GET", path, params={"startTime": cursor, "limit": STREAM_LIMIT}, extended_timeout=True,
            )
            return [Transaction.from_dict(d) for d in resp or []]
        return fetch
