# copyfactory/streaming/stopout_manager.py
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from copyfactory.config import RetryOptions
from copyfactory.models import StrategyStopout
from copyfactory.streaming.registry import ListenerRegistry

if TYPE_CHECKING:
    from copyfactory.clients.domain_client import DomainClient

STREAM_LIMIT = 1000


def advance_sequence(cursor: Optional[int], stopouts: List[StrategyStopout]) -> Optional[int]:
    """Next previousSequenceNumber: the highest sequence number seen so far."""
    seen = [s.sequence_number for s in stopouts if s.sequence_number is not None]
    if cursor is not None:
        seen.append(cursor)
    return max(seen) if seen else cursor


class StopoutListenerManager:
    """Polls /users/current/stopouts/stream for every registered stopout listener."""

    def __init__(self, domain_client: DomainClient, *, polling_interval: float = 1.0,
                 retry_opts: Optional[RetryOptions] = None) -> None:
        self._domain_client = domain_client
        self._registry = ListenerRegistry("stopout", "on_stopout", polling_interval=polling_interval,
                                          retry_opts=retry_opts or domain_client.retry_opts)

    @property
    def registry(self) -> ListenerRegistry:
        return self._registry

    @property
    def stopout_listeners(self) -> Dict[str, Any]:
        return self._registry.listeners

    def add_stopout_listener(self, listener: Any, account_id: Optional[str] = None,
                             strategy_id: Optional[str] = None, sequence_number: Optional[int] = None) -> str:
        """
        Stream stopouts of one subscriber and/or strategy (all of them when both are None),
        starting after `sequence_number`. Returns the listener id.
        """
        async def fetch(cursor: Optional[int]) -> List[StrategyStopout]:
            resp = await self._domain_client.request_copyfactory(
                "GET", "/users/current/stopouts/stream",
                params={
                    "previousSequenceNumber": cursor,
                    "subscriberId": account_id,
                    "strategyId": strategy_id,
                    "limit": STREAM_LIMIT,
                },
                extended_timeout=True,
            )
            return [StrategyStopout.from_dict(d) for d in resp or []]

        return self._registry.add(listener, fetch, advance_sequence, sequence_number)

    def remove_stopout_listener(self, listener_id: str) -> None:
        self._registry.remove(listener_id)

    async def close(self) -> None:
        await self._registry.close()
