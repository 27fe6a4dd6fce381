# copyfactory/clients/history_client.py
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from copyfactory.clients.base import MetaApiClient
from copyfactory.clients.domain_client import DomainClient
from copyfactory.models import Transaction
from copyfactory.streaming.transaction_manager import TransactionListenerManager

DEFAULT_LIMIT = 1000


class HistoryClient(MetaApiClient):
    """
    CopyFactory history API: provider/subscriber transactions and transaction streams.
    """

    def __init__(self, domain_client: DomainClient,
                 transaction_listener_manager: Optional[TransactionListenerManager] = None) -> None:
        super().__init__(domain_client)
        self._transaction_listener_manager = transaction_listener_manager or TransactionListenerManager(domain_client)

    @property
    def transaction_listener_manager(self) -> TransactionListenerManager:
        return self._transaction_listener_manager

    async def get_provided_transactions(self, time_from: datetime, time_till: datetime,
                                        strategy_ids: Optional[Sequence[str]] = None,
                                        subscriber_ids: Optional[Sequence[str]] = None,
                                        offset: int = 0, limit: int = DEFAULT_LIMIT) -> List[Transaction]:
        """Transactions on strategies the current user provides, newest first."""
        if self._is_not_jwt_token():
            self._handle_no_access_error("get_provided_transactions")
        return await self._get_transactions("/users/current/provided-transactions", time_from, time_till,
                                            strategy_ids, subscriber_ids, offset, limit)

    async def get_subscription_transactions(self, time_from: datetime, time_till: datetime,
                                            strategy_ids: Optional[Sequence[str]] = None,
                                            subscriber_ids: Optional[Sequence[str]] = None,
                                            offset: int = 0, limit: int = DEFAULT_LIMIT) -> List[Transaction]:
        """Transactions on strategies the current user is subscribed to."""
        if self._is_not_jwt_token():
            self._handle_no_access_error("get_subscription_transactions")
        return await self._get_transactions("/users/current/subscription-transactions", time_from, time_till,
                                            strategy_ids, subscriber_ids, offset, limit)

    async def iter_provided_transactions(self, time_from: datetime, time_till: datetime,
                                         strategy_ids: Optional[Sequence[str]] = None,
                                         subscriber_ids: Optional[Sequence[str]] = None,
                                         page_size: int = DEFAULT_LIMIT) -> AsyncIterator[Transaction]:
        offset = 0
        while True:
            page = await self.get_provided_transactions(time_from, time_till, strategy_ids, subscriber_ids,
                                                        offset=offset, limit=page_size)
            for tx in page:
                yield tx
            if len(page) < page_size:
                return
            offset += len(page)

    async def iter_subscription_transactions(self, time_from: datetime, time_till: datetime,
                                             strategy_ids: Optional[Sequence[str]] = None,
                                             subscriber_ids: Optional[Sequence[str]] = None,
                                             page_size: int = DEFAULT_LIMIT) -> AsyncIterator[Transaction]:
        offset = 0
        while True:
            page = await self.get_subscription_transactions(time_from, time_till, strategy_ids, subscriber_ids,
                                                            offset=offset, limit=page_size)
            for tx in page:
                yield tx
            if len(page) < page_size:
                return
            offset += len(page)

    # ---- transaction streams -------------------------------------------------------
    def add_strategy_transaction_listener(self, listener: Any, strategy_id: str,
                                          start_time: Optional[datetime] = None) -> str:
        return self._transaction_listener_manager.add_strategy_transaction_listener(listener, strategy_id,
                                                                                    start_time)

    def remove_strategy_transaction_listener(self, listener_id: str) -> None:
        self._transaction_listener_manager.remove_strategy_transaction_listener(listener_id)

    def add_subscriber_transaction_listener(self, listener: Any, subscriber_id: str,
                                            start_time: Optional[datetime] = None) -> str:
        return self._transaction_listener_manager.add_subscriber_transaction_listener(listener, subscriber_id,
                                                                                      start_time)

    def remove_subscriber_transaction_listener(self, listener_id: str) -> None:
        self._transaction_listener_manager.remove_subscriber_transaction_listener(listener_id)

    # ---- internals -----------------------------------------------------------------
    async def _get_transactions(self, path: str, time_from: datetime, time_till: datetime,
                                strategy_ids: Optional[Sequence[str]], subscriber_ids: Optional[Sequence[str]],
                                offset: int, limit: int) -> List[Transaction]:
        params: Dict[str, Any] = {
            "from": time_from,
            "till": time_till,
            "strategyId": list(strategy_ids) if strategy_ids else None,
            "subscriberId": list(subscriber_ids) if subscriber_ids else None,
            "offset": offset,
            "limit": limit,
        }
        resp = await self._domain_client.request_copyfactory("GET", path, params=params)
        return [Transaction.from_dict(d) for d in resp or []]
