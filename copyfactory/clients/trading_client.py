# copyfactory/clients/trading_client.py
from datetime import datetime
from typing import Any, List, Optional, Sequence, Union

from copyfactory.clients.base import MetaApiClient
from copyfactory.clients.domain_client import DomainClient
from copyfactory.clients.signal_client import SignalClient
from copyfactory.enums import LogLevel, StopoutReason
from copyfactory.models import StrategyStopout, UserLogMessage
from copyfactory.streaming.stopout_manager import StopoutListenerManager
from copyfactory.streaming.user_log_manager import UserLogListenerManager
from copyfactory.utils.logger import logger

DEFAULT_LIMIT = 1000


class TradingClient(MetaApiClient):
    """
    CopyFactory trading API: resynchronization, stopouts, user log, signal clients
    and the stopout/user-log streams.
    """

    def __init__(self, domain_client: DomainClient,
                 stopout_listener_manager: Optional[StopoutListenerManager] = None,
                 user_log_listener_manager: Optional[UserLogListenerManager] = None) -> None:
        super().__init__(domain_client)
        self._stopout_listener_manager = stopout_listener_manager or StopoutListenerManager(domain_client)
        self._user_log_listener_manager = user_log_listener_manager or UserLogListenerManager(domain_client)

    @property
    def stopout_listener_manager(self) -> StopoutListenerManager:
        return self._stopout_listener_manager

    @property
    def user_log_listener_manager(self) -> UserLogListenerManager:
        return self._user_log_listener_manager

    async def resynchronize(self, account_id: str, strategy_ids: Optional[Sequence[str]] = None,
                            position_ids: Optional[Sequence[str]] = None) -> Any:
        """Resynchronize subscriber positions with the strategies. Uses the extended timeout."""
        params = {
            "strategyId": list(strategy_ids) if strategy_ids else None,
            "positionId": list(position_ids) if position_ids else None,
        }
        logger.info(f"Resynchronizing subscriber {account_id}")
        return await self._domain_client.request_copyfactory(
            "POST", f"/users/current/subscribers/{account_id}/resynchronize", params=params, extended_timeout=True,
        )

    async def get_signal_client(self, account_id: str) -> SignalClient:
        account = await self._domain_client.get_account_info(account_id)
        host = await self._domain_client.get_signal_client_host(account.regions)
        return SignalClient(account.id, host, self._domain_client)

    async def get_stopouts(self, subscriber_id: str) -> List[StrategyStopout]:
        resp = await self._domain_client.request_copyfactory(
            "GET", f"/users/current/subscribers/{subscriber_id}/stopouts",
        )
        return [StrategyStopout.from_dict(d) for d in resp or []]

    async def reset_stopouts(self, subscriber_id: str, strategy_id: str,
                             reason: Union[StopoutReason, str]) -> Any:
        reason = StopoutReason(reason).value
        return await self._domain_client.request_copyfactory(
            "POST",
            f"/users/current/subscribers/{subscriber_id}/subscription-strategies/{strategy_id}"
            f"/stopouts/{reason}/reset",
        )

    async def get_user_log(self, subscriber_id: str, start_time: Optional[datetime] = None,
                           end_time: Optional[datetime] = None, strategy_id: Optional[str] = None,
                           position_id: Optional[str] = None, level: Optional[Union[LogLevel, str]] = None,
                           offset: int = 0, limit: int = DEFAULT_LIMIT) -> List[UserLogMessage]:
        """Subscriber trading log, newest first."""
        params = {
            "startTime": start_time,
            "endTime": end_time,
            "strategyId": strategy_id,
            "positionId": position_id,
            "level": LogLevel(level).value if level is not None else None,
            "offset": offset,
            "limit": limit,
        }
        resp = await self._domain_client.request_copyfactory(
            "GET", f"/users/current/subscribers/{subscriber_id}/user-log", params=params,
        )
        return [UserLogMessage.from_dict(d) for d in resp or []]

    async def get_strategy_user_log(self, strategy_id: str, start_time: Optional[datetime] = None,
                                    end_time: Optional[datetime] = None, offset: int = 0,
                                    limit: int = DEFAULT_LIMIT) -> List[UserLogMessage]:
        params = {"startTime": start_time, "endTime": end_time, "offset": offset, "limit": limit}
        resp = await self._domain_client.request_copyfactory(
            "GET", f"/users/current/strategies/{strategy_id}/user-log", params=params,
        )
        return [UserLogMessage.from_dict(d) for d in resp or []]

    # ---- stopout stream ------------------------------------------------------------
    def add_stopout_listener(self, listener: Any, account_id: Optional[str] = None,
                             strategy_id: Optional[str] = None, sequence_number: Optional[int] = None) -> str:
        return self._stopout_listener_manager.add_stopout_listener(listener, account_id, strategy_id,
                                                                   sequence_number)

    def remove_stopout_listener(self, listener_id: str) -> None:
        self._stopout_listener_manager.remove_stopout_listener(listener_id)

    # ---- user log streams ----------------------------------------------------------
    def add_strategy_log_listener(self, listener: Any, strategy_id: str, start_time: Optional[datetime] = None,
                                  limit: Optional[int] = None) -> str:
        return self._user_log_listener_manager.add_strategy_log_listener(listener, strategy_id, start_time, limit)

    def remove_strategy_log_listener(self, listener_id: str) -> None:
        self._user_log_listener_manager.remove_strategy_log_listener(listener_id)

    def add_subscriber_log_listener(self, listener: Any, subscriber_id: str, start_time: Optional[datetime] = None,
                                    strategy_id: Optional[str] = None, position_id: Optional[str] = None,
                                    level: Optional[Union[LogLevel, str]] = None, limit: Optional[int] = None) -> str:
        return self._user_log_listener_manager.add_subscriber_log_listener(
            listener, subscriber_id, start_time, strategy_id, position_id, level, limit,
        )

    def remove_subscriber_log_listener(self, listener_id: str) -> None:
        self._user_log_listener_manager.remove_subscriber_log_listener(listener_id)
