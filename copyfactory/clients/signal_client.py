# copyfactory/clients/signal_client.py
from typing import Any, List, Union

from copyfactory.clients.domain_client import DomainClient, SignalClientHost
from copyfactory.models import ExternalSignal, ExternalSignalRemove, ExternalSignalUpdate, TradingSignal
from copyfactory.utils.ids import random_id

SIGNAL_ID_LENGTH = 8


class SignalClient:
    """
    Trading and external signals of one account. Requests go to the account's
    regional hosts and fail over to the replica regions.
    """

    def __init__(self, account_id: str, host: SignalClientHost, domain_client: DomainClient) -> None:
        self._account_id = account_id
        self._host = host
        self._domain_client = domain_client

    @property
    def account_id(self) -> str:
        return self._account_id

    @property
    def host(self) -> SignalClientHost:
        return self._host

    @staticmethod
    def generate_signal_id() -> str:
        return random_id(SIGNAL_ID_LENGTH)

    async def get_trading_signals(self) -> List[TradingSignal]:
        """Signals the subscriber is currently following."""
        resp = await self._domain_client.request_signal(
            "GET", f"/users/current/subscribers/{self._account_id}/signals", self._host,
        )
        return [TradingSignal.from_dict(d) for d in resp or []]

    async def get_strategy_external_signals(self, strategy_id: str) -> List[ExternalSignal]:
        resp = await self._domain_client.request_signal(
            "GET", f"/users/current/strategies/{strategy_id}/external-signals", self._host,
        )
        return [ExternalSignal.from_dict(d) for d in resp or []]

    async def update_external_signal(self, strategy_id: str, signal_id: str,
                                     signal: Union[ExternalSignalUpdate, dict]) -> Any:
        """Create or update an external signal of a strategy."""
        body = signal.to_dict() if isinstance(signal, ExternalSignalUpdate) else signal
        return await self._domain_client.request_signal(
            "PUT", f"/users/current/strategies/{strategy_id}/external-signals/{signal_id}", self._host,
            json_body=body,
        )

    async def remove_external_signal(self, strategy_id: str, signal_id: str,
                                     signal: Union[ExternalSignalRemove, dict]) -> Any:
        body = signal.to_dict() if isinstance(signal, ExternalSignalRemove) else signal
        return await self._domain_client.request_signal(
            "POST", f"/users/current/strategies/{strategy_id}/external-signals/{signal_id}/remove", self._host,
            json_body=body,
        )
