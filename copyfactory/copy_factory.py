# copyfactory/copy_factory.py
import os
from pathlib import Path
from typing import Optional, Union

from copyfactory.clients import ConfigurationClient, DomainClient, HistoryClient, TradingClient
from copyfactory.config import CopyFactoryOptions, load_cfg, options_from_cfg
from copyfactory.infra import HttpClient, HttpPort
from copyfactory.streaming import StopoutListenerManager, TransactionListenerManager, UserLogListenerManager
from copyfactory.utils.logger import logger, mask

TOKEN_ENV = "COPYFACTORY_TOKEN"


class CopyFactory:
    """
    Entry point: wires the transport, the domain client and the API clients.

        async with CopyFactory(token) as cf:
            strategies = await cf.configuration_api.get_strategies()
    """

    def __init__(self, token: str, options: Optional[CopyFactoryOptions] = None, *,
                 http_client: Optional[HttpPort] = None) -> None:
        if not token:
            raise ValueError("CopyFactory token is required")
        self._options = options or CopyFactoryOptions()
        opts = self._options
        self._http_client = http_client or HttpClient(
            request_timeout=opts.request_timeout,
            extended_timeout=opts.extended_timeout,
            retry_opts=opts.retry_opts,
        )
        self._domain_client = DomainClient(self._http_client, token, opts.domain)

        listener_kw = dict(polling_interval=opts.polling_interval, retry_opts=opts.retry_opts)
        self._stopout_manager = StopoutListenerManager(self._domain_client, **listener_kw)
        self._transaction_manager = TransactionListenerManager(self._domain_client, **listener_kw)
        self._user_log_manager = UserLogListenerManager(self._domain_client, **listener_kw)

        self._configuration_api = ConfigurationClient(self._domain_client)
        self._history_api = HistoryClient(self._domain_client, self._transaction_manager)
        self._trading_api = TradingClient(self._domain_client, self._stopout_manager, self._user_log_manager)
        logger.info(f"CopyFactory client ready domain={opts.domain} token={mask(token)}")

    @classmethod
    def from_config(cls, cfg_path: Optional[Union[str, Path]] = None) -> "CopyFactory":
        """Build from config.yaml (+ .env). The token falls back to $COPYFACTORY_TOKEN."""
        cfg = load_cfg(cfg_path)
        token = (cfg.get("copyfactory") or {}).get("token") or os.getenv(TOKEN_ENV, "")
        return cls(token, options_from_cfg(cfg))

    @property
    def options(self) -> CopyFactoryOptions:
        return self._options

    @property
    def configuration_api(self) -> ConfigurationClient:
        return self._configuration_api

    @property
    def history_api(self) -> HistoryClient:
        return self._history_api

    @property
    def trading_api(self) -> TradingClient:
        return self._trading_api

    async def close(self) -> None:
        """Stop every listener and release the HTTP session."""
        await self._stopout_manager.close()
        await self._transaction_manager.close()
        await self._user_log_manager.close()
        await self._http_client.close()

    async def __aenter__(self) -> "CopyFactory":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
