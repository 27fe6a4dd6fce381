# copyfactory/clients/__init__.py

from copyfactory.clients.domain_client import AccountInfo, DomainClient, SignalClientHost
from copyfactory.clients.base import MetaApiClient
from copyfactory.clients.configuration_client import ConfigurationClient
from copyfactory.clients.history_client import HistoryClient
from copyfactory.clients.signal_client import SignalClient
from copyfactory.clients.trading_client import TradingClient

__all__ = [
    "AccountInfo", "DomainClient", "SignalClientHost", "MetaApiClient",
    "ConfigurationClient", "HistoryClient", "SignalClient", "TradingClient",
]
