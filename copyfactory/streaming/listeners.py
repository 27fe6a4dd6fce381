# copyfactory/streaming/listeners.py
from __future__ import annotations

from typing import Awaitable, List, Protocol, Union, runtime_checkable

from copyfactory.models import StrategyStopout, Transaction, UserLogMessage
from copyfactory.utils.logger import logger

MaybeAwaitable = Union[None, Awaitable[None]]


# Handlers may be plain methods or coroutines, the registry awaits whatever comes back.
@runtime_checkable
class StopoutListenerProtocol(Protocol):
    def on_stopout(self, stopouts: List[StrategyStopout]) -> MaybeAwaitable: ...


@runtime_checkable
class TransactionListenerProtocol(Protocol):
    def on_transaction(self, transactions: List[Transaction]) -> MaybeAwaitable: ...


@runtime_checkable
class UserLogListenerProtocol(Protocol):
    def on_user_log(self, log_events: List[UserLogMessage]) -> MaybeAwaitable: ...


class _BaseListener:
    async def on_error(self, error: Exception) -> None:
        """Called when fetching or handling events failed. Logs by default."""
        logger.error(f"{type(self).__name__}: {error}")


class StopoutListener(_BaseListener):
    """Subclass and override on_stopout (and optionally on_error)."""

    async def on_stopout(self, stopouts: List[StrategyStopout]) -> None:
        raise NotImplementedError


class TransactionListener(_BaseListener):
    async def on_transaction(self, transactions: List[Transaction]) -> None:
        raise NotImplementedError


class UserLogListener(_BaseListener):
    async def on_user_log(self, log_events: List[UserLogMessage]) -> None:
        raise NotImplementedError
