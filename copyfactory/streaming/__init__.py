# copyfactory/streaming/__init__.py

from copyfactory.streaming.listeners import (
    StopoutListener,
    StopoutListenerProtocol,
    TransactionListener,
    TransactionListenerProtocol,
    UserLogListener,
    UserLogListenerProtocol,
)
from copyfactory.streaming.registry import ListenerRegistry
from copyfactory.streaming.stopout_manager import StopoutListenerManager
from copyfactory.streaming.transaction_manager import TransactionListenerManager
from copyfactory.streaming.user_log_manager import UserLogListenerManager

__all__ = [
    "ListenerRegistry",
    "StopoutListener", "StopoutListenerProtocol", "StopoutListenerManager",
    "TransactionListener", "TransactionListenerProtocol", "TransactionListenerManager",
    "UserLogListener", "UserLogListenerProtocol", "UserLogListenerManager",
]
