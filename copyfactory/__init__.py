# copyfactory/__init__.py

from copyfactory.clients import ConfigurationClient, HistoryClient, SignalClient, TradingClient
from copyfactory.config import CopyFactoryOptions, RetryOptions, load_cfg
from copyfactory.copy_factory import CopyFactory
from copyfactory.enums import CloseMode, ExternalSignalType, ListenerState, LogLevel, StopoutReason
from copyfactory.errors import (
    ApiError,
    ConflictError,
    ForbiddenError,
    InternalError,
    MethodAccessError,
    NotFoundError,
    RequestTimeoutError,
    TooManyRequestsError,
    UnauthorizedError,
    ValidationError,
)
from copyfactory.models import CloseInstructions, ExternalSignalRemove, ExternalSignalUpdate
from copyfactory.streaming import StopoutListener, TransactionListener, UserLogListener
from copyfactory.utils.logger import setup_logging

__version__ = "0.1.0"

__all__ = [
    "CopyFactory", "CopyFactoryOptions", "RetryOptions", "load_cfg", "setup_logging",
    "ConfigurationClient", "HistoryClient", "SignalClient", "TradingClient",
    "StopoutListener", "TransactionListener", "UserLogListener",
    "CloseInstructions", "ExternalSignalRemove", "ExternalSignalUpdate",
    "CloseMode", "ExternalSignalType", "ListenerState", "LogLevel", "StopoutReason",
    "ApiError", "ConflictError", "ForbiddenError", "InternalError", "MethodAccessError", "NotFoundError",
    "RequestTimeoutError", "TooManyRequestsError", "UnauthorizedError", "ValidationError",
]
