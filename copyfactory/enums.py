# copyfactory/enums.py
from enum import Enum


class CloseMode(str, Enum):
    PRESERVE = "preserve"
    CLOSE_GRACEFULLY_BY_POSITION = "close-gracefully-by-position"
    CLOSE_GRACEFULLY_BY_SYMBOL = "close-gracefully-by-symbol"
    CLOSE_IMMEDIATELY = "close-immediately"


class StopoutReason(str, Enum):
    YEARLY_BALANCE = "yearly-balance"
    MONTHLY_BALANCE = "monthly-balance"
    DAILY_BALANCE = "daily-balance"
    YEARLY_EQUITY = "yearly-equity"
    MONTHLY_EQUITY = "monthly-equity"
    DAILY_EQUITY = "daily-equity"
    MAX_DRAWDOWN = "max-drawdown"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class ExternalSignalType(str, Enum):
    POSITION_TYPE_BUY = "POSITION_TYPE_BUY"
    POSITION_TYPE_SELL = "POSITION_TYPE_SELL"
    ORDER_TYPE_BUY_LIMIT = "ORDER_TYPE_BUY_LIMIT"
    ORDER_TYPE_SELL_LIMIT = "ORDER_TYPE_SELL_LIMIT"
    ORDER_TYPE_BUY_STOP = "ORDER_TYPE_BUY_STOP"
    ORDER_TYPE_SELL_STOP = "ORDER_TYPE_SELL_STOP"


class ListenerState(Enum):
    REGISTERED = "registered"
    POLLING = "polling"
    STOPPED = "stopped"
    FAILED = "failed"
