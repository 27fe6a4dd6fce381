# copyfactory/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from copyfactory.enums import CloseMode, ExternalSignalType
from copyfactory.errors import ValidationError
from copyfactory.utils.time import format_iso, parse_iso, utc_now


REMOVE_AFTER_MIN = timedelta(days=30)
REMOVE_AFTER_MAX = timedelta(days=90)


def _to_float_or_none(x) -> Optional[float]:
    if x is None:
        return None
    if isinstance(x, (int, float)):
        return float(x)
    x = str(x).strip()
    if not x:
        return None
    try:
        return float(x)
    except ValueError:
        return None


def _enum_value(v: Any) -> Any:
    return v.value if isinstance(v, (CloseMode, ExternalSignalType)) else v


@dataclass
class StrategyId:
    id: str


@dataclass
class StrategyIdAndName:
    id: str
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> Optional["StrategyIdAndName"]:
        if not d:
            return None
        return cls(id=d.get("id", ""), name=d.get("name"))


@dataclass
class SubscriberOrProviderUser:
    id: str
    name: Optional[str] = None
    strategies: List[StrategyIdAndName] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> Optional["SubscriberOrProviderUser"]:
        if not d:
            return None
        return cls(
            id=d.get("id", ""),
            name=d.get("name"),
            strategies=[StrategyIdAndName.from_dict(s) for s in d.get("strategies") or []],
        )


@dataclass
class TransactionMetrics:
    """Copying latency (ms) and slippage, measured selectively for copied trades."""
    trade_copying_latency: Optional[float] = None
    trade_copying_slippage_in_basis_points: Optional[float] = None
    trade_copying_slippage_in_account_currency: Optional[float] = None
    mt_and_broker_signal_latency: Optional[float] = None
    trade_algorithm_latency: Optional[float] = None
    mt_and_broker_trade_latency: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> Optional["TransactionMetrics"]:
        if not d:
            return None
        return cls(
            trade_copying_latency=_to_float_or_none(d.get("tradeCopyingLatency")),
            trade_copying_slippage_in_basis_points=_to_float_or_none(d.get("tradeCopyingSlippageInBasisPoints")),
            trade_copying_slippage_in_account_currency=_to_float_or_none(
                d.get("tradeCopyingSlippageInAccountCurrency")),
            mt_and_broker_signal_latency=_to_float_or_none(d.get("mtAndBrokerSignalLatency")),
            trade_algorithm_latency=_to_float_or_none(d.get("tradeAlgorithmLatency")),
            mt_and_broker_trade_latency=_to_float_or_none(d.get("mtAndBrokerTradeLatency")),
        )


@dataclass
class Transaction:
    id: str
    type: str                       # DEAL_TYPE_BUY, DEAL_TYPE_SELL, DEAL_TYPE_BALANCE, ...
    time: datetime
    subscriber_id: Optional[str] = None
    symbol: Optional[str] = None
    subscriber_user: Optional[SubscriberOrProviderUser] = None
    demo: bool = False
    provider_user: Optional[SubscriberOrProviderUser] = None
    strategy: Optional[StrategyIdAndName] = None
    position_id: Optional[str] = None
    slave_position_id: Optional[str] = None
    improvement: float = 0.0
    provider_commission: float = 0.0
    platform_commission: float = 0.0
    incoming_provider_commission: Optional[float] = None
    incoming_platform_commission: Optional[float] = None
    quantity: Optional[float] = None
    lot_price: Optional[float] = None
    tick_price: Optional[float] = None
    amount: Optional[float] = None
    commission: Optional[float] = None
    swap: float = 0.0
    profit: float = 0.0
    metrics: Optional[TransactionMetrics] = None
    raw: Optional[dict] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Transaction":
        return cls(
            id=d.get("id", ""),
            type=d.get("type", ""),
            time=parse_iso(d.get("time")),
            subscriber_id=d.get("subscriberId"),
            symbol=d.get("symbol"),
            subscriber_user=SubscriberOrProviderUser.from_dict(d.get("subscriberUser")),
            demo=bool(d.get("demo", False)),
            provider_user=SubscriberOrProviderUser.from_dict(d.get("providerUser")),
            strategy=StrategyIdAndName.from_dict(d.get("strategy")),
            position_id=d.get("positionId"),
            slave_position_id=d.get("slavePositionId"),
            improvement=_to_float_or_none(d.get("improvement")) or 0.0,
            provider_commission=_to_float_or_none(d.get("providerCommission")) or 0.0,
            platform_commission=_to_float_or_none(d.get("platformCommission")) or 0.0,
            incoming_provider_commission=_to_float_or_none(d.get("incomingProviderCommission")),
            incoming_platform_commission=_to_float_or_none(d.get("incomingPlatformCommission")),
            quantity=_to_float_or_none(d.get("quantity")),
            lot_price=_to_float_or_none(d.get("lotPrice")),
            tick_price=_to_float_or_none(d.get("tickPrice")),
            amount=_to_float_or_none(d.get("amount")),
            commission=_to_float_or_none(d.get("commission")),
            swap=_to_float_or_none(d.get("swap")) or 0.0,
            profit=_to_float_or_none(d.get("profit")) or 0.0,
            metrics=TransactionMetrics.from_dict(d.get("metrics")),
            raw=d,
        )


@dataclass
class StrategyStopout:
    strategy: Optional[StrategyIdAndName]
    partial: bool
    reason: str                     # see StopoutReason
    reason_description: Optional[str] = None
    close_positions: Optional[bool] = None
    stopped_at: Optional[datetime] = None
    stopped_till: Optional[datetime] = None
    # present on stream events only
    subscriber_id: Optional[str] = None
    sequence_number: Optional[int] = None
    raw: Optional[dict] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StrategyStopout":
        return cls(
            strategy=StrategyIdAndName.from_dict(d.get("strategy")),
            partial=bool(d.get("partial", False)),
            reason=d.get("reason", ""),
            reason_description=d.get("reasonDescription"),
            close_positions=d.get("closePositions"),
            stopped_at=parse_iso(d.get("stoppedAt")),
            stopped_till=parse_iso(d.get("stoppedTill")),
            subscriber_id=d.get("subscriberId"),
            sequence_number=d.get("sequenceNumber"),
            raw=d,
        )


@dataclass
class UserLogMessage:
    time: datetime
    level: str
    message: str
    symbol: Optional[str] = None
    strategy_id: Optional[str] = None
    strategy_name: Optional[str] = None
    position_id: Optional[str] = None
    side: Optional[str] = None      # buy | sell | close
    type: Optional[str] = None      # market | limit | stop
    open_price: Optional[float] = None
    raw: Optional[dict] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "UserLogMessage":
        return cls(
            time=parse_iso(d.get("time")),
            level=d.get("level", ""),
            message=d.get("message", ""),
            symbol=d.get("symbol"),
            strategy_id=d.get("strategyId"),
            strategy_name=d.get("strategyName"),
            position_id=d.get("positionId"),
            side=d.get("side"),
            type=d.get("type"),
            open_price=_to_float_or_none(d.get("openPrice")),
            raw=d,
        )


@dataclass
class TradingSignal:
    strategy: Optional[StrategyIdAndName]
    position_id: str
    time: datetime
    symbol: str
    type: str
    side: str
    signal_volume: float
    subscriber_volume: float
    subscriber_profit: float
    close_after: Optional[datetime] = None
    open_price: Optional[float] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    close_only: Optional[bool] = None
    raw: Optional[dict] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TradingSignal":
        return cls(
            strategy=StrategyIdAndName.from_dict(d.get("strategy")),
            position_id=d.get("positionId", ""),
            time=parse_iso(d.get("time")),
            symbol=d.get("symbol", ""),
            type=d.get("type", ""),
            side=d.get("side", ""),
            signal_volume=_to_float_or_none(d.get("signalVolume")) or 0.0,
            subscriber_volume=_to_float_or_none(d.get("subscriberVolume")) or 0.0,
            subscriber_profit=_to_float_or_none(d.get("subscriberProfit")) or 0.0,
            close_after=parse_iso(d.get("closeAfter")),
            open_price=_to_float_or_none(d.get("openPrice")),
            stop_loss=_to_float_or_none(d.get("stopLoss")),
            take_profit=_to_float_or_none(d.get("takeProfit")),
            close_only=d.get("closeOnly"),
            raw=d,
        )


@dataclass
class ExternalSignalUpdate:
    symbol: str
    type: Union[ExternalSignalType, str]
    time: datetime
    volume: float
    update_time: Optional[datetime] = None
    magic: Optional[int] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    open_price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "symbol": self.symbol,
            "type": _enum_value(self.type),
            "time": self.time,
            "updateTime": self.update_time,
            "volume": self.volume,
            "magic": self.magic,
            "stopLoss": self.stop_loss,
            "takeProfit": self.take_profit,
            "openPrice": self.open_price,
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class ExternalSignal:
    id: str
    symbol: str
    type: str
    time: datetime
    volume: float
    update_time: Optional[datetime] = None
    magic: Optional[int] = None
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    open_price: Optional[float] = None
    raw: Optional[dict] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExternalSignal":
        return cls(
            id=d.get("id", ""),
            symbol=d.get("symbol", ""),
            type=d.get("type", ""),
            time=parse_iso(d.get("time")),
            volume=_to_float_or_none(d.get("volume")) or 0.0,
            update_time=parse_iso(d.get("updateTime")),
            magic=d.get("magic"),
            stop_loss=_to_float_or_none(d.get("stopLoss")),
            take_profit=_to_float_or_none(d.get("takeProfit")),
            open_price=_to_float_or_none(d.get("openPrice")),
            raw=d,
        )


@dataclass
class ExternalSignalRemove:
    time: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time}


@dataclass
class CloseInstructions:
    """How open positions are handled when a strategy/subscriber/subscription is removed."""
    mode: Optional[Union[CloseMode, str]] = None
    remove_after: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.mode is not None:
            payload["mode"] = _enum_value(self.mode)
        if self.remove_after is not None:
            payload["removeAfter"] = self.remove_after
        return payload

    def validate(self, now: Optional[datetime] = None) -> None:
        """remove_after must lie between 30 and 90 days ahead of `now`."""
        if self.mode is not None:
            try:
                CloseMode(_enum_value(self.mode))
            except ValueError:
                raise ValidationError(f"Unknown close mode: {self.mode!r}",
                                      details=[{"parameter": "mode", "value": str(self.mode)}]) from None
        if self.remove_after is None:
            return
        now = now or utc_now()
        remove_after = parse_iso(self.remove_after)
        if not now + REMOVE_AFTER_MIN <= remove_after <= now + REMOVE_AFTER_MAX:
            raise ValidationError(
                "removeAfter can not be less than 30 days or greater than 90 days from now",
                details=[{"parameter": "removeAfter", "value": format_iso(remove_after)}],
            )
