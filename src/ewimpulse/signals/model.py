from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ewimpulse.ew.core.model import Impulse


class SignalKind(str, Enum):
    NONE = "none"
    ENTER = "enter"
    TAKE_PROFIT = "take_profit"
    STOP_LOSS = "stop_loss"


@dataclass(frozen=True)
class LevelItem:
    price: float
    index: int


@dataclass(frozen=True)
class Setup:
    """An armed trade setup built from a confirmed impulse candidate."""
    start_index: int
    start_price: float
    end_index: int
    end_price: float
    trigger_level: float
    trigger_index: int
    direction: int  # +1 up (long), -1 down (short)
    take_profit: float
    stop_loss: float
    impulse: Optional[Impulse] = None

    @property
    def is_up(self) -> bool:
        return self.direction > 0

    @property
    def key(self) -> Tuple[int, int]:
        return (self.start_index, self.end_index)


@dataclass(frozen=True)
class Signal:
    """Outcome of one bar: nothing, an entry, or the resolution of the active setup."""
    kind: SignalKind
    index: int
    level: Optional[LevelItem] = None
    take_profit: Optional[LevelItem] = None
    stop_loss: Optional[LevelItem] = None
    setup: Optional[Setup] = None

    @classmethod
    def none(cls, index: int) -> "Signal":
        return cls(kind=SignalKind.NONE, index=index)

    @classmethod
    def enter(cls, trigger: LevelItem, take_profit: LevelItem, stop_loss: LevelItem, setup: Setup) -> "Signal":
        return cls(
            kind=SignalKind.ENTER,
            index=trigger.index,
            level=trigger,
            take_profit=take_profit,
            stop_loss=stop_loss,
            setup=setup,
        )

    @classmethod
    def took_profit(cls, price: float, index: int, setup: Optional[Setup] = None) -> "Signal":
        return cls(kind=SignalKind.TAKE_PROFIT, index=index, level=LevelItem(price, index), setup=setup)

    @classmethod
    def stopped_out(cls, price: float, index: int, setup: Optional[Setup] = None) -> "Signal":
        return cls(kind=SignalKind.STOP_LOSS, index=index, level=LevelItem(price, index), setup=setup)

    @property
    def is_none(self) -> bool:
        return self.kind is SignalKind.NONE

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind.value, "index": self.index}
        if self.level is not None:
            d["price"] = self.level.price
        if self.take_profit is not None:
            d["take_profit"] = self.take_profit.price
            d["take_profit_index"] = self.take_profit.index
        if self.stop_loss is not None:
            d["stop_loss"] = self.stop_loss.price
            d["stop_loss_index"] = self.stop_loss.index
        if self.setup is not None:
            d["direction"] = "up" if self.setup.is_up else "down"
            d["start_index"] = self.setup.start_index
            d["end_index"] = self.setup.end_index
        return d
