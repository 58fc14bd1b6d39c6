"""
Stop Loss State Machines

Per-position stop prices that follow the market in the position's favor
and never move against it:
- TrailingStopLoss: fixed percentage below the best price (above for shorts)
- ATRStopLoss: ATR multiple from entry (static) or from the latest price (trailing)

Ratchet: a LONG stop only ever rises, a SHORT stop only ever falls.

should_trigger() only compares a price with the current stop. Closing the
position is up to the caller; the stop keeps ratcheting until it is discarded.
Each instance serializes its own updates and trigger checks, so a tick
handler and a periodic re-evaluation can share one stop.
"""

from typing import Optional, Protocol, Union, runtime_checkable
import logging
import threading

from risk_engine.core.errors import ValidationError
from risk_engine.core.models.domain import PositionSide

logger = logging.getLogger(__name__)


@runtime_checkable
class StopLoss(Protocol):
    """Capability shared by every stop-loss variant"""

    def update(self, current_price: float) -> None: ...

    def should_trigger(self, current_price: float) -> bool: ...

    def get_stop_price(self) -> float: ...


def _ratchet(side: PositionSide, current_stop: Optional[float], candidate: float) -> float:
    if current_stop is None:
        return candidate
    if side is PositionSide.LONG:
        return max(current_stop, candidate)
    return min(current_stop, candidate)


def _crossed(side: PositionSide, price: float, stop: float) -> bool:
    if side is PositionSide.LONG:
        return price <= stop
    return price >= stop


class TrailingStopLoss:
    """
    Percentage trailing stop.

    Usage:
        stop = TrailingStopLoss('LONG', entry_price=100.0, trailing_percent=0.05)
        stop.get_stop_price()      # 95.0
        stop.update(110.0)         # 104.5
        stop.update(108.0)         # 104.5 (pullback, stop holds)
        stop.should_trigger(104.0) # True
    """

    def __init__(self, side: Union[str, PositionSide], entry_price: float, trailing_percent: float):
        if entry_price <= 0:
            raise ValidationError(f"Entry price must be positive: {entry_price}")
        if not 0 < trailing_percent < 1:
            raise ValidationError(f"Trailing percent must be between 0 and 1: {trailing_percent}")

        self.side = PositionSide.parse(side)
        self.entry_price = float(entry_price)
        self.trailing_percent = float(trailing_percent)
        # Highest price seen for longs, lowest for shorts
        self.extremum_price = self.entry_price
        self._stop_price: Optional[float] = None
        self._lock = threading.Lock()

        self._recompute_stop()

    @property
    def stop_price(self) -> float:
        return self._stop_price

    def get_stop_price(self) -> float:
        return self._stop_price

    def update(self, current_price: float) -> None:
        """Advance the extremum on a new favorable price and ratchet the stop."""
        with self._lock:
            if self.side is PositionSide.LONG:
                improved = current_price > self.extremum_price
            else:
                improved = current_price < self.extremum_price
            if improved:
                self.extremum_price = float(current_price)
                self._recompute_stop()

    def should_trigger(self, current_price: float) -> bool:
        with self._lock:
            crossed = _crossed(self.side, current_price, self._stop_price)
            if crossed:
                logger.debug(
                    f"Trailing stop crossed ({self.side.value}): price={current_price} stop={self._stop_price:.4f}"
                )
            return crossed

    def _recompute_stop(self) -> None:
        if self.side is PositionSide.LONG:
            candidate = self.extremum_price * (1 - self.trailing_percent)
        else:
            candidate = self.extremum_price * (1 + self.trailing_percent)
        self._stop_price = _ratchet(self.side, self._stop_price, candidate)

    def __repr__(self) -> str:
        return (
            f"TrailingStopLoss({self.side.value}, entry={self.entry_price}, "
            f"trail={self.trailing_percent:.2%}, stop={self._stop_price:.4f})"
        )


class ATRStopLoss:
    """
    Volatility-scaled stop: distance = ATR * multiplier.

    Static mode fixes the stop at entry -/+ distance and never moves it.
    Trailing mode recomputes from each update_price() using the latest ATR
    and ratchets like TrailingStopLoss.

    Usage:
        stop = ATRStopLoss('LONG', entry_price=100.0, initial_atr=3.0, multiplier=2.0, is_trailing=True)
        stop.get_stop_price()   # 94.0
        stop.update_atr(2.5)
        stop.update_price(105.0)
        stop.get_stop_price()   # 100.0
    """

    def __init__(
        self,
        side: Union[str, PositionSide],
        entry_price: float,
        initial_atr: float,
        multiplier: float = 2.0,
        is_trailing: bool = False,
    ):
        if entry_price <= 0:
            raise ValidationError(f"Entry price must be positive: {entry_price}")
        if initial_atr < 0:
            raise ValidationError(f"ATR cannot be negative: {initial_atr}")
        if multiplier < 0:
            raise ValidationError(f"ATR multiplier cannot be negative: {multiplier}")

        self.side = PositionSide.parse(side)
        self.entry_price = float(entry_price)
        self.multiplier = float(multiplier)
        self.current_atr = float(initial_atr)
        self.is_trailing = is_trailing
        self.extremum_price = self.entry_price
        self._stop_price: Optional[float] = None
        self._lock = threading.Lock()

        if initial_atr == 0:
            logger.debug("ATR stop created with zero ATR, stop sits at entry price")
        self._set_stop_from(self.entry_price)

    @property
    def stop_price(self) -> float:
        return self._stop_price

    @property
    def stop_distance(self) -> float:
        return self.current_atr * self.multiplier

    def get_stop_price(self) -> float:
        return self._stop_price

    def update_atr(self, new_atr: float) -> None:
        """Record the latest ATR. Takes effect on the next update_price (trailing only)."""
        if new_atr < 0:
            raise ValidationError(f"ATR cannot be negative: {new_atr}")
        with self._lock:
            self.current_atr = float(new_atr)

    def update_price(self, current_price: float) -> None:
        """Ratchet the stop from current_price. Ignored in static mode."""
        if not self.is_trailing:
            return
        with self._lock:
            if self.side is PositionSide.LONG:
                self.extremum_price = max(self.extremum_price, float(current_price))
            else:
                self.extremum_price = min(self.extremum_price, float(current_price))
            self._set_stop_from(float(current_price))

    def update(self, current_price: float) -> None:
        self.update_price(current_price)

    def should_trigger(self, current_price: float) -> bool:
        with self._lock:
            crossed = _crossed(self.side, current_price, self._stop_price)
            if crossed:
                logger.debug(
                    f"ATR stop crossed ({self.side.value}): price={current_price} stop={self._stop_price:.4f}"
                )
            return crossed

    def _set_stop_from(self, reference_price: float) -> None:
        if self.side is PositionSide.LONG:
            candidate = reference_price - self.stop_distance
        else:
            candidate = reference_price + self.stop_distance

        if self.is_trailing:
            self._stop_price = _ratchet(self.side, self._stop_price, candidate)
        elif self._stop_price is None:
            self._stop_price = candidate

    def __repr__(self) -> str:
        mode = "trailing" if self.is_trailing else "static"
        return (
            f"ATRStopLoss({self.side.value}, {mode}, atr={self.current_atr}, "
            f"x{self.multiplier}, stop={self._stop_price:.4f})"
        )
