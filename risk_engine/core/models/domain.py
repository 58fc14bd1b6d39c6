"""
Domain Models - Typed records consumed and produced by the risk engine

DESIGN PRINCIPLES:
1. Snapshots in, data out - positions are read-only snapshots passed per call
2. Validate once at the boundary - raw mappings become typed records via from_dict
3. Violations are values - limit checks return records, never raise

USAGE:
    position = Position.from_dict({'symbol': 'AAPL', 'value': 50000, 'volatility': 0.25})

    limit = RiskLimit(LimitLevel.PORTFOLIO, 'GLOBAL', 'var_95', 50000.0)
    result = LimitCheckResult(violations=[LimitViolation('var_95', 50000.0, 60000.0)])
    print(result.approved)  # False
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Mapping, Union
import math

from risk_engine.core.errors import ValidationError


# ============================================================================
# Enumerations
# ============================================================================

class PositionSide(Enum):
    """Direction of the position a stop protects"""
    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value: Union[str, "PositionSide"]) -> "PositionSide":
        """Accept LONG/SHORT as well as order-side BUY/SELL (case-insensitive)."""
        if isinstance(value, cls):
            return value
        aliases = {
            'LONG': cls.LONG,
            'BUY': cls.LONG,
            'SHORT': cls.SHORT,
            'SELL': cls.SHORT,
        }
        side = aliases.get(str(value).strip().upper())
        if side is None:
            raise ValidationError(f"Unknown position side: {value!r}")
        return side


class LimitLevel(Enum):
    """Hierarchy level a risk limit is registered at"""
    PORTFOLIO = "portfolio"
    STRATEGY = "strategy"
    INSTRUMENT = "instrument"

    @classmethod
    def parse(cls, value: Union[str, "LimitLevel"]) -> "LimitLevel":
        if isinstance(value, cls):
            return value
        try:
            return cls[str(value).strip().upper()]
        except KeyError:
            raise ValidationError(f"Unknown limit level: {value!r}") from None


class VolatilityTrend(Enum):
    """Volatility regime used to scale trend extrapolation"""
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class MarginRiskLevel(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# ============================================================================
# Positions
# ============================================================================

def _as_float(raw: Mapping[str, Any], key: str, default: Optional[float] = None) -> float:
    value = raw.get(key, default)
    if value is None:
        raise ValidationError(f"Position missing required field '{key}'")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Position field '{key}' is not numeric: {value!r}") from None
    if math.isnan(result) or math.isinf(result):
        raise ValidationError(f"Position field '{key}' is not finite: {value!r}")
    return result


@dataclass(frozen=True)
class Position:
    """
    Snapshot of a single holding as seen by the risk engine.

    value is the currency exposure. When only quantity and current_price
    are supplied (stress-test callers), value is derived from them.
    """
    symbol: str
    value: float
    volatility: float = 0.0
    sector: Optional[str] = None
    quantity: float = 0.0
    current_price: float = 0.0

    @property
    def risk_proxy(self) -> float:
        """Exposure-scaled volatility: value * volatility"""
        return self.value * self.volatility

    @property
    def sector_or_unknown(self) -> str:
        return self.sector or "Unknown"

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Position":
        """
        Build a Position from a raw mapping.

        Raises:
            ValidationError: missing symbol, non-numeric fields, or no value
                and no non-zero quantity to derive it from
        """
        symbol = raw.get('symbol')
        if not symbol:
            raise ValidationError("Position missing required field 'symbol'")

        quantity = _as_float(raw, 'quantity', 0.0)
        current_price = _as_float(raw, 'current_price', 0.0)
        if raw.get('value') is not None:
            value = _as_float(raw, 'value')
        elif quantity:
            value = quantity * _as_float(raw, 'current_price')
        else:
            raise ValidationError(
                f"Position {symbol!r} needs 'value' or a non-zero 'quantity' with 'current_price'"
            )

        return cls(
            symbol=str(symbol),
            value=value,
            volatility=_as_float(raw, 'volatility', 0.0),
            sector=raw.get('sector') or None,
            quantity=quantity,
            current_price=current_price,
        )

    @classmethod
    def coerce(cls, item: Union["Position", Mapping[str, Any]]) -> "Position":
        return item if isinstance(item, cls) else cls.from_dict(item)


def coerce_positions(items) -> List[Position]:
    """Convert a sequence of Position/mapping items into Positions."""
    return [Position.coerce(item) for item in items]


# ============================================================================
# Limits
# ============================================================================

@dataclass(frozen=True)
class RiskLimit:
    """A threshold registered at (level, entity_id, metric)"""
    level: LimitLevel
    entity_id: str
    metric: str
    threshold: float

    @property
    def key(self):
        return (self.level, self.entity_id, self.metric)

    @property
    def is_lower_bound(self) -> bool:
        """min_* metrics are floors (e.g. min_equity); everything else is a ceiling."""
        return self.metric.startswith('min_')

    def is_violated_by(self, current: float) -> bool:
        if self.is_lower_bound:
            return current < self.threshold
        return current > self.threshold

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "RiskLimit":
        missing = [k for k in ('level', 'entity_id', 'metric', 'threshold') if raw.get(k) is None]
        if missing:
            raise ValidationError(f"Risk limit missing fields: {missing}")
        try:
            threshold = float(raw['threshold'])
        except (TypeError, ValueError):
            raise ValidationError(f"Risk limit threshold is not numeric: {raw['threshold']!r}") from None
        return cls(
            level=LimitLevel.parse(raw['level']),
            entity_id=str(raw['entity_id']),
            metric=str(raw['metric']),
            threshold=threshold,
        )


@dataclass(frozen=True)
class LimitViolation:
    """A metric that is outside its registered limit"""
    metric: str
    limit: float
    current: float
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {'metric': self.metric, 'limit': self.limit, 'current': self.current}


@dataclass
class LimitCheckResult:
    """Outcome of a limit check. approved is False whenever any violation exists."""
    violations: List[LimitViolation] = field(default_factory=list)

    @property
    def approved(self) -> bool:
        return len(self.violations) == 0

    def merge(self, other: "LimitCheckResult") -> "LimitCheckResult":
        return LimitCheckResult(violations=self.violations + other.violations)

    def summary(self) -> str:
        if self.approved:
            return "All limits OK"
        return ", ".join(f"{v.metric} {v.current:,.2f} vs {v.limit:,.2f}" for v in self.violations)


# ============================================================================
# Orders
# ============================================================================

@dataclass(frozen=True)
class OrderRequest:
    """Proposed order submitted for pre-trade risk checks"""
    symbol: str
    quantity: float
    price: float
    strategy_id: str = "default"

    @property
    def notional(self) -> float:
        return abs(self.quantity * self.price)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "OrderRequest":
        try:
            quantity = float(raw['quantity'])
            price = float(raw['price'])
        except KeyError as e:
            raise ValidationError(f"Order missing required field {e}") from None
        except (TypeError, ValueError):
            raise ValidationError("Order quantity and price must be numeric") from None
        return cls(
            symbol=str(raw.get('symbol', '')),
            quantity=quantity,
            price=price,
            strategy_id=str(raw.get('strategy_id') or 'default'),
        )
