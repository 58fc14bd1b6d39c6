"""
Input Validation - Ensure calculator inputs are usable

Validates return series and position snapshots at the engine boundary.
Degenerate-but-valid inputs (zero variance, empty series) are not errors here;
calculators map them to documented defaults.
"""

import math
from typing import List, Sequence, Tuple

from risk_engine.core.models.domain import Position
from risk_engine.core.errors import ValidationError


class ReturnSeriesValidator:
    """Validate return series passed to calculators"""

    @staticmethod
    def require_paired(returns_a: Sequence[float], returns_b: Sequence[float], min_length: int = 2) -> int:
        """
        Check two series can be compared point by point.

        Returns:
            Common length of the series

        Raises:
            ValidationError: lengths differ or fewer than min_length points
        """
        n = len(returns_a)
        if n != len(returns_b):
            raise ValidationError(
                f"Return series must have the same length ({n} vs {len(returns_b)})"
            )
        if n < min_length:
            raise ValidationError(
                f"Insufficient data points for correlation: {n} (need at least {min_length})"
            )
        return n

    @staticmethod
    def require_finite(returns: Sequence[float], name: str = "returns") -> None:
        for i, r in enumerate(returns):
            if r is None or math.isnan(r) or math.isinf(r):
                raise ValidationError(f"{name}[{i}] is not a finite number: {r!r}")


class PositionValidator:
    """Validate position snapshot data"""

    @staticmethod
    def validate_position(position: Position) -> Tuple[bool, List[str]]:
        """
        Check one position snapshot without raising.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []

        if not position.symbol:
            errors.append("Symbol is empty")

        if position.volatility < 0:
            errors.append(f"Negative volatility {position.volatility}")

        if position.current_price < 0:
            errors.append(f"Negative current price {position.current_price}")

        return (len(errors) == 0, errors)

    @staticmethod
    def validate_positions(positions: Sequence[Position]) -> List[Position]:
        """
        Validate every position, raising on the first invalid one.

        Raises:
            ValidationError: with the symbol and reasons
        """
        for position in positions:
            is_valid, errors = PositionValidator.validate_position(position)
            if not is_valid:
                raise ValidationError(f"Invalid position {position.symbol or '?'}: {'; '.join(errors)}")
        return list(positions)
