"""
Tests for domain records and boundary validation.
"""

import pytest

from risk_engine.core.errors import ValidationError
from risk_engine.core.models.domain import (
    LimitCheckResult,
    LimitLevel,
    LimitViolation,
    OrderRequest,
    Position,
    PositionSide,
    RiskLimit,
)
from risk_engine.core.validation import PositionValidator, ReturnSeriesValidator


class TestPosition:

    def test_from_dict_with_value(self):
        pos = Position.from_dict({'symbol': 'AAPL', 'value': 50000, 'volatility': 0.25, 'sector': 'Technology'})
        assert pos.value == 50000.0
        assert pos.risk_proxy == pytest.approx(12500.0)
        assert pos.sector_or_unknown == 'Technology'

    def test_value_from_quantity_and_price(self):
        pos = Position.from_dict({'symbol': 'SPY', 'quantity': 10, 'current_price': 450})
        assert pos.value == pytest.approx(4500.0)
        assert pos.sector_or_unknown == 'Unknown'

    def test_explicit_value_wins(self):
        pos = Position.from_dict({'symbol': 'SPY', 'value': 1000, 'quantity': 10, 'current_price': 450})
        assert pos.value == 1000.0

    @pytest.mark.parametrize("raw", [
        {'value': 1000},
        {'symbol': 'AAPL'},
        {'symbol': 'AAPL', 'value': 'lots'},
        {'symbol': 'AAPL', 'value': float('nan')},
        {'symbol': 'X', 'current_price': 10},
        {'symbol': 'X', 'quantity': 0, 'current_price': 10},
        {'symbol': 'X', 'quantity': 5},
    ])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            Position.from_dict(raw)

    def test_zero_quantity_without_value_rejected(self):
        with pytest.raises(ValidationError, match="needs 'value'"):
            Position.from_dict({'symbol': 'X', 'current_price': 10})

    def test_explicit_zero_value_allowed(self):
        pos = Position.from_dict({'symbol': 'X', 'value': 0, 'current_price': 10})
        assert pos.value == 0.0

    def test_frozen(self):
        pos = Position('AAPL', 1000.0)
        with pytest.raises(AttributeError):
            pos.value = 2000.0


class TestEnums:

    def test_side_aliases(self):
        assert PositionSide.parse('long') is PositionSide.LONG
        assert PositionSide.parse(' Buy ') is PositionSide.LONG
        assert PositionSide.parse('sell') is PositionSide.SHORT
        assert PositionSide.parse(PositionSide.SHORT) is PositionSide.SHORT

    def test_limit_level(self):
        assert LimitLevel.parse('instrument') is LimitLevel.INSTRUMENT
        with pytest.raises(ValidationError):
            LimitLevel.parse('DESK')


class TestLimitRecords:

    def test_ceiling_and_floor(self):
        ceiling = RiskLimit(LimitLevel.PORTFOLIO, 'GLOBAL', 'var_95', 50000.0)
        floor = RiskLimit(LimitLevel.PORTFOLIO, 'GLOBAL', 'min_equity', 25000.0)

        assert ceiling.is_violated_by(50000.01) is True
        assert ceiling.is_violated_by(50000.0) is False
        assert floor.is_lower_bound is True
        assert floor.is_violated_by(24999.0) is True

    def test_result_merge(self):
        a = LimitCheckResult()
        b = LimitCheckResult(violations=[LimitViolation('var_95', 50000.0, 60000.0)])

        merged = a.merge(b)
        assert a.approved is True
        assert merged.approved is False
        assert 'var_95' in merged.summary()

    def test_order_from_dict(self):
        order = OrderRequest.from_dict({'symbol': 'AAPL', 'quantity': '-5', 'price': 100})
        assert order.notional == 500.0
        assert order.strategy_id == 'default'

    def test_order_non_numeric(self):
        with pytest.raises(ValidationError):
            OrderRequest.from_dict({'symbol': 'AAPL', 'quantity': 'ten', 'price': 100})


class TestValidators:

    def test_paired_length(self):
        assert ReturnSeriesValidator.require_paired([1, 2, 3], [4, 5, 6]) == 3

    def test_require_finite(self):
        with pytest.raises(ValidationError, match=r"returns\[1\]"):
            ReturnSeriesValidator.require_finite([0.01, float('inf')])

    def test_position_validator(self):
        valid, errors = PositionValidator.validate_position(Position('AAPL', 1000.0, volatility=-0.2))
        assert valid is False
        assert errors == ['Negative volatility -0.2']

    def test_validate_positions_passes_through(self, sample_positions):
        assert PositionValidator.validate_positions(sample_positions) == sample_positions
