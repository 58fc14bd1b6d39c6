"""
Validation module for risk engine inputs.
"""

from risk_engine.core.errors import (
    RiskEngineError,
    ValidationError,
    UnknownScenarioError,
    ConfigError,
)
from risk_engine.core.validation.validators import (
    ReturnSeriesValidator,
    PositionValidator,
)

__all__ = [
    "RiskEngineError",
    "ValidationError",
    "UnknownScenarioError",
    "ConfigError",
    "ReturnSeriesValidator",
    "PositionValidator",
]
