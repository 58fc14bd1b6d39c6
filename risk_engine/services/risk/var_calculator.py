"""
Value at Risk (VaR) Calculator

Provides two methods for calculating portfolio VaR:
- Historical simulation (empirical percentile of past returns)
- Parametric (variance-covariance, normal assumption)

VaR answers: "What's the maximum loss at X% confidence over the return horizon?"
Both methods always return a non-negative currency amount.
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Sequence
import logging

import numpy as np
from scipy.stats import norm

from risk_engine.config.risk_config_loader import DEFAULT_Z_SCORES
from risk_engine.core.errors import ValidationError
from risk_engine.services.risk.statistics import percentile_index
from risk_engine.core.validation.validators import ReturnSeriesValidator

logger = logging.getLogger(__name__)


class VaRMethod(Enum):
    """Supported VaR estimators"""
    HISTORICAL = "historical"
    PARAMETRIC = "parametric"


class ZScoreMethod(Enum):
    """How the parametric method turns a confidence level into a z-score"""
    TABLE = "table"    # Step lookup over configured levels
    EXACT = "exact"    # Inverse normal CDF


class VaRCalculator:
    """
    Calculate Value at Risk from return series or distribution moments.

    Usage:
        calculator = VaRCalculator()

        # Empirical percentile of past returns
        var = calculator.calculate_historical_var(returns, 0.95, 100000)

        # Normal approximation from mean and standard deviation
        var = calculator.calculate_parametric_var(0.0005, 0.012, 0.99, 100000)

        # Extend the z-score table without touching the code
        calculator = VaRCalculator(z_scores={0.90: 1.282, 0.95: 1.645, 0.975: 1.960, 0.99: 2.326})
    """

    def __init__(
        self,
        z_scores: Optional[Mapping[float, float]] = None,
        z_score_method: ZScoreMethod = ZScoreMethod.TABLE,
    ):
        """
        Args:
            z_scores: confidence level -> z-score table (defaults to 90/95/99%)
            z_score_method: TABLE for the step lookup, EXACT for norm.ppf
        """
        table = dict(DEFAULT_Z_SCORES if z_scores is None else z_scores)
        self.z_scores: Mapping[float, float] = MappingProxyType(
            {float(k): float(v) for k, v in sorted(table.items())}
        )
        self.z_score_method = ZScoreMethod(z_score_method)

    def calculate_historical_var(
        self,
        returns: Sequence[float],
        confidence_level: float,
        portfolio_value: float,
    ) -> float:
        """
        Calculate VaR using historical simulation.

        Sorts a copy of the returns ascending and takes the return at index
        floor((1 - confidence) * n), clamped into range.

        Args:
            returns: Decimal returns (e.g. -0.02 for -2%)
            confidence_level: Confidence level (0.95 = 95%)
            portfolio_value: Current portfolio value

        Returns:
            VaR amount (>= 0). 0.0 for an empty series.

        Raises:
            ValidationError: a return is NaN or infinite
        """
        if len(returns) == 0:
            logger.debug("Historical VaR requested for empty return series, returning 0")
            return 0.0

        ReturnSeriesValidator.require_finite(returns)
        sorted_returns = np.sort(np.asarray(returns, dtype=float))
        index = percentile_index(sorted_returns.size, 1 - confidence_level)
        var = abs(float(portfolio_value)) * abs(float(sorted_returns[index]))

        logger.debug(
            f"Historical VaR: n={sorted_returns.size} index={index} "
            f"return={sorted_returns[index]:.6f} var={var:,.2f}"
        )
        return var

    def calculate_parametric_var(
        self,
        mean: float,
        std_dev: float,
        confidence_level: float,
        portfolio_value: float,
    ) -> float:
        """
        Calculate VaR using the parametric (variance-covariance) method.

        VaR = portfolio_value * max(0, z * std_dev - mean)

        Assumes normally distributed returns; fast but may understate tail risk.
        """
        if std_dev < 0:
            raise ValidationError(f"Standard deviation cannot be negative: {std_dev}")

        z = self.z_score(confidence_level)
        var_percent = max(0.0, z * std_dev - mean)
        var = abs(float(portfolio_value)) * var_percent

        logger.debug(f"Parametric VaR: z={z:.3f} sigma={std_dev:.6f} mu={mean:.6f} var={var:,.2f}")
        return var

    def calculate_expected_shortfall(
        self,
        returns: Sequence[float],
        confidence_level: float,
        portfolio_value: float,
    ) -> float:
        """
        Calculate Expected Shortfall (CVaR) - average loss beyond historical VaR.

        Mean of every return at or below the VaR return, times |portfolio_value|.
        0.0 for an empty series.
        """
        if len(returns) == 0:
            return 0.0

        arr = np.asarray(returns, dtype=float)
        var_percent = self.calculate_historical_var(arr, confidence_level, 1.0)
        tail = arr[arr <= -var_percent]
        if tail.size == 0:
            return 0.0
        return abs(float(portfolio_value)) * abs(float(tail.mean()))

    def calculate_var(
        self,
        returns: Sequence[float],
        confidence_level: float,
        portfolio_value: float,
        method: VaRMethod = VaRMethod.HISTORICAL,
    ) -> float:
        """VaR of a return series by either method; PARAMETRIC fits mean and population std first."""
        method = VaRMethod(method)
        if method is VaRMethod.HISTORICAL:
            return self.calculate_historical_var(returns, confidence_level, portfolio_value)
        if len(returns) == 0:
            return 0.0
        arr = np.asarray(returns, dtype=float)
        return self.calculate_parametric_var(float(arr.mean()), float(arr.std()), confidence_level, portfolio_value)

    def z_score(self, confidence_level: float) -> float:
        """
        Get z-score for given confidence level.

        TABLE: z-score of the highest configured level <= confidence_level;
        0.0 below the lowest configured level.
        """
        if self.z_score_method is ZScoreMethod.EXACT:
            if not 0.0 < confidence_level < 1.0:
                raise ValidationError(f"Confidence level must be in (0, 1): {confidence_level}")
            return float(norm.ppf(confidence_level))

        z = 0.0
        for level, score in self.z_scores.items():
            if confidence_level >= level:
                z = score
        return z
