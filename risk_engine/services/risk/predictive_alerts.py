"""
Predictive Risk Alerts

Extrapolate recent trends to warn before a limit is hit:
- VaR breach forecast (days until VaR crosses its limit)
- Margin call forecast (hours until utilization reaches the call threshold)
- Volatility spike detection (2-sigma rule)

Trends are ordinary least squares slopes over the supplied history, one
observation per day.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Union
import logging
import math

from risk_engine.config.risk_config_loader import AlertConfig
from risk_engine.core.models.domain import MarginRiskLevel, VolatilityTrend
from risk_engine.services.risk.statistics import linear_regression_slope, mean, std_dev

logger = logging.getLogger(__name__)


@dataclass
class VaRBreachPrediction:
    breach_likely: bool
    days_until_breach: Optional[int]
    confidence: float          # percent
    recommendation: str


@dataclass
class MarginCallPrediction:
    risk_level: MarginRiskLevel
    hours_until_call: Optional[float]
    recommendation: str


@dataclass
class VolatilitySpike:
    spike_detected: bool
    current_volatility: float
    average_volatility: float
    spike_magnitude: float     # percent above average, 0 when no spike


# Horizon (days) -> (confidence %, recommendation); first matching row wins
VAR_BREACH_GRADES = (
    (1, 85.0, "URGENT: Reduce positions immediately to avoid VaR breach"),
    (3, 70.0, "WARNING: Consider reducing high-risk positions within 24 hours"),
    (5, 55.0, "CAUTION: Monitor closely, prepare to reduce positions"),
)
VAR_BREACH_DEFAULT_GRADE = (40.0, "Monitor VaR trend, no immediate action required")

# Upper bound on hours -> risk level
MARGIN_CALL_GRADES = (
    (24, MarginRiskLevel.CRITICAL),
    (48, MarginRiskLevel.HIGH),
    (72, MarginRiskLevel.MEDIUM),
)

MARGIN_RECOMMENDATIONS = {
    MarginRiskLevel.CRITICAL: "URGENT: Add funds or close positions within hours",
    MarginRiskLevel.HIGH: "WARNING: Add margin or reduce positions within 24 hours",
    MarginRiskLevel.MEDIUM: "CAUTION: Prepare to add margin within 48 hours",
    MarginRiskLevel.LOW: "Monitor margin utilization",
}


class PredictiveRiskAlerts:
    """
    Forecast limit breaches from trend data.

    Usage:
        alerts = PredictiveRiskAlerts()

        prediction = alerts.predict_var_breach(
            current_var=42000,
            var_limit=50000,
            var_trend=[36000, 38000, 40000, 42000],
            volatility_trend='INCREASING',
        )
        if prediction.breach_likely:
            notify(prediction.recommendation)
    """

    def __init__(self, config: Optional[AlertConfig] = None):
        self.config = config or AlertConfig()
        self.volatility_multipliers: Mapping[str, float] = MappingProxyType(
            {k.upper(): float(v) for k, v in self.config.volatility_multipliers.items()}
        )

    def predict_var_breach(
        self,
        current_var: float,
        var_limit: float,
        var_trend: Sequence[float],
        volatility_trend: Union[str, VolatilityTrend] = VolatilityTrend.STABLE,
    ) -> VaRBreachPrediction:
        """
        Days until VaR reaches var_limit at the current (regime-adjusted) trend.

        A non-positive adjusted slope means no breach is forecast.
        """
        daily_increase = linear_regression_slope(var_trend)
        adjusted = daily_increase * self._volatility_multiplier(volatility_trend)

        if adjusted <= 0:
            return VaRBreachPrediction(
                breach_likely=False,
                days_until_breach=None,
                confidence=85.0,
                recommendation="VaR trending down, no action needed",
            )

        days_until_breach = int(math.ceil((var_limit - current_var) / adjusted))
        confidence, recommendation = self._grade_var_breach(days_until_breach)
        breach_likely = days_until_breach <= self.config.breach_horizon_days

        if breach_likely:
            logger.warning(
                f"VaR breach forecast in {days_until_breach} day(s): "
                f"VaR={current_var:,.2f} limit={var_limit:,.2f} slope={adjusted:,.2f}/day"
            )
        return VaRBreachPrediction(
            breach_likely=breach_likely,
            days_until_breach=days_until_breach,
            confidence=confidence,
            recommendation=recommendation,
        )

    def predict_margin_call(
        self,
        current_utilization: float,
        utilization_trend: Sequence[float],
        available_margin: Optional[float] = None,
        daily_pnl_volatility: Optional[float] = None,
    ) -> MarginCallPrediction:
        """
        Hours until margin utilization (percent) reaches the call threshold.

        available_margin and daily_pnl_volatility are accepted for callers
        that pass a full margin snapshot; the forecast uses the trend only.
        """
        daily_increase = linear_regression_slope(utilization_trend)

        if daily_increase <= 0:
            return MarginCallPrediction(
                risk_level=MarginRiskLevel.LOW,
                hours_until_call=None,
                recommendation="Margin utilization stable or decreasing",
            )

        margin_to_call = self.config.margin_call_threshold - current_utilization
        hours = round((margin_to_call / daily_increase) * 24, 1)

        risk_level = MarginRiskLevel.LOW
        for bound, level in MARGIN_CALL_GRADES:
            if hours <= bound:
                risk_level = level
                break

        if risk_level in (MarginRiskLevel.CRITICAL, MarginRiskLevel.HIGH):
            logger.warning(f"Margin call risk {risk_level.value}: {hours}h at {current_utilization:.1f}% utilization")
        return MarginCallPrediction(
            risk_level=risk_level,
            hours_until_call=hours,
            recommendation=MARGIN_RECOMMENDATIONS[risk_level],
        )

    def detect_volatility_spike(self, volatility_history: Sequence[float]) -> VolatilitySpike:
        """
        Spike when the latest value exceeds mean + k * stddev of the history
        (k = spike_sigma, default 2). The history includes the latest value.
        """
        if len(volatility_history) == 0:
            return VolatilitySpike(False, 0.0, 0.0, 0.0)

        current = float(volatility_history[-1])
        average = mean(volatility_history)
        threshold = average + self.config.spike_sigma * std_dev(volatility_history)

        spike = current > threshold
        magnitude = ((current - average) / average) * 100 if spike and average != 0 else 0.0
        return VolatilitySpike(
            spike_detected=spike,
            current_volatility=current,
            average_volatility=average,
            spike_magnitude=magnitude,
        )

    def _volatility_multiplier(self, trend: Union[str, VolatilityTrend]) -> float:
        name = trend.name if isinstance(trend, VolatilityTrend) else str(trend).upper()
        return self.volatility_multipliers.get(name, 1.0)

    @staticmethod
    def _grade_var_breach(days: int):
        for horizon, confidence, recommendation in VAR_BREACH_GRADES:
            if days <= horizon:
                return confidence, recommendation
        return VAR_BREACH_DEFAULT_GRADE
