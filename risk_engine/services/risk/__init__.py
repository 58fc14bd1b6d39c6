"""
Risk Management Module

Provides:
- Value at Risk (VaR) calculations
- Correlation analysis
- Stress testing and Monte Carlo simulation
- Risk attribution by position and sector
- Predictive breach / margin call alerts
- Trailing and ATR stop-loss state machines
- Hierarchical risk limit enforcement

Usage:
    from risk_engine.services.risk import VaRCalculator, RiskLimitManager

    var = VaRCalculator().calculate_historical_var(returns, 0.95, 100000)

    limits = RiskLimitManager()
    limits.set_limit('PORTFOLIO', 'GLOBAL', 'var_95', 50000)
    if limits.check_limits('PORTFOLIO', 'GLOBAL', {'var_95': var}).approved:
        print("Risk within acceptable bounds")
"""

from risk_engine.services.risk.var_calculator import VaRCalculator, VaRMethod, ZScoreMethod
from risk_engine.services.risk.correlation import CorrelationCalculator, CorrelationMatrix, CorrelatedPair
from risk_engine.services.risk.stress_test import StressTestService, ScenarioResult, MonteCarloResult
from risk_engine.services.risk.attribution import (
    RiskAttributionAnalyzer,
    PositionRiskReport,
    PositionContribution,
)
from risk_engine.services.risk.predictive_alerts import (
    PredictiveRiskAlerts,
    VaRBreachPrediction,
    MarginCallPrediction,
    VolatilitySpike,
)
from risk_engine.services.risk.stop_loss import StopLoss, TrailingStopLoss, ATRStopLoss
from risk_engine.services.risk.limits import RiskLimitManager
from risk_engine.services.risk.checks import RiskCheck, MaxOrderValueCheck

__all__ = [
    'VaRCalculator',
    'VaRMethod',
    'ZScoreMethod',
    'CorrelationCalculator',
    'CorrelationMatrix',
    'CorrelatedPair',
    'StressTestService',
    'ScenarioResult',
    'MonteCarloResult',
    'RiskAttributionAnalyzer',
    'PositionRiskReport',
    'PositionContribution',
    'PredictiveRiskAlerts',
    'VaRBreachPrediction',
    'MarginCallPrediction',
    'VolatilitySpike',
    'StopLoss',
    'TrailingStopLoss',
    'ATRStopLoss',
    'RiskLimitManager',
    'RiskCheck',
    'MaxOrderValueCheck',
]
