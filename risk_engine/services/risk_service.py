"""
Risk Service - Pre-trade gate and portfolio performance metrics

Wires the calculators together from a RiskConfig:
- check_order(): strategy limits + registered order checks + order VaR impact
- Sharpe / Sortino / max drawdown / tail risk over return and equity series
- ATR stop distance from raw candles
- Black-Scholes Greeks for a single option
- Portfolio VaR and Monte Carlo at the configured confidence / horizon

Every order must pass check_order before it is sent. approved=False is a
hard block for the order-management caller.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Union, Any

import numpy as np
from scipy.stats import norm

from risk_engine.config.risk_config_loader import RiskConfig, RiskConfigLoader, get_risk_config
from risk_engine.config.settings import Settings, get_settings
from risk_engine.core.errors import ValidationError
from risk_engine.core.models.domain import (
    LimitCheckResult,
    LimitLevel,
    LimitViolation,
    OrderRequest,
    Position,
    PositionSide,
)
from risk_engine.services.risk.checks import MaxOrderValueCheck, RiskCheck
from risk_engine.services.risk.limits import RiskLimitManager
from risk_engine.services.risk.statistics import average_true_range, mean, percentile_index, std_dev
from risk_engine.services.risk.stress_test import MonteCarloResult, StressTestService
from risk_engine.services.risk.var_calculator import VaRCalculator, VaRMethod, ZScoreMethod

logger = logging.getLogger(__name__)


@dataclass
class DrawdownResult:
    max_drawdown: float        # currency, rounded to cents
    max_drawdown_pct: float    # percent of peak, rounded to 0.01
    duration: int              # longest run of observations below a prior peak


@dataclass
class TailRisk:
    probability: float         # share of returns below -threshold
    expected_shortfall: float  # mean size of those returns


@dataclass
class OptionGreeks:
    delta: float
    gamma: float
    theta: float   # per calendar day
    vega: float    # per 1 vol point
    rho: float     # per unit change in the rate

    def to_dict(self) -> dict:
        return {
            'delta': self.delta,
            'gamma': self.gamma,
            'theta': self.theta,
            'vega': self.vega,
            'rho': self.rho,
        }


class RiskService:
    """
    Pre-trade risk gate.

    Usage:
        config = get_risk_config()
        service = RiskService(config)

        result = service.check_order({'symbol': 'AAPL', 'quantity': 100, 'price': 190.0,
                                      'strategy_id': 'momentum'})
        if not result.approved:
            reject(result.violations)
    """

    def __init__(
        self,
        config: Optional[RiskConfig] = None,
        limit_manager: Optional[RiskLimitManager] = None,
        stress_service: Optional[StressTestService] = None,
        checks: Optional[List[RiskCheck]] = None,
    ):
        self.config = config or RiskConfig()
        self.limit_manager = limit_manager or RiskLimitManager(self.config.limits)
        self.stress_service = stress_service or StressTestService(
            scenarios=self.config.stress.scenarios,
            strict=self.config.stress.strict,
        )
        self.var_calculator = VaRCalculator(
            z_scores=self.config.var.z_scores,
            z_score_method=ZScoreMethod(self.config.var.z_score_method),
        )

        self.checks: List[RiskCheck] = list(checks or [])
        if not checks and self.config.pre_trade.max_order_value is not None:
            self.checks.append(MaxOrderValueCheck(self.config.pre_trade.max_order_value))

    # =========================================================================
    # Pre-trade
    # =========================================================================

    def check_order(self, order: Union[OrderRequest, Mapping[str, Any]]) -> LimitCheckResult:
        """
        Run every pre-trade check for one order.

        1. Strategy-level limits (position_size = order notional)
        2. Registered RiskChecks
        3. Monte Carlo VaR impact of the order value vs pre_trade.max_order_var
        """
        if not isinstance(order, OrderRequest):
            order = OrderRequest.from_dict(order)

        result = self.limit_manager.check_limits(
            LimitLevel.STRATEGY, order.strategy_id, {'position_size': order.notional}
        )

        for check in self.checks:
            violation = check.check(order)
            if violation is not None:
                result.violations.append(violation)

        pre_trade = self.config.pre_trade
        var_impact = self.calculate_monte_carlo_var(
            order.notional, pre_trade.order_volatility, days=1, simulations=pre_trade.simulations
        )
        if var_impact > pre_trade.max_order_var:
            result.violations.append(LimitViolation(
                metric='order_var_95',
                limit=pre_trade.max_order_var,
                current=var_impact,
                message=f"Order VaR impact {var_impact:,.2f} exceeds limit {pre_trade.max_order_var:,.2f}",
            ))

        if result.approved:
            logger.info(f"Order approved: {order.symbol} {order.quantity} @ {order.price}")
        else:
            logger.warning(f"Order blocked: {order.symbol} {order.quantity} @ {order.price} - {result.summary()}")
        return result

    def calculate_monte_carlo_var(
        self,
        current_value: float,
        daily_volatility: float,
        days: int = 1,
        simulations: int = 1000,
        confidence_level: float = 0.95,
    ) -> float:
        """
        Monte Carlo VaR of a single exposure.

        daily_volatility is the one-day standard deviation of returns, unlike
        run_monte_carlo which takes annualized volatility. The one-day VaR is
        scaled by sqrt(days).
        """
        if current_value == 0 or daily_volatility == 0:
            return 0.0
        shocks = np.sort(daily_volatility * self.stress_service.standard_normal(simulations))
        index = percentile_index(shocks.size, 1 - confidence_level)
        return abs(current_value) * abs(float(shocks[index])) * math.sqrt(days)

    # =========================================================================
    # Portfolio risk with configured defaults
    # =========================================================================

    def calculate_portfolio_var(
        self,
        returns: Sequence[float],
        portfolio_value: float,
        confidence_level: Optional[float] = None,
        method: VaRMethod = VaRMethod.HISTORICAL,
    ) -> float:
        """VaR in currency at config.var.confidence_level unless overridden."""
        confidence = self.config.var.confidence_level if confidence_level is None else confidence_level
        return self.var_calculator.calculate_var(returns, confidence, portfolio_value, method)

    def run_monte_carlo(
        self,
        positions: Sequence[Union[Position, Mapping[str, Any]]],
        volatility: float,
        iterations: Optional[int] = None,
        days: Optional[int] = None,
    ) -> MonteCarloResult:
        """
        Portfolio Monte Carlo with stress.default_iterations / default_days as fallbacks.

        volatility is annualized; the simulation scales it to one trading day.
        """
        stress = self.config.stress
        return self.stress_service.run_monte_carlo_simulation(
            positions,
            volatility,
            iterations=stress.default_iterations if iterations is None else iterations,
            days=stress.default_days if days is None else days,
        )

    # =========================================================================
    # Performance metrics
    # =========================================================================

    def calculate_historical_var(self, returns: Sequence[float], confidence_level: float = 0.95) -> float:
        """Historical VaR as a fraction of portfolio value."""
        return self.var_calculator.calculate_historical_var(returns, confidence_level, 1.0)

    def calculate_cvar(self, returns: Sequence[float], confidence_level: float = 0.95) -> float:
        """Expected shortfall as a fraction of portfolio value."""
        return self.var_calculator.calculate_expected_shortfall(returns, confidence_level, 1.0)

    @staticmethod
    def calculate_sharpe_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
        """Per-period Sharpe ratio (not annualized). 0.0 for empty or flat series."""
        if len(returns) < 2:
            return 0.0
        sigma = std_dev(returns)
        if sigma == 0:
            return 0.0
        return (mean(returns) - risk_free_rate) / sigma

    @staticmethod
    def calculate_sortino_ratio(returns: Sequence[float], target_return: float = 0.0) -> float:
        """Per-period Sortino ratio using downside deviation below target_return."""
        if len(returns) == 0:
            return 0.0
        arr = np.asarray(returns, dtype=float)
        downside = arr[arr < target_return]
        if downside.size == 0:
            return 0.0
        downside_deviation = math.sqrt(float(((downside - target_return) ** 2).mean()))
        if downside_deviation == 0:
            return 0.0
        return (float(arr.mean()) - target_return) / downside_deviation

    @staticmethod
    def calculate_max_drawdown(equity_curve: Sequence[float]) -> DrawdownResult:
        """Largest peak-to-trough decline of an equity curve."""
        if len(equity_curve) == 0:
            return DrawdownResult(0.0, 0.0, 0)

        peak = float(equity_curve[0])
        max_drawdown = 0.0
        max_drawdown_pct = 0.0
        current_duration = 0
        max_duration = 0

        for value in equity_curve:
            value = float(value)
            if value > peak:
                peak = value
                current_duration = 0
                continue

            drawdown = peak - value
            drawdown_pct = (drawdown / peak) * 100 if peak > 0 else 0.0
            if drawdown_pct > max_drawdown_pct:
                max_drawdown_pct = drawdown_pct
                max_drawdown = drawdown

            if drawdown > 0:
                current_duration += 1
                max_duration = max(max_duration, current_duration)

        return DrawdownResult(
            max_drawdown=round(max_drawdown, 2),
            max_drawdown_pct=round(max_drawdown_pct, 2),
            duration=max_duration,
        )

    @staticmethod
    def calculate_tail_risk(returns: Sequence[float], threshold: float = 0.02) -> TailRisk:
        """Frequency and average size of returns worse than -threshold."""
        arr = np.asarray(returns, dtype=float)
        exceedances = arr[arr < -threshold]
        if exceedances.size == 0:
            return TailRisk(0.0, 0.0)
        return TailRisk(
            probability=exceedances.size / arr.size,
            expected_shortfall=abs(float(exceedances.mean())),
        )

    @staticmethod
    def calculate_atr_stop(
        candles: Sequence[Mapping[str, float]],
        current_price: float,
        atr_period: int = 14,
        atr_multiplier: float = 2.0,
        side: Union[str, PositionSide] = PositionSide.LONG,
    ) -> float:
        """
        Stop price current_price -/+ ATR * multiplier.

        With too few candles the ATR is 0 and the stop equals current_price.
        """
        atr = average_true_range(candles, atr_period)
        distance = atr * atr_multiplier
        if PositionSide.parse(side) is PositionSide.LONG:
            return current_price - distance
        return current_price + distance

    @staticmethod
    def calculate_greeks(
        spot: float,
        strike: float,
        time_to_expiry: float,
        rate: float,
        volatility: float,
        option_type: str = 'call',
    ) -> OptionGreeks:
        """
        Black-Scholes Greeks of a European option.

        Args:
            spot: Underlying price
            strike: Strike price
            time_to_expiry: Years to expiry
            rate: Annual risk-free rate (continuous)
            volatility: Annualized volatility
            option_type: 'call' or 'put'

        Returns:
            OptionGreeks with theta per calendar day and vega per 1% vol.
            delta, theta, vega and rho are rounded to 4 places, gamma to 6.

        Raises:
            ValidationError: non-positive spot, strike, time or volatility,
                or an unknown option_type
        """
        kind = str(option_type).strip().lower()
        if kind not in ('call', 'put'):
            raise ValidationError(f"Unknown option type: {option_type!r}")
        for name, value in (('spot', spot), ('strike', strike),
                            ('time_to_expiry', time_to_expiry), ('volatility', volatility)):
            if not value > 0:
                raise ValidationError(f"{name} must be positive: {value}")

        sqrt_t = math.sqrt(time_to_expiry)
        d1 = (math.log(spot / strike) + (rate + 0.5 * volatility ** 2) * time_to_expiry) / (volatility * sqrt_t)
        d2 = d1 - volatility * sqrt_t

        N_d1 = float(norm.cdf(d1))
        N_d2 = float(norm.cdf(d2))
        n_d1 = float(norm.pdf(d1))
        discounted_strike = strike * math.exp(-rate * time_to_expiry)
        decay = -(spot * volatility * n_d1) / (2 * sqrt_t)

        if kind == 'call':
            delta = N_d1
            theta = (decay - rate * discounted_strike * N_d2) / 365
            rho = discounted_strike * time_to_expiry * N_d2
        else:
            delta = N_d1 - 1
            theta = (decay + rate * discounted_strike * (1 - N_d2)) / 365
            rho = -discounted_strike * time_to_expiry * (1 - N_d2)

        gamma = n_d1 / (spot * volatility * sqrt_t)
        vega = spot * sqrt_t * n_d1 / 100

        return OptionGreeks(
            delta=round(delta, 4),
            gamma=round(gamma, 6),
            theta=round(theta, 4),
            vega=round(vega, 4),
            rho=round(rho, 4),
        )


def create_risk_service(settings: Optional[Settings] = None) -> RiskService:
    """
    Build a RiskService from environment settings.

    Loads the risk config from settings.risk_config_path (or the default
    search locations) and seeds the Monte Carlo generator with
    settings.monte_carlo_seed.
    """
    settings = settings or get_settings()
    if settings.risk_config_path:
        config = RiskConfigLoader().load(str(settings.risk_config_path))
    else:
        config = get_risk_config()

    stress_service = StressTestService(
        scenarios=config.stress.scenarios,
        rng=np.random.default_rng(settings.monte_carlo_seed),
        strict=config.stress.strict,
    )
    logger.info(f"Risk service created (seed={settings.monte_carlo_seed})")
    return RiskService(config, stress_service=stress_service)
