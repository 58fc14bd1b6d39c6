"""
Risk Attribution

Break portfolio risk down by position and by sector, and estimate how much
risk a single position adds.

Risk proxy throughout: value * volatility per position. This is an exposure
measure, not a covariance-based VaR decomposition; correlations between
positions are ignored.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Mapping, Optional, Sequence, Union, Any
import logging

from risk_engine.core.models.domain import Position, coerce_positions
from risk_engine.core.validation.validators import PositionValidator

logger = logging.getLogger(__name__)

PositionInput = Union[Position, Mapping[str, Any]]


@dataclass
class PositionContribution:
    """How much one position contributes to total portfolio risk"""
    symbol: str
    risk_contribution: float   # percent of total risk
    absolute_risk: float       # value * volatility


@dataclass
class PositionRiskReport:
    total_portfolio_risk: float
    position_contributions: List[PositionContribution] = field(default_factory=list)

    @property
    def top_risk_contributor(self) -> Optional[PositionContribution]:
        return self.position_contributions[0] if self.position_contributions else None


def weighted_volatility(positions: Sequence[Position]) -> float:
    """Value-weighted average volatility. 0.0 for no positions or zero total value."""
    total_value = sum(p.value for p in positions)
    if not positions or total_value == 0:
        return 0.0
    return sum((p.value / total_value) * p.volatility for p in positions)


def weighted_exposure_risk(positions: Sequence[Position]) -> float:
    """
    Portfolio risk proxy: total value * value-weighted volatility.

    Not a confidence-level VaR; do not compare with VaRCalculator output.
    """
    return sum(p.value for p in positions) * weighted_volatility(positions)


class RiskAttributionAnalyzer:
    """
    Decompose portfolio risk into position and sector contributions.

    Usage:
        analyzer = RiskAttributionAnalyzer()

        report = analyzer.analyze_position_risk(positions)
        print(report.top_risk_contributor.symbol)

        sectors = analyzer.analyze_sector_risk(positions)   # {'Technology': 62.5, ...}

        added = analyzer.calculate_marginal_var(positions, 'NVDA')
    """

    def analyze_position_risk(self, positions: Sequence[PositionInput]) -> PositionRiskReport:
        """
        Percent of total risk carried by each position, largest first.

        Positions sharing a symbol are aggregated. With zero total risk every
        contribution is 0.
        """
        snapshot = PositionValidator.validate_positions(coerce_positions(positions))

        position_risks: Dict[str, float] = {}
        for pos in snapshot:
            position_risks[pos.symbol] = position_risks.get(pos.symbol, 0.0) + pos.risk_proxy
        total_risk = sum(position_risks.values())

        contributions = [
            PositionContribution(
                symbol=symbol,
                risk_contribution=(risk / total_risk) * 100 if total_risk else 0.0,
                absolute_risk=risk,
            )
            for symbol, risk in position_risks.items()
        ]
        contributions.sort(key=lambda c: c.risk_contribution, reverse=True)

        return PositionRiskReport(total_portfolio_risk=total_risk, position_contributions=contributions)

    def analyze_sector_risk(self, positions: Sequence[PositionInput]) -> Dict[str, float]:
        """Percent of total risk per sector (missing sector -> 'Unknown'), largest first."""
        sector_risks: Dict[str, float] = {}
        for pos in PositionValidator.validate_positions(coerce_positions(positions)):
            sector = pos.sector_or_unknown
            sector_risks[sector] = sector_risks.get(sector, 0.0) + pos.risk_proxy

        total_risk = sum(sector_risks.values())
        if total_risk == 0:
            logger.debug("Zero total risk in sector attribution")
            return {sector: 0.0 for sector in sector_risks}

        ranked = sorted(sector_risks.items(), key=lambda kv: kv[1], reverse=True)
        return {sector: (risk / total_risk) * 100 for sector, risk in ranked}

    def calculate_marginal_var(self, positions: Sequence[PositionInput], target_symbol: str) -> float:
        """
        Risk added by target_symbol: weighted_exposure_risk with minus without it.

        Uses the weighted-volatility proxy, so the result is an exposure
        difference rather than a true marginal VaR from a covariance matrix.
        """
        snapshot = PositionValidator.validate_positions(coerce_positions(positions))
        without = [p for p in snapshot if p.symbol != target_symbol]
        if len(without) == len(snapshot):
            logger.debug(f"{target_symbol} not in portfolio, marginal risk is 0")

        return weighted_exposure_risk(snapshot) - weighted_exposure_risk(without)
