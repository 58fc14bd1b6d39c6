"""
Correlation Analysis

Pearson correlation between return series and symmetric matrices over a set
of symbols. Pairs that move together concentrate risk; strongly negative
pairs are the hedges.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Mapping, Optional, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from risk_engine.core.validation.validators import ReturnSeriesValidator

logger = logging.getLogger(__name__)


@dataclass
class CorrelatedPair:
    """A pair of correlated symbols"""
    symbol_a: str
    symbol_b: str
    correlation: float

    def is_highly_correlated(self, threshold: float = 0.7) -> bool:
        return abs(self.correlation) >= threshold

    def is_diversifying(self) -> bool:
        return self.correlation < -0.3


@dataclass
class CorrelationMatrix:
    """Symmetric correlation matrix with a unit diagonal"""
    symbols: List[str]
    matrix: Dict[str, Dict[str, float]]  # sym1 -> sym2 -> correlation
    calculation_date: datetime = field(default_factory=datetime.utcnow)

    def __getitem__(self, symbol: str) -> Dict[str, float]:
        return self.matrix[symbol]

    def get_correlation(self, sym1: str, sym2: str) -> Optional[float]:
        """Correlation of sym1 with sym2, None if either symbol is not in the matrix."""
        if sym1 == sym2 and sym1 in self.matrix:
            return 1.0
        return self.matrix.get(sym1, {}).get(sym2)

    def get_most_correlated(self, symbol: str, n: int = 5) -> List[Tuple[str, float]]:
        """Top n other symbols by |correlation| with symbol."""
        correlations = self._others(symbol)
        correlations.sort(key=lambda x: abs(x[1]), reverse=True)
        return correlations[:n]

    def get_least_correlated(self, symbol: str, n: int = 5) -> List[Tuple[str, float]]:
        """Bottom n other symbols by signed correlation, strongest hedges first."""
        correlations = self._others(symbol)
        correlations.sort(key=lambda x: x[1])
        return correlations[:n]

    def find_correlated_pairs(self, threshold: float = 0.7) -> List[CorrelatedPair]:
        """Unordered pairs with |correlation| >= threshold, strongest first."""
        pairs = []
        for i, sym1 in enumerate(self.symbols):
            for sym2 in self.symbols[i + 1:]:
                corr = self.matrix[sym1][sym2]
                if abs(corr) >= threshold:
                    pairs.append(CorrelatedPair(symbol_a=sym1, symbol_b=sym2, correlation=corr))
        pairs.sort(key=lambda p: abs(p.correlation), reverse=True)
        return pairs

    def to_dataframe(self) -> pd.DataFrame:
        """Square DataFrame indexed and columned by symbol."""
        return pd.DataFrame(
            [[self.matrix[row][col] for col in self.symbols] for row in self.symbols],
            index=self.symbols,
            columns=self.symbols,
        )

    def _others(self, symbol: str) -> List[Tuple[str, float]]:
        return [
            (other, self.matrix[symbol][other])
            for other in self.symbols
            if other != symbol
        ]


class CorrelationCalculator:
    """
    Pearson correlation between return series.

    Usage:
        calculator = CorrelationCalculator()

        corr = calculator.calculate_correlation(aapl_returns, msft_returns)

        matrix = calculator.calculate_correlation_matrix({
            'AAPL': aapl_returns,
            'MSFT': msft_returns,
            'GLD': gld_returns,
        })
        matrix.get_correlation('AAPL', 'GLD')
    """

    def calculate_correlation(self, returns_a: Sequence[float], returns_b: Sequence[float]) -> float:
        """
        Pearson correlation of two equally long series.

        Raises:
            ValidationError: lengths differ, fewer than 2 points, or a
                non-finite value in either series

        Returns:
            Correlation in [-1, 1]; 0.0 if either series has zero variance
        """
        ReturnSeriesValidator.require_paired(returns_a, returns_b)
        ReturnSeriesValidator.require_finite(returns_a, "returns_a")
        ReturnSeriesValidator.require_finite(returns_b, "returns_b")

        a = np.asarray(returns_a, dtype=float)
        b = np.asarray(returns_b, dtype=float)
        diff_a = a - a.mean()
        diff_b = b - b.mean()

        denominator = np.sqrt((diff_a * diff_a).sum() * (diff_b * diff_b).sum())
        if denominator == 0:
            logger.debug("Zero-variance series in correlation, returning 0")
            return 0.0

        corr = float((diff_a * diff_b).sum() / denominator)
        # Rounding can push |corr| a hair past 1
        return min(1.0, max(-1.0, corr))

    def calculate_correlation_matrix(self, series_map: Mapping[str, Sequence[float]]) -> CorrelationMatrix:
        """
        Correlation matrix for every symbol in series_map.

        Each unordered pair is computed once and mirrored; the diagonal is 1.0.
        """
        symbols = list(series_map.keys())
        logger.info(f"Calculating correlation matrix for {len(symbols)} symbols")

        matrix: Dict[str, Dict[str, float]] = {sym: {sym: 1.0} for sym in symbols}
        for i, sym1 in enumerate(symbols):
            for sym2 in symbols[i + 1:]:
                corr = self.calculate_correlation(series_map[sym1], series_map[sym2])
                matrix[sym1][sym2] = corr
                matrix[sym2][sym1] = corr

        return CorrelationMatrix(symbols=symbols, matrix=matrix)
